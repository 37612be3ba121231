"""Request and response bodies of the HTTP API (camelCase on the wire)."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .tools import ImplementationPlan


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MessageModel(_CamelModel):
    role: str
    content: str = ""


class UserInfoModel(_CamelModel):
    name: str = ""
    last_name: str = Field(default="", alias="lastName")
    email: str = ""
    company: str = ""
    website: str = ""
    terms: bool = False

    def as_mapping(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "lastName": self.last_name,
            "email": self.email,
            "company": self.company,
            "website": self.website,
        }


class ChatContextModel(_CamelModel):
    answers_collected: Optional[Dict[str, Any]] = Field(
        default=None, alias="answersCollected"
    )
    questions_asked: Optional[List[str]] = Field(default=None, alias="questionsAsked")
    plan_ready: bool = Field(default=False, alias="planReady")

    def as_mapping(self) -> Dict[str, Any]:
        return {
            "answersCollected": self.answers_collected,
            "questionsAsked": self.questions_asked,
            "planReady": self.plan_ready,
        }


class ChatRequest(_CamelModel):
    messages: List[MessageModel] = Field(default_factory=list)
    user_info: Optional[UserInfoModel] = Field(default=None, alias="userInfo")
    context: Optional[ChatContextModel] = None


class PlanModuleModel(_CamelModel):
    name: str = ""
    description: str = ""
    priority: str = "medium"


class ImplementationPlanModel(_CamelModel):
    company: str = ""
    objectives: List[str] = Field(default_factory=list)
    modules: List[PlanModuleModel] = Field(default_factory=list)
    timeline: str = ""
    recommendations: List[str] = Field(default_factory=list)

    def to_plan(self) -> ImplementationPlan:
        return ImplementationPlan.from_dict(self.model_dump())


class GeneratePdfRequest(_CamelModel):
    plan: Optional[ImplementationPlanModel] = None
    user_info: Optional[UserInfoModel] = Field(default=None, alias="userInfo")
    full_plan_text: Optional[str] = Field(default=None, alias="fullPlanText")


class ReadinessRequest(_CamelModel):
    messages: List[MessageModel] = Field(default_factory=list)


class ReadinessResponse(_CamelModel):
    answers_collected: Dict[str, str] = Field(alias="answersCollected")
    questions_asked: List[str] = Field(alias="questionsAsked")
    readiness: Dict[str, Any]


class NormalizeRequest(_CamelModel):
    text: str = ""


class NormalizeResponse(_CamelModel):
    text: str
