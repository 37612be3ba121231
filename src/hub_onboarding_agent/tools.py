"""Agent tools bound to a single chat request.

Annotations here are evaluated eagerly because the agent framework builds the
tool JSON schema from the function signatures.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Annotated, Any, Callable, Dict, List, Mapping, Optional

from pydantic import Field

from .hubs import parse_active_hubs, parse_subscription_level
from .knowledge import KnowledgeStore, search_company_knowledge
from .readiness import detect_plan_ready
from .request_context import OnboardingRequestContext

logger = logging.getLogger(__name__)

MAX_OBJECTIVES = 12
PLAN_INSTRUCTION = (
    "Generate the Implementation Plan now using the PHASE 2 format from your "
    "system prompt. Do NOT output this message to the user."
)

_GOAL_SPLIT_RE = re.compile(r"[,;]|\s+and\s+|\n+", re.IGNORECASE)
_DETAIL_SPLIT_RE = re.compile(r"\||[,;]|\s+and\s+|\n+", re.IGNORECASE)


@dataclass(slots=True)
class ImplementationPlan:
    """Structured plan summary rendered as a card and on the PDF summary page."""

    company: str
    objectives: List[str] = field(default_factory=list)
    modules: List[Dict[str, Any]] = field(default_factory=list)
    timeline: str = ""
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company": self.company,
            "objectives": list(self.objectives),
            "modules": [dict(module) for module in self.modules],
            "timeline": self.timeline,
            "recommendations": list(self.recommendations),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ImplementationPlan":
        return cls(
            company=str(payload.get("company") or ""),
            objectives=[str(item) for item in payload.get("objectives") or []],
            modules=[dict(item) for item in payload.get("modules") or []],
            timeline=str(payload.get("timeline") or ""),
            recommendations=[
                str(item) for item in payload.get("recommendations") or []
            ],
        )


def _split_parts(text: str, pattern: re.Pattern) -> List[str]:
    return [
        part.strip()
        for part in pattern.split(text)
        if 3 < len(part.strip()) < 200
    ]


def extract_objectives(answers: Mapping[str, object]) -> List[str]:
    """Split goals and hub details into at most twelve objective phrases."""

    objectives: List[str] = []
    overall = str(answers.get("overall_goals") or "").strip()
    hub_specific = str(answers.get("hub_specific_details") or "").strip()

    if overall:
        objectives.extend(_split_parts(overall, _GOAL_SPLIT_RE))
    if hub_specific:
        for part in _split_parts(hub_specific, _DETAIL_SPLIT_RE):
            if not any(existing.lower() == part.lower() for existing in objectives):
                objectives.append(part)
    return objectives[:MAX_OBJECTIVES]


def run_detect_plan_ready(context: OnboardingRequestContext) -> str:
    """Readiness JSON computed from the server-derived request state.

    The model tends to pass step labels instead of question text, so its own
    arguments are ignored here.
    """

    answers = context.resolve_answers()
    result = detect_plan_ready(answers, context.questions_asked)
    return json.dumps(result.to_dict())


def run_search_company_knowledge(
    context: OnboardingRequestContext,
    knowledge: Optional[KnowledgeStore],
    query: str,
    answers: Optional[Mapping[str, object]] = None,
) -> str:
    return search_company_knowledge(
        knowledge,
        context.resolve_answers(answers),
        query,
    )


def run_generate_plan_draft(
    context: OnboardingRequestContext,
    *,
    company_name: str = "",
    knowledge_context: str = "",
    answers: Optional[Mapping[str, object]] = None,
) -> str:
    """Record the structured plan on the context and return LLM guidance."""

    resolved = context.resolve_answers(answers)
    company = company_name.strip() or context.company_name
    active_hubs = parse_active_hubs(resolved.get("hubs_included", ""))
    plan = ImplementationPlan(
        company=company,
        objectives=extract_objectives(resolved),
    )
    context.plan = plan
    logger.info(
        "Plan draft prepared for %s: objectives=%s hubs=%s",
        company or "<unknown>",
        len(plan.objectives),
        active_hubs.labels(),
    )
    return json.dumps(
        {
            "status": "ready",
            "company": company,
            "activeHubs": active_hubs.labels(),
            "subscriptionLevel": parse_subscription_level(
                resolved.get("subscription_levels", "")
            ).value,
            "objectives": plan.objectives,
            "timeline": plan.timeline,
            "ragContext": (
                "Available - use format from knowledge base"
                if knowledge_context
                else "Not available - use system prompt format"
            ),
            "instruction": PLAN_INSTRUCTION,
        }
    )


AnswersArg = Annotated[
    Optional[Dict[str, Any]],
    Field(
        description=(
            "The full set of discovery data (company_info, hubs_included, "
            "subscription_levels, overall_goals, hub_specific_details)."
        )
    ),
]


def build_agent_tools(
    context: OnboardingRequestContext,
    knowledge: Optional[KnowledgeStore],
) -> List[Callable[..., Any]]:
    """Create the three tool callables closed over one request's context."""

    async def detect_plan_ready_tool(
        answersCollected: AnswersArg = None,
        questionsAsked: Annotated[
            Optional[List[str]],
            Field(description="List of questions already asked by the agent"),
        ] = None,
    ) -> str:
        """Check whether discovery is complete enough to generate the plan.

        Returns ready, missing, confidence, activeHubs and metrics as JSON.
        """

        return run_detect_plan_ready(context)

    async def search_company_knowledge_tool(
        query: Annotated[
            str,
            Field(
                description=(
                    "Short description of the client profile. Optimized "
                    "queries are built from the discovery context."
                )
            ),
        ],
        answersCollected: AnswersArg = None,
    ) -> str:
        """Search the onboarding knowledge base for implementation guidance.

        Call this after detect_plan_ready and before generate_plan_draft.
        """

        return run_search_company_knowledge(context, knowledge, query, answersCollected)

    async def generate_plan_draft_tool(
        companyName: Annotated[str, Field(description="The name of the company")] = "",
        website: Annotated[str, Field(description="Company website URL")] = "",
        email: Annotated[str, Field(description="User contact email")] = "",
        knowledgeContext: Annotated[
            str,
            Field(description="Technical insights retrieved from the knowledge search"),
        ] = "",
        answersCollected: AnswersArg = None,
    ) -> str:
        """Prepare the context for writing the Implementation Plan.

        After calling this tool, write the full plan in the PHASE 2 format.
        """

        return run_generate_plan_draft(
            context,
            company_name=companyName,
            knowledge_context=knowledgeContext,
            answers=answersCollected,
        )

    detect_plan_ready_tool.__name__ = "detect_plan_ready"
    search_company_knowledge_tool.__name__ = "search_company_knowledge"
    generate_plan_draft_tool.__name__ = "generate_plan_draft"
    return [
        detect_plan_ready_tool,
        search_company_knowledge_tool,
        generate_plan_draft_tool,
    ]
