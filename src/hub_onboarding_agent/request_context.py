"""Per-request discovery state shared between the chat service and tools."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence

from .history import ANSWER_SEPARATOR
from .topics import Pillar

if TYPE_CHECKING:
    from .tools import ImplementationPlan

logger = logging.getLogger(__name__)

PLAN_READY_MIN_ANSWERS = 5

# Topic-level keys folded into the hub_specific_details pillar.
_HUB_DETAIL_KEYS = (
    "hub_specific_details",
    "hub_specific_goals",
    "sales_process",
    "service_process",
    "marketing_process",
)


def _empty_answers() -> Dict[str, str]:
    return {}


def _empty_questions() -> List[str]:
    return []


@dataclass(slots=True)
class OnboardingRequestContext:
    """State of one chat request, bound into the agent tools by closure."""

    answers_collected: Dict[str, str] = field(default_factory=_empty_answers)
    questions_asked: List[str] = field(default_factory=_empty_questions)
    plan_ready: bool = False
    user_info: Dict[str, str] = field(default_factory=dict)
    plan: Optional["ImplementationPlan"] = None

    @property
    def company_name(self) -> str:
        return self.user_info.get("company", "").strip()

    def resolve_answers(
        self,
        supplied: Optional[Mapping[str, object]] = None,
    ) -> Dict[str, str]:
        """Prefer answers the model passed to a tool, else the request state."""

        if supplied:
            normalized = normalize_answers_to_pillars(supplied)
            if normalized:
                return normalized
        return normalize_answers_to_pillars(self.answers_collected)


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_answers_to_pillars(answers: Mapping[str, object]) -> Dict[str, str]:
    """Fold topic-level keys into the five pillars the readiness gate expects.

    Pillars without any non-blank value are omitted so they count as missing.
    """

    hub_details = ANSWER_SEPARATOR.join(
        text for text in (_text(answers.get(key)) for key in _HUB_DETAIL_KEYS) if text
    )
    pillars = {
        Pillar.COMPANY_INFO.value: _text(answers.get("company_info")),
        Pillar.HUBS_INCLUDED.value: _text(answers.get("hubs_included")),
        Pillar.SUBSCRIPTION_LEVELS.value: (
            _text(answers.get("subscription_levels"))
            or _text(answers.get("plan_levels"))
        ),
        Pillar.OVERALL_GOALS.value: _text(answers.get("overall_goals")),
        Pillar.HUB_SPECIFIC_DETAILS.value: hub_details,
    }
    return {key: value for key, value in pillars.items() if value}


def build_request_context(
    answers: Mapping[str, str],
    questions: Sequence[str],
    *,
    client_plan_ready: bool = False,
    user_info: Optional[Mapping[str, object]] = None,
) -> OnboardingRequestContext:
    """Create the context for one chat request."""

    plan_ready = bool(client_plan_ready) or len(answers) >= PLAN_READY_MIN_ANSWERS
    context = OnboardingRequestContext(
        answers_collected=dict(answers),
        questions_asked=list(questions),
        plan_ready=plan_ready,
        user_info={
            str(key): _text(value)
            for key, value in (user_info or {}).items()
            if value is not None
        },
    )
    logger.info(
        "Request context: answers=%s questions=%s plan_ready=%s",
        sorted(context.answers_collected),
        len(context.questions_asked),
        context.plan_ready,
    )
    return context
