"""Heuristic gate deciding whether discovery is complete enough for a plan."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Pattern, Sequence, Tuple

from .hubs import ActiveHubs, parse_active_hubs
from .topics import REQUIRED_PILLARS, Pillar

logger = logging.getLogger(__name__)

MIN_QUESTIONS = 4
MIN_DATA_POINTS = 5
INCOMPLETE_HUB_CONFIDENCE_CAP = 70


@dataclass(frozen=True, slots=True)
class HubDiscoveryCheck:
    """Question patterns that must appear before a Hub counts as covered."""

    hub: str
    step_label: str
    patterns: Tuple[Pattern[str], ...]
    threshold: int


def _compile(*expressions: str) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(expr, re.IGNORECASE) for expr in expressions)


HUB_DISCOVERY_CHECKS: Tuple[HubDiscoveryCheck, ...] = (
    HubDiscoveryCheck(
        hub="sales",
        step_label="STEP 6A (Sales)",
        patterns=_compile(
            r"let.?s talk sales|who do you sell|sell to\?",
            r"more than one sales|sales team|sales process",
            r"deal.*created|when is a deal|deal is created",
            r"repetitive tasks|automate|pieces of info",
        ),
        threshold=3,
    ),
    HubDiscoveryCheck(
        hub="service",
        step_label="STEP 6B (Service)",
        patterns=_compile(
            r"let.?s talk service|service processes",
            r"ticket.*created|when should a ticket",
            r"steps.*ticket|ticket.*through",
            r"knowledge base|surveys",
        ),
        threshold=3,
    ),
    HubDiscoveryCheck(
        hub="marketing",
        step_label="STEP 6C (Marketing)",
        patterns=_compile(
            r"talk about your audience|kinds of people|what kinds",
            r"good lead|makes someone.*lead|lead for your business",
            r"people finding you|finding you right now|how are people",
            r"stay in touch|promote your business|currently stay",
            r"marketing campaigns|campaigns outside|set up any",
            r"content hub",
        ),
        threshold=4,
    ),
)


def _empty_missing() -> List[str]:
    return []


@dataclass(slots=True)
class HubQuestionsCheck:
    complete: bool
    missing_hub_questions: List[str] = field(default_factory=_empty_missing)


@dataclass(slots=True)
class ReadinessResult:
    """Outcome of the readiness heuristic for a single request."""

    ready: bool
    missing: List[str]
    confidence: int
    active_hubs: ActiveHubs
    metrics: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase keys the agent tool returns."""

        return {
            "ready": self.ready,
            "missing": list(self.missing),
            "confidence": self.confidence,
            "activeHubs": self.active_hubs.to_dict(),
            "metrics": {
                "totalQuestions": self.metrics.get("total_questions", 0),
                "totalDataPoints": self.metrics.get("total_data_points", 0),
                "hubQuestionsComplete": self.metrics.get(
                    "hub_questions_complete", False
                ),
                "status": self.metrics.get("status", ""),
            },
        }


def find_missing_pillars(answers: Mapping[str, object]) -> List[str]:
    """Required pillars with no answer key containing their name."""

    collected_keys = [str(key).lower() for key in answers.keys()]
    return [
        pillar.value
        for pillar in REQUIRED_PILLARS
        if not any(pillar.value in key for key in collected_keys)
    ]


def check_hub_questions_asked(
    questions: Sequence[str],
    active_hubs: ActiveHubs,
) -> HubQuestionsCheck:
    """Count hub-specific question patterns over the whole question log."""

    all_questions_text = " ".join(questions).lower()
    missing: List[str] = []
    for check in HUB_DISCOVERY_CHECKS:
        if not getattr(active_hubs, check.hub):
            continue
        matches = [
            bool(pattern.search(all_questions_text))
            for pattern in check.patterns
        ]
        found = sum(matches)
        logger.debug(
            "%s patterns matched: %s %s", check.step_label, found, matches
        )
        if found < check.threshold:
            missing.append(
                f"{check.step_label} incomplete: "
                f"{found}/{check.threshold} patterns matched"
            )
    return HubQuestionsCheck(
        complete=not missing,
        missing_hub_questions=missing,
    )


def detect_plan_ready(
    answers: Mapping[str, object] | None,
    questions: Sequence[str] | None,
) -> ReadinessResult:
    """Decide whether enough discovery has happened to draft the plan.

    This is a best-effort sufficiency signal. It never raises; anything that
    is not ready is reported through ``missing``.
    """

    answers = answers or {}
    history = list(questions or [])

    missing_pillars = find_missing_pillars(answers)
    hubs_text = answers.get(Pillar.HUBS_INCLUDED.value) or ""
    active_hubs = parse_active_hubs(str(hubs_text))
    hub_check = check_hub_questions_asked(history, active_hubs)

    present = len(REQUIRED_PILLARS) - len(missing_pillars)
    base_confidence = int(math.floor(present / len(REQUIRED_PILLARS) * 100 + 0.5))
    if hub_check.complete:
        confidence = base_confidence
    else:
        confidence = min(base_confidence, INCOMPLETE_HUB_CONFIDENCE_CAP)

    ready = (
        not missing_pillars
        and len(history) >= MIN_QUESTIONS
        and len(answers) >= MIN_DATA_POINTS
        and hub_check.complete
    )

    logger.info(
        "Readiness: ready=%s questions=%s data_points=%s hubs=%s missing=%s",
        ready,
        len(history),
        len(answers),
        active_hubs.to_dict(),
        missing_pillars + hub_check.missing_hub_questions,
    )

    return ReadinessResult(
        ready=ready,
        missing=missing_pillars + hub_check.missing_hub_questions,
        confidence=confidence,
        active_hubs=active_hubs,
        metrics={
            "total_questions": len(history),
            "total_data_points": len(answers),
            "hub_questions_complete": hub_check.complete,
            "status": (
                "Ready for RAG and Generation"
                if ready
                else "More discovery needed"
            ),
        },
    )
