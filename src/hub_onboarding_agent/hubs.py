"""Extract active Hubs and subscription tiers from free-text answers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Pattern, Tuple


class SubscriptionLevel(str, Enum):
    """HubSpot subscription tiers."""

    FREE = "Free"
    STARTER = "Starter"
    PROFESSIONAL = "Professional"
    ENTERPRISE = "Enterprise"


DEFAULT_LEVEL = SubscriptionLevel.PROFESSIONAL
LEVEL_TEXT_MAX_CHARS = 50

# Searched in this order; the first keyword found wins.
_LEVEL_KEYWORDS: Tuple[SubscriptionLevel, ...] = (
    SubscriptionLevel.FREE,
    SubscriptionLevel.STARTER,
    SubscriptionLevel.PROFESSIONAL,
    SubscriptionLevel.ENTERPRISE,
)

# Retrieval prefers the highest tier mentioned.
_QUERY_LEVEL_ORDER: Tuple[SubscriptionLevel, ...] = (
    SubscriptionLevel.ENTERPRISE,
    SubscriptionLevel.PROFESSIONAL,
    SubscriptionLevel.STARTER,
    SubscriptionLevel.FREE,
)

_HUB_PRESENCE: Dict[str, Pattern[str]] = {
    "sales": re.compile(r"\bsales\b", re.IGNORECASE),
    "marketing": re.compile(r"\bmarketing\b", re.IGNORECASE),
    "service": re.compile(r"\bservice\b", re.IGNORECASE),
}

# Service carries a wider vocabulary than sales/marketing.
_HUB_EXCLUSIONS: Dict[str, Tuple[Pattern[str], ...]] = {
    "sales": (
        re.compile(
            r"sales\s+(can\s+)?(come|wait|later|future|not\s+now)",
            re.IGNORECASE,
        ),
    ),
    "marketing": (
        re.compile(
            r"marketing\s+(can\s+)?(come|wait|later|future|not\s+now)",
            re.IGNORECASE,
        ),
    ),
    "service": (
        re.compile(
            r"service\s+(can\s+)?"
            r"(come|wait|later|future|not\s+now|isn't|not\s+in\s+scope)",
            re.IGNORECASE,
        ),
        re.compile(
            r"not\s+(planning|implementing|including)\s+.*?service",
            re.IGNORECASE,
        ),
    ),
}


@dataclass(frozen=True, slots=True)
class ActiveHubs:
    """Which Hubs are actively part of the implementation."""

    sales: bool = False
    marketing: bool = False
    service: bool = False

    def labels(self) -> List[str]:
        """Human readable Hub names in plan order."""

        names: List[str] = []
        if self.sales:
            names.append("Sales Hub")
        if self.marketing:
            names.append("Marketing Hub")
        if self.service:
            names.append("Service Hub")
        return names

    def to_dict(self) -> Dict[str, bool]:
        return {
            "sales": self.sales,
            "marketing": self.marketing,
            "service": self.service,
        }


def _hub_active(hub: str, text: str) -> bool:
    if not _HUB_PRESENCE[hub].search(text):
        return False
    return not any(pattern.search(text) for pattern in _HUB_EXCLUSIONS[hub])


def parse_active_hubs(text: str | None) -> ActiveHubs:
    """Return the Hubs mentioned in ``text`` that are not deferred.

    "Sales and Marketing, Service can come later" activates Sales and
    Marketing only.
    """

    lowered = str(text or "").lower()
    return ActiveHubs(
        sales=_hub_active("sales", lowered),
        marketing=_hub_active("marketing", lowered),
        service=_hub_active("service", lowered),
    )


def detect_hub_mentions(text: str | None) -> ActiveHubs:
    """Bare substring presence, used when building retrieval queries."""

    lowered = str(text or "").lower()
    return ActiveHubs(
        sales="sales" in lowered,
        marketing="marketing" in lowered,
        service="service" in lowered,
    )


def parse_subscription_level(text: str | None) -> SubscriptionLevel:
    """Map a short tier answer to a subscription level.

    Long free-form answers are treated as unparseable and default to
    Professional.
    """

    lowered = str(text or "").lower().strip()
    if len(lowered) > LEVEL_TEXT_MAX_CHARS:
        return DEFAULT_LEVEL
    for level in _LEVEL_KEYWORDS:
        if level.value.lower() in lowered:
            return level
    return DEFAULT_LEVEL


def extract_level(text: str | None) -> SubscriptionLevel:
    lowered = str(text or "").lower()
    for level in _QUERY_LEVEL_ORDER:
        if level.value.lower() in lowered:
            return level
    return DEFAULT_LEVEL
