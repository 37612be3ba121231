"""Discovery topics and the pattern table used to classify questions.

Both the server-side history derivation and any client that wants to mirror
it must use this single table so the two sides never disagree about which
pillar a question belongs to.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple


class DiscoveryTopic(str, Enum):
    """Fine-grained category of a discovery question."""

    COMPANY_INFO = "company_info"
    HUBS_INCLUDED = "hubs_included"
    SUBSCRIPTION_LEVELS = "subscription_levels"
    OVERALL_GOALS = "overall_goals"
    HUB_SPECIFIC_GOALS = "hub_specific_goals"
    SALES_PROCESS = "sales_process"
    SERVICE_PROCESS = "service_process"
    MARKETING_PROCESS = "marketing_process"


class Pillar(str, Enum):
    """Required discovery categories that gate plan generation."""

    COMPANY_INFO = "company_info"
    HUBS_INCLUDED = "hubs_included"
    SUBSCRIPTION_LEVELS = "subscription_levels"
    OVERALL_GOALS = "overall_goals"
    HUB_SPECIFIC_DETAILS = "hub_specific_details"


REQUIRED_PILLARS: Tuple[Pillar, ...] = (
    Pillar.COMPANY_INFO,
    Pillar.HUBS_INCLUDED,
    Pillar.SUBSCRIPTION_LEVELS,
    Pillar.OVERALL_GOALS,
    Pillar.HUB_SPECIFIC_DETAILS,
)

# Iteration order matters: the first topic with a matching pattern wins.
TOPIC_PATTERNS: Tuple[Tuple[DiscoveryTopic, Tuple[str, ...]], ...] = (
    (
        DiscoveryTopic.COMPANY_INFO,
        (
            "company's website",
            "domain",
            "business name",
            "what your business does",
            "what i understand about your business",
            "is this correct",
            "let's get started",
            "hi! let's get started",
        ),
    ),
    # Checked before hubs_included: the plan level question also says
    # "not planning to implement right now".
    (
        DiscoveryTopic.SUBSCRIPTION_LEVELS,
        (
            "subscription level",
            "free, starter, professional, enterprise",
            "what subscription level",
            "hubs purchased",
            "not planning to implement right now",
        ),
    ),
    (
        DiscoveryTopic.HUBS_INCLUDED,
        (
            "hubspot hubs",
            "marketing, sales, service",
            "which main hubspot hubs",
            "planning to implement",
            "hubs are you",
        ),
    ),
    (
        DiscoveryTopic.OVERALL_GOALS,
        (
            "main goals with hubspot",
            "goals with hubspot",
            "what are your main goals",
            "organize your sales",
            "send better emails",
            "improve reporting",
            "reduce manual work",
        ),
    ),
    (
        DiscoveryTopic.HUB_SPECIFIC_GOALS,
        (
            "specific features",
            "goals you have in mind",
            "excited to use",
            "for each hub you're implementing",
        ),
    ),
    (
        DiscoveryTopic.SALES_PROCESS,
        (
            "let's talk sales",
            "who do you sell to",
            "sales team get their leads",
            "more than one sales team",
            "more than one sales process",
            "when is a deal created",
            "key steps your team takes",
            "what defines a 'won' deal",
            "pieces of info you always need to collect",
            "repetitive tasks",
            "like to automate",
        ),
    ),
    (
        DiscoveryTopic.SERVICE_PROCESS,
        (
            "let's talk service",
            "service processes",
            "when should a ticket be created",
            "main steps each ticket",
            "knowledge base",
            "surveys",
            "customer satisfaction",
        ),
    ),
    (
        DiscoveryTopic.MARKETING_PROCESS,
        (
            "let's talk about your audience",
            "kinds of people or companies",
            "good lead for your business",
            "how are people finding you",
            "stay in touch or promote",
            "marketing campaigns",
            "content hub",
            "welcome email",
        ),
    ),
)

TOPIC_TO_PILLAR: Dict[DiscoveryTopic, Pillar] = {
    DiscoveryTopic.COMPANY_INFO: Pillar.COMPANY_INFO,
    DiscoveryTopic.HUBS_INCLUDED: Pillar.HUBS_INCLUDED,
    DiscoveryTopic.SUBSCRIPTION_LEVELS: Pillar.SUBSCRIPTION_LEVELS,
    DiscoveryTopic.OVERALL_GOALS: Pillar.OVERALL_GOALS,
    DiscoveryTopic.HUB_SPECIFIC_GOALS: Pillar.HUB_SPECIFIC_DETAILS,
    DiscoveryTopic.SALES_PROCESS: Pillar.HUB_SPECIFIC_DETAILS,
    DiscoveryTopic.SERVICE_PROCESS: Pillar.HUB_SPECIFIC_DETAILS,
    DiscoveryTopic.MARKETING_PROCESS: Pillar.HUB_SPECIFIC_DETAILS,
}


def classify_topic(question: str) -> Optional[DiscoveryTopic]:
    """Return the first topic whose patterns occur in ``question``."""

    text = question.lower()
    for topic, patterns in TOPIC_PATTERNS:
        if any(pattern in text for pattern in patterns):
            return topic
    return None


def pillar_for(topic: DiscoveryTopic) -> Pillar:
    return TOPIC_TO_PILLAR[topic]
