"""Shared fixtures: settings without a model or knowledge store, and transcripts."""

from pathlib import Path

import pytest

from hub_onboarding_agent.config import (
    AppSettings,
    KnowledgeSettings,
    ModelSettings,
    PDFSettings,
)

from transcripts import (
    COMPANY_QUESTION,
    CONFIRM_QUESTION,
    HUBS_QUESTION,
    LEVELS_QUESTION,
    GOALS_QUESTION,
    HUB_GOALS_QUESTION,
    SALES_QUESTIONS,
    MARKETING_QUESTIONS,
)


def _exchange(question, answer):
    return [
        {"role": "assistant", "content": question},
        {"role": "user", "content": answer},
    ]


@pytest.fixture
def core_transcript():
    """Steps 1-5 of discovery for a Sales + Marketing customer."""

    messages = []
    messages += _exchange(COMPANY_QUESTION, "acme.io, we sell industrial sensors")
    messages += _exchange(CONFIRM_QUESTION, "Yes")
    messages += _exchange(HUBS_QUESTION, "Sales and Marketing, Service can come later")
    messages += _exchange(LEVELS_QUESTION, "Sales Professional, Marketing Starter")
    messages += _exchange(
        GOALS_QUESTION, "Organize the pipeline and automate follow-up emails"
    )
    messages += _exchange(
        HUB_GOALS_QUESTION, "Sequences for sales, lead scoring for marketing"
    )
    return messages


@pytest.fixture
def full_transcript(core_transcript):
    """Complete discovery including the Sales and Marketing blocks."""

    sales_answers = (
        "Manufacturers, leads come from trade shows",
        "One team, one process",
        "A deal is created after the first demo; won means a signed PO",
        "We always need the budget; reminders should be automated",
    )
    marketing_answers = (
        "Plant managers at mid-size factories",
        "More than 50 employees and an active maintenance budget",
        "Mostly referrals and our website",
        "A monthly newsletter",
        "No campaigns yet, we'd like a webinar series",
        "No Content Hub",
    )
    messages = list(core_transcript)
    for question, answer in zip(SALES_QUESTIONS, sales_answers):
        messages += _exchange(question, answer)
    for question, answer in zip(MARKETING_QUESTIONS, marketing_answers):
        messages += _exchange(question, answer)
    return messages


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        model=ModelSettings(
            provider="openai",
            model="gpt-4o-mini",
            endpoint=None,
            api_key=None,
            api_version=None,
        ),
        knowledge=KnowledgeSettings(directory=None),
        pdf=PDFSettings(),
        output_dir=tmp_path,
    )


@pytest.fixture
def user_info():
    return {
        "name": "Dana",
        "lastName": "Reyes",
        "email": "dana@acme.io",
        "company": "Acme",
        "website": "acme.io",
    }
