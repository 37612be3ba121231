import pytest

from hub_onboarding_agent.history import derive_answers_from_history
from hub_onboarding_agent.readiness import (
    INCOMPLETE_HUB_CONFIDENCE_CAP,
    check_hub_questions_asked,
    detect_plan_ready,
    find_missing_pillars,
)
from hub_onboarding_agent.hubs import ActiveHubs

from transcripts import MARKETING_QUESTIONS, SALES_QUESTIONS

ALL_PILLARS = {
    "company_info": "Acme sells sensors",
    "hubs_included": "Sales",
    "subscription_levels": "Professional",
    "overall_goals": "Organize the pipeline",
    "hub_specific_details": "Sequences",
}


class TestMissingPillars:
    def test_all_present(self):
        assert find_missing_pillars(ALL_PILLARS) == []

    def test_missing_in_required_order(self):
        answers = {"hubs_included": "Sales", "overall_goals": "Reporting"}

        assert find_missing_pillars(answers) == [
            "company_info",
            "subscription_levels",
            "hub_specific_details",
        ]

    def test_key_containing_pillar_name_counts(self):
        answers = dict(ALL_PILLARS)
        answers.pop("company_info")
        answers["company_info_website"] = "acme.io"

        assert find_missing_pillars(answers) == []


class TestHubQuestions:
    def test_sales_block_complete(self):
        check = check_hub_questions_asked(list(SALES_QUESTIONS), ActiveHubs(sales=True))

        assert check.complete
        assert check.missing_hub_questions == []

    def test_inactive_hubs_are_not_checked(self):
        check = check_hub_questions_asked([], ActiveHubs())

        assert check.complete

    def test_marketing_threshold(self):
        check = check_hub_questions_asked(
            list(MARKETING_QUESTIONS[:3]), ActiveHubs(marketing=True)
        )

        assert not check.complete
        assert check.missing_hub_questions == [
            "STEP 6C (Marketing) incomplete: 3/4 patterns matched"
        ]


class TestDetectPlanReady:
    def test_full_discovery_is_ready(self, full_transcript):
        derived = derive_answers_from_history(full_transcript)
        result = detect_plan_ready(derived.answers_collected, derived.questions_asked)

        assert result.ready
        assert result.missing == []
        assert result.confidence == 100
        assert result.active_hubs == ActiveHubs(sales=True, marketing=True)
        assert result.metrics["status"] == "Ready for RAG and Generation"

    def test_incomplete_hub_blocks_cap_confidence(self, core_transcript):
        derived = derive_answers_from_history(core_transcript)
        result = detect_plan_ready(derived.answers_collected, derived.questions_asked)

        assert not result.ready
        assert result.confidence == INCOMPLETE_HUB_CONFIDENCE_CAP
        assert result.missing == [
            "STEP 6A (Sales) incomplete: 1/3 patterns matched",
            "STEP 6C (Marketing) incomplete: 0/4 patterns matched",
        ]

    def test_too_few_questions(self):
        result = detect_plan_ready(ALL_PILLARS, list(SALES_QUESTIONS[:3]))

        assert not result.ready
        assert result.missing == []
        assert result.metrics["total_questions"] == 3

    def test_missing_pillar_lowers_confidence(self):
        answers = dict(ALL_PILLARS)
        answers.pop("overall_goals")
        result = detect_plan_ready(answers, list(SALES_QUESTIONS))

        assert not result.ready
        assert result.missing == ["overall_goals"]
        assert result.confidence == 80

    @pytest.mark.parametrize("answers,questions", [(None, None), ({}, [])])
    def test_empty_input_never_raises(self, answers, questions):
        result = detect_plan_ready(answers, questions)

        assert not result.ready
        assert result.confidence == 0
        assert len(result.missing) == 5

    def test_ready_implies_all_pillars_present(self, full_transcript):
        derived = derive_answers_from_history(full_transcript)
        answers = dict(derived.answers_collected)
        for pillar in list(answers):
            trimmed = {key: value for key, value in answers.items() if key != pillar}
            assert not detect_plan_ready(trimmed, derived.questions_asked).ready

    def test_to_dict_uses_camel_case(self):
        payload = detect_plan_ready(ALL_PILLARS, list(SALES_QUESTIONS)).to_dict()

        assert payload["ready"] is True
        assert payload["activeHubs"] == {"sales": True, "marketing": False, "service": False}
        assert payload["metrics"] == {
            "totalQuestions": 4,
            "totalDataPoints": 5,
            "hubQuestionsComplete": True,
            "status": "Ready for RAG and Generation",
        }
