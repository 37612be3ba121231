import asyncio
import json

from hub_onboarding_agent.history import derive_answers_from_history
from hub_onboarding_agent.request_context import build_request_context
from hub_onboarding_agent.tools import (
    MAX_OBJECTIVES,
    PLAN_INSTRUCTION,
    ImplementationPlan,
    build_agent_tools,
    extract_objectives,
    run_detect_plan_ready,
    run_generate_plan_draft,
    run_search_company_knowledge,
)


def _context(transcript, **kwargs):
    derived = derive_answers_from_history(transcript)
    return build_request_context(
        derived.answers_collected, derived.questions_asked, **kwargs
    )


class TestExtractObjectives:
    def test_splits_goals_and_details(self):
        objectives = extract_objectives(
            {
                "overall_goals": "Organize the pipeline, automate follow-up and improve reporting",
                "hub_specific_details": "organize the pipeline | lead scoring",
            }
        )

        assert objectives == [
            "Organize the pipeline",
            "automate follow-up",
            "improve reporting",
            "lead scoring",
        ]

    def test_short_parts_dropped_and_capped(self):
        goals = ", ".join(f"goal number {index}" for index in range(20))
        objectives = extract_objectives({"overall_goals": goals + ", ok"})

        assert len(objectives) == MAX_OBJECTIVES
        assert "ok" not in objectives

    def test_empty(self):
        assert extract_objectives({}) == []


class TestImplementationPlan:
    def test_dict_round_trip(self):
        plan = ImplementationPlan(
            company="Acme",
            objectives=["Organize the pipeline"],
            modules=[{"name": "Deals", "description": "Pipeline", "priority": "high"}],
            timeline="4 weeks",
        )

        assert ImplementationPlan.from_dict(plan.to_dict()) == plan

    def test_from_partial_dict(self):
        plan = ImplementationPlan.from_dict({"company": "Acme"})

        assert plan.objectives == []
        assert plan.timeline == ""


class TestToolRunners:
    def test_detect_plan_ready_uses_request_state(self, full_transcript):
        payload = json.loads(run_detect_plan_ready(_context(full_transcript)))

        assert payload["ready"] is True
        assert payload["activeHubs"] == {"sales": True, "marketing": True, "service": False}

    def test_generate_plan_draft_records_plan(self, core_transcript):
        context = _context(core_transcript, user_info={"company": "Acme"})
        payload = json.loads(run_generate_plan_draft(context))

        assert payload["status"] == "ready"
        assert payload["company"] == "Acme"
        assert payload["activeHubs"] == ["Sales Hub", "Marketing Hub"]
        assert payload["subscriptionLevel"] == "Starter"
        assert payload["ragContext"].startswith("Not available")
        assert payload["instruction"] == PLAN_INSTRUCTION
        assert context.plan is not None
        assert context.plan.company == "Acme"
        assert context.plan.objectives == payload["objectives"]
        assert "Organize the pipeline" in context.plan.objectives

    def test_generate_plan_draft_prefers_explicit_company(self, core_transcript):
        context = _context(core_transcript, user_info={"company": "Acme"})
        payload = json.loads(
            run_generate_plan_draft(
                context, company_name="Acme Sensors", knowledge_context="guides"
            )
        )

        assert payload["company"] == "Acme Sensors"
        assert payload["ragContext"].startswith("Available")

    def test_search_without_store(self, core_transcript):
        text = run_search_company_knowledge(_context(core_transcript), None, "Acme")

        assert "Knowledge base is currently unavailable" in text


class TestBuildAgentTools:
    def test_tool_names(self, core_transcript):
        tools = build_agent_tools(_context(core_transcript), None)

        assert [tool.__name__ for tool in tools] == [
            "detect_plan_ready",
            "search_company_knowledge",
            "generate_plan_draft",
        ]

    def test_tools_share_the_request_context(self, core_transcript):
        context = _context(core_transcript, user_info={"company": "Acme"})
        detect, search, generate = build_agent_tools(context, None)

        readiness = json.loads(asyncio.run(detect(questionsAsked=["STEP 1"])))
        assert readiness["metrics"]["totalQuestions"] == 6

        guidance = asyncio.run(search(query="Acme sales implementation"))
        assert guidance.startswith("[INTERNAL USE ONLY]")

        asyncio.run(generate(answersCollected={"overall_goals": "Better reporting"}))
        assert context.plan is not None
        assert context.plan.objectives == ["Better reporting"]
