import asyncio

from hub_onboarding_agent.history import derive_answers_from_history
from hub_onboarding_agent.markdown_normalizer import normalize_markdown
from hub_onboarding_agent.onboarding_agent import (
    OnboardingAgentService,
    clean_transcript,
    derive_discovery_state,
    is_leaked_chunk,
)

from fakes import ScriptedRunnerFactory
from transcripts import SALES_QUESTIONS


def _collect(service, messages, user_info=None, client_context=None):
    async def run():
        return [
            event
            async for event in service.stream_chat(messages, user_info, client_context)
        ]

    return asyncio.run(run())


class TestIsLeakedChunk:
    def test_tool_payloads(self):
        assert is_leaked_chunk('{"ready": true}')
        assert is_leaked_chunk('  ["STEP 1", "STEP 2"]')
        assert is_leaked_chunk('plan for "company": "Acme"')

    def test_internal_and_knowledge_markers(self):
        assert is_leaked_chunk("[INTERNAL USE ONLY - DO NOT SHOW TO USER]")
        assert is_leaked_chunk("TECHNICAL_CONTEXT: pipelines")
        assert is_leaked_chunk("Retrieved knowledge highlights: deals")

    def test_tool_errors(self):
        assert is_leaked_chunk("Error invoking tool generate_plan_draft")
        assert is_leaked_chunk("Function failed with error: Error: timeout")

    def test_conversation_text_passes(self):
        assert not is_leaked_chunk("Great, thanks! Which hubs do you have?")
        assert not is_leaked_chunk("See [Deals](https://knowledge.hubspot.com/deals)")


class TestCleanTranscript:
    def test_repeated_messages_removed(self):
        cleaned = clean_transcript(
            [
                {"role": "user", "content": "Hi"},
                {"role": "assistant", "content": "Hello"},
                {"role": "user", "content": "Hi "},
                {"role": "assistant", "content": "Hello"},
                {"role": "user", "content": "Acme"},
            ]
        )

        assert [(message.role, message.content) for message in cleaned] == [
            ("user", "Hi"),
            ("assistant", "Hello"),
            ("user", "Acme"),
        ]

    def test_non_user_roles_become_assistant(self):
        cleaned = clean_transcript([{"role": "bot", "content": "Hello"}])

        assert cleaned[0].role == "assistant"


class TestStreamChat:
    def test_discovery_state_precedes_transcript(self, core_transcript, user_info):
        factory = ScriptedRunnerFactory(["Thanks!"])
        service = OnboardingAgentService(factory)

        _collect(service, core_transcript, user_info)

        sent = factory.last.messages
        assert sent[0].role == "system"
        assert sent[0].content.startswith("CURRENT DISCOVERY STATE:")
        assert "- hubs_included: Sales and Marketing" in sent[0].content
        assert [message.content for message in sent[1:]] == [
            message["content"] for message in core_transcript
        ]
        assert "- Company: Acme" in factory.last.instructions
        assert set(factory.last.tools) == {
            "detect_plan_ready",
            "search_company_knowledge",
            "generate_plan_draft",
        }

    def test_leaked_and_empty_chunks_are_filtered(self, core_transcript, user_info):
        factory = ScriptedRunnerFactory(
            ["Thanks!", '{"ready": true}', "", "[INTERNAL KNOWLEDGE] x", " Next step."]
        )
        events = _collect(OnboardingAgentService(factory), core_transcript, user_info)

        assert [event.type for event in events] == ["message", "message"]
        assert [event.content for event in events] == ["Thanks!", " Next step."]

    def test_plan_event_follows_the_text(self, full_transcript, user_info):
        factory = ScriptedRunnerFactory(
            ["## SALES HUB\n", "Pipeline setup"], call_plan=True
        )
        events = _collect(OnboardingAgentService(factory), full_transcript, user_info)

        assert [event.type for event in events] == [
            "message",
            "message",
            "plan_generated",
        ]
        plan = events[-1].plan
        assert plan.company == "Acme"
        assert "Organize the pipeline" in plan.objectives

    def test_no_plan_event_without_tool_call(self, core_transcript, user_info):
        events = _collect(
            OnboardingAgentService(ScriptedRunnerFactory(["Thanks!"])),
            core_transcript,
            user_info,
        )

        assert all(event.type == "message" for event in events)

    def test_first_turn_has_no_discovery_state(self):
        factory = ScriptedRunnerFactory(["Welcome!"])
        _collect(OnboardingAgentService(factory), [])

        assert factory.last.messages == []

    def test_client_answers_are_used_when_nothing_derived(self):
        factory = ScriptedRunnerFactory(["Welcome back!"])
        _collect(
            OnboardingAgentService(factory),
            [],
            client_context={"answersCollected": {"company_info": "Acme"}},
        )

        assert "- company_info: Acme" in factory.last.messages[0].content


class TestPlanText:
    def test_plan_event_carries_normalized_turn_text(self, full_transcript, user_info):
        factory = ScriptedRunnerFactory(
            ["Intro\n## SALES Hub\n", '{"company": "Acme"}', "- Hub Spot setup"],
            call_plan=True,
        )
        events = _collect(OnboardingAgentService(factory), full_transcript, user_info)

        plan_text = events[-1].content
        assert plan_text == normalize_markdown("Intro\n## SALES Hub\n- Hub Spot setup")
        assert "Intro\n\n## SALES HUB" in plan_text
        assert "HubSpot setup" in plan_text
        assert '"company"' not in plan_text


class TestDiscoveryState:
    def test_repeated_answers_are_dropped_before_deriving(self):
        messages = [
            {"role": "assistant", "content": SALES_QUESTIONS[0]},
            {"role": "user", "content": "Yes"},
            {"role": "assistant", "content": SALES_QUESTIONS[1]},
            {"role": "user", "content": "Yes"},
            {"role": "assistant", "content": SALES_QUESTIONS[2]},
            {"role": "user", "content": "After the demo"},
        ]

        derived = derive_discovery_state(messages)

        assert derived == derive_answers_from_history(clean_transcript(messages))
        assert len(derived.questions_asked) == 2
