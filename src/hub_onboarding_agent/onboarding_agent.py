"""Chat orchestration for the HubSpot onboarding agent.

One call to :meth:`OnboardingAgentService.stream_chat` handles one client
request: the transcript is cleaned up, the discovery state is rebuilt from it,
the tools are bound to a fresh request context, and the model's streamed text
is filtered before it reaches the client.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)

from .history import (
    DerivedContext,
    TranscriptMessage,
    coerce_messages,
    derive_answers_from_history,
    merge_answers,
)
from .knowledge import KnowledgeStore
from .markdown_normalizer import normalize_markdown
from .prompts import build_system_prompt, format_discovery_state
from .request_context import build_request_context, normalize_answers_to_pillars
from .tools import ImplementationPlan, build_agent_tools

logger = logging.getLogger(__name__)

RAG_LEAK_MARKERS = (
    "Retrieved knowledge highlights",
    "RAG-based implementation guidance",
    "Implementation guidance from the knowledge base",
    "Use these knowledge excerpts",
    "ImplementationPlanExampleFormat",
    "key excerpt:",
    "[guide]",
    "[INTERNAL USE ONLY",
)
INTERNAL_MARKERS = ("[INTERNAL KNOWLEDGE]", "TECHNICAL_CONTEXT:")
_TOOL_ERROR_RE = re.compile(
    r"\bError invoking tool\b|with error:\s*Error:",
    re.IGNORECASE,
)


class AgentRunner(Protocol):
    def stream(self, messages: Sequence[TranscriptMessage]) -> AsyncIterator[str]:
        ...


RunnerFactory = Callable[[str, Sequence[Callable[..., Any]]], AgentRunner]


@dataclass(slots=True)
class StreamEvent:
    """One item of the chat stream: a text chunk or the generated plan.

    For ``plan_generated`` the content is the normalized text of the turn.
    """

    type: str
    content: str = ""
    plan: Optional[ImplementationPlan] = None

    @classmethod
    def message(cls, content: str) -> "StreamEvent":
        return cls(type="message", content=content)

    @classmethod
    def plan_generated(cls, plan: ImplementationPlan, text: str = "") -> "StreamEvent":
        return cls(type="plan_generated", content=text, plan=plan)


def is_leaked_chunk(chunk: str) -> bool:
    """True when a streamed chunk looks like tool output or internal text."""

    trimmed = chunk.strip()
    if trimmed.startswith("{") or trimmed.startswith('["') or '"company":' in trimmed:
        return True
    if any(marker in chunk for marker in INTERNAL_MARKERS):
        return True
    if any(marker in chunk for marker in RAG_LEAK_MARKERS):
        return True
    return bool(_TOOL_ERROR_RE.search(chunk))


def _normalize_role(role: str) -> str:
    return "user" if role.strip().lower() == "user" else "assistant"


def clean_transcript(
    messages: Iterable[TranscriptMessage | Mapping[str, object]],
) -> List[TranscriptMessage]:
    """Drop repeated messages the client may resend.

    A message whose role and trimmed content were already seen is removed,
    and so is an assistant message identical to the assistant message just
    before it.
    """

    seen = set()
    cleaned: List[TranscriptMessage] = []
    removed = 0
    for message in coerce_messages(messages):
        role = _normalize_role(message.role)
        content = message.content.strip()
        key = f"{role}:{content}"
        if key in seen:
            removed += 1
            continue
        seen.add(key)
        if (
            role == "assistant"
            and cleaned
            and cleaned[-1].role == "assistant"
            and cleaned[-1].content.strip() == content
        ):
            removed += 1
            continue
        cleaned.append(TranscriptMessage(role=role, content=message.content))
    if removed:
        logger.warning("Removed %s duplicate message(s) from the transcript", removed)
    return cleaned


def derive_discovery_state(
    messages: Iterable[TranscriptMessage | Mapping[str, object]],
) -> DerivedContext:
    """Answers and questions as the chat turn sees them, after clean-up."""

    return derive_answers_from_history(clean_transcript(messages))


def _client_value(client_context: Optional[Mapping[str, Any]], key: str) -> Any:
    if not client_context:
        return None
    return client_context.get(key)


class OnboardingAgentService:
    """Runs the discovery conversation and plan generation for one request."""

    def __init__(
        self,
        runner_factory: RunnerFactory,
        *,
        knowledge: Optional[KnowledgeStore] = None,
    ) -> None:
        self._runner_factory = runner_factory
        self._knowledge = knowledge

    async def stream_chat(
        self,
        messages: Iterable[TranscriptMessage | Mapping[str, object]],
        user_info: Optional[Mapping[str, object]] = None,
        client_context: Optional[Mapping[str, Any]] = None,
    ) -> AsyncIterator[StreamEvent]:
        transcript = clean_transcript(messages)
        derived = derive_answers_from_history(transcript)

        client_answers = _client_value(client_context, "answersCollected")
        answers = merge_answers(derived.answers_collected, client_answers or None)
        questions = derived.questions_asked or list(
            _client_value(client_context, "questionsAsked") or []
        )
        context = build_request_context(
            answers,
            questions,
            client_plan_ready=bool(_client_value(client_context, "planReady")),
            user_info=user_info,
        )

        tools = build_agent_tools(context, self._knowledge)
        runner = self._runner_factory(build_system_prompt(context.user_info), tools)

        payload: List[TranscriptMessage] = []
        discovery_state = format_discovery_state(
            normalize_answers_to_pillars(context.answers_collected)
        )
        if discovery_state:
            payload.append(TranscriptMessage(role="system", content=discovery_state))
        payload.extend(transcript)

        logger.info(
            "Streaming chat turn: messages=%s answers=%s",
            len(transcript),
            sorted(context.answers_collected),
        )
        streamed: List[str] = []
        async for chunk in runner.stream(payload):
            if not chunk:
                continue
            if is_leaked_chunk(chunk):
                logger.debug("Suppressed internal chunk: %s", chunk[:80])
                continue
            streamed.append(chunk)
            yield StreamEvent.message(chunk)

        if context.plan is not None:
            logger.info("Plan generated for %s", context.plan.company or "unknown company")
            yield StreamEvent.plan_generated(
                context.plan, normalize_markdown("".join(streamed))
            )
