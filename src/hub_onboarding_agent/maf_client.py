"""Thin wrappers around Microsoft Agent Framework chat clients and agents.

This module centralizes the integration with the Microsoft Agent Framework
(MAF) so the rest of the application can stay framework-agnostic. It attempts
to load the appropriate client implementation at runtime based on the
configured provider. If the import fails, a descriptive error is raised to
guide the user through the required dependency.
"""

from __future__ import annotations

import logging
from importlib import import_module
from typing import Any, AsyncIterator, Callable, Iterable, List, Sequence

from agent_framework import ChatAgent, ChatMessage as MAFChatMessage, Role

from .config import ModelSettings
from .history import TranscriptMessage

logger = logging.getLogger(__name__)


def _coerce_role(role: str) -> Role:
    try:
        return Role(role)
    except ValueError as exc:
        raise ValueError(
            "Unsupported role for MAF chat message: {role}".format(role=role)
        ) from exc


class MAFIntegrationError(RuntimeError):
    """Raised when the MAF client cannot be initialized."""


def create_chat_client(settings: ModelSettings) -> Any:
    """Instantiate the MAF chat client for the configured provider."""

    provider = settings.provider.lower()
    try:
        if provider in {"azure-openai", "azure_openai", "azure"}:
            module = import_module("agent_framework.azure")
            client_cls = getattr(module, "AzureOpenAIChatClient")
            return client_cls(
                api_key=settings.api_key,
                deployment_name=settings.model,
                endpoint=settings.endpoint,
                api_version=settings.api_version,
            )
        if provider in {"openai", "oai"}:
            module = import_module("agent_framework.openai")
            client_cls = getattr(module, "OpenAIChatClient")
            return client_cls(
                api_key=settings.api_key,
                model_id=settings.model,
                base_url=settings.endpoint,
            )
    except ModuleNotFoundError as exc:  # pragma: no cover - MAF runtime
        missing = exc.name or "a required dependency"
        raise MAFIntegrationError(
            "Microsoft Agent Framework dependency '{missing}' is missing. "
            "Reinstall the project dependencies (e.g. `pip install -e .`)."
            .format(missing=missing)
        ) from exc
    raise MAFIntegrationError(
        f"Unsupported MAF provider '{settings.provider}'."
    )


def merge_consecutive_roles(
    messages: Iterable[TranscriptMessage],
) -> List[TranscriptMessage]:
    """Combine adjacent messages that share the same role.

    The chat templates expect user/assistant roles to alternate. When the
    client sends several messages from the same role back-to-back, their
    content is merged to preserve intent while keeping the alternation.
    """

    merged: List[TranscriptMessage] = []
    for message in messages:
        if merged and merged[-1].role == message.role:
            previous = merged[-1]
            previous.content = f"{previous.content}\n\n{message.content}".strip()
            continue
        merged.append(TranscriptMessage(role=message.role, content=message.content))
    return merged


class MAFAgentRunner:
    """Runs one tool-enabled agent turn and streams its text output."""

    def __init__(
        self,
        settings: ModelSettings,
        *,
        instructions: str,
        tools: Sequence[Callable[..., Any]],
    ) -> None:
        self._settings = settings
        self._agent = ChatAgent(
            chat_client=create_chat_client(settings),
            instructions=instructions,
            name="hubspot-onboarding",
            tools=list(tools),
            temperature=settings.temperature,
        )

    async def stream(
        self,
        messages: Sequence[TranscriptMessage],
    ) -> AsyncIterator[str]:
        payload: List[MAFChatMessage] = [
            MAFChatMessage(role=_coerce_role(message.role), text=message.content)
            for message in merge_consecutive_roles(messages)
        ]
        logger.debug("Streaming agent turn with %s messages", len(payload))
        # Tool calls run inside run_stream; only text updates are surfaced.
        async for update in self._agent.run_stream(payload):
            text = update.text
            if text:
                yield text


def create_agent_runner(
    settings: ModelSettings,
    instructions: str,
    tools: Sequence[Callable[..., Any]],
) -> MAFAgentRunner:
    return MAFAgentRunner(settings, instructions=instructions, tools=tools)
