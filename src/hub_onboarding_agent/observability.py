"""OpenTelemetry tracing for agent turns and tool calls."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from importlib import import_module
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_OTLP_ENDPOINT = "http://localhost:4317"
_TRUE_VALUES = {"1", "true", "yes", "on"}

_initialized = False


@dataclass(slots=True)
class TracingSettings:
    """Where spans are exported and whether prompts/completions are recorded."""

    endpoint: str = DEFAULT_OTLP_ENDPOINT
    capture_sensitive: bool = False

    @classmethod
    def from_env(cls) -> "TracingSettings":
        endpoint = os.getenv("MAF_OTLP_ENDPOINT", DEFAULT_OTLP_ENDPOINT).strip()
        # Transcripts contain customer contact details; off unless asked for.
        sensitive = os.getenv("MAF_TRACING_CAPTURE_SENSITIVE", "false")
        return cls(
            endpoint=endpoint,
            capture_sensitive=sensitive.strip().lower() in _TRUE_VALUES,
        )


def initialize_tracing(settings: Optional[TracingSettings] = None) -> bool:
    """Send agent framework spans to the OTLP collector.

    Returns ``True`` only on the call that actually set tracing up; failures
    are logged and leave the service running untraced.
    """

    global _initialized
    if _initialized:
        return False

    settings = settings or TracingSettings.from_env()
    if not settings.endpoint:
        logger.info("Tracing skipped because MAF_OTLP_ENDPOINT is empty.")
        return False

    try:
        observability = import_module("agent_framework.observability")
        observability.setup_observability(
            otlp_endpoint=settings.endpoint,
            enable_sensitive_data=settings.capture_sensitive,
        )
    except Exception as exc:  # pragma: no cover - exporter setup
        logger.warning("Tracing initialization failed: %s", exc)
        return False

    _initialized = True
    logger.info(
        "Tracing onboarding agent to %s (sensitive data: %s)",
        settings.endpoint,
        "on" if settings.capture_sensitive else "off",
    )
    return True
