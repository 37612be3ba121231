"""Configuration helpers for the HubSpot onboarding agent."""

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from typing import Optional, Tuple


@dataclass(slots=True)
class ModelSettings:
    """Holds model-related configuration for the runtime."""

    provider: str
    model: str
    endpoint: Optional[str]
    api_key: Optional[str]
    api_version: Optional[str]
    temperature: float = 0.1

    def require_api_key(self) -> str:
        """Return the API key or explain how to configure it."""

        if not self.api_key:
            raise RuntimeError(
                "MAF_MODEL_API_KEY environment variable is required."
            )
        return self.api_key


@dataclass(slots=True)
class KnowledgeSettings:
    """Location of the vector store used for implementation guidance."""

    directory: Optional[Path]
    collection: str = "hubspot-cases"
    top_k: int = 3

    @property
    def enabled(self) -> bool:
        return self.directory is not None


@dataclass(slots=True)
class PDFSettings:
    """Layout knobs for the implementation plan PDF."""

    max_chars_per_line: int = 95
    asset_dir: Optional[Path] = None


@dataclass(slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    model: ModelSettings
    knowledge: KnowledgeSettings
    pdf: PDFSettings
    output_dir: Path
    allow_origins: Tuple[str, ...] = ("*",)

    @classmethod
    def load(cls) -> "AppSettings":
        """Load settings from the environment or .env file."""
        _ensure_dotenv()
        provider = os.getenv("MAF_MODEL_PROVIDER", "openai")
        model = os.getenv("MAF_MODEL", "gpt-4o-mini")
        endpoint = os.getenv("MAF_MODEL_ENDPOINT") or None
        api_key = os.getenv("MAF_MODEL_API_KEY") or None
        api_version = os.getenv("MAF_MODEL_API_VERSION") or None
        temperature_raw = os.getenv("MAF_MODEL_TEMPERATURE", "0.1")
        try:
            temperature = float(temperature_raw)
        except ValueError as exc:
            raise RuntimeError(
                "MAF_MODEL_TEMPERATURE must be a number"
            ) from exc

        knowledge_dir_raw = os.getenv("ONBOARDING_KNOWLEDGE_DIR", "").strip()
        knowledge_dir = Path(knowledge_dir_raw) if knowledge_dir_raw else None
        collection = (
            os.getenv("ONBOARDING_KNOWLEDGE_COLLECTION", "hubspot-cases").strip()
            or "hubspot-cases"
        )
        top_k = _positive_int("ONBOARDING_KNOWLEDGE_TOP_K", "3", minimum=1)

        max_chars = _positive_int("ONBOARDING_PDF_MAX_CHARS", "95", minimum=20)
        asset_dir_raw = os.getenv("ONBOARDING_ASSET_DIR", "").strip()

        output_dir = Path(os.getenv("ONBOARDING_OUTPUT_DIR", "outputs"))
        output_dir.mkdir(parents=True, exist_ok=True)

        origins_raw = os.getenv("ONBOARDING_ALLOW_ORIGINS", "*")
        origins = tuple(
            origin.strip() for origin in origins_raw.split(",") if origin.strip()
        )

        return cls(
            model=ModelSettings(
                provider=provider,
                model=model,
                endpoint=endpoint,
                api_key=api_key,
                api_version=api_version,
                temperature=temperature,
            ),
            knowledge=KnowledgeSettings(
                directory=knowledge_dir,
                collection=collection,
                top_k=top_k,
            ),
            pdf=PDFSettings(
                max_chars_per_line=max_chars,
                asset_dir=Path(asset_dir_raw) if asset_dir_raw else None,
            ),
            output_dir=output_dir,
            allow_origins=origins or ("*",),
        )


def _positive_int(name: str, default: str, *, minimum: int) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc
    if value < minimum:
        raise RuntimeError(f"{name} must be at least {minimum}")
    return value


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
