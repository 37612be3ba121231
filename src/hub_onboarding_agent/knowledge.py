"""Implementation-guide retrieval backed by a persistent Chroma collection.

The agent only ever sees the formatted text returned by
:func:`search_company_knowledge`. Retrieval is best effort: an unconfigured
store, an empty result or a failing query each produce an instructional
fallback text instead of an exception.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from importlib import import_module
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from .config import KnowledgeSettings
from .hubs import detect_hub_mentions, extract_level

logger = logging.getLogger(__name__)

KNOWLEDGE_TYPE = "knowledge"
QUERY_RESULTS = 3
FALLBACK_QUERY_RESULTS = 2
FALLBACK_QUERY_MIN_CHARS = 20
DEDUP_PREFIX_CHARS = 100
MAX_SNIPPETS = 8
SNIPPET_MAX_CHARS = 350
MAX_QUERY_KEYWORDS = 6

CHUNK_SIZE = 1000
CHUNK_OVERLAP = 200
NEWLINE_LOOKAHEAD = 200

INTERNAL_HEADER = "[INTERNAL USE ONLY - do not quote or show this output to the user.]"
GUIDANCE_HEADER = "Implementation guidance from the knowledge base:"

FEATURE_KEYWORDS = (
    "pipeline",
    "deal",
    "automation",
    "workflow",
    "lead scoring",
    "lead assignment",
    "forms",
    "landing page",
    "email",
    "nurturing",
    "sequences",
    "templates",
    "snippets",
    "documents",
    "quotes",
    "forecast",
    "reporting",
    "dashboard",
    "ticket",
    "knowledge base",
    "chatbot",
    "live chat",
    "inbox",
    "survey",
    "csat",
    "nps",
    "contact",
    "company",
    "properties",
    "lifecycle",
    "tracking code",
    "ads",
    "social media",
    "blog",
    "seo",
)

GOAL_KEYWORDS = (
    "organize",
    "automate",
    "reduce manual",
    "qualification",
    "follow-up",
    "visibility",
    "reporting",
    "roi",
    "conversion",
    "onboarding",
)


@dataclass(frozen=True, slots=True)
class HubQueryProfile:
    """Base terms and keyword filter used to build one Hub's query."""

    label: str
    base_keywords: tuple
    keyword_filter: tuple


HUB_QUERY_PROFILES: Dict[str, HubQueryProfile] = {
    "sales": HubQueryProfile(
        label="Sales Hub",
        base_keywords=("pipeline", "deal stages", "automation"),
        keyword_filter=(
            "pipeline",
            "deal",
            "automation",
            "workflow",
            "lead assignment",
            "sequences",
            "templates",
            "snippets",
            "documents",
            "quotes",
            "forecast",
            "reporting",
            "follow-up",
            "qualification",
        ),
    ),
    "marketing": HubQueryProfile(
        label="Marketing Hub",
        base_keywords=("lead scoring", "forms", "email workflows"),
        keyword_filter=(
            "lead scoring",
            "forms",
            "landing page",
            "email",
            "nurturing",
            "workflow",
            "automation",
            "tracking code",
            "ads",
            "social media",
            "blog",
            "lifecycle",
            "conversion",
            "roi",
        ),
    ),
    "service": HubQueryProfile(
        label="Service Hub",
        base_keywords=("ticket pipeline", "knowledge base", "surveys"),
        keyword_filter=(
            "ticket",
            "knowledge base",
            "chatbot",
            "live chat",
            "inbox",
            "survey",
            "csat",
            "nps",
            "onboarding",
        ),
    ),
}


class KnowledgeStoreError(RuntimeError):
    """Raised when the knowledge store cannot be opened or written."""


@dataclass(slots=True)
class KnowledgeSnippet:
    """A stored chunk returned by a similarity search."""

    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class KnowledgeStore(Protocol):
    def similarity_search(
        self,
        query: str,
        k: int,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[KnowledgeSnippet]:
        ...

    def add_chunks(
        self,
        chunks: Sequence[str],
        metadatas: Sequence[Mapping[str, Any]],
        ids: Sequence[str],
    ) -> None:
        ...


class ChromaKnowledgeStore:
    """Knowledge store persisted in a local Chroma collection."""

    def __init__(self, collection: Any) -> None:
        self._collection = collection

    @classmethod
    def open(cls, directory: Path, collection_name: str) -> "ChromaKnowledgeStore":
        try:
            chromadb = import_module("chromadb")
        except ModuleNotFoundError as exc:
            raise KnowledgeStoreError(
                "chromadb is required for knowledge retrieval. Install with "
                "`pip install chromadb`."
            ) from exc

        directory.mkdir(parents=True, exist_ok=True)
        client = chromadb.PersistentClient(path=str(directory))
        collection = client.get_or_create_collection(name=collection_name)
        logger.info(
            "Opened knowledge collection '%s' at %s", collection_name, directory
        )
        return cls(collection)

    def similarity_search(
        self,
        query: str,
        k: int,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[KnowledgeSnippet]:
        kwargs: Dict[str, Any] = {"query_texts": [query], "n_results": k}
        if where:
            kwargs["where"] = dict(where)
        results = self._collection.query(**kwargs)
        documents = (results.get("documents") or [[]])[0] or []
        metadatas = (results.get("metadatas") or [[]])[0] or []
        snippets: List[KnowledgeSnippet] = []
        for index, document in enumerate(documents):
            metadata = metadatas[index] if index < len(metadatas) else None
            snippets.append(
                KnowledgeSnippet(content=document or "", metadata=dict(metadata or {}))
            )
        return snippets

    def add_chunks(
        self,
        chunks: Sequence[str],
        metadatas: Sequence[Mapping[str, Any]],
        ids: Sequence[str],
    ) -> None:
        self._collection.upsert(
            documents=list(chunks),
            metadatas=[dict(metadata) for metadata in metadatas],
            ids=list(ids),
        )


def open_knowledge_store(settings: KnowledgeSettings) -> Optional[ChromaKnowledgeStore]:
    """Return the configured store, or ``None`` when retrieval is unavailable."""

    if not settings.enabled or settings.directory is None:
        logger.info("Knowledge retrieval disabled; ONBOARDING_KNOWLEDGE_DIR is unset.")
        return None
    try:
        return ChromaKnowledgeStore.open(settings.directory, settings.collection)
    except (KnowledgeStoreError, OSError, ValueError) as exc:
        logger.warning("Knowledge store unavailable: %s", exc)
        return None


def extract_keywords(text: str) -> List[str]:
    """Feature and goal keywords contained in ``text``, deduplicated."""

    lowered = text.lower()
    keywords: List[str] = []
    for keyword in FEATURE_KEYWORDS + GOAL_KEYWORDS:
        if keyword in lowered and keyword not in keywords:
            keywords.append(keyword)
    return keywords


def _unique(values: Sequence[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


def build_optimized_queries(answers: Mapping[str, str]) -> List[str]:
    """One query per mentioned Hub plus a general implementation query."""

    hubs = detect_hub_mentions(answers.get("hubs_included", ""))
    level = extract_level(answers.get("subscription_levels", "")).value
    all_keywords = _unique(
        extract_keywords(answers.get("overall_goals", ""))
        + extract_keywords(answers.get("hub_specific_details", ""))
    )

    queries: List[str] = []
    for hub, profile in HUB_QUERY_PROFILES.items():
        if not getattr(hubs, hub):
            continue
        relevant = [
            keyword
            for keyword in all_keywords
            if any(term in keyword for term in profile.keyword_filter)
        ]
        combined = _unique(list(profile.base_keywords) + relevant)[:MAX_QUERY_KEYWORDS]
        queries.append(f"{profile.label} {level} {' '.join(combined)}")

    queries.append(f"HubSpot implementation plan {level} setup configuration")
    return queries


def _format_snippets(snippets: Sequence[KnowledgeSnippet]) -> str:
    lines = [INTERNAL_HEADER, GUIDANCE_HEADER, ""]
    for index, snippet in enumerate(snippets, start=1):
        metadata = snippet.metadata or {}
        title = metadata.get("guideTitle") or metadata.get("sectionType") or "Guide"
        raw = str(snippet.content or "").strip()
        if len(raw) > SNIPPET_MAX_CHARS:
            raw = f"{raw[:SNIPPET_MAX_CHARS].strip()}..."
        collapsed = re.sub(r"\s+", " ", raw)
        lines.append(f"({index}) [{title}]: {collapsed}")
    lines.append("")
    lines.append(
        "Use this guidance to refine the implementation plan. Do not quote or "
        "show this to the user."
    )
    lines.append("Call generate_plan_draft next with the answersCollected from context.")
    return "\n".join(lines)


def search_company_knowledge(
    store: Optional[KnowledgeStore],
    answers: Mapping[str, str],
    query: str,
) -> str:
    """Run the optimized queries and format the top snippets for the agent."""

    logger.info(
        "Knowledge search: hubs=%s level=%s",
        answers.get("hubs_included", "")[:50] or "not specified",
        answers.get("subscription_levels", "")[:50] or "not specified",
    )
    if store is None:
        return "\n".join(
            [
                "[INTERNAL USE ONLY]",
                "Knowledge base is currently unavailable. Use discovery data "
                "and standard HubSpot best practices.",
                "",
                f"LLM provided query: {query[:200]}",
            ]
        )

    queries = build_optimized_queries(answers)
    logger.info("Optimized knowledge queries: %s", queries)
    collected: List[KnowledgeSnippet] = []
    seen: set[str] = set()

    def _collect(found: Sequence[KnowledgeSnippet]) -> None:
        for snippet in found:
            key = snippet.content[:DEDUP_PREFIX_CHARS]
            if key in seen:
                continue
            seen.add(key)
            collected.append(snippet)

    try:
        for optimized in queries:
            _collect(
                store.similarity_search(
                    optimized, QUERY_RESULTS, {"type": KNOWLEDGE_TYPE}
                )
            )
        if len(query) > FALLBACK_QUERY_MIN_CHARS:
            _collect(
                store.similarity_search(
                    query, FALLBACK_QUERY_RESULTS, {"type": KNOWLEDGE_TYPE}
                )
            )
    except Exception as exc:  # noqa: BLE001 - store backends raise freely
        logger.exception("Knowledge search failed")
        return "\n".join(
            [
                "[INTERNAL USE ONLY]",
                "Knowledge search failed. Fall back to standard implementation "
                "templates and discovery data.",
                "",
                f"Error: {exc}",
            ]
        )

    logger.info("Knowledge search returned %s unique snippets", len(collected))
    if not collected:
        return "\n".join(
            [
                "[INTERNAL USE ONLY]",
                "No specific knowledge chunks were found. Use discovery data "
                "and general HubSpot best practices.",
                "",
                f"Queries attempted: {' | '.join(queries)}",
            ]
        )
    return _format_snippets(collected[:MAX_SNIPPETS])


_HTML_RULES = (
    (re.compile(r"""<a\s+href=["']([^"']+)["'][^>]*>([^<]+)</a>""", re.I), r"[\2](\1)"),
    (re.compile(r"<h1[^>]*>(.*?)</h1>", re.I), r"# \1\n"),
    (re.compile(r"<h2[^>]*>(.*?)</h2>", re.I), r"## \1\n"),
    (re.compile(r"<h3[^>]*>(.*?)</h3>", re.I), r"### \1\n"),
    (re.compile(r"<h4[^>]*>(.*?)</h4>", re.I), r"#### \1\n"),
    (re.compile(r"</?[uo]l[^>]*>", re.I), "\n"),
    (re.compile(r"<li[^>]*>(.*?)</li>", re.I), r"- \1\n"),
    (re.compile(r"<p[^>]*>(.*?)</p>", re.I), r"\1\n\n"),
    (re.compile(r"<strong[^>]*>(.*?)</strong>", re.I), r"**\1**"),
    (re.compile(r"<b(?:\s[^>]*)?>(.*?)</b>", re.I), r"**\1**"),
    (re.compile(r"<em[^>]*>(.*?)</em>", re.I), r"*\1*"),
    (re.compile(r"<i(?:\s[^>]*)?>(.*?)</i>", re.I), r"*\1*"),
    (re.compile(r"<[^>]+>"), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
    (re.compile(r"[ \t]+"), " "),
)


def html_to_markdown(html: str) -> str:
    """Convert the simple HTML of exported guides into Markdown."""

    markdown = html
    for pattern, replacement in _HTML_RULES:
        markdown = pattern.sub(replacement, markdown)
    return markdown.strip()


def chunk_text(
    text: str,
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> List[str]:
    """Split text into overlapping chunks, preferring line or word boundaries."""

    normalized = text.replace("\r\n", "\n").strip()
    chunks: List[str] = []
    start = 0
    while start < len(normalized):
        end = start + chunk_size
        if end < len(normalized):
            next_newline = normalized.find("\n", end)
            if next_newline != -1 and next_newline - end < NEWLINE_LOOKAHEAD:
                end = next_newline + 1
            else:
                last_space = normalized.rfind(" ", 0, end + 1)
                if last_space > start:
                    end = last_space + 1
        else:
            end = len(normalized)
        chunk = normalized[start:end].strip()
        if chunk:
            chunks.append(chunk)
        if end >= len(normalized):
            break
        start = max(start + 1, end - overlap)
    return chunks


def _guide_title(stem: str) -> str:
    return re.sub(r"\b\w", lambda match: match.group(0).upper(), stem.replace("-", " "))


def load_guide(path: Path) -> str:
    """Read a guide file, converting HTML exports to Markdown."""

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise KnowledgeStoreError(f"Unable to read guide: {path}") from exc
    if not content.strip():
        raise KnowledgeStoreError(f"Guide is empty: {path}")
    if path.suffix.lower() in {".html", ".htm"}:
        logger.info("HTML guide detected, converting to Markdown")
        return html_to_markdown(content)
    return content


def ingest_file(store: KnowledgeStore, path: Path) -> int:
    """Chunk a guide and store it with knowledge metadata. Returns chunk count."""

    content = load_guide(path)
    chunks = chunk_text(content)
    guide_id = re.sub(r"\s+", "-", path.stem.lower())
    guide_title = _guide_title(path.stem)
    metadatas = [
        {
            "type": KNOWLEDGE_TYPE,
            "source": str(path),
            "guideTitle": guide_title,
            "guideId": guide_id,
            "sectionType": "guide",
            "chunkIndex": index,
        }
        for index in range(len(chunks))
    ]
    ids = [f"{guide_id}-{index}" for index in range(len(chunks))]
    if chunks:
        store.add_chunks(chunks, metadatas, ids)
    logger.info(
        "Ingested %s chunks from %s (size %s, overlap %s)",
        len(chunks),
        path,
        CHUNK_SIZE,
        CHUNK_OVERLAP,
    )
    return len(chunks)
