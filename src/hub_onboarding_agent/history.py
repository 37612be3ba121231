"""Derive discovery answers and the question log from a chat transcript."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .topics import Pillar, classify_topic, pillar_for

logger = logging.getLogger(__name__)

QUESTION_MAX_CHARS = 120
QUESTION_PREFIX_CHARS = 50
ANSWER_SEPARATOR = " | "

_SHORT_CONFIRMATION_RE = re.compile(
    r"^(yes|no|ok|okay|sure|correct|yep|nope|si|sí)$",
    re.IGNORECASE,
)


@dataclass(slots=True)
class TranscriptMessage:
    """Single chat message as exchanged with the client."""

    role: str
    content: str


def _empty_answers() -> Dict[str, str]:
    return {}


def _empty_questions() -> List[str]:
    return []


@dataclass(slots=True)
class DerivedContext:
    """Answers grouped by pillar plus the deduplicated question log."""

    answers_collected: Dict[str, str] = field(default_factory=_empty_answers)
    questions_asked: List[str] = field(default_factory=_empty_questions)


def is_short_confirmation(answer: str) -> bool:
    stripped = answer.strip()
    return len(stripped) < 10 and bool(_SHORT_CONFIRMATION_RE.match(stripped))


def shorten_question(question: str) -> str:
    """Truncate long questions so the log stays compact."""

    if len(question) > QUESTION_MAX_CHARS:
        return question[:QUESTION_MAX_CHARS].strip() + "…"
    return question


def _already_asked(questions: Sequence[str], shortened: str) -> bool:
    prefix = shortened[:QUESTION_PREFIX_CHARS]
    return any(
        recorded == shortened or recorded.startswith(prefix)
        for recorded in questions
    )


def coerce_messages(
    messages: Iterable[TranscriptMessage | Mapping[str, object]],
) -> List[TranscriptMessage]:
    """Accept dataclasses or plain ``{"role", "content"}`` mappings."""

    coerced: List[TranscriptMessage] = []
    for message in messages:
        if isinstance(message, TranscriptMessage):
            coerced.append(message)
            continue
        role = str(message.get("role", "")).strip().lower()
        content = message.get("content")
        coerced.append(
            TranscriptMessage(
                role=role,
                content="" if content is None else str(content),
            )
        )
    return coerced


def derive_answers_from_history(
    messages: Iterable[TranscriptMessage | Mapping[str, object]],
) -> DerivedContext:
    """Pair assistant questions with user answers and group them by pillar.

    Only adjacent ``(assistant, user)`` pairs are considered. When several
    user messages follow one question, the first is paired and the rest are
    skipped; scanning resumes at the next assistant message.
    """

    transcript = coerce_messages(messages)
    raw_answers: Dict[str, List[str]] = {}
    questions_asked: List[str] = []

    for current, following in zip(transcript, transcript[1:]):
        if current.role != "assistant" or following.role != "user":
            if current.role == following.role == "user":
                logger.debug(
                    "Skipping unpaired user message: %s",
                    following.content[:50],
                )
            continue

        question = current.content.strip()
        answer = following.content.strip()
        if not question or not answer:
            continue

        short_confirmation = is_short_confirmation(answer)
        topic = classify_topic(question)
        if topic is not None:
            pillar = pillar_for(topic)
            # "yes" to "is this correct?" must not replace the description.
            if not (pillar is Pillar.COMPANY_INFO and short_confirmation):
                bucket = raw_answers.setdefault(pillar.value, [])
                if answer not in bucket:
                    bucket.append(answer)

        shortened = shorten_question(question)
        if not _already_asked(questions_asked, shortened):
            questions_asked.append(shortened)

    answers_collected = {
        pillar: ANSWER_SEPARATOR.join(answers)
        for pillar, answers in raw_answers.items()
        if answers
    }
    return DerivedContext(
        answers_collected=answers_collected,
        questions_asked=questions_asked,
    )


def merge_answers(
    derived: Mapping[str, str],
    client_sent: Optional[Mapping[str, object]] = None,
) -> Dict[str, str]:
    """Overlay server-derived answers on top of client-supplied ones."""

    merged: Dict[str, str] = {}
    if client_sent:
        for key, value in client_sent.items():
            if value is None:
                continue
            merged[str(key)] = str(value)
    for key, value in derived.items():
        if value and value.strip():
            merged[key] = value
    return merged
