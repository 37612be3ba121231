"""Lay out a Markdown implementation plan as a paginated document model.

The model is independent of any PDF library. Each line of the plan becomes a
:class:`LayoutElement` carrying its styled runs, its approximate wrapped
lines, and the page and vertical position assigned by a simple cursor.
Markdown links are pulled out into :attr:`PlanDocument.links` and replaced in
the element text by ``{{LINK:n}}`` placeholders, so a renderer can draw them
as clickable regions.
"""

from __future__ import annotations

import re
import textwrap
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional

from .markdown_normalizer import normalize_markdown


class ElementKind(str, Enum):
    HEADING = "heading"
    SUBHEADING = "subheading"
    LIST_ITEM = "list_item"
    LABEL = "label"
    PARAGRAPH = "paragraph"
    BLANK = "blank"


LINK_PLACEHOLDER = "{{{{LINK:{index}}}}}"
LABEL_MAX_CHARS = 80

_HEADING_RE = re.compile(r"^##\s+(.+)$")
_SUBHEADING_RE = re.compile(r"^###\s+(.+)$")
_LIST_ITEM_RE = re.compile(r"^([•\-*]|\d+\.)\s+(.+)$")
_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(slots=True)
class PageLayout:
    """Page geometry in millimetres plus per-kind line heights."""

    page_height: float = 297.0
    top_margin: float = 20.0
    bottom_margin: float = 30.0
    max_chars_per_line: int = 95
    line_heights: Dict[ElementKind, float] = field(
        default_factory=lambda: {
            ElementKind.HEADING: 8.0,
            ElementKind.SUBHEADING: 6.5,
            ElementKind.LIST_ITEM: 5.5,
            ElementKind.LABEL: 5.5,
            ElementKind.PARAGRAPH: 5.5,
            ElementKind.BLANK: 2.5,
        }
    )
    spacing: Dict[ElementKind, float] = field(
        default_factory=lambda: {
            ElementKind.HEADING: 6.0,
            ElementKind.SUBHEADING: 4.0,
            ElementKind.LIST_ITEM: 1.0,
            ElementKind.LABEL: 3.0,
            ElementKind.PARAGRAPH: 1.5,
            ElementKind.BLANK: 0.0,
        }
    )

    @property
    def content_bottom(self) -> float:
        return self.page_height - self.bottom_margin


@dataclass(slots=True)
class PlanLink:
    index: int
    text: str
    url: str


@dataclass(slots=True)
class TextRun:
    """A styled fragment of an element's text."""

    text: str
    bold: bool = False
    link_index: Optional[int] = None


@dataclass(slots=True)
class LayoutElement:
    kind: ElementKind
    text: str
    runs: List[TextRun]
    lines: List[str]
    page: int = 1
    y: float = 0.0
    height: float = 0.0

    @property
    def link_indexes(self) -> List[int]:
        return [run.link_index for run in self.runs if run.link_index is not None]


@dataclass(slots=True)
class PlanDocument:
    elements: List[LayoutElement] = field(default_factory=list)
    links: List[PlanLink] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        if not self.elements:
            return 0
        return max(element.page for element in self.elements)

    def pages(self) -> Iterator[List[LayoutElement]]:
        """Yield the elements of each page in reading order."""

        current: List[LayoutElement] = []
        page = 1
        for element in self.elements:
            if element.page != page and current:
                yield current
                current = []
            page = element.page
            current.append(element)
        if current:
            yield current

    def link(self, index: int) -> PlanLink:
        return self.links[index]


def _with_scheme(url: str) -> str:
    url = url.strip()
    if url and not _SCHEME_RE.match(url):
        return f"https://{url}"
    return url


def parse_inline(text: str, links: List[PlanLink]) -> List[TextRun]:
    """Split ``text`` into plain, bold and link runs, registering links."""

    # An opening ** without a closing one bolds the rest of the line.
    if text.startswith("**") and "**" not in text[2:]:
        return [TextRun(text=text[2:], bold=True)]

    runs: List[TextRun] = []
    remaining = text
    while remaining:
        bold = _BOLD_RE.search(remaining)
        link = _LINK_RE.search(remaining)
        bold_at = bold.start() if bold else None
        link_at = link.start() if link else None

        if bold is not None and (link_at is None or bold_at < link_at):
            if bold.start() > 0:
                runs.append(TextRun(text=remaining[: bold.start()]))
            runs.append(TextRun(text=bold.group(1), bold=True))
            remaining = remaining[bold.end():]
        elif link is not None:
            if link.start() > 0:
                runs.append(TextRun(text=remaining[: link.start()]))
            index = len(links)
            links.append(
                PlanLink(index=index, text=link.group(1), url=_with_scheme(link.group(2)))
            )
            runs.append(TextRun(text=link.group(1), link_index=index))
            remaining = remaining[link.end():]
        else:
            runs.append(TextRun(text=remaining))
            break
    return runs


def _placeholder_text(runs: List[TextRun]) -> str:
    parts: List[str] = []
    for run in runs:
        if run.link_index is not None:
            parts.append(LINK_PLACEHOLDER.format(index=run.link_index))
        else:
            parts.append(run.text)
    return "".join(parts)


def _classify(line: str) -> tuple[ElementKind, str]:
    if not line:
        return ElementKind.BLANK, ""
    heading = _HEADING_RE.match(line)
    if heading:
        return ElementKind.HEADING, heading.group(1).replace("**", "")
    subheading = _SUBHEADING_RE.match(line)
    if subheading:
        return ElementKind.SUBHEADING, subheading.group(1).replace("**", "")
    item = _LIST_ITEM_RE.match(line)
    if item:
        return ElementKind.LIST_ITEM, item.group(2)
    if line.endswith(":") and len(line) < LABEL_MAX_CHARS:
        return ElementKind.LABEL, line
    return ElementKind.PARAGRAPH, line


def _wrap(runs: List[TextRun], width: int) -> List[str]:
    display = "".join(run.text for run in runs)
    return textwrap.wrap(display, width=width) or [""]


def render_plan_document(
    markdown: str,
    layout: Optional[PageLayout] = None,
    *,
    start_y: Optional[float] = None,
) -> PlanDocument:
    """Classify, wrap and paginate normalized plan Markdown.

    ``start_y`` places the first element below content already drawn on the
    first page.
    """

    layout = layout or PageLayout()
    document = PlanDocument()
    page = 1
    cursor = layout.top_margin if start_y is None else start_y

    for raw_line in markdown.strip().split("\n"):
        kind, body = _classify(raw_line.strip())
        if kind in {ElementKind.HEADING, ElementKind.SUBHEADING}:
            runs = [TextRun(text=body, bold=True)]
        elif kind is ElementKind.BLANK:
            runs = []
        else:
            runs = parse_inline(body, document.links)
        if kind is ElementKind.LABEL:
            runs = [
                TextRun(text=run.text, bold=True, link_index=run.link_index)
                for run in runs
            ]

        lines = [] if kind is ElementKind.BLANK else _wrap(runs, layout.max_chars_per_line)
        height = (
            max(len(lines), 1) * layout.line_heights[kind] + layout.spacing[kind]
        )
        if cursor + height > layout.content_bottom and cursor > layout.top_margin:
            page += 1
            cursor = layout.top_margin

        document.elements.append(
            LayoutElement(
                kind=kind,
                text=_placeholder_text(runs),
                runs=runs,
                lines=lines,
                page=page,
                y=cursor,
                height=height,
            )
        )
        cursor += height

    return document


_TITLE_LINE_RE = re.compile(
    r"(?:^|\n)#{0,6}[ \t]*[A-Za-z0-9][A-Za-z0-9 \t\-]*[ \t]+Implementation[ \t]+Plan[ \t]*\n",
    re.IGNORECASE,
)
_CLOSING_RE = re.compile(r"Let me know if this plan works for you[^.!]*[.!]\s*", re.IGNORECASE)
_HUB_NAME_RE = re.compile(r"\b(SALES|MARKETING|SERVICE)\s+Hub\b", re.IGNORECASE)
_BOLD_OBJECTIVES_RE = re.compile(
    r"\n\*\*Objectives:\*\*\s*\n(?:Need/Objective\s*#?\d+[^\n]*\n?)+",
    re.IGNORECASE,
)
_PLAIN_OBJECTIVES_RE = re.compile(
    r"\nObjectives:\s*\n(?:Need/Objective\s*#?\d+[^\n]*\n?)+",
    re.IGNORECASE,
)
_PLAN_HUB_RE = re.compile(r"##\s+(SALES\s+HUB|MARKETING\s+HUB|SERVICE\s+HUB)", re.IGNORECASE)
_NEED_OBJECTIVE_RE = re.compile(
    r"(?:\*\*)?Need/Objective\s*#?\d+\s*:?\s*(?:\*\*)?:?\s*([^\n*]+)",
    re.IGNORECASE,
)
_INCLUDE_OBJECTIVES_RE = re.compile(
    r"objectives?\s+(?:you are looking to achieve[^.]*\.?\s*)?include\s*\[([^\]]+)\]",
    re.IGNORECASE,
)


def preprocess_plan_for_pdf(markdown: str) -> str:
    """Drop content the PDF already shows elsewhere (title, objectives, sign-off)."""

    text = _TITLE_LINE_RE.sub("\n", markdown)
    text = _CLOSING_RE.sub("", text)
    text = _HUB_NAME_RE.sub(r"\1 HUB", text)
    text = _BOLD_OBJECTIVES_RE.sub("\n", text)
    text = _PLAIN_OBJECTIVES_RE.sub("\n", text)
    return text


def prepare_plan_markdown(full_plan_text: str) -> str:
    return preprocess_plan_for_pdf(normalize_markdown(full_plan_text))


def parse_hubs_from_plan(full_plan_text: Optional[str]) -> List[str]:
    """Hub section names in order of appearance, deduplicated."""

    if not full_plan_text:
        return []
    hubs: List[str] = []
    seen: set[str] = set()
    for match in _PLAN_HUB_RE.finditer(full_plan_text):
        hub = match.group(1).strip()
        if hub.upper() in seen:
            continue
        seen.add(hub.upper())
        hubs.append(hub)
    return hubs


def parse_objectives_from_plan(full_plan_text: Optional[str]) -> List[str]:
    """Objectives from "Need/Objective #n" lines, else an "include [...]" list."""

    if not full_plan_text:
        return []
    objectives = []
    for match in _NEED_OBJECTIVE_RE.finditer(full_plan_text):
        text = match.group(1).strip().replace("**", "")
        if 2 < len(text) < 200:
            objectives.append(text)
    if objectives:
        return objectives
    include = _INCLUDE_OBJECTIVES_RE.search(full_plan_text)
    if include:
        return [
            part.strip() for part in include.group(1).split(",") if len(part.strip()) > 2
        ]
    return []
