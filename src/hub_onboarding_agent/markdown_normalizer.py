"""Repair malformed Markdown emitted by the LLM before it is displayed.

The chat endpoint and the PDF exporter both run plan text through
:func:`normalize_markdown`, so the two renderings stay identical. The repair
is an ordered list of regex rewrites grouped into passes; later passes assume
the earlier ones already ran.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Pattern, Tuple

BRAND = "HubSpot"


@dataclass(frozen=True, slots=True)
class RewriteRule:
    """A single named regex substitution."""

    name: str
    pattern: Pattern[str]
    replacement: str

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def _rule(name: str, expression: str, replacement: str, flags: int = 0) -> RewriteRule:
    return RewriteRule(name, re.compile(expression, flags), replacement)


_M = re.MULTILINE
_I = re.IGNORECASE

BRAND_REPAIR: Tuple[RewriteRule, ...] = (
    _rule("brand_split_across_lines", r"Hub\s*\n+\s*Spot", BRAND, _I),
    _rule("brand_split_by_spaces", r"Hub\s+Spot", BRAND, _I),
)

EMPTY_ELEMENT_REMOVAL: Tuple[RewriteRule, ...] = (
    _rule("empty_heading", r"^#{1,6}\s*$", "", _M),
    _rule("empty_bullet", r"^[-*]\s*$", "", _M),
    _rule("whitespace_only_bullet", r"^([-*])\s+\n", "\n", _M),
)

CONTINUATION_JOIN: Tuple[RewriteRule, ...] = (
    _rule(
        "bullet_content_on_next_line",
        r"^([-*])\s*\n+\s*([A-Za-z*\[])",
        r"\1 \2",
        _M,
    ),
    _rule(
        "number_content_on_next_line",
        r"^(\d+\.)\s*\n+\s*([A-Za-z*\[])",
        r"\1 \2",
        _M,
    ),
)

GLUED_TEXT_SPLIT: Tuple[RewriteRule, ...] = (
    _rule(
        "heading_glued_to_sentence",
        r"^(#{1,6}\s+.+?)([a-zA-Z])([A-Z][a-z])",
        r"\1\2\n\n\3",
        _M,
    ),
    # "Hub" is matched in any case, the following word must be capitalized.
    _rule(
        "hub_glued_to_word",
        r"((?i:hub))(?!(?i:spot))([A-Z][a-z])",
        r"\1\n\n\2",
    ),
    _rule(
        "section_word_glued",
        r"(Stage|Step|Process|Setup|Automation)([A-Z][a-z])",
        r"\1\n\n\2",
    ),
    _rule(
        "lowercase_glued_to_stage_name",
        r"([a-z])((?:Proposal|Discovery|Follow|Deal|Closed|Marketing|Sales"
        r"|Service|Technical|Buyer|Lead|Account)\s+[A-Z])",
        r"\1\n\n\2",
    ),
    _rule(
        "lowercase_glued_to_bold",
        r"([a-z])\*\*([A-Z][a-z])",
        r"\1\n\n**\2",
    ),
    _rule(
        "lowercase_glued_to_section_keyword",
        r"([a-z])(Deal|Step|Stage|Section|Properties|Automations|Where"
        r"|Helpful|Campaign|Persona|Technical|Tracking|Privacy|Buyer|Lead"
        r"|Forms|Chatbots)(?=[:\s])",
        r"\1\n\n\2",
    ),
    _rule(
        "lowercase_glued_to_section_phrase",
        r"([a-z])((?:Proposal|Where|Helpful|Properties|Automations"
        r"|The trigger|A deal|Here are|Some of|Our initial)[^a-z])",
        r"\1\n\n\2",
    ),
)

BOLD_LABEL_REPAIR: Tuple[RewriteRule, ...] = (
    _rule(
        "bold_label_colon_on_next_line",
        r"(\*\*[^*\n]+\*\*)[ \t]*\n+[ \t]*:",
        r"\1:",
    ),
    _rule(
        "bold_label_value_on_next_line",
        r"(\*\*[^*\n]+:\*\*)[ \t]*\n+[ \t]*([A-Za-z0-9])",
        r"\1 \2",
    ),
    _rule(
        "bold_label_glued_to_value",
        r"(\*\*[^*\n]+:\*\*)([A-Za-z])",
        r"\1 \2",
    ),
    _rule(
        "bold_label_glued_to_bullet",
        r"(\*\*[^*\n]+:\*\*)- ([A-Za-z])",
        r"\1\n\n- \2",
    ),
    _rule(
        "section_title_glued_to_bullet",
        r"((?:Makers|Automation|Sequence|Segmentation)\*{0,2})(-\s+)"
        r"(Qualifier|Triggered|For|Score|Create)",
        r"\1\n\n\2\3",
    ),
    _rule(
        "helpful_articles_inline_bullet",
        r"(Helpful Articles)(:\s*-\s*)([A-Za-z])",
        r"\1:\n\n- \3",
    ),
    _rule(
        "helpful_articles_glued_value",
        r"(Helpful Articles?):([A-Za-z\[\-])",
        r"\1: \2",
    ),
    _rule(
        "helpful_articles_glued_bullet",
        r"(Helpful Articles?):-(?=\S)",
        r"\1:\n\n- ",
    ),
    _rule(
        "helpful_articles_trailing_dash",
        r"(Helpful Articles?):-",
        r"\1:\n\n- ",
    ),
)

NUMERIC_SPACING: Tuple[RewriteRule, ...] = (
    _rule(
        "letter_glued_to_duration",
        r"([a-zA-Z])(\d+\s+(?:days?|weeks?|hours?|minutes?|emails?))",
        r"\1 \2",
        _I,
    ),
    _rule("preposition_glued_to_digit", r"(over|after|in|for)(\d)", r"\1 \2", _I),
    _rule(
        "keyword_glued_to_digit",
        r"(Persona|Campaign|Step|Stage|Process|Pipeline)(\d)",
        r"\1 \2",
        _I,
    ),
    _rule("period_glued_to_numbered_item", r"(\.)(\d+-)", r"\1 \2"),
)

LINE_BREAK_NORMALIZATION: Tuple[RewriteRule, ...] = (
    _rule(
        "heading_glued_to_text",
        r"([a-zA-Z0-9.,!?:;\-)])(#{1,6}\s)",
        r"\1\n\n\2",
    ),
    _rule("heading_after_single_newline", r"([^\n])\n(#{1,6}\s)", r"\1\n\n\2"),
    _rule(
        "bold_label_glued_to_text",
        r"([a-zA-Z0-9])\*\*([A-Z][a-z]+.*?:)\*\*",
        r"\1\n\n**\2**",
    ),
    _rule(
        "bold_section_keyword_glued",
        r"([a-z])\*\*(?=Where|Helpful|Properties|Automations|Campaign|Persona"
        r"|Technical)",
        r"\1\n\n**",
    ),
    _rule("bullet_glued_to_text", r"([a-zA-Z:.])([-*]\s+[A-Z*\[])", r"\1\n\2"),
    _rule("bullet_dash_missing_space", r"^-([A-Za-z*])", r"- \1", _M),
)

COLLAPSE: Tuple[RewriteRule, ...] = (
    _rule("collapse_blank_lines", r"\n{3,}", "\n\n"),
    _rule("strip_whitespace_lines", r"^\s+$", "", _M),
)

FINAL_BRAND_FIXUP: Tuple[RewriteRule, ...] = (
    _rule("brand_final_fixup", r"Hub\s+Spot", BRAND, _I),
)

REWRITE_PASSES: Tuple[Tuple[str, Tuple[RewriteRule, ...]], ...] = (
    ("brand_repair", BRAND_REPAIR),
    ("empty_element_removal", EMPTY_ELEMENT_REMOVAL),
    ("continuation_join", CONTINUATION_JOIN),
    ("glued_text_split", GLUED_TEXT_SPLIT),
    ("bold_label_repair", BOLD_LABEL_REPAIR),
    ("numeric_spacing", NUMERIC_SPACING),
    ("line_break_normalization", LINE_BREAK_NORMALIZATION),
    ("collapse", COLLAPSE),
    # Intermediate passes can split the brand name again.
    ("final_brand_fixup", FINAL_BRAND_FIXUP),
)

REWRITE_RULES: Tuple[RewriteRule, ...] = tuple(
    rule for _, rules in REWRITE_PASSES for rule in rules
)


def rule_named(name: str) -> RewriteRule:
    """Look up a rule by name (used by tests and diagnostics)."""

    for rule in REWRITE_RULES:
        if rule.name == name:
            return rule
    raise KeyError(name)


def normalize_markdown(content: str) -> str:
    """Apply every rewrite rule in order and return the repaired Markdown."""

    normalized = content
    for rule in REWRITE_RULES:
        normalized = rule.apply(normalized)
    return normalized
