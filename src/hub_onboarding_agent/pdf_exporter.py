"""Utilities for exporting implementation plans to PDF."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from .config import PDFSettings
from .plan_document import (
    ElementKind,
    LayoutElement,
    PageLayout,
    PlanDocument,
    TextRun,
    parse_hubs_from_plan,
    parse_objectives_from_plan,
    prepare_plan_markdown,
    render_plan_document,
)
from .tools import ImplementationPlan

logger = logging.getLogger(__name__)

COVER_TITLE = "HubSpot Implementation Plan"
COVER_SUBTITLE = "AI-Assisted HubSpot Implementation for"
DEFAULT_COMPANY = "Your Company"
HELP_EMAIL = "help@digifianz.com"
LOGO_FILENAME = "digi-logo.png"

DISCLAIMER_TEXT = (
    "This Implementation Plan has been generated with the assistance of "
    "artificial intelligence and is provided as a draft. Due to the nature of "
    "AI, it may contain errors, omissions, or inconsistencies. As outlined in "
    "the Terms and Conditions agreed to at the start of this service, "
    "Digifianz makes no guarantees regarding the accuracy or completeness of "
    "AI-generated outputs and shall not be liable for damages or issues "
    "resulting from reliance on them. The Client is solely responsible for "
    "reviewing and confirming the plan's suitability before implementation. "
    "Please note that you have already agreed to these Terms and Conditions "
    "prior to the creation of this plan."
)
NOTE_TEXT = (
    "This plan was AI-assisted and may contain errors. As per the Terms and "
    "Conditions already agreed, the Client is responsible for reviewing and "
    "confirming its suitability."
)
RESOURCES_TEXT = (
    "Relevant HubSpot Knowledge Base articles and navigation paths are "
    "included in the plan above."
)
NEXT_STEPS_TEXT = (
    "Our team will reach out shortly to request access to your account. Once "
    "access is confirmed, we'll complete the implementation steps outlined "
    "above within the included three (3) hours and then send you a summary "
    "of what's been set up."
)
CLOSING_PARAGRAPHS = (
    "Depending on the complexity of your plan, some items may remain after "
    "those three hours. If that happens, we'll equip you with clear resources "
    "and a step-by-step plan so your team can move forward confidently.",
    "And if you'd like to accelerate results or go deeper with expert "
    "guidance, you're welcome to add more hands-on hours with our team. Many "
    "clients choose this option to get even more value from their "
    "investment.",
    "Either way, you'll leave this process with the foundations in place and "
    "a clear path forward, ready to grow today and well into the future.",
)

LINK_COLOR = (37, 99, 235)
MUTED_COLOR = (107, 114, 128)
SUBTITLE_COLOR = (75, 85, 99)
TEXT_COLOR = (17, 24, 39)

PAGE_MARGIN = 18.0
FOOTER_HEIGHT = 42.0
LIST_INDENT = 5.0

_FONT_SIZES = {
    ElementKind.HEADING: 14,
    ElementKind.SUBHEADING: 11,
    ElementKind.LIST_ITEM: 10,
    ElementKind.LABEL: 10,
    ElementKind.PARAGRAPH: 10,
}


class PDFExportError(RuntimeError):
    """Raised when an implementation plan PDF cannot be generated."""


_UNICODE_TRANSLATION = str.maketrans(
    {
        "\u00a0": " ",  # non-breaking space
        "\u00ad": "-",  # soft hyphen
        "\u2010": "-",  # hyphen
        "\u2011": "-",  # non-breaking hyphen
        "\u2012": "-",  # figure dash
        "\u2013": "-",  # en dash
        "\u2014": "-",  # em dash
        "\u2015": "-",  # horizontal bar
        "\u2018": "'",  # left single quote
        "\u2019": "'",  # right single quote
        "\u201c": '"',  # left double quote
        "\u201d": '"',  # right double quote
        "\u2022": "-",  # bullet
        "\u2026": "...",  # ellipsis
        "\u2192": "->",  # right arrow
        "\u202f": " ",  # narrow non-breaking space
        "\u2212": "-",  # minus sign
    }
)


def safe_text(text: str) -> str:
    """Map text onto latin-1 so the core PDF fonts can render it."""

    text = text.translate(_UNICODE_TRANSLATION)
    try:
        text.encode("latin-1")
    except UnicodeEncodeError:
        return text.encode("latin-1", "replace").decode("latin-1")
    return text


def _company_url(website: str) -> Optional[str]:
    website = website.strip()
    if not website:
        return None
    return website if website.startswith("http") else f"https://{website}"


def _pdf_class() -> Any:
    try:
        from fpdf import FPDF  # type: ignore[import]
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise PDFExportError(
            "fpdf2 is required to export implementation plans as PDF."
        ) from exc

    class _PlanPDF(FPDF):
        """FPDF with the disclaimer footer and page numbering."""

        def footer(self) -> None:
            self.set_y(-FOOTER_HEIGHT + 4)
            self.set_text_color(*MUTED_COLOR)
            if self.page_no() == 1:
                label, body = "Disclaimer", DISCLAIMER_TEXT
            else:
                label, body = "Note", NOTE_TEXT
            self.set_font("Helvetica", "BI", size=7)
            self.write(3.2, f"{label}: ")
            self.set_font("Helvetica", "I", size=7)
            self.write(3.2, safe_text(body))
            self.ln(6)
            self.set_font("Helvetica", size=8)
            self.cell(
                0,
                4,
                f"-- {self.page_no()} of {{nb}} --",
                align="C",
            )
            self.set_text_color(*TEXT_COLOR)

    return _PlanPDF


class ImplementationPlanPDFExporter:
    """Render an implementation plan to a branded PDF."""

    def __init__(self, settings: Optional[PDFSettings] = None) -> None:
        self._settings = settings or PDFSettings()

    def export(
        self,
        plan: ImplementationPlan,
        user_info: Mapping[str, Any],
        destination: Path,
        *,
        full_plan_text: Optional[str] = None,
    ) -> Path:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - filesystem guard
            raise PDFExportError(
                f"Unable to create directory for PDF export: {destination}"
            ) from exc

        payload = self.render(plan, user_info, full_plan_text=full_plan_text)
        try:
            destination.write_bytes(payload)
        except OSError as exc:
            raise PDFExportError(
                f"Unable to write implementation plan PDF: {destination}"
            ) from exc
        return destination

    def render(
        self,
        plan: ImplementationPlan,
        user_info: Mapping[str, Any],
        *,
        full_plan_text: Optional[str] = None,
    ) -> bytes:
        pdf_cls = _pdf_class()
        pdf: Any = pdf_cls(unit="mm", format="A4")
        pdf.alias_nb_pages()
        pdf.set_margins(PAGE_MARGIN, PAGE_MARGIN, PAGE_MARGIN)
        pdf.set_auto_page_break(auto=True, margin=FOOTER_HEIGHT)
        pdf.set_title(COVER_TITLE)
        pdf.set_text_color(*TEXT_COLOR)

        company = (
            plan.company
            or str(user_info.get("company") or "").strip()
            or DEFAULT_COMPANY
        )
        website = str(user_info.get("website") or "")

        self._render_cover(pdf, company, _company_url(website))
        pdf.add_page()
        self._render_summary(pdf, plan, full_plan_text)
        self._section_title(pdf, "The Implementation Plan:")
        if full_plan_text:
            self._render_plan_text(pdf, full_plan_text)
        else:
            self._render_fallback(pdf, plan)
        self._render_closing(pdf)

        try:
            return bytes(pdf.output())
        except (OSError, RuntimeError, ValueError) as exc:
            raise PDFExportError("Unable to render implementation plan PDF") from exc

    def _render_cover(self, pdf: Any, company: str, company_url: Optional[str]) -> None:
        pdf.add_page()
        logo = self._logo_path()
        if logo is not None:
            try:
                pdf.ln(20)
                pdf.image(str(logo), w=75, x=(pdf.w - 75) / 2)
                pdf.ln(14)
            except (OSError, RuntimeError, ValueError) as exc:
                logger.warning("Failed to embed logo '%s': %s", logo, exc)
                logo = None
        if logo is None:
            pdf.ln(60)

        pdf.set_font("Helvetica", "B", size=30)
        pdf.multi_cell(0, 13, safe_text(COVER_TITLE), align="C")
        pdf.ln(10)
        pdf.set_font("Helvetica", size=16)
        pdf.set_text_color(*SUBTITLE_COLOR)
        pdf.multi_cell(0, 8, safe_text(COVER_SUBTITLE), align="C")
        pdf.ln(4)
        pdf.set_text_color(*TEXT_COLOR)
        pdf.set_font("Helvetica", "B", size=24)
        if company_url:
            pdf.cell(0, 12, safe_text(company), align="C", link=company_url)
        else:
            pdf.cell(0, 12, safe_text(company), align="C")
        pdf.ln(12)

    def _render_summary(
        self,
        pdf: Any,
        plan: ImplementationPlan,
        full_plan_text: Optional[str],
    ) -> None:
        self._section_title(pdf, "Summary:")
        hubs = parse_hubs_from_plan(full_plan_text)
        if hubs:
            self._subheader(pdf, "Hubs to be Implemented:")
            self._paragraph(pdf, ", ".join(hubs))
            pdf.ln(3)

        self._subheader(pdf, "Main Implementation Goals:")
        objectives = plan.objectives or parse_objectives_from_plan(full_plan_text)
        self._bullets(pdf, objectives)
        pdf.ln(4)
        self._rule(pdf)

    def _render_plan_text(self, pdf: Any, full_plan_text: str) -> None:
        markdown = prepare_plan_markdown(full_plan_text)
        layout = PageLayout(
            page_height=pdf.h,
            top_margin=pdf.t_margin,
            bottom_margin=FOOTER_HEIGHT + 4,
            max_chars_per_line=self._settings.max_chars_per_line,
        )
        document = render_plan_document(markdown, layout, start_y=pdf.get_y())
        first_page = pdf.page_no()
        for element in document.elements:
            target_page = first_page + element.page - 1
            if pdf.page_no() < target_page:
                pdf.add_page()
            self._render_element(pdf, element, document)

    def _render_element(
        self,
        pdf: Any,
        element: LayoutElement,
        document: PlanDocument,
    ) -> None:
        if element.kind is ElementKind.BLANK:
            pdf.ln(2.5)
            return

        size = _FONT_SIZES[element.kind]
        if element.kind is ElementKind.HEADING:
            pdf.ln(4)
        elif element.kind in {ElementKind.SUBHEADING, ElementKind.LABEL}:
            pdf.ln(2)

        pdf.set_x(pdf.l_margin)
        if element.kind is ElementKind.LIST_ITEM:
            original_margin = pdf.l_margin
            pdf.set_font("Helvetica", size=size)
            pdf.write(5.5, "- ")
            pdf.set_left_margin(original_margin + LIST_INDENT)
            try:
                self._write_runs(pdf, element.runs, document, size=size, height=5.5)
            finally:
                pdf.set_left_margin(original_margin)
            pdf.ln(6)
            return

        height = 7.0 if element.kind is ElementKind.HEADING else 5.5
        self._write_runs(pdf, element.runs, document, size=size, height=height)
        pdf.ln(height + (2 if element.kind is ElementKind.HEADING else 0.5))

    def _write_runs(
        self,
        pdf: Any,
        runs: Sequence[TextRun],
        document: PlanDocument,
        *,
        size: int,
        height: float,
    ) -> None:
        for run in runs:
            if not run.text:
                continue
            if run.link_index is not None:
                link = document.link(run.link_index)
                pdf.set_font("Helvetica", "U", size=size)
                pdf.set_text_color(*LINK_COLOR)
                pdf.write(height, safe_text(run.text), link=link.url)
                pdf.set_text_color(*TEXT_COLOR)
                continue
            pdf.set_font("Helvetica", "B" if run.bold else "", size=size)
            pdf.write(height, safe_text(run.text))

    def _render_fallback(self, pdf: Any, plan: ImplementationPlan) -> None:
        self._subheader(pdf, "Objectives")
        self._bullets(pdf, plan.objectives)
        if plan.recommendations:
            pdf.ln(3)
            self._subheader(pdf, "Recommendations")
            self._bullets(pdf, plan.recommendations)

    def _render_closing(self, pdf: Any) -> None:
        pdf.ln(4)
        self._rule(pdf)
        self._section_title(pdf, "Resources:")
        self._paragraph(pdf, RESOURCES_TEXT)
        pdf.ln(4)
        self._subheader(pdf, "Next Steps:")
        self._paragraph(pdf, NEXT_STEPS_TEXT)
        for paragraph in CLOSING_PARAGRAPHS:
            pdf.ln(3)
            self._paragraph(pdf, paragraph)
        pdf.ln(6)
        pdf.set_font("Helvetica", "B", size=14)
        pdf.cell(0, 8, "Need Help?")
        pdf.ln(10)
        pdf.set_font("Helvetica", size=10)
        pdf.write(5.5, "Feel free to send an email to ")
        pdf.set_text_color(*LINK_COLOR)
        pdf.write(5.5, HELP_EMAIL, link=f"mailto:{HELP_EMAIL}")
        pdf.set_text_color(*TEXT_COLOR)
        pdf.write(
            5.5,
            " at any time, and we would be happy to assist you with any "
            "questions you may have.",
        )
        pdf.ln(8)

    def _logo_path(self) -> Optional[Path]:
        asset_dir = self._settings.asset_dir
        if asset_dir is None:
            return None
        candidate = Path(asset_dir) / LOGO_FILENAME
        if not candidate.exists():
            logger.debug("No logo found at %s", candidate)
            return None
        return candidate

    @staticmethod
    def _section_title(pdf: Any, text: str) -> None:
        pdf.set_x(pdf.l_margin)
        pdf.set_font("Helvetica", "B", size=18)
        pdf.multi_cell(0, 9, safe_text(text))
        pdf.ln(2)

    @staticmethod
    def _subheader(pdf: Any, text: str) -> None:
        pdf.set_x(pdf.l_margin)
        pdf.set_font("Helvetica", "B", size=11)
        pdf.multi_cell(0, 6, safe_text(text))
        pdf.ln(1)

    @staticmethod
    def _paragraph(pdf: Any, text: str) -> None:
        pdf.set_x(pdf.l_margin)
        pdf.set_font("Helvetica", size=10)
        pdf.multi_cell(0, 5.5, safe_text(text))

    @staticmethod
    def _bullets(pdf: Any, items: List[str]) -> None:
        pdf.set_font("Helvetica", size=10)
        for item in items:
            pdf.set_x(pdf.l_margin + LIST_INDENT)
            pdf.multi_cell(0, 5.5, safe_text(f"- {item}"))
            pdf.ln(0.8)

    @staticmethod
    def _rule(pdf: Any) -> None:
        y = pdf.get_y() + 2
        pdf.set_draw_color(*MUTED_COLOR)
        pdf.line(pdf.l_margin, y, pdf.w - pdf.r_margin, y)
        pdf.ln(8)
