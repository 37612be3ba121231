"""Command line entry-point for the HubSpot onboarding agent."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional

from .config import AppSettings
from .knowledge import ChromaKnowledgeStore, KnowledgeStoreError, ingest_file
from .markdown_normalizer import normalize_markdown
from .onboarding_agent import derive_discovery_state
from .plan_document import parse_objectives_from_plan
from .pdf_exporter import ImplementationPlanPDFExporter, PDFExportError
from .readiness import detect_plan_ready
from .tools import ImplementationPlan

logger = logging.getLogger(__name__)

CommandHandler = Callable[[argparse.Namespace], None]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hub-onboarding-agent",
        description="HubSpot onboarding discovery agent and plan tooling",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = True

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the API server (default: 127.0.0.1)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=3001,
        help="TCP port for the API server (default: 3001)",
    )
    serve_parser.add_argument(
        "--reload",
        action="store_true",
        help="Run the server in auto-reload development mode.",
    )
    serve_parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level for uvicorn (default: info).",
    )
    serve_parser.add_argument(
        "--tracing",
        action="store_true",
        help="Enable OpenTelemetry tracing for the agent runtime.",
    )
    serve_parser.set_defaults(func=_handle_serve)

    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Add a Markdown or HTML guide to the knowledge store",
    )
    ingest_parser.add_argument("path", type=Path, help="Guide file to ingest")
    ingest_parser.set_defaults(func=_handle_ingest)

    readiness_parser = subparsers.add_parser(
        "readiness",
        help="Derive answers from a transcript JSON file and check readiness",
    )
    readiness_parser.add_argument(
        "transcript",
        type=Path,
        help="JSON list of {role, content} messages, or {\"messages\": [...]}",
    )
    readiness_parser.set_defaults(func=_handle_readiness)

    pdf_parser = subparsers.add_parser(
        "render-pdf",
        help="Render a Markdown implementation plan to PDF",
    )
    pdf_parser.add_argument("plan", type=Path, help="Markdown plan file")
    pdf_parser.add_argument("--company", required=True, help="Company name")
    pdf_parser.add_argument("--website", default="", help="Company website")
    pdf_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Destination file (default: <output dir>/implementation-plan-<company>.pdf)",
    )
    pdf_parser.set_defaults(func=_handle_render_pdf)

    normalize_parser = subparsers.add_parser(
        "normalize",
        help="Print the normalized form of a Markdown file",
    )
    normalize_parser.add_argument("path", type=Path, help="Markdown file")
    normalize_parser.set_defaults(func=_handle_normalize)

    return parser


def _handle_serve(args: argparse.Namespace) -> None:
    settings = AppSettings.load()
    if args.tracing:
        from .observability import initialize_tracing

        initialize_tracing()
    from .server import run_server

    run_server(
        settings,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


def _handle_ingest(args: argparse.Namespace) -> None:
    settings = AppSettings.load()
    directory = settings.knowledge.directory
    if directory is None:
        raise SystemExit("ONBOARDING_KNOWLEDGE_DIR must be set to ingest guides.")
    try:
        store = ChromaKnowledgeStore.open(directory, settings.knowledge.collection)
        count = ingest_file(store, args.path)
    except KnowledgeStoreError as exc:
        raise SystemExit(str(exc)) from exc
    print(f"Ingested {count} chunk(s) from {args.path}")


def _load_transcript(path: Path) -> List[Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SystemExit(f"Unable to read transcript {path}: {exc}") from exc
    if isinstance(payload, dict):
        payload = payload.get("messages") or []
    if not isinstance(payload, list):
        raise SystemExit("Transcript must be a list of messages.")
    return [message for message in payload if isinstance(message, dict)]


def _handle_readiness(args: argparse.Namespace) -> None:
    derived = derive_discovery_state(_load_transcript(args.transcript))
    result = detect_plan_ready(derived.answers_collected, derived.questions_asked)
    print(
        json.dumps(
            {
                "answersCollected": derived.answers_collected,
                "questionsAsked": derived.questions_asked,
                "readiness": result.to_dict(),
            },
            indent=2,
            ensure_ascii=False,
        )
    )


def _handle_render_pdf(args: argparse.Namespace) -> None:
    settings = AppSettings.load()
    try:
        plan_text = args.plan.read_text(encoding="utf-8")
    except OSError as exc:
        raise SystemExit(f"Unable to read plan {args.plan}: {exc}") from exc

    from .server import pdf_filename

    plan = ImplementationPlan(
        company=args.company,
        objectives=parse_objectives_from_plan(plan_text),
    )
    destination = args.output or settings.output_dir / pdf_filename(args.company)
    exporter = ImplementationPlanPDFExporter(settings.pdf)
    try:
        exporter.export(
            plan,
            {"company": args.company, "website": args.website},
            destination,
            full_plan_text=plan_text,
        )
    except PDFExportError as exc:
        raise SystemExit(str(exc)) from exc
    print(f"Implementation plan saved to {destination}")


def _handle_normalize(args: argparse.Namespace) -> None:
    try:
        text = args.path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SystemExit(f"Unable to read {args.path}: {exc}") from exc
    print(normalize_markdown(text))


def run_cli(argv: Optional[list[str]] = None) -> None:
    """Entry-point invoked from ``python -m hub_onboarding_agent``."""

    arg_list = list(argv) if argv is not None else sys.argv[1:]
    args = _build_parser().parse_args(arg_list)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    handler: CommandHandler = args.func
    handler(args)


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    run_cli()
