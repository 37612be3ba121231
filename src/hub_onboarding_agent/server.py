"""FastAPI service exposing the onboarding chat, PDF export and diagnostics."""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional, Sequence

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response, StreamingResponse

from .config import AppSettings
from .knowledge import KnowledgeStore, open_knowledge_store
from .markdown_normalizer import normalize_markdown
from .models import (
    ChatRequest,
    GeneratePdfRequest,
    NormalizeRequest,
    NormalizeResponse,
    ReadinessRequest,
    ReadinessResponse,
)
from .onboarding_agent import (
    OnboardingAgentService,
    RunnerFactory,
    derive_discovery_state,
)
from .pdf_exporter import ImplementationPlanPDFExporter, PDFExportError, safe_text
from .readiness import detect_plan_ready

logger = logging.getLogger(__name__)


def _default_runner_factory(settings: AppSettings) -> RunnerFactory:
    def factory(instructions, tools):
        # Deferred so the service can be built without the agent framework.
        from .maf_client import create_agent_runner

        return create_agent_runner(settings.model, instructions, tools)

    return factory


def _sse(event: Dict[str, Any]) -> bytes:
    payload = json.dumps(event, ensure_ascii=False)
    return f"data: {payload}\n\n".encode("utf-8")


def pdf_filename(company: str) -> str:
    cleaned = safe_text(company).replace('"', "").strip()
    return f"implementation-plan-{cleaned}.pdf"


def create_app(
    settings: AppSettings,
    *,
    runner_factory: Optional[RunnerFactory] = None,
    knowledge_store: Optional[KnowledgeStore] = None,
) -> FastAPI:
    """Create the onboarding API.

    ``runner_factory`` builds the LLM runner for each chat request and
    defaults to the Microsoft Agent Framework runner.
    """

    app = FastAPI(title="HubSpot Onboarding Agent")

    origins = list(settings.allow_origins) or ["*"]
    allow_credentials = origins != ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    knowledge = (
        knowledge_store
        if knowledge_store is not None
        else open_knowledge_store(settings.knowledge)
    )
    service = OnboardingAgentService(
        runner_factory or _default_runner_factory(settings),
        knowledge=knowledge,
    )
    exporter = ImplementationPlanPDFExporter(settings.pdf)

    @app.post("/chat")
    async def chat(payload: ChatRequest) -> StreamingResponse:
        if payload.user_info is None:
            raise HTTPException(status_code=400, detail="userInfo is required")

        messages = [message.model_dump() for message in payload.messages]
        user_info = payload.user_info.as_mapping()
        client_context = payload.context.as_mapping() if payload.context else None

        async def event_stream() -> AsyncIterator[bytes]:
            try:
                async for event in service.stream_chat(messages, user_info, client_context):
                    if event.type == "plan_generated" and event.plan is not None:
                        yield _sse(
                            {
                                "type": "plan_generated",
                                "plan": event.plan.to_dict(),
                                "planText": event.content,
                            }
                        )
                        continue
                    if event.content.strip():
                        logger.debug("Sending chunk: %r", event.content[:100])
                        yield _sse({"type": "message", "content": event.content})
                yield _sse({"type": "end"})
            except Exception as exc:
                logger.exception("Chat stream failed")
                yield _sse({"type": "error", "error": str(exc) or "Unknown error"})

        headers = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
        return StreamingResponse(
            event_stream(), media_type="text/event-stream", headers=headers
        )

    @app.post("/generate-pdf")
    def generate_pdf(payload: GeneratePdfRequest) -> Response:
        if payload.plan is None or payload.user_info is None:
            raise HTTPException(
                status_code=400, detail="Plan and userInfo are required"
            )
        user_info = payload.user_info.as_mapping()
        try:
            content = exporter.render(
                payload.plan.to_plan(),
                user_info,
                full_plan_text=payload.full_plan_text,
            )
        except PDFExportError as exc:
            logger.exception("PDF generation failed")
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        filename = pdf_filename(payload.user_info.company)
        return Response(
            content=content,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/readiness")
    async def readiness(payload: ReadinessRequest) -> Dict[str, Any]:
        derived = derive_discovery_state(
            [message.model_dump() for message in payload.messages]
        )
        result = detect_plan_ready(derived.answers_collected, derived.questions_asked)
        response = ReadinessResponse(
            answersCollected=derived.answers_collected,
            questionsAsked=derived.questions_asked,
            readiness=result.to_dict(),
        )
        return response.model_dump(by_alias=True)

    @app.post("/normalize")
    async def normalize(payload: NormalizeRequest) -> Dict[str, str]:
        return NormalizeResponse(text=normalize_markdown(payload.text)).model_dump()

    @app.get("/health")
    async def health() -> dict[str, str]:  # pragma: no cover - simple health probe
        return {"status": "ok"}

    return app


def run_server(
    settings: AppSettings,
    *,
    host: str = "127.0.0.1",
    port: int = 3001,
    reload: bool = False,
    log_level: str = "info",
) -> None:
    """Start the onboarding API with uvicorn."""

    app = create_app(settings)
    uvicorn.run(
        app,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m hub_onboarding_agent.server",
        description="Launch the HubSpot onboarding agent API.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the API server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3001,
        help="Port for the API server (default: 3001).",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Run the server in auto-reload development mode.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level for uvicorn (default: info).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO)
    args = _parse_args(argv)
    try:
        settings = AppSettings.load()
    except RuntimeError as exc:
        logger.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc

    run_server(
        settings,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
