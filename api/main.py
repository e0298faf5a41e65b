from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agents.orchestrator import TurnOrchestrator
from api.middleware.body_limit import BodySizeLimitMiddleware, BodyTooLargeError, body_too_large_handler
from api.middleware.logging import RequestLoggingMiddleware
from api.routers import admin, chat, ingest
from compliance.filter import ComplianceFilter
from memory.session_memory import InMemorySessionStore, SessionStore
from settings import SETTINGS
from tools.assistant_service import AssistantService, OpenAIAssistantService
from tools.ingest_tools import KnowledgeIngestor


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, SETTINGS.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def create_app(
    assistant_service: AssistantService | None = None,
    session_store: SessionStore | None = None,
    orchestrator: TurnOrchestrator | None = None,
    ingestor: KnowledgeIngestor | None = None,
) -> FastAPI:
    configure_logging()
    app = FastAPI(title="Cliniverse Coach", version="0.1.0")
    origins = [o.strip() for o in SETTINGS.cors_origins.split(",") if o.strip()] or ["*"]
    app.add_middleware(CORSMiddleware, allow_origins=origins, allow_methods=["*"], allow_headers=["*"])
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(BodySizeLimitMiddleware)
    app.add_exception_handler(BodyTooLargeError, body_too_large_handler)

    service = assistant_service or OpenAIAssistantService()
    app.state.assistant_service = service
    app.state.session_store = session_store if session_store is not None else InMemorySessionStore()
    app.state.orchestrator = orchestrator or TurnOrchestrator(
        service=service,
        session_store=app.state.session_store,
        compliance_filter=ComplianceFilter(rewriter=service),
    )
    app.state.ingestor = ingestor or KnowledgeIngestor(service)

    app.include_router(chat.router)
    app.include_router(ingest.router)
    app.include_router(admin.router)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    @app.get("/")
    async def root():
        return {"ok": True, "service": "cliniverse-coach", "port": SETTINGS.port}

    return app


def main() -> None:
    import uvicorn

    uvicorn.run("api.main:create_app", factory=True, host="0.0.0.0", port=SETTINGS.port)


if __name__ == "__main__":
    main()
