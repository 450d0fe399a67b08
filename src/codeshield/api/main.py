import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..analyze.ai.ollama_client import OllamaClient
from ..analyze.ai.verifier import AIVerifier
from ..config import CodeShieldSettings, get_settings
from ..errors import CodeShieldError
from ..scan.service import ScanService
from ..scan.store import ScanStore
from .middleware.error_handler import codeshield_error_handler, http_exception_handler
from .middleware.request_id import RequestIDMiddleware
from .routes import health, projects, scans

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Scans still running at shutdown are cancelled rather than abandoned.
    store: ScanStore = app.state.store
    pending = [
        task
        for task in (store.get_task(scan.id) for scan in store.list_scans())
        if task is not None and not task.done()
    ]
    for task in pending:
        task.cancel()
    if pending:
        logger.info("Cancelling %d running scan(s) on shutdown", len(pending))
        await asyncio.gather(*pending, return_exceptions=True)


def create_app(
    settings: Optional[CodeShieldSettings] = None,
    ai_client: Optional[OllamaClient] = None,
    store: Optional[ScanStore] = None,
) -> FastAPI:
    settings = settings or get_settings()
    store = store or ScanStore()
    ai_client = ai_client or OllamaClient(
        base_url=settings.ollama_url,
        timeout_seconds=settings.ai_request_timeout_seconds,
        health_timeout_seconds=settings.ai_health_timeout_seconds,
    )

    app = FastAPI(
        title="CodeShield API",
        version=__version__,
        docs_url="/docs",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.ai_client = ai_client
    app.state.scan_service = ScanService(store, AIVerifier(ai_client), settings=settings)

    # Exception handlers
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(CodeShieldError, codeshield_error_handler)

    # Middleware (order matters - first added = outermost)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(health.router, tags=["Health"])
    app.include_router(health.ai_router, prefix="/api/v1", tags=["AI"])
    app.include_router(projects.router, prefix="/api/v1", tags=["Projects"])
    app.include_router(scans.router, prefix="/api/v1", tags=["Scans"])
    return app
