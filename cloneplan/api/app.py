"""FastAPI application factory for cloneplan.

Creates and configures the FastAPI app with CORS, typed error handlers
and all route modules registered.
"""

import logging
import os
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.errors import AppError, InternalError

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]


def create_app(orchestrator, store, settings) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        orchestrator: AnalysisOrchestrator instance
        store: InMemoryAnalysisStore instance
        settings: PlanSettings instance

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        orchestrator.start()
        try:
            yield
        finally:
            await orchestrator.stop()

    app = FastAPI(
        title="cloneplan API",
        description="Business cloning analysis and staged launch planning",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS for the web client dev servers
    origins = os.getenv("CLONEPLAN_CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store shared dependencies on app state
    app.state.orchestrator = orchestrator
    app.state.store = store
    app.state.settings = settings

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        request_id = _request_id(request)
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(f"[{request_id}] {request.method} {request.url.path} -> {exc.code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(request_id, include_internal=settings.debug),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        request_id = _request_id(request)
        logger.exception(f"[{request_id}] Unhandled error on {request.url.path}: {exc}")
        error = InternalError(f"{type(exc).__name__}: {exc}")
        return JSONResponse(
            status_code=error.status_code,
            content=error.to_dict(request_id, include_internal=settings.debug),
        )

    # Register routers
    from .routes.analyses import router as analyses_router
    from .routes.stages import router as stages_router
    from .routes.system import router as system_router

    app.include_router(analyses_router, prefix="/api")
    app.include_router(stages_router, prefix="/api")
    app.include_router(system_router, prefix="/api")

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok", "service": "cloneplan"}

    logger.info("FastAPI app created with all routes registered")
    return app
