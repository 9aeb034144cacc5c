"""
NewsAI - FastAPI Application
=============================
Application factory.  Builds the ``ServiceContainer`` on startup (unless
one is injected), mounts the routers under ``/api`` and maps the error
taxonomy onto HTTP responses of the form ``{"error": <public message>}``.

Usage:
    uvicorn newsai.src.main:app --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from newsai.config.prompt_templates import GENERIC_FAILURE_MESSAGE
from newsai.src.api.container import ServiceContainer
from newsai.src.api.routes import admin_router, chat_router, health_router, session_router
from newsai.src.core.errors import InvalidRequest, NewsAIError
from newsai.src.utils.logger import get_logger, quiet_third_party

logger = get_logger(__name__)

# Prefixes FastAPI puts on validation error locations.
_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """
    Create the FastAPI app.

    Parameters
    ----------
    container
        Pre-built services.  When omitted, production clients are built
        from ``settings`` during startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        quiet_third_party()
        owned = container is None
        services = container or ServiceContainer.from_settings()
        if owned:
            await services.startup()
        app.state.container = services
        logger.info("[APP] NewsAI API started.")
        yield
        if owned:
            services.close()
        logger.info("[APP] NewsAI API stopped.")

    app = FastAPI(title="NewsAI RAG API", description="Session-based question answering over recent news", version="0.1.0", lifespan=lifespan)
    if container is not None:
        app.state.container = container

    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

    for router in (session_router, chat_router, health_router, admin_router):
        app.include_router(router, prefix="/api")

    _register_error_handlers(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(NewsAIError)
    async def _newsai_error(request: Request, exc: NewsAIError) -> JSONResponse:
        logger.warning("[APP] %s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in _LOCATIONS)
        reason = first.get("msg", "malformed request")
        message = f"Invalid {field}: {reason}" if field else f"Invalid request: {reason}"
        return await _newsai_error(request, InvalidRequest(message, field=field or None))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("[APP] Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": GENERIC_FAILURE_MESSAGE})
