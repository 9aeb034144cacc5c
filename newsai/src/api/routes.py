"""
NewsAI - API Routes
====================
Thin controllers: parse the request, delegate to the orchestrator (or
the container for admin work), shape the response.  ``NewsAIError``
subclasses propagate to the exception handlers registered in
``newsai.src.api.app``.

Routes (all under ``/api``):
    POST /session              → create a session
    GET  /session/history      → list session summaries
    GET  /session/{session_id} → message history
    POST /session/reset        → clear a session
    POST /chat/query           → answer a question
    GET  /health               → per-service status
    POST /admin/ingest         → run the feed ingestion pipeline
    GET  /admin/stats          → vector table statistics
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from newsai.src.api.container import ServiceContainer
from newsai.src.api.deps import get_container, get_orchestrator, require_admin_key
from newsai.src.api.schemas import (
    CollectionStats,
    CreateSessionResponse,
    IngestResponse,
    MessageOut,
    QueryRequest,
    QueryResponse,
    ResetSessionRequest,
    ResetSessionResponse,
    SessionHistoryResponse,
    SessionListResponse,
    SessionSummaryOut,
    StatsResponse,
)
from newsai.src.core.orchestrator import QueryOrchestrator
from newsai.src.utils.logger import get_logger

logger = get_logger(__name__)

session_router = APIRouter(prefix="/session", tags=["session"])
chat_router = APIRouter(prefix="/chat", tags=["chat"])
health_router = APIRouter(tags=["health"])
admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_key)])


# ── Session ────────────────────────────────────────────────────────────

@session_router.post("", response_model=CreateSessionResponse)
async def create_session(orchestrator: QueryOrchestrator = Depends(get_orchestrator)) -> CreateSessionResponse:
    session_id = await orchestrator.create_session()
    return CreateSessionResponse(session_id=session_id)


@session_router.get("/history", response_model=SessionListResponse)
async def list_sessions(orchestrator: QueryOrchestrator = Depends(get_orchestrator)) -> SessionListResponse:
    summaries = await orchestrator.list_sessions()
    return SessionListResponse(sessions=[SessionSummaryOut.from_summary(s) for s in summaries])


@session_router.post("/reset", response_model=ResetSessionResponse)
async def reset_session(request: ResetSessionRequest, orchestrator: QueryOrchestrator = Depends(get_orchestrator)) -> ResetSessionResponse:
    success = await orchestrator.reset_session(request.session_id)
    return ResetSessionResponse(success=success)


@session_router.get("/{session_id}", response_model=SessionHistoryResponse)
async def get_session(session_id: str, orchestrator: QueryOrchestrator = Depends(get_orchestrator)) -> SessionHistoryResponse:
    messages = await orchestrator.get_session_history(session_id)
    return SessionHistoryResponse(session_id=session_id, messages=[MessageOut.from_message(m) for m in messages])


# ── Chat ───────────────────────────────────────────────────────────────

@chat_router.post("/query", response_model=QueryResponse)
async def query(request: QueryRequest, orchestrator: QueryOrchestrator = Depends(get_orchestrator)) -> QueryResponse:
    answer = await orchestrator.query(request.session_id, request.message)
    return QueryResponse.from_answer(answer)


# ── Health ─────────────────────────────────────────────────────────────

@health_router.get("/health")
async def health(container: ServiceContainer = Depends(get_container)) -> JSONResponse:
    report = await container.health()
    status_code = 200 if report.status == "healthy" else 503
    return JSONResponse(status_code=status_code, content=report.model_dump(mode="json"))


# ── Admin ──────────────────────────────────────────────────────────────

@admin_router.post("/ingest", response_model=IngestResponse)
async def ingest(container: ServiceContainer = Depends(get_container)) -> IngestResponse:
    logger.info("[ADMIN] Ingestion triggered via API.")
    summary = await container.ingestion_pipeline().run()
    return IngestResponse(success=True, articles_ingested=summary["articles_stored"], failed_sources=sorted(summary["failed_sources"]))


@admin_router.get("/stats", response_model=StatsResponse)
async def stats(container: ServiceContainer = Depends(get_container)) -> StatsResponse:
    store = container.vector_store
    count = await asyncio.to_thread(store.count)
    return StatsResponse(success=True, stats=CollectionStats(table=store.table_name, points_count=count))
