"""
NewsAI - API Dependencies
==========================
FastAPI ``Depends`` providers.  The ``ServiceContainer`` lives on
``app.state`` so tests can swap it for one built from fakes.
"""

from __future__ import annotations

import secrets

from fastapi import Header, HTTPException, Request

from newsai.config.settings import settings
from newsai.src.api.container import ServiceContainer
from newsai.src.core.orchestrator import QueryOrchestrator


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_orchestrator(request: Request) -> QueryOrchestrator:
    return get_container(request).orchestrator


def require_admin_key(x_admin_key: str | None = Header(default=None)) -> None:
    """Gate admin routes behind ``X-Admin-Key`` when ``ADMIN_KEY`` is set."""
    if settings.ADMIN_KEY is None:
        return
    expected = settings.ADMIN_KEY.get_secret_value()
    if x_admin_key is None or not secrets.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=401, detail="Invalid admin key")
