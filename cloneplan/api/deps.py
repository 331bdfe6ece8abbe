"""FastAPI dependencies for cloneplan.

Provides shared services and the caller identity via FastAPI's
Depends() injection system.
"""

import logging

from fastapi import Request

logger = logging.getLogger(__name__)

ANONYMOUS_USER = "anonymous"


async def get_orchestrator(request: Request):
    """Get AnalysisOrchestrator from app state."""
    return request.app.state.orchestrator


async def get_store(request: Request):
    """Get InMemoryAnalysisStore from app state."""
    return request.app.state.store


async def get_settings(request: Request):
    return request.app.state.settings


async def get_current_user_id(request: Request) -> str:
    """Resolve the caller: X-User-Id header, then userId cookie, then anonymous."""
    user_id = request.headers.get("X-User-Id") or request.cookies.get("userId")
    return user_id.strip() if user_id and user_id.strip() else ANONYMOUS_USER
