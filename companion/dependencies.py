from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from .orchestration.context import RequestContext
from .orchestration.graph import AgentOrchestrator


def get_orchestrator(request: Request) -> AgentOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Companion is not ready")
    return orchestrator


def get_caller_context(request: Request) -> dict[str, Any]:
    """Identity supplied by the gateway in front of this service."""
    caller: dict[str, Any] = {}
    if caller_id := request.headers.get("x-caller-id", "").strip():
        caller[RequestContext.CALLER_ID] = caller_id
    if display_name := request.headers.get("x-caller-name", "").strip():
        caller[RequestContext.DISPLAY_NAME] = display_name
    return caller
