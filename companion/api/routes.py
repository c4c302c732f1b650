from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from langchain_core.messages import HumanMessage

from ..dependencies import get_caller_context, get_orchestrator
from ..core.logging import bind_request_context, clear_request_context, get_logger
from ..monitoring.agent_metrics import MetricsRecorder
from ..orchestration.context import RequestContext
from ..orchestration.graph import AgentOrchestrator
from ..schemas.agents import utc_timestamp
from ..schemas.companion import AgentHealth, CompanionHealth, CompanionRequest, CompanionResponse

logger = get_logger(name=__name__)

router = APIRouter()


@router.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/companion", response_model=CompanionResponse, tags=["companion"])
async def companion_chat(
    payload: CompanionRequest,
    caller: dict[str, Any] = Depends(get_caller_context),
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
) -> CompanionResponse:
    # Gateway identity always wins over anything the client put in the body
    options = {
        **payload.context,
        **caller,
        RequestContext.HISTORY: payload.history,
        RequestContext.LANGUAGE: payload.language,
    }
    bind_request_context(
        conversation_id=payload.conversation_id,
        caller_id=caller.get(RequestContext.CALLER_ID),
    )
    try:
        result = await orchestrator.process_message(payload.message, options)
    finally:
        clear_request_context()
    response = result.response
    logger.info(
        "companion_request_completed",
        agent=response.agent,
        routed_to=result.routed_to,
        error=response.error,
        conversation_id=payload.conversation_id,
    )
    return CompanionResponse(
        response=response.content,
        agent=response.agent,
        routing=result.routing,
        error=response.error,
        timestamp=response.timestamp,
        conversation_id=payload.conversation_id,
        metadata=response.metadata,
    )


async def _probe_agents(orchestrator: AgentOrchestrator, *, probe: bool) -> list[AgentHealth]:
    reports: list[AgentHealth] = []
    probed: dict[int, tuple[str, str | None]] = {}
    for name, agent in sorted(orchestrator.agents.items()):
        backend = getattr(agent, "backend", None)
        profile = getattr(getattr(backend, "profile", None), "value", "unknown")
        if not probe or backend is None:
            reports.append(AgentHealth(agent=name, profile=profile, status="skipped"))
            continue
        # Agents sharing a profile share a backend; ping each backend once
        if id(backend) not in probed:
            try:
                await backend.invoke([HumanMessage(content="ping")])
            except Exception as exc:
                logger.warning("companion_probe_failed", agent=name, profile=profile, error=str(exc))
                probed[id(backend)] = ("unreachable", f"{type(exc).__name__}: {exc}")
            else:
                probed[id(backend)] = ("ok", None)
        outcome, detail = probed[id(backend)]
        reports.append(AgentHealth(agent=name, profile=profile, status=outcome, detail=detail))
    return reports


@router.get("/companion/health", response_model=CompanionHealth, tags=["health"])
async def companion_health(
    probe: bool = False,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
) -> CompanionHealth:
    agents = await _probe_agents(orchestrator, probe=probe)
    if not agents:
        overall = "unhealthy"
    elif any(report.status == "unreachable" for report in agents):
        overall = "degraded"
    else:
        overall = "healthy"
    metrics = orchestrator.metrics.summary() if isinstance(orchestrator.metrics, MetricsRecorder) else {}
    return CompanionHealth(
        status=overall,
        agents=agents,
        graph_built=orchestrator.graph_built,
        cache=orchestrator.cache.stats() if orchestrator.cache is not None else {"enabled": False},
        metrics=metrics,
        timestamp=utc_timestamp(),
    )
