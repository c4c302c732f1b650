from __future__ import annotations

from ..agents import CodeAgent, GeneralAgent, LearningAgent, RoadmapAgent, TaskAgent
from ..core.config import Settings
from ..core.logging import get_logger
from ..monitoring.agent_metrics import MetricsRecorder
from ..orchestration.graph import AgentOrchestrator
from ..orchestration.routing import RouterAgent
from ..tools.catalog import build_tool_registry
from ..tools.executor import ToolExecutor
from .cache import ResponseCache
from .llm import BackendPool, ModelProfile
from .records import InMemoryRecordStore, RecordStore

logger = get_logger(name=__name__)


def build_orchestrator(
    settings: Settings,
    *,
    pool: BackendPool | None = None,
    store: RecordStore | None = None,
) -> AgentOrchestrator:
    """Wire backends, tools and the five agents into one orchestrator."""
    pool = pool or BackendPool(settings)
    store = store if store is not None else InMemoryRecordStore()
    registry = build_tool_registry(store, settings.tools)
    executor = ToolExecutor(registry, timeout_seconds=settings.tools.invocation_timeout_seconds)
    history_limit = settings.agents.history_limit

    router = RouterAgent(
        pool.get(ModelProfile.FAST),
        language=settings.routing.classification_language,
        fallback_confidence=settings.routing.fallback_confidence,
    )
    orchestrator = AgentOrchestrator(
        router=router,
        cache=ResponseCache.from_settings(settings.cache) if settings.cache.enabled else None,
        metrics=MetricsRecorder.from_settings(settings.observability),
        settings=settings,
    )
    agents = [
        LearningAgent(pool.get(LearningAgent.config.profile), tools=executor, history_limit=history_limit),
        TaskAgent(
            pool.get(TaskAgent.config.profile),
            tools=executor,
            store=store,
            history_limit=history_limit,
            pending_preview=settings.agents.pending_task_preview,
        ),
        CodeAgent(pool.get(CodeAgent.config.profile), tools=executor, history_limit=history_limit),
        RoadmapAgent(pool.get(RoadmapAgent.config.profile), tools=executor, store=store, history_limit=history_limit),
        GeneralAgent(pool.get(GeneralAgent.config.profile), tools=executor, history_limit=history_limit),
    ]
    for agent in agents:
        orchestrator.register_agent(agent)
    logger.info(
        "companion_orchestrator_ready",
        agents=sorted(orchestrator.agents),
        tools=len(registry),
        cache_enabled=orchestrator.cache is not None,
    )
    return orchestrator
