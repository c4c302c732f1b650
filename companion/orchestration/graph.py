from __future__ import annotations

import time
from types import MappingProxyType
from typing import Any, Mapping, Sequence

from langgraph.graph import END, START, StateGraph
from pydantic import BaseModel, ValidationError

from ..agents.base import Agent
from ..core.config import Settings, get_settings
from ..core.logging import get_logger
from ..core.messages import get_message
from ..core.metrics import record_routing_decision
from ..monitoring.agent_metrics import MetricsRecorder, MetricsSink
from ..schemas.agents import (
    SYSTEM_AGENT,
    AgentId,
    AgentResponse,
    ConversationMessage,
    MessageRole,
    OrchestrationResult,
    RoutingDecision,
    utc_timestamp,
)
from ..services.cache import ResponseCache
from .context import RequestContext
from .routing import RouterAgent, fast_route
from .state import PipelineState, initial_state

logger = get_logger(name=__name__)


class PipelineContractError(RuntimeError):
    """Raised when the pipeline finishes without a usable response."""


class AgentOrchestrator:
    """Routes one message to a specialized agent through a two-node graph.

    The graph is ``START -> route -> process -> END``. It is compiled on first
    use and reused afterwards; agents are looked up at run time, so they can
    be registered any time before a request names them.
    """

    def __init__(
        self,
        *,
        router: RouterAgent,
        cache: ResponseCache | None = None,
        metrics: MetricsSink | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.router = router
        self.cache = cache
        self.metrics = metrics if metrics is not None else MetricsRecorder.from_settings(self.settings.observability)
        self._agents: dict[str, Agent] = {}
        self._graph: Any | None = None

    def register_agent(self, agent: Agent, *, name: str | AgentId | None = None) -> None:
        key = name.value if isinstance(name, AgentId) else str(name or agent.name)
        key = key.strip().lower()
        if key in self._agents:
            logger.warning("agent_replaced", agent=key)
        self._agents[key] = agent
        logger.debug("agent_registered", agent=key)

    def get_agent(self, name: str | AgentId) -> Agent | None:
        key = name.value if isinstance(name, AgentId) else str(name).strip().lower()
        return self._agents.get(key)

    @property
    def agents(self) -> Mapping[str, Agent]:
        return MappingProxyType(self._agents)

    @property
    def graph_built(self) -> bool:
        return self._graph is not None

    def build_graph(self) -> Any:
        if self._graph is not None:
            return self._graph
        graph = StateGraph(PipelineState)
        graph.add_node("route", self._route_node)
        graph.add_node("process", self._process_node)
        graph.add_edge(START, "route")
        graph.add_edge("route", "process")
        graph.add_edge("process", END)
        self._graph = graph.compile()
        logger.info("companion_graph_built", agents=sorted(self._agents))
        return self._graph

    async def _route_node(self, state: PipelineState) -> dict[str, Any]:
        routing = self.settings.routing
        messages = state.get("messages") or []
        last = messages[-1] if messages else None
        if last is None or last.role != MessageRole.USER:
            decision = RoutingDecision(
                agent=AgentId.GENERAL,
                confidence=routing.fallback_confidence,
                reasoning="no user message",
            )
            source = "fallback"
        else:
            try:
                decision, source = await self._classify(last.content, state.get("context"))
            except Exception as exc:
                logger.exception("route_node_failed", error=str(exc))
                decision = RoutingDecision(
                    agent=AgentId.GENERAL,
                    confidence=routing.fallback_confidence,
                    reasoning="routing error",
                )
                source = "fallback"

        record_routing_decision(agent=decision.agent, source=source, confidence=decision.confidence)
        logger.info("route_decided", agent=decision.agent, source=source, confidence=decision.confidence)
        return {
            "current_agent": decision.agent,
            "routing_decision": decision,
            "context": {"routing_source": source},
        }

    async def _classify(self, message: str, context: Mapping[str, Any] | None) -> tuple[RoutingDecision, str]:
        routing = self.settings.routing
        if routing.heuristics_enabled and (agent := fast_route(message)) is not None:
            decision = RoutingDecision(agent=agent, confidence=routing.heuristic_confidence, reasoning="heuristic match")
            return decision, "heuristic"
        decision = await self.router.classify(message, context)
        if not isinstance(decision, RoutingDecision):
            decision = RoutingDecision.model_validate(decision)
        return decision, "router"

    async def _process_node(self, state: PipelineState) -> dict[str, Any]:
        agent_id = state.get("current_agent") or AgentId.GENERAL.value
        language = state.get("language") or self.settings.agents.default_language
        agent = self._agents.get(agent_id)
        if agent is None:
            logger.warning("agent_not_registered", agent=agent_id, registered=sorted(self._agents))
            response = AgentResponse(agent=SYSTEM_AGENT, content=get_message("errors.general", language), error=True)
            return {"response": response, "context": {"handled_by": SYSTEM_AGENT}}

        messages: Sequence[ConversationMessage] = state.get("messages") or []
        content = messages[-1].content if messages else ""
        agent_context = RequestContext.coerce(state.get("context")).merge(
            {RequestContext.HISTORY: list(messages[:-1]), RequestContext.LANGUAGE: language}
        )
        raw = await agent.process(content, agent_context)
        response = self._ensure_response(raw, agent_id, language)
        return {"response": response, "context": {"handled_by": agent_id}}

    def _ensure_response(self, raw: Any, agent_id: str, language: str) -> AgentResponse:
        if isinstance(raw, AgentResponse):
            return raw
        try:
            if isinstance(raw, BaseModel):
                return AgentResponse.model_validate({"agent": agent_id, **raw.model_dump()})
            if isinstance(raw, Mapping):
                return AgentResponse.model_validate({"agent": agent_id, **raw})
            if isinstance(raw, str):
                return AgentResponse(agent=agent_id, content=raw)
        except ValidationError as exc:
            logger.warning("agent_response_invalid", agent=agent_id, error=str(exc))
        else:
            logger.warning("agent_response_unusable", agent=agent_id, type=type(raw).__name__)
        return AgentResponse(agent=SYSTEM_AGENT, content=get_message("errors.processing", language), error=True)

    async def run_pipeline(
        self,
        message: str,
        *,
        history: Sequence[ConversationMessage | Mapping[str, Any]] | None = None,
        language: str,
        context: Mapping[str, Any] | None = None,
    ) -> PipelineState:
        graph = self.build_graph()
        state = initial_state(message, history=history, language=language, context=context)
        return await graph.ainvoke(state)

    async def process_message(
        self,
        message: str,
        options: Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> OrchestrationResult:
        """Route ``message`` to an agent and return its normalized response.

        ``history`` and ``language`` are taken out of ``options`` (or keyword
        fields); every other entry becomes the request context. Never raises:
        unexpected failures come back as a localized ``error=True`` response.
        """
        start = time.perf_counter()
        values = {**(options or {}), **fields}
        history = values.pop("history", None) or []
        language = values.pop("language", None) or self.settings.agents.default_language
        context = RequestContext(values)
        # Answers tailored to one learner are neither served from nor stored in the shared cache
        cache = self.cache if self.cache is not None and not context.personalized else None

        try:
            cached = cache.get(message, AgentId.GENERAL.value, language) if cache is not None else None
            if cached is not None:
                cached.timestamp = utc_timestamp()
                decision = RoutingDecision(agent=cached.agent, confidence=1.0, reasoning="cache hit")
                self._record(cached, language, start, confidence=1.0)
                logger.info("companion_cache_hit", agent=cached.agent, language=language)
                return OrchestrationResult(response=cached, routed_to=cached.agent, routing=decision)

            final = await self.run_pipeline(message, history=history, language=language, context=context)
            response = final.get("response")
            if not isinstance(response, AgentResponse):
                raise PipelineContractError("pipeline finished without a response")
            if not isinstance(response.content, str):
                raise PipelineContractError(f"response content is {type(response.content).__name__}, expected str")

            routing = final.get("routing_decision")
            routed_to = final.get("current_agent") or response.agent
            if cache is not None and not response.error:
                cache.set(message, response.agent, language, response)
            self._record(response, language, start, confidence=routing.confidence if routing else None)
            return OrchestrationResult(response=response, routed_to=routed_to, routing=routing)
        except Exception as exc:
            logger.exception("companion_processing_failed", error=str(exc), error_type=type(exc).__name__)
            response = AgentResponse(
                agent=SYSTEM_AGENT,
                content=get_message("errors.processing", language),
                error=True,
            )
            self._record(response, language, start, error=f"{type(exc).__name__}: {exc}")
            return OrchestrationResult(response=response, routed_to=AgentId.GENERAL.value, routing=None)

    def _record(
        self,
        response: AgentResponse,
        language: str,
        start: float,
        *,
        confidence: float | None = None,
        error: str | None = None,
    ) -> None:
        if error is None and response.error:
            error = f"{response.agent} returned a degraded response"
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        try:
            self.metrics.record_request(
                agent=response.agent,
                language=language,
                response_time_ms=elapsed_ms,
                confidence=confidence,
                error=error,
            )
        except Exception as exc:  # pragma: no cover - third-party sinks only
            logger.warning("metrics_sink_failed", error=str(exc))
