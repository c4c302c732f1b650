from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

from ..schemas.agents import SYSTEM_AGENT, AgentId
from .messages import DEFAULT_LANGUAGE, supported_languages

UNKNOWN_AGENT = "unknown"
_KNOWN_AGENTS = frozenset({*(agent.value for agent in AgentId), SYSTEM_AGENT})
_KNOWN_LANGUAGES = frozenset(supported_languages())

COMPANION_REQUESTS_TOTAL = Counter(
    "companion_requests_total",
    "Companion requests grouped by handling agent, language and outcome",
    labelnames=("agent", "language", "outcome"),
)

COMPANION_RESPONSE_SECONDS = Histogram(
    "companion_response_seconds",
    "End-to-end latency of process_message per handling agent",
    labelnames=("agent",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, float("inf")),
)

ROUTING_DECISIONS_TOTAL = Counter(
    "companion_routing_decisions_total",
    "Routing decisions by selected agent and decision source",
    labelnames=("agent", "source"),
)

ROUTING_CONFIDENCE = Histogram(
    "companion_routing_confidence",
    "Distribution of routing confidence per decision source",
    labelnames=("source",),
    buckets=(0.0, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
)

RESPONSE_CACHE_EVENTS_TOTAL = Counter(
    "companion_response_cache_events_total",
    "Response cache hits, misses, stores and evictions",
    labelnames=("event",),
)

RESPONSE_CACHE_ENTRIES = Gauge(
    "companion_response_cache_entries",
    "Entries currently held by the response cache",
)

AGENT_TOOL_USAGE_TOTAL = Counter(
    "companion_agent_tool_usage_total",
    "Tool invocation attempts grouped by agent, tool and outcome",
    labelnames=("agent", "tool", "outcome"),
)

TOOL_LATENCY_SECONDS = Histogram(
    "companion_tool_latency_seconds",
    "Latency of individual tool invocations",
    labelnames=("tool",),
)

AGENT_EVENT_TOTAL = Counter(
    "companion_agent_event_total",
    "Count of agent lifecycle events (completed/degraded)",
    labelnames=("agent", "event"),
)

BACKEND_CALLS_TOTAL = Counter(
    "companion_backend_calls_total",
    "Reasoning backend calls grouped by profile and outcome",
    labelnames=("profile", "outcome"),
)

BACKEND_LATENCY_SECONDS = Histogram(
    "companion_backend_latency_seconds",
    "Latency of reasoning backend calls",
    labelnames=("profile",),
    buckets=(0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, float("inf")),
)


def agent_label(agent: str) -> str:
    """Label value for an agent name; names the router made up collapse to ``unknown``."""
    return agent if agent in _KNOWN_AGENTS else UNKNOWN_AGENT


def language_label(language: str) -> str:
    return language if language in _KNOWN_LANGUAGES else DEFAULT_LANGUAGE


def record_companion_request(*, agent: str, language: str, outcome: str, latency: float) -> None:
    agent = agent_label(agent)
    COMPANION_REQUESTS_TOTAL.labels(agent=agent, language=language_label(language), outcome=outcome).inc()
    COMPANION_RESPONSE_SECONDS.labels(agent=agent).observe(max(0.0, latency))


def record_routing_decision(*, agent: str, source: str, confidence: float) -> None:
    ROUTING_DECISIONS_TOTAL.labels(agent=agent_label(agent), source=source).inc()
    ROUTING_CONFIDENCE.labels(source=source).observe(confidence)


def increment_cache_event(*, event: str) -> None:
    RESPONSE_CACHE_EVENTS_TOTAL.labels(event=event).inc()


def set_cache_entries(*, count: int) -> None:
    RESPONSE_CACHE_ENTRIES.set(count)


def record_agent_tool_invocation(*, agent: str, tool: str, outcome: str) -> None:
    AGENT_TOOL_USAGE_TOTAL.labels(agent=agent, tool=tool, outcome=outcome).inc()


def observe_tool_latency(*, tool: str, latency: float) -> None:
    TOOL_LATENCY_SECONDS.labels(tool=tool).observe(latency)


def increment_agent_event(*, agent: str, event: str) -> None:
    AGENT_EVENT_TOTAL.labels(agent=agent, event=event).inc()


def observe_backend_call(*, profile: str, success: bool, latency: float) -> None:
    outcome = "success" if success else "failure"
    BACKEND_CALLS_TOTAL.labels(profile=profile, outcome=outcome).inc()
    BACKEND_LATENCY_SECONDS.labels(profile=profile).observe(latency)
