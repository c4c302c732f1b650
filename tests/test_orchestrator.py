from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from companion.agents import GeneralAgent, LearningAgent
from companion.core.config import get_settings
from companion.orchestration.context import RequestContext
from companion.orchestration.graph import AgentOrchestrator
from companion.schemas.agents import AgentResponse, ConversationMessage, MessageRole, RoutingDecision
from companion.services.bootstrap import build_orchestrator
from companion.services.cache import ResponseCache
from companion.services.llm import BackendPool, ModelProfile
from companion.services.records import InMemoryRecordStore, TaskRecord
from companion.tools.catalog import build_tool_registry
from companion.tools.executor import ToolExecutor
from tests.helpers.stubs import (
    CountingRouter,
    FailingBackend,
    RecordingMetrics,
    ScriptedBackend,
    StubAgent,
    tool_request,
)

SETTINGS = get_settings({"environment": "test"})


def _orchestrator(router: CountingRouter | None = None, *, cache: ResponseCache | None = None) -> AgentOrchestrator:
    return AgentOrchestrator(
        router=router or CountingRouter(),
        cache=cache,
        metrics=RecordingMetrics(),
        settings=SETTINGS,
    )


@pytest.mark.asyncio
async def test_repeated_general_message_is_served_from_cache() -> None:
    backend = ScriptedBackend(["Hi! How can I help?"], default="should not be used")
    router = CountingRouter(RoutingDecision(agent="general", confidence=0.8, reasoning="greeting"))
    orchestrator = _orchestrator(router, cache=ResponseCache())
    orchestrator.register_agent(GeneralAgent(backend))

    first = await orchestrator.process_message("Hello   there", language="en")
    second = await orchestrator.process_message("hello there", language="en")
    third = await orchestrator.process_message("HELLO THERE", language="en")

    assert backend.call_count == 1
    assert len(router.calls) == 1
    assert first.routing.reasoning == "greeting"
    for cached in (second, third):
        assert cached.response.content == first.response.content
        assert cached.routed_to == "general"
        assert cached.routing == RoutingDecision(agent="general", confidence=1.0, reasoning="cache hit")
    assert [record["confidence"] for record in orchestrator.metrics.records] == [0.8, 1.0, 1.0]


@pytest.mark.asyncio
async def test_cache_hit_returns_independent_copies() -> None:
    orchestrator = _orchestrator(cache=ResponseCache())
    orchestrator.register_agent(GeneralAgent(ScriptedBackend(["original"])))

    await orchestrator.process_message("hey you")
    hit = await orchestrator.process_message("hey you")
    hit.response.content = "mutated by caller"
    again = await orchestrator.process_message("hey you")

    assert again.response.content == "original"


@pytest.mark.asyncio
async def test_non_general_answers_are_stored_under_their_agent() -> None:
    backend = ScriptedBackend(["A heap is a tree.", "A heap is a tree."])
    router = CountingRouter(RoutingDecision(agent="learning", confidence=0.9))
    cache = ResponseCache()
    orchestrator = _orchestrator(router, cache=cache)
    orchestrator.register_agent(LearningAgent(backend))

    await orchestrator.process_message("tell me about heaps")
    await orchestrator.process_message("tell me about heaps")

    # Lookups always use the general key, so the learning entry is written but not hit
    assert backend.call_count == 2
    assert cache.get("tell me about heaps", "learning", "en") is not None
    assert cache.stats()["size"] == 1


@pytest.mark.asyncio
async def test_heuristic_match_skips_the_router() -> None:
    router = CountingRouter()
    orchestrator = _orchestrator(router)
    task_agent = StubAgent("task")
    orchestrator.register_agent(task_agent)

    result = await orchestrator.process_message("Create a task for the algorithms assignment")

    assert router.calls == []
    assert result.routed_to == "task"
    assert result.routing.reasoning == "heuristic match"
    assert result.routing.confidence >= 0.8
    assert result.response.content == "task handled: Create a task for the algorithms assignment"


@pytest.mark.asyncio
async def test_heuristics_can_be_disabled() -> None:
    settings = get_settings({"environment": "test", "routing": {"heuristics_enabled": False}})
    router = CountingRouter(RoutingDecision(agent="general", confidence=0.6))
    orchestrator = AgentOrchestrator(router=router, metrics=RecordingMetrics(), settings=settings)
    orchestrator.register_agent(StubAgent("general"))

    result = await orchestrator.process_message("Create a task for the algorithms assignment")

    assert len(router.calls) == 1
    assert result.routed_to == "general"


@pytest.mark.asyncio
async def test_context_survives_route_and_process() -> None:
    orchestrator = _orchestrator()
    agent = StubAgent("task")
    orchestrator.register_agent(agent)
    history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello!"}]

    await orchestrator.process_message(
        "add a task to finish the lab",
        {"caller_id": "u1", "display_name": "Rahim", "history": history, "language": "bn"},
        current_quest="Linked lists",
    )
    final = await orchestrator.run_pipeline(
        "add a task to finish the lab",
        language="en",
        context={"caller_id": "u1", "display_name": "Rahim"},
    )

    _, context = agent.calls[0]
    assert isinstance(context, RequestContext)
    assert context["caller_id"] == "u1"
    assert context["display_name"] == "Rahim"
    assert context["current_quest"] == "Linked lists"
    assert context["routing_source"] == "heuristic"
    assert context.language == "bn"
    assert [message.content for message in context["history"]] == ["hi", "hello!"]
    assert final["context"].to_dict() == {
        "caller_id": "u1",
        "display_name": "Rahim",
        "routing_source": "heuristic",
        "handled_by": "task",
    }


@pytest.mark.asyncio
async def test_unregistered_agent_degrades_to_system_response() -> None:
    router = CountingRouter(RoutingDecision(agent="wizard", confidence=0.9, reasoning="made up"))
    orchestrator = _orchestrator(router)
    orchestrator.register_agent(StubAgent("general"))

    result = await orchestrator.process_message("conjure something", language="bn")

    assert result.routed_to == "wizard"
    assert result.response.agent == "system"
    assert result.response.error is True
    assert result.response.content == "দুঃখিত, একটি সমস্যা হয়েছে। আবার চেষ্টা করুন।"
    assert len(orchestrator.metrics.errors) == 1


@pytest.mark.asyncio
async def test_backend_failing_everywhere_yields_one_error_metric() -> None:
    pool = BackendPool(SETTINGS)
    for profile in ModelProfile:
        pool.register(profile, FailingBackend(profile=profile))
    orchestrator = build_orchestrator(SETTINGS, pool=pool)
    labels = {"agent": "general", "language": "bn", "outcome": "error"}
    before = REGISTRY.get_sample_value("companion_requests_total", labels) or 0.0

    result = await orchestrator.process_message("hello", {"caller_id": "u1", "language": "bn"})

    assert result.response.error is True
    assert result.response.content == "দুঃখিত, একটি সমস্যা হয়েছে। আবার চেষ্টা করুন।"
    assert result.routing.agent == "general"
    assert result.routing.confidence == pytest.approx(0.3)
    assert result.routing.reasoning.startswith("Routing error:")
    assert orchestrator.metrics.total_requests == 1
    assert orchestrator.metrics.total_errors == 1
    assert REGISTRY.get_sample_value("companion_requests_total", labels) == pytest.approx(before + 1.0)
    # Error responses are never cached
    assert orchestrator.cache is not None and len(orchestrator.cache) == 0


@pytest.mark.asyncio
async def test_router_exception_falls_back_to_general() -> None:
    orchestrator = _orchestrator(CountingRouter(error=RuntimeError("router exploded")))
    orchestrator.register_agent(StubAgent("general"))

    result = await orchestrator.process_message("hmm")

    assert result.routed_to == "general"
    assert result.routing == RoutingDecision(agent="general", confidence=0.3, reasoning="routing error")
    assert result.response.error is False


@pytest.mark.asyncio
async def test_router_decisions_are_validated_and_clamped() -> None:
    orchestrator = _orchestrator(CountingRouter({"agent": "GENERAL", "confidence": 5}))
    orchestrator.register_agent(StubAgent("general"))

    result = await orchestrator.process_message("hmm")

    assert result.routing.agent == "general"
    assert result.routing.confidence == 1.0


@pytest.mark.asyncio
async def test_route_node_without_user_message_picks_general() -> None:
    orchestrator = _orchestrator()

    patch = await orchestrator._route_node(
        {"messages": [ConversationMessage(role=MessageRole.ASSISTANT, content="hello")], "language": "en"}
    )

    assert patch["current_agent"] == "general"
    assert patch["routing_decision"].reasoning == "no user message"
    assert patch["context"] == {"routing_source": "fallback"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("reply", "content", "agent", "error"),
    [
        ({"content": ["part one, ", {"type": "text", "text": "part two"}]}, "part one, part two", "general", False),
        ("plain string", "plain string", "general", False),
        ({"content": None, "error": True}, "", "general", True),
        (12345, "I'm sorry, I couldn't process that request. Please try again.", "system", True),
        ({"error": "not a bool"}, "I'm sorry, I couldn't process that request. Please try again.", "system", True),
    ],
)
async def test_agent_output_is_normalized(reply, content: str, agent: str, error: bool) -> None:
    orchestrator = _orchestrator()
    orchestrator.register_agent(StubAgent("general", reply))

    result = await orchestrator.process_message("hmm")

    assert isinstance(result.response, AgentResponse)
    assert result.response.content == content
    assert result.response.agent == agent
    assert result.response.error is error


@pytest.mark.asyncio
async def test_unexpected_agent_exception_is_caught_once() -> None:
    orchestrator = _orchestrator()
    orchestrator.register_agent(StubAgent("general", error=KeyError("boom")))

    result = await orchestrator.process_message("hmm", language="bn")

    assert result.response.agent == "system"
    assert result.response.error is True
    assert result.response.content == "দুঃখিত, আমি সেই অনুরোধটি প্রক্রিয়া করতে পারিনি। আবার চেষ্টা করুন।"
    assert result.routed_to == "general"
    assert result.routing is None
    [record] = orchestrator.metrics.records
    assert record["agent"] == "system"
    assert record["language"] == "bn"
    assert "KeyError" in record["error"]


def test_graph_is_built_once() -> None:
    orchestrator = _orchestrator()
    assert orchestrator.graph_built is False

    graph = orchestrator.build_graph()

    assert orchestrator.graph_built is True
    assert orchestrator.build_graph() is graph


def test_register_agent_normalizes_names() -> None:
    orchestrator = _orchestrator()
    agent = StubAgent("Code")
    orchestrator.register_agent(agent)

    assert orchestrator.get_agent("code") is agent
    assert list(orchestrator.agents) == ["code"]


def test_bootstrap_registers_all_agents() -> None:
    pool = BackendPool(SETTINGS)
    for profile in ModelProfile:
        pool.register(profile, ScriptedBackend(profile=profile))

    orchestrator = build_orchestrator(SETTINGS, pool=pool)

    assert sorted(orchestrator.agents) == ["code", "general", "learning", "roadmap", "task"]
    assert orchestrator.router.backend is pool.get(ModelProfile.FAST)
    assert orchestrator.get_agent("task").backend is pool.get(ModelProfile.PRECISE)
    assert orchestrator.get_agent("general").backend is pool.get(ModelProfile.CREATIVE)


@pytest.mark.asyncio
async def test_answers_built_from_one_callers_stats_are_not_shared() -> None:
    store = InMemoryRecordStore()
    await store.save_task(TaskRecord(caller_id="alice", title="Finish graphs", status="completed"))
    backend = ScriptedBackend(
        [
            tool_request(("get_user_stats", {})),
            "You finished 1 of 1 tasks, great work!",
            tool_request(("get_user_stats", {})),
            "You have no tasks yet, let's add one.",
        ]
    )
    cache = ResponseCache()
    orchestrator = _orchestrator(cache=cache)
    orchestrator.register_agent(GeneralAgent(backend, tools=ToolExecutor(build_tool_registry(store))))

    alice = await orchestrator.process_message("how am i doing?", caller_id="alice")
    bob = await orchestrator.process_message("how am i doing?", caller_id="bob")

    assert alice.response.metadata["used_tools"] == ["get_user_stats"]
    assert bob.routing.reasoning != "cache hit"
    assert bob.response.content == "You have no tasks yet, let's add one."
    assert bob.response.content != alice.response.content
    assert backend.call_count == 4
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_personalized_requests_bypass_the_cache() -> None:
    backend = ScriptedBackend(["Hi Alice!", "Hi Bob!", "Hi there!"])
    cache = ResponseCache()
    orchestrator = _orchestrator(cache=cache)
    orchestrator.register_agent(GeneralAgent(backend))

    alice = await orchestrator.process_message("hello", caller_id="alice", display_name="Alice")
    bob = await orchestrator.process_message("hello", caller_id="bob", display_name="Bob")

    assert (alice.response.content, bob.response.content) == ("Hi Alice!", "Hi Bob!")
    assert bob.routing.reasoning != "cache hit"
    assert len(cache) == 0
    assert cache.stats()["misses"] == 0

    # A request without personal context still uses the shared entry path
    anonymous = await orchestrator.process_message("hello", caller_id="carol")
    assert anonymous.response.content == "Hi there!"
    assert len(cache) == 1
    assert backend.call_count == 3


@pytest.mark.asyncio
async def test_cache_hits_carry_a_fresh_timestamp() -> None:
    cache = ResponseCache()
    orchestrator = _orchestrator(cache=cache)
    orchestrator.register_agent(GeneralAgent(ScriptedBackend(["Welcome back!"])))

    first = await orchestrator.process_message("hey")
    stored = cache.get("hey", "general", "en")
    assert stored is not None
    stored_stamp = stored.timestamp
    stored.timestamp = "2000-01-01T00:00:00+00:00"
    cache.set("hey", "general", "en", stored)

    hit = await orchestrator.process_message("hey")

    assert hit.routing.reasoning == "cache hit"
    assert hit.response.content == first.response.content
    assert hit.response.timestamp != "2000-01-01T00:00:00+00:00"
    assert hit.response.timestamp >= stored_stamp
