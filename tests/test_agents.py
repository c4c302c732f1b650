from __future__ import annotations

import asyncio

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
from prometheus_client import REGISTRY

from companion.agents import CodeAgent, GeneralAgent, LearningAgent, RoadmapAgent, TaskAgent, build_instruction
from companion.agents.base import build_message_sequence, format_history
from companion.schemas.agents import ConversationMessage, MessageRole
from companion.schemas.tools import ToolResult
from companion.services.llm import BackendTimeoutError, ModelProfile
from companion.services.records import InMemoryRecordStore, RoadmapRecord, RoadmapStep, TaskRecord
from companion.tools.catalog import build_tool_registry
from companion.tools.executor import ToolExecutor
from tests.helpers.stubs import FailingBackend, ScriptedBackend, final, tool_request


def _executor(store: InMemoryRecordStore) -> ToolExecutor:
    return ToolExecutor(build_tool_registry(store))


def test_build_instruction_is_pure_and_personalized() -> None:
    config = GeneralAgent.config
    context = {"display_name": "Nadia", "profile_summary": "Second-year CS student, likes Python."}

    first = build_instruction(config, context, ["Extra section"])
    second = build_instruction(config, context, ["Extra section"])
    plain = build_instruction(config, {})

    assert first == second
    assert "You are talking with Nadia." in first
    assert "Second-year CS student, likes Python." in first
    assert first.endswith("Extra section")
    assert plain == config.system_prompt
    assert context == {"display_name": "Nadia", "profile_summary": "Second-year CS student, likes Python."}


def test_message_sequence_orders_system_history_and_user() -> None:
    history = [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": ""},
        {"role": "system", "content": "hidden"},
        ConversationMessage(role=MessageRole.ASSISTANT, content="hello!"),
        {"role": "user"},
        42,
    ]

    messages = build_message_sequence("Be kind.", history, "what now?", "bn")

    assert isinstance(messages[0], SystemMessage)
    assert messages[0].content.startswith("Be kind.\n\nIMPORTANT: Respond in Bengali")
    assert [type(item) for item in messages[1:]] == [HumanMessage, AIMessage, HumanMessage]
    assert [item.content for item in messages[1:]] == ["hi", "hello!", "what now?"]


def test_format_history_keeps_most_recent_entries() -> None:
    history = [{"role": "user", "content": str(index)} for index in range(5)]
    assert [item.content for item in format_history(history, limit=2)] == ["3", "4"]
    assert format_history(history, limit=0) == []


@pytest.mark.asyncio
async def test_concurrent_requests_do_not_share_personalization() -> None:
    class EchoSystemBackend:
        profile = ModelProfile.CREATIVE

        async def invoke(self, messages):
            await asyncio.sleep(0)
            system = messages[0].content
            await asyncio.sleep(0)
            return final(system)

    agent = GeneralAgent(EchoSystemBackend())

    ana, bo = await asyncio.gather(
        agent.process("hi", {"display_name": "Ana"}),
        agent.process("hi", {"display_name": "Bo"}),
    )

    assert "Ana" in ana.content and "Bo" not in ana.content
    assert "Bo" in bo.content and "Ana" not in bo.content


@pytest.mark.asyncio
async def test_tool_round_trip_makes_exactly_one_follow_up_call() -> None:
    store = InMemoryRecordStore()
    request = tool_request(("create_task", {"title": "Study graphs", "priority": "high"}))
    backend = ScriptedBackend([request, "Done! Added *Study graphs* to your list."])
    agent = TaskAgent(backend, tools=_executor(store), store=store)

    response = await agent.process("add a task to study graphs", {"caller_id": "u1", "language": "en"})

    assert response.error is False
    assert response.content == "Done! Added *Study graphs* to your list."
    assert response.metadata["used_tools"] == ["create_task"]
    assert response.metadata["open_tasks"] == 0
    assert backend.call_count == 2

    first, second = backend.calls[0]["messages"], backend.calls[1]["messages"]
    assert second[: len(first)] == first
    assert second[len(first)] is request.message
    assert len(second) == len(first) + 2
    tool_message = second[-1]
    assert isinstance(tool_message, ToolMessage)
    assert tool_message.tool_call_id == "call_1"
    assert '"success": true' in tool_message.content
    assert [task.title for task in await store.list_tasks("u1")] == ["Study graphs"]
    assert {spec["function"]["name"] for spec in backend.calls[0]["tools"]} == set(TaskAgent.config.tool_names)


@pytest.mark.asyncio
async def test_tool_errors_are_folded_back_for_the_model() -> None:
    store = InMemoryRecordStore()
    backend = ScriptedBackend(
        [
            tool_request(("delete_task", {"task_id": "missing"}), ("analyze_code", {"code": "x"})),
            "I couldn't find that task.",
        ]
    )
    agent = TaskAgent(backend, tools=_executor(store), store=store)

    response = await agent.process("delete my missing task", {"caller_id": "u1"})

    tool_messages = [item for item in backend.calls[1]["messages"] if isinstance(item, ToolMessage)]
    assert [item.tool_call_id for item in tool_messages] == ["call_1", "call_2"]
    assert tool_messages[0].content.startswith("Error in delete_task: Task not found")
    assert "not available to the task agent" in tool_messages[1].content
    assert response.content == "I couldn't find that task."
    assert response.error is False


@pytest.mark.asyncio
async def test_empty_follow_up_is_replaced_by_tool_summary() -> None:
    store = InMemoryRecordStore()
    backend = ScriptedBackend([tool_request(("create_task", {"title": "Revise DP"})), ""])
    agent = TaskAgent(backend, tools=_executor(store), store=store)

    response = await agent.process("remind me to revise DP", {"caller_id": "u1"})

    assert response.content == 'Created task: "Revise DP" (medium priority)'


@pytest.mark.asyncio
async def test_empty_follow_up_without_successes_uses_localized_apology() -> None:
    store = InMemoryRecordStore()
    backend = ScriptedBackend([tool_request(("list_tasks", {})), ""])
    agent = TaskAgent(backend, tools=_executor(store), store=store)

    # No caller id, so the tool fails
    response = await agent.process("show my tasks", {"language": "bn"})

    assert response.content.startswith("আমি টুল ব্যবহার করার চেষ্টা করেছি")


@pytest.mark.asyncio
async def test_backend_failure_degrades_to_localized_error() -> None:
    labels = {"agent": "learning", "event": "degraded"}
    before = REGISTRY.get_sample_value("companion_agent_event_total", labels) or 0.0
    agent = LearningAgent(FailingBackend(BackendTimeoutError("creative backend timed out after 30s")))

    response = await agent.process("Explain recursion", {"language": "bn"})

    assert response.error is True
    assert response.agent == "learning"
    assert response.content == "দুঃখিত, একটি সমস্যা হয়েছে। আবার চেষ্টা করুন।"
    assert REGISTRY.get_sample_value("companion_agent_event_total", labels) == pytest.approx(before + 1.0)


@pytest.mark.asyncio
async def test_learning_agent_uses_roadmap_and_quest_context() -> None:
    backend = ScriptedBackend(["Recursion is a function calling itself."])
    agent = LearningAgent(backend)

    response = await agent.process(
        "Explain recursion",
        {"current_roadmap": {"title": "DSA Foundations"}, "current_quest": "Tower of Hanoi"},
    )

    system = backend.calls[0]["messages"][0].content
    assert "roadmap: DSA Foundations" in system
    assert "quest: Tower of Hanoi" in system
    assert response.metadata == {"topic": "recursion", "used_tools": []}


@pytest.mark.asyncio
async def test_code_agent_reports_language_and_query_type() -> None:
    backend = ScriptedBackend(["Your loop never updates i."])
    agent = CodeAgent(backend)

    response = await agent.process("Why does my python loop crash with an error?", {"display_name": "Sam"})

    assert response.metadata == {"code_language": "python", "query_type": "debug", "used_tools": []}
    assert "encouragement" in backend.calls[0]["messages"][0].content


@pytest.mark.asyncio
async def test_general_agent_classifies_response_type() -> None:
    agent = GeneralAgent(ScriptedBackend(["You're welcome!"]))
    response = await agent.process("thanks a lot", {})
    assert response.metadata == {"response_type": "gratitude", "used_tools": []}


@pytest.mark.asyncio
async def test_roadmap_agent_lists_roadmaps_in_instruction() -> None:
    store = InMemoryRecordStore()
    await store.save_roadmap(
        RoadmapRecord(
            caller_id="u1",
            title="Web Basics",
            topic="web",
            steps=[
                RoadmapStep(number=1, title="HTML", phase="Start", completed=True),
                RoadmapStep(number=2, title="CSS", phase="Start"),
            ],
        )
    )
    backend = ScriptedBackend(["Next up: CSS."])
    agent = RoadmapAgent(backend, store=store)

    with_roadmaps = await agent.process("what next?", {"caller_id": "u1"})
    without = await agent.process("what next?", {"caller_id": "u2"})

    assert with_roadmaps.metadata == {"has_roadmaps": True, "used_tools": []}
    assert without.metadata == {"has_roadmaps": False, "used_tools": []}
    assert "Web Basics: 1/2 steps (50%)" in backend.calls[0]["messages"][0].content
    assert "no roadmaps yet" in backend.calls[1]["messages"][0].content


@pytest.mark.asyncio
async def test_task_agent_previews_open_tasks_by_priority() -> None:
    store = InMemoryRecordStore()
    await store.save_task(TaskRecord(caller_id="u1", title="Low one", priority="low"))
    await store.save_task(TaskRecord(caller_id="u1", title="Urgent one", priority="high"))
    await store.save_task(TaskRecord(caller_id="u1", title="Finished", status="completed"))
    backend = ScriptedBackend(["You have two open tasks."])
    agent = TaskAgent(backend, store=store, pending_preview=1)

    response = await agent.process("what's on my list?", {"caller_id": "u1"})

    system = backend.calls[0]["messages"][0].content
    assert "Urgent one" in system
    assert "Low one" not in system
    assert response.metadata == {"open_tasks": 2, "used_tools": []}


def test_tool_result_message_content() -> None:
    ok = ToolResult(call_id="1", tool_name="navigate_to", success=True, payload='{"route": "/faq"}')
    failed = ToolResult(call_id="2", tool_name="navigate_to", success=False, error="bad destination")
    assert ok.as_message_content() == '{"route": "/faq"}'
    assert failed.as_message_content() == "Error in navigate_to: bad destination"
