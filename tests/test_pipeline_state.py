from __future__ import annotations

from companion.orchestration.context import RequestContext
from companion.orchestration.state import apply_patch, initial_state, replace_if_present
from companion.schemas.agents import AgentResponse, ConversationMessage, MessageRole, RoutingDecision


def test_replace_if_present_keeps_prior_value_for_none() -> None:
    assert replace_if_present("general", None) == "general"
    assert replace_if_present("general", "task") == "task"
    assert replace_if_present(None, "code") == "code"


def test_initial_state_appends_user_message_and_skips_invalid_history() -> None:
    state = initial_state(
        "What is a heap?",
        history=[
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": ["hello ", {"type": "text", "text": "there"}]},
            {"role": "narrator", "content": "ignored"},
            "not a message",
        ],
        language="en",
        context={"caller_id": "u1"},
    )

    messages = state["messages"]
    assert [message.role for message in messages] == [MessageRole.USER, MessageRole.ASSISTANT, MessageRole.USER]
    assert messages[1].content == "hello there"
    assert messages[-1] == ConversationMessage(role=MessageRole.USER, content="What is a heap?")
    assert isinstance(state["context"], RequestContext)
    assert state["language"] == "en"


def test_apply_patch_uses_channel_laws() -> None:
    decision = RoutingDecision(agent="task", confidence=0.9, reasoning="heuristic match")
    state = initial_state("add a task", language="en", context={"caller_id": "u1"})

    routed = apply_patch(
        state,
        {"current_agent": "task", "routing_decision": decision, "context": {"routing_source": "heuristic"}},
    )
    processed = apply_patch(
        routed,
        {
            "current_agent": None,
            "response": AgentResponse(agent="task", content="done"),
            "context": {"handled_by": "task"},
        },
    )

    assert processed["current_agent"] == "task"
    assert processed["routing_decision"] is decision
    assert processed["context"].to_dict() == {
        "caller_id": "u1",
        "routing_source": "heuristic",
        "handled_by": "task",
    }
    assert state["context"].to_dict() == {"caller_id": "u1"}
