from __future__ import annotations

from typing import Annotated, Any, Mapping, Sequence, TypedDict, TypeVar

from pydantic import ValidationError

from ..schemas.agents import AgentResponse, ConversationMessage, MessageRole, RoutingDecision
from .context import RequestContext, merge_context

T = TypeVar("T")


def replace_if_present(current: T, update: T | None) -> T:
    """Graph reducer: a patch value wins unless it is ``None``."""
    if update is None:
        return current
    return update


class PipelineState(TypedDict, total=False):
    messages: Annotated[list[ConversationMessage], replace_if_present]
    current_agent: Annotated[str | None, replace_if_present]
    routing_decision: Annotated[RoutingDecision | None, replace_if_present]
    response: Annotated[AgentResponse | None, replace_if_present]
    language: Annotated[str, replace_if_present]
    context: Annotated[RequestContext, merge_context]


_REPLACED_FIELDS = ("messages", "current_agent", "routing_decision", "response", "language")


def apply_patch(state: Mapping[str, Any], patch: Mapping[str, Any]) -> PipelineState:
    """Fold ``patch`` into ``state`` with the same laws the graph channels use."""
    merged: dict[str, Any] = dict(state)
    for key in _REPLACED_FIELDS:
        if key in patch:
            merged[key] = replace_if_present(merged.get(key), patch[key])
    if "context" in patch:
        merged["context"] = merge_context(merged.get("context"), patch["context"])
    return PipelineState(**merged)  # type: ignore[typeddict-item]


def initial_state(
    message: str,
    *,
    history: Sequence[ConversationMessage | Mapping[str, Any]] | None = None,
    language: str,
    context: Mapping[str, Any] | None = None,
) -> PipelineState:
    messages = [entry for entry in (_as_message(item) for item in history or ()) if entry is not None]
    messages.append(ConversationMessage(role=MessageRole.USER, content=message))
    return PipelineState(
        messages=messages,
        language=language,
        context=RequestContext.coerce(context),
    )


def _as_message(item: Any) -> ConversationMessage | None:
    if isinstance(item, ConversationMessage):
        return item
    if not isinstance(item, Mapping):
        return None
    try:
        return ConversationMessage.model_validate(dict(item))
    except ValidationError:
        return None
