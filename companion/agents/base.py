from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Protocol, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from ..core.logging import get_logger
from ..core.messages import get_message
from ..core.metrics import increment_agent_event
from ..orchestration.context import RequestContext
from ..schemas.agents import AgentId, AgentResponse, ConversationMessage, MessageRole
from ..schemas.tools import ToolResult
from ..services.llm import FinalAnswer, ModelProfile, ReasoningBackendProtocol, ToolCallsRequested
from ..tools.base import InvocationMetadata
from ..tools.executor import ToolExecutor

logger = get_logger(name=__name__)


@dataclass(slots=True)
class ContextBundle:
    """Per-request material an agent loads before calling the backend."""

    sections: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AgentConfig:
    """Static description of an agent. Shared across requests, never mutated."""

    agent_id: AgentId
    description: str
    system_prompt: str
    profile: ModelProfile
    tool_names: tuple[str, ...] = ()
    error_key: str = "errors.general"


class Agent(Protocol):
    name: str

    async def process(self, message: str, context: Mapping[str, Any] | None = None) -> AgentResponse:
        ...


def language_directive(language: str | None) -> str:
    return get_message("language.directive", language)


def build_instruction(
    config: AgentConfig,
    context: Mapping[str, Any] | None,
    sections: Sequence[str] = (),
) -> str:
    """Compose the system instruction for one call.

    Pure: the same inputs always give the same text and neither ``config``
    nor ``context`` is modified, so concurrent requests cannot see each
    other's personalization.
    """
    ctx = RequestContext.coerce(context)
    parts = [config.system_prompt.strip()]
    if ctx.display_name:
        parts.append(f"You are talking with {ctx.display_name}. Use their name when it feels natural.")
    if ctx.profile_summary:
        parts.append(f"What you know about this learner:\n{ctx.profile_summary}")
    parts.extend(section.strip() for section in sections if section and section.strip())
    return "\n\n".join(parts)


def format_history(history: Sequence[Any] | None, *, limit: int | None = None) -> list[BaseMessage]:
    """Convert conversation history into chat messages, dropping unusable entries."""
    messages: list[BaseMessage] = []
    for item in history or ():
        if isinstance(item, ConversationMessage):
            role, content = item.role.value, item.content
        elif isinstance(item, Mapping):
            role, content = item.get("role"), item.get("content")
        else:
            continue
        if not isinstance(content, str) or not content.strip():
            continue
        if role == MessageRole.USER.value:
            messages.append(HumanMessage(content=content))
        elif role == MessageRole.ASSISTANT.value:
            messages.append(AIMessage(content=content))
    if limit is not None:
        messages = messages[-limit:] if limit > 0 else []
    return messages


def build_message_sequence(
    instruction: str,
    history: Sequence[Any] | None,
    message: str,
    language: str | None,
    *,
    history_limit: int | None = None,
) -> list[BaseMessage]:
    return [
        SystemMessage(content=f"{instruction}\n\n{language_directive(language)}"),
        *format_history(history, limit=history_limit),
        HumanMessage(content=message),
    ]


def summarize_tool_results(results: Sequence[ToolResult], language: str | None) -> str:
    """Fallback answer built from successful tool results when the model returns nothing."""
    lines: list[str] = []
    for result in results:
        if not result.success:
            continue
        payload = result.payload or ""
        try:
            decoded = json.loads(payload)
        except (TypeError, ValueError):
            decoded = None
        if isinstance(decoded, dict) and isinstance(decoded.get("message"), str):
            lines.append(decoded["message"])
        elif decoded is not None:
            lines.append(json.dumps(decoded, indent=2, ensure_ascii=False))
        elif payload.strip():
            lines.append(payload.strip())
    if not lines:
        return get_message("errors.tools", language)
    return "\n\n".join(lines)


class BaseAgent:
    """Shared request flow for the specialized agents.

    Subclasses provide ``config`` and may override ``load_context`` (instruction
    sections and response metadata loaded per request, e.g. from the record
    store) and ``describe`` (metadata derived from the message itself).
    """

    config: ClassVar[AgentConfig]

    def __init__(
        self,
        backend: ReasoningBackendProtocol,
        *,
        tools: ToolExecutor | None = None,
        history_limit: int | None = 10,
    ) -> None:
        self.backend = backend
        self.tools = tools
        self.history_limit = history_limit

    @property
    def name(self) -> str:
        return self.config.agent_id.value

    @property
    def description(self) -> str:
        return self.config.description

    def tool_specs(self) -> list[dict[str, Any]]:
        if self.tools is None or not self.config.tool_names:
            return []
        return [tool.as_spec() for tool in self.tools.registry.subset(self.config.tool_names)]

    async def load_context(self, context: RequestContext) -> ContextBundle:
        return ContextBundle()

    def describe(self, message: str, context: RequestContext) -> dict[str, Any]:
        return {}

    async def process(self, message: str, context: Mapping[str, Any] | None = None) -> AgentResponse:
        ctx = RequestContext.coerce(context)
        language = ctx.language or "en"
        try:
            bundle = await self.load_context(ctx)
            instruction = build_instruction(self.config, ctx, bundle.sections)
            messages = build_message_sequence(
                instruction,
                ctx.get(RequestContext.HISTORY),
                message,
                language,
                history_limit=self.history_limit,
            )
            content, used_tools = await self._exchange(messages, ctx, language)
        except Exception as exc:
            increment_agent_event(agent=self.name, event="degraded")
            logger.exception(f"{self.name}_agent_failed", error=str(exc), error_type=type(exc).__name__)
            return self.format_response(get_message(self.config.error_key, language), error=True)

        increment_agent_event(agent=self.name, event="completed")
        metadata = {**bundle.metadata, **self.describe(message, ctx)}
        if self.config.tool_names:
            metadata["used_tools"] = used_tools
        return self.format_response(content, **metadata)

    async def _exchange(
        self,
        messages: list[BaseMessage],
        context: RequestContext,
        language: str,
    ) -> tuple[str, list[str]]:
        executor = self.tools
        specs = self.tool_specs()
        if executor is None or not specs:
            answer = await self.backend.invoke(messages)
            return answer.content, []

        reply = await self.backend.invoke_with_tools(messages, specs)
        if isinstance(reply, FinalAnswer):
            return reply.content, []
        if not isinstance(reply, ToolCallsRequested):
            raise TypeError(f"Unexpected backend reply {type(reply).__name__}")

        metadata = InvocationMetadata(caller_id=context.caller_id, language=language, agent=self.name)
        results = await executor.execute(reply.calls, metadata, allowed=self.config.tool_names)
        logger.info(
            "agent_tool_round",
            agent=self.name,
            tools=[call.name for call in reply.calls],
            failures=sum(1 for result in results if not result.success),
        )
        followup: list[BaseMessage] = [
            *messages,
            reply.message,
            *(
                ToolMessage(content=result.as_message_content(), tool_call_id=result.call_id, name=result.tool_name)
                for result in results
            ),
        ]
        final = await self.backend.invoke_with_tools(followup, specs)
        content = final.content if isinstance(final, FinalAnswer) else ""
        if not content.strip():
            content = summarize_tool_results(results, language)
        return content, [call.name for call in reply.calls]

    def format_response(self, content: Any, *, error: bool = False, **metadata: Any) -> AgentResponse:
        return AgentResponse(agent=self.name, content=content, error=error, **metadata)
