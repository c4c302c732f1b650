from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Mapping, Protocol, Sequence

from langchain_core.messages import AIMessage, BaseMessage
from langchain_ollama import ChatOllama

from ..core.config import Settings
from ..core.logging import get_logger
from ..core.metrics import observe_backend_call
from ..schemas.agents import coerce_content
from ..schemas.tools import ToolCall

logger = get_logger(name=__name__)


class ModelProfile(str, Enum):
    FAST = "fast"
    PRECISE = "precise"
    CREATIVE = "creative"


class BackendError(RuntimeError):
    """Raised when the reasoning backend cannot produce a reply."""


class BackendTimeoutError(BackendError):
    """Raised when a backend call exceeds the configured timeout."""


@dataclass(slots=True)
class FinalAnswer:
    content: str
    message: AIMessage


@dataclass(slots=True)
class ToolCallsRequested:
    calls: list[ToolCall]
    message: AIMessage


BackendReply = FinalAnswer | ToolCallsRequested


class ReasoningBackendProtocol(Protocol):
    profile: ModelProfile

    async def invoke(self, messages: Sequence[BaseMessage]) -> FinalAnswer:
        ...

    async def invoke_with_tools(
        self,
        messages: Sequence[BaseMessage],
        tools: Sequence[Mapping[str, Any]],
    ) -> BackendReply:
        ...


def _build_base_url(host: str, port: int) -> str:
    if ":" in host.rsplit("/", maxsplit=1)[-1]:
        return host.rstrip("/")
    return f"{host.rstrip('/')}:{port}"


def extract_content(result: Any) -> str:
    if hasattr(result, "content"):
        return coerce_content(result.content)
    return coerce_content(result)


def _as_ai_message(result: Any) -> AIMessage:
    if isinstance(result, AIMessage):
        return result
    return AIMessage(content=extract_content(result))


def _parse_tool_calls(message: AIMessage) -> list[ToolCall]:
    calls: list[ToolCall] = []
    for raw in getattr(message, "tool_calls", None) or []:
        name = raw.get("name") if isinstance(raw, Mapping) else getattr(raw, "name", None)
        if not name:
            continue
        args = raw.get("args") if isinstance(raw, Mapping) else getattr(raw, "args", None)
        call_id = raw.get("id") if isinstance(raw, Mapping) else getattr(raw, "id", None)
        calls.append(
            ToolCall(
                id=str(call_id or f"call_{uuid.uuid4().hex[:12]}"),
                name=str(name),
                args=dict(args) if isinstance(args, Mapping) else {},
            )
        )
    return calls


@dataclass
class ReasoningBackend:
    """LangChain chat client for one model profile, bounded by a per-call timeout."""

    profile: ModelProfile
    _client: Any
    model: str
    timeout_seconds: float = 30.0
    _client_cache: ClassVar[dict[str, Any]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        profile: ModelProfile,
        *,
        client: Any | None = None,
    ) -> "ReasoningBackend":
        profile_settings = settings.llm.profile(profile.value)
        if client is None:
            cache_key = (
                f"{settings.llm.host}:{settings.llm.port}:{profile.value}:"
                f"{profile_settings.model}:{profile_settings.temperature}"
            )
            cached = cls._client_cache.get(cache_key)
            if cached is None:
                cached = ChatOllama(
                    model=profile_settings.model,
                    base_url=_build_base_url(settings.llm.host, settings.llm.port),
                    temperature=profile_settings.temperature,
                    num_predict=profile_settings.max_output_tokens,
                )
                cls._client_cache[cache_key] = cached
            client = cached
        return cls(
            profile=profile,
            _client=client,
            model=profile_settings.model,
            timeout_seconds=settings.llm.timeout_seconds,
        )

    async def invoke(self, messages: Sequence[BaseMessage]) -> FinalAnswer:
        result = await self._call(self._client, messages)
        message = _as_ai_message(result)
        return FinalAnswer(content=extract_content(message), message=message)

    async def invoke_with_tools(
        self,
        messages: Sequence[BaseMessage],
        tools: Sequence[Mapping[str, Any]],
    ) -> BackendReply:
        """Call the model with ``tools`` bound and report which branch it took."""
        if not tools:
            return await self.invoke(messages)
        runnable = self._client.bind_tools(list(tools))
        result = await self._call(runnable, messages)
        message = _as_ai_message(result)
        calls = _parse_tool_calls(message)
        if calls:
            if [call.id for call in calls] != [raw.get("id") for raw in message.tool_calls]:
                # Tool messages must point at ids the provider can see in the history
                message = AIMessage(
                    content=message.content,
                    tool_calls=[
                        {"name": call.name, "args": call.args, "id": call.id, "type": "tool_call"} for call in calls
                    ],
                )
            return ToolCallsRequested(calls=calls, message=message)
        return FinalAnswer(content=extract_content(message), message=message)

    async def _call(self, runnable: Any, messages: Sequence[BaseMessage]) -> Any:
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(runnable.ainvoke(list(messages)), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            latency = time.perf_counter() - start
            observe_backend_call(profile=self.profile.value, success=False, latency=latency)
            logger.warning(
                "backend_call_timeout",
                profile=self.profile.value,
                model=self.model,
                timeout=self.timeout_seconds,
            )
            raise BackendTimeoutError(
                f"{self.profile.value} backend timed out after {self.timeout_seconds:.0f}s"
            ) from exc
        except Exception as exc:
            latency = time.perf_counter() - start
            observe_backend_call(profile=self.profile.value, success=False, latency=latency)
            logger.warning("backend_call_failed", profile=self.profile.value, model=self.model, error=str(exc))
            raise
        observe_backend_call(profile=self.profile.value, success=True, latency=time.perf_counter() - start)
        return result


@dataclass
class BackendPool:
    """Hands out one backend per profile so clients are only created once."""

    settings: Settings
    _backends: dict[ModelProfile, ReasoningBackendProtocol] = field(default_factory=dict)

    def get(self, profile: ModelProfile) -> ReasoningBackendProtocol:
        backend = self._backends.get(profile)
        if backend is None:
            backend = ReasoningBackend.from_settings(self.settings, profile)
            self._backends[profile] = backend
        return backend

    def register(self, profile: ModelProfile, backend: ReasoningBackendProtocol) -> None:
        self._backends[profile] = backend
