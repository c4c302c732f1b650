from __future__ import annotations

import asyncio
import time
from typing import Collection, Sequence

from ..core.logging import get_logger
from ..core.metrics import observe_tool_latency, record_agent_tool_invocation
from ..schemas.tools import ToolCall, ToolResult
from .base import InvocationMetadata
from .exceptions import (
    CircuitBreakerOpenError,
    ToolError,
    ToolNotFoundError,
    ToolPolicyViolationError,
    ToolTimeoutError,
    ToolValidationError,
)
from .registry import ToolRegistry, normalize_tool_name

logger = get_logger(name=__name__)

__all__ = ["ToolExecutor", "execute_tool_calls"]


class ToolExecutor:
    """Runs backend-requested tool calls, isolating every call from its siblings.

    Whatever happens inside one call (unknown name, bad arguments, open
    circuit, timeout, exception in the implementation) ends up as a failed
    :class:`ToolResult`; the remaining calls still run.
    """

    def __init__(self, registry: ToolRegistry, *, timeout_seconds: float = 15.0) -> None:
        self.registry = registry
        self.timeout_seconds = timeout_seconds

    async def execute(
        self,
        calls: Sequence[ToolCall],
        metadata: InvocationMetadata,
        *,
        allowed: Collection[str] | None = None,
    ) -> list[ToolResult]:
        allowlist = {normalize_tool_name(name) for name in allowed} if allowed is not None else None
        results: list[ToolResult] = []
        for call in calls:
            results.append(await self._execute_one(call, metadata, allowlist))
        return results

    async def _execute_one(
        self,
        call: ToolCall,
        metadata: InvocationMetadata,
        allowlist: set[str] | None,
    ) -> ToolResult:
        agent = metadata.agent or "unknown"
        # Model-supplied names never become label values unless registered
        tool_label = self.registry.resolve(call.name) or "unknown"
        start = time.perf_counter()
        try:
            payload = await self._invoke(call, metadata, allowlist)
        except ToolError as exc:
            latency = time.perf_counter() - start
            self._record_failure(call, exc)
            record_agent_tool_invocation(agent=agent, tool=tool_label, outcome=_outcome_for(exc))
            logger.warning(
                "tool_invocation_failed",
                agent=agent,
                tool=call.name,
                call_id=call.id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return ToolResult(call_id=call.id, tool_name=call.name, success=False, error=str(exc), latency=latency)
        except Exception as exc:
            latency = time.perf_counter() - start
            self._record_failure(call, exc)
            record_agent_tool_invocation(agent=agent, tool=tool_label, outcome="error")
            logger.exception("tool_invocation_crashed", agent=agent, tool=call.name, call_id=call.id)
            return ToolResult(call_id=call.id, tool_name=call.name, success=False, error=str(exc), latency=latency)

        latency = time.perf_counter() - start
        self.registry.record_success(call.name)
        observe_tool_latency(tool=tool_label, latency=latency)
        record_agent_tool_invocation(agent=agent, tool=tool_label, outcome="success")
        logger.info("tool_invocation_completed", agent=agent, tool=call.name, call_id=call.id, latency=latency)
        return ToolResult(call_id=call.id, tool_name=call.name, success=True, payload=payload, latency=latency)

    async def _invoke(self, call: ToolCall, metadata: InvocationMetadata, allowlist: set[str] | None) -> str:
        tool = self.registry.get(call.name)
        if tool is None:
            raise ToolNotFoundError(f"Tool '{call.name}' not found")
        if allowlist is not None and normalize_tool_name(tool.name) not in allowlist:
            raise ToolPolicyViolationError(f"Tool '{tool.name}' is not available to the {metadata.agent or 'current'} agent")
        if self.registry.is_circuit_open(tool.name):
            raise CircuitBreakerOpenError(f"Tool '{tool.name}' is temporarily unavailable")
        try:
            return await asyncio.wait_for(tool.run(call.args, metadata), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise ToolTimeoutError(f"Tool '{tool.name}' timed out after {self.timeout_seconds:.0f}s") from exc

    def _record_failure(self, call: ToolCall, exc: Exception) -> None:
        # Caller mistakes say nothing about the tool's health
        if isinstance(exc, (ToolNotFoundError, ToolValidationError, ToolPolicyViolationError, CircuitBreakerOpenError)):
            return
        if self.registry.record_failure(call.name):
            logger.warning("tool_circuit_opened", tool=call.name)


def _outcome_for(exc: ToolError) -> str:
    if isinstance(exc, ToolNotFoundError):
        return "not_found"
    if isinstance(exc, ToolValidationError):
        return "invalid_arguments"
    if isinstance(exc, ToolPolicyViolationError):
        return "policy_violation"
    if isinstance(exc, CircuitBreakerOpenError):
        return "circuit_open"
    if isinstance(exc, ToolTimeoutError):
        return "timeout"
    return "failure"


async def execute_tool_calls(
    calls: Sequence[ToolCall],
    registry: ToolRegistry,
    metadata: InvocationMetadata,
    *,
    timeout_seconds: float = 15.0,
) -> list[ToolResult]:
    """Functional form of :meth:`ToolExecutor.execute` without an allowlist."""
    return await ToolExecutor(registry, timeout_seconds=timeout_seconds).execute(calls, metadata)
