"""Failures raised while resolving or running a domain tool.

The executor turns every one of these into a failed ``ToolResult`` so the
backend sees the message instead of the agent crashing.
"""

from __future__ import annotations


class ToolError(RuntimeError):
    pass


class ToolNotFoundError(ToolError):
    """The backend asked for a tool the registry does not know."""


class ToolPolicyViolationError(ToolError):
    """The tool exists but is not in the calling agent's toolset."""


class ToolValidationError(ToolError, ValueError):
    """Arguments from the backend did not match the tool's schema."""


class ToolInvocationError(ToolError):
    """The tool ran and refused the request (missing record, missing login, ...)."""


class ToolTimeoutError(ToolInvocationError):
    pass


class CircuitBreakerOpenError(ToolInvocationError):
    """The tool failed too often recently and is cooling down."""
