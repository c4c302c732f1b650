from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ToolCall(BaseModel):
    """A single tool invocation requested by the reasoning backend."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    call_id: str
    tool_name: str
    success: bool
    payload: str | None = None
    error: str | None = None
    latency: float = 0.0

    def as_message_content(self) -> str:
        if self.success:
            return self.payload or ""
        return f"Error in {self.tool_name}: {self.error or 'unknown error'}"
