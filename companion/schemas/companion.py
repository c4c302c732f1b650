from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from .agents import ConversationMessage, RoutingDecision


class CompanionRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=8000)
    language: str = Field("en", min_length=2, max_length=8)
    history: list[ConversationMessage] = Field(default_factory=list)
    context: dict[str, Any] = Field(default_factory=dict)
    conversation_id: str | None = None


class CompanionResponse(BaseModel):
    response: str
    agent: str
    routing: RoutingDecision | None = None
    error: bool = False
    timestamp: str
    conversation_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AgentHealth(BaseModel):
    agent: str
    profile: str
    status: Literal["ok", "unreachable", "skipped"]
    detail: str | None = None


class CompanionHealth(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    agents: list[AgentHealth] = Field(default_factory=list)
    graph_built: bool = False
    cache: dict[str, Any] = Field(default_factory=dict)
    metrics: dict[str, Any] = Field(default_factory=dict)
    timestamp: str
