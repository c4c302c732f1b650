from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentId(str, Enum):
    LEARNING = "learning"
    TASK = "task"
    CODE = "code"
    ROADMAP = "roadmap"
    GENERAL = "general"


SYSTEM_AGENT = "system"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


Confidence = Annotated[float, Field(ge=0.0, le=1.0)]


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def coerce_content(value: Any) -> str:
    """Flatten backend content into plain text.

    Chat models may hand back a string, a list of content parts (strings or
    ``{"type": "text", "text": ...}`` blocks), a single part, or nothing at
    all. Anything else is rendered as JSON so callers always see ``str``.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return "".join(coerce_content(part) for part in value)
    if isinstance(value, dict):
        text = value.get("text")
        if isinstance(text, str):
            return text
        if value.get("type") not in (None, "text"):
            return ""
    text_attr = getattr(value, "text", None)
    if isinstance(text_attr, str):
        return text_attr
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(value)


def clamp_confidence(value: Any, *, default: float = 0.5) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return min(1.0, max(0.0, number))


class ConversationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str

    @field_validator("content", mode="before")
    @classmethod
    def _flatten_content(cls, value: Any) -> str:
        return coerce_content(value)


class RoutingDecision(BaseModel):
    """Outcome of classifying a message: which agent handles it and how sure we are."""

    model_config = ConfigDict(frozen=True)

    agent: str
    confidence: Confidence = 0.5
    reasoning: str = ""

    @field_validator("agent", mode="before")
    @classmethod
    def _normalize_agent(cls, value: Any) -> str:
        if isinstance(value, AgentId):
            return value.value
        text = str(value or "").strip().lower()
        return text or AgentId.GENERAL.value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return clamp_confidence(value)


class AgentResponse(BaseModel):
    """Normalized agent output. Agents may attach extra metadata fields."""

    model_config = ConfigDict(extra="allow")

    agent: str
    content: str = ""
    timestamp: str = Field(default_factory=utc_timestamp)
    error: bool = False

    @field_validator("agent", mode="before")
    @classmethod
    def _agent_name(cls, value: Any) -> str:
        if isinstance(value, AgentId):
            return value.value
        return str(value)

    @field_validator("content", mode="before")
    @classmethod
    def _flatten_content(cls, value: Any) -> str:
        return coerce_content(value)

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class OrchestrationResult(BaseModel):
    response: AgentResponse
    routed_to: str
    routing: RoutingDecision | None = None
