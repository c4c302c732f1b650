from __future__ import annotations

import re
from typing import Any

from ..orchestration.context import RequestContext
from ..schemas.agents import AgentId
from ..services.llm import ModelProfile
from ..tools.catalog import AGENT_TOOLSETS
from .base import AgentConfig, BaseAgent

_RESPONSE_TYPES = (
    ("greeting", re.compile(r"^\s*(hi|hello|hey|good (morning|afternoon|evening)|assalamu|নমস্কার|হ্যালো)\b", re.I)),
    ("gratitude", re.compile(r"\b(thanks|thank you|thx|appreciate|ধন্যবাদ)\b", re.I)),
    ("help", re.compile(r"\b(help|how do i use|what can you do|confused|lost)\b", re.I)),
    ("support", re.compile(r"\b(stressed|tired|overwhelmed|anxious|demotivated|give up|burn(ed|t)? out)\b", re.I)),
)


def classify_response_type(message: str) -> str:
    for label, pattern in _RESPONSE_TYPES:
        if pattern.search(message or ""):
            return label
    return "general"


class GeneralAgent(BaseAgent):
    config = AgentConfig(
        agent_id=AgentId.GENERAL,
        description="Greets learners, handles small talk and motivation, and moves them around the platform.",
        system_prompt=(
            "You are a friendly learning companion on a platform for computer science students. "
            "Handle greetings, thanks, motivation and general questions warmly and briefly. "
            "When the learner wants to go somewhere on the platform, use the navigation tools. "
            "When they ask how they are doing, check their stats before answering. "
            "Keep answers short and encouraging."
        ),
        profile=ModelProfile.CREATIVE,
        tool_names=AGENT_TOOLSETS[AgentId.GENERAL],
        error_key="agents.general.error",
    )

    def describe(self, message: str, context: RequestContext) -> dict[str, Any]:
        return {"response_type": classify_response_type(message)}
