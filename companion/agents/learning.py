from __future__ import annotations

import re
from typing import Any

from ..orchestration.context import RequestContext
from ..schemas.agents import AgentId
from ..services.llm import ModelProfile
from ..tools.catalog import AGENT_TOOLSETS
from .base import AgentConfig, BaseAgent, ContextBundle

_TOPIC_PATTERN = re.compile(
    r"\b(javascript|typescript|python|java|react|node|algorithms?|data structures?|arrays?|loops?|functions?|"
    r"class(?:es)?|oop|recursion|databases?|sql|apis?|git|html|css|pointers?|linked lists?|trees?|graphs?)\b",
    re.I,
)


def extract_topic(message: str) -> str | None:
    match = _TOPIC_PATTERN.search(message or "")
    return match.group(1).lower() if match else None


def _title_of(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        title = value.get("title") or value.get("name")
        return str(title) if title else None
    return None


class LearningAgent(BaseAgent):
    config = AgentConfig(
        agent_id=AgentId.LEARNING,
        description="Explains programming concepts step by step with analogies, examples and practice.",
        system_prompt=(
            "You are a patient programming tutor. Explain concepts step by step, starting from what the "
            "learner already knows. Use a real-world analogy and a short code example where it helps, "
            "point out common mistakes, and end with a quick question that checks understanding. "
            "Use the learning tools to structure explanations, plan learning paths and generate practice."
        ),
        profile=ModelProfile.CREATIVE,
        tool_names=AGENT_TOOLSETS[AgentId.LEARNING],
        error_key="agents.learning.error",
    )

    async def load_context(self, context: RequestContext) -> ContextBundle:
        sections: list[str] = []
        roadmap = _title_of(context.get(RequestContext.CURRENT_ROADMAP))
        if roadmap:
            sections.append(f"The learner is currently following the roadmap: {roadmap}.")
        quest = _title_of(context.get(RequestContext.CURRENT_QUEST))
        if quest:
            sections.append(f"The learner is working on the quest: {quest}.")
        return ContextBundle(sections=sections)

    def describe(self, message: str, context: RequestContext) -> dict[str, Any]:
        return {"topic": extract_topic(message)}
