from __future__ import annotations

import re
from typing import Any

from ..core.messages import get_message
from ..orchestration.context import RequestContext
from ..schemas.agents import AgentId
from ..services.llm import ModelProfile
from ..tools.catalog import AGENT_TOOLSETS
from ..tools.code_tools import detect_code_language
from .base import AgentConfig, BaseAgent, ContextBundle

_MENTIONED_LANGUAGES = (
    ("typescript", re.compile(r"\b(typescript|ts)\b", re.I)),
    ("javascript", re.compile(r"\b(javascript|js|node(\.js)?|react|vue|angular)\b", re.I)),
    ("python", re.compile(r"\b(python|py|django|flask|pandas)\b", re.I)),
    ("java", re.compile(r"\b(java|spring|android)\b", re.I)),
    ("cpp", re.compile(r"(c\+\+|\bcpp\b)", re.I)),
    ("c", re.compile(r"\b(c language|gcc|in c)\b", re.I)),
    ("go", re.compile(r"\b(golang|go lang)\b", re.I)),
    ("rust", re.compile(r"\b(rust|cargo)\b", re.I)),
    ("sql", re.compile(r"\b(sql|mysql|postgres(ql)?|sqlite)\b", re.I)),
)

_QUERY_TYPES = (
    ("debug", ("debug", "error", "bug", "fix", "exception", "crash", "traceback")),
    ("review", ("review", "improve", "optimize", "refactor", "clean up")),
    ("explain", ("explain", "what does", "how does", "understand")),
    ("generate", ("write", "create", "generate", "implement", "build")),
)


def detect_message_language(message: str) -> str | None:
    """Language named in the message, falling back to sniffing any embedded code."""
    for language, pattern in _MENTIONED_LANGUAGES:
        if pattern.search(message or ""):
            return language
    return detect_code_language(message)


def classify_code_query(message: str) -> str:
    lowered = (message or "").lower()
    for label, keywords in _QUERY_TYPES:
        if any(keyword in lowered for keyword in keywords):
            return label
    return "general"


class CodeAgent(BaseAgent):
    config = AgentConfig(
        agent_id=AgentId.CODE,
        description="Debugs, reviews, explains and writes code.",
        system_prompt=(
            "You are a senior software engineer mentoring a student. When given code, inspect it with your "
            "tools before answering. Explain the root cause of bugs, not only the fix. Show corrected code in "
            "fenced blocks with the language tag, and keep explanations at the learner's level."
        ),
        profile=ModelProfile.PRECISE,
        tool_names=AGENT_TOOLSETS[AgentId.CODE],
        error_key="agents.code.error",
    )

    async def load_context(self, context: RequestContext) -> ContextBundle:
        if context.display_name:
            encouragement = get_message("support.encouragement", context.language)
            return ContextBundle(sections=[f"Close with a short encouragement such as: {encouragement}"])
        return ContextBundle()

    def describe(self, message: str, context: RequestContext) -> dict[str, Any]:
        return {
            "code_language": detect_message_language(message),
            "query_type": classify_code_query(message),
        }
