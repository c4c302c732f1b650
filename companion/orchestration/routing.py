from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

from ..agents.base import build_message_sequence
from ..core.logging import get_logger
from ..schemas.agents import AgentId, RoutingDecision
from ..services.llm import ReasoningBackendProtocol
from ..utils.json_encoding import extract_json_object

logger = get_logger(name=__name__)


def _group(*patterns: str) -> re.Pattern[str]:
    return re.compile("|".join(f"(?:{pattern})" for pattern in patterns), re.IGNORECASE)


# Checked in order; the first group with a match decides the agent.
_HEURISTIC_GROUPS: Sequence[tuple[AgentId, re.Pattern[str]]] = (
    (
        AgentId.TASK,
        _group(
            r"\b(create|add|make|set|new)\s+(a\s+|an\s+)?(task|reminder|to-?do)\b",
            r"\b(my|the)\s+(tasks|to-?dos?|to-?do list|deadlines?)\b",
            r"\b(remind me|due (date|tomorrow|today)|deadline)",
            r"\b(complete|finish|delete|remove|mark)\b.*\btask\b",
            r"টাস্ক|কাজের তালিকা|রিমাইন্ডার",
        ),
    ),
    (
        AgentId.ROADMAP,
        _group(
            r"\broad\s?maps?\b",
            r"\bwhat should i (learn|study) next\b",
            r"\b(learning|career|study) (path|plan)\b",
            r"\bmy (progress|next step)\b",
            r"রোডম্যাপ",
        ),
    ),
    (
        AgentId.CODE,
        _group(
            r"\b(debug|bug|stack ?trace|traceback|exception|syntax error|compile error|segfault)\b",
            r"\b(review|fix|refactor|optimi[sz]e)\s+(my|this|the)\s+code\b",
            r"\bmy (code|function|loop|program|script)\b",
            r"\bwhy (is|does|doesn't|isn't|won't) my\b",
            r"\binfinite loop\b",
            r"```",
            r"\b(def|function|class|public static|#include)\s+\w+",
        ),
    ),
    (
        AgentId.LEARNING,
        _group(
            r"^\s*(explain|define|describe)\b",
            r"\bwhat (is|are) (a |an |the )?[\w\s-]{2,40}\??$",
            r"\bhow does [\w\s-]+ work\b",
            r"\b(difference between|teach me|help me understand|tutorial on)\b",
            r"ব্যাখ্যা|বুঝিয়ে",
        ),
    ),
    (
        AgentId.GENERAL,
        _group(
            r"\b(go to|take me to|open|navigate to|show me)\s+(the\s+)?(dashboard|playground|leaderboard|quests?|settings|profile|learn page|tasks page)\b",
        ),
    ),
)


def fast_route(message: Any) -> AgentId | None:
    """Keyword classification that skips the router model for obvious intents."""
    if not isinstance(message, str) or not message.strip():
        return None
    for agent, pattern in _HEURISTIC_GROUPS:
        if pattern.search(message):
            return agent
    return None


ROUTER_SYSTEM_PROMPT = """You are an intent classification agent for a learning platform for computer science students.

Decide which specialized agent should handle the user's message.

Available agents:
1. "learning" - concept explanations, CS topics, programming concepts, tutorials, course questions
2. "task" - creating tasks, reminders, deadlines, to-do items, scheduling, assignments
3. "code" - code review, debugging, error explanations, code examples, programming help
4. "roadmap" - roadmap progress, what to learn next, skill tracking, career guidance
5. "general" - greetings, small talk, motivation, navigation, unclear queries, anything else

Respond with ONLY a JSON object in this exact format:
{"agent": "learning" | "task" | "code" | "roadmap" | "general", "confidence": 0.0 to 1.0, "reasoning": "brief explanation"}

Examples:
- "তুমি কেমন আছ?" -> {"agent": "general", "confidence": 0.95, "reasoning": "Greeting in Bengali"}
- "Explain recursion" -> {"agent": "learning", "confidence": 0.95, "reasoning": "Concept explanation request"}
- "Create a task for algorithms assignment" -> {"agent": "task", "confidence": 0.9, "reasoning": "Task creation request"}
- "Why is my for loop infinite?" -> {"agent": "code", "confidence": 0.85, "reasoning": "Debugging help"}
- "What should I learn next?" -> {"agent": "roadmap", "confidence": 0.8, "reasoning": "Learning path guidance"}"""


class RouterAgent:
    """Classifies a message with the router model.

    ``classify`` never raises: backend failures, empty replies and replies
    without a JSON object all fall back to the general agent.
    """

    name = "router"

    def __init__(
        self,
        backend: ReasoningBackendProtocol,
        *,
        language: str = "en",
        fallback_confidence: float = 0.3,
    ) -> None:
        self.backend = backend
        self.language = language
        self.fallback_confidence = fallback_confidence

    async def classify(self, message: str, context: Mapping[str, Any] | None = None) -> RoutingDecision:
        messages = build_message_sequence(ROUTER_SYSTEM_PROMPT, None, message, self.language)
        try:
            answer = await self.backend.invoke(messages)
        except Exception as exc:
            logger.error("router_classification_failed", error=str(exc), error_type=type(exc).__name__)
            return self._fallback(f"Routing error: {exc}", self.fallback_confidence)

        content = (answer.content or "").strip()
        if not content:
            logger.warning("router_empty_response")
            return self._fallback("Empty response from model", self.fallback_confidence)

        parsed = extract_json_object(content)
        if parsed is None:
            logger.warning("router_unparsable_response", preview=content[:100])
            return self._fallback("Could not parse routing decision", 0.5)

        reasoning = parsed.get("reasoning")
        decision = RoutingDecision(
            agent=parsed.get("agent") or AgentId.GENERAL,
            confidence=parsed.get("confidence", 0.5),
            reasoning=reasoning if isinstance(reasoning, str) else "",
        )
        logger.debug("router_classified", agent=decision.agent, confidence=decision.confidence)
        return decision

    @staticmethod
    def _fallback(reasoning: str, confidence: float) -> RoutingDecision:
        return RoutingDecision(agent=AgentId.GENERAL, confidence=confidence, reasoning=reasoning)
