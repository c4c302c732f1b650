from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, Field

from .base import InvocationMetadata, Tool, tool

Level = Literal["beginner", "intermediate", "advanced"]

_PHASE_TEMPLATES: dict[Level, list[tuple[str, list[str], str]]] = {
    "beginner": [
        ("Fundamentals", ["Introduction to {topic}", "Core concepts and terminology", "Setting up your environment",
                          "A first small project"], "Build a simple {topic} project"),
        ("Intermediate Skills", ["Common patterns and best practices", "Working with real-world data",
                                 "Testing and debugging"], "Build a medium-sized application"),
        ("Production", ["Performance basics", "Security basics", "Deployment"], "Deploy a {topic} application"),
    ],
    "intermediate": [
        ("Deepening", ["Advanced {topic} patterns", "Reading open source {topic} code", "Testing strategies"],
         "Refactor an existing project using new patterns"),
        ("Production", ["Performance profiling", "Security hardening", "Deployment and monitoring"],
         "Ship a {topic} project with tests and CI"),
    ],
    "advanced": [
        ("Mastery", ["{topic} internals", "Architecture trade-offs", "Scaling and optimization"],
         "Contribute to a {topic} open source project"),
    ],
}

_LEVEL_PROMPTS: dict[Level, str] = {
    "beginner": "Use plain language, avoid jargon, and build on everyday analogies.",
    "intermediate": "Assume the basics; focus on how and why it works and common pitfalls.",
    "advanced": "Cover edge cases, internals and trade-offs against alternatives.",
}


class ExplainConceptArgs(BaseModel):
    concept: str = Field(..., min_length=1, description="The concept to explain, e.g. 'recursion'")
    level: Level = Field("beginner", description="The learner's knowledge level")
    include_example: bool = True
    include_analogy: bool = True


class LearningPathArgs(BaseModel):
    topic: str = Field(..., min_length=1, description="Topic for the learning path, e.g. 'React'")
    current_level: Level = Field("beginner")
    hours_per_week: int = Field(5, ge=1, le=80, description="Hours available per week")
    goals: list[str] | None = Field(None, description="Specific learning goals")


class PracticeArgs(BaseModel):
    topic: str = Field(..., min_length=1)
    difficulty: Literal["easy", "medium", "hard"] = Field("medium")
    count: int = Field(3, ge=1, le=10)
    include_hints: bool = True


def build_learning_tools() -> list[Tool]:
    @tool(
        "explain_concept",
        "Produce a teaching outline for a concept at the learner's level. Use it to structure explanations.",
        ExplainConceptArgs,
    )
    def explain_concept(args: ExplainConceptArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        sections = ["definition", "why it matters", "how it works"]
        if args.include_analogy:
            sections.append("real-world analogy")
        if args.include_example:
            sections.append("code example")
        sections.extend(["common mistakes", "check your understanding"])
        return {
            "success": True,
            "concept": args.concept,
            "level": args.level,
            "outline": sections,
            "guidance": _LEVEL_PROMPTS[args.level],
            "message": f"Outline ready for explaining {args.concept} at {args.level} level.",
        }

    @tool(
        "create_learning_path",
        "Plan a phased learning path for a topic sized to the learner's weekly hours.",
        LearningPathArgs,
    )
    def create_learning_path(args: LearningPathArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        phases = []
        total_topics = 0
        for number, (title, topics, milestone) in enumerate(_PHASE_TEMPLATES[args.current_level], start=1):
            filled = [item.format(topic=args.topic) for item in topics]
            total_topics += len(filled)
            phases.append(
                {
                    "phase": number,
                    "title": title,
                    "topics": filled,
                    "milestone": milestone.format(topic=args.topic),
                }
            )
        # Roughly four focused hours per topic
        weeks = max(1, math.ceil(total_topics * 4 / args.hours_per_week))
        return {
            "success": True,
            "topic": args.topic,
            "level": args.current_level,
            "hours_per_week": args.hours_per_week,
            "estimated_weeks": weeks,
            "goals": args.goals or [f"Master {args.topic}", "Build real-world projects"],
            "phases": phases,
            "message": f"Learning path for {args.topic}: {len(phases)} phase(s), about {weeks} week(s).",
        }

    @tool("generate_practice", "Generate practice exercise prompts for a topic.", PracticeArgs)
    def generate_practice(args: PracticeArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        kinds = ["implement", "debug", "explain", "extend", "optimize"]
        exercises = []
        for index in range(args.count):
            kind = kinds[index % len(kinds)]
            exercise: dict[str, Any] = {
                "number": index + 1,
                "kind": kind,
                "difficulty": args.difficulty,
                "prompt": f"{kind.capitalize()} a small {args.topic} example ({args.difficulty}).",
            }
            if args.include_hints:
                exercise["hint"] = f"Start from the simplest {args.topic} case and grow it step by step."
            exercises.append(exercise)
        return {
            "success": True,
            "topic": args.topic,
            "exercises": exercises,
            "message": f"Generated {len(exercises)} {args.difficulty} exercise(s) on {args.topic}.",
        }

    return [explain_concept, create_learning_path, generate_practice]
