from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from ..services.records import Difficulty, RecordStore, RoadmapRecord, RoadmapStep
from .base import InvocationMetadata, Tool, require_caller, tool
from .exceptions import ToolInvocationError


class RoadmapPhase(BaseModel):
    name: str = Field(..., min_length=1, description="Phase name, e.g. 'Foundation'")
    tasks: list[str] = Field(..., min_length=1, description="Learning tasks or topics in this phase")
    duration: str | None = Field(None, description="Estimated duration, e.g. '1 week'")


class CreateRoadmapArgs(BaseModel):
    title: str = Field(..., min_length=3, max_length=100, description="Roadmap title")
    topic: str = Field(..., min_length=1, description="The main topic or technology to learn")
    difficulty: Difficulty = Field("beginner")
    phases: list[RoadmapPhase] = Field(..., min_length=1)
    description: str | None = None


class ListRoadmapsArgs(BaseModel):
    status: Literal["all", "in-progress", "completed"] = Field("all")
    limit: int = Field(10, ge=1, le=50)


class RoadmapIdArgs(BaseModel):
    roadmap_id: str = Field(..., min_length=1, description="The ID of the roadmap")


class UpdateProgressArgs(BaseModel):
    roadmap_id: str = Field(..., min_length=1)
    step_number: int = Field(..., ge=1, description="The step number to mark")
    completed: bool = Field(True, description="Whether the step is completed")


def _overview(roadmap: RoadmapRecord) -> dict[str, Any]:
    return {
        "id": roadmap.id,
        "title": roadmap.title,
        "topic": roadmap.topic,
        "difficulty": roadmap.difficulty,
        "progress": roadmap.progress,
        "completed_steps": roadmap.completed_steps,
        "total_steps": len(roadmap.steps),
        "status": roadmap.status,
    }


def build_roadmap_tools(store: RecordStore) -> list[Tool]:
    @tool(
        "create_roadmap",
        "Create a personalized learning roadmap made of phases, each with concrete learning tasks.",
        CreateRoadmapArgs,
    )
    async def create_roadmap(args: CreateRoadmapArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        caller_id = require_caller(metadata, "Please log in to create a roadmap.")
        steps: list[RoadmapStep] = []
        for phase in args.phases:
            for item in phase.tasks:
                steps.append(
                    RoadmapStep(number=len(steps) + 1, title=item, phase=phase.name, duration=phase.duration)
                )
        roadmap = RoadmapRecord(
            caller_id=caller_id,
            title=args.title,
            topic=args.topic,
            difficulty=args.difficulty,
            description=args.description or "",
            steps=steps,
        )
        await store.save_roadmap(roadmap)
        return {
            "success": True,
            "action": "navigate",
            "route": f"/roadmaps/{roadmap.id}",
            "roadmap": _overview(roadmap),
            "message": (
                f'Created your "{roadmap.title}" roadmap with {len(args.phases)} phases '
                f"and {len(steps)} learning steps!"
            ),
        }

    @tool("get_user_roadmaps", "List the user's roadmaps with their progress.", ListRoadmapsArgs)
    async def get_user_roadmaps(args: ListRoadmapsArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        caller_id = require_caller(metadata, "Please log in to view your roadmaps.")
        roadmaps = await store.list_roadmaps(caller_id)
        if args.status == "completed":
            roadmaps = [item for item in roadmaps if item.status == "completed"]
        elif args.status == "in-progress":
            roadmaps = [item for item in roadmaps if item.status != "completed"]
        roadmaps.sort(key=lambda item: item.created_at, reverse=True)
        roadmaps = roadmaps[: args.limit]
        suffix = f" ({args.status})" if args.status != "all" else ""
        noun = "roadmap" if len(roadmaps) == 1 else "roadmaps"
        return {
            "success": True,
            "count": len(roadmaps),
            "roadmaps": [_overview(item) for item in roadmaps],
            "message": f"Found {len(roadmaps)} {noun}{suffix}.",
        }

    @tool("get_roadmap_details", "Show the phases and steps of one roadmap.", RoadmapIdArgs)
    async def get_roadmap_details(args: RoadmapIdArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        caller_id = require_caller(metadata, "Please log in to view roadmap details.")
        roadmap = await store.get_roadmap(caller_id, args.roadmap_id)
        if roadmap is None:
            raise ToolInvocationError("Roadmap not found.")
        phases: dict[str, list[dict[str, Any]]] = {}
        for step in roadmap.steps:
            phases.setdefault(step.phase, []).append(
                {"number": step.number, "title": step.title, "completed": step.completed}
            )
        next_step = next((step for step in roadmap.steps if not step.completed), None)
        return {
            "success": True,
            "roadmap": _overview(roadmap),
            "phases": [{"name": name, "steps": steps} for name, steps in phases.items()],
            "next_step": next_step.title if next_step else None,
            "message": (
                f'"{roadmap.title}" - {roadmap.progress}% complete '
                f"({roadmap.completed_steps}/{len(roadmap.steps)} steps)"
            ),
        }

    @tool("update_roadmap_progress", "Mark a roadmap step as completed or not completed.", UpdateProgressArgs)
    async def update_roadmap_progress(args: UpdateProgressArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        caller_id = require_caller(metadata, "Please log in to update your progress.")
        roadmap = await store.get_roadmap(caller_id, args.roadmap_id)
        if roadmap is None:
            raise ToolInvocationError("Roadmap not found.")
        step = next((item for item in roadmap.steps if item.number == args.step_number), None)
        if step is None:
            raise ToolInvocationError(f"Step {args.step_number} not found in this roadmap.")
        step.completed = args.completed
        await store.save_roadmap(roadmap)
        verb = "Marked" if args.completed else "Unmarked"
        return {
            "success": True,
            "roadmap": _overview(roadmap),
            "message": f'{verb} step {step.number} "{step.title}". Progress: {roadmap.progress}%',
        }

    return [create_roadmap, get_user_roadmaps, get_roadmap_details, update_roadmap_progress]
