from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from ..services.records import RecordStore
from .base import InvocationMetadata, Tool, require_caller, tool


class StatsArgs(BaseModel):
    pass


def build_context_tools(store: RecordStore) -> list[Tool]:
    @tool(
        "get_user_stats",
        "Summarize the user's task completion and roadmap progress. Use it for progress or motivation questions.",
        StatsArgs,
    )
    async def get_user_stats(args: StatsArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        caller_id = require_caller(metadata, "User authentication required to view stats")
        tasks = await store.list_tasks(caller_id)
        roadmaps = await store.list_roadmaps(caller_id)
        completed = sum(1 for task in tasks if task.status == "completed")
        completion_rate = round(100 * completed / len(tasks)) if tasks else 0
        average_progress = round(sum(item.progress for item in roadmaps) / len(roadmaps)) if roadmaps else 0
        return {
            "success": True,
            "tasks": {
                "total": len(tasks),
                "completed": completed,
                "pending": sum(1 for task in tasks if task.status == "pending"),
                "in_progress": sum(1 for task in tasks if task.status == "in-progress"),
                "completion_rate": completion_rate,
            },
            "roadmaps": {
                "total": len(roadmaps),
                "completed": sum(1 for item in roadmaps if item.status == "completed"),
                "average_progress": average_progress,
            },
            "message": (
                f"{completed}/{len(tasks)} tasks completed ({completion_rate}%), "
                f"{len(roadmaps)} roadmap(s) at {average_progress}% average progress."
            ),
        }

    return [get_user_stats]
