"""Domain records the companion tools read and write, plus the store contract.

The real persistence layer lives outside this service; :class:`InMemoryRecordStore`
backs local runs and tests.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Literal, Protocol

from pydantic import BaseModel, Field

TaskStatus = Literal["pending", "in-progress", "completed"]
TaskPriority = Literal["high", "medium", "low"]
TaskCategory = Literal["study", "assignment", "project", "revision", "exam", "other"]
Difficulty = Literal["beginner", "intermediate", "advanced"]


def _new_id() -> str:
    return uuid.uuid4().hex[:24]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    caller_id: str
    title: str
    description: str = ""
    category: TaskCategory = "other"
    priority: TaskPriority = "medium"
    status: TaskStatus = "pending"
    due_date: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None


class RoadmapStep(BaseModel):
    number: int
    title: str
    phase: str
    duration: str | None = None
    completed: bool = False


class RoadmapRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    caller_id: str
    title: str
    topic: str
    difficulty: Difficulty = "beginner"
    description: str = ""
    steps: list[RoadmapStep] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def completed_steps(self) -> int:
        return sum(1 for step in self.steps if step.completed)

    @property
    def progress(self) -> int:
        if not self.steps:
            return 0
        return round(100 * self.completed_steps / len(self.steps))

    @property
    def status(self) -> Literal["not-started", "in-progress", "completed"]:
        if self.steps and self.completed_steps == len(self.steps):
            return "completed"
        if self.completed_steps:
            return "in-progress"
        return "not-started"


class RecordStore(Protocol):
    async def list_tasks(self, caller_id: str) -> list[TaskRecord]:
        ...

    async def get_task(self, caller_id: str, task_id: str) -> TaskRecord | None:
        ...

    async def save_task(self, task: TaskRecord) -> TaskRecord:
        ...

    async def delete_task(self, caller_id: str, task_id: str) -> TaskRecord | None:
        ...

    async def list_roadmaps(self, caller_id: str) -> list[RoadmapRecord]:
        ...

    async def get_roadmap(self, caller_id: str, roadmap_id: str) -> RoadmapRecord | None:
        ...

    async def save_roadmap(self, roadmap: RoadmapRecord) -> RoadmapRecord:
        ...


class InMemoryRecordStore:
    """Process-local store; every read returns copies so callers cannot mutate state."""

    def __init__(self) -> None:
        self._tasks: dict[str, TaskRecord] = {}
        self._roadmaps: dict[str, RoadmapRecord] = {}
        self._lock = asyncio.Lock()

    async def list_tasks(self, caller_id: str) -> list[TaskRecord]:
        return [task.model_copy(deep=True) for task in self._tasks.values() if task.caller_id == caller_id]

    async def get_task(self, caller_id: str, task_id: str) -> TaskRecord | None:
        task = self._tasks.get(task_id)
        if task is None or task.caller_id != caller_id:
            return None
        return task.model_copy(deep=True)

    async def save_task(self, task: TaskRecord) -> TaskRecord:
        async with self._lock:
            self._tasks[task.id] = task.model_copy(deep=True)
        return task

    async def delete_task(self, caller_id: str, task_id: str) -> TaskRecord | None:
        async with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.caller_id != caller_id:
                return None
            return self._tasks.pop(task_id)

    async def list_roadmaps(self, caller_id: str) -> list[RoadmapRecord]:
        return [
            roadmap.model_copy(deep=True)
            for roadmap in self._roadmaps.values()
            if roadmap.caller_id == caller_id
        ]

    async def get_roadmap(self, caller_id: str, roadmap_id: str) -> RoadmapRecord | None:
        roadmap = self._roadmaps.get(roadmap_id)
        if roadmap is None or roadmap.caller_id != caller_id:
            return None
        return roadmap.model_copy(deep=True)

    async def save_roadmap(self, roadmap: RoadmapRecord) -> RoadmapRecord:
        async with self._lock:
            self._roadmaps[roadmap.id] = roadmap.model_copy(deep=True)
        return roadmap
