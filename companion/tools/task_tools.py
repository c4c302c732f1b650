from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Literal

from pydantic import BaseModel, Field

from ..services.records import RecordStore, TaskCategory, TaskPriority, TaskRecord, TaskStatus
from .base import InvocationMetadata, Tool, require_caller, tool
from .exceptions import ToolInvocationError

Clock = Callable[[], datetime]

_RELATIVE_DAYS = re.compile(r"^in\s+(\d{1,3})\s+days?$")
_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_due_date(value: str | None, *, now: datetime) -> datetime | None:
    """Parse ISO dates and a handful of natural phrases ("tomorrow", "in 3 days", "friday")."""
    if not value:
        return None
    text = value.strip().lower()
    today = now.date()
    target: date | None = None
    if text == "today":
        target = today
    elif text == "tomorrow":
        target = today + timedelta(days=1)
    elif text == "next week":
        target = today + timedelta(days=7)
    elif (match := _RELATIVE_DAYS.match(text)) is not None:
        target = today + timedelta(days=int(match.group(1)))
    elif text.removeprefix("next ").strip() in _WEEKDAYS:
        weekday = _WEEKDAYS.index(text.removeprefix("next ").strip())
        delta = (weekday - today.weekday()) % 7 or 7
        target = today + timedelta(days=delta)
    if target is not None:
        return datetime.combine(target, time(23, 59), tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise ToolInvocationError(f"Could not understand due date '{value}'") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _task_summary(task: TaskRecord) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "category": task.category,
        "priority": task.priority,
        "status": task.status,
        "due_date": task.due_date.isoformat() if task.due_date else None,
    }


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


class CreateTaskArgs(BaseModel):
    title: str = Field(..., min_length=1, max_length=200, description="The task title")
    description: str | None = Field(None, description="Additional details about the task")
    category: TaskCategory = Field("other", description="Task category")
    priority: TaskPriority = Field("medium", description="Task priority level")
    due_date: str | None = Field(
        None, description="Due date in ISO format (YYYY-MM-DD) or a phrase like 'tomorrow' or 'in 3 days'"
    )


class ListTasksArgs(BaseModel):
    status: Literal["pending", "in-progress", "completed", "all"] = Field("pending")
    category: TaskCategory | None = None
    priority: TaskPriority | None = None
    limit: int = Field(10, ge=1, le=50, description="Maximum number of tasks to return")


class UpdateTaskArgs(BaseModel):
    task_id: str = Field(..., min_length=1, description="The task ID to update")
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: str | None = Field(None, description="New due date in ISO format")


class TaskIdArgs(BaseModel):
    task_id: str = Field(..., min_length=1, description="The ID of the task")


class DeadlineArgs(BaseModel):
    days: int = Field(7, ge=0, le=365, description="Number of days to look ahead")
    include_overdue: bool = Field(True, description="Include overdue tasks")


_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


def build_task_tools(store: RecordStore, *, clock: Clock = _utcnow) -> list[Tool]:
    @tool(
        "create_task",
        "Create a new task for the user with title, category, priority and optional due date. "
        "Use this when the user wants to add a task, reminder or assignment.",
        CreateTaskArgs,
    )
    async def create_task(args: CreateTaskArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        caller_id = require_caller(metadata, "User authentication required to create tasks")
        task = TaskRecord(
            caller_id=caller_id,
            title=args.title.strip(),
            description=(args.description or "").strip(),
            category=args.category,
            priority=args.priority,
            due_date=parse_due_date(args.due_date, now=clock()),
        )
        await store.save_task(task)
        due = f", due {task.due_date.date().isoformat()}" if task.due_date else ""
        return {
            "success": True,
            "task": _task_summary(task),
            "message": f'Created task: "{task.title}" ({task.priority} priority{due})',
        }

    @tool(
        "list_tasks",
        "List the user's tasks with optional filters. Use this when the user asks to see their tasks or to-do list.",
        ListTasksArgs,
    )
    async def list_tasks(args: ListTasksArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        caller_id = require_caller(metadata, "User authentication required to view tasks")
        tasks = await store.list_tasks(caller_id)
        if args.status != "all":
            tasks = [task for task in tasks if task.status == args.status]
        if args.category:
            tasks = [task for task in tasks if task.category == args.category]
        if args.priority:
            tasks = [task for task in tasks if task.priority == args.priority]
        far_future = datetime.max.replace(tzinfo=timezone.utc)
        tasks.sort(key=lambda task: (_PRIORITY_ORDER[task.priority], task.due_date or far_future))
        tasks = tasks[: args.limit]
        suffix = f" ({args.status})" if args.status != "all" else ""
        return {
            "success": True,
            "count": len(tasks),
            "tasks": [_task_summary(task) for task in tasks],
            "message": f"Found {_plural(len(tasks), 'task')}{suffix}",
        }

    @tool(
        "update_task",
        "Update an existing task's title, description, status, priority or due date.",
        UpdateTaskArgs,
    )
    async def update_task(args: UpdateTaskArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        caller_id = require_caller(metadata, "User authentication required to update tasks")
        task = await store.get_task(caller_id, args.task_id)
        if task is None:
            raise ToolInvocationError("Task not found or you don't have permission to update it")
        changes: dict[str, Any] = args.model_dump(exclude={"task_id", "due_date"}, exclude_none=True)
        if args.due_date is not None:
            changes["due_date"] = parse_due_date(args.due_date, now=clock())
        if changes.get("status") == "completed" and task.status != "completed":
            changes["completed_at"] = clock()
        updated = task.model_copy(update=changes)
        await store.save_task(updated)
        return {
            "success": True,
            "task": _task_summary(updated),
            "updated_fields": sorted(changes),
            "message": f'Updated task: "{updated.title}"',
        }

    @tool("delete_task", "Delete a task permanently by its ID.", TaskIdArgs)
    async def delete_task(args: TaskIdArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        caller_id = require_caller(metadata, "User authentication required to delete tasks")
        task = await store.delete_task(caller_id, args.task_id)
        if task is None:
            raise ToolInvocationError("Task not found or you don't have permission to delete it")
        return {"success": True, "task_id": task.id, "message": f'Deleted task: "{task.title}"'}

    @tool(
        "get_deadlines",
        "Get unfinished tasks due within the next N days. Use this when the user asks what is due soon.",
        DeadlineArgs,
    )
    async def get_deadlines(args: DeadlineArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        caller_id = require_caller(metadata, "User authentication required to view deadlines")
        now = clock()
        horizon = now + timedelta(days=args.days)
        deadlines: list[dict[str, Any]] = []
        for task in await store.list_tasks(caller_id):
            if task.status == "completed" or task.due_date is None or task.due_date > horizon:
                continue
            days_until = math.ceil((task.due_date - now).total_seconds() / 86400)
            if days_until < 0 and not args.include_overdue:
                continue
            deadlines.append(
                {
                    "id": task.id,
                    "title": task.title,
                    "priority": task.priority,
                    "due_date": task.due_date.isoformat(),
                    "days_until": days_until,
                    "is_overdue": days_until < 0,
                }
            )
        deadlines.sort(key=lambda item: item["due_date"])
        overdue = sum(1 for item in deadlines if item["is_overdue"])
        overdue_note = f" ({overdue} overdue)" if overdue else ""
        return {
            "success": True,
            "days": args.days,
            "count": len(deadlines),
            "overdue": overdue,
            "deadlines": deadlines,
            "message": f"Found {_plural(len(deadlines), 'deadline')} in next {args.days} days{overdue_note}",
        }

    @tool(
        "complete_task",
        "Mark a task as completed. Use this when the user says they finished a task.",
        TaskIdArgs,
    )
    async def complete_task(args: TaskIdArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        caller_id = require_caller(metadata, "User authentication required to complete tasks")
        task = await store.get_task(caller_id, args.task_id)
        if task is None:
            raise ToolInvocationError("Task not found or you don't have permission to complete it")
        completed = task.model_copy(update={"status": "completed", "completed_at": clock()})
        await store.save_task(completed)
        return {
            "success": True,
            "task": _task_summary(completed),
            "message": f'Great job! Completed: "{completed.title}"',
        }

    return [create_task, list_tasks, update_task, delete_task, get_deadlines, complete_task]
