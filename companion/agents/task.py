from __future__ import annotations

from datetime import timezone

from ..core.logging import get_logger
from ..orchestration.context import RequestContext
from ..schemas.agents import AgentId
from ..services.llm import ModelProfile, ReasoningBackendProtocol
from ..services.records import RecordStore
from ..tools.catalog import AGENT_TOOLSETS
from ..tools.executor import ToolExecutor
from .base import AgentConfig, BaseAgent, ContextBundle

logger = get_logger(name=__name__)

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


class TaskAgent(BaseAgent):
    config = AgentConfig(
        agent_id=AgentId.TASK,
        description="Creates, lists, updates and completes tasks and tracks deadlines.",
        system_prompt=(
            "You manage the learner's study tasks. Always use the task tools to create, list, update, "
            "complete or delete tasks; never claim a change you did not make with a tool. Confirm what "
            "changed in one or two sentences and mention due dates when they exist. When the learner "
            "refers to a task by name, look it up with list_tasks to get its id first."
        ),
        profile=ModelProfile.PRECISE,
        tool_names=AGENT_TOOLSETS[AgentId.TASK],
        error_key="agents.task.error",
    )

    def __init__(
        self,
        backend: ReasoningBackendProtocol,
        *,
        tools: ToolExecutor | None = None,
        store: RecordStore | None = None,
        history_limit: int | None = 10,
        pending_preview: int = 5,
    ) -> None:
        super().__init__(backend, tools=tools, history_limit=history_limit)
        self.store = store
        self.pending_preview = pending_preview

    async def load_context(self, context: RequestContext) -> ContextBundle:
        caller_id = context.caller_id
        if self.store is None or caller_id is None or self.pending_preview <= 0:
            return ContextBundle()
        tasks = [task for task in await self.store.list_tasks(caller_id) if task.status != "completed"]
        if not tasks:
            return ContextBundle(sections=["The learner has no open tasks right now."], metadata={"open_tasks": 0})
        tasks.sort(key=lambda task: (_PRIORITY_ORDER[task.priority], task.created_at))
        lines = []
        for task in tasks[: self.pending_preview]:
            due = f", due {task.due_date.astimezone(timezone.utc).date().isoformat()}" if task.due_date else ""
            lines.append(f"- [{task.id}] {task.title} ({task.priority}{due})")
        logger.debug("task_context_loaded", caller_id=caller_id, open_tasks=len(tasks))
        return ContextBundle(
            sections=["Open tasks (id in brackets):\n" + "\n".join(lines)],
            metadata={"open_tasks": len(tasks)},
        )
