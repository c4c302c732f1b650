from __future__ import annotations

from ..orchestration.context import RequestContext
from ..schemas.agents import AgentId
from ..services.llm import ModelProfile, ReasoningBackendProtocol
from ..services.records import RecordStore
from ..tools.catalog import AGENT_TOOLSETS
from ..tools.executor import ToolExecutor
from .base import AgentConfig, BaseAgent, ContextBundle


class RoadmapAgent(BaseAgent):
    config = AgentConfig(
        agent_id=AgentId.ROADMAP,
        description="Plans learning roadmaps, reports progress and suggests the next step.",
        system_prompt=(
            "You are a learning path advisor. Help the learner decide what to study next, build roadmaps "
            "with create_roadmap when they ask for a plan, and record progress with update_roadmap_progress. "
            "Ground progress statements in the roadmap tools. Offer to open a roadmap when it is relevant."
        ),
        profile=ModelProfile.PRECISE,
        tool_names=AGENT_TOOLSETS[AgentId.ROADMAP],
        error_key="agents.roadmap.error",
    )

    def __init__(
        self,
        backend: ReasoningBackendProtocol,
        *,
        tools: ToolExecutor | None = None,
        store: RecordStore | None = None,
        history_limit: int | None = 10,
    ) -> None:
        super().__init__(backend, tools=tools, history_limit=history_limit)
        self.store = store

    async def load_context(self, context: RequestContext) -> ContextBundle:
        if self.store is None or context.caller_id is None:
            return ContextBundle(metadata={"has_roadmaps": False})
        roadmaps = await self.store.list_roadmaps(context.caller_id)
        if not roadmaps:
            return ContextBundle(sections=["The learner has no roadmaps yet."], metadata={"has_roadmaps": False})
        lines = [
            f"- [{item.id}] {item.title}: {item.completed_steps}/{len(item.steps)} steps ({item.progress}%)"
            for item in roadmaps
        ]
        return ContextBundle(
            sections=["Learner roadmaps (id in brackets):\n" + "\n".join(lines)],
            metadata={"has_roadmaps": True},
        )
