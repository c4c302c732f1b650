from __future__ import annotations

from typing import Mapping

from ..core.config import ToolSettings
from ..schemas.agents import AgentId
from ..services.records import RecordStore
from .code_tools import build_code_tools
from .context_tools import build_context_tools
from .learning_tools import build_learning_tools
from .navigation_tools import build_navigation_tools
from .registry import ToolRegistry
from .roadmap_tools import build_roadmap_tools
from .task_tools import build_task_tools

TASK_TOOLS = ("create_task", "list_tasks", "update_task", "delete_task", "get_deadlines", "complete_task")
ROADMAP_TOOLS = ("create_roadmap", "get_user_roadmaps", "get_roadmap_details", "update_roadmap_progress")
NAVIGATION_TOOLS = ("navigate_to", "get_available_routes", "open_roadmap", "open_quest")
CODE_TOOLS = ("analyze_code", "debug_code", "explain_code")
LEARNING_TOOLS = ("explain_concept", "create_learning_path", "generate_practice")
CONTEXT_TOOLS = ("get_user_stats",)

AGENT_TOOLSETS: Mapping[AgentId, tuple[str, ...]] = {
    AgentId.LEARNING: LEARNING_TOOLS,
    AgentId.TASK: TASK_TOOLS,
    AgentId.CODE: CODE_TOOLS,
    AgentId.ROADMAP: ROADMAP_TOOLS + NAVIGATION_TOOLS,
    AgentId.GENERAL: NAVIGATION_TOOLS + CONTEXT_TOOLS,
}


def build_tool_registry(store: RecordStore, settings: ToolSettings | None = None) -> ToolRegistry:
    registry = ToolRegistry()
    if settings is not None:
        registry.configure_circuit(
            threshold=settings.circuit_break_failures,
            reset_seconds=settings.circuit_break_reset_seconds,
        )
    registry.register_many(build_task_tools(store))
    registry.register_many(build_roadmap_tools(store))
    registry.register_many(build_navigation_tools())
    registry.register_many(build_code_tools())
    registry.register_many(build_learning_tools())
    registry.register_many(build_context_tools(store))
    registry.register_alias("maps_to", "navigate_to")
    return registry
