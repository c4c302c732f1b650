from .base import AgentConfig, BaseAgent, ContextBundle, build_instruction
from .code import CodeAgent
from .general import GeneralAgent
from .learning import LearningAgent
from .roadmap import RoadmapAgent
from .task import TaskAgent

__all__ = [
    "AgentConfig",
    "BaseAgent",
    "CodeAgent",
    "ContextBundle",
    "GeneralAgent",
    "LearningAgent",
    "RoadmapAgent",
    "TaskAgent",
    "build_instruction",
]
