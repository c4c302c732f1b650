"""Navigation actions. Results carry ``action`` fields the client turns into route changes."""

from __future__ import annotations

from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field

from .base import InvocationMetadata, Tool, tool

ROUTES: Mapping[str, tuple[str, str]] = {
    "dashboard": ("/dashboard", "Personal dashboard with progress, stats and recent activity"),
    "roadmaps": ("/roadmaps", "Generated learning roadmaps and study paths"),
    "tasks": ("/tasks", "Task management for assignments, to-dos and deadlines"),
    "quests": ("/quests", "Coding challenges and quests to practice programming"),
    "playground": ("/playground", "Code editor for writing and running code"),
    "learn": ("/learn", "Video tutorials and learning content"),
    "dev-discuss": ("/dev-discuss", "Community discussions and Q&A forum"),
    "faq": ("/faq", "Frequently asked questions and help"),
    "settings": ("/settings", "Account settings and preferences"),
}

Destination = Literal[
    "dashboard", "roadmaps", "tasks", "quests", "playground", "learn", "dev-discuss", "faq", "settings"
]


class NavigateArgs(BaseModel):
    destination: Destination = Field(..., description="The page to navigate to")
    reason: str | None = Field(None, description="Brief explanation of why navigating here")


class NoArgs(BaseModel):
    pass


class OpenRoadmapArgs(BaseModel):
    roadmap_id: str = Field(..., min_length=1, description="The ID of the roadmap to open")
    title: str | None = Field(None, description="Roadmap title, used in the confirmation")


class OpenQuestArgs(BaseModel):
    quest_id: str = Field(..., min_length=1, description="The ID of the quest to open")
    name: str | None = Field(None, description="Quest name, used in the confirmation")


def build_navigation_tools() -> list[Tool]:
    @tool(
        "navigate_to",
        "Navigate the user to another page, e.g. 'go to my dashboard' or 'take me to roadmaps'. "
        f"Available destinations: {', '.join(ROUTES)}",
        NavigateArgs,
    )
    def navigate_to(args: NavigateArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        route, description = ROUTES[args.destination]
        return {
            "success": True,
            "action": "navigate",
            "route": route,
            "destination": args.destination,
            "description": description,
            "reason": args.reason,
            "message": f"Taking you to {args.destination}...",
        }

    @tool("get_available_routes", "List every page the user can be taken to.", NoArgs)
    def get_available_routes(args: NoArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        return {
            "success": True,
            "routes": [
                {"name": name, "path": path, "description": description}
                for name, (path, description) in ROUTES.items()
            ],
            "message": "Here are all the available pages you can navigate to.",
        }

    @tool("open_roadmap", "Open one specific roadmap by its ID.", OpenRoadmapArgs)
    def open_roadmap(args: OpenRoadmapArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        label = f'"{args.title}"' if args.title else "your roadmap"
        return {
            "success": True,
            "action": "navigate",
            "route": f"/roadmaps/{args.roadmap_id}",
            "message": f"Opening {label}...",
        }

    @tool("open_quest", "Open one specific coding quest by its ID.", OpenQuestArgs)
    def open_quest(args: OpenQuestArgs, metadata: InvocationMetadata) -> dict[str, Any]:
        label = f'"{args.name}"' if args.name else "the quest"
        return {
            "success": True,
            "action": "navigate",
            "route": f"/quests/{args.quest_id}",
            "message": f"Opening {label}...",
        }

    return [navigate_to, get_available_routes, open_roadmap, open_quest]
