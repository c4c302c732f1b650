from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel

from companion.schemas.agents import AgentId
from companion.services.records import InMemoryRecordStore
from companion.tools.base import InvocationMetadata, Tool, tool
from companion.tools.catalog import AGENT_TOOLSETS, build_tool_registry
from companion.tools.registry import ToolRegistry, normalize_tool_name


class EchoArgs(BaseModel):
    text: str


def _echo_tool(name: str = "Search/Echo") -> Tool:
    @tool(name, "Echo the text back", EchoArgs)
    def echo(args: EchoArgs, metadata: InvocationMetadata) -> dict[str, str]:
        return {"text": args.text}

    return echo


def test_normalize_tool_name_collapses_separators() -> None:
    assert normalize_tool_name(" Search/Echo ") == "search_echo"
    assert normalize_tool_name("search.echo") == "search_echo"
    assert normalize_tool_name("search--echo") == "search_echo"
    with pytest.raises(TypeError):
        normalize_tool_name(3)  # type: ignore[arg-type]


def test_registry_normalizes_names() -> None:
    registry = ToolRegistry()
    echo = _echo_tool()
    registry.register(echo)

    assert registry.get("search/echo") is echo
    assert registry.get("search.echo") is echo
    assert registry.resolve("search.missing") is None
    assert "Search/Echo" in registry.list()
    assert "search_echo" in registry
    assert len(registry) == 1


def test_registry_alias_resolution() -> None:
    registry = ToolRegistry()
    echo = _echo_tool("echo")
    registry.register(echo, aliases=["repeat"])
    registry.register_alias("say.back", "echo")

    assert registry.get("repeat") is echo
    assert registry.resolve("say.back") == "echo"
    assert registry.aliases() == {"repeat": "echo", "say.back": "echo"}

    registry.unregister("echo")
    assert registry.get("repeat") is None
    assert registry.aliases() == {}


def test_subset_keeps_requested_order_and_skips_unknown() -> None:
    registry = ToolRegistry()
    first, second = _echo_tool("first"), _echo_tool("second")
    registry.register_many([first, second])

    assert registry.subset(["second", "missing", "first", "second"]) == [second, first]


@pytest.mark.asyncio
async def test_registry_circuit_breaker_recovers() -> None:
    registry = ToolRegistry()
    registry.register(_echo_tool("echo"))
    registry.configure_circuit(threshold=1, reset_seconds=0.01)

    assert registry.record_failure("echo") is True
    assert registry.is_circuit_open("echo") is True

    await asyncio.sleep(0.02)
    assert registry.is_circuit_open("echo") is False
    registry.record_success("echo")
    assert registry.failure_count("echo") == 0


def test_tool_spec_is_function_calling_shape() -> None:
    spec = _echo_tool("echo").as_spec()

    assert spec["type"] == "function"
    assert spec["function"]["name"] == "echo"
    assert spec["function"]["parameters"]["properties"]["text"]["type"] == "string"
    assert "title" not in spec["function"]["parameters"]


def test_catalog_registers_every_agent_toolset() -> None:
    registry = build_tool_registry(InMemoryRecordStore())

    for agent in AgentId:
        names = AGENT_TOOLSETS[agent]
        assert [item.name for item in registry.subset(names)] == list(names)
    assert registry.resolve("maps_to") == "navigate_to"
    # Identity never appears in a tool's argument schema
    for name, item in registry.items():
        properties = item.as_spec()["function"]["parameters"].get("properties", {})
        assert "caller_id" not in properties, name
        assert "user_id" not in properties, name
