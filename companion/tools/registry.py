from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from ..core.logging import get_logger
from .base import Tool

__all__ = ["normalize_tool_name", "ToolRegistry"]

logger = get_logger(name=__name__)

_SEPARATORS = re.compile(r"[\\/\s.\-_]+")


def normalize_tool_name(name: str) -> str:
    """Lookup key for ``name``: lowercase, separators folded into single underscores."""
    if not isinstance(name, str):
        raise TypeError("Tool name must be a string")
    return _SEPARATORS.sub("_", name.strip()).strip("_").lower()


@dataclass(slots=True)
class _Circuit:
    failures: int = 0
    open_until: float | None = None


@dataclass(slots=True)
class _Alias:
    label: str
    target_key: str


class ToolRegistry:
    """Named domain tools shared by every agent.

    Lookups go through :func:`normalize_tool_name`, so ``maps.to``,
    ``Maps To`` and ``maps_to`` resolve to the same entry. Each tool carries
    its own circuit: after ``threshold`` consecutive failures it stays open
    for ``reset_seconds`` and the executor refuses to call it.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._tools: dict[str, Tool] = {}
        self._aliases: dict[str, _Alias] = {}
        self._circuits: dict[str, _Circuit] = {}
        self._threshold = 5
        self._reset_seconds = 30.0
        self._clock = clock

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key_for(name) is not None

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, tool: Tool, *, aliases: Iterable[str] = ()) -> None:
        key = normalize_tool_name(tool.name)
        if key in self._tools:
            logger.info("tool_replaced", tool=tool.name)
        self._tools[key] = tool
        self._circuits[key] = _Circuit()
        for alias in aliases:
            self.register_alias(alias, tool.name)

    def register_many(self, tools: Iterable[Tool]) -> None:
        for item in tools:
            self.register(item)

    def register_alias(self, alias: str, target: str) -> None:
        label = alias.strip()
        if not label or not target.strip():
            return
        self._aliases[normalize_tool_name(label)] = _Alias(label=label, target_key=normalize_tool_name(target))

    def unregister(self, name: str) -> None:
        key = normalize_tool_name(name)
        if self._tools.pop(key, None) is None:
            return
        self._circuits.pop(key, None)
        self._aliases = {alias: entry for alias, entry in self._aliases.items() if entry.target_key != key}

    def get(self, name: str) -> Tool | None:
        key = self._key_for(name)
        return self._tools[key] if key is not None else None

    def resolve(self, name: str) -> str | None:
        found = self.get(name)
        return found.name if found is not None else None

    def list(self) -> list[str]:
        return sorted(item.name for item in self._tools.values())

    def aliases(self) -> dict[str, str]:
        return {
            entry.label: self._tools[entry.target_key].name
            for entry in sorted(self._aliases.values(), key=lambda entry: entry.label)
            if entry.target_key in self._tools
        }

    def items(self) -> Iterator[tuple[str, Tool]]:
        for item in self._tools.values():
            yield item.name, item

    def subset(self, names: Iterable[str]) -> list[Tool]:
        """Tools for ``names`` in the given order; unknown and repeated names are skipped."""
        selected: dict[str, Tool] = {}
        for name in names:
            found = self.get(name)
            if found is not None:
                selected.setdefault(found.name, found)
        return list(selected.values())

    def configure_circuit(self, *, threshold: int, reset_seconds: float) -> None:
        self._threshold = max(1, int(threshold))
        self._reset_seconds = max(0.0, float(reset_seconds))

    def record_failure(self, name: str) -> bool:
        """Count a failure; return True when this failure opened the circuit."""
        circuit = self._circuit_for(name)
        if circuit is None:
            return False
        circuit.failures += 1
        if circuit.failures < self._threshold or self._reset_seconds <= 0:
            return False
        circuit.open_until = self._clock() + self._reset_seconds
        logger.warning("tool_circuit_opened", tool=name, failures=circuit.failures, reset_seconds=self._reset_seconds)
        return True

    def record_success(self, name: str) -> None:
        circuit = self._circuit_for(name)
        if circuit is not None:
            circuit.failures = 0
            circuit.open_until = None

    def is_circuit_open(self, name: str) -> bool:
        circuit = self._circuit_for(name)
        if circuit is None or circuit.open_until is None:
            return False
        if self._clock() < circuit.open_until:
            return True
        # Cool-down elapsed: give the tool a fresh run of attempts
        circuit.failures = 0
        circuit.open_until = None
        return False

    def failure_count(self, name: str) -> int:
        circuit = self._circuit_for(name)
        return circuit.failures if circuit is not None else 0

    def _circuit_for(self, name: str) -> _Circuit | None:
        key = self._key_for(name)
        return self._circuits.get(key) if key is not None else None

    def _key_for(self, name: str) -> str | None:
        key = normalize_tool_name(name)
        if key in self._tools:
            return key
        alias = self._aliases.get(key)
        if alias is not None and alias.target_key in self._tools:
            return alias.target_key
        return None
