from __future__ import annotations

from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

__all__ = ["RequestContext", "merge_context"]


class RequestContext(Mapping[str, Any]):
    """Immutable per-request key/value bag handed from the caller to agents.

    ``a.merge(b)`` (or ``a | b``) returns a new context holding every key of
    both operands, with ``b`` winning on collisions. Neither operand changes.
    """

    CALLER_ID = "caller_id"
    DISPLAY_NAME = "display_name"
    PROFILE_SUMMARY = "profile_summary"
    CURRENT_ROADMAP = "current_roadmap"
    CURRENT_QUEST = "current_quest"
    HISTORY = "history"
    LANGUAGE = "language"

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any] | None = None, /, **fields: Any) -> None:
        merged: dict[str, Any] = dict(values or {})
        merged.update(fields)
        self._values = MappingProxyType(merged)

    @classmethod
    def coerce(cls, value: Mapping[str, Any] | None) -> RequestContext:
        if isinstance(value, RequestContext):
            return value
        return cls(value)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"RequestContext({dict(self._values)!r})"

    def merge(self, other: Mapping[str, Any] | None) -> RequestContext:
        if not other:
            return self
        merged = dict(self._values)
        merged.update(other)
        return RequestContext(merged)

    def __or__(self, other: Mapping[str, Any]) -> RequestContext:
        if not isinstance(other, Mapping):
            return NotImplemented
        return self.merge(other)

    def without(self, *keys: str) -> RequestContext:
        return RequestContext({key: value for key, value in self._values.items() if key not in keys})

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)

    @property
    def caller_id(self) -> str | None:
        value = self._values.get(self.CALLER_ID)
        return str(value) if value else None

    @property
    def display_name(self) -> str | None:
        value = self._values.get(self.DISPLAY_NAME)
        if not isinstance(value, str):
            return None
        value = value.strip()
        # "there" is what upstream greeters substitute for an unknown name
        if not value or value.lower() == "there":
            return None
        return value

    @property
    def profile_summary(self) -> str | None:
        value = self._values.get(self.PROFILE_SUMMARY)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @property
    def personalized(self) -> bool:
        """True when agents will tailor the instruction to this particular learner."""
        return bool(
            self.display_name
            or self.profile_summary
            or self._values.get(self.CURRENT_ROADMAP)
            or self._values.get(self.CURRENT_QUEST)
        )

    @property
    def language(self) -> str | None:
        value = self._values.get(self.LANGUAGE)
        return value if isinstance(value, str) and value else None


def merge_context(current: Mapping[str, Any] | None, update: Mapping[str, Any] | None) -> RequestContext:
    """Graph reducer for the context channel: key-preserving, right-biased."""
    return RequestContext.coerce(current).merge(update)
