from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from pydantic import BaseModel, ValidationError

from ..utils.json_encoding import encode_payload
from .exceptions import ToolInvocationError, ToolValidationError

__all__ = ["InvocationMetadata", "Tool", "tool", "format_validation_error", "require_caller"]


@dataclass(frozen=True, slots=True)
class InvocationMetadata:
    """Per-request facts handed to tool implementations alongside their arguments.

    Caller identity travels here and never through the argument schema, so
    the model cannot act on behalf of another user.
    """

    caller_id: str | None = None
    language: str = "en"
    agent: str | None = None


ToolFunc = Callable[[Any, InvocationMetadata], Awaitable[Any] | Any]


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "arguments"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


def require_caller(metadata: InvocationMetadata, message: str) -> str:
    if not metadata.caller_id:
        raise ToolInvocationError(message)
    return metadata.caller_id


@dataclass(frozen=True, slots=True)
class Tool:
    name: str
    description: str
    args_schema: type[BaseModel]
    func: ToolFunc

    def as_spec(self) -> dict[str, Any]:
        """Function-calling description understood by ``bind_tools``."""
        parameters = self.args_schema.model_json_schema()
        parameters.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }

    def validate(self, args: Mapping[str, Any] | None) -> BaseModel:
        try:
            return self.args_schema.model_validate(dict(args or {}))
        except ValidationError as exc:
            raise ToolValidationError(f"Invalid arguments for '{self.name}': {format_validation_error(exc)}") from exc

    async def run(self, args: Mapping[str, Any] | None, metadata: InvocationMetadata) -> str:
        parsed = self.validate(args)
        result = self.func(parsed, metadata)
        if inspect.isawaitable(result):
            result = await result
        return encode_payload(result)


def tool(name: str, description: str, args_schema: type[BaseModel]) -> Callable[[ToolFunc], Tool]:
    """Decorator turning ``func(args, metadata)`` into a :class:`Tool`."""

    def decorator(func: ToolFunc) -> Tool:
        return Tool(name=name, description=description, args_schema=args_schema, func=func)

    return decorator
