from __future__ import annotations

import logging
from typing import Any

import structlog

SERVICE_NAME = "inherit-companion"


def _add_service(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(level: str = "INFO", *, environment: str | None = None) -> None:
    """Route structlog through stdlib logging and render one JSON object per event.

    Request-scoped fields bound with :func:`bind_request_context` are merged
    into every event emitted while the request is being handled.
    """
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service,
    ]
    if environment:

        def _add_environment(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
            event_dict.setdefault("environment", environment)
            return event_dict

        processors.append(_add_environment)
    processors += [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(ensure_ascii=False),
    ]
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def bind_request_context(**fields: Any) -> None:
    """Bind caller/conversation fields for the rest of the current request."""
    structlog.contextvars.bind_contextvars(**{key: value for key, value in fields.items() if value is not None})


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(*, name: str | None = None, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger(name)
    if kwargs:
        return logger.bind(**kwargs)
    return logger
