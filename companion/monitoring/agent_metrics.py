from __future__ import annotations

import math
from collections import Counter, deque
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from ..core.config import ObservabilitySettings
from ..core.logging import get_logger
from ..core.metrics import record_companion_request
from ..schemas.agents import utc_timestamp

logger = get_logger(name=__name__)


class MetricsSink(Protocol):
    def record_request(
        self,
        *,
        agent: str,
        language: str,
        response_time_ms: float,
        confidence: float | None = None,
        error: str | None = None,
    ) -> None:
        ...


@dataclass(slots=True)
class _ErrorSample:
    agent: str
    language: str
    error: str
    timestamp: str


def percentile(samples: Sequence[float], fraction: float) -> float:
    """Nearest-rank percentile of ``samples`` (0.0 when empty)."""
    if not samples:
        return 0.0
    ordered = sorted(samples)
    rank = max(1, math.ceil(fraction * len(ordered)))
    return ordered[min(rank, len(ordered)) - 1]


class MetricsRecorder:
    """Rolling in-process request statistics, mirrored to Prometheus.

    ``record_request`` is synchronous and never raises, so callers can invoke
    it on the response path without guarding it.
    """

    def __init__(self, *, max_response_samples: int = 100, max_error_samples: int = 50) -> None:
        self._response_times: deque[float] = deque(maxlen=max_response_samples)
        self._confidences: deque[float] = deque(maxlen=max_response_samples)
        self._errors: deque[_ErrorSample] = deque(maxlen=max_error_samples)
        self._agent_usage: Counter[str] = Counter()
        self._language_usage: Counter[str] = Counter()
        self._total_requests = 0
        self._total_errors = 0

    @classmethod
    def from_settings(cls, settings: ObservabilitySettings) -> "MetricsRecorder":
        return cls(
            max_response_samples=settings.max_response_time_samples,
            max_error_samples=settings.max_error_samples,
        )

    def record_request(
        self,
        *,
        agent: str,
        language: str,
        response_time_ms: float,
        confidence: float | None = None,
        error: str | None = None,
    ) -> None:
        try:
            self._total_requests += 1
            self._agent_usage[agent] += 1
            self._language_usage[language] += 1
            self._response_times.append(float(response_time_ms))
            if confidence is not None:
                self._confidences.append(float(confidence))
            if error:
                self._total_errors += 1
                self._errors.append(
                    _ErrorSample(agent=agent, language=language, error=str(error), timestamp=utc_timestamp())
                )
            record_companion_request(
                agent=agent,
                language=language,
                outcome="error" if error else "success",
                latency=response_time_ms / 1000.0,
            )
        except Exception as exc:  # pragma: no cover - metrics must not break responses
            logger.warning("metrics_record_failed", error=str(exc))

    @property
    def total_requests(self) -> int:
        return self._total_requests

    @property
    def total_errors(self) -> int:
        return self._total_errors

    def summary(self) -> dict[str, Any]:
        samples = list(self._response_times)
        confidences = list(self._confidences)
        return {
            "total_requests": self._total_requests,
            "total_errors": self._total_errors,
            "error_rate": round(self._total_errors / self._total_requests, 4) if self._total_requests else 0.0,
            "response_time_ms": {
                "average": round(sum(samples) / len(samples), 2) if samples else 0.0,
                "p50": percentile(samples, 0.50),
                "p95": percentile(samples, 0.95),
                "p99": percentile(samples, 0.99),
                "samples": len(samples),
            },
            "average_confidence": round(sum(confidences) / len(confidences), 4) if confidences else None,
            "agent_usage": dict(self._agent_usage),
            "language_usage": dict(self._language_usage),
            "recent_errors": [
                {"agent": item.agent, "language": item.language, "error": item.error, "timestamp": item.timestamp}
                for item in list(self._errors)[-10:]
            ],
        }

    def reset(self) -> None:
        self._response_times.clear()
        self._confidences.clear()
        self._errors.clear()
        self._agent_usage.clear()
        self._language_usage.clear()
        self._total_requests = 0
        self._total_errors = 0
