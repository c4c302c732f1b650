from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from companion.core.config import ObservabilitySettings
from companion.core.metrics import record_routing_decision
from companion.monitoring.agent_metrics import MetricsRecorder, percentile


def test_percentile_uses_nearest_rank() -> None:
    samples = [40.0, 10.0, 30.0, 20.0]
    assert percentile(samples, 0.50) == 20.0
    assert percentile(samples, 0.95) == 40.0
    assert percentile([], 0.99) == 0.0


def test_summary_aggregates_requests() -> None:
    recorder = MetricsRecorder()
    recorder.record_request(agent="general", language="en", response_time_ms=100, confidence=0.8)
    recorder.record_request(agent="task", language="bn", response_time_ms=300, confidence=0.9)
    recorder.record_request(agent="system", language="bn", response_time_ms=200, error="RuntimeError: boom")

    summary = recorder.summary()

    assert summary["total_requests"] == 3
    assert summary["total_errors"] == 1
    assert summary["error_rate"] == pytest.approx(0.3333)
    assert summary["response_time_ms"]["average"] == 200.0
    assert summary["response_time_ms"]["p50"] == 200.0
    assert summary["average_confidence"] == pytest.approx(0.85)
    assert summary["agent_usage"] == {"general": 1, "task": 1, "system": 1}
    assert summary["language_usage"] == {"en": 1, "bn": 2}
    [error] = summary["recent_errors"]
    assert (error["agent"], error["error"]) == ("system", "RuntimeError: boom")


def test_samples_are_bounded_and_reset_clears_everything() -> None:
    recorder = MetricsRecorder.from_settings(ObservabilitySettings(max_response_time_samples=2, max_error_samples=1))
    for latency in (10, 20, 30):
        recorder.record_request(agent="general", language="en", response_time_ms=latency, error=f"e{latency}")

    summary = recorder.summary()
    assert summary["response_time_ms"]["samples"] == 2
    assert summary["response_time_ms"]["average"] == 25.0
    assert [item["error"] for item in summary["recent_errors"]] == ["e30"]
    assert summary["total_errors"] == 3

    recorder.reset()
    empty = recorder.summary()
    assert empty["total_requests"] == 0
    assert empty["average_confidence"] is None
    assert empty["response_time_ms"]["p99"] == 0.0


def test_requests_are_mirrored_to_prometheus() -> None:
    success = {"agent": "learning", "language": "bn", "outcome": "success"}
    failure = {"agent": "learning", "language": "bn", "outcome": "error"}
    before_success = REGISTRY.get_sample_value("companion_requests_total", success) or 0.0
    before_failure = REGISTRY.get_sample_value("companion_requests_total", failure) or 0.0

    recorder = MetricsRecorder()
    recorder.record_request(agent="learning", language="bn", response_time_ms=50)
    recorder.record_request(agent="learning", language="bn", response_time_ms=50, error="degraded")

    assert REGISTRY.get_sample_value("companion_requests_total", success) == pytest.approx(before_success + 1.0)
    assert REGISTRY.get_sample_value("companion_requests_total", failure) == pytest.approx(before_failure + 1.0)


def test_label_values_stay_within_known_agents_and_languages() -> None:
    routed = {"agent": "unknown", "source": "router"}
    requested = {"agent": "unknown", "language": "en", "outcome": "error"}
    before_routed = REGISTRY.get_sample_value("companion_routing_decisions_total", routed) or 0.0
    before_requested = REGISTRY.get_sample_value("companion_requests_total", requested) or 0.0

    record_routing_decision(agent="wizard", source="router", confidence=0.9)
    MetricsRecorder().record_request(agent="wizard", language="tlh", response_time_ms=5, error="degraded")

    assert REGISTRY.get_sample_value("companion_routing_decisions_total", routed) == pytest.approx(before_routed + 1.0)
    assert REGISTRY.get_sample_value("companion_requests_total", requested) == pytest.approx(before_requested + 1.0)
    assert REGISTRY.get_sample_value("companion_routing_decisions_total", {"agent": "wizard", "source": "router"}) is None
    assert (
        REGISTRY.get_sample_value("companion_requests_total", {"agent": "wizard", "language": "tlh", "outcome": "error"})
        is None
    )
