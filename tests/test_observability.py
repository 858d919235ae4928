"""
Test metrics collection and log redaction.
"""
import pytest

from repodigest.observability.logs import _redact_sensitive_data
from repodigest.observability.metrics import MetricsCollector


@pytest.fixture
def metrics_collector():
    """Metrics collector instance."""
    return MetricsCollector()


def test_counters(metrics_collector):
    """Counters are recorded per label."""
    metrics_collector.record_records(accepted=5, dropped=2)
    metrics_collector.record_work_unit("done")
    metrics_collector.record_work_unit("done")
    metrics_collector.record_summarizer_fallback("error")
    metrics_collector.record_run_total("ok")

    assert metrics_collector.get_value("records_total", {"status": "accepted"}) == 5
    assert metrics_collector.get_value("records_total", {"status": "dropped"}) == 2
    assert metrics_collector.get_value("work_units_total", {"status": "done"}) == 2
    assert metrics_collector.get_value("summarizer_fallbacks_total", {"reason": "error"}) == 1
    assert metrics_collector.get_value("runs_total", {"status": "ok"}) == 1


def test_missing_series_is_zero(metrics_collector):
    assert metrics_collector.get_value("runs_total", {"status": "failed"}) == 0.0


def test_time_stage(metrics_collector):
    """Stage timings are observed even when the stage raises."""
    with metrics_collector.time_stage("aggregate"):
        pass
    with pytest.raises(RuntimeError):
        with metrics_collector.time_stage("aggregate"):
            raise RuntimeError("boom")

    assert metrics_collector.get_value("pipeline_stage_duration_seconds_count", {"stage": "aggregate"}) == 2


def test_collectors_are_independent():
    """Each collector owns its registry."""
    first, second = MetricsCollector(), MetricsCollector()
    first.record_run_total("ok")
    assert second.get_value("runs_total", {"status": "ok"}) == 0.0


def test_server_disabled_without_port(metrics_collector):
    assert metrics_collector.start_server() is False


def test_redact_sensitive_fields():
    """Credential fields and GitHub tokens inside values are masked."""
    event = {
        "event": "request failed",
        "token": "abc",
        "error": "bad credentials for ghp_" + "a" * 36,
        "repo": "acme/app",
    }
    redacted = _redact_sensitive_data(None, "info", event)

    assert redacted["token"] == "[[REDACTED]]"
    assert redacted["error"] == "bad credentials for [[REDACTED]]"
    assert redacted["repo"] == "acme/app"
