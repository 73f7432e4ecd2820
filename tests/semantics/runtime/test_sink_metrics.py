"""
Semantic test: sink metrics.

Invariant:
Counters track written events and bytes, recovered retries, dropped events
by error kind, and reopen requests, each labelled by sink path.
"""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from audit_sink.core.events.errors import SinkError
from audit_sink.core.events.event import Event
from audit_sink.core.events.sinks.file_sink import FileSink
from audit_sink.runtime import sink_metrics
from audit_sink.runtime.sink_metrics import SinkMetrics


def test_writes_and_reopens_are_counted(tmp_path) -> None:
    target = tmp_path / "audit.log"
    registry = CollectorRegistry()
    sink = FileSink(str(target), "json", metrics=SinkMetrics(registry))
    labels = {"path": str(target)}

    sink.process(Event(type="audit").with_format("json", b"12345\n"))
    sink.process(Event(type="audit").with_format("json", b"67\n"))
    sink.reopen()

    assert registry.get_sample_value("audit_sink_events_written_total", labels) == 2.0
    assert registry.get_sample_value("audit_sink_bytes_written_total", labels) == 9.0
    assert registry.get_sample_value("audit_sink_reopens_total", labels) == 1.0


def test_format_errors_are_not_counted_as_write_failures(tmp_path) -> None:
    target = tmp_path / "audit.log"
    registry = CollectorRegistry()
    sink = FileSink(str(target), "json", metrics=SinkMetrics(registry))

    with pytest.raises(SinkError):
        sink.process(Event(type="audit"))

    assert registry.get_sample_value(
        "audit_sink_write_failures_total",
        {"path": str(target), "kind": "format_not_found"},
    ) is None


def test_separate_instances_do_not_collide(tmp_path) -> None:
    first = SinkMetrics()
    second = SinkMetrics()

    first.record_write(path="a", size=1)
    second.record_write(path="a", size=1)

    assert first.registry is not second.registry
    assert first.registry.get_sample_value("audit_sink_events_written_total", {"path": "a"}) == 1.0


def test_push_is_skipped_without_gateway(monkeypatch) -> None:
    monkeypatch.delenv("PROMETHEUS_PUSHGATEWAY_URL", raising=False)
    pushed: list[str] = []
    monkeypatch.setattr(
        sink_metrics, "push_to_gateway", lambda gateway, **kw: pushed.append(gateway)
    )

    assert SinkMetrics().push(job="audit") is False
    assert pushed == []


def test_push_sends_registry_with_grouping_key(monkeypatch) -> None:
    monkeypatch.delenv("PROMETHEUS_PUSHGATEWAY_URL", raising=False)
    pushed: list[tuple[str, dict]] = []
    monkeypatch.setattr(
        sink_metrics, "push_to_gateway", lambda gateway, **kw: pushed.append((gateway, kw))
    )

    metrics = SinkMetrics(
        pushgateway_url="http://pushgateway:9091",
        grouping_key={"instance": "node-1"},
    )

    assert metrics.push(job="audit") is True
    assert len(pushed) == 1
    gateway, kw = pushed[0]
    assert gateway == "http://pushgateway:9091"
    assert kw["job"] == "audit"
    assert kw["grouping_key"] == {"instance": "node-1"}
    assert kw["registry"] is metrics.registry


def test_push_falls_back_to_environment_url(monkeypatch) -> None:
    monkeypatch.setenv("PROMETHEUS_PUSHGATEWAY_URL", "http://from-env:9091")
    pushed: list[tuple[str, dict]] = []
    monkeypatch.setattr(
        sink_metrics, "push_to_gateway", lambda gateway, **kw: pushed.append((gateway, kw))
    )

    assert SinkMetrics().push(job="audit") is True
    assert pushed[0][0] == "http://from-env:9091"
    assert pushed[0][1]["grouping_key"] == {}
