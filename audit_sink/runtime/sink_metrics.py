from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from prometheus_client import CollectorRegistry, Counter, push_to_gateway

LOGGER = logging.getLogger(__name__)

PUSHGATEWAY_URL_ENV = "PROMETHEUS_PUSHGATEWAY_URL"


class SinkMetrics:
    """Prometheus counters for file sink activity.

    Counters live in their own CollectorRegistry (one per instance unless a
    registry is supplied) so several sinks in one process never collide on
    registration. Every series is labelled by the sink path.

    A short-lived process (the CLI) can push the registry once before exiting;
    without a Pushgateway URL (argument or PROMETHEUS_PUSHGATEWAY_URL) the push
    does nothing.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        *,
        pushgateway_url: str | None = None,
        grouping_key: Mapping[str, str] | None = None,
    ) -> None:
        self._registry = registry if registry is not None else CollectorRegistry()
        self._pushgateway_url = pushgateway_url or os.environ.get(PUSHGATEWAY_URL_ENV)
        self._grouping_key = dict(grouping_key or {})

        self._events_written = Counter(
            "audit_sink_events_written",
            "Events appended to the sink file",
            labelnames=["path"],
            registry=self._registry,
        )
        self._bytes_written = Counter(
            "audit_sink_bytes_written",
            "Payload bytes appended to the sink file",
            labelnames=["path"],
            registry=self._registry,
        )
        self._write_retries = Counter(
            "audit_sink_write_retries",
            "Writes recovered by reopening the file",
            labelnames=["path"],
            registry=self._registry,
        )
        self._write_failures = Counter(
            "audit_sink_write_failures",
            "Events dropped because the write failed",
            labelnames=["path", "kind"],
            registry=self._registry,
        )
        self._reopens = Counter(
            "audit_sink_reopens",
            "Externally requested reopen operations",
            labelnames=["path"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_write(self, *, path: str, size: int) -> None:
        self._events_written.labels(path=path).inc()
        self._bytes_written.labels(path=path).inc(size)

    def record_retry(self, *, path: str) -> None:
        self._write_retries.labels(path=path).inc()

    def record_failure(self, *, path: str, kind: str) -> None:
        self._write_failures.labels(path=path, kind=kind).inc()

    def record_reopen(self, *, path: str) -> None:
        self._reopens.labels(path=path).inc()

    def push(self, *, job: str) -> bool:
        """Push every counter to the Pushgateway. Returns False when disabled."""
        if not self._pushgateway_url:
            return False

        push_to_gateway(
            self._pushgateway_url,
            job=job,
            registry=self._registry,
            grouping_key=self._grouping_key,
        )
        LOGGER.debug(
            "sink metrics pushed",
            extra={"job": job, "gateway": self._pushgateway_url},
        )
        return True
