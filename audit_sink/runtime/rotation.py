"""Signal-driven rotation trigger for sink nodes."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable, Iterable
from typing import Any

from audit_sink.core.events.errors import SinkError
from audit_sink.core.events.node import Node

LOGGER = logging.getLogger(__name__)


def reopen_all(sinks: Iterable[Node]) -> int:
    """Call reopen() on every sink, logging failures. Returns the failure count."""
    failures = 0
    for sink in sinks:
        try:
            sink.reopen()
        except SinkError as exc:
            failures += 1
            LOGGER.error(
                "sink reopen failed",
                extra={"sink": type(sink).__name__, "kind": exc.kind.value, "error": str(exc)},
            )
    return failures


class ReopenWorker:
    """Runs reopen passes over a fixed set of sinks on one background thread.

    request() only sets a flag, so it can be called from a signal handler even
    while the interrupted thread holds a sink lock. Requests that arrive while
    a pass is running collapse into a single follow-up pass.
    """

    def __init__(
        self,
        sinks: Iterable[Node],
        *,
        on_done: Callable[[int], None] | None = None,
    ) -> None:
        self._sinks = list(sinks)
        self._on_done = on_done
        self._requested = threading.Event()
        self._stopping = False
        self._thread = threading.Thread(target=self._run, name="sink-reopen", daemon=True)

        self.signum: int | None = None
        self.previous_handler: Any = None

    def start(self) -> None:
        self._thread.start()

    def request(self) -> None:
        self._requested.set()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stopping = True
        self._requested.set()
        self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def uninstall(self) -> None:
        """Restore the previous signal handler, then stop the worker thread."""
        if self.signum is not None:
            signal.signal(self.signum, self.previous_handler)
            self.signum = None
        self.stop()

    def _run(self) -> None:
        while True:
            self._requested.wait()
            self._requested.clear()
            if self._stopping:
                return

            LOGGER.info("reopening sinks", extra={"sinks": len(self._sinks)})
            failures = reopen_all(self._sinks)
            if self._on_done is not None:
                self._on_done(failures)


def install_reopen_handler(
    sinks: Iterable[Node],
    *,
    signum: int = signal.SIGHUP,
    on_done: Callable[[int], None] | None = None,
) -> ReopenWorker:
    """Reopen ``sinks`` whenever ``signum`` arrives.

    ``on_done`` receives the failure count after each reopen pass. The
    returned worker remembers the previous handler; uninstall() restores it.
    """
    worker = ReopenWorker(sinks, on_done=on_done)
    worker.start()

    def _handler(signum: int, frame: object) -> None:
        worker.request()

    worker.previous_handler = signal.signal(signum, _handler)
    worker.signum = signum
    return worker
