"""
Semantic test: signal-driven rotation trigger.

Invariant:
A rotation signal reopens every registered sink; a failing sink is logged
and counted without stopping the others. Every reopen pass runs on the same
worker thread, and uninstalling restores the previous signal handler.
"""

from __future__ import annotations

import os
import signal
import threading

from audit_sink.core.events.errors import ErrorKind, SinkError
from audit_sink.core.events.event import Event, NodeType
from audit_sink.core.events.sinks.file_sink import FileSink
from audit_sink.runtime.rotation import ReopenWorker, install_reopen_handler, reopen_all


class _FailingSink:
    def __init__(self) -> None:
        self.calls = 0

    def process(self, event, cancel=None):
        return None

    def reopen(self) -> None:
        self.calls += 1
        raise SinkError(ErrorKind.IO_PERSISTENT, "test", "cannot reopen")

    def type(self) -> NodeType:
        return NodeType.SINK


def test_reopen_all_counts_failures_and_continues(tmp_path) -> None:
    failing = _FailingSink()
    sink = FileSink(str(tmp_path / "audit.log"), "json")
    old_handle = sink._handle  # pylint: disable=protected-access

    failures = reopen_all([failing, sink])

    assert failures == 1
    assert failing.calls == 1
    assert old_handle.closed
    assert sink.is_open


class _ThreadRecordingSink:
    def __init__(self) -> None:
        self.threads: list[int] = []

    def process(self, event, cancel=None):
        return None

    def reopen(self) -> None:
        self.threads.append(threading.get_ident())

    def type(self) -> NodeType:
        return NodeType.SINK


def test_signal_reopens_registered_sinks(tmp_path) -> None:
    target = tmp_path / "audit.log"
    rotated = tmp_path / "audit.log.1"
    sink = FileSink(str(target), "json")
    finished = threading.Event()
    results: list[int] = []

    def on_done(failures: int) -> None:
        results.append(failures)
        finished.set()

    worker = install_reopen_handler([sink], signum=signal.SIGUSR1, on_done=on_done)
    try:
        os.rename(target, rotated)
        os.kill(os.getpid(), signal.SIGUSR1)
        assert finished.wait(timeout=5.0)
    finally:
        worker.uninstall()

    assert results == [0]

    sink.process(Event(type="audit").with_format("json", b"fresh\n"))

    assert target.read_bytes() == b"fresh\n"
    assert rotated.read_bytes() == b""


def test_repeated_signals_share_one_worker_thread() -> None:
    sink = _ThreadRecordingSink()
    finished = threading.Event()

    worker = install_reopen_handler(
        [sink], signum=signal.SIGUSR1, on_done=lambda failures: finished.set()
    )
    try:
        for _ in range(3):
            finished.clear()
            os.kill(os.getpid(), signal.SIGUSR1)
            assert finished.wait(timeout=5.0)
    finally:
        worker.uninstall()

    assert len(sink.threads) == 3
    assert len(set(sink.threads)) == 1
    assert sink.threads[0] != threading.get_ident()


def test_uninstall_restores_handler_and_stops_worker() -> None:
    previous = signal.getsignal(signal.SIGUSR1)

    worker = install_reopen_handler([_ThreadRecordingSink()], signum=signal.SIGUSR1)
    assert worker.running
    assert signal.getsignal(signal.SIGUSR1) is not previous

    worker.uninstall()

    assert signal.getsignal(signal.SIGUSR1) is previous
    assert not worker.running


def test_requests_during_a_pass_collapse_into_one_follow_up() -> None:
    release = threading.Event()
    entered = threading.Event()
    passes: list[int] = []
    done = threading.Event()

    class _BlockingSink(_ThreadRecordingSink):
        def reopen(self) -> None:
            entered.set()
            release.wait(timeout=5.0)

    def on_done(failures: int) -> None:
        passes.append(failures)
        if len(passes) == 2:
            done.set()

    worker = ReopenWorker([_BlockingSink()], on_done=on_done)
    worker.start()
    try:
        worker.request()
        assert entered.wait(timeout=5.0)
        for _ in range(5):
            worker.request()
        release.set()
        assert done.wait(timeout=5.0)
    finally:
        worker.stop()

    assert passes == [0, 0]
