"""
Append-only file sink node.

The sink owns a single append-mode handle to its destination. The handle is
opened lazily, replaced on rotation (reopen) and recovered once per write
when the descriptor turned stale underneath the process.
"""
from __future__ import annotations

import io
import logging
import os
import threading
from concurrent.futures import CancelledError
from typing import TYPE_CHECKING

from audit_sink.core.events.errors import ErrorKind, SinkError
from audit_sink.core.events.event import Event, NodeType
from audit_sink.core.events.sinks.file_mode import (
    PRESERVE_FILE_MODE,
    directory_mode,
    is_discard_path,
    normalize_path,
    resolve_file_mode,
)

if TYPE_CHECKING:
    from audit_sink.core.config.file_sink_config import FileSinkConfig
    from audit_sink.runtime.sink_metrics import SinkMetrics

LOGGER = logging.getLogger(__name__)

# Raised by writes on a broken descriptor (OSError) or a closed file object (ValueError).
_WRITE_ERRORS = (OSError, ValueError)

# Path checks and opens at construction: OS failures, or ValueError for a
# path the OS cannot represent (embedded NUL).
_CONSTRUCTION_ERRORS = (OSError, ValueError)


class FileSink:
    """Sink node which appends formatted events to a file.

    Writing to ``os.devnull`` accepts and drops every event without I/O.

    All access to the handle and every write are serialized through one
    lock, so concurrent payloads are never interleaved in the file.
    """

    def __init__(
        self,
        path: str,
        required_format: str,
        *,
        file_mode: int | None = None,
        metrics: SinkMetrics | None = None,
    ) -> None:
        op = "FileSink.__init__"

        p = normalize_path(path)
        if not p:
            raise SinkError(ErrorKind.CONFIGURATION, op, "path is required")

        try:
            mode = resolve_file_mode(p, file_mode)
        except _CONSTRUCTION_ERRORS as exc:
            raise SinkError(
                ErrorKind.CONFIGURATION,
                op,
                f"unable to determine existing file mode of {p!r}",
                cause=exc,
            ) from exc

        self._path = p
        self._required_format = required_format
        self._file_mode = mode
        self._metrics = metrics

        self._lock = threading.Lock()
        self._handle: io.FileIO | None = None

        # Fail now rather than accept events for a destination that can never
        # be written. No other thread can reach the sink yet, so no lock.
        try:
            self._open()
        except _CONSTRUCTION_ERRORS as exc:
            raise SinkError(
                ErrorKind.CONFIGURATION,
                op,
                f"sanity check failed; unable to open {p!r} for writing",
                cause=exc,
            ) from exc

        LOGGER.debug(
            "file sink ready",
            extra={"path": p, "file_mode": oct(mode), "format": required_format},
        )

    @classmethod
    def from_config(
        cls,
        config: FileSinkConfig,
        *,
        metrics: SinkMetrics | None = None,
    ) -> FileSink:
        """Create a FileSink from a validated configuration model."""
        return cls(**config.to_sink_params(), metrics=metrics)

    # ------------------------------------------------------------------
    # Read-only attributes
    # ------------------------------------------------------------------

    @property
    def path(self) -> str:
        return self._path

    @property
    def required_format(self) -> str:
        return self._required_format

    @property
    def file_mode(self) -> int:
        """Resolved permission bits (0 means existing bits are preserved)."""
        return self._file_mode

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._handle is not None

    # ------------------------------------------------------------------
    # Node contract
    # ------------------------------------------------------------------

    def process(
        self,
        event: Event | None,
        cancel: threading.Event | None = None,
    ) -> Event | None:
        """Append the event's formatted representation to the file.

        Returns None on success: the pipeline ends at this node.
        """
        op = "FileSink.process"

        if cancel is not None and cancel.is_set():
            raise CancelledError(f"{op}: processing cancelled")

        if event is None:
            raise SinkError(ErrorKind.INVALID_PARAMETER, op, "event is None")

        if is_discard_path(self._path):
            return None

        formatted = event.format(self._required_format)
        if formatted is None:
            raise SinkError(
                ErrorKind.FORMAT_NOT_FOUND,
                op,
                f"unable to retrieve event formatted as {self._required_format!r}",
            )

        try:
            self._log(formatted)
        except SinkError as exc:
            if self._metrics is not None:
                self._metrics.record_failure(path=self._path, kind=exc.kind.value)
            LOGGER.error(
                "dropping event; file sink write failed",
                extra={"path": self._path, "kind": exc.kind.value, "error": str(exc)},
            )
            raise SinkError(
                exc.kind, op, "error writing file for sink", cause=exc
            ) from exc

        if self._metrics is not None:
            self._metrics.record_write(path=self._path, size=len(formatted))

        return None

    def reopen(self) -> None:
        """Close the current handle (if any) and open the path again.

        Used by rotation triggers so writing continues on the fresh inode.
        """
        op = "FileSink.reopen"

        if is_discard_path(self._path):
            return

        with self._lock:
            if self._metrics is not None:
                self._metrics.record_reopen(path=self._path)

            if self._handle is not None:
                try:
                    self._close_handle()
                except OSError as exc:
                    # The handle is already cleared: the next access reopens.
                    raise SinkError(
                        ErrorKind.IO_TRANSIENT,
                        op,
                        "unable to close file for re-opening on sink",
                        cause=exc,
                    ) from exc

            try:
                self._open()
            except OSError as exc:
                raise SinkError(
                    ErrorKind.IO_PERSISTENT,
                    op,
                    f"unable to open {self._path!r} for sink",
                    cause=exc,
                ) from exc

        LOGGER.info("file sink reopened", extra={"path": self._path})

    def type(self) -> NodeType:
        return NodeType.SINK

    def close(self) -> None:
        """Release the handle at process shutdown. Later writes reopen lazily."""
        op = "FileSink.close"

        with self._lock:
            try:
                self._close_handle()
            except OSError as exc:
                raise SinkError(
                    ErrorKind.IO_TRANSIENT, op, "unable to close file", cause=exc
                ) from exc

    # ------------------------------------------------------------------
    # Internals (callers hold self._lock)
    # ------------------------------------------------------------------

    def _open(self) -> io.FileIO:
        """Open the path for appending unless a handle is already present."""
        if self._handle is not None:
            return self._handle

        parent = os.path.dirname(self._path)
        if parent:
            os.makedirs(parent, mode=directory_mode(self._file_mode), exist_ok=True)

        mode = self._file_mode
        handle = open(  # pylint: disable=consider-using-with
            self._path,
            "ab",
            buffering=0,
            opener=lambda p, flags: os.open(p, flags, mode),
        )

        # The file may already have existed with other permissions.
        if not is_discard_path(self._path) and mode != PRESERVE_FILE_MODE:
            try:
                os.chmod(self._path, mode)
            except OSError:
                handle.close()
                raise

        self._handle = handle
        return handle

    def _close_handle(self) -> None:
        # Cleared before closing so a failed close never leaves a dead handle.
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()

    @staticmethod
    def _write_all(handle: io.FileIO, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = handle.write(view)
            if not written:
                raise OSError(f"short write on {handle.name!r}")
            view = view[written:]

    def _log(self, data: bytes) -> None:
        """Write ``data`` with at most one reopen and one retry."""
        op = "FileSink._log"

        with self._lock:
            try:
                handle = self._open()
            except OSError as exc:
                raise SinkError(
                    ErrorKind.IO_PERSISTENT, op, "unable to open file for sink", cause=exc
                ) from exc

            try:
                self._write_all(handle, data)
                return
            except _WRITE_ERRORS as exc:
                first_error = exc

            # Treat the descriptor as stale: drop it and try a fresh one once.
            try:
                self._close_handle()
            except OSError as exc:
                LOGGER.warning(
                    "unable to close stale file handle",
                    extra={"path": self._path, "error": str(exc)},
                )

            try:
                handle = self._open()
            except OSError as exc:
                raise SinkError(
                    ErrorKind.IO_PERSISTENT,
                    op,
                    "unable to re-open file for sink",
                    cause=exc,
                ) from exc

            try:
                self._write_all(handle, data)
            except _WRITE_ERRORS as exc:
                try:
                    self._close_handle()
                except OSError:
                    LOGGER.warning(
                        "unable to close file handle after failed retry",
                        extra={"path": self._path},
                    )
                raise SinkError(
                    ErrorKind.IO_PERSISTENT,
                    op,
                    "unable to re-write to file for sink",
                    cause=exc,
                ) from exc

            if self._metrics is not None:
                self._metrics.record_retry(path=self._path)

        LOGGER.warning(
            "recovered from failed write by reopening file",
            extra={
                "path": self._path,
                "kind": ErrorKind.IO_TRANSIENT.value,
                "error": str(first_error),
            },
        )
