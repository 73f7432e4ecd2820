"""
Sink error taxonomy.

Every failure raised by a sink node carries an ErrorKind so callers can
branch on the category without matching message text. The underlying OS
or library exception is chained as ``__cause__``.
"""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    # Fatal to construction: the sink is never handed to the caller.
    CONFIGURATION = "configuration"

    # Caller defect (e.g. a missing event); the sink stays usable.
    INVALID_PARAMETER = "invalid_parameter"

    # Upstream formatter did not produce the representation the sink needs.
    FORMAT_NOT_FOUND = "format_not_found"

    # I/O failure that left the sink ready to recover on the next access.
    IO_TRANSIENT = "io_transient"

    # I/O failure that survived the bounded retry.
    IO_PERSISTENT = "io_persistent"


class SinkError(Exception):
    """Error raised by sink operations."""

    def __init__(
        self,
        kind: ErrorKind,
        op: str,
        message: str,
        *,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(f"{op}: {message}")
        self.kind = kind
        self.op = op
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        text = super().__str__()
        if self.cause is not None:
            return f"{text}: {self.cause}"
        return text
