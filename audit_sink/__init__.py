"""Public API for the audit_sink package.

Only symbols imported here are considered part of the stable,
supported external interface.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ----------------------------------------------------------------------
# Config API
# ----------------------------------------------------------------------
from audit_sink.core.config.file_sink_config import FileSinkConfig

# ----------------------------------------------------------------------
# Pipeline contract
# ----------------------------------------------------------------------
from audit_sink.core.events.errors import ErrorKind, SinkError
from audit_sink.core.events.event import Event, NodeType
from audit_sink.core.events.node import Node

# ----------------------------------------------------------------------
# Sinks
# ----------------------------------------------------------------------
from audit_sink.core.events.sinks.file_mode import DEFAULT_FILE_MODE, DISCARD_PATH
from audit_sink.core.events.sinks.file_sink import FileSink

# ----------------------------------------------------------------------
# Runtime helpers
# ----------------------------------------------------------------------
from audit_sink.runtime.rotation import ReopenWorker, install_reopen_handler
from audit_sink.runtime.sink_metrics import SinkMetrics

# ----------------------------------------------------------------------
# Public API definition
# ----------------------------------------------------------------------

__all__ = [
    # Sinks
    "FileSink",
    "DEFAULT_FILE_MODE",
    "DISCARD_PATH",

    # Config
    "FileSinkConfig",

    # Pipeline contract
    "Event",
    "Node",
    "NodeType",
    "ErrorKind",
    "SinkError",

    # Runtime
    "SinkMetrics",
    "ReopenWorker",
    "install_reopen_handler",

    # Version
    "__version__",
]

# ----------------------------------------------------------------------
# Package version
# ----------------------------------------------------------------------

try:
    __version__ = version("audit-sink")
except PackageNotFoundError:
    __version__ = "0.0.0"
