"""
Pipeline node interface.

Nodes receive events from the pipeline runtime. A sink node returns None
from process() to signal that the event must not travel further.
"""
from __future__ import annotations

import threading
from typing import Protocol

from audit_sink.core.events.event import Event, NodeType


class Node(Protocol):
    def process(
        self,
        event: Event | None,
        cancel: threading.Event | None = None,
    ) -> Event | None:
        """Handle one event, returning the event for the next node (or None)."""

    def reopen(self) -> None:
        """Release and re-acquire any underlying resources."""

    def type(self) -> NodeType:
        """Describe the role of this node."""
