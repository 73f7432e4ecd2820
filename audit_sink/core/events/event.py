"""
Pipeline event model.

An Event travels through the pipeline nodes. Formatter nodes attach
serialized representations under a format name; sink nodes read them back
and never mutate the event.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class NodeType(str, Enum):
    """Role of a node in the pipeline graph."""

    FILTER = "filter"
    FORMATTER = "formatter"
    FORMATTER_FILTER = "formatter_filter"

    # Terminal consumer: no event continues past a sink.
    SINK = "sink"


@dataclass(slots=True)
class Event:
    type: str
    payload: Any = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    formatted: dict[str, bytes] = field(default_factory=dict)

    def format(self, name: str) -> bytes | None:
        """Return the representation serialized as ``name``, if any."""
        return self.formatted.get(name)

    def with_format(self, name: str, data: bytes) -> Event:
        """Attach a serialized representation and return the event."""
        self.formatted[name] = bytes(data)
        return self
