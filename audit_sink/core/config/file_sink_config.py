"""File sink configuration model."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

_MAX_FILE_MODE = 0o7777

# Same shape as mode_octal_string in file_sink_config.schema.json.
_OCTAL_MODE_RE = re.compile(r"(0[oO])?([0-7]{1,4})")


class FileSinkConfig(BaseModel):
    """Structured file sink configuration.

    JSON example:
        "sink": {
          "path": "/var/log/audit/audit.log",
          "format": "json",
          "file_mode": "0640"
        }

    ``file_mode`` accepts an integer or an octal string. Leaving it out keeps
    the default (owner read/write); ``0`` / ``"0000"`` preserves the mode of
    the existing file.
    """

    path: str = Field(..., min_length=1)
    format: str = Field(..., min_length=1)
    file_mode: StrictInt | None = Field(default=None, ge=0, le=_MAX_FILE_MODE)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @classmethod
    def from_json_obj(cls, sink_obj: dict[str, Any]) -> FileSinkConfig:
        """Create a FileSinkConfig instance from a JSON-compatible object."""
        return cls.model_validate(sink_obj)

    @field_validator("path")
    @classmethod
    def _path_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("path must not be blank")
        return value

    @field_validator("file_mode", mode="before")
    @classmethod
    def _parse_octal_mode(cls, value: Any) -> Any:
        """Interpret string modes as octal ("0640", "640" and "0o640")."""
        if not isinstance(value, str):
            return value

        match = _OCTAL_MODE_RE.fullmatch(value)
        if match is None:
            raise ValueError(f"file_mode must be an octal string, got {value!r}")
        return int(match.group(2), 8)

    def to_sink_params(self) -> dict[str, Any]:
        """Convert into keyword arguments for FileSink."""
        return {
            "path": self.path,
            "required_format": self.format,
            "file_mode": self.file_mode,
        }
