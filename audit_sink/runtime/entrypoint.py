from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, BinaryIO, Iterable

from audit_sink.core.config.file_sink_config import FileSinkConfig
from audit_sink.core.events.errors import SinkError
from audit_sink.core.events.event import Event
from audit_sink.core.events.sinks.file_sink import FileSink
from audit_sink.runtime.rotation import install_reopen_handler
from audit_sink.runtime.sink_metrics import SinkMetrics

LOGGER = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return json.loads(path.read_text(encoding="utf-8"))


def _parse_label(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {raw!r}")
    return key, value


def build_config(args: argparse.Namespace) -> FileSinkConfig:
    """
    --config wins; individual flags override keys of the loaded object.
    """
    raw: dict[str, Any] = {}
    if args.config is not None:
        raw.update(_load_json(args.config))

    if args.path is not None:
        raw["path"] = args.path
    if args.format is not None:
        raw["format"] = args.format
    if args.file_mode is not None:
        raw["file_mode"] = args.file_mode

    return FileSinkConfig.from_json_obj(raw)


def pump(sink: FileSink, records: Iterable[bytes], *, event_type: str) -> int:
    """
    Feed newline-delimited records into the sink.

    Returns the number of records that could not be written.
    """
    failed = 0
    for record in records:
        event = Event(type=event_type, payload=record).with_format(
            sink.required_format, record
        )
        try:
            sink.process(event)
        except SinkError:
            failed += 1
    return failed


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None, stdin: BinaryIO | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Append stdin records to a file sink (SIGHUP reopens the file)"
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a JSON file sink config.",
    )
    parser.add_argument("--path", type=str, default=None)
    parser.add_argument("--format", type=str, default=None)
    parser.add_argument(
        "--file-mode",
        type=str,
        default=None,
        help="Octal permission bits (e.g. 0640). 0 keeps the existing file's mode.",
    )
    parser.add_argument("--event-type", type=str, default="audit")
    parser.add_argument("--metrics-job", type=str, default=None)
    parser.add_argument(
        "--metrics-label",
        type=_parse_label,
        action="append",
        default=[],
        help="Pushgateway grouping label as KEY=VALUE (repeatable).",
    )
    parser.add_argument("--log-level", type=str, default="INFO")

    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper())

    config = build_config(args)
    metrics = SinkMetrics(grouping_key=dict(args.metrics_label))
    sink = FileSink.from_config(config, metrics=metrics)

    rotation = install_reopen_handler([sink])

    stream = stdin if stdin is not None else sys.stdin.buffer
    try:
        failed = pump(sink, stream, event_type=args.event_type)
    finally:
        rotation.uninstall()
        sink.close()

    if args.metrics_job:
        try:
            metrics.push(job=args.metrics_job)
        except Exception:  # pylint: disable=broad-exception-caught
            LOGGER.exception("Prometheus push failed")

    if failed:
        LOGGER.error("records dropped", extra={"failed": failed, "path": sink.path})
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
