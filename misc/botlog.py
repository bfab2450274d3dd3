from __future__ import annotations

import sys
from datetime import datetime, timezone
from typing import Callable

LogSink = Callable[[str], None]

_sinks: list[LogSink] = []


def utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def add_sink(sink: LogSink) -> None:
    if sink not in _sinks:
        _sinks.append(sink)


def remove_sink(sink: LogSink) -> None:
    try:
        _sinks.remove(sink)
    except ValueError:
        pass


def format_log_line(tag: str, message: str, *, error: bool = False, ts: str | None = None) -> str:
    level = "ERROR" if error else "INFO"
    return f"[{ts or utc_iso()}] [{tag}] {level}: {message}"


def emit_log(tag: str, message: str, *, error: bool = False) -> str:
    """Print one tagged log line and forward it to every registered sink."""
    line = format_log_line(tag, message, error=error)
    print(line, file=sys.stderr if error else sys.stdout)
    for sink in list(_sinks):
        try:
            sink(line)
        except Exception as e:
            print(f"[Log] sink {sink!r} failed: {e}", file=sys.stderr)
    return line
