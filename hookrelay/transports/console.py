"""Console transport: human-readable log lines on a text stream.

HTTP completion records print as one compact line:
    info: 200 127.0.0.1 POST / hello
Everything else prints like print() with a level prefix, followed by the
context as indented JSON when there is any.
"""

from __future__ import annotations

import json
import sys
from typing import TextIO

from hookrelay.transports.protocol import Level, LogEntry

_LEVEL_COLOR = {
    Level.ERROR: "\033[31m",    # red
    Level.WARN: "\033[33m",     # yellow
    Level.INFO: "\033[32m",     # green
    Level.VERBOSE: "\033[36m",  # cyan
    Level.DEBUG: "\033[34m",    # blue
    Level.SILLY: "\033[35m",    # magenta
}
_RESET = "\033[39m"


class ConsoleTransport:
    """Writes formatted entries to stdout (or any text stream)."""

    def __init__(
        self,
        name: str = "console",
        level: Level | str = Level.DEBUG,
        stream: TextIO | None = None,
        colorize: bool = False,
    ):
        self._name = name
        self._level = Level.parse(level)
        self._stream = stream
        self._colorize = colorize

    @property
    def name(self) -> str:
        return self._name

    @property
    def level(self) -> Level:
        return self._level

    def _level_prefix(self, level: Level) -> str:
        if not self._colorize:
            return level.label
        return f"{_LEVEL_COLOR[level]}{level.label}{_RESET}"

    def format(self, entry: LogEntry) -> str:
        prefix = self._level_prefix(entry.level)
        if entry.is_http:
            record = entry.record
            text_input = record.get("input") or ""
            return f"{prefix}: {record.status} {record.ip} {record.method} {record.url} {text_input}"

        meta = entry.metadata()
        line = f"{prefix}: {entry.message}"
        if meta:
            line += json.dumps(meta, indent=2, default=str)
        return line

    async def deliver(self, entry: LogEntry) -> None:
        stream = self._stream or sys.stdout
        stream.write(self.format(entry) + "\n")
        stream.flush()
