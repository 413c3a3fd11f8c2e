"""Python logging -> log fan-out bridge.

Lets module code keep using logging.getLogger(__name__) while warnings
reach the console transport and errors reach error reporting.
"""

from __future__ import annotations

import logging

from hookrelay.transports.fanout import LogFanout
from hookrelay.transports.protocol import Level, LogEntry

# Transports log their own failures; bridging those would loop
_EXCLUDED_LOGGER_PREFIX = "hookrelay.transports"

_LEVEL_MAP = {
    logging.CRITICAL: Level.ERROR,
    logging.ERROR: Level.ERROR,
    logging.WARNING: Level.WARN,
    logging.INFO: Level.INFO,
    logging.DEBUG: Level.DEBUG,
}


def to_level(levelno: int) -> Level:
    """Map a stdlib level number onto the nearest fan-out level."""
    for threshold in sorted(_LEVEL_MAP, reverse=True):
        if levelno >= threshold:
            return _LEVEL_MAP[threshold]
    return Level.SILLY


class FanoutLogHandler(logging.Handler):
    """Logging handler that submits records to a LogFanout."""

    def __init__(self, fanout: LogFanout, level: int = logging.WARNING):
        super().__init__(level)
        self.fanout = fanout

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(_EXCLUDED_LOGGER_PREFIX):
            return False
        return super().filter(record)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            error = record.exc_info[1] if record.exc_info else None
            self.fanout.submit(
                LogEntry(
                    level=to_level(record.levelno),
                    message=record.getMessage(),
                    error=error,
                    context={"logger": record.name},
                )
            )
        except Exception:
            self.handleError(record)


def install_log_bridge(
    fanout: LogFanout,
    logger_name: str = "hookrelay",
    level: int = logging.WARNING,
) -> FanoutLogHandler:
    """Attach a FanoutLogHandler to logger_name, replacing any earlier one."""
    target = logging.getLogger(logger_name)
    for existing in list(target.handlers):
        if isinstance(existing, FanoutLogHandler):
            target.removeHandler(existing)
    handler = FanoutLogHandler(fanout, level)
    target.addHandler(handler)
    if target.level == logging.NOTSET or target.level > level:
        target.setLevel(level)
    return handler
