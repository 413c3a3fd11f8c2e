"""Transport protocol: severity levels, log entries, and the sink interface.

Levels follow npm ordering (error: 0 ... silly: 5). A transport configured
at a level receives every entry at that level or more severe, so an
"info" sink sees error, warn and info entries but not debug ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hookrelay.request_log.records import RequestLogRecord


class Level(IntEnum):
    """Log severity, most severe first."""

    ERROR = 0
    WARN = 1
    INFO = 2
    VERBOSE = 3
    DEBUG = 4
    SILLY = 5

    @classmethod
    def parse(cls, value: str | int | Level) -> Level:
        """Accept 'warn', 'WARNING', 2, or a Level."""
        if isinstance(value, Level):
            return value
        if isinstance(value, int):
            return cls(value)
        name = value.strip().upper()
        if name == "WARNING":
            name = "WARN"
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"Unknown log level: {value!r}") from None

    def admits(self, entry_level: Level) -> bool:
        """True if a sink at this threshold should receive entry_level."""
        return entry_level <= self

    @property
    def label(self) -> str:
        return self.name.lower()


def _freeze(context: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(context or {}))


@dataclass(frozen=True)
class LogEntry:
    """One log emission handed to every admitting transport."""

    level: Level
    message: str = ""
    record: RequestLogRecord | None = None
    error: BaseException | None = None
    context: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "context", _freeze(self.context))

    @property
    def is_http(self) -> bool:
        """Entries from the HTTP completion path carry a record with a status."""
        return self.record is not None and self.record.status is not None

    def metadata(self) -> dict[str, Any]:
        """Record fields (if any) merged with the free-form context."""
        meta: dict[str, Any] = {}
        if self.record is not None:
            meta.update(self.record.as_dict())
        meta.update(self.context)
        return meta


@runtime_checkable
class Transport(Protocol):
    """Protocol for log sinks."""

    @property
    def name(self) -> str:
        """Unique identifier for this transport."""
        ...

    @property
    def level(self) -> Level:
        """Least severe level this transport accepts."""
        ...

    async def deliver(self, entry: LogEntry) -> None:
        """Deliver one entry. May raise; the fan-out isolates failures."""
        ...
