"""Structured request log records.

A record has a fixed set of known HTTP fields plus an open, read-only
mapping for whatever the caller's field function adds. Caller fields win
on key collision with the defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterable, Mapping

# Caller-facing key -> record attribute
_KNOWN_KEYS: dict[str, str] = {
    "method": "method",
    "status": "status",
    "url": "url",
    "ip": "ip",
    "timestamp": "timestamp",
    "responseTime": "response_time",
    "response_time": "response_time",
    "sessionId": "session_id",
    "session_id": "session_id",
    "uuid": "session_id",
}

# Record attribute -> rendered key
_RENDERED_KEYS: dict[str, str] = {
    "method": "method",
    "status": "status",
    "url": "url",
    "ip": "ip",
    "timestamp": "timestamp",
    "response_time": "responseTime",
    "session_id": "sessionId",
}


@dataclass(frozen=True)
class RequestLogRecord:
    """Immutable log record for one completed HTTP request."""

    method: str | None = None
    status: int | None = None
    url: str | None = None
    ip: str | None = None
    timestamp: str | None = None
    response_time: int | None = None
    session_id: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a known field (by any accepted key) or an extra field."""
        attr = _KNOWN_KEYS.get(key)
        if attr is not None:
            return getattr(self, attr)
        return self.extra.get(key, default)

    def as_dict(self) -> dict[str, Any]:
        """Render as a flat mapping: known fields in wire names, then extras."""
        rendered = {
            _RENDERED_KEYS[f.name]: getattr(self, f.name)
            for f in fields(self)
            if f.name != "extra"
        }
        rendered.update(self.extra)
        return rendered


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_record(
    defaults: Mapping[str, Any],
    caller_fields: Mapping[str, Any] | None = None,
) -> RequestLogRecord:
    """Merge caller fields over defaults into one record.

    Both mappings may use wire names (``responseTime``) or attribute names
    (``response_time``). Unknown keys go to ``extra``.
    """
    known: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for source in (defaults, caller_fields or {}):
        for key, value in source.items():
            attr = _KNOWN_KEYS.get(key)
            if attr is not None:
                known[attr] = value
            else:
                extra[key] = value
    return RequestLogRecord(**known, extra=extra)


def should_log(
    path: str,
    user_agent: str | None,
    excluded_prefixes: Iterable[str] = ("/css", "/javascripts", "/img"),
    healthcheck_agents: Iterable[str] = ("ELB-HealthChecker",),
) -> bool:
    """Skip static assets and load-balancer health checks."""
    if any(path.startswith(prefix) for prefix in excluded_prefixes):
        return False
    if user_agent and any(user_agent.startswith(agent) for agent in healthcheck_agents):
        return False
    return True
