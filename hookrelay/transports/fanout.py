"""Log fan-out: deliver one entry to every registered transport.

Design inspired by the channel dock pattern:
- Transports are registered once, when the fan-out is constructed
- Each transport has its own severity threshold
- Each delivery runs in its own task; one sink failing never blocks
  or fails the others, and never reaches the caller
- submit() is fire-and-forget relative to the HTTP request
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from hookrelay.request_log.records import RequestLogRecord
from hookrelay.transports.protocol import Level, LogEntry, Transport

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    """Outcome of delivering one entry to one transport."""

    transport: str
    success: bool
    error: str = ""


class LogFanout:
    """Explicit logger configuration: an immutable list of transports."""

    def __init__(self, transports: Iterable[Transport] = ()):
        self._transports: tuple[Transport, ...] = tuple(transports)
        self._pending: set[asyncio.Task] = set()
        names = [t.name for t in self._transports]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate transport names: {names}")
        for transport in self._transports:
            logger.info(
                "Log transport registered: %s level=%s",
                transport.name,
                transport.level.label,
            )

    @property
    def transports(self) -> tuple[Transport, ...]:
        return self._transports

    def get_transport(self, name: str) -> Transport | None:
        for transport in self._transports:
            if transport.name == name:
                return transport
        return None

    async def emit(self, entry: LogEntry) -> list[DeliveryResult]:
        """Deliver to all admitting transports and wait for every one to settle."""
        targets = [t for t in self._transports if t.level.admits(entry.level)]
        if not targets:
            return []

        outcomes = await asyncio.gather(
            *(t.deliver(entry) for t in targets),
            return_exceptions=True,
        )

        results: list[DeliveryResult] = []
        for transport, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Log transport %s failed: %s: %s",
                    transport.name,
                    type(outcome).__name__,
                    outcome,
                )
                results.append(
                    DeliveryResult(transport=transport.name, success=False, error=str(outcome))
                )
            else:
                results.append(DeliveryResult(transport=transport.name, success=True))
        return results

    def submit(self, entry: LogEntry) -> asyncio.Task | None:
        """Schedule emit() in the background and return immediately.

        Outside a running event loop the entry is delivered synchronously.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.emit(entry))
            return None

        task = loop.create_task(self.emit(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every background delivery submitted so far."""
        while True:
            pending = [t for t in self._pending if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def log(
        self,
        level: Level | str,
        message: str | BaseException = "",
        meta: RequestLogRecord | Mapping[str, Any] | BaseException | None = None,
    ) -> asyncio.Task | None:
        """Build an entry from loose arguments and submit it.

        Accepts the same shapes as the request logger always has:
        log("error", exc), log("error", exc, {...}), log("error", "msg", {...}),
        log("info", record).
        """
        return self.submit(make_entry(level, message, meta))

    def info(self, message: str | BaseException = "", meta: Any = None) -> asyncio.Task | None:
        return self.log(Level.INFO, message, meta)

    def warning(self, message: str | BaseException = "", meta: Any = None) -> asyncio.Task | None:
        return self.log(Level.WARN, message, meta)

    def error(self, message: str | BaseException = "", meta: Any = None) -> asyncio.Task | None:
        return self.log(Level.ERROR, message, meta)

    def debug(self, message: str | BaseException = "", meta: Any = None) -> asyncio.Task | None:
        return self.log(Level.DEBUG, message, meta)


def make_entry(
    level: Level | str,
    message: str | BaseException = "",
    meta: RequestLogRecord | Mapping[str, Any] | BaseException | None = None,
) -> LogEntry:
    """Normalize loose logging arguments into a LogEntry."""
    error: BaseException | None = None
    record: RequestLogRecord | None = None
    context: Mapping[str, Any] = {}

    if isinstance(message, BaseException):
        error = message
        message = str(message)
    if isinstance(meta, BaseException):
        error = meta
        message = message or str(meta)
    elif isinstance(meta, RequestLogRecord):
        record = meta
    elif meta is not None:
        context = meta

    return LogEntry(
        level=Level.parse(level),
        message=message,
        record=record,
        error=error,
        context=context,
    )
