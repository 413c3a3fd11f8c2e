"""Error-reporting transport: forwards error-level entries to Rollbar.

Accepted shapes (via LogFanout.log / logger.error):
- error(exc)               -> reported with the full stack trace
- error(exc, {key: value}) -> trace plus custom data
- error("message", {...})  -> message report with custom data, no trace
- error("message")         -> message report

Security: the access token comes from settings, never logged.
"""

from __future__ import annotations

import asyncio
import logging

import rollbar

from hookrelay.transports.protocol import Level, LogEntry

logger = logging.getLogger(__name__)


class ErrorReportingTransport:
    """Rollbar notifications for error-level entries."""

    def __init__(
        self,
        access_token: str,
        environment: str = "development",
        name: str = "rollbar",
        level: Level | str = Level.ERROR,
    ):
        self._name = name
        self._level = Level.parse(level)
        rollbar.init(access_token, environment)
        logger.debug("Rollbar initialized for environment=%s", environment)

    @property
    def name(self) -> str:
        return self._name

    @property
    def level(self) -> Level:
        return self._level

    async def deliver(self, entry: LogEntry) -> None:
        custom = entry.metadata() or None
        if entry.error is not None:
            exc = entry.error
            await asyncio.to_thread(
                rollbar.report_exc_info,
                (type(exc), exc, exc.__traceback__),
                extra_data=custom,
            )
        else:
            await asyncio.to_thread(
                rollbar.report_message,
                entry.message,
                level="error",
                extra_data=custom,
            )
