"""Analytics transport: reports HTTP records to Google Analytics.

Uses the Measurement Protocol batch endpoint, one POST per record.

The optional field function receives the record and returns a mapping with:
- category, action [action required for an event hit]
- label, value
- uuid [visitor identity; falls back to the record's session id]
- trackingCode [falls back to the configured default]
- timings: list of {"name": ..., "time": ...} reported as extra timing hits
  (total response time is tracked automatically)

Without an action the record is reported as a plain page view.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping
from urllib.parse import urlencode

import httpx

from hookrelay.errors import ConfigurationError
from hookrelay.request_log.records import RequestLogRecord
from hookrelay.transports.protocol import Level, LogEntry

logger = logging.getLogger(__name__)

GA_BATCH_URL = "https://www.google-analytics.com/batch"

# Measurement Protocol batch limit
_MAX_HITS_PER_BATCH = 20

TIMING_CATEGORY = "Response Time"
TOTAL_TIME_VARIABLE = "Total Time"

AnalyticsFieldsFn = Callable[[RequestLogRecord], Mapping[str, Any] | None]


class AnalyticsTransport:
    """Page views, events and timings for info-level HTTP records."""

    def __init__(
        self,
        fields: AnalyticsFieldsFn | None = None,
        tracking_code: str = "",
        client: httpx.AsyncClient | None = None,
        endpoint: str = GA_BATCH_URL,
        name: str = "google-analytics",
        level: Level | str = Level.INFO,
    ):
        self._fields = fields
        self._tracking_code = tracking_code
        self._client = client
        self._endpoint = endpoint
        self._name = name
        self._level = Level.parse(level)

    @property
    def name(self) -> str:
        return self._name

    @property
    def level(self) -> Level:
        return self._level

    def _resolve_identity(self, record: RequestLogRecord, fields: Mapping[str, Any]) -> tuple[str, str]:
        """Return (tracking_code, visitor_id) or raise ConfigurationError."""
        visitor = fields.get("uuid") or record.session_id
        if not visitor:
            raise ConfigurationError("Could not make a UUID for Google Analytics")
        tracking_code = fields.get("trackingCode") or self._tracking_code
        if not tracking_code:
            raise ConfigurationError("Google Analytics requires a tracking code")
        return tracking_code, str(visitor)

    def build_hits(self, record: RequestLogRecord) -> list[dict[str, Any]]:
        """Translate one record into Measurement Protocol hits."""
        fields = dict(self._fields(record) or {}) if self._fields else {}
        tracking_code, visitor = self._resolve_identity(record, fields)

        base = {"v": 1, "tid": tracking_code, "cid": visitor, "uid": visitor}

        if not fields.get("action"):
            return [{**base, "t": "pageview", "dp": record.url}]

        event = {
            **base,
            "t": "event",
            "ec": fields.get("category"),
            "ea": fields.get("action"),
            "el": fields.get("label"),
            "ev": fields.get("value"),
            "dp": record.url,
        }
        hits = [{k: v for k, v in event.items() if v is not None}]

        if record.response_time is not None:
            hits.append(_timing_hit(base, TOTAL_TIME_VARIABLE, record.response_time))

        timings = fields.get("timings")
        if timings:
            if not isinstance(timings, list):
                logger.warning("An array of objects is required to add timings")
            else:
                for timing in timings:
                    hits.append(_timing_hit(base, timing.get("name"), timing.get("time")))
        return hits

    async def deliver(self, entry: LogEntry) -> None:
        # Warnings and debug output are not analytics
        if entry.level != Level.INFO:
            return
        record = entry.record
        if record is None or not entry.is_http:
            return
        # Site checkers use HEAD; they are not page hits
        if (record.method or "").upper() == "HEAD":
            return

        try:
            hits = self.build_hits(record)
        except ConfigurationError as e:
            logger.warning("%s", e)
            return

        body = "\n".join(urlencode(hit) for hit in hits[:_MAX_HITS_PER_BATCH])
        if self._client is not None:
            response = await self._client.post(self._endpoint, content=body)
        else:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(self._endpoint, content=body)
        response.raise_for_status()


def _timing_hit(base: Mapping[str, Any], variable: Any, time_ms: Any) -> dict[str, Any]:
    return {**base, "t": "timing", "utc": TIMING_CATEGORY, "utv": variable, "utt": time_ms}
