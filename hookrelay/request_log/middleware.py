"""Request logging middleware.

Accepts an optional field function with the signature
    fields(request, response) -> mapping
invoked after the response has finished. The mapping is merged over the
default fields, for example {"phonenumber": body["From"]}. A key equal to a
default field name overrides that default.

Ordering:
1. Static assets and health checks are skipped before any work
2. Start mark on entry, end mark when response headers are sent
3. Once the final body chunk is sent, the record is built and submitted
   to the fan-out in the background. Slow sinks never delay the response.
4. An exception escaping before any response is logged with status 500
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from hookrelay.request_log.records import build_record, should_log, utc_timestamp
from hookrelay.request_log.timing import TimingTracker
from hookrelay.transports.fanout import LogFanout
from hookrelay.transports.protocol import Level, LogEntry

logger = logging.getLogger(__name__)


@dataclass
class ResponseInfo:
    """What the middleware observed of the response."""

    status_code: int | None = None
    headers: Headers = field(default_factory=Headers)
    finished: bool = False


LogFieldsFn = Callable[[Request, ResponseInfo], Mapping[str, Any] | None]


def _request_url(scope: Scope) -> str:
    path = scope.get("root_path", "") + scope.get("path", "")
    query = scope.get("query_string", b"")
    if query:
        return f"{path}?{query.decode('latin-1')}"
    return path


class RequestLogMiddleware:
    """Pure ASGI middleware timing each request and logging it on completion."""

    def __init__(
        self,
        app: ASGIApp,
        fanout: LogFanout,
        fields: LogFieldsFn | None = None,
        excluded_prefixes: Iterable[str] = ("/css", "/javascripts", "/img"),
        healthcheck_agents: Iterable[str] = ("ELB-HealthChecker",),
    ):
        self.app = app
        self.fanout = fanout
        self.fields = fields
        self.excluded_prefixes = tuple(excluded_prefixes)
        self.healthcheck_agents = tuple(healthcheck_agents)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        url = _request_url(scope)
        user_agent = Headers(scope=scope).get("user-agent")
        if not should_log(url, user_agent, self.excluded_prefixes, self.healthcheck_agents):
            await self.app(scope, receive, send)
            return

        tracker = TimingTracker()
        tracker.mark_start()
        response = ResponseInfo()

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                response.status_code = message["status"]
                response.headers = Headers(raw=message.get("headers", []))
                tracker.mark_end()
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                response.finished = True

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            # The outer error middleware answers 500 after this layer unwinds
            if response.status_code is None:
                response.status_code = 500
                tracker.mark_end()
            raise
        finally:
            if response.status_code is not None:
                self._submit(Request(scope, receive), url, response, tracker)

    def _submit(
        self,
        request: Request,
        url: str,
        response: ResponseInfo,
        tracker: TimingTracker,
    ) -> None:
        caller_fields: Mapping[str, Any] = {}
        if self.fields is not None:
            try:
                caller_fields = self.fields(request, response) or {}
            except Exception:
                logger.exception("Log field function failed for %s %s", request.method, url)

        defaults = {
            "method": request.method,
            "status": response.status_code,
            "url": url,
            "ip": request.client.host if request.client else None,
            "timestamp": utc_timestamp(),
            "responseTime": tracker.response_time_ms(),
            "sessionId": getattr(request.state, "session_id", None),
        }
        record = build_record(defaults, caller_fields)
        self.fanout.submit(LogEntry(level=Level.INFO, record=record))
