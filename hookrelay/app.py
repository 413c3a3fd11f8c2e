"""Application factory.

Wiring (outermost first):
1. RequestLogMiddleware: times and logs every request, including the
   synthetic per-message requests the webhook re-enters the app with
2. Routes: POST / (local message pipeline), GET/POST /webhook

The LogFanout is built once here and carried on app.state; nothing
registers transports anywhere else.
"""

from __future__ import annotations

import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Mapping

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from hookrelay.config import Settings, get_settings
from hookrelay.errors import AuthenticationError
from hookrelay.request_log.bridge import install_log_bridge
from hookrelay.request_log.middleware import LogFieldsFn, RequestLogMiddleware, ResponseInfo
from hookrelay.transports.analytics import AnalyticsFieldsFn, AnalyticsTransport
from hookrelay.transports.console import ConsoleTransport
from hookrelay.transports.error_reporting import ErrorReportingTransport
from hookrelay.transports.fanout import LogFanout
from hookrelay.transports.protocol import Transport
from hookrelay.webhooks.handlers import register_webhook_routes
from hookrelay.webhooks.sender import ReplySender

logger = logging.getLogger(__name__)

Responder = Callable[["InboundMessage"], str | Awaitable[str]]


class InboundMessage(BaseModel):
    """A message entering the local pipeline."""

    model_config = ConfigDict(populate_by_name=True)

    body: str | None = Field(default=None, alias="Body", description="Message text")
    sender: str = Field(alias="From", description="Sender address or platform id")
    is_fb: bool = Field(default=False, alias="isFB")


def echo_responder(message: InboundMessage) -> str:
    """Default responder: acknowledge the message text."""
    return f"Received: {message.body or ''}"


def default_log_fields(request: Request, response: ResponseInfo) -> Mapping[str, Any]:
    """Add the inbound message text to the record when a route stored it."""
    text = getattr(request.state, "log_input", None)
    return {"input": text} if text else {}


def build_fanout(
    settings: Settings,
    analytics_fields: AnalyticsFieldsFn | None = None,
    analytics_client: httpx.AsyncClient | None = None,
) -> LogFanout:
    """Console always; Rollbar when a token is set; analytics when a field function is given."""
    transports: list[Transport] = [
        ConsoleTransport(level=settings.console_log_level, colorize=settings.console_colorize)
    ]

    if settings.rollbar_token:
        transports.append(
            ErrorReportingTransport(settings.rollbar_token, environment=settings.environment)
        )
    else:
        logger.info("Rollbar token not set, error reporting disabled")

    if analytics_fields is not None:
        transports.append(
            AnalyticsTransport(
                fields=analytics_fields,
                tracking_code=settings.ga_tracking_code,
                client=analytics_client,
                endpoint=settings.analytics_url,
            )
        )
    else:
        logger.warning("Analytics transport requires a field function, not registered")

    return LogFanout(transports)


async def _authentication_error_handler(request: Request, exc: AuthenticationError):
    """Signature failures abort the request; details are not disclosed."""
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse({"error": "Forbidden"}, status_code=403)


def create_app(
    settings: Settings | None = None,
    responder: Responder | None = None,
    log_fields: LogFieldsFn | None = default_log_fields,
    analytics_fields: AnalyticsFieldsFn | None = None,
    fanout: LogFanout | None = None,
    reply_sender: ReplySender | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        settings: Configuration (read from the environment when omitted)
        responder: Turns an inbound message into reply text
        log_fields: Extra request-log fields, merged over the defaults
        analytics_fields: Field function for the analytics transport
        fanout: Prebuilt fan-out (built from settings when omitted)
        reply_sender: Send API client (built from settings when omitted)
    """
    settings = settings or get_settings()
    responder = responder or echo_responder
    fanout = fanout or build_fanout(settings, analytics_fields)
    reply_sender = reply_sender or ReplySender(
        settings.page_access_token,
        url=settings.send_api_url,
        metadata=settings.reply_metadata,
        timeout=settings.http_timeout,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.reply_sender.aclose()
        await app.state.fanout.drain()

    app = FastAPI(title="hookrelay", lifespan=lifespan)
    app.state.settings = settings
    app.state.fanout = fanout
    app.state.reply_sender = reply_sender

    install_log_bridge(fanout)

    @app.post(settings.local_message_path, response_class=PlainTextResponse)
    async def local_message(message: InboundMessage, request: Request):
        """Local message pipeline: answers with the reply text."""
        request.state.log_input = message.body
        reply = responder(message)
        if inspect.isawaitable(reply):
            reply = await reply
        return PlainTextResponse(reply)

    register_webhook_routes(app)
    app.add_exception_handler(AuthenticationError, _authentication_error_handler)

    app.add_middleware(
        RequestLogMiddleware,
        fanout=fanout,
        fields=log_fields,
        excluded_prefixes=settings.excluded_path_prefixes,
        healthcheck_agents=settings.healthcheck_user_agents,
    )
    return app
