"""Webhook HTTP handlers: FastAPI routes for the messaging platform.

GET  /webhook  subscription handshake (echo hub.challenge on matching token)
POST /webhook  page callbacks:
1. Reads raw body (needed for HMAC verification)
2. Verifies x-hub-signature (AuthenticationError -> 403 via app handler)
3. Rejects anything that is not a page subscription with 403
4. Re-runs each message through the local pipeline and posts the reply
5. Returns 200 once every message has settled, even if some failed

The platform expects a 200 within 20 seconds of each callback and
retries the whole batch otherwise, so per-message failures are logged,
not reported back.
"""

from __future__ import annotations

import json
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from hookrelay.config import Settings
from hookrelay.webhooks.dispatcher import MessagingEvent, dispatch_batch, is_page_callback
from hookrelay.webhooks.verification import SIGNATURE_HEADER, verify_signature

logger = logging.getLogger(__name__)

# Base URL for synthetic requests re-entering this app
_LOCAL_BASE_URL = "http://hookrelay.local"


def verify_subscription(mode: str | None, token: str | None, expected: str) -> bool:
    """True if the handshake asks to subscribe with the configured token."""
    return mode == "subscribe" and bool(expected) and token == expected


async def run_local_pipeline(app: FastAPI, path: str, event: MessagingEvent) -> str:
    """Submit a message to this app as if it had arrived on path.

    The synthetic request goes through the full middleware stack, so it is
    timed and logged like any other request.
    """
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url=_LOCAL_BASE_URL) as client:
        response = await client.post(
            path,
            json={"Body": event.text, "From": event.sender_id, "isFB": True},
        )
    if response.status_code != 200:
        logger.warning(
            "Local pipeline answered %d for message from %s",
            response.status_code,
            event.sender_id,
        )
    return response.text


def register_webhook_routes(app: FastAPI) -> None:
    """Register the webhook endpoints on the FastAPI app.

    Expects app.state.settings (Settings) and app.state.reply_sender.
    """

    @app.get("/webhook")
    async def webhook_verify(request: Request):
        """Subscription handshake."""
        settings: Settings = request.app.state.settings
        params = request.query_params
        if verify_subscription(
            params.get("hub.mode"),
            params.get("hub.verify_token"),
            settings.validation_token,
        ):
            return PlainTextResponse(params.get("hub.challenge", ""), status_code=200)

        logger.warning("Failed validation. Make sure the validation tokens match.")
        return Response(status_code=403)

    @app.post("/webhook")
    async def webhook_update(request: Request):
        """Receive page callbacks (signature-verified)."""
        settings: Settings = request.app.state.settings
        body = await request.body()

        verify_signature(body, request.headers.get(SIGNATURE_HEADER), settings.app_secret)

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Webhook body is not valid JSON")
            return Response(status_code=400)

        if not is_page_callback(payload):
            return Response(status_code=403)

        async def process_event(event: MessagingEvent) -> str:
            return await run_local_pipeline(request.app, settings.local_message_path, event)

        await dispatch_batch(payload, process_event, request.app.state.reply_sender.send)
        return Response(status_code=200)

    logger.debug("Webhook routes registered: /webhook")
