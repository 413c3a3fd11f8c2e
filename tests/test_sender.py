"""Tests for the Send API reply client."""

from __future__ import annotations

import json

import httpx
import pytest

from hookrelay.errors import SendError
from hookrelay.webhooks.sender import ReplySender, build_reply

SEND_URL = "https://graph.example.test/v2.6/me/messages"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestBuildReply:

    def test_envelope_shape(self):
        assert build_reply("42", "hi", "META") == {
            "recipient": {"id": "42"},
            "message": {"text": "hi", "metadata": "META"},
        }


class TestReplySender:

    @pytest.mark.asyncio
    async def test_success(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"recipient_id": "42", "message_id": "mid.1"})

        async with _client(handler) as client:
            sender = ReplySender("page-token", client=client, url=SEND_URL)
            assert await sender.send("42", "Next bus in 5 minutes") == "success"

        request = captured[0]
        assert request.method == "POST"
        assert request.url.params["access_token"] == "page-token"
        assert str(request.url).startswith(SEND_URL)
        assert json.loads(request.content) == {
            "recipient": {"id": "42"},
            "message": {"text": "Next bus in 5 minutes", "metadata": "DEVELOPER_DEFINED_METADATA"},
        }

    @pytest.mark.asyncio
    async def test_non_200_raises_send_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "Invalid recipient"}})

        async with _client(handler) as client:
            sender = ReplySender("page-token", client=client, url=SEND_URL)
            with pytest.raises(SendError) as exc_info:
                await sender.send("42", "hi")
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_transport_error_raises_send_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            sender = ReplySender("page-token", client=client, url=SEND_URL)
            with pytest.raises(SendError) as exc_info:
                await sender.send("42", "hi")
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_single_attempt(self):
        """No retries on failure."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(503)

        async with _client(handler) as client:
            sender = ReplySender("page-token", client=client, url=SEND_URL)
            with pytest.raises(SendError):
                await sender.send("42", "hi")
        assert calls == 1

    @pytest.mark.asyncio
    async def test_aclose_leaves_injected_client_open(self):
        async with _client(lambda r: httpx.Response(200)) as client:
            sender = ReplySender("page-token", client=client, url=SEND_URL)
            await sender.aclose()
            assert not client.is_closed
