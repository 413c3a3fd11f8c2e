"""Send API client: posts reply messages back to the messaging platform.

Single attempt per call. Retries, if ever wanted, belong to the caller.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from hookrelay.errors import SendError

logger = logging.getLogger(__name__)

DEFAULT_SEND_API_URL = "https://graph.facebook.com/v2.6/me/messages"


def build_reply(recipient_id: str, text: str, metadata: str) -> dict[str, Any]:
    """Send API message envelope."""
    return {
        "recipient": {"id": recipient_id},
        "message": {"text": text, "metadata": metadata},
    }


class ReplySender:
    """Reply to a sender through the Send API."""

    def __init__(
        self,
        access_token: str,
        client: httpx.AsyncClient | None = None,
        url: str = DEFAULT_SEND_API_URL,
        metadata: str = "DEVELOPER_DEFINED_METADATA",
        timeout: float = 10.0,
    ):
        self._access_token = access_token
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._url = url
        self._metadata = metadata

    async def send(self, recipient_id: str, text: str) -> str:
        """Post one reply. Returns "success" or raises SendError."""
        payload = build_reply(recipient_id, text, self._metadata)
        try:
            response = await self._client.post(
                self._url,
                params={"access_token": self._access_token},
                json=payload,
            )
        except httpx.HTTPError as e:
            logger.error("Failed calling Send API: %s", e)
            raise SendError("Failed calling Send API") from e

        if response.status_code != 200:
            logger.error(
                "Failed calling Send API: %d - %s",
                response.status_code,
                response.reason_phrase,
            )
            raise SendError("Failed calling Send API", status_code=response.status_code)

        logger.debug("Reply sent to recipient %s", recipient_id)
        return "success"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
