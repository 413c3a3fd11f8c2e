"""Webhook batch dispatcher: flattens page callbacks into per-message work.

The platform may batch several entries, each with several messaging
events, into one callback. Every event carrying a message is processed
independently: it is re-run through the local request pipeline and the
pipeline's answer is posted back to the sender.

Contract:
- Events without a message (delivery receipts, read marks, ...) are
  dropped with a warning; nothing is retried or queued
- All events of a batch run concurrently; the dispatcher waits for every
  one to settle and never short-circuits on the first failure
- Per-event failures are logged at error level and counted, never raised
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from hookrelay.errors import MalformedEventError

logger = logging.getLogger(__name__)

PAGE_OBJECT = "page"


@dataclass(frozen=True)
class MessagingEvent:
    """One inbound message from a user."""

    sender_id: str
    text: str | None = None


@dataclass(frozen=True)
class WebhookEnvelope:
    """One callback entry: a page id, a timestamp and its events."""

    source_id: str | None
    timestamp: int | None
    events: tuple[MessagingEvent, ...] = ()


@dataclass
class DispatchSummary:
    """What happened to one callback batch."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    dropped: int = 0
    errors: list[str] = field(default_factory=list)


ProcessEventFn = Callable[[MessagingEvent], Awaitable[str]]
SendReplyFn = Callable[[str, str], Awaitable[Any]]


def is_page_callback(payload: Any) -> bool:
    """Only page subscriptions are handled."""
    return isinstance(payload, dict) and payload.get("object") == PAGE_OBJECT


def parse_event(raw: Any) -> MessagingEvent:
    """Parse one messaging event or raise MalformedEventError."""
    if not isinstance(raw, dict):
        raise MalformedEventError("messaging event is not an object")
    message = raw.get("message")
    if message is None:
        raise MalformedEventError("messaging event has no message")
    sender = raw.get("sender")
    sender_id = sender.get("id") if isinstance(sender, dict) else None
    if not sender_id:
        raise MalformedEventError("messaging event has no sender id")
    text = message.get("text") if isinstance(message, dict) else None
    return MessagingEvent(sender_id=str(sender_id), text=text)


def parse_envelopes(payload: dict[str, Any]) -> tuple[list[WebhookEnvelope], int]:
    """Parse every entry of a page callback.

    Entries that are not objects are skipped like malformed events.

    Returns:
        (envelopes, dropped) where dropped counts entries and events that
        were skipped
    """
    envelopes: list[WebhookEnvelope] = []
    dropped = 0
    entries = payload.get("entry") or []
    if not isinstance(entries, list):
        logger.warning("Webhook entry is not a list: %s", json.dumps(entries, default=str))
        return envelopes, 1
    for entry in entries:
        if not isinstance(entry, dict):
            dropped += 1
            logger.warning("Webhook received unknown entry: %s", json.dumps(entry, default=str))
            continue
        messaging = entry.get("messaging") or []
        if not isinstance(messaging, list):
            messaging = [messaging]
        events: list[MessagingEvent] = []
        for raw in messaging:
            try:
                events.append(parse_event(raw))
            except MalformedEventError as e:
                dropped += 1
                logger.warning(
                    "Webhook received unknown messaging event (%s): %s",
                    e,
                    json.dumps(raw, default=str),
                )
        envelopes.append(
            WebhookEnvelope(
                source_id=entry.get("id"),
                timestamp=entry.get("time"),
                events=tuple(events),
            )
        )
    return envelopes, dropped


async def _handle_event(
    event: MessagingEvent,
    process_event: ProcessEventFn,
    send_reply: SendReplyFn,
) -> Any:
    reply = await process_event(event)
    return await send_reply(event.sender_id, reply)


async def dispatch_batch(
    payload: dict[str, Any],
    process_event: ProcessEventFn,
    send_reply: SendReplyFn,
) -> DispatchSummary:
    """Process every message of a page callback and wait for all to settle.

    Args:
        payload: Parsed JSON body with object == "page"
        process_event: Runs one event through the local pipeline, returns reply text
        send_reply: Posts (sender_id, reply_text) to the remote API

    Returns:
        DispatchSummary; never raises for per-event failures
    """
    envelopes, dropped = parse_envelopes(payload)
    events = [event for envelope in envelopes for event in envelope.events]
    summary = DispatchSummary(attempted=len(events), dropped=dropped)

    outcomes = await asyncio.gather(
        *(_handle_event(event, process_event, send_reply) for event in events),
        return_exceptions=True,
    )

    for event, outcome in zip(events, outcomes):
        if isinstance(outcome, BaseException):
            summary.failed += 1
            summary.errors.append(f"{type(outcome).__name__}: {outcome}")
            logger.error(
                "Failed to answer message from %s: %s",
                event.sender_id,
                outcome,
                exc_info=outcome,
            )
        else:
            summary.succeeded += 1

    logger.debug(
        "Webhook batch settled: attempted=%d succeeded=%d failed=%d dropped=%d",
        summary.attempted,
        summary.succeeded,
        summary.failed,
        summary.dropped,
    )
    return summary
