"""Shared fixtures for the hookrelay test suite.

Provides:
- RecordingTransport: in-memory sink capturing every delivered entry
- FakeReplySender: Send API stand-in with per-recipient failures
- settings / app / client fixtures wired with the fakes
"""

from __future__ import annotations

import hashlib
import hmac
import logging

import pytest
from fastapi.testclient import TestClient

from hookrelay.app import create_app
from hookrelay.config import Settings
from hookrelay.errors import SendError
from hookrelay.request_log.bridge import FanoutLogHandler
from hookrelay.transports.fanout import LogFanout
from hookrelay.transports.protocol import Level, LogEntry

APP_SECRET = "test-app-secret"
VALIDATION_TOKEN = "T1"


class RecordingTransport:
    """Transport that stores entries (or fails on demand)."""

    def __init__(self, name: str = "recorder", level: Level | str = Level.SILLY, fail: bool = False):
        self._name = name
        self._level = Level.parse(level)
        self.fail = fail
        self.entries: list[LogEntry] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def level(self) -> Level:
        return self._level

    async def deliver(self, entry: LogEntry) -> None:
        if self.fail:
            raise RuntimeError(f"{self._name} is down")
        self.entries.append(entry)

    @property
    def records(self):
        return [e.record for e in self.entries if e.record is not None]


class FakeReplySender:
    """Records every send attempt; recipients in fail_for raise SendError."""

    def __init__(self, fail_for: set[str] | None = None):
        self.fail_for = fail_for or set()
        self.attempts: list[tuple[str, str]] = []

    async def send(self, recipient_id: str, text: str) -> str:
        self.attempts.append((recipient_id, text))
        if recipient_id in self.fail_for:
            raise SendError("Failed calling Send API", status_code=500)
        return "success"

    async def aclose(self) -> None:
        pass


def sign(body: bytes, secret: str = APP_SECRET) -> str:
    """x-hub-signature header value for body."""
    return "sha1=" + hmac.new(secret.encode(), body, hashlib.sha1).hexdigest()


@pytest.fixture(autouse=True)
def _detach_log_bridge():
    """create_app() installs a bridge on the 'hookrelay' logger; remove it after each test."""
    yield
    target = logging.getLogger("hookrelay")
    for handler in list(target.handlers):
        if isinstance(handler, FanoutLogHandler):
            target.removeHandler(handler)


@pytest.fixture
def recorder() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def fanout(recorder: RecordingTransport) -> LogFanout:
    return LogFanout([recorder])


@pytest.fixture
def settings() -> Settings:
    return Settings(
        validation_token=VALIDATION_TOKEN,
        app_secret=APP_SECRET,
        page_access_token="page-token",
        rollbar_token="",
    )


@pytest.fixture
def reply_sender() -> FakeReplySender:
    return FakeReplySender()


@pytest.fixture
def app(settings, fanout, reply_sender):
    return create_app(settings=settings, fanout=fanout, reply_sender=reply_sender)


@pytest.fixture
def client(app):
    """TestClient running the app lifespan."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
