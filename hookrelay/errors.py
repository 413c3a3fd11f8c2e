"""Error taxonomy for the webhook relay and the logging fan-out.

Propagation contract:
- AuthenticationError aborts the single request (mapped to 403 by the app)
- Everything else is caught where it originates and logged
"""

from __future__ import annotations


class HookRelayError(Exception):
    """Base class for all hookrelay errors."""


class AuthenticationError(HookRelayError):
    """Webhook signature missing, malformed or not matching."""


class SendError(HookRelayError):
    """The remote Send API call failed or returned a non-200 status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(HookRelayError):
    """A sink is missing the identity or credentials it needs."""


class MalformedEventError(HookRelayError):
    """A messaging event has no message body or no sender."""
