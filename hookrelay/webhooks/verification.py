"""Webhook signature verification: constant-time HMAC over the raw body.

The platform signs each callback with the app secret and sends the
result in the x-hub-signature header as "sha1=<hexdigest>".

Security contract:
- All comparisons use hmac.compare_digest() (constant-time)
- Verification failure raises AuthenticationError; callers must reject
- Non-ASCII digests (headers arrive latin-1 decoded) are malformed
- Missing secret -> verification always fails (fail-closed)
"""

from __future__ import annotations

import hashlib
import hmac
import logging

from hookrelay.errors import AuthenticationError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-hub-signature"

# Method tag -> hash constructor
_DIGESTS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
}


def compute_signature(body: bytes, secret: str, method: str = "sha1") -> str:
    """Hex HMAC of body under secret, as the platform computes it."""
    digestmod = _DIGESTS.get(method)
    if digestmod is None:
        raise AuthenticationError(f"Unsupported signature method: {method}")
    return hmac.new(secret.encode("utf-8"), body, digestmod).hexdigest()


def verify_signature(body: bytes, header: str | None, secret: str) -> None:
    """Verify a "method=hexdigest" signature header against body.

    Args:
        body: Raw request body bytes (before JSON parsing)
        header: Value of the signature header, or None if absent
        secret: Shared app secret

    Raises:
        AuthenticationError: header missing/malformed or digest mismatch
    """
    if not secret:
        logger.warning("App secret not set, rejecting webhook")
        raise AuthenticationError("Couldn't validate the signature.")
    if not header:
        raise AuthenticationError("Couldn't validate the signature.")

    method, sep, presented = header.partition("=")
    if not sep or not presented or not presented.isascii():
        raise AuthenticationError("Couldn't validate the request signature.")

    expected = compute_signature(body, secret, method)
    if not hmac.compare_digest(expected, presented):
        raise AuthenticationError("Couldn't validate the request signature.")
