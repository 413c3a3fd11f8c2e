"""Tests for webhook signature verification.

Tests:
- Valid sha1 / sha256 signatures pass
- Any single-byte change to body or secret fails (property-based)
- Missing header, malformed header, unknown method, missing secret fail
"""

from __future__ import annotations

import hashlib
import hmac
import string

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from hookrelay.errors import AuthenticationError
from hookrelay.webhooks.verification import compute_signature, verify_signature

SECRET = "fb-app-secret"

_secrets = st.text(alphabet=string.ascii_letters + string.digits, min_size=1, max_size=40)


class TestVerifySignature:
    """Fixed examples."""

    def test_valid_sha1_signature(self):
        body = b'{"object": "page", "entry": []}'
        digest = hmac.new(SECRET.encode(), body, hashlib.sha1).hexdigest()
        verify_signature(body, f"sha1={digest}", SECRET)

    def test_valid_sha256_signature(self):
        body = b'{"object": "page"}'
        digest = hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()
        verify_signature(body, f"sha256={digest}", SECRET)

    def test_compute_signature_matches_hmac(self):
        body = b"payload"
        assert compute_signature(body, SECRET) == hmac.new(
            SECRET.encode(), body, hashlib.sha1
        ).hexdigest()

    def test_missing_header(self):
        with pytest.raises(AuthenticationError):
            verify_signature(b"body", None, SECRET)

    def test_empty_header(self):
        with pytest.raises(AuthenticationError):
            verify_signature(b"body", "", SECRET)

    def test_header_without_separator(self):
        with pytest.raises(AuthenticationError):
            verify_signature(b"body", "sha1", SECRET)

    def test_header_without_digest(self):
        with pytest.raises(AuthenticationError):
            verify_signature(b"body", "sha1=", SECRET)

    def test_unknown_method(self):
        digest = hmac.new(SECRET.encode(), b"body", hashlib.md5).hexdigest()
        with pytest.raises(AuthenticationError):
            verify_signature(b"body", f"md5={digest}", SECRET)

    @pytest.mark.parametrize("digest", ["\xe9\xe9", "é" * 40, "☃abc"])
    def test_non_ascii_digest_rejected(self, digest):
        with pytest.raises(AuthenticationError):
            verify_signature(b"body", f"sha1={digest}", SECRET)

    def test_uppercase_digest_rejected(self):
        """Comparison is case-sensitive."""
        digest = compute_signature(b"body", SECRET).upper()
        with pytest.raises(AuthenticationError):
            verify_signature(b"body", f"sha1={digest}", SECRET)

    def test_missing_secret_rejects(self):
        """No secret configured -> always reject (fail-closed)."""
        digest = hmac.new(b"", b"body", hashlib.sha1).hexdigest()
        with pytest.raises(AuthenticationError):
            verify_signature(b"body", f"sha1={digest}", "")


# ── Properties ────────────────────────────────────────────────────────────


class TestSignatureProperties:
    """Valid triples verify; single-byte mutations do not."""

    @given(body=st.binary(max_size=512), secret=_secrets)
    @settings(max_examples=100)
    def test_valid_triple_verifies(self, body: bytes, secret: str) -> None:
        verify_signature(body, "sha1=" + compute_signature(body, secret), secret)

    @given(body=st.binary(min_size=1, max_size=512), secret=_secrets, data=st.data())
    @settings(max_examples=100)
    def test_body_mutation_fails(self, body: bytes, secret: str, data) -> None:
        header = "sha1=" + compute_signature(body, secret)
        index = data.draw(st.integers(min_value=0, max_value=len(body) - 1))
        flip = data.draw(st.integers(min_value=1, max_value=255))
        mutated = bytearray(body)
        mutated[index] ^= flip
        with pytest.raises(AuthenticationError):
            verify_signature(bytes(mutated), header, secret)

    @given(body=st.binary(max_size=512), secret=_secrets, data=st.data())
    @settings(max_examples=100)
    def test_secret_mutation_fails(self, body: bytes, secret: str, data) -> None:
        header = "sha1=" + compute_signature(body, secret)
        index = data.draw(st.integers(min_value=0, max_value=len(secret) - 1))
        replacement = data.draw(
            st.sampled_from(string.ascii_letters + string.digits).filter(lambda c: c != secret[index])
        )
        other = secret[:index] + replacement + secret[index + 1:]
        with pytest.raises(AuthenticationError):
            verify_signature(body, header, other)
