"""HMAC-SHA256 signing helpers for platform webhook deliveries."""
from __future__ import annotations

import hashlib
import hmac
from typing import Optional

_DIGEST_SIZE = hashlib.sha256().digest_size


def compute_signature(raw_payload: bytes, secret: str) -> str:
    """Return the hex encoded HMAC-SHA256 of ``raw_payload`` keyed by ``secret``."""

    return hmac.new(secret.encode("utf-8"), raw_payload, hashlib.sha256).hexdigest()


def verify_signature(raw_payload: bytes, secret: str, provided_signature_hex: Optional[str]) -> bool:
    """Check ``provided_signature_hex`` against the payload in constant time.

    ``raw_payload`` must be the exact bytes received on the wire. Missing,
    malformed or wrong-length signatures are rejected instead of raising.
    """

    if not provided_signature_hex:
        return False

    try:
        provided = bytes.fromhex(provided_signature_hex.strip())
    except ValueError:
        return False
    if len(provided) != _DIGEST_SIZE:
        return False

    expected = hmac.new(secret.encode("utf-8"), raw_payload, hashlib.sha256).digest()
    return hmac.compare_digest(expected, provided)


__all__ = ["compute_signature", "verify_signature"]
