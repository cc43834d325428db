"""
Token decoding and webhook payload signatures.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from typing import Any

from .models import Auth

log = logging.getLogger("chipchat.auth")


def _b64url_decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def decode_token(token: str | None) -> Auth | None:
    """Read the bot identity from a JWT's claims. The signature is not verified."""
    if not token:
        return None
    try:
        _, payload_b64, _ = token.split(".")
        claims = json.loads(_b64url_decode(payload_b64))
    except (ValueError, UnicodeDecodeError) as e:
        log.warning("Invalid or unrecognised token: %s", e)
        return None
    if not isinstance(claims, dict):
        log.warning("Invalid or unrecognised token: claims are not an object")
        return None
    return Auth(
        user=claims.get("_id"),
        organization=claims.get("organization"),
        iat=claims.get("iat"),
        exp=claims.get("exp"),
    )


def serialize_payload(payload: Any) -> str:
    """Compact JSON, the form the platform signs."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def get_signature(body: str, secret: str) -> str:
    """`sha1=<hex>` HMAC of a serialized payload, as sent in X-Hub-Signature."""
    digest = hmac.new(secret.encode(), body.encode(), hashlib.sha1).hexdigest()
    return f"sha1={digest}"


def verify_signature(payload: Any, signature: str, secret: str | None) -> bool:
    if not secret:
        return False
    expected = get_signature(serialize_payload(payload), secret)
    return hmac.compare_digest(expected, signature)
