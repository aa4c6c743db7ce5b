"""
Webhook signing and verification.

Each subscription gets its own signing key derived from the server secret,
so keys never need storing:

    key = hex(HMAC-SHA256(server_secret, subscription_id))

Signature header:

    t=<unix seconds>,v1=<hex HMAC-SHA256(key, "<t>.<payload>")>

Verification rejects malformed headers, wrong keys, tampered payloads and
timestamps outside the tolerance window (replay protection). It returns a
bool and never raises.
"""
import hashlib
import hmac
import logging
import re
import time
from typing import Optional, Tuple, Union

from publisher_royalties.core.config import settings

logger = logging.getLogger(__name__)

Payload = Union[str, bytes]

_TIMESTAMP = re.compile(r"[0-9]+")
_DIGEST = re.compile(r"[0-9a-f]{64}")

SIGNATURE_VERSION = "v1"


def _to_bytes(value: Payload) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def derive_signing_key(subscription_id: str, server_secret: Optional[str] = None) -> str:
    secret = server_secret if server_secret is not None else settings.WEBHOOK_SIGNING_KEY
    return hmac.new(_to_bytes(secret), _to_bytes(str(subscription_id)), hashlib.sha256).hexdigest()


def compute_signature(payload: Payload, key: str, timestamp: int) -> str:
    message = f"{timestamp}.".encode("utf-8") + _to_bytes(payload)
    return hmac.new(_to_bytes(key), message, hashlib.sha256).hexdigest()


def sign(payload: Payload, key: str, timestamp: Optional[int] = None) -> str:
    """Build the signature header value for a payload."""
    if timestamp is None:
        timestamp = int(time.time())
    return f"t={timestamp},{SIGNATURE_VERSION}={compute_signature(payload, key, timestamp)}"


def parse_signature(signature: str) -> Optional[Tuple[int, str]]:
    """(timestamp, hex digest) from a header value, or None if malformed."""
    if not isinstance(signature, str):
        return None
    fields = {}
    for part in signature.split(","):
        name, sep, value = part.strip().partition("=")
        if not sep or not value:
            return None
        fields[name] = value
    if "t" not in fields or SIGNATURE_VERSION not in fields:
        return None
    if not _TIMESTAMP.fullmatch(fields["t"]) or not _DIGEST.fullmatch(fields[SIGNATURE_VERSION]):
        return None
    return int(fields["t"]), fields[SIGNATURE_VERSION]


def verify(
    payload: Payload,
    signature: str,
    key: str,
    tolerance_seconds: Optional[int] = None,
    now: Optional[int] = None,
) -> bool:
    parsed = parse_signature(signature)
    if parsed is None:
        logger.debug("Rejected webhook signature: malformed header")
        return False
    timestamp, received = parsed

    tolerance = settings.WEBHOOK_TOLERANCE_SECONDS if tolerance_seconds is None else tolerance_seconds
    current = int(time.time()) if now is None else now
    if abs(current - timestamp) > tolerance:
        logger.debug(f"Rejected webhook signature: timestamp {timestamp} outside {tolerance}s window")
        return False

    try:
        expected = compute_signature(payload, key, timestamp)
    except (TypeError, AttributeError, UnicodeError):
        return False
    return hmac.compare_digest(expected, received)
