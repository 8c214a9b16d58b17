"""Webhook signatures for the simulated providers.

PayPal-style: a bare hex HMAC-SHA256 of the raw body. Stripe-style: the
`Stripe-Signature` header `t=<unix time>,v1=<hex>` where the HMAC covers
`"{t}.{body}"` and old timestamps are refused.
"""

import hashlib
import hmac
import time

STRIPE_TOLERANCE_SECONDS = 300


def _as_bytes(payload: bytes | str) -> bytes:
    return payload if isinstance(payload, bytes) else payload.encode("utf-8")


def sign(payload: bytes | str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), _as_bytes(payload), hashlib.sha256).hexdigest()


def verify(payload: bytes | str, signature: str, secret: str) -> bool:
    if not signature or not secret:
        return False
    return hmac.compare_digest(sign(payload, secret), signature)


def stripe_signature_header(payload: bytes | str, secret: str, timestamp: int | None = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode("utf-8") + _as_bytes(payload)
    return f"t={timestamp},v1={sign(signed, secret)}"


def _header_parts(header: str) -> tuple[int | None, list[str]]:
    timestamp = None
    signatures = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t" and value.isdigit():
            timestamp = int(value)
        elif key == "v1" and value:
            signatures.append(value)
    return timestamp, signatures


def verify_stripe_header(
    payload: bytes | str,
    header: str,
    secret: str,
    tolerance: int = STRIPE_TOLERANCE_SECONDS,
    now: float | None = None,
) -> bool:
    """Accept the header when any v1 signature matches and `t` is recent enough."""
    if not header or not secret:
        return False
    timestamp, signatures = _header_parts(header)
    if timestamp is None or not signatures:
        return False
    now = time.time() if now is None else now
    if abs(now - timestamp) > tolerance:
        return False
    expected = sign(f"{timestamp}.".encode("utf-8") + _as_bytes(payload), secret)
    return any(hmac.compare_digest(expected, candidate) for candidate in signatures)
