import hashlib
import hmac
import time

SIGNATURE_SCHEME = "v1"


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    """HMAC-SHA256 of ``"{timestamp}.{payload}"``, hex encoded (Stripe's v1 scheme)."""
    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(
        secret.encode("utf-8"),
        signed_payload,
        hashlib.sha256,
    ).hexdigest()


def parse_signature_header(header: str) -> tuple[int, list[str]]:
    """Split a ``Stripe-Signature`` header into its timestamp and v1 signatures.

    Raises ValueError when the header has no timestamp or no v1 signature.
    """
    timestamp = None
    signatures = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            timestamp = int(value)
        elif key == SIGNATURE_SCHEME:
            signatures.append(value)

    if timestamp is None:
        raise ValueError("signature header has no timestamp")
    if not signatures:
        raise ValueError(f"signature header has no {SIGNATURE_SCHEME} signature")
    return timestamp, signatures


def signatures_match(expected: str, candidates: list[str]) -> bool:
    """Constant-time comparison against every candidate.

    All candidates are compared even after a match so that timing does not
    reveal which of several rotated secrets signed the payload.
    """
    matched = False
    for candidate in candidates:
        matched |= hmac.compare_digest(expected, candidate)
    return matched


def generate_signature_header(
    payload: bytes,
    secrets: str | list[str],
    timestamp: int | None = None,
) -> str:
    """Build a ``Stripe-Signature`` header, one v1 entry per secret."""
    if isinstance(secrets, str):
        secrets = [secrets]
    if timestamp is None:
        timestamp = int(time.time())
    parts = [f"t={timestamp}"]
    parts.extend(
        f"{SIGNATURE_SCHEME}={compute_signature(payload, secret, timestamp)}"
        for secret in secrets
    )
    return ",".join(parts)
