"""HMAC-SHA256 request signing as used by Slack's Events API.

The signed base string is ``"v0:<timestamp>:<rawBody>"``; the header value is
``"v0=" + hexdigest``.
"""

import hashlib
import hmac
import time

from shared.exceptions.errors import SignatureError

SIGNATURE_VERSION = "v0"
MAX_TIMESTAMP_SKEW_SECONDS = 300


def compute_signature(signing_secret: bytes, timestamp: str, raw_body: bytes) -> str:
    base_string = f"{SIGNATURE_VERSION}:{timestamp}:".encode("utf-8") + raw_body
    digest = hmac.new(signing_secret, base_string, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_signature(
    signing_secret: bytes,
    timestamp: str | None,
    signature: str | None,
    raw_body: bytes,
    now: float | None = None,
) -> None:
    """Verify a signed webhook request.

    Args:
        signing_secret (bytes): Shared secret of the app.
        timestamp (str | None): Value of the X-Slack-Request-Timestamp header.
        signature (str | None): Value of the X-Slack-Signature header.
        raw_body (bytes): The request body exactly as received.
        now (float | None): Current epoch seconds, injectable for tests.

    Raises:
        SignatureError: If a header is missing, the timestamp is more than 300 seconds
            away from now, or the signature does not match.
    """
    if not timestamp or not signature:
        raise SignatureError("Missing signature headers.")
    try:
        request_time = int(timestamp)
    except ValueError:
        raise SignatureError(f"Malformed request timestamp '{timestamp}'.")

    now = time.time() if now is None else now
    if abs(now - request_time) > MAX_TIMESTAMP_SKEW_SECONDS:
        raise SignatureError(f"Request timestamp {request_time} is outside the allowed window.")

    expected = compute_signature(signing_secret, timestamp, raw_body)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        raise SignatureError("Request signature mismatch.")
