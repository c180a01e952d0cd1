"""Request signing for the Gemini private REST API.

Gemini authenticates body-less POSTs: the JSON payload is base64-encoded into
a header and signed with HMAC-SHA384 keyed by the API secret.
"""
import base64
import hashlib
import hmac
import json
import threading
import time
from collections.abc import Callable


class NonceGenerator:
    """Strictly increasing nonces per API key, seeded from wall-clock milliseconds.

    Gemini rejects a nonce that is not greater than the previous one for the
    same key; two calls within the same millisecond get last + 1.
    """

    def __init__(self, clock_ms: Callable[[], int] | None = None) -> None:
        self._clock_ms = clock_ms or (lambda: time.time_ns() // 1_000_000)
        self._last: dict[str, int] = {}
        self._lock = threading.Lock()

    def next(self, api_key: str) -> int:
        with self._lock:
            nonce = max(self._clock_ms(), self._last.get(api_key, 0) + 1)
            self._last[api_key] = nonce
            return nonce


def encode_payload(endpoint: str, nonce: int, extra: dict | None = None) -> str:
    """Base64 of the JSON payload {request, nonce, **extra}."""
    payload = {"request": endpoint, "nonce": nonce, **(extra or {})}
    return base64.b64encode(json.dumps(payload).encode()).decode()


def sign(b64_payload: str, api_secret: str) -> str:
    """Hex HMAC-SHA384 of the base64 payload, keyed by the secret."""
    return hmac.new(api_secret.encode(), b64_payload.encode(), hashlib.sha384).hexdigest()


def signed_headers(api_key: str, api_secret: str, b64_payload: str) -> dict[str, str]:
    """Headers of a signed request; the body stays empty."""
    return {
        "Content-Type": "text/plain",
        "Content-Length": "0",
        "X-GEMINI-APIKEY": api_key,
        "X-GEMINI-PAYLOAD": b64_payload,
        "X-GEMINI-SIGNATURE": sign(b64_payload, api_secret),
        "Cache-Control": "no-cache",
    }
