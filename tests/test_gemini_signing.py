import base64
import hashlib
import hmac
import json
import threading

from balance_sync.providers.gemini.signing import (NonceGenerator,
                                                   encode_payload, sign,
                                                   signed_headers)


def test_nonce_strictly_increases_when_clock_stalls():
    nonces = NonceGenerator(clock_ms=lambda: 1_000)
    assert [nonces.next("key") for _ in range(3)] == [1_000, 1_001, 1_002]


def test_nonce_follows_clock_when_it_moves_ahead():
    ticks = iter([1_000, 5_000])
    nonces = NonceGenerator(clock_ms=lambda: next(ticks))
    assert nonces.next("key") == 1_000
    assert nonces.next("key") == 5_000


def test_nonce_never_goes_backwards_with_clock():
    ticks = iter([5_000, 4_000])
    nonces = NonceGenerator(clock_ms=lambda: next(ticks))
    nonces.next("key")
    assert nonces.next("key") == 5_001


def test_nonces_are_tracked_per_key():
    nonces = NonceGenerator(clock_ms=lambda: 7)
    assert nonces.next("a") == 7
    assert nonces.next("b") == 7
    assert nonces.next("a") == 8


def test_nonces_unique_across_threads():
    nonces = NonceGenerator(clock_ms=lambda: 1)
    seen: list[int] = []

    def worker():
        for _ in range(100):
            seen.append(nonces.next("key"))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(set(seen)) == 400


def test_payload_encoding():
    b64 = encode_payload("/v1/balances", 42, {"account": "primary"})
    assert json.loads(base64.b64decode(b64)) == {
        "request": "/v1/balances",
        "nonce": 42,
        "account": "primary",
    }


def test_signature_is_hmac_sha384_hex():
    b64 = encode_payload("/v1/balances", 1)
    expected = hmac.new(b"secret", b64.encode(), hashlib.sha384).hexdigest()
    assert sign(b64, "secret") == expected
    assert len(expected) == 96


def test_signed_headers():
    headers = signed_headers("key", "secret", "cGF5bG9hZA==")
    assert headers["X-GEMINI-APIKEY"] == "key"
    assert headers["X-GEMINI-PAYLOAD"] == "cGF5bG9hZA=="
    assert headers["X-GEMINI-SIGNATURE"] == sign("cGF5bG9hZA==", "secret")
    assert headers["Content-Type"] == "text/plain"
    assert headers["Content-Length"] == "0"
