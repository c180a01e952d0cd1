import json
from datetime import timedelta

import httpx
import pytest

from balance_sync.db import utcnow
from balance_sync.providers.coinbase import CoinbaseProvider
from balance_sync.providers.core import (InvalidCredentials, RefreshFailed,
                                         RemoteUnavailable)
from balance_sync.schemas import ApiKeyPayload, OAuthTokenPayload

pytestmark = pytest.mark.anyio


def _provider(handler) -> CoinbaseProvider:
    client = httpx.AsyncClient(
        base_url=CoinbaseProvider.BASE_URL, transport=httpx.MockTransport(handler)
    )
    return CoinbaseProvider("cid", "csecret", "https://app/callback", client=client)


def _token(refresh_token="r-old") -> OAuthTokenPayload:
    return OAuthTokenPayload(
        access_token="a-old",
        refresh_token=refresh_token,
        expires_at=utcnow() + timedelta(hours=1),
    )


async def test_exchange_code_posts_authorization_code_grant():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200, json={"access_token": "a1", "refresh_token": "r1", "expires_in": 7200}
        )

    before = utcnow()
    payload = await _provider(handler).exchange_code("the-code")

    assert seen["path"] == "/oauth/token"
    assert seen["body"]["grant_type"] == "authorization_code"
    assert seen["body"]["code"] == "the-code"
    assert seen["body"]["redirect_uri"] == "https://app/callback"
    assert payload.access_token == "a1"
    assert payload.refresh_token == "r1"
    assert payload.expires_at >= before + timedelta(seconds=7200)


async def test_exchange_code_rejected():
    provider = _provider(lambda r: httpx.Response(401, json={"error": "invalid_grant"}))
    with pytest.raises(InvalidCredentials, match="invalid_grant"):
        await provider.exchange_code("bad")


async def test_validate_uses_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["path"] = request.url.path
        return httpx.Response(200, json={"data": {"id": "u1"}})

    assert await _provider(handler).validate(_token()) is True
    assert seen == {"auth": "Bearer a-old", "path": "/v2/user"}


async def test_validate_false_on_401():
    provider = _provider(lambda r: httpx.Response(401, json={}))
    assert await provider.validate(_token()) is False


async def test_validate_rejects_wrong_payload_kind():
    provider = _provider(lambda r: httpx.Response(200, json={}))
    with pytest.raises(InvalidCredentials):
        await provider.validate(ApiKeyPayload(api_key="k", api_secret="s"))


async def test_refresh_keeps_old_refresh_token_when_not_rotated():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["grant_type"] == "refresh_token"
        assert body["refresh_token"] == "r-old"
        return httpx.Response(200, json={"access_token": "a-new"})

    before = utcnow()
    payload = await _provider(handler).refresh(_token())

    assert payload.access_token == "a-new"
    assert payload.refresh_token == "r-old"
    assert before + timedelta(seconds=3600) <= payload.expires_at


async def test_refresh_failure_raises():
    provider = _provider(lambda r: httpx.Response(400, json={"error": "invalid_grant"}))
    with pytest.raises(RefreshFailed):
        await provider.refresh(_token())


async def test_refresh_without_refresh_token_raises():
    provider = _provider(lambda r: httpx.Response(200, json={}))
    with pytest.raises(RefreshFailed):
        await provider.refresh(_token(refresh_token=None))


async def test_fetch_balances_follows_pagination():
    pages = {
        "/v2/accounts": {
            "data": [
                {"id": "1", "currency": {"code": "BTC"}, "balance": {"amount": "0.5"}},
                {"id": "2", "currency": "ETH", "balance": {"amount": "2.0"}},
            ],
            "pagination": {"next_uri": "/v2/accounts?starting_after=2"},
        },
        "/v2/accounts?starting_after=2": {
            "data": [
                {"id": "3", "currency": {"code": "USDC"}, "balance": {"amount": "10"}},
                {"id": "4", "currency": {"code": "XRP"}, "balance": {}},
            ],
            "pagination": {"next_uri": None},
        },
    }

    def handler(request: httpx.Request) -> httpx.Response:
        key = request.url.raw_path.decode()
        return httpx.Response(200, json=pages[key])

    balances = await _provider(handler).fetch_balances(_token())
    assert [(b.currency, b.amount) for b in balances] == [
        ("BTC", 0.5),
        ("ETH", 2.0),
        ("USDC", 10.0),
    ]


async def test_fetch_balances_error_carries_status():
    provider = _provider(lambda r: httpx.Response(503, json={"message": "down"}))
    with pytest.raises(RemoteUnavailable) as info:
        await provider.fetch_balances(_token())
    assert info.value.status_code == 503
    assert info.value.message == "down"


async def test_network_error_is_remote_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(RemoteUnavailable):
        await _provider(handler).fetch_balances(_token())


async def test_unexpected_accounts_body_is_remote_unavailable():
    provider = _provider(lambda r: httpx.Response(200, json=["not", "a", "page"]))
    with pytest.raises(RemoteUnavailable):
        await provider.fetch_balances(_token())


async def test_malformed_accounts_are_skipped():
    page = {
        "data": ["junk", {"currency": {"code": "BTC"}, "balance": "1"},
                 {"currency": {"code": "ETH"}, "balance": {"amount": "3"}}],
        "pagination": "none",
    }
    balances = await _provider(lambda r: httpx.Response(200, json=page)).fetch_balances(_token())
    assert [(b.currency, b.amount) for b in balances] == [("ETH", 3.0)]
