import threading

import pytest

from balance_sync.db import Provider
from balance_sync.db.balances import BalanceStore
from balance_sync.db.sessions import init_db, make_engine
from balance_sync.providers.core import (InvalidCredentials, NotConnected,
                                         PersistenceError)
from balance_sync.schemas import (ApiKeyPayload, BalanceRow,
                                  FileImportPayload, OAuthTokenPayload)

USER = "user-1"
KEYS = ApiKeyPayload(api_key="k", api_secret="s")


def _row(provider, currency, amount, user=USER) -> BalanceRow:
    return BalanceRow(user_id=user, provider=provider, currency=currency, amount=amount)


class TestCredentialStore:
    def test_upsert_and_get(self, credential_store):
        credential_store.upsert(USER, Provider.GEMINI, KEYS)
        credential = credential_store.get(USER, Provider.GEMINI)
        assert credential.payload == KEYS
        assert credential.provider is Provider.GEMINI

    def test_replace_keeps_link_date(self, credential_store):
        first = credential_store.upsert(USER, Provider.COINBASE, OAuthTokenPayload(access_token="a"))
        second = credential_store.upsert(USER, Provider.COINBASE, OAuthTokenPayload(access_token="b"))
        assert second.payload.access_token == "b"
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at

    def test_payload_kind_must_match_provider(self, credential_store):
        with pytest.raises(InvalidCredentials):
            credential_store.upsert(USER, Provider.COINBASE, KEYS)
        assert credential_store.find(USER, Provider.COINBASE) is None

    def test_get_missing_raises(self, credential_store):
        with pytest.raises(NotConnected):
            credential_store.get(USER, Provider.LEDGER)

    def test_credentials_are_scoped_per_user(self, credential_store):
        credential_store.upsert(USER, Provider.GEMINI, KEYS)
        credential_store.upsert("other", Provider.LEDGER, FileImportPayload(source_filename="a.csv"))
        assert [c.provider for c in credential_store.list_for_user(USER)] == [Provider.GEMINI]
        assert credential_store.delete_all("other") == 1
        assert credential_store.find(USER, Provider.GEMINI) is not None

    def test_delete(self, credential_store):
        credential_store.upsert(USER, Provider.GEMINI, KEYS)
        assert credential_store.delete(USER, Provider.GEMINI) is True
        assert credential_store.delete(USER, Provider.GEMINI) is False


class TestBalanceStore:
    def test_upsert_replaces_amount_of_same_key(self, balance_store):
        balance_store.upsert_many([_row(Provider.GEMINI, "BTC", 1.0)])
        balance_store.upsert_many([_row(Provider.GEMINI, "BTC", 2.0)])
        rows = balance_store.list_for_user(USER)
        assert [(r.currency, r.amount) for r in rows] == [("BTC", 2.0)]

    def test_zero_rows_hidden_unless_requested(self, balance_store):
        balance_store.upsert_many(
            [_row(Provider.GEMINI, "BTC", 0.0), _row(Provider.GEMINI, "ETH", 1.0)]
        )
        assert [r.currency for r in balance_store.list_for_user(USER)] == ["ETH"]
        assert len(balance_store.list_for_user(USER, include_zero=True)) == 2

    def test_provider_filter(self, balance_store):
        balance_store.upsert_many(
            [_row(Provider.GEMINI, "BTC", 1.0), _row(Provider.COINBASE, "BTC", 2.0)]
        )
        rows = balance_store.list_for_user(USER, [Provider.COINBASE])
        assert [(r.provider, r.amount) for r in rows] == [(Provider.COINBASE, 2.0)]
        assert balance_store.list_for_user(USER, []) == []

    def test_delete_for_provider_leaves_others(self, balance_store):
        balance_store.upsert_many(
            [
                _row(Provider.GEMINI, "BTC", 1.0),
                _row(Provider.COINBASE, "BTC", 2.0),
                _row(Provider.GEMINI, "BTC", 5.0, user="other"),
            ]
        )
        assert balance_store.delete_for_provider(USER, Provider.GEMINI) == 1
        assert [r.provider for r in balance_store.list_for_user(USER)] == [Provider.COINBASE]
        assert len(balance_store.list_for_user("other")) == 1


class TestConcurrentWriters:
    def test_racing_inserts_of_a_new_key_both_succeed(self, tmp_path):
        engine = make_engine(f"sqlite:///{tmp_path / 'race.db'}", echo=False)
        init_db(engine)
        store = BalanceStore(engine)
        failures: list[BaseException] = []

        for round_no in range(20):
            barrier = threading.Barrier(2)

            def write(amount, currency=f"C{round_no}"):
                barrier.wait()
                try:
                    store.upsert_many([_row(Provider.GEMINI, currency, amount)])
                except PersistenceError as exc:
                    failures.append(exc)

            threads = [threading.Thread(target=write, args=(a,)) for a in (1.0, 2.0)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        rows = store.list_for_user(USER)
        engine.dispose()
        assert failures == []
        assert len(rows) == 20
        assert {r.amount for r in rows} <= {1.0, 2.0}
