"""Balance Store: latest per-currency snapshot of every (user, provider)."""
import logging
from collections.abc import Iterable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from balance_sync.db.models import BalanceRecord, Provider, as_utc
from balance_sync.db.sessions import get_session
from balance_sync.db.upsert import upsert_statement
from balance_sync.providers.core.exceptions import PersistenceError
from balance_sync.schemas import BalanceRow

logger = logging.getLogger(__name__)


def _to_row(record: BalanceRecord) -> BalanceRow:
    return BalanceRow(
        user_id=record.user_id,
        provider=Provider(record.provider),
        currency=record.currency,
        amount=record.amount,
        updated_at=as_utc(record.updated_at),
    )


class BalanceStore:
    """Balance rows keyed by (user, provider, currency)."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def upsert_many(self, rows: Iterable[BalanceRow]) -> int:
        """Write a batch in one transaction, replacing amounts of present keys.

        Keys absent from the batch are left alone. Either the whole batch
        commits or none of it does.
        """
        # one value per key; the last occurrence in the batch wins
        values = {
            (row.user_id, row.provider, row.currency): {
                "user_id": row.user_id,
                "provider": row.provider.value,
                "currency": row.currency,
                "amount": row.amount,
                "updated_at": row.updated_at,
            }
            for row in rows
        }
        if not values:
            return 0
        try:
            with get_session(self._engine) as session:
                statement = upsert_statement(
                    session, BalanceRecord, list(values.values()), ("amount", "updated_at")
                )
                session.connection().execute(statement)
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to upsert balances") from exc
        return len(values)

    def list_for_user(
        self,
        user_id: str,
        providers: Iterable[Provider] | None = None,
        *,
        include_zero: bool = False,
    ) -> list[BalanceRow]:
        """Balances of a user, optionally limited to some providers.

        Zero amounts are dropped unless include_zero is set.
        """
        statement = select(BalanceRecord).where(BalanceRecord.user_id == user_id)
        if providers is not None:
            names = [p.value for p in providers]
            if not names:
                return []
            statement = statement.where(BalanceRecord.provider.in_(names))
        if not include_zero:
            statement = statement.where(BalanceRecord.amount != 0)
        statement = statement.order_by(BalanceRecord.provider, BalanceRecord.currency)
        try:
            with get_session(self._engine) as session:
                return [_to_row(r) for r in session.exec(statement).all()]
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to fetch balances") from exc

    def delete_for_provider(self, user_id: str, provider: Provider) -> int:
        """Delete all rows of (user, provider); returns the number removed."""
        try:
            with get_session(self._engine) as session:
                records = session.exec(
                    select(BalanceRecord)
                    .where(BalanceRecord.user_id == user_id)
                    .where(BalanceRecord.provider == provider.value)
                ).all()
                for record in records:
                    session.delete(record)
                return len(records)
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to delete balances") from exc

    def delete_all(self, user_id: str) -> int:
        """Delete every balance row of a user."""
        try:
            with get_session(self._engine) as session:
                records = session.exec(
                    select(BalanceRecord).where(BalanceRecord.user_id == user_id)
                ).all()
                for record in records:
                    session.delete(record)
                return len(records)
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to delete user balances") from exc
