"""Credential Store: one credential payload per (user, provider)."""
import logging

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from balance_sync.db.models import ConnectedAccount, Provider, as_utc, utcnow
from balance_sync.db.sessions import get_session
from balance_sync.db.upsert import upsert_statement
from balance_sync.providers.core.exceptions import (InvalidCredentials,
                                                    NotConnected,
                                                    PersistenceError)
from balance_sync.schemas import (PAYLOAD_KIND_BY_PROVIDER, Credential,
                                  CredentialPayload,
                                  credential_payload_adapter)

logger = logging.getLogger(__name__)


def _to_credential(row: ConnectedAccount) -> Credential:
    try:
        provider = Provider(row.provider)
        payload = credential_payload_adapter.validate_python(row.credentials)
    except (ValueError, ValidationError) as exc:
        raise InvalidCredentials(
            f"Invalid {row.provider} credentials format"
        ) from exc
    return Credential(
        user_id=row.user_id,
        provider=provider,
        payload=payload,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


class CredentialStore:
    """Persistent credential records, always scoped to one explicit user.

    Deleting a credential does not touch balances; the connection manager
    owns that cascade.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def find(self, user_id: str, provider: Provider) -> Credential | None:
        """Return the stored credential or None."""
        try:
            with get_session(self._engine) as session:
                row = session.get(ConnectedAccount, (user_id, provider.value))
                return _to_credential(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {provider.value} connection") from exc

    def exists(self, user_id: str, provider: Provider) -> bool:
        """True when a row is stored, whether or not its payload still validates."""
        try:
            with get_session(self._engine) as session:
                return session.get(ConnectedAccount, (user_id, provider.value)) is not None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {provider.value} connection") from exc

    def get(self, user_id: str, provider: Provider) -> Credential:
        """Return the stored credential; raises NotConnected if there is none."""
        credential = self.find(user_id, provider)
        if credential is None:
            raise NotConnected(f"No {provider.value} connection")
        return credential

    def list_for_user(self, user_id: str) -> list[Credential]:
        """All readable credentials of a user, ordered by provider.

        Rows whose payload no longer validates are logged and skipped; they
        can still be unlinked.
        """
        try:
            with get_session(self._engine) as session:
                rows = session.exec(
                    select(ConnectedAccount)
                    .where(ConnectedAccount.user_id == user_id)
                    .order_by(ConnectedAccount.provider)
                ).all()
                credentials: list[Credential] = []
                for row in rows:
                    try:
                        credentials.append(_to_credential(row))
                    except InvalidCredentials:
                        logger.warning(
                            "Skipping unreadable %s credentials of user %s", row.provider, user_id
                        )
                return credentials
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to fetch connections") from exc

    def connected_providers(self, user_id: str) -> list[Provider]:
        """Providers the user has a readable credential for."""
        return [c.provider for c in self.list_for_user(user_id)]

    def upsert(
        self, user_id: str, provider: Provider, payload: CredentialPayload
    ) -> Credential:
        """Create or replace the credential for (user, provider).

        The original link date (created_at) survives replacement.
        """
        expected = PAYLOAD_KIND_BY_PROVIDER[provider]
        if payload.kind != expected:
            raise InvalidCredentials(
                f"{provider.value} expects {expected.value} credentials, got {payload.kind}"
            )
        now = utcnow()
        data = payload.model_dump(mode="json")
        try:
            with get_session(self._engine) as session:
                statement = upsert_statement(
                    session,
                    ConnectedAccount,
                    [{
                        "user_id": user_id,
                        "provider": provider.value,
                        "credentials": data,
                        "created_at": now,
                        "updated_at": now,
                    }],
                    ("credentials", "updated_at"),
                )
                session.connection().execute(statement)
                row = session.get(ConnectedAccount, (user_id, provider.value))
                credential = _to_credential(row)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to store {provider.value} credentials") from exc
        logger.debug("Stored %s credentials for user %s", provider.value, user_id)
        return credential

    def delete(self, user_id: str, provider: Provider) -> bool:
        """Delete the credential; returns False when nothing was stored."""
        try:
            with get_session(self._engine) as session:
                row = session.get(ConnectedAccount, (user_id, provider.value))
                if row is None:
                    return False
                session.delete(row)
                return True
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to delete {provider.value} connection") from exc

    def delete_all(self, user_id: str) -> int:
        """Delete every credential of a user; returns the number removed."""
        try:
            with get_session(self._engine) as session:
                rows = session.exec(
                    select(ConnectedAccount).where(ConnectedAccount.user_id == user_id)
                ).all()
                for row in rows:
                    session.delete(row)
                return len(rows)
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to delete user connections") from exc
