"""Dialect-native INSERT ... ON CONFLICT statements keyed on a table's primary key."""
from collections.abc import Sequence

from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.sql.dml import Insert
from sqlmodel import Session, SQLModel

_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
    "mysql": mysql.insert,
    "mariadb": mysql.insert,
}


def upsert_statement(
    session: Session,
    model: type[SQLModel],
    values: list[dict],
    update: Sequence[str],
) -> Insert:
    """Insert `values`; on a primary-key conflict overwrite only `update` columns.

    The whole statement is atomic in the database, so concurrent writers of
    the same key never collide on the insert and the last one wins.
    """
    dialect = session.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"No upsert support for the {dialect} dialect") from None
    table = model.__table__
    statement = insert(table).values(values)
    if dialect in ("mysql", "mariadb"):
        return statement.on_duplicate_key_update(
            {column: statement.inserted[column] for column in update}
        )
    return statement.on_conflict_do_update(
        index_elements=[column.name for column in table.primary_key.columns],
        set_={column: statement.excluded[column] for column in update},
    )
