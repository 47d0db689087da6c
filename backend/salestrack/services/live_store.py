# Overview: Table-scoped access to the live store; the only handle the maintenance services write through.

"""
Live store handle.

WHY: The backup, restore and repair operations run as short maintenance
jobs. Each one gets an explicit LiveStore bound to its own session instead
of reaching for a module-level connection, and every write goes through the
same small set of table-scoped operations so constraint failures surface as
one exception type.

The entity registry is static. Table names are never discovered by parsing
schema text.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import Article, Client, Gift, Pack, PackArticle, Representative, Sale


# Export order; sales first because it is the table restores care about.
ENTITY_TABLES = {
    "sales": Sale,
    "clients": Client,
    "representatives": Representative,
    "packs": Pack,
    "articles": Article,
    "gifts": Gift,
    "pack_articles": PackArticle,
}


class UnknownTableError(ValueError):
    """Raised when a table name is not part of the entity registry."""


class ConstraintViolationError(Exception):
    """Raised when the database rejects a write (uniqueness, NOT NULL, foreign key)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def model_for(table_name: str):
    model = ENTITY_TABLES.get(table_name)
    if model is None:
        raise UnknownTableError(f"Unknown table: {table_name}")
    return model


class LiveStore:
    """
    Table-scoped read/write access over one SQLAlchemy session.

    Identities are the primary key value, or a tuple for composite keys
    (pack_articles is keyed by (pack_id, article_id)).
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def table(table_name: str):
        return model_for(table_name).__table__

    def _identity_clause(self, table, identity: Any):
        pk_cols = list(table.primary_key.columns)
        values = identity if isinstance(identity, (tuple, list)) else (identity,)
        if len(values) != len(pk_cols):
            raise ValueError(
                f"{table.name} is keyed by {', '.join(c.name for c in pk_cols)}"
            )
        return and_(*(col == value for col, value in zip(pk_cols, values)))

    def _execute(self, statement, *, table_name: str):
        try:
            return self.session.execute(statement)
        except IntegrityError as exc:
            self.session.rollback()
            raise ConstraintViolationError(
                f"Write to {table_name} rejected by the database",
                details={"table": table_name, "error": str(exc.orig)},
            ) from exc

    def read_all(self, table_name: str) -> list[dict]:
        table = self.table(table_name)
        stmt = select(table).order_by(*table.primary_key.columns)
        return [dict(row) for row in self.session.execute(stmt).mappings()]

    def get(self, table_name: str, identity: Any) -> dict | None:
        table = self.table(table_name)
        stmt = select(table).where(self._identity_clause(table, identity))
        row = self.session.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def find(self, table_name: str, **criteria) -> list[dict]:
        """Rows whose columns equal every given value, in primary key order."""
        table = self.table(table_name)
        stmt = select(table).order_by(*table.primary_key.columns)
        for key, value in criteria.items():
            stmt = stmt.where(table.c[key] == value)
        return [dict(row) for row in self.session.execute(stmt).mappings()]

    def first(self, table_name: str) -> dict | None:
        """First row in canonical (primary key) order."""
        table = self.table(table_name)
        stmt = select(table).order_by(*table.primary_key.columns).limit(1)
        row = self.session.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def count(self, table_name: str) -> int:
        table = self.table(table_name)
        return self.session.execute(select(db.func.count()).select_from(table)).scalar_one()

    def insert(self, table_name: str, values: dict) -> Any:
        table = self.table(table_name)
        result = self._execute(insert(table).values(**values), table_name=table_name)
        pk = tuple(result.inserted_primary_key)
        return pk[0] if len(pk) == 1 else pk

    def update(self, table_name: str, identity: Any, values: dict) -> int:
        table = self.table(table_name)
        stmt = update(table).where(self._identity_clause(table, identity)).values(**values)
        return self._execute(stmt, table_name=table_name).rowcount

    def delete(self, table_name: str, identity: Any) -> int:
        table = self.table(table_name)
        stmt = delete(table).where(self._identity_clause(table, identity))
        return self._execute(stmt, table_name=table_name).rowcount

    def upsert(self, table_name: str, values: dict) -> str:
        """
        Replace-on-conflict by identity.

        Returns "inserted" or "updated".
        """
        table = self.table(table_name)
        pk_cols = list(table.primary_key.columns)
        identity = tuple(values.get(col.key) for col in pk_cols)
        if any(v is None for v in identity):
            raise ValueError(f"{table_name} row is missing its primary key")

        if self.get(table_name, identity) is None:
            self.insert(table_name, values)
            return "inserted"

        changes = {k: v for k, v in values.items() if k not in {c.key for c in pk_cols}}
        if changes:
            self.update(table_name, identity, changes)
        return "updated"

    def commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConstraintViolationError(
                "Commit rejected by the database",
                details={"error": str(exc.orig)},
            ) from exc

    def rollback(self) -> None:
        self.session.rollback()


@contextmanager
def open_live_store() -> Iterator[LiveStore]:
    """
    Scoped acquisition of a LiveStore on a fresh session.

    Anything left uncommitted when the block raises is rolled back, and the
    session is always closed. Requires an application context.
    """
    session = Session(bind=db.engine)
    store = LiveStore(session)
    try:
        yield store
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
