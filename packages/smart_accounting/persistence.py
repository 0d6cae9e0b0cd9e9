# ruff: noqa: I001
"""SQL persistence for ``smart_accounting``.

:class:`SqlStorage` implements the storage port on top of the shared database
library (``libs/db``): ORM model ``db.models.ledger.LedgerTransaction`` and
sessions from ``db.client.session_scope``.

Scope:
- Insert single transactions and batches (one DB transaction per call, so a
  batch is all-or-nothing).
- Read all rows, or rows at/after an instant, newest first.

SQLAlchemy errors are wrapped in :class:`~smart_accounting.errors.StorageError`.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from db.client import get_engine, session_scope
from db.models.ledger import Base, LedgerTransaction
from .errors import StorageError
from .logging_setup import get_logger
from .models import TransactionKind, TransactionRecord
from .dates import format_timestamp, parse_timestamp

_logger = get_logger("smart_accounting.persistence")


def _to_row(record: TransactionRecord) -> LedgerTransaction:
    return LedgerTransaction(
        id=record.id,
        kind=record.kind.value,
        amount=record.amount,
        category=record.category,
        description=record.description,
        tags=list(record.tags),
        occurred_at=parse_timestamp(record.occurred_at),
    )


def _from_row(row: LedgerTransaction) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        kind=TransactionKind(row.kind),
        amount=float(row.amount),
        category=row.category,
        description=row.description,
        tags=tuple(str(t) for t in (row.tags or ())),
        occurred_at=format_timestamp(row.occurred_at),
    )


class SqlStorage:
    """Storage port backed by the ``ledger_transactions`` table."""

    def __init__(self, *, database_url: str | None = None) -> None:
        url = database_url or os.getenv("DATABASE_URL")
        if not url:
            raise ValueError("SQL storage requires a database URL (set DATABASE_URL)")
        self._database_url = url

    def create_schema(self) -> None:
        """Create missing tables directly from ORM metadata (dev/test convenience).

        Production databases are migrated with Alembic (``libs/db/alembic``).
        """

        try:
            Base.metadata.create_all(bind=get_engine(database_url=self._database_url))
        except SQLAlchemyError as e:
            raise StorageError(f"failed to create ledger schema: {e}") from e

    def _insert(self, records: Sequence[TransactionRecord]) -> None:
        try:
            with session_scope(database_url=self._database_url) as session:
                session.add_all([_to_row(r) for r in records])
        except SQLAlchemyError as e:
            raise StorageError(f"failed to save {len(records)} transaction(s): {e}") from e

    def save_one(self, record: TransactionRecord) -> None:
        self._insert([record])
        _logger.debug("Inserted transaction %s", record.id)

    def save_batch(self, records: Sequence[TransactionRecord]) -> None:
        if not records:
            return
        self._insert(records)
        _logger.debug("Inserted %d transactions in one commit", len(records))

    def _select(self, since: datetime | None) -> list[TransactionRecord]:
        stmt = select(LedgerTransaction).order_by(LedgerTransaction.occurred_at.desc())
        if since is not None:
            stmt = stmt.where(LedgerTransaction.occurred_at >= since)
        try:
            with session_scope(database_url=self._database_url) as session:
                rows = session.execute(stmt).scalars().all()
                return [_from_row(r) for r in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"failed to read transactions: {e}") from e

    def query_recent(self, since: datetime) -> list[TransactionRecord]:
        return self._select(since)

    def list_all(self) -> list[TransactionRecord]:
        return self._select(None)


__all__ = ["SqlStorage"]
