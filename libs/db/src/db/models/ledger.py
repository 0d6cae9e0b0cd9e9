from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: ledger_transactions
# ---------------------------


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"

    # Application-generated id (``tx_<base36 millis>_<hex>``), never reused.
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    # Floats on the way out; amounts are compared with a 0.01 tolerance upstream.
    amount: Mapped[float] = mapped_column(Numeric(18, 4, asdecimal=False), nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    # Raw caller text, stored verbatim.
    description: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    # Local wall-clock time at second resolution (naive).
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )

    __table_args__ = (
        CheckConstraint("kind in ('income','expense')", name="ck_ledger_tx_kind"),
        CheckConstraint("amount > 0", name="ck_ledger_tx_amount_positive"),
        Index("ix_ledger_tx_occurred_at", "occurred_at"),
    )


__all__ = [
    "Base",
    "LedgerTransaction",
]
