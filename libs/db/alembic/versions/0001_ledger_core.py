# ruff: noqa: I001
"""Ledger transactions table.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2024-06-10
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Numeric(18, 4), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.CheckConstraint("kind in ('income','expense')", name="ck_ledger_tx_kind"),
        sa.CheckConstraint("amount > 0", name="ck_ledger_tx_amount_positive"),
    )
    op.create_index("ix_ledger_tx_occurred_at", "ledger_transactions", ["occurred_at"])


def downgrade() -> None:
    op.drop_index("ix_ledger_tx_occurred_at", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
