"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ledger models used by ``smart_accounting``.
"""

from .ledger import Base, LedgerTransaction

__all__ = [
    "Base",
    "LedgerTransaction",
]
