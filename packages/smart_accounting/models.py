"""Data models for ``smart_accounting``.

Domain records are frozen dataclasses; the only pydantic model is the wire
payload accepted from tool callers and JSON files (``TransactionPayload``),
mirroring how the rest of the package keeps validated I/O shapes separate from
the in-process types.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

# Second-resolution, local wall-clock time. Shared by storage and tool output.
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class TransactionKind(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"


@dataclass(frozen=True, slots=True)
class TransactionInput:
    """Caller-supplied transaction data prior to validation.

    Fields are intentionally loose (``kind`` may be any string, ``amount`` any
    object) so that malformed values reach the validator and surface as
    :class:`~smart_accounting.errors.ValidationError` rather than a type error.
    """

    kind: Any
    amount: Any
    description: Any
    category: str | None = None
    tags: Sequence[str] | None = None


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """A persisted income/expense transaction.

    ``description`` is the caller's raw text, preserved verbatim. ``occurred_at``
    is formatted with :data:`TIMESTAMP_FORMAT`.
    """

    id: str
    kind: TransactionKind
    amount: float
    category: str
    description: str
    tags: tuple[str, ...]
    occurred_at: str

    @property
    def occurred_at_dt(self) -> datetime:
        return datetime.strptime(self.occurred_at, TIMESTAMP_FORMAT)

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the wire keys (``type``/``timestamp``) of the tool API."""

        return {
            "id": self.id,
            "type": self.kind.value,
            "amount": self.amount,
            "category": self.category,
            "description": self.description,
            "tags": list(self.tags),
            "timestamp": self.occurred_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TransactionRecord:
        """Inverse of :meth:`to_dict`; raises ``KeyError``/``TypeError``/``ValueError`` on bad shapes."""

        if not isinstance(data, Mapping):
            raise TypeError(f"expected an object, got {type(data).__name__}")
        tags = data.get("tags") or []
        if not isinstance(tags, list | tuple):
            raise ValueError(f"tags must be a list, got {type(tags).__name__}")
        return cls(
            id=str(data["id"]),
            kind=TransactionKind(data["type"]),
            amount=float(data["amount"]),
            category=str(data["category"]),
            description=str(data["description"]),
            tags=tuple(str(t) for t in tags),
            occurred_at=str(data["timestamp"]),
        )


@dataclass(frozen=True, slots=True)
class SimilarityCandidate:
    """An existing record paired with its similarity to a candidate (0..1)."""

    record: TransactionRecord
    similarity: float


class SuggestionLevel(StrEnum):
    STRONG = "strong duplicate warning"
    MODERATE = "moderate duplicate warning"
    WEAK = "weak duplicate hint"
    SAFE = "safe to add"


@dataclass(frozen=True, slots=True)
class DuplicateCheckResult:
    has_similar: bool
    matches: tuple[SimilarityCandidate, ...]
    suggestion_level: SuggestionLevel
    suggestion: str


@dataclass(frozen=True, slots=True)
class TransactionSummary:
    total_income: float = 0.0
    total_expense: float = 0.0
    transaction_count: int = 0
    balance: float = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "balance", self.total_income - self.total_expense)


class TransactionPayload(BaseModel):
    """Wire shape of a transaction submitted by a tool caller or a JSON file.

    Only structural typing happens here; business rules (positive amount,
    non-blank description) are enforced by the intake validator so that every
    entrypoint reports them the same way.
    """

    model_config = ConfigDict(extra="forbid")

    type: Literal["income", "expense"]
    amount: float
    description: str
    category: str | None = None
    tags: list[str] | None = None

    def to_input(self) -> TransactionInput:
        return TransactionInput(
            kind=self.type,
            amount=self.amount,
            description=self.description,
            category=self.category,
            tags=self.tags,
        )


__all__ = [
    "TIMESTAMP_FORMAT",
    "TransactionKind",
    "TransactionInput",
    "TransactionRecord",
    "SimilarityCandidate",
    "SuggestionLevel",
    "DuplicateCheckResult",
    "TransactionSummary",
    "TransactionPayload",
]
