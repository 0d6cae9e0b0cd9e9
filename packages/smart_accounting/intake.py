"""Transaction intake: validate, enrich and persist caller transactions.

:class:`TransactionIntake` is stateless between calls. Each operation:

- validates caller input (first violated rule → ``ValidationError``);
- stamps the record from a relative-day expression in the description
  ("昨天", "3天前"), falling back to the current instant;
- infers a category from the description when the caller gave none;
- talks to storage only through the injected :class:`StoragePort`.

Storage errors are logged and re-raised unchanged; the service never retries.
Batches are validated in full before anything is written, then saved with a
single ``save_batch`` call.
"""

from __future__ import annotations

import math
import re
import secrets
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from .classifier import TextClassifier
from .dates import RelativeDateResolver, format_timestamp
from .duplicates import DEFAULT_THRESHOLD, DuplicateCandidate, DuplicateDetector
from .errors import BatchItemError, StorageError, ValidationError
from .logging_setup import get_logger
from .models import (
    DuplicateCheckResult,
    TransactionInput,
    TransactionKind,
    TransactionRecord,
    TransactionSummary,
)
from .storage import StoragePort

_logger = get_logger("smart_accounting.intake")

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

DEFAULT_HOURS_BACK = 24
DEFAULT_PAGE_LIMIT = 100


# ---------------------------
# Identifiers
# ---------------------------


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits: list[str] = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_BASE36[r])
    return "".join(reversed(digits))


def new_transaction_id() -> str:
    """Return ``tx_<base36 epoch millis>_<6 hex chars>``."""

    return f"tx_{_to_base36(time.time_ns() // 1_000_000)}_{secrets.token_hex(3)}"


# ---------------------------
# Validation
# ---------------------------


@dataclass(frozen=True, slots=True)
class InputValidation:
    ok: bool
    reason: str | None = None
    field: str | None = None


_VALID = InputValidation(True)


def _finite_number(raw: Any) -> float | None:
    # bool is an int subclass; reject it explicitly
    if isinstance(raw, bool) or not isinstance(raw, int | float | Decimal):
        return None
    value = float(raw)
    return value if math.isfinite(value) else None


def validate_input(data: TransactionInput) -> InputValidation:
    """Check ``data`` rule by rule and report the first violation.

    Rules
    -----
    - ``kind`` is present and one of ``income`` / ``expense``.
    - ``amount`` is present, numeric, finite and greater than 0.
    - ``description`` is a string that is non-empty after trimming.
    - ``category`` (optional) is a string; ``tags`` (optional) is a list of strings.
    """

    kind = data.kind.value if isinstance(data.kind, TransactionKind) else data.kind
    if kind is None or kind == "":
        return InputValidation(False, "kind is required", "kind")
    if kind not in (TransactionKind.INCOME.value, TransactionKind.EXPENSE.value):
        return InputValidation(False, f"kind must be 'income' or 'expense', got {kind!r}", "kind")

    if data.amount is None:
        return InputValidation(False, "amount is required and must be greater than 0", "amount")
    amount = _finite_number(data.amount)
    if amount is None:
        return InputValidation(False, f"amount must be a finite number, got {data.amount!r}", "amount")
    if amount <= 0:
        return InputValidation(False, f"amount must be greater than 0, got {data.amount!r}", "amount")

    if not isinstance(data.description, str) or not data.description.strip():
        return InputValidation(False, "description must be a non-empty string", "description")

    if data.category is not None and not isinstance(data.category, str):
        return InputValidation(False, "category must be a string when provided", "category")
    if data.tags is not None:
        if not isinstance(data.tags, list | tuple) or not all(isinstance(t, str) for t in data.tags):
            return InputValidation(False, "tags must be a list of strings", "tags")

    return _VALID


def _raise_if_invalid(data: TransactionInput) -> None:
    result = validate_input(data)
    if not result.ok:
        raise ValidationError(result.reason or "invalid transaction", field=result.field)


def _parse_day(value: str, name: str) -> date:
    if not isinstance(value, str) or not _DATE_RE.fullmatch(value):
        raise ValidationError(f"{name} must use the YYYY-MM-DD format, got {value!r}", field=name)
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{name} is not a valid calendar date: {value!r}", field=name) from None


def _newest_first(records: Sequence[TransactionRecord]) -> list[TransactionRecord]:
    # The timestamp format sorts lexicographically in chronological order
    return sorted(records, key=lambda r: r.occurred_at, reverse=True)


# ---------------------------
# Service
# ---------------------------


class TransactionIntake:
    """Record transactions and run duplicate pre-flight checks against storage."""

    def __init__(
        self,
        storage: StoragePort,
        *,
        now: Callable[[], datetime] = datetime.now,
        classifier: TextClassifier | None = None,
        resolver: RelativeDateResolver | None = None,
        detector: DuplicateDetector | None = None,
    ) -> None:
        self._storage = storage
        self._now = now
        self._classifier = classifier or TextClassifier()
        self._resolver = resolver or RelativeDateResolver()
        self._detector = detector or DuplicateDetector(self._classifier)

    def now(self) -> datetime:
        """Current instant according to the injected clock."""

        return self._now()

    # ---- writes ------------------------------------------------------------

    def _build(self, data: TransactionInput, now: datetime) -> TransactionRecord:
        kind = TransactionKind(data.kind)
        description: str = data.description

        resolution = self._resolver.resolve(description, now, time_of_day=now.time())
        if resolution.found and resolution.timestamp:
            occurred_at = resolution.timestamp
            _logger.info("Detected relative date %r -> %s", resolution.keyword, occurred_at)
        else:
            occurred_at = format_timestamp(now)

        category = data.category if data.category and data.category.strip() else None
        if category is None:
            category = self._classifier.classify(description, kind)

        return TransactionRecord(
            id=new_transaction_id(),
            kind=kind,
            amount=float(data.amount),
            category=category,
            description=description,
            tags=tuple(data.tags or ()),
            occurred_at=occurred_at,
        )

    def record(self, data: TransactionInput) -> TransactionRecord:
        """Validate, enrich and persist one transaction; return the stored record."""

        _raise_if_invalid(data)
        record = self._build(data, self._now())
        try:
            self._storage.save_one(record)
        except StorageError:
            _logger.exception("Failed to record transaction %s", record.id)
            raise

        _logger.info(
            "Recorded %s %.2f - %s (%s)", record.kind.value, record.amount, record.category, record.id
        )
        return record

    def record_batch(self, items: Sequence[TransactionInput]) -> list[TransactionRecord]:
        """Record several transactions with one storage write.

        Every item is validated before anything is built or written. If any
        item fails, :class:`BatchItemError` names the first failing index and
        carries all failures; storage is untouched.
        """

        if not items:
            raise ValidationError("transaction list must not be empty", field="transactions")

        failures: list[tuple[int, str]] = []
        first_field: str | None = None
        for index, data in enumerate(items):
            result = validate_input(data)
            if not result.ok:
                if not failures:
                    first_field = result.field
                failures.append((index, result.reason or "invalid transaction"))
        if failures:
            index, reason = failures[0]
            raise BatchItemError(index, reason, field=first_field, failures=tuple(failures))

        now = self._now()
        records = [self._build(data, now) for data in items]
        try:
            self._storage.save_batch(records)
        except StorageError:
            _logger.exception("Failed to record batch of %d transactions", len(records))
            raise

        _logger.info("Recorded batch of %d transactions", len(records))
        for r in records:
            _logger.debug("- %s %.2f - %s", r.kind.value, r.amount, r.category)
        return records

    # ---- duplicate pre-flight ------------------------------------------------

    def check_duplicate(
        self,
        candidate: TransactionInput,
        hours_back: float = DEFAULT_HOURS_BACK,
        *,
        today_only: bool = False,
        similarity_threshold: float = DEFAULT_THRESHOLD,
    ) -> DuplicateCheckResult:
        """Compare ``candidate`` with recorded transactions in a lookback window.

        The window is the last ``hours_back`` hours, or the current calendar day
        when ``today_only`` is set.
        """

        _raise_if_invalid(candidate)
        hours = _finite_number(hours_back)
        if hours is None or hours <= 0:
            raise ValidationError(f"hours_back must be a positive number, got {hours_back!r}", field="hours_back")

        now = self._now()
        if today_only:
            since = datetime.combine(now.date(), datetime.min.time())
        else:
            try:
                since = now - timedelta(hours=hours)
            except OverflowError:
                # Window reaches past year 1: compare against everything
                since = datetime.min

        try:
            pool = self._storage.query_recent(since)
        except StorageError:
            _logger.exception("Failed to load transactions since %s for duplicate check", since)
            raise

        result = self._detector.find_similar(
            DuplicateCandidate(
                kind=TransactionKind(candidate.kind),
                amount=float(candidate.amount),
                description=candidate.description,
                category=candidate.category,
            ),
            pool,
            similarity_threshold,
        )
        _logger.info(
            "Duplicate check over %d transaction(s): %d match(es), %s",
            len(pool),
            len(result.matches),
            result.suggestion_level.value,
        )
        return result

    # ---- reads ---------------------------------------------------------------

    def _query(self, since: datetime | None) -> list[TransactionRecord]:
        try:
            if since is None:
                return self._storage.list_all()
            return self._storage.query_recent(since)
        except StorageError:
            _logger.exception("Failed to read transactions")
            raise

    def list_transactions(self) -> list[TransactionRecord]:
        """All recorded transactions, newest first."""

        return _newest_first(self._query(None))

    def transactions_today(self) -> list[TransactionRecord]:
        today = self._now().date()
        return self._between_days(today, today)

    def _between_days(self, start: date, end: date) -> list[TransactionRecord]:
        since = datetime.combine(start, datetime.min.time())
        in_range = [r for r in self._query(since) if r.occurred_at_dt.date() <= end]
        return _newest_first(in_range)

    def transactions_between(
        self,
        start_date: str,
        end_date: str | None = None,
        *,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> list[TransactionRecord]:
        """Transactions on ``start_date``..``end_date`` (inclusive, ``YYYY-MM-DD``), paginated."""

        start = _parse_day(start_date, "start_date")
        end = _parse_day(end_date, "end_date") if end_date else start
        if end < start:
            raise ValidationError("end_date must not be before start_date", field="end_date")
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise ValidationError(f"page must be an integer >= 1, got {page!r}", field="page")
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError(f"limit must be an integer >= 1, got {limit!r}", field="limit")

        rows = self._between_days(start, end)
        offset = (page - 1) * limit
        return rows[offset : offset + limit]

    def summary(self) -> TransactionSummary:
        income = 0.0
        expense = 0.0
        records = self._query(None)
        for r in records:
            if r.kind is TransactionKind.INCOME:
                income += r.amount
            else:
                expense += r.amount
        return TransactionSummary(
            total_income=income, total_expense=expense, transaction_count=len(records)
        )


__all__ = [
    "DEFAULT_HOURS_BACK",
    "InputValidation",
    "TransactionIntake",
    "new_transaction_id",
    "validate_input",
]
