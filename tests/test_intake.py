from __future__ import annotations

import math
import re
from collections.abc import Sequence
from datetime import datetime

import pytest

from smart_accounting.errors import BatchItemError, StorageError, ValidationError
from smart_accounting.intake import TransactionIntake, new_transaction_id, validate_input
from smart_accounting.models import (
    SuggestionLevel,
    TransactionInput,
    TransactionKind,
    TransactionRecord,
)
from smart_accounting.storage import InMemoryStorage

NOW = datetime(2024, 6, 10, 9, 30, 0)


def _clock() -> datetime:
    return NOW


def _record(
    tx_id: str,
    occurred_at: str,
    *,
    kind: TransactionKind = TransactionKind.EXPENSE,
    amount: float = 7.0,
    description: str = "早餐",
    category: str = "餐饮美食",
) -> TransactionRecord:
    return TransactionRecord(
        id=tx_id,
        kind=kind,
        amount=amount,
        category=category,
        description=description,
        tags=(),
        occurred_at=occurred_at,
    )


class CountingStorage(InMemoryStorage):
    def __init__(self, records: Sequence[TransactionRecord] = ()) -> None:
        super().__init__(records)
        self.batch_calls = 0
        self.since_seen: list[datetime] = []

    def save_batch(self, records: Sequence[TransactionRecord]) -> None:
        self.batch_calls += 1
        super().save_batch(records)

    def query_recent(self, since: datetime) -> list[TransactionRecord]:
        self.since_seen.append(since)
        return super().query_recent(since)


class BrokenStorage(InMemoryStorage):
    def save_one(self, record: TransactionRecord) -> None:
        raise StorageError("disk full")

    def save_batch(self, records: Sequence[TransactionRecord]) -> None:
        raise StorageError("disk full")

    def query_recent(self, since: datetime) -> list[TransactionRecord]:
        raise StorageError("unreachable")


@pytest.fixture()
def storage() -> CountingStorage:
    return CountingStorage()


@pytest.fixture()
def intake(storage: CountingStorage) -> TransactionIntake:
    return TransactionIntake(storage, now=_clock)


# ---- ids / validation -----------------------------------------------------------


def test_transaction_ids_are_unique_and_prefixed() -> None:
    ids = {new_transaction_id() for _ in range(200)}
    assert len(ids) == 200
    assert all(re.fullmatch(r"tx_[0-9a-z]+_[0-9a-f]{6}", i) for i in ids)


@pytest.mark.parametrize(
    ("data", "field"),
    [
        (TransactionInput(kind=None, amount=7, description="早餐"), "kind"),
        (TransactionInput(kind="transfer", amount=7, description="早餐"), "kind"),
        (TransactionInput(kind="expense", amount=None, description="早餐"), "amount"),
        (TransactionInput(kind="expense", amount=0, description="早餐"), "amount"),
        (TransactionInput(kind="expense", amount=-5, description="早餐"), "amount"),
        (TransactionInput(kind="expense", amount="7", description="早餐"), "amount"),
        (TransactionInput(kind="expense", amount=True, description="早餐"), "amount"),
        (TransactionInput(kind="expense", amount=math.nan, description="早餐"), "amount"),
        (TransactionInput(kind="expense", amount=math.inf, description="早餐"), "amount"),
        (TransactionInput(kind="expense", amount=7, description="   "), "description"),
        (TransactionInput(kind="expense", amount=7, description=None), "description"),
        (TransactionInput(kind="expense", amount=7, description="早餐", tags="x"), "tags"),  # type: ignore[arg-type]
        (TransactionInput(kind="expense", amount=7, description="早餐", tags=5), "tags"),  # type: ignore[arg-type]
        (TransactionInput(kind="expense", amount=7, description="早餐", tags={"a": 1}), "tags"),  # type: ignore[arg-type]
        (TransactionInput(kind="expense", amount=7, description="早餐", tags=["ok", 3]), "tags"),  # type: ignore[list-item]
    ],
)
def test_validate_input_reports_offending_field(data: TransactionInput, field: str) -> None:
    result = validate_input(data)
    assert not result.ok
    assert result.field == field
    assert result.reason


def test_validation_reports_first_rule_violated() -> None:
    result = validate_input(TransactionInput(kind="bogus", amount=-1, description=""))
    assert result.field == "kind"


# ---- record -------------------------------------------------------------------------


def test_record_enriches_and_persists(intake: TransactionIntake, storage: CountingStorage) -> None:
    rec = intake.record(TransactionInput(kind="expense", amount=7, description="早餐"))

    assert rec.kind is TransactionKind.EXPENSE
    assert rec.amount == 7
    assert rec.category == "餐饮美食"
    assert rec.occurred_at == "2024-06-10 09:30:00"
    assert rec.tags == ()
    assert storage.records == [rec]


def test_record_keeps_description_verbatim(intake: TransactionIntake) -> None:
    rec = intake.record(TransactionInput(kind="expense", amount=12.5, description="  午餐 12.5块  "))
    assert rec.description == "  午餐 12.5块  "


def test_record_uses_explicit_category_and_tags(intake: TransactionIntake) -> None:
    rec = intake.record(
        TransactionInput(
            kind="expense",
            amount=88,
            description="早餐",
            category="差旅",
            tags=["reimbursement"],
        )
    )
    assert rec.category == "差旅"
    assert rec.tags == ("reimbursement",)


def test_blank_category_falls_back_to_inference(intake: TransactionIntake) -> None:
    rec = intake.record(TransactionInput(kind="income", amount=5000, description="发工资", category="  "))
    assert rec.category == "工资收入"


def test_record_applies_relative_date(intake: TransactionIntake) -> None:
    rec = intake.record(TransactionInput(kind="expense", amount=35, description="大前天买书花了35块"))
    assert rec.occurred_at == "2024-06-07 09:30:00"


def test_record_without_relative_date_uses_now(intake: TransactionIntake) -> None:
    rec = intake.record(TransactionInput(kind="expense", amount=20, description="打车"))
    assert rec.occurred_at == "2024-06-10 09:30:00"


def test_record_rejects_invalid_input_without_writing(
    intake: TransactionIntake, storage: CountingStorage
) -> None:
    with pytest.raises(ValidationError) as ei:
        intake.record(TransactionInput(kind="expense", amount=0, description="早餐"))
    assert ei.value.field == "amount"
    assert storage.records == []


def test_record_propagates_storage_error() -> None:
    intake = TransactionIntake(BrokenStorage(), now=_clock)
    with pytest.raises(StorageError, match="disk full"):
        intake.record(TransactionInput(kind="expense", amount=7, description="早餐"))


# ---- record_batch -----------------------------------------------------------------


def test_record_batch_saves_all_with_one_write(
    intake: TransactionIntake, storage: CountingStorage
) -> None:
    records = intake.record_batch(
        [
            TransactionInput(kind="expense", amount=7, description="今天买了早餐7块钱"),
            TransactionInput(kind="expense", amount=2, description="还买了雪糕2块钱"),
            TransactionInput(kind="income", amount=300, description="昨天兼职收入"),
        ]
    )

    assert storage.batch_calls == 1
    assert storage.records == records
    assert len({r.id for r in records}) == 3
    assert records[2].occurred_at == "2024-06-09 09:30:00"
    assert records[2].category == "兼职收入"


def test_record_batch_fails_whole_batch_on_invalid_item(
    intake: TransactionIntake, storage: CountingStorage
) -> None:
    with pytest.raises(BatchItemError) as ei:
        intake.record_batch(
            [
                TransactionInput(kind="expense", amount=-5, description="x"),
                TransactionInput(kind="expense", amount=7, description="早餐"),
            ]
        )

    err = ei.value
    assert err.index == 0
    assert err.field == "amount"
    assert "amount" in err.reason
    assert storage.batch_calls == 0
    assert storage.records == []


def test_record_batch_reports_every_failure(intake: TransactionIntake) -> None:
    with pytest.raises(BatchItemError) as ei:
        intake.record_batch(
            [
                TransactionInput(kind="expense", amount=7, description="早餐"),
                TransactionInput(kind="expense", amount=7, description=""),
                TransactionInput(kind="gift", amount=7, description="红包"),
            ]
        )
    assert ei.value.index == 1
    assert [i for i, _ in ei.value.failures] == [1, 2]


def test_record_batch_reports_non_list_tags_by_index(
    intake: TransactionIntake, storage: CountingStorage
) -> None:
    with pytest.raises(BatchItemError) as ei:
        intake.record_batch(
            [
                TransactionInput(kind="expense", amount=7, description="早餐"),
                TransactionInput(kind="expense", amount=2, description="雪糕", tags=5),  # type: ignore[arg-type]
            ]
        )
    assert ei.value.index == 1
    assert ei.value.field == "tags"
    assert storage.records == []


def test_record_batch_rejects_empty_list(intake: TransactionIntake) -> None:
    with pytest.raises(ValidationError) as ei:
        intake.record_batch([])
    assert not isinstance(ei.value, BatchItemError)


def test_record_batch_propagates_storage_error() -> None:
    intake = TransactionIntake(BrokenStorage(), now=_clock)
    with pytest.raises(StorageError):
        intake.record_batch([TransactionInput(kind="expense", amount=7, description="早餐")])


# ---- check_duplicate --------------------------------------------------------------


def test_check_duplicate_flags_recent_match() -> None:
    storage = CountingStorage([_record("tx_recent", "2024-06-10 08:30:00")])
    intake = TransactionIntake(storage, now=_clock)

    result = intake.check_duplicate(TransactionInput(kind="expense", amount=7, description="早餐"))

    assert result.has_similar
    assert result.matches[0].record.id == "tx_recent"
    assert result.suggestion_level is SuggestionLevel.STRONG
    assert storage.since_seen == [datetime(2024, 6, 9, 9, 30, 0)]


def test_check_duplicate_ignores_records_outside_window() -> None:
    storage = CountingStorage([_record("tx_old", "2024-06-09 08:00:00")])
    intake = TransactionIntake(storage, now=_clock)

    result = intake.check_duplicate(
        TransactionInput(kind="expense", amount=7, description="早餐"), hours_back=24
    )
    assert not result.has_similar
    assert result.suggestion_level is SuggestionLevel.SAFE

    wider = intake.check_duplicate(
        TransactionInput(kind="expense", amount=7, description="早餐"), hours_back=48
    )
    assert wider.has_similar


def test_check_duplicate_today_only_starts_at_midnight() -> None:
    storage = CountingStorage(
        [
            _record("tx_late_yesterday", "2024-06-09 23:50:00"),
            _record("tx_early_today", "2024-06-10 00:10:00"),
        ]
    )
    intake = TransactionIntake(storage, now=_clock)

    result = intake.check_duplicate(
        TransactionInput(kind="expense", amount=7, description="早餐"), today_only=True
    )
    assert [m.record.id for m in result.matches] == ["tx_early_today"]
    assert storage.since_seen == [datetime(2024, 6, 10)]


@pytest.mark.parametrize("hours_back", [1e9, 1e20])
def test_check_duplicate_window_past_year_one_covers_everything(hours_back: float) -> None:
    storage = CountingStorage([_record("tx_ancient", "2001-01-01 08:00:00")])
    intake = TransactionIntake(storage, now=_clock)

    result = intake.check_duplicate(
        TransactionInput(kind="expense", amount=7, description="早餐"), hours_back
    )
    assert [m.record.id for m in result.matches] == ["tx_ancient"]
    assert storage.since_seen == [datetime.min]


@pytest.mark.parametrize("hours_back", [0, -1, math.nan])
def test_check_duplicate_rejects_non_positive_window(
    intake: TransactionIntake, hours_back: float
) -> None:
    with pytest.raises(ValidationError) as ei:
        intake.check_duplicate(
            TransactionInput(kind="expense", amount=7, description="早餐"), hours_back
        )
    assert ei.value.field == "hours_back"


def test_check_duplicate_validates_candidate(intake: TransactionIntake) -> None:
    with pytest.raises(ValidationError):
        intake.check_duplicate(TransactionInput(kind="expense", amount=-1, description="早餐"))


def test_check_duplicate_propagates_storage_error() -> None:
    intake = TransactionIntake(BrokenStorage(), now=_clock)
    with pytest.raises(StorageError):
        intake.check_duplicate(TransactionInput(kind="expense", amount=7, description="早餐"))


# ---- reads ---------------------------------------------------------------------------


@pytest.fixture()
def seeded() -> TransactionIntake:
    storage = InMemoryStorage(
        [
            _record("tx_a", "2024-06-08 12:00:00"),
            _record("tx_c", "2024-06-10 08:00:00"),
            _record("tx_b", "2024-06-09 12:00:00", kind=TransactionKind.INCOME, amount=100.0),
            _record("tx_d", "2024-06-11 10:00:00", amount=3.0),
        ]
    )
    return TransactionIntake(storage, now=_clock)


def test_list_transactions_newest_first(seeded: TransactionIntake) -> None:
    assert [r.id for r in seeded.list_transactions()] == ["tx_d", "tx_c", "tx_b", "tx_a"]


def test_transactions_today(seeded: TransactionIntake) -> None:
    assert [r.id for r in seeded.transactions_today()] == ["tx_c"]


def test_transactions_between_is_inclusive_and_paginated(seeded: TransactionIntake) -> None:
    assert [r.id for r in seeded.transactions_between("2024-06-09", "2024-06-10")] == ["tx_c", "tx_b"]
    assert [r.id for r in seeded.transactions_between("2024-06-08")] == ["tx_a"]
    assert [r.id for r in seeded.transactions_between("2024-06-08", "2024-06-11", page=2, limit=3)] == [
        "tx_a"
    ]
    assert seeded.transactions_between("2024-06-08", "2024-06-11", page=3, limit=3) == []


def test_transactions_between_accepts_last_calendar_day(seeded: TransactionIntake) -> None:
    assert [r.id for r in seeded.transactions_between("2024-06-09", "9999-12-31")] == [
        "tx_d",
        "tx_c",
        "tx_b",
    ]
    assert seeded.transactions_between("9999-12-31") == []


@pytest.mark.parametrize(
    ("kwargs", "field"),
    [
        ({"start_date": "2024/06/09"}, "start_date"),
        ({"start_date": "2024-02-30"}, "start_date"),
        ({"start_date": "2024-06-10", "end_date": "2024-06-09"}, "end_date"),
        ({"start_date": "2024-06-10", "page": 0}, "page"),
        ({"start_date": "2024-06-10", "limit": 0}, "limit"),
    ],
)
def test_transactions_between_validation(
    seeded: TransactionIntake, kwargs: dict[str, object], field: str
) -> None:
    with pytest.raises(ValidationError) as ei:
        seeded.transactions_between(**kwargs)  # type: ignore[arg-type]
    assert ei.value.field == field


def test_summary(seeded: TransactionIntake) -> None:
    s = seeded.summary()
    assert s.total_income == pytest.approx(100.0)
    assert s.total_expense == pytest.approx(17.0)
    assert s.balance == pytest.approx(83.0)
    assert s.transaction_count == 4


def test_summary_of_empty_ledger() -> None:
    s = TransactionIntake(InMemoryStorage(), now=_clock).summary()
    assert (s.total_income, s.total_expense, s.balance, s.transaction_count) == (0.0, 0.0, 0.0, 0)
