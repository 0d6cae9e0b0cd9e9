"""Storage port consumed by the intake service, plus file and memory adapters.

The intake service depends only on :class:`StoragePort`. Adapters:

- :class:`InMemoryStorage`: list-backed; for tests and throwaway sessions.
- :class:`JsonFileStorage`: a JSON array of records on disk.
- ``persistence.SqlStorage``: SQLAlchemy-backed (imported lazily by
  :func:`build_storage` to keep DB dependencies off the import path).

Every adapter raises :class:`~smart_accounting.errors.StorageError` on failure.

JSON layout (one object per record, wire keys)::

    [{"id": "tx_...", "type": "expense", "amount": 7.0, "category": "餐饮美食",
      "description": "早餐", "tags": [], "timestamp": "2024-06-10 08:00:00"}]

Writes go to ``<path>.tmp`` first and are then moved into place with
``os.replace`` so readers never observe a half-written file.
"""

from __future__ import annotations

import contextlib
import json
import os
import threading
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from .errors import StorageError
from .logging_setup import get_logger
from .models import TransactionRecord

if TYPE_CHECKING:
    from .config import Settings


_logger = get_logger("smart_accounting.storage")


class StoragePort(Protocol):
    def save_one(self, record: TransactionRecord) -> None: ...

    def save_batch(self, records: Sequence[TransactionRecord]) -> None: ...

    def query_recent(self, since: datetime) -> list[TransactionRecord]: ...

    def list_all(self) -> list[TransactionRecord]: ...


def _on_or_after(records: Sequence[TransactionRecord], since: datetime) -> list[TransactionRecord]:
    out: list[TransactionRecord] = []
    for rec in records:
        try:
            when = rec.occurred_at_dt
        except ValueError:
            _logger.warning("Skipping transaction %s with invalid timestamp %r", rec.id, rec.occurred_at)
            continue
        if when >= since:
            out.append(rec)
    return out


class InMemoryStorage:
    """Process-local storage; ``records`` is exposed for assertions in tests."""

    def __init__(self, records: Sequence[TransactionRecord] = ()) -> None:
        self.records: list[TransactionRecord] = list(records)
        self._lock = threading.Lock()

    def save_one(self, record: TransactionRecord) -> None:
        with self._lock:
            self.records.append(record)

    def save_batch(self, records: Sequence[TransactionRecord]) -> None:
        with self._lock:
            self.records.extend(records)

    def query_recent(self, since: datetime) -> list[TransactionRecord]:
        with self._lock:
            snapshot = list(self.records)
        return _on_or_after(snapshot, since)

    def list_all(self) -> list[TransactionRecord]:
        with self._lock:
            return list(self.records)


class JsonFileStorage:
    """Append-only JSON array file.

    Writers are serialized with a process-local lock; each write rewrites the
    whole file atomically. A missing or blank file reads as empty.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_raw(self) -> list[Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageError(f"failed to read transactions from {self.path}: {e}") from e

        if not text.strip():
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"transactions file {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, list):
            _logger.warning("Transactions file %s does not hold a JSON array; treating as empty", self.path)
            return []
        return data

    def _load(self) -> list[TransactionRecord]:
        records: list[TransactionRecord] = []
        for pos, item in enumerate(self._read_raw()):
            try:
                records.append(TransactionRecord.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                raise StorageError(f"malformed transaction at position {pos} in {self.path}: {e}") from e
        return records

    def _write(self, records: Sequence[TransactionRecord]) -> None:
        payload = json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2)
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise StorageError(f"failed to write transactions to {self.path}: {e}") from e

    def _append(self, new: Sequence[TransactionRecord]) -> None:
        with self._lock:
            existing = self._load()
            existing.extend(new)
            self._write(existing)

    def save_one(self, record: TransactionRecord) -> None:
        self._append([record])
        _logger.debug("Saved transaction %s to %s", record.id, self.path)

    def save_batch(self, records: Sequence[TransactionRecord]) -> None:
        if not records:
            return
        self._append(records)
        _logger.debug("Saved %d transactions to %s", len(records), self.path)

    def query_recent(self, since: datetime) -> list[TransactionRecord]:
        return _on_or_after(self._load(), since)

    def list_all(self) -> list[TransactionRecord]:
        return self._load()

    def clear(self) -> None:
        with self._lock:
            self._write([])


def build_storage(settings: Settings) -> StoragePort:
    """Instantiate the adapter selected by ``settings.storage``."""

    if settings.storage == "memory":
        return InMemoryStorage()
    if settings.storage == "file":
        return JsonFileStorage(settings.db_path)
    if settings.storage == "sql":
        from .persistence import SqlStorage  # local import: SQLAlchemy only when needed

        return SqlStorage(database_url=settings.database_url)
    raise ValueError(f"Unsupported storage mode: {settings.storage!r}")


__all__ = [
    "StoragePort",
    "InMemoryStorage",
    "JsonFileStorage",
    "build_storage",
]
