"""Exception taxonomy for the transaction intake core.

Every error is scoped to the single call that raised it:

- ``ValidationError``: malformed caller input. Never retried, no partial effect.
- ``BatchItemError``: one or more items of a batch failed validation; the whole
  batch is rejected before anything is written.
- ``StorageError``: a storage adapter failed to read or write. The intake
  service re-raises it unchanged.
"""

from __future__ import annotations


class IntakeError(Exception):
    """Base class for all errors raised by ``smart_accounting``."""


class ValidationError(IntakeError):
    """Input failed validation; ``field`` names the offending attribute when known."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class BatchItemError(ValidationError):
    """A batch item failed validation.

    ``index`` and ``reason`` describe the first failing item (0-based index);
    ``failures`` lists every ``(index, reason)`` pair found in the batch.
    """

    def __init__(
        self,
        index: int,
        reason: str,
        *,
        field: str | None = None,
        failures: tuple[tuple[int, str], ...] = (),
    ) -> None:
        super().__init__(f"batch item {index} is invalid: {reason}", field=field)
        self.index = index
        self.reason = reason
        self.failures = failures or ((index, reason),)


class StorageError(IntakeError):
    """A storage adapter failed; the original exception is chained as ``__cause__``."""


__all__ = [
    "IntakeError",
    "ValidationError",
    "BatchItemError",
    "StorageError",
]
