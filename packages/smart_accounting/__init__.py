"""Public interface for the ``smart_accounting`` package.

This module exposes the intake service, its building blocks and the public
models/types as the stable import surface. There is no runtime logic here, only
symbol re-exports. The SQL adapter (``smart_accounting.persistence``) and the
MCP server (``smart_accounting.mcp_server``) are imported from their modules so
the database and MCP stacks stay optional at import time.
"""

from .classifier import TextClassifier, classify
from .config import Settings
from .dates import DateResolution, RelativeDateResolver, format_timestamp, parse_timestamp
from .duplicates import DuplicateCandidate, DuplicateDetector, text_similarity, tokenize
from .errors import BatchItemError, IntakeError, StorageError, ValidationError
from .intake import TransactionIntake, new_transaction_id, validate_input
from .models import (
    DuplicateCheckResult,
    SimilarityCandidate,
    SuggestionLevel,
    TransactionInput,
    TransactionKind,
    TransactionPayload,
    TransactionRecord,
    TransactionSummary,
)
from .storage import InMemoryStorage, JsonFileStorage, StoragePort, build_storage

__all__ = [
    # Service
    "TransactionIntake",
    "new_transaction_id",
    "validate_input",
    # Building blocks
    "TextClassifier",
    "classify",
    "RelativeDateResolver",
    "DateResolution",
    "format_timestamp",
    "parse_timestamp",
    "DuplicateDetector",
    "DuplicateCandidate",
    "text_similarity",
    "tokenize",
    # Storage / config
    "StoragePort",
    "InMemoryStorage",
    "JsonFileStorage",
    "build_storage",
    "Settings",
    # Models / types
    "TransactionKind",
    "TransactionInput",
    "TransactionRecord",
    "TransactionPayload",
    "SimilarityCandidate",
    "SuggestionLevel",
    "DuplicateCheckResult",
    "TransactionSummary",
    # Errors
    "IntakeError",
    "ValidationError",
    "BatchItemError",
    "StorageError",
]
