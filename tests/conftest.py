"""Pytest configuration for test isolation.

Entrypoints read settings from the environment and from a ``.env`` file in the
working directory, and the database client caches one engine per URL. To keep
tests hermetic, each test runs from its own temporary directory with the
package's environment variables cleared, and cached engines are disposed
afterwards so per-test SQLite files are released.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

_ENV_VARS = (
    "DATABASE_URL",
    "SMART_ACCOUNTING_STORAGE",
    "SMART_ACCOUNTING_DB_PATH",
    "SMART_ACCOUNTING_LOG_LEVEL",
    "SMART_ACCOUNTING_MCP_TRANSPORT",
    "SMART_ACCOUNTING_MCP_HOST",
    "SMART_ACCOUNTING_MCP_PORT",
)


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear package env vars and run from a per-test working directory."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)

    yield

    from db.client import dispose_engines

    dispose_engines()
