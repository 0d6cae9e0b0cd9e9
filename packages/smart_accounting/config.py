"""Runtime settings read from the environment.

Entrypoints load a local ``.env`` (``override=False``) before calling
:meth:`Settings.from_env`, so explicit environment variables always win.

Variables
---------
- ``SMART_ACCOUNTING_STORAGE``: ``file`` (default), ``sql`` or ``memory``.
- ``DATABASE_URL``: SQLAlchemy URL for ``sql`` storage.
- ``SMART_ACCOUNTING_DB_PATH``: JSON file for ``file`` storage (``db.json``).
- ``SMART_ACCOUNTING_LOG_LEVEL``: read by ``logging_setup``.
- ``SMART_ACCOUNTING_MCP_TRANSPORT``: ``stdio`` (default), ``sse`` or
  ``streamable-http``.
- ``SMART_ACCOUNTING_MCP_HOST`` / ``SMART_ACCOUNTING_MCP_PORT``: bind address
  for the HTTP transports (``127.0.0.1:8083``).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Literal, TypeAlias, cast

StorageMode: TypeAlias = Literal["file", "sql", "memory"]
McpTransport: TypeAlias = Literal["stdio", "sse", "streamable-http"]

_STORAGE_MODES: frozenset[str] = frozenset({"file", "sql", "memory"})
_MCP_TRANSPORTS: frozenset[str] = frozenset({"stdio", "sse", "streamable-http"})


def _choice(env: Mapping[str, str], name: str, default: str, allowed: frozenset[str]) -> str:
    raw = (env.get(name) or "").strip().lower()
    if not raw:
        return default
    if raw not in allowed:
        raise ValueError(f"{name} must be one of {sorted(allowed)}, got {raw!r}")
    return raw


def _port(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        port = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"{name} must be within 1..65535, got {port}")
    return port


@dataclass(frozen=True, slots=True)
class Settings:
    storage: StorageMode = "file"
    database_url: str | None = None
    db_path: str = "db.json"
    mcp_transport: McpTransport = "stdio"
    mcp_host: str = "127.0.0.1"
    mcp_port: int = 8083

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if env is None else env
        return cls(
            storage=cast(StorageMode, _choice(env, "SMART_ACCOUNTING_STORAGE", "file", _STORAGE_MODES)),
            database_url=(env.get("DATABASE_URL") or "").strip() or None,
            db_path=(env.get("SMART_ACCOUNTING_DB_PATH") or "").strip() or "db.json",
            mcp_transport=cast(
                McpTransport,
                _choice(env, "SMART_ACCOUNTING_MCP_TRANSPORT", "stdio", _MCP_TRANSPORTS),
            ),
            mcp_host=(env.get("SMART_ACCOUNTING_MCP_HOST") or "").strip() or "127.0.0.1",
            mcp_port=_port(env, "SMART_ACCOUNTING_MCP_PORT", 8083),
        )

    def with_overrides(
        self,
        *,
        storage: str | None = None,
        database_url: str | None = None,
        db_path: str | None = None,
    ) -> Settings:
        """Return a copy with CLI-provided overrides applied (``None`` keeps the value)."""

        changes: dict[str, object] = {}
        if storage is not None:
            mode = storage.strip().lower()
            if mode not in _STORAGE_MODES:
                raise ValueError(f"storage must be one of {sorted(_STORAGE_MODES)}, got {storage!r}")
            changes["storage"] = mode
        if database_url is not None:
            changes["database_url"] = database_url
        if db_path is not None:
            changes["db_path"] = db_path
        return replace(self, **changes)  # type: ignore[arg-type]


__all__ = ["Settings", "StorageMode", "McpTransport"]
