from __future__ import annotations

import logging

import pytest

from smart_accounting.logging_setup import _parse_level, get_logger


def test_level_names_and_numbers() -> None:
    assert _parse_level(logging.DEBUG) == logging.DEBUG
    assert _parse_level("warning") == logging.WARNING
    assert _parse_level(" 15 ") == 15


def test_unknown_level_falls_back_to_env_then_info(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SMART_ACCOUNTING_LOG_LEVEL", "error")
    assert _parse_level("chatty") == logging.ERROR
    assert _parse_level(None) == logging.ERROR

    monkeypatch.setenv("SMART_ACCOUNTING_LOG_LEVEL", "also-bogus")
    assert _parse_level("chatty") == logging.INFO


def test_get_logger_returns_package_child() -> None:
    logger = get_logger("smart_accounting.intake")
    assert logger.name == "smart_accounting.intake"
    assert logging.getLogger("smart_accounting").handlers
