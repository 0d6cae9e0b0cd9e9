from __future__ import annotations

import pytest

from smart_accounting.classifier import (
    DEFAULT_EXPENSE_CATEGORY,
    DEFAULT_INCOME_CATEGORY,
    TextClassifier,
    _rule,
    classify,
)
from smart_accounting.models import TransactionKind


@pytest.mark.parametrize(
    ("description", "expected"),
    [
        ("早餐 7块", "餐饮美食"),
        ("打车去公司", "交通出行"),
        ("看了场电影", "娱乐休闲"),
        ("交了这个月的房租", "生活服务"),
        ("一支牙膏", "日用百货"),
    ],
)
def test_expense_descriptions_map_to_expected_category(description: str, expected: str) -> None:
    assert classify(description, "expense") == expected


def test_income_descriptions_use_income_table() -> None:
    assert classify("发工资了", TransactionKind.INCOME) == "工资收入"
    assert classify("基金分红", "income") == "投资收益"
    # "外卖" is a food keyword for expenses but a side-job keyword for income
    assert classify("跑外卖兼职", "income") == "兼职收入"


def test_tie_keeps_first_declared_category() -> None:
    # 购物消费 and 服装鞋帽 both score 3; 购物消费 is declared first
    assert classify("买了一件衣服", "expense") == "购物消费"


def test_matching_is_case_insensitive() -> None:
    assert classify("KTV唱歌", "expense") == "娱乐休闲"
    assert classify("  UBER to airport ", "expense") == "交通出行"


def test_no_signal_returns_kind_default() -> None:
    assert classify("随便记一下", "expense") == DEFAULT_EXPENSE_CATEGORY
    assert classify("随便记一下", "income") == DEFAULT_INCOME_CATEGORY
    assert classify("", "expense") == DEFAULT_EXPENSE_CATEGORY


def test_patterns_outweigh_keywords() -> None:
    clf = TextClassifier(
        expense_rules=(
            _rule("A", "咖啡 蛋糕", ()),
            _rule("B", "", (r"咖啡",)),
        )
    )
    # A: two keywords (2 points) ties B: one pattern (2 points); A declared first
    assert clf.classify("咖啡蛋糕", "expense") == "A"
    # A: one keyword (1 point) loses to B: one pattern (2 points)
    assert clf.classify("咖啡", "expense") == "B"


def test_supported_categories_and_keywords() -> None:
    clf = TextClassifier()
    expense = clf.supported_categories("expense")
    assert expense[0] == "餐饮美食"
    assert len(expense) == 10
    assert clf.supported_categories(TransactionKind.INCOME) == (
        "工资收入",
        "投资收益",
        "兼职收入",
        "转账收入",
    )
    assert "t恤" in clf.category_keywords("服装鞋帽", "expense")
    assert clf.category_keywords("不存在", "expense") == ()


@pytest.mark.parametrize(
    ("description", "kind"),
    [("早餐 7块", "expense"), ("发工资了", "income"), ("random words", "expense"), ("", "income")],
)
def test_classification_is_repeatable(description: str, kind: str) -> None:
    first = classify(description, kind)
    assert all(classify(description, kind) == first for _ in range(3))
    assert TextClassifier().classify(description, kind) == first


def test_unknown_kind_is_rejected() -> None:
    with pytest.raises(ValueError):
        classify("早餐", "transfer")
