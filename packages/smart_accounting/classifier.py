"""Keyword/regex category inference for free-text transaction descriptions.

Each transaction kind has an ordered rule table. A rule scores one point per
keyword found as a substring of the lower-cased description and two points per
regex pattern that matches anywhere in it. The strictly highest score wins;
ties keep the category declared first. When nothing scores, the kind's
sentinel default is returned.

Declaration order is part of the contract: reordering rules changes tie-breaks.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .models import TransactionKind

_KEYWORD_WEIGHT = 1
_PATTERN_WEIGHT = 2

DEFAULT_EXPENSE_CATEGORY = "未分类消费"
DEFAULT_INCOME_CATEGORY = "其他收入"


@dataclass(frozen=True, slots=True)
class CategoryRule:
    category: str
    keywords: tuple[str, ...]
    patterns: tuple[re.Pattern[str], ...]

    def score(self, text: str) -> int:
        hits = sum(_KEYWORD_WEIGHT for kw in self.keywords if kw in text)
        return hits + sum(_PATTERN_WEIGHT for p in self.patterns if p.search(text))


def _rule(category: str, keywords: str, patterns: tuple[str, ...]) -> CategoryRule:
    return CategoryRule(
        category=category,
        keywords=tuple(keywords.split()),
        patterns=tuple(re.compile(p) for p in patterns),
    )


EXPENSE_RULES: tuple[CategoryRule, ...] = (
    _rule(
        "餐饮美食",
        "吃饭 午餐 晚餐 早餐 饭店 餐厅 外卖 点餐 食物 零食 咖啡 奶茶 饮料 酒 聚餐 火锅 烧烤 快餐",
        (r"吃了?.*", r"买了?.*吃", r".*餐厅.*", r".*饭店.*", r".*外卖.*"),
    ),
    _rule(
        "交通出行",
        "打车 出租车 地铁 公交 滴滴 uber 高铁 火车 飞机 机票 车票 油费 停车 加油 汽车 摩托 电动车",
        (r".*打车.*", r".*地铁.*", r".*公交.*", r".*机票.*", r".*车票.*"),
    ),
    _rule(
        "购物消费",
        "买 购买 购物 商场 超市 淘宝 京东 拼多多 网购 商品 东西",
        (r"买了?.*", r"购买.*", r"购物.*", r".*商场.*", r".*超市.*"),
    ),
    _rule(
        "服装鞋帽",
        "衣服 裤子 鞋子 帽子 袜子 内衣 外套 毛衣 t恤 裙子 包包 手表 首饰 化妆品",
        (r".*衣服.*", r".*鞋子.*", r".*裤子.*", r".*包包.*", r".*化妆品.*"),
    ),
    _rule(
        "电子产品",
        "手机 电脑 笔记本 平板 耳机 音响 相机 电视 空调 冰箱 洗衣机 充电器 数据线 键盘 鼠标",
        (r".*手机.*", r".*电脑.*", r".*平板.*", r".*耳机.*", r".*电视.*"),
    ),
    _rule(
        "医疗健康",
        "医院 看病 药品 药物 体检 医疗 诊所 牙医 眼科 感冒 发烧 治疗",
        (r".*医院.*", r".*看病.*", r".*药.*", r".*体检.*", r".*医疗.*"),
    ),
    _rule(
        "教育培训",
        "学费 培训 课程 书籍 教材 学习 补习 家教 驾校 考试 证书",
        (r".*学费.*", r".*培训.*", r".*课程.*", r".*书籍.*", r".*学习.*"),
    ),
    _rule(
        "娱乐休闲",
        "电影 游戏 ktv 酒吧 旅游 景点 门票 娱乐 运动 健身 游泳 球类",
        (r".*电影.*", r".*游戏.*", r".*ktv.*", r".*旅游.*", r".*门票.*", r".*健身.*"),
    ),
    _rule(
        "生活服务",
        "理发 美容 洗衣 维修 快递 水电费 物业费 网费 话费 房租 水费 电费 燃气费",
        (r".*理发.*", r".*美容.*", r".*维修.*", r".*水电费.*", r".*房租.*", r".*话费.*"),
    ),
    _rule(
        "日用百货",
        "洗发水 沐浴露 牙膏 牙刷 毛巾 纸巾 洗衣液 清洁用品 生活用品 日用品",
        (r".*洗发水.*", r".*沐浴露.*", r".*牙膏.*", r".*纸巾.*", r".*生活用品.*"),
    ),
)

INCOME_RULES: tuple[CategoryRule, ...] = (
    _rule(
        "工资收入",
        "工资 薪水 薪资 月薪 年薪 奖金 津贴 补贴 绩效",
        (r".*工资.*", r".*薪水.*", r".*奖金.*", r".*津贴.*", r".*补贴.*"),
    ),
    _rule(
        "投资收益",
        "股票 基金 理财 分红 利息 收益 投资 债券",
        (r".*股票.*", r".*基金.*", r".*理财.*", r".*分红.*", r".*利息.*", r".*投资.*"),
    ),
    _rule(
        "兼职收入",
        "兼职 外快 副业 接单 代驾 外卖 快递 临时工",
        (r".*兼职.*", r".*外快.*", r".*副业.*", r".*接单.*", r".*代驾.*"),
    ),
    _rule(
        "转账收入",
        "转账 红包 借款 还款 报销 退款 返现 返利",
        (r".*转账.*", r".*红包.*", r".*报销.*", r".*退款.*", r".*返现.*"),
    ),
)


def default_category(kind: TransactionKind | str) -> str:
    if TransactionKind(kind) is TransactionKind.INCOME:
        return DEFAULT_INCOME_CATEGORY
    return DEFAULT_EXPENSE_CATEGORY


class TextClassifier:
    """Stateless category classifier over the module rule tables.

    Instances carry their own tables so tests (or callers with a custom
    taxonomy) can substitute them; the defaults are the module-level tables.
    """

    def __init__(
        self,
        *,
        expense_rules: tuple[CategoryRule, ...] = EXPENSE_RULES,
        income_rules: tuple[CategoryRule, ...] = INCOME_RULES,
    ) -> None:
        self._rules = {
            TransactionKind.EXPENSE: expense_rules,
            TransactionKind.INCOME: income_rules,
        }

    def classify(self, description: str, kind: TransactionKind | str) -> str:
        text = description.lower().strip()
        best: str | None = None
        best_score = 0
        for rule in self._rules[TransactionKind(kind)]:
            s = rule.score(text)
            # Strictly greater: earlier rules win ties
            if s > best_score:
                best, best_score = rule.category, s
        return best if best is not None else default_category(kind)

    def supported_categories(self, kind: TransactionKind | str) -> tuple[str, ...]:
        return tuple(r.category for r in self._rules[TransactionKind(kind)])

    def category_keywords(self, category: str, kind: TransactionKind | str) -> tuple[str, ...]:
        for r in self._rules[TransactionKind(kind)]:
            if r.category == category:
                return r.keywords
        return ()


_DEFAULT = TextClassifier()


def classify(description: str, kind: TransactionKind | str) -> str:
    """Module-level convenience over a default :class:`TextClassifier`."""

    return _DEFAULT.classify(description, kind)


__all__ = [
    "CategoryRule",
    "EXPENSE_RULES",
    "INCOME_RULES",
    "DEFAULT_EXPENSE_CATEGORY",
    "DEFAULT_INCOME_CATEGORY",
    "TextClassifier",
    "classify",
    "default_category",
]
