"""Relative-day expressions ("昨天", "大前天", "3天前") resolved to timestamps.

Resolution order:

1. Scan ``RELATIVE_DAY_KEYWORDS`` in declared order; the first keyword that
   occurs in the text wins. Longer keywords are declared before the shorter
   keywords they contain ("大前天" before "前天") so they are never shadowed.
2. Otherwise try the numeric pattern ``<N>天前`` / ``<N>天后`` where ``N`` is a
   single CJK numeral (一..十) or ASCII digits.

The resolved date keeps the caller's time of day (or the current wall-clock
time when none is given), never midnight.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from .models import TIMESTAMP_FORMAT

RELATIVE_DAY_KEYWORDS: tuple[tuple[str, int], ...] = (
    # Must precede 前天 / 后天
    ("大前天", -3),
    ("三天前", -3),
    ("大后天", 3),
    ("三天后", 3),
    ("前天", -2),
    ("前日", -2),
    ("后天", 2),
    ("后日", 2),
    ("今天", 0),
    ("今日", 0),
    ("当天", 0),
    ("昨天", -1),
    ("昨日", -1),
    ("前一天", -1),
    ("明天", 1),
    ("明日", 1),
    ("后一天", 1),
    ("四天前", -4),
    ("五天前", -5),
    ("六天前", -6),
    ("一周前", -7),
    ("四天后", 4),
    ("五天后", 5),
    ("六天后", 6),
    ("一周后", 7),
)

CJK_NUMERALS: dict[str, int] = {
    "一": 1,
    "二": 2,
    "三": 3,
    "四": 4,
    "五": 5,
    "六": 6,
    "七": 7,
    "八": 8,
    "九": 9,
    "十": 10,
}

_DAY_PATTERN = re.compile(r"([一二三四五六七八九十0-9]+)天(前|后)")

_OFFSET_NAMES: dict[int, str] = {
    0: "今天",
    1: "明天",
    2: "后天",
    3: "大后天",
    -1: "昨天",
    -2: "前天",
    -3: "大前天",
}


@dataclass(frozen=True, slots=True)
class DateResolution:
    found: bool
    day_offset: int | None = None
    keyword: str | None = None
    timestamp: str | None = None


_NOT_FOUND = DateResolution(found=False)


def format_timestamp(moment: datetime | None = None) -> str:
    """Format ``moment`` (default: now) as ``YYYY-MM-DD HH:MM:SS``."""

    return (moment or datetime.now()).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, TIMESTAMP_FORMAT)


def _parse_day_count(token: str) -> int:
    if token in CJK_NUMERALS:
        return CJK_NUMERALS[token]
    if token.isascii() and token.isdigit():
        return int(token)
    # Compound numerals such as 十二 are not supported
    return 0


class RelativeDateResolver:
    """Find a relative-day expression in free text and anchor it to ``base``."""

    def __init__(self, keywords: tuple[tuple[str, int], ...] = RELATIVE_DAY_KEYWORDS) -> None:
        self._keywords = keywords

    def match(self, text: str) -> tuple[str, int] | None:
        """Return ``(matched_text, day_offset)`` or ``None``."""

        for keyword, offset in self._keywords:
            if keyword in text:
                return keyword, offset

        m = _DAY_PATTERN.search(text)
        if m is None:
            return None
        days = _parse_day_count(m.group(1))
        if days <= 0:
            return None
        return m.group(0), (-days if m.group(2) == "前" else days)

    def resolve(
        self,
        text: str,
        base: datetime | None = None,
        *,
        time_of_day: time | None = None,
    ) -> DateResolution:
        hit = self.match(text)
        if hit is None:
            return _NOT_FOUND
        keyword, offset = hit

        anchor = base or datetime.now()
        target_date = anchor.date() + timedelta(days=offset)
        clock = time_of_day or datetime.now().time()
        resolved = datetime.combine(target_date, clock.replace(microsecond=0))
        return DateResolution(
            found=True,
            day_offset=offset,
            keyword=keyword,
            timestamp=format_timestamp(resolved),
        )

    def has_relative_date(self, text: str) -> bool:
        return self.match(text) is not None


def describe_offset(day_offset: int) -> str:
    """Human-readable Chinese label for a day offset (e.g. ``-2`` → ``前天``)."""

    if day_offset in _OFFSET_NAMES:
        return _OFFSET_NAMES[day_offset]
    if day_offset > 0:
        return f"{day_offset}天后"
    return f"{abs(day_offset)}天前"


__all__ = [
    "RELATIVE_DAY_KEYWORDS",
    "CJK_NUMERALS",
    "DateResolution",
    "RelativeDateResolver",
    "describe_offset",
    "format_timestamp",
    "parse_timestamp",
]
