"""MCP tool server exposing the intake service to conversational agents.

:func:`build_server` registers the tools on a fresh ``FastMCP`` instance bound
to one :class:`~smart_accounting.intake.TransactionIntake`; nothing is held in
module-level state, so several servers (or tests) can run side by side with
different storage.

Tool handlers are plain functions (``handle_*``) taking the intake service
first; the registered tools are thin wrappers around them. Results are
JSON-serializable dicts with ``success`` and ``message`` keys. Domain errors
(validation, storage) come back as ``success: false`` payloads so the agent
can relay them; anything unexpected propagates to the MCP runtime, which logs
it and reports a tool error.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Annotated, Any, Literal

from mcp.server.fastmcp import FastMCP
from pydantic import Field as PydanticField

from .errors import BatchItemError, IntakeError
from .intake import DEFAULT_HOURS_BACK, TransactionIntake
from .logging_setup import get_logger
from .models import (
    DuplicateCheckResult,
    TransactionInput,
    TransactionKind,
    TransactionPayload,
    TransactionRecord,
)

_logger = get_logger("smart_accounting.mcp_server")

SERVER_NAME = "smart-accounting-mcp"
SERVER_INSTRUCTIONS = (
    "Bookkeeping tools for recording money transactions. Only call them when the "
    "user explicitly wants to record income or spending, never for casual chat."
)

_REIMBURSABLE_TAGS = frozenset({"reimbursement", "可报销"})


# ---- Formatting helpers -----------------------------------------------------


def _kind_label(kind: TransactionKind) -> str:
    return "收入" if kind is TransactionKind.INCOME else "支出"


def _amount_text(amount: float) -> str:
    return f"¥{amount:g}"


def confirmation_line(record: TransactionRecord) -> str:
    """``已记录[可报销]支出：餐饮美食 ¥7`` style confirmation for one record."""

    prefix = "可报销" if _REIMBURSABLE_TAGS.intersection(record.tags) else ""
    return f"{prefix}{_kind_label(record.kind)}：{record.category} {_amount_text(record.amount)}"


def _failure(exc: IntakeError, message: str) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": False, "error": str(exc), "message": message}
    if isinstance(exc, BatchItemError):
        payload["failures"] = [{"index": i, "reason": r} for i, r in exc.failures]
    return payload


def _duplicate_payload(result: DuplicateCheckResult, now: datetime) -> dict[str, Any]:
    similar = []
    for m in result.matches:
        item = m.record.to_dict()
        item.pop("tags", None)
        item["similarity"] = round(m.similarity, 2)
        item["minutes_ago"] = round((now - m.record.occurred_at_dt).total_seconds() / 60)
        similar.append(item)
    return {
        "success": True,
        "hasSimilar": result.has_similar,
        "suggestionLevel": result.suggestion_level.value,
        "suggestion": result.suggestion,
        "similarCount": len(similar),
        "similarTransactions": similar,
    }


# ---- Handlers -----------------------------------------------------------------


def handle_record_transaction(intake: TransactionIntake, payload: TransactionPayload) -> dict[str, Any]:
    try:
        record = intake.record(payload.to_input())
    except IntakeError as exc:
        _logger.warning("recordTransaction failed: %s", exc)
        return _failure(exc, "记账失败，请检查输入信息")
    return {
        "success": True,
        "message": f"已记录{confirmation_line(record)}",
        "transaction": record.to_dict(),
    }


def handle_record_batch(
    intake: TransactionIntake, payloads: Sequence[TransactionPayload]
) -> dict[str, Any]:
    try:
        records = intake.record_batch([p.to_input() for p in payloads])
    except IntakeError as exc:
        _logger.warning("recordTransactionBatch failed: %s", exc)
        return _failure(exc, "批量记账失败，请检查输入信息")

    expense_count = sum(1 for r in records if r.kind is TransactionKind.EXPENSE)
    income_count = len(records) - expense_count
    total = sum(r.amount for r in records)
    summary = f"已批量记录 {len(records)} 笔交易"
    if expense_count:
        summary += f"，支出 {expense_count} 笔"
    if income_count:
        summary += f"，收入 {income_count} 笔"
    summary += f"，总金额 {_amount_text(total)}"
    return {
        "success": True,
        "message": summary,
        "details": [confirmation_line(r) for r in records],
        "transactions": [r.to_dict() for r in records],
    }


def handle_check_duplicate(
    intake: TransactionIntake,
    candidate: TransactionInput,
    hours_back: float = DEFAULT_HOURS_BACK,
    *,
    today_only: bool = False,
) -> dict[str, Any]:
    try:
        result = intake.check_duplicate(candidate, hours_back, today_only=today_only)
    except IntakeError as exc:
        _logger.warning("checkDuplicateTransaction failed: %s", exc)
        return _failure(exc, "检查重复交易失败")
    return _duplicate_payload(result, intake.now())


def _listing(records: Sequence[TransactionRecord], message: str) -> dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "count": len(records),
        "transactions": [r.to_dict() for r in records],
    }


def handle_list_transactions(intake: TransactionIntake) -> dict[str, Any]:
    try:
        records = intake.list_transactions()
    except IntakeError as exc:
        return _failure(exc, "获取交易记录失败")
    return _listing(records, f"共 {len(records)} 笔交易记录")


def handle_today_transactions(intake: TransactionIntake) -> dict[str, Any]:
    try:
        records = intake.transactions_today()
    except IntakeError as exc:
        return _failure(exc, "获取当天交易记录失败")
    return _listing(records, f"今天共 {len(records)} 笔交易记录")


def handle_transactions_by_date_range(
    intake: TransactionIntake,
    start_date: str,
    end_date: str | None = None,
    page: int = 1,
    limit: int = 100,
) -> dict[str, Any]:
    try:
        records = intake.transactions_between(start_date, end_date, page=page, limit=limit)
    except IntakeError as exc:
        return _failure(exc, "获取日期范围交易记录失败")
    out = _listing(records, f"{start_date} ~ {end_date or start_date} 共 {len(records)} 笔交易记录")
    out.update({"page": page, "limit": limit})
    return out


def handle_summary(intake: TransactionIntake) -> dict[str, Any]:
    try:
        s = intake.summary()
    except IntakeError as exc:
        return _failure(exc, "获取交易统计失败")
    return {
        "success": True,
        "summary": {
            "totalIncome": s.total_income,
            "totalExpense": s.total_expense,
            "balance": s.balance,
            "transactionCount": s.transaction_count,
        },
        "message": (
            f"总收入: {_amount_text(s.total_income)}, 总支出: {_amount_text(s.total_expense)}, "
            f"余额: {_amount_text(s.balance)}, 记录数: {s.transaction_count}"
        ),
    }


# ---- Server -------------------------------------------------------------------

KindParam = Annotated[
    Literal["income", "expense"],
    PydanticField(description="交易类型：income（收入）或 expense（支出）"),
]
AmountParam = Annotated[float, PydanticField(description="交易金额，必须为正数")]
DescriptionParam = Annotated[str, PydanticField(description="交易描述，记录用户的原始输入内容")]
CategoryParam = Annotated[
    str | None,
    PydanticField(description="交易分类（可选），如：餐饮美食、交通出行。未提供时自动分类"),
]
TagsParam = Annotated[
    list[str] | None,
    PydanticField(description="交易标签（可选），例如 ['reimbursement'] 表示可报销"),
]


def build_server(
    intake: TransactionIntake,
    *,
    host: str = "127.0.0.1",
    port: int = 8083,
) -> FastMCP:
    """Create a ``FastMCP`` server whose tools operate on ``intake``."""

    server = FastMCP(SERVER_NAME, instructions=SERVER_INSTRUCTIONS, host=host, port=port)

    @server.tool(
        name="recordTransaction",
        description=(
            "记录一笔金钱收支交易。仅当用户明确要记录收入、支出、花费、购买等涉及金钱的交易时使用。"
        ),
    )
    def record_transaction(
        type: KindParam,
        amount: AmountParam,
        description: DescriptionParam,
        category: CategoryParam = None,
        tags: TagsParam = None,
    ) -> dict[str, Any]:
        payload = TransactionPayload(
            type=type, amount=amount, description=description, category=category, tags=tags
        )
        return handle_record_transaction(intake, payload)

    @server.tool(
        name="recordTransactionBatch",
        description=(
            "批量记录多笔金钱收支交易。用户一句话提到多笔交易时使用，"
            "例如：'今天买了早餐7块钱，还买了雪糕2块钱'。"
        ),
    )
    def record_transaction_batch(
        transactions: Annotated[
            list[TransactionPayload],
            PydanticField(description="交易记录数组，至少包含一笔交易", min_length=1),
        ],
    ) -> dict[str, Any]:
        return handle_record_batch(intake, transactions)

    @server.tool(
        name="checkDuplicateTransaction",
        description=(
            "检查是否存在重复或相似的交易记录。在记录交易前使用，"
            "基于金额、描述、类型和时间窗口进行相似度匹配。"
        ),
    )
    def check_duplicate_transaction(
        type: KindParam,
        amount: AmountParam,
        description: DescriptionParam,
        category: CategoryParam = None,
        hoursBack: Annotated[
            float, PydanticField(description="检查时间窗口（小时），默认24小时")
        ] = DEFAULT_HOURS_BACK,
        todayOnly: Annotated[
            bool, PydanticField(description="仅与今天的交易比较（忽略 hoursBack）")
        ] = False,
    ) -> dict[str, Any]:
        candidate = TransactionInput(
            kind=type, amount=amount, description=description, category=category
        )
        return handle_check_duplicate(intake, candidate, hoursBack, today_only=todayOnly)

    @server.tool(name="getAllTransactions", description="获取所有已记录的交易记录，按时间倒序。")
    def get_all_transactions() -> dict[str, Any]:
        return handle_list_transactions(intake)

    @server.tool(name="getTodayTransactions", description="获取今天的交易记录，按时间倒序。")
    def get_today_transactions() -> dict[str, Any]:
        return handle_today_transactions(intake)

    @server.tool(
        name="getTransactionsByDateRange",
        description="按日期范围（YYYY-MM-DD，含首尾）分页获取交易记录。",
    )
    def get_transactions_by_date_range(
        startDate: Annotated[str, PydanticField(description="开始日期，YYYY-MM-DD")],
        endDate: Annotated[
            str | None, PydanticField(description="结束日期（可选），默认等于开始日期")
        ] = None,
        page: Annotated[int, PydanticField(description="页码，从1开始")] = 1,
        limit: Annotated[int, PydanticField(description="每页数量")] = 100,
    ) -> dict[str, Any]:
        return handle_transactions_by_date_range(intake, startDate, endDate, page, limit)

    @server.tool(
        name="getTransactionSummary",
        description="获取财务统计汇总：总收入、总支出、余额和记录数。",
    )
    def get_transaction_summary() -> dict[str, Any]:
        return handle_summary(intake)

    return server


def main() -> None:
    """Console entrypoint: build storage from the environment and serve."""

    from dotenv import load_dotenv

    from .config import Settings
    from .logging_setup import configure_logging
    from .storage import build_storage

    load_dotenv(override=False)
    configure_logging()

    settings = Settings.from_env()
    intake = TransactionIntake(build_storage(settings))
    server = build_server(intake, host=settings.mcp_host, port=settings.mcp_port)
    _logger.info(
        "Starting %s (storage=%s, transport=%s)", SERVER_NAME, settings.storage, settings.mcp_transport
    )
    server.run(transport=settings.mcp_transport)


if __name__ == "__main__":  # pragma: no cover
    main()


__all__ = [
    "SERVER_NAME",
    "build_server",
    "confirmation_line",
    "handle_check_duplicate",
    "handle_list_transactions",
    "handle_record_batch",
    "handle_record_transaction",
    "handle_summary",
    "handle_today_transactions",
    "handle_transactions_by_date_range",
    "main",
]
