# ruff: noqa: I001
"""CLI for the ``smart_accounting`` package.

This module exposes callable command handlers (e.g., ``cmd_record``) and a
Typer-based console interface. The root callback loads a local ``.env`` with
``python-dotenv`` (without overriding the environment), configures logging and
resolves :class:`~smart_accounting.config.Settings`; handlers build the intake
service over the selected storage and print results to stdout.

Errors are written to stderr and handlers return a non-zero exit status.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .config import Settings
from .errors import BatchItemError, IntakeError
from .intake import DEFAULT_HOURS_BACK, TransactionIntake
from .logging_setup import configure_logging
from .models import DuplicateCheckResult, TransactionInput, TransactionRecord


# ---- Small module-level helpers used by CLI commands -------------------------


def _error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _build_intake(settings: Settings) -> TransactionIntake:
    from .storage import build_storage

    return TransactionIntake(build_storage(settings))


def _format_record(record: TransactionRecord) -> str:
    """``<id>\\t<timestamp>\\t<type>\\t<amount>\\t<category>\\t<description>``."""

    return "\t".join(
        (
            record.id,
            record.occurred_at,
            record.kind.value,
            f"{record.amount:.2f}",
            record.category,
            record.description,
        )
    )


def _print_intake_error(exc: IntakeError) -> int:
    if isinstance(exc, BatchItemError):
        for index, reason in exc.failures:
            print(f"Error: item {index}: {reason}", file=sys.stderr)
        return 1
    return _error(str(exc))


def _load_batch_file(json_path: Path) -> list[TransactionInput]:
    """Read a JSON array of transaction objects (wire keys) from ``json_path``.

    Items are converted without validation; the intake service reports the
    first invalid item by index.
    """

    with open(json_path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError("batch file must contain a JSON array of transactions")

    items: list[TransactionInput] = []
    for pos, obj in enumerate(data):
        if not isinstance(obj, dict):
            raise ValueError(f"batch item {pos} must be a JSON object")
        items.append(
            TransactionInput(
                kind=obj.get("type"),
                amount=obj.get("amount"),
                description=obj.get("description"),
                category=obj.get("category"),
                tags=obj.get("tags"),
            )
        )
    return items


def _print_duplicate_result(result: DuplicateCheckResult) -> None:
    print(f"{result.suggestion_level.value}\t{result.suggestion}")
    for match in result.matches:
        print(f"{match.similarity:.2f}\t{_format_record(match.record)}")


# ---- Command handlers ---------------------------------------------------------


def cmd_record(
    settings: Settings,
    kind: str,
    amount: float,
    description: str,
    *,
    category: str | None = None,
    tags: Sequence[str] | None = None,
) -> int:
    """Record one transaction and print it as a tab-separated line.

    Parameters
    ----------
    settings:
        Resolved runtime settings (selects the storage adapter).
    kind:
        ``income`` or ``expense``.
    amount:
        Positive amount.
    description:
        Free text; relative-day expressions ("昨天") adjust the timestamp.
    category:
        Optional explicit category; inferred from ``description`` when omitted.
    tags:
        Optional tags (``reimbursement`` marks a reimbursable expense).
    """

    try:
        intake = _build_intake(settings)
        record = intake.record(
            TransactionInput(
                kind=kind,
                amount=amount,
                description=description,
                category=category,
                tags=list(tags) if tags else None,
            )
        )
    except IntakeError as e:
        return _print_intake_error(e)
    except ValueError as e:
        return _error(str(e))

    print(_format_record(record))
    return 0


def cmd_record_batch(settings: Settings, json_path: str) -> int:
    """Record every transaction in a JSON file with a single storage write."""

    try:
        items = _load_batch_file(Path(json_path))
    except FileNotFoundError:
        return _error(f"File not found: {json_path}")
    except json.JSONDecodeError as e:
        return _error(f"Failed to parse JSON: {e}")
    except ValueError as e:
        return _error(str(e))

    try:
        records = _build_intake(settings).record_batch(items)
    except IntakeError as e:
        return _print_intake_error(e)
    except ValueError as e:
        return _error(str(e))

    for record in records:
        print(_format_record(record))
    return 0


def cmd_check_duplicate(
    settings: Settings,
    kind: str,
    amount: float,
    description: str,
    *,
    category: str | None = None,
    hours_back: float = DEFAULT_HOURS_BACK,
    today_only: bool = False,
) -> int:
    """Print the duplicate-check verdict followed by one line per match."""

    candidate = TransactionInput(kind=kind, amount=amount, description=description, category=category)
    try:
        result = _build_intake(settings).check_duplicate(
            candidate, hours_back, today_only=today_only
        )
    except IntakeError as e:
        return _print_intake_error(e)
    except ValueError as e:
        return _error(str(e))

    _print_duplicate_result(result)
    return 0


def cmd_list(
    settings: Settings,
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    page: int = 1,
    limit: int = 100,
    today: bool = False,
) -> int:
    """List transactions newest first, optionally restricted to a date range."""

    if end_date and not start_date:
        return _error("--end-date requires --start-date")
    try:
        intake = _build_intake(settings)
        if today:
            records = intake.transactions_today()
        elif start_date:
            records = intake.transactions_between(start_date, end_date, page=page, limit=limit)
        else:
            records = intake.list_transactions()
    except IntakeError as e:
        return _print_intake_error(e)
    except ValueError as e:
        return _error(str(e))

    for record in records:
        print(_format_record(record))
    return 0


def cmd_summary(settings: Settings) -> int:
    try:
        s = _build_intake(settings).summary()
    except IntakeError as e:
        return _print_intake_error(e)
    except ValueError as e:
        return _error(str(e))

    print(f"total_income\t{s.total_income:.2f}")
    print(f"total_expense\t{s.total_expense:.2f}")
    print(f"balance\t{s.balance:.2f}")
    print(f"transaction_count\t{s.transaction_count}")
    return 0


def cmd_init_db(settings: Settings) -> int:
    """Create the ledger table for ``sql`` storage (Alembic is preferred in production)."""

    if settings.storage != "sql":
        return _error("init-db requires --storage sql")
    try:
        from .persistence import SqlStorage

        SqlStorage(database_url=settings.database_url).create_schema()
    except IntakeError as e:
        return _print_intake_error(e)
    except ValueError as e:
        return _error(str(e))

    print("ledger schema ready")
    return 0


def cmd_serve_mcp(settings: Settings, *, transport: str | None = None) -> int:
    """Run the MCP tool server until interrupted."""

    from .mcp_server import build_server

    if transport is not None and transport not in ("stdio", "sse", "streamable-http"):
        return _error(f"unknown MCP transport: {transport!r}")
    try:
        intake = _build_intake(settings)
    except ValueError as e:
        return _error(str(e))

    server = build_server(intake, host=settings.mcp_host, port=settings.mcp_port)
    server.run(transport=transport or settings.mcp_transport)  # type: ignore[arg-type]
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Record income and expenses from natural-language descriptions, check for "
        "duplicates and browse the ledger. Loads settings from a local .env first."
    ),
)


def _settings(ctx: typer.Context) -> Settings:
    obj = ctx.obj
    if isinstance(obj, Settings):
        return obj
    return Settings.from_env()


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


# Module-level parameter objects (ruff B008: no calls in parameter defaults).
KIND_ARGUMENT = typer.Argument(help="Transaction type: income or expense.")
AMOUNT_ARGUMENT = typer.Argument(help="Positive amount.")
DESCRIPTION_ARGUMENT = typer.Argument(help="Free-text description, stored verbatim.")
CATEGORY_OPTION: OptionInfo = typer.Option(
    "--category", help="Explicit category (inferred from the description when omitted)."
)
TAG_OPTION: OptionInfo = typer.Option(
    "--tag", help="Tag to attach; repeat for several (e.g. --tag reimbursement)."
)
JSON_PATH_OPTION: OptionInfo = typer.Option(
    ...,
    "--json-path",
    help="Path to a JSON array of transactions (type, amount, description, category, tags).",
    dir_okay=False,
    file_okay=True,
    exists=False,  # allow non-existent here; the handler reports a clear error
)


@app.command("record")
def record_cmd(
    ctx: typer.Context,
    kind: Annotated[str, KIND_ARGUMENT],
    amount: Annotated[float, AMOUNT_ARGUMENT],
    description: Annotated[str, DESCRIPTION_ARGUMENT],
    category: Annotated[str | None, CATEGORY_OPTION] = None,
    tag: Annotated[list[str] | None, TAG_OPTION] = None,
) -> None:
    """Record one transaction."""

    _exit(cmd_record(_settings(ctx), kind, amount, description, category=category, tags=tag))


@app.command("record-batch")
def record_batch_cmd(
    ctx: typer.Context,
    json_path: Annotated[Path, JSON_PATH_OPTION],
) -> None:
    """Record all transactions from a JSON file, all or nothing."""

    _exit(cmd_record_batch(_settings(ctx), str(json_path)))


@app.command("check-duplicate")
def check_duplicate_cmd(
    ctx: typer.Context,
    kind: Annotated[str, KIND_ARGUMENT],
    amount: Annotated[float, AMOUNT_ARGUMENT],
    description: Annotated[str, DESCRIPTION_ARGUMENT],
    category: Annotated[str | None, CATEGORY_OPTION] = None,
    hours_back: float = typer.Option(
        DEFAULT_HOURS_BACK, "--hours-back", help="Lookback window in hours."
    ),
    today: bool = typer.Option(
        False, "--today", help="Compare with today's transactions only (ignores --hours-back)."
    ),
) -> None:
    """Check whether a transaction looks like one recorded recently."""

    _exit(
        cmd_check_duplicate(
            _settings(ctx),
            kind,
            amount,
            description,
            category=category,
            hours_back=hours_back,
            today_only=today,
        )
    )


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    start_date: str | None = typer.Option(None, help="First day (YYYY-MM-DD)."),
    end_date: str | None = typer.Option(None, help="Last day (YYYY-MM-DD); defaults to --start-date."),
    page: int = typer.Option(1, help="Page number for date-range listings (1-based)."),
    limit: int = typer.Option(100, help="Page size for date-range listings."),
    today: bool = typer.Option(False, "--today", help="Only today's transactions."),
) -> None:
    """List transactions, newest first."""

    _exit(
        cmd_list(
            _settings(ctx),
            start_date=start_date,
            end_date=end_date,
            page=page,
            limit=limit,
            today=today,
        )
    )


@app.command("summary")
def summary_cmd(ctx: typer.Context) -> None:
    """Print total income, total expense, balance and record count."""

    _exit(cmd_summary(_settings(ctx)))


@app.command("init-db")
def init_db_cmd(ctx: typer.Context) -> None:
    """Create the ledger table directly from ORM metadata (sql storage only)."""

    _exit(cmd_init_db(_settings(ctx)))


@app.command("serve-mcp")
def serve_mcp_cmd(
    ctx: typer.Context,
    transport: str | None = typer.Option(
        None, help="MCP transport: stdio, sse or streamable-http (falls back to env)."
    ),
) -> None:
    """Serve the bookkeeping tools over MCP."""

    _exit(cmd_serve_mcp(_settings(ctx), transport=transport))


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    storage: str | None = typer.Option(
        None, help="Storage backend: file, sql or memory (falls back to SMART_ACCOUNTING_STORAGE)."
    ),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL for sql storage (falls back to env var)."
    ),
    db_path: str | None = typer.Option(
        None, help="JSON file for file storage (falls back to SMART_ACCOUNTING_DB_PATH)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables), configures logging and resolves the
    settings shared by every subcommand.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()

    try:
        settings = Settings.from_env().with_overrides(
            storage=storage, database_url=database_url, db_path=db_path
        )
    except ValueError as e:
        _exit(_error(str(e)))
    ctx.obj = settings

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
