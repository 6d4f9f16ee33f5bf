# ruff: noqa: I001
"""CLI for the ``finance_pipeline`` package.

Command handlers (``cmd_*``) are plain functions returning a process exit code;
the Typer app below wires them to the console. Environment variables
(``DATABASE_URL``, ``FP_DATA_DIR``, ``FP_PERIOD_START_DAY``,
``FINANCE_PIPELINE_LOG_LEVEL``) are loaded from a local ``.env`` with
``python-dotenv`` before any command runs. Business logic lives in the
workflow, store and reports modules.
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo, OptionInfo

from .errors import PipelineError
from .logging_setup import configure_logging
from .models import CategoryRule, PeriodStats
from .store import TransactionStore


@dataclass(slots=True)
class _Settings:
    data_dir: Path | None = None
    database_url: str | None = None


# ---- Small module-level helpers used by CLI commands -------------------------


def format_cents(cents: int | float) -> str:
    """Render cents as euros, e.g. ``-123456`` -> ``-€1,234.56``."""

    sign = "-" if cents < 0 else ""
    return f"{sign}€{abs(cents) / 100:,.2f}"


def _open_store(settings: _Settings) -> TransactionStore:
    from .storage import open_store

    store = TransactionStore(
        open_store(database_url=settings.database_url, data_dir=settings.data_dir)
    )
    store.load()
    return store


def _print_stats(stats: PeriodStats) -> None:
    s = stats.summary
    typer.echo(f"Period:        {stats.period.name}")
    if stats.period.start is not None and stats.period.end is not None:
        typer.echo(f"Range:         {stats.period.start} .. {stats.period.end}")
    typer.echo(f"Income:        {format_cents(s.total_income):>14}  ({s.income_count})")
    typer.echo(f"Expenses:      {format_cents(s.total_expenses):>14}  ({s.expense_count})")
    typer.echo(f"Savings:       {format_cents(s.total_savings):>14}  ({s.savings_count})")
    typer.echo(
        f"Investments:   {format_cents(s.total_investments):>14}  ({s.investment_count})"
    )
    typer.echo(f"Transfers:     {format_cents(s.total_transfers):>14}  ({s.transfer_count})")
    typer.echo(f"Net:           {format_cents(s.net_amount):>14}")
    typer.echo(f"Savings rate:  {s.savings_rate:>13.1f}%")
    typer.echo(f"Transactions:  {s.total_transactions:>14}")


def _select_stats(
    store: TransactionStore,
    *,
    period: str | None,
    start: str | None,
    end: str | None,
) -> PeriodStats:
    from .reports import compute_period_stats, parse_period_key, stats_for_period

    if period:
        return stats_for_period(store.transactions, parse_period_key(period))
    start_d = date.fromisoformat(start) if start else None
    end_d = date.fromisoformat(end) if end else None
    return compute_period_stats(store.transactions, start_d, end_d)


# ---- Command handlers ---------------------------------------------------------


def cmd_import(paths: list[Path], *, settings: _Settings) -> int:
    """Import one or more CSV/JSON files into the store."""

    from .workflows.import_flow import import_file

    try:
        store = _open_store(settings)
        for path in paths:
            result = import_file(path, store)
            print(
                f"{path.name}: added={result.added} duplicates={result.duplicates} "
                f"total={result.total} auto_tagged={result.auto_tagged}"
            )
            for tx_id in result.flagged:
                print(f"  flagged: {tx_id}", file=sys.stderr)
    except (PipelineError, OSError, ValueError) as e:
        print(f"Error: import failed: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_report(
    *,
    settings: _Settings,
    period: str | None = None,
    start: str | None = None,
    end: str | None = None,
    all_periods: bool = False,
    by_tag: bool = False,
    as_json: bool = False,
) -> int:
    from .export import dumps_report
    from .reports import period_reports, tag_breakdown

    try:
        store = _open_store(settings)
        if all_periods:
            reports = period_reports(store.transactions)
            if as_json:
                print(dumps_report(reports, include_transactions=False))
                return 0
            for i, stats in enumerate(reports):
                if i:
                    typer.echo("")
                _print_stats(stats)
            return 0
        stats = _select_stats(store, period=period, start=start, end=end)
    except (PipelineError, OSError, ValueError) as e:
        print(f"Error: report failed: {e}", file=sys.stderr)
        return 1

    if by_tag:
        rows = tag_breakdown(stats.transactions)
        if as_json:
            print(json.dumps([r.model_dump(by_alias=True) for r in rows], indent=2))
            return 0
        typer.echo(f"Period:        {stats.period.name}")
        for r in rows:
            typer.echo(f"{r.tag:<20} {format_cents(r.amount):>14}  ({r.count})")
        return 0

    if as_json:
        print(dumps_report(stats, include_transactions=False))
    else:
        _print_stats(stats)
    return 0


def cmd_compare(*, settings: _Settings, period: str | None = None, as_json: bool = False) -> int:
    """Compare a period (default: the latest with data) to the one before it."""

    from .reports import (
        available_periods,
        compare_periods,
        parse_period_key,
        previous_period,
        stats_for_period,
    )

    try:
        store = _open_store(settings)
        if period:
            current = parse_period_key(period)
        else:
            periods = available_periods(store.transactions)
            if not periods:
                print("Error: no dated transactions to compare", file=sys.stderr)
                return 1
            current = periods[0]
        cmp = compare_periods(
            stats_for_period(store.transactions, current),
            stats_for_period(store.transactions, previous_period(current)),
        )
    except (PipelineError, OSError, ValueError) as e:
        print(f"Error: compare failed: {e}", file=sys.stderr)
        return 1

    if as_json:
        print(json.dumps(cmp.model_dump(mode="json", by_alias=True), indent=2))
        return 0
    typer.echo(f"{cmp.current.name}  vs  {cmp.previous.name}")
    for label, m, money in (
        ("Income", cmp.income, True),
        ("Expenses", cmp.expenses, True),
        ("Savings", cmp.savings, True),
        ("Investments", cmp.investments, True),
        ("Transfers", cmp.transfers, True),
        ("Net", cmp.net, True),
        ("Savings rate", cmp.savings_rate, False),
    ):
        if money:
            cur, prev, chg = (format_cents(v) for v in (m.current, m.previous, m.change))
        else:
            cur, prev, chg = f"{m.current:.1f}%", f"{m.previous:.1f}%", f"{m.change:+.1f}pp"
        typer.echo(f"{label:<13} {cur:>14} {prev:>14} {chg:>14} {m.change_percent:>+8.1f}%")
    return 0


def cmd_categorize(*, settings: _Settings) -> int:
    from .workflows.import_flow import categorize_stored

    try:
        store = _open_store(settings)
        n = categorize_stored(store)
    except (PipelineError, OSError, ValueError) as e:
        print(f"Error: categorize failed: {e}", file=sys.stderr)
        return 1
    untagged = sum(1 for tx in store.transactions if not tx.tag)
    print(f"Tagged {n} transaction(s); {untagged} left untagged.")
    return 0


def cmd_tag(tx_id: str, tag: str | None, *, settings: _Settings) -> int:
    try:
        store = _open_store(settings)
        tx = store.update_tag(tx_id, tag)
    except KeyError:
        print(f"Error: unknown transaction id {tx_id!r}", file=sys.stderr)
        return 1
    except (PipelineError, OSError, ValueError) as e:
        print(f"Error: tag failed: {e}", file=sys.stderr)
        return 1
    print(f"{tx.id}\t{tx.tag or ''}")
    return 0


def cmd_review(*, settings: _Settings, limit: int | None = None) -> int:
    from .workflows.import_flow import review_untagged

    try:
        store = _open_store(settings)
        chosen = review_untagged(store, limit=limit)
    except (KeyboardInterrupt, EOFError):
        print("Review aborted; nothing saved.", file=sys.stderr)
        return 1
    except (PipelineError, OSError, ValueError) as e:
        print(f"Error: review failed: {e}", file=sys.stderr)
        return 1
    print(f"Tagged {len(chosen)} transaction(s).")
    return 0


def cmd_export(
    what: str,
    out_dir: Path,
    *,
    settings: _Settings,
    period: str | None = None,
) -> int:
    from .export import export_report, export_transactions

    try:
        store = _open_store(settings)
        if what == "transactions":
            path = export_transactions(store.transactions, out_dir)
        elif what == "report":
            stats = _select_stats(store, period=period, start=None, end=None)
            path = export_report(stats, out_dir)
        else:
            print(f"Error: unknown export {what!r}; use transactions or report", file=sys.stderr)
            return 1
    except (PipelineError, OSError, ValueError) as e:
        print(f"Error: export failed: {e}", file=sys.stderr)
        return 1
    print(str(path))
    return 0


def cmd_clear(*, settings: _Settings, yes: bool = False) -> int:
    if not yes:
        print("Error: refusing to clear without --yes", file=sys.stderr)
        return 1
    try:
        store = _open_store(settings)
        n = len(store)
        store.clear_all()
    except (PipelineError, OSError) as e:
        print(f"Error: clear failed: {e}", file=sys.stderr)
        return 1
    print(f"Cleared {n} transaction(s).")
    return 0


def cmd_rule_add(pattern: str, category: str, *, settings: _Settings) -> int:
    from pydantic import ValidationError

    try:
        store = _open_store(settings)
        rule = CategoryRule(match=pattern, category=category)
        store.set_category_rules([*store.get_category_rules(), rule])
    except ValidationError as e:
        print(f"Error: invalid rule: {e.errors()[0]['msg']}", file=sys.stderr)
        return 1
    except (PipelineError, OSError) as e:
        print(f"Error: saving rule failed: {e}", file=sys.stderr)
        return 1
    return 0


def cmd_rule_list(*, settings: _Settings) -> int:
    try:
        rules = _open_store(settings).get_category_rules()
    except (PipelineError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    for i, rule in enumerate(rules, start=1):
        print(f"{i}\t{rule.match}\t{rule.category}")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank exports (CSV/JSON), tag transactions and report per billing "
        "period. Loads settings from a local .env before running."
    ),
)
rules_app = typer.Typer(no_args_is_help=True, help="Manage category rules.")
app.add_typer(rules_app, name="rules")


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects these when used as defaults below.
FILES_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="CSV or JSON export file(s) to import",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files with a readable error
)
PERIOD_OPTION: OptionInfo = typer.Option(
    None, "--period", help="Billing period as YYYY-MM (the month the period starts in)."
)
JSON_OPTION: OptionInfo = typer.Option(False, "--json", help="Print JSON instead of text.")
OUT_DIR_OPTION: OptionInfo = typer.Option(
    Path("."), "--out-dir", help="Directory to write the export to.", file_okay=False
)
DATA_DIR_OPTION: OptionInfo = typer.Option(
    None, "--data-dir", help="Directory for JSON storage (falls back to FP_DATA_DIR)."
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Use SQL storage at this URL (falls back to DATABASE_URL)."
)


def _settings(ctx: typer.Context) -> _Settings:
    obj = ctx.find_root().obj
    return obj if isinstance(obj, _Settings) else _Settings()


@app.command("import")
def import_cmd(ctx: typer.Context, files: Annotated[list[Path], FILES_ARGUMENT]) -> None:
    """Import files; already-known transactions are skipped."""

    raise typer.Exit(cmd_import(files, settings=_settings(ctx)))


@app.command("report")
def report_cmd(
    ctx: typer.Context,
    *,
    period: str | None = PERIOD_OPTION,
    start: str | None = typer.Option(None, help="Start date (YYYY-MM-DD), inclusive."),
    end: str | None = typer.Option(None, help="End date (YYYY-MM-DD), inclusive."),
    all_periods: bool = typer.Option(False, "--all-periods", help="One report per period."),
    by_tag: bool = typer.Option(False, "--by-tag", help="Totals per tag for the period."),
    as_json: bool = JSON_OPTION,
) -> None:
    """Summarize income, expenses and flows (all time unless narrowed)."""

    raise typer.Exit(
        cmd_report(
            settings=_settings(ctx),
            period=period,
            start=start,
            end=end,
            all_periods=all_periods,
            by_tag=by_tag,
            as_json=as_json,
        )
    )


@app.command("compare")
def compare_cmd(
    ctx: typer.Context,
    *,
    period: str | None = PERIOD_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Compare a billing period with the previous one."""

    raise typer.Exit(cmd_compare(settings=_settings(ctx), period=period, as_json=as_json))


@app.command("categorize")
def categorize_cmd(ctx: typer.Context) -> None:
    """Auto-tag stored transactions that have no tag yet."""

    raise typer.Exit(cmd_categorize(settings=_settings(ctx)))


@app.command("tag")
def tag_cmd(
    ctx: typer.Context,
    tx_id: str = typer.Argument(..., help="Transaction id"),
    tag: str | None = typer.Argument(None, help="Tag to set"),
    *,
    clear: bool = typer.Option(False, "--clear", help="Remove the tag instead."),
) -> None:
    """Set or clear the tag of one transaction."""

    if not clear and not tag:
        print("Error: give a TAG or --clear", file=sys.stderr)
        raise typer.Exit(1)
    raise typer.Exit(cmd_tag(tx_id, None if clear else tag, settings=_settings(ctx)))


@app.command("review")
def review_cmd(
    ctx: typer.Context,
    *,
    limit: int | None = typer.Option(None, min=1, help="Review at most this many."),
) -> None:
    """Interactively tag untagged transactions."""

    raise typer.Exit(cmd_review(settings=_settings(ctx), limit=limit))


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    what: str = typer.Argument(..., help="transactions or report"),
    *,
    out_dir: Path = OUT_DIR_OPTION,
    period: str | None = PERIOD_OPTION,
) -> None:
    """Write a date-stamped JSON export."""

    raise typer.Exit(cmd_export(what, out_dir, settings=_settings(ctx), period=period))


@app.command("clear")
def clear_cmd(
    ctx: typer.Context,
    *,
    yes: bool = typer.Option(False, "--yes", help="Confirm deleting all transactions."),
) -> None:
    """Delete all stored transactions (no undo)."""

    raise typer.Exit(cmd_clear(settings=_settings(ctx), yes=yes))


@rules_app.command("add")
def rule_add_cmd(
    ctx: typer.Context,
    pattern: str = typer.Argument(..., help="Case-insensitive pattern matched on descriptions"),
    category: str = typer.Argument(..., help="Category to assign"),
) -> None:
    """Append a category rule (first match wins)."""

    raise typer.Exit(cmd_rule_add(pattern, category, settings=_settings(ctx)))


@rules_app.command("list")
def rule_list_cmd(ctx: typer.Context) -> None:
    """List category rules in priority order."""

    raise typer.Exit(cmd_rule_list(settings=_settings(ctx)))


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    data_dir: Path | None = DATA_DIR_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
    log_level: str | None = typer.Option(
        None, help="Log level (falls back to FINANCE_PIPELINE_LOG_LEVEL, then INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)
    ctx.obj = _Settings(data_dir=data_dir, database_url=database_url)

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
