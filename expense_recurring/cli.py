"""
Command-line trigger for the recurring expense engine.

Usage:
    recurring-expenses [--config PATH] [--db-url URL] [--today YYYY-MM-DD] <command>

Commands:
    generate [--include-overdue]   Run generation for today.
    pending [--include-overdue]    List definitions due today.
    history [--limit N]            Show the most recent ledger entries.
    stats [--date YYYY-MM-DD]      Ledger counts for one generation date.

Examples:
    # Nightly run from cron
    recurring-expenses --config /etc/recurring.yaml generate

    # Catch up after downtime, pretending it is Oct 1
    recurring-expenses --today 2026-10-01 generate --include-overdue

Environment:
    RECURRING_CONFIG         Settings file used when --config is absent.
    RECURRING_DATABASE_URL   Overrides database_url from the settings file.
"""

from __future__ import annotations

import argparse
import sys
from datetime import date

from expense_kernel.config import EngineSettings, load_settings
from expense_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from expense_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from expense_kernel.exceptions import GenerationRunAbortedError, RecurringKernelError
from expense_kernel.logging_config import configure_logging
from expense_recurring.engine import RecurringExpenseEngine


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recurring-expenses",
        description="Generate ledger transactions from recurring expense definitions.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", default=None, help="YAML settings file.")
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL (overrides settings and environment).",
    )
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Run as if today were this date (YYYY-MM-DD).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Run generation for today.")
    gen.add_argument(
        "--include-overdue",
        action="store_true",
        default=None,
        help="Also generate definitions whose cursor is in the past.",
    )

    pending = sub.add_parser("pending", help="List definitions due today.")
    pending.add_argument("--include-overdue", action="store_true")

    history = sub.add_parser("history", help="Show recent ledger entries.")
    history.add_argument("--limit", type=int, default=None)

    stats = sub.add_parser("stats", help="Ledger counts for one generation date.")
    stats.add_argument("--date", type=date.fromisoformat, default=None)

    return parser


def _clock_for(today: date | None) -> Clock:
    if today is None:
        return SystemClock()
    clock = DeterministicClock()
    clock.set_date(today)
    return clock


def _cmd_generate(engine: RecurringExpenseEngine, args: argparse.Namespace) -> int:
    result = engine.run(include_overdue=args.include_overdue)
    for outcome in result.outcomes:
        line = f"{outcome.status.value:<8} {outcome.generation_date} {outcome.name}"
        if outcome.reason:
            line += f" ({outcome.reason})"
        print(line)
    print(
        f"generated={result.generated} failed={result.failed} "
        f"skipped={result.skipped}"
    )
    return 0


def _cmd_pending(engine: RecurringExpenseEngine, args: argparse.Namespace) -> int:
    due = engine.definitions.list_pending(
        engine.clock.today(), include_overdue=args.include_overdue,
    )
    for definition in due:
        print(
            f"{definition.next_generate} {definition.frequency.value:<8} "
            f"{definition.amount:>12} {definition.name}"
        )
    print(f"{len(due)} definition(s) due")
    return 0


def _cmd_history(engine: RecurringExpenseEngine, args: argparse.Namespace) -> int:
    for entry in engine.ledger.history(args.limit):
        line = (
            f"{entry.generation_date} {entry.status.value:<8} "
            f"{entry.recurring_expense_id}"
        )
        if entry.reason:
            line += f" ({entry.reason})"
        print(line)
    return 0


def _cmd_stats(engine: RecurringExpenseEngine, args: argparse.Namespace) -> int:
    stats = engine.ledger.stats_for(args.date or engine.clock.today())
    print(
        f"{stats.date} total={stats.total} success={stats.success} "
        f"failed={stats.failed} skipped={stats.skipped}"
    )
    return 0


_COMMANDS = {
    "generate": _cmd_generate,
    "pending": _cmd_pending,
    "history": _cmd_history,
    "stats": _cmd_stats,
}


def main(argv: list[str] | None = None, settings: EngineSettings | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        settings = settings or load_settings(args.config)
    except (OSError, RecurringKernelError) as exc:
        print(f"ERROR: Failed to load settings: {exc}", file=sys.stderr)
        return 1

    configure_logging(level=settings.log_level)
    engine = init_engine_from_url(args.db_url or settings.database_url)
    create_tables(engine)
    clock = _clock_for(args.today)

    try:
        with session_scope() as session:
            recurring = RecurringExpenseEngine.from_session(
                session, settings=settings, clock=clock,
            )
            return _COMMANDS[args.command](recurring, args)
    except GenerationRunAbortedError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
