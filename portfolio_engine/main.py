"""Command-line entry point for the portfolio engine."""
import argparse
import logging
import sys
from datetime import date
from pathlib import Path

from portfolio_engine.core.aggregation import aggregate_by_category, breakdown_frame
from portfolio_engine.core.dates import parse_canonical_date
from portfolio_engine.core.db import AccountStore, GoalStore, PositionStore, get_setting, init_db
from portfolio_engine.core.goals import progress_for_goals, progress_frame
from portfolio_engine.core.snapshot import record_snapshot_for_user, summarize_portfolio
from portfolio_engine.importers.positions_csv import import_positions_csv

# Errors shown after an import; the full list stays in the result.
MAX_ERRORS_SHOWN = 10


def cmd_import(conn, args) -> int:
    text = Path(args.csv_file).read_text(encoding="utf-8", errors="replace")
    accounts = AccountStore(conn).list(args.user)
    result = import_positions_csv(text, args.user, PositionStore(conn), accounts)

    print(f"✓ Imported {result.imported_count} positions, skipped {result.skipped_count}")
    for error in result.errors[:MAX_ERRORS_SHOWN]:
        where = f"Row {error.row}" if error.row else "File"
        print(f"  ✗ {where}: {error.error}")
    if len(result.errors) > MAX_ERRORS_SHOWN:
        print(f"  ... and {len(result.errors) - MAX_ERRORS_SHOWN} more")
    return 0 if result.success else 1


def cmd_breakdown(conn, args) -> int:
    positions = PositionStore(conn).list(args.user)
    summary = summarize_portfolio(positions, AccountStore(conn).list(args.user))
    currency = get_setting(conn, "base_currency")

    print(f"Net worth: {summary.net_worth:,.2f} {currency}")
    print(f"Invested: {summary.total_invested:,.2f} {currency}")
    print(f"Gain: {summary.total_gain:,.2f} {currency} ({summary.gain_percent:.2f}%)\n")
    print(breakdown_frame(aggregate_by_category(positions)).to_string(index=False))
    return 0


def cmd_progress(conn, args) -> int:
    today = parse_canonical_date(args.today) if args.today else date.today()
    goals = GoalStore(conn).list(args.user)
    positions = PositionStore(conn).list(args.user)

    if not goals:
        print("No goals found.")
        return 0
    print(progress_frame(progress_for_goals(goals, positions, today)).to_string(index=False))
    return 0


def cmd_snapshot(conn, args) -> int:
    as_of = parse_canonical_date(args.date) if args.date else date.today()
    outcome = record_snapshot_for_user(conn, args.user, as_of)
    if not outcome.success:
        print(f"✗ Snapshot failed: {outcome.error}")
        return 1
    print(f"✓ Recorded net worth {outcome.snapshot.net_worth:,.2f} for {as_of}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="portfolio-engine")
    parser.add_argument("--db", help="DuckDB file (default: data/portfolio.duckdb)")
    parser.add_argument("--user", type=int, default=1, help="User id")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import", help="Bulk import positions from a CSV file")
    p.add_argument("csv_file")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("breakdown", help="Show the category breakdown")
    p.set_defaults(func=cmd_breakdown)

    p = sub.add_parser("progress", help="Show goal progress")
    p.add_argument("--today", help="Evaluate as of YYYY-MM-DD")
    p.set_defaults(func=cmd_progress)

    p = sub.add_parser("snapshot", help="Record a net worth snapshot")
    p.add_argument("--date", help="Snapshot date YYYY-MM-DD (default: today)")
    p.set_defaults(func=cmd_snapshot)

    return parser


def main(argv=None) -> int:
    """Initialize the database and run one command."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    conn = init_db(args.db)
    try:
        return args.func(conn, args)
    finally:
        conn.close()


if __name__ == "__main__":
    sys.exit(main())
