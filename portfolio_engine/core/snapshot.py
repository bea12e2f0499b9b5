"""Portfolio summary and point-in-time net worth snapshots."""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable

import duckdb

from portfolio_engine.core.aggregation import aggregate_by_category, grand_total
from portfolio_engine.core.db import AccountStore, PositionStore, SnapshotStore, get_setting
from portfolio_engine.core.models import Account, NetWorthSnapshot, PortfolioSummary, Position
from portfolio_engine.core.money import ZERO, current_value, invested_amount, percentage

LOGGER = logging.getLogger(__name__)


@dataclass
class SnapshotOutcome:
    success: bool
    error: str | None = None
    snapshot: NetWorthSnapshot | None = None


def summarize_portfolio(positions: Iterable[Position], accounts: Iterable[Account] = ()) -> PortfolioSummary:
    """
    Calculate portfolio-wide totals.

    Net worth = account balances + current value of all positions.
    """
    positions = tuple(positions)
    total_invested = sum((invested_amount(p) for p in positions), ZERO)
    total_value = sum((current_value(p) for p in positions), ZERO)
    total_gain = total_value - total_invested
    account_balance = sum((a.balance or ZERO for a in accounts), ZERO)

    return PortfolioSummary(
        total_invested=total_invested,
        current_value=total_value,
        total_gain=total_gain,
        gain_percent=percentage(total_gain, total_invested),
        account_balance=account_balance,
        net_worth=account_balance + total_value,
        position_count=len(positions),
    )


def record_snapshot_for_user(
    conn: duckdb.DuckDBPyConnection,
    user_id: int,
    as_of: date,
) -> SnapshotOutcome:
    """
    Persist a net worth snapshot for one user.

    Called by an external scheduler. Failures are logged and returned,
    never raised, so a loop over users can carry on.
    """
    try:
        positions = PositionStore(conn).list(user_id)
        accounts = AccountStore(conn).list(user_id)

        buckets = aggregate_by_category(positions)
        summary = summarize_portfolio(positions, accounts)
        snapshot = NetWorthSnapshot(
            id=None,
            user_id=user_id,
            snapshot_date=as_of,
            total_invested=grand_total(buckets),
            current_value=summary.current_value,
            total_gain=summary.total_gain,
            gain_percent=summary.gain_percent,
            account_balance=summary.account_balance,
            net_worth=summary.net_worth,
            currency=get_setting(conn, "base_currency") or "USD",
        )
        snapshot.id = SnapshotStore(conn).save(snapshot)
    except Exception as e:
        LOGGER.exception("Snapshot for user %s on %s failed", user_id, as_of)
        return SnapshotOutcome(success=False, error=str(e))

    LOGGER.info("Recorded snapshot %s for user %s: net worth %s", snapshot.id, user_id, snapshot.net_worth)
    return SnapshotOutcome(success=True, snapshot=snapshot)


def record_snapshots(
    conn: duckdb.DuckDBPyConnection,
    user_ids: Iterable[int],
    as_of: date,
) -> Dict[int, SnapshotOutcome]:
    """Snapshot each user independently; returns outcomes keyed by user id."""
    outcomes = {}
    for user_id in user_ids:
        outcomes[user_id] = record_snapshot_for_user(conn, user_id, as_of)

    failed = [uid for uid, outcome in outcomes.items() if not outcome.success]
    if failed:
        LOGGER.warning("Snapshots failed for %d of %d users: %s", len(failed), len(outcomes), failed)
    return outcomes
