"""Category breakdown with long-tail folding."""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List

import pandas as pd

from portfolio_engine.core.models import Category, CategoryBucket, Position
from portfolio_engine.core.money import ZERO, invested_amount, percentage, quantize_money

LOGGER = logging.getLogger(__name__)

# Buckets below this share of the grand total are folded into "Others".
LONG_TAIL_THRESHOLD = Decimal("2.0")
OTHERS_LABEL = "Others"


@dataclass
class CategoryTotal:
    """Running totals for one category before long-tail folding."""
    category: Category
    total_invested: Decimal = ZERO
    members: List[Position] = field(default_factory=list)

    @property
    def position_count(self) -> int:
        return len(self.members)


def category_totals(positions: Iterable[Position]) -> Dict[Category, CategoryTotal]:
    """
    Group positions by category and sum their invested amounts.

    Categories appear in order of first occurrence. No threshold is applied,
    so a goal can always find its own category here.
    """
    totals: Dict[Category, CategoryTotal] = {}
    for position in positions:
        entry = totals.get(position.category)
        if entry is None:
            entry = totals[position.category] = CategoryTotal(position.category)
        entry.total_invested += invested_amount(position)
        entry.members.append(position)
    return totals


def _by_contribution(members: Iterable[Position]) -> tuple:
    # sorted() is stable, so equal amounts keep input order
    return tuple(sorted(members, key=invested_amount, reverse=True))


def aggregate_by_category(positions: Iterable[Position]) -> List[CategoryBucket]:
    """
    Build the ranked category breakdown.

    Buckets at or above LONG_TAIL_THRESHOLD percent of the grand total are
    returned largest first (ties by label). Everything smaller is merged into
    a single Others bucket which is always the last element.
    """
    snapshot = tuple(positions)
    totals = category_totals(snapshot)
    grand_total = sum((t.total_invested for t in totals.values()), ZERO)

    major: List[CategoryBucket] = []
    minor: List[CategoryTotal] = []
    for total in totals.values():
        share = percentage(total.total_invested, grand_total)
        if share >= LONG_TAIL_THRESHOLD:
            major.append(CategoryBucket(
                label=total.category.label,
                total_invested=total.total_invested,
                position_count=total.position_count,
                percentage_of_total=share,
                member_positions=_by_contribution(total.members),
                category=total.category,
            ))
        else:
            minor.append(total)

    major.sort(key=lambda b: b.label)
    major.sort(key=lambda b: b.total_invested, reverse=True)

    buckets = list(major)
    if minor:
        others_total = sum((t.total_invested for t in minor), ZERO)
        members = [p for t in minor for p in t.members]
        buckets.append(CategoryBucket(
            label=OTHERS_LABEL,
            total_invested=others_total,
            position_count=sum(t.position_count for t in minor),
            percentage_of_total=percentage(others_total, grand_total),
            member_positions=_by_contribution(members),
            category=None,
            folded_categories=tuple(t.category for t in minor),
        ))

    LOGGER.debug(
        "Aggregated %d positions into %d buckets (%d folded)",
        len(snapshot), len(buckets), len(minor),
    )
    return buckets


def grand_total(buckets: Iterable[CategoryBucket]) -> Decimal:
    return sum((b.total_invested for b in buckets), ZERO)


def breakdown_frame(buckets: List[CategoryBucket]) -> pd.DataFrame:
    """Tabular view of a breakdown for rendering layers."""
    columns = ["Category", "Invested", "Positions", "Share (%)", "Includes"]
    if not buckets:
        return pd.DataFrame(columns=columns)

    data = []
    for bucket in buckets:
        data.append({
            "Category": bucket.label,
            "Invested": quantize_money(bucket.total_invested),
            "Positions": bucket.position_count,
            "Share (%)": quantize_money(bucket.percentage_of_total),
            "Includes": ", ".join(c.label for c in bucket.folded_categories),
        })

    return pd.DataFrame(data, columns=columns)
