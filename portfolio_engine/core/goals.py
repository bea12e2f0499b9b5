"""Per-category goal tracking."""
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List

import pandas as pd

from portfolio_engine.core.aggregation import category_totals
from portfolio_engine.core.errors import DuplicateGoalError, ValidationError
from portfolio_engine.core.models import Goal, GoalProgress, Position, ValidationIssue
from portfolio_engine.core.money import ZERO, percentage, quantize_money

LOGGER = logging.getLogger(__name__)


def compute_progress(goal: Goal, current_amount: Decimal, today: date | None = None) -> GoalProgress:
    """
    Compute completion state for one goal.

    Assumes goal.target_amount > 0 (enforced when the goal is created).
    days_remaining and is_overdue stay None when the goal has no target date,
    so "undated" can't be confused with "on time".
    """
    today = today or date.today()
    is_complete = current_amount >= goal.target_amount

    days_remaining = None
    is_overdue = None
    if goal.target_date is not None:
        is_overdue = goal.target_date < today and not is_complete
        if not is_complete:
            days_remaining = (goal.target_date - today).days

    return GoalProgress(
        category=goal.category,
        target_amount=goal.target_amount,
        current_amount=current_amount,
        progress_percent=percentage(current_amount, goal.target_amount),
        is_complete=is_complete,
        days_remaining=days_remaining,
        is_overdue=is_overdue,
        target_date=goal.target_date,
        nickname=goal.nickname,
    )


def progress_for_goals(
    goals: Iterable[Goal],
    positions: Iterable[Position],
    today: date | None = None,
) -> List[GoalProgress]:
    """
    Progress for every goal, highest percentage first.

    Current amounts come from the unfolded category totals, so a goal tracks
    its category even when that category is in the long tail.
    """
    totals = category_totals(tuple(positions))
    progress = []
    for goal in goals:
        total = totals.get(goal.category)
        current = total.total_invested if total else ZERO
        progress.append(compute_progress(goal, current, today))

    progress.sort(key=lambda p: p.category.label)
    progress.sort(key=lambda p: p.progress_percent, reverse=True)
    return progress


def progress_frame(progress: List[GoalProgress]) -> pd.DataFrame:
    """Tabular view of goal progress for rendering layers."""
    columns = ["Category", "Nickname", "Target", "Current", "Progress (%)", "Days Left", "Status"]
    if not progress:
        return pd.DataFrame(columns=columns)

    data = []
    for item in progress:
        if item.is_complete:
            status = "Complete"
        elif item.is_overdue:
            status = "Overdue"
        else:
            status = "In progress"
        data.append({
            "Category": item.category.label,
            "Nickname": item.nickname or "",
            "Target": quantize_money(item.target_amount),
            "Current": quantize_money(item.current_amount),
            "Progress (%)": quantize_money(item.display_percent),
            "Days Left": item.days_remaining,
            "Status": status,
        })

    return pd.DataFrame(data, columns=columns)


def _check_target_amount(target_amount: Decimal) -> None:
    if target_amount is None or target_amount <= 0:
        raise ValidationError([
            ValidationIssue(
                field="target_amount",
                code="invalid_target_amount",
                message=f"Target amount must be greater than zero (got {target_amount}).",
            )
        ])


def create_goal(store, user_id: int, goal: Goal) -> int:
    """
    Validate and store a new goal.

    Raises:
        ValidationError: target amount is not positive
        DuplicateGoalError: the user already has a goal for this category
    """
    _check_target_amount(goal.target_amount)
    if store.get_by_category(user_id, goal.category) is not None:
        raise DuplicateGoalError(goal.category)

    goal_id = store.create(user_id, goal)
    LOGGER.info("Created %s goal %s for user %s", goal.category.value, goal_id, user_id)
    return goal_id


def update_goal(store, user_id: int, goal_id: int, **fields) -> None:
    """
    Update a goal, re-checking the amount and category uniqueness if they change.

    Raises:
        ValidationError: target amount is not positive
        DuplicateGoalError: the new category already has a goal
    """
    if "target_amount" in fields:
        _check_target_amount(fields["target_amount"])
    if "category" in fields:
        existing = store.get_by_category(user_id, fields["category"])
        if existing is not None and existing.id != goal_id:
            raise DuplicateGoalError(fields["category"])

    store.update(user_id, goal_id, **fields)
