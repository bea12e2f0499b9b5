"""Tests for goal progress and goal creation rules."""
from datetime import date
from decimal import Decimal

import pytest

from portfolio_engine.core.db import GoalStore, init_db
from portfolio_engine.core.errors import DuplicateGoalError, ValidationError
from portfolio_engine.core.goals import (
    compute_progress,
    create_goal,
    progress_for_goals,
    progress_frame,
    update_goal,
)
from portfolio_engine.core.models import Category, Goal, Position

TODAY = date(2024, 6, 15)


def _pos(category: Category, invested: str) -> Position:
    return Position(
        category=category,
        name=category.label,
        quantity=Decimal("1"),
        cost_basis_per_unit=Decimal(invested),
        current_price_per_unit=Decimal(invested),
        acquired_on=date(2024, 1, 1),
    )


@pytest.fixture
def goal_store(tmp_path):
    conn = init_db(str(tmp_path / "goals.duckdb"))
    yield GoalStore(conn)
    conn.close()


def test_partial_progress_with_future_date() -> None:
    goal = Goal(category=Category.STOCKS, target_amount=Decimal("1000"), target_date=date(2024, 6, 25))
    progress = compute_progress(goal, Decimal("250"), TODAY)
    assert progress.progress_percent == Decimal("25")
    assert not progress.is_complete
    assert progress.days_remaining == 10
    assert progress.is_overdue is False


def test_complete_is_inclusive() -> None:
    goal = Goal(category=Category.STOCKS, target_amount=Decimal("1000"))
    assert compute_progress(goal, Decimal("1000"), TODAY).is_complete
    assert not compute_progress(goal, Decimal("999.99"), TODAY).is_complete


def test_complete_goal_is_never_overdue() -> None:
    goal = Goal(category=Category.BONDS, target_amount=Decimal("100"), target_date=date(2024, 1, 1))
    progress = compute_progress(goal, Decimal("150"), TODAY)
    assert progress.is_complete
    assert progress.is_overdue is False
    assert progress.days_remaining is None


def test_missed_deadline_is_overdue_with_negative_days() -> None:
    goal = Goal(category=Category.BONDS, target_amount=Decimal("100"), target_date=date(2024, 6, 10))
    progress = compute_progress(goal, Decimal("50"), TODAY)
    assert progress.is_overdue is True
    assert progress.days_remaining == -5


def test_due_today_is_not_overdue() -> None:
    goal = Goal(category=Category.BONDS, target_amount=Decimal("100"), target_date=TODAY)
    progress = compute_progress(goal, Decimal("50"), TODAY)
    assert progress.is_overdue is False
    assert progress.days_remaining == 0


def test_undated_goal_leaves_schedule_fields_unset() -> None:
    goal = Goal(category=Category.GOLD, target_amount=Decimal("100"))
    progress = compute_progress(goal, Decimal("10"), TODAY)
    assert progress.days_remaining is None
    assert progress.is_overdue is None


def test_progress_is_not_clamped_but_display_is() -> None:
    goal = Goal(category=Category.GOLD, target_amount=Decimal("100"))
    progress = compute_progress(goal, Decimal("250"), TODAY)
    assert progress.progress_percent == Decimal("250")
    assert progress.display_percent == Decimal("100")


def test_progress_for_goals_uses_unfolded_totals() -> None:
    positions = [
        _pos(Category.STOCKS, "10000"),
        _pos(Category.VACATION, "50"),
        _pos(Category.VACATION, "25"),
    ]
    goals = [
        Goal(category=Category.VACATION, target_amount=Decimal("100"), nickname="Trip"),
        Goal(category=Category.STOCKS, target_amount=Decimal("20000")),
        Goal(category=Category.CRYPTO, target_amount=Decimal("500")),
    ]
    progress = progress_for_goals(goals, positions, TODAY)

    assert [p.category for p in progress] == [Category.VACATION, Category.STOCKS, Category.CRYPTO]
    assert progress[0].current_amount == Decimal("75")
    assert progress[0].nickname == "Trip"
    assert progress[2].current_amount == 0


def test_progress_frame_status() -> None:
    goals = [
        Goal(category=Category.STOCKS, target_amount=Decimal("100")),
        Goal(category=Category.BONDS, target_amount=Decimal("100"), target_date=date(2024, 1, 1)),
    ]
    frame = progress_frame(progress_for_goals(goals, [_pos(Category.STOCKS, "150")], TODAY))
    assert list(frame["Status"]) == ["Complete", "Overdue"]
    assert frame.iloc[0]["Progress (%)"] == Decimal("100.00")


def test_create_goal_rejects_non_positive_target(goal_store) -> None:
    with pytest.raises(ValidationError):
        create_goal(goal_store, 1, Goal(category=Category.STOCKS, target_amount=Decimal("0")))
    with pytest.raises(ValidationError):
        create_goal(goal_store, 1, Goal(category=Category.STOCKS, target_amount=Decimal("-5")))
    assert goal_store.list(1) == []


def test_create_goal_rejects_duplicate_category(goal_store) -> None:
    create_goal(goal_store, 1, Goal(category=Category.STOCKS, target_amount=Decimal("100")))
    with pytest.raises(DuplicateGoalError) as exc_info:
        create_goal(goal_store, 1, Goal(category=Category.STOCKS, target_amount=Decimal("200")))
    assert exc_info.value.category == Category.STOCKS
    assert "Stocks" in str(exc_info.value)

    # Another user may track the same category
    create_goal(goal_store, 2, Goal(category=Category.STOCKS, target_amount=Decimal("200")))
    assert len(goal_store.list(1)) == 1


def test_update_goal_checks_category_conflict(goal_store) -> None:
    create_goal(goal_store, 1, Goal(category=Category.STOCKS, target_amount=Decimal("100")))
    bonds_id = create_goal(goal_store, 1, Goal(category=Category.BONDS, target_amount=Decimal("100")))

    with pytest.raises(DuplicateGoalError):
        update_goal(goal_store, 1, bonds_id, category=Category.STOCKS)
    with pytest.raises(ValidationError):
        update_goal(goal_store, 1, bonds_id, target_amount=Decimal("0"))

    update_goal(goal_store, 1, bonds_id, target_amount=Decimal("300"), nickname="Ladder")
    updated = goal_store.get(1, bonds_id)
    assert updated.target_amount == Decimal("300")
    assert updated.nickname == "Ladder"
