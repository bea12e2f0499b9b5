"""Tests for the DuckDB stores."""
from datetime import date
from decimal import Decimal

import duckdb
import pytest

from portfolio_engine.core.db import (
    AccountStore,
    GoalStore,
    PositionStore,
    get_db_path,
    get_setting,
    init_db,
    set_setting,
)
from portfolio_engine.core.models import Account, Category, Goal, Position


@pytest.fixture
def conn(tmp_path):
    conn = init_db(str(tmp_path / "test.duckdb"))
    yield conn
    conn.close()


def _pos(name: str, account_id=None, category=Category.STOCKS) -> Position:
    return Position(
        category=category,
        name=name,
        quantity=Decimal("2"),
        cost_basis_per_unit=Decimal("10.5"),
        current_price_per_unit=Decimal("12"),
        acquired_on=date(2024, 1, 1),
        account_id=account_id,
    )


def test_default_db_path_under_data_dir() -> None:
    assert get_db_path().parts[-2:] == ("data", "portfolio.duckdb")
    assert str(get_db_path("/tmp/x.duckdb")) == "/tmp/x.duckdb"


def test_settings(conn) -> None:
    assert get_setting(conn, "base_currency") == "USD"
    set_setting(conn, "base_currency", "INR")
    assert get_setting(conn, "base_currency") == "INR"
    assert get_setting(conn, "missing") is None


def test_init_is_idempotent(tmp_path) -> None:
    path = str(tmp_path / "twice.duckdb")
    first = init_db(path)
    set_setting(first, "base_currency", "EUR")
    first.close()

    second = init_db(path)
    try:
        assert get_setting(second, "base_currency") == "EUR"
    finally:
        second.close()


def test_position_crud(conn) -> None:
    store = PositionStore(conn)
    position_id = store.create(1, _pos("Acme"))

    stored = store.get(1, position_id)
    assert stored.name == "Acme"
    assert stored.category == Category.STOCKS
    assert stored.cost_basis_per_unit == Decimal("10.5")
    assert store.get(2, position_id) is None

    assert store.update(1, position_id, current_price_per_unit=Decimal("15"), category=Category.BONDS)
    stored = store.get(1, position_id)
    assert stored.current_price_per_unit == Decimal("15")
    assert stored.category == Category.BONDS

    assert not store.update(1, 999, name="nope")
    with pytest.raises(ValueError):
        store.update(1, position_id, user_id=2)

    assert store.delete(1, position_id)
    assert not store.delete(1, position_id)


def test_delete_many_only_touches_owner(conn) -> None:
    store = PositionStore(conn)
    ids = [store.create(1, _pos(f"P{i}")) for i in range(3)]
    other = store.create(2, _pos("Theirs"))

    assert store.delete_many(1, [ids[0], ids[2], other]) == 2
    assert [p.id for p in store.list(1)] == [ids[1]]
    assert store.delete_many(1, []) == 0
    assert len(store.list(2)) == 1


def test_negative_quantity_rejected_by_schema(conn) -> None:
    bad = _pos("Bad")
    bad.quantity = Decimal("-1")
    with pytest.raises(duckdb.ConstraintException):
        PositionStore(conn).create(1, bad)


def test_deleting_account_unlinks_positions(conn) -> None:
    accounts = AccountStore(conn)
    positions = PositionStore(conn)
    account_id = accounts.create(1, Account(id=None, bank_name="HDFC Bank", account_number="1234", balance=Decimal("250")))
    position_id = positions.create(1, _pos("Linked", account_id=account_id))

    assert accounts.list(1)[0].balance == Decimal("250")
    assert accounts.delete(1, account_id)
    assert accounts.list(1) == []

    survivor = positions.get(1, position_id)
    assert survivor is not None
    assert survivor.account_id is None


def test_goal_store_unique_per_category(conn) -> None:
    store = GoalStore(conn)
    goal_id = store.create(1, Goal(category=Category.GOLD, target_amount=Decimal("5000"), nickname="Bars"))
    store.create(2, Goal(category=Category.GOLD, target_amount=Decimal("100")))

    found = store.get_by_category(1, Category.GOLD)
    assert found.id == goal_id
    assert found.nickname == "Bars"
    assert store.get_by_category(1, Category.CRYPTO) is None

    with pytest.raises(duckdb.ConstraintException):
        store.create(1, Goal(category=Category.GOLD, target_amount=Decimal("1")))

    assert store.update(1, goal_id, target_date=date(2030, 1, 1))
    assert store.get(1, goal_id).target_date == date(2030, 1, 1)
    assert store.delete(1, goal_id)
    assert store.list(1) == []
