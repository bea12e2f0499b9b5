"""DuckDB initialization, schema management and record stores."""
import logging
from datetime import date
from pathlib import Path
from typing import Iterable, List

import duckdb

from portfolio_engine.core.models import Account, Category, Goal, NetWorthSnapshot, Position

LOGGER = logging.getLogger(__name__)

POSITION_FIELDS = [
    "category", "name", "quantity", "cost_basis_per_unit", "current_price_per_unit",
    "acquired_on", "symbol", "account_id", "interest_rate", "maturity_date", "notes",
]
GOAL_FIELDS = ["category", "target_amount", "target_date", "nickname"]

# Exact storage for amounts, quantities and rates: 20 integer digits, 18 decimal places.
# parse_decimal rejects input outside this range.
NUMERIC = "DECIMAL(38, 18)"

DEFAULT_SETTINGS = {
    "base_currency": "USD",
}


def get_db_path(custom_path: str | None = None) -> Path:
    """Get the database file path."""
    if custom_path:
        return Path(custom_path)
    return Path(__file__).parent.parent.parent / "data" / "portfolio.duckdb"


def init_db(db_path: str | None = None) -> duckdb.DuckDBPyConnection:
    """Initialize database and create schema if needed."""
    path = get_db_path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = duckdb.connect(str(path))
    _create_schema(conn)
    return conn


def _create_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create all tables if they don't exist."""
    categories = ", ".join(f"'{c.value}'" for c in Category)

    # Settings table
    conn.execute("""
        CREATE TABLE IF NOT EXISTS settings (
            key VARCHAR PRIMARY KEY,
            value VARCHAR NOT NULL
        )
    """)

    # Initialize default settings
    for key, value in DEFAULT_SETTINGS.items():
        conn.execute("""
            INSERT INTO settings (key, value)
            VALUES (?, ?)
            ON CONFLICT DO NOTHING
        """, [key, value])

    for name in ("accounts", "positions", "goals", "networth_history"):
        conn.execute(f"CREATE SEQUENCE IF NOT EXISTS seq_{name} START 1")

    # Accounts table
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS accounts (
            id INTEGER PRIMARY KEY DEFAULT nextval('seq_accounts'),
            user_id INTEGER NOT NULL,
            bank_name VARCHAR NOT NULL,
            account_number VARCHAR NOT NULL,
            balance {NUMERIC} DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # Positions table; account_id is a weak reference (no foreign key)
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS positions (
            id INTEGER PRIMARY KEY DEFAULT nextval('seq_positions'),
            user_id INTEGER NOT NULL,
            category VARCHAR NOT NULL CHECK (category IN ({categories})),
            name VARCHAR NOT NULL,
            quantity {NUMERIC} NOT NULL CHECK (quantity > 0),
            cost_basis_per_unit {NUMERIC} NOT NULL CHECK (cost_basis_per_unit >= 0),
            current_price_per_unit {NUMERIC} NOT NULL CHECK (current_price_per_unit >= 0),
            acquired_on DATE NOT NULL,
            symbol VARCHAR,
            account_id INTEGER,
            interest_rate {NUMERIC},
            maturity_date DATE,
            notes VARCHAR,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # Goals table
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS goals (
            id INTEGER PRIMARY KEY DEFAULT nextval('seq_goals'),
            user_id INTEGER NOT NULL,
            category VARCHAR NOT NULL CHECK (category IN ({categories})),
            target_amount {NUMERIC} NOT NULL CHECK (target_amount > 0),
            target_date DATE,
            nickname VARCHAR,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(user_id, category)
        )
    """)

    # Net worth history table
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS networth_history (
            id INTEGER PRIMARY KEY DEFAULT nextval('seq_networth_history'),
            user_id INTEGER NOT NULL,
            snapshot_date DATE NOT NULL,
            total_invested {NUMERIC} NOT NULL,
            current_value {NUMERIC} NOT NULL,
            total_gain {NUMERIC} NOT NULL,
            gain_percent {NUMERIC} NOT NULL,
            account_balance {NUMERIC} NOT NULL,
            net_worth {NUMERIC} NOT NULL,
            currency VARCHAR NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)


def get_setting(conn: duckdb.DuckDBPyConnection, key: str) -> str | None:
    """Get a setting value by key."""
    result = conn.execute("SELECT value FROM settings WHERE key = ?", [key]).fetchone()
    return result[0] if result else None


def set_setting(conn: duckdb.DuckDBPyConnection, key: str, value: str) -> None:
    """Set a setting value."""
    conn.execute("""
        INSERT INTO settings (key, value) VALUES (?, ?)
        ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
    """, [key, value])


def _check_fields(fields: dict, allowed: List[str]) -> None:
    unknown = set(fields) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")


def _db_value(value):
    # Enums are stored by value
    return value.value if isinstance(value, Category) else value


def _row_to_position(row) -> Position:
    (position_id, category, name, quantity, cost_basis, current_price, acquired_on,
     symbol, account_id, interest_rate, maturity_date, notes, created_at) = row
    return Position(
        id=position_id,
        category=Category(category),
        name=name,
        quantity=quantity,
        cost_basis_per_unit=cost_basis,
        current_price_per_unit=current_price,
        acquired_on=acquired_on,
        symbol=symbol,
        account_id=account_id,
        interest_rate=interest_rate,
        maturity_date=maturity_date,
        notes=notes,
        created_at=created_at,
    )


def _row_to_goal(row) -> Goal:
    goal_id, category, target_amount, target_date, nickname, created_at = row
    return Goal(
        id=goal_id,
        category=Category(category),
        target_amount=target_amount,
        target_date=target_date,
        nickname=nickname,
        created_at=created_at,
    )


class PositionStore:
    """Positions owned by users."""

    _COLUMNS = "id, " + ", ".join(POSITION_FIELDS) + ", created_at"

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self.conn = conn

    def list(self, user_id: int) -> List[Position]:
        """All positions for a user, read in one statement."""
        rows = self.conn.execute(f"""
            SELECT {self._COLUMNS}
            FROM positions
            WHERE user_id = ?
            ORDER BY id
        """, [user_id]).fetchall()
        return [_row_to_position(row) for row in rows]

    def get(self, user_id: int, position_id: int) -> Position | None:
        row = self.conn.execute(f"""
            SELECT {self._COLUMNS}
            FROM positions
            WHERE user_id = ? AND id = ?
        """, [user_id, position_id]).fetchone()
        return _row_to_position(row) if row else None

    def create(self, user_id: int, position: Position) -> int:
        """Insert a position and return its id."""
        placeholders = ", ".join("?" for _ in POSITION_FIELDS)
        values = [_db_value(getattr(position, name)) for name in POSITION_FIELDS]
        row = self.conn.execute(f"""
            INSERT INTO positions (user_id, {", ".join(POSITION_FIELDS)})
            VALUES (?, {placeholders})
            RETURNING id
        """, [user_id, *values]).fetchone()
        return row[0]

    def update(self, user_id: int, position_id: int, **fields) -> bool:
        """Replace the given mutable fields. Returns False if the position doesn't exist."""
        _check_fields(fields, POSITION_FIELDS)
        if not fields:
            return self.get(user_id, position_id) is not None

        assignments = ", ".join(f"{name} = ?" for name in fields)
        rows = self.conn.execute(f"""
            UPDATE positions SET {assignments}
            WHERE user_id = ? AND id = ?
            RETURNING id
        """, [*(_db_value(v) for v in fields.values()), user_id, position_id]).fetchall()
        return bool(rows)

    def delete(self, user_id: int, position_id: int) -> bool:
        rows = self.conn.execute("""
            DELETE FROM positions WHERE user_id = ? AND id = ?
            RETURNING id
        """, [user_id, position_id]).fetchall()
        return bool(rows)

    def delete_many(self, user_id: int, position_ids: Iterable[int]) -> int:
        """Bulk delete. Returns the number of positions removed."""
        ids = list(position_ids)
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        rows = self.conn.execute(f"""
            DELETE FROM positions WHERE user_id = ? AND id IN ({placeholders})
            RETURNING id
        """, [user_id, *ids]).fetchall()
        return len(rows)


class AccountStore:
    """Bank accounts positions may link to."""

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self.conn = conn

    def list(self, user_id: int) -> List[Account]:
        rows = self.conn.execute("""
            SELECT id, bank_name, account_number, balance, created_at
            FROM accounts
            WHERE user_id = ?
            ORDER BY id
        """, [user_id]).fetchall()
        return [
            Account(id=r[0], bank_name=r[1], account_number=r[2], balance=r[3], created_at=r[4])
            for r in rows
        ]

    def create(self, user_id: int, account: Account) -> int:
        row = self.conn.execute("""
            INSERT INTO accounts (user_id, bank_name, account_number, balance)
            VALUES (?, ?, ?, ?)
            RETURNING id
        """, [user_id, account.bank_name, account.account_number, account.balance]).fetchone()
        return row[0]

    def delete(self, user_id: int, account_id: int) -> bool:
        """Delete an account; linked positions are kept and become unlinked."""
        unlinked = self.conn.execute("""
            UPDATE positions SET account_id = NULL
            WHERE user_id = ? AND account_id = ?
            RETURNING id
        """, [user_id, account_id]).fetchall()
        if unlinked:
            LOGGER.info("Unlinked %d positions from account %s", len(unlinked), account_id)

        rows = self.conn.execute("""
            DELETE FROM accounts WHERE user_id = ? AND id = ?
            RETURNING id
        """, [user_id, account_id]).fetchall()
        return bool(rows)


class GoalStore:
    """Per-category goals; at most one per user and category."""

    _COLUMNS = "id, " + ", ".join(GOAL_FIELDS) + ", created_at"

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self.conn = conn

    def list(self, user_id: int) -> List[Goal]:
        rows = self.conn.execute(f"""
            SELECT {self._COLUMNS}
            FROM goals
            WHERE user_id = ?
            ORDER BY category
        """, [user_id]).fetchall()
        return [_row_to_goal(row) for row in rows]

    def get(self, user_id: int, goal_id: int) -> Goal | None:
        row = self.conn.execute(f"""
            SELECT {self._COLUMNS} FROM goals WHERE user_id = ? AND id = ?
        """, [user_id, goal_id]).fetchone()
        return _row_to_goal(row) if row else None

    def get_by_category(self, user_id: int, category: Category) -> Goal | None:
        row = self.conn.execute(f"""
            SELECT {self._COLUMNS} FROM goals WHERE user_id = ? AND category = ?
        """, [user_id, _db_value(category)]).fetchone()
        return _row_to_goal(row) if row else None

    def create(self, user_id: int, goal: Goal) -> int:
        row = self.conn.execute("""
            INSERT INTO goals (user_id, category, target_amount, target_date, nickname)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
        """, [user_id, _db_value(goal.category), goal.target_amount, goal.target_date, goal.nickname]).fetchone()
        return row[0]

    def update(self, user_id: int, goal_id: int, **fields) -> bool:
        _check_fields(fields, GOAL_FIELDS)
        if not fields:
            return self.get(user_id, goal_id) is not None

        assignments = ", ".join(f"{name} = ?" for name in fields)
        rows = self.conn.execute(f"""
            UPDATE goals SET {assignments}
            WHERE user_id = ? AND id = ?
            RETURNING id
        """, [*(_db_value(v) for v in fields.values()), user_id, goal_id]).fetchall()
        return bool(rows)

    def delete(self, user_id: int, goal_id: int) -> bool:
        rows = self.conn.execute("""
            DELETE FROM goals WHERE user_id = ? AND id = ?
            RETURNING id
        """, [user_id, goal_id]).fetchall()
        return bool(rows)


class SnapshotStore:
    """Point-in-time net worth records."""

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self.conn = conn

    def save(self, snapshot: NetWorthSnapshot) -> int:
        """
        Store a snapshot, replacing any earlier one for the same user and day.

        The replace is one transaction; if the insert fails the earlier
        snapshot is kept and the error propagates.
        """
        self.conn.begin()
        try:
            self.conn.execute("""
                DELETE FROM networth_history WHERE user_id = ? AND snapshot_date = ?
            """, [snapshot.user_id, snapshot.snapshot_date])

            row = self.conn.execute("""
                INSERT INTO networth_history (
                    user_id, snapshot_date, total_invested, current_value, total_gain,
                    gain_percent, account_balance, net_worth, currency
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING id
            """, [
                snapshot.user_id, snapshot.snapshot_date, snapshot.total_invested,
                snapshot.current_value, snapshot.total_gain, snapshot.gain_percent,
                snapshot.account_balance, snapshot.net_worth, snapshot.currency,
            ]).fetchone()
        except Exception:
            self.conn.rollback()
            raise
        self.conn.commit()
        return row[0]

    def list(self, user_id: int, since: date | None = None) -> List[NetWorthSnapshot]:
        """Snapshots for a user, oldest first."""
        query = """
            SELECT id, user_id, snapshot_date, total_invested, current_value, total_gain,
                   gain_percent, account_balance, net_worth, currency, created_at
            FROM networth_history
            WHERE user_id = ?
        """
        params = [user_id]
        if since is not None:
            query += " AND snapshot_date >= ?"
            params.append(since)
        query += " ORDER BY snapshot_date"

        rows = self.conn.execute(query, params).fetchall()
        return [NetWorthSnapshot(*row) for row in rows]
