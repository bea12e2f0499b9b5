"""Data models for the portfolio engine."""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Tuple


class Category(str, Enum):
    STOCKS = "STOCKS"
    CRYPTO = "CRYPTO"
    MUTUAL_FUNDS = "MUTUAL_FUNDS"
    BONDS = "BONDS"
    REAL_ESTATE = "REAL_ESTATE"
    GOLD = "GOLD"
    FIXED_DEPOSIT = "FIXED_DEPOSIT"
    PROVIDENT_FUNDS = "PROVIDENT_FUNDS"
    SAFE_KEEPINGS = "SAFE_KEEPINGS"
    EMERGENCY_FUND = "EMERGENCY_FUND"
    MARRIAGE = "MARRIAGE"
    VACATION = "VACATION"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]

    @property
    def rule(self) -> "CategoryRule":
        return CATEGORY_RULES[self]

    @property
    def is_lump_sum(self) -> bool:
        return CATEGORY_RULES[self].lump_sum

    @classmethod
    def parse(cls, text: str) -> "Category":
        """
        Resolve free text ("Mutual Fund", "fd", "crypto-currency") to a category.

        Raises ValueError when the text names no known category.
        """
        key = "".join(ch for ch in (text or "").upper() if ch.isalnum())
        if key in CATEGORY_ALIASES:
            return CATEGORY_ALIASES[key]
        raise ValueError(f"Unknown position type: {text!r}")


@dataclass(frozen=True)
class CategoryRule:
    """Field requirements shared by manual entry and bulk import."""
    lump_sum: bool
    requires_maturity: bool = False


CATEGORY_LABELS = {
    Category.STOCKS: "Stocks",
    Category.CRYPTO: "Cryptocurrency",
    Category.MUTUAL_FUNDS: "Mutual Funds",
    Category.BONDS: "Bonds",
    Category.REAL_ESTATE: "Real Estate",
    Category.GOLD: "Gold",
    Category.FIXED_DEPOSIT: "Fixed Deposit",
    Category.PROVIDENT_FUNDS: "Provident Funds",
    Category.SAFE_KEEPINGS: "Safe Keepings",
    Category.EMERGENCY_FUND: "Emergency Fund",
    Category.MARRIAGE: "Marriage",
    Category.VACATION: "Vacation",
    Category.OTHER: "Other",
}

CATEGORY_RULES = {
    Category.STOCKS: CategoryRule(lump_sum=False),
    Category.CRYPTO: CategoryRule(lump_sum=False),
    Category.MUTUAL_FUNDS: CategoryRule(lump_sum=False),
    Category.BONDS: CategoryRule(lump_sum=False),
    Category.REAL_ESTATE: CategoryRule(lump_sum=False),
    Category.GOLD: CategoryRule(lump_sum=False),
    Category.OTHER: CategoryRule(lump_sum=False),
    Category.FIXED_DEPOSIT: CategoryRule(lump_sum=True, requires_maturity=True),
    Category.PROVIDENT_FUNDS: CategoryRule(lump_sum=True),
    Category.SAFE_KEEPINGS: CategoryRule(lump_sum=True),
    Category.EMERGENCY_FUND: CategoryRule(lump_sum=True),
    Category.MARRIAGE: CategoryRule(lump_sum=True),
    Category.VACATION: CategoryRule(lump_sum=True),
}

# Keys are upper-cased with everything but letters and digits stripped
CATEGORY_ALIASES = {
    **{c.value.replace("_", ""): c for c in Category},
    **{"".join(ch for ch in label.upper() if ch.isalnum()): c for c, label in CATEGORY_LABELS.items()},
    "STOCK": Category.STOCKS,
    "EQUITY": Category.STOCKS,
    "EQUITIES": Category.STOCKS,
    "SHARES": Category.STOCKS,
    "CRYPTOCURRENCIES": Category.CRYPTO,
    "BITCOIN": Category.CRYPTO,
    "MUTUALFUND": Category.MUTUAL_FUNDS,
    "MF": Category.MUTUAL_FUNDS,
    "FUND": Category.MUTUAL_FUNDS,
    "FUNDS": Category.MUTUAL_FUNDS,
    "BOND": Category.BONDS,
    "PROPERTY": Category.REAL_ESTATE,
    "PRECIOUSMETALS": Category.GOLD,
    "METALS": Category.GOLD,
    "SILVER": Category.GOLD,
    "FD": Category.FIXED_DEPOSIT,
    "DEPOSIT": Category.FIXED_DEPOSIT,
    "TERMDEPOSIT": Category.FIXED_DEPOSIT,
    "PF": Category.PROVIDENT_FUNDS,
    "PROVIDENTFUND": Category.PROVIDENT_FUNDS,
    "SAFEKEEPING": Category.SAFE_KEEPINGS,
    "EMERGENCYFUNDS": Category.EMERGENCY_FUND,
}


@dataclass
class Account:
    id: int | None
    bank_name: str
    account_number: str
    balance: Decimal = Decimal("0")
    created_at: datetime | None = None


@dataclass
class Position:
    """One holding owned by a single user."""
    category: Category
    name: str
    quantity: Decimal
    cost_basis_per_unit: Decimal  # principal for lump-sum categories
    current_price_per_unit: Decimal
    acquired_on: date
    id: int | None = None
    symbol: str | None = None
    account_id: int | None = None  # weak reference, may dangle after unlink
    interest_rate: Decimal | None = None  # percent
    maturity_date: date | None = None
    notes: str | None = None
    created_at: datetime | None = None


@dataclass
class Goal:
    """Per-category target; at most one per user and category."""
    category: Category
    target_amount: Decimal
    target_date: date | None = None
    nickname: str | None = None
    id: int | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class CategoryBucket:
    """Computed slice of the portfolio breakdown."""
    label: str
    total_invested: Decimal
    position_count: int
    percentage_of_total: Decimal
    member_positions: Tuple[Position, ...]
    category: Category | None = None  # None for the Others bucket
    folded_categories: Tuple[Category, ...] = ()

    @property
    def is_others(self) -> bool:
        return self.category is None


@dataclass(frozen=True)
class GoalProgress:
    """Computed completion state for one goal."""
    category: Category
    target_amount: Decimal
    current_amount: Decimal
    progress_percent: Decimal  # unclamped
    is_complete: bool
    days_remaining: int | None = None
    is_overdue: bool | None = None
    target_date: date | None = None
    nickname: str | None = None

    @property
    def display_percent(self) -> Decimal:
        """Progress clamped to 0..100 for progress-bar widths."""
        return max(Decimal("0"), min(self.progress_percent, Decimal("100")))


@dataclass
class ValidationIssue:
    field: str
    message: str
    code: str = "invalid_value"
    row: int | None = None


class ImportStatus(str, Enum):
    SUCCEEDED = "succeeded"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


@dataclass
class RowError:
    row: int  # 1-based data row, 0 for the header / whole file
    error: str


@dataclass
class ImportResult:
    """Outcome of one bulk ingestion call."""
    imported_count: int
    skipped_count: int
    success: bool
    errors: List[RowError] = field(default_factory=list)
    status: ImportStatus = ImportStatus.SUCCEEDED
    position_ids: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class PortfolioSummary:
    total_invested: Decimal
    current_value: Decimal
    total_gain: Decimal
    gain_percent: Decimal
    account_balance: Decimal
    net_worth: Decimal
    position_count: int


@dataclass
class NetWorthSnapshot:
    """Point-in-time net worth record."""
    id: int | None
    user_id: int
    snapshot_date: date
    total_invested: Decimal
    current_value: Decimal
    total_gain: Decimal
    gain_percent: Decimal
    account_balance: Decimal
    net_worth: Decimal
    currency: str
    created_at: datetime | None = None
