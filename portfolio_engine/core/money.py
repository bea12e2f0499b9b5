"""Decimal money math shared by aggregation, targets and snapshots."""
from decimal import Decimal, ROUND_HALF_UP

from portfolio_engine.core.models import Position

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def invested_amount(position: Position) -> Decimal:
    """Cost basis x quantity (the principal, for lump-sum categories)."""
    return position.quantity * position.cost_basis_per_unit


def current_value(position: Position) -> Decimal:
    return position.quantity * position.current_price_per_unit


def gain(position: Position) -> Decimal:
    return current_value(position) - invested_amount(position)


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole x 100, or 0 when whole is zero."""
    if whole == 0:
        return ZERO
    return part / whole * HUNDRED


def gain_percent(position: Position) -> Decimal:
    """
    Gain relative to the invested amount, in percent.

    Returns 0 for a zero cost basis instead of raising.
    """
    return percentage(gain(position), invested_amount(position))


def quantize_money(amount: Decimal, places: int = 2) -> Decimal:
    """Round for display only; engine values stay unrounded."""
    return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
