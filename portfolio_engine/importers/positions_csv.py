"""
CSV bulk import (and matching export) of positions.

Each data row is parsed, validated and committed on its own; a bad row is
reported with its row number and the rest of the file still imports. Only a
header missing required columns rejects the whole file.
"""
import csv
import io
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Dict, Iterable, List

import pandas as pd

from portfolio_engine.core.accounts import match_account
from portfolio_engine.core.dates import normalize_date
from portfolio_engine.core.errors import MalformedHeaderError, ValidationError
from portfolio_engine.core.models import (
    Account,
    ImportResult,
    ImportStatus,
    Position,
    RowError,
)
from portfolio_engine.core.validation import build_position, read_draft, validate_draft

LOGGER = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["Name", "Type", "Quantity", "Purchase Price", "Current Price", "Purchase Date"]
OPTIONAL_COLUMNS = ["Symbol", "Account", "Bank Name", "Interest Rate", "Maturity Date", "Notes"]

# CSV column -> draft field
COLUMN_FIELDS = {
    "Name": "name",
    "Type": "category",
    "Quantity": "quantity",
    "Purchase Price": "cost_basis_per_unit",
    "Current Price": "current_price_per_unit",
    "Purchase Date": "acquired_on",
    "Symbol": "symbol",
    "Account": "account",
    "Bank Name": "bank_name",
    "Interest Rate": "interest_rate",
    "Maturity Date": "maturity_date",
    "Notes": "notes",
}

EXPORT_COLUMNS = [
    "Name", "Type", "Symbol", "Quantity", "Purchase Price", "Current Price",
    "Purchase Date", "Account", "Interest Rate", "Maturity Date", "Notes",
]


def _normalize_header(s: str) -> str:
    """'Purchase Price', 'purchase_price' and 'Interest Rate (%)' all compare equal."""
    s = (s or "").replace("\ufeff", "").lower()
    return "".join(ch for ch in s if ch not in " \t-_/()%")


def _read_rows(text: str) -> List[List[str]]:
    """Split CSV text into rows, dropping blank lines."""
    reader = csv.reader(io.StringIO(text or ""))
    return [row for row in reader if any(cell.strip() for cell in row)]


def _map_header(header: List[str]) -> Dict[str, int]:
    """
    Map draft fields to column indexes.

    Raises:
        MalformedHeaderError: a required column is missing
    """
    positions = {}
    for index, cell in enumerate(header):
        positions.setdefault(_normalize_header(cell), index)

    columns = {}
    missing = []
    for column in REQUIRED_COLUMNS + OPTIONAL_COLUMNS:
        index = positions.get(_normalize_header(column))
        if index is not None:
            columns[COLUMN_FIELDS[column]] = index
        elif column in REQUIRED_COLUMNS:
            missing.append(column)

    if missing:
        raise MalformedHeaderError(missing, REQUIRED_COLUMNS)
    return columns


def _row_fields(row: List[str], columns: Dict[str, int]) -> Dict[str, str]:
    return {name: (row[i].strip() if i < len(row) else "") for name, i in columns.items()}


def _row_to_position(fields: Dict[str, str], accounts: List[Account]) -> Position:
    """
    Dates, then field rules, then account linkage.

    Raises:
        ValidationError: the row can't be imported (DateParseError included)
    """
    draft = read_draft(fields, normalize_date)

    issues = validate_draft(draft)
    if issues:
        raise ValidationError(issues)

    label = fields.get("account") or fields.get("bank_name")
    return build_position(replace(draft, account_id=match_account(label, accounts)))


def _failed(message: str) -> ImportResult:
    return ImportResult(
        imported_count=0,
        skipped_count=0,
        success=False,
        errors=[RowError(row=0, error=message)],
        status=ImportStatus.FAILED,
    )


def import_positions_csv(
    text: str,
    user_id: int,
    position_store,
    accounts: Iterable[Account] = (),
) -> ImportResult:
    """
    Import positions from CSV text.

    Row numbers in errors count data rows from 1 (the header is not counted).
    Rows are committed in input order, one at a time; earlier commits stay
    when a later row fails. Status is FAILED only when the header (or empty
    input) rejects the whole file; row errors give PARTIAL_FAILURE.

    Args:
        text: Raw CSV content; the first non-blank line is the header
        user_id: Owner of the imported positions
        position_store: Anything with create(user_id, position) -> id
        accounts: The user's accounts, for resolving the Account / Bank Name column

    Returns:
        ImportResult with counts, per-row errors and the new position ids
    """
    try:
        rows = _read_rows(text)
        if not rows:
            raise MalformedHeaderError([], REQUIRED_COLUMNS)
        columns = _map_header(rows[0])
    except (MalformedHeaderError, csv.Error) as e:
        LOGGER.warning("Rejected CSV import for user %s: %s", user_id, e)
        return _failed(str(e))

    accounts = list(accounts)
    errors: List[RowError] = []
    position_ids: List[int] = []

    for index, row in enumerate(rows[1:]):
        row_number = index + 1
        fields = _row_fields(row, columns)

        try:
            position = _row_to_position(fields, accounts)
        except ValidationError as e:
            errors.append(RowError(row=row_number, error="; ".join(i.message for i in e.issues)))
            continue

        try:
            position_ids.append(position_store.create(user_id, position))
        except Exception as e:
            LOGGER.exception("Failed to save row %d for user %s", row_number, user_id)
            errors.append(RowError(row=row_number, error=f"Failed to save position: {e}"))

    # FAILED is reserved for a rejected file; once rows were processed any
    # error is a partial failure, even if no row committed.
    imported = len(position_ids)
    status = ImportStatus.PARTIAL_FAILURE if errors else ImportStatus.SUCCEEDED

    LOGGER.info(
        "CSV import for user %s: %d imported, %d skipped (%s)",
        user_id, imported, len(errors), status.value,
    )
    return ImportResult(
        imported_count=imported,
        skipped_count=len(errors),
        success=not errors,
        errors=errors,
        status=status,
        position_ids=position_ids,
    )


def _plain(value: Decimal | None) -> str:
    if value is None:
        return ""
    return format(value.normalize(), "f")


def export_positions_csv(positions: Iterable[Position], accounts: Iterable[Account] = ()) -> str:
    """Write positions as CSV in the layout import_positions_csv reads."""
    labels = {a.id: f"{a.bank_name} {a.account_number}" for a in accounts}

    data = []
    for p in positions:
        data.append({
            "Name": p.name,
            "Type": p.category.value,
            "Symbol": p.symbol or "",
            "Quantity": _plain(p.quantity),
            "Purchase Price": _plain(p.cost_basis_per_unit),
            "Current Price": _plain(p.current_price_per_unit),
            "Purchase Date": p.acquired_on.isoformat(),
            "Account": labels.get(p.account_id, ""),
            "Interest Rate": _plain(p.interest_rate),
            "Maturity Date": p.maturity_date.isoformat() if p.maturity_date else "",
            "Notes": p.notes or "",
        })

    return pd.DataFrame(data, columns=EXPORT_COLUMNS).to_csv(index=False)
