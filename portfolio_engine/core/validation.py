"""Category-dependent field validation shared by forms and bulk import."""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Mapping

from portfolio_engine.core.dates import parse_canonical_date
from portfolio_engine.core.errors import ValidationError
from portfolio_engine.core.models import Category, Position, ValidationIssue

ONE = Decimal("1")

# Range of the DECIMAL(38, 18) columns numbers are stored in
MAX_DECIMAL_PLACES = 18
MAX_INTEGER_DIGITS = 20


@dataclass(frozen=True)
class PositionDraft:
    """Candidate position fields, typed but not yet validated."""
    category: Category
    name: str
    quantity: Decimal | None
    cost_basis_per_unit: Decimal | None
    current_price_per_unit: Decimal | None
    acquired_on: date | None
    symbol: str | None = None
    account_id: int | None = None
    interest_rate: Decimal | None = None
    maturity_date: date | None = None
    notes: str | None = None


def parse_decimal(text: str | None, field: str) -> Decimal | None:
    """
    Parse a user-supplied number.

    Blank text is None. Thousands separators, surrounding whitespace and a
    leading currency symbol are ignored. Values that can't be stored exactly
    (more than MAX_DECIMAL_PLACES significant decimals, or MAX_INTEGER_DIGITS
    integer digits) are rejected rather than rounded.

    Raises:
        ValidationError: text is not a finite number, or is out of range
    """
    if text is None:
        return None
    cleaned = str(text).strip().replace(",", "").lstrip("$€£₹").strip()
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        value = None
    if value is None or not value.is_finite():
        raise ValidationError([
            ValidationIssue(field=field, code="not_a_number", message=f"{field} is not a number ({text})")
        ])

    exponent = value.normalize().as_tuple().exponent
    if -exponent > MAX_DECIMAL_PLACES:
        raise ValidationError([
            ValidationIssue(
                field=field,
                code="too_precise",
                message=f"{field} has more than {MAX_DECIMAL_PLACES} decimal places ({text})",
            )
        ])
    if value != 0 and value.adjusted() >= MAX_INTEGER_DIGITS:
        raise ValidationError([
            ValidationIssue(
                field=field,
                code="too_large",
                message=f"{field} has more than {MAX_INTEGER_DIGITS} integer digits ({text})",
            )
        ])
    return value


def _optional_text(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


def read_draft(
    fields: Mapping[str, str],
    date_parser: Callable[..., date] = parse_canonical_date,
) -> PositionDraft:
    """
    Convert text fields into a PositionDraft.

    Dates are parsed first with date_parser. Every other parse failure is
    collected and raised together.

    Raises:
        DateParseError: a date field could not be parsed
        ValidationError: the category or a numeric field could not be parsed
    """
    acquired_text = _optional_text(fields.get("acquired_on"))
    maturity_text = _optional_text(fields.get("maturity_date"))
    acquired_on = date_parser(acquired_text, field="acquired_on") if acquired_text else None
    maturity_date = date_parser(maturity_text, field="maturity_date") if maturity_text else None

    issues: List[ValidationIssue] = []

    category = fields.get("category")
    if not isinstance(category, Category):
        try:
            category = Category.parse(category or "")
        except ValueError as e:
            issues.append(ValidationIssue(field="category", code="invalid_category", message=str(e)))

    numbers = {}
    for name in ("quantity", "cost_basis_per_unit", "current_price_per_unit", "interest_rate"):
        try:
            numbers[name] = parse_decimal(fields.get(name), name)
        except ValidationError as e:
            issues.extend(e.issues)

    if issues:
        raise ValidationError(issues)

    account_id = fields.get("account_id")
    return PositionDraft(
        category=category,
        name=(fields.get("name") or "").strip(),
        quantity=numbers["quantity"],
        cost_basis_per_unit=numbers["cost_basis_per_unit"],
        current_price_per_unit=numbers["current_price_per_unit"],
        acquired_on=acquired_on,
        symbol=_optional_text(fields.get("symbol")),
        account_id=int(account_id) if account_id not in (None, "") else None,
        interest_rate=numbers["interest_rate"],
        maturity_date=maturity_date,
        notes=_optional_text(fields.get("notes")),
    )


def validate_draft(draft: PositionDraft) -> List[ValidationIssue]:
    """Return every rule violation for the draft; an empty list means valid."""
    issues: List[ValidationIssue] = []
    rule = draft.category.rule

    if not draft.name.strip():
        issues.append(ValidationIssue(field="name", code="missing_name", message="Name is required."))

    if draft.acquired_on is None:
        issues.append(ValidationIssue(
            field="acquired_on", code="missing_date", message="Purchase date is required."
        ))

    if rule.lump_sum:
        # Quantity is ignored; the position is stored as one unit of principal.
        if draft.cost_basis_per_unit is None or draft.cost_basis_per_unit <= 0:
            issues.append(ValidationIssue(
                field="cost_basis_per_unit",
                code="invalid_principal",
                message=f"Invalid principal ({draft.cost_basis_per_unit}). Must be a positive number.",
            ))
        if draft.current_price_per_unit is not None and draft.current_price_per_unit < 0:
            issues.append(ValidationIssue(
                field="current_price_per_unit",
                code="invalid_current_price",
                message=f"Invalid current value ({draft.current_price_per_unit}). Must not be negative.",
            ))
    else:
        if draft.quantity is None or draft.quantity <= 0:
            issues.append(ValidationIssue(
                field="quantity",
                code="invalid_quantity",
                message=f"Invalid quantity value ({draft.quantity}). Must be a positive number.",
            ))
        if draft.cost_basis_per_unit is None or draft.cost_basis_per_unit <= 0:
            issues.append(ValidationIssue(
                field="cost_basis_per_unit",
                code="invalid_purchase_price",
                message=f"Invalid purchase price value ({draft.cost_basis_per_unit}). Must be a positive number.",
            ))
        # Zero is allowed: a position can be marked worthless.
        if draft.current_price_per_unit is None or draft.current_price_per_unit < 0:
            issues.append(ValidationIssue(
                field="current_price_per_unit",
                code="invalid_current_price",
                message=f"Invalid current price value ({draft.current_price_per_unit}). Must not be negative.",
            ))

    if rule.requires_maturity:
        if draft.maturity_date is None:
            issues.append(ValidationIssue(
                field="maturity_date",
                code="missing_maturity",
                message=f"Maturity date is required for {draft.category.label}.",
            ))
        elif draft.acquired_on is not None and draft.maturity_date <= draft.acquired_on:
            issues.append(ValidationIssue(
                field="maturity_date",
                code="invalid_maturity",
                message="Maturity date must be after the purchase date.",
            ))

    if draft.interest_rate is not None and draft.interest_rate < 0:
        issues.append(ValidationIssue(
            field="interest_rate",
            code="invalid_interest_rate",
            message=f"Invalid interest rate value ({draft.interest_rate}). Must be a non-negative number.",
        ))

    return issues


def build_position(draft: PositionDraft) -> Position:
    """Turn a validated draft into a Position, applying lump-sum defaults."""
    quantity = draft.quantity
    current_price = draft.current_price_per_unit
    if draft.category.is_lump_sum:
        quantity = ONE
        if current_price is None:
            current_price = draft.cost_basis_per_unit

    return Position(
        category=draft.category,
        name=draft.name.strip(),
        quantity=quantity,
        cost_basis_per_unit=draft.cost_basis_per_unit,
        current_price_per_unit=current_price,
        acquired_on=draft.acquired_on,
        symbol=draft.symbol,
        account_id=draft.account_id,
        interest_rate=draft.interest_rate,
        maturity_date=draft.maturity_date,
        notes=draft.notes,
    )


def validate_form(fields: Mapping[str, str]) -> List[ValidationIssue]:
    """Validate interactive form input (canonical YYYY-MM-DD dates only)."""
    try:
        draft = read_draft(fields, parse_canonical_date)
    except ValidationError as e:
        return e.issues
    return validate_draft(draft)


def first_violation(issues: List[ValidationIssue]) -> str | None:
    """Message a form shows next to the submit button."""
    return issues[0].message if issues else None
