"""Exception types raised by the portfolio engine."""
from typing import List, Sequence

from portfolio_engine.core.models import Category, ValidationIssue


class PortfolioError(Exception):
    """Base class for engine errors."""


class ValidationError(PortfolioError):
    """One or more field violations; recoverable by re-prompting or skipping the row."""

    def __init__(self, issues: Sequence[ValidationIssue]):
        self.issues: List[ValidationIssue] = list(issues)
        message = self.issues[0].message if self.issues else "Invalid input"
        super().__init__(message)


class DateParseError(ValidationError):
    """Text that matches none of the accepted date encodings."""

    def __init__(self, text: str, field: str = "date"):
        self.text = text
        super().__init__([
            ValidationIssue(
                field=field,
                code="invalid_date",
                message=f"Invalid date format: {text!r}. Use YYYY-MM-DD, MM/DD/YYYY, or DD-MM-YYYY.",
            )
        ])


class DuplicateGoalError(PortfolioError):
    """A goal already exists for the user and category."""

    def __init__(self, category: Category):
        self.category = category
        super().__init__(
            f"A target for {category.label} already exists. Please edit the existing target instead."
        )


class MalformedHeaderError(PortfolioError):
    """CSV header is missing required columns; the whole batch is rejected."""

    def __init__(self, missing: Sequence[str], required: Sequence[str]):
        self.missing = list(missing)
        if self.missing:
            message = (
                f"Missing required headers: {', '.join(self.missing)}. "
                f"Required headers: {', '.join(required)}"
            )
        else:
            message = "CSV file is empty"
        super().__init__(message)
