"""Tests for import date normalization."""
from datetime import date

import pytest

from portfolio_engine.core.dates import normalize_date, parse_canonical_date
from portfolio_engine.core.errors import DateParseError, ValidationError


@pytest.mark.parametrize("text", ["2024-03-05", "03/05/2024", "05-03-2024", "3/5/2024", "5-3-2024"])
def test_accepted_encodings_resolve_to_same_day(text) -> None:
    assert normalize_date(text) == date(2024, 3, 5)


def test_surrounding_whitespace_is_ignored() -> None:
    assert normalize_date("  2024-12-31 ") == date(2024, 12, 31)


@pytest.mark.parametrize("text", ["2024-13-01", "not-a-date", "", "13/13/2024", "32-01-2024", "2024/03/05"])
def test_invalid_dates_fail(text) -> None:
    with pytest.raises(DateParseError) as exc_info:
        normalize_date(text)
    assert exc_info.value.text == text


def test_us_format_is_tried_before_day_first() -> None:
    # Slashes are always month-first
    assert normalize_date("01/02/2024") == date(2024, 1, 2)
    # Dashes with a four-digit year last are always day-first
    assert normalize_date("01-02-2024") == date(2024, 2, 1)


def test_leap_day() -> None:
    assert normalize_date("29-02-2024") == date(2024, 2, 29)
    with pytest.raises(DateParseError):
        normalize_date("2023-02-29")


def test_date_parse_error_is_a_validation_error() -> None:
    with pytest.raises(ValidationError) as exc_info:
        normalize_date("yesterday", field="acquired_on")
    assert exc_info.value.issues[0].field == "acquired_on"
    assert exc_info.value.issues[0].code == "invalid_date"


def test_canonical_parser_rejects_import_only_formats() -> None:
    assert parse_canonical_date("2024-03-05") == date(2024, 3, 5)
    with pytest.raises(DateParseError):
        parse_canonical_date("03/05/2024")
    with pytest.raises(DateParseError):
        parse_canonical_date("2024-02-30")
