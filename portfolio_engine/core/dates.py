"""Date parsing for bulk imports and forms."""
import re
from datetime import date, datetime

from portfolio_engine.core.errors import DateParseError

# Tried in order; ISO first because it is unambiguous.
IMPORT_DATE_FORMATS = [
    (re.compile(r"^\d{4}-\d{2}-\d{2}$"), "%Y-%m-%d"),
    (re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$"), "%m/%d/%Y"),
    (re.compile(r"^\d{1,2}-\d{1,2}-\d{4}$"), "%d-%m-%Y"),
]

CANONICAL_DATE_FORMAT = "%Y-%m-%d"


def normalize_date(text: str, field: str = "date") -> date:
    """
    Parse a date written as YYYY-MM-DD, MM/DD/YYYY or DD-MM-YYYY.

    Only for uncontrolled import sources; forms use parse_canonical_date.

    Raises:
        DateParseError: no pattern yields a valid calendar date
    """
    value = (text or "").strip()
    for pattern, fmt in IMPORT_DATE_FORMATS:
        if not pattern.match(value):
            continue
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            # Shape matched but the calendar date is invalid (month 13, day 32)
            continue
    raise DateParseError(text, field=field)


def parse_canonical_date(text: str, field: str = "date") -> date:
    """Parse the single YYYY-MM-DD format accepted by interactive forms."""
    value = (text or "").strip()
    if not IMPORT_DATE_FORMATS[0][0].match(value):
        raise DateParseError(text, field=field)
    try:
        return datetime.strptime(value, CANONICAL_DATE_FORMAT).date()
    except ValueError:
        raise DateParseError(text, field=field) from None
