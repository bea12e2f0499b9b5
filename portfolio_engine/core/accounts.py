"""Resolve free-text account references from import rows."""
import logging
from typing import Iterable, Optional

from portfolio_engine.core.models import Account

LOGGER = logging.getLogger(__name__)


def _normalize(text: str | None) -> str:
    return " ".join((text or "").split()).casefold()


def account_keys(account: Account) -> list[str]:
    """Labels an import row may use to refer to this account."""
    bank = _normalize(account.bank_name)
    number = _normalize(account.account_number)
    keys = []
    if bank and number:
        keys.append(f"{bank} {number}")
    if bank:
        keys.append(bank)
    if number:
        keys.append(number)
    return keys


def match_account(label: str | None, accounts: Iterable[Account]) -> Optional[int]:
    """
    Find the account an import label refers to.

    Matching is exact after case folding and whitespace collapsing, against
    "{bank_name} {account_number}", the bank name, or the account number.
    The first matching account wins. Returns None when the label is blank
    or matches nothing; an unlinked position is still a valid import.
    """
    wanted = _normalize(label)
    if not wanted:
        return None

    for account in accounts:
        if wanted in account_keys(account):
            return account.id

    LOGGER.info("No account matches %r; position will be unlinked", label)
    return None
