"""
Ledger Balance Service - the one place a party balance is derived.

Every caller (ledger page, balance endpoint, payment distribution, stored
balance refresh) goes through running_ledger()/compute_balance(). Do not
re-implement the fold elsewhere.

Sign convention: balance = SUM(debit - credit).
    positive -> we owe the party (supplier / logistics company)
    negative -> the party owes us (overpayment, returns after payment)
"""
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Iterable, List, NamedTuple, Union

from dispatchdesk.utils.money import to_decimal

SUPPLIER = "supplier"
LOGISTICS = "logistics"

# Transaction types that move each party class's balance
PARTY_TRANSACTION_TYPES = {
    SUPPLIER: frozenset({"purchase", "payment", "return"}),
    LOGISTICS: frozenset({"charge", "payment", "adjustment"}),
}

PARTY_ENTITY_MODELS = {
    SUPPLIER: "Supplier",
    LOGISTICS: "LogisticsCompany",
}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class NoData:
    """Balance signal: no relevant entries. Distinct from a zero balance."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_DATA"


NO_DATA = NoData()

BalanceResult = Union[Decimal, NoData]


class RunningRow(NamedTuple):
    entry: Any
    balance: Decimal


def entity_model_for(party_class: str) -> str:
    try:
        return PARTY_ENTITY_MODELS[party_class]
    except KeyError:
        raise ValueError(f"Unknown party class: {party_class}")


def _as_utc(value) -> datetime:
    if isinstance(value, datetime):
        # Naive timestamps (SQLite drops tzinfo) are stored as UTC
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return _EPOCH


def entry_sort_key(entry) -> datetime:
    """created_at, falling back to date; entries with neither sort first."""
    created_at = getattr(entry, "created_at", None)
    if created_at is not None:
        return _as_utc(created_at)
    return _as_utc(getattr(entry, "date", None))


def relevant_entries(entries: Iterable[Any], party_class: str) -> List[Any]:
    """Filter to the party class's transaction types, then sort oldest first (stable)."""
    try:
        allowed = PARTY_TRANSACTION_TYPES[party_class]
    except KeyError:
        raise ValueError(f"Unknown party class: {party_class}")
    filtered = [e for e in entries if getattr(e, "transaction_type", None) in allowed]
    # sorted() is stable: equal timestamps keep insertion order
    return sorted(filtered, key=entry_sort_key)


def running_ledger(entries: Iterable[Any], party_class: str) -> List[RunningRow]:
    """
    Fold debit - credit over the party's entries, oldest first, seeded at 0.

    Returns one row per relevant entry with the balance after it.
    """
    balance = Decimal("0")
    rows: List[RunningRow] = []
    for entry in relevant_entries(entries, party_class):
        balance = balance + to_decimal(getattr(entry, "debit", 0)) - to_decimal(getattr(entry, "credit", 0))
        rows.append(RunningRow(entry, balance))
    return rows


def compute_balance(entries: Iterable[Any], party_class: str) -> BalanceResult:
    """
    Authoritative balance for one party from its full entry set.

    Returns NO_DATA when no relevant entries exist; callers fall back to the
    stored balance instead of reporting zero.
    """
    rows = running_ledger(entries, party_class)
    if not rows:
        return NO_DATA
    return rows[-1].balance


def balance_or_fallback(result: BalanceResult, fallback) -> Decimal:
    """Resolve NO_DATA to a stored/cached balance."""
    if result is NO_DATA:
        return to_decimal(fallback)
    return result
