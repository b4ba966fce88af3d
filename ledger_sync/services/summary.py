"""
Derived ledger figures.

Balances are never stored; they are always derived from the
entries. This guarantees the figures are correct as long as the
entries are correct.
"""

from decimal import Decimal
from typing import Sequence

from ledger_sync.models.enums import EntryType
from ledger_sync.schemas.ledger import Entry, LedgerTotals


def running_balances(entries: Sequence[Entry]) -> tuple[Decimal, ...]:
    """Balance after each entry, in list order."""
    balance = Decimal("0")
    balances = []
    for entry in entries:
        balance += entry.signed_amount
        balances.append(balance)
    return tuple(balances)


def ledger_totals(entries: Sequence[Entry]) -> LedgerTotals:
    cash_in = sum(
        (e.amount for e in entries if e.type == EntryType.IN), Decimal("0")
    )
    cash_out = sum(
        (e.amount for e in entries if e.type == EntryType.OUT), Decimal("0")
    )
    return LedgerTotals(cash_in=cash_in, cash_out=cash_out, net=cash_in - cash_out)


class SummaryCache:
    """
    Memoizes derived figures per ledger on entry-list identity.

    Entry tuples are replaced, never mutated, so a cached result is
    valid exactly as long as the ledger still holds the same tuple.
    """

    def __init__(self):
        self._balances: dict[str, tuple[tuple[Entry, ...], tuple[Decimal, ...]]] = {}
        self._totals: dict[str, tuple[tuple[Entry, ...], LedgerTotals]] = {}

    def balances(self, ledger_id: str, entries: tuple[Entry, ...]) -> tuple[Decimal, ...]:
        cached = self._balances.get(ledger_id)
        if cached is not None and cached[0] is entries:
            return cached[1]
        result = running_balances(entries)
        self._balances[ledger_id] = (entries, result)
        return result

    def totals(self, ledger_id: str, entries: tuple[Entry, ...]) -> LedgerTotals:
        cached = self._totals.get(ledger_id)
        if cached is not None and cached[0] is entries:
            return cached[1]
        result = ledger_totals(entries)
        self._totals[ledger_id] = (entries, result)
        return result

    def forget(self, ledger_id: str) -> None:
        self._balances.pop(ledger_id, None)
        self._totals.pop(ledger_id, None)

    def clear(self) -> None:
        self._balances.clear()
        self._totals.clear()
