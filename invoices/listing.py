"""List engine — pure filter and sort derivation over an invoice snapshot.

Nothing here touches the store or mutates its input; every function is safe
to recompute whenever the filter, the sort or the collection changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Iterable, Optional, Sequence

from pyuca import Collator

from .dates import format_display_date, parse_calendar_date
from .models import Invoice

EMPTY_MESSAGE = "No invoices found matching your criteria."


class SortKey(str, Enum):
    TICKET_NUMBER = "ticket_number"
    BOOKING_REFERENCE = "booking_reference"
    AGENT_ID = "agent_id"
    AMOUNT = "amount"
    DATE = "date"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortState:
    key: SortKey = SortKey.DATE
    direction: SortDirection = SortDirection.DESC

    def toggle(self, key: SortKey | str) -> "SortState":
        """Same key flips the direction; a new key starts ascending."""
        key = SortKey(key)
        if key == self.key:
            flipped = SortDirection.DESC if self.direction == SortDirection.ASC else SortDirection.ASC
            return SortState(key, flipped)
        return SortState(key, SortDirection.ASC)


@dataclass(frozen=True)
class AgentFilter:
    """Agent view filter: agent id substring plus an inclusive date range."""

    agent_id: str = ""
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @property
    def is_empty(self) -> bool:
        return not self.agent_id.strip() and self.date_from is None and self.date_to is None


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def matches_agent_filter(invoice: Invoice, criteria: AgentFilter) -> bool:
    needle = criteria.agent_id.strip().lower()
    if needle and needle not in invoice.agent_id.lower():
        return False

    if criteria.date_from is None and criteria.date_to is None:
        return True

    invoice_date = parse_calendar_date(invoice.date)
    if invoice_date is None:
        return False
    if criteria.date_from is not None and invoice_date < criteria.date_from:
        return False
    # Calendar dates carry no time of day, so <= covers the whole 'to' day
    if criteria.date_to is not None and invoice_date > criteria.date_to:
        return False
    return True


def filter_for_agent(invoices: Iterable[Invoice], criteria: Optional[AgentFilter]) -> list[Invoice]:
    if criteria is None or criteria.is_empty:
        return list(invoices)
    return [inv for inv in invoices if matches_agent_filter(inv, criteria)]


def amount_search_text(amount: float) -> str:
    """Shortest text form of an amount: ``150.75``, ``230`` (not ``230.0``), never an exponent."""
    text = format(Decimal(repr(float(amount))), "f")
    if text.endswith(".0"):
        text = text[:-2]
    return text


def searchable_terms(invoice: Invoice) -> list[str]:
    return [
        invoice.ticket_number.lower(),
        invoice.booking_reference.lower(),
        invoice.agent_id.lower(),
        amount_search_text(invoice.amount),
        invoice.date.lower(),
    ]


def matches_search(invoice: Invoice, term: str) -> bool:
    normalized = term.strip().lower()
    if not normalized:
        return True
    return any(normalized in value for value in searchable_terms(invoice))


def search_for_admin(invoices: Iterable[Invoice], term: Optional[str]) -> list[Invoice]:
    return [inv for inv in invoices if matches_search(inv, term or "")]


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------

def _date_sort_key(invoice: Invoice) -> tuple:
    parsed = parse_calendar_date(invoice.date)
    if parsed is None:
        # Unparseable dates tie with each other and follow every valid date
        return (1, date.min)
    return (0, parsed)


@lru_cache(maxsize=1)
def _collator() -> Collator:
    return Collator()


def _text_sort_key(value: str) -> tuple:
    return _collator().sort_key(value.casefold())


def sort_invoices(invoices: Iterable[Invoice], state: SortState) -> list[Invoice]:
    """Stable sort; descending is the exact reverse of ascending, ties included."""
    key = SortKey(state.key)
    if key == SortKey.AMOUNT:
        ordered = sorted(invoices, key=lambda inv: inv.amount)
    elif key == SortKey.DATE:
        ordered = sorted(invoices, key=_date_sort_key)
    else:
        ordered = sorted(invoices, key=lambda inv: _text_sort_key(getattr(inv, key.value)))

    if SortDirection(state.direction) == SortDirection.DESC:
        ordered.reverse()
    return ordered


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------

def format_amount(amount: float) -> str:
    if amount < 0:
        return f"-${-amount:,.2f}"
    return f"${amount:,.2f}"


@dataclass(frozen=True)
class InvoiceRow:
    invoice: Invoice
    amount_display: str
    date_display: str

    @property
    def can_mutate(self) -> bool:
        """Edit and delete controls are only offered for persisted records."""
        return not self.invoice.is_pending


@dataclass(frozen=True)
class InvoiceView:
    rows: list[InvoiceRow] = field(default_factory=list)
    sort: SortState = field(default_factory=SortState)
    total: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def empty_message(self) -> Optional[str]:
        return EMPTY_MESSAGE if self.is_empty else None


def to_rows(invoices: Sequence[Invoice]) -> list[InvoiceRow]:
    return [
        InvoiceRow(
            invoice=inv,
            amount_display=format_amount(inv.amount),
            date_display=format_display_date(inv.date),
        )
        for inv in invoices
    ]


def derive_agent_view(
    snapshot: Sequence[Invoice],
    criteria: Optional[AgentFilter] = None,
    sort: Optional[SortState] = None,
) -> InvoiceView:
    sort = sort or SortState()
    ordered = sort_invoices(filter_for_agent(snapshot, criteria), sort)
    return InvoiceView(rows=to_rows(ordered), sort=sort, total=len(snapshot))


def derive_admin_view(
    snapshot: Sequence[Invoice],
    term: Optional[str] = None,
    sort: Optional[SortState] = None,
) -> InvoiceView:
    sort = sort or SortState()
    ordered = sort_invoices(search_for_admin(snapshot, term), sort)
    return InvoiceView(rows=to_rows(ordered), sort=sort, total=len(snapshot))
