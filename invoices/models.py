"""Pydantic models for invoices, submissions and extraction output."""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Field order used by forms, extraction prompts and table columns
FORM_FIELDS = ("ticket_number", "booking_reference", "agent_id", "amount", "date")

EARLIEST_INVOICE_DATE = dt.date(1900, 1, 1)

# Wire names returned by the extraction model
EXTRACTION_KEYS = {
    "ticket_number": "ticketNumber",
    "booking_reference": "bookingReference",
    "agent_id": "agentId",
    "amount": "amount",
    "date": "date",
}


# ---------------------------------------------------------------------------
# Invoice
# ---------------------------------------------------------------------------
class Invoice(BaseModel):
    """A travel invoice as held by the record store.

    ``date`` is kept as the stored string so a record with a corrupt date can
    still be listed (rendered as "Invalid Date") instead of failing to load.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    ticket_number: str
    booking_reference: str
    agent_id: str
    amount: float
    date: str = Field(..., description="Calendar date, YYYY-MM-DD")

    @property
    def is_pending(self) -> bool:
        """True until the store has assigned an id."""
        return not self.id


class InvoiceDraft(BaseModel):
    """Validated form submission, used for both manual entry and edits."""

    model_config = ConfigDict(str_strip_whitespace=True)

    ticket_number: str = Field(..., min_length=1)
    booking_reference: str = Field(..., min_length=1)
    agent_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    date: dt.date

    @field_validator("amount")
    @classmethod
    def _finite_amount(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("Amount must be a finite number")
        return value

    @field_validator("date")
    @classmethod
    def _plausible_date(cls, value: dt.date) -> dt.date:
        if value > dt.date.today():
            raise ValueError("Date cannot be in the future")
        if value < EARLIEST_INVOICE_DATE:
            raise ValueError("Date cannot be before 1900-01-01")
        return value

    def to_invoice(self, invoice_id: Optional[str] = None) -> Invoice:
        return Invoice(
            id=invoice_id,
            ticket_number=self.ticket_number,
            booking_reference=self.booking_reference,
            agent_id=self.agent_id,
            amount=self.amount,
            date=self.date.isoformat(),
        )


# ---------------------------------------------------------------------------
# Raw extraction output
# ---------------------------------------------------------------------------
class RawField(BaseModel):
    """One untrusted value exactly as the extraction model returned it."""

    raw: Optional[str] = None


class RawExtraction(BaseModel):
    ticket_number: RawField = Field(default_factory=RawField)
    booking_reference: RawField = Field(default_factory=RawField)
    agent_id: RawField = Field(default_factory=RawField)
    amount: RawField = Field(default_factory=RawField)
    date: RawField = Field(default_factory=RawField)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RawExtraction":
        """Build from the model's JSON object, accepting camelCase or snake_case keys."""
        fields = {}
        for name, wire_name in EXTRACTION_KEYS.items():
            value = payload.get(wire_name, payload.get(name))
            fields[name] = RawField(raw=None if value is None else str(value))
        return cls(**fields)


# ---------------------------------------------------------------------------
# Reconciled form state
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class FieldValue:
    """A field that resolved to a typed value."""

    value: Any


@dataclass(frozen=True)
class FieldUnset:
    """A field that needs manual input, with the reason."""

    warning: Warning


FieldResult = Union[FieldValue, FieldUnset]


@dataclass
class ReconciledForm:
    ticket_number: FieldResult
    booking_reference: FieldResult
    agent_id: FieldResult
    amount: FieldResult
    date: FieldResult
    warnings: list[Warning] = field(default_factory=list)

    def values(self) -> dict[str, Any]:
        """Form values keyed by field name; unset fields map to None."""
        return {
            name: result.value if isinstance(result, FieldValue) else None
            for name, result in ((name, getattr(self, name)) for name in FORM_FIELDS)
        }

    def unset_fields(self) -> list[str]:
        return [name for name in FORM_FIELDS if isinstance(getattr(self, name), FieldUnset)]
