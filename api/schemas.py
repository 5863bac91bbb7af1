"""Pydantic schemas for API requests and responses."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from pydantic import BaseModel, Field

from invoices.listing import InvoiceRow, InvoiceView, SortDirection, SortKey
from invoices.notices import Notice


class NoticeResponse(BaseModel):
    title: str
    description: str
    variant: str
    persistent: bool

    @classmethod
    def from_notice(cls, notice: Notice) -> "NoticeResponse":
        return cls(**notice.to_dict())


class InvoiceResponse(BaseModel):
    id: Optional[str] = None
    ticket_number: str
    booking_reference: str
    agent_id: str
    amount: float
    date: str
    amount_display: str
    date_display: str
    can_edit: bool = False

    @classmethod
    def from_row(cls, row: InvoiceRow) -> "InvoiceResponse":
        return cls(
            **row.invoice.model_dump(),
            amount_display=row.amount_display,
            date_display=row.date_display,
            can_edit=row.can_mutate,
        )


class InvoiceListResponse(BaseModel):
    invoices: list[InvoiceResponse]
    total: int
    sort: SortKey
    direction: SortDirection
    empty_message: Optional[str] = None
    notices: list[NoticeResponse] = Field(default_factory=list)

    @classmethod
    def from_view(cls, view: InvoiceView, notices: list[Notice]) -> "InvoiceListResponse":
        return cls(
            invoices=[InvoiceResponse.from_row(row) for row in view.rows],
            total=view.total,
            sort=view.sort.key,
            direction=view.sort.direction,
            empty_message=view.empty_message,
            notices=[NoticeResponse.from_notice(n) for n in notices],
        )


class InvoiceFormRequest(BaseModel):
    """Raw form input; validated by the form, not by the route."""
    ticket_number: Optional[str] = None
    booking_reference: Optional[str] = None
    agent_id: Optional[str] = None
    amount: Optional[float] = None
    date: Optional[dt.date] = None


class MutationResponse(BaseModel):
    state: str
    invoice: Optional[dict[str, Any]] = None
    errors: dict[str, str] = Field(default_factory=dict)
    notices: list[NoticeResponse] = Field(default_factory=list)


class ExtractionResponse(BaseModel):
    success: bool
    file_name: Optional[str] = None
    values: dict[str, Any] = Field(default_factory=dict)
    unset_fields: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    notices: list[NoticeResponse] = Field(default_factory=list)


class LoginRequest(BaseModel):
    username: str
    password: Optional[str] = None


class SessionResponse(BaseModel):
    authenticated: bool
    notices: list[NoticeResponse] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
    service: str
    store_configured: bool
    extraction_configured: bool
    banners: list[NoticeResponse] = Field(default_factory=list)
