"""Record store adapter — the invoice collection behind typed failures.

The adapter never retries. ``create`` retried blindly by a caller stores the
invoice twice; callers own idempotency.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Union

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from invoices.errors import NotFound, PendingInvoiceError, StoreUnavailable, StoreWriteError
from invoices.models import Invoice, InvoiceDraft

from .database import InvoiceRecord, database_url, init_db, make_engine, make_sessionmaker

logger = logging.getLogger(__name__)

_NOT_CONFIGURED = (
    "Invoice store is not configured. Set DATABASE_URL "
    "(e.g. sqlite+aiosqlite:///./invoices.db) and restart the service."
)


def _validated(invoice: Invoice) -> Invoice:
    """Re-check an invoice against the submission rules before it is written."""
    try:
        InvoiceDraft.model_validate(invoice.model_dump(exclude={"id"}))
    except ValidationError as e:
        raise StoreWriteError(f"Invoice rejected: {e.error_count()} invalid field(s)") from e
    return invoice


class InvoiceStore:
    def __init__(self, url: Optional[str] = None):
        self.url = url if url is not None else database_url()
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None
        if self.url:
            self._engine = make_engine(self.url)
            self._sessionmaker = make_sessionmaker(self._engine)

    @property
    def is_configured(self) -> bool:
        return self._sessionmaker is not None

    def _sessions(self) -> async_sessionmaker:
        if self._sessionmaker is None:
            raise StoreUnavailable(_NOT_CONFIGURED)
        return self._sessionmaker

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def init(self) -> None:
        if self._engine is None:
            raise StoreUnavailable(_NOT_CONFIGURED)
        try:
            await init_db(self._engine)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Invoice store unreachable: {e}") from e

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    async def list_all(self) -> list[Invoice]:
        """Every invoice, newest date first. An empty store is an empty list."""
        sessions = self._sessions()
        try:
            async with sessions() as session:
                result = await session.execute(
                    select(InvoiceRecord).order_by(InvoiceRecord.date.desc(), InvoiceRecord.created_at.desc())
                )
                invoices = [record.to_invoice() for record in result.scalars().all()]
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Invoice store unreachable: {e}") from e
        logger.debug("Fetched %d invoices", len(invoices))
        return invoices

    async def create(self, invoice: Union[InvoiceDraft, Invoice]) -> Invoice:
        """Persist a new invoice and return a copy carrying its generated id."""
        if isinstance(invoice, InvoiceDraft):
            invoice = invoice.to_invoice()
        elif not invoice.is_pending:
            raise ValueError(f"Invoice already has id {invoice.id}; use update()")
        _validated(invoice)

        sessions = self._sessions()
        created = invoice.model_copy(update={"id": uuid.uuid4().hex})
        try:
            async with sessions() as session:
                record = InvoiceRecord(id=created.id)
                record.apply(created)
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            logger.exception("Insert of invoice %s failed", created.ticket_number)
            raise StoreWriteError(f"Could not save invoice {created.ticket_number}: {e}") from e

        logger.info("Created invoice %s (ticket %s)", created.id, created.ticket_number)
        return created

    async def update(self, invoice: Invoice) -> None:
        """Replace every field of an existing invoice; the id never changes."""
        if invoice.is_pending:
            raise PendingInvoiceError("Cannot update an invoice without an id")
        _validated(invoice)

        sessions = self._sessions()
        try:
            async with sessions() as session:
                record = await session.get(InvoiceRecord, invoice.id)
                if record is None:
                    raise NotFound(invoice.id)
                record.apply(invoice)
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Could not update invoice {invoice.id}: {e}") from e
        logger.info("Updated invoice %s", invoice.id)

    async def delete(self, invoice_id: str) -> None:
        """Permanently remove an invoice; unknown ids raise ``NotFound``."""
        sessions = self._sessions()
        try:
            async with sessions() as session:
                record = await session.get(InvoiceRecord, invoice_id)
                if record is None:
                    raise NotFound(invoice_id)
                await session.delete(record)
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Could not delete invoice {invoice_id}: {e}") from e
        logger.info("Deleted invoice %s", invoice_id)
