"""Database layer — SQLAlchemy async with SQLite (or PostgreSQL)."""

from __future__ import annotations

import os
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, Float, String
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from invoices.models import Invoice


def database_url() -> Optional[str]:
    """Connection URL from the environment; None means the store is unconfigured."""
    return os.getenv("DATABASE_URL") or None


# ---------------------------------------------------------------------------
# Async engine
# ---------------------------------------------------------------------------
def make_engine(url: str) -> AsyncEngine:
    return create_async_engine(url, echo=False)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


# ---------------------------------------------------------------------------
# ORM Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    pass


class InvoiceRecord(Base):
    __tablename__ = "invoices"

    id = Column(String(32), primary_key=True)
    ticket_number = Column(String(255), nullable=False)
    booking_reference = Column(String(255), nullable=False)
    agent_id = Column(String(255), nullable=False)
    amount = Column(Float, nullable=False)
    date = Column(String(32), nullable=False)  # YYYY-MM-DD

    created_at = Column(DateTime, default=datetime.utcnow)

    def to_invoice(self) -> Invoice:
        return Invoice(
            id=self.id,
            ticket_number=self.ticket_number,
            booking_reference=self.booking_reference,
            agent_id=self.agent_id,
            amount=self.amount,
            date=self.date,
        )

    def apply(self, invoice: Invoice) -> None:
        """Full replace of every stored field except the id."""
        self.ticket_number = invoice.ticket_number
        self.booking_reference = invoice.booking_reference
        self.agent_id = invoice.agent_id
        self.amount = invoice.amount
        self.date = invoice.date


# ---------------------------------------------------------------------------
# DB lifecycle
# ---------------------------------------------------------------------------
async def init_db(engine: AsyncEngine) -> None:
    """Create tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
