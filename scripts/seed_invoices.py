"""Seed the invoice store with the sample travel invoices used in demos."""

import asyncio
import logging
import os
import sys
from datetime import date

# Add the project root to sys.path so we can import api modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dotenv import load_dotenv

from api.store import InvoiceStore
from invoices.models import InvoiceDraft

logger = logging.getLogger("seed_invoices")

SAMPLE_INVOICES = [
    {"ticket_number": "T123", "booking_reference": "BR456", "agent_id": "A001", "amount": 150.75, "date": date(2024, 7, 1)},
    {"ticket_number": "T124", "booking_reference": "BR457", "agent_id": "A002", "amount": 230.00, "date": date(2024, 7, 5)},
    {"ticket_number": "T125", "booking_reference": "BR458", "agent_id": "A001", "amount": 99.99, "date": date(2024, 7, 10)},
    {"ticket_number": "T126", "booking_reference": "BR459", "agent_id": "A003", "amount": 500.00, "date": date(2024, 7, 12)},
    {"ticket_number": "T127", "booking_reference": "BR460", "agent_id": "A002", "amount": 120.50, "date": date(2024, 7, 15)},
]


async def seed_invoices():
    store = InvoiceStore()
    await store.init()
    try:
        existing = {inv.ticket_number for inv in await store.list_all()}
        for sample in SAMPLE_INVOICES:
            if sample["ticket_number"] in existing:
                logger.info("Skipping %s: already present", sample["ticket_number"])
                continue
            created = await store.create(InvoiceDraft(**sample))
            logger.info("Inserted %s as %s", created.ticket_number, created.id)
    finally:
        await store.close()

    print("Sample invoice data inserted successfully.")


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s")
    asyncio.run(seed_invoices())
