"""Single-writer cache of the invoice collection."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from .errors import StoreUnavailable
from .models import Invoice
from .notices import STORE_UNAVAILABLE_TITLE, Notifier

logger = logging.getLogger(__name__)


class InvoiceReader(Protocol):
    async def list_all(self) -> Sequence[Invoice]: ...


class InvoiceCollection:
    """Cached, possibly stale copy of the record store.

    Replaced wholesale by ``refresh()``; never patched locally. Readers call
    ``snapshot()`` and get an immutable tuple, so a refresh landing between two
    renders cannot change a sequence someone is iterating over.
    """

    def __init__(self, store: InvoiceReader):
        self._store = store
        self._items: tuple[Invoice, ...] = ()
        self.loaded = False

    def snapshot(self) -> tuple[Invoice, ...]:
        return self._items

    def __len__(self) -> int:
        return len(self._items)

    async def refresh(self) -> tuple[Invoice, ...]:
        """Refetch every record. Raises ``StoreUnavailable`` and keeps the old copy on failure."""
        items = tuple(await self._store.list_all())
        self._items = items
        self.loaded = True
        logger.info("Invoice collection refreshed: %d records", len(items))
        return items

    async def load(self, notifier: Notifier) -> bool:
        """Initial fetch for a view; converts a store outage into a banner."""
        try:
            await self.refresh()
            return True
        except StoreUnavailable as e:
            logger.error("Could not load invoices: %s", e)
            notifier.banner(STORE_UNAVAILABLE_TITLE, str(e))
            return False
