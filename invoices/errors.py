"""Error taxonomy shared by the store, extraction and mutation layers."""

from __future__ import annotations


class InvoiceDeskError(Exception):
    """Base class for every failure raised by the invoice desk."""


# ---------------------------------------------------------------------------
# Record store
# ---------------------------------------------------------------------------

class StoreUnavailable(InvoiceDeskError):
    """The record store is not configured or cannot be reached.

    Fatal to every data operation until the deployment is reconfigured, so it
    is surfaced as a persistent banner rather than a toast.
    """


class StoreWriteError(InvoiceDeskError):
    """The record store rejected a create, update or delete."""


class NotFound(StoreWriteError):
    """An update or delete targeted an id the store does not hold."""

    def __init__(self, invoice_id: str):
        super().__init__(f"Invoice with id {invoice_id} not found")
        self.invoice_id = invoice_id


class PendingInvoiceError(InvoiceDeskError):
    """A mutation was attempted on an invoice that has no id yet."""


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class ExtractionError(InvoiceDeskError):
    """The extraction call failed as a whole (transport, model or parse)."""


class DateParseWarning(UserWarning):
    """A raw extracted date could not be turned into a calendar date.

    Collected on the reconciled form and shown to the user; never raised.
    """

    def __init__(self, raw: str | None):
        super().__init__(f"Could not parse date from invoice: {raw!r}")
        self.raw = raw


class FieldNeedsInputWarning(UserWarning):
    """An extracted field was missing or could not be coerced; the user must fill it in."""

    def __init__(self, field: str, raw: str | None):
        super().__init__(f"{field} needs manual input (extracted value: {raw!r})")
        self.field = field
        self.raw = raw
