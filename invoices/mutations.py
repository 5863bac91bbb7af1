"""Mutation orchestrator — create, update and delete with refetch-on-success.

Each mutation walks ``IDLE -> IN_FLIGHT -> SUCCEEDED | FAILED``. Nothing is
applied to the cached collection speculatively: a success triggers a full
refetch, a failure leaves local state exactly as it was.

Known limitations:

* concurrent edits of the same record from two sessions are not coordinated
  (last write wins, there is no version check);
* ``create`` has no idempotency key, so a caller retrying it blindly will
  store the invoice twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol

from pydantic import ValidationError

from .collection import InvoiceCollection
from .errors import NotFound, PendingInvoiceError, StoreUnavailable, StoreWriteError
from .models import FORM_FIELDS, Invoice, InvoiceDraft
from .notices import STORE_UNAVAILABLE_TITLE, Notifier

logger = logging.getLogger(__name__)


class InvoiceWriter(Protocol):
    async def create(self, draft: InvoiceDraft) -> Invoice: ...

    async def update(self, invoice: Invoice) -> None: ...

    async def delete(self, invoice_id: str) -> None: ...


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MutationState(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class Mutation:
    kind: MutationKind
    target: str
    state: MutationState = MutationState.IDLE
    result: Optional[Invoice] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.state == MutationState.SUCCEEDED


@dataclass
class EditSession:
    """The open edit dialog: the record being edited plus in-progress values."""

    invoice: Invoice
    values: dict[str, Any]
    errors: dict[str, str] = field(default_factory=dict)


def validation_messages(error: ValidationError) -> dict[str, str]:
    """Flatten pydantic errors into ``{field: message}``."""
    messages: dict[str, str] = {}
    for item in error.errors():
        name = str(item["loc"][0]) if item["loc"] else "__root__"
        messages.setdefault(name, item["msg"])
    return messages


def _edit_values(invoice: Invoice) -> dict[str, Any]:
    values = {name: getattr(invoice, name) for name in FORM_FIELDS}
    # The dialog only accepts canonical dates; anything else must be re-picked
    try:
        values["date"] = date.fromisoformat(invoice.date)
    except ValueError:
        values["date"] = None
    return values


class MutationOrchestrator:
    def __init__(
        self,
        store: InvoiceWriter,
        collection: InvoiceCollection,
        notifier: Optional[Notifier] = None,
    ):
        self._store = store
        self._collection = collection
        self.notifier = notifier or Notifier()
        self._mutations: dict[tuple[MutationKind, str], Mutation] = {}
        self.edit: Optional[EditSession] = None
        self.pending_delete: Optional[Invoice] = None

    def state_of(self, kind: MutationKind, target: str) -> MutationState:
        mutation = self._mutations.get((kind, target))
        return mutation.state if mutation else MutationState.IDLE

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    async def create(self, draft: InvoiceDraft) -> Mutation:
        return await self._run(
            MutationKind.CREATE,
            "new",
            lambda: self._store.create(draft),
            success=("Invoice Added", f"Invoice {draft.ticket_number} saved successfully."),
            failure=("Error Saving Invoice", "Failed to save the new invoice. Please try again."),
        )

    # -----------------------------------------------------------------------
    # Update (edit dialog)
    # -----------------------------------------------------------------------

    def begin_edit(self, invoice: Invoice) -> EditSession:
        if invoice.is_pending:
            raise PendingInvoiceError("Cannot edit an invoice that has not been saved yet")
        self.edit = EditSession(invoice=invoice, values=_edit_values(invoice))
        return self.edit

    def close_edit(self) -> None:
        self.edit = None

    async def save_edit(self, values: Optional[Mapping[str, Any]] = None) -> Optional[Mutation]:
        """Validate the dialog and send a full replace.

        Returns None when validation fails (no store call). On a store failure
        the dialog stays open with the user's values untouched.
        """
        session = self.edit
        if session is None:
            raise RuntimeError("No invoice is being edited")
        if values:
            session.values.update({k: v for k, v in values.items() if k in FORM_FIELDS})

        try:
            draft = InvoiceDraft.model_validate(session.values)
        except ValidationError as e:
            session.errors = validation_messages(e)
            return None
        session.errors = {}

        updated = draft.to_invoice(session.invoice.id)
        mutation = await self._run(
            MutationKind.UPDATE,
            session.invoice.id,
            lambda: self._store.update(updated),
            success=("Invoice Updated", f"Invoice {updated.ticket_number} updated successfully."),
            failure=("Error Updating Invoice", "Could not update the invoice. Please try again."),
        )
        if mutation.succeeded and self.edit is session:
            self.edit = None
        return mutation

    # -----------------------------------------------------------------------
    # Delete (two-step)
    # -----------------------------------------------------------------------

    def request_delete(self, invoice: Invoice) -> None:
        if invoice.is_pending:
            raise PendingInvoiceError("Cannot delete an invoice that has not been saved yet")
        self.pending_delete = invoice

    def cancel_delete(self) -> None:
        self.pending_delete = None

    async def confirm_delete(self) -> Optional[Mutation]:
        invoice, self.pending_delete = self.pending_delete, None
        if invoice is None:
            return None
        return await self._run(
            MutationKind.DELETE,
            invoice.id,
            lambda: self._store.delete(invoice.id),
            success=("Invoice Deleted", f"Invoice (ID: {invoice.id}) has been deleted."),
            failure=("Error Deleting Invoice", "Could not delete the invoice. Please try again."),
        )

    # -----------------------------------------------------------------------
    # Shared state machine
    # -----------------------------------------------------------------------

    async def _run(
        self,
        kind: MutationKind,
        target: str,
        call: Callable[[], Awaitable[Any]],
        success: tuple[str, str],
        failure: tuple[str, str],
    ) -> Mutation:
        key = (kind, target)
        current = self._mutations.get(key)
        if current is not None and current.state == MutationState.IN_FLIGHT:
            logger.info("Skipping %s of %s: already in flight", kind.value, target)
            return current

        mutation = Mutation(kind=kind, target=target, state=MutationState.IN_FLIGHT)
        self._mutations[key] = mutation

        try:
            result = await call()
        except StoreUnavailable as e:
            mutation.state, mutation.error = MutationState.FAILED, e
            logger.error("%s of %s failed, store unavailable: %s", kind.value, target, e)
            self.notifier.banner(STORE_UNAVAILABLE_TITLE, str(e))
            return mutation
        except StoreWriteError as e:
            mutation.state, mutation.error = MutationState.FAILED, e
            if isinstance(e, NotFound):
                logger.warning("%s of %s failed: %s", kind.value, target, e)
            else:
                logger.exception("%s of %s failed", kind.value, target)
            self.notifier.error(*failure)
            return mutation

        mutation.state = MutationState.SUCCEEDED
        mutation.result = result if isinstance(result, Invoice) else None
        logger.info("%s of %s succeeded", kind.value, target)
        self.notifier.info(*success)
        await self._refresh()
        return mutation

    async def _refresh(self) -> None:
        try:
            await self._collection.refresh()
        except StoreUnavailable as e:
            logger.error("Refetch after mutation failed: %s", e)
            self.notifier.banner(STORE_UNAVAILABLE_TITLE, str(e))
