"""Tests for the mutation orchestrator: create, edit and two-step delete."""

from datetime import date

import pytest

from api.store import InvoiceStore
from invoices.collection import InvoiceCollection
from invoices.errors import PendingInvoiceError, StoreUnavailable
from invoices.models import Invoice, InvoiceDraft
from invoices.mutations import MutationKind, MutationOrchestrator, MutationState
from invoices.notices import STORE_UNAVAILABLE_TITLE, NoticeVariant


@pytest.fixture
async def store(tmp_path):
    store = InvoiceStore(f"sqlite+aiosqlite:///{tmp_path / 'invoices.db'}")
    await store.init()
    yield store
    await store.close()


@pytest.fixture
async def seeded(store):
    await store.create(_draft("T123", "A001", 150.75, date(2024, 7, 1)))
    await store.create(_draft("T124", "A002", 230.00, date(2024, 7, 5)))
    collection = InvoiceCollection(store)
    await collection.refresh()
    return collection


def _draft(ticket="T200", agent="A001", amount=42.0, day=date(2024, 7, 20)):
    return InvoiceDraft(ticket_number=ticket, booking_reference=f"B-{ticket}", agent_id=agent, amount=amount, date=day)


def _titles(notifier):
    return [n.title for n in notifier.notices]


class UnavailableStore:
    """Store whose backend is down for every call."""

    def __init__(self):
        self.calls = 0

    async def list_all(self):
        raise StoreUnavailable("down")

    async def create(self, draft):
        self.calls += 1
        raise StoreUnavailable("down")

    async def update(self, invoice):
        self.calls += 1
        raise StoreUnavailable("down")

    async def delete(self, invoice_id):
        self.calls += 1
        raise StoreUnavailable("down")


class TestCreate:
    async def test_success_refetches(self, store, seeded):
        orchestrator = MutationOrchestrator(store, seeded)
        mutation = await orchestrator.create(_draft())

        assert mutation.state == MutationState.SUCCEEDED
        assert mutation.result.id
        assert len(seeded) == 3
        assert mutation.result in seeded.snapshot()
        assert _titles(orchestrator.notifier) == ["Invoice Added"]
        assert orchestrator.notifier.notices[0].description == "Invoice T200 saved successfully."

    async def test_store_unavailable_raises_banner(self):
        store = UnavailableStore()
        collection = InvoiceCollection(store)
        orchestrator = MutationOrchestrator(store, collection)

        mutation = await orchestrator.create(_draft())
        assert mutation.state == MutationState.FAILED
        assert isinstance(mutation.error, StoreUnavailable)
        (notice,) = orchestrator.notifier.notices
        assert notice.title == STORE_UNAVAILABLE_TITLE
        assert notice.persistent is True

    async def test_state_tracked_per_target(self, store, seeded):
        orchestrator = MutationOrchestrator(store, seeded)
        assert orchestrator.state_of(MutationKind.CREATE, "new") == MutationState.IDLE
        await orchestrator.create(_draft())
        assert orchestrator.state_of(MutationKind.CREATE, "new") == MutationState.SUCCEEDED


class TestEdit:
    async def test_edit_opens_with_current_values(self, store, seeded):
        orchestrator = MutationOrchestrator(store, seeded)
        target = next(inv for inv in seeded.snapshot() if inv.ticket_number == "T123")

        session = orchestrator.begin_edit(target)
        assert session.values["agent_id"] == "A001"
        assert session.values["date"] == date(2024, 7, 1)

    async def test_save_replaces_and_closes(self, store, seeded):
        orchestrator = MutationOrchestrator(store, seeded)
        target = next(inv for inv in seeded.snapshot() if inv.ticket_number == "T123")

        orchestrator.begin_edit(target)
        mutation = await orchestrator.save_edit({"amount": 175.0})

        assert mutation.succeeded
        assert orchestrator.edit is None
        updated = next(inv for inv in seeded.snapshot() if inv.id == target.id)
        assert updated.amount == 175.0
        assert updated.ticket_number == "T123"
        assert _titles(orchestrator.notifier) == ["Invoice Updated"]

    async def test_invalid_values_make_no_call(self, store, seeded):
        orchestrator = MutationOrchestrator(store, seeded)
        target = seeded.snapshot()[0]

        orchestrator.begin_edit(target)
        mutation = await orchestrator.save_edit({"amount": 0, "ticket_number": ""})

        assert mutation is None
        assert set(orchestrator.edit.errors) == {"amount", "ticket_number"}
        assert orchestrator.notifier.notices == []
        assert seeded.snapshot()[0] == target

    async def test_not_found_keeps_dialog_and_collection(self, store, seeded):
        """A record deleted elsewhere: error notice, dialog still open with the user's values."""
        orchestrator = MutationOrchestrator(store, seeded)
        target = next(inv for inv in seeded.snapshot() if inv.ticket_number == "T124")
        before = seeded.snapshot()

        await store.delete(target.id)
        orchestrator.begin_edit(target)
        mutation = await orchestrator.save_edit({"agent_id": "A777"})

        assert mutation.state == MutationState.FAILED
        assert seeded.snapshot() == before
        assert orchestrator.edit is not None
        assert orchestrator.edit.values["agent_id"] == "A777"
        (notice,) = orchestrator.notifier.notices
        assert notice.title == "Error Updating Invoice"
        assert notice.variant == NoticeVariant.DESTRUCTIVE

    async def test_pending_invoice_cannot_be_edited(self, store, seeded):
        orchestrator = MutationOrchestrator(store, seeded)
        with pytest.raises(PendingInvoiceError):
            orchestrator.begin_edit(_draft().to_invoice())

    async def test_corrupt_stored_date_must_be_repicked(self, store, seeded):
        orchestrator = MutationOrchestrator(store, seeded)
        broken = Invoice(id="x", ticket_number="T1", booking_reference="B1", agent_id="A1", amount=1.0, date="garbage")
        session = orchestrator.begin_edit(broken)
        assert session.values["date"] is None

    async def test_save_without_open_dialog(self, store, seeded):
        orchestrator = MutationOrchestrator(store, seeded)
        with pytest.raises(RuntimeError):
            await orchestrator.save_edit()


class TestDelete:
    async def test_cancel_makes_no_call(self):
        store = UnavailableStore()
        orchestrator = MutationOrchestrator(store, InvoiceCollection(store))
        target = Invoice(id="abc", ticket_number="T1", booking_reference="B1", agent_id="A1", amount=1.0, date="2024-07-01")

        orchestrator.request_delete(target)
        assert orchestrator.pending_delete == target
        orchestrator.cancel_delete()

        assert orchestrator.pending_delete is None
        assert await orchestrator.confirm_delete() is None
        assert store.calls == 0

    async def test_confirm_removes_and_refetches(self, store, seeded):
        orchestrator = MutationOrchestrator(store, seeded)
        target = seeded.snapshot()[0]

        orchestrator.request_delete(target)
        mutation = await orchestrator.confirm_delete()

        assert mutation.succeeded
        assert target not in seeded.snapshot()
        assert len(seeded) == 1
        assert orchestrator.notifier.notices[0].description == f"Invoice (ID: {target.id}) has been deleted."

    async def test_prompt_closes_on_failure(self, store, seeded):
        orchestrator = MutationOrchestrator(store, seeded)
        target = seeded.snapshot()[0]
        await store.delete(target.id)

        orchestrator.request_delete(target)
        mutation = await orchestrator.confirm_delete()

        assert mutation.state == MutationState.FAILED
        assert orchestrator.pending_delete is None
        assert _titles(orchestrator.notifier) == ["Error Deleting Invoice"]
        # No refetch after a failure: the stale record is still cached
        assert target in seeded.snapshot()

    async def test_pending_invoice_cannot_be_deleted(self, store, seeded):
        orchestrator = MutationOrchestrator(store, seeded)
        with pytest.raises(PendingInvoiceError):
            orchestrator.request_delete(_draft().to_invoice())


class TestCollection:
    async def test_load_failure_becomes_banner(self):
        from invoices.notices import Notifier

        collection = InvoiceCollection(UnavailableStore())
        notifier = Notifier()

        assert await collection.load(notifier) is False
        assert await collection.load(notifier) is False
        assert collection.loaded is False
        # Banners are not repeated
        assert len(notifier.banners) == 1

    async def test_refresh_replaces_snapshot(self, store, seeded):
        first = seeded.snapshot()
        await store.create(_draft())
        await seeded.refresh()
        assert seeded.snapshot() is not first
        assert len(first) == 2
        assert len(seeded) == 3
