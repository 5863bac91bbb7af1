"""Tests for the list engine: filtering, search, sort and display."""

from datetime import date

from invoices.listing import (
    EMPTY_MESSAGE,
    AgentFilter,
    SortDirection,
    SortKey,
    SortState,
    amount_search_text,
    derive_admin_view,
    derive_agent_view,
    filter_for_agent,
    format_amount,
    search_for_admin,
    sort_invoices,
)
from invoices.models import Invoice


def _inv(id, ticket, agent, amount, day, booking=None):
    return Invoice(
        id=id,
        ticket_number=ticket,
        booking_reference=booking or f"BR{id}",
        agent_id=agent,
        amount=amount,
        date=day,
    )


SEED = (
    _inv("1", "T123", "A001", 150.75, "2024-07-01", "BR456"),
    _inv("2", "T124", "A002", 230.00, "2024-07-05", "BR457"),
    _inv("3", "T125", "A001", 99.99, "2024-07-10", "BR458"),
    _inv("4", "T126", "A003", 500.00, "2024-07-12", "BR459"),
    _inv("5", "T127", "A002", 120.50, "2024-07-15", "BR460"),
)


def _tickets(invoices):
    return [inv.ticket_number for inv in invoices]


class TestAgentFilter:
    def test_agent_id_is_case_insensitive_substring(self):
        result = filter_for_agent(SEED, AgentFilter(agent_id="a001"))
        assert _tickets(result) == ["T123", "T125"]

    def test_inclusive_date_range(self):
        """Both ends of the range are included."""
        criteria = AgentFilter(date_from=date(2024, 7, 5), date_to=date(2024, 7, 12))
        assert _tickets(filter_for_agent(SEED, criteria)) == ["T124", "T125", "T126"]

    def test_range_inside_seed(self):
        criteria = AgentFilter(date_from=date(2024, 7, 2), date_to=date(2024, 7, 10))
        assert _tickets(filter_for_agent(SEED, criteria)) == ["T124", "T125"]

    def test_open_ended_range(self):
        assert _tickets(filter_for_agent(SEED, AgentFilter(date_from=date(2024, 7, 12)))) == ["T126", "T127"]
        assert _tickets(filter_for_agent(SEED, AgentFilter(date_to=date(2024, 7, 1)))) == ["T123"]

    def test_empty_filter_keeps_everything(self):
        assert filter_for_agent(SEED, AgentFilter()) == list(SEED)
        assert filter_for_agent(SEED, None) == list(SEED)

    def test_unparseable_date_excluded_from_range(self):
        broken = _inv("9", "T999", "A001", 10.0, "not a date")
        result = filter_for_agent(SEED + (broken,), AgentFilter(date_from=date(2024, 1, 1)))
        assert "T999" not in _tickets(result)

    def test_input_not_mutated(self):
        snapshot = list(SEED)
        filter_for_agent(snapshot, AgentFilter(agent_id="A002"))
        assert snapshot == list(SEED)


class TestAdminSearch:
    def test_search_by_amount_text(self):
        assert _tickets(search_for_admin(SEED, "150.75")) == ["T123"]

    def test_whole_amount_matches_without_decimals(self):
        assert amount_search_text(230.0) == "230"
        assert _tickets(search_for_admin(SEED, "230")) == ["T124"]

    def test_large_amount_written_out_in_full(self):
        big = _inv("9", "T999", "A001", 1e16, "2024-07-01")
        assert amount_search_text(1e16) == "10000000000000000"
        assert _tickets(search_for_admin((big,), "10000000000000000")) == ["T999"]

    def test_search_across_columns(self):
        assert _tickets(search_for_admin(SEED, "br459")) == ["T126"]
        assert _tickets(search_for_admin(SEED, "2024-07-1")) == ["T125", "T126", "T127"]
        assert _tickets(search_for_admin(SEED, "A002")) == ["T124", "T127"]

    def test_blank_term_matches_all(self):
        assert search_for_admin(SEED, "   ") == list(SEED)
        assert search_for_admin(SEED, None) == list(SEED)


class TestSort:
    def test_default_is_date_descending(self):
        state = SortState()
        assert state.key == SortKey.DATE
        assert state.direction == SortDirection.DESC
        assert _tickets(sort_invoices(SEED, state)) == ["T127", "T126", "T125", "T124", "T123"]

    def test_toggle_same_key_flips(self):
        state = SortState().toggle(SortKey.DATE)
        assert state == SortState(SortKey.DATE, SortDirection.ASC)
        assert state.toggle("date") == SortState(SortKey.DATE, SortDirection.DESC)

    def test_toggle_new_key_starts_ascending(self):
        state = SortState(SortKey.DATE, SortDirection.ASC).toggle(SortKey.AMOUNT)
        assert state == SortState(SortKey.AMOUNT, SortDirection.ASC)

    def test_amount_ascending(self):
        result = sort_invoices(SEED, SortState(SortKey.AMOUNT, SortDirection.ASC))
        assert [inv.amount for inv in result] == [99.99, 120.50, 150.75, 230.00, 500.00]

    def test_descending_reverses_ties(self):
        """Descending is the exact reverse of ascending, equal keys included."""
        tied = (
            _inv("a", "X1", "A1", 10.0, "2024-07-01"),
            _inv("b", "X2", "A1", 10.0, "2024-07-02"),
            _inv("c", "X3", "A1", 5.0, "2024-07-03"),
        )
        asc = sort_invoices(tied, SortState(SortKey.AMOUNT, SortDirection.ASC))
        desc = sort_invoices(tied, SortState(SortKey.AMOUNT, SortDirection.DESC))
        assert _tickets(asc) == ["X3", "X1", "X2"]
        assert desc == list(reversed(asc))

    def test_text_sort_ignores_case(self):
        mixed = (
            _inv("a", "t200", "A1", 1.0, "2024-07-01"),
            _inv("b", "T100", "A1", 1.0, "2024-07-01"),
        )
        result = sort_invoices(mixed, SortState(SortKey.TICKET_NUMBER, SortDirection.ASC))
        assert _tickets(result) == ["T100", "t200"]

    def test_accented_text_sorts_with_base_letter(self):
        """Accented names collate by their base letter, not after ``z``."""
        names = (
            _inv("a", "X1", "Zoe", 1.0, "2024-07-01"),
            _inv("b", "X2", "Émile", 1.0, "2024-07-01"),
            _inv("c", "X3", "adam", 1.0, "2024-07-01"),
        )
        result = sort_invoices(names, SortState(SortKey.AGENT_ID, SortDirection.ASC))
        assert [inv.agent_id for inv in result] == ["adam", "Émile", "Zoe"]

    def test_unparseable_dates_sort_last_ascending(self):
        broken = (
            _inv("x", "BAD1", "A1", 1.0, "garbage"),
            _inv("y", "BAD2", "A1", 1.0, ""),
        )
        result = sort_invoices(broken + SEED, SortState(SortKey.DATE, SortDirection.ASC))
        assert _tickets(result)[-2:] == ["BAD1", "BAD2"]
        assert _tickets(result)[:5] == ["T123", "T124", "T125", "T126", "T127"]

    def test_sort_does_not_mutate_input(self):
        snapshot = list(SEED)
        sort_invoices(snapshot, SortState(SortKey.AMOUNT, SortDirection.DESC))
        assert snapshot == list(SEED)


class TestViews:
    def test_agent_view_rows(self):
        view = derive_agent_view(SEED, AgentFilter(agent_id="A003"))
        assert view.total == 5
        (row,) = view.rows
        assert row.amount_display == "$500.00"
        assert row.date_display == "Jul 12, 2024"
        assert row.can_mutate is True
        assert view.empty_message is None

    def test_empty_result_message(self):
        view = derive_agent_view(SEED, AgentFilter(agent_id="Z999"))
        assert view.is_empty
        assert view.empty_message == EMPTY_MESSAGE

    def test_empty_snapshot(self):
        view = derive_admin_view((), "")
        assert view.rows == []
        assert view.empty_message == EMPTY_MESSAGE

    def test_invalid_date_display(self):
        view = derive_admin_view((_inv("x", "BAD", "A1", 1.0, "garbage"),))
        assert view.rows[0].date_display == "Invalid Date"

    def test_pending_invoice_cannot_be_mutated(self):
        pending = Invoice(ticket_number="T1", booking_reference="B1", agent_id="A1", amount=1.0, date="2024-07-01")
        view = derive_admin_view((pending,))
        assert view.rows[0].can_mutate is False

    def test_admin_view_search_and_sort(self):
        view = derive_admin_view(SEED, "a00", SortState(SortKey.AMOUNT, SortDirection.DESC))
        assert _tickets(row.invoice for row in view.rows) == ["T126", "T124", "T123", "T127", "T125"]

    def test_format_amount(self):
        assert format_amount(1234.5) == "$1,234.50"
        assert format_amount(0.1) == "$0.10"
