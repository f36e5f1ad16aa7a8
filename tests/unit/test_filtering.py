"""Unit tests for order visibility, search, date ranges and sorting."""
from datetime import datetime, timedelta

import pytest

from waiterboard.services.filtering.bundle import DateFilter, FilterBundle
from waiterboard.services.filtering.engine import (
    FilterContext,
    is_visible_in_active,
    is_within_date_range,
    matches_search,
    parse_timestamp,
    passes_assignment_filter,
    sort_orders,
)
from waiterboard.services.orders.models import Order
from tests.conftest import make_order

NOW = datetime(2026, 7, 10, 12, 0).astimezone()


def _order(order_id, **kwargs):
    return Order.model_validate(make_order(order_id, **kwargs))


def _ctx(bundle=None, orders=None, **kwargs):
    return FilterContext(
        bundle=bundle or FilterBundle(date_filter=DateFilter.ALL),
        employee_id=kwargs.pop("employee_id", 5),
        orders=orders or [],
        now=NOW,
        **kwargs,
    )


class TestPaidSessionExclusion:
    """Test orders of paid sessions never reach the active tab."""

    @pytest.mark.parametrize(
        "bundle",
        [
            FilterBundle(date_filter=DateFilter.ALL),
            FilterBundle(
                session_statuses={"open", "paid", "closed"},
                workflow_statuses={"new", "queued", "preparing", "ready", "delivered", "paid"},
                date_filter=DateFilter.ALL,
            ),
            FilterBundle(
                show_my_orders=False,
                show_unassigned_orders=False,
                session_statuses={"paid"},
                date_filter=DateFilter.ALL,
            ),
            FilterBundle(starred={1}, search_term="1", date_filter=DateFilter.ALL),
        ],
    )
    @pytest.mark.parametrize("session_status", ["paid", "closed"])
    def test_paid_session_hidden(self, bundle, session_status):
        """Test a paid session hides its orders under any filter configuration."""
        order = _order(1, status="delivered", session_status=session_status, waiter_id=5)

        assert is_visible_in_active(order, _ctx(bundle, [order])) is False

    def test_open_session_visible(self):
        """Test the same order in an open session is visible."""
        order = _order(1, status="delivered", waiter_id=5)

        assert is_visible_in_active(order, _ctx(orders=[order])) is True


class TestActiveVisibility:
    """Test the remaining active-tab rules."""

    def test_archived_hidden(self):
        """Test archived orders are hidden."""
        order = _order(1)

        assert is_visible_in_active(order, _ctx(archived_ids={1})) is False

    def test_cancelled_hidden(self):
        """Test cancelled orders never show in the active tab."""
        order = _order(1, status="cancelled")
        bundle = FilterBundle(
            workflow_statuses={"cancelled", "new"}, date_filter=DateFilter.ALL
        )

        assert is_visible_in_active(order, _ctx(bundle)) is False

    def test_status_checkboxes(self):
        """Test session and workflow status selections apply."""
        bundle = FilterBundle(workflow_statuses={"ready"}, date_filter=DateFilter.ALL)

        assert is_visible_in_active(_order(1, status="ready"), _ctx(bundle)) is True
        assert is_visible_in_active(_order(2, status="preparing", waiter_id=5), _ctx(bundle)) is False

    def test_date_range_applies(self):
        """Test old orders fall out of today's view."""
        old = _order(1, created_at=(NOW - timedelta(days=2)).isoformat())

        assert is_visible_in_active(old, _ctx(FilterBundle())) is False


class TestAssignmentFilter:
    """Test the my-orders and unassigned toggles."""

    def test_new_orders_always_pass(self):
        """Test orders waiting for a waiter are never hidden by assignment."""
        bundle = FilterBundle(show_unassigned_orders=False)

        assert passes_assignment_filter(_order(1, waiter_id=9), _ctx(bundle)) is True

    def test_only_mine(self):
        """Test only my orders pass when unassigned orders are hidden."""
        bundle = FilterBundle(show_unassigned_orders=False)

        assert passes_assignment_filter(_order(1, status="queued", waiter_id=5), _ctx(bundle))
        assert not passes_assignment_filter(_order(2, status="queued", waiter_id=9), _ctx(bundle))
        assert not passes_assignment_filter(_order(3, status="queued"), _ctx(bundle))

    def test_unassigned_limited_to_my_tables(self):
        """Test unassigned orders are limited to assigned tables when there are any."""
        bundle = FilterBundle(show_my_orders=False)
        ctx = _ctx(bundle, assigned_tables={"M02"})

        assert passes_assignment_filter(_order(1, status="queued", table="M02"), ctx)
        assert not passes_assignment_filter(_order(2, status="queued", table="M09"), ctx)

    def test_starred_passes(self):
        """Test starred orders of other waiters pass."""
        bundle = FilterBundle(show_unassigned_orders=False, starred={4})

        assert passes_assignment_filter(_order(4, status="queued", waiter_id=9), _ctx(bundle))

    def test_sibling_of_my_order(self):
        """Test another waiter's order passes when I hold an order of the same session."""
        bundle = FilterBundle(show_unassigned_orders=False)
        mine = _order(1, status="queued", session_id=3, waiter_id=5)
        other = _order(2, status="queued", session_id=3, waiter_id=9)
        elsewhere = _order(3, status="queued", session_id=4, waiter_id=9)
        ctx = _ctx(bundle, [mine, other, elsewhere])

        assert passes_assignment_filter(other, ctx)
        assert not passes_assignment_filter(elsewhere, ctx)

    def test_toggles_off_show_everything(self):
        """Test both toggles off disables the assignment filter."""
        bundle = FilterBundle(show_my_orders=False, show_unassigned_orders=False)

        assert passes_assignment_filter(_order(1, status="queued", waiter_id=9), _ctx(bundle))

    def test_search_bypasses_assignment(self):
        """Test an active search shows every matching order."""
        bundle = FilterBundle(show_unassigned_orders=False, search_term="luis")

        assert passes_assignment_filter(_order(1, status="queued", waiter_id=9), _ctx(bundle))


class TestSearch:
    """Test the search term."""

    def test_search_five(self):
        """Test '5' matches id 5 and table M05 but not an unrelated order."""
        by_id = _order(5, table="M01")
        by_table = _order(12, table="M05")
        unrelated = _order(13, table="M01")
        bundle = FilterBundle(search_term="5", date_filter=DateFilter.ALL)
        ctx = _ctx(bundle, [by_id, by_table, unrelated])

        visible = [order.id for order in (by_id, by_table, unrelated) if is_visible_in_active(order, ctx)]

        assert visible == [5, 12]

    def test_customer_and_notes(self):
        """Test customer names and waiter notes are searched case-insensitively."""
        order = _order(1, waiter_notes="No onions")
        order = order.model_copy(update={"customer": order.customer.model_copy(update={"name": "Marta"})})

        assert matches_search(order, "marta")
        assert matches_search(order, "ONIONS")
        assert not matches_search(order, "garlic")

    def test_empty_term(self):
        """Test an empty term matches everything."""
        assert matches_search(_order(1), "")

    def test_bundle_normalizes_term(self):
        """Test search terms are stored trimmed and lower-cased."""
        assert FilterBundle(search_term="  M05 ").search_term == "m05"


class TestDateRange:
    """Test date presets."""

    def test_today(self):
        """Test the today preset starts at local midnight."""
        assert is_within_date_range((NOW - timedelta(hours=1)).isoformat(), DateFilter.TODAY, now=NOW)
        assert not is_within_date_range((NOW - timedelta(days=1)).isoformat(), DateFilter.TODAY, now=NOW)

    def test_last7(self):
        """Test the last-7-days preset includes today."""
        assert is_within_date_range((NOW - timedelta(days=6)).isoformat(), DateFilter.LAST7, now=NOW)
        assert not is_within_date_range((NOW - timedelta(days=8)).isoformat(), DateFilter.LAST7, now=NOW)

    def test_custom_days(self):
        """Test the custom preset uses its day count."""
        assert is_within_date_range((NOW - timedelta(days=1)).isoformat(), DateFilter.CUSTOM, 2, NOW)
        assert not is_within_date_range((NOW - timedelta(days=3)).isoformat(), DateFilter.CUSTOM, 2, NOW)

    def test_all_and_missing(self):
        """Test the all preset and missing timestamps always pass."""
        assert is_within_date_range("2001-01-01T00:00:00Z", DateFilter.ALL, now=NOW)
        assert is_within_date_range(None, DateFilter.TODAY, now=NOW)
        assert is_within_date_range("garbage", DateFilter.TODAY, now=NOW)

    def test_parse_timestamp(self):
        """Test UTC suffixes and naive values are parsed as aware datetimes."""
        assert parse_timestamp("2026-07-10T10:00:00Z").utcoffset() == timedelta(0)
        assert parse_timestamp("2026-07-10T10:00:00").tzinfo is not None
        assert parse_timestamp("") is None


class TestSortOrders:
    """Test active-tab ordering."""

    def test_starred_then_mine_then_newest(self):
        """Test starred orders lead, then mine, then higher ids."""
        orders = [
            _order(1, waiter_id=5),
            _order(2),
            _order(3, waiter_id=9),
            _order(4),
            _order(5, waiter_id=5),
        ]

        result = sort_orders(orders, starred={3}, employee_id=5)

        assert [order.id for order in result] == [3, 5, 1, 4, 2]

    def test_equal_rank_higher_id_first(self):
        """Test equal-rank orders are always ordered by descending id."""
        orders = [_order(order_id) for order_id in (4, 11, 7, 2)]

        for attempt in (orders, list(reversed(orders))):
            assert [order.id for order in sort_orders(attempt, set(), 5)] == [11, 7, 4, 2]

    def test_no_employee(self):
        """Test nothing counts as mine without an employee."""
        orders = [_order(1, waiter_id=None), _order(2, waiter_id=None)]

        assert [order.id for order in sort_orders(orders, set(), None)] == [2, 1]
