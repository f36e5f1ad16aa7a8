"""Unit tests for client state stores and dashboard preferences."""
import pytest

from waiterboard.services.filtering.bundle import DateFilter, FilterBundle
from waiterboard.services.state.memory import InMemoryStateStore
from waiterboard.services.state.preferences import (
    DATE_DAYS_KEY,
    DATE_FILTER_KEY,
    SESSION_FILTERS_KEY,
    SHOW_MY_ORDERS_KEY,
    STARRED_KEY,
    DashboardPreferences,
)
from waiterboard.services.state.sql import SqlStateStore


class TestInMemoryStateStore:
    """Test the in-memory store."""

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        """Test stored values cannot be mutated from outside."""
        store = InMemoryStateStore()
        value = [1, 2]
        await store.set("k", value)
        value.append(3)

        loaded = await store.get("k")
        loaded.append(4)

        assert await store.get("k") == [1, 2]

    @pytest.mark.asyncio
    async def test_delete_and_get_many(self):
        """Test deleting keys and reading several at once."""
        store = InMemoryStateStore({"a": 1, "b": 2})
        await store.delete("a")
        await store.delete("missing")

        assert await store.get_many(["a", "b", "c"]) == {"b": 2}


class TestSqlStateStore:
    """Test the SQLAlchemy store."""

    @pytest.mark.asyncio
    async def test_set_get_update_delete(self, test_session_factory):
        """Test the JSON value lifecycle of one key."""
        store = SqlStateStore(test_session_factory)

        assert await store.get(STARRED_KEY) is None
        await store.set(STARRED_KEY, [12])
        assert await store.get(STARRED_KEY) == [12]
        await store.set(STARRED_KEY, [3, 12])
        assert await store.get(STARRED_KEY) == [3, 12]
        await store.delete(STARRED_KEY)
        assert await store.get(STARRED_KEY) is None

    @pytest.mark.asyncio
    async def test_starred_survive_reload(self, test_session_factory):
        """Test starring order 12 is still there for a fresh preferences reader."""
        await DashboardPreferences(SqlStateStore(test_session_factory)).save_starred({12})

        stored = await DashboardPreferences(SqlStateStore(test_session_factory)).load()

        assert stored.bundle.starred == {12}


class TestDashboardPreferences:
    """Test preference loading and saving."""

    @pytest.mark.asyncio
    async def test_defaults(self):
        """Test an empty store yields the default filters."""
        stored = await DashboardPreferences(InMemoryStateStore()).load()

        assert stored.bundle.model_dump() == FilterBundle().model_dump()
        assert stored.compact_view is False

    @pytest.mark.asyncio
    async def test_round_trip_filters(self):
        """Test saved filters come back, without the search term."""
        state = InMemoryStateStore()
        prefs = DashboardPreferences(state)
        bundle = FilterBundle(
            starred={4},
            session_statuses={"open"},
            show_my_orders=False,
            date_filter=DateFilter.CUSTOM,
            custom_date_days=3,
            search_term="m05",
        )

        await prefs.save_filters(bundle)
        stored = await prefs.load()

        assert stored.bundle.session_statuses == {"open"}
        assert stored.bundle.show_my_orders is False
        assert stored.bundle.date_filter == DateFilter.CUSTOM
        assert stored.bundle.custom_date_days == 3
        assert stored.bundle.search_term == ""
        assert stored.bundle.starred == set()
        assert STARRED_KEY not in state.snapshot()

    @pytest.mark.asyncio
    async def test_bad_values_fall_back(self):
        """Test corrupt stored values are replaced by defaults."""
        state = InMemoryStateStore(
            {
                STARRED_KEY: ["7", "x", 9],
                SESSION_FILTERS_KEY: "open",
                SHOW_MY_ORDERS_KEY: "false",
                DATE_FILTER_KEY: "yesterday",
                DATE_DAYS_KEY: -4,
            }
        )

        stored = await DashboardPreferences(state).load()

        assert stored.bundle.starred == {7, 9}
        assert stored.bundle.session_statuses == FilterBundle().session_statuses
        assert stored.bundle.show_my_orders is False
        assert stored.bundle.date_filter == DateFilter.TODAY
        assert stored.bundle.custom_date_days == 7

    @pytest.mark.asyncio
    async def test_clear_filters_keeps_starred(self):
        """Test clearing filters forgets everything but the starred set."""
        state = InMemoryStateStore()
        prefs = DashboardPreferences(state)
        await prefs.save_starred({12, 3})
        await prefs.save_filters(FilterBundle(show_my_orders=False))

        await prefs.clear_filters()

        assert state.snapshot() == {STARRED_KEY: [3, 12]}
