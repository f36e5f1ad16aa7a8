"""Dashboard preferences persisted in the client state store."""
import logging
from typing import Any, Iterable, Optional

from pydantic import BaseModel

from waiterboard.services.filtering.bundle import (
    DEFAULT_CUSTOM_DATE_DAYS,
    DateFilter,
    FilterBundle,
)
from waiterboard.services.state.base import StateStore

logger = logging.getLogger(__name__)

STARRED_KEY = "waiter_starred_orders"
SESSION_FILTERS_KEY = "waiter_session_filters"
WORKFLOW_FILTERS_KEY = "waiter_workflow_filters"
SHOW_MY_ORDERS_KEY = "waiter_show_my_orders"
SHOW_UNASSIGNED_KEY = "waiter_show_unassigned_orders"
DATE_FILTER_KEY = "waiter_date_filter"
DATE_DAYS_KEY = "waiter_date_days"
COMPACT_VIEW_KEY = "waiter_compact_view"

ALL_KEYS = (
    STARRED_KEY,
    SESSION_FILTERS_KEY,
    WORKFLOW_FILTERS_KEY,
    SHOW_MY_ORDERS_KEY,
    SHOW_UNASSIGNED_KEY,
    DATE_FILTER_KEY,
    DATE_DAYS_KEY,
    COMPACT_VIEW_KEY,
)


class StoredPreferences(BaseModel):
    """Everything restored at start-up."""

    bundle: FilterBundle
    compact_view: bool = False


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return None


def _as_int_set(value: Any) -> Optional[set]:
    if not isinstance(value, list):
        return None
    result = set()
    for item in value:
        try:
            result.add(int(item))
        except (TypeError, ValueError):
            continue
    return result


def _as_str_set(value: Any) -> Optional[set]:
    if not isinstance(value, list):
        return None
    return {str(item) for item in value}


class DashboardPreferences:
    """Reads and writes the waiter's starred orders and filter choices."""

    def __init__(self, store: StateStore):
        self.store = store

    async def load(self) -> StoredPreferences:
        """Restore preferences, falling back to defaults for missing or bad values."""
        values = await self.store.get_many(ALL_KEYS)
        bundle = FilterBundle()

        starred = _as_int_set(values.get(STARRED_KEY))
        if starred is not None:
            bundle.starred = starred
        session_statuses = _as_str_set(values.get(SESSION_FILTERS_KEY))
        if session_statuses is not None:
            bundle.session_statuses = session_statuses
        workflow_statuses = _as_str_set(values.get(WORKFLOW_FILTERS_KEY))
        if workflow_statuses is not None:
            bundle.workflow_statuses = workflow_statuses

        show_mine = _as_bool(values.get(SHOW_MY_ORDERS_KEY))
        if show_mine is not None:
            bundle.show_my_orders = show_mine
        show_unassigned = _as_bool(values.get(SHOW_UNASSIGNED_KEY))
        if show_unassigned is not None:
            bundle.show_unassigned_orders = show_unassigned

        date_filter = values.get(DATE_FILTER_KEY)
        if date_filter in {item.value for item in DateFilter}:
            bundle.date_filter = DateFilter(date_filter)
        elif date_filter is not None:
            logger.warning(f"[PREFS] Ignoring stored date filter '{date_filter}'")

        days = values.get(DATE_DAYS_KEY)
        try:
            days = int(days) if days is not None else DEFAULT_CUSTOM_DATE_DAYS
        except (TypeError, ValueError):
            days = DEFAULT_CUSTOM_DATE_DAYS
        bundle.custom_date_days = days if days > 0 else DEFAULT_CUSTOM_DATE_DAYS

        compact = _as_bool(values.get(COMPACT_VIEW_KEY)) or False
        return StoredPreferences(bundle=bundle, compact_view=compact)

    async def save_starred(self, starred: Iterable[int]) -> None:
        await self.store.set(STARRED_KEY, sorted(starred))

    async def save_filters(self, bundle: FilterBundle) -> None:
        """Persist everything but the starred set and the search term."""
        await self.store.set(SESSION_FILTERS_KEY, sorted(bundle.session_statuses))
        await self.store.set(WORKFLOW_FILTERS_KEY, sorted(bundle.workflow_statuses))
        await self.store.set(SHOW_MY_ORDERS_KEY, bundle.show_my_orders)
        await self.store.set(SHOW_UNASSIGNED_KEY, bundle.show_unassigned_orders)
        await self.store.set(DATE_FILTER_KEY, bundle.date_filter.value)
        await self.store.set(DATE_DAYS_KEY, bundle.custom_date_days)

    async def save_compact_view(self, compact: bool) -> None:
        await self.store.set(COMPACT_VIEW_KEY, compact)

    async def clear_filters(self) -> None:
        """Forget stored filter choices (starred orders are kept)."""
        for key in (
            SESSION_FILTERS_KEY,
            WORKFLOW_FILTERS_KEY,
            SHOW_MY_ORDERS_KEY,
            SHOW_UNASSIGNED_KEY,
            DATE_FILTER_KEY,
            DATE_DAYS_KEY,
        ):
            await self.store.delete(key)
