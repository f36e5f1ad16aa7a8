"""Waiter dashboard controller."""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from pydantic import ValidationError as PydanticValidationError

from waiterboard.core.config import Settings, settings as default_settings
from waiterboard.core.errors import ValidationError
from waiterboard.services.backend.client import BackendClient
from waiterboard.services.calls.tracker import WaiterCallTracker
from waiterboard.services.dashboard.capabilities import RoleCapabilities
from waiterboard.services.feedback import FeedbackChannel
from waiterboard.services.filtering.bundle import FilterBundle
from waiterboard.services.orders.models import WaiterCall
from waiterboard.services.orders.notes import OrderNotes
from waiterboard.services.orders.store import ChangeListener, OrderStore
from waiterboard.services.sessions.actions import SessionActions
from waiterboard.services.state.base import StateStore
from waiterboard.services.state.memory import InMemoryStateStore
from waiterboard.services.state.preferences import DashboardPreferences
from waiterboard.services.sync.poll import PollSync
from waiterboard.services.sync.push import PushSync
from waiterboard.services.sync.refresh import OrderRefresher
from waiterboard.services.views.paid import PaidSessionsFeed
from waiterboard.services.views.partition import Tab, ViewPartition, ViewSnapshot
from waiterboard.services.views.rows import RowBuilder
from waiterboard.services.workflow.catalog import StatusCatalog, get_status_catalog
from waiterboard.services.workflow.dispatcher import ActionDispatcher

logger = logging.getLogger(__name__)

# Filter fields the waiter may change directly
EDITABLE_FILTER_FIELDS = {
    "session_statuses",
    "workflow_statuses",
    "show_my_orders",
    "show_unassigned_orders",
    "date_filter",
    "custom_date_days",
    "search_term",
}


class WaiterDashboard:
    """
    Owns the order store and every collaborator that reads or writes it.

    Built by `create_dashboard()`; call `start()` to load state and begin
    polling and `stop()` to cancel every timer.
    """

    def __init__(
        self,
        client: BackendClient,
        state_store: StateStore,
        settings: Settings,
        capabilities: Optional[RoleCapabilities] = None,
        catalog: Optional[StatusCatalog] = None,
    ):
        self.client = client
        self.settings = settings
        self.employee_id = settings.employee_id
        self.capabilities = capabilities or RoleCapabilities.for_role(settings.employee_role)
        self.catalog = catalog or get_status_catalog()

        self.feedback = FeedbackChannel()
        self.store = OrderStore()
        self.preferences = DashboardPreferences(state_store)
        self.bundle = FilterBundle()
        self.compact_view = False
        self.archived_ids: Set[int] = set()
        self.assigned_tables: Set[str] = set()
        self.active_tab = Tab.ACTIVE

        self.refresher = OrderRefresher(client, self.store, self.feedback)
        self.paid_feed = PaidSessionsFeed(client, self.feedback, settings, lambda: self.bundle)
        self.calls = WaiterCallTracker(client, self.feedback, settings, self.employee_id)
        self.poll = PollSync(client, self.store, self.refresher, self.feedback, settings)
        self.push = PushSync(
            self.store,
            self.refresher,
            self.feedback,
            settings,
            calls=self.calls,
            paid_feed=self.paid_feed,
            employee_id=self.employee_id,
        )
        self.dispatcher = ActionDispatcher(
            client,
            self.store,
            self.refresher,
            self.feedback,
            employee_id=self.employee_id,
            catalog=self.catalog,
        )
        self.notes = OrderNotes(client, self.store, self.feedback, settings)
        self.sessions = SessionActions(client, self.store, self.feedback, self.paid_feed)
        self.partition = ViewPartition(
            self.store,
            RowBuilder(self.catalog, self.capabilities, settings, self.employee_id),
            self.paid_feed,
            self.employee_id,
        )
        self.refresher.add_hook(self._after_refresh)
        self._started = False

    # ---- lifecycle ----------------------------------------------------

    async def load_preferences(self) -> None:
        """Restore starred orders and filters from durable state."""
        stored = await self.preferences.load()
        self.bundle = stored.bundle
        self.compact_view = stored.compact_view
        logger.info(
            f"[DASHBOARD] Restored {len(self.bundle.starred)} starred orders, "
            f"date filter '{self.bundle.date_filter.value}'"
        )

    async def start(self) -> None:
        """Load state and start the pollers."""
        if self._started:
            return
        self._started = True
        await self.load_preferences()
        await self.refresher.refresh()
        await self.calls.load()
        self.poll.start()
        self.calls.start()
        logger.info(f"[DASHBOARD] Started for employee {self.employee_id}")

    async def stop(self) -> None:
        """Cancel every timer and poller."""
        self.poll.stop()
        self.calls.stop()
        self.paid_feed.stop()
        self.refresher.cancel()
        self.notes.cancel_all()
        self._started = False
        logger.info("[DASHBOARD] Stopped")

    async def _after_refresh(self) -> None:
        await self.evict_finished_starred()
        await self.paid_feed.load()

    # ---- change notification -----------------------------------------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a re-render callback; it receives the changed ids or None."""
        return self.store.subscribe(listener)

    async def handle_event(self, name: str, payload: Optional[Dict[str, Any]] = None) -> bool:
        """Apply a server-pushed event."""
        return await self.push.handle_event(name, payload)

    # ---- views --------------------------------------------------------

    def view(self, tab: Any = None, now: Optional[datetime] = None) -> ViewSnapshot:
        """Render-ready rows of a tab (the current one by default)."""
        return self.partition.snapshot(
            Tab(tab) if tab is not None else self.active_tab,
            self.bundle,
            archived_ids=self.archived_ids,
            assigned_tables=self.assigned_tables,
            now=now,
        )

    def counts(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Badge counts of every tab."""
        return self.partition.counts(
            self.bundle, self.archived_ids, self.assigned_tables, now
        )

    async def switch_tab(self, tab: Any) -> ViewSnapshot:
        """Activate a tab; the paid tab reloads and keeps polling while open."""
        try:
            tab = Tab(tab)
        except ValueError as e:
            raise ValidationError(f"Unknown tab: {tab}") from e
        self.active_tab = tab
        if tab == Tab.PAID:
            await self.paid_feed.load()
            self.paid_feed.start()
        else:
            self.paid_feed.stop()
        if tab == Tab.TRACKING:
            await self.evict_finished_starred()
        return self.view(tab)

    # ---- starred orders -----------------------------------------------

    async def toggle_star(self, order_id: int) -> bool:
        """Star or unstar an order; returns True when it is now starred."""
        if order_id in self.bundle.starred:
            self.bundle.starred.discard(order_id)
            starred = False
        else:
            self.bundle.starred.add(order_id)
            starred = True
        await self.preferences.save_starred(self.bundle.starred)
        self.store.notify([order_id])
        return starred

    async def evict_finished_starred(self) -> Set[int]:
        """Drop starred orders whose session finished and persist the set."""
        finished = self.partition.finished_starred(self.bundle)
        if finished:
            self.bundle.starred -= finished
            logger.info(f"[DASHBOARD] Stopped tracking finished orders {sorted(finished)}")
            await self.preferences.save_starred(self.bundle.starred)
        return finished

    # ---- filters ------------------------------------------------------

    async def update_filters(self, **changes: Any) -> FilterBundle:
        """
        Change filter settings and persist them.

        Raises:
            ValidationError: Unknown field or invalid value
        """
        unknown = set(changes) - EDITABLE_FILTER_FIELDS
        if unknown:
            raise ValidationError(f"Unknown filter fields: {', '.join(sorted(unknown))}")
        data = self.bundle.model_dump()
        data.update(changes)
        try:
            bundle = FilterBundle.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid filter value: {e.errors()[0]['msg']}") from e
        self.bundle = bundle
        await self.preferences.save_filters(bundle)
        self.store.notify(None)
        return bundle

    async def reset_filters(self) -> FilterBundle:
        """Restore default filters, keeping starred orders and the search term."""
        self.bundle = FilterBundle(
            starred=set(self.bundle.starred), search_term=self.bundle.search_term
        )
        await self.preferences.save_filters(self.bundle)
        self.store.notify(None)
        return self.bundle

    def set_search(self, term: Optional[str]) -> str:
        """Set the search term; it is never persisted."""
        self.bundle.search_term = (term or "").strip().lower()
        self.store.notify(None)
        return self.bundle.search_term

    async def set_compact_view(self, compact: bool) -> None:
        self.compact_view = bool(compact)
        await self.preferences.save_compact_view(self.compact_view)

    def set_assigned_tables(self, tables: Iterable[str]) -> None:
        """Tables the floor plan assigns to this waiter."""
        self.assigned_tables = {str(table) for table in tables}
        self.store.notify(None)

    def archive_session(self, session_id: int) -> List[int]:
        """Hide every order of a session from the active tab."""
        ids = [order.id for order in self.store.orders_for_session(session_id)]
        self.archived_ids.update(ids)
        self.store.notify(ids)
        self.feedback.emit("Order archived")
        return ids

    # ---- actions ------------------------------------------------------

    async def run_transition(self, order_id: int, transition: str):
        return await self.dispatcher.run_transition(order_id, transition)

    async def cancel_order(self, order_id: int, reason: str):
        return await self.dispatcher.cancel_order(order_id, reason)

    async def deliver_items(self, order_id: int, item_ids: Iterable[int]):
        return await self.dispatcher.deliver_items(order_id, item_ids)

    def handle(self) -> "DashboardHandle":
        """Narrow interface for outside collaborators."""
        return DashboardHandle(self)


class DashboardHandle:
    """The only dashboard operations exposed to other page widgets."""

    def __init__(self, dashboard: WaiterDashboard):
        self._dashboard = dashboard

    async def confirm_waiter_call(self, call_id: int) -> bool:
        return await self._dashboard.calls.confirm(call_id)

    def get_pending_calls(self) -> List[WaiterCall]:
        return self._dashboard.calls.pending

    async def print_paid_session(self, session_id: int) -> Optional[str]:
        """Ticket text of a paid session."""
        return await self._dashboard.sessions.ticket(session_id)


def create_dashboard(
    settings: Optional[Settings] = None,
    state_store: Optional[StateStore] = None,
    client: Optional[BackendClient] = None,
    capabilities: Optional[RoleCapabilities] = None,
) -> WaiterDashboard:
    """Build a dashboard with its collaborators."""
    settings = settings or default_settings
    if state_store is None:
        state_store = InMemoryStateStore()
    client = client or BackendClient(settings)
    return WaiterDashboard(client, state_store, settings, capabilities=capabilities)
