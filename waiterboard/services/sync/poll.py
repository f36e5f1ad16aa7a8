"""Scheduled polling of active orders."""
import logging
from typing import Dict, List, Optional, Set

from waiterboard.core.config import Settings
from waiterboard.core.errors import DashboardError
from waiterboard.services.backend.client import BackendClient
from waiterboard.services.feedback import FeedbackChannel
from waiterboard.services.orders.models import Order, parse_orders
from waiterboard.services.orders.store import OrderStore
from waiterboard.services.sync.refresh import OrderRefresher
from waiterboard.services.sync.tasks import PeriodicTask
from waiterboard.services.workflow.statuses import (
    OPEN_SESSION_STATUS,
    WorkflowStatus,
    is_checkout_session,
)

logger = logging.getLogger(__name__)

# Poll outcomes
POLL_BASELINE = "baseline"
POLL_NEW_ORDERS = "new_orders"
POLL_DRIFT = "drift"
POLL_UNCHANGED = "unchanged"
POLL_FAILED = "failed"


def new_order_message(orders: List[Order]) -> str:
    """Notification copy for newly arrived orders."""
    tables = ", ".join(order.table_number or "N/A" for order in orders)
    if len(orders) == 1:
        return f"New order - Table {tables}"
    return f"{len(orders)} new orders - Tables: {tables}"


class PollSync:
    """
    Diffs the active order list against the previous poll.

    New orders raise a notice and trigger a full refresh; any other status
    change or disappearance triggers a quiet refresh.
    """

    def __init__(
        self,
        client: BackendClient,
        store: OrderStore,
        refresher: OrderRefresher,
        feedback: FeedbackChannel,
        settings: Settings,
    ):
        self.client = client
        self.store = store
        self.refresher = refresher
        self.feedback = feedback
        self.settings = settings
        self._last_ids: Set[int] = set()
        self._last_statuses: Dict[int, str] = {}
        # Only the first successful tick may adopt a baseline
        self._baseline_pending = True
        self.task = PeriodicTask(
            self.poll_once,
            interval=settings.poll_interval_seconds,
            initial_delay=settings.poll_initial_delay_seconds,
            name="orders-poll",
        )

    def seed_from_store(self) -> None:
        """Use the current store contents as the previous snapshot."""
        self._last_ids = set(self.store.ids())
        self._last_statuses = {
            order.id: order.workflow_status
            for order in self.store.values()
            if order.workflow_status
        }
        self._baseline_pending = not self._last_ids

    def start(self) -> None:
        self.seed_from_store()
        logger.info(
            f"[POLL] Starting HTTP polling every {self.settings.poll_interval_seconds}s"
        )
        self.task.start()

    def stop(self) -> None:
        self.task.stop()

    async def poll_once(self) -> Optional[str]:
        """Run a single poll tick and return its outcome."""
        try:
            payloads = await self.client.list_orders(include_closed=False)
        except DashboardError as e:
            logger.error(f"[POLL] Error while polling: {e.message}")
            return POLL_FAILED

        orders = parse_orders(payloads)
        current_ids = {order.id for order in orders}
        current_statuses = {
            order.id: order.workflow_status for order in orders if order.workflow_status
        }

        adopt_baseline = self._baseline_pending and len(self.store) == 0
        self._baseline_pending = False
        if adopt_baseline:
            self._last_ids = current_ids
            self._last_statuses = current_statuses
            logger.debug(f"[POLL] Adopted {len(current_ids)} orders as baseline")
            return POLL_BASELINE

        added = [
            order
            for order in orders
            if order.id not in self._last_ids and self._is_new_arrival(order)
        ]

        status_changed = False
        for order in orders:
            previous = self._last_statuses.get(order.id)
            if previous is None:
                stored = self.store.get(order.id)
                previous = stored.workflow_status if stored else None
            if previous and previous != order.workflow_status:
                status_changed = True
                break

        removed = bool(self._last_ids - current_ids)

        self._last_ids = current_ids
        self._last_statuses = current_statuses

        if added:
            logger.info(f"[POLL] Detected {len(added)} new order(s)")
            self.feedback.emit(new_order_message(added), kind="new_order")
            self.refresher.schedule(self.settings.poll_new_order_refresh_delay)
            return POLL_NEW_ORDERS
        if status_changed or removed:
            logger.info("[POLL] Order changes detected, refreshing board")
            self.refresher.schedule(self.settings.poll_drift_refresh_delay)
            return POLL_DRIFT
        return POLL_UNCHANGED

    @staticmethod
    def _is_new_arrival(order: Order) -> bool:
        session_status = order.session.status if order.session else ""
        return order.workflow_status == WorkflowStatus.NEW and (
            session_status == OPEN_SESSION_STATUS or is_checkout_session(session_status)
        )
