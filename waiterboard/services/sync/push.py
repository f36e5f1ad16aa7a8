"""Server-pushed event handling."""
import logging
from typing import Any, Dict, Optional

from waiterboard.core.config import Settings
from waiterboard.services.calls.tracker import WaiterCallTracker
from waiterboard.services.feedback import FeedbackChannel
from waiterboard.services.orders.models import WaiterCall
from waiterboard.services.orders.store import OrderStore
from waiterboard.services.sync.refresh import OrderRefresher
from waiterboard.services.views.paid import PaidSessionsFeed
from waiterboard.services.workflow.statuses import WorkflowStatus

logger = logging.getLogger(__name__)


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class PushSync:
    """
    Applies realtime events to the order store.

    Each handler patches the affected records synchronously, notifies change
    listeners, and schedules a debounced full refresh to converge on the
    server's complete state.
    """

    def __init__(
        self,
        store: OrderStore,
        refresher: OrderRefresher,
        feedback: FeedbackChannel,
        settings: Settings,
        calls: Optional[WaiterCallTracker] = None,
        paid_feed: Optional[PaidSessionsFeed] = None,
        employee_id: Optional[int] = None,
    ):
        self.store = store
        self.refresher = refresher
        self.feedback = feedback
        self.settings = settings
        self.calls = calls
        self.paid_feed = paid_feed
        self.employee_id = employee_id
        self._handlers = {
            "new_order": self._on_new_order,
            "orders.new": self._on_bus_new_order,
            "order_status_changed": self._on_order_status_changed,
            "orders.status_changed": self._on_bus_order_status_changed,
            "sessions.status_changed": self._on_session_status_changed,
            "sessions.paid": self._on_session_paid,
            "waiter_call": self._on_waiter_call,
            "orders.auto_accepted": self._on_auto_accepted,
        }

    async def handle_event(self, name: str, payload: Optional[Dict[str, Any]] = None) -> bool:
        """
        Dispatch one pushed event.

        Returns:
            False when the event name is unknown
        """
        handler = self._handlers.get(name)
        if handler is None:
            logger.info(f"[PUSH] Ignoring unknown event '{name}'")
            return False
        logger.debug(f"[PUSH] Event {name}: {payload}")
        await handler(payload or {})
        return True

    # ---- orders -------------------------------------------------------

    def _announce_new_order(self, payload: Dict[str, Any]) -> None:
        table = payload.get("table_number") or "N/A"
        order_id = payload.get("order_id") or payload.get("id") or ""
        self.feedback.emit(f"New order: Table {table} - Order #{order_id}", kind="new_order")

    async def _on_new_order(self, payload: Dict[str, Any]) -> None:
        self._announce_new_order(payload)
        self.refresher.schedule(self.settings.push_new_order_refresh_delay)

    async def _on_bus_new_order(self, payload: Dict[str, Any]) -> None:
        self._announce_new_order(payload)
        self.refresher.schedule(self.settings.push_bus_new_order_refresh_delay)

    def _apply_status(self, order_id: Optional[int], status: Optional[str]) -> None:
        if not order_id or not status:
            return
        patched = self.store.patch(order_id, workflow_status=status)
        if patched is not None:
            logger.info(f"[PUSH] Order {order_id} is now {patched.workflow_status}")
            self.store.notify([order_id])

    async def _on_order_status_changed(self, payload: Dict[str, Any]) -> None:
        self._apply_status(_int_or_none(payload.get("order_id")), payload.get("workflow_status"))
        self.refresher.schedule(self.settings.push_order_status_refresh_delay)

    async def _on_bus_order_status_changed(self, payload: Dict[str, Any]) -> None:
        order_id = _int_or_none(
            payload.get("order_id") or payload.get("orderId") or payload.get("id")
        )
        status = payload.get("status") or payload.get("workflow_status")
        if not order_id or not status:
            return
        self._apply_status(order_id, status)
        self.refresher.schedule(self.settings.push_bus_status_refresh_delay)

    async def _on_auto_accepted(self, payload: Dict[str, Any]) -> None:
        waiter_id = _int_or_none(payload.get("waiter_id"))
        if self.employee_id is None or waiter_id != self.employee_id:
            return
        logger.info(f"[PUSH] Order auto-accepted: {payload}")
        self.feedback.emit(
            f"New order auto-assigned from Table {payload.get('table_number')}",
            kind="new_order",
        )
        order_id = _int_or_none(payload.get("order_id"))
        if order_id and order_id in self.store:
            self.store.patch(
                order_id, workflow_status=WorkflowStatus.QUEUED.value, waiter_id=waiter_id
            )
            self.store.notify([order_id])
        self.refresher.schedule(self.settings.push_auto_accept_refresh_delay)

    # ---- sessions -----------------------------------------------------

    async def _on_session_status_changed(self, payload: Dict[str, Any]) -> None:
        session_id = _int_or_none(payload.get("session_id"))
        if not session_id:
            return
        fields = {}
        if payload.get("status"):
            fields["status"] = payload["status"]
        if payload.get("table_number"):
            fields["table_number"] = str(payload["table_number"])
        patched = self.store.patch_session(session_id, **fields)
        self.store.notify([order.id for order in patched])
        self.refresher.schedule(self.settings.push_session_refresh_delay)

    async def _on_session_paid(self, payload: Dict[str, Any]) -> None:
        session_id = _int_or_none(payload.get("session_id"))
        if not session_id:
            return
        patched = self.store.patch_session(session_id, status="paid")
        for order in patched:
            if order.workflow_status != WorkflowStatus.CANCELLED:
                self.store.patch(order.id, workflow_status=WorkflowStatus.DELIVERED.value)
        logger.info(f"[PUSH] Session {session_id} paid ({len(patched)} orders)")
        self.store.notify([order.id for order in patched])
        if self.paid_feed is not None:
            await self.paid_feed.load()
        self.refresher.schedule(self.settings.push_session_refresh_delay)

    # ---- waiter calls -------------------------------------------------

    async def _on_waiter_call(self, payload: Dict[str, Any]) -> None:
        if self.calls is None:
            return
        try:
            call = WaiterCall.from_payload(payload)
        except (TypeError, ValueError) as e:
            logger.warning(f"[PUSH] Malformed waiter call: {e}")
            return
        self.calls.upsert(call)
