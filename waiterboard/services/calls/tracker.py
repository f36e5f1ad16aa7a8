"""Pending waiter-call tracking."""
import logging
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from waiterboard.core.config import Settings
from waiterboard.core.errors import DashboardError, ValidationError
from waiterboard.services.backend.client import BackendClient
from waiterboard.services.feedback import FeedbackChannel
from waiterboard.services.orders.models import WaiterCall
from waiterboard.services.sync.tasks import PeriodicTask

logger = logging.getLogger(__name__)

CHECKOUT_CALL_NOTE = "checkout_request"


def call_message(call: WaiterCall) -> str:
    """Notification copy for an incoming call."""
    if call.order_numbers:
        orders = "Orders " + ", ".join(f"#{number}" for number in call.order_numbers)
    else:
        orders = "Order pending"
    prefix = "Bill requested" if call.notes == CHECKOUT_CALL_NOTE else "Assistance"
    return f"{prefix} - Table {call.table_number}: {orders}"


class WaiterCallTracker:
    """Keeps the list of table calls that still need a waiter."""

    def __init__(
        self,
        client: BackendClient,
        feedback: FeedbackChannel,
        settings: Settings,
        employee_id: Optional[int] = None,
    ):
        self.client = client
        self.feedback = feedback
        self.employee_id = employee_id
        self._calls: List[WaiterCall] = []
        self.task = PeriodicTask(
            self.load,
            interval=settings.pending_calls_interval_seconds,
            name="waiter-calls-poll",
        )

    @property
    def pending(self) -> List[WaiterCall]:
        """Pending calls, newest first."""
        return list(self._calls)

    def start(self) -> None:
        self.task.start()

    def stop(self) -> None:
        self.task.stop()

    async def load(self) -> List[WaiterCall]:
        """Replace the pending list with the server's."""
        try:
            payloads = await self.client.pending_waiter_calls()
        except DashboardError as e:
            logger.error(f"[CALLS] Error loading pending calls: {e.message}")
            return self.pending

        calls = []
        for payload in payloads:
            try:
                calls.append(WaiterCall.from_payload(payload))
            except (PydanticValidationError, TypeError, ValueError) as e:
                logger.warning(f"[CALLS] Skipping malformed waiter call: {e}")
        self._calls = calls
        logger.debug(f"[CALLS] {len(calls)} pending calls")
        return self.pending

    def upsert(self, call: WaiterCall) -> None:
        """Apply a pushed call: pending calls are added or replaced, others removed."""
        index = next((i for i, item in enumerate(self._calls) if item.id == call.id), None)
        if call.status == "pending":
            if index is None:
                self._calls.insert(0, call)
            else:
                self._calls[index] = call
            self.feedback.emit(call_message(call), kind="waiter_call")
        elif index is not None:
            del self._calls[index]

    async def confirm(self, call_id: int) -> bool:
        """Tell the table a waiter is on the way."""
        if not self.employee_id:
            self.feedback.error("Error: no active employee")
            raise ValidationError("No active employee")
        try:
            await self.client.confirm_waiter_call(call_id, self.employee_id)
        except DashboardError as e:
            logger.error(f"[CALLS] Error confirming call {call_id}: {e.message}")
            self.feedback.error("Error confirming call")
            return False
        self._calls = [call for call in self._calls if call.id != call_id]
        self.feedback.success("Confirmed: you are on your way", kind="waiter_call")
        return True

    async def call_supervisor(
        self,
        reason: str = "Assistance required",
        table_number: Optional[str] = None,
        order_id: Optional[int] = None,
    ) -> bool:
        """Page a supervisor."""
        try:
            result = await self.client.call_supervisor(reason, table_number, order_id)
        except DashboardError as e:
            logger.error(f"[CALLS] Error calling supervisor: {e.message}")
            self.feedback.error(f"Error calling supervisor: {e.message}")
            return False
        if isinstance(result, dict) and result.get("status") not in (None, "success"):
            message = result.get("message") or result.get("error") or "Error calling supervisor"
            self.feedback.error(message)
            return False
        self.feedback.success("Supervisor notified")
        return True

    def clear(self) -> None:
        self._calls = []
