"""Workflow action dispatcher."""
import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from pydantic import BaseModel, ValidationError as PydanticValidationError

from waiterboard.core.errors import ConflictError, DashboardError, ValidationError
from waiterboard.services.backend.client import BackendClient
from waiterboard.services.feedback import FeedbackChannel
from waiterboard.services.orders.models import Order, SessionSnapshot
from waiterboard.services.orders.store import OrderStore
from waiterboard.services.sync.refresh import OrderRefresher
from waiterboard.services.workflow.catalog import StatusCatalog, get_status_catalog
from waiterboard.services.workflow.statuses import WorkflowStatus

logger = logging.getLogger(__name__)

# Source states each transition is legal from
ALLOWED_TRANSITIONS: Dict[str, Set[str]] = {
    "accept": {WorkflowStatus.NEW.value},
    "kitchen_start": {WorkflowStatus.QUEUED.value},
    "kitchen_ready": {WorkflowStatus.PREPARING.value},
    "deliver": {WorkflowStatus.READY.value},
    "cancel": {
        WorkflowStatus.NEW.value,
        WorkflowStatus.QUEUED.value,
        WorkflowStatus.PREPARING.value,
        WorkflowStatus.READY.value,
        WorkflowStatus.DELIVERED.value,
        WorkflowStatus.AWAITING_PAYMENT.value,
    },
}

# Outcome states
OUTCOME_APPLIED = "applied"
OUTCOME_CONFLICT = "conflict"
OUTCOME_FAILED = "failed"
OUTCOME_IGNORED = "ignored"


class ActionOutcome(BaseModel):
    """Result of a dispatched action."""

    state: str
    order_id: int
    message: Optional[str] = None
    order: Optional[Order] = None

    @property
    def ok(self) -> bool:
        return self.state == OUTCOME_APPLIED


class ActionDispatcher:
    """
    Runs workflow transitions against the backend and installs the results.

    A (order, transition) pair can only be in flight once; the guard is always
    released when the request settles.
    """

    def __init__(
        self,
        client: BackendClient,
        store: OrderStore,
        refresher: OrderRefresher,
        feedback: FeedbackChannel,
        employee_id: Optional[int] = None,
        catalog: Optional[StatusCatalog] = None,
    ):
        self.client = client
        self.store = store
        self.refresher = refresher
        self.feedback = feedback
        self.employee_id = employee_id
        self.catalog = catalog or get_status_catalog()
        self._in_flight: Set[Tuple[int, str]] = set()
        self._store_cancel_reason: Optional[bool] = None

    def is_in_flight(self, order_id: int, transition: str) -> bool:
        return (order_id, transition) in self._in_flight

    def _require_employee(self) -> int:
        if not self.employee_id:
            self.feedback.error("Error: no active employee in this session")
            raise ValidationError("No active employee in this session")
        return self.employee_id

    def _check_source_state(self, order_id: int, transition: str) -> None:
        """Refuse a transition the stored order cannot take."""
        order = self.store.get(order_id)
        if order is None or order.workflow_status in ALLOWED_TRANSITIONS[transition]:
            return
        title = self.catalog.title(order.workflow_status, order.session_status)
        self.feedback.error(f"Order #{order_id} is {title}", order_id=order_id)
        raise ValidationError(
            f"Order {order_id} cannot {transition} from {order.workflow_status}"
        )

    def _install(self, order_id: int, data: Any) -> Optional[Order]:
        """Store the record returned by the server."""
        if not isinstance(data, dict):
            return self.store.get(order_id)
        try:
            order = Order.model_validate(data)
        except PydanticValidationError:
            # Partial payload: overlay what we got on the stored record
            fields = {
                key: data[key]
                for key in ("workflow_status", "waiter_id", "waiter_name", "payment_status")
                if key in data
            }
            return self.store.patch(order_id, **fields)
        self.store.upsert(order)
        if order.session is not None:
            self._share_session(order.session)
        return order

    def _share_session(self, session: SessionSnapshot) -> None:
        """Overlay a returned session snapshot on its other orders."""
        fields = session.model_dump(exclude={"id"}, exclude_none=True)
        self.store.patch_session(session.id, **fields)

    def transition_message(
        self, order: Order, previous_status: Optional[str], table_label: str
    ) -> str:
        """Feedback copy for a successful transition."""
        status = order.workflow_status
        if status == WorkflowStatus.QUEUED:
            return f"Table {table_label} accepted"
        if status == WorkflowStatus.READY:
            if previous_status == WorkflowStatus.NEW:
                return f"Table {table_label} accepted - ready for delivery"
            return f"Order #{order.id} ready to serve"
        if status == WorkflowStatus.DELIVERED:
            return f"Order #{order.id} delivered"
        if status == WorkflowStatus.PREPARING:
            return f"Order #{order.id} sent to kitchen"
        return f"Order #{order.id} → {self.catalog.title(status, order.session_status)}"

    async def run_transition(self, order_id: int, transition: str) -> ActionOutcome:
        """
        Request a workflow transition for an order.

        Raises:
            ValidationError: No active employee, the transition is unknown, or
                the stored order is not in one of its source states
        """
        employee_id = self._require_employee()
        if (
            transition == "cancel"
            or transition not in ALLOWED_TRANSITIONS
            or not self.catalog.has_transition(transition)
        ):
            raise ValidationError(f"Unknown transition: {transition}")
        self._check_source_state(order_id, transition)

        key = (order_id, transition)
        if key in self._in_flight:
            logger.info(f"[WORKFLOW] {transition} already running for order {order_id}, ignoring")
            return ActionOutcome(state=OUTCOME_IGNORED, order_id=order_id)

        previous = self.store.get(order_id)
        previous_status = previous.workflow_status if previous else None
        endpoint = self.catalog.endpoint(transition, order_id)
        self._in_flight.add(key)
        logger.info(f"[WORKFLOW] Processing {transition} for order {order_id} (employee {employee_id})")
        try:
            data = await self.client.post_order_action(endpoint, {"employee_id": employee_id})
            order = self._install(order_id, data)
            if order is None:
                return ActionOutcome(state=OUTCOME_APPLIED, order_id=order_id)
            self.store.notify([order_id])
            table_label = order.table_number or (previous.table_number if previous else "") or f"#{order_id}"
            message = self.transition_message(order, previous_status, table_label)
            self.feedback.success(message, order_id=order_id)
            return ActionOutcome(
                state=OUTCOME_APPLIED, order_id=order_id, message=message, order=order
            )
        except ConflictError as e:
            return await self._resolve_conflict(order_id, e)
        except DashboardError as e:
            logger.error(f"[WORKFLOW] {transition} failed for order {order_id}: {e.message}")
            self.feedback.error(e.message, order_id=order_id)
            return ActionOutcome(state=OUTCOME_FAILED, order_id=order_id, message=e.message)
        finally:
            self._in_flight.discard(key)

    async def _resolve_conflict(self, order_id: int, error: ConflictError) -> ActionOutcome:
        """Reload everything and tell the waiter who got the order."""
        logger.info(f"[WORKFLOW] Order {order_id} already taken, refreshing from server")
        refreshed = await self.refresher.refresh()
        if not refreshed:
            self.feedback.error(error.message, order_id=order_id)
            return ActionOutcome(state=OUTCOME_CONFLICT, order_id=order_id, message=error.message)

        current = self.store.get(order_id)
        if current is None:
            message = "Order already taken"
            self.feedback.error(message, kind="conflict", order_id=order_id)
        elif current.waiter_name:
            message = f"Order already assigned to {current.waiter_name}"
            self.feedback.emit(message, kind="conflict", order_id=order_id)
        else:
            message = "Order already taken. Status updated."
            self.feedback.emit(message, kind="conflict", order_id=order_id)
        return ActionOutcome(
            state=OUTCOME_CONFLICT, order_id=order_id, message=message, order=current
        )

    async def print_order(self, order_id: int) -> bool:
        """Reprint the kitchen ticket of an order."""
        employee_id = self._require_employee()
        try:
            await self.client.post_order_action(
                self.catalog.endpoint("print", order_id), {"employee_id": employee_id}
            )
        except DashboardError as e:
            self.feedback.error(e.message, order_id=order_id)
            return False
        self.feedback.success(f"Order #{order_id} sent to printer", order_id=order_id)
        return True

    # ---- partial delivery --------------------------------------------

    async def delivery_status(self, order_id: int) -> Optional[Dict[str, Any]]:
        """Item-level delivery progress, None when it could not be loaded."""
        try:
            return await self.client.delivery_status(order_id)
        except DashboardError as e:
            logger.error(f"[DELIVERY] Could not load delivery status of {order_id}: {e.message}")
            self.feedback.error("Could not load the delivery status", order_id=order_id)
            return None

    async def deliver_items(self, order_id: int, item_ids: Iterable[int]) -> ActionOutcome:
        """
        Deliver a subset of an order's items.

        When that completes the order while it is ready, the order is marked
        delivered too; if that follow-up fails the partial result is kept.

        Raises:
            ValidationError: No items selected or no active employee
        """
        selected: List[int] = list(dict.fromkeys(item_ids))
        if not selected:
            self.feedback.error("Select at least one item to deliver")
            raise ValidationError("Select at least one item to deliver")
        employee_id = self._require_employee()

        key = (order_id, "deliver_items")
        if key in self._in_flight:
            return ActionOutcome(state=OUTCOME_IGNORED, order_id=order_id)
        self._in_flight.add(key)
        try:
            data = await self.client.deliver_items(order_id, selected, employee_id)
            order = self._install(order_id, data)
            self.store.notify([order_id])
            all_delivered = bool(order and order.all_items_delivered)
            if all_delivered:
                self.feedback.success("All items delivered - order complete", order_id=order_id)
            else:
                plural = "s" if len(selected) != 1 else ""
                self.feedback.success(f"{len(selected)} item{plural} delivered", order_id=order_id)

            if all_delivered and order.workflow_status == WorkflowStatus.READY:
                order = await self._auto_deliver(order_id, employee_id) or order
            return ActionOutcome(state=OUTCOME_APPLIED, order_id=order_id, order=order)
        except DashboardError as e:
            logger.error(f"[DELIVERY] Partial delivery failed for order {order_id}: {e.message}")
            self.feedback.error(e.message or "Error delivering items", order_id=order_id)
            return ActionOutcome(state=OUTCOME_FAILED, order_id=order_id, message=e.message)
        finally:
            self._in_flight.discard(key)

    async def _auto_deliver(self, order_id: int, employee_id: int) -> Optional[Order]:
        try:
            data = await self.client.post_order_action(
                self.catalog.endpoint("deliver", order_id), {"employee_id": employee_id}
            )
        except DashboardError as e:
            logger.error(f"[DELIVERY] Error auto-delivering order {order_id}: {e.message}")
            return None
        order = self._install(order_id, data)
        self.store.notify([order_id])
        self.feedback.success("Order marked as delivered automatically", order_id=order_id)
        return order

    # ---- cancellation -------------------------------------------------

    async def should_store_cancel_reason(self) -> bool:
        """Backend flag deciding whether the cancel reason is sent; fetched once."""
        if self._store_cancel_reason is not None:
            return self._store_cancel_reason
        try:
            data = await self.client.get_config("store_cancel_reason")
            raw = data.get("value")
            if raw is None:
                raw = data.get("config_value")
            if raw is None:
                raw = data.get("configValue")
            self._store_cancel_reason = str(raw if raw is not None else "true").lower() != "false"
        except DashboardError as e:
            logger.warning(f"[CANCEL] store_cancel_reason unavailable, defaulting to true: {e.message}")
            self._store_cancel_reason = True
        return self._store_cancel_reason

    async def cancel_order(self, order_id: int, reason: str) -> ActionOutcome:
        """
        Cancel an order with a mandatory reason.

        Raises:
            ValidationError: Blank reason, unknown or finished order, or no
                active employee
        """
        reason = (reason or "").strip()
        if not reason:
            self.feedback.error("Please give the cancellation reason")
            raise ValidationError("Cancellation reason is required")
        if not order_id or order_id not in self.store:
            self.feedback.error("Order not valid for cancellation")
            raise ValidationError(f"Order {order_id} not valid for cancellation")
        employee_id = self._require_employee()
        self._check_source_state(order_id, "cancel")

        key = (order_id, "cancel")
        if key in self._in_flight:
            return ActionOutcome(state=OUTCOME_IGNORED, order_id=order_id)
        self._in_flight.add(key)
        try:
            body: Dict[str, Any] = {"employee_id": employee_id}
            if await self.should_store_cancel_reason():
                body["cancellation_reason"] = reason
            data = await self.client.post_order_action(
                self.catalog.endpoint("cancel", order_id), body
            )
            self._install(order_id, data)
            order = self.store.patch(
                order_id, workflow_status=WorkflowStatus.CANCELLED.value, cancel_reason=reason
            )
            self.store.notify([order_id])
            logger.info(f"[CANCEL] Order {order_id} cancelled")
            self.feedback.success(f"Order #{order_id} cancelled", order_id=order_id)
            return ActionOutcome(state=OUTCOME_APPLIED, order_id=order_id, order=order)
        except DashboardError as e:
            logger.error(f"[CANCEL] Error cancelling order {order_id}: {e.message}")
            self.feedback.error(e.message, order_id=order_id)
            return ActionOutcome(state=OUTCOME_FAILED, order_id=order_id, message=e.message)
        finally:
            self._in_flight.discard(key)
