"""Render-ready row descriptors."""
from datetime import datetime
from typing import List, Optional, Set

from pydantic import BaseModel

from waiterboard.core.config import Settings
from waiterboard.services.dashboard.capabilities import RoleCapabilities
from waiterboard.services.filtering.engine import is_mine, parse_timestamp
from waiterboard.services.orders.models import Order
from waiterboard.services.workflow.catalog import StatusCatalog
from waiterboard.services.workflow.statuses import (
    WorkflowStatus,
    is_checkout_session,
    is_finished_session,
)


class RowAction(BaseModel):
    """Button of an order row."""

    label: str
    transition: Optional[str] = None
    variant: Optional[str] = None
    disabled: bool = False


class OrderRow(BaseModel):
    """Everything a front end needs to draw one order."""

    id: int
    session_id: int
    table_number: str
    customer_name: str
    waiter_id: Optional[int] = None
    waiter_name: Optional[str] = None
    waiter_notes: Optional[str] = None
    workflow_status: str
    status_title: str
    status_hint: str = ""
    session_status: str
    created_at: Optional[str] = None
    starred: bool = False
    mine: bool = False
    checkout: bool = False
    aged: bool = False
    overdue: bool = False
    overdue_minutes: Optional[int] = None
    items_count: int = 0
    delivered_items: int = 0
    can_partial_deliver: bool = False
    actions: List[RowAction] = []


def _relevant_time(order: Order) -> Optional[str]:
    """Timestamp the overdue clock starts from."""
    if order.workflow_status == WorkflowStatus.PREPARING:
        return order.chef_accepted_at or order.created_at
    if order.workflow_status == WorkflowStatus.READY:
        return order.ready_at or order.chef_accepted_at or order.created_at
    return order.created_at


class RowBuilder:
    """Projects orders into row descriptors for one role and employee."""

    def __init__(
        self,
        catalog: StatusCatalog,
        capabilities: RoleCapabilities,
        settings: Settings,
        employee_id: Optional[int] = None,
    ):
        self.catalog = catalog
        self.capabilities = capabilities
        self.settings = settings
        self.employee_id = employee_id

    def actions_for(self, order: Order) -> List[RowAction]:
        """Role-gated actions of the order's current status."""
        return [
            RowAction(
                label=action.label,
                transition=action.transition,
                variant=action.variant,
                disabled=action.disabled,
            )
            for action in self.catalog.allowed_actions(order.workflow_status, self.capabilities)
        ]

    def build(
        self,
        order: Order,
        starred: Set[int],
        now: Optional[datetime] = None,
        active: bool = True,
    ) -> OrderRow:
        now = (now or datetime.now()).astimezone()
        session_status = order.session_status
        info = self.catalog.info(order.workflow_status)
        status_title = self.catalog.title(order.workflow_status, session_status)

        overdue = False
        overdue_minutes = None
        started = parse_timestamp(_relevant_time(order))
        if (
            started is not None
            and session_status != "paid"
            and order.workflow_status in (WorkflowStatus.PREPARING, WorkflowStatus.READY)
        ):
            prep_minutes = order.estimated_prep_time or self.settings.default_prep_time_minutes
            elapsed = (now - started).total_seconds()
            if elapsed > prep_minutes * 60:
                overdue = True
                overdue_minutes = max(0, round(elapsed / 60))

        aged = False
        created = parse_timestamp(order.created_at)
        if active and created is not None and not is_finished_session(session_status):
            aged = (now - created).total_seconds() > self.settings.aged_order_minutes * 60

        delivered_items = sum(1 for item in order.items if item.is_fully_delivered)
        can_partial_deliver = (
            order.workflow_status == WorkflowStatus.READY
            and len(order.items) > 1
            and not order.all_items_delivered
        )

        return OrderRow(
            id=order.id,
            session_id=order.session_id,
            table_number=order.table_number or "N/A",
            customer_name=order.customer_name,
            waiter_id=order.waiter_id,
            waiter_name=order.waiter_name,
            waiter_notes=order.waiter_notes,
            workflow_status=order.workflow_status,
            status_title="Overdue" if overdue else status_title,
            status_hint=info.hint if info else "",
            session_status=session_status,
            created_at=order.created_at,
            starred=order.id in starred,
            mine=is_mine(order, self.employee_id),
            checkout=is_checkout_session(session_status),
            aged=aged,
            overdue=overdue,
            overdue_minutes=overdue_minutes,
            items_count=len(order.items),
            delivered_items=delivered_items,
            can_partial_deliver=can_partial_deliver,
            actions=self.actions_for(order),
        )
