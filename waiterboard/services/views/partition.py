"""Tab partition of the order store."""
import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel

from waiterboard.services.filtering.bundle import FilterBundle
from waiterboard.services.filtering.engine import (
    FilterContext,
    is_visible_in_active,
    is_within_date_range,
    sort_orders,
)
from waiterboard.services.orders.models import Order, PaidSession
from waiterboard.services.orders.store import OrderStore
from waiterboard.services.views.paid import PaidSessionsFeed
from waiterboard.services.views.rows import OrderRow, RowBuilder
from waiterboard.services.workflow.statuses import WorkflowStatus, is_finished_session

logger = logging.getLogger(__name__)


class Tab(str, Enum):
    """Dashboard tabs."""

    ACTIVE = "active"
    TRACKING = "tracking"
    PAID = "paid"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class ViewSnapshot(BaseModel):
    """Rows of one tab plus its badge count."""

    tab: Tab
    count: int
    rows: List[OrderRow] = []
    sessions: List[PaidSession] = []


class ViewPartition:
    """Splits the order store into the active, tracking, paid and cancelled views."""

    def __init__(
        self,
        store: OrderStore,
        rows: RowBuilder,
        paid_feed: PaidSessionsFeed,
        employee_id: Optional[int] = None,
    ):
        self.store = store
        self.rows = rows
        self.paid_feed = paid_feed
        self.employee_id = employee_id

    def active_orders(
        self,
        bundle: FilterBundle,
        archived_ids: Optional[Set[int]] = None,
        assigned_tables: Optional[Set[str]] = None,
        now: Optional[datetime] = None,
    ) -> List[Order]:
        """Orders visible in the active tab, sorted."""
        orders = self.store.values()
        ctx = FilterContext(
            bundle=bundle,
            employee_id=self.employee_id,
            assigned_tables=assigned_tables or set(),
            archived_ids=archived_ids or set(),
            orders=orders,
            now=now,
        )
        visible = [order for order in orders if is_visible_in_active(order, ctx)]
        return sort_orders(visible, bundle.starred, self.employee_id)

    def finished_starred(self, bundle: FilterBundle) -> Set[int]:
        """Starred orders whose session is over."""
        finished = set()
        for order_id in bundle.starred:
            order = self.store.get(order_id)
            if order is not None and is_finished_session(order.session_status):
                finished.add(order_id)
        return finished

    def tracking_orders(self, bundle: FilterBundle, now: Optional[datetime] = None) -> List[Order]:
        """Starred orders still in play within the date range."""
        tracked = []
        for order_id in bundle.starred:
            order = self.store.get(order_id)
            if order is None:
                continue
            if is_finished_session(order.session_status):
                continue
            if order.workflow_status == WorkflowStatus.CANCELLED:
                continue
            if not is_within_date_range(
                order.created_at, bundle.date_filter, bundle.custom_date_days, now
            ):
                continue
            tracked.append(order)
        return sort_orders(tracked, bundle.starred, self.employee_id)

    def cancelled_orders(self, bundle: FilterBundle, now: Optional[datetime] = None) -> List[Order]:
        """Cancelled orders, most recently updated first."""
        cancelled = [
            order
            for order in self.store.values()
            if order.workflow_status == WorkflowStatus.CANCELLED
            and is_within_date_range(
                order.created_at, bundle.date_filter, bundle.custom_date_days, now
            )
        ]
        return sorted(
            cancelled,
            key=lambda order: order.updated_at or order.created_at or "",
            reverse=True,
        )

    def snapshot(
        self,
        tab: Tab,
        bundle: FilterBundle,
        archived_ids: Optional[Set[int]] = None,
        assigned_tables: Optional[Set[str]] = None,
        now: Optional[datetime] = None,
    ) -> ViewSnapshot:
        """Render-ready rows of one tab."""
        tab = Tab(tab)
        if tab == Tab.PAID:
            sessions = self.paid_feed.visible(now)
            return ViewSnapshot(tab=tab, count=len(sessions), sessions=sessions)

        if tab == Tab.ACTIVE:
            orders = self.active_orders(bundle, archived_ids, assigned_tables, now)
        elif tab == Tab.TRACKING:
            orders = self.tracking_orders(bundle, now)
        else:
            orders = self.cancelled_orders(bundle, now)

        rows = [
            self.rows.build(order, bundle.starred, now=now, active=tab == Tab.ACTIVE)
            for order in orders
        ]
        return ViewSnapshot(tab=tab, count=len(rows), rows=rows)

    def counts(
        self,
        bundle: FilterBundle,
        archived_ids: Optional[Set[int]] = None,
        assigned_tables: Optional[Set[str]] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        """Badge count of every tab."""
        return {
            Tab.ACTIVE.value: len(self.active_orders(bundle, archived_ids, assigned_tables, now)),
            Tab.TRACKING.value: len(self.tracking_orders(bundle, now)),
            Tab.PAID.value: len(self.paid_feed.visible(now)),
            Tab.CANCELLED.value: len(self.cancelled_orders(bundle, now)),
        }
