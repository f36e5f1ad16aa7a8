"""Visibility, search, date-range and sort rules for orders."""
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Set

from pydantic import BaseModel, Field

from waiterboard.services.filtering.bundle import DateFilter, FilterBundle
from waiterboard.services.orders.models import Order
from waiterboard.services.workflow.statuses import (
    WorkflowStatus,
    is_paid_session,
)


class FilterContext(BaseModel):
    """Inputs of one filter pass besides the order itself."""

    bundle: FilterBundle
    employee_id: Optional[int] = None
    assigned_tables: Set[str] = Field(default_factory=set)
    archived_ids: Set[int] = Field(default_factory=set)
    orders: List[Order] = Field(default_factory=list)
    now: Optional[datetime] = None


def parse_timestamp(value: Optional[str], tz=None) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as local time."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz) if tz else parsed.astimezone()
    return parsed


def is_within_date_range(
    timestamp: Optional[str],
    date_filter: DateFilter,
    custom_days: int = 7,
    now: Optional[datetime] = None,
) -> bool:
    """
    Check a timestamp against a date preset.

    Missing or unparseable timestamps are always in range.
    """
    if date_filter == DateFilter.ALL:
        return True
    now = (now or datetime.now()).astimezone()
    date = parse_timestamp(timestamp, now.tzinfo)
    if date is None:
        return True

    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if date_filter == DateFilter.TODAY:
        return date >= start

    if date_filter == DateFilter.LAST7:
        days = 7
    else:
        days = max(1, custom_days or 1)
    range_start = start - timedelta(days=days - 1)
    return date >= range_start


def matches_search(order: Order, term: str) -> bool:
    """Substring match over id, table label, customer name and waiter notes."""
    if not term:
        return True
    term = term.lower()
    if term in str(order.id):
        return True
    if term in order.table_number.lower():
        return True
    if term in order.customer_name.lower():
        return True
    return bool(order.waiter_notes) and term in order.waiter_notes.lower()


def is_mine(order: Order, employee_id: Optional[int]) -> bool:
    return employee_id is not None and order.waiter_id == employee_id


def passes_assignment_filter(order: Order, ctx: FilterContext) -> bool:
    """Whether the my-orders / unassigned toggles let the order through."""
    bundle = ctx.bundle
    if not bundle.waiter_filter_active:
        return True
    if order.workflow_status == WorkflowStatus.NEW or bundle.search_term:
        return True

    mine = is_mine(order, ctx.employee_id)
    unassigned = not order.waiter_id
    has_assigned_tables = bool(ctx.assigned_tables)
    my_table = has_assigned_tables and order.table_number in ctx.assigned_tables

    if bundle.show_my_orders and mine:
        return True
    if bundle.show_my_orders and my_table and unassigned:
        return True
    if bundle.show_unassigned_orders and unassigned and (not has_assigned_tables or my_table):
        return True
    if order.id in bundle.starred:
        return True
    if bundle.show_my_orders and ctx.employee_id is not None:
        return any(
            other.session_id == order.session_id
            and other.id != order.id
            and other.waiter_id == ctx.employee_id
            for other in ctx.orders
        )
    return False


def is_visible_in_active(order: Order, ctx: FilterContext) -> bool:
    """
    Decide whether an order shows in the active tab.

    Rules run in order and the first failure hides the order.
    """
    bundle = ctx.bundle
    if order.id in ctx.archived_ids:
        return False
    if not passes_assignment_filter(order, ctx):
        return False

    session_status = order.session_status
    if is_paid_session(session_status):
        return False
    if order.workflow_status == WorkflowStatus.CANCELLED:
        return False
    if session_status not in bundle.session_statuses:
        return False
    if order.workflow_status not in bundle.workflow_statuses:
        return False
    if not is_within_date_range(
        order.created_at, bundle.date_filter, bundle.custom_date_days, ctx.now
    ):
        return False
    return matches_search(order, bundle.search_term)


def sort_orders(
    orders: Iterable[Order], starred: Set[int], employee_id: Optional[int]
) -> List[Order]:
    """Starred first, then the employee's own orders, then newest (highest id) first."""
    return sorted(
        orders,
        key=lambda order: (
            order.id not in starred,
            not is_mine(order, employee_id),
            -order.id,
        ),
    )
