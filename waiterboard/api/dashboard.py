"""Dashboard view and action endpoints."""
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from waiterboard.core.dependencies import get_dashboard
from waiterboard.services.dashboard.controller import WaiterDashboard
from waiterboard.services.feedback import Notice
from waiterboard.services.filtering.bundle import DateFilter, FilterBundle
from waiterboard.services.orders.models import WaiterCall
from waiterboard.services.views.partition import Tab, ViewSnapshot
from waiterboard.services.workflow.dispatcher import ActionOutcome

router = APIRouter(prefix="/api/dashboard")
logger = logging.getLogger(__name__)


class CancelRequest(BaseModel):
    reason: str = ""


class DeliverItemsRequest(BaseModel):
    item_ids: List[int] = []


class NotesRequest(BaseModel):
    notes: str = ""


class FilterUpdate(BaseModel):
    """Partial filter change; unset fields are left alone."""

    session_statuses: Optional[List[str]] = None
    workflow_statuses: Optional[List[str]] = None
    show_my_orders: Optional[bool] = None
    show_unassigned_orders: Optional[bool] = None
    date_filter: Optional[DateFilter] = None
    custom_date_days: Optional[int] = None
    search_term: Optional[str] = None


class TipRequest(BaseModel):
    amount: float | str | None = None


class PaymentRequest(BaseModel):
    order_ids: Optional[List[int]] = None


class ResendRequest(BaseModel):
    email: str = ""


def _tab(tab: str) -> Tab:
    try:
        return Tab(tab)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown tab: {tab}")


# ---- views ------------------------------------------------------------


@router.get("/views/{tab}", response_model=ViewSnapshot)
async def get_view(tab: str, dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Render-ready rows of a tab."""
    return dashboard.view(_tab(tab))


@router.post("/tabs/{tab}", response_model=ViewSnapshot)
async def switch_tab(tab: str, dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Activate a tab."""
    logger.info(f"[DASHBOARD API] Switching to tab '{tab}'")
    return await dashboard.switch_tab(_tab(tab))


@router.get("/counts")
async def get_counts(dashboard: WaiterDashboard = Depends(get_dashboard)) -> Dict[str, int]:
    """Badge count of every tab."""
    return dashboard.counts()


@router.post("/refresh")
async def refresh(dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Reload every order from the backend."""
    refreshed = await dashboard.refresher.refresh()
    return {"refreshed": refreshed, "orders": len(dashboard.store)}


@router.get("/feedback", response_model=List[Notice])
async def get_feedback(limit: int = 20, dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Latest feedback notices."""
    return dashboard.feedback.recent(limit)


# ---- orders -----------------------------------------------------------


@router.post("/orders/{order_id}/transitions/{transition}", response_model=ActionOutcome)
async def run_transition(
    order_id: int, transition: str, dashboard: WaiterDashboard = Depends(get_dashboard)
):
    """Accept, start, finish or deliver an order."""
    logger.info(f"[DASHBOARD API] {transition} requested for order {order_id}")
    return await dashboard.run_transition(order_id, transition)


@router.post("/orders/{order_id}/cancel", response_model=ActionOutcome)
async def cancel_order(
    order_id: int, body: CancelRequest, dashboard: WaiterDashboard = Depends(get_dashboard)
):
    """Cancel an order with a reason."""
    return await dashboard.cancel_order(order_id, body.reason)


@router.get("/orders/{order_id}/delivery-status")
async def delivery_status(order_id: int, dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Item-level delivery progress."""
    data = await dashboard.dispatcher.delivery_status(order_id)
    if data is None:
        raise HTTPException(status_code=502, detail="Could not load the delivery status")
    return data


@router.post("/orders/{order_id}/deliver-items", response_model=ActionOutcome)
async def deliver_items(
    order_id: int, body: DeliverItemsRequest, dashboard: WaiterDashboard = Depends(get_dashboard)
):
    """Deliver part of an order."""
    return await dashboard.deliver_items(order_id, body.item_ids)


@router.post("/orders/{order_id}/print")
async def print_order(order_id: int, dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Reprint the kitchen ticket."""
    return {"printed": await dashboard.dispatcher.print_order(order_id)}


@router.post("/orders/{order_id}/star")
async def toggle_star(order_id: int, dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Star or unstar an order."""
    starred = await dashboard.toggle_star(order_id)
    return {"order_id": order_id, "starred": starred}


@router.put("/orders/{order_id}/notes")
async def edit_notes(
    order_id: int, body: NotesRequest, dashboard: WaiterDashboard = Depends(get_dashboard)
):
    """Record a note draft; it is saved once editing pauses."""
    dashboard.notes.edit(order_id, body.notes)
    return {"order_id": order_id, "scheduled": True}


# ---- filters ----------------------------------------------------------


@router.get("/filters", response_model=FilterBundle)
async def get_filters(dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Current filter settings."""
    return dashboard.bundle


@router.put("/filters", response_model=FilterBundle)
async def update_filters(body: FilterUpdate, dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Change filter settings."""
    changes = body.model_dump(exclude_none=True)
    return await dashboard.update_filters(**changes)


@router.post("/filters/reset", response_model=FilterBundle)
async def reset_filters(dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Restore the default filters."""
    return await dashboard.reset_filters()


# ---- waiter calls -----------------------------------------------------


@router.get("/waiter-calls", response_model=List[WaiterCall])
async def get_waiter_calls(dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Pending table calls."""
    return dashboard.handle().get_pending_calls()


@router.post("/waiter-calls/{call_id}/confirm")
async def confirm_waiter_call(call_id: int, dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Acknowledge a table call."""
    return {"call_id": call_id, "confirmed": await dashboard.handle().confirm_waiter_call(call_id)}


@router.post("/supervisor-call")
async def call_supervisor(dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Page a supervisor."""
    return {"notified": await dashboard.calls.call_supervisor()}


# ---- sessions ---------------------------------------------------------


@router.post("/sessions/{session_id}/checkout")
async def checkout(session_id: int, dashboard: WaiterDashboard = Depends(get_dashboard)):
    return {"ok": await dashboard.sessions.checkout(session_id)}


@router.post("/sessions/{session_id}/tip")
async def tip(session_id: int, body: TipRequest, dashboard: WaiterDashboard = Depends(get_dashboard)):
    return {"ok": await dashboard.sessions.tip(session_id, body.amount)}


@router.get("/sessions/{session_id}/orders")
async def session_orders(session_id: int, dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Orders that can be picked for a split payment."""
    return {"orders": await dashboard.sessions.orders_for_payment(session_id)}


@router.post("/sessions/{session_id}/confirm-payment")
async def confirm_payment(
    session_id: int, body: PaymentRequest, dashboard: WaiterDashboard = Depends(get_dashboard)
):
    status = await dashboard.sessions.confirm_payment(session_id, body.order_ids)
    return {"ok": status is not None, "session_status": status}


@router.post("/sessions/{session_id}/resend")
async def resend_ticket(
    session_id: int, body: ResendRequest, dashboard: WaiterDashboard = Depends(get_dashboard)
):
    return {"ok": await dashboard.sessions.resend_ticket(session_id, body.email)}


@router.get("/sessions/{session_id}/ticket")
async def session_ticket(session_id: int, dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Printable ticket of a session."""
    ticket = await dashboard.handle().print_paid_session(session_id)
    if ticket is None:
        raise HTTPException(status_code=502, detail="Could not generate the ticket")
    return {"ticket": ticket, "pdf_url": dashboard.sessions.ticket_pdf_url(session_id)}


@router.post("/sessions/{session_id}/archive")
async def archive_session(session_id: int, dashboard: WaiterDashboard = Depends(get_dashboard)):
    """Hide a session's orders from the active tab."""
    return {"archived": dashboard.archive_session(session_id)}
