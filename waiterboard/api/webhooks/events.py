"""Realtime event webhook."""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from waiterboard.core.dependencies import get_dashboard
from waiterboard.services.dashboard.controller import WaiterDashboard

router = APIRouter()
logger = logging.getLogger(__name__)


class PushEvent(BaseModel):
    """Event envelope; both the socket and the event-bus shapes are accepted."""

    type: Optional[str] = None
    event: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None

    @property
    def name(self) -> Optional[str]:
        return self.type or self.event

    @property
    def body(self) -> Dict[str, Any]:
        return self.payload or self.data or {}


@router.post("/events")
async def receive_event(
    request: Request,
    event: PushEvent,
    dashboard: WaiterDashboard = Depends(get_dashboard),
):
    """Apply a pushed order, session or waiter-call event."""
    if not event.name:
        raise HTTPException(status_code=400, detail="Event type is required")
    logger.info(
        f"[EVENTS] Received '{event.name}' - "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )
    handled = await dashboard.handle_event(event.name, event.body)
    return {"event": event.name, "handled": handled}
