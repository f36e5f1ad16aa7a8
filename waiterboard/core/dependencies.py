"""FastAPI dependencies."""
from typing import Optional

from fastapi import HTTPException

from waiterboard.services.dashboard.controller import WaiterDashboard

_dashboard: Optional[WaiterDashboard] = None


def set_dashboard(dashboard: Optional[WaiterDashboard]) -> None:
    """Install the running dashboard (done by the app lifespan)."""
    global _dashboard
    _dashboard = dashboard


def get_dashboard() -> WaiterDashboard:
    """Get the running dashboard instance."""
    if _dashboard is None:
        raise HTTPException(status_code=503, detail="Dashboard not started")
    return _dashboard
