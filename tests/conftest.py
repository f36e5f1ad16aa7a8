"""Shared test fixtures and configuration."""
import json
import os
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EMPLOYEE_ID", "5")

from waiterboard.main import app
from waiterboard.core.config import Settings
from waiterboard.core.dependencies import get_dashboard
from waiterboard.db.models import Base
from waiterboard.services.backend.client import BackendClient
from waiterboard.services.dashboard.capabilities import RoleCapabilities
from waiterboard.services.dashboard.controller import create_dashboard
from waiterboard.services.state.memory import InMemoryStateStore


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

RouteResponse = Union[
    Dict[str, Any], List[Any], Tuple[int, Any], Callable[[httpx.Request], httpx.Response]
]


class FakeBackend:
    """Restaurant backend double served through httpx.MockTransport."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[RouteResponse]] = {}
        self.requests: List[httpx.Request] = []
        self.active_orders: List[Dict[str, Any]] = []
        self.all_orders: List[Dict[str, Any]] = []

    def add(self, method: str, path: str, *responses: RouteResponse) -> None:
        """Queue responses for a route; the last one repeats."""
        self.routes[(method.upper(), path)] = list(responses)

    def set_orders(
        self,
        active: List[Dict[str, Any]],
        full: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        """Orders returned by the poll (active) and full-refresh endpoints."""
        self.active_orders = active
        self.all_orders = active if full is None else full

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method.upper() and request.url.path == path
        ]

    @staticmethod
    def body(request: httpx.Request) -> Dict[str, Any]:
        return json.loads(request.content or b"{}")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)

        if key == ("GET", "/api/orders") and key not in self.routes:
            full = request.url.params.get("include_closed") == "true"
            return httpx.Response(
                200, json={"orders": self.all_orders if full else self.active_orders}
            )

        queue = self.routes.get(key)
        if not queue:
            return httpx.Response(404, json={"error": f"No route for {key}"})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(response):
            return response(request)
        if isinstance(response, tuple):
            status, payload = response
            return httpx.Response(status, json=payload)
        return httpx.Response(200, json=response)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def iso(dt: datetime) -> str:
    return dt.isoformat()


def make_order(
    order_id: int,
    status: str = "new",
    session_id: int = 1,
    session_status: str = "open",
    table: str = "M01",
    waiter_id: Optional[int] = None,
    waiter_name: Optional[str] = None,
    created_at: Optional[str] = None,
    items: Optional[List[Dict[str, Any]]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Order payload as the backend sends it."""
    payload = {
        "id": order_id,
        "session_id": session_id,
        "workflow_status": status,
        "session": {"id": session_id, "status": session_status, "table_number": table},
        "customer": {"name": f"Customer {order_id}", "email": None},
        "waiter_id": waiter_id,
        "waiter_name": waiter_name,
        "items": items or [],
        "created_at": created_at or iso(datetime.now().astimezone() - timedelta(minutes=1)),
    }
    payload.update(extra)
    return payload


@pytest.fixture
def test_settings():
    """Settings for testing; refresh delays are shortened."""
    return Settings(
        api_base_url="http://backend.test",
        employee_id=5,
        employee_name="Ana",
        employee_role="waiter",
        database_url=TEST_DATABASE_URL,
        poll_interval_seconds=60,
        poll_initial_delay_seconds=60,
        pending_calls_interval_seconds=60,
        paid_sessions_interval_seconds=60,
        poll_new_order_refresh_delay=0.01,
        poll_drift_refresh_delay=0.01,
        push_new_order_refresh_delay=0.01,
        push_order_status_refresh_delay=0.01,
        push_bus_status_refresh_delay=0.01,
        push_bus_new_order_refresh_delay=0.01,
        push_session_refresh_delay=0.01,
        push_auto_accept_refresh_delay=0.01,
        note_save_debounce_seconds=0.01,
    )


@pytest.fixture
def fake_backend():
    """Backend double with empty order lists."""
    backend = FakeBackend()
    backend.add("GET", "/api/sessions/paid-recent", {"sessions": []})
    backend.add("GET", "/api/waiter-calls/pending", {"waiter_calls": []})
    return backend


@pytest.fixture
def backend_client(test_settings, fake_backend):
    """Backend client wired to the fake backend."""
    return BackendClient(test_settings, transport=fake_backend.transport())


@pytest.fixture
def state_store():
    """In-memory client state."""
    return InMemoryStateStore()


@pytest.fixture
def capabilities():
    return RoleCapabilities.for_role("waiter")


@pytest.fixture
def dashboard(test_settings, state_store, backend_client, capabilities):
    """Dashboard that is built but not started (no pollers running)."""
    return create_dashboard(
        test_settings,
        state_store=state_store,
        client=backend_client,
        capabilities=capabilities,
    )


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(test_db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def test_client(dashboard):
    """Create FastAPI test client with the dashboard override (lifespan not run)."""
    app.dependency_overrides[get_dashboard] = lambda: dashboard

    client = TestClient(app)

    yield client

    # Clear overrides
    app.dependency_overrides.clear()
