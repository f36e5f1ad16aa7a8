"""Restaurant backend API client."""
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from waiterboard.core.config import Settings, settings as default_settings
from waiterboard.core.errors import ConflictError, NetworkError, RequestTimeoutError

logger = logging.getLogger(__name__)

# Structured error codes the backend uses for "someone else got there first"
CONFLICT_ERROR_CODES = {"conflict", "already_taken", "order_already_taken"}

# Legacy compatibility: older backends only send human-readable text
LEGACY_CONFLICT_MARKERS = ("ya fue tomada", "already", "taken")


def _error_message(payload: Any, fallback: str) -> str:
    """Extract a human-readable message from an error payload."""
    if isinstance(payload, dict):
        for key in ("error", "message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return fallback


def is_conflict_response(status_code: int, payload: Any) -> bool:
    """Decide whether an error response means the target was already transitioned."""
    if status_code == 409:
        return True
    if isinstance(payload, dict):
        code = payload.get("code") or payload.get("error_code")
        if isinstance(code, str) and code.lower() in CONFLICT_ERROR_CODES:
            return True
    message = _error_message(payload, "").lower()
    return any(marker in message for marker in LEGACY_CONFLICT_MARKERS)


class BackendClient:
    """Async client for the restaurant backend REST API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or default_settings
        headers = {"Accept": "application/json"}
        if self.settings.api_token:
            headers["Authorization"] = f"Bearer {self.settings.api_token}"
        self.client = httpx.AsyncClient(
            base_url=self.settings.api_base_url,
            headers=headers,
            timeout=self.settings.request_timeout_seconds,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Send a request and decode the JSON body.

        Raises:
            RequestTimeoutError: The request exceeded its deadline
            ConflictError: The action target was already transitioned
            NetworkError: Transport failure or any other non-2xx response
        """
        request_timeout = timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT
        try:
            response = await self.client.request(
                method, path, json=json, params=params, timeout=request_timeout
            )
        except httpx.TimeoutException as e:
            logger.warning(f"[BACKEND] {method} {path} timed out: {e}")
            raise RequestTimeoutError("Request timed out. Try again.") from e
        except httpx.HTTPError as e:
            logger.error(f"[BACKEND] {method} {path} failed: {type(e).__name__}: {e}")
            raise NetworkError(f"Could not reach the server: {e}") from e

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = response.text

        if response.is_success:
            return payload

        message = _error_message(payload, response.text or f"HTTP {response.status_code}")
        if is_conflict_response(response.status_code, payload):
            logger.info(f"[BACKEND] {method} {path} conflict: {message}")
            raise ConflictError(message, status_code=response.status_code)
        logger.warning(f"[BACKEND] {method} {path} returned {response.status_code}: {message}")
        raise NetworkError(message, status_code=response.status_code)

    # ---- orders -------------------------------------------------------

    async def list_orders(self, include_closed: bool = False) -> List[Dict[str, Any]]:
        """Fetch orders; the full view includes closed sessions and delivered orders."""
        params = None
        if include_closed:
            params = {"include_closed": "true", "include_delivered": "true"}
        data = await self._request("GET", "/api/orders", params=params)
        orders = data.get("orders", []) if isinstance(data, dict) else data
        return orders if isinstance(orders, list) else []

    async def post_order_action(
        self, endpoint: str, body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """POST a workflow transition endpoint and return the updated order."""
        return await self._request("POST", endpoint, json=body or {})

    async def delivery_status(self, order_id: int) -> Dict[str, Any]:
        """Per-item delivery progress of an order."""
        return await self._request("GET", f"/api/orders/{order_id}/delivery-status")

    async def deliver_items(
        self, order_id: int, item_ids: Iterable[int], employee_id: int
    ) -> Dict[str, Any]:
        """Mark a subset of items as delivered."""
        return await self._request(
            "POST",
            f"/api/orders/{order_id}/deliver-items",
            json={"item_ids": list(item_ids), "employee_id": employee_id},
        )

    async def save_notes(
        self, order_id: int, notes: str, timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """Store the waiter note of an order."""
        return await self._request(
            "POST", f"/api/orders/{order_id}/notes", json={"notes": notes}, timeout=timeout
        )

    # ---- configuration ------------------------------------------------

    async def get_config(self, key: str) -> Dict[str, Any]:
        """Read a backend configuration value."""
        data = await self._request("GET", f"/api/config/{key}")
        return data if isinstance(data, dict) else {}

    # ---- waiter calls -------------------------------------------------

    async def pending_waiter_calls(self) -> List[Dict[str, Any]]:
        """Calls still waiting for a waiter."""
        data = await self._request("GET", "/api/waiter-calls/pending")
        calls = data.get("waiter_calls", []) if isinstance(data, dict) else []
        return calls if isinstance(calls, list) else []

    async def confirm_waiter_call(self, call_id: int, employee_id: int) -> Dict[str, Any]:
        """Acknowledge a table call."""
        return await self._request(
            "POST",
            f"/api/waiter-calls/{call_id}/confirm",
            json={"employee_id": employee_id},
        )

    async def call_supervisor(
        self,
        reason: str,
        table_number: Optional[str] = None,
        order_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Page a supervisor."""
        return await self._request(
            "POST",
            "/api/waiter-calls/supervisor/call",
            json={"table_number": table_number, "order_id": order_id, "reason": reason},
        )

    # ---- sessions -----------------------------------------------------

    async def paid_recent_sessions(self) -> List[Dict[str, Any]]:
        """Recently paid sessions read model."""
        data = await self._request("GET", "/api/sessions/paid-recent")
        sessions = data.get("sessions", []) if isinstance(data, dict) else []
        return sessions if isinstance(sessions, list) else []

    async def session_action(
        self, session_id: int, action: str, body: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """POST one of the session endpoints (checkout, tip, confirm-payment, resend)."""
        return await self._request(
            "POST", f"/api/sessions/{session_id}/{action}", json=body or {}
        )

    async def session_orders(self, session_id: int) -> List[Dict[str, Any]]:
        """Orders of a session available for a split payment."""
        data = await self._request("GET", f"/api/sessions/{session_id}/orders")
        orders = data.get("orders", []) if isinstance(data, dict) else []
        return orders if isinstance(orders, list) else []

    async def session_ticket(self, session_id: int) -> Dict[str, Any]:
        """Printable ticket of a session."""
        return await self._request("GET", f"/api/sessions/{session_id}/ticket")

    def ticket_pdf_url(self, session_id: int) -> str:
        """Absolute URL of the PDF ticket."""
        return f"{self.settings.api_base_url.rstrip('/')}/api/sessions/{session_id}/ticket.pdf"
