"""Session (table account) actions: checkout, tips, payment and tickets."""
import logging
import math
from typing import Any, Dict, List, Optional

from waiterboard.core.errors import DashboardError, ValidationError
from waiterboard.services.backend.client import BackendClient
from waiterboard.services.feedback import FeedbackChannel
from waiterboard.services.orders.models import is_valid_email, normalize_customer_email
from waiterboard.services.orders.store import OrderStore
from waiterboard.services.views.paid import PaidSessionsFeed

logger = logging.getLogger(__name__)


class SessionActions:
    """Issues session endpoints and reflects the returned session in the store."""

    def __init__(
        self,
        client: BackendClient,
        store: OrderStore,
        feedback: FeedbackChannel,
        paid_feed: Optional[PaidSessionsFeed] = None,
    ):
        self.client = client
        self.store = store
        self.feedback = feedback
        self.paid_feed = paid_feed

    def _apply_session(self, session_id: int, data: Any) -> None:
        """Overlay the returned session on every order of that session."""
        if not isinstance(data, dict):
            return
        fields = {
            key: data[key]
            for key in ("status", "table_number", "notes", "total_amount", "closed_at")
            if data.get(key) is not None
        }
        if "table_number" in fields:
            fields["table_number"] = str(fields["table_number"])
        if fields:
            patched = self.store.patch_session(session_id, **fields)
            self.store.notify([order.id for order in patched])

    async def _post(
        self, session_id: int, action: str, body: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            data = await self.client.session_action(session_id, action, body)
        except DashboardError as e:
            logger.error(f"[SESSIONS] {action} failed for session {session_id}: {e.message}")
            self.feedback.error(e.message)
            return None
        return data if isinstance(data, dict) else {}

    async def checkout(self, session_id: int) -> bool:
        """Ask the table for a tip (first checkout step)."""
        data = await self._post(session_id, "checkout")
        if data is None:
            return False
        self._apply_session(session_id, data)
        self.feedback.success("Tip requested")
        return True

    async def tip(self, session_id: int, amount: Any) -> bool:
        """
        Record a tip.

        Raises:
            ValidationError: The amount is not a non-negative number
        """
        try:
            value = float(amount)
        except (TypeError, ValueError):
            value = -1.0
        if math.isnan(value) or value < 0:
            self.feedback.error("Enter a valid amount")
            raise ValidationError("Enter a valid amount")
        data = await self._post(session_id, "tip", {"tip_amount": value})
        if data is None:
            return False
        self._apply_session(session_id, data)
        self.feedback.success("Bill updated")
        return True

    async def orders_for_payment(self, session_id: int) -> List[Dict[str, Any]]:
        """Orders of a session that can be selected for a split payment."""
        try:
            return await self.client.session_orders(session_id)
        except DashboardError as e:
            self.feedback.error(e.message)
            return []

    async def confirm_payment(
        self, session_id: int, order_ids: Optional[List[int]] = None
    ) -> Optional[str]:
        """
        Confirm payment of a whole session or of selected orders.

        Returns:
            The session status reported by the server, None on failure
        """
        body = {"order_ids": list(order_ids)} if order_ids else None
        data = await self._post(session_id, "confirm-payment", body)
        if data is None:
            return None

        changed = []
        for order in self.store.orders_for_session(session_id):
            if order_ids and order.id in order_ids:
                self.store.patch(order.id, payment_status="paid")
                changed.append(order.id)
        session_status = data.get("status")
        if session_status == "paid":
            patched = self.store.patch_session(session_id, status="paid")
            changed.extend(order.id for order in patched)
        self.store.notify(sorted(set(changed)))

        if session_status == "paid":
            self.feedback.success("Payment confirmed, bill closed")
        else:
            count = len(order_ids or [])
            noun = "order" if count == 1 else "orders"
            self.feedback.success(f"Partial payment confirmed ({count} {noun})")

        if self.paid_feed is not None:
            await self.paid_feed.load()
        return session_status

    async def resend_ticket(self, session_id: int, email: str) -> bool:
        """
        Email the ticket again.

        Raises:
            ValidationError: The address is empty, a placeholder or malformed
        """
        address = normalize_customer_email(email)
        if not address or not is_valid_email(address):
            self.feedback.error("Enter a valid email address")
            raise ValidationError("Enter a valid email address")
        data = await self._post(session_id, "resend", {"email": address})
        if data is None:
            return False
        self.feedback.success(f"Ticket resent to {address}")
        return True

    async def ticket(self, session_id: int) -> Optional[str]:
        """Printable ticket text."""
        try:
            data = await self.client.session_ticket(session_id)
        except DashboardError as e:
            self.feedback.error(e.message)
            return None
        ticket = data.get("ticket") if isinstance(data, dict) else None
        if not isinstance(ticket, str):
            self.feedback.error("Invalid ticket response from the server")
            return None
        return ticket

    def ticket_pdf_url(self, session_id: int) -> str:
        return self.client.ticket_pdf_url(session_id)
