"""Waiter notes with debounced saving."""
import logging
from typing import Dict, Optional

from waiterboard.core.config import Settings
from waiterboard.core.errors import DashboardError, RequestTimeoutError
from waiterboard.services.backend.client import BackendClient
from waiterboard.services.feedback import FeedbackChannel
from waiterboard.services.orders.store import OrderStore
from waiterboard.services.sync.tasks import DebouncedTask
from waiterboard.services.workflow.statuses import is_finished_session

logger = logging.getLogger(__name__)


class OrderNotes:
    """Saves the waiter's free-text note of each order shortly after editing stops."""

    def __init__(
        self,
        client: BackendClient,
        store: OrderStore,
        feedback: FeedbackChannel,
        settings: Settings,
    ):
        self.client = client
        self.store = store
        self.feedback = feedback
        self.settings = settings
        self._drafts: Dict[int, str] = {}
        self._timers: Dict[int, DebouncedTask] = {}

    def edit(self, order_id: int, notes: str) -> None:
        """Record a draft and (re)start the save timer of that order."""
        self._drafts[order_id] = notes
        timer = self._timers.get(order_id)
        if timer is None:
            timer = DebouncedTask(lambda: self._save_draft(order_id), name=f"note-save-{order_id}")
            self._timers[order_id] = timer
        timer.schedule(self.settings.note_save_debounce_seconds)

    def draft(self, order_id: int) -> Optional[str]:
        return self._drafts.get(order_id)

    async def _save_draft(self, order_id: int) -> None:
        notes = self._drafts.pop(order_id, None)
        try:
            if notes is not None:
                await self.save(order_id, notes)
        finally:
            timer = self._timers.get(order_id)
            if timer is not None and not timer.pending:
                del self._timers[order_id]

    async def save(self, order_id: int, notes: str) -> bool:
        """Store the note now."""
        order = self.store.get(order_id)
        if order is not None and is_finished_session(order.session_status):
            self.feedback.error("You can only annotate active orders", order_id=order_id)
            return False

        try:
            data = await self.client.save_notes(
                order_id, notes, timeout=self.settings.note_save_timeout_seconds
            )
        except RequestTimeoutError:
            self.feedback.error("Request timed out. Try again.", order_id=order_id)
            return False
        except DashboardError as e:
            logger.error(f"[NOTES] Could not save note of order {order_id}: {e.message}")
            self.feedback.error(e.message or "Could not save the note.", order_id=order_id)
            return False

        saved = data.get("waiter_notes") if isinstance(data, dict) else None
        self.store.patch(order_id, waiter_notes=saved if saved is not None else notes)
        self.store.notify([order_id])
        self.feedback.success("Note updated", order_id=order_id)
        return True

    def cancel_all(self) -> None:
        """Drop every pending save timer."""
        for order_id, timer in list(self._timers.items()):
            timer.cancel()
            if not timer.in_flight:
                del self._timers[order_id]

    async def join(self) -> None:
        """Wait for pending and running saves."""
        for timer in list(self._timers.values()):
            await timer.join()
