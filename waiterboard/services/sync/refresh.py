"""Full order refresh."""
import logging
from typing import Awaitable, Callable, List

from waiterboard.core.errors import DashboardError
from waiterboard.services.backend.client import BackendClient
from waiterboard.services.feedback import FeedbackChannel
from waiterboard.services.orders.models import parse_orders
from waiterboard.services.orders.store import OrderStore
from waiterboard.services.sync.tasks import DebouncedTask

logger = logging.getLogger(__name__)

RefreshHook = Callable[[], Awaitable[None]]


class OrderRefresher:
    """
    Replaces the order store with the server's full order list.

    `schedule()` coalesces bursts of refresh requests into one fetch. A fetch
    already in flight is never cancelled; whichever response resolves last
    replaces the store wholesale.
    """

    def __init__(self, client: BackendClient, store: OrderStore, feedback: FeedbackChannel):
        self.client = client
        self.store = store
        self.feedback = feedback
        self._hooks: List[RefreshHook] = []
        self.task = DebouncedTask(self.refresh, name="orders-refresh")

    def add_hook(self, hook: RefreshHook) -> None:
        """Run `hook` after every successful refresh."""
        self._hooks.append(hook)

    def schedule(self, delay: float) -> None:
        """Request a refresh after `delay` seconds."""
        self.task.schedule(delay)

    def cancel(self) -> None:
        self.task.cancel()

    async def refresh(self) -> bool:
        """
        Fetch every order, including closed sessions and delivered orders.

        Returns:
            True when the store was replaced
        """
        logger.info("[REFRESH] Refreshing orders from server...")
        try:
            payloads = await self.client.list_orders(include_closed=True)
        except DashboardError as e:
            logger.error(f"[REFRESH] Error refreshing orders: {e.message}")
            self.feedback.error("Error refreshing orders")
            return False

        orders = parse_orders(payloads)
        self.store.replace_all(orders)
        self.store.notify(None)
        logger.info(f"[REFRESH] Orders refreshed successfully: {len(orders)} orders")

        for hook in self._hooks:
            try:
                await hook()
            except Exception as e:
                logger.error(f"[REFRESH] Post-refresh hook failed: {e}", exc_info=True)

        self.feedback.emit("Orders refreshed", kind="refresh")
        return True
