"""In-memory order store."""
import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from waiterboard.services.orders.models import Order, SessionSnapshot
from waiterboard.services.workflow.statuses import normalize_workflow_status

logger = logging.getLogger(__name__)

# Receives the ids of changed orders, or None after a full refresh
ChangeListener = Callable[[Optional[List[int]]], None]


class OrderStore:
    """
    Authoritative mapping from order id to order record.

    All writes are synchronous and touch one record at a time, so a filter or
    sort pass started by another handler always sees committed records.
    """

    def __init__(self, orders: Optional[Iterable[Order]] = None):
        self._orders: Dict[int, Order] = {}
        self._listeners: List[ChangeListener] = []
        if orders:
            self.replace_all(orders)

    def replace_all(self, orders: Iterable[Order]) -> None:
        """Clear the store and repopulate it (full refresh)."""
        fresh = {order.id: order for order in orders}
        self._orders = fresh
        logger.debug(f"[STORE] Replaced contents with {len(fresh)} orders")

    def upsert(self, order: Order) -> Order:
        """Insert or replace a single record."""
        self._orders[order.id] = order
        return order

    def patch(self, order_id: int, **fields: Any) -> Optional[Order]:
        """
        Overlay fields on one record.

        Returns:
            The patched record, or None if the order is not in the store
        """
        existing = self._orders.get(order_id)
        if existing is None:
            return None
        if "workflow_status" in fields:
            canonical = normalize_workflow_status(fields["workflow_status"])
            fields["workflow_status"] = canonical
            fields["workflow_status_legacy"] = canonical
        patched = existing.model_copy(update=fields)
        self._orders[order_id] = patched
        return patched

    def patch_session(self, session_id: int, **fields: Any) -> List[Order]:
        """Overlay session snapshot fields on every order of a session."""
        patched = []
        for order in self.orders_for_session(session_id):
            if order.session is not None:
                session = order.session.model_copy(update=fields)
            else:
                session = SessionSnapshot(id=session_id, **fields)
            updated = order.model_copy(update={"session": session})
            self._orders[order.id] = updated
            patched.append(updated)
        return patched

    def remove(self, order_id: int) -> Optional[Order]:
        """Drop a record from the store."""
        return self._orders.pop(order_id, None)

    def get(self, order_id: int) -> Optional[Order]:
        """Get a record by id."""
        return self._orders.get(order_id)

    def orders_for_session(self, session_id: int) -> List[Order]:
        """All orders belonging to a session."""
        return [order for order in self._orders.values() if order.session_id == session_id]

    def values(self) -> List[Order]:
        """Snapshot of all records."""
        return list(self._orders.values())

    def ids(self) -> List[int]:
        """Snapshot of all order ids."""
        return list(self._orders.keys())

    def __contains__(self, order_id: object) -> bool:
        return order_id in self._orders

    def __len__(self) -> int:
        return len(self._orders)

    def __iter__(self) -> Iterator[Order]:
        return iter(self.values())

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, order_ids: Optional[Iterable[int]] = None) -> None:
        """Tell listeners which orders changed (None means everything)."""
        changed = list(order_ids) if order_ids is not None else None
        for listener in list(self._listeners):
            try:
                listener(changed)
            except Exception as e:
                logger.error(f"[STORE] Change listener failed: {e}", exc_info=True)
