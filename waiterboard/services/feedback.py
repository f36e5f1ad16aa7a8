"""User-facing feedback channel (toasts, sounds, banners)."""
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class Notice(BaseModel):
    """Single feedback message."""

    message: str
    level: str = "info"  # info | success | warning | error
    kind: str = "status"  # status | new_order | conflict | waiter_call
    order_id: Optional[int] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


NoticeListener = Callable[[Notice], None]


class FeedbackChannel:
    """Keeps the latest notices and fans them out to subscribers."""

    def __init__(self, history: int = 50):
        self._notices: Deque[Notice] = deque(maxlen=history)
        self._listeners: List[NoticeListener] = []

    def subscribe(self, listener: NoticeListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(
        self,
        message: str,
        level: str = "info",
        kind: str = "status",
        order_id: Optional[int] = None,
    ) -> Notice:
        """Record a notice and deliver it to every listener."""
        notice = Notice(message=message, level=level, kind=kind, order_id=order_id)
        self._notices.append(notice)
        log_level = logging.WARNING if level in ("warning", "error") else logging.INFO
        logger.log(log_level, f"[FEEDBACK] ({level}/{kind}) {message}")
        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception as e:
                logger.error(f"[FEEDBACK] Listener failed: {e}", exc_info=True)
        return notice

    def success(self, message: str, **kwargs) -> Notice:
        return self.emit(message, level="success", **kwargs)

    def error(self, message: str, **kwargs) -> Notice:
        return self.emit(message, level="error", **kwargs)

    def warning(self, message: str, **kwargs) -> Notice:
        return self.emit(message, level="warning", **kwargs)

    def recent(self, limit: Optional[int] = None) -> List[Notice]:
        """Latest notices, oldest first."""
        notices = list(self._notices)
        return notices[-limit:] if limit else notices

    @property
    def last(self) -> Optional[Notice]:
        """Most recent notice."""
        return self._notices[-1] if self._notices else None

    def clear(self) -> None:
        self._notices.clear()
