"""Recently paid sessions feed."""
import logging
from typing import Callable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from waiterboard.core.config import Settings
from waiterboard.core.errors import DashboardError
from waiterboard.services.backend.client import BackendClient
from waiterboard.services.feedback import FeedbackChannel
from waiterboard.services.filtering.bundle import FilterBundle
from waiterboard.services.filtering.engine import is_within_date_range
from waiterboard.services.orders.models import PaidSession
from waiterboard.services.sync.tasks import PeriodicTask

logger = logging.getLogger(__name__)


class PaidSessionsFeed:
    """
    Read model of recently paid sessions.

    Reloaded when the paid tab is opened and then periodically while it stays
    open.
    """

    def __init__(
        self,
        client: BackendClient,
        feedback: FeedbackChannel,
        settings: Settings,
        bundle_getter: Callable[[], FilterBundle],
    ):
        self.client = client
        self.feedback = feedback
        self.bundle_getter = bundle_getter
        self._sessions: List[PaidSession] = []
        self.task = PeriodicTask(
            self.load,
            interval=settings.paid_sessions_interval_seconds,
            name="paid-sessions-poll",
        )

    @property
    def sessions(self) -> List[PaidSession]:
        """Every sanitized session from the last load."""
        return list(self._sessions)

    def visible(self, now=None) -> List[PaidSession]:
        """Sessions closed (or created) within the selected date range."""
        bundle = self.bundle_getter()
        return [
            session
            for session in self._sessions
            if is_within_date_range(
                session.closed_at or session.created_at,
                bundle.date_filter,
                bundle.custom_date_days,
                now,
            )
        ]

    def start(self) -> None:
        self.task.start()

    def stop(self) -> None:
        self.task.stop()

    async def load(self) -> Optional[List[PaidSession]]:
        """Fetch and sanitize the paid sessions list."""
        try:
            payloads = await self.client.paid_recent_sessions()
        except DashboardError as e:
            logger.error(f"[PAID] Error loading paid sessions: {e.message}")
            self.feedback.error(e.message or "Error loading paid sessions")
            return None

        sessions = []
        for payload in payloads:
            if not isinstance(payload, dict) or payload.get("total_amount") is None:
                logger.warning(f"[PAID] Ignoring paid session with incomplete data: {payload}")
                continue
            try:
                sessions.append(PaidSession.model_validate(payload))
            except PydanticValidationError as e:
                logger.warning(f"[PAID] Ignoring paid session with incomplete data: {e}")
        self._sessions = sessions
        logger.debug(f"[PAID] Loaded {len(sessions)} paid sessions")
        return self.sessions
