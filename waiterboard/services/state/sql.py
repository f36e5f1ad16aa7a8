"""SQLAlchemy-backed client state store."""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from waiterboard.db.models import ClientState
from waiterboard.services.state.base import StateStore

logger = logging.getLogger(__name__)


class SqlStateStore(StateStore):
    """Persists client state in the `client_state` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, key: str) -> Optional[Any]:
        async with self.session_factory() as db:
            result = await db.execute(select(ClientState).where(ClientState.key == key))
            row = result.scalar_one_or_none()
            return row.value if row else None

    async def set(self, key: str, value: Any) -> None:
        async with self.session_factory() as db:
            row = await db.get(ClientState, key)
            if row is None:
                db.add(ClientState(key=key, value=value))
            else:
                row.value = value
                row.updated_at = datetime.utcnow()
            await db.commit()
        logger.debug(f"[STATE] Saved {key}")

    async def delete(self, key: str) -> None:
        async with self.session_factory() as db:
            await db.execute(delete(ClientState).where(ClientState.key == key))
            await db.commit()
