"""In-memory client state store."""
import copy
from typing import Any, Dict, Optional

from waiterboard.services.state.base import StateStore


class InMemoryStateStore(StateStore):
    """State store kept in a dict; values are copied on the way in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._values.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def snapshot(self) -> Dict[str, Any]:
        """Copy of everything stored."""
        return copy.deepcopy(self._values)
