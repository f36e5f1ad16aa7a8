"""Client state store interface."""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional


class StateStore(ABC):
    """Abstract base class for durable key-value client state."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get the value of a key, None if it was never stored."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key."""
        pass

    async def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Values of the keys that exist."""
        values = {}
        for key in keys:
            value = await self.get(key)
            if value is not None:
                values[key] = value
        return values
