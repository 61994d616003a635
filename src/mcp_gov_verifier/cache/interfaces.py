"""Cache adapter interface used by the verification gateways."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class CacheEntry:
    """A cached value and the clock reading after which it is stale."""
    key: str
    value: Dict[str, Any]
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ICacheAdapter(ABC):
    """Key-value cache with per-entry time to live.

    Values are JSON-compatible dictionaries.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the live value for key, or None on miss or expiry."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: float) -> bool:
        """Store value under key for ttl_seconds.

        Returns:
            bool: True if stored, False on error
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove key. Returns True if something was removed."""
        pass
