"""Result cache backends.

Available implementations:
- InMemoryCacheAdapter: Bounded in-process cache
- EncryptedFileCacheAdapter: Persistent Fernet-encrypted cache
"""

from .interfaces import CacheEntry, ICacheAdapter
from .storage import EncryptedFileCacheAdapter, InMemoryCacheAdapter

__all__ = ["CacheEntry", "ICacheAdapter", "EncryptedFileCacheAdapter", "InMemoryCacheAdapter"]
