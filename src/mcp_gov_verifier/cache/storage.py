"""Cache storage implementations for verification results.

This module provides two cache backends:
- InMemoryCacheAdapter: Bounded in-process cache (default, and for testing)
- EncryptedFileCacheAdapter: Persistent cache with encryption on disk

Cached results contain personal data (names, birth dates, passport numbers),
so the persistent backend never writes plaintext.
"""

import hashlib
import json
import os
import time
from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import structlog
from cryptography.fernet import Fernet

from .interfaces import CacheEntry, ICacheAdapter

logger = structlog.get_logger()


class InMemoryCacheAdapter(ICacheAdapter):
    """In-memory cache with TTL expiry and a least-recently-used bound.

    All entries are lost when the process terminates.

    Attributes:
        max_entries: Entries kept before the least recently used one is evicted
    """

    def __init__(self, max_entries: int = 1024, clock: Callable[[], float] = time.time):
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.logger = logger.bind(cache="memory")

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self.logger.debug("cache_entry_expired", key=key)
            return None

        self._entries.move_to_end(key)
        return entry.value

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: float) -> bool:
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            expires_at=self._clock() + ttl_seconds
        )
        self._entries.move_to_end(key)

        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self.logger.debug("cache_entry_evicted", key=evicted)
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None


class EncryptedFileCacheAdapter(ICacheAdapter):
    """Encrypted on-disk cache.

    Every entry is a Fernet-encrypted JSON file named after the SHA-256 of its
    key, so no personal data leaks into file names either.

    Security features:
    - Entry contents encrypted with Fernet
    - Files are created with restrictive permissions (0o600)
    - A generated key is stored beside the entries with 0o600 permissions

    Attributes:
        storage_path: Directory holding the encrypted entries
        fernet: Fernet encryption instance
    """

    def __init__(
        self,
        storage_path: str,
        encryption_key: Optional[str] = None,
        clock: Callable[[], float] = time.time
    ):
        """Initialize the encrypted cache backend.

        Args:
            storage_path: Directory path where encrypted entries will be stored
            encryption_key: Fernet key. If omitted, a key stored in the
                directory is reused or a new one generated.
            clock: Wall-clock source; expiry survives restarts, so monotonic
                time cannot be used here.
        """
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self.logger = logger.bind(cache="encrypted", path=str(self.storage_path))

        if encryption_key:
            self.fernet = Fernet(
                encryption_key.encode() if isinstance(encryption_key, str) else encryption_key
            )
        else:
            self.fernet = Fernet(self._load_or_create_key())

    def _load_or_create_key(self) -> bytes:
        key_path = self.storage_path / ".encryption_key"
        if key_path.exists():
            return key_path.read_bytes()

        key = Fernet.generate_key()
        key_path.write_bytes(key)
        os.chmod(key_path, 0o600)
        self.logger.info("encryption_key_saved")
        return key

    def _entry_path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.storage_path / f"{digest}.enc"

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._entry_path(key)
        if not path.exists():
            return None

        try:
            data = json.loads(self.fernet.decrypt(path.read_bytes()).decode("utf-8"))
            expires_at = float(data["expires_at"])
        except Exception as e:
            # Tampered file, wrong key or corrupted JSON
            self.logger.error("cache_read_error", error=str(e), exc_info=True)
            return None

        if self._clock() >= expires_at:
            path.unlink(missing_ok=True)
            self.logger.debug("cache_entry_expired")
            return None

        return data["value"]

    async def set(self, key: str, value: Dict[str, Any], ttl_seconds: float) -> bool:
        try:
            payload = json.dumps(
                {"value": value, "expires_at": self._clock() + ttl_seconds},
                ensure_ascii=False
            )
            path = self._entry_path(key)
            path.write_bytes(self.fernet.encrypt(payload.encode("utf-8")))
            os.chmod(path, 0o600)
            return True
        except Exception as e:
            self.logger.error("cache_write_error", error=str(e), exc_info=True)
            return False

    async def delete(self, key: str) -> bool:
        path = self._entry_path(key)
        if path.exists():
            path.unlink()
            return True
        return False
