"""In-memory cache for repository scan results with TTL-based expiration."""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from skill_catalog.core.skill import ScanResult

DEFAULT_TTL_SECONDS = 30 * 60


@dataclass
class CacheEntry:
    """A cached scan and the clock reading after which it is stale."""

    key: str
    value: ScanResult
    expires_at: float


class ScanCache:
    """Time-bounded memoization of scan results.

    Entries are keyed by repository, subpath and git identity, so scans made
    with different credentials never share results. Expiry is checked only
    when an entry is read: a stale entry is dropped by the ``get`` that
    finds it. There is no capacity bound and no background sweep, so keys
    that are never read again stay in memory until ``clear``.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the scan cache.

        Args:
            ttl_seconds: Default time-to-live for new entries (default: 30 minutes)
            clock: Monotonic time source in seconds, injectable for tests
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @staticmethod
    def key(normalized_repo: str, subpath: Optional[str], identity_id: Optional[str]) -> str:
        """Build the cache key for a scan.

        Args:
            normalized_repo: Repository as ``owner/repo``
            subpath: Effective subpath of the scan, if any
            identity_id: Git identity used for the scan, if any

        Returns:
            Composite key string
        """
        parts = (normalized_repo, subpath, identity_id)
        return "::".join(str(part or "").strip() for part in parts)

    def get(self, key: str) -> Optional[ScanResult]:
        """Return the cached scan, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: ScanResult, ttl_seconds: Optional[float] = None) -> None:
        """Store a scan result.

        Args:
            key: Cache key from ``key()``
            value: Scan result to store
            ttl_seconds: Time-to-live for this entry, defaults to the cache TTL
        """
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)

    def clear(self) -> None:
        """Remove all cached scans."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
