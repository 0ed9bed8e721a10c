"""
Content-hash cache for parse and match results.

Maps a hash of normalized input content to a previously computed result.
Entries expire after a TTL and the oldest entries are evicted in bulk once
the store grows past a ceiling.

The store mapping and the clock are injected so that:
- tests control time and never share state between cases
- several service instances can share one store when that is wanted

Usage:
    cache = ContentHashCache(ttl_seconds=3600, prefix_length=4000)

    cached = cache.get(cv_text)
    if cached is None:
        result = compute(cv_text)
        cache.put(cv_text, result)
"""

import hashlib
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, MutableMapping, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")

Clock = Callable[[], float]

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class CacheEntry(Generic[V]):
    """A cached value with the time it was stored."""
    value: V
    stored_at: float
    key: str


def normalize_content(content: str, prefix_length: Optional[int] = None) -> str:
    """
    Normalize text so that cosmetic differences share a cache key.

    Lowercases, collapses runs of whitespace to one space, strips, then keeps
    only the first `prefix_length` characters (None keeps everything).

    Example:
        >>> normalize_content("  Senior  Engineer\\n\\nPython ")
        'senior engineer python'
    """
    normalized = _WHITESPACE_RE.sub(" ", (content or "").lower()).strip()
    if prefix_length is not None:
        normalized = normalized[:prefix_length]
    return normalized


class ContentHashCache(Generic[V]):
    """
    TTL cache keyed by SHA-256 of normalized content.

    Not thread-safe and not shared across processes: it is an optimization,
    never a source of truth.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 2000,
        evict_count: int = 400,
        prefix_length: Optional[int] = None,
        store: Optional[MutableMapping[str, CacheEntry[V]]] = None,
        clock: Optional[Clock] = None,
        name: str = "cache",
    ):
        """
        Args:
            ttl_seconds: Age after which an entry is treated as a miss
            max_entries: Size ceiling; exceeding it triggers eviction
            evict_count: How many of the oldest entries one eviction removes
            prefix_length: Characters of normalized content that form the key
                (None = whole content)
            store: Backing mapping (defaults to a new dict)
            clock: Function returning the current time in seconds
            name: Label for log lines
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries < 1 or evict_count < 1:
            raise ValueError("max_entries and evict_count must be >= 1")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.evict_count = evict_count
        self.prefix_length = prefix_length
        self.name = name
        self._store: MutableMapping[str, CacheEntry[V]] = store if store is not None else {}
        self._clock: Clock = clock or time.time

    def key_for(self, content: str) -> str:
        """SHA-256 hex digest of the normalized content."""
        normalized = normalize_content(content, self.prefix_length)
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

    def get(self, content: str) -> Optional[V]:
        """
        Look up a result for `content`.

        Returns:
            The cached value, or None on a miss. Expired entries are deleted.
        """
        key = self.key_for(content)
        entry = self._store.get(key)
        if entry is None:
            return None

        age = self._clock() - entry.stored_at
        if age > self.ttl_seconds:
            del self._store[key]
            logger.debug(f"[{self.name}] expired entry {key[:8]} (age {age:.0f}s)")
            return None

        logger.debug(f"[{self.name}] hit {key[:8]}")
        return entry.value

    def put(self, content: str, value: V) -> str:
        """
        Store `value` for `content` with the current timestamp.

        Returns:
            The cache key used
        """
        key = self.key_for(content)
        self._store[key] = CacheEntry(value=value, stored_at=self._clock(), key=key)

        if len(self._store) > self.max_entries:
            self._evict_oldest()

        return key

    def _evict_oldest(self) -> None:
        oldest = sorted(self._store.values(), key=lambda e: e.stored_at)[: self.evict_count]
        for entry in oldest:
            self._store.pop(entry.key, None)
        logger.info(
            f"[{self.name}] evicted {len(oldest)} oldest entries "
            f"({len(self._store)} remaining)"
        )

    def clear(self) -> None:
        self._store.clear()
        logger.info(f"[{self.name}] cleared")

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, content: object) -> bool:
        if not isinstance(content, str):
            return False
        return self.get(content) is not None

    def stats(self) -> Dict[str, Any]:
        """Size plus per-entry short hash and age, for diagnostics endpoints."""
        now = self._clock()
        entries: List[Dict[str, Any]] = [
            {
                "hash": entry.key[:8],
                "stored_at": entry.stored_at,
                "age_seconds": round(now - entry.stored_at, 3),
            }
            for entry in self._store.values()
        ]
        return {
            "name": self.name,
            "size": len(self._store),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
            "entries": entries,
        }
