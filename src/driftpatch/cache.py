"""
Content-keyed artifact cache.

Memoizes expensive derived artifacts (resolved member handles, looked-up host
assets) across many target instances. Entries are created on the first
successful computation and reused for the lifetime of the cache; nothing is
evicted. A factory that raises leaves no entry behind, so the next lookup
retries it.

The cache is an explicit object owned by whoever drives patching. Keep one per
process when entries should live for the process lifetime.

Not thread-safe: all access is expected on the host's scheduling thread.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class CacheKey:
    """Immutable cache key that can include multiple components."""
    components: Tuple[Any, ...]

    @classmethod
    def from_args(cls, *args) -> 'CacheKey':
        """Create cache key from variable arguments."""
        return cls(components=args)


@dataclass
class CacheStats:
    """Lookup counters, for diagnostics."""
    hits: int = 0
    misses: int = 0
    failures: int = 0


class ArtifactCache(Generic[T]):
    """
    Lazily populated, never-evicting cache keyed by content identity.

    Example:
        cache = ArtifactCache()

        handle = cache.get_or_compute(
            key=CacheKey.from_args('member', HostType, ('Power', 'power')),
            factory=lambda: resolver.resolve(HostType, ('Power', 'power'))
        )
    """

    def __init__(self):
        self._entries: Dict[CacheKey, T] = {}
        self._stats = CacheStats()

    def get_or_compute(self, key: CacheKey, factory: Callable[[], T]) -> T:
        """
        Get cached value or compute and cache it.

        A value returned by factory is cached even if it is None (meaning a
        permanently absent artifact). An exception raised by factory
        propagates and nothing is cached.

        Args:
            key: Cache key
            factory: Function computing the value on a miss

        Returns:
            Cached or computed value
        """
        if key in self._entries:
            self._stats.hits += 1
            return self._entries[key]

        self._stats.misses += 1
        try:
            value = factory()
        except Exception:
            self._stats.failures += 1
            raise

        self._entries[key] = value
        return value

    def get(self, key: CacheKey, default: Optional[T] = None) -> Optional[T]:
        """
        Get cached value without computing.

        Args:
            key: Cache key
            default: Returned when the key has no entry

        Returns:
            Cached value or default
        """
        return self._entries.get(key, default)

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
