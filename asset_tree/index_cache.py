"""IndexCache - Thread-safe LRU cache of built asset indexes."""

from threading import RLock
from typing import Optional, Sequence, Tuple
from cachetools import LRUCache

from .asset import AssetIndex, AssetNode


CacheKey = Tuple[str, int]


class IndexCache:
    """Thread-safe LRU cache of AssetIndex instances.

    Keys are (project_id, revision), so a saved project naturally misses
    and rebuilds. Uses cachetools.LRUCache internally with threading.RLock
    for thread safety.
    """

    def __init__(self, max_size: int = 128):
        """Initialize index cache.

        Args:
            max_size: Maximum number of cached indexes.
        """
        self._cache: LRUCache[CacheKey, AssetIndex] = LRUCache(maxsize=max_size)
        self._lock = RLock()

    def get_index(self, project_id: str, revision: int, assets: Sequence[AssetNode]) -> AssetIndex:
        """Return the cached index for this project revision, building it on a miss.

        Args:
            project_id: Project identifier.
            revision: Revision the assets belong to.
            assets: The project's normalized assets.

        Returns:
            The index for `assets`.
        """
        key = (project_id, revision)
        with self._lock:
            index = self._cache.get(key)
            if index is None:
                index = AssetIndex(assets)
                self._cache[key] = index
            return index

    def get_cached_index(self, project_id: str, revision: int) -> Optional[AssetIndex]:
        with self._lock:
            return self._cache.get((project_id, revision))

    def invalidate(self, project_id: str) -> int:
        """Drop every cached revision of a project.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            stale = [key for key in self._cache.keys() if key[0] == project_id]
            for key in stale:
                del self._cache[key]
            return len(stale)

    def clear(self) -> None:
        """Clear all cached indexes."""
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_max_size(self) -> int:
        return self._cache.maxsize

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            return key in self._cache

    def __len__(self) -> int:
        return self.size()

    def __repr__(self) -> str:
        return f"IndexCache(size={self.size()}, max_size={self.get_max_size()})"
