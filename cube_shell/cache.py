import logging
import threading
from dataclasses import dataclass

from .remote_client import ListingItem

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    hits: int
    misses: int
    entries: int
    current_cwd: str


class ListingCache:
    """
    Cache for directory listings (ls, tab completion, wildcard expansion).

    Entries never expire on their own. A cached listing is trusted until it
    is invalidated by a mutating command or the whole cache is dropped
    because the working directory changed.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._cache: dict[str, list[ListingItem]] = {}
        self._current_cwd = ""
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def get(self, path: str) -> list[ListingItem] | None:
        """
        Retrieve a directory listing if cached.

        Args:
            path: Absolute directory path.

        Returns:
            The cached listing, or None on a miss.
        """
        with self._lock:
            items = self._cache.get(path) if self.enabled else None
            if items is not None:
                self._hits += 1
                logger.debug("Cache hit: %s", path)
                return items
            self._misses += 1
            logger.debug("Cache miss: %s", path)
            return None

    def put(self, path: str, items: list[ListingItem]) -> None:
        """
        Cache a directory listing, replacing any previous entry.

        Args:
            path: Absolute directory path.
            items: The listing to cache.
        """
        if not self.enabled:
            return
        with self._lock:
            self._cache[path] = items

    def invalidate(self, path: str | None = None) -> None:
        """
        Drop one entry, or the whole cache when no path is given.

        Args:
            path: The directory path to invalidate.
        """
        with self._lock:
            if path is None:
                self._cache.clear()
                logger.debug("Cache cleared")
            else:
                self._cache.pop(path, None)
                logger.debug("Cache invalidated: %s", path)

    def invalidate_parent(self, path: str) -> None:
        """Invalidate the directory containing path (after adding/removing it)."""
        self.invalidate(parent_of(path))

    def cwd_update(self, new_cwd: str) -> None:
        """
        Track the working directory. Any change clears every entry, not just
        the old directory's listing.
        """
        with self._lock:
            if new_cwd != self._current_cwd:
                self._cache.clear()
                logger.debug("cwd %s -> %s, cache cleared", self._current_cwd, new_cwd)
                self._current_cwd = new_cwd

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                entries=len(self._cache),
                current_cwd=self._current_cwd,
            )

    def reset_stats(self) -> None:
        with self._lock:
            self._hits = 0
            self._misses = 0


def parent_of(path: str) -> str:
    """Return the parent directory of an absolute remote path."""
    normalized = path.rstrip("/")
    if "/" not in normalized:
        return "/"
    parent = normalized.rsplit("/", 1)[0]
    return parent or "/"
