"""Bounded, thread-safe in-memory cache of decoded images keyed by image reference.

Eviction is FIFO by insertion order: when a new key arrives at capacity the
oldest surviving entry is dropped. Overwriting a key keeps its original
position. LRU-on-access would be an equally valid policy; insertion order
keeps `get` free of writes.

Example:
    cache = ImageCache(max_cache_size=2)
    cache.set("a", img_a)
    cache.set("b", img_b)
    cache.set("c", img_c)      # evicts "a"
    assert cache.get("a") is None
"""
from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Any, Optional

LOGGER = logging.getLogger(__name__)


class ImageCache:
    """Map image references to image handles with a fixed capacity.

    Args:
        max_cache_size: Maximum number of entries; fixed for the cache's lifetime.
    """

    def __init__(self, max_cache_size: int = 100) -> None:
        if max_cache_size < 1:
            raise ValueError("max_cache_size must be at least 1")
        self._max_cache_size = max_cache_size
        self._entries: "OrderedDict[str, Any]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_cache_size(self) -> int:
        return self._max_cache_size

    def get(self, key: str) -> Optional[Any]:
        """Return the handle cached for `key`, or None."""
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, handle: Any) -> None:
        """Insert or overwrite `key`, evicting the oldest entry if a new key would exceed capacity."""
        with self._lock:
            if key in self._entries:
                self._entries[key] = handle
                return
            if len(self._entries) >= self._max_cache_size:
                evicted, _ = self._entries.popitem(last=False)
                LOGGER.debug("Evicted %r from image cache", evicted)
            self._entries[key] = handle

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
