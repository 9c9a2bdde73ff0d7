"""Thread-safe in-memory LRU cache bounded by estimated byte size.

Two owners use it:

* ``SessionStore`` keeps one JSON-ready dict per chat session (history
  plus conversation memory), so idle sessions fall out once the ceiling
  is reached.
* ``DashboardClient`` keeps the strategy catalog and per-goal subgoal
  lists, which change rarely but are read on every recommendation.

Sizes are estimated from the ``json.dumps`` length of each value.  Entries
are ephemeral and lost on restart.

>>> cache = LRUCache(max_bytes=1024)
>>> cache.put("strategies:all", [{"id": 1, "name": "Modeling"}])
>>> cache.get("strategies:all")
[{'id': 1, 'name': 'Modeling'}]
"""

from __future__ import annotations

import json
import logging
import threading
from collections import OrderedDict
from typing import Any

logger = logging.getLogger(__name__)

# Default ceiling: 10 MB
DEFAULT_MAX_BYTES = 10 * 1024 * 1024


class LRUCache:
    """Least-Recently-Used mapping bounded by total estimated byte size."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES, *, name: str = "cache") -> None:
        self._max_bytes = max_bytes
        self._name = name
        self._current_bytes = 0
        # key → (value, estimated_size_bytes)
        self._store: OrderedDict[str, tuple[Any, int]] = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def _estimate_bytes(value: Any) -> int:
        try:
            return len(json.dumps(value, default=str).encode("utf-8"))
        except (TypeError, ValueError, OverflowError):
            return len(str(value).encode("utf-8"))

    def _drop(self, key: str) -> None:
        _, size = self._store.pop(key)
        self._current_bytes -= size

    # ── Core operations ──────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        """Return the cached value (promoting it to most-recent) or ``None``."""
        with self._lock:
            if key not in self._store:
                return None
            self._store.move_to_end(key)
            return self._store[key][0]

    def put(self, key: str, value: Any) -> bool:
        """Insert or overwrite *key*, evicting old entries to make room.

        Returns ``False`` when *value* alone exceeds the ceiling and was
        not stored.
        """
        size = self._estimate_bytes(value)
        if size > self._max_bytes:
            logger.warning(
                "%s: refusing %s (%d bytes > max %d)",
                self._name, key, size, self._max_bytes,
            )
            return False

        with self._lock:
            if key in self._store:
                self._drop(key)
            while self._store and self._current_bytes + size > self._max_bytes:
                evicted_key = next(iter(self._store))
                self._drop(evicted_key)
                logger.debug("%s: evicted %s", self._name, evicted_key)
            self._store[key] = (value, size)
            self._current_bytes += size
        return True

    def invalidate(self, key: str) -> bool:
        """Remove *key*.  Returns ``True`` if it was present."""
        with self._lock:
            if key not in self._store:
                return False
            self._drop(key)
            return True

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every key starting with *prefix*.  Returns the count removed."""
        with self._lock:
            keys = [k for k in self._store if k.startswith(prefix)]
            for key in keys:
                self._drop(key)
        if keys:
            logger.debug("%s: invalidated %d keys under %r", self._name, len(keys), prefix)
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._current_bytes = 0

    # ── Introspection ────────────────────────────────────────────────

    @property
    def current_bytes(self) -> int:
        return self._current_bytes

    @property
    def entry_count(self) -> int:
        return len(self._store)

    def has(self, key: str) -> bool:
        """Membership test that does not promote the entry."""
        return key in self._store
