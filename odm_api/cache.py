"""
Process-local response cache.

One ``TTLCache`` instance is shared by every request in the process. Entries
live in namespaces, each with its own TTL and entry ceiling. Keys are built
from a canonical JSON dump of the parameters, so ``{"a": 1, "b": 2}`` and
``{"b": 2, "a": 1}`` hit the same entry.

Writes are plain overwrites without locking: two requests racing on the same
key both compute the same deterministic value and the last one wins.
Cached values are shared snapshots and must not be mutated by callers.
"""
import json
import time
from dataclasses import dataclass
from typing import Any, Callable

from .logging_utils import get_logger

logger = get_logger(__name__)

# Seconds
DEFAULT_TTLS = {
    "beneficiaires_chaine": 15 * 60,
    "marques_transitives": 30 * 60,
    "beneficiaires": 30 * 60,
}
DEFAULT_TTL = 20 * 60


@dataclass
class _Entry:
    value: Any
    stored_at: float
    last_access: float


def canonical_key(params: dict | None) -> str:
    """Order-independent serialization of request parameters."""
    return json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)


class TTLCache:
    def __init__(
        self,
        ttls: dict[str, float] | None = None,
        max_entries: int = 200,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self.max_entries = max(1, max_entries)
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: dict[str, dict[str, _Entry]] = {}
        self._hits: dict[str, int] = {}
        self._misses: dict[str, int] = {}

    def ttl_for(self, namespace: str) -> float:
        return self.ttls.get(namespace, self.default_ttl)

    def _expired(self, namespace: str, entry: _Entry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_for(namespace)

    def get(self, namespace: str, params: dict | None = None) -> Any | None:
        """Return the cached value, or None on a miss or an expired entry."""
        try:
            key = canonical_key(params)
            entries = self._store.get(namespace, {})
            entry = entries.get(key)
            now = self._clock()
            if entry is None or self._expired(namespace, entry, now):
                if entry is not None:
                    entries.pop(key, None)
                self._misses[namespace] = self._misses.get(namespace, 0) + 1
                logger.debug("cache MISS %s %s", namespace, key)
                return None
            entry.last_access = now
            self._hits[namespace] = self._hits.get(namespace, 0) + 1
            logger.debug("cache HIT %s %s", namespace, key)
            return entry.value
        except (TypeError, ValueError):
            # Unserializable params: behave as a miss, never fail the request
            logger.warning("cache get failed for namespace %s", namespace, exc_info=True)
            self._misses[namespace] = self._misses.get(namespace, 0) + 1
            return None

    def set(self, namespace: str, value: Any, params: dict | None = None) -> None:
        try:
            key = canonical_key(params)
        except (TypeError, ValueError):
            logger.warning("cache set skipped for namespace %s", namespace, exc_info=True)
            return

        entries = self._store.setdefault(namespace, {})
        if key not in entries and len(entries) >= self.max_entries:
            self._prune(namespace)

        now = self._clock()
        entries[key] = _Entry(value=value, stored_at=now, last_access=now)

    def _prune(self, namespace: str) -> int:
        """Drop expired entries, then least recently read ones, down to half the ceiling."""
        entries = self._store.get(namespace, {})
        now = self._clock()
        before = len(entries)

        for key in [k for k, e in entries.items() if self._expired(namespace, e, now)]:
            del entries[key]

        target = self.max_entries // 2
        if len(entries) > target:
            by_access = sorted(entries.items(), key=lambda kv: kv[1].last_access)
            for key, _ in by_access[: len(entries) - target]:
                del entries[key]

        removed = before - len(entries)
        logger.info("cache prune %s: removed %d entries", namespace, removed)
        return removed

    def clear(self, namespace: str | None = None) -> None:
        if namespace is None:
            self._store.clear()
        else:
            self._store.pop(namespace, None)

    def size(self, namespace: str | None = None) -> int:
        if namespace is not None:
            return len(self._store.get(namespace, {}))
        return sum(len(v) for v in self._store.values())

    @property
    def hits(self) -> int:
        return sum(self._hits.values())

    @property
    def misses(self) -> int:
        return sum(self._misses.values())

    def metrics(self) -> dict:
        total = self.hits + self.misses
        hit_rate = round(self.hits / total * 100, 2) if total else 0.0
        namespaces = sorted(set(self._store) | set(self._hits) | set(self._misses))
        return {
            "hit_count": self.hits,
            "miss_count": self.misses,
            "hit_rate": hit_rate,
            "cache_size": self.size(),
            "max_entries_per_namespace": self.max_entries,
            "namespaces": {
                ns: {
                    "hit_count": self._hits.get(ns, 0),
                    "miss_count": self._misses.get(ns, 0),
                    "size": self.size(ns),
                    "ttl_seconds": self.ttl_for(ns),
                }
                for ns in namespaces
            },
        }
