from __future__ import annotations

import contextvars
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Literal

"""
Simple in-memory TTL cache.

This cache is intentionally lightweight:
- Values live in a process-local dict keyed by (namespace, key).
- TTL is enforced on read. An entry may also carry a longer `stale_ttl_seconds`:
  past its TTL it is no longer fresh, but `get_stale()` can still serve it until
  the stale window ends. Without one, an entry is dead once its TTL passes.
- `purge_expired()` drops entries that can no longer be served either way.
- Every write replaces the whole entry under a lock (last write wins, no torn state).

One `MemoryCache` instance is owned by the rating service and shared by:
- the weather and location adapters (reduce external API calls),
- the rating cache used by the HTTP shell,
- the refresh manager's last-known-good fallback store.
"""

CacheSource = Literal["cache", "built", "stale"]


@dataclass(frozen=True)
class CacheEntry:
    """Cache envelope."""

    created_at_unix: float
    ttl_seconds: int
    value: Any
    stale_ttl_seconds: int | None = None

    def expired(self, now: float, ttl_seconds: int | None = None) -> bool:
        effective_ttl = ttl_seconds if ttl_seconds is not None else self.ttl_seconds
        return now - self.created_at_unix > effective_ttl

    def servable_stale(self, now: float) -> bool:
        if self.stale_ttl_seconds is None:
            return True
        return now - self.created_at_unix <= self.stale_ttl_seconds

    def dead(self, now: float) -> bool:
        keep = max(self.ttl_seconds, self.stale_ttl_seconds or 0)
        return now - self.created_at_unix > keep


@dataclass
class CacheStats:
    """Per-request cache usage stats (best-effort)."""

    hits: int = 0
    misses: int = 0
    expired: int = 0
    sets: int = 0
    stale_reads: int = 0
    stale_fallbacks: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "hits": int(self.hits),
            "misses": int(self.misses),
            "expired": int(self.expired),
            "sets": int(self.sets),
            "stale_reads": int(self.stale_reads),
            "stale_fallbacks": int(self.stale_fallbacks),
        }


_cache_stats_var: contextvars.ContextVar[CacheStats | None] = contextvars.ContextVar(
    "hauntscore_cache_stats", default=None
)


def _stats() -> CacheStats | None:
    return _cache_stats_var.get()


@contextmanager
def record_cache_stats() -> CacheStats:
    """Capture cache stats within the current context (thread/task-safe)."""

    stats = CacheStats()
    token = _cache_stats_var.set(stats)
    try:
        yield stats
    finally:
        _cache_stats_var.reset(token)


class MemoryCache:
    """A process-local cache keyed by (namespace, key)."""

    def __init__(self, enabled: bool = True, default_ttl_seconds: int = 300):
        self._enabled = enabled
        self._default_ttl_seconds = default_ttl_seconds
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _entry(self, namespace: str, key: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get((namespace, key))

    def get_entry_meta(self, namespace: str, key: str) -> dict[str, int] | None:
        """Return cache envelope metadata (created_at_unix, ttl_seconds) if present."""
        if not self._enabled:
            return None
        entry = self._entry(namespace, key)
        if entry is None:
            return None
        return {"created_at_unix": int(entry.created_at_unix), "ttl_seconds": int(entry.ttl_seconds)}

    def get(self, namespace: str, key: str, ttl_seconds: int | None = None) -> Any | None:
        """Read a cached value if present and not expired; otherwise return None."""
        if not self._enabled:
            return None

        entry = self._entry(namespace, key)
        st = _stats()
        if entry is None:
            if st:
                st.misses += 1
            return None

        if entry.expired(time.time(), ttl_seconds):
            if st:
                st.misses += 1
                st.expired += 1
            return None

        if st:
            st.hits += 1
        return entry.value

    def get_stale(self, namespace: str, key: str) -> Any | None:
        """Read a cached value even if expired, within its stale window; otherwise None.

        This is useful for "stale-if-error" behavior where an upstream API is down
        or rate-limiting and we prefer to serve slightly old data rather than fail.
        """
        if not self._enabled:
            return None
        entry = self._entry(namespace, key)
        if entry is None or not entry.servable_stale(time.time()):
            return None
        st = _stats()
        if st:
            st.stale_reads += 1
        return entry.value

    def set(
        self,
        namespace: str,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
        *,
        stale_ttl_seconds: int | None = None,
    ) -> None:
        """Store `value`, replacing any previous entry for the same key."""
        if not self._enabled:
            return None

        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds
        entry = CacheEntry(
            created_at_unix=time.time(),
            ttl_seconds=int(ttl),
            value=value,
            stale_ttl_seconds=int(stale_ttl_seconds) if stale_ttl_seconds is not None else None,
        )
        with self._lock:
            self._entries[(namespace, key)] = entry
        st = _stats()
        if st:
            st.sets += 1

    def purge_expired(self, namespace: str | None = None) -> int:
        """Drop entries past both their TTL and stale window; returns how many."""
        now = time.time()
        with self._lock:
            doomed = [
                k
                for k, entry in self._entries.items()
                if (namespace is None or k[0] == namespace) and entry.dead(now)
            ]
            for k in doomed:
                del self._entries[k]
        return len(doomed)

    def count(self, namespace: str) -> int:
        with self._lock:
            return sum(1 for ns, _ in self._entries if ns == namespace)

    def get_or_set_with_source(
        self,
        namespace: str,
        key: str,
        builder: Callable[[], Any],
        ttl_seconds: int | None = None,
        *,
        stale_if_error: bool = False,
        stale_predicate: Callable[[Exception], bool] | None = None,
        stale_ttl_seconds: int | None = None,
    ) -> tuple[Any, CacheSource]:
        """Like `get_or_set`, also reporting whether the value was cached, built or stale."""
        cached = self.get(namespace, key, ttl_seconds=ttl_seconds)
        if cached is not None:
            return cached, "cache"
        try:
            value = builder()
        except Exception as exc:
            if stale_if_error and (stale_predicate(exc) if stale_predicate else True):
                stale = self.get_stale(namespace, key)
                if stale is not None:
                    st = _stats()
                    if st:
                        st.stale_fallbacks += 1
                    return stale, "stale"
            raise
        else:
            self.set(namespace, key, value, ttl_seconds=ttl_seconds, stale_ttl_seconds=stale_ttl_seconds)
            return value, "built"

    def get_or_set(
        self,
        namespace: str,
        key: str,
        builder: Callable[[], Any],
        ttl_seconds: int | None = None,
        *,
        stale_if_error: bool = False,
        stale_predicate: Callable[[Exception], bool] | None = None,
        stale_ttl_seconds: int | None = None,
    ) -> Any:
        """Return cached value, or compute/store it via `builder`.

        If `stale_if_error` is enabled and `builder()` raises, the cache will attempt
        to return a stale (expired) value instead of failing, as long as:
        - a stale value is still held and inside its stale window, and
        - `stale_predicate(exc)` is True (or predicate is None).
        """
        value, _ = self.get_or_set_with_source(
            namespace,
            key,
            builder,
            ttl_seconds,
            stale_if_error=stale_if_error,
            stale_predicate=stale_predicate,
            stale_ttl_seconds=stale_ttl_seconds,
        )
        return value
