"""
Auto-refresh sessions.

A session re-evaluates the haunted rating for one coordinate on a fixed interval
and pushes each result to its `on_update` callback. Sessions are keyed by the
coordinate rounded to 4 decimals (`session_{lat}_{lon}`), so starting a second
session for the same spot replaces the first.

Failure handling per refresh:
- success: the assessment is delivered as `source="live"` and stored as the
  last-known-good fallback for `refresh.fallback_ttl_seconds`
- failure with a fallback still valid: the fallback is delivered as `source="stale"`
- failure with nothing to fall back on: `on_error(message)`

A failing refresh never ends the session; idle sessions (no successful refresh
for `refresh.stale_session_seconds`) are dropped by `sweep()`.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Protocol

from hauntscore.config.settings import Settings, get_settings
from hauntscore.core.cache import MemoryCache
from hauntscore.core.scheduler import ScheduledTask, Scheduler, ThreadScheduler
from hauntscore.domain.models import Assessment, Coordinates, RatingUpdate

logger = logging.getLogger(__name__)

FALLBACK_NAMESPACE = "fallback"

UpdateCallback = Callable[[RatingUpdate], None]
ErrorCallback = Callable[[str], None]


class Evaluator(Protocol):
    def evaluate(
        self,
        coordinates: Coordinates,
        *,
        location_name: str | None = None,
        at: datetime | None = None,
        use_cache: bool = True,
    ) -> Assessment: ...


def session_key(coordinates: Coordinates) -> str:
    return f"session_{coordinates.key(4)}"


@dataclass
class _Session:
    key: str
    coordinates: Coordinates
    location_name: str | None
    on_update: UpdateCallback
    on_error: ErrorCallback | None
    created_at: float
    last_update: float
    task: ScheduledTask | None = None
    lock: threading.Lock = field(default_factory=threading.Lock)


@dataclass(frozen=True)
class SessionInfo:
    """Read-only snapshot of a session."""

    key: str
    coordinates: Coordinates
    location_name: str | None
    created_at: float
    last_update: float


class RefreshManager:
    def __init__(
        self,
        evaluator: Evaluator,
        *,
        settings: Settings | None = None,
        cache: MemoryCache | None = None,
        scheduler: Scheduler | None = None,
    ):
        self._evaluator = evaluator
        self._settings = settings or get_settings()
        self._cache = cache or MemoryCache()
        self._scheduler = scheduler or ThreadScheduler()
        self._sessions: dict[str, _Session] = {}
        self._lock = threading.RLock()
        self._sweep_task: ScheduledTask | None = None

    @property
    def interval_seconds(self) -> float:
        return float(self._settings.refresh.interval_seconds)

    # Lifecycle

    def start(self) -> None:
        """Begin the periodic sweep of idle sessions and expired fallbacks."""
        with self._lock:
            if self._sweep_task is not None and not self._sweep_task.cancelled:
                return
            self._sweep_task = self._scheduler.every(
                float(self._settings.refresh.sweep_interval_seconds), self.sweep, name="hauntscore-sweep"
            )

    def shutdown(self) -> None:
        with self._lock:
            if self._sweep_task is not None:
                self._sweep_task.cancel()
                self._sweep_task = None
            keys = list(self._sessions)
        for key in keys:
            self.stop_auto_refresh(key)
        logger.info("Refresh manager stopped (%s sessions closed)", len(keys))

    # Sessions

    def _schedule(self, session: _Session) -> None:
        if session.task is not None:
            session.task.cancel()
        session.task = self._scheduler.every(
            self.interval_seconds, lambda: self._tick(session), name=f"hauntscore-{session.key}"
        )

    def start_auto_refresh(
        self,
        coordinates: Coordinates,
        *,
        on_update: UpdateCallback,
        on_error: ErrorCallback | None = None,
        location_name: str | None = None,
    ) -> str:
        key = session_key(coordinates)
        now = time.time()
        session = _Session(
            key=key,
            coordinates=coordinates,
            location_name=location_name,
            on_update=on_update,
            on_error=on_error,
            created_at=now,
            last_update=now,
        )
        with self._lock:
            previous = self._sessions.pop(key, None)
            if previous is not None and previous.task is not None:
                previous.task.cancel()
            self._sessions[key] = session
            self._schedule(session)
        logger.info("Started auto-refresh for %s every %.0fs", key, self.interval_seconds)
        return key

    def stop_auto_refresh(self, key: str) -> bool:
        with self._lock:
            session = self._sessions.pop(key, None)
            if session is None:
                return False
            if session.task is not None:
                session.task.cancel()
        logger.info("Stopped auto-refresh for %s", key)
        return True

    def update_callbacks(
        self,
        key: str,
        *,
        on_update: UpdateCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> bool:
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                return False
            if on_update is not None:
                session.on_update = on_update
            if on_error is not None:
                session.on_error = on_error
            return True

    def get_session(self, key: str) -> SessionInfo | None:
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                return None
            return SessionInfo(
                key=session.key,
                coordinates=session.coordinates,
                location_name=session.location_name,
                created_at=session.created_at,
                last_update=session.last_update,
            )

    def active_session_keys(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def get_time_until_next_refresh(self, key: str) -> int | None:
        """Milliseconds until the next scheduled refresh (never negative)."""
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                return None
            remaining = session.last_update + self.interval_seconds - time.time()
        return max(0, int(remaining * 1000))

    # Refreshing

    def _is_current(self, session: _Session) -> bool:
        with self._lock:
            return self._sessions.get(session.key) is session

    def _tick(self, session: _Session) -> None:
        if not session.lock.acquire(blocking=False):
            logger.info("Refresh for %s still in flight; skipping tick", session.key)
            return
        try:
            self._refresh(session)
        finally:
            session.lock.release()

    def force_refresh(self, key: str) -> RatingUpdate | None:
        """Refresh now and restart the interval from this refresh.

        Returns the delivered update, or None for an unknown key or when no data at
        all could be produced.
        """
        with self._lock:
            session = self._sessions.get(key)
        if session is None:
            return None

        with session.lock:
            update = self._refresh(session)
            if update is not None and update.source == "live":
                with self._lock:
                    if self._sessions.get(key) is session:
                        self._schedule(session)
        return update

    def _refresh(self, session: _Session) -> RatingUpdate | None:
        """Run one refresh; callers hold `session.lock`."""
        fallback_key = session.coordinates.key(4)
        try:
            assessment = self._evaluator.evaluate(
                session.coordinates, location_name=session.location_name, use_cache=False
            )
        except Exception as exc:
            return self._handle_failure(session, fallback_key, exc)

        now = time.time()
        self._cache.set(
            FALLBACK_NAMESPACE,
            fallback_key,
            assessment,
            ttl_seconds=int(self._settings.refresh.fallback_ttl_seconds),
        )
        if not self._is_current(session):
            return None

        session.last_update = now
        update = RatingUpdate(
            session_key=session.key,
            assessment=assessment,
            source="live",
            as_of=datetime.fromtimestamp(now, tz=timezone.utc),
        )
        logger.info("Refreshed %s: %s/100", session.key, assessment.rating.overall_score)
        self._notify_update(session, update)
        return update

    def _handle_failure(self, session: _Session, fallback_key: str, exc: Exception) -> RatingUpdate | None:
        fallback = self._fallback(fallback_key)
        if not self._is_current(session):
            return None

        if fallback is not None:
            assessment, created_at = fallback
            logger.warning("Refresh failed for %s (%s); delivering last known rating", session.key, exc)
            update = RatingUpdate(
                session_key=session.key,
                assessment=assessment,
                source="stale",
                as_of=datetime.fromtimestamp(created_at, tz=timezone.utc),
            )
            self._notify_update(session, update)
            return update

        message = f"Failed to refresh data: {str(exc) or type(exc).__name__}"
        logger.error("Refresh failed for %s with no fallback: %s", session.key, exc)
        if session.on_error is not None:
            try:
                session.on_error(message)
            except Exception:
                logger.exception("on_error callback for %s raised", session.key)
        return None

    def _notify_update(self, session: _Session, update: RatingUpdate) -> None:
        try:
            session.on_update(update)
        except Exception:
            logger.exception("on_update callback for %s raised", session.key)

    # Fallback cache

    def _fallback(self, key: str) -> tuple[Assessment, float] | None:
        ttl = int(self._settings.refresh.fallback_ttl_seconds)
        value = self._cache.get(FALLBACK_NAMESPACE, key, ttl_seconds=ttl)
        if not isinstance(value, Assessment):
            return None
        meta = self._cache.get_entry_meta(FALLBACK_NAMESPACE, key) or {}
        return value, float(meta.get("created_at_unix", time.time()))

    def get_cached_assessment(self, coordinates: Coordinates) -> Assessment | None:
        fallback = self._fallback(coordinates.key(4))
        return fallback[0] if fallback else None

    # Housekeeping

    def sweep(self) -> int:
        """Drop idle sessions and dead cache entries; returns how many sessions were dropped."""
        cutoff = time.time() - float(self._settings.refresh.stale_session_seconds)
        with self._lock:
            idle = [key for key, s in self._sessions.items() if s.last_update < cutoff]
        for key in idle:
            if self.stop_auto_refresh(key):
                logger.info("Dropped idle session %s", key)
        purged = self._cache.purge_expired()
        if purged:
            logger.info("Purged %s expired cache entries", purged)
        return len(idle)

    def stats(self) -> dict[str, float | int]:
        now = time.time()
        with self._lock:
            ages = [(now - s.last_update) * 1000 for s in self._sessions.values()]
        return {
            "active_sessions": len(ages),
            "cached_fallbacks": self._cache.count(FALLBACK_NAMESPACE),
            "average_session_age_ms": (sum(ages) / len(ages)) if ages else 0,
            "oldest_session_ms": max(ages) if ages else 0,
            "newest_session_ms": min(ages) if ages else 0,
        }
