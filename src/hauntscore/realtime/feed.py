"""
Latest-value store for refresh sessions.

HTTP clients poll instead of receiving callbacks, so the API registers a
`SessionFeed` as each session's `on_update` / `on_error` and reads back the most
recent update (or error) per session key.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime

from hauntscore.core.time import utc_now
from hauntscore.domain.models import RatingUpdate


@dataclass(frozen=True)
class FeedError:
    message: str
    at: datetime


class SessionFeed:
    def __init__(self) -> None:
        self._updates: dict[str, RatingUpdate] = {}
        self._errors: dict[str, FeedError] = {}
        self._lock = threading.Lock()

    def on_update(self, update: RatingUpdate) -> None:
        with self._lock:
            self._updates[update.session_key] = update
            self._errors.pop(update.session_key, None)

    def error_handler(self, key: str):
        """Build an `on_error` callback bound to `key` (errors carry no session key)."""

        def _on_error(message: str) -> None:
            with self._lock:
                self._errors[key] = FeedError(message=message, at=utc_now())

        return _on_error

    def latest(self, key: str) -> RatingUpdate | None:
        with self._lock:
            return self._updates.get(key)

    def last_error(self, key: str) -> FeedError | None:
        with self._lock:
            return self._errors.get(key)

    def forget(self, key: str) -> None:
        with self._lock:
            self._updates.pop(key, None)
            self._errors.pop(key, None)
