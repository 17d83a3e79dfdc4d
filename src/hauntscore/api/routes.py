"""
API routes.

Endpoints:
- POST `/api/rating/calculate`: rate one coordinate (rating + breakdown + explanation).
- GET  `/api/rating/factors`: the static scoring tables.
- GET  `/api/weather/current`, `/api/weather/environmental`: provider data as the engine sees it.
- GET  `/api/location/analyze`, `/api/location/search`: place lookup + classification.
- `/api/sessions/...`: start, poll, force-refresh and stop auto-refresh sessions.
- GET  `/health`: liveness plus which providers are configured.

Responses use a small envelope: `{"success", "data", "cached", "timestamp"}`.
Upstream failures are mapped onto HTTP status codes by `_upstream_error`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from hauntscore.config.settings import get_settings
from hauntscore.core.cache import record_cache_stats
from hauntscore.core.http import MissingApiKeyError
from hauntscore.core.time import ensure_tz, utc_now
from hauntscore.domain.models import Coordinates, RatingRequest
from hauntscore.features.environment import hours_until_witching_hour
from hauntscore.rating.service import RatingService
from hauntscore.realtime.feed import SessionFeed
from hauntscore.realtime.refresh import RefreshManager, session_key
from hauntscore.scoring.explain import factor_catalog

logger = logging.getLogger(__name__)

router = APIRouter()

_UPSTREAM_STATUS = {
    401: ("UPSTREAM_UNAUTHORIZED", "Upstream provider rejected the configured credentials"),
    404: ("UPSTREAM_NOT_FOUND", "Location not found by the upstream provider"),
    429: ("UPSTREAM_RATE_LIMITED", "Upstream provider rate limit exceeded"),
}


@dataclass
class Runtime:
    """Process-wide objects shared by every request."""

    service: RatingService
    manager: RefreshManager
    feed: SessionFeed


_runtime: Runtime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    global _runtime
    with _runtime_lock:
        if _runtime is None:
            settings = get_settings()
            service = RatingService(settings)
            manager = RefreshManager(service, settings=settings, cache=service.cache)
            manager.start()
            _runtime = Runtime(service=service, manager=manager, feed=SessionFeed())
        return _runtime


def shutdown_runtime() -> None:
    global _runtime
    with _runtime_lock:
        runtime, _runtime = _runtime, None
    if runtime is not None:
        runtime.manager.shutdown()


def _envelope(data: Any, *, cached: bool = False, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": True,
        "data": data,
        "cached": cached,
        "timestamp": utc_now().isoformat(),
    }
    if meta is not None:
        payload["meta"] = meta
    return payload


def _upstream_error(exc: Exception) -> HTTPException:
    if isinstance(exc, MissingApiKeyError):
        return HTTPException(status_code=503, detail={"code": "PROVIDER_NOT_CONFIGURED", "message": str(exc)})
    if isinstance(exc, httpx.TimeoutException):
        return HTTPException(status_code=408, detail={"code": "UPSTREAM_TIMEOUT", "message": "Upstream request timed out"})
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in _UPSTREAM_STATUS:
            code, message = _UPSTREAM_STATUS[status]
            return HTTPException(status_code=status, detail={"code": code, "message": message})
        return HTTPException(
            status_code=502, detail={"code": "UPSTREAM_ERROR", "message": f"Upstream provider returned {status}"}
        )
    if isinstance(exc, httpx.HTTPError):
        return HTTPException(status_code=502, detail={"code": "UPSTREAM_ERROR", "message": str(exc)})
    return HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": str(exc)})


def _coordinates(lat: float, lon: float) -> Coordinates:
    return Coordinates(latitude=lat, longitude=lon)


def _localize(ts: datetime | None) -> datetime | None:
    return ensure_tz(ts, get_settings().app.timezone) if ts is not None else None


@router.post("/api/rating/calculate")
def post_rating_calculate(request: RatingRequest) -> dict:
    """Rate one coordinate; results are cached per coarse coordinate and hour."""
    service = get_runtime().service
    try:
        with record_cache_stats() as stats:
            result = service.rate(
                request.coordinates,
                location_name=request.location_name,
                at=_localize(request.timestamp),
            )
    except Exception as e:
        logger.warning("Rating calculation failed: %s", e)
        raise _upstream_error(e) from e

    data = result.assessment.model_dump(mode="json")
    return _envelope(
        data,
        cached=result.cached,
        meta={"weather_source": result.weather_source, "cache": stats.as_dict()},
    )


@router.get("/api/rating/factors")
def get_rating_factors() -> dict:
    return _envelope(factor_catalog())


@router.get("/api/weather/current")
def get_weather_current(lat: float = Query(..., ge=-90, le=90), lon: float = Query(..., ge=-180, le=180)) -> dict:
    service = get_runtime().service
    try:
        current = service.weather.get_current(_coordinates(lat, lon))
    except Exception as e:
        raise _upstream_error(e) from e
    data = {**current.weather.model_dump(mode="json"), "utc_offset_seconds": current.utc_offset_seconds}
    return _envelope(data, cached=current.source != "live", meta={"weather_source": current.source})


@router.get("/api/weather/environmental")
def get_weather_environmental(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    timestamp: datetime | None = None,
) -> dict:
    service = get_runtime().service
    try:
        factors, source = service.environment.fetch_with_source(_coordinates(lat, lon), _localize(timestamp))
    except Exception as e:
        raise _upstream_error(e) from e
    data = {
        **factors.model_dump(mode="json"),
        "hours_until_witching_hour": hours_until_witching_hour(factors.time),
    }
    return _envelope(data, cached=source != "live", meta={"weather_source": source})


@router.get("/api/location/analyze")
def get_location_analyze(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    name: str | None = Query(default=None, max_length=200),
) -> dict:
    location = get_runtime().service.analyze_location(_coordinates(lat, lon), name)
    return _envelope(location.model_dump(mode="json"))


@router.get("/api/location/search")
def get_location_search(q: str = Query(..., min_length=1, max_length=200), limit: int = Query(5, ge=1, le=10)) -> dict:
    try:
        locations = get_runtime().service.locations.search(q, limit=limit)
    except Exception as e:
        raise _upstream_error(e) from e
    return _envelope([loc.model_dump(mode="json") for loc in locations])


class SessionRequest(BaseModel):
    coordinates: Coordinates
    location_name: str | None = Field(default=None, max_length=200)
    refresh_now: bool = True


def _session_payload(runtime: Runtime, key: str) -> dict[str, Any]:
    info = runtime.manager.get_session(key)
    if info is None:
        raise HTTPException(status_code=404, detail={"code": "SESSION_NOT_FOUND", "message": f"Unknown session {key}"})
    latest = runtime.feed.latest(key)
    error = runtime.feed.last_error(key)
    return {
        "key": info.key,
        "coordinates": info.coordinates.model_dump(mode="json"),
        "location_name": info.location_name,
        "time_until_next_refresh_ms": runtime.manager.get_time_until_next_refresh(key),
        "latest": latest.model_dump(mode="json") if latest else None,
        "last_error": {"message": error.message, "at": error.at.isoformat()} if error else None,
    }


@router.post("/api/sessions")
def post_session(request: SessionRequest) -> dict:
    """Start (or replace) the auto-refresh session for a coordinate."""
    runtime = get_runtime()
    key = session_key(request.coordinates)
    runtime.feed.forget(key)
    runtime.manager.start_auto_refresh(
        request.coordinates,
        on_update=runtime.feed.on_update,
        on_error=runtime.feed.error_handler(key),
        location_name=request.location_name,
    )
    if request.refresh_now:
        runtime.manager.force_refresh(key)
    return _envelope(_session_payload(runtime, key))


@router.get("/api/sessions")
def get_sessions() -> dict:
    manager = get_runtime().manager
    return _envelope({"keys": manager.active_session_keys(), "stats": manager.stats()})


@router.get("/api/sessions/{key}")
def get_session(key: str) -> dict:
    return _envelope(_session_payload(get_runtime(), key))


@router.post("/api/sessions/{key}/refresh")
def post_session_refresh(key: str) -> dict:
    runtime = get_runtime()
    if runtime.manager.get_session(key) is None:
        raise HTTPException(status_code=404, detail={"code": "SESSION_NOT_FOUND", "message": f"Unknown session {key}"})
    update = runtime.manager.force_refresh(key)
    if update is None:
        error = runtime.feed.last_error(key)
        raise HTTPException(
            status_code=502,
            detail={"code": "REFRESH_FAILED", "message": error.message if error else "Refresh failed"},
        )
    return _envelope(_session_payload(runtime, key), cached=update.source == "stale")


@router.delete("/api/sessions/{key}")
def delete_session(key: str) -> dict:
    runtime = get_runtime()
    stopped = runtime.manager.stop_auto_refresh(key)
    runtime.feed.forget(key)
    return _envelope({"key": key, "stopped": stopped})


@router.get("/health")
def get_health() -> dict:
    runtime = get_runtime()
    service = runtime.service
    return {
        "status": "ok",
        "timestamp": utc_now().isoformat(),
        "active_sessions": len(runtime.manager.active_session_keys()),
        "providers": {
            "weather": service.weather.configured,
            "places": service.locations.places_configured,
            "geocoding": service.locations.geocoding_configured,
        },
    }
