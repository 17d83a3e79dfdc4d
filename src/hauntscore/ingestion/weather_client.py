"""
Weather ingestion client (OpenWeatherMap current conditions).

This module fetches the current weather for a coordinate and maps it into the
provider-neutral `WeatherData` the rating engine consumes:
- condition group -> `WeatherCondition`
- temperature (rounded, Celsius), visibility (metres), precipitation flag
- the location's UTC offset (seconds), used for the local hour

The mapping lives in `to_weather_data` so swapping providers only touches this file.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from hauntscore.config.settings import Settings
from hauntscore.core.cache import MemoryCache
from hauntscore.core.http import MissingApiKeyError, get_json_with_retry
from hauntscore.domain.models import Coordinates, WeatherCondition, WeatherData
from hauntscore.scoring.factors import round_half_up

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "weather"

CONDITION_MAP: dict[str, WeatherCondition] = {
    "clear": WeatherCondition.CLEAR,
    "clouds": WeatherCondition.CLOUDY,
    "rain": WeatherCondition.RAINY,
    "drizzle": WeatherCondition.RAINY,
    "thunderstorm": WeatherCondition.STORMY,
    "snow": WeatherCondition.RAINY,
    "mist": WeatherCondition.FOGGY,
    "fog": WeatherCondition.FOGGY,
    "haze": WeatherCondition.FOGGY,
    "dust": WeatherCondition.CLOUDY,
    "sand": WeatherCondition.CLOUDY,
    "ash": WeatherCondition.CLOUDY,
    "squall": WeatherCondition.STORMY,
    "tornado": WeatherCondition.STORMY,
}
DEFAULT_VISIBILITY_M = 10_000

WeatherSource = Literal["live", "cache", "stale"]


@dataclass(frozen=True)
class CurrentWeather:
    """Mapped weather plus provenance."""

    weather: WeatherData
    utc_offset_seconds: int | None
    source: WeatherSource
    as_of_unix: int | None = None


def map_condition(group: str | None) -> WeatherCondition:
    return CONDITION_MAP.get((group or "").strip().lower(), WeatherCondition.CLEAR)


def _number(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_weather_data(payload: dict[str, Any]) -> WeatherData:
    """Map an OpenWeatherMap `/weather` response body into `WeatherData`."""
    conditions = payload.get("weather") or []
    group = conditions[0].get("main") if conditions and isinstance(conditions[0], dict) else None
    main = payload.get("main") or {}
    wind = payload.get("wind") or {}
    temp = _number(main.get("temp"), 0.0)

    # A missing or zero visibility means "not reported", not "zero metres".
    visibility = _number(payload.get("visibility"), 0) or DEFAULT_VISIBILITY_M

    return WeatherData(
        condition=map_condition(group),
        temperature=round_half_up(temp) if math.isfinite(temp) else temp,
        visibility=visibility,
        precipitation=bool(payload.get("rain") or payload.get("snow")),
        humidity=_number(main.get("humidity"), 0),
        wind_speed=_number(wind.get("speed"), 0),
    )


def utc_offset_from_payload(payload: dict[str, Any]) -> int | None:
    value = payload.get("timezone")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


class WeatherClient:
    """Fetches and caches OpenWeatherMap data, then maps it into `CurrentWeather`."""

    def __init__(self, settings: Settings, cache: MemoryCache):
        self._settings = settings
        self._cache = cache

    @property
    def configured(self) -> bool:
        return bool(self._settings.providers.weather.api_key)

    def _fetch_current(self, coordinates: Coordinates) -> dict[str, Any]:
        """Call the `/weather` endpoint and return the raw JSON response as a dict."""
        cfg = self._settings.providers.weather
        if not cfg.api_key:
            raise MissingApiKeyError("OpenWeatherMap API key not configured")

        params = {
            "lat": coordinates.latitude,
            "lon": coordinates.longitude,
            "appid": cfg.api_key,
            "units": cfg.units,
        }
        payload = get_json_with_retry(
            f"{cfg.base_url.rstrip('/')}/weather",
            params=params,
            timeout_seconds=self._settings.app.http_timeout_seconds,
            retry=self._settings.providers.retry,
            label="weather",
        )
        if not isinstance(payload, dict):
            raise ValueError("Unexpected weather payload (expected a JSON object).")
        return payload

    def _result(self, payload: dict[str, Any], key: str, source: WeatherSource) -> CurrentWeather:
        meta = self._cache.get_entry_meta(CACHE_NAMESPACE, key) or {}
        return CurrentWeather(
            weather=to_weather_data(payload),
            utc_offset_seconds=utc_offset_from_payload(payload),
            source=source,
            as_of_unix=meta.get("created_at_unix"),
        )

    @staticmethod
    def _stale_ok(exc: Exception) -> bool:
        return isinstance(exc, httpx.HTTPError)

    def _fetch_logged(self, coordinates: Coordinates) -> dict[str, Any]:
        logger.info("Fetching weather for lat=%.4f lon=%.4f", coordinates.latitude, coordinates.longitude)
        return self._fetch_current(coordinates)

    def get_current(self, coordinates: Coordinates, *, allow_stale: bool = True) -> CurrentWeather:
        """Return current weather, cached, serving a stale copy if the provider fails.

        A stale copy is only served within `max_stale_seconds` of its fetch, and
        never when `allow_stale` is False.

        Raises:
            MissingApiKeyError: no API key configured and nothing fresh cached.
            httpx.HTTPError: upstream failure with no servable cached copy.
        """
        cfg = self._settings.providers.weather
        key = coordinates.key()

        payload, source = self._cache.get_or_set_with_source(
            CACHE_NAMESPACE,
            key,
            lambda: self._fetch_logged(coordinates),
            ttl_seconds=int(cfg.cache_ttl_seconds),
            stale_if_error=allow_stale,
            stale_predicate=self._stale_ok,
            stale_ttl_seconds=int(cfg.max_stale_seconds),
        )
        if source == "cache":
            logger.debug("Weather cache hit for %s", key)
            return self._result(payload, key, "cache")
        if source == "stale":
            logger.warning("Weather provider failed for %s; serving stale data", key)
            return self._result(payload, key, "stale")
        return self._result(payload, key, "live")
