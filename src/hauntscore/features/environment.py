# src/hauntscore/features/environment.py
"""
Environmental factors (weather + local time + season) for a coordinate.

Why a separate layer from `ingestion.weather_client`?
- Ingestion speaks the provider's language (OpenWeatherMap JSON, UTC offsets in seconds).
- This module defines the product rules the rating engine relies on:
  - the hour that matters is the *local* hour at the coordinate, not server time
  - seasons are meteorological and flip in the Southern hemisphere
  - night is 18:00-06:00 local
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone as dt_timezone

from hauntscore.core.time import as_utc, format_utc_offset, utc_now
from hauntscore.domain.models import Coordinates, EnvironmentalFactors, Season, TimeData
from hauntscore.ingestion.weather_client import WeatherClient

logger = logging.getLogger(__name__)

# Month (1..12) -> Northern-hemisphere meteorological season.
_NORTHERN_SEASONS: dict[int, Season] = {
    12: Season.WINTER,
    1: Season.WINTER,
    2: Season.WINTER,
    3: Season.SPRING,
    4: Season.SPRING,
    5: Season.SPRING,
    6: Season.SUMMER,
    7: Season.SUMMER,
    8: Season.SUMMER,
    9: Season.AUTUMN,
    10: Season.AUTUMN,
    11: Season.AUTUMN,
}

_OPPOSITE_SEASON: dict[Season, Season] = {
    Season.SPRING: Season.AUTUMN,
    Season.SUMMER: Season.WINTER,
    Season.AUTUMN: Season.SPRING,
    Season.WINTER: Season.SUMMER,
}


def calculate_season(at: datetime, latitude: float) -> Season:
    """Season at `latitude` for the UTC calendar month of `at` (equator counts as Northern)."""
    northern = _NORTHERN_SEASONS[as_utc(at).month]
    if latitude >= 0:
        return northern
    return _OPPOSITE_SEASON[northern]


def estimate_utc_offset_seconds(longitude: float) -> int:
    """Rough solar offset: one hour per 15 degrees of longitude."""
    return int(round(longitude / 15)) * 3600


def is_nighttime_hour(hour: int) -> bool:
    return hour < 6 or hour >= 18


def calculate_time_data(at: datetime, utc_offset_seconds: int) -> TimeData:
    """Derive the local hour and a `UTC±H` label from an instant and a UTC offset."""
    offset = dt_timezone(timedelta(seconds=int(utc_offset_seconds)))
    local = as_utc(at).astimezone(offset)
    return TimeData(
        hour=local.hour,
        is_nighttime=is_nighttime_hour(local.hour),
        timezone=format_utc_offset(int(utc_offset_seconds)),
        local_time=local.isoformat(),
    )


def hours_until_witching_hour(time: TimeData) -> int:
    """Whole hours until local midnight; 0 while already inside 00:00-03:00."""
    if 0 <= time.hour < 3:
        return 0
    return 24 - time.hour


class EnvironmentProvider:
    """Composes current weather with local time and season for one coordinate."""

    def __init__(self, weather_client: WeatherClient):
        self._weather = weather_client

    def fetch_with_source(
        self, coordinates: Coordinates, at: datetime | None = None, *, allow_stale: bool = True
    ) -> tuple[EnvironmentalFactors, str]:
        """Return the factors plus the weather source (`live`, `cache` or `stale`).

        Weather errors propagate; there is no neutral-weather fallback here.
        With `allow_stale=False` a provider failure raises instead of serving stale weather.
        """
        at = at or utc_now()
        current = self._weather.get_current(coordinates, allow_stale=allow_stale)

        offset = current.utc_offset_seconds
        if offset is None:
            offset = estimate_utc_offset_seconds(coordinates.longitude)

        factors = EnvironmentalFactors(
            weather=current.weather,
            time=calculate_time_data(at, offset),
            season=calculate_season(at, coordinates.latitude),
        )
        logger.debug(
            "Environment for %s: %s hour=%s season=%s (weather %s)",
            coordinates.key(),
            factors.weather.condition.value,
            factors.time.hour,
            factors.season.value,
            current.source,
        )
        return factors, current.source

    def fetch_environmental_factors(self, coordinates: Coordinates, at: datetime | None = None) -> EnvironmentalFactors:
        factors, _ = self.fetch_with_source(coordinates, at)
        return factors
