"""
Per-factor scoring (location, weather, time, season).

Every function here maps one slice of the input onto a raw 0..100 score. They are
pure table lookups plus a few additive modifiers; none of them reads settings,
because the weights and tables are fixed product constants rather than tuning
knobs.

Unknown enum values never raise. They fall back to the lowest-risk entry of the
table (regular location, clear sky, the summer score).
"""

from __future__ import annotations

import math
from typing import Any

from hauntscore.domain.models import (
    LocationType,
    Season,
    TimeData,
    WeatherCondition,
    WeatherData,
    coerce_enum,
)

FACTOR_WEIGHTS: dict[str, float] = {
    "location": 0.40,
    "weather": 0.25,
    "time": 0.25,
    "season": 0.10,
}

LOCATION_SCORES: dict[LocationType, int] = {
    LocationType.CASTLE: 90,
    LocationType.GRAVEYARD: 85,
    LocationType.ABANDONED_BUILDING: 80,
    LocationType.FORT: 70,
    LocationType.REGULAR: 10,
}
DEFAULT_LOCATION_SCORE = 10

WEATHER_SCORES: dict[WeatherCondition, int] = {
    WeatherCondition.FOGGY: 90,
    WeatherCondition.STORMY: 80,
    WeatherCondition.RAINY: 70,
    WeatherCondition.CLOUDY: 40,
    WeatherCondition.CLEAR: 10,
}
DEFAULT_WEATHER_SCORE = 10

SEASON_SCORES: dict[Season, int] = {
    Season.AUTUMN: 80,
    Season.WINTER: 70,
    Season.SPRING: 30,
    Season.SUMMER: 20,
}
DEFAULT_SEASON_SCORE = 20

# Additive weather modifiers: (exclusive upper bound, bonus), first match wins.
TEMPERATURE_BANDS_C: tuple[tuple[float, int], ...] = ((10, 10), (20, 5))
VISIBILITY_BANDS_M: tuple[tuple[float, int], ...] = ((1000, 15), (5000, 8))
PRECIPITATION_BONUS = 5

# Local-hour bands in priority order: (name, predicate, score). Hour 0 matches both
# the witching hour and late evening; the witching hour is listed first and wins.
TIME_BANDS: tuple[tuple[str, Any, int], ...] = (
    ("witching_hour", lambda h: 0 <= h < 3, 100),
    ("late_evening", lambda h: h >= 21 or h < 1, 80),
    ("twilight", lambda h: 18 <= h < 21, 60),
    ("early_morning", lambda h: 3 <= h < 6, 70),
)
DAYTIME_SCORE = 10

_as_location_type = coerce_enum(LocationType, LocationType.REGULAR)
_as_weather_condition = coerce_enum(WeatherCondition, WeatherCondition.CLEAR)
_as_season = coerce_enum(Season, Season.SUMMER)


def round_half_up(x: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return int(math.floor(x + 0.5))


def clamp_score(x: float) -> float:
    """Clamp a score into [0, 100]; NaN collapses to 0."""
    if math.isnan(x):
        return 0.0
    return max(0.0, min(100.0, float(x)))


def band_index(value: float, bands: tuple[tuple[float, int], ...]) -> int | None:
    """Index of the first band whose upper bound exceeds `value`, or None."""
    for index, (upper, _) in enumerate(bands):
        if value < upper:
            return index
    return None


def _band_bonus(value: float, bands: tuple[tuple[float, int], ...]) -> int:
    index = band_index(value, bands)
    return 0 if index is None else bands[index][1]


def get_location_score(location_type: LocationType | str) -> int:
    return LOCATION_SCORES.get(_as_location_type(location_type), DEFAULT_LOCATION_SCORE)


def weather_modifiers(weather: WeatherData) -> dict[str, int]:
    """Return the additive bonuses applied on top of the base condition score."""
    return {
        "temperature": _band_bonus(float(weather.temperature), TEMPERATURE_BANDS_C),
        "visibility": _band_bonus(float(weather.visibility), VISIBILITY_BANDS_M),
        "precipitation": PRECIPITATION_BONUS if weather.precipitation else 0,
    }


def get_weather_score(weather: WeatherData) -> int:
    """Base condition score plus temperature/visibility/precipitation bonuses, capped at 100.

    Bonuses are not weighted individually; only the final weather score is weighted.
    """
    base = WEATHER_SCORES.get(_as_weather_condition(weather.condition), DEFAULT_WEATHER_SCORE)
    total = base + sum(weather_modifiers(weather).values())
    return int(clamp_score(total))


def time_band(time: TimeData) -> str:
    hour = int(time.hour)
    for name, matches, _ in TIME_BANDS:
        if matches(hour):
            return name
    return "daytime"


def get_time_score(time: TimeData) -> int:
    hour = int(time.hour)
    for _, matches, score in TIME_BANDS:
        if matches(hour):
            return score
    return DAYTIME_SCORE


def get_season_score(season: Season | str) -> int:
    return SEASON_SCORES.get(_as_season(season), DEFAULT_SEASON_SCORE)
