"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- provider output (`WeatherData`, `TimeData`, `EnvironmentalFactors`, `Location`)
- rating engine output (`HauntedRating`, `FactorBreakdown`)
- refresh-manager output (`Assessment`, `RatingUpdate`)
- API/CLI input (`RatingRequest`)

Output models are frozen: a new rating replaces an old one, it never mutates it.

Enum fields are lenient on input: an unrecognised location type, weather condition
or season coerces to the neutral default (regular, clear, summer) instead of
failing validation.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Callable, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from hauntscore.core.geo import coordinate_key


class LocationType(str, Enum):
    CASTLE = "castle"
    GRAVEYARD = "graveyard"
    ABANDONED_BUILDING = "abandoned_building"
    FORT = "fort"
    REGULAR = "regular"


class WeatherCondition(str, Enum):
    CLEAR = "clear"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    FOGGY = "foggy"
    STORMY = "stormy"


class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


def coerce_enum(enum_cls: type[Enum], default: Enum) -> Callable[[Any], Enum]:
    """Build a converter mapping any value onto `enum_cls`, falling back to `default`."""

    def _convert(value: Any) -> Enum:
        if isinstance(value, enum_cls):
            return value
        if isinstance(value, str):
            try:
                return enum_cls(value.strip().lower())
            except ValueError:
                return default
        return default

    return _convert


LenientLocationType = Annotated[LocationType, BeforeValidator(coerce_enum(LocationType, LocationType.REGULAR))]
LenientWeatherCondition = Annotated[
    WeatherCondition, BeforeValidator(coerce_enum(WeatherCondition, WeatherCondition.CLEAR))
]
LenientSeason = Annotated[Season, BeforeValidator(coerce_enum(Season, Season.SUMMER))]


class Coordinates(BaseModel):
    """A geographic point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def key(self, precision: int = 4) -> str:
        return coordinate_key(self.latitude, self.longitude, precision)


class WeatherData(BaseModel):
    """Current weather in the provider-neutral shape the engine consumes.

    Visibility is in metres. Numeric fields are not range-checked: upstream
    providers occasionally report odd values and the engine clamps its own output.
    """

    model_config = ConfigDict(frozen=True)

    condition: LenientWeatherCondition = WeatherCondition.CLEAR
    temperature: float
    visibility: float = 10_000
    precipitation: bool = False
    humidity: float = 0
    wind_speed: float = 0


class TimeData(BaseModel):
    """Local time at the target coordinate (not UTC)."""

    model_config = ConfigDict(frozen=True)

    hour: int = Field(..., ge=0, le=23)
    is_nighttime: bool
    timezone: str = "UTC+0"
    local_time: str | None = None


class EnvironmentalFactors(BaseModel):
    model_config = ConfigDict(frozen=True)

    weather: WeatherData
    time: TimeData
    season: LenientSeason


class PointOfInterest(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "unknown"
    distance_meters: float = Field(0, ge=0)


class Location(BaseModel):
    """A classified place. Read-only input to the rating engine."""

    model_config = ConfigDict(frozen=True)

    coordinates: Coordinates
    name: str
    type: LenientLocationType = LocationType.REGULAR
    nearby_pois: list[PointOfInterest] = Field(default_factory=list)
    address: str = ""


class FactorScores(BaseModel):
    """Raw per-factor scores (0..100, rounded, weight-independent)."""

    model_config = ConfigDict(frozen=True)

    location_score: int = Field(..., ge=0, le=100)
    weather_score: int = Field(..., ge=0, le=100)
    time_score: int = Field(..., ge=0, le=100)
    season_score: int = Field(..., ge=0, le=100)


class FactorBreakdown(BaseModel):
    """One explainable factor: its fixed weight, its contribution and a sentence."""

    model_config = ConfigDict(frozen=True)

    factor: str
    weight: float = Field(..., ge=0, le=1)
    contribution: int = Field(..., ge=0, le=100)
    description: str


class HauntedRating(BaseModel):
    model_config = ConfigDict(frozen=True)

    overall_score: int = Field(..., ge=0, le=100)
    factors: FactorScores
    breakdown: list[FactorBreakdown] = Field(default_factory=list)
    calculated_at: datetime

    def with_breakdown(self, breakdown: list[FactorBreakdown]) -> "HauntedRating":
        """Return a new rating carrying `breakdown` (this one is left untouched)."""
        return self.model_copy(update={"breakdown": list(breakdown)})


class Assessment(BaseModel):
    """A rating together with the inputs it was computed from."""

    model_config = ConfigDict(frozen=True)

    location: Location
    environmental: EnvironmentalFactors
    rating: HauntedRating
    explanation: str


class RatingUpdate(BaseModel):
    """What a refresh session delivers to its `on_update` callback.

    `source="live"` means the assessment was just computed; `"stale"` means the
    refresh failed and this is the last good assessment from the fallback cache.
    """

    model_config = ConfigDict(frozen=True)

    session_key: str
    assessment: Assessment
    source: Literal["live", "stale"]
    as_of: datetime


class RatingRequest(BaseModel):
    """API/CLI request payload for a one-shot rating."""

    coordinates: Coordinates
    location_name: str | None = Field(default=None, max_length=200)
    timestamp: datetime | None = None
