from __future__ import annotations

# This module is the orchestrator for a single haunted-rating evaluation.
# It wires together:
# - location analysis (places + geocoding + keyword classification)
# - environmental factors (weather + local time + season)
# - the rating engine (score, breakdown, explanation)
#
# It also owns the one in-memory cache every other layer shares, so the weather,
# location, rating and refresh-fallback entries all live (and expire) in one place.

import logging  # Module-level logger; configured by the API/CLI entrypoint.
from dataclasses import dataclass
from datetime import datetime  # Evaluation instant (defaults to now, UTC).

from hauntscore.config.settings import Settings, get_settings  # Typed settings from YAML + env.
from hauntscore.core.cache import MemoryCache  # Process-local TTL cache with stale reads.
from hauntscore.core.time import as_utc, utc_now
from hauntscore.domain.models import Assessment, Coordinates, EnvironmentalFactors, Location
from hauntscore.features.environment import EnvironmentProvider  # Weather + local hour + season.
from hauntscore.features.location_type import LocationAnalyzer  # Place lookup + classification.
from hauntscore.ingestion.places_client import PlacesClient
from hauntscore.ingestion.weather_client import WeatherClient
from hauntscore.scoring.composite import calculate_haunted_rating_with_breakdown
from hauntscore.scoring.explain import get_rating_explanation, one_line_summary, summarize_environment

logger = logging.getLogger(__name__)

RATING_NAMESPACE = "rating"


def build_cache(settings: Settings) -> MemoryCache:
    return MemoryCache(enabled=settings.cache.enabled, default_ttl_seconds=settings.cache.default_ttl_seconds)


def rating_cache_key(coordinates: Coordinates, at: datetime, precision: int = 3) -> str:
    """Coordinates (coarse) plus the UTC hour bucket of the evaluation instant."""
    return f"rating_{coordinates.key(precision)}_{as_utc(at):%Y%m%d%H}"


@dataclass(frozen=True)
class RatingResult:
    """An assessment plus where it came from (for API metadata)."""

    assessment: Assessment
    cached: bool
    weather_source: str


class RatingService:
    """Evaluates the haunted rating for a coordinate.

    Provider errors (weather) propagate to the caller; places/geocoding are fail-open.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        cache: MemoryCache | None = None,
        weather_client: WeatherClient | None = None,
        places_client: PlacesClient | None = None,
    ):
        self._settings = settings or get_settings()
        self._cache = cache or build_cache(self._settings)
        self._weather = weather_client or WeatherClient(self._settings, self._cache)
        self._environment = EnvironmentProvider(self._weather)
        self._locations = LocationAnalyzer(self._settings, self._cache, places_client or PlacesClient(self._settings))

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def cache(self) -> MemoryCache:
        return self._cache

    @property
    def weather(self) -> WeatherClient:
        return self._weather

    @property
    def environment(self) -> EnvironmentProvider:
        return self._environment

    @property
    def locations(self) -> LocationAnalyzer:
        return self._locations

    def analyze_location(self, coordinates: Coordinates, location_name: str | None = None) -> Location:
        return self._locations.analyze(coordinates, location_name)

    def environmental_factors(self, coordinates: Coordinates, at: datetime | None = None) -> EnvironmentalFactors:
        return self._environment.fetch_environmental_factors(coordinates, at)

    def rate(
        self,
        coordinates: Coordinates,
        *,
        location_name: str | None = None,
        at: datetime | None = None,
        use_cache: bool = True,
    ) -> RatingResult:
        at = at or utc_now()
        cfg = self._settings.rating
        key = rating_cache_key(coordinates, at, cfg.coordinate_precision)

        if use_cache:
            cached = self._cache.get(RATING_NAMESPACE, key, ttl_seconds=cfg.cache_ttl_seconds)
            if isinstance(cached, RatingResult):
                logger.debug("Rating cache hit for %s", key)
                return RatingResult(assessment=cached.assessment, cached=True, weather_source=cached.weather_source)

        location = self._locations.analyze(coordinates, location_name)
        environmental, weather_source = self._environment.fetch_with_source(coordinates, at, allow_stale=use_cache)

        rating = calculate_haunted_rating_with_breakdown(location, environmental)
        assessment = Assessment(
            location=location,
            environmental=environmental,
            rating=rating,
            explanation=get_rating_explanation(rating.overall_score),
        )
        logger.info(
            "Rated %s (%s): %s [%s]",
            coordinates.key(),
            location.name,
            one_line_summary(rating),
            summarize_environment(environmental),
        )

        result = RatingResult(assessment=assessment, cached=False, weather_source=weather_source)
        self._cache.set(RATING_NAMESPACE, key, result, ttl_seconds=cfg.cache_ttl_seconds)
        return result

    def evaluate(
        self,
        coordinates: Coordinates,
        *,
        location_name: str | None = None,
        at: datetime | None = None,
        use_cache: bool = True,
    ) -> Assessment:
        return self.rate(coordinates, location_name=location_name, at=at, use_cache=use_cache).assessment
