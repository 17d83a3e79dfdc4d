from datetime import datetime, timezone

from hauntscore.config.settings import get_settings
from hauntscore.core.cache import MemoryCache
from hauntscore.domain.models import Coordinates, LocationType, WeatherCondition, WeatherData
from hauntscore.ingestion.places_client import GeocodedPlace
from hauntscore.ingestion.weather_client import CurrentWeather
from hauntscore.rating.service import RatingService, rating_cache_key

CASTLE = Coordinates(latitude=55.9486, longitude=-3.1999)
OFFICE = Coordinates(latitude=51.5155, longitude=-0.0922)


class StubWeatherClient:
    configured = True

    def __init__(self):
        self.calls = 0

    def get_current(self, coordinates: Coordinates, *, allow_stale: bool = True) -> CurrentWeather:
        self.calls += 1
        if coordinates == CASTLE:
            weather = WeatherData(condition=WeatherCondition.FOGGY, temperature=6, visibility=800, precipitation=True)
        else:
            weather = WeatherData(condition=WeatherCondition.CLEAR, temperature=25, visibility=10_000)
        return CurrentWeather(weather=weather, utc_offset_seconds=0, source="live")


class StubPlacesClient:
    places_configured = True
    geocoding_configured = True

    def nearby_pois(self, coordinates):
        return []

    def reverse_geocode(self, coordinates):
        if coordinates == CASTLE:
            return GeocodedPlace(name="Edinburgh Castle", address="Castlehill, Edinburgh")
        return GeocodedPlace(name="Guildhall Offices", address="Gresham Street, London")


def _service():
    return RatingService(
        get_settings(), cache=MemoryCache(), weather_client=StubWeatherClient(), places_client=StubPlacesClient()
    )


def test_foggy_castle_at_midnight_outranks_sunny_office_at_noon():
    service = _service()
    night = datetime(2026, 10, 31, 0, 30, tzinfo=timezone.utc)
    noon = datetime(2026, 7, 1, 12, 0, tzinfo=timezone.utc)

    castle = service.rate(CASTLE, at=night).assessment
    office = service.rate(OFFICE, at=noon).assessment

    assert castle.location.type == LocationType.CASTLE
    assert office.location.type == LocationType.REGULAR
    assert castle.rating.overall_score == 94
    assert office.rating.overall_score == 11
    assert castle.explanation.startswith("Extremely haunted")
    assert len(castle.rating.breakdown) == 4


def test_rate_is_cached_per_hour_unless_bypassed():
    service = _service()
    weather = service.weather
    at = datetime(2026, 10, 31, 0, 5, tzinfo=timezone.utc)

    first = service.rate(CASTLE, at=at)
    again = service.rate(CASTLE, at=at.replace(minute=50))
    bypass = service.rate(CASTLE, at=at, use_cache=False)

    assert (first.cached, again.cached, bypass.cached) == (False, True, False)
    assert again.assessment == first.assessment
    assert weather.calls == 2


def test_rating_cache_key_uses_coarse_coordinates_and_utc_hour():
    at = datetime(2026, 10, 31, 1, 59, tzinfo=timezone.utc)
    assert rating_cache_key(CASTLE, at) == "rating_55.949_-3.200_2026103101"
    assert rating_cache_key(CASTLE, at.replace(tzinfo=None)) == "rating_55.949_-3.200_2026103101"
