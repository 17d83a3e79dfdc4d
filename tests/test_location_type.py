import pytest

from hauntscore.config.settings import get_settings
from hauntscore.core.cache import MemoryCache
from hauntscore.domain.models import Coordinates, LocationType, PointOfInterest
from hauntscore.features.location_type import LocationAnalyzer, classify
from hauntscore.ingestion.places_client import GeocodedPlace


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Edinburgh Castle", LocationType.CASTLE),
        ("Château de Brissac", LocationType.CASTLE),
        ("Highgate Cemetery", LocationType.GRAVEYARD),
        ("Old Burial Hill", LocationType.GRAVEYARD),
        ("Abandoned Asylum", LocationType.ABANDONED_BUILDING),
        ("Abbey Ruins", LocationType.ABANDONED_BUILDING),
        ("Fort Point", LocationType.FORT),
        ("Star Fortress", LocationType.FORT),
        ("Comfort Inn", LocationType.REGULAR),
        ("Fortnum & Mason", LocationType.REGULAR),
        ("Central Library", LocationType.REGULAR),
        ("", LocationType.REGULAR),
    ],
)
def test_classify_by_name(name, expected):
    assert classify(name) == expected


def test_castle_outranks_graveyard():
    assert classify("Castle Cemetery") == LocationType.CASTLE


def test_classify_uses_nearby_pois_and_categories():
    pois = [PointOfInterest(name="Quiet Cafe", type="cafe"), PointOfInterest(name="St Mary", type="cemetery")]
    assert classify("Main Street", nearby_pois=pois) == LocationType.GRAVEYARD
    assert classify("Main Street", categories=["military", "landmark"]) == LocationType.FORT
    assert classify("Main Street", categories=["funeral_home"]) == LocationType.GRAVEYARD


class _StubPlaces:
    def __init__(self, pois=None, geocoded=None):
        self.pois = pois or []
        self.geocoded = geocoded
        self.calls = 0

    places_configured = True
    geocoding_configured = True

    def nearby_pois(self, coordinates):
        self.calls += 1
        return self.pois

    def reverse_geocode(self, coordinates):
        return self.geocoded

    def search(self, query, *, limit=5):
        return [GeocodedPlace(name="Tower of London", address="London", coordinates=Coordinates(latitude=51.508, longitude=-0.076))]


def test_analyzer_classifies_and_caches():
    places = _StubPlaces(geocoded=GeocodedPlace(name="Leap Castle", address="Coolderry, Ireland"))
    analyzer = LocationAnalyzer(get_settings(), MemoryCache(), places)
    here = Coordinates(latitude=53.0, longitude=-7.8)

    first = analyzer.analyze(here)
    second = analyzer.analyze(here)

    assert first.type == LocationType.CASTLE
    assert first.name == "Leap Castle"
    assert first.address == "Coolderry, Ireland"
    assert second == first
    assert places.calls == 1


def test_analyzer_falls_back_to_regular_location_named_after_coordinates():
    analyzer = LocationAnalyzer(get_settings(), MemoryCache(), _StubPlaces())
    location = analyzer.analyze(Coordinates(latitude=10.5, longitude=20.25))

    assert location.type == LocationType.REGULAR
    assert location.name == "Location at 10.5, 20.25"
    assert location.address == "10.5, 20.25"
    assert location.nearby_pois == []


def test_analyzer_uses_caller_name_when_geocoding_is_empty():
    analyzer = LocationAnalyzer(get_settings(), MemoryCache(), _StubPlaces())
    location = analyzer.analyze(Coordinates(latitude=1, longitude=1), "Old Fort Road")
    assert location.name == "Old Fort Road"
    assert location.type == LocationType.FORT


def test_analyzer_search_analyzes_each_hit():
    analyzer = LocationAnalyzer(get_settings(), MemoryCache(), _StubPlaces())
    results = analyzer.search("tower")
    assert [r.name for r in results] == ["Tower of London"]
