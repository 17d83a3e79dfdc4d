import httpx
import pytest

from hauntscore.config.settings import get_settings
from hauntscore.core.http import MissingApiKeyError
from hauntscore.domain.models import Coordinates
from hauntscore.ingestion.places_client import PlacesClient

_HERE = Coordinates(latitude=51.5074, longitude=-0.1278)


def _settings(*, places_key="places-key", mapbox_token="mb-token", max_pois=10):
    settings = get_settings()
    places = settings.providers.places.model_copy(update={"api_key": places_key, "max_pois": max_pois})
    geocoding = settings.providers.geocoding.model_copy(update={"access_token": mapbox_token})
    retry = settings.providers.retry.model_copy(update={"max_attempts": 0})
    providers = settings.providers.model_copy(update={"places": places, "geocoding": geocoding, "retry": retry})
    return settings.model_copy(update={"providers": providers})


def _place(name, lat, lng, *types):
    return {"name": name, "types": list(types), "geometry": {"location": {"lat": lat, "lng": lng}}}


def test_nearby_pois_without_key_is_empty(monkeypatch):
    def unexpected(*_args, **_kwargs):
        raise AssertionError("no request expected")

    monkeypatch.setattr("hauntscore.core.http.get_json", unexpected)
    assert PlacesClient(_settings(places_key=None)).nearby_pois(_HERE) == []


def test_nearby_pois_maps_results_with_distance(monkeypatch):
    seen = {}

    def fake_get_json(url, *, params=None, headers=None, timeout_seconds=5):  # noqa: ARG001
        seen["url"] = url
        seen["params"] = params
        return {
            "status": "OK",
            "results": [
                _place("St Paul's Churchyard", 51.5074, -0.1278, "cemetery", "point_of_interest"),
                _place("Somewhere", 51.5164, -0.1278),
                {"name": "No geometry"},
            ],
        }

    monkeypatch.setattr("hauntscore.core.http.get_json", fake_get_json)
    pois = PlacesClient(_settings()).nearby_pois(_HERE)

    assert seen["url"].endswith("/nearbysearch/json")
    assert seen["params"]["location"] == "51.5074,-0.1278"
    assert seen["params"]["radius"] == 1000
    assert [p.name for p in pois] == ["St Paul's Churchyard", "Somewhere"]
    assert pois[0].type == "cemetery"
    assert pois[0].distance_meters == 0
    assert pois[1].type == "unknown"
    # 0.009 degrees of latitude is roughly one kilometre.
    assert 990 <= pois[1].distance_meters <= 1010


def test_nearby_pois_respects_max_pois(monkeypatch):
    results = [_place(f"P{i}", 51.5, -0.12, "park") for i in range(5)]
    monkeypatch.setattr("hauntscore.core.http.get_json", lambda *a, **k: {"status": "OK", "results": results})

    pois = PlacesClient(_settings(max_pois=2)).nearby_pois(_HERE)
    assert [p.name for p in pois] == ["P0", "P1"]


@pytest.mark.parametrize("payload", [{"status": "REQUEST_DENIED"}, "not json object"])
def test_nearby_pois_fails_open_on_bad_status(monkeypatch, payload):
    monkeypatch.setattr("hauntscore.core.http.get_json", lambda *a, **k: payload)
    assert PlacesClient(_settings()).nearby_pois(_HERE) == []


def test_nearby_pois_fails_open_on_transport_error(monkeypatch):
    def failing(url, **_kwargs):
        raise httpx.ConnectError("down", request=httpx.Request("GET", url))

    monkeypatch.setattr("hauntscore.core.http.get_json", failing)
    assert PlacesClient(_settings()).nearby_pois(_HERE) == []


def test_reverse_geocode_parses_first_feature(monkeypatch):
    seen = {}

    def fake_get_json(url, *, params=None, headers=None, timeout_seconds=5):  # noqa: ARG001
        seen["url"] = url
        return {
            "features": [
                {
                    "text": "Tower of London",
                    "place_name": "Tower of London, London EC3N 4AB, United Kingdom",
                    "properties": {"category": "castle, historic site"},
                    "center": [-0.0759, 51.5081],
                }
            ]
        }

    monkeypatch.setattr("hauntscore.core.http.get_json", fake_get_json)
    place = PlacesClient(_settings()).reverse_geocode(_HERE)

    assert seen["url"].endswith("/-0.1278,51.5074.json")
    assert place is not None
    assert place.name == "Tower of London"
    assert place.categories == ("castle", "historic site")
    assert place.coordinates == Coordinates(latitude=51.5081, longitude=-0.0759)


def test_reverse_geocode_without_token_or_on_error_is_none(monkeypatch):
    assert PlacesClient(_settings(mapbox_token=None)).reverse_geocode(_HERE) is None

    def failing(url, **_kwargs):
        raise httpx.ReadTimeout("slow", request=httpx.Request("GET", url))

    monkeypatch.setattr("hauntscore.core.http.get_json", failing)
    assert PlacesClient(_settings()).reverse_geocode(_HERE) is None


def test_search_requires_token_and_quotes_query(monkeypatch):
    with pytest.raises(MissingApiKeyError):
        PlacesClient(_settings(mapbox_token=None)).search("castle")

    seen = {}

    def fake_get_json(url, *, params=None, headers=None, timeout_seconds=5):  # noqa: ARG001
        seen["url"] = url
        seen["params"] = params
        return {"features": [{"text": "Leap Castle", "place_name": "Leap Castle, Ireland", "center": [-7.8, 53.0]}]}

    monkeypatch.setattr("hauntscore.core.http.get_json", fake_get_json)
    hits = PlacesClient(_settings()).search(" leap castle ", limit=3)

    assert seen["url"].endswith("/leap%20castle.json")
    assert seen["params"]["limit"] == 3
    assert [h.name for h in hits] == ["Leap Castle"]
