import math
import random
from datetime import datetime, timezone

import pytest

from hauntscore.domain.models import (
    Coordinates,
    EnvironmentalFactors,
    HauntedRating,
    Location,
    LocationType,
    Season,
    TimeData,
    WeatherCondition,
    WeatherData,
)
from hauntscore.scoring.composite import calculate_haunted_rating, calculate_haunted_rating_with_breakdown
from hauntscore.scoring.factors import get_location_score, get_weather_score

_HERE = Coordinates(latitude=51.5, longitude=-0.12)


def _location(location_type=LocationType.REGULAR) -> Location:
    return Location(coordinates=_HERE, name="Somewhere", type=location_type)


def _env(
    *,
    condition=WeatherCondition.CLEAR,
    temperature=25.0,
    visibility=15000,
    precipitation=False,
    hour=12,
    season=Season.SUMMER,
) -> EnvironmentalFactors:
    return EnvironmentalFactors(
        weather=WeatherData(
            condition=condition, temperature=temperature, visibility=visibility, precipitation=precipitation
        ),
        time=TimeData(hour=hour, is_nighttime=hour < 6 or hour >= 18),
        season=season,
    )


def test_baseline_regular_clear_noon_summer_scores_11():
    rating = calculate_haunted_rating(_location(), _env())

    assert rating.overall_score == 11
    assert rating.factors.location_score == 10
    assert rating.factors.weather_score == 10
    assert rating.factors.time_score == 10
    assert rating.factors.season_score == 20
    assert rating.breakdown == []
    assert rating.calculated_at.tzinfo is not None


def test_castle_in_fog_at_1am_in_autumn_scores_94():
    env = _env(
        condition=WeatherCondition.FOGGY,
        temperature=5,
        visibility=500,
        precipitation=True,
        hour=1,
        season=Season.AUTUMN,
    )
    rating = calculate_haunted_rating(_location(LocationType.CASTLE), env)

    assert rating.factors.location_score == 90
    assert rating.factors.weather_score == 100
    assert rating.factors.time_score == 100
    assert rating.factors.season_score == 80
    assert rating.overall_score == 94


def test_maximum_inputs_do_not_exceed_100():
    env = _env(
        condition=WeatherCondition.FOGGY,
        temperature=-10,
        visibility=0,
        precipitation=True,
        hour=0,
        season=Season.AUTUMN,
    )
    rating = calculate_haunted_rating(_location(LocationType.CASTLE), env)
    assert 0 <= rating.overall_score <= 100


def test_with_breakdown_returns_new_rating():
    now = datetime(2026, 10, 31, 0, 30, tzinfo=timezone.utc)
    rating = calculate_haunted_rating(_location(), _env(), now=now)
    enriched = calculate_haunted_rating_with_breakdown(_location(), _env(), now=now)

    assert rating.breakdown == []
    assert [b.factor for b in enriched.breakdown] == ["Location Type", "Weather Conditions", "Time of Day", "Season"]
    assert enriched.overall_score == rating.overall_score
    assert enriched.calculated_at == now


def test_rating_survives_json_round_trip():
    rating = calculate_haunted_rating_with_breakdown(_location(LocationType.GRAVEYARD), _env(hour=22))
    restored = HauntedRating.model_validate(rating.model_dump(mode="json"))

    assert restored.overall_score == rating.overall_score
    assert restored.factors == rating.factors
    assert restored.breakdown == rating.breakdown
    assert restored.calculated_at == rating.calculated_at


def _random_inputs(rng: random.Random) -> tuple[Location, EnvironmentalFactors]:
    env = _env(
        condition=rng.choice(list(WeatherCondition)),
        temperature=rng.uniform(-30, 45),
        visibility=rng.uniform(0, 20000),
        precipitation=rng.random() < 0.5,
        hour=rng.randrange(24),
        season=rng.choice(list(Season)),
    )
    return _location(rng.choice(list(LocationType))), env


@pytest.mark.parametrize("seed", range(25))
def test_rating_is_deterministic_and_bounded(seed):
    location, env = _random_inputs(random.Random(seed))

    first = calculate_haunted_rating_with_breakdown(location, env)
    second = calculate_haunted_rating_with_breakdown(location, env)

    assert first.overall_score == second.overall_score
    assert first.factors == second.factors
    assert 0 <= first.overall_score <= 100
    for score in first.factors.model_dump().values():
        assert 0 <= score <= 100
    assert math.isclose(sum(b.weight for b in first.breakdown), 1.0)


@pytest.mark.parametrize("seed", range(25))
def test_precipitation_never_lowers_weather_score(seed):
    _, env = _random_inputs(random.Random(seed))
    dry = env.weather.model_copy(update={"precipitation": False})
    wet = env.weather.model_copy(update={"precipitation": True})
    assert get_weather_score(wet) >= get_weather_score(dry)


def test_castle_never_scores_below_regular():
    assert get_location_score(LocationType.CASTLE) >= get_location_score(LocationType.REGULAR)
