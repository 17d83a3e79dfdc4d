import math

import pytest

from hauntscore.domain.models import LocationType, Season, TimeData, WeatherCondition, WeatherData
from hauntscore.scoring.factors import (
    FACTOR_WEIGHTS,
    get_location_score,
    get_season_score,
    get_time_score,
    get_weather_score,
    round_half_up,
    time_band,
)


def _weather(condition=WeatherCondition.CLEAR, temperature=25.0, visibility=15000, precipitation=False):
    return WeatherData(condition=condition, temperature=temperature, visibility=visibility, precipitation=precipitation)


def _time(hour: int) -> TimeData:
    return TimeData(hour=hour, is_nighttime=hour < 6 or hour >= 18)


def test_weights_sum_to_one():
    assert math.isclose(sum(FACTOR_WEIGHTS.values()), 1.0)


@pytest.mark.parametrize(
    "location_type,expected",
    [
        (LocationType.CASTLE, 90),
        (LocationType.GRAVEYARD, 85),
        (LocationType.ABANDONED_BUILDING, 80),
        (LocationType.FORT, 70),
        (LocationType.REGULAR, 10),
        ("castle", 90),
        ("lighthouse", 10),
    ],
)
def test_location_scores(location_type, expected):
    assert get_location_score(location_type) == expected


def test_weather_score_clear_cold_blind_wet_adds_all_modifiers():
    weather = _weather(temperature=5, visibility=800, precipitation=True)
    assert get_weather_score(weather) == 40


def test_weather_score_is_capped_at_100():
    weather = _weather(condition=WeatherCondition.FOGGY, temperature=5, visibility=500, precipitation=True)
    assert get_weather_score(weather) == 100


@pytest.mark.parametrize(
    "temperature,bonus",
    [(9.9, 10), (10, 5), (19.9, 5), (20, 0), (-40, 10)],
)
def test_temperature_bands_are_upper_exclusive(temperature, bonus):
    assert get_weather_score(_weather(temperature=temperature)) == 10 + bonus


@pytest.mark.parametrize(
    "visibility,bonus",
    [(999, 15), (1000, 8), (4999, 8), (5000, 0), (0, 15)],
)
def test_visibility_bands_are_upper_exclusive(visibility, bonus):
    assert get_weather_score(_weather(visibility=visibility)) == 10 + bonus


def test_weather_score_nan_inputs_add_no_modifier():
    weather = _weather(condition=WeatherCondition.CLOUDY, temperature=float("nan"), visibility=float("nan"))
    assert get_weather_score(weather) == 40


def test_unknown_weather_condition_falls_back_to_clear():
    weather = WeatherData(condition="volcanic", temperature=25, visibility=15000)
    assert weather.condition is WeatherCondition.CLEAR
    assert get_weather_score(weather) == 10


@pytest.mark.parametrize(
    "hour,expected",
    [
        (0, 100),
        (1, 100),
        (2, 100),
        (3, 70),
        (5, 70),
        (6, 10),
        (12, 10),
        (17, 10),
        (18, 60),
        (20, 60),
        (21, 80),
        (23, 80),
    ],
)
def test_time_scores(hour, expected):
    assert get_time_score(_time(hour)) == expected


def test_midnight_resolves_to_witching_hour():
    assert time_band(_time(0)) == "witching_hour"
    assert get_time_score(_time(0)) == 100


@pytest.mark.parametrize(
    "season,expected",
    [(Season.AUTUMN, 80), (Season.WINTER, 70), (Season.SPRING, 30), (Season.SUMMER, 20), ("monsoon", 20)],
)
def test_season_scores(season, expected):
    assert get_season_score(season) == expected


@pytest.mark.parametrize("value,expected", [(2.5, 3), (3.5, 4), (10.49, 10), (0.5, 1), (0, 0)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
