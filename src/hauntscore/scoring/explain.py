"""
Explainability helpers.

Turns a computed rating into human-readable output:
- `generate_factor_breakdown`: one entry per factor (weight, contribution, sentence)
- `get_rating_explanation`: a label plus sentence for the overall score band
- `factor_catalog`: the static scoring tables, as served by `/api/rating/factors`
- `summarize_environment` / `one_line_summary`: compact strings for logs and the CLI
"""

from __future__ import annotations

from typing import Any

from hauntscore.domain.models import (
    EnvironmentalFactors,
    FactorBreakdown,
    HauntedRating,
    Location,
    LocationType,
    Season,
    TimeData,
    WeatherCondition,
    WeatherData,
    coerce_enum,
)
from hauntscore.scoring.factors import (
    FACTOR_WEIGHTS,
    LOCATION_SCORES,
    SEASON_SCORES,
    TEMPERATURE_BANDS_C,
    TIME_BANDS,
    DAYTIME_SCORE,
    VISIBILITY_BANDS_M,
    WEATHER_SCORES,
    band_index,
    round_half_up,
    time_band,
    weather_modifiers,
)

LOCATION_DESCRIPTIONS: dict[LocationType, str] = {
    LocationType.CASTLE: (
        "Ancient castles are steeped in history and countless tales of tragedy, making them prime "
        "locations for supernatural activity. This location type has extremely high paranormal potential."
    ),
    LocationType.GRAVEYARD: (
        "Graveyards and cemeteries are traditional gathering places for spirits, with strong connections "
        "to the afterlife. This location type has extremely high paranormal potential."
    ),
    LocationType.ABANDONED_BUILDING: (
        "Abandoned structures often harbor residual energy from past inhabitants and traumatic events. "
        "This location type has very high paranormal potential."
    ),
    LocationType.FORT: (
        "Military fortifications carry the weight of battles fought and lives lost, creating powerful "
        "spiritual imprints. This location type has high paranormal potential."
    ),
    LocationType.REGULAR: (
        "Regular locations have minimal supernatural associations, though spirits can manifest anywhere. "
        "This location type has limited paranormal potential."
    ),
}

WEATHER_DESCRIPTIONS: dict[WeatherCondition, str] = {
    WeatherCondition.FOGGY: "Dense fog creates an otherworldly atmosphere that spirits find conducive to manifestation.",
    WeatherCondition.STORMY: "Electrical storms generate energy that can amplify supernatural phenomena and spirit activity.",
    WeatherCondition.RAINY: "Rain and moisture create atmospheric conditions that enhance spiritual sensitivity.",
    WeatherCondition.CLOUDY: "Overcast skies provide a neutral backdrop with some atmospheric enhancement.",
    WeatherCondition.CLEAR: "Clear weather offers minimal atmospheric enhancement for paranormal activity.",
}

# One clause per band, aligned with TEMPERATURE_BANDS_C and VISIBILITY_BANDS_M.
TEMPERATURE_CLAUSES: tuple[str, ...] = (
    "The frigid temperature adds to the eerie atmosphere.",
    "The cold air enhances the supernatural ambiance.",
)
VISIBILITY_CLAUSES: tuple[str, ...] = (
    "Extremely poor visibility creates perfect conditions for ghostly encounters.",
    "Limited visibility adds mystery to the environment.",
)
PRECIPITATION_CLAUSE = "Active precipitation heightens the supernatural atmosphere."

TIME_DESCRIPTIONS: dict[str, str] = {
    "witching_hour": (
        "The witching hours between midnight and 3 AM are when the veil between worlds is thinnest, "
        "allowing maximum spiritual activity."
    ),
    "late_evening": "Late evening hours create an atmosphere of mystery and heightened supernatural sensitivity.",
    "twilight": "Twilight hours mark the transition from day to night, a time when spirits become more active.",
    "early_morning": (
        "The pre-dawn hours maintain some of the night's supernatural energy as darkness begins to fade."
    ),
    "daytime": (
        "Daylight hours generally suppress supernatural activity, though determined spirits may still manifest."
    ),
}

SEASON_DESCRIPTIONS: dict[Season, str] = {
    Season.AUTUMN: (
        "Autumn's association with death and decay, plus proximity to Halloween, creates peak conditions "
        "for supernatural encounters."
    ),
    Season.WINTER: "Winter's long nights and harsh conditions provide extended periods of darkness favored by spirits.",
    Season.SPRING: "Spring represents renewal and life, which tends to diminish supernatural activity as nature awakens.",
    Season.SUMMER: "Summer's warmth and extended daylight hours are least conducive to paranormal phenomena.",
}

# (minimum score, explanation), checked top-down.
EXPLANATION_BANDS: tuple[tuple[int, str], ...] = (
    (
        90,
        "Extremely haunted - This location shows maximum paranormal potential with multiple factors "
        "aligning for intense supernatural activity.",
    ),
    (
        75,
        "Highly haunted - Strong paranormal indicators suggest frequent supernatural encounters are "
        "likely at this location.",
    ),
    (
        60,
        "Moderately haunted - Several factors contribute to notable paranormal potential with possible "
        "spirit manifestations.",
    ),
    (
        40,
        "Mildly haunted - Some paranormal indicators present, though supernatural activity may be "
        "sporadic or subtle.",
    ),
    (25, "Low paranormal activity - Limited supernatural potential with minimal contributing factors."),
)
MINIMAL_EXPLANATION = (
    "Minimal haunting - Very low paranormal potential with few factors supporting supernatural activity."
)

_CATALOG_LOCATION_NOTES = {
    LocationType.CASTLE: "Ancient castles with rich history",
    LocationType.GRAVEYARD: "Cemeteries and burial grounds",
    LocationType.ABANDONED_BUILDING: "Abandoned or derelict structures",
    LocationType.FORT: "Military fortifications and battlegrounds",
    LocationType.REGULAR: "Regular locations with minimal supernatural associations",
}
_CATALOG_WEATHER_NOTES = {
    WeatherCondition.FOGGY: "Dense fog creates otherworldly atmosphere",
    WeatherCondition.STORMY: "Electrical storms amplify supernatural phenomena",
    WeatherCondition.RAINY: "Rain enhances spiritual sensitivity",
    WeatherCondition.CLOUDY: "Overcast skies provide neutral backdrop",
    WeatherCondition.CLEAR: "Clear weather offers minimal enhancement",
}
_CATALOG_SEASON_NOTES = {
    Season.AUTUMN: "Peak season for supernatural encounters",
    Season.WINTER: "Long nights favor spirit activity",
    Season.SPRING: "Renewal diminishes supernatural activity",
    Season.SUMMER: "Extended daylight suppresses phenomena",
}
_CATALOG_TIME_NOTES = {
    "witching_hour": ("00:00-03:00", "Peak supernatural activity"),
    "late_evening": ("21:00-00:00", "High supernatural sensitivity"),
    "twilight": ("18:00-21:00", "Transition period with moderate activity"),
    "early_morning": ("03:00-06:00", "Residual nighttime energy"),
    "daytime": ("06:00-18:00", "Suppressed supernatural activity"),
}

_as_location_type = coerce_enum(LocationType, LocationType.REGULAR)
_as_weather_condition = coerce_enum(WeatherCondition, WeatherCondition.CLEAR)
_as_season = coerce_enum(Season, Season.SUMMER)


def describe_location(location_type: LocationType | str) -> str:
    return LOCATION_DESCRIPTIONS[_as_location_type(location_type)]


def describe_weather(weather: WeatherData) -> str:
    """Condition sentence followed by temperature, visibility and precipitation clauses."""
    parts = [WEATHER_DESCRIPTIONS[_as_weather_condition(weather.condition)]]

    temperature = band_index(float(weather.temperature), TEMPERATURE_BANDS_C)
    if temperature is not None:
        parts.append(TEMPERATURE_CLAUSES[temperature])

    visibility = band_index(float(weather.visibility), VISIBILITY_BANDS_M)
    if visibility is not None:
        parts.append(VISIBILITY_CLAUSES[visibility])

    if weather_modifiers(weather)["precipitation"]:
        parts.append(PRECIPITATION_CLAUSE)

    return " ".join(parts)


def describe_time(time: TimeData) -> str:
    return TIME_DESCRIPTIONS[time_band(time)]


def describe_season(season: Season | str) -> str:
    return SEASON_DESCRIPTIONS[_as_season(season)]


def generate_factor_breakdown(
    location: Location, environmental: EnvironmentalFactors, rating: HauntedRating
) -> list[FactorBreakdown]:
    """Explain each factor in fixed order: location, weather, time, season.

    Contributions are computed from the already-rounded factor scores, so they may
    not sum exactly to `rating.overall_score`.
    """
    factors = rating.factors
    rows = (
        ("Location Type", "location", factors.location_score, describe_location(location.type)),
        ("Weather Conditions", "weather", factors.weather_score, describe_weather(environmental.weather)),
        ("Time of Day", "time", factors.time_score, describe_time(environmental.time)),
        ("Season", "season", factors.season_score, describe_season(environmental.season)),
    )
    return [
        FactorBreakdown(
            factor=label,
            weight=FACTOR_WEIGHTS[key],
            contribution=round_half_up(score * FACTOR_WEIGHTS[key]),
            description=description,
        )
        for label, key, score, description in rows
    ]


def get_rating_explanation(overall_score: float) -> str:
    for minimum, text in EXPLANATION_BANDS:
        if overall_score >= minimum:
            return text
    return MINIMAL_EXPLANATION


def factor_catalog() -> dict[str, Any]:
    """Static description of every scoring table."""
    time_factors: dict[str, Any] = {}
    for name, _, score in TIME_BANDS:
        hours, note = _CATALOG_TIME_NOTES[name]
        time_factors[name] = {"hours": hours, "score": score, "description": note}
    hours, note = _CATALOG_TIME_NOTES["daytime"]
    time_factors["daytime"] = {"hours": hours, "score": DAYTIME_SCORE, "description": note}

    return {
        "weights": dict(FACTOR_WEIGHTS),
        "location_types": {
            t.value: {"score": LOCATION_SCORES[t], "description": _CATALOG_LOCATION_NOTES[t]} for t in LocationType
        },
        "weather_conditions": {
            c.value: {"score": WEATHER_SCORES[c], "description": _CATALOG_WEATHER_NOTES[c]} for c in WeatherCondition
        },
        "time_factors": time_factors,
        "seasons": {s.value: {"score": SEASON_SCORES[s], "description": _CATALOG_SEASON_NOTES[s]} for s in Season},
    }


def summarize_environment(environmental: EnvironmentalFactors) -> str:
    w = environmental.weather
    t = environmental.time
    return (
        f"{w.condition.value} {w.temperature:g}C vis={w.visibility:g}m"
        f"{' precip' if w.precipitation else ''} | {t.hour:02d}h {t.timezone}"
        f"{' night' if t.is_nighttime else ''} | {environmental.season.value}"
    )


def one_line_summary(rating: HauntedRating) -> str:
    """Render a compact single-line summary for a rating."""
    f = rating.factors
    parts = [f"overall={rating.overall_score}"]
    parts.append(
        f"location={f.location_score} weather={f.weather_score} time={f.time_score} season={f.season_score}"
    )
    return " | ".join(parts)
