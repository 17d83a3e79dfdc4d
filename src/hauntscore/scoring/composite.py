"""
Composite haunted rating.

The overall score is a fixed weighted sum of the four factor scores:
- weights are applied to the *unrounded* raw scores
- only the final sum is rounded (half-up) and clamped into 0..100
- the reported per-factor scores are the raw scores rounded half-up

`calculated_at` is the only field that differs between two calls with the same inputs.
"""

from __future__ import annotations

from datetime import datetime

from hauntscore.core.time import utc_now
from hauntscore.domain.models import EnvironmentalFactors, FactorScores, HauntedRating, Location
from hauntscore.scoring.explain import generate_factor_breakdown
from hauntscore.scoring.factors import (
    FACTOR_WEIGHTS,
    clamp_score,
    get_location_score,
    get_season_score,
    get_time_score,
    get_weather_score,
    round_half_up,
)


def raw_factor_scores(location: Location, environmental: EnvironmentalFactors) -> dict[str, float]:
    """Return the unweighted, unrounded score of each factor keyed by weight name."""
    return {
        "location": float(get_location_score(location.type)),
        "weather": float(get_weather_score(environmental.weather)),
        "time": float(get_time_score(environmental.time)),
        "season": float(get_season_score(environmental.season)),
    }


def calculate_haunted_rating(
    location: Location, environmental: EnvironmentalFactors, *, now: datetime | None = None
) -> HauntedRating:
    """Compute the overall rating (with an empty breakdown)."""
    raw = raw_factor_scores(location, environmental)
    weighted = sum(raw[name] * weight for name, weight in FACTOR_WEIGHTS.items())
    overall = round_half_up(clamp_score(min(100.0, weighted)))

    return HauntedRating(
        overall_score=overall,
        factors=FactorScores(
            location_score=round_half_up(raw["location"]),
            weather_score=round_half_up(raw["weather"]),
            time_score=round_half_up(raw["time"]),
            season_score=round_half_up(raw["season"]),
        ),
        breakdown=[],
        calculated_at=now or utc_now(),
    )


def calculate_haunted_rating_with_breakdown(
    location: Location, environmental: EnvironmentalFactors, *, now: datetime | None = None
) -> HauntedRating:
    rating = calculate_haunted_rating(location, environmental, now=now)
    return rating.with_breakdown(generate_factor_breakdown(location, environmental, rating))
