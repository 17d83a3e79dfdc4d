# src/hauntscore/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/hauntscore/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `OPENWEATHER_API_KEY`, `HAUNTSCORE_LOG_LEVEL`)
- an external YAML file via `HAUNTSCORE_CONFIG_PATH`

Design rule:
- Operational knobs (URLs, TTLs, refresh cadence) live in YAML.
- Rating weights and score tables do NOT; they are fixed constants in `hauntscore.scoring`.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from hauntscore.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `hauntscore.config`."""
    text = resources.files("hauntscore.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "HauntScore"
    timezone: str = "UTC"
    http_timeout_seconds: float = 5
    log_level: str = "INFO"


class CacheSettings(BaseModel):
    enabled: bool = True
    default_ttl_seconds: int = 300


class RetrySettings(BaseModel):
    max_attempts: int = Field(2, ge=0)
    base_delay_seconds: float = Field(0.5, ge=0)
    max_delay_seconds: float = Field(4.0, ge=0)


class WeatherProviderSettings(BaseModel):
    base_url: str = "https://api.openweathermap.org/data/2.5"
    api_key: str | None = None
    units: str = "metric"
    cache_ttl_seconds: int = 30 * 60
    max_stale_seconds: int = 2 * 60 * 60


class PlacesProviderSettings(BaseModel):
    base_url: str = "https://maps.googleapis.com/maps/api/place"
    api_key: str | None = None
    radius_m: int = 1000
    max_pois: int = 10
    cache_ttl_seconds: int = 60 * 60


class GeocodingProviderSettings(BaseModel):
    base_url: str = "https://api.mapbox.com/geocoding/v5/mapbox.places"
    access_token: str | None = None
    types: str = "poi,address,place"


class ProvidersSettings(BaseModel):
    weather: WeatherProviderSettings = Field(default_factory=WeatherProviderSettings)
    places: PlacesProviderSettings = Field(default_factory=PlacesProviderSettings)
    geocoding: GeocodingProviderSettings = Field(default_factory=GeocodingProviderSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)


class RatingSettings(BaseModel):
    cache_ttl_seconds: int = 5 * 60
    # Decimal places used for the rating-cache coordinate key (~110 m at 3 dp).
    coordinate_precision: int = Field(3, ge=0, le=6)


class RefreshSettings(BaseModel):
    interval_seconds: float = Field(30 * 60, gt=0)
    fallback_ttl_seconds: int = Field(2 * 60 * 60, gt=0)
    stale_session_seconds: int = Field(4 * 60 * 60, gt=0)
    sweep_interval_seconds: float = Field(60 * 60, gt=0)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    providers: ProvidersSettings = Field(default_factory=ProvidersSettings)
    rating: RatingSettings = Field(default_factory=RatingSettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small to avoid exposing unsafe overrides.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("HAUNTSCORE_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    interval = os.getenv("HAUNTSCORE_REFRESH_INTERVAL_SECONDS")
    if interval:
        data.setdefault("refresh", {})["interval_seconds"] = float(interval)

    providers = data.setdefault("providers", {})
    weather_key = os.getenv("OPENWEATHER_API_KEY")
    if weather_key:
        providers.setdefault("weather", {})["api_key"] = weather_key
    places_key = os.getenv("GOOGLE_PLACES_API_KEY")
    if places_key:
        providers.setdefault("places", {})["api_key"] = places_key
    mapbox_token = os.getenv("MAPBOX_ACCESS_TOKEN")
    if mapbox_token:
        providers.setdefault("geocoding", {})["access_token"] = mapbox_token

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("HAUNTSCORE_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
