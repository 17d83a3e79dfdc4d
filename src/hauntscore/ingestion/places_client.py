"""
Places + geocoding ingestion (Google Places nearby search, Mapbox geocoding).

Both lookups are enrichment, not requirements: a missing credential or an upstream
error is logged and yields an empty result so location analysis can still
classify the place from whatever it has (fail-open).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from hauntscore.config.settings import Settings
from hauntscore.core.geo import haversine_m
from hauntscore.core.http import MissingApiKeyError, get_json_with_retry
from hauntscore.domain.models import Coordinates, PointOfInterest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeocodedPlace:
    """A geocoding hit: short name, full address and its own coordinates."""

    name: str
    address: str
    categories: tuple[str, ...] = ()
    coordinates: Coordinates | None = None


def _parse_feature(feature: dict[str, Any]) -> GeocodedPlace | None:
    name = str(feature.get("text") or "").strip()
    address = str(feature.get("place_name") or "").strip()
    if not name and not address:
        return None

    props = feature.get("properties") or {}
    raw_categories = props.get("category") or ""
    categories = tuple(c.strip() for c in str(raw_categories).split(",") if c.strip())

    coords = None
    center = feature.get("center")
    if isinstance(center, (list, tuple)) and len(center) == 2:
        try:
            coords = Coordinates(latitude=float(center[1]), longitude=float(center[0]))
        except (TypeError, ValueError):
            coords = None

    return GeocodedPlace(name=name or address, address=address, categories=categories, coordinates=coords)


class PlacesClient:
    def __init__(self, settings: Settings):
        self._settings = settings

    @property
    def places_configured(self) -> bool:
        return bool(self._settings.providers.places.api_key)

    @property
    def geocoding_configured(self) -> bool:
        return bool(self._settings.providers.geocoding.access_token)

    def nearby_pois(self, coordinates: Coordinates) -> list[PointOfInterest]:
        """Points of interest within `providers.places.radius_m`, nearest-first as returned."""
        cfg = self._settings.providers.places
        if not cfg.api_key:
            logger.warning("Places API key not configured; skipping nearby search")
            return []

        params = {
            "location": f"{coordinates.latitude},{coordinates.longitude}",
            "radius": int(cfg.radius_m),
            "key": cfg.api_key,
            "type": "point_of_interest",
        }
        try:
            logger.info("Fetching nearby places for %s", coordinates.key())
            payload = get_json_with_retry(
                f"{cfg.base_url.rstrip('/')}/nearbysearch/json",
                params=params,
                timeout_seconds=self._settings.app.http_timeout_seconds,
                retry=self._settings.providers.retry,
                label="places",
            )
            status = payload.get("status") if isinstance(payload, dict) else None
            if status not in {"OK", "ZERO_RESULTS"}:
                raise ValueError(f"Places API error: {status}")
        except Exception as exc:
            logger.warning("Nearby search failed for %s: %s", coordinates.key(), exc)
            return []

        pois: list[PointOfInterest] = []
        for place in payload.get("results") or []:
            if not isinstance(place, dict):
                continue
            loc = ((place.get("geometry") or {}).get("location")) or {}
            try:
                distance = haversine_m(
                    coordinates.latitude, coordinates.longitude, float(loc["lat"]), float(loc["lng"])
                )
            except (KeyError, TypeError, ValueError):
                continue
            types = place.get("types") or []
            pois.append(
                PointOfInterest(
                    name=str(place.get("name") or "Unnamed place"),
                    type=str(types[0]) if types else "unknown",
                    distance_meters=round(distance),
                )
            )
            if len(pois) >= int(cfg.max_pois):
                break
        return pois

    def _geocode(self, path: str, params: dict[str, Any], label: str) -> list[GeocodedPlace]:
        cfg = self._settings.providers.geocoding
        payload = get_json_with_retry(
            f"{cfg.base_url.rstrip('/')}/{path}.json",
            params={"access_token": cfg.access_token, "types": cfg.types, **params},
            timeout_seconds=self._settings.app.http_timeout_seconds,
            retry=self._settings.providers.retry,
            label=label,
        )
        features = payload.get("features") if isinstance(payload, dict) else None
        places = []
        for feature in features or []:
            if isinstance(feature, dict):
                parsed = _parse_feature(feature)
                if parsed is not None:
                    places.append(parsed)
        return places

    def reverse_geocode(self, coordinates: Coordinates) -> GeocodedPlace | None:
        """Best match for the coordinate, or None (also on any failure)."""
        if not self.geocoding_configured:
            logger.warning("Geocoding access token not configured; skipping reverse geocoding")
            return None
        try:
            logger.info("Reverse geocoding %s", coordinates.key())
            places = self._geocode(f"{coordinates.longitude},{coordinates.latitude}", {}, "geocoding")
        except Exception as exc:
            logger.warning("Reverse geocoding failed for %s: %s", coordinates.key(), exc)
            return None
        return places[0] if places else None

    def search(self, query: str, *, limit: int = 5) -> list[GeocodedPlace]:
        """Forward geocoding. Unlike the lookups above this raises: a search has no fallback."""
        if not self.geocoding_configured:
            raise MissingApiKeyError("Mapbox access token not configured")
        logger.info("Searching places for %r", query)
        return self._geocode(quote(query.strip(), safe=""), {"limit": int(limit)}, "geocoding")
