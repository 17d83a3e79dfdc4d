# src/hauntscore/features/location_type.py
"""
Location classification.

Turns whatever we know about a place (its name, address, category tags and the
points of interest around it) into one `LocationType` using keyword heuristics.

Rules:
- Categories are checked in a fixed priority order: castle, graveyard,
  abandoned building, fort. The first category with any keyword hit wins.
- Matching is case-insensitive substring matching, except for "fort", which
  must be a whole word ("Fort Point" matches, "Comfort Inn" does not).
- No hit at all means `regular`.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from hauntscore.config.settings import Settings
from hauntscore.core.cache import MemoryCache
from hauntscore.domain.models import Coordinates, Location, LocationType, PointOfInterest
from hauntscore.ingestion.places_client import PlacesClient

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "location"

CLASSIFICATION_KEYWORDS: tuple[tuple[LocationType, tuple[str, ...]], ...] = (
    (LocationType.CASTLE, ("castle", "château", "chateau", "palace", "manor")),
    (LocationType.GRAVEYARD, ("cemetery", "graveyard", "burial", "tomb", "funeral_home")),
    (LocationType.ABANDONED_BUILDING, ("abandoned", "ruins", "derelict", "haunted")),
    (LocationType.FORT, ("fort", "fortress", "citadel", "stronghold", "military")),
)
WORD_BOUNDARY_KEYWORDS = frozenset({"fort"})


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    escaped = re.escape(keyword)
    if keyword in WORD_BOUNDARY_KEYWORDS:
        # Underscores join words in provider tags ("fort_site"), so treat them as separators.
        return re.compile(rf"(?<![a-z0-9]){escaped}(?![a-z0-9])")
    return re.compile(escaped)


_PATTERNS: tuple[tuple[LocationType, tuple[re.Pattern[str], ...]], ...] = tuple(
    (location_type, tuple(_keyword_pattern(k) for k in keywords))
    for location_type, keywords in CLASSIFICATION_KEYWORDS
)


def classify(
    name: str | None,
    categories: Iterable[str] = (),
    nearby_pois: Iterable[PointOfInterest] = (),
    address: str | None = "",
) -> LocationType:
    """Classify a place from its text signals; never raises."""
    texts = [name or "", address or "", *[str(c) for c in categories]]
    for poi in nearby_pois:
        texts.append(poi.name)
        texts.append(poi.type)
    haystack = "\n".join(t.lower() for t in texts if t)
    if not haystack:
        return LocationType.REGULAR

    for location_type, patterns in _PATTERNS:
        if any(p.search(haystack) for p in patterns):
            return location_type
    return LocationType.REGULAR


def _coordinate_label(coordinates: Coordinates) -> str:
    return f"{coordinates.latitude}, {coordinates.longitude}"


class LocationAnalyzer:
    """Looks up, classifies and caches the place at a coordinate."""

    def __init__(self, settings: Settings, cache: MemoryCache, places: PlacesClient | None = None):
        self._settings = settings
        self._cache = cache
        self._places = places or PlacesClient(settings)

    @property
    def places_configured(self) -> bool:
        return self._places.places_configured

    @property
    def geocoding_configured(self) -> bool:
        return self._places.geocoding_configured

    def analyze(self, coordinates: Coordinates, location_name: str | None = None) -> Location:
        key = f"location_{coordinates.key(4)}"
        ttl_seconds = int(self._settings.providers.places.cache_ttl_seconds)
        return self._cache.get_or_set(
            CACHE_NAMESPACE, key, lambda: self._build(coordinates, location_name, key), ttl_seconds=ttl_seconds
        )

    def _build(self, coordinates: Coordinates, location_name: str | None, key: str) -> Location:
        pois = self._places.nearby_pois(coordinates)
        geocoded = self._places.reverse_geocode(coordinates)

        name = (geocoded.name if geocoded else None) or location_name or f"Location at {_coordinate_label(coordinates)}"
        address = (geocoded.address if geocoded else None) or _coordinate_label(coordinates)
        location_type = classify(
            name=" ".join(n for n in (geocoded.name if geocoded else None, location_name) if n),
            categories=geocoded.categories if geocoded else (),
            nearby_pois=pois,
            address=geocoded.address if geocoded else "",
        )

        location = Location(
            coordinates=coordinates,
            name=name,
            type=location_type,
            nearby_pois=pois,
            address=address,
        )
        logger.info("Classified %s (%s) as %s", key, name, location_type.value)
        return location

    def search(self, query: str, *, limit: int = 5) -> list[Location]:
        """Forward-geocode `query` and analyze each hit."""
        hits = self._places.search(query, limit=limit)
        return [self.analyze(hit.coordinates, hit.name) for hit in hits if hit.coordinates is not None]
