"""
Great-circle distance and distance ranking.

Pure functions — no I/O, no clock, no randomness. Same inputs always
give the same outputs, so ranked pages are safe to cache verbatim.

  • haversine_km()  — distance between two (lat, lon) points, R = 6371 km.
  • bounding_box()  — the cheap ±radius/111° pre-filter pushed into SQL.
  • rank_by_distance() — annotate + stable sort; records without
    coordinates get distance None and always come after those with one.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0


class Located(Protocol):
    latitude: float | None
    longitude: float | None


L = TypeVar("L", bound=Located)


@dataclass(frozen=True, slots=True)
class GeoOrigin:
    """Query origin plus optional search radius (km)."""

    latitude: float
    longitude: float
    radius_km: float | None = None


@dataclass(frozen=True, slots=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def longitude_ranges(self) -> list[tuple[float, float]]:
        """
        The box's longitude span as ranges inside [-180, 180].

        A box that crosses the antimeridian is split in two, so a point at
        179.9° still matches a box centred on -179.9°.
        """
        if self.max_lon - self.min_lon >= 360.0:
            return [(-180.0, 180.0)]
        if self.min_lon < -180.0:
            return [(self.min_lon + 360.0, 180.0), (-180.0, self.max_lon)]
        if self.max_lon > 180.0:
            return [(self.min_lon, 180.0), (-180.0, self.max_lon - 360.0)]
        return [(self.min_lon, self.max_lon)]

    def contains(self, latitude: float, longitude: float) -> bool:
        if not self.min_lat <= latitude <= self.max_lat:
            return False
        return any(low <= longitude <= high for low, high in self.longitude_ranges())


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in km between two points given in decimal degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Clamp float noise so sqrt(1 - a) never sees a negative number.
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(origin: GeoOrigin) -> BoundingBox | None:
    """
    Degree box enclosing `radius_km` around the origin, or None without a radius.

    Longitudes are left unwrapped (min_lon may drop below -180); use
    BoundingBox.longitude_ranges() to filter on them.
    """
    if origin.radius_km is None:
        return None

    lat_range = origin.radius_km / KM_PER_DEGREE
    cos_lat = math.cos(math.radians(origin.latitude))
    if abs(cos_lat) < 1e-12:
        # At the poles every longitude is within range.
        lon_range = 180.0
    else:
        lon_range = origin.radius_km / (KM_PER_DEGREE * abs(cos_lat))

    return BoundingBox(
        min_lat=origin.latitude - lat_range,
        max_lat=origin.latitude + lat_range,
        min_lon=origin.longitude - lon_range,
        max_lon=origin.longitude + lon_range,
    )


def distance_from(origin: GeoOrigin, item: Located) -> float | None:
    if item.latitude is None or item.longitude is None:
        return None
    return haversine_km(origin.latitude, origin.longitude, item.latitude, item.longitude)


def rank_by_distance(
    items: Sequence[L],
    origin: GeoOrigin,
    *,
    descending: bool = False,
) -> list[tuple[L, float | None]]:
    """
    Pair each item with its distance and sort by it.

    Items lacking coordinates are placed after every item that has one,
    in both directions. Ties keep their input order (sorted() is stable).
    """
    annotated = [(item, distance_from(origin, item)) for item in items]
    located = [pair for pair in annotated if pair[1] is not None]
    unlocated = [pair for pair in annotated if pair[1] is None]
    located.sort(key=lambda pair: pair[1], reverse=descending)  # type: ignore[arg-type, return-value]
    return located + unlocated
