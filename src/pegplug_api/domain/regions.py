"""Geofence region keys and distance helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from pegplug_api.models.merchant import Location


METERS_PER_MILE = 1609.34
EARTH_RADIUS_METERS = 6_371_000.0
_SEPARATOR = "_"


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    @classmethod
    def origin(cls) -> "Coordinate":
        return cls(0.0, 0.0)


@dataclass(frozen=True)
class RegionKey:
    """Structured (merchant, location) pair behind a geofence region."""

    merchant_id: str
    location_id: str

    def __post_init__(self) -> None:
        for value in (self.merchant_id, self.location_id):
            if not value:
                raise ValueError("Region key components must be non-empty")
            if _SEPARATOR in value:
                raise ValueError(f"Region key component may not contain '{_SEPARATOR}': {value!r}")

    @property
    def identifier(self) -> str:
        return f"{self.merchant_id}{_SEPARATOR}{self.location_id}"

    @classmethod
    def parse(cls, identifier: str) -> "RegionKey":
        """Parse the legacy `"{merchant}_{location}"` string form."""

        parts = (identifier or "").split(_SEPARATOR)
        if len(parts) != 2:
            raise ValueError(f"Malformed region identifier: {identifier!r}")
        return cls(merchant_id=parts[0], location_id=parts[1])


@dataclass(frozen=True)
class GeofenceRegion:
    key: RegionKey
    center: Coordinate
    radius_meters: float


def miles_to_meters(miles: float) -> float:
    return miles * METERS_PER_MILE


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle (haversine) distance."""

    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(b.longitude - a.longitude)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))


def location_coordinate(location: Location) -> Coordinate:
    return Coordinate(float(location.latitude or 0.0), float(location.longitude or 0.0))


def closest_location(
    locations: Sequence[Location] | Iterable[Location],
    origin: Coordinate,
) -> tuple[Location, float] | None:
    best: tuple[Location, float] | None = None
    for location in locations:
        distance = distance_meters(origin, location_coordinate(location))
        if best is None or distance < best[1]:
            best = (location, distance)
    return best


__all__ = [
    "Coordinate",
    "GeofenceRegion",
    "METERS_PER_MILE",
    "RegionKey",
    "closest_location",
    "distance_meters",
    "location_coordinate",
    "miles_to_meters",
]
