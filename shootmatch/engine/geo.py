"""Great-circle distance between coordinates."""

import math

from shootmatch.schemas.catalog_schema import Coordinate

EARTH_RADIUS_KM = 6371.0


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Haversine distance in kilometers. Symmetric; zero for identical points."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlambda = math.radians(b.lng - a.lng)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def within_radius(center: Coordinate, point: Coordinate, radius_km: float) -> bool:
    """True when ``point`` lies inside (or exactly on) the circle around ``center``."""
    return distance_km(center, point) <= radius_km
