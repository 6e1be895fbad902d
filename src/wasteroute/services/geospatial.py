"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Sequence

from shapely.geometry import Polygon

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def point_in_polygon(lat: float, lon: float, polygon_coords: Sequence[tuple[float, float]]) -> bool:
    """Return True if the point lies inside the polygon of (lat, lon) vertices.

    Ray casting with the even-odd rule: a horizontal ray from the point is
    tested against every edge and each crossing flips the result.
    """

    inside = False
    count = len(polygon_coords)
    if count < 3:
        return False
    j = count - 1
    for i in range(count):
        yi, xi = polygon_coords[i]
        yj, xj = polygon_coords[j]
        if (yi > lat) != (yj > lat):
            crossing_lon = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lon < crossing_lon:
                inside = not inside
        j = i
    return inside


def geofence_problems(polygon_coords: Sequence[tuple[float, float]]) -> list[str]:
    """List reasons why a geofence ring is unusable; empty when it is valid."""

    problems: list[str] = []
    if len(polygon_coords) < 4:
        problems.append("geofence must have at least 4 vertices")
        return problems
    if tuple(polygon_coords[0]) != tuple(polygon_coords[-1]):
        problems.append("geofence must be closed (first vertex equal to last)")
        return problems
    polygon = Polygon([(lon, lat) for lat, lon in polygon_coords])
    if not polygon.is_valid:
        problems.append("geofence must not self-intersect")
    elif polygon.area == 0:
        problems.append("geofence must enclose a non-zero area")
    return problems


def project_to_plane(
    coordinates: Sequence[tuple[float, float]],
) -> list[tuple[float, float]]:
    """Project (lat, lon) pairs to an equirectangular plane in kilometres.

    The projection is centred on the mean of the input, which keeps the
    distortion small for city-sized areas.
    """

    if not coordinates:
        return []
    lat_ref = sum(lat for lat, _ in coordinates) / len(coordinates)
    lon_ref = sum(lon for _, lon in coordinates) / len(coordinates)
    cos_ref = math.cos(math.radians(lat_ref))

    projected = []
    for lat, lon in coordinates:
        x = EARTH_RADIUS_KM * math.radians(lon - lon_ref) * cos_ref
        y = EARTH_RADIUS_KM * math.radians(lat - lat_ref)
        projected.append((x, y))
    return projected
