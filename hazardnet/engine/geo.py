"""
hazardnet.engine.geo — Distance Helpers
========================================

Radius queries run in two steps: a latitude/longitude bounding box narrows
candidates with an indexed range scan, then ``geopy``'s geodesic distance
on the WGS84 ellipsoid gives the exact answer.  No I/O.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from geopy.distance import geodesic

EARTH_RADIUS_M = 6_371_008.8

# Ellipsoidal distances differ from the spherical box by well under 1%
BOX_MARGIN = 1.01


@dataclass(frozen=True, slots=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


def distance_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Geodesic distance in metres between two WGS84 points."""
    return geodesic((lat1, lng1), (lat2, lng2)).meters


def bounding_box(lat: float, lng: float, radius_m: float) -> BoundingBox:
    """Lat/lng box that contains every point within *radius_m* of a point.

    Near the poles, across the antimeridian, or for huge radii the longitude
    span covers the whole globe instead of wrapping.
    """
    angular = radius_m * BOX_MARGIN / EARTH_RADIUS_M
    d_lat = math.degrees(angular)
    min_lat = max(-90.0, lat - d_lat)
    max_lat = min(90.0, lat + d_lat)

    cos_lat = math.cos(math.radians(lat))
    if min_lat <= -90.0 or max_lat >= 90.0 or cos_lat < 1e-12:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    d_lng = math.degrees(angular / cos_lat)
    # Crossing the antimeridian: fall back to the full span
    if d_lng >= 180.0 or lng - d_lng < -180.0 or lng + d_lng > 180.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)
    return BoundingBox(min_lat, max_lat, lng - d_lng, lng + d_lng)


def valid_coordinates(lat: float, lng: float) -> bool:
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0
