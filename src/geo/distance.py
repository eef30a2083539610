"""Centralized geographic distance calculations.

Every distance in the service goes through haversine_distance_m so that
activation checks, admin views and tests agree on one Earth radius.
"""

from math import atan2, cos, radians, sin, sqrt

EARTH_RADIUS_M = 6_371_000  # Earth radius in meters

# ~9e-6 degrees per meter (1 / 111,320 m per degree of latitude)
_LAT_DEGREES_PER_METER: float = 1.0 / 111_320

# Below this cos(lat) the longitude pre-check is skipped (polar regions).
_MIN_COS_LAT = 0.01


def haversine_distance_m(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Great-circle distance in meters between (lat1, lon1) and (lat2, lon2).

    Coordinates are decimal degrees. Used for the captain to first
    checkpoint distance recorded on every activation check.
    """
    phi1, phi2 = radians(lat1), radians(lat2)
    half_dphi = (phi2 - phi1) / 2
    half_dlambda = radians(lon2 - lon1) / 2

    h = sin(half_dphi) ** 2 + cos(phi1) * cos(phi2) * sin(half_dlambda) ** 2
    return 2 * EARTH_RADIUS_M * atan2(sqrt(h), sqrt(1 - h))


def haversine_distance_km(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Same distance as haversine_distance_m, in kilometers."""
    return haversine_distance_m(lat1, lon1, lat2, lon2) / 1000.0


def is_within_proximity(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
    threshold_m: float,
) -> bool:
    """Check if two geographic points are within threshold_m meters (inclusive).

    A flat bounding box rejects far-apart points before the haversine call.
    The longitude span is widened by 1/cos(lat) so the box never rejects a
    point the haversine formula would accept.
    """
    lat_threshold = threshold_m * _LAT_DEGREES_PER_METER * 1.01
    if abs(lat2 - lat1) > lat_threshold:
        return False

    dlon = abs(lon2 - lon1) % 360
    dlon = min(dlon, 360 - dlon)
    cos_lat = min(cos(radians(lat1)), cos(radians(lat2)))
    if cos_lat > _MIN_COS_LAT and dlon > lat_threshold / cos_lat:
        return False

    return haversine_distance_m(lat1, lon1, lat2, lon2) <= threshold_m
