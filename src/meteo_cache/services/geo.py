"""Geographic utilities and cache key helpers."""

from math import asin, cos, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0

# 1 decimal degree is roughly 11 km, 4 decimals roughly 11 m
COARSE_PRECISION = 1
FINE_PRECISION = 4


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great circle distance in km between two points.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in kilometers
    """
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(a))

    return EARTH_RADIUS_KM * c


def _quantize(value: float, precision: int) -> str:
    # + 0.0 turns -0.0 into 0.0 so both hemispheres of zero share a key
    return f"{round(value, precision) + 0.0:.{precision}f}"


def location_key(lat: float, lon: float) -> str:
    """Coarse cache key shared by all points in the same ~11 km cell."""
    return f"{_quantize(lat, COARSE_PRECISION)}_{_quantize(lon, COARSE_PRECISION)}"


def geocode_key(lat: float, lon: float) -> str:
    """Fine cache key for reverse geocoding results."""
    return f"{_quantize(lat, FINE_PRECISION)}_{_quantize(lon, FINE_PRECISION)}"


def coordinate_label(lat: float, lon: float) -> str:
    """Fallback display name for an unresolved coordinate."""
    return f"Location ({lat:.2f}, {lon:.2f})"
