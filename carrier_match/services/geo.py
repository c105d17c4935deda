from math import radians, sin, cos, sqrt, atan2

EARTH_RADIUS_KM = 6371
KM_PER_DEG_LAT = 110.574
KM_PER_DEG_LNG_AT_EQUATOR = 111.32


def clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in km."""
    phi1, phi2 = radians(lat1), radians(lat2)
    dphi = radians(lat2 - lat1)
    dlambda = radians(lng2 - lng1)
    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * atan2(sqrt(a), sqrt(1 - a))


def bounding_box(lat: float, lng: float, radius_km: float) -> tuple[float, float, float, float]:
    """
    Returns (min_lat, max_lat, min_lng, max_lng) of a rectangle enclosing the
    radius. Corners lie outside the circle, so callers must still check the
    exact distance. Does not wrap the antimeridian.
    """
    lat_delta = radius_km / KM_PER_DEG_LAT
    lng_delta = radius_km / (KM_PER_DEG_LNG_AT_EQUATOR * cos(radians(lat)) or 1)
    return lat - lat_delta, lat + lat_delta, lng - lng_delta, lng + lng_delta
