"""Small geographic helpers shared by search, classification and matching.

All functions are pure. Coordinates are decimal degrees; MongoDB GeoJSON
points are built in (lng, lat) order.
"""
import math
from typing import Any, Dict, Optional

EARTH_RADIUS_KM = 6371.0

_GEOHASH_ALPHABET = "0123456789bcdefghjkmnpqrstuvwxyz"


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def to_float(value: Any) -> Optional[float]:
    """Coerce query-string style input to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def has_coordinates(lat: Any, lng: Any) -> bool:
    """True when both values are finite numbers."""
    return to_float(lat) is not None and to_float(lng) is not None


def in_range(lat: float, lng: float) -> bool:
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def encode_geohash(lat: float, lng: float, precision: int = 5) -> str:
    """Encode a point as a geohash string of `precision` characters.

    Used only as an approximate cache bucket key.
    """
    lat_lo, lat_hi = -90.0, 90.0
    lng_lo, lng_hi = -180.0, 180.0
    chars = []
    bits = 0
    bit_count = 0
    even = True
    while len(chars) < precision:
        if even:
            mid = (lng_lo + lng_hi) / 2
            if lng >= mid:
                bits = (bits << 1) | 1
                lng_lo = mid
            else:
                bits <<= 1
                lng_hi = mid
        else:
            mid = (lat_lo + lat_hi) / 2
            if lat >= mid:
                bits = (bits << 1) | 1
                lat_lo = mid
            else:
                bits <<= 1
                lat_hi = mid
        even = not even
        bit_count += 1
        if bit_count == 5:
            chars.append(_GEOHASH_ALPHABET[bits])
            bits = 0
            bit_count = 0
    return "".join(chars)


def geo_point(lat: float, lng: float) -> Dict[str, Any]:
    """Return a GeoJSON Point for MongoDB."""
    return {"type": "Point", "coordinates": [lng, lat]}


def near_sphere(lat: float, lng: float, max_distance_km: float) -> Dict[str, Any]:
    """Build a `$nearSphere` query fragment bounded by `max_distance_km`."""
    return {
        "$nearSphere": {
            "$geometry": geo_point(lat, lng),
            "$maxDistance": max_distance_km * 1000,
        }
    }


def within_radius(lat: float, lng: float, radius_km: float) -> Dict[str, Any]:
    """Build a `$geoWithin` fragment; unlike `$nearSphere` it is valid in counts."""
    return {"$geoWithin": {"$centerSphere": [[lng, lat], radius_km / EARTH_RADIUS_KM]}}


def document_coordinates(doc: Dict[str, Any]) -> Optional[tuple[float, float]]:
    """Extract (lat, lng) from a document's `location`, if it carries both."""
    location = doc.get("location") or {}
    lat = to_float(location.get("lat"))
    lng = to_float(location.get("lng"))
    if lat is None or lng is None:
        return None
    return lat, lng
