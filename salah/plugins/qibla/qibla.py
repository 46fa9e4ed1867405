"""
Qibla bearing and distance from an observer to the Kaaba on a spherical Earth.
"""
import logging
import math

logger = logging.getLogger(__name__)

KAABA_LATITUDE = 21.4225
KAABA_LONGITUDE = 39.8262
EARTH_RADIUS_KM = 6371.0


def _valid(latitude: float, longitude: float) -> bool:
    try:
        return math.isfinite(float(latitude)) and math.isfinite(float(longitude))
    except (TypeError, ValueError):
        return False


def get_qibla_direction(latitude: float, longitude: float) -> float:
    """Initial great-circle bearing to the Kaaba, degrees clockwise from true north.

    Always in [0, 360). Non-finite input and the Kaaba itself (no defined
    direction) both return 0.0.
    """
    if not _valid(latitude, longitude):
        logger.warning(f"Invalid coordinates for Qibla ({latitude}, {longitude}); returning 0")
        return 0.0

    lat1 = math.radians(float(latitude))
    lat2 = math.radians(KAABA_LATITUDE)
    delta_lon = math.radians(KAABA_LONGITUDE - float(longitude))

    y = math.sin(delta_lon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(delta_lon)
    if abs(x) < 1e-12 and abs(y) < 1e-12:
        return 0.0

    bearing = (math.degrees(math.atan2(y, x)) + 360) % 360
    # Tiny negative angles can round up to exactly 360.0
    return 0.0 if bearing >= 360 else bearing


def distance_to_kaaba_km(latitude: float, longitude: float) -> float:
    """Haversine distance to the Kaaba in kilometres; 0.0 for non-finite input."""
    if not _valid(latitude, longitude):
        return 0.0
    lat1 = math.radians(float(latitude))
    lat2 = math.radians(KAABA_LATITUDE)
    d_lat = lat2 - lat1
    d_lon = math.radians(KAABA_LONGITUDE - float(longitude))
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
