"""Distance and directions helpers for pickup notifications."""

import math

from src.core.config import constants
from src.domain.donation import Coordinates


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(destination.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(destination.longitude - origin.longitude)

    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    return 2 * constants.EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def directions_url(destination: Coordinates) -> str:
    """Google Maps directions deep link to a point."""
    return constants.MAPS_DIRECTIONS_URL.format(latitude=destination.latitude, longitude=destination.longitude)
