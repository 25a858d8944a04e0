"""
Geographic utilities for distance calculations between activity locations.
"""

import math

# Two locations closer than this are treated as the same venue
SAME_VENUE_KM = 0.05


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lng1: Coordinates of point 1
        lat2, lng2: Coordinates of point 2

    Returns:
        Distance in kilometers
    """
    R = 6371  # Earth's radius in kilometers

    # Convert to radians
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    # Haversine formula
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def is_same_venue(
    lat1: float | None, lng1: float | None, lat2: float | None, lng2: float | None
) -> bool:
    """True when both coordinates are resolved and practically identical."""
    if None in (lat1, lng1, lat2, lng2):
        return False
    return haversine_distance(lat1, lng1, lat2, lng2) <= SAME_VENUE_KM
