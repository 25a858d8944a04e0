"""
Utilities for travel-time estimation and wall-clock arithmetic between activities.
"""

import re
from datetime import time
from typing import Literal

TravelMode = Literal["auto", "walking", "transit", "driving", "cycling"]

MINUTES_PER_DAY = 24 * 60
DEFAULT_ACTIVITY_MINUTES = 60


def estimate_travel_time(distance_km: float, mode: str = "auto") -> int:
    """
    Estimate travel time in minutes based on distance.

    Args:
        distance_km: Distance in kilometers
        mode: Transportation mode
            - "auto": automatically choose based on distance
            - "walking": ~5 km/h
            - "cycling": ~15 km/h + 3 min to park the bike
            - "transit": ~25 km/h + 10 min wait/buffer
            - "driving": ~40 km/h + 5 min parking/buffer

    Returns:
        Travel time in minutes
    """
    mode = resolve_mode(distance_km, mode)

    if mode == "walking":
        # Walking: ~5 km/h = ~12 min/km
        return int(distance_km * 12) + 5  # +5 min buffer
    elif mode == "cycling":
        return int(distance_km * 4) + 3
    elif mode == "transit":
        # Public transit: ~25 km/h = ~2.4 min/km + 10 min wait
        return int(distance_km * 2.4) + 10
    elif mode == "driving":
        # Driving: ~40 km/h = ~1.5 min/km + 5 min parking
        return int(distance_km * 1.5) + 5
    else:
        # Fallback
        return int(distance_km * 5) + 10


def resolve_mode(distance_km: float, mode: str) -> str:
    """Pick a concrete transport mode when the caller asked for "auto"."""
    if mode != "auto":
        return mode
    if distance_km < 2.0:
        return "walking"
    elif distance_km < 10.0:
        return "transit"
    return "driving"


# Typical time spent per activity category (in minutes)
CATEGORY_DURATIONS = {
    "food": 90,
    "dining": 90,
    "restaurant": 90,
    "cafe": 45,
    "culture": 120,
    "museum": 150,
    "art": 120,
    "sightseeing": 90,
    "tour": 120,
    "nature": 120,
    "park": 90,
    "shopping": 90,
    "nightlife": 120,
    "entertainment": 150,
    "wellness": 120,
    "flight": 180,
    "hotel": 30,
    "accommodation": 30,
    "check-in": 30,
    "transport": 45,
    "meeting": 60,
}


def default_duration_for_category(category: str | None) -> int:
    """
    Default duration for an activity with no end time.

    Args:
        category: Free-form category tag (e.g. "Food", "Culture")

    Returns:
        Duration in minutes, 60 when the category is unknown
    """
    if not category:
        return DEFAULT_ACTIVITY_MINUTES
    return CATEGORY_DURATIONS.get(category.strip().lower(), DEFAULT_ACTIVITY_MINUTES)


def parse_time_to_minutes(time_str: str) -> int:
    """
    Convert time string to minutes since midnight.

    Args:
        time_str: Time in "H:MM AM/PM" or "HH:MM" format

    Returns:
        Minutes since midnight (0-1439)

    Raises:
        ValueError: if the string is not a valid time of day
    """
    time_str = time_str.strip()

    # Handle 12-hour format with AM/PM
    match = re.fullmatch(r"(\d{1,2}):(\d{2})\s*(AM|PM|am|pm)", time_str)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2))
        meridiem = match.group(3).upper()

        if hour < 1 or hour > 12 or minute > 59:
            raise ValueError(f"Invalid 12-hour time '{time_str}'")

        if meridiem == "AM":
            if hour == 12:
                hour = 0
        else:  # PM
            if hour != 12:
                hour += 12

        return hour * 60 + minute

    # Handle 24-hour format (HH:MM or HH:MM:SS)
    match = re.fullmatch(r"(\d{1,2}):(\d{2})(?::(\d{2}))?", time_str)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2))

        if hour > 23 or minute > 59:
            raise ValueError(f"Invalid 24-hour time '{time_str}'")

        return hour * 60 + minute

    raise ValueError(f"Could not parse time string '{time_str}'")


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def minutes_to_time(minutes: int) -> time:
    """Convert minutes since midnight to a time; values past midnight are rejected."""
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(hour=minutes // 60, minute=minutes % 60)


def format_minutes(minutes: int) -> str:
    """Convert minutes since midnight to 12-hour format, e.g. "2:30 PM"."""
    minutes = minutes % MINUTES_PER_DAY
    hours = minutes // 60
    mins = minutes % 60

    if hours == 0:
        return f"12:{mins:02d} AM"
    elif hours < 12:
        return f"{hours}:{mins:02d} AM"
    elif hours == 12:
        return f"12:{mins:02d} PM"
    else:
        return f"{hours - 12}:{mins:02d} PM"
