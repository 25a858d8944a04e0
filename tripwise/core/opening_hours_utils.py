"""
Venue opening hours, parsed from Google Places style weekday_text.

Each weekday maps to a DayHours window in minutes since midnight, so the
conflict detector can compare it directly with activity start and end times.
"""

import re
from typing import NamedTuple

from tripwise.core.travel_time_utils import MINUTES_PER_DAY, format_minutes, parse_time_to_minutes

# "9:00 AM", "12:30 pm"; separators between the two times vary (–, -, to)
_CLOCK_PATTERN = re.compile(r"\d{1,2}:\d{2}\s*(?:AM|PM)", re.IGNORECASE)


class DayHours(NamedTuple):
    opens: int | None
    closes: int | None

    @property
    def closed(self) -> bool:
        return self.opens is None or self.closes is None

    @property
    def always_open(self) -> bool:
        return self.opens == 0 and self.closes == MINUTES_PER_DAY

    @property
    def wraps_midnight(self) -> bool:
        return not self.closed and self.closes < self.opens

    def describe(self) -> str:
        if self.closed:
            return "closed"
        if self.always_open:
            return "open 24 hours"
        return f"{format_minutes(self.opens)} - {format_minutes(self.closes)}"


CLOSED = DayHours(None, None)
ALWAYS_OPEN = DayHours(0, MINUTES_PER_DAY)


def parse_opening_hours(weekday_text: list[str]) -> dict[str, DayHours]:
    """
    Parse weekday_text lines into a weekday -> DayHours map.

    "Monday: 9:00 AM – 5:00 PM" becomes DayHours(540, 1020). "Closed" days map
    to CLOSED and "Open 24 hours" (or anything unparseable) to ALWAYS_OPEN.
    Lines without a "Day:" prefix are ignored.
    """
    hours: dict[str, DayHours] = {}

    for line in weekday_text:
        day, sep, text = line.partition(":")
        if not sep:
            continue
        day = day.strip()
        lowered = text.lower()

        if "closed" in lowered:
            hours[day] = CLOSED
            continue
        if "24 hours" in lowered:
            hours[day] = ALWAYS_OPEN
            continue

        clocks = _CLOCK_PATTERN.findall(text)
        if len(clocks) < 2:
            hours[day] = ALWAYS_OPEN
            continue

        try:
            hours[day] = DayHours(parse_time_to_minutes(clocks[0]), parse_time_to_minutes(clocks[-1]))
        except ValueError:
            hours[day] = ALWAYS_OPEN

    return hours


def is_venue_open_during(
    opening_hours: dict[str, DayHours], day_name: str, start_minutes: int, end_minutes: int
) -> tuple[bool, bool, str]:
    """
    Check whether a venue is open for the whole of an activity.

    Returns (is_open, closed_all_day, reason). A weekday missing from the map
    counts as open since there is nothing to check against.
    """
    window = opening_hours.get(day_name)
    if window is None:
        return True, False, "No opening hours data available"

    if window.closed:
        return False, True, f"Venue is closed on {day_name}"
    if window.always_open:
        return True, False, "Open 24 hours"

    if window.wraps_midnight:
        # e.g. 8:00 PM - 2:00 AM: open in the evening part or the early morning part
        inside = start_minutes >= window.opens or end_minutes <= window.closes
    else:
        inside = window.opens <= start_minutes and end_minutes <= window.closes

    if inside:
        return True, False, f"Open {window.describe()}"
    return False, False, f"Outside opening hours ({window.describe()}) on {day_name}"
