import pytest

from tripwise.core.opening_hours_utils import DayHours, is_venue_open_during, parse_opening_hours
from tripwise.core.travel_time_utils import (
    default_duration_for_category,
    estimate_travel_time,
    format_minutes,
    minutes_to_time,
    parse_time_to_minutes,
)


@pytest.mark.parametrize(
    "text,minutes",
    [
        ("09:00", 540),
        ("9:05", 545),
        ("23:59", 1439),
        ("12:00 AM", 0),
        ("12:30 PM", 750),
        ("7:15 pm", 1155),
        ("10:00:00", 600),
    ],
)
def test_parse_time_to_minutes(text, minutes):
    assert parse_time_to_minutes(text) == minutes


@pytest.mark.parametrize("text", ["25:00", "13:00 PM", "noon", "9"])
def test_parse_time_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_time_to_minutes(text)


def test_format_minutes():
    assert format_minutes(0) == "12:00 AM"
    assert format_minutes(625) == "10:25 AM"
    assert format_minutes(750) == "12:30 PM"
    assert format_minutes(1155) == "7:15 PM"


def test_minutes_to_time_rejects_next_day():
    with pytest.raises(ValueError):
        minutes_to_time(24 * 60)


def test_category_defaults():
    assert default_duration_for_category("Food") == 90
    assert default_duration_for_category(" museum ") == 150
    assert default_duration_for_category("Karaoke") == 60
    assert default_duration_for_category(None) == 60


def test_travel_time_modes():
    assert estimate_travel_time(1.0, "auto") == 17
    assert estimate_travel_time(5.0, "auto") == 22
    assert estimate_travel_time(20.0, "auto") == 35
    assert estimate_travel_time(5.0, "cycling") == 23


def test_parse_opening_hours():
    hours = parse_opening_hours(
        [
            "Monday: 9:00 AM – 5:00 PM",
            "Tuesday: Closed",
            "Wednesday: Open 24 hours",
            "Friday: 8:00 PM – 2:00 AM",
        ]
    )

    assert hours["Monday"] == DayHours(540, 1020)
    assert hours["Tuesday"].closed
    assert hours["Wednesday"].always_open
    assert hours["Friday"] == DayHours(1200, 120)
    assert hours["Friday"].wraps_midnight
    assert hours["Monday"].describe() == "9:00 AM - 5:00 PM"


def test_venue_open_checks():
    hours = parse_opening_hours(["Monday: 9:00 AM – 5:00 PM", "Tuesday: Closed", "Friday: 8:00 PM – 2:00 AM"])

    assert is_venue_open_during(hours, "Monday", 600, 660)[0] is True
    assert is_venue_open_during(hours, "Monday", 960, 1080)[0] is False
    assert is_venue_open_during(hours, "Tuesday", 600, 660)[:2] == (False, True)
    assert is_venue_open_during(hours, "Friday", 1260, 1320)[0] is True
    assert is_venue_open_during(hours, "Sunday", 600, 660)[0] is True
