from datetime import date

import pytest

from tripwise.core.distance_estimator import TravelEstimate
from tripwise.core.errors import EstimationUnavailable
from tripwise.core.schemas import Activity

# A Monday
DAY = date(2026, 10, 19)

PLACES = {
    "hotel": (48.8566, 2.3522),
    "louvre": (48.8606, 2.3376),
    "orsay": (48.8600, 2.3266),
    "eiffel": (48.8584, 2.2945),
    "versailles": (48.8049, 2.1204),
}


class FixedEstimator:
    """Travel times looked up by place name, in either direction."""

    def __init__(
        self,
        minutes: dict[tuple[str, str], int] | None = None,
        default: int = 10,
        failing: set[str] | None = None,
    ) -> None:
        self.minutes = minutes or {}
        self.default = default
        self.failing = failing or set()
        self.calls: list[tuple[str, str, str]] = []

    def travel_time(self, origin, destination, mode="auto") -> TravelEstimate:
        self.calls.append((origin.name, destination.name, mode))
        if origin.name in self.failing or destination.name in self.failing:
            raise EstimationUnavailable("provider unreachable")
        pair = (origin.name, destination.name)
        minutes = self.minutes.get(pair, self.minutes.get(pair[::-1], self.default))
        return TravelEstimate(minutes=minutes, distance_km=minutes / 3, mode=mode)


@pytest.fixture
def make_activity():
    def _make(
        activity_id: str,
        start: str,
        end: str | None = None,
        place: str | None = "hotel",
        day: date = DAY,
        **fields,
    ) -> Activity:
        location = {"name": place or ""}
        if place in PLACES:
            location["latitude"], location["longitude"] = PLACES[place]
        data = {
            "id": activity_id,
            "title": fields.pop("title", activity_id.upper()),
            "day": day,
            "start_time": start,
            "end_time": end,
            "location": location,
            **fields,
        }
        return Activity.model_validate(data)

    return _make


@pytest.fixture
def estimator():
    return FixedEstimator()


@pytest.fixture
def estimator_with():
    """Build a FixedEstimator with custom travel times."""
    return FixedEstimator
