"""
Travel-time estimators consulted by the conflict detector and schedule optimizer.

Estimators are injected so tests can substitute fixed distances. Every
detection or optimization pass wraps its estimator in a MemoizedEstimator so
each (origin, destination, mode) leg is requested at most once per pass.
"""

import logging
import threading
from typing import Protocol

import requests
from pydantic import BaseModel

from tripwise.core.errors import EstimationUnavailable
from tripwise.core.geo_utils import haversine_distance
from tripwise.core.schemas import Location
from tripwise.core.settings import Settings
from tripwise.core.travel_time_utils import estimate_travel_time, resolve_mode

logger = logging.getLogger(__name__)

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

# Google Distance Matrix travel modes
GOOGLE_MODES = {
    "auto": "driving",
    "driving": "driving",
    "walking": "walking",
    "transit": "transit",
    "cycling": "bicycling",
}


class TravelEstimate(BaseModel):
    minutes: int
    distance_km: float
    mode: str


class GeoDistanceEstimator(Protocol):
    def travel_time(
        self, origin: Location, destination: Location, mode: str
    ) -> TravelEstimate:
        """Estimate a single leg; raise EstimationUnavailable when it cannot."""
        ...


class HaversineEstimator:
    """Offline estimator: great-circle distance with per-mode average speeds."""

    def travel_time(
        self, origin: Location, destination: Location, mode: str = "auto"
    ) -> TravelEstimate:
        if not (origin.resolved and destination.resolved):
            raise EstimationUnavailable("Both locations need coordinates")

        distance_km = haversine_distance(
            origin.latitude, origin.longitude, destination.latitude, destination.longitude
        )
        concrete_mode = resolve_mode(distance_km, mode)
        return TravelEstimate(
            minutes=estimate_travel_time(distance_km, concrete_mode),
            distance_km=round(distance_km, 3),
            mode=concrete_mode,
        )


class GoogleDistanceMatrixEstimator:
    """Service for estimating travel legs with the Google Distance Matrix API."""

    def __init__(self, api_key: str, timeout: float = 10) -> None:
        if not api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY not found in environment variables")
        self.api_key = api_key
        self.timeout = timeout

    def travel_time(
        self, origin: Location, destination: Location, mode: str = "auto"
    ) -> TravelEstimate:
        if not (origin.resolved and destination.resolved):
            raise EstimationUnavailable("Both locations need coordinates")

        params = {
            "origins": f"{origin.latitude},{origin.longitude}",
            "destinations": f"{destination.latitude},{destination.longitude}",
            "mode": GOOGLE_MODES.get(mode, "driving"),
            "key": self.api_key,
        }

        try:
            response = requests.get(DISTANCE_MATRIX_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise EstimationUnavailable(f"Distance Matrix request failed: {e}") from e

        if data.get("status") != "OK":
            raise EstimationUnavailable(f"Distance Matrix status {data.get('status')}")

        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError) as e:
            raise EstimationUnavailable("Distance Matrix returned no elements") from e

        if element.get("status") != "OK":
            raise EstimationUnavailable(f"No route found ({element.get('status')})")

        return TravelEstimate(
            minutes=round(element["duration"]["value"] / 60),
            distance_km=round(element["distance"]["value"] / 1000, 3),
            mode=params["mode"],
        )


LegKey = tuple[float, float, float, float, str]


class MemoizedEstimator:
    """
    Per-pass cache in front of an estimator.

    Failed legs are cached as missing data so an unreachable provider is asked
    once per pass. Concurrent callers may both miss on the same key; the
    second fill simply overwrites the first with an equal value.
    """

    def __init__(self, estimator: GeoDistanceEstimator, modes: list[str] | None = None) -> None:
        self.estimator = estimator
        self.modes = modes or ["auto"]
        self._cache: dict[LegKey, TravelEstimate | None] = {}
        self._lock = threading.Lock()
        self.calls = 0

    def leg(self, origin: Location, destination: Location) -> TravelEstimate | None:
        """Estimate a leg using the first preferred mode that succeeds, else None."""
        if not (origin.resolved and destination.resolved):
            return None

        for mode in self.modes:
            estimate = self._lookup(origin, destination, mode)
            if estimate is not None:
                return estimate
        return None

    def minutes(self, origin: Location, destination: Location) -> int | None:
        estimate = self.leg(origin, destination)
        return estimate.minutes if estimate is not None else None

    def _lookup(self, origin: Location, destination: Location, mode: str) -> TravelEstimate | None:
        key = (origin.latitude, origin.longitude, destination.latitude, destination.longitude, mode)

        with self._lock:
            if key in self._cache:
                return self._cache[key]
            self.calls += 1

        try:
            estimate: TravelEstimate | None = self.estimator.travel_time(origin, destination, mode)
        except EstimationUnavailable as e:
            logger.warning(
                f"Travel estimate unavailable for {origin.name or key[:2]} -> "
                f"{destination.name or key[2:4]} ({mode}): {e}"
            )
            estimate = None

        with self._lock:
            self._cache[key] = estimate
        return estimate


def build_estimator(settings: Settings) -> GeoDistanceEstimator:
    """Use Google Distance Matrix when an API key is configured, else haversine."""
    if settings.google_maps_api_key:
        return GoogleDistanceMatrixEstimator(
            settings.google_maps_api_key, timeout=settings.distance_matrix_timeout
        )
    return HaversineEstimator()
