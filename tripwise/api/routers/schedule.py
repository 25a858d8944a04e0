import logging

from fastapi import APIRouter, Depends, HTTPException

from tripwise.core.auto_fix import AutoFixApplier
from tripwise.core.conflict_detector import ConflictDetector
from tripwise.core.distance_estimator import (
    GeoDistanceEstimator,
    MemoizedEstimator,
    build_estimator,
)
from tripwise.core.errors import InvalidFixError, MalformedActivity
from tripwise.core.narrative import NarrativeGenerator, annotate_conflicts, build_narrator
from tripwise.core.pipeline import analyze_itinerary
from tripwise.core.reminder_scheduler import ReminderScheduler
from tripwise.core.schedule_optimizer import ScheduleOptimizer
from tripwise.core.schemas import (
    ActivityBatchRequest,
    AnalyzeRequest,
    AutoFixRequest,
    AutoFixResponse,
    Conflict,
    ItineraryAnalysis,
    OptimizationResult,
    Reminder,
    ReminderRequest,
    coerce_activities,
)
from tripwise.core.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["schedule"])


def get_estimator() -> GeoDistanceEstimator:
    return build_estimator(get_settings())


def get_narrator() -> NarrativeGenerator:
    return build_narrator(get_settings())


def _rejected(error: MalformedActivity | InvalidFixError) -> HTTPException:
    logger.info(f"Rejected schedule request: {error}")
    return HTTPException(
        status_code=422, detail=f"{error}. Correct the request and try again."
    )


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/conflicts/detect", response_model=list[Conflict])
def detect_conflicts(
    payload: ActivityBatchRequest,
    estimator: GeoDistanceEstimator = Depends(get_estimator),
    narrator: NarrativeGenerator = Depends(get_narrator),
) -> list[Conflict]:
    """Detect overlaps, tight connections, long legs and closed venues."""
    try:
        activities = coerce_activities(payload.activities)
    except MalformedActivity as e:
        raise _rejected(e)

    conflicts = ConflictDetector(payload.settings).detect(activities, estimator)
    return annotate_conflicts(conflicts, activities, narrator)


@router.post("/conflicts/autofix", response_model=AutoFixResponse)
def autofix_conflicts(
    payload: AutoFixRequest,
    estimator: GeoDistanceEstimator = Depends(get_estimator),
    narrator: NarrativeGenerator = Depends(get_narrator),
) -> AutoFixResponse:
    """
    Apply the requested auto-fixes.

    Conflicts are re-detected before fixing so ids refer to the current
    schedule, and again afterwards so residual conflicts are reported.
    """
    detector = ConflictDetector(payload.settings)
    try:
        activities = coerce_activities(payload.activities)
        memo = MemoizedEstimator(estimator, list(payload.settings.preferred_transport_modes))
        conflicts = detector.detect(activities, memo)
        fixed = AutoFixApplier().apply_fixes(activities, conflicts, payload.conflict_ids)
    except (MalformedActivity, InvalidFixError) as e:
        raise _rejected(e)

    remaining = detector.detect(fixed, memo)
    return AutoFixResponse(
        fixed_activities=fixed,
        remaining_conflicts=annotate_conflicts(remaining, fixed, narrator),
    )


@router.post("/optimize/schedule", response_model=OptimizationResult)
def optimize_schedule(
    payload: ActivityBatchRequest,
    estimator: GeoDistanceEstimator = Depends(get_estimator),
) -> OptimizationResult:
    """Suggest a reordered schedule with less travel time."""
    try:
        activities = coerce_activities(payload.activities)
    except MalformedActivity as e:
        raise _rejected(e)

    memo = MemoizedEstimator(estimator, list(payload.settings.preferred_transport_modes))
    conflicts = ConflictDetector(payload.settings).detect(activities, memo)
    return ScheduleOptimizer(payload.settings).optimize(activities, conflicts, memo)


@router.post("/reminders/smart", response_model=list[Reminder])
def smart_reminders(
    payload: ReminderRequest,
    estimator: GeoDistanceEstimator = Depends(get_estimator),
) -> list[Reminder]:
    """Generate reminders, keeping the user's overrides on existing ones."""
    try:
        activities = coerce_activities(payload.activities)
    except MalformedActivity as e:
        raise _rejected(e)

    scheduler = ReminderScheduler(estimator, payload.settings)
    return scheduler.generate(activities, payload.existing_reminders)


@router.post("/itinerary/analyze", response_model=ItineraryAnalysis)
def analyze(
    payload: AnalyzeRequest,
    estimator: GeoDistanceEstimator = Depends(get_estimator),
    narrator: NarrativeGenerator = Depends(get_narrator),
) -> ItineraryAnalysis:
    """Conflicts, optimization and reminders for a whole trip in one call."""
    try:
        return analyze_itinerary(
            payload.activities,
            estimator,
            settings=payload.settings,
            existing_reminders=payload.existing_reminders,
            narrator=narrator,
        )
    except MalformedActivity as e:
        raise _rejected(e)
