"""
Human-readable phrasing for conflicts and optimization results.

The engine only emits structured facts. A narrative generator turns those
facts into text; the LLM-backed generator never sees anything but the facts.
"""

import json
import logging
from typing import Protocol

from tripwise.core.llm_provider import LLMProvider
from tripwise.core.schemas import Activity, Conflict, OptimizationResult
from tripwise.core.settings import Settings
from tripwise.core.travel_time_utils import format_minutes

logger = logging.getLogger(__name__)


class NarrativeGenerator(Protocol):
    def describe_conflict(self, conflict: Conflict, activities: dict[str, Activity]) -> str: ...

    def describe_optimization(self, result: OptimizationResult) -> list[str]: ...


def _label(activities: dict[str, Activity], activity_id: str) -> str:
    activity = activities.get(activity_id)
    if activity is None or not activity.title:
        return activity_id
    return activity.title


class TemplateNarrativeGenerator:
    """Deterministic phrasing, used offline and as the LLM fallback."""

    def describe_conflict(self, conflict: Conflict, activities: dict[str, Activity]) -> str:
        names = [_label(activities, aid) for aid in conflict.activity_ids]

        if conflict.type == "overlap":
            earlier = activities.get(conflict.activity_ids[0])
            when = f" to {format_minutes(earlier.end_minutes)}" if earlier else ""
            return (
                f"'{names[0]}' runs into '{names[1]}' by {conflict.shift_minutes} min. "
                f"Move '{names[1]}'{when}."
            )
        if conflict.type == "tight_connection":
            return (
                f"Only {conflict.gap_minutes} min between '{names[0]}' and '{names[1]}', "
                f"but the trip takes about {conflict.travel_minutes} min. "
                f"Start '{names[1]}' {conflict.shift_minutes} min later."
            )
        if conflict.type == "long_distance":
            return (
                f"Getting from '{names[0]}' to '{names[1]}' takes about "
                f"{conflict.travel_minutes} min. Consider a closer alternative or "
                f"swapping it with another day's activity."
            )
        return f"'{names[0]}' may not be open then: {conflict.reason}."

    def describe_optimization(self, result: OptimizationResult) -> list[str]:
        if result.travel_time_reduced_minutes <= 0 and result.conflicts_resolved == 0:
            return ["Your schedule is already efficient."]

        lines = [
            f"Saves {result.travel_time_reduced_minutes} min of travel "
            f"({result.efficiency_gain_percent:.0f}% less)."
        ]
        if result.conflicts_resolved:
            lines.append(f"Resolves {result.conflicts_resolved} scheduling conflicts.")
        lines.extend(i.description for i in result.improvements[:3])
        return lines


class LLMNarrativeGenerator:
    """Phrases structured facts with a language model, falling back to templates."""

    SYSTEM_PROMPT = (
        "You are a friendly travel assistant. You receive JSON facts about a "
        "traveler's schedule. Reply with one or two short sentences of advice. "
        "Do not invent facts that are not in the JSON."
    )

    def __init__(
        self,
        provider: LLMProvider,
        fallback: NarrativeGenerator | None = None,
        temperature: float = 0.3,
    ) -> None:
        self.provider = provider
        self.fallback = fallback or TemplateNarrativeGenerator()
        self.temperature = temperature

    def describe_conflict(self, conflict: Conflict, activities: dict[str, Activity]) -> str:
        facts = {
            "conflict": conflict.model_dump(mode="json", exclude={"suggested_fix"}),
            "activities": [
                activities[aid].model_dump(
                    mode="json", include={"title", "category", "start_time", "end_time"}
                )
                for aid in conflict.activity_ids
                if aid in activities
            ],
        }
        text = self._ask(facts)
        return text or self.fallback.describe_conflict(conflict, activities)

    def describe_optimization(self, result: OptimizationResult) -> list[str]:
        facts = result.model_dump(mode="json", exclude={"reordered_activities"})
        text = self._ask(facts)
        if not text:
            return self.fallback.describe_optimization(result)
        return [line.strip() for line in text.splitlines() if line.strip()]

    def _ask(self, facts: dict) -> str:
        messages = [
            {"role": "system", "content": self.SYSTEM_PROMPT},
            {"role": "user", "content": json.dumps(facts)},
        ]
        try:
            return self.provider.chat(messages, temperature=self.temperature).strip()
        except Exception as e:
            logger.warning(f"Narrative generation failed, using template text: {e}")
            return ""


def annotate_conflicts(
    conflicts: list[Conflict], activities: list[Activity], narrator: NarrativeGenerator
) -> list[Conflict]:
    """Return copies of the conflicts with suggested_fix filled in."""
    by_id = {a.id: a for a in activities}
    return [
        c.model_copy(update={"suggested_fix": narrator.describe_conflict(c, by_id)})
        for c in conflicts
    ]


def build_narrator(settings: Settings) -> NarrativeGenerator:
    if settings.use_llm_narrative:
        return LLMNarrativeGenerator(LLMProvider(settings.aisuite_model))
    return TemplateNarrativeGenerator()
