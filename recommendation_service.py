from __future__ import annotations
import logging
import random
from typing import Sequence

from algorithms.math_tools import MathTools
from catalog import ExerciseCatalog
from models import CATEGORIES, Exercise
from settings_schema import EngineSettings, DEFAULT_SETTINGS
from stats_service import PersonalizationInsights

logger = logging.getLogger(__name__)


class RecommendationService:
    """Pick the exercise for each interval with an epsilon-greedy weighted draw.

    ``chosen`` is the list of exercise names already placed in the workout, in
    interval order. It is the only state the selection depends on besides the
    signals passed in, so one service instance can serve many generations.
    """

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS

    def recovery_adjustment(self, exercise: Exercise, recovery: float) -> float:
        """1.0 once recovered, sliding down to a floor for under-recovered muscles."""
        s = self.settings
        if recovery >= s.full_recovery_threshold:
            return 1.0
        floor = (
            s.high_intensity_recovery_floor
            if ExerciseCatalog.is_high_intensity(exercise)
            else s.recovery_floor
        )
        if recovery < s.severe_recovery_threshold:
            return floor
        span = s.full_recovery_threshold - s.severe_recovery_threshold
        return floor + (1.0 - floor) * (recovery - s.severe_recovery_threshold) / span

    def candidates(
        self,
        eligible: Sequence[Exercise],
        chosen: Sequence[str],
        recovery: dict[str, float] | None = None,
    ) -> list[Exercise]:
        recovery = recovery or {}
        previous = chosen[-1] if chosen else None
        window = self.settings.recency_window
        recent = set(chosen[-window:]) if window else set()
        fresh = [e for e in eligible if e.name != previous and e.name not in recent]

        rested = [
            e
            for e in fresh
            if not (
                recovery.get(e.muscle_group, 1.0) < self.settings.severe_recovery_threshold
                and ExerciseCatalog.is_high_intensity(e)
            )
        ]
        if not rested:
            rested = fresh

        used = set(chosen)
        never_used = [e for e in rested if e.name not in used]
        if never_used:
            return never_used
        if rested:
            return rested
        logger.debug("recency window exhausted, falling back to all but the previous exercise")
        return [e for e in eligible if e.name != previous]

    def weight(
        self,
        exercise: Exercise,
        chosen: Sequence[str],
        bias: dict[str, float],
        insights: PersonalizationInsights | None = None,
        recovery: dict[str, float] | None = None,
    ) -> float:
        s = self.settings
        matched = sum(bias.get(c, 0.0) for c in CATEGORIES if getattr(exercise.categories, c))
        value = 1 + s.category_weight * matched
        if insights is not None:
            value *= insights.muscle_preference(exercise.muscle_group)
            value *= insights.exercise_utility(exercise.name)
        value *= self.recovery_adjustment(exercise, (recovery or {}).get(exercise.muscle_group, 1.0))
        count = chosen.count(exercise.name)
        if not count:
            return value * s.novelty_multiplier
        last = len(chosen) - 1 - list(reversed(chosen)).index(exercise.name)
        since = len(chosen) - last
        value /= 1 + s.usage_penalty * count
        value /= 1 + 1 / since
        return value

    def pick(
        self,
        eligible: Sequence[Exercise],
        chosen: Sequence[str],
        bias: dict[str, float],
        framework: str,
        rng: random.Random,
        insights: PersonalizationInsights | None = None,
        recovery: dict[str, float] | None = None,
    ) -> Exercise:
        """Choose the exercise for the next interval."""
        if not eligible:
            raise ValueError("eligible exercise list must not be empty")
        pool = self.candidates(eligible, chosen, recovery)
        if not pool:
            return eligible[-1]
        epsilon = self.settings.epsilon.get(framework, 0.15)
        if rng.random() < epsilon:
            return pool[rng.randrange(len(pool))]
        weights = [self.weight(e, chosen, bias, insights, recovery) for e in pool]
        return MathTools.weighted_choice(pool, weights, rng)

    @staticmethod
    def describe(bias: dict[str, float]) -> str:
        ranked = sorted(CATEGORIES, key=lambda c: bias.get(c, 0.0), reverse=True)
        top = [c for c in ranked if bias.get(c, 0.0) > 0][:2]
        if not top:
            return "Balanced exercise mix with recency and recovery checks."
        return (
            f"Weighted toward {' and '.join(top)} work, avoiding repeats "
            "and under-recovered muscles."
        )
