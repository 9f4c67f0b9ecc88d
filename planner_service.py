from __future__ import annotations
import datetime
import logging
import random
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from algorithms.mastery_model import MasteryModel
from algorithms.math_tools import MathTools
from algorithms.periodization import structural_minutes, workout_load
from algorithms.progressive_overload import ProgressiveOverload
from catalog import ExerciseCatalog
from gamification_service import GamificationService
from goals import (
    build_goal_weights,
    combined_exercise_bias,
    combined_rest_multiplier,
    dominant_goal,
    get_goal,
    migrate_legacy_goal,
)
from models import (
    CATEGORIES,
    Exercise,
    PrPlan,
    Profile,
    Rationale,
    Round,
    Session,
    SessionIntent,
    Workout,
    skill_tier,
)
from recommendation_service import RecommendationService
from settings_schema import EngineSettings, DEFAULT_SETTINGS
from stats_service import PersonalizationInsights, StatisticsService

logger = logging.getLogger(__name__)

KEYWORD_NUDGES: tuple[tuple[tuple[str, ...], dict[str, float]], ...] = (
    (("cardio", "engine"), {"cardio": 0.3}),
    (("mobility", "recovery"), {"mobility": 0.35, "plyometric": -0.2}),
    (("strength", "power"), {"compound": 0.3}),
    (("explosive", "speed"), {"plyometric": 0.25}),
)


class FrameworkPolicy(BaseModel):
    """Loop shape and duration rules of one framework."""

    model_config = ConfigDict(frozen=True)

    framework: str
    min_duration: int = Field(gt=0)
    max_duration: int = Field(gt=0)
    tier_durations: dict[str, tuple[int, int]] = Field(default_factory=dict)
    exercise_counts: dict[str, tuple[int, int]] = Field(default_factory=dict)
    circuit_rounds: dict[str, int] = Field(default_factory=dict)
    quantity_scale: float = 1.0
    allowed_categories: Optional[tuple[str, ...]] = None
    work_seconds: Optional[int] = None
    rest_seconds: Optional[int] = None
    sets: Optional[int] = None
    uses_goal_range: bool = False
    per_minute: bool = False

    @model_validator(mode="after")
    def _check_range(self) -> "FrameworkPolicy":
        if self.min_duration > self.max_duration:
            raise ValueError("min_duration must not exceed max_duration")
        return self

    def exercise_count(self, tier: str, energy: str, rng: random.Random) -> int:
        low, high = self.exercise_counts[tier]
        if self.framework == "Tabata" and energy == "low":
            return low
        return rng.randint(low, high)


TIERS = ("beginner", "intermediate", "advanced")

POLICIES: dict[str, FrameworkPolicy] = {
    "EMOM": FrameworkPolicy(
        framework="EMOM",
        min_duration=8,
        max_duration=30,
        tier_durations=dict(zip(TIERS, ((8, 12), (12, 20), (20, 30)))),
        uses_goal_range=True,
        per_minute=True,
    ),
    "Tabata": FrameworkPolicy(
        framework="Tabata",
        min_duration=8,
        max_duration=12,
        exercise_counts=dict(zip(TIERS, ((2, 2), (2, 3), (3, 3)))),
        quantity_scale=0.5,
        allowed_categories=("compound", "cardio", "plyometric"),
        work_seconds=20,
        rest_seconds=10,
        sets=8,
    ),
    "AMRAP": FrameworkPolicy(
        framework="AMRAP",
        min_duration=8,
        max_duration=20,
        tier_durations=dict(zip(TIERS, ((8, 12), (12, 16), (16, 20)))),
        exercise_counts=dict(zip(TIERS, ((3, 4), (4, 5), (5, 6)))),
    ),
    "Circuit": FrameworkPolicy(
        framework="Circuit",
        min_duration=10,
        max_duration=40,
        exercise_counts=dict(zip(TIERS, ((4, 5), (5, 6), (6, 8)))),
        circuit_rounds=dict(zip(TIERS, (3, 4, 5))),
    ),
}


class PlannerService:
    """Turn a profile and its history into the next interval workout."""

    BASE_CIRCUIT_REST = 60

    def __init__(
        self,
        catalog: ExerciseCatalog | None = None,
        settings: EngineSettings | None = None,
        stats: StatisticsService | None = None,
        selector: RecommendationService | None = None,
        gamification: GamificationService | None = None,
        overload: ProgressiveOverload | None = None,
    ) -> None:
        self.settings = settings or DEFAULT_SETTINGS
        self.catalog = catalog or ExerciseCatalog(settings=self.settings)
        self.stats = stats or StatisticsService(self.settings)
        self.selector = selector or RecommendationService(self.settings)
        self.gamification = gamification or GamificationService(self.settings)
        self.overload = overload or ProgressiveOverload(self.settings)

    # resolution steps

    def difficulty_for(self, skill_score: float) -> str:
        return skill_tier(skill_score, self.settings)

    @staticmethod
    def goal_weights(profile: Profile) -> dict[str, float]:
        """Normalized goal weights; stored weights win over derived ones."""
        if profile.goal_weights:
            known = {g: w for g, w in profile.goal_weights.items() if get_goal(g) and w > 0}
            total = sum(known.values())
            if total > 0:
                return {g: w / total for g, w in known.items()}
        primary = profile.primary_goal if get_goal(profile.primary_goal) else None
        primary = primary or migrate_legacy_goal(profile.goal_focus)
        return build_goal_weights(primary, profile.secondary_goals)

    @staticmethod
    def exercise_bias(
        goal_weights: dict[str, float], intent: SessionIntent | None = None
    ) -> dict[str, float]:
        bias = combined_exercise_bias(goal_weights)
        text = " ".join(
            part for part in ((intent.focus_today, intent.intent_note) if intent else ()) if part
        ).lower()
        for keywords, nudges in KEYWORD_NUDGES:
            if any(k in text for k in keywords):
                for category, delta in nudges.items():
                    bias[category] += delta
        return {c: MathTools.clamp(bias[c], 0.0, 1.0) for c in CATEGORIES}

    @staticmethod
    def focus_label(profile: Profile, intent: SessionIntent | None = None) -> str:
        if intent and intent.focus_today:
            return intent.focus_today
        goal = get_goal(profile.primary_goal) or get_goal(migrate_legacy_goal(profile.goal_focus))
        if goal:
            return goal.label
        return profile.goal_focus or "General Fitness"

    def duration_tuning(self, insights: PersonalizationInsights) -> float:
        raw = 1 + (insights.average_hit_rate - 1) * 0.3 - insights.skip_rate * 0.25
        return MathTools.clamp(raw, self.settings.duration_tuning_min, self.settings.duration_tuning_max)

    def equipment_bonus(self, equipment: Iterable[str] | None) -> int:
        count = len(ExerciseCatalog.migrate_equipment(equipment))
        bonus = 0
        for threshold, minutes in sorted(self.settings.equipment_bonus_steps.items()):
            if count >= threshold:
                bonus = minutes
        return bonus

    def energy_multiplier(self, intent: SessionIntent | None) -> float:
        energy = intent.energy_level if intent and intent.energy_level else "moderate"
        return self.settings.energy_multipliers.get(energy, 1.0)

    def resolve_duration(
        self,
        policy: FrameworkPolicy,
        tier: str,
        goal_id: Optional[str],
        equipment: Iterable[str] | None,
        insights: PersonalizationInsights,
        intent: SessionIntent | None,
        rng: random.Random,
        max_duration: int | None = None,
    ) -> int:
        """Duration in minutes for frameworks whose length is not structural."""
        goal = get_goal(goal_id)
        if policy.uses_goal_range and goal is not None:
            low, high = goal.preferred_durations
            base = rng.randint(low, high) + self.settings.difficulty_duration_nudge.get(tier, 0)
        else:
            low, high = policy.tier_durations[tier]
            base = rng.randint(low, high)
        base += self.equipment_bonus(equipment)
        duration = round(base * self.duration_tuning(insights) * self.energy_multiplier(intent))
        duration = int(MathTools.clamp(duration, policy.min_duration, policy.max_duration))
        if max_duration is not None:
            duration = max(policy.min_duration, min(duration, max_duration))
        return duration

    def quantity(
        self,
        exercise: Exercise,
        tier: str,
        insights: PersonalizationInsights,
        intent: SessionIntent | None,
        policy: FrameworkPolicy,
        mastery_score: Optional[float] = None,
    ) -> int:
        """Target reps or seconds for one interval, at least 1."""
        personal = 1 + (insights.average_hit_rate - 1) * 0.5 - insights.skip_rate * 0.3
        if mastery_score is not None:
            personal *= MasteryModel.difficulty_adjustment(mastery_score)
        multiplier = MathTools.clamp(
            personal,
            self.settings.quantity_multiplier_min,
            self.settings.quantity_multiplier_max,
        )
        base = exercise.targets.for_tier(tier)
        value = max(1, round(base * multiplier * self.energy_multiplier(intent) * policy.quantity_scale))
        if exercise.is_hold and policy.work_seconds:
            value = min(value, policy.work_seconds)
        return value

    @staticmethod
    def cap_holds(rounds: list[Round], policy: FrameworkPolicy) -> list[Round]:
        """Keep hold targets inside the work interval of work/rest frameworks."""
        if not policy.work_seconds:
            return rounds
        return [
            r.model_copy(update={"target": policy.work_seconds})
            if r.is_hold and r.target > policy.work_seconds
            else r
            for r in rounds
        ]

    def circuit_rest(self, goal_weights: dict[str, float], insights: PersonalizationInsights) -> int:
        rest = self.BASE_CIRCUIT_REST * combined_rest_multiplier(goal_weights)
        rest *= 1 + 0.5 * insights.fatigue_trend
        return int(round(MathTools.clamp(rest, 30, 120)))

    # selection

    def eligible_exercises(
        self, tier: str, equipment: Iterable[str] | None, policy: FrameworkPolicy, rng: random.Random
    ) -> list[Exercise]:
        eligible = self.catalog.eligible(tier, equipment, rng)
        if not eligible:
            logger.debug("no eligible exercises for %s, using the whole catalog", tier)
            eligible = list(self.catalog.exercises)
        if policy.allowed_categories:
            allowed = ExerciseCatalog.matching_categories(eligible, policy.allowed_categories)
            if allowed:
                eligible = allowed
        return eligible

    def build_rounds(
        self,
        count: int,
        eligible: list[Exercise],
        tier: str,
        bias: dict[str, float],
        policy: FrameworkPolicy,
        insights: PersonalizationInsights,
        intent: SessionIntent | None,
        rng: random.Random,
        recovery: dict[str, float] | None = None,
        mastery_scores: dict[str, float] | None = None,
    ) -> list[Round]:
        chosen: list[str] = []
        rounds: list[Round] = []
        mastery_scores = mastery_scores or {}
        for index in range(1, count + 1):
            ex = self.selector.pick(
                eligible, chosen, bias, policy.framework, rng, insights=insights, recovery=recovery
            )
            chosen.append(ex.name)
            rounds.append(
                Round(
                    index=index,
                    exercise_name=ex.name,
                    muscle_group=ex.muscle_group,
                    difficulty=ex.difficulty,
                    target=self.quantity(ex, tier, insights, intent, policy, mastery_scores.get(ex.name)),
                    is_hold=ex.is_hold,
                    alternates_sides=ex.alternates_sides,
                )
            )
        return rounds

    # pipeline

    def generate(
        self,
        profile: Profile,
        history: Iterable[Session] = (),
        framework: str = "EMOM",
        intent: SessionIntent | None = None,
        rng: random.Random | None = None,
        insights: PersonalizationInsights | None = None,
        recovery: dict[str, float] | None = None,
        mastery_scores: dict[str, float] | None = None,
        framework_reason: str | None = None,
        max_duration: int | None = None,
        now: datetime.datetime | None = None,
    ) -> Workout:
        """Generate one workout for ``framework``.

        ``history`` may be in any order. ``max_duration`` caps the length of
        frameworks whose duration is not fixed by their structure and must be
        positive when given.
        """
        if framework not in POLICIES:
            raise ValueError(f"unknown framework: {framework}")
        if max_duration is not None and max_duration <= 0:
            raise ValueError("max_duration must be positive")
        rng = rng or random.Random()
        history = list(history)
        policy = POLICIES[framework]
        insights = insights or self.stats.build_insights(history)
        tier = self.difficulty_for(profile.skill_score)
        weights = self.goal_weights(profile)
        goal_id = dominant_goal(profile.primary_goal, weights)
        bias = self.exercise_bias(weights, intent)
        energy = intent.energy_level if intent and intent.energy_level else "moderate"
        eligible = self.eligible_exercises(tier, profile.equipment, policy, rng)

        passes = 1
        rest_seconds = policy.rest_seconds
        if policy.per_minute:
            duration = self.resolve_duration(
                policy, tier, goal_id, profile.equipment, insights, intent, rng, max_duration
            )
            count = duration
        elif policy.tier_durations:
            duration = self.resolve_duration(
                policy, tier, goal_id, profile.equipment, insights, intent, rng, max_duration
            )
            count = policy.exercise_count(tier, energy, rng)
        else:
            count = policy.exercise_count(tier, energy, rng)
            duration = policy.min_duration

        rounds = self.build_rounds(
            count, eligible, tier, bias, policy, insights, intent, rng, recovery, mastery_scores
        )
        rounds, adjustments = self.overload.apply(rounds, history, mastery_scores)
        if adjustments:
            logger.debug("progressive overload for %s", [a.exercise_name for a in adjustments])
            rounds = self.cap_holds(rounds, policy)

        if policy.framework == "Circuit":
            passes = policy.circuit_rounds[tier]
            rest_seconds = self.circuit_rest(weights, insights)
        structural = structural_minutes(
            policy.framework, rounds, passes, rest_seconds or 0, policy.min_duration
        )
        if structural is not None:
            duration = structural

        readiness = self.gamification.pr_readiness(history, insights, now)
        rounds, attempts = self.gamification.schedule_pr_attempts(rounds, readiness)

        load, volume = workout_load(rounds, passes)

        tuning = self.duration_tuning(insights)
        rationale = Rationale(
            framework=framework_reason or f"{framework} selected.",
            intensity=(
                f"{profile.fitness_level(self.settings)} tier from skill score {profile.skill_score:.0f}; "
                f"{duration} min with personal tuning x{tuning:.2f} and {energy} energy."
            ),
            exercise_selection=self.selector.describe(bias),
        )
        logger.debug("generated %s %s workout, %d min, %d rounds", tier, framework, duration, len(rounds))
        return Workout(
            framework=framework,
            duration_minutes=duration,
            difficulty_tag=tier,
            focus_label=self.focus_label(profile, intent),
            rounds=rounds,
            muscle_load=load,
            volume_breakdown=volume,
            work_seconds=policy.work_seconds,
            rest_seconds=rest_seconds,
            sets=policy.sets,
            total_rounds=passes if policy.framework == "Circuit" else None,
            pr_plan=PrPlan(ready=readiness.ready, reason=readiness.reason, attempts=attempts),
            intent=intent,
            rationale=rationale,
        )
