from __future__ import annotations
import datetime
import logging
import random
from typing import Iterable

from algorithms import periodization
from algorithms.mastery_model import MasteryModel
from algorithms.recovery_model import RecoveryModel
from catalog import ExerciseCatalog
from feedback_service import FeedbackResult, FeedbackService
from framework_service import FrameworkService
from gamification_service import GamificationService
from goals import dominant_goal, microcycle_day, pick_framework_for_goal
from models import (
    ExerciseStat,
    FrameworkPreference,
    MasteryRecord,
    PersonalRecord,
    Profile,
    RecoveryRecord,
    Session,
    SessionIntent,
    Workout,
)
from planner_service import PlannerService
from settings_schema import EngineSettings, DEFAULT_SETTINGS
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class WorkoutEngine:
    """Entry point wiring the signal models, the planner and the feedback loop."""

    def __init__(
        self,
        catalog: ExerciseCatalog | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.settings = settings or DEFAULT_SETTINGS
        self.catalog = catalog or ExerciseCatalog(settings=self.settings)
        self.stats = StatisticsService(self.settings)
        self.recovery = RecoveryModel(self.settings)
        self.mastery = MasteryModel(self.settings)
        self.gamification = GamificationService(self.settings)
        self.frameworks = FrameworkService(self.settings, self.stats)
        self.planner = PlannerService(
            catalog=self.catalog,
            settings=self.settings,
            stats=self.stats,
            gamification=self.gamification,
        )
        self.feedback = FeedbackService(
            settings=self.settings,
            stats=self.stats,
            recovery=self.recovery,
            mastery=self.mastery,
            gamification=self.gamification,
            frameworks=self.frameworks,
        )

    def choose_framework(
        self,
        profile: Profile,
        history: list[Session],
        intent: SessionIntent | None,
        rng: random.Random,
        preferences: dict[str, FrameworkPreference] | None = None,
        now: datetime.datetime | None = None,
    ) -> tuple[str, str]:
        prefs = preferences if preferences is not None else self.frameworks.preferences(history, now)
        goal_id = dominant_goal(profile.primary_goal, self.planner.goal_weights(profile))
        goal_framework = None
        if goal_id:
            goal_framework, _weights, _reason = pick_framework_for_goal(
                goal_id, rng, prefs, self.settings.framework_variety
            )
        framework, reason = self.frameworks.select(goal_framework, prefs, rng)
        steered, note = self.frameworks.steer_for_intent(framework, intent)
        if note:
            reason = note
        logger.debug("framework %s (goal framework %s)", steered, goal_framework)
        return steered, reason

    def generate(
        self,
        profile: Profile,
        history: Iterable[Session] = (),
        intent: SessionIntent | None = None,
        recovery_records: Iterable[RecoveryRecord] = (),
        mastery_records: Iterable[MasteryRecord] = (),
        exercise_stats: Iterable[ExerciseStat] = (),
        framework_preferences: dict[str, FrameworkPreference] | None = None,
        framework: str | None = None,
        rng: random.Random | None = None,
        now: datetime.datetime | None = None,
        max_duration: int | None = None,
    ) -> Workout:
        """Generate the next workout from a consistent snapshot of the user's data."""
        rng = rng or random.Random()
        now = now or _utcnow()
        history = self.stats.newest_first(history)
        insights = self.stats.build_insights(history, exercise_stats=exercise_stats)
        if framework is None:
            framework, reason = self.choose_framework(
                profile, history, intent, rng, framework_preferences, now
            )
        else:
            reason = f"{framework} requested."
        recovery = self.recovery.scores(recovery_records, now, self.catalog.muscle_groups())
        mastery_scores = {m.exercise_name: float(m.mastery_score) for m in mastery_records}
        workout = self.planner.generate(
            profile,
            history,
            framework=framework,
            intent=intent,
            rng=rng,
            insights=insights,
            recovery=recovery,
            mastery_scores=mastery_scores,
            framework_reason=reason,
            max_duration=max_duration,
            now=now,
        )
        streak = self.gamification.streak_status(history, now.date())
        return self.gamification.apply_streak_adjustments(workout, streak)

    def process_session(
        self,
        profile: Profile,
        session: Session,
        history: Iterable[Session] = (),
        recovery_records: Iterable[RecoveryRecord] = (),
        mastery_records: Iterable[MasteryRecord] = (),
        exercise_stats: Iterable[ExerciseStat] = (),
        personal_records: Iterable[PersonalRecord] = (),
        now: datetime.datetime | None = None,
    ) -> FeedbackResult:
        return self.feedback.process_session(
            profile.skill_score,
            session,
            history,
            recovery_records,
            mastery_records,
            exercise_stats,
            personal_records,
            now,
        )

    def recovery_report(
        self, records: Iterable[RecoveryRecord], now: datetime.datetime | None = None
    ) -> dict[str, dict]:
        now = now or _utcnow()
        report = {}
        for group, score in self.recovery.scores(records, now, self.catalog.muscle_groups()).items():
            report[group] = {
                "recovery": round(score, 3),
                "penalty": self.recovery.recovery_penalty(score),
                "avoid": self.recovery.should_avoid(score),
            }
        return report

    def streak_report(
        self, history: Iterable[Session], today: datetime.date | None = None
    ) -> dict:
        status = self.gamification.streak_status(history, today)
        data = status.model_dump()
        data["message"] = self.gamification.motivation_message(status)
        return data

    def weekly_report(
        self, history: Iterable[Session], today: datetime.date | None = None
    ) -> dict:
        """Weekly muscle group volume with balancing hints."""
        history = list(history)
        today = today or datetime.date.today()
        week = periodization.week_start(today)
        volumes = periodization.weekly_volume(history, week)
        this_week = [
            r
            for s in history
            if periodization.week_start(s.created_at) == week
            for r in s.rounds
            if not r.skipped
        ]
        breakdown = periodization.volume_breakdown(this_week)
        insights = self.stats.build_insights(history)
        return {
            "week_start": week.isoformat(),
            "muscle_groups": volumes,
            "volume_bias": {g: periodization.volume_bias(volumes, g) for g in self.catalog.muscle_groups()},
            "contrast_day": periodization.contrast_day(volumes),
            "volume_breakdown": breakdown,
            "gaps": periodization.volume_gaps(breakdown),
            "optimal_time_block": insights.optimal_time_block,
            "time_blocks": {
                block: perf.model_dump() for block, perf in insights.performance_by_block.items()
            },
        }

    def microcycle(self, profile: Profile, day: datetime.date | None = None) -> dict:
        return microcycle_day(profile.primary_goal, self.planner.goal_weights(profile), day)
