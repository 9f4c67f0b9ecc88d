from __future__ import annotations
import datetime
import logging
from typing import Iterable

from pydantic import BaseModel, Field

from algorithms.mastery_model import MasteryModel
from algorithms.math_tools import MathTools
from algorithms.recovery_model import RecoveryModel
from framework_service import FrameworkService
from gamification_service import GamificationService, PrOutcome, StreakStatus
from models import (
    ExerciseStat,
    FrameworkPreference,
    MasteryRecord,
    PersonalRecord,
    RecoveryRecord,
    Session,
)
from settings_schema import EngineSettings, DEFAULT_SETTINGS
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


class FeedbackResult(BaseModel):
    skill_score: float
    recovery_records: list[RecoveryRecord] = Field(default_factory=list)
    mastery_records: list[MasteryRecord] = Field(default_factory=list)
    exercise_stats: list[ExerciseStat] = Field(default_factory=list)
    personal_records: PrOutcome = Field(default_factory=PrOutcome)
    framework_preference: FrameworkPreference
    streak: StreakStatus


class FeedbackService:
    """Turn a completed session into updated signals for the next generation."""

    def __init__(
        self,
        settings: EngineSettings | None = None,
        stats: StatisticsService | None = None,
        recovery: RecoveryModel | None = None,
        mastery: MasteryModel | None = None,
        gamification: GamificationService | None = None,
        frameworks: FrameworkService | None = None,
    ) -> None:
        self.settings = settings or DEFAULT_SETTINGS
        self.stats = stats or StatisticsService(self.settings)
        self.recovery = recovery or RecoveryModel(self.settings)
        self.mastery = mastery or MasteryModel(self.settings)
        self.gamification = gamification or GamificationService(self.settings)
        self.frameworks = frameworks or FrameworkService(self.settings, self.stats)

    def skill_delta(self, sessions: Iterable[Session]) -> float:
        """Bounded skill change from the newest sessions, 0 without history."""
        recent = self.stats.newest_first(sessions)[: self.settings.skill_window]
        if not recent:
            return 0.0
        summaries = [self.stats.summarize_session(s.rounds, s.perceived_exertion) for s in recent]
        hit = MathTools.mean(s.average_hit_rate for s in summaries)
        skip = MathTools.mean(s.skip_rate for s in summaries)
        rpes = [s.average_rpe for s in summaries if s.average_rpe is not None]
        rpe = MathTools.mean(rpes) if rpes else 3.0

        movements: dict[str, list[tuple[float, float]]] = {}
        for summary in summaries:
            for name, perf in summary.movements.items():
                movements.setdefault(name, []).append((perf.hit_rate, perf.skip_rate))
        movement_score = MathTools.mean(
            (MathTools.mean(h for h, _ in values) - 1) * 8
            - MathTools.mean(s for _, s in values) * 10
            for values in movements.values()
        )

        delta = (hit - 1) * 10 - skip * 12 + movement_score * 0.5
        if delta > 0:
            sustained = hit >= 1.03 and skip <= 0.08 and rpe <= 3.5
            delta *= 1.2 if sustained else 0.6
        elif delta < 0:
            struggling = hit <= 0.95 or skip >= 0.15 or rpe >= 4.5
            delta *= 1.3 if struggling else 0.7
        limit = self.settings.skill_delta_limit
        return MathTools.clamp(delta, -limit, limit)

    def update_skill_score(self, current: float, sessions: Iterable[Session]) -> float:
        return MathTools.clamp(current + self.skill_delta(sessions), 0.0, 100.0)

    def process_session(
        self,
        skill_score: float,
        session: Session,
        history: Iterable[Session] = (),
        recovery_records: Iterable[RecoveryRecord] = (),
        mastery_records: Iterable[MasteryRecord] = (),
        exercise_stats: Iterable[ExerciseStat] = (),
        personal_records: Iterable[PersonalRecord] = (),
        now: datetime.datetime | None = None,
    ) -> FeedbackResult:
        """Recompute every signal after ``session``.

        ``history`` holds the sessions before this one; nothing is mutated.
        """
        now = now or session.created_at
        sessions = [session] + [s for s in history if s.id is None or s.id != session.id]
        stats = self.stats.merge_exercise_stats(
            exercise_stats, self.stats.aggregate_exercise_outcomes(session.rounds)
        )
        new_score = self.update_skill_score(skill_score, sessions)
        result = FeedbackResult(
            skill_score=new_score,
            recovery_records=self.recovery.update_after_session(recovery_records, session),
            mastery_records=self.mastery.update_records(
                session, sessions, mastery_records, stats, now
            ),
            exercise_stats=stats,
            personal_records=self.gamification.detect_prs(session, personal_records, now),
            framework_preference=self.frameworks.score(session.framework, sessions, now),
            streak=self.gamification.streak_status(sessions, now.date()),
        )
        logger.debug(
            "session processed: skill %.1f -> %.1f, %d new records",
            skill_score,
            new_score,
            len(result.personal_records.new_records),
        )
        return result
