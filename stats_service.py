from __future__ import annotations
import datetime
import logging
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from algorithms.math_tools import MathTools
from models import ExerciseStat, Round, Session
from settings_schema import EngineSettings, DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

TIME_BLOCKS: tuple[str, ...] = ("morning", "afternoon", "evening")


class ExerciseScore(BaseModel):
    accept_rate: float = 0.5
    skip_rate: float = 0.0
    average_quality: float = 1.0
    utility: float = 1.0
    sample_size: int = 0


class MovementPerformance(BaseModel):
    hit_rate: float = 1.0
    skip_rate: float = 0.0
    average_rpe: Optional[float] = None


class SessionSummary(BaseModel):
    average_hit_rate: float = 1.0
    skip_rate: float = 0.0
    average_rpe: Optional[float] = None
    movements: dict[str, MovementPerformance] = Field(default_factory=dict)


class TimeBlockPerformance(BaseModel):
    sample_size: int = 0
    average_hit_rate: float = 1.0
    skip_rate: float = 0.0
    average_rpe: Optional[float] = None
    delta_hit_rate: float = 0.0


class PersonalizationInsights(BaseModel):
    """Rolling performance signals over the most recent sessions."""

    average_hit_rate: float = 1.0
    skip_rate: float = 0.0
    average_rpe: Optional[float] = None
    fatigue_trend: float = 0.0
    muscle_preferences: dict[str, float] = Field(default_factory=dict)
    exercise_scores: dict[str, ExerciseScore] = Field(default_factory=dict)
    performance_by_block: dict[str, TimeBlockPerformance] = Field(default_factory=dict)
    optimal_time_block: Optional[str] = None
    sample_sessions: int = 0

    def muscle_preference(self, muscle_group: str) -> float:
        return self.muscle_preferences.get(muscle_group, 1.0)

    def exercise_utility(self, exercise_name: str) -> float:
        score = self.exercise_scores.get(exercise_name)
        return score.utility if score else 1.0


class StatisticsService:
    """Compute personalization statistics from session history."""

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS

    def round_hit_rate(self, rnd: Round) -> float:
        """Hit-rate of a non-skipped round, capped."""
        return MathTools.hit_rate(rnd.actual_value(), rnd.target, self.settings.hit_rate_cap)

    @staticmethod
    def newest_first(sessions: Iterable[Session]) -> list[Session]:
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    @staticmethod
    def time_block(moment: datetime.datetime) -> str:
        if moment.hour < 12:
            return "morning"
        if moment.hour < 18:
            return "afternoon"
        return "evening"

    def summarize_session(
        self, rounds: list[Round], perceived_exertion: Optional[int] = None
    ) -> SessionSummary:
        """Session hit-rate, skip-rate and per-exercise movement performance."""
        hits: list[float] = []
        skipped = 0
        buckets: dict[str, dict[str, list | int]] = {}
        for rnd in rounds:
            bucket = buckets.setdefault(rnd.exercise_name, {"hits": [], "skipped": 0, "total": 0})
            bucket["total"] += 1
            if rnd.skipped:
                skipped += 1
                bucket["skipped"] += 1
                continue
            rate = self.round_hit_rate(rnd)
            hits.append(rate)
            bucket["hits"].append(rate)
        rpe = float(perceived_exertion) if perceived_exertion is not None else None
        movements = {
            name: MovementPerformance(
                hit_rate=MathTools.mean(b["hits"], default=1.0),
                skip_rate=b["skipped"] / b["total"] if b["total"] else 0.0,
                average_rpe=rpe,
            )
            for name, b in buckets.items()
        }
        return SessionSummary(
            average_hit_rate=MathTools.mean(hits, default=1.0),
            skip_rate=skipped / (len(rounds) or 1),
            average_rpe=rpe,
            movements=movements,
        )

    def aggregate_exercise_outcomes(self, rounds: list[Round]) -> list[ExerciseStat]:
        """Per exercise accept/skip/completion counters for one session."""
        stats: dict[str, ExerciseStat] = {}
        for rnd in rounds:
            stat = stats.setdefault(rnd.exercise_name, ExerciseStat(exercise_name=rnd.exercise_name))
            if rnd.skipped:
                stat.skip_count += 1
                continue
            stat.accept_count += 1
            stat.completion_count += 1
            stat.quality_sum += self.round_hit_rate(rnd)
        return list(stats.values())

    @staticmethod
    def merge_exercise_stats(
        existing: Iterable[ExerciseStat], updates: Iterable[ExerciseStat]
    ) -> list[ExerciseStat]:
        """Add ``updates`` to ``existing`` counters, returning new objects."""
        merged = {s.exercise_name: s.model_copy() for s in existing}
        for upd in updates:
            cur = merged.get(upd.exercise_name)
            if cur is None:
                merged[upd.exercise_name] = upd.model_copy()
                continue
            cur.accept_count += upd.accept_count
            cur.skip_count += upd.skip_count
            cur.completion_count += upd.completion_count
            cur.quality_sum += upd.quality_sum
        return sorted(merged.values(), key=lambda s: s.exercise_name)

    def time_block_performance(
        self, sessions: list[Session]
    ) -> tuple[dict[str, TimeBlockPerformance], Optional[str]]:
        """Performance per time of day and the block with the best hit minus skip."""
        summaries: dict[str, list[SessionSummary]] = {b: [] for b in TIME_BLOCKS}
        for session in sessions:
            summary = self.summarize_session(session.rounds, session.perceived_exertion)
            summaries[self.time_block(session.created_at)].append(summary)
        overall = MathTools.mean(
            (s.average_hit_rate for group in summaries.values() for s in group), default=1.0
        )
        performance: dict[str, TimeBlockPerformance] = {}
        for block, group in summaries.items():
            if not group:
                performance[block] = TimeBlockPerformance()
                continue
            hit = MathTools.mean(s.average_hit_rate for s in group)
            rpes = [s.average_rpe for s in group if s.average_rpe is not None]
            performance[block] = TimeBlockPerformance(
                sample_size=len(group),
                average_hit_rate=hit,
                skip_rate=MathTools.mean(s.skip_rate for s in group),
                average_rpe=MathTools.mean(rpes) if rpes else None,
                delta_hit_rate=hit - overall,
            )
        optimal = None
        best = float("-inf")
        for block in TIME_BLOCKS:
            perf = performance[block]
            if not perf.sample_size:
                continue
            score = perf.average_hit_rate - perf.skip_rate
            if score > best:
                best = score
                optimal = block
        return performance, optimal

    def exercise_scores(
        self,
        sessions: list[Session],
        exercise_stats: Iterable[ExerciseStat] | None = None,
    ) -> dict[str, ExerciseScore]:
        recent = [s for session in sessions for s in self.aggregate_exercise_outcomes(session.rounds)]
        merged = self.merge_exercise_stats(
            self.merge_exercise_stats([], recent), exercise_stats or []
        )
        scores: dict[str, ExerciseScore] = {}
        for stat in merged:
            attempts = stat.accept_count + stat.skip_count
            quality = stat.quality_sum / stat.completion_count if stat.completion_count else 1.0
            accept = stat.accept_count / attempts if attempts else 0.5
            scores[stat.exercise_name] = ExerciseScore(
                accept_rate=accept,
                skip_rate=stat.skip_count / attempts if attempts else 0.0,
                average_quality=quality,
                utility=MathTools.clamp(0.85 + accept * 0.35 + (quality - 1) * 0.3, 0.7, 1.4),
                sample_size=stat.completion_count,
            )
        return scores

    def build_insights(
        self,
        sessions: Iterable[Session],
        window: int | None = None,
        exercise_stats: Iterable[ExerciseStat] | None = None,
    ) -> PersonalizationInsights:
        """Aggregate the newest ``window`` sessions into personalization insights.

        Skipped rounds count toward the skip-rate but not the hit-rate. An
        empty history yields neutral defaults.
        """
        window = window or self.settings.insights_window
        recent = self.newest_first(sessions)[:window]
        hits: list[float] = []
        skipped = 0
        total = 0
        by_muscle: dict[str, list[float]] = {}
        for session in recent:
            for rnd in session.rounds:
                total += 1
                if rnd.skipped:
                    skipped += 1
                    continue
                rate = self.round_hit_rate(rnd)
                hits.append(rate)
                by_muscle.setdefault(rnd.muscle_group, []).append(rate)
        rpes = [s.perceived_exertion for s in recent if s.perceived_exertion is not None]
        hit = MathTools.mean(hits, default=1.0)
        skip = skipped / total if total else 0.0
        rpe = MathTools.mean(rpes) if rpes else None
        fatigue = max(
            0.0,
            skip * 0.5 + max(0.0, 1 - hit) + max(0.0, ((rpe or 0.0) - 3) / 5),
        )
        preferences = {
            muscle: MathTools.clamp(
                MathTools.mean(values, default=1.0),
                self.settings.muscle_preference_min,
                self.settings.muscle_preference_max,
            )
            for muscle, values in by_muscle.items()
        }
        performance, optimal = self.time_block_performance(recent)
        insights = PersonalizationInsights(
            average_hit_rate=hit,
            skip_rate=skip,
            average_rpe=rpe,
            fatigue_trend=fatigue,
            muscle_preferences=preferences,
            exercise_scores=self.exercise_scores(recent, exercise_stats),
            performance_by_block=performance,
            optimal_time_block=optimal,
            sample_sessions=len(recent),
        )
        logger.debug(
            "insights over %d sessions: hit=%.2f skip=%.2f fatigue=%.2f",
            len(recent),
            hit,
            skip,
            fatigue,
        )
        return insights
