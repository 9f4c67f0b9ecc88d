from __future__ import annotations
import datetime
from typing import Iterable, Optional

from algorithms.math_tools import MathTools
from models import ExerciseStat, MasteryRecord, Session
from settings_schema import EngineSettings, DEFAULT_SETTINGS


class MasteryModel:
    """Composite 0-100 mastery score per exercise."""

    WEIGHTS = (0.4, 0.3, 0.2, 0.1)
    PROGRESSION_WINDOW = 6

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS

    def _attempts(self, exercise_name: str, history: Iterable[Session]) -> list[Optional[float]]:
        """Hit-rates in chronological order; ``None`` marks a skipped attempt."""
        ordered = sorted(history, key=lambda s: s.created_at)
        attempts: list[Optional[float]] = []
        for session in ordered:
            for rnd in session.rounds:
                if rnd.exercise_name != exercise_name:
                    continue
                if rnd.skipped:
                    attempts.append(None)
                else:
                    attempts.append(
                        MathTools.hit_rate(rnd.actual_value(), rnd.target, self.settings.hit_rate_cap)
                    )
        return attempts

    def score(
        self,
        exercise_name: str,
        history: Iterable[Session],
        stat: ExerciseStat | None = None,
    ) -> int:
        """Return the mastery score, 0 when there is no data at all.

        Stored counters in ``stat`` take precedence over the history for the
        completion and quality components.
        """
        attempts = self._attempts(exercise_name, history)
        if not attempts and stat is None:
            return 0
        cap = self.settings.hit_rate_cap
        hits = [a for a in attempts if a is not None]

        if stat is not None:
            total = stat.accept_count + stat.skip_count
            successful = stat.accept_count
        else:
            total = len(attempts)
            successful = len(hits)
        completion = successful / total if total else 0.0

        if stat is not None and stat.completion_count > 0:
            quality = min(stat.quality_sum / stat.completion_count, cap) / cap
        elif hits:
            quality = min(MathTools.mean(hits) / cap, 1.0)
        else:
            quality = 1.0

        consistency = 0.5
        if len(hits) >= 3:
            if MathTools.mean(hits) > 0:
                consistency = MathTools.clamp(1 - MathTools.coefficient_of_variation(hits), 0.0, 1.0)

        progression = 0.5
        if len(hits) >= 4:
            slope = MathTools.linear_regression_slope(hits[-self.PROGRESSION_WINDOW:])
            progression = MathTools.clamp(0.5 + slope * 2, 0.0, 1.0)

        w_completion, w_quality, w_consistency, w_progression = self.WEIGHTS
        raw = (
            completion * w_completion
            + quality * w_quality
            + consistency * w_consistency
            + progression * w_progression
        )
        return int(MathTools.clamp(round(raw * 100), 0, 100))

    @staticmethod
    def difficulty_adjustment(mastery_score: float) -> float:
        """0.85-1.0 below 50, 1.0 up to 75, rising to 1.15 at 100."""
        if mastery_score < 50:
            return 0.85 + (mastery_score / 50) * 0.15
        if mastery_score < 75:
            return 1.0
        return 1.0 + ((min(mastery_score, 100) - 75) / 25) * 0.15

    def update_records(
        self,
        session: Session,
        history: Iterable[Session],
        existing: Iterable[MasteryRecord] = (),
        exercise_stats: Iterable[ExerciseStat] | None = None,
        now: datetime.datetime | None = None,
    ) -> list[MasteryRecord]:
        """Recompute mastery for each exercise in ``session`` with running counters."""
        history = list(history)
        stats = {s.exercise_name: s for s in exercise_stats or []}
        current = {m.exercise_name: m for m in existing}
        now = now or session.created_at
        names = list(dict.fromkeys(r.exercise_name for r in session.rounds))
        records: list[MasteryRecord] = []
        for name in names:
            rounds = [r for r in session.rounds if r.exercise_name == name]
            previous = current.get(name)
            records.append(
                MasteryRecord(
                    exercise_name=name,
                    mastery_score=self.score(name, history, stats.get(name)),
                    total_attempts=(previous.total_attempts if previous else 0) + len(rounds),
                    successful_attempts=(previous.successful_attempts if previous else 0)
                    + sum(1 for r in rounds if not r.skipped),
                    last_updated=now,
                )
            )
        return records
