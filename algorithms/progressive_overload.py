from __future__ import annotations
from typing import Iterable, Optional

from pydantic import BaseModel

from algorithms.math_tools import MathTools
from models import Round, Session
from settings_schema import EngineSettings, DEFAULT_SETTINGS


class OverloadAdjustment(BaseModel):
    exercise_name: str
    rep_increase: float = 0.0
    seconds_increase: int = 0


class ProgressiveOverload:
    """Bump targets for exercises the user keeps beating."""

    OVERPERFORMANCE_SESSIONS = 5
    CANDIDATE_SESSIONS = 10

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS

    @staticmethod
    def _newest_first(sessions: Iterable[Session]) -> list[Session]:
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    def session_hit_rates(self, exercise_name: str, sessions: Iterable[Session]) -> list[float]:
        """Average hit-rate of ``exercise_name`` per session, newest first."""
        rates = []
        for session in self._newest_first(sessions):
            hits = [
                MathTools.hit_rate(r.actual_value(), r.target, self.settings.hit_rate_cap)
                for r in session.rounds
                if r.exercise_name == exercise_name and not r.skipped
            ]
            if hits:
                rates.append(MathTools.mean(hits))
        return rates

    def qualifies(self, exercise_name: str, sessions: Iterable[Session]) -> bool:
        window = self.settings.overload_window
        recent = self.session_hit_rates(exercise_name, sessions)[:window]
        if len(recent) < window:
            return False
        return all(rate > self.settings.overload_hit_rate for rate in recent)

    def adjustment(
        self,
        exercise_name: str,
        sessions: Iterable[Session],
        mastery_score: Optional[float] = None,
    ) -> OverloadAdjustment | None:
        sessions = self._newest_first(sessions)
        if not self.qualifies(exercise_name, sessions):
            return None
        over: list[float] = []
        is_hold = False
        for session in sessions[: self.OVERPERFORMANCE_SESSIONS]:
            for rnd in session.rounds:
                if rnd.exercise_name != exercise_name or rnd.skipped:
                    continue
                is_hold = rnd.is_hold
                over.append(rnd.actual_value() / (rnd.target or 1) - 1.0)
        if not over:
            return None
        avg = MathTools.mean(over)
        multiplier = 0.8 + (mastery_score / 100) * 0.4 if mastery_score is not None else 1.0
        if is_hold:
            seconds = MathTools.clamp(avg * 10 * multiplier, 2, 5)
            return OverloadAdjustment(exercise_name=exercise_name, seconds_increase=round(seconds))
        percent = MathTools.clamp(avg * 0.5 * multiplier, 0.05, 0.20)
        return OverloadAdjustment(exercise_name=exercise_name, rep_increase=percent)

    def apply(
        self,
        rounds: list[Round],
        sessions: Iterable[Session],
        mastery_scores: dict[str, float] | None = None,
    ) -> tuple[list[Round], list[OverloadAdjustment]]:
        """Return copies of ``rounds`` with overload applied, plus the adjustments used."""
        sessions = self._newest_first(sessions)
        mastery_scores = mastery_scores or {}
        adjustments: dict[str, OverloadAdjustment] = {}
        for name in dict.fromkeys(r.exercise_name for r in rounds):
            adj = self.adjustment(name, sessions, mastery_scores.get(name))
            if adj is not None:
                adjustments[name] = adj
        result = []
        for rnd in rounds:
            adj = adjustments.get(rnd.exercise_name)
            if adj is None:
                result.append(rnd)
                continue
            if rnd.is_hold:
                increase = max(1, adj.seconds_increase)
            else:
                increase = max(1, round(rnd.target * adj.rep_increase))
            result.append(rnd.model_copy(update={"target": rnd.target + increase}))
        return result, list(adjustments.values())

    def candidates(
        self,
        sessions: Iterable[Session],
        mastery_scores: dict[str, float] | None = None,
    ) -> list[OverloadAdjustment]:
        """Every recently used exercise that qualifies for overload."""
        sessions = self._newest_first(sessions)
        mastery_scores = mastery_scores or {}
        names = dict.fromkeys(
            r.exercise_name for s in sessions[: self.CANDIDATE_SESSIONS] for r in s.rounds
        )
        result = []
        for name in names:
            adj = self.adjustment(name, sessions, mastery_scores.get(name))
            if adj is not None:
                result.append(adj)
        return result
