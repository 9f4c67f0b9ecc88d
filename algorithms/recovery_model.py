from __future__ import annotations
import datetime
from typing import Iterable

from algorithms.math_tools import MathTools
from models import RecoveryRecord, Session
from settings_schema import EngineSettings, DEFAULT_SETTINGS


class RecoveryModel:
    """Per muscle group recovery recomputed from elapsed time on every read."""

    DIFFICULTY_FACTORS: dict[str, float] = {
        "beginner": 0.6,
        "intermediate": 1.0,
        "advanced": 1.4,
    }

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS

    def base_hours(self, muscle_group: str) -> float:
        return self.settings.recovery_base_hours.get(
            muscle_group.lower(), self.settings.default_recovery_hours
        )

    def recovery_score(
        self,
        muscle_group: str,
        last_worked_at: datetime.datetime,
        intensity: float,
        now: datetime.datetime,
    ) -> float:
        """Return min(1, hours / (base * (0.7 + 0.8 * intensity)))."""
        hours = max((now - last_worked_at).total_seconds() / 3600.0, 0.0)
        adjusted = self.base_hours(muscle_group) * (0.7 + MathTools.clamp(intensity, 0.0, 1.0) * 0.8)
        return min(1.0, hours / adjusted)

    def session_intensity(self, session: Session) -> float:
        """Weighted blend of RPE, difficulty tag and completion rate."""
        rpe = session.perceived_exertion / 5 if session.perceived_exertion is not None else 0.5
        factor = self.DIFFICULTY_FACTORS.get(session.difficulty_tag, 1.0)
        total = len(session.rounds)
        completion = sum(1 for r in session.rounds if not r.skipped) / total if total else 1.0
        intensity = rpe * 0.4 + (factor / 1.4) * 0.3 + completion * 0.3
        return MathTools.clamp(intensity, 0.0, 1.0)

    def current(self, record: RecoveryRecord, now: datetime.datetime) -> float:
        return self.recovery_score(record.muscle_group, record.last_worked_at, record.intensity, now)

    def scores(
        self,
        records: Iterable[RecoveryRecord],
        now: datetime.datetime,
        muscle_groups: Iterable[str] | None = None,
    ) -> dict[str, float]:
        """Current recovery per muscle group; groups without a record are 1.0."""
        by_group = {r.muscle_group: r for r in records}
        groups = list(muscle_groups) if muscle_groups is not None else list(by_group)
        result: dict[str, float] = {}
        for group in groups:
            record = by_group.get(group)
            result[group] = self.current(record, now) if record else 1.0
        return result

    def update_after_session(
        self, records: Iterable[RecoveryRecord], session: Session
    ) -> list[RecoveryRecord]:
        """Reset worked groups to 0 at the session time and refresh the others."""
        intensity = self.session_intensity(session)
        worked = {r.muscle_group for r in session.rounds}
        updated: dict[str, RecoveryRecord] = {}
        for record in records:
            if record.muscle_group in worked:
                continue
            updated[record.muscle_group] = record.model_copy(
                update={"recovery_score": self.current(record, session.created_at)}
            )
        for group in worked:
            updated[group] = RecoveryRecord(
                muscle_group=group,
                recovery_score=0.0,
                last_worked_at=session.created_at,
                intensity=intensity,
            )
        return sorted(updated.values(), key=lambda r: r.muscle_group)

    @staticmethod
    def recovery_penalty(score: float) -> float:
        if score >= 0.8:
            return 1.0
        if score >= 0.5:
            return 0.7
        if score >= 0.3:
            return 0.4
        return 0.1

    @staticmethod
    def should_avoid(score: float, threshold: float = 0.5) -> bool:
        return score < threshold
