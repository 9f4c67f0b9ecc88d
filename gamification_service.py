from __future__ import annotations
import datetime
import logging
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from algorithms.periodization import structural_minutes, workout_load
from goals import FRAMEWORK_CONFIGS
from models import (
    Modality,
    PersonalRecord,
    PrAttempt,
    PrCelebration,
    Round,
    Session,
    Workout,
)
from settings_schema import EngineSettings, DEFAULT_SETTINGS
from stats_service import PersonalizationInsights

logger = logging.getLogger(__name__)

UNITS: dict[str, str] = {"load": "kg", "time": "sec", "reps": "reps"}


class StreakStatus(BaseModel):
    current_streak: int = 0
    best_streak: int = 0
    days_since_last: Optional[int] = None
    fragile: bool = True


class PerformanceSnapshot(BaseModel):
    exercise_name: str
    modality: Modality
    value: float
    unit: str
    pr_attempt: bool = False
    session_id: Optional[str] = None
    round_id: Optional[str] = None


class PrOutcome(BaseModel):
    new_records: list[PrCelebration] = Field(default_factory=list)
    near_misses: list[PrCelebration] = Field(default_factory=list)
    record_updates: list[PersonalRecord] = Field(default_factory=list)


class PrReadiness(BaseModel):
    ready: bool
    reason: str
    hours_since_last: Optional[float] = None


class GamificationService:
    """Streak tracking and personal records."""

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self.settings = settings or DEFAULT_SETTINGS

    # streaks

    @staticmethod
    def workout_days(sessions: Iterable[Session]) -> list[datetime.date]:
        return sorted({s.created_at.date() for s in sessions if s.completed})

    def streak_status(
        self, sessions: Iterable[Session], today: datetime.date | None = None
    ) -> StreakStatus:
        """Return current and best daily streaks from completed sessions."""
        days = self.workout_days(sessions)
        if not days:
            return StreakStatus()
        today = today or datetime.date.today()
        best = cur = 1
        for prev, nxt in zip(days, days[1:]):
            if (nxt - prev).days == 1:
                cur += 1
            else:
                best = max(best, cur)
                cur = 1
        best = max(best, cur)
        days_since = max((today - days[-1]).days, 0)
        current = cur if days_since <= 1 else 0
        return StreakStatus(
            current_streak=current,
            best_streak=best,
            days_since_last=days_since,
            fragile=current <= 2 or days_since >= 3,
        )

    @staticmethod
    def should_adjust(status: StreakStatus) -> bool:
        return status.fragile or (status.days_since_last or 0) >= 2

    def apply_streak_adjustments(self, workout: Workout, status: StreakStatus) -> Workout:
        """Shorten the workout and ease targets when the streak is at risk."""
        if not self.should_adjust(status):
            return workout
        duration_cut = 0.2 if status.fragile else 0.1
        quantity_cut = 0.1 if status.fragile else 0.05
        minimum = FRAMEWORK_CONFIGS[workout.framework].duration_range[0]
        passes = workout.total_rounds or 1
        rounds = [
            r.model_copy(update={"target": max(1, round(r.target * (1 - quantity_cut)))})
            for r in workout.rounds
        ]
        duration = structural_minutes(
            workout.framework, rounds, passes, workout.rest_seconds or 0, minimum
        )
        if duration is None:
            duration = max(minimum, round(workout.duration_minutes * (1 - duration_cut)))
            if workout.framework == "EMOM":
                rounds = rounds[:duration]
        load, volume = workout_load(rounds, passes)
        pr_plan = workout.pr_plan
        if pr_plan is not None:
            kept = [a for a in pr_plan.attempts if a.index <= len(rounds)]
            pr_plan = pr_plan.model_copy(update={"attempts": kept})
        rationale = workout.rationale.model_copy(
            update={
                "intensity": f"{workout.rationale.intensity} Streak-aware: adjusted for a "
                f"{status.current_streak}-day streak to keep momentum going.".strip()
            }
        )
        logger.debug("streak adjustment: %d -> %d min", workout.duration_minutes, duration)
        return workout.model_copy(
            update={
                "duration_minutes": duration,
                "rounds": rounds,
                "muscle_load": load,
                "volume_breakdown": volume,
                "pr_plan": pr_plan,
                "rationale": rationale,
            }
        )

    @staticmethod
    def motivation_message(status: StreakStatus) -> str | None:
        if status.current_streak == 0:
            return "Start your streak today!"
        if status.fragile:
            if (status.days_since_last or 0) >= 3:
                return "Your streak is at risk! Let's get back on track."
            return f"Keep your {status.current_streak}-day streak alive!"
        if status.current_streak >= 7:
            return f"Amazing {status.current_streak}-day streak! Keep it going!"
        if status.current_streak >= 3:
            return f"Great {status.current_streak}-day streak! Building consistency!"
        return None

    # personal records

    @staticmethod
    def performance_snapshots(
        rounds: Iterable[Round], session_id: str | None = None
    ) -> list[PerformanceSnapshot]:
        """Modality value per reported round with load > time > reps precedence.

        Rounds without a reported actual are left out, so a target is never
        taken for a performance.
        """
        snapshots = []
        for rnd in rounds:
            if rnd.skipped:
                continue
            seconds = rnd.actual_seconds
            if rnd.is_hold and seconds is None:
                seconds = rnd.actual_reps
            if rnd.actual_load is not None:
                modality = "load"
                value = rnd.actual_load
            elif seconds is not None:
                modality = "time"
                value = seconds
            elif rnd.actual_reps is not None:
                modality = "reps"
                value = rnd.actual_reps
            else:
                continue
            if value <= 0:
                continue
            snapshots.append(
                PerformanceSnapshot(
                    exercise_name=rnd.exercise_name,
                    modality=modality,
                    value=float(value),
                    unit=UNITS[modality],
                    pr_attempt=rnd.pr_attempt,
                    session_id=session_id,
                    round_id=rnd.id,
                )
            )
        return snapshots

    def evaluate_prs(
        self,
        snapshots: Iterable[PerformanceSnapshot],
        existing: Iterable[PersonalRecord],
        now: datetime.datetime | None = None,
    ) -> PrOutcome:
        """Compare snapshots against stored records.

        A strictly greater value replaces the record. A value within the
        near-miss ratio of the record is reported but not stored.
        """
        now = now or datetime.datetime.now(datetime.timezone.utc)
        records = {(r.exercise_name, r.modality): r for r in existing}
        outcome = PrOutcome()
        for snap in snapshots:
            key = (snap.exercise_name, snap.modality)
            previous = records.get(key)
            if previous is None or snap.value > previous.value:
                outcome.new_records.append(
                    PrCelebration(
                        exercise_name=snap.exercise_name,
                        modality=snap.modality,
                        value=snap.value,
                        unit=snap.unit,
                        previous_value=previous.value if previous else None,
                        type="new",
                    )
                )
                record = PersonalRecord(
                    exercise_name=snap.exercise_name,
                    modality=snap.modality,
                    value=snap.value,
                    unit=snap.unit,
                    session_id=snap.session_id,
                    round_id=snap.round_id,
                    achieved_at=now,
                )
                outcome.record_updates.append(record)
                records[key] = record
                continue
            if snap.value >= previous.value * self.settings.pr_near_miss_ratio:
                outcome.near_misses.append(
                    PrCelebration(
                        exercise_name=snap.exercise_name,
                        modality=snap.modality,
                        value=snap.value,
                        unit=snap.unit,
                        previous_value=previous.value,
                        type="near_miss",
                    )
                )
        return outcome

    def detect_prs(
        self,
        session: Session,
        existing: Iterable[PersonalRecord],
        now: datetime.datetime | None = None,
    ) -> PrOutcome:
        snapshots = self.performance_snapshots(session.rounds, session.id)
        return self.evaluate_prs(snapshots, existing, now or session.created_at)

    def pr_readiness(
        self,
        history: Iterable[Session],
        insights: PersonalizationInsights | None = None,
        now: datetime.datetime | None = None,
    ) -> PrReadiness:
        history = list(history)
        if not history:
            return PrReadiness(ready=True, reason="Fresh slate, no fatigue risk detected.")
        now = now or datetime.datetime.now(datetime.timezone.utc)
        last = max(s.created_at for s in history)
        hours = max(0.0, (now - last).total_seconds() / 3600.0)
        fatigue = insights.fatigue_trend if insights else 0.0
        skip = insights.skip_rate if insights else 0.0
        rpe = insights.average_rpe if insights and insights.average_rpe is not None else 3.0

        s = self.settings
        blockers = []
        if hours < s.pr_min_rest_hours:
            blockers.append("allowing more recovery time")
        if fatigue >= s.pr_max_fatigue:
            blockers.append("waiting for fatigue trend to ease")
        if skip >= s.pr_max_skip_rate:
            blockers.append("reducing skipped intervals")
        if rpe > s.pr_max_rpe:
            blockers.append(f"letting RPE settle under {s.pr_max_rpe}")
        ready = not blockers
        if ready:
            reason = (
                f"Recovered ({s.pr_min_rest_hours:g}h+), steady RPE and low skips: "
                "green-lit for PR focus."
            )
        else:
            reason = "PR attempts paused; " + " + ".join(blockers)
        logger.debug("PR readiness %s after %.1fh: %s", ready, hours, reason)
        return PrReadiness(ready=ready, reason=reason, hours_since_last=hours)

    def schedule_pr_attempts(
        self, rounds: list[Round], readiness: PrReadiness
    ) -> tuple[list[Round], list[PrAttempt]]:
        """Mark up to the configured number of rounds as PR attempts.

        The warm-up intervals at the start of the session are never used.
        """
        result = [r.model_copy() for r in rounds]
        attempts: list[PrAttempt] = []
        if not readiness.ready:
            return result, attempts
        for rnd in sorted(result, key=lambda r: r.index):
            if len(attempts) >= self.settings.pr_max_attempts:
                break
            if rnd.pr_attempt or rnd.index <= self.settings.pr_warmup_intervals:
                continue
            modality = rnd.pr_modality or ("time" if rnd.is_hold else "reps")
            rnd.pr_attempt = True
            rnd.pr_modality = modality
            attempts.append(PrAttempt(index=rnd.index, exercise_name=rnd.exercise_name, modality=modality))
        return result, attempts

    def pr_opportunity(
        self,
        exercise_name: str,
        target: float,
        is_hold: bool,
        records: Iterable[PersonalRecord],
    ) -> dict:
        """Whether ``target`` is close enough to the stored record to chase it."""
        modality = "time" if is_hold else "reps"
        record = next(
            (r for r in records if r.exercise_name == exercise_name and r.modality == modality),
            None,
        )
        if record is None:
            return {"is_close": True, "current_pr": None, "target_to_beat": None}
        return {
            "is_close": target >= record.value * self.settings.pr_opportunity_ratio,
            "current_pr": record.value,
            "target_to_beat": record.value + 1,
        }
