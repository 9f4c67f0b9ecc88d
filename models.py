from __future__ import annotations
import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from settings_schema import DEFAULT_SETTINGS, EngineSettings

Difficulty = Literal["beginner", "intermediate", "advanced"]
FrameworkId = Literal["EMOM", "Tabata", "AMRAP", "Circuit"]
EnergyLevel = Literal["low", "moderate", "high"]
Modality = Literal["reps", "time", "load"]

DIFFICULTY_ORDER: dict[str, int] = {"beginner": 0, "intermediate": 1, "advanced": 2}
FRAMEWORKS: tuple[str, ...] = ("EMOM", "Tabata", "AMRAP", "Circuit")
CATEGORIES: tuple[str, ...] = ("compound", "cardio", "plyometric", "mobility")


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


class Categories(BaseModel):
    """Binary category vector used for bias scoring."""

    model_config = ConfigDict(frozen=True)

    compound: int = Field(0, ge=0, le=1)
    cardio: int = Field(0, ge=0, le=1)
    plyometric: int = Field(0, ge=0, le=1)
    mobility: int = Field(0, ge=0, le=1)


class TierTargets(BaseModel):
    model_config = ConfigDict(frozen=True)

    beginner: int = Field(ge=1)
    intermediate: int = Field(ge=1)
    advanced: int = Field(ge=1)

    def for_tier(self, tier: str) -> int:
        return getattr(self, tier)


class Exercise(BaseModel):
    """Immutable catalog entry."""

    model_config = ConfigDict(frozen=True)

    name: str
    muscle_group: str
    difficulty: Difficulty
    equipment: tuple[str, ...]
    targets: TierTargets
    is_hold: bool = False
    alternates_sides: bool = False
    categories: Categories = Categories()


def skill_tier(skill_score: float, settings: EngineSettings | None = None) -> Difficulty:
    """Difficulty tier for a 0-100 skill score."""
    settings = settings or DEFAULT_SETTINGS
    if skill_score <= settings.beginner_max_skill:
        return "beginner"
    if skill_score <= settings.intermediate_max_skill:
        return "intermediate"
    return "advanced"


class SessionIntent(BaseModel):
    focus_today: Optional[str] = Field(None, max_length=64)
    energy_level: Optional[EnergyLevel] = None
    intent_note: Optional[str] = Field(None, max_length=200)
    framework: Optional[FrameworkId] = None


class Profile(BaseModel):
    skill_score: float = 50.0
    equipment: list[str] = Field(default_factory=lambda: ["bodyweight"])
    primary_goal: Optional[str] = None
    secondary_goals: list[str] = Field(default_factory=list)
    goal_focus: Optional[str] = None
    goal_weights: Optional[dict[str, float]] = None

    @field_validator("skill_score", mode="before")
    @classmethod
    def _clamp_skill(cls, value):
        if value is None:
            return 50.0
        return max(0.0, min(100.0, float(value)))

    @field_validator("equipment", mode="before")
    @classmethod
    def _default_equipment(cls, value):
        if not value:
            return ["bodyweight"]
        return list(value)

    @field_validator("secondary_goals", mode="before")
    @classmethod
    def _default_secondary(cls, value):
        return list(value or [])

    def fitness_level(self, settings: EngineSettings | None = None) -> str:
        return skill_tier(self.skill_score, settings).capitalize()


class Round(BaseModel):
    index: int = Field(ge=1)
    exercise_name: str
    muscle_group: str
    difficulty: str
    target: int = Field(ge=1)
    is_hold: bool = False
    alternates_sides: bool = False
    actual_reps: Optional[int] = None
    actual_seconds: Optional[int] = None
    actual_load: Optional[float] = None
    target_load: Optional[float] = None
    skipped: bool = False
    pr_attempt: bool = False
    pr_modality: Optional[Modality] = None
    id: Optional[str] = None

    def actual_value(self) -> float:
        """Reported quantity in the round's own unit, falling back to the target."""
        if self.is_hold:
            value = self.actual_seconds if self.actual_seconds is not None else self.actual_reps
        else:
            value = self.actual_reps if self.actual_reps is not None else self.actual_seconds
        return float(self.target if value is None else value)


class Session(BaseModel):
    id: Optional[str] = None
    framework: FrameworkId = "EMOM"
    duration_minutes: int = Field(1, ge=1)
    difficulty_tag: Difficulty = "intermediate"
    focus_label: str = "General Fitness"
    perceived_exertion: Optional[int] = Field(None, ge=1, le=5)
    completed: bool = True
    created_at: datetime.datetime = Field(default_factory=_utcnow)
    rounds: list[Round] = Field(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def _created_utc(cls, value):
        return _as_utc(value)


class ExerciseStat(BaseModel):
    exercise_name: str
    accept_count: int = 0
    skip_count: int = 0
    completion_count: int = 0
    quality_sum: float = 0.0


class PersonalRecord(BaseModel):
    exercise_name: str
    modality: Modality
    value: float
    unit: str
    session_id: Optional[str] = None
    round_id: Optional[str] = None
    achieved_at: datetime.datetime = Field(default_factory=_utcnow)


class PrCelebration(BaseModel):
    exercise_name: str
    modality: Modality
    value: float
    unit: str
    previous_value: Optional[float] = None
    type: Literal["new", "near_miss"]


class RecoveryRecord(BaseModel):
    muscle_group: str
    recovery_score: float = Field(0.0, ge=0.0, le=1.0)
    last_worked_at: datetime.datetime
    intensity: float = Field(0.5, ge=0.0, le=1.0)

    @field_validator("last_worked_at")
    @classmethod
    def _worked_utc(cls, value):
        return _as_utc(value)


class MasteryRecord(BaseModel):
    exercise_name: str
    mastery_score: int = Field(0, ge=0, le=100)
    total_attempts: int = 0
    successful_attempts: int = 0
    last_updated: datetime.datetime = Field(default_factory=_utcnow)


class FrameworkPreference(BaseModel):
    framework: FrameworkId
    preference_score: float = Field(0.5, ge=0.0, le=1.0)
    completion_rate: float = 1.0
    average_rpe: Optional[float] = None
    last_used_at: Optional[datetime.datetime] = None


class Rationale(BaseModel):
    framework: str = ""
    intensity: str = ""
    exercise_selection: str = ""


class PrAttempt(BaseModel):
    index: int
    exercise_name: str
    modality: Modality


class PrPlan(BaseModel):
    ready: bool
    reason: str
    attempts: list[PrAttempt] = Field(default_factory=list)


class Workout(BaseModel):
    framework: FrameworkId
    duration_minutes: int = Field(ge=1)
    difficulty_tag: Difficulty
    focus_label: str
    rounds: list[Round]
    muscle_load: dict[str, int] = Field(default_factory=dict)
    volume_breakdown: dict[str, int] = Field(default_factory=dict)
    work_seconds: Optional[int] = None
    rest_seconds: Optional[int] = None
    sets: Optional[int] = None
    total_rounds: Optional[int] = None
    pr_plan: Optional[PrPlan] = None
    intent: Optional[SessionIntent] = None
    rationale: Rationale = Field(default_factory=Rationale)
