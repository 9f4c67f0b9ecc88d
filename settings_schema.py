from pydantic import BaseModel, Field, ValidationError, model_validator


class EngineSettings(BaseModel):
    """Tuning constants for the generation engine and the feedback loop."""

    # difficulty resolution
    beginner_max_skill: float = 35.0
    intermediate_max_skill: float = 70.0
    beginner_intermediate_admit_probability: float = Field(0.3, ge=0.0, le=1.0)

    # personalization window
    insights_window: int = Field(8, ge=1)
    hit_rate_cap: float = Field(1.5, gt=0.0)
    muscle_preference_min: float = 0.8
    muscle_preference_max: float = 1.3

    # duration
    duration_tuning_min: float = 0.85
    duration_tuning_max: float = 1.2
    energy_multipliers: dict[str, float] = {"low": 0.9, "moderate": 1.0, "high": 1.1}
    difficulty_duration_nudge: dict[str, int] = {
        "beginner": -2,
        "intermediate": 0,
        "advanced": 2,
    }
    equipment_bonus_steps: dict[int, int] = {3: 1, 6: 2}

    # selection
    recency_window: int = Field(4, ge=0)
    severe_recovery_threshold: float = 0.35
    full_recovery_threshold: float = 0.8
    high_intensity_recovery_floor: float = 0.15
    recovery_floor: float = 0.4
    category_weight: float = 10.0
    novelty_multiplier: float = 10.0
    usage_penalty: float = 1.5
    epsilon: dict[str, float] = {
        "EMOM": 0.12,
        "Tabata": 0.15,
        "AMRAP": 0.15,
        "Circuit": 0.12,
    }

    # quantity
    quantity_multiplier_min: float = 0.75
    quantity_multiplier_max: float = 1.3

    # recovery model
    recovery_base_hours: dict[str, float] = {
        "cardio": 24.0,
        "full-body": 24.0,
        "chest": 48.0,
        "back": 48.0,
        "legs": 48.0,
        "shoulders": 48.0,
        "triceps": 48.0,
        "biceps": 48.0,
        "core": 48.0,
    }
    default_recovery_hours: float = Field(36.0, gt=0.0)

    # skill update
    skill_window: int = Field(6, ge=1)
    skill_delta_limit: float = Field(12.0, gt=0.0)

    # progressive overload
    overload_window: int = Field(3, ge=1)
    overload_hit_rate: float = 1.1

    # personal records
    pr_near_miss_ratio: float = Field(0.95, gt=0.0, le=1.0)
    pr_opportunity_ratio: float = Field(0.9, gt=0.0, le=1.0)
    pr_min_rest_hours: float = 20.0
    pr_max_fatigue: float = 0.65
    pr_max_skip_rate: float = 0.25
    pr_max_rpe: float = 3.6
    pr_max_attempts: int = Field(2, ge=0)
    pr_warmup_intervals: int = Field(2, ge=0)

    # framework preference
    framework_exploration: float = Field(0.15, ge=0.0, le=1.0)
    framework_preference_threshold: float = 0.6
    framework_recency_half_life_days: float = Field(30.0, gt=0.0)
    framework_variety: float = Field(0.25, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "EngineSettings":
        if self.beginner_max_skill > self.intermediate_max_skill:
            raise ValueError("beginner_max_skill must not exceed intermediate_max_skill")
        for low, high in (
            (self.muscle_preference_min, self.muscle_preference_max),
            (self.duration_tuning_min, self.duration_tuning_max),
            (self.quantity_multiplier_min, self.quantity_multiplier_max),
            (self.severe_recovery_threshold, self.full_recovery_threshold),
        ):
            if low > high:
                raise ValueError("lower bound must not exceed upper bound")
        for name, value in self.epsilon.items():
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"epsilon for {name} must be within [0, 1]")
        return self


DEFAULT_SETTINGS = EngineSettings()


def validate_settings(data: dict) -> EngineSettings:
    try:
        return EngineSettings(**data)
    except ValidationError as e:
        raise ValueError(str(e))
