from __future__ import annotations
import datetime
import random
from typing import Optional

from pydantic import BaseModel, ConfigDict

from algorithms.math_tools import MathTools
from models import CATEGORIES, FRAMEWORKS, FrameworkPreference


class GoalConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    framework_bias: dict[str, float]
    intensity_bias: str
    preferred_durations: tuple[int, int]
    rest_multiplier: float
    exercise_bias: dict[str, float]


class FrameworkConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    full_name: str
    default_duration: int
    duration_range: tuple[int, int]
    intensity_level: str


def _goal(gid, label, fw, intensity, durations, rest, bias) -> GoalConfig:
    return GoalConfig(
        id=gid,
        label=label,
        framework_bias=dict(zip(FRAMEWORKS, fw)),
        intensity_bias=intensity,
        preferred_durations=durations,
        rest_multiplier=rest,
        exercise_bias=dict(zip(CATEGORIES, bias)),
    )


# framework bias order: EMOM, Tabata, AMRAP, Circuit
# exercise bias order: compound, cardio, plyometric, mobility
PRIMARY_GOALS: dict[str, GoalConfig] = {
    g.id: g
    for g in (
        _goal("cardio_endurance", "Cardio & Endurance", (0.25, 0.1, 0.15, 0.5), "moderate", (20, 35), 1.0, (0.4, 0.9, 0.3, 0.2)),
        _goal("fat_loss", "Fat Loss", (0.25, 0.35, 0.15, 0.25), "moderate", (12, 25), 0.85, (0.5, 0.8, 0.6, 0.2)),
        _goal("muscle_gain", "Muscle Gain", (0.4, 0.1, 0.15, 0.35), "moderate", (20, 30), 1.2, (0.9, 0.2, 0.3, 0.2)),
        _goal("metabolic_conditioning", "Metabolic Conditioning", (0.35, 0.35, 0.2, 0.1), "high", (12, 25), 0.8, (0.7, 0.7, 0.6, 0.1)),
        _goal("mobility_recovery", "Mobility & Recovery", (0.15, 0.05, 0.05, 0.75), "low", (10, 20), 1.4, (0.2, 0.1, 0.05, 0.95)),
        _goal("strength_power", "Strength & Power", (0.4, 0.1, 0.2, 0.3), "moderate", (10, 25), 1.3, (0.9, 0.2, 0.6, 0.2)),
        _goal("athletic_performance", "Athletic Performance", (0.35, 0.2, 0.2, 0.25), "high", (15, 30), 1.1, (0.8, 0.4, 0.8, 0.3)),
    )
}

FRAMEWORK_CONFIGS: dict[str, FrameworkConfig] = {
    "EMOM": FrameworkConfig(id="EMOM", full_name="Every Minute On the Minute", default_duration=20, duration_range=(8, 30), intensity_level="moderate"),
    "Tabata": FrameworkConfig(id="Tabata", full_name="Tabata Protocol", default_duration=8, duration_range=(8, 12), intensity_level="high"),
    "AMRAP": FrameworkConfig(id="AMRAP", full_name="As Many Rounds As Possible", default_duration=15, duration_range=(8, 20), intensity_level="moderate"),
    "Circuit": FrameworkConfig(id="Circuit", full_name="Circuit Training", default_duration=25, duration_range=(10, 40), intensity_level="low"),
}

LEGACY_GOALS: dict[str, str] = {
    "cardio": "cardio_endurance",
    "strength": "strength_power",
    "metcon": "metabolic_conditioning",
}

NEUTRAL_BIAS: dict[str, float] = {c: 0.25 for c in CATEGORIES}


def get_goal(goal_id: Optional[str]) -> GoalConfig | None:
    if not goal_id:
        return None
    return PRIMARY_GOALS.get(goal_id)


def migrate_legacy_goal(goal_focus: Optional[str]) -> str | None:
    if not goal_focus:
        return None
    return LEGACY_GOALS.get(goal_focus.lower())


def build_goal_weights(
    primary_goal: Optional[str], secondary_goals: list[str] | None = None
) -> dict[str, float]:
    """Primary goal gets 0.6, secondaries share 0.4, then normalized to sum 1.

    Unknown goal ids are ignored. Returns an empty mapping without a known goal.
    """
    weights: dict[str, float] = {}
    if get_goal(primary_goal):
        weights[primary_goal] = 0.6
    known = [g for g in (secondary_goals or []) if get_goal(g) and g != primary_goal]
    if known:
        share = 0.4 / len(known)
        for g in known:
            weights[g] = weights.get(g, 0.0) + share
    total = sum(weights.values())
    if total <= 0:
        return {}
    return {g: w / total for g, w in weights.items()}


def combined_exercise_bias(goal_weights: dict[str, float]) -> dict[str, float]:
    """Blend goal exercise biases by weight; neutral without any known goal."""
    combined = {c: 0.0 for c in CATEGORIES}
    used = 0.0
    for goal_id, weight in goal_weights.items():
        cfg = get_goal(goal_id)
        if cfg is None or weight <= 0:
            continue
        used += weight
        for c in CATEGORIES:
            combined[c] += cfg.exercise_bias[c] * weight
    if used <= 0:
        return dict(NEUTRAL_BIAS)
    return {c: v / used for c, v in combined.items()}


def combined_rest_multiplier(goal_weights: dict[str, float]) -> float:
    multiplier = 0.0
    for goal_id, weight in goal_weights.items():
        cfg = get_goal(goal_id)
        if cfg and weight > 0:
            multiplier += cfg.rest_multiplier * weight
    return multiplier or 1.0


def dominant_goal(
    primary_goal: Optional[str], goal_weights: dict[str, float] | None = None
) -> str | None:
    if goal_weights:
        goal_id, weight = max(goal_weights.items(), key=lambda item: item[1])
        if weight > 0 and get_goal(goal_id):
            return goal_id
    return primary_goal if get_goal(primary_goal) else None


def pick_framework_for_goal(
    goal_id: Optional[str],
    rng: random.Random,
    preferences: dict[str, FrameworkPreference] | None = None,
    variety: float = 0.25,
) -> tuple[str, dict[str, float], str]:
    """Weighted framework pick from goal bias and past framework success.

    Returns the framework, the normalized weights and a rationale string.
    """
    cfg = get_goal(goal_id)
    bias = cfg.framework_bias if cfg else {fw: 0.25 for fw in FRAMEWORKS}
    variety = MathTools.clamp(variety, 0.0, 1.0)
    raw: dict[str, float] = {}
    for fw in FRAMEWORKS:
        pref = (preferences or {}).get(fw)
        boost = 0.7 + pref.preference_score * 0.6 if pref else 1.0
        raw[fw] = max(0.01, bias[fw] * boost * (1 - variety) + variety / 4)
    total = sum(raw.values()) or 1.0
    weights = {fw: w / total for fw, w in raw.items()}
    chosen = MathTools.weighted_choice(list(FRAMEWORKS), [weights[fw] for fw in FRAMEWORKS], rng)
    if cfg:
        reason = (
            f"{cfg.label} bias favored {chosen} with {round(weights[chosen] * 100)}% weight "
            f"and variety {round(variety * 100)}%."
        )
    else:
        reason = f"Balanced framework weights; variety {round(variety * 100)}%."
    return chosen, weights, reason


# (framework, minutes, intensity, focus)
MICROCYCLES: dict[str, list[tuple[str, int, str, str]]] = {
    "cardio_endurance": [
        ("Circuit", 25, "moderate", "Aerobic base builder"),
        ("EMOM", 18, "moderate", "Engine control"),
        ("Tabata", 10, "high", "VO2 intervals"),
        ("Circuit", 20, "low", "Mobility and prehab"),
        ("AMRAP", 20, "moderate", "Sustainable pacing"),
        ("EMOM", 22, "high", "Threshold conditioning"),
        ("Circuit", 18, "low", "Active recovery"),
        ("AMRAP", 18, "moderate", "Mixed modal endurance"),
        ("Tabata", 8, "high", "Speed work"),
        ("Circuit", 22, "moderate", "Longer aerobic finish"),
    ],
    "fat_loss": [
        ("Tabata", 12, "high", "Opener sprint day"),
        ("Circuit", 22, "moderate", "Steady burn"),
        ("EMOM", 16, "moderate", "Density training"),
        ("Circuit", 18, "low", "Low-impact recovery"),
        ("Tabata", 10, "high", "Intervals"),
        ("AMRAP", 15, "moderate", "Mixed modal"),
        ("Circuit", 20, "moderate", "Finish strong"),
    ],
    "muscle_gain": [
        ("Circuit", 26, "moderate", "Full-body hypertrophy"),
        ("EMOM", 22, "moderate", "Strength density"),
        ("Circuit", 24, "moderate", "Accessory volume"),
        ("Tabata", 8, "high", "Metabolic finisher"),
        ("Circuit", 20, "low", "Mobility and tissue work"),
        ("AMRAP", 18, "moderate", "Pump endurance"),
        ("EMOM", 20, "moderate", "Pressing focus"),
        ("Circuit", 24, "moderate", "Leg volume"),
    ],
    "strength_power": [
        ("EMOM", 18, "moderate", "Skill primer"),
        ("Circuit", 24, "moderate", "Strength volume"),
        ("Tabata", 8, "high", "Power intervals"),
        ("Circuit", 18, "low", "Recovery and mobility"),
        ("EMOM", 22, "high", "Heavy density"),
        ("AMRAP", 16, "moderate", "Work capacity"),
        ("Circuit", 20, "moderate", "Accessory strength"),
    ],
    "metabolic_conditioning": [
        ("Tabata", 10, "high", "Lactate tolerance"),
        ("EMOM", 18, "moderate", "Engine control"),
        ("Circuit", 20, "moderate", "Mixed modal"),
        ("Tabata", 8, "high", "Speed endurance"),
        ("Circuit", 18, "low", "Movement quality"),
        ("AMRAP", 18, "moderate", "Sustainable pace"),
        ("EMOM", 20, "high", "Threshold"),
        ("Circuit", 22, "moderate", "Mixed volume"),
        ("Tabata", 12, "high", "Finisher"),
        ("Circuit", 18, "low", "Deload"),
    ],
    "mobility_recovery": [
        ("Circuit", 18, "low", "Mobility prep"),
        ("EMOM", 15, "low", "Technique practice"),
        ("Circuit", 20, "low", "Core and balance"),
        ("AMRAP", 14, "moderate", "Sustainable flow"),
        ("Circuit", 18, "low", "Tissue care"),
        ("EMOM", 16, "low", "Form work"),
        ("Circuit", 20, "low", "Easy conditioning"),
    ],
    "athletic_performance": [
        ("EMOM", 18, "moderate", "Power skills"),
        ("Circuit", 22, "moderate", "Strength accessory"),
        ("Tabata", 8, "high", "Speed work"),
        ("Circuit", 18, "low", "Mobility and footwork"),
        ("AMRAP", 18, "moderate", "Athletic mixed modal"),
        ("EMOM", 20, "high", "Explosive density"),
        ("Circuit", 20, "moderate", "Strength support"),
        ("Tabata", 10, "high", "Anaerobic intervals"),
        ("Circuit", 18, "low", "Reset and recover"),
    ],
}

DEFAULT_MICROCYCLE: list[tuple[str, int, str, str]] = [
    ("Circuit", 20, "moderate", "General Fitness"),
    ("EMOM", 16, "moderate", "General Fitness"),
    ("Tabata", 8, "high", "General Fitness"),
    ("Circuit", 18, "low", "General Fitness"),
    ("AMRAP", 16, "moderate", "General Fitness"),
    ("EMOM", 20, "high", "General Fitness"),
    ("Circuit", 18, "low", "General Fitness"),
]


def microcycle_day(
    primary_goal: Optional[str],
    goal_weights: dict[str, float] | None = None,
    date: datetime.date | None = None,
) -> dict:
    """Return the microcycle day plan for ``date`` of the dominant goal."""
    goal_id = dominant_goal(primary_goal, goal_weights)
    days = MICROCYCLES.get(goal_id, DEFAULT_MICROCYCLE) if goal_id else DEFAULT_MICROCYCLE
    date = date or datetime.date.today()
    index = date.toordinal() % len(days)
    framework, minutes, intensity, focus = days[index]
    return {
        "template": goal_id or "general_fitness",
        "day_index": index,
        "framework": framework,
        "duration_minutes": minutes,
        "intensity": intensity,
        "focus": focus,
    }
