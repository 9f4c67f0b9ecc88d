from __future__ import annotations
import logging
import random
from typing import Iterable

import yaml

from models import DIFFICULTY_ORDER, Categories, Exercise, TierTargets
from settings_schema import EngineSettings, DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

EQUIPMENT_IDS: tuple[str, ...] = (
    "bodyweight",
    "dumbbells",
    "kettlebells",
    "resistance_bands",
    "barbell",
    "pull_up_bar",
    "bench",
    "medicine_ball",
    "jump_rope",
    "treadmill",
    "stationary_bike",
    "rower",
    "elliptical",
    "sliders",
    "step_or_box",
    "weight_machines",
)

# Labels stored by older profiles.
LEGACY_EQUIPMENT: dict[str, str] = {
    "None (Bodyweight)": "bodyweight",
    "Dumbbells": "dumbbells",
    "Kettlebell": "kettlebells",
    "Pull-up Bar": "pull_up_bar",
    "Jump Rope": "jump_rope",
    "Box": "step_or_box",
}


def _ex(
    name: str,
    muscle_group: str,
    difficulty: str,
    equipment: str,
    targets: tuple[int, int, int],
    categories: str = "",
    hold: bool = False,
    sides: bool = False,
) -> Exercise:
    b, i, a = targets
    return Exercise(
        name=name,
        muscle_group=muscle_group,
        difficulty=difficulty,
        equipment=tuple(equipment.split()),
        targets=TierTargets(beginner=b, intermediate=i, advanced=a),
        is_hold=hold,
        alternates_sides=sides,
        categories=Categories(**{c: 1 for c in categories.split()}),
    )


DEFAULT_EXERCISES: tuple[Exercise, ...] = (
    # bodyweight
    _ex("Burpees", "full-body", "intermediate", "bodyweight", (8, 12, 15), "compound cardio plyometric"),
    _ex("Air Squats", "legs", "beginner", "bodyweight", (15, 25, 35), "compound"),
    _ex("Push-ups", "chest", "beginner", "bodyweight", (10, 20, 30), "compound"),
    _ex("Mountain Climbers", "core", "intermediate", "bodyweight", (20, 30, 40), "cardio", sides=True),
    _ex("Plank Hold", "core", "beginner", "bodyweight", (30, 45, 60), hold=True),
    _ex("Side Plank", "core", "beginner", "bodyweight", (20, 30, 40), hold=True, sides=True),
    _ex("Jumping Jacks", "cardio", "beginner", "bodyweight", (20, 30, 40), "cardio"),
    _ex("Lunges", "legs", "beginner", "bodyweight", (10, 16, 24), "compound", sides=True),
    _ex("High Knees", "cardio", "beginner", "bodyweight", (20, 30, 40), "cardio"),
    _ex("Squat Jumps", "legs", "intermediate", "bodyweight", (8, 12, 16), "compound plyometric"),
    _ex("Inchworms", "full-body", "beginner", "bodyweight", (6, 8, 10), "mobility"),
    _ex("World's Greatest Stretch", "full-body", "beginner", "bodyweight", (4, 6, 8), "mobility", sides=True),
    _ex("Cat-Cow", "back", "beginner", "bodyweight", (8, 10, 12), "mobility"),
    _ex("Deep Squat Hold", "legs", "beginner", "bodyweight", (30, 45, 60), "mobility", hold=True),
    _ex("Dead Bug", "core", "beginner", "bodyweight", (10, 14, 20), sides=True),
    # dumbbells
    _ex("Dumbbell Thrusters", "full-body", "advanced", "dumbbells", (8, 12, 15), "compound cardio"),
    _ex("Dumbbell Goblet Squats", "legs", "intermediate", "dumbbells", (10, 15, 20), "compound"),
    _ex("Dumbbell Rows", "back", "intermediate", "dumbbells", (8, 12, 16), "compound", sides=True),
    _ex("Dumbbell Snatches", "full-body", "advanced", "dumbbells", (6, 10, 14), "compound plyometric", sides=True),
    _ex("Dumbbell Shoulder Press", "shoulders", "intermediate", "dumbbells", (8, 12, 16), "compound"),
    _ex("Dumbbell Lunges", "legs", "intermediate", "dumbbells", (8, 12, 16), "compound", sides=True),
    # kettlebells
    _ex("Kettlebell Swings", "posterior-chain", "intermediate", "kettlebells", (12, 20, 30), "compound cardio"),
    _ex("Kettlebell Goblet Squats", "legs", "intermediate", "kettlebells", (10, 15, 20), "compound"),
    _ex("Kettlebell Clean & Press", "full-body", "advanced", "kettlebells", (6, 10, 14), "compound", sides=True),
    _ex("Kettlebell Turkish Get-ups", "full-body", "advanced", "kettlebells", (4, 6, 10), "compound mobility", sides=True),
    _ex("Kettlebell Snatches", "full-body", "advanced", "kettlebells", (6, 10, 14), "compound plyometric", sides=True),
    # resistance bands
    _ex("Band Pull-aparts", "shoulders", "beginner", "resistance_bands", (15, 20, 25), "mobility"),
    _ex("Band Squats", "legs", "beginner", "resistance_bands", (15, 20, 25), "compound"),
    _ex("Band Rows", "back", "beginner", "resistance_bands", (12, 15, 20), "compound"),
    _ex("Band Chest Press", "chest", "intermediate", "resistance_bands", (10, 15, 20), "compound"),
    # barbell
    _ex("Barbell Thrusters", "full-body", "advanced", "barbell", (8, 12, 15), "compound cardio"),
    _ex("Barbell Front Squats", "legs", "advanced", "barbell", (8, 12, 15), "compound"),
    _ex("Barbell Deadlifts", "posterior-chain", "intermediate", "barbell", (8, 12, 15), "compound"),
    _ex("Barbell Push Press", "shoulders", "intermediate", "barbell", (8, 12, 15), "compound plyometric"),
    _ex("Barbell Rows", "back", "intermediate", "barbell", (8, 12, 15), "compound"),
    # pull-up bar
    _ex("Pull-ups", "back", "advanced", "pull_up_bar", (3, 8, 12), "compound"),
    _ex("Chin-ups", "back", "advanced", "pull_up_bar", (3, 8, 12), "compound"),
    _ex("Hanging Knee Raises", "core", "intermediate", "pull_up_bar", (8, 12, 16)),
    _ex("Toes to Bar", "core", "advanced", "pull_up_bar", (5, 10, 15)),
    # bench
    _ex("Bench Dips", "triceps", "beginner", "bench", (10, 15, 20)),
    _ex("Box Jumps (Bench)", "legs", "intermediate", "bench", (8, 12, 16), "plyometric"),
    _ex("Incline Push-ups", "chest", "beginner", "bench", (12, 18, 25), "compound"),
    # medicine ball
    _ex("Med Ball Slams", "full-body", "intermediate", "medicine_ball", (10, 15, 20), "compound cardio plyometric"),
    _ex("Med Ball Wall Balls", "full-body", "intermediate", "medicine_ball", (10, 15, 20), "compound cardio"),
    _ex("Med Ball Russian Twists", "core", "intermediate", "medicine_ball", (20, 30, 40), sides=True),
    _ex("Med Ball Chest Pass", "chest", "beginner", "medicine_ball", (15, 20, 25), "plyometric"),
    # jump rope
    _ex("Double Unders", "cardio", "advanced", "jump_rope", (20, 40, 60), "cardio plyometric"),
    _ex("Single Unders", "cardio", "beginner", "jump_rope", (40, 60, 80), "cardio"),
    # cardio machines, targets in seconds
    _ex("Treadmill Sprint Intervals", "cardio", "intermediate", "treadmill", (30, 45, 60), "cardio", hold=True),
    _ex("Treadmill Incline Run", "cardio", "intermediate", "treadmill", (45, 60, 75), "cardio", hold=True),
    _ex("Bike Sprint Intervals", "cardio", "intermediate", "stationary_bike", (30, 45, 60), "cardio", hold=True),
    _ex("Bike Hill Climbs", "cardio", "intermediate", "stationary_bike", (45, 60, 75), "cardio", hold=True),
    _ex("Rowing Sprint Intervals", "cardio", "intermediate", "rower", (30, 45, 60), "cardio compound", hold=True),
    _ex("Elliptical Sprint Intervals", "cardio", "beginner", "elliptical", (30, 45, 60), "cardio", hold=True),
    # sliders
    _ex("Slider Mountain Climbers", "core", "intermediate", "sliders", (20, 30, 40), "cardio", sides=True),
    _ex("Slider Pike", "core", "advanced", "sliders", (8, 12, 16)),
    _ex("Slider Lunges", "legs", "intermediate", "sliders", (10, 15, 20), "compound", sides=True),
    # step or box
    _ex("Box Jumps", "legs", "intermediate", "step_or_box", (8, 12, 16), "plyometric"),
    _ex("Box Step-ups", "legs", "beginner", "step_or_box", (10, 16, 24), "compound", sides=True),
    _ex("Lateral Box Step-overs", "legs", "intermediate", "step_or_box", (10, 15, 20), "cardio plyometric"),
    # weight machines
    _ex("Lat Pulldown", "back", "beginner", "weight_machines", (10, 15, 20), "compound"),
    _ex("Leg Press", "legs", "beginner", "weight_machines", (12, 18, 25), "compound"),
    _ex("Cable Chest Flyes", "chest", "intermediate", "weight_machines", (10, 15, 20)),
)


class ExerciseCatalog:
    """Static exercise definitions plus the eligibility predicates used by the planner."""

    def __init__(
        self,
        exercises: Iterable[Exercise] = DEFAULT_EXERCISES,
        settings: EngineSettings | None = None,
    ) -> None:
        self.exercises: tuple[Exercise, ...] = tuple(exercises)
        if not self.exercises:
            raise ValueError("exercise catalog must not be empty")
        self.settings = settings or DEFAULT_SETTINGS
        self._by_name = {ex.name: ex for ex in self.exercises}

    @classmethod
    def from_yaml(cls, path: str, settings: EngineSettings | None = None) -> "ExerciseCatalog":
        """Load a catalog from a YAML list of exercise mappings."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or []
        if isinstance(data, dict):
            data = data.get("exercises", [])
        return cls((Exercise(**item) for item in data), settings=settings)

    def find(self, name: str) -> Exercise | None:
        return self._by_name.get(name)

    def muscle_groups(self) -> list[str]:
        return sorted({ex.muscle_group for ex in self.exercises})

    @staticmethod
    def migrate_equipment(equipment: Iterable[str] | None) -> set[str]:
        """Map legacy equipment labels to ids; missing equipment means bodyweight."""
        items = [LEGACY_EQUIPMENT.get(item, item) for item in (equipment or [])]
        return set(items) or {"bodyweight"}

    @staticmethod
    def has_equipment(exercise: Exercise, equipment: set[str]) -> bool:
        return all(item in equipment for item in exercise.equipment)

    @staticmethod
    def is_high_intensity(exercise: Exercise) -> bool:
        """Advanced, plyometric, or compound above the beginner tier."""
        if exercise.difficulty == "advanced":
            return True
        if exercise.categories.plyometric:
            return True
        return bool(exercise.categories.compound) and exercise.difficulty != "beginner"

    def eligible(
        self,
        tier: str,
        equipment: Iterable[str] | None,
        rng: random.Random,
    ) -> list[Exercise]:
        """Return exercises usable with ``equipment`` at difficulty ``tier``.

        At the beginner tier intermediate exercises are admitted individually
        with a fixed probability so the pool does not become too sparse.
        """
        available = self.migrate_equipment(equipment)
        limit = DIFFICULTY_ORDER[tier]
        admit = self.settings.beginner_intermediate_admit_probability
        result: list[Exercise] = []
        for ex in self.exercises:
            if not self.has_equipment(ex, available):
                continue
            level = DIFFICULTY_ORDER[ex.difficulty]
            if level > limit + (1 if tier == "beginner" else 0):
                continue
            if tier == "beginner" and level == 1 and rng.random() >= admit:
                continue
            result.append(ex)
        return result

    @staticmethod
    def matching_categories(exercises: Iterable[Exercise], categories: Iterable[str]) -> list[Exercise]:
        wanted = tuple(categories)
        return [ex for ex in exercises if any(getattr(ex.categories, c) for c in wanted)]
