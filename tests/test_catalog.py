import os
import random
import sys
import tempfile
import unittest

import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from catalog import DEFAULT_EXERCISES, ExerciseCatalog


class ExerciseCatalogTest(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = ExerciseCatalog()

    def test_empty_catalog_raises(self) -> None:
        with self.assertRaises(ValueError):
            ExerciseCatalog([])

    def test_default_catalog(self) -> None:
        self.assertEqual(len(self.catalog.exercises), len(DEFAULT_EXERCISES))
        names = [ex.name for ex in DEFAULT_EXERCISES]
        self.assertEqual(len(names), len(set(names)))
        self.assertIsNotNone(self.catalog.find("Burpees"))
        self.assertIsNone(self.catalog.find("Unknown"))
        self.assertIn("legs", self.catalog.muscle_groups())

    def test_migrate_equipment(self) -> None:
        self.assertEqual(
            ExerciseCatalog.migrate_equipment(["None (Bodyweight)", "Kettlebell", "Box"]),
            {"bodyweight", "kettlebells", "step_or_box"},
        )
        self.assertEqual(ExerciseCatalog.migrate_equipment(None), {"bodyweight"})
        self.assertEqual(ExerciseCatalog.migrate_equipment([]), {"bodyweight"})

    def test_eligible_respects_equipment_and_tier(self) -> None:
        rng = random.Random(3)
        for ex in self.catalog.eligible("intermediate", ["bodyweight"], rng):
            self.assertEqual(ex.equipment, ("bodyweight",))
            self.assertNotEqual(ex.difficulty, "advanced")
        advanced = self.catalog.eligible("advanced", ["dumbbells"], rng)
        self.assertIn("Dumbbell Thrusters", [ex.name for ex in advanced])

    def test_beginner_tier_admits_some_intermediate(self) -> None:
        rng = random.Random(7)
        admitted = 0
        total = 0
        for _ in range(200):
            pool = self.catalog.eligible("beginner", ["bodyweight"], rng)
            self.assertFalse(any(ex.difficulty == "advanced" for ex in pool))
            admitted += sum(1 for ex in pool if ex.difficulty == "intermediate")
            total += 3
        self.assertGreater(admitted, 0)
        self.assertLess(admitted, total)

    def test_is_high_intensity(self) -> None:
        find = self.catalog.find
        self.assertTrue(ExerciseCatalog.is_high_intensity(find("Dumbbell Thrusters")))
        self.assertTrue(ExerciseCatalog.is_high_intensity(find("Squat Jumps")))
        self.assertTrue(ExerciseCatalog.is_high_intensity(find("Dumbbell Rows")))
        self.assertFalse(ExerciseCatalog.is_high_intensity(find("Air Squats")))
        self.assertFalse(ExerciseCatalog.is_high_intensity(find("Plank Hold")))

    def test_matching_categories(self) -> None:
        pool = ExerciseCatalog.matching_categories(DEFAULT_EXERCISES, ["mobility"])
        self.assertTrue(pool)
        self.assertTrue(all(ex.categories.mobility for ex in pool))

    def test_from_yaml(self) -> None:
        data = [
            {
                "name": "Wall Sit",
                "muscle_group": "legs",
                "difficulty": "beginner",
                "equipment": ["bodyweight"],
                "targets": {"beginner": 30, "intermediate": 45, "advanced": 60},
                "is_hold": True,
            }
        ]
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "catalog.yaml")
            with open(path, "w", encoding="utf-8") as f:
                yaml.safe_dump({"exercises": data}, f)
            catalog = ExerciseCatalog.from_yaml(path)
        self.assertEqual(len(catalog), 1)
        self.assertTrue(catalog.find("Wall Sit").is_hold)


if __name__ == "__main__":
    unittest.main()
