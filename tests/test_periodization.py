import datetime
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms.periodization import (
    LOWER_BODY,
    UPPER_BODY,
    bucket_muscle_group,
    circuit_minutes,
    contrast_day,
    round_seconds,
    structural_minutes,
    volume_bias,
    volume_breakdown,
    volume_gaps,
    week_start,
    weekly_volume,
    workout_load,
)
from models import Round, Session

NOW = datetime.datetime(2026, 3, 10, 12, 0, tzinfo=datetime.timezone.utc)


def _round(group, reps, skipped=False) -> Round:
    return Round(
        index=1,
        exercise_name=f"{group} move",
        muscle_group=group,
        difficulty="beginner",
        target=10,
        actual_reps=reps,
        skipped=skipped,
    )


class WeeklyVolumeTest(unittest.TestCase):
    def test_week_start(self) -> None:
        self.assertEqual(week_start(NOW), datetime.date(2026, 3, 9))
        self.assertEqual(week_start(datetime.date(2026, 3, 15)), datetime.date(2026, 3, 9))

    def test_weekly_volume(self) -> None:
        sessions = [
            Session(rounds=[_round("legs", 20), _round("chest", 5, skipped=True)], created_at=NOW),
            Session(rounds=[_round("legs", 20)], created_at=NOW - datetime.timedelta(days=1)),
            Session(rounds=[_round("legs", 99)], created_at=NOW - datetime.timedelta(days=7)),
        ]
        volumes = weekly_volume(sessions, NOW.date())
        self.assertEqual(volumes, {"legs": {"volume": 40, "sessions": 2}})

    def test_empty_week(self) -> None:
        self.assertEqual(weekly_volume([], NOW.date()), {})

    def test_volume_bias(self) -> None:
        volumes = {"legs": {"volume": 100, "sessions": 2}, "chest": {"volume": 20, "sessions": 1}}
        self.assertEqual(volume_bias(volumes, "chest"), 1.5)
        self.assertEqual(volume_bias(volumes, "legs"), 0.7)
        self.assertEqual(volume_bias({}, "legs"), 1.0)

    def test_contrast_day(self) -> None:
        lower_heavy = {"legs": {"volume": 100, "sessions": 2}}
        plan = contrast_day(lower_heavy)
        self.assertEqual(plan["recommended"], UPPER_BODY)
        self.assertEqual(plan["avoid"], LOWER_BODY)
        balanced = {
            "legs": {"volume": 50, "sessions": 1},
            "chest": {"volume": 50, "sessions": 1},
            "cardio": {"volume": 50, "sessions": 1},
        }
        self.assertIsNone(contrast_day(balanced))
        self.assertIsNone(contrast_day({}))


class VolumeBreakdownTest(unittest.TestCase):
    def test_buckets(self) -> None:
        self.assertEqual(bucket_muscle_group("posterior-chain"), "legs")
        self.assertEqual(bucket_muscle_group("shoulders"), "push")
        self.assertEqual(bucket_muscle_group("back"), "pull")
        self.assertEqual(bucket_muscle_group("core"), "core")
        self.assertEqual(bucket_muscle_group("cardio"), "other")
        self.assertEqual(bucket_muscle_group(None), "other")

    def test_breakdown_and_gaps(self) -> None:
        breakdown = volume_breakdown([_round("legs", 30), _round("chest", 10), _round("core", None)])
        self.assertEqual(breakdown, {"push": 10, "pull": 0, "legs": 30, "core": 10, "other": 0})
        self.assertEqual(volume_gaps(breakdown), ["push", "pull", "core", "other"])
        self.assertEqual(volume_gaps({"push": 0}), [])


class WorkoutStructureTest(unittest.TestCase):
    def test_round_seconds(self) -> None:
        self.assertEqual(round_seconds(_round("legs", None)), 30)
        lunges = _round("legs", None).model_copy(update={"alternates_sides": True})
        self.assertEqual(round_seconds(lunges), 60)
        plank = _round("core", None).model_copy(update={"is_hold": True, "target": 45})
        self.assertEqual(round_seconds(plank), 45)

    def test_structural_minutes(self) -> None:
        rounds = [_round("legs", None) for _ in range(3)]
        self.assertEqual(structural_minutes("Tabata", rounds, 1, 10, 8), 12)
        self.assertEqual(structural_minutes("Tabata", rounds[:1], 1, 10, 8), 8)
        self.assertEqual(structural_minutes("Circuit", rounds, 4, 60, 10), 10)
        self.assertEqual(circuit_minutes(rounds * 4, 4, 60, 10), 27)
        self.assertIsNone(structural_minutes("EMOM", rounds, 1, 0, 8))
        self.assertIsNone(structural_minutes("AMRAP", rounds, 1, 0, 8))

    def test_workout_load_counts_every_pass(self) -> None:
        load, volume = workout_load([_round("legs", 12), _round("chest", None)], passes=3)
        self.assertEqual(load, {"legs": 3, "chest": 3})
        self.assertEqual(volume["legs"], 36)
        self.assertEqual(volume["push"], 30)


if __name__ == "__main__":
    unittest.main()
