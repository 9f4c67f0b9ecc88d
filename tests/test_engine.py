import datetime
import os
import random
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from engine import WorkoutEngine
from models import FRAMEWORKS, Profile, RecoveryRecord, Round, Session, SessionIntent

NOW = datetime.datetime(2026, 3, 10, 12, 0, tzinfo=datetime.timezone.utc)


def _streak_history(days=3) -> list[Session]:
    return [Session(created_at=NOW - datetime.timedelta(days=d)) for d in range(days)]


class EngineGenerateTest(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = WorkoutEngine()
        self.profile = Profile(skill_score=50, equipment=["bodyweight"], primary_goal="cardio_endurance")

    def test_fragile_streak_shortens_workout(self) -> None:
        workout = self.engine.generate(self.profile, [], framework="EMOM", rng=random.Random(1), now=NOW)
        self.assertGreaterEqual(workout.duration_minutes, 16)
        self.assertLessEqual(workout.duration_minutes, 24)
        self.assertEqual(len(workout.rounds), workout.duration_minutes)
        self.assertIn("Streak-aware", workout.rationale.intensity)
        self.assertTrue(all(a.index <= len(workout.rounds) for a in workout.pr_plan.attempts))

    def test_stable_streak_keeps_duration(self) -> None:
        workout = self.engine.generate(
            self.profile, _streak_history(), framework="EMOM", rng=random.Random(1), now=NOW
        )
        self.assertGreaterEqual(workout.duration_minutes, 20)
        self.assertLessEqual(workout.duration_minutes, 30)
        self.assertNotIn("Streak-aware", workout.rationale.intensity)
        self.assertFalse(workout.pr_plan.ready)

    def test_framework_is_chosen(self) -> None:
        for seed in range(10):
            workout = self.engine.generate(self.profile, [], rng=random.Random(seed), now=NOW)
            self.assertIn(workout.framework, FRAMEWORKS)
            self.assertTrue(workout.rationale.framework)

    def test_intent_framework_wins(self) -> None:
        intent = SessionIntent(framework="AMRAP")
        fw, reason = self.engine.choose_framework(self.profile, [], intent, random.Random(2))
        self.assertEqual(fw, "AMRAP")
        self.assertIn("requested", reason)

    def test_recovery_steers_selection(self) -> None:
        records = [
            RecoveryRecord(muscle_group=group, last_worked_at=NOW, intensity=1.0)
            for group in ("legs", "full-body")
        ]
        workout = self.engine.generate(
            Profile(skill_score=90),
            _streak_history(),
            recovery_records=records,
            framework="EMOM",
            rng=random.Random(3),
            now=NOW,
        )
        for name in (r.exercise_name for r in workout.rounds):
            self.assertNotIn(name, ("Squat Jumps", "Burpees"))


class EngineReportTest(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = WorkoutEngine()

    def test_recovery_report(self) -> None:
        records = [RecoveryRecord(muscle_group="legs", last_worked_at=NOW, intensity=0.5)]
        report = self.engine.recovery_report(records, NOW)
        self.assertEqual(report["legs"]["recovery"], 0.0)
        self.assertTrue(report["legs"]["avoid"])
        self.assertEqual(report["legs"]["penalty"], 0.1)
        self.assertEqual(report["chest"]["recovery"], 1.0)
        self.assertFalse(report["chest"]["avoid"])

    def test_streak_report(self) -> None:
        report = self.engine.streak_report(_streak_history(4), NOW.date())
        self.assertEqual(report["current_streak"], 4)
        self.assertIn("4-day", report["message"])

    def test_weekly_report(self) -> None:
        rnd = Round(index=1, exercise_name="Air Squats", muscle_group="legs",
                    difficulty="beginner", target=20, actual_reps=20)
        history = [Session(rounds=[rnd], created_at=NOW)]
        report = self.engine.weekly_report(history, NOW.date())
        self.assertEqual(report["week_start"], "2026-03-09")
        self.assertEqual(report["muscle_groups"]["legs"]["volume"], 20)
        self.assertEqual(report["volume_breakdown"]["legs"], 20)
        self.assertIn("push", report["gaps"])
        self.assertEqual(report["contrast_day"]["recommended"][0], "chest")
        self.assertEqual(report["volume_bias"]["legs"], 1.0)
        self.assertEqual(report["optimal_time_block"], "afternoon")
        self.assertEqual(report["time_blocks"]["afternoon"]["sample_size"], 1)
        self.assertEqual(report["time_blocks"]["morning"]["sample_size"], 0)

    def test_microcycle(self) -> None:
        plan = self.engine.microcycle(Profile(primary_goal="fat_loss"), NOW.date())
        self.assertEqual(plan["template"], "fat_loss")
        self.assertIn(plan["framework"], FRAMEWORKS)

    def test_process_session(self) -> None:
        rnd = Round(index=1, exercise_name="Push-ups", muscle_group="chest",
                    difficulty="beginner", target=10, actual_reps=10)
        session = Session(rounds=[rnd], perceived_exertion=3, created_at=NOW)
        result = self.engine.process_session(Profile(skill_score=40), session)
        self.assertEqual(result.skill_score, 40)
        self.assertEqual(result.streak.current_streak, 1)
        self.assertEqual(len(result.personal_records.new_records), 1)


if __name__ == "__main__":
    unittest.main()
