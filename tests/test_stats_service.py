import datetime
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import ExerciseStat, Round, Session
from stats_service import StatisticsService

NOW = datetime.datetime(2026, 3, 10, 12, 0, tzinfo=datetime.timezone.utc)


def _round(index, name="Push-ups", group="chest", target=10, actual=10, skipped=False) -> Round:
    return Round(
        index=index,
        exercise_name=name,
        muscle_group=group,
        difficulty="beginner",
        target=target,
        actual_reps=None if skipped else actual,
        skipped=skipped,
    )


def _session(rounds, hours_ago=24, rpe=None) -> Session:
    return Session(
        rounds=rounds,
        perceived_exertion=rpe,
        created_at=NOW - datetime.timedelta(hours=hours_ago),
    )


class BuildInsightsTest(unittest.TestCase):
    def setUp(self) -> None:
        self.stats = StatisticsService()

    def test_empty_history_is_neutral(self) -> None:
        insights = self.stats.build_insights([])
        self.assertEqual(insights.average_hit_rate, 1.0)
        self.assertEqual(insights.skip_rate, 0.0)
        self.assertIsNone(insights.average_rpe)
        self.assertEqual(insights.fatigue_trend, 0.0)
        self.assertEqual(insights.sample_sessions, 0)
        self.assertIsNone(insights.optimal_time_block)
        self.assertEqual(insights.muscle_preference("legs"), 1.0)
        self.assertEqual(insights.exercise_utility("Burpees"), 1.0)

    def test_skips_excluded_from_hit_rate(self) -> None:
        session = _session(
            [_round(1, actual=8), _round(2, actual=12), _round(3, skipped=True)], rpe=4
        )
        insights = self.stats.build_insights([session])
        self.assertAlmostEqual(insights.average_hit_rate, 1.0)
        self.assertAlmostEqual(insights.skip_rate, 1 / 3)
        self.assertEqual(insights.average_rpe, 4.0)
        self.assertAlmostEqual(insights.fatigue_trend, 1 / 6 + 0.2)

    def test_window_limits_sessions(self) -> None:
        sessions = [_session([_round(1)], hours_ago=24 * i) for i in range(1, 11)]
        insights = self.stats.build_insights(sessions, window=3)
        self.assertEqual(insights.sample_sessions, 3)
        self.assertEqual(self.stats.build_insights(sessions).sample_sessions, 8)

    def test_muscle_preference_is_clamped(self) -> None:
        strong = _session([_round(1, group="legs", name="Air Squats", actual=20)])
        weak = _session([_round(1, group="chest", actual=2)])
        insights = self.stats.build_insights([strong, weak])
        self.assertAlmostEqual(insights.muscle_preference("legs"), 1.3)
        self.assertAlmostEqual(insights.muscle_preference("chest"), 0.8)

    def test_hit_rate_is_capped(self) -> None:
        insights = self.stats.build_insights([_session([_round(1, actual=100)])])
        self.assertAlmostEqual(insights.average_hit_rate, 1.5)


class SessionSummaryTest(unittest.TestCase):
    def setUp(self) -> None:
        self.stats = StatisticsService()

    def test_movements_keyed_by_exercise(self) -> None:
        summary = self.stats.summarize_session(
            [
                _round(1, name="Push-ups", actual=5),
                _round(2, name="Air Squats", group="legs", skipped=True),
            ],
            perceived_exertion=3,
        )
        self.assertAlmostEqual(summary.average_hit_rate, 0.5)
        self.assertAlmostEqual(summary.skip_rate, 0.5)
        self.assertAlmostEqual(summary.movements["Push-ups"].hit_rate, 0.5)
        self.assertAlmostEqual(summary.movements["Air Squats"].skip_rate, 1.0)
        self.assertEqual(summary.average_rpe, 3.0)

    def test_time_blocks(self) -> None:
        day = datetime.datetime(2026, 3, 10, tzinfo=datetime.timezone.utc)
        self.assertEqual(StatisticsService.time_block(day.replace(hour=8)), "morning")
        self.assertEqual(StatisticsService.time_block(day.replace(hour=13)), "afternoon")
        self.assertEqual(StatisticsService.time_block(day.replace(hour=19)), "evening")

    def test_optimal_time_block(self) -> None:
        morning = Session(
            rounds=[_round(1, actual=12)],
            created_at=datetime.datetime(2026, 3, 9, 7, 0, tzinfo=datetime.timezone.utc),
        )
        evening = Session(
            rounds=[_round(1, actual=6)],
            created_at=datetime.datetime(2026, 3, 8, 20, 0, tzinfo=datetime.timezone.utc),
        )
        insights = self.stats.build_insights([morning, evening])
        self.assertEqual(insights.optimal_time_block, "morning")
        self.assertEqual(insights.performance_by_block["afternoon"].sample_size, 0)


class ExerciseStatsTest(unittest.TestCase):
    def setUp(self) -> None:
        self.stats = StatisticsService()

    def test_aggregate_and_merge(self) -> None:
        outcomes = self.stats.aggregate_exercise_outcomes(
            [_round(1), _round(2, skipped=True), _round(3, name="Lunges", group="legs")]
        )
        by_name = {s.exercise_name: s for s in outcomes}
        self.assertEqual(by_name["Push-ups"].accept_count, 1)
        self.assertEqual(by_name["Push-ups"].skip_count, 1)
        existing = [ExerciseStat(exercise_name="Push-ups", accept_count=2, completion_count=2, quality_sum=2.0)]
        merged = {s.exercise_name: s for s in StatisticsService.merge_exercise_stats(existing, outcomes)}
        self.assertEqual(merged["Push-ups"].accept_count, 3)
        self.assertEqual(merged["Lunges"].completion_count, 1)
        self.assertEqual(existing[0].accept_count, 2)

    def test_exercise_utility(self) -> None:
        insights = self.stats.build_insights([_session([_round(1)])])
        self.assertAlmostEqual(insights.exercise_utility("Push-ups"), 1.2)
        skipped = self.stats.build_insights([_session([_round(1, skipped=True)])])
        self.assertAlmostEqual(skipped.exercise_utility("Push-ups"), 0.85)


if __name__ == "__main__":
    unittest.main()
