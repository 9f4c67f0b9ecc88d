import datetime
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms.progressive_overload import ProgressiveOverload
from models import Round, Session

NOW = datetime.datetime(2026, 3, 10, 12, 0, tzinfo=datetime.timezone.utc)


def _round(name="Push-ups", target=10, actual=12, hold=False) -> Round:
    return Round(
        index=1,
        exercise_name=name,
        muscle_group="core" if hold else "chest",
        difficulty="beginner",
        target=target,
        is_hold=hold,
        actual_reps=None if hold else actual,
        actual_seconds=actual if hold else None,
    )


def _history(count, **kwargs) -> list[Session]:
    return [
        Session(rounds=[_round(**kwargs)], created_at=NOW - datetime.timedelta(days=d))
        for d in range(1, count + 1)
    ]


class ProgressiveOverloadTest(unittest.TestCase):
    def setUp(self) -> None:
        self.overload = ProgressiveOverload()

    def test_requires_full_window(self) -> None:
        self.assertFalse(self.overload.qualifies("Push-ups", _history(2)))
        self.assertTrue(self.overload.qualifies("Push-ups", _history(3)))

    def test_requires_strict_overperformance(self) -> None:
        self.assertFalse(self.overload.qualifies("Push-ups", _history(3, actual=11)))
        history = _history(3)
        history[0] = Session(rounds=[_round(actual=10)], created_at=NOW)
        self.assertFalse(self.overload.qualifies("Push-ups", history))

    def test_rep_adjustment(self) -> None:
        adj = self.overload.adjustment("Push-ups", _history(3))
        self.assertIsNotNone(adj)
        self.assertAlmostEqual(adj.rep_increase, 0.1)
        self.assertEqual(adj.seconds_increase, 0)

    def test_rep_increase_is_clamped(self) -> None:
        adj = self.overload.adjustment("Push-ups", _history(3, actual=15))
        self.assertAlmostEqual(adj.rep_increase, 0.2)
        self.assertLessEqual(self.overload.adjustment("Push-ups", _history(3), 0).rep_increase, 0.1)

    def test_hold_adjustment(self) -> None:
        history = _history(3, name="Plank Hold", target=30, actual=36, hold=True)
        adj = self.overload.adjustment("Plank Hold", history)
        self.assertEqual(adj.seconds_increase, 2)

    def test_apply_bumps_targets(self) -> None:
        rounds = [_round(target=10), _round(target=20), _round(name="Lunges", target=10)]
        updated, adjustments = self.overload.apply(rounds, _history(3))
        self.assertEqual([r.target for r in updated], [11, 22, 10])
        self.assertEqual([a.exercise_name for a in adjustments], ["Push-ups"])
        self.assertEqual(rounds[0].target, 10)

    def test_apply_increase_is_at_least_one(self) -> None:
        updated, _ = self.overload.apply([_round(target=2)], _history(3))
        self.assertEqual(updated[0].target, 3)

    def test_candidates(self) -> None:
        history = _history(3)
        self.assertEqual([a.exercise_name for a in self.overload.candidates(history)], ["Push-ups"])
        self.assertEqual(self.overload.candidates([]), [])


if __name__ == "__main__":
    unittest.main()
