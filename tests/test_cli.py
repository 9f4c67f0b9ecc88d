import contextlib
import io
import json
import os
import sys
import tempfile
import unittest

import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import cli
from config import load_engine_settings


class CliTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.profile = self._write(
            "profile.json",
            {"skill_score": 50, "equipment": ["bodyweight"], "primary_goal": "cardio_endurance"},
        )

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _write(self, name, data) -> str:
        path = os.path.join(self.tmp.name, name)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        return path

    def _run(self, *argv):
        out = io.StringIO()
        err = io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = cli.main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def test_generate(self) -> None:
        code, out, _ = self._run(
            "generate", "--profile", self.profile, "--framework", "AMRAP", "--seed", "3"
        )
        self.assertEqual(code, 0)
        workout = json.loads(out)
        self.assertEqual(workout["framework"], "AMRAP")
        self.assertTrue(workout["rounds"])

    def test_generate_with_intent(self) -> None:
        intent = self._write("intent.json", {"framework": "Circuit", "energy_level": "low"})
        code, out, _ = self._run("generate", "--profile", self.profile, "--intent", intent, "--seed", "1")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["framework"], "Circuit")

    def test_feedback(self) -> None:
        session = self._write(
            "session.json",
            {
                "id": "s1",
                "framework": "EMOM",
                "perceived_exertion": 3,
                "created_at": "2026-03-10T12:00:00+00:00",
                "rounds": [
                    {
                        "index": 1,
                        "exercise_name": "Push-ups",
                        "muscle_group": "chest",
                        "difficulty": "beginner",
                        "target": 10,
                        "actual_reps": 12,
                    }
                ],
            },
        )
        code, out, _ = self._run("feedback", "--profile", self.profile, "--session", session)
        self.assertEqual(code, 0)
        result = json.loads(out)
        self.assertGreater(result["skill_score"], 50)
        self.assertEqual(result["recovery_records"][0]["muscle_group"], "chest")

    def test_reports(self) -> None:
        history = self._write("history.json", [{"created_at": "2026-03-10T08:00:00+00:00"}])
        code, out, _ = self._run("streak", "--history", history)
        self.assertEqual(code, 0)
        self.assertIn("current_streak", json.loads(out))
        code, out, _ = self._run("weekly", "--history", history, "--date", "2026-03-10")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["week_start"], "2026-03-09")
        code, out, _ = self._run("plan", "--profile", self.profile, "--date", "2026-03-10")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["template"], "cardio_endurance")
        records = self._write(
            "recovery.json", [{"muscle_group": "legs", "last_worked_at": "2026-03-10T08:00:00+00:00"}]
        )
        code, out, _ = self._run("recovery", "--records", records)
        self.assertEqual(code, 0)
        self.assertIn("legs", json.loads(out))

    def test_catalog(self) -> None:
        code, out, _ = self._run("catalog", "--tier", "advanced", "--equipment", "bodyweight")
        self.assertEqual(code, 0)
        exercises = json.loads(out)
        self.assertTrue(all(ex["equipment"] == ["bodyweight"] for ex in exercises))

    def test_catalog_lookup_by_name(self) -> None:
        code, out, _ = self._run("catalog", "--name", "Plank Hold")
        self.assertEqual(code, 0)
        exercises = json.loads(out)
        self.assertEqual([ex["name"] for ex in exercises], ["Plank Hold"])
        self.assertTrue(exercises[0]["is_hold"])
        code, _, err = self._run("catalog", "--name", "Moonwalk")
        self.assertEqual(code, 1)
        self.assertIn("unknown exercise", err)

    def test_settings_export(self) -> None:
        overrides = os.path.join(self.tmp.name, "engine.yaml")
        with open(overrides, "w", encoding="utf-8") as f:
            yaml.safe_dump({"insights_window": 5}, f)
        exported = os.path.join(self.tmp.name, "exported.yaml")
        code, out, _ = self._run("--settings", overrides, "settings", "--export", exported)
        self.assertEqual(code, 0)
        self.assertIn("exported", out)
        settings = load_engine_settings(exported)
        self.assertEqual(settings.insights_window, 5)
        self.assertEqual(settings.equipment_bonus_steps, {3: 1, 6: 2})
        code, out, _ = self._run("settings")
        self.assertEqual(json.loads(out)["insights_window"], 8)

    def test_settings_and_catalog_files(self) -> None:
        settings = os.path.join(self.tmp.name, "engine.yaml")
        with open(settings, "w", encoding="utf-8") as f:
            yaml.safe_dump({"pr_max_attempts": 0}, f)
        code, out, _ = self._run(
            "--settings", settings, "generate", "--profile", self.profile, "--framework", "EMOM", "--seed", "2"
        )
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["pr_plan"]["attempts"], [])

    def test_missing_file_fails(self) -> None:
        code, _, err = self._run("generate", "--profile", os.path.join(self.tmp.name, "nope.json"))
        self.assertEqual(code, 1)
        self.assertIn("error:", err)

    def test_invalid_settings_fail(self) -> None:
        settings = os.path.join(self.tmp.name, "engine.yaml")
        with open(settings, "w", encoding="utf-8") as f:
            yaml.safe_dump({"insights_window": 0}, f)
        code, _, err = self._run("--settings", settings, "catalog")
        self.assertEqual(code, 1)
        self.assertIn("error:", err)

    def test_invalid_profile_fails(self) -> None:
        bad = self._write("bad.json", {"skill_score": "lots"})
        code, _, _ = self._run("generate", "--profile", bad)
        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
