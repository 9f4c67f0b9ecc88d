import argparse
import datetime
import json
import logging
import random
import sys
from typing import Optional

import yaml

from catalog import ExerciseCatalog
from config import APP_VERSION, YamlConfig, load_engine_settings
from engine import WorkoutEngine
from models import (
    ExerciseStat,
    MasteryRecord,
    PersonalRecord,
    Profile,
    RecoveryRecord,
    Session,
    SessionIntent,
)


def load_data(path: Optional[str], default=None):
    """Read a JSON or YAML document, returning ``default`` if no path is given."""
    if not path:
        return default
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return default if data is None else data


def _items(path: Optional[str], model) -> list:
    return [model(**item) for item in load_data(path, [])]


def _dump(data) -> None:
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def build_engine(settings_path: Optional[str], catalog_path: Optional[str]) -> WorkoutEngine:
    settings = load_engine_settings(settings_path)
    catalog = ExerciseCatalog.from_yaml(catalog_path, settings) if catalog_path else None
    return WorkoutEngine(catalog=catalog, settings=settings)


def generate(args: argparse.Namespace, engine: WorkoutEngine) -> None:
    intent = load_data(args.intent)
    workout = engine.generate(
        Profile(**load_data(args.profile, {})),
        _items(args.history, Session),
        intent=SessionIntent(**intent) if intent else None,
        recovery_records=_items(args.recovery, RecoveryRecord),
        mastery_records=_items(args.mastery, MasteryRecord),
        exercise_stats=_items(args.stats, ExerciseStat),
        framework=args.framework,
        rng=random.Random(args.seed),
        max_duration=args.max_duration,
    )
    _dump(workout)


def feedback(args: argparse.Namespace, engine: WorkoutEngine) -> None:
    result = engine.process_session(
        Profile(**load_data(args.profile, {})),
        Session(**load_data(args.session, {})),
        _items(args.history, Session),
        recovery_records=_items(args.recovery, RecoveryRecord),
        mastery_records=_items(args.mastery, MasteryRecord),
        exercise_stats=_items(args.stats, ExerciseStat),
        personal_records=_items(args.records, PersonalRecord),
    )
    _dump(result)


def list_catalog(args: argparse.Namespace, engine: WorkoutEngine) -> None:
    if args.name:
        exercise = engine.catalog.find(args.name)
        if exercise is None:
            raise ValueError(f"unknown exercise: {args.name}")
        exercises = [exercise]
    elif args.tier:
        exercises = engine.catalog.eligible(args.tier, args.equipment, random.Random(args.seed))
    else:
        exercises = list(engine.catalog.exercises)
    _dump([ex.model_dump(mode="json") for ex in exercises])


def show_settings(args: argparse.Namespace, engine: WorkoutEngine) -> None:
    data = engine.settings.model_dump()
    if args.export:
        YamlConfig(args.export).save(data)
        print(f"Settings exported to {args.export}")
    else:
        _dump(data)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Interval workout engine")
    parser.add_argument("--settings", help="YAML file with tuning overrides")
    parser.add_argument("--catalog", help="YAML exercise catalog")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=APP_VERSION)
    sub = parser.add_subparsers(dest="cmd", required=True)

    gen = sub.add_parser("generate")
    gen.add_argument("--profile", required=True)
    gen.add_argument("--history")
    gen.add_argument("--intent")
    gen.add_argument("--recovery")
    gen.add_argument("--mastery")
    gen.add_argument("--stats")
    gen.add_argument("--framework", choices=["EMOM", "Tabata", "AMRAP", "Circuit"])
    gen.add_argument("--max-duration", dest="max_duration", type=int)
    gen.add_argument("--seed", type=int)

    fb = sub.add_parser("feedback")
    fb.add_argument("--profile", required=True)
    fb.add_argument("--session", required=True)
    fb.add_argument("--history")
    fb.add_argument("--recovery")
    fb.add_argument("--mastery")
    fb.add_argument("--stats")
    fb.add_argument("--records")

    rec = sub.add_parser("recovery")
    rec.add_argument("--records", required=True)

    cat = sub.add_parser("catalog")
    cat.add_argument("--tier", choices=["beginner", "intermediate", "advanced"])
    cat.add_argument("--equipment", nargs="*", default=None)
    cat.add_argument("--seed", type=int)
    cat.add_argument("--name", help="show a single exercise")

    st = sub.add_parser("settings")
    st.add_argument("--export", help="write the effective settings to a YAML file")

    streak = sub.add_parser("streak")
    streak.add_argument("--history", required=True)

    weekly = sub.add_parser("weekly")
    weekly.add_argument("--history", required=True)
    weekly.add_argument("--date", type=datetime.date.fromisoformat)

    plan = sub.add_parser("plan")
    plan.add_argument("--profile", required=True)
    plan.add_argument("--date", type=datetime.date.fromisoformat)

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        engine = build_engine(args.settings, args.catalog)
        if args.cmd == "generate":
            generate(args, engine)
        elif args.cmd == "feedback":
            feedback(args, engine)
        elif args.cmd == "recovery":
            _dump(engine.recovery_report(_items(args.records, RecoveryRecord)))
        elif args.cmd == "catalog":
            list_catalog(args, engine)
        elif args.cmd == "settings":
            show_settings(args, engine)
        elif args.cmd == "streak":
            _dump(engine.streak_report(_items(args.history, Session)))
        elif args.cmd == "weekly":
            _dump(engine.weekly_report(_items(args.history, Session), args.date))
        elif args.cmd == "plan":
            _dump(engine.microcycle(Profile(**load_data(args.profile, {})), args.date))
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
