from __future__ import annotations
import datetime
import math
from collections import Counter
from typing import Iterable, Optional

import pandas as pd

from models import Round, Session

UPPER_BODY = ["chest", "back", "shoulders", "triceps", "biceps"]
LOWER_BODY = ["legs", "core"]
CARDIO = ["cardio", "full-body"]


def week_start(day: datetime.date | datetime.datetime) -> datetime.date:
    """Return the Monday of the week containing ``day``."""
    if isinstance(day, datetime.datetime):
        day = day.date()
    return day - datetime.timedelta(days=day.weekday())


def rounds_frame(sessions: Iterable[Session]) -> pd.DataFrame:
    """Flatten non-skipped rounds into one row per round."""
    rows = []
    for pos, session in enumerate(sessions):
        for rnd in session.rounds:
            if rnd.skipped:
                continue
            if rnd.is_hold:
                volume = rnd.actual_seconds if rnd.actual_seconds is not None else rnd.target
            else:
                volume = rnd.actual_reps if rnd.actual_reps is not None else rnd.target
            rows.append(
                {
                    "session": session.id or f"#{pos}",
                    "week": week_start(session.created_at),
                    "muscle_group": rnd.muscle_group,
                    "volume": volume,
                }
            )
    return pd.DataFrame(rows, columns=["session", "week", "muscle_group", "volume"])


def weekly_volume(
    sessions: Iterable[Session], week: datetime.date
) -> dict[str, dict[str, int]]:
    """Volume and session count per muscle group for the week starting ``week``."""
    df = rounds_frame(sessions)
    if df.empty:
        return {}
    df = df[df["week"] == week_start(week)]
    if df.empty:
        return {}
    grouped = df.groupby("muscle_group").agg(
        volume=("volume", "sum"), sessions=("session", "nunique")
    )
    return {
        group: {"volume": int(row["volume"]), "sessions": int(row["sessions"])}
        for group, row in grouped.iterrows()
    }


def volume_bias(volumes: dict[str, dict[str, int]], muscle_group: str) -> float:
    """Selection multiplier favouring muscle groups below the weekly average."""
    if not volumes:
        return 1.0
    average = sum(v["volume"] for v in volumes.values()) / len(volumes)
    if average == 0:
        return 1.0
    ratio = volumes.get(muscle_group, {"volume": 0})["volume"] / average
    if ratio < 0.5:
        return 1.5
    if ratio < 0.8:
        return 1.2
    if ratio > 1.5:
        return 0.7
    if ratio > 1.2:
        return 0.9
    return 1.0


def contrast_day(volumes: dict[str, dict[str, int]]) -> dict[str, list[str]] | None:
    """Recommend the underworked region of the week, or ``None`` if balanced."""
    if not volumes:
        return None

    def total(groups: list[str]) -> int:
        return sum(volumes.get(g, {"volume": 0})["volume"] for g in groups)

    upper = total(UPPER_BODY)
    lower = total(LOWER_BODY)
    cardio = total(CARDIO)
    threshold = max(upper, lower, cardio) * 0.3
    if upper < threshold and lower > threshold:
        return {"recommended": list(UPPER_BODY), "avoid": list(LOWER_BODY)}
    if lower < threshold and upper > threshold:
        return {"recommended": list(LOWER_BODY), "avoid": list(UPPER_BODY)}
    if cardio < threshold and (upper > threshold or lower > threshold):
        return {"recommended": list(CARDIO), "avoid": UPPER_BODY + LOWER_BODY}
    return None


VOLUME_BUCKETS: tuple[str, ...] = ("push", "pull", "legs", "core", "other")


def bucket_muscle_group(group: str | None) -> str:
    if not group:
        return "other"
    name = group.lower()
    if any(key in name for key in ("leg", "glute", "quad", "posterior")):
        return "legs"
    if any(key in name for key in ("chest", "shoulder", "tricep", "press")):
        return "push"
    if any(key in name for key in ("back", "pull", "row")):
        return "pull"
    if any(key in name for key in ("core", "abs", "oblique")):
        return "core"
    return "other"


def volume_breakdown(rounds: Iterable[Round]) -> dict[str, int]:
    """Effort units per push/pull/legs/core/other bucket."""
    totals = {bucket: 0 for bucket in VOLUME_BUCKETS}
    for rnd in rounds:
        effort = rnd.actual_reps if rnd.actual_reps is not None else rnd.target
        totals[bucket_muscle_group(rnd.muscle_group)] += max(effort, 0)
    return totals


SECONDS_PER_REP = 3


def round_seconds(rnd: Round) -> int:
    """Working seconds of one interval, both sides counted for alternating moves."""
    if rnd.is_hold:
        return rnd.target
    seconds = rnd.target * SECONDS_PER_REP
    return seconds * 2 if rnd.alternates_sides else seconds


def circuit_minutes(rounds: Iterable[Round], passes: int, rest_seconds: int, minimum: int) -> int:
    total = sum(round_seconds(r) for r in rounds) * passes + (passes - 1) * rest_seconds
    return max(minimum, math.ceil(total / 60))


def structural_minutes(
    framework: str, rounds: list[Round], passes: int, rest_seconds: int, minimum: int
) -> Optional[int]:
    """Length set by the workout's structure, or None for time-boxed frameworks."""
    if framework == "Tabata":
        return max(minimum, len(rounds) * 4)
    if framework == "Circuit":
        return circuit_minutes(rounds, passes, rest_seconds, minimum)
    return None


def workout_load(rounds: Iterable[Round], passes: int = 1) -> tuple[dict[str, int], dict[str, int]]:
    """Intervals per muscle group and bucket volume over every pass."""
    rounds = list(rounds)
    load = Counter()
    for rnd in rounds:
        load[rnd.muscle_group] += passes
    volume = {bucket: value * passes for bucket, value in volume_breakdown(rounds).items()}
    return dict(load), volume


def volume_gaps(volume: dict[str, int]) -> list[str]:
    """Buckets below 60% of the busiest bucket."""
    peak = max(volume.values(), default=0)
    if peak == 0:
        return []
    return [bucket for bucket, value in volume.items() if value < peak * 0.6]
