from __future__ import annotations
import datetime
import logging
import random
from typing import Iterable, Optional

from algorithms.math_tools import MathTools
from models import FRAMEWORKS, FrameworkPreference, Session, SessionIntent
from settings_schema import EngineSettings, DEFAULT_SETTINGS
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


class FrameworkService:
    """Score frameworks from history and choose the next one."""

    RECENCY_SESSIONS = 5

    def __init__(
        self,
        settings: EngineSettings | None = None,
        stats: StatisticsService | None = None,
    ) -> None:
        self.settings = settings or DEFAULT_SETTINGS
        self.stats = stats or StatisticsService(self.settings)

    def score(
        self,
        framework: str,
        sessions: Iterable[Session],
        now: datetime.datetime | None = None,
    ) -> FrameworkPreference:
        """Preference for ``framework``; neutral 0.5 without any session."""
        mine = [s for s in self.stats.newest_first(sessions) if s.framework == framework]
        if not mine:
            return FrameworkPreference(framework=framework)
        now = now or datetime.datetime.now(datetime.timezone.utc)
        completed = [s for s in mine if s.completed]
        completion = len(completed) / len(mine)
        summaries = [self.stats.summarize_session(s.rounds, s.perceived_exertion) for s in completed]
        hit = MathTools.mean((s.average_hit_rate for s in summaries), default=1.0)
        normalized_hit = min(hit / self.settings.hit_rate_cap, 1.0)
        rpes = [s.average_rpe for s in summaries if s.average_rpe is not None]
        rpe = MathTools.mean(rpes) if rpes else None
        inverted_rpe = 1 - rpe / 5 if rpe is not None else 0.5
        half_life = self.settings.framework_recency_half_life_days
        recency = MathTools.mean(
            MathTools.half_life_decay(
                (now - s.created_at).total_seconds() / MathTools.SECONDS_PER_DAY, half_life
            )
            for s in mine[: self.RECENCY_SESSIONS]
        )
        value = completion * 0.4 + normalized_hit * 0.3 + inverted_rpe * 0.2 + recency * 0.1
        return FrameworkPreference(
            framework=framework,
            preference_score=MathTools.clamp(value, 0.0, 1.0),
            completion_rate=completion,
            average_rpe=rpe,
            last_used_at=mine[0].created_at,
        )

    def preferences(
        self, sessions: Iterable[Session], now: datetime.datetime | None = None
    ) -> dict[str, FrameworkPreference]:
        sessions = list(sessions)
        used = {s.framework for s in sessions}
        return {fw: self.score(fw, sessions, now) for fw in FRAMEWORKS if fw in used}

    def select(
        self,
        goal_framework: Optional[str],
        preferences: dict[str, FrameworkPreference],
        rng: random.Random,
    ) -> tuple[str, str]:
        """Explore, keep a well-liked goal framework, or take the best scorer.

        Returns the framework and a short rationale.
        """
        if rng.random() < self.settings.framework_exploration:
            choice = FRAMEWORKS[rng.randrange(len(FRAMEWORKS))]
            logger.debug("framework exploration picked %s", choice)
            return choice, f"Exploring {choice} to keep training varied."
        threshold = self.settings.framework_preference_threshold
        if goal_framework:
            pref = preferences.get(goal_framework)
            if pref and pref.preference_score >= threshold:
                return goal_framework, (
                    f"{goal_framework} matches your goal and scores "
                    f"{pref.preference_score:.2f} from past sessions."
                )
        order = list(FRAMEWORKS)
        if goal_framework in order:
            order.remove(goal_framework)
            order.insert(0, goal_framework)
        best = order[0]
        best_score = -1.0
        for fw in order:
            pref = preferences.get(fw)
            value = pref.preference_score if pref else 0.5
            if value > best_score:
                best, best_score = fw, value
        logger.debug("framework %s chosen with score %.2f", best, best_score)
        return best, f"{best} has the strongest track record ({best_score:.2f})."

    @staticmethod
    def preference_multiplier(
        framework: str, preferences: dict[str, FrameworkPreference]
    ) -> float:
        pref = preferences.get(framework)
        if pref is None:
            return 1.0
        return 0.7 + pref.preference_score * 0.6

    @staticmethod
    def steer_for_intent(framework: str, intent: SessionIntent | None) -> tuple[str, str | None]:
        """Swap Tabata for Circuit on low energy or recovery focused days."""
        if intent is None:
            return framework, None
        if intent.framework:
            return intent.framework, f"{intent.framework} requested for this session."
        focus = (intent.focus_today or "").lower()
        if framework == "Tabata" and (intent.energy_level == "low" or "mobility" in focus):
            return "Circuit", "Swapped Tabata for a Circuit to match today's lower intensity."
        return framework, None
