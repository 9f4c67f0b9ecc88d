import math
import random
from typing import Iterable, Sequence, TypeVar
import numpy as np

T = TypeVar("T")


class MathTools:
    """Provides the numeric helpers shared by the signal models and the planner."""

    HIT_RATE_CAP: float = 1.5
    SECONDS_PER_DAY: int = 86400

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def mean(values: Iterable[float], default: float = 0.0) -> float:
        """Return the arithmetic mean of ``values`` or ``default`` if empty."""
        data = list(values)
        if not data:
            return default
        return float(np.mean(np.array(data, dtype=float)))

    @staticmethod
    def std_dev(values: Iterable[float]) -> float:
        """Return the population standard deviation of ``values``."""
        data = list(values)
        if not data:
            return 0.0
        return float(np.std(np.array(data, dtype=float)))

    @staticmethod
    def coefficient_of_variation(values: Iterable[float]) -> float:
        """Return the coefficient of variation for ``values``."""
        data = list(values)
        if len(data) < 2:
            return 0.0
        mean = MathTools.mean(data)
        if mean == 0:
            return 0.0
        return MathTools.std_dev(data) / mean

    @staticmethod
    def linear_regression_slope(y: Sequence[float]) -> float:
        """Least-squares slope of ``y`` against the positions 1..n."""
        n = len(y)
        if n < 2:
            return 0.0
        x = np.arange(1, n + 1, dtype=float)
        arr = np.array(y, dtype=float)
        denom = n * float(np.sum(x**2)) - float(np.sum(x)) ** 2
        if denom == 0:
            return 0.0
        return (n * float(np.sum(x * arr)) - float(np.sum(x)) * float(np.sum(arr))) / denom

    @staticmethod
    def hit_rate(actual: float, target: float, cap: float = HIT_RATE_CAP) -> float:
        """Ratio of achieved to targeted quantity, capped at ``cap``."""
        target = target or 1
        return min(actual / target, cap)

    @staticmethod
    def half_life_decay(age_days: float, half_life_days: float) -> float:
        """Exponential decay weight for something ``age_days`` old."""
        if half_life_days <= 0:
            raise ValueError("half_life_days must be positive")
        return 0.5 ** (max(age_days, 0.0) / half_life_days)

    @staticmethod
    def weighted_choice(
        items: Sequence[T], weights: Sequence[float], rng: random.Random
    ) -> T:
        """Pick one of ``items`` with probability proportional to ``weights``."""
        if not items:
            raise ValueError("items must not be empty")
        if len(items) != len(weights):
            raise ValueError("items and weights must have the same length")
        total = float(sum(max(w, 0.0) for w in weights))
        if total <= 0 or math.isnan(total):
            return items[rng.randrange(len(items))]
        roll = rng.random() * total
        cumulative = 0.0
        for item, weight in zip(items, weights):
            cumulative += max(weight, 0.0)
            if roll < cumulative:
                return item
        return items[-1]
