import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict

import numpy as np


class Outcome(str, Enum):
    HOME = "HOME"
    DRAW = "DRAW"
    AWAY = "AWAY"

    @classmethod
    def from_goals(cls, home_goals: int, away_goals: int) -> "Outcome":
        if home_goals > away_goals:
            return cls.HOME
        if home_goals < away_goals:
            return cls.AWAY
        return cls.DRAW

    @property
    def position(self) -> int:
        """Column index in a (home, draw, away) probability vector."""
        return OUTCOME_ORDER.index(self)


OUTCOME_ORDER = (Outcome.HOME, Outcome.DRAW, Outcome.AWAY)


class Confidence(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class Probabilities:
    """A home/draw/away probability triple."""

    home: float
    draw: float
    away: float

    @classmethod
    def uniform(cls) -> "Probabilities":
        return cls(home=1 / 3, draw=1 / 3, away=1 / 3)

    def get(self, outcome: Outcome) -> float:
        return getattr(self, outcome.value.lower())

    def as_array(self) -> np.ndarray:
        return np.array([self.home, self.draw, self.away], dtype=float)

    def max_outcome(self) -> Outcome:
        """Most probable outcome; ties resolve HOME, then DRAW."""
        if self.home >= self.draw and self.home >= self.away:
            return Outcome.HOME
        if self.draw >= self.away:
            return Outcome.DRAW
        return Outcome.AWAY

    @property
    def max_probability(self) -> float:
        return max(self.home, self.draw, self.away)

    def is_valid(self) -> bool:
        """True when every component is finite and strictly inside (0, 1)."""
        return all(
            math.isfinite(p) and 0 < p < 1 for p in (self.home, self.draw, self.away)
        )

    def blend(self, other: "Probabilities", alpha: float) -> "Probabilities":
        """Return alpha * self + (1 - alpha) * other."""
        return Probabilities(
            home=alpha * self.home + (1 - alpha) * other.home,
            draw=alpha * self.draw + (1 - alpha) * other.draw,
            away=alpha * self.away + (1 - alpha) * other.away,
        )

    def to_dict(self, digits: int = None) -> Dict[str, float]:
        values = {"home": self.home, "draw": self.draw, "away": self.away}
        if digits is None:
            return values
        return {k: round(v, digits) for k, v in values.items()}


@dataclass(frozen=True)
class MarketProbabilities(Probabilities):
    """Margin-free market probabilities plus the raw overround they came from."""

    overround: float = 1.0

    def to_dict(self, digits: int = None) -> Dict[str, float]:
        values = super().to_dict(digits)
        values["overround"] = (
            self.overround if digits is None else round(self.overround, digits)
        )
        return values


@dataclass(frozen=True)
class BestOdds:
    """Best decimal price per outcome across all bookmakers for one fixture."""

    best_home: float
    best_draw: float
    best_away: float

    def get(self, outcome: Outcome) -> float:
        return {
            Outcome.HOME: self.best_home,
            Outcome.DRAW: self.best_draw,
            Outcome.AWAY: self.best_away,
        }[outcome]

    def is_valid(self) -> bool:
        return all(
            odd is not None and math.isfinite(odd) and odd > 1.0
            for odd in (self.best_home, self.best_draw, self.best_away)
        )


@dataclass(frozen=True)
class ExpectedGoals:
    lambda_home: float
    lambda_away: float
