"""
Outcome probabilities from expected goals.

Home and away goals are modelled as independent Poisson variables on a
truncated score grid, with the Dixon-Coles correction applied to the four
low-score cells.
"""

import logging
import math
from typing import Optional, Sequence

import numpy as np
from scipy.optimize import minimize_scalar
from scipy.stats import poisson

from ..domains.shared.value_objects import ExpectedGoals, Probabilities
from .core import ModelConfig, TrainedModel

logger = logging.getLogger(__name__)


class DixonColesCalculator:
    """Poisson convolution with a low-score correlation adjustment."""

    def __init__(
        self,
        max_goals: int = 8,
        default_lambda_home: float = 1.3,
        default_lambda_away: float = 1.0,
    ):
        self.max_goals = max_goals
        self.default_lambda_home = default_lambda_home
        self.default_lambda_away = default_lambda_away

    @classmethod
    def from_config(cls, config: ModelConfig) -> "DixonColesCalculator":
        return cls(
            max_goals=config.max_goals,
            default_lambda_home=config.default_lambda_home,
            default_lambda_away=config.default_lambda_away,
        )

    @staticmethod
    def _guard(value: float, default: float) -> float:
        try:
            value = float(value)
        except (TypeError, ValueError):
            return default
        if not math.isfinite(value) or value <= 0:
            return default
        return value

    def score_matrix(
        self, lambda_home: float, lambda_away: float, rho: float = 0.0
    ) -> np.ndarray:
        """Probability of every (home goals, away goals) pair up to max_goals."""
        lambda_home = self._guard(lambda_home, self.default_lambda_home)
        lambda_away = self._guard(lambda_away, self.default_lambda_away)

        goals = np.arange(0, self.max_goals + 1)
        matrix = np.outer(
            poisson.pmf(goals, lambda_home), poisson.pmf(goals, lambda_away)
        )

        if rho and math.isfinite(rho):
            matrix[0, 0] *= 1 - rho * lambda_home * lambda_away
            matrix[1, 0] *= 1 + rho * lambda_away
            matrix[0, 1] *= 1 + rho * lambda_home
            matrix[1, 1] *= 1 - rho
            np.clip(matrix, 0.0, None, out=matrix)

        return matrix

    @staticmethod
    def matrix_to_outcomes(matrix: np.ndarray) -> Probabilities:
        total = matrix.sum()
        if not math.isfinite(total) or total <= 0:
            return Probabilities.uniform()

        return Probabilities(
            home=float(np.tril(matrix, -1).sum() / total),
            draw=float(np.trace(matrix) / total),
            away=float(np.triu(matrix, 1).sum() / total),
        )

    def match_probabilities(
        self, lambda_home: float, lambda_away: float, rho: float = 0.0
    ) -> Probabilities:
        matrix = self.score_matrix(lambda_home, lambda_away, rho)
        return self.matrix_to_outcomes(matrix)


_DEFAULT_CALCULATOR = DixonColesCalculator()


def match_probabilities(
    lambda_home: float, lambda_away: float, rho: float = 0.0
) -> Probabilities:
    """Home/draw/away probabilities for the given expected goals."""
    return _DEFAULT_CALCULATOR.match_probabilities(lambda_home, lambda_away, rho)


def calculate_lambdas(
    model: TrainedModel, home_team: str, away_team: str
) -> Optional[ExpectedGoals]:
    """Expected goals for a fixture, or None if either team is unknown."""
    home = model.teams.get(home_team)
    away = model.teams.get(away_team)
    if home is None or away is None:
        return None

    return ExpectedGoals(
        lambda_home=math.exp(home.attack - away.defense + model.home_advantage),
        lambda_away=math.exp(away.attack - home.defense),
    )


def _dixon_coles_tau(
    home_goals: np.ndarray,
    away_goals: np.ndarray,
    lambda_home: np.ndarray,
    lambda_away: np.ndarray,
    rho: float,
) -> np.ndarray:
    tau = np.ones_like(lambda_home)
    tau = np.where(
        (home_goals == 0) & (away_goals == 0), 1 - rho * lambda_home * lambda_away, tau
    )
    tau = np.where((home_goals == 1) & (away_goals == 0), 1 + rho * lambda_away, tau)
    tau = np.where((home_goals == 0) & (away_goals == 1), 1 + rho * lambda_home, tau)
    tau = np.where((home_goals == 1) & (away_goals == 1), 1 - rho, tau)
    return tau


def fit_rho(
    home_teams: Sequence[str],
    away_teams: Sequence[str],
    home_goals: Sequence[int],
    away_goals: Sequence[int],
    model: TrainedModel,
    weights: Optional[Sequence[float]] = None,
    bounds=(-0.2, 0.2),
) -> float:
    """
    Estimate the Dixon-Coles rho by maximising the weighted low-score likelihood.

    The Poisson terms do not depend on rho, so only the correction factor
    enters the objective. Matches involving teams unknown to the model are
    ignored. Returns 0.0 when no low-score match is available.
    """
    lambdas_home, lambdas_away, goals_h, goals_a, w = [], [], [], [], []
    weights = weights if weights is not None else [1.0] * len(home_teams)

    for home, away, gh, ga, weight in zip(
        home_teams, away_teams, home_goals, away_goals, weights
    ):
        expected = calculate_lambdas(model, home, away)
        if expected is None:
            continue
        lambdas_home.append(expected.lambda_home)
        lambdas_away.append(expected.lambda_away)
        goals_h.append(gh)
        goals_a.append(ga)
        w.append(weight)

    goals_h = np.asarray(goals_h)
    goals_a = np.asarray(goals_a)
    if not np.any((goals_h <= 1) & (goals_a <= 1)):
        return 0.0

    lambdas_home = np.asarray(lambdas_home, dtype=float)
    lambdas_away = np.asarray(lambdas_away, dtype=float)
    w = np.asarray(w, dtype=float)

    def negative_log_likelihood(rho: float) -> float:
        tau = _dixon_coles_tau(goals_h, goals_a, lambdas_home, lambdas_away, rho)
        if np.any(tau <= 0):
            return np.inf
        return -float(np.sum(w * np.log(tau)))

    result = minimize_scalar(negative_log_likelihood, bounds=bounds, method="bounded")
    if not result.success or not math.isfinite(result.x):
        logger.warning("Rho estimation did not converge, keeping rho = 0")
        return 0.0

    return float(result.x)
