"""
Team strength ratings fitted by time-decayed, L2-regularised gradient descent.

Expected goals follow a log-linear model:

    lambda_home = exp(attack[home] - defense[away] + home_advantage)
    lambda_away = exp(attack[away] - defense[home])

Ratings are only identified up to an additive constant, so attack and defense
are re-centred on zero after every pass over the data.
"""

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..domains.data.entities import MatchRecord
from ..utils.datetime_helpers import latest_date, time_decay_weights
from .core import ModelConfig, TeamStrength, TrainedModel
from .predictors import fit_rho

logger = logging.getLogger(__name__)

# exp() argument cap so a pathological input cannot overflow the fit
MAX_LOG_RATE = 20.0


def _safe_exp(x: float) -> float:
    return math.exp(min(x, MAX_LOG_RATE))


class RatingModelTrainer:
    """Fits per-team attack/defense ratings and a global home advantage."""

    def __init__(self, config: Optional[ModelConfig] = None):
        self.config = config or ModelConfig()

    def train(
        self, matches: Sequence[MatchRecord], as_of: Optional[datetime] = None
    ) -> TrainedModel:
        """
        Train a model on finished matches.

        Never raises: unfinished matches and matches without integer scores are
        dropped, and an empty remainder yields the neutral model. Time-decay
        ages are measured from ``as_of`` (default: the latest match date), so
        identical input always produces an identical model.
        """
        valid = self._filter_valid(matches)
        if not valid:
            logger.warning("No finished matches with valid scores, using neutral model")
            return TrainedModel.neutral()

        teams = self._initialize_teams(valid)
        team_index = {team: i for i, team in enumerate(teams)}

        home_idx = np.array([team_index[m.home_team] for m in valid], dtype=int)
        away_idx = np.array([team_index[m.away_team] for m in valid], dtype=int)
        home_goals = np.array([int(m.home_goals) for m in valid], dtype=float)
        away_goals = np.array([int(m.away_goals) for m in valid], dtype=float)

        reference_date = as_of
        if reference_date is None:
            reference_date = latest_date(m.match_date for m in valid)
        weights = time_decay_weights(
            (m.match_date for m in valid), reference_date, self.config.half_life_days
        )
        league_average_goals = float(np.mean(home_goals + away_goals))

        attack, defense, home_advantage = self._gradient_descent(
            home_idx, away_idx, home_goals, away_goals, weights, len(teams)
        )

        # Pull extreme ratings toward the mean
        attack = attack * self.config.shrink
        defense = defense * self.config.shrink

        anchor_factor = 1.0
        if self.config.anchor_goals:
            attack, defense, home_advantage, anchor_factor = self._anchor_goals(
                attack,
                defense,
                home_advantage,
                home_idx,
                away_idx,
                league_average_goals,
            )

        model = TrainedModel(
            teams={
                team: TeamStrength(attack=float(attack[i]), defense=float(defense[i]))
                for team, i in team_index.items()
            },
            home_advantage=float(home_advantage),
            rho=self.config.rho,
            league_average_goals=league_average_goals,
            n_matches=len(valid),
            trained_at=reference_date,
        )

        if self.config.fit_rho:
            rho = fit_rho(
                [m.home_team for m in valid],
                [m.away_team for m in valid],
                home_goals.astype(int),
                away_goals.astype(int),
                model,
                weights=weights,
                bounds=self.config.rho_bounds,
            )
            model = replace(model, rho=rho)

        logger.debug(
            f"Trained on {len(valid)} matches, {len(teams)} teams: "
            f"home_advantage={model.home_advantage:.4f}, rho={model.rho:.4f}, "
            f"anchor_factor={anchor_factor:.4f}"
        )
        return model

    def _filter_valid(self, matches: Sequence[MatchRecord]) -> List[MatchRecord]:
        matches = list(matches) if matches is not None else []
        valid = [m for m in matches if isinstance(m, MatchRecord) and m.is_finished]
        dropped = len(matches) - len(valid)
        if dropped:
            logger.debug(f"Dropped {dropped} unfinished or malformed matches")
        return valid

    @staticmethod
    def _initialize_teams(matches: Sequence[MatchRecord]) -> List[str]:
        """Team names in order of first appearance."""
        teams = {}
        for m in matches:
            teams.setdefault(m.home_team, None)
            teams.setdefault(m.away_team, None)
        return list(teams)

    def _gradient_descent(
        self,
        home_idx: np.ndarray,
        away_idx: np.ndarray,
        home_goals: np.ndarray,
        away_goals: np.ndarray,
        weights: np.ndarray,
        n_teams: int,
    ) -> Tuple[np.ndarray, np.ndarray, float]:
        lr = self.config.learning_rate
        l2 = self.config.l2_reg

        attack = [0.0] * n_teams
        defense = [0.0] * n_teams
        home_advantage = self.config.initial_home_advantage

        # Plain floats in the inner loop; numpy scalar access is far slower here
        rows = list(
            zip(
                home_idx.tolist(),
                away_idx.tolist(),
                home_goals.tolist(),
                away_goals.tolist(),
                weights.tolist(),
            )
        )

        for _ in range(self.config.iterations):
            for h, a, goals_home, goals_away, w in rows:
                lambda_home = _safe_exp(attack[h] - defense[a] + home_advantage)
                lambda_away = _safe_exp(attack[a] - defense[h])

                err_home = w * (goals_home - lambda_home)
                err_away = w * (goals_away - lambda_away)

                attack[h] += lr * (err_home - l2 * attack[h])
                defense[h] += lr * (-err_away - l2 * defense[h])
                attack[a] += lr * (err_away - l2 * attack[a])
                defense[a] += lr * (-err_home - l2 * defense[a])

                # Global scalar, no L2 shrinkage
                home_advantage += lr * err_home

            attack, defense = self._normalize(attack, defense)
            attack, defense = attack.tolist(), defense.tolist()

        return np.array(attack), np.array(defense), home_advantage

    @staticmethod
    def _normalize(attack, defense) -> Tuple[np.ndarray, np.ndarray]:
        """Centre attack and defense ratings on zero."""
        attack = np.asarray(attack, dtype=float)
        defense = np.asarray(defense, dtype=float)
        return attack - attack.mean(), defense - defense.mean()

    @staticmethod
    def _rate_components(
        attack: np.ndarray,
        defense: np.ndarray,
        home_idx: np.ndarray,
        away_idx: np.ndarray,
    ) -> Tuple[float, float]:
        """Mean home rate before home advantage, and mean away rate."""
        home_component = np.exp(
            np.minimum(attack[home_idx] - defense[away_idx], MAX_LOG_RATE)
        ).mean()
        away_component = np.exp(
            np.minimum(attack[away_idx] - defense[home_idx], MAX_LOG_RATE)
        ).mean()
        return float(home_component), float(away_component)

    def implied_average_goals(
        self,
        attack: np.ndarray,
        defense: np.ndarray,
        home_advantage: float,
        home_idx: np.ndarray,
        away_idx: np.ndarray,
    ) -> float:
        home_component, away_component = self._rate_components(
            attack, defense, home_idx, away_idx
        )
        return _safe_exp(home_advantage) * home_component + away_component

    def _anchor_goals(
        self,
        attack: np.ndarray,
        defense: np.ndarray,
        home_advantage: float,
        home_idx: np.ndarray,
        away_idx: np.ndarray,
        league_average_goals: float,
    ) -> Tuple[np.ndarray, np.ndarray, float, float]:
        """
        Match the model's implied goals per match to the observed league average.

        Ratings are first rescaled by sqrt(actual / implied) and re-centred. The
        home advantage scalar is then re-solved so the implied total equals the
        league average; team differentials are left untouched by that step.

        The re-solve puts the whole residual correction on the home-side rate:
        away rates keep the rescaled ratings, so when the rescale alone misses
        the average the home advantage moves to close the gap and can end up
        noticeably larger than the gradient fit left it.
        """
        implied = self.implied_average_goals(
            attack, defense, home_advantage, home_idx, away_idx
        )
        if not (implied > 0 and league_average_goals > 0):
            return attack, defense, home_advantage, 1.0

        factor = math.sqrt(league_average_goals / implied)
        attack, defense = self._normalize(attack * factor, defense * factor)

        home_component, away_component = self._rate_components(
            attack, defense, home_idx, away_idx
        )
        if home_component > 0 and league_average_goals > away_component:
            home_advantage = math.log(
                (league_average_goals - away_component) / home_component
            )

        return attack, defense, home_advantage, factor


def train(
    matches: Sequence[MatchRecord],
    config: Optional[ModelConfig] = None,
    as_of: Optional[datetime] = None,
) -> TrainedModel:
    """Train a rating model with the given (or default) configuration."""
    return RatingModelTrainer(config).train(matches, as_of=as_of)
