"""
Core model classes and configurations.
"""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

import pandas as pd


@dataclass
class ModelConfig:
    """Configuration for the team-strength rating model."""

    # Gradient descent
    iterations: int = 300
    learning_rate: float = 0.001
    l2_reg: float = 0.001
    initial_home_advantage: float = 0.10

    # Time decay
    half_life_days: float = 400.0

    # Post-training adjustments
    shrink: float = 0.65
    anchor_goals: bool = True

    # Score grid and low-score correction
    max_goals: int = 8
    rho: float = 0.0
    fit_rho: bool = False
    rho_bounds: Tuple[float, float] = (-0.2, 0.2)

    # Fallback goal rates for degenerate inputs
    default_lambda_home: float = 1.3
    default_lambda_away: float = 1.0


NEUTRAL_HOME_ADVANTAGE = 0.1
NEUTRAL_LEAGUE_AVERAGE_GOALS = 2.5


@dataclass(frozen=True)
class TeamStrength:
    attack: float = 0.0
    defense: float = 0.0

    @property
    def net(self) -> float:
        return self.attack - self.defense


@dataclass(frozen=True)
class TrainedModel:
    """Immutable snapshot produced by one training run."""

    teams: Mapping[str, TeamStrength] = field(default_factory=dict)
    home_advantage: float = NEUTRAL_HOME_ADVANTAGE
    rho: float = 0.0
    league_average_goals: float = NEUTRAL_LEAGUE_AVERAGE_GOALS
    n_matches: int = 0
    trained_at: Optional[datetime] = None

    def __post_init__(self):
        # Own a private read-only copy so no two models alias team entries
        object.__setattr__(self, "teams", MappingProxyType(dict(self.teams)))

    @classmethod
    def neutral(cls) -> "TrainedModel":
        return cls()

    @property
    def is_neutral(self) -> bool:
        return len(self.teams) == 0

    def has_team(self, team: str) -> bool:
        return team in self.teams

    def to_dataframe(self) -> pd.DataFrame:
        """Return team ratings sorted by net rating."""
        if self.is_neutral:
            return pd.DataFrame(columns=["Team", "Attack", "Defense", "Net"])

        return (
            pd.DataFrame(
                {
                    "Team": list(self.teams.keys()),
                    "Attack": [s.attack for s in self.teams.values()],
                    "Defense": [s.defense for s in self.teams.values()],
                }
            )
            .assign(Net=lambda df: df["Attack"] - df["Defense"])
            .sort_values("Net", ascending=False)
            .reset_index(drop=True)
        )
