from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import pandas as pd

from ..shared.exceptions import ConfigurationError
from ..shared.value_objects import (
    Confidence,
    MarketProbabilities,
    Outcome,
    Probabilities,
)


@dataclass(frozen=True)
class MarketConfig:
    """Thresholds used when comparing model and market probabilities."""

    min_edge: float = 0.02
    min_ev: float = 0.01
    min_odd: float = 1.30
    max_odd: float = 8.00
    # Markets with a bookmaker margin above 10% are ignored
    max_overround: float = 1.10
    devig_method: str = "proportional"

    def with_overrides(self, **overrides) -> "MarketConfig":
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(f"Unknown market settings: {sorted(unknown)}")
        return replace(self, **overrides)

    @classmethod
    def from_dict(cls, values: Optional[Mapping[str, Any]]) -> "MarketConfig":
        return cls().with_overrides(**dict(values or {}))

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class Opportunity:
    league: Optional[str]
    match_label: Optional[str]
    pick: Outcome
    odd: float
    edge: float
    ev: float
    score: float
    confidence: Confidence
    model_prob: Probabilities
    market_prob: MarketProbabilities

    @property
    def p_model(self) -> float:
        return self.model_prob.get(self.pick)

    @property
    def p_market(self) -> float:
        return self.market_prob.get(self.pick)

    def to_dict(self) -> Dict[str, Any]:
        """Flat, rounded representation for storage and display."""
        return {
            "league": self.league,
            "match": self.match_label,
            "pick": self.pick.value,
            "odd": round(self.odd, 3),
            "edge": round(self.edge, 4),
            "ev": round(self.ev, 4),
            "score": round(self.score, 4),
            "confidence": self.confidence.value,
            "model_prob": self.model_prob.to_dict(digits=4),
            "market_prob": self.market_prob.to_dict(digits=4),
            "p_model": round(self.p_model, 4),
            "p_market": round(self.p_market, 4),
        }


class BetResult(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"


@dataclass(frozen=True)
class SettledBet:
    opportunity: Opportunity
    result: BetResult
    stake: float
    profit: float


@dataclass
class PerformanceSummary:
    total_bets: int
    wins: int
    hit_rate: float
    total_staked: float
    net_units: float
    roi: float
    by_league: pd.DataFrame
    by_confidence: pd.DataFrame
