from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd

from ...models.core import ModelConfig
from ..betting.entities import MarketConfig
from ..shared.value_objects import Confidence, Outcome, Probabilities


@dataclass
class BacktestConfig:
    """Configuration for walk-forward backtesting."""

    min_train_size: int = 50
    # Weight of the model in the blend with the training window's H/D/A rates;
    # None disables the blend
    baseline_alpha: Optional[float] = 0.88
    stake: float = 1.0
    model_config: ModelConfig = field(default_factory=ModelConfig)
    market_config: MarketConfig = field(default_factory=MarketConfig)


@dataclass(frozen=True)
class EvaluationRecord:
    """One held-out prediction and what actually happened."""

    probabilities: Probabilities
    actual_outcome: Outcome
    match_id: Optional[str] = None
    index: Optional[int] = None
    train_size: Optional[int] = None

    @property
    def predicted_outcome(self) -> Outcome:
        return self.probabilities.max_outcome()

    @property
    def is_hit(self) -> bool:
        return self.predicted_outcome == self.actual_outcome


@dataclass
class CalibrationBucket:
    predicted_sum: float = 0.0
    actual_hits: int = 0
    count: int = 0

    @property
    def mean_predicted(self) -> Optional[float]:
        return self.predicted_sum / self.count if self.count else None

    @property
    def hit_rate(self) -> Optional[float]:
        return self.actual_hits / self.count if self.count else None

    def add(self, predicted: float, hit: bool) -> None:
        self.predicted_sum += predicted
        self.actual_hits += int(hit)
        self.count += 1


@dataclass
class BacktestSummary:
    games_tested: int
    avg_log_loss: Optional[float]
    avg_brier_score: Optional[float]
    accuracy_pct: Optional[float]
    evaluations: List[EvaluationRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gamesTested": self.games_tested,
            "avgLogLoss": _round(self.avg_log_loss, 5),
            "avgBrierScore": _round(self.avg_brier_score, 5),
            "accuracyPct": _round(self.accuracy_pct, 2),
        }

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "Index": e.index,
                    "MatchId": e.match_id,
                    "TrainSize": e.train_size,
                    "Prob_H": e.probabilities.home,
                    "Prob_D": e.probabilities.draw,
                    "Prob_A": e.probabilities.away,
                    "Predicted": e.predicted_outcome.value,
                    "Actual": e.actual_outcome.value,
                }
                for e in self.evaluations
            ]
        )


class BettingMode(str, Enum):
    # Picks from the market engine, settled at the quoted price
    MARKET = "MARKET"
    # No quotes available: the model's top pick, settled at even money
    TOP_PICK = "TOP_PICK"


@dataclass(frozen=True)
class PlacedBet:
    match_id: Optional[str]
    match_label: str
    pick: Outcome
    odd: Optional[float]
    won: bool
    profit: float
    confidence: Optional[Confidence] = None


@dataclass
class ProfitabilityReport:
    mode: BettingMode
    games_tested: int
    bets: int
    wins: int
    hit_rate: float
    net_units: float
    roi: float
    brier_score: Optional[float]
    log_loss: Optional[float]
    accuracy: Optional[float]
    bets_placed: List[PlacedBet] = field(default_factory=list)
    # Walk-forward predictions behind the report, for summaries and calibration
    evaluations: List[EvaluationRecord] = field(default_factory=list)

    @property
    def has_odds_data(self) -> bool:
        return self.mode == BettingMode.MARKET

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "hasOddsData": self.has_odds_data,
            "gamesTested": self.games_tested,
            "bets": self.bets,
            "wins": self.wins,
            "hitRate": round(self.hit_rate, 4),
            "netUnits": round(self.net_units, 2),
            "roi": round(self.roi, 4),
            "calibration": {
                "brierScore": _round(self.brier_score, 5),
                "logLoss": _round(self.log_loss, 5),
                "accuracy": _round(self.accuracy, 4),
            },
        }


def _round(value: Optional[float], digits: int) -> Optional[float]:
    return None if value is None else round(value, digits)
