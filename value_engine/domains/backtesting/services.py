import logging
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from ...models.predictors import DixonColesCalculator, calculate_lambdas
from ...models.rating_model import RatingModelTrainer
from ...utils.datetime_helpers import to_timestamp
from ..betting.services import MarketEngine
from ..data.entities import MatchRecord
from ..shared.exceptions import InsufficientDataException
from ..shared.value_objects import BestOdds, Probabilities
from .entities import (
    BacktestConfig,
    BacktestSummary,
    BettingMode,
    CalibrationBucket,
    EvaluationRecord,
    PlacedBet,
    ProfitabilityReport,
)
from .metrics import calibration_buckets, evaluate_predictions

logger = logging.getLogger(__name__)


def league_baseline(matches: Sequence[MatchRecord]) -> Probabilities:
    """Observed home/draw/away frequencies, uniform when there is nothing to count."""
    results = [m.result for m in matches if m.is_finished]
    if not results:
        return Probabilities.uniform()

    counts = pd.Series([r.value for r in results]).value_counts()
    n = len(results)
    return Probabilities(
        home=float(counts.get("HOME", 0)) / n,
        draw=float(counts.get("DRAW", 0)) / n,
        away=float(counts.get("AWAY", 0)) / n,
    )


class BacktestingService:
    """Walk-forward evaluation: every prediction uses only earlier matches."""

    def __init__(
        self,
        config: Optional[BacktestConfig] = None,
        trainer: Optional[RatingModelTrainer] = None,
        calculator: Optional[DixonColesCalculator] = None,
        market_engine: Optional[MarketEngine] = None,
    ):
        self.config = config or BacktestConfig()
        self.trainer = trainer or RatingModelTrainer(self.config.model_config)
        self.calculator = calculator or DixonColesCalculator.from_config(
            self.config.model_config
        )
        self.market_engine = market_engine or MarketEngine(self.config.market_config)

    def backtest(self, matches: Sequence[MatchRecord]) -> BacktestSummary:
        evaluations = [record for record, _ in self.walk_forward(matches)]
        return self.summarize(evaluations)

    def summarize(self, evaluations: List[EvaluationRecord]) -> BacktestSummary:
        """Summary metrics over predictions that have already been made."""
        metrics = evaluate_predictions(evaluations)

        accuracy = metrics["accuracy"]
        summary = BacktestSummary(
            games_tested=metrics["n"],
            avg_log_loss=metrics["log_loss"],
            avg_brier_score=metrics["brier_score"],
            accuracy_pct=None if accuracy is None else accuracy * 100,
            evaluations=evaluations,
        )
        logger.info(f"Backtest complete: {summary.to_dict()}")
        return summary

    def diagnostics(
        self, matches: Sequence[MatchRecord]
    ) -> Dict[str, CalibrationBucket]:
        """Calibration buckets keyed by the top predicted probability."""
        evaluations = [record for record, _ in self.walk_forward(matches)]
        return calibration_buckets(evaluations)

    def profitability(
        self,
        matches: Sequence[MatchRecord],
        quotes: Optional[Mapping[str, BestOdds]] = None,
    ) -> ProfitabilityReport:
        """
        Simulated flat-stake betting over the walk-forward predictions.

        With quotes (keyed by match id, or attached to the records) bets come
        from the market engine and settle at the quoted price. Without any
        quotes the model's top pick is settled at even money, and the report
        says so through its mode.
        """
        prepared = self._prepare(matches)
        quotes = dict(quotes or {})
        has_odds = bool(quotes) or any(m.odds is not None for m in prepared)
        mode = BettingMode.MARKET if has_odds else BettingMode.TOP_PICK
        if mode == BettingMode.TOP_PICK:
            logger.warning("No market quotes, settling top picks at even money")

        stake = self.config.stake
        evaluations = []
        placed = []
        for record, match in self.walk_forward(prepared):
            evaluations.append(record)

            if mode == BettingMode.MARKET:
                bet = self._market_bet(record, match, quotes.get(match.match_id), stake)
            else:
                bet = self._top_pick_bet(record, match, stake)
            if bet is not None:
                placed.append(bet)

        metrics = evaluate_predictions(evaluations)
        wins = sum(1 for bet in placed if bet.won)
        net_units = sum(bet.profit for bet in placed)
        staked = stake * len(placed)

        return ProfitabilityReport(
            mode=mode,
            games_tested=metrics["n"],
            bets=len(placed),
            wins=wins,
            hit_rate=wins / len(placed) if placed else 0.0,
            net_units=net_units,
            roi=net_units / staked if staked else 0.0,
            brier_score=metrics["brier_score"],
            log_loss=metrics["log_loss"],
            accuracy=metrics["accuracy"],
            bets_placed=placed,
            evaluations=evaluations,
        )

    def walk_forward(
        self, matches: Sequence[MatchRecord]
    ) -> Iterator[Tuple[EvaluationRecord, MatchRecord]]:
        """
        Yield one evaluation per testable match.

        The model for match i is trained on matches[:i] with ages measured from
        match i's date. Fixtures with a team the model has not seen are skipped
        and do not count towards games tested.
        """
        prepared = self._prepare(matches)
        alpha = self.config.baseline_alpha
        skipped = 0

        for i in range(self.config.min_train_size, len(prepared)):
            history = prepared[:i]
            match = prepared[i]

            model = self.trainer.train(history, as_of=match.match_date)
            expected = calculate_lambdas(model, match.home_team, match.away_team)
            if expected is None:
                skipped += 1
                continue

            probs = self.calculator.match_probabilities(
                expected.lambda_home, expected.lambda_away, model.rho
            )
            if alpha is not None:
                probs = probs.blend(league_baseline(history), alpha)

            record = EvaluationRecord(
                probabilities=probs,
                actual_outcome=match.result,
                match_id=match.match_id,
                index=i,
                train_size=len(history),
            )
            yield record, match

        if skipped:
            logger.info(f"Skipped {skipped} fixtures with teams unknown to the model")

    def _prepare(self, matches: Sequence[MatchRecord]) -> List[MatchRecord]:
        finished = [m for m in matches if m.is_finished]
        # Stable sort: same-day fixtures keep their input order
        finished.sort(key=lambda m: to_timestamp(m.match_date) or pd.Timestamp.min)

        required = self.config.min_train_size
        if len(finished) <= required:
            raise InsufficientDataException(available=len(finished), required=required)
        return finished

    def _market_bet(
        self,
        record: EvaluationRecord,
        match: MatchRecord,
        quote: Optional[BestOdds],
        stake: float,
    ) -> Optional[PlacedBet]:
        best_odds = quote or match.odds
        if best_odds is None or not best_odds.is_valid():
            return None

        market_prob = self.market_engine.market_probabilities(best_odds)
        opportunity = self.market_engine.pick_opportunity(
            record.probabilities,
            market_prob,
            best_odds,
            league=match.league,
            match_label=match.label,
        )
        if opportunity is None:
            return None

        won = opportunity.pick == record.actual_outcome
        return PlacedBet(
            match_id=match.match_id,
            match_label=match.label,
            pick=opportunity.pick,
            odd=opportunity.odd,
            won=won,
            profit=(opportunity.odd - 1) * stake if won else -stake,
            confidence=opportunity.confidence,
        )

    @staticmethod
    def _top_pick_bet(
        record: EvaluationRecord, match: MatchRecord, stake: float
    ) -> PlacedBet:
        won = record.is_hit
        return PlacedBet(
            match_id=match.match_id,
            match_label=match.label,
            pick=record.predicted_outcome,
            odd=None,
            won=won,
            profit=stake if won else -stake,
        )
