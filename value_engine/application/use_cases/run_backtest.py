import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from ...domains.backtesting.entities import (
    BacktestSummary,
    CalibrationBucket,
    ProfitabilityReport,
)
from ...domains.backtesting.metrics import calibration_buckets
from ...domains.backtesting.services import BacktestingService
from ...domains.data.repositories import MatchRepository
from ...domains.shared.value_objects import BestOdds

logger = logging.getLogger(__name__)


@dataclass
class BacktestReport:
    league: str
    summary: BacktestSummary
    calibration: Dict[str, CalibrationBucket]
    profitability: ProfitabilityReport


class RunBacktestUseCase:
    def __init__(
        self,
        match_repository: MatchRepository,
        backtesting_service: Optional[BacktestingService] = None,
    ):
        self.match_repository = match_repository
        self.backtesting_service = backtesting_service or BacktestingService()

    def execute(
        self, league: str, quotes: Optional[Mapping[str, BestOdds]] = None
    ) -> BacktestReport:
        """
        Backtest, calibration and profitability for one league.

        Historical quotes attached to the stored matches are used when present.
        Raises InsufficientDataException when the league history is too short.
        """
        matches = self.match_repository.get_finished_matches(league)
        logger.info(f"{league}: backtesting over {len(matches)} finished matches")

        # One walk-forward pass feeds the summary, buckets and betting report
        profitability = self.backtesting_service.profitability(matches, quotes)
        evaluations = profitability.evaluations
        summary = self.backtesting_service.summarize(evaluations)
        calibration = calibration_buckets(evaluations)

        return BacktestReport(
            league=league,
            summary=summary,
            calibration=calibration,
            profitability=profitability,
        )
