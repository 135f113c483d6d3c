import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

import pandas as pd

from .application.use_cases.find_opportunities import FindOpportunitiesUseCase
from .application.use_cases.run_backtest import RunBacktestUseCase
from .common.plotting import plot_calibration_buckets
from .config import AppConfig, Leagues
from .domains.backtesting.entities import BacktestConfig
from .domains.backtesting.services import BacktestingService
from .domains.betting.services import MarketEngine, OpportunityScanner
from .domains.shared.exceptions import DomainException
from .infrastructure.adapters.file_adapter import CSVFileAdapter, JSONFileAdapter
from .infrastructure.repositories.csv_betting_repository import CSVBettingRepository
from .infrastructure.repositories.csv_match_repository import CSVMatchRepository
from .infrastructure.repositories.json_odds_repository import JsonOddsRepository
from .models.predictors import DixonColesCalculator
from .models.rating_model import RatingModelTrainer
from .utils.config_manager import ConfigManager

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Football value-betting engine: ratings, pricing and backtests"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("backtest", "Walk-forward backtest with scoring rules and profitability"),
        ("diagnostics", "Calibration buckets of walk-forward predictions"),
        ("opportunities", "Price upcoming odds events and rank value bets"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--league",
            "-l",
            required=True,
            choices=[league.name for league in Leagues],
            help="Competition code",
        )
        sub.add_argument(
            "--iterations", type=int, help="Override gradient descent passes"
        )

        if name in ("backtest", "diagnostics"):
            sub.add_argument(
                "--min-train-size", type=int, help="Matches held back for training"
            )
            sub.add_argument(
                "--no-baseline",
                action="store_true",
                help="Disable shrinkage towards league home/draw/away rates",
            )
        if name == "opportunities":
            sub.add_argument(
                "--min-history",
                type=int,
                default=50,
                help="Finished matches required before pricing odds",
            )
        if name == "diagnostics":
            sub.add_argument(
                "--plot", action="store_true", help="Save a calibration plot"
            )

    return parser


def _model_config(args, config_manager: ConfigManager):
    model_config = config_manager.load_league_config(args.league)
    if args.iterations:
        model_config = replace(model_config, iterations=args.iterations)
    return model_config


def _backtesting_service(args, config_manager: ConfigManager) -> BacktestingService:
    backtest_config = BacktestConfig(
        model_config=_model_config(args, config_manager),
        market_config=config_manager.load_market_config(args.league),
    )
    if args.min_train_size:
        backtest_config.min_train_size = args.min_train_size
    if args.no_baseline:
        backtest_config.baseline_alpha = None
    return BacktestingService(backtest_config)


def run_backtest(args, app_config: AppConfig, config_manager: ConfigManager) -> int:
    match_repository = CSVMatchRepository(CSVFileAdapter(app_config.matches_dir))
    use_case = RunBacktestUseCase(
        match_repository, _backtesting_service(args, config_manager)
    )
    report = use_case.execute(args.league)

    print(f"{'=' * 60}\r\nBACKTEST {args.league}\r\n{'=' * 60}")
    for key, value in report.summary.to_dict().items():
        print(f"{key:>15}: {value}")

    print(f"\r\nPROFITABILITY ({report.profitability.mode.value})")
    for key, value in report.profitability.to_dict().items():
        print(f"{key:>15}: {value}")

    output = CSVFileAdapter(app_config.output_dir)
    output.write_csv(
        report.summary.to_dataframe(), f"{args.league}_backtest_predictions.csv"
    )
    return 0


def run_diagnostics(args, app_config: AppConfig, config_manager: ConfigManager) -> int:
    match_repository = CSVMatchRepository(CSVFileAdapter(app_config.matches_dir))
    service = _backtesting_service(args, config_manager)
    buckets = service.diagnostics(match_repository.get_finished_matches(args.league))

    table = pd.DataFrame(
        [
            {
                "Bucket": label,
                "Count": bucket.count,
                "MeanPredicted": bucket.mean_predicted,
                "HitRate": bucket.hit_rate,
            }
            for label, bucket in buckets.items()
        ]
    )
    print(table.to_string(index=False))

    if args.plot:
        plot_calibration_buckets(
            buckets, app_config.plots_dir, f"{args.league}_calibration.png"
        )
    return 0


def run_opportunities(
    args, app_config: AppConfig, config_manager: ConfigManager
) -> int:
    league = Leagues.from_code(args.league)
    model_config = _model_config(args, config_manager)

    use_case = FindOpportunitiesUseCase(
        match_repository=CSVMatchRepository(CSVFileAdapter(app_config.matches_dir)),
        odds_repository=JsonOddsRepository(JSONFileAdapter(app_config.odds_dir)),
        betting_repository=CSVBettingRepository(CSVFileAdapter(app_config.output_dir)),
        trainer=RatingModelTrainer(model_config),
        scanner=OpportunityScanner(
            MarketEngine(config_manager.load_market_config(args.league)),
            DixonColesCalculator.from_config(model_config),
        ),
        min_history=args.min_history,
    )
    opportunities = use_case.execute(args.league, league.sport_key)

    if not opportunities:
        print(f"No opportunities for {league.display_name}")
        return 0

    table = pd.DataFrame(
        [
            {
                "Match": opp.match_label,
                "Pick": opp.pick.value,
                "Odd": round(opp.odd, 3),
                "Edge": round(opp.edge, 4),
                "EV": round(opp.ev, 4),
                "Score": round(opp.score, 4),
                "Confidence": opp.confidence.value,
            }
            for opp in opportunities
        ]
    )
    print(table.to_string(index=False))
    return 0


COMMANDS = {
    "backtest": run_backtest,
    "diagnostics": run_diagnostics,
    "opportunities": run_opportunities,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    app_config = AppConfig()

    logging.basicConfig(
        level=app_config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config_manager = ConfigManager(app_config.config_dir)
        return COMMANDS[args.command](args, app_config, config_manager)
    except DomainException as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
