import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd

from ...models.core import ModelConfig, TrainedModel
from ...models.predictors import DixonColesCalculator, calculate_lambdas
from ...utils.odds_helpers import (
    calculate_edge,
    calculate_ev,
    extract_best_odds,
    market_probabilities,
)
from ..shared.value_objects import (
    OUTCOME_ORDER,
    BestOdds,
    Confidence,
    MarketProbabilities,
    Outcome,
    Probabilities,
)
from .entities import (
    BetResult,
    MarketConfig,
    Opportunity,
    PerformanceSummary,
    SettledBet,
)

logger = logging.getLogger(__name__)

ConfigLike = Union[MarketConfig, Mapping, None]


def confidence_level(ev: float, edge: float) -> Confidence:
    """Qualitative label from empirical EV/edge bands."""
    if ev >= 0.08 and edge >= 0.06:
        return Confidence.HIGH
    if ev >= 0.04 and edge >= 0.03:
        return Confidence.MEDIUM
    return Confidence.LOW


def score_opportunity(edge: float, ev: float, odd: float, p_model: float) -> float:
    """
    Ranking score, not a probability.

    Long prices carry more variance and low model probabilities are less
    reliable, so both are penalised.
    """
    odds_penalty = min(0.12, max(0.0, (odd - 3) * 0.03))
    low_prob_penalty = 0.06 if p_model < 0.12 else 0.0
    return 0.70 * edge + 0.30 * ev - odds_penalty - low_prob_penalty


class MarketEngine:
    """Compares model probabilities with bookmaker prices."""

    def __init__(self, config: Optional[MarketConfig] = None):
        self.config = config or MarketConfig()

    def resolve_config(self, config: ConfigLike = None) -> MarketConfig:
        if config is None:
            return self.config
        if isinstance(config, MarketConfig):
            return config
        return self.config.with_overrides(**dict(config))

    def market_probabilities(
        self, best_odds: BestOdds, config: ConfigLike = None
    ) -> MarketProbabilities:
        cfg = self.resolve_config(config)
        return market_probabilities(best_odds, method=cfg.devig_method)

    def pick_opportunity(
        self,
        model_prob: Probabilities,
        market_prob: MarketProbabilities,
        best_odds: BestOdds,
        config: ConfigLike = None,
        league: Optional[str] = None,
        match_label: Optional[str] = None,
    ) -> Optional[Opportunity]:
        """
        Best qualifying outcome of a three-way market, or None.

        "No opportunity" is the common case and is never an error.
        """
        cfg = self.resolve_config(config)

        if model_prob is None or market_prob is None or best_odds is None:
            return None

        if not (model_prob.is_valid() and market_prob.is_valid()):
            logger.debug(f"{match_label}: probabilities outside (0, 1)")
            return None

        overround = market_prob.overround
        if not math.isfinite(overround) or overround > cfg.max_overround:
            logger.debug(f"{match_label}: overround {overround:.4f} too high")
            return None

        candidates = []
        for outcome in OUTCOME_ORDER:
            odd = best_odds.get(outcome)
            if odd is None or not math.isfinite(odd):
                continue
            if not (cfg.min_odd <= odd <= cfg.max_odd):
                continue

            p_model = model_prob.get(outcome)
            edge = calculate_edge(p_model, market_prob.get(outcome))
            ev = calculate_ev(p_model, odd)
            score = score_opportunity(edge, ev, odd, p_model)
            candidates.append((score, outcome, odd, edge, ev))

        if not candidates:
            return None

        # max() keeps the first of equal scores, i.e. HOME before DRAW before AWAY
        score, outcome, odd, edge, ev = max(candidates, key=lambda c: c[0])

        if edge < cfg.min_edge or ev < cfg.min_ev:
            return None

        return Opportunity(
            league=league,
            match_label=match_label,
            pick=outcome,
            odd=odd,
            edge=edge,
            ev=ev,
            score=score,
            confidence=confidence_level(ev, edge),
            model_prob=model_prob,
            market_prob=market_prob,
        )


class OpportunityScanner:
    """Prices every odds event of a league against one trained model."""

    def __init__(
        self,
        market_engine: Optional[MarketEngine] = None,
        calculator: Optional[DixonColesCalculator] = None,
    ):
        self.market_engine = market_engine or MarketEngine()
        self.calculator = calculator or DixonColesCalculator.from_config(ModelConfig())

    def price_event(
        self,
        model: TrainedModel,
        odds_event: Dict,
        league: Optional[str] = None,
        config: ConfigLike = None,
        team_aliases: Optional[Mapping[str, str]] = None,
    ) -> Optional[Opportunity]:
        best_odds = extract_best_odds(odds_event)
        if best_odds is None:
            event_id = odds_event.get("id") if isinstance(odds_event, dict) else None
            logger.debug(f"Invalid quote for event {event_id}")
            return None

        aliases = team_aliases or {}
        home = aliases.get(odds_event["home_team"], odds_event["home_team"])
        away = aliases.get(odds_event["away_team"], odds_event["away_team"])

        expected = calculate_lambdas(model, home, away)
        if expected is None:
            logger.debug(f"{home} vs {away}: team unknown to the model")
            return None

        model_prob = self.calculator.match_probabilities(
            expected.lambda_home, expected.lambda_away, model.rho
        )
        market_prob = self.market_engine.market_probabilities(best_odds, config)

        return self.market_engine.pick_opportunity(
            model_prob,
            market_prob,
            best_odds,
            config=config,
            league=league,
            match_label=f"{home} vs {away}",
        )

    def scan(
        self,
        model: TrainedModel,
        odds_events: Iterable[Dict],
        league: Optional[str] = None,
        config: ConfigLike = None,
        team_aliases: Optional[Mapping[str, str]] = None,
    ) -> List[Opportunity]:
        """Opportunities for the given events, best score first."""
        opportunities = []
        for event in odds_events:
            opportunity = self.price_event(model, event, league, config, team_aliases)
            if opportunity is not None:
                opportunities.append(opportunity)

        opportunities.sort(key=lambda o: o.score, reverse=True)
        logger.info(f"{league or 'league'}: {len(opportunities)} opportunities found")
        return opportunities


class BetSettlementService:
    """Settles opportunities against final scores and summarises performance."""

    def settle(
        self,
        opportunity: Opportunity,
        home_goals: Optional[int],
        away_goals: Optional[int],
        stake: float = 1.0,
    ) -> Optional[SettledBet]:
        if home_goals is None or away_goals is None:
            return None

        won = Outcome.from_goals(home_goals, away_goals) == opportunity.pick
        profit = (opportunity.odd - 1) * stake if won else -stake

        return SettledBet(
            opportunity=opportunity,
            result=BetResult.WIN if won else BetResult.LOSS,
            stake=stake,
            profit=profit,
        )

    def summarize(self, settled_bets: Iterable[SettledBet]) -> PerformanceSummary:
        df = pd.DataFrame(
            [
                {
                    "league": bet.opportunity.league or "UNKNOWN",
                    "confidence": bet.opportunity.confidence.value,
                    "win": bet.result == BetResult.WIN,
                    "stake": bet.stake,
                    "profit": bet.profit,
                }
                for bet in settled_bets
            ],
            columns=["league", "confidence", "win", "stake", "profit"],
        )

        total_bets = len(df)
        wins = int(df["win"].sum())
        total_staked = float(df["stake"].sum())
        net_units = float(df["profit"].sum())

        return PerformanceSummary(
            total_bets=total_bets,
            wins=wins,
            hit_rate=wins / total_bets if total_bets else 0.0,
            total_staked=total_staked,
            net_units=net_units,
            roi=net_units / total_staked if total_staked else 0.0,
            by_league=self._breakdown(df, "league"),
            by_confidence=self._breakdown(df, "confidence"),
        )

    @staticmethod
    def _breakdown(df: pd.DataFrame, key: str) -> pd.DataFrame:
        if df.empty:
            return pd.DataFrame(
                columns=[key, "bets", "wins", "hit_rate", "net_units", "roi"]
            )

        grouped = (
            df.groupby(key)
            .agg(
                bets=("win", "size"),
                wins=("win", "sum"),
                staked=("stake", "sum"),
                net_units=("profit", "sum"),
            )
            .reset_index()
        )
        grouped["wins"] = grouped["wins"].astype(int)
        grouped["hit_rate"] = grouped["wins"] / grouped["bets"]
        grouped["roi"] = grouped["net_units"] / grouped["staked"]
        grouped = grouped[[key, "bets", "wins", "hit_rate", "net_units", "roi"]]
        return grouped.sort_values("net_units", ascending=False, ignore_index=True)


def pick_opportunity(
    model_prob: Probabilities,
    market_prob: MarketProbabilities,
    best_odds: BestOdds,
    config: ConfigLike = None,
    league: Optional[str] = None,
    match_label: Optional[str] = None,
) -> Optional[Opportunity]:
    """Module-level shortcut for MarketEngine().pick_opportunity."""
    return MarketEngine().pick_opportunity(
        model_prob,
        market_prob,
        best_odds,
        config=config,
        league=league,
        match_label=match_label,
    )
