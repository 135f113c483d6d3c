import logging
from typing import Dict, List, Mapping, Optional

from ...domains.betting.entities import MarketConfig, Opportunity
from ...domains.betting.repositories import BettingRepository
from ...domains.betting.services import OpportunityScanner
from ...domains.data.repositories import MatchRepository, OddsRepository
from ...models.rating_model import RatingModelTrainer

logger = logging.getLogger(__name__)


class FindOpportunitiesUseCase:
    """Train on a league's history, then price its upcoming odds events."""

    def __init__(
        self,
        match_repository: MatchRepository,
        odds_repository: OddsRepository,
        betting_repository: Optional[BettingRepository] = None,
        trainer: Optional[RatingModelTrainer] = None,
        scanner: Optional[OpportunityScanner] = None,
        min_history: int = 50,
    ):
        self.match_repository = match_repository
        self.odds_repository = odds_repository
        self.betting_repository = betting_repository
        self.trainer = trainer or RatingModelTrainer()
        self.scanner = scanner or OpportunityScanner()
        self.min_history = min_history

    def execute(
        self,
        league: str,
        sport_key: str,
        market_config: Optional[MarketConfig] = None,
        team_aliases: Optional[Mapping[str, str]] = None,
    ) -> List[Opportunity]:
        matches = self.match_repository.get_finished_matches(league)
        if len(matches) < self.min_history:
            logger.info(
                f"{league}: only {len(matches)} finished matches, "
                f"need {self.min_history} before pricing odds"
            )
            return []

        model = self.trainer.train(matches)
        logger.info(
            f"{league}: trained on {model.n_matches} matches, "
            f"{len(model.teams)} teams, home advantage {model.home_advantage:.3f}"
        )

        events = self.odds_repository.get_odds_events(sport_key)
        opportunities = self.scanner.scan(
            model,
            events,
            league=league,
            config=market_config,
            team_aliases=team_aliases,
        )

        if self.betting_repository is not None:
            self.betting_repository.save_opportunities(opportunities)

        return opportunities

    @staticmethod
    def to_records(opportunities: List[Opportunity]) -> List[Dict]:
        return [opp.to_dict() for opp in opportunities]
