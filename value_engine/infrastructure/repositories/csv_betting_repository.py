import logging
from typing import List

from ...domains.betting.entities import Opportunity, SettledBet
from ...domains.betting.repositories import BettingRepository
from ..adapters.file_adapter import CSVFileAdapter

logger = logging.getLogger(__name__)


class CSVBettingRepository(BettingRepository):
    def __init__(
        self,
        file_adapter: CSVFileAdapter,
        opportunities_file: str = "opportunities.csv",
        results_file: str = "settled_bets.csv",
    ):
        self.file_adapter = file_adapter
        self.opportunities_file = opportunities_file
        self.results_file = results_file

    def save_opportunities(self, opportunities: List[Opportunity]) -> None:
        if not opportunities:
            logger.info("No opportunities to save")
            return

        data = [self._flatten(opp) for opp in opportunities]
        self.file_adapter.write_dict_list(data, self.opportunities_file)
        logger.info(f"Saved {len(data)} opportunities to {self.opportunities_file}")

    def save_results(self, results: List[SettledBet]) -> None:
        if not results:
            logger.info("No settled bets to save")
            return

        data = []
        for bet in results:
            row = self._flatten(bet.opportunity)
            row.update(
                {
                    "Result": bet.result.value,
                    "Stake": bet.stake,
                    "Profit": round(bet.profit, 4),
                }
            )
            data.append(row)
        self.file_adapter.write_dict_list(data, self.results_file)
        logger.info(f"Saved {len(data)} settled bets to {self.results_file}")

    @staticmethod
    def _flatten(opportunity: Opportunity) -> dict:
        values = opportunity.to_dict()
        model_prob = values["model_prob"]
        market_prob = values["market_prob"]
        return {
            "League": values["league"],
            "Match": values["match"],
            "Pick": values["pick"],
            "Odd": values["odd"],
            "Edge": values["edge"],
            "EV": values["ev"],
            "Score": values["score"],
            "Confidence": values["confidence"],
            "Model_Prob_H": model_prob["home"],
            "Model_Prob_D": model_prob["draw"],
            "Model_Prob_A": model_prob["away"],
            "Market_Prob_H": market_prob["home"],
            "Market_Prob_D": market_prob["draw"],
            "Market_Prob_A": market_prob["away"],
            "Overround": market_prob["overround"],
        }
