from abc import ABC, abstractmethod
from typing import List

from .entities import Opportunity, SettledBet


class BettingRepository(ABC):
    @abstractmethod
    def save_opportunities(self, opportunities: List[Opportunity]) -> None:
        pass

    @abstractmethod
    def save_results(self, results: List[SettledBet]) -> None:
        pass
