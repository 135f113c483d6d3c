from abc import ABC, abstractmethod
from typing import Dict, List

from .entities import MatchRecord


class MatchRepository(ABC):
    @abstractmethod
    def get_by_league(self, league: str) -> List[MatchRecord]:
        pass

    @abstractmethod
    def get_finished_matches(self, league: str) -> List[MatchRecord]:
        pass


class OddsRepository(ABC):
    @abstractmethod
    def get_odds_events(self, sport_key: str) -> List[Dict]:
        pass
