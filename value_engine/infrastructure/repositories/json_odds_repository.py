import logging
from typing import Dict, List, Optional

from ...domains.data.repositories import OddsRepository
from ..adapters.file_adapter import JSONFileAdapter
from ..cache import TTLCache

logger = logging.getLogger(__name__)


class JsonOddsRepository(OddsRepository):
    """
    Odds events stored as one JSON list per sport key, e.g. ``soccer_epl.json``.

    Each event carries home_team, away_team and bookmakers[].markets[] with
    h2h outcomes. Reads go through a TTL cache owned by the repository.
    """

    def __init__(self, file_adapter: JSONFileAdapter, cache: Optional[TTLCache] = None):
        self.file_adapter = file_adapter
        self.cache = cache or TTLCache()

    def get_odds_events(self, sport_key: str) -> List[Dict]:
        cached = self.cache.get(sport_key)
        if cached is not None:
            return cached

        filename = f"{sport_key}.json"
        if not self.file_adapter.file_exists(filename):
            logger.warning(f"No odds file for {sport_key}")
            return []

        events = self.file_adapter.read_json(filename)
        if not isinstance(events, list):
            logger.warning(f"Odds file for {sport_key} is not a list of events")
            return []

        self.cache.set(sport_key, events)
        logger.info(f"Loaded {len(events)} odds events for {sport_key}")
        return events

    def save_odds_events(self, sport_key: str, events: List[Dict]) -> None:
        self.file_adapter.write_json(events, f"{sport_key}.json")
        self.cache.expire(sport_key)
