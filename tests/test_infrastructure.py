import json
from datetime import datetime

import pandas as pd
import pytest

from value_engine.domains.betting.services import BetSettlementService, MarketEngine
from value_engine.domains.data.entities import MatchStatus
from value_engine.domains.shared.exceptions import InvalidMatchDataException
from value_engine.domains.shared.value_objects import BestOdds, Probabilities
from value_engine.infrastructure.adapters.file_adapter import (
    CSVFileAdapter,
    JSONFileAdapter,
)
from value_engine.infrastructure.cache import TTLCache
from value_engine.infrastructure.repositories.csv_betting_repository import (
    CSVBettingRepository,
)
from value_engine.infrastructure.repositories.csv_match_repository import (
    CSVMatchRepository,
)
from value_engine.infrastructure.repositories.json_odds_repository import (
    JsonOddsRepository,
)
from value_engine.utils.odds_helpers import market_probabilities

from .test_odds_helpers import make_event


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestTTLCache:
    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("epl", [1, 2])

        clock.now = 9.9
        assert cache.get("epl") == [1, 2]
        assert "epl" in cache

        clock.now = 10.0
        assert cache.get("epl") is None
        assert "epl" not in cache
        assert len(cache) == 0

    def test_per_entry_ttl_expire_and_clear(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("a", 1, ttl_seconds=100)
        cache.set("b", 2)
        cache.set("c", 3)

        clock.now = 50
        assert cache.get("a") == 1
        assert cache.get("b", "missing") == "missing"

        cache.expire("a")
        assert cache.get("a") is None

        cache.set("d", 4)
        cache.clear()
        assert len(cache) == 0


@pytest.fixture
def match_csv(tmp_path):
    df = pd.DataFrame(
        {
            "Date": ["2025-08-16", "2025-08-09", "not a date", "2025-08-23"],
            "Home": ["TeamA", "TeamC", "TeamB", "TeamB"],
            "Away": ["TeamB", "TeamD", "TeamA", "TeamC"],
            "FTHG": [2, 1, 0, None],
            "FTAG": [1, 1, 0, None],
            "OddHome": [2.1, None, None, 1.9],
            "OddDraw": [3.3, None, None, 3.5],
            "OddAway": [3.6, None, None, 4.2],
        }
    )
    df.to_csv(tmp_path / "PL.csv", index=False)
    return tmp_path


class TestCSVMatchRepository:
    def test_rows_become_sorted_match_records(self, match_csv):
        repo = CSVMatchRepository(CSVFileAdapter(match_csv))

        matches = repo.get_by_league("PL")

        assert [m.match_date for m in matches] == [
            datetime(2025, 8, 9),
            datetime(2025, 8, 16),
            datetime(2025, 8, 23),
        ]
        first, second, third = matches
        assert first.home_goals == 1 and isinstance(first.home_goals, int)
        assert first.odds is None
        assert second.odds == BestOdds(2.1, 3.3, 3.6)
        assert second.league == "PL"
        assert third.status == MatchStatus.SCHEDULED
        assert not third.is_finished

    def test_finished_matches_only(self, match_csv):
        repo = CSVMatchRepository(CSVFileAdapter(match_csv))

        assert len(repo.get_finished_matches("PL")) == 2

    def test_missing_league_file(self, tmp_path):
        assert CSVMatchRepository(CSVFileAdapter(tmp_path)).get_by_league("SA") == []

    def test_missing_required_columns_are_rejected(self, tmp_path):
        pd.DataFrame(
            {"Date": ["2025-08-09"], "Home": ["TeamA"], "Away": ["TeamB"], "FTHG": [1]}
        ).to_csv(tmp_path / "PL.csv", index=False)
        repo = CSVMatchRepository(CSVFileAdapter(tmp_path))

        with pytest.raises(InvalidMatchDataException, match="FTAG"):
            repo.get_by_league("PL")

    def test_save_and_reload(self, match_csv):
        repo = CSVMatchRepository(CSVFileAdapter(match_csv))
        matches = repo.get_by_league("PL")

        repo.save_matches("PL_copy", matches)

        assert repo.get_by_league("PL_copy") == matches


class TestJsonOddsRepository:
    def test_events_are_cached(self, tmp_path):
        events = [make_event((2.0, 3.4, 4.0))]
        (tmp_path / "soccer_epl.json").write_text(json.dumps(events))
        repo = JsonOddsRepository(JSONFileAdapter(tmp_path))

        assert repo.get_odds_events("soccer_epl") == events

        (tmp_path / "soccer_epl.json").unlink()
        assert repo.get_odds_events("soccer_epl") == events

    def test_save_invalidates_cache(self, tmp_path):
        repo = JsonOddsRepository(JSONFileAdapter(tmp_path))
        assert repo.get_odds_events("soccer_epl") == []

        events = [make_event((2.0, 3.4, 4.0))]
        repo.save_odds_events("soccer_epl", events)

        assert repo.get_odds_events("soccer_epl") == events


def test_betting_repository_writes_opportunities_and_results(tmp_path):
    best = BestOdds(2.00, 3.40, 4.00)
    opportunity = MarketEngine().pick_opportunity(
        Probabilities(home=0.55, draw=0.25, away=0.20),
        market_probabilities(best),
        best,
        league="PL",
        match_label="TeamA vs TeamB",
    )
    repo = CSVBettingRepository(CSVFileAdapter(tmp_path))

    repo.save_opportunities([opportunity])
    repo.save_results([BetSettlementService().settle(opportunity, 1, 0)])

    saved = pd.read_csv(tmp_path / "opportunities.csv")
    assert saved.loc[0, "Pick"] == "HOME"
    assert saved.loc[0, "Match"] == "TeamA vs TeamB"
    results = pd.read_csv(tmp_path / "settled_bets.csv")
    assert results.loc[0, "Result"] == "WIN"
    assert results.loc[0, "Profit"] == pytest.approx(1.0)
