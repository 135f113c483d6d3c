import logging
from typing import List, Optional

import pandas as pd

from ...domains.data.entities import MatchRecord, MatchStatus
from ...domains.data.repositories import MatchRepository
from ...domains.shared.exceptions import InvalidMatchDataException
from ...domains.shared.value_objects import BestOdds
from ..adapters.file_adapter import CSVFileAdapter

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("Date", "Home", "Away", "FTHG", "FTAG")
ODDS_COLUMNS = ("OddHome", "OddDraw", "OddAway")


class CSVMatchRepository(MatchRepository):
    """
    Matches stored as one CSV per league, e.g. ``PL.csv``.

    Required columns: Date, Home, Away, FTHG, FTAG. Optional: Status, League,
    MatchId and closing prices OddHome, OddDraw, OddAway.
    """

    def __init__(self, file_adapter: CSVFileAdapter):
        self.file_adapter = file_adapter

    def get_by_league(self, league: str) -> List[MatchRecord]:
        filename = self._get_filename(league)
        if not self.file_adapter.file_exists(filename):
            logger.warning(f"No match file {filename} for {league}")
            return []

        df = self.file_adapter.read_csv(filename)
        logger.info(f"Loaded {len(df)} rows for {league}")
        return self._dataframe_to_matches(df, league)

    def get_finished_matches(self, league: str) -> List[MatchRecord]:
        return [m for m in self.get_by_league(league) if m.is_finished]

    def save_matches(self, league: str, matches: List[MatchRecord]) -> None:
        df = self._matches_to_dataframe(matches)
        self.file_adapter.write_csv(df, self._get_filename(league))

    @staticmethod
    def _get_filename(league: str) -> str:
        safe_name = league.replace(" ", "_").replace("-", "_")
        return f"{safe_name}.csv"

    def _dataframe_to_matches(
        self, df: pd.DataFrame, league: Optional[str] = None
    ) -> List[MatchRecord]:
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise InvalidMatchDataException(
                f"Match data for {league} is missing columns: {', '.join(missing)}"
            )

        df = df.copy()
        df["Date"] = pd.to_datetime(df["Date"], errors="coerce")

        valid_dates = df["Date"].notna()
        if not valid_dates.all():
            logger.warning(f"Dropping {(~valid_dates).sum()} rows with invalid dates")
            df = df[valid_dates]

        # Stable sort keeps same-day fixtures in file order
        df = df.sort_values("Date", kind="mergesort")

        matches = []
        for _, row in df.iterrows():
            home_goals = _to_goals(row.get("FTHG"))
            away_goals = _to_goals(row.get("FTAG"))
            matches.append(
                MatchRecord(
                    home_team=str(row["Home"]),
                    away_team=str(row["Away"]),
                    home_goals=home_goals,
                    away_goals=away_goals,
                    match_date=row["Date"].to_pydatetime(),
                    status=_to_status(row.get("Status"), home_goals, away_goals),
                    match_id=_to_optional_str(row.get("MatchId")),
                    league=_to_optional_str(row.get("League")) or league,
                    odds=_to_odds(row),
                )
            )
        return matches

    @staticmethod
    def _matches_to_dataframe(matches: List[MatchRecord]) -> pd.DataFrame:
        data = []
        for match in matches:
            data.append(
                {
                    "Date": match.match_date,
                    "Home": match.home_team,
                    "Away": match.away_team,
                    "FTHG": match.home_goals,
                    "FTAG": match.away_goals,
                    "Status": match.status.value,
                    "League": match.league,
                    "MatchId": match.match_id,
                    "OddHome": match.odds.best_home if match.odds else None,
                    "OddDraw": match.odds.best_draw if match.odds else None,
                    "OddAway": match.odds.best_away if match.odds else None,
                }
            )
        return pd.DataFrame(data)


def _to_goals(value) -> Optional[int]:
    if value is None or pd.isna(value):
        return None
    try:
        goals = float(value)
    except (TypeError, ValueError):
        return None
    if goals < 0 or not goals.is_integer():
        return None
    return int(goals)


def _to_status(value, home_goals, away_goals) -> MatchStatus:
    if value is not None and not pd.isna(value):
        try:
            return MatchStatus(str(value).upper())
        except ValueError:
            logger.warning(f"Unknown match status {value!r}")
    if home_goals is None or away_goals is None:
        return MatchStatus.SCHEDULED
    return MatchStatus.FINISHED


def _to_optional_str(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    return str(value)


def _to_odds(row: pd.Series) -> Optional[BestOdds]:
    prices = []
    for column in ODDS_COLUMNS:
        value = row.get(column)
        if value is None or pd.isna(value):
            return None
        prices.append(float(value))

    odds = BestOdds(*prices)
    return odds if odds.is_valid() else None
