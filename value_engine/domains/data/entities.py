import numbers
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ..shared.value_objects import BestOdds, Outcome


class MatchStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    TIMED = "TIMED"
    IN_PLAY = "IN_PLAY"
    PAUSED = "PAUSED"
    FINISHED = "FINISHED"
    POSTPONED = "POSTPONED"
    CANCELLED = "CANCELLED"


def _is_goal_count(value) -> bool:
    return (
        isinstance(value, numbers.Integral)
        and not isinstance(value, bool)
        and value >= 0
    )


@dataclass(frozen=True)
class MatchRecord:
    home_team: str
    away_team: str
    home_goals: Optional[int]
    away_goals: Optional[int]
    match_date: Optional[datetime]
    status: MatchStatus = MatchStatus.FINISHED
    match_id: Optional[str] = None
    league: Optional[str] = None
    odds: Optional[BestOdds] = None

    @property
    def is_finished(self) -> bool:
        """Finished with integer goal counts on both sides."""
        return (
            self.status == MatchStatus.FINISHED
            and _is_goal_count(self.home_goals)
            and _is_goal_count(self.away_goals)
        )

    @property
    def result(self) -> Optional[Outcome]:
        if not self.is_finished:
            return None
        return Outcome.from_goals(self.home_goals, self.away_goals)

    @property
    def total_goals(self) -> Optional[int]:
        if not self.is_finished:
            return None
        return self.home_goals + self.away_goals

    @property
    def label(self) -> str:
        return f"{self.home_team} vs {self.away_team}"
