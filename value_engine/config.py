import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values, load_dotenv

load_dotenv()

env_values = dotenv_values()


def _setting(key: str, default: str) -> str:
    return env_values.get(key) or os.environ.get(key) or default


class Leagues(Enum):
    PL = {"sport_key": "soccer_epl", "name": "Premier League"}
    SA = {"sport_key": "soccer_italy_serie_a", "name": "Serie A"}
    PD = {"sport_key": "soccer_spain_la_liga", "name": "La Liga"}
    BL1 = {"sport_key": "soccer_germany_bundesliga", "name": "Bundesliga"}
    FL1 = {"sport_key": "soccer_france_ligue_one", "name": "Ligue 1"}
    BSA = {"sport_key": "soccer_brazil_campeonato", "name": "Brasileirao Serie A"}
    DED = {"sport_key": "soccer_netherlands_eredivisie", "name": "Eredivisie"}
    PPL = {"sport_key": "soccer_portugal_primeira_liga", "name": "Primeira Liga"}

    @property
    def sport_key(self) -> str:
        return self.value["sport_key"]

    @property
    def display_name(self) -> str:
        return self.value["name"]

    @classmethod
    def from_code(cls, code: str) -> "Leagues":
        try:
            return cls[code.upper()]
        except KeyError:
            raise ValueError(f"Unknown league code: {code}") from None

    @classmethod
    def from_sport_key(cls, sport_key: str) -> Optional["Leagues"]:
        for league in cls:
            if league.sport_key == sport_key:
                return league
        return None


@dataclass
class AppConfig:
    def __init__(self):
        self.data_dir: Path = Path(_setting("DATA_DIR", "data"))
        self.odds_dir: Path = Path(_setting("ODDS_DIR", str(self.data_dir / "odds")))
        self.config_dir: Path = Path(_setting("CONFIG_DIR", "league_configs"))
        self.output_dir: Path = Path(_setting("OUTPUT_DIR", "output"))
        self.log_level: str = _setting("LOG_LEVEL", "INFO").upper()

    @property
    def matches_dir(self) -> Path:
        return self.data_dir / "matches"

    @property
    def plots_dir(self) -> Path:
        return self.output_dir / "plots"
