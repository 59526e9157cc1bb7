from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class League:
    key: str
    title: str
    odds_api_sport: str
    jsonodds_sport: str
    espn_path: str


LEAGUES = MappingProxyType(
    {
        "nfl": League("nfl", "NFL", "americanfootball_nfl", "nfl", "football/nfl"),
        "nba": League("nba", "NBA", "basketball_nba", "nba", "basketball/nba"),
        "nhl": League("nhl", "NHL", "icehockey_nhl", "nhl", "hockey/nhl"),
        "mlb": League("mlb", "MLB", "baseball_mlb", "mlb", "baseball/mlb"),
        "ncaaf": League("ncaaf", "College Football", "americanfootball_ncaaf", "ncaaf", "football/college-football"),
        "ncaab": League(
            "ncaab", "College Basketball", "basketball_ncaab", "ncaab", "basketball/mens-college-basketball"
        ),
    }
)


def get_league(key: str) -> League:
    try:
        return LEAGUES[key.strip().lower()]
    except KeyError:
        raise ValueError(f"Unsupported league: {key}") from None
