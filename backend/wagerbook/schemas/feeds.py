from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

Provider = Literal["jsonodds", "the_odds_api", "espn"]
Market = Literal["moneyline", "spread", "total"]

_MINUTE_PRECISION = re.compile(r"T\d{2}:\d{2}(Z|[+-]\d{2}:\d{2})?$")


class FeedModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)


def _pad_seconds(value: Any) -> Any:
    if isinstance(value, str) and _MINUTE_PRECISION.search(value):
        head, _, tail = value.rpartition("T")
        return f"{head}T{tail[:5]}:00{tail[5:]}"
    return value


FeedDatetime = Annotated[datetime, BeforeValidator(_pad_seconds)]


# The Odds API v4 (/sports/{sport}/odds)


class OddsApiOutcome(FeedModel):
    name: str
    price: float | str | None = None
    point: float | str | None = None
    sid: str | None = None


class OddsApiMarket(FeedModel):
    key: str
    outcomes: list[OddsApiOutcome] = Field(default_factory=list)


class OddsApiBookmaker(FeedModel):
    key: str
    title: str | None = None
    markets: list[OddsApiMarket] = Field(default_factory=list)


class OddsApiEvent(FeedModel):
    id: str
    sport_key: str | None = None
    commence_time: datetime
    home_team: str
    away_team: str
    bookmakers: list[OddsApiBookmaker] = Field(default_factory=list)


# JsonOdds (/odds/{sport})


class JsonOddsLine(FeedModel):
    sportsbook: str | None = Field(default=None, alias="Sportsbook")
    odd_type: str | None = Field(default="Game", alias="OddType")
    money_line_home: str | float | None = Field(default=None, alias="MoneyLineHome")
    money_line_away: str | float | None = Field(default=None, alias="MoneyLineAway")
    point_spread_home: str | float | None = Field(default=None, alias="PointSpreadHome")
    point_spread_away: str | float | None = Field(default=None, alias="PointSpreadAway")
    point_spread_home_line: str | float | None = Field(default=None, alias="PointSpreadHomeLine")
    point_spread_away_line: str | float | None = Field(default=None, alias="PointSpreadAwayLine")
    total_number: str | float | None = Field(default=None, alias="TotalNumber")
    over_line: str | float | None = Field(default=None, alias="OverLine")
    under_line: str | float | None = Field(default=None, alias="UnderLine")


class JsonOddsEvent(FeedModel):
    id: str = Field(alias="ID")
    home_team: str = Field(alias="HomeTeam")
    away_team: str = Field(alias="AwayTeam")
    match_time: FeedDatetime | None = Field(default=None, alias="MatchTime")
    odds: list[JsonOddsLine] = Field(default_factory=list, alias="Odds")


# ESPN site scoreboard (/{sport}/{league}/scoreboard)


class EspnTeam(FeedModel):
    id: str
    display_name: str = Field(alias="displayName")
    abbreviation: str | None = None


class EspnCompetitor(FeedModel):
    home_away: str = Field(alias="homeAway")
    score: str | None = None
    team: EspnTeam


class EspnTeamOdds(FeedModel):
    money_line: float | str | None = Field(default=None, alias="moneyLine")


class EspnOdds(FeedModel):
    details: str | None = None
    over_under: float | str | None = Field(default=None, alias="overUnder")
    home_team_odds: EspnTeamOdds | None = Field(default=None, alias="homeTeamOdds")
    away_team_odds: EspnTeamOdds | None = Field(default=None, alias="awayTeamOdds")


class EspnCompetition(FeedModel):
    competitors: list[EspnCompetitor] = Field(default_factory=list)
    odds: list[EspnOdds] = Field(default_factory=list)


class EspnStatusType(FeedModel):
    state: str
    completed: bool = False


class EspnStatus(FeedModel):
    type: EspnStatusType


class EspnEvent(FeedModel):
    id: str
    date: FeedDatetime
    status: EspnStatus
    competitions: list[EspnCompetition] = Field(default_factory=list)


# Normalized shapes consumed by identity resolution and the merge layer


@dataclass(frozen=True, slots=True)
class RawOutcome:
    name: str | None
    price: Any
    point: Any = None
    sid: str | None = None


@dataclass(frozen=True, slots=True)
class RawQuote:
    provider: Provider
    league: str
    bookmaker: str
    market: Market
    home_team: str
    away_team: str
    outcomes: tuple[RawOutcome, ...]
    commence_time: datetime | None = None
    event_id: str | None = None


@dataclass(frozen=True, slots=True)
class ScheduleEvent:
    league: str
    event_id: str
    home_name: str
    away_name: str
    home_ref: str | None
    away_ref: str | None
    start_time: datetime
    state: str
    home_score: int | None
    away_score: int | None

    @property
    def is_final(self) -> bool:
        return self.state == "post"
