import logging
from datetime import UTC, datetime

import pytest

from wagerbook.schemas.feeds import EspnEvent, JsonOddsEvent, OddsApiEvent
from wagerbook.services.feed_ingestion import (
    espn_quotes,
    espn_schedule_event,
    jsonodds_quotes,
    odds_api_quotes,
    parse_events,
)
from wagerbook.services.odds_normalizer import parse_point

ODDS_API_EVENT = {
    "id": "e1",
    "sport_key": "americanfootball_nfl",
    "commence_time": "2026-10-18T17:00:00Z",
    "home_team": "Los Angeles Rams",
    "away_team": "Dallas Cowboys",
    "bookmakers": [
        {
            "key": "DraftKings",
            "markets": [
                {"key": "h2h", "outcomes": [{"name": "Los Angeles Rams", "price": -150}, {"name": "Dallas Cowboys", "price": 130}]},
                {"key": "h2h_lay", "outcomes": []},
                {
                    "key": "totals",
                    "outcomes": [
                        {"name": "Over", "price": -110, "point": 47.5},
                        {"name": "Under", "price": -110, "point": 47.5},
                    ],
                },
            ],
        }
    ],
}

JSONODDS_EVENT = {
    "ID": "j1",
    "HomeTeam": "Los Angeles Rams",
    "AwayTeam": "Dallas Cowboys",
    "MatchTime": "2026-10-18T17:00",
    "Odds": [
        {
            "Sportsbook": "Pinnacle",
            "OddType": "Game",
            "MoneyLineHome": "-150",
            "MoneyLineAway": "130",
            "PointSpreadHome": "-3",
            "PointSpreadAway": "3",
            "PointSpreadHomeLine": "-110",
            "PointSpreadAwayLine": "-110",
            "TotalNumber": "47.5",
            "OverLine": "-105",
            "UnderLine": "-115",
        },
        {"Sportsbook": "Pinnacle", "OddType": "First Half", "MoneyLineHome": "-120", "MoneyLineAway": "100"},
    ],
}

ESPN_EVENT = {
    "id": "401",
    "date": "2026-10-18T17:00Z",
    "status": {"type": {"state": "post", "completed": True}},
    "competitions": [
        {
            "competitors": [
                {"homeAway": "home", "score": "24", "team": {"id": "14", "displayName": "Los Angeles Rams", "abbreviation": "LAR"}},
                {"homeAway": "away", "score": "20", "team": {"id": "6", "displayName": "Dallas Cowboys", "abbreviation": "DAL"}},
            ],
            "odds": [{"details": "LAR -3", "overUnder": 47.5, "homeTeamOdds": {"moneyLine": -150}, "awayTeamOdds": {"moneyLine": 130}}],
        }
    ],
}


def test_malformed_events_are_dropped_at_the_boundary(caplog: pytest.LogCaptureFixture) -> None:
    payload = [ODDS_API_EVENT, {"id": "bad", "home_team": "x"}]
    with caplog.at_level(logging.WARNING):
        events = parse_events(OddsApiEvent, payload, "the_odds_api")
    assert [e.id for e in events] == ["e1"]
    assert "rejected malformed the_odds_api event" in caplog.text


def test_odds_api_markets_are_renamed_and_unknown_markets_dropped() -> None:
    event = OddsApiEvent.model_validate(ODDS_API_EVENT)
    quotes = odds_api_quotes(event, "nfl")
    assert [q.market for q in quotes] == ["moneyline", "total"]
    assert all(q.bookmaker == "draftkings" for q in quotes)
    assert quotes[0].commence_time == datetime(2026, 10, 18, 17, 0, tzinfo=UTC)
    assert parse_point(quotes[1].outcomes[0].point) == 47.5


def test_jsonodds_lines_expand_into_three_markets_for_full_game_only() -> None:
    event = JsonOddsEvent.model_validate(JSONODDS_EVENT)
    quotes = jsonodds_quotes(event, "nfl")
    assert [q.market for q in quotes] == ["moneyline", "spread", "total"]
    spread = quotes[1]
    assert spread.outcomes[0].name == "Los Angeles Rams"
    assert spread.outcomes[0].point == "-3"
    assert spread.outcomes[1].price == "-110"
    assert event.match_time == datetime(2026, 10, 18, 17, 0)


def test_espn_event_becomes_schedule_and_moneyline_quote() -> None:
    event = EspnEvent.model_validate(ESPN_EVENT)
    schedule = espn_schedule_event(event, "nfl")
    assert schedule.home_ref == "14"
    assert schedule.away_name == "Dallas Cowboys"
    assert (schedule.home_score, schedule.away_score) == (24, 20)
    assert schedule.is_final

    quotes = espn_quotes(event, "nfl")
    assert len(quotes) == 1
    assert quotes[0].market == "moneyline"
    assert quotes[0].home_team == "14"
    assert quotes[0].outcomes[0].sid == "14"


def test_espn_event_without_competitors_is_skipped() -> None:
    event = EspnEvent.model_validate({**ESPN_EVENT, "competitions": []})
    assert espn_schedule_event(event, "nfl") is None
    assert espn_quotes(event, "nfl") == []
