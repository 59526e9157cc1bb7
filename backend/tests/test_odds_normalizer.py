import pytest

from wagerbook.services.odds_normalizer import (
    format_american_odds,
    format_spread_line,
    format_total_line,
    fuzzy_team_match,
    parse_american_price,
    parse_number,
    parse_point,
)


@pytest.mark.parametrize("raw", [None, "", "0", 0, "OFF", "N/A", "-", "NL", "  off  "])
def test_no_line_sentinels_are_not_prices(raw) -> None:
    assert parse_american_price(raw) is None


@pytest.mark.parametrize("raw", ["+50", "50", "-50", 99, "-99.5", "2.50", "1.91"])
def test_prices_inside_plus_minus_100_are_malformed(raw) -> None:
    assert parse_american_price(raw) is None


def test_prices_parse_from_strings_and_numbers() -> None:
    assert parse_american_price("+150") == 150
    assert parse_american_price("-110") == -110
    assert parse_american_price(-105.0) == -105
    assert parse_american_price("+100") == 100


def test_parse_number_strips_junk() -> None:
    assert parse_number(" +3.5 ") == 3.5
    assert parse_number("o45.5") == 45.5
    assert parse_number("abc") is None
    assert parse_number(True) is None


def test_pickem_tokens_parse_as_zero_point() -> None:
    assert parse_point("PK") == 0.0
    assert parse_point("pick'em") == 0.0
    assert parse_point("-3") == -3.0


def test_boundary_formatting_is_signed() -> None:
    assert format_american_odds(150) == "+150"
    assert format_american_odds(-110) == "-110"
    assert format_spread_line(3.5) == "+3.5"
    assert format_spread_line(-7) == "-7"
    assert format_spread_line(0) == "0"
    assert format_total_line(45.5) == "45.5"
    assert format_total_line(210.0) == "210"


def test_format_rejects_zero_price() -> None:
    with pytest.raises(ValueError):
        format_american_odds(0)


def test_fuzzy_match_on_shared_tokens() -> None:
    assert fuzzy_team_match("LA Rams", "Rams")
    assert fuzzy_team_match("Rams", "Los Angeles Rams")
    assert not fuzzy_team_match("Los Angeles Chargers", "Los Angeles Rams")
    assert not fuzzy_team_match("", "Rams")


def test_fuzzy_match_ignores_case_and_punctuation() -> None:
    assert fuzzy_team_match("DALLAS COWBOYS (DAL)", "Dallas Cowboys")
    assert fuzzy_team_match("New York", "New York Giants")
    assert fuzzy_team_match("New York", "New York Jets")
    assert not fuzzy_team_match("New York Giants", "New York Jets")
    assert not fuzzy_team_match("LA Rams", "DAL")
    assert not fuzzy_team_match("(!)", "Rams")

