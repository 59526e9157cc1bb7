import re
from typing import Any

from rapidfuzz import fuzz, utils

FUZZY_CUTOFF = 90
NO_LINE_SENTINELS = frozenset({"", "-", "off", "n/a", "na", "nl", "none", "null", "missing", "err"})
PICKEM_TOKENS = frozenset({"pk", "pick", "pick'em", "pickem", "ev", "even"})


def normalize_str(s: str | None) -> str:
    """Normalize strings for robust comparisons."""
    if s is None:
        return ""
    return re.sub(r"\s+", " ", s.strip().casefold())


def parse_number(value: Any) -> float | None:
    """Lenient numeric conversion for feed values; sentinels and junk become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if value != value else float(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if normalize_str(text) in NO_LINE_SENTINELS:
        return None
    cleaned = re.sub(r"[^0-9.+-]", "", text)
    if cleaned in {"", "+", "-", "."}:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_american_price(value: Any) -> int | None:
    """Usable American price or None. Zero is a no-line sentinel; anything inside (-100, 100) is malformed."""
    number = parse_number(value)
    if number is None or abs(number) < 100:
        return None
    return int(round(number))


def parse_point(value: Any) -> float | None:
    if isinstance(value, str) and normalize_str(value) in PICKEM_TOKENS:
        return 0.0
    return parse_number(value)


def format_american_odds(price: int) -> str:
    """+150 / -110 with the sign always explicit."""
    if price == 0:
        raise ValueError("American odds cannot be 0")
    return f"+{price}" if price > 0 else str(price)


def format_spread_line(point: float) -> str:
    if point == 0:
        return "0"
    return f"{point:+g}"


def format_total_line(point: float) -> str:
    return f"{point:g}"


def fuzzy_team_match(candidate: str | None, known: str | None) -> bool:
    """Loose comparison used only after exact resolution failed."""
    if not normalize_str(candidate) or not normalize_str(known):
        return False
    score = fuzz.token_set_ratio(candidate, known, processor=utils.default_process, score_cutoff=FUZZY_CUTOFF)
    return score >= FUZZY_CUTOFF
