from __future__ import annotations

from collections.abc import Sequence
from types import MappingProxyType

from wagerbook.exceptions import ValidationFailure
from wagerbook.services.outcomes import PickOutcome

MIN_PARLAY_LEGS = 3
MAX_PARLAY_LEGS = 10

PARLAY_MULTIPLIERS = MappingProxyType({3: 8, 4: 15, 5: 25, 6: 50, 7: 100, 8: 150, 9: 200, 10: 250})


def parlay_multiplier(leg_count: int) -> int:
    try:
        return PARLAY_MULTIPLIERS[leg_count]
    except KeyError:
        raise ValidationFailure(
            f"parlay must have {MIN_PARLAY_LEGS}-{MAX_PARLAY_LEGS} legs, got {leg_count}"
        ) from None


def settle_parlay(stake: float, leg_outcomes: Sequence[PickOutcome]) -> tuple[str, float]:
    """All legs must win. A push leg loses the parlay; there is no reduction to a shorter parlay."""
    multiplier = parlay_multiplier(len(leg_outcomes))
    if all(o == PickOutcome.WIN for o in leg_outcomes):
        return "won", round(stake * multiplier, 2)
    return "lost", 0.0
