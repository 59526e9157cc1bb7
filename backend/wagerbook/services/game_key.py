from __future__ import annotations

import logging

from wagerbook.services.identity_resolver import IdentityResolver, Team

logger = logging.getLogger(__name__)


def game_key(away: Team, home: Team) -> str:
    """Provider-agnostic correlation key. Only ever built from resolved teams."""
    return f"{away.id}|{home.id}"


def provider_game_key(
    resolver: IdentityResolver,
    league: str,
    away_identifier: str | None,
    home_identifier: str | None,
) -> str | None:
    """Key for a provider record, or None when either side cannot be resolved."""
    away = resolver.resolve(away_identifier, league)
    home = resolver.resolve(home_identifier, league)
    if away is None or home is None:
        logger.info(
            "skipping unmatched provider record: league=%s away='%s' resolved=%s home='%s' resolved=%s",
            league,
            away_identifier,
            away is not None,
            home_identifier,
            home is not None,
        )
        return None
    if away.id == home.id:
        logger.warning("provider record resolves both sides to %s; skipping", away.id)
        return None
    return game_key(away, home)
