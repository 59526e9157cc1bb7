from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from wagerbook.services.odds_normalizer import normalize_str

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Team:
    id: str
    canonical_name: str
    league: str
    aliases: frozenset[str] = field(default_factory=frozenset)
    external_ids: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}), hash=False, compare=False)

    def names(self) -> list[str]:
        return [self.canonical_name, *sorted(self.aliases)]


@dataclass(frozen=True)
class _LeagueIndex:
    by_canonical: Mapping[str, Team]
    by_external_id: Mapping[str, Team]
    by_alias: Mapping[str, Team]


def _register(index: dict[str, Team], key: str, team: Team, kind: str) -> None:
    normalized = normalize_str(key)
    if not normalized:
        return
    existing = index.get(normalized)
    if existing is not None and existing.id != team.id:
        raise ValueError(
            f"{kind} '{key}' maps to both {existing.id} and {team.id} in league {team.league}"
        )
    index[normalized] = team


class IdentityResolver:
    def __init__(self, teams: Iterable[Team]) -> None:
        by_id: dict[str, Team] = {}
        canonical: dict[str, dict[str, Team]] = {}
        external: dict[str, dict[str, Team]] = {}
        aliases: dict[str, dict[str, Team]] = {}

        for team in teams:
            if team.id in by_id:
                raise ValueError(f"Duplicate team id {team.id}")
            by_id[team.id] = team
            league = normalize_str(team.league)
            _register(canonical.setdefault(league, {}), team.canonical_name, team, "canonical name")
            for ext_id in team.external_ids.values():
                _register(external.setdefault(league, {}), ext_id, team, "external id")
            for alias in team.aliases:
                _register(aliases.setdefault(league, {}), alias, team, "alias")

        self._by_id = MappingProxyType(by_id)
        self._leagues = tuple(sorted(canonical))
        self._index = MappingProxyType(
            {
                league: _LeagueIndex(
                    by_canonical=MappingProxyType(canonical.get(league, {})),
                    by_external_id=MappingProxyType(external.get(league, {})),
                    by_alias=MappingProxyType(aliases.get(league, {})),
                )
                for league in self._leagues
            }
        )

    @property
    def leagues(self) -> tuple[str, ...]:
        return self._leagues

    def get(self, team_id: str) -> Team | None:
        return self._by_id.get(team_id)

    def teams(self, league: str | None = None) -> list[Team]:
        if league is None:
            return list(self._by_id.values())
        normalized = normalize_str(league)
        return [t for t in self._by_id.values() if normalize_str(t.league) == normalized]

    def resolve(self, identifier: str | None, league: str | None = None) -> Team | None:
        """Return the Team for any known identifier, or None when nothing matches."""
        key = normalize_str(identifier)
        if not key:
            return None

        if league is not None:
            scoped = self._index.get(normalize_str(league))
            if scoped is None:
                return None
            searched = [scoped]
        else:
            searched = [self._index[name] for name in self._leagues]

        for kind in ("by_canonical", "by_external_id", "by_alias"):
            hits = [getattr(idx, kind)[key] for idx in searched if key in getattr(idx, kind)]
            if hits:
                if len(hits) > 1:
                    logger.debug(
                        "identifier '%s' matched %s teams across leagues; using %s",
                        identifier,
                        len(hits),
                        hits[0].id,
                    )
                return hits[0]

        logger.debug("identifier '%s' not resolved (league=%s)", identifier, league)
        return None


def team_from_dict(raw: dict) -> Team:
    return Team(
        id=str(raw["id"]),
        canonical_name=str(raw["canonical_name"]),
        league=str(raw["league"]).lower(),
        aliases=frozenset(str(a) for a in raw.get("aliases", [])),
        external_ids=MappingProxyType({str(k): str(v) for k, v in (raw.get("external_ids") or {}).items()}),
    )


def load_teams(path: str | Path) -> list[Team]:
    with open(path, encoding="utf-8") as fh:
        rows = json.load(fh)
    teams = [team_from_dict(row) for row in rows]
    logger.info("team reference data loaded: path=%s teams=%s", path, len(teams))
    return teams


def build_resolver(path: str | Path) -> IdentityResolver:
    return IdentityResolver(load_teams(path))
