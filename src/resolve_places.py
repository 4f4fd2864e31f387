#!/usr/bin/env python3

"""
    resolve_places.py
    Resolves user-supplied place names against the reference index.

    Copyright (C) 2026 Rodolfo González González <code@rodolfo.gg>

    This program is free software: you can redistribute it and/or modify
    it under the terms of the GNU General Public License as published by
    the Free Software Foundation, either version 3 of the License, or
    (at your option) any later version.

    This program is distributed in the hope that it will be useful,
    but WITHOUT ANY WARRANTY; without even the implied warranty of
    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
    GNU General Public License for more details.

    You should have received a copy of the GNU General Public License
    along with this program.  If not, see <https://www.gnu.org/licenses/>.

    ---------------------------------------------------------------------------

    A resolution is one of three values, never an exception:

        Matched(record)         exactly one candidate
        Ambiguous(candidates)   several; the caller has to add a country hint
        NotFound(query)         nothing with that name and feature kind

    The resolver never picks one of several candidates by itself. Candidates
    are ranked (population, then how specific the feature code is) only so
    that the most likely one can be suggested to the user.
"""

from dataclasses import dataclass, field
from datetime import date

from parse_geonames import DEFAULT_SUMMIT_CODES, CountryDirectory, GeoRecord
from place_names import normalize_name
from reference_index import ReferenceIndex

# Feature classes of the two collections the store keeps
CITY_FEATURE_CLASS = "P"
SUMMIT_FEATURE_CLASS = "T"

# Populated-place codes, most specific first; the position is the tie-break rank.
CITY_CODES = (
    "PPLC", "PPLA", "PPLA2", "PPLA3", "PPLA4", "PPLA5", "PPLG",
    "PPL", "PPLS", "PPLL", "PPLF", "PPLR", "PPLX",
)
_CODE_RANK = {code: rank for rank, code in enumerate(CITY_CODES)}

# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FeatureKind:
    """A named set-membership test over (feature class, feature code)."""
    name: str
    feature_class: str
    feature_codes: frozenset[str] = frozenset()

    def matches(self, record: GeoRecord) -> bool:
        if record.feature_class != self.feature_class:
            return False
        return not self.feature_codes or record.feature_code in self.feature_codes


DEFAULT_FEATURE_KINDS = {
    "city": FeatureKind("city", CITY_FEATURE_CLASS, frozenset(CITY_CODES)),
    "summit": FeatureKind("summit", SUMMIT_FEATURE_CLASS, DEFAULT_SUMMIT_CODES),
}


def feature_kinds_from_config(section: dict | None) -> dict[str, FeatureKind]:
    """Build kinds from the 'feature_kinds' config section, falling back to the defaults."""
    kinds = dict(DEFAULT_FEATURE_KINDS)
    for name, spec in (section or {}).items():
        kinds[name] = FeatureKind(
            name=name,
            feature_class=spec["feature_class"],
            feature_codes=frozenset(spec.get("feature_codes") or ()),
        )
    return kinds
# feature_kinds_from_config


# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Query:
    name: str
    country_hint: str | None = None
    feature_kind: str = "city"
    admin_hint: str | None = None
    visit_date: date | None = None

    def __str__(self) -> str:
        parts = [self.name]
        if self.admin_hint:
            parts.append(self.admin_hint)
        if self.country_hint:
            parts.append(self.country_hint)
        return ", ".join(parts)


@dataclass(frozen=True)
class Matched:
    query: Query
    record: GeoRecord


@dataclass(frozen=True)
class Ambiguous:
    query: Query
    candidates: tuple[GeoRecord, ...]

    @property
    def suggested(self) -> GeoRecord:
        """Highest-ranked candidate; a hint for the user, never auto-selected."""
        return self.candidates[0]


@dataclass(frozen=True)
class NotFound:
    query: Query
    reason: str = field(default="no matching place", compare=False)


ResolutionResult = Matched | Ambiguous | NotFound


# -----------------------------------------------------------------------------


def rank_key(record: GeoRecord) -> tuple:
    """Bigger population first, then more specific feature code, then id."""
    return (-record.population, _CODE_RANK.get(record.feature_code, len(_CODE_RANK)),
            record.geoname_id)
# rank_key


def _country_code_for(hint: str, countries: CountryDirectory | None) -> str | None:
    if countries is not None and len(countries):
        info = countries.resolve(hint)
        return info.iso if info else None
    hint = hint.strip()
    return hint.upper() if len(hint) == 2 else None
# _country_code_for


def _from_candidates(query: Query, candidates: list[GeoRecord]) -> ResolutionResult:
    if not candidates:
        return NotFound(query)
    if len(candidates) == 1:
        return Matched(query, candidates[0])
    return Ambiguous(query, tuple(sorted(candidates, key=rank_key)))
# _from_candidates


def resolve(index: ReferenceIndex, query: Query,
            countries: CountryDirectory | None = None,
            kinds: dict[str, FeatureKind] | None = None) -> ResolutionResult:
    """
    Resolve query against index.

    1. normalize the name;
    2. with a country hint, look up (name, country); one match of the right
       feature kind is Matched, several are Ambiguous;
    3. otherwise, or when step 2 found nothing, look up the name alone:
       zero candidates is NotFound, one is Matched, more is Ambiguous.

    An admin hint narrows the candidates of either step to one first-level
    subdivision.
    """
    kinds = kinds or DEFAULT_FEATURE_KINDS
    try:
        kind = kinds[query.feature_kind]
    except KeyError:
        raise ValueError(
            f"Unknown feature kind {query.feature_kind!r}; expected one of {sorted(kinds)}"
        ) from None

    if not normalize_name(query.name):
        return NotFound(query, "empty name")

    admin = query.admin_hint.strip().upper() if query.admin_hint else None

    def keep(records: list[GeoRecord]) -> list[GeoRecord]:
        records = [r for r in records if kind.matches(r)]
        if admin:
            in_admin = {
                g.geoname_id
                for country in {r.country_code for r in records}
                for g in index.in_admin(country, admin)
            }
            records = [r for r in records if r.geoname_id in in_admin]
        return records

    if query.country_hint:
        country_code = _country_code_for(query.country_hint, countries)
        if country_code is None:
            return NotFound(query, f"unknown country {query.country_hint!r}")
        candidates = keep(index.lookup_name_country(query.name, country_code))
        if candidates:
            return _from_candidates(query, candidates)

    return _from_candidates(query, keep(index.lookup_name(query.name)))
# resolve


# -----------------------------------------------------------------------------


class Resolver:
    """resolve() bound to one index, country directory and set of feature kinds."""

    def __init__(self, index: ReferenceIndex,
                 countries: CountryDirectory | None = None,
                 kinds: dict[str, FeatureKind] | None = None):
        self.index = index
        self.countries = countries
        self.kinds = kinds or DEFAULT_FEATURE_KINDS

    def resolve(self, query: Query) -> ResolutionResult:
        return resolve(self.index, query, self.countries, self.kinds)
# Resolver
