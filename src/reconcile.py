#!/usr/bin/env python3

"""
    reconcile.py
    Resolves a batch of queries and merges the matches into the store,
    reporting one outcome per query.

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
"""

from collections.abc import Iterable
from dataclasses import dataclass

from parse_geonames import GeoRecord
from resolve_places import (
    CITY_FEATURE_CLASS, SUMMIT_FEATURE_CLASS, Ambiguous, Matched, NotFound, Query,
    Resolver,
)
from visited_store import InsertOutcome, PersistenceError, VisitedStore

# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Inserted:
    query: Query
    record: GeoRecord


@dataclass(frozen=True)
class AlreadyPresent:
    query: Query
    record: GeoRecord


@dataclass(frozen=True)
class Failed:
    """The match could not be stored (write failure, summit without elevation,
    or a feature kind with no collection in the store)."""
    query: Query
    record: GeoRecord
    error: str


# Ambiguous and NotFound are passed through from the resolver unchanged.
ReconcileOutcome = Inserted | AlreadyPresent | Ambiguous | NotFound | Failed


# -----------------------------------------------------------------------------


class Reconciler:
    def __init__(self, resolver: Resolver, store: VisitedStore):
        self.resolver = resolver
        self.store = store

    def _insert(self, query: Query, record: GeoRecord) -> InsertOutcome:
        kind = self.resolver.kinds[query.feature_kind]
        if kind.feature_class == SUMMIT_FEATURE_CLASS:
            return self.store.insert_summit(record, query.visit_date)
        if kind.feature_class == CITY_FEATURE_CLASS:
            return self.store.insert_city(record, query.visit_date)
        raise ValueError(
            f"Feature kind {kind.name!r} (class {kind.feature_class}) cannot be stored"
        )

    def reconcile(self, query: Query) -> ReconcileOutcome:
        if query.feature_kind not in self.resolver.kinds:
            return NotFound(
                query,
                f"unknown feature kind {query.feature_kind!r};"
                f" expected one of {sorted(self.resolver.kinds)}",
            )
        result = self.resolver.resolve(query)
        if not isinstance(result, Matched):
            return result
        try:
            outcome = self._insert(query, result.record)
        except (PersistenceError, ValueError) as exc:
            return Failed(query, result.record, str(exc))
        if outcome is InsertOutcome.INSERTED:
            return Inserted(query, result.record)
        return AlreadyPresent(query, result.record)
    # reconcile

    def reconcile_all(self, queries: Iterable[Query]) -> list[ReconcileOutcome]:
        """Process queries in order; each one stands on its own."""
        return [self.reconcile(query) for query in queries]
# Reconciler


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

def _describe(record: GeoRecord) -> str:
    where = record.country_code
    if record.admin_code:
        where = f"{record.admin_code}, {where}"
    extra = f", {record.elevation} m" if record.elevation is not None else ""
    return (
        f"{record.name} ({where}; {record.latitude:.5f}, {record.longitude:.5f}{extra};"
        f" geonameid {record.geoname_id})"
    )
# _describe


def format_summary(outcomes: list[ReconcileOutcome]) -> str:
    """Summary report grouping inserted / already present / ambiguous / not found."""
    groups = [
        ("Inserted", Inserted),
        ("Already present", AlreadyPresent),
        ("Ambiguous", Ambiguous),
        ("Not found", NotFound),
        ("Failed", Failed),
    ]
    lines = []
    for title, kind in groups:
        items = [o for o in outcomes if isinstance(o, kind)]
        if not items:
            continue
        lines.append(f"{title} ({len(items)}):")
        for item in items:
            if isinstance(item, Ambiguous):
                lines.append(
                    f"  - '{item.query}': {len(item.candidates)} candidates,"
                    " re-run with a country hint:"
                )
                for n, candidate in enumerate(item.candidates):
                    marker = "  (most likely)" if n == 0 else ""
                    lines.append(f"      * {_describe(candidate)}{marker}")
            elif isinstance(item, NotFound):
                lines.append(f"  - '{item.query}': {item.reason}")
            elif isinstance(item, Failed):
                lines.append(f"  - {_describe(item.record)}: {item.error}")
            else:
                lines.append(f"  - {_describe(item.record)}")

    counts = ", ".join(
        f"{sum(isinstance(o, kind) for o in outcomes)} {title.lower()}"
        for title, kind in groups
    )
    lines.append(f"Total: {len(outcomes)} ({counts})")
    return "\n".join(lines)
# format_summary
