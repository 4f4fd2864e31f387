#!/usr/bin/env python3

"""
    reference_index.py
    In-memory lookup structures over parsed GeoNames records.

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

    Three maps are kept, all pointing at geoname ids:

        name                  -> ids      (no country hint)
        (name, country code)  -> ids
        (country, admin1)     -> ids

    Every record is filed under the normalized form of its name and its
    ascii name (and, optionally, its alternate names). Sets are used so
    that building from several files, in any order, gives the same index.
"""

from collections import defaultdict
from collections.abc import Iterable

from tqdm import tqdm

from download_geonames import DatasetHandle
from parse_geonames import (
    DEFAULT_MAX_SKIP_RATIO, DEFAULT_SUMMIT_CODES, GeoRecord, ParseStats, parse,
)
from place_names import normalize_name

# -----------------------------------------------------------------------------


def record_keys(record: GeoRecord) -> set[str]:
    """All normalized name keys a record is reachable under."""
    names = [record.name, record.ascii_name, *record.alternate_names]
    return {key for key in map(normalize_name, names) if key}
# record_keys


# -----------------------------------------------------------------------------


class ReferenceIndex:
    """Owns every GeoRecord of a run and answers name lookups."""

    def __init__(self):
        self._records: dict[int, GeoRecord] = {}
        self._by_name: dict[str, set[int]] = defaultdict(set)
        self._by_name_country: dict[tuple[str, str], set[int]] = defaultdict(set)
        self._by_admin: dict[tuple[str, str], set[int]] = defaultdict(set)

    # ------------------------------------------------------------------ #
    # Building
    # ------------------------------------------------------------------ #

    @classmethod
    def build(cls, records: Iterable[GeoRecord],
              progress: bool = False, desc: str = "Indexing") -> "ReferenceIndex":
        """
        Consume records once and index them.

        If the iterable raises (e.g. CorruptDatasetError at the end of a
        parser stream) the partial index is dropped and the error propagates.
        """
        index = cls()
        if progress:
            records = tqdm(records, unit=" rows", unit_scale=True, desc=desc, leave=False)
        for record in records:
            index.add(record)
        return index
    # build

    def add(self, record: GeoRecord) -> bool:
        """Index one record; a geoname id seen before is ignored. Returns True if added."""
        if record.geoname_id in self._records:
            return False
        self._records[record.geoname_id] = record
        for key in record_keys(record):
            self._by_name[key].add(record.geoname_id)
            self._by_name_country[(key, record.country_code)].add(record.geoname_id)
        if record.admin_code:
            key = (record.country_code, record.admin_code.upper())
            self._by_admin[key].add(record.geoname_id)
        return True
    # add

    def merge(self, other: "ReferenceIndex") -> "ReferenceIndex":
        """Fold another index into this one (per-key set union). Returns self."""
        for geoname_id in sorted(other._records):
            self.add(other._records[geoname_id])
        return self
    # merge

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, geoname_id: int) -> bool:
        return geoname_id in self._records

    def get(self, geoname_id: int) -> GeoRecord | None:
        return self._records.get(geoname_id)

    def _materialize(self, ids: Iterable[int]) -> list[GeoRecord]:
        return [self._records[i] for i in sorted(ids)]

    def lookup_name(self, name: str) -> list[GeoRecord]:
        """Records whose name normalizes to name's key, in any country (sorted by id)."""
        return self._materialize(self._by_name.get(normalize_name(name), ()))

    def lookup_name_country(self, name: str, country_code: str) -> list[GeoRecord]:
        key = (normalize_name(name), country_code.strip().upper())
        return self._materialize(self._by_name_country.get(key, ()))

    def in_admin(self, country_code: str, admin_code: str) -> list[GeoRecord]:
        """Records in first-level subdivision admin_code of country_code."""
        key = (country_code.strip().upper(), admin_code.strip().upper())
        return self._materialize(self._by_admin.get(key, ()))

    def snapshot(self) -> dict:
        """Plain-data view of all three maps, for comparing two indexes."""
        def freeze(mapping):
            return {k: frozenset(v) for k, v in mapping.items()}

        return {
            "records": dict(self._records),
            "by_name": freeze(self._by_name),
            "by_name_country": freeze(self._by_name_country),
            "by_admin": freeze(self._by_admin),
        }
    # snapshot
# ReferenceIndex


# -----------------------------------------------------------------------------


def build_from_datasets(handles: Iterable[DatasetHandle], *,
                        summit_codes: frozenset[str] = DEFAULT_SUMMIT_CODES,
                        max_skip_ratio: float = DEFAULT_MAX_SKIP_RATIO,
                        keep_alternate_names: bool = False,
                        progress: bool = True) -> ReferenceIndex:
    """Parse every dataset and merge the per-file indexes into one."""
    index = ReferenceIndex()
    for handle in handles:
        stats = ParseStats()
        records = parse(
            handle,
            summit_codes=summit_codes,
            max_skip_ratio=max_skip_ratio,
            keep_alternate_names=keep_alternate_names,
            stats=stats,
        )
        part = ReferenceIndex.build(records, progress=progress,
                                    desc=f"    {handle.path.name}")
        print(
            f"  Indexed {handle.path.name}: {stats.records:,} records"
            f" ({stats.skipped:,} malformed lines skipped)"
        )
        if stats.skipped_samples:
            more = " ..." if stats.skipped > len(stats.skipped_samples) else ""
            lines = ", ".join(str(n) for n in stats.skipped_samples)
            print(f"    first malformed data lines: {lines}{more}")
        index.merge(part)
    return index
# build_from_datasets
