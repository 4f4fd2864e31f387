#!/usr/bin/env python3

"""
    visited_store.py
    The persisted collections of visited countries, cities and summits.

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

    Each collection is a pretty-printed JSON array of flat objects, kept in
    insertion order:

        countries.json   [{"code": "FR", "name": "France"}, ...]
        cities.json      [{"geoname_id": 2988507, "name": "Paris", ...}, ...]
        summits.json     [{..., "elevation": 4808}, ...]

    Every insertion rewrites the touched files wholesale through an atomic
    rename, so a failed or interrupted write leaves the previous file intact.
    The store assumes a single writer.
"""

import json
from dataclasses import asdict, dataclass, fields
from datetime import date
from enum import Enum
from pathlib import Path

from atomic_file import atomic_writer, write_text_atomic
from parse_geonames import CountryDirectory, GeoRecord

# -----------------------------------------------------------------------------


class PersistenceError(Exception):
    """A store file could not be written; nothing was changed."""


class StoreLoadError(PersistenceError):
    """A store file exists but cannot be read back."""


class InsertOutcome(Enum):
    INSERTED = "inserted"
    ALREADY_PRESENT = "already_present"


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Country:
    code: str
    name: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Country":
        return cls(code=data["code"], name=data["name"])


@dataclass(frozen=True)
class VisitedCity:
    geoname_id: int
    name: str
    country_code: str
    latitude: float
    longitude: float
    visit_date: date | None = None

    @classmethod
    def from_record(cls, record: GeoRecord, visit_date: date | None = None):
        return cls(
            geoname_id=record.geoname_id,
            name=record.name,
            country_code=record.country_code,
            latitude=record.latitude,
            longitude=record.longitude,
            visit_date=visit_date,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["visit_date"] = self.visit_date.isoformat() if self.visit_date else None
        return data

    @classmethod
    def from_dict(cls, data: dict):
        values = {f.name: data[f.name] for f in fields(cls) if f.name != "visit_date"}
        visit_date = data.get("visit_date")
        return cls(
            **values,
            visit_date=date.fromisoformat(visit_date) if visit_date else None,
        )


@dataclass(frozen=True)
class VisitedSummit(VisitedCity):
    elevation: int = 0

    @classmethod
    def from_record(cls, record: GeoRecord, visit_date: date | None = None):
        if record.elevation is None:
            raise ValueError(f"Summit {record.name} ({record.geoname_id}) has no elevation")
        return cls(
            geoname_id=record.geoname_id,
            name=record.name,
            country_code=record.country_code,
            latitude=record.latitude,
            longitude=record.longitude,
            visit_date=visit_date,
            elevation=record.elevation,
        )


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

def _read_collection(path: Path, entry_type) -> list:
    if not path.exists():
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, list):
            raise TypeError(f"expected a JSON array, got {type(raw).__name__}")
        return [entry_type.from_dict(item) for item in raw]
    except (OSError, ValueError, TypeError, KeyError) as exc:
        raise StoreLoadError(f"Cannot read {path}: {exc}") from exc
# _read_collection


def _write_collection(path: Path, entries: list) -> None:
    content = json.dumps(
        [entry.to_dict() for entry in entries], indent=2, ensure_ascii=False
    )
    try:
        write_text_atomic(path, content + "\n")
    except OSError as exc:
        raise PersistenceError(f"Cannot write {path}: {exc}") from exc
# _write_collection


def _snapshot(path: Path) -> bytes | None:
    """Current bytes of path, or None when it does not exist."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise PersistenceError(f"Cannot read {path}: {exc}") from exc
# _snapshot


def _restore(path: Path, content: bytes | None) -> None:
    """Put back what _snapshot() saw: the old bytes, or no file at all."""
    if content is None:
        path.unlink(missing_ok=True)
        return
    with atomic_writer(path, "wb") as f:
        f.write(content)
# _restore


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class VisitedStore:
    """
    Sole owner of the visited-places files.

    insert_city() / insert_summit() are idempotent on geoname id and make
    sure the referenced country exists; insert_country() registers one
    directly. On a write failure the in-memory
    collections are rolled back and PersistenceError propagates, so the
    call can simply be retried.
    """

    def __init__(self, directory: Path,
                 countries_file: str = "countries.json",
                 cities_file: str = "cities.json",
                 summits_file: str = "summits.json",
                 country_names: CountryDirectory | None = None):
        self.directory = Path(directory)
        self.countries_path = self.directory / countries_file
        self.cities_path = self.directory / cities_file
        self.summits_path = self.directory / summits_file
        self.country_names = country_names

        self._countries: list[Country] = _read_collection(self.countries_path, Country)
        self._cities: list[VisitedCity] = _read_collection(self.cities_path, VisitedCity)
        self._summits: list[VisitedSummit] = _read_collection(self.summits_path, VisitedSummit)

    @classmethod
    def from_config(cls, section: dict,
                    country_names: CountryDirectory | None = None) -> "VisitedStore":
        return cls(
            Path(section.get("dir", "docs/data")),
            countries_file=section.get("countries_file", "countries.json"),
            cities_file=section.get("cities_file", "cities.json"),
            summits_file=section.get("summits_file", "summits.json"),
            country_names=country_names,
        )

    # ------------------------------------------------------------------ #
    # Reading
    # ------------------------------------------------------------------ #

    def list_countries(self) -> list[Country]:
        return list(self._countries)

    def list_cities(self) -> list[VisitedCity]:
        return list(self._cities)

    def list_summits(self) -> list[VisitedSummit]:
        return list(self._summits)

    def country_name(self, code: str) -> str:
        for country in self._countries:
            if country.code == code:
                return country.name
        return code

    # ------------------------------------------------------------------ #
    # Insertion
    # ------------------------------------------------------------------ #

    def insert_city(self, record: GeoRecord,
                    visit_date: date | None = None) -> InsertOutcome:
        return self._insert(self._cities, self.cities_path,
                            VisitedCity.from_record(record, visit_date))

    def insert_summit(self, record: GeoRecord,
                      visit_date: date | None = None) -> InsertOutcome:
        return self._insert(self._summits, self.summits_path,
                            VisitedSummit.from_record(record, visit_date))

    def insert_country(self, code: str, name: str | None = None) -> InsertOutcome:
        """Register a country explicitly, with or without any place in it."""
        country = self._new_country(code.strip().upper(), name)
        if country is None:
            return InsertOutcome.ALREADY_PRESENT
        self._countries.append(country)
        try:
            _write_collection(self.countries_path, self._countries)
        except PersistenceError:
            self._countries.pop()
            raise
        return InsertOutcome.INSERTED
    # insert_country

    def _new_country(self, code: str, name: str | None = None) -> Country | None:
        if any(c.code == code for c in self._countries):
            return None
        if name is None:
            name = self.country_names.name_for(code) if self.country_names else code
        return Country(code=code, name=name)

    def _insert(self, entries: list, path: Path, entry: VisitedCity) -> InsertOutcome:
        if any(e.geoname_id == entry.geoname_id for e in entries):
            return InsertOutcome.ALREADY_PRESENT

        country = self._new_country(entry.country_code)
        if country is not None:
            countries_before = _snapshot(self.countries_path)
            self._countries.append(country)
        entries.append(entry)

        countries_written = False
        try:
            if country is not None:
                _write_collection(self.countries_path, self._countries)
                countries_written = True
            _write_collection(path, entries)
        except PersistenceError as exc:
            entries.pop()
            if countries_written:
                try:
                    _restore(self.countries_path, countries_before)
                except OSError as restore_exc:
                    # the country stays in memory, matching what is on disk
                    raise PersistenceError(
                        f"{exc}; restoring {self.countries_path} also failed: {restore_exc}"
                    ) from exc
            if country is not None:
                self._countries.pop()
            raise
        return InsertOutcome.INSERTED
    # _insert

    # ------------------------------------------------------------------ #
    # Consistency
    # ------------------------------------------------------------------ #

    def check_consistency(self) -> list[str]:
        """Human-readable list of problems; empty when the store is sound."""
        problems = []
        codes = [c.code for c in self._countries]
        for code in sorted({c for c in codes if codes.count(c) > 1}):
            problems.append(f"country {code} is listed {codes.count(code)} times")
        known = set(codes)

        for label, entries in (("city", self._cities), ("summit", self._summits)):
            ids = [e.geoname_id for e in entries]
            for geoname_id in sorted({i for i in ids if ids.count(i) > 1}):
                problems.append(f"{label} {geoname_id} is listed {ids.count(geoname_id)} times")
            for e in entries:
                if e.country_code not in known:
                    problems.append(
                        f"{label} {e.name} ({e.geoname_id}) references unknown country"
                        f" {e.country_code}"
                    )
        return problems
    # check_consistency
# VisitedStore
