#!/usr/bin/env python3

"""
    parse_geonames.py
    Streams a GeoNames dump (allCountries.txt, cities500.txt, XX.txt ...)
    into typed GeoRecord values, and reads countryInfo.txt.

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

    The geoname dump has 19 tab-separated columns:

        geonameid, name, asciiname, alternatenames, latitude, longitude,
        feature class, feature code, country code, cc2, admin1 code,
        admin2 code, admin3 code, admin4 code, population, elevation,
        dem, timezone, modification date

    Only the columns needed for resolution are kept. Malformed lines are
    skipped and counted; if more than max_skip_ratio of the data lines are
    malformed the whole file is rejected with CorruptDatasetError.
"""

import csv
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from download_geonames import GEONAMES_FIELD_COUNT, DatasetHandle
from place_names import normalize_name

DEFAULT_MAX_SKIP_RATIO = 0.5

# Feature codes of class T that describe a peak; elevation is mandatory for them.
DEFAULT_SUMMIT_CODES = frozenset({"MT", "MTS", "PK", "PKS", "HLL", "HLLS", "VLC"})

# Column positions in the geoname dump
_ID, _NAME, _ASCII, _ALT, _LAT, _LON, _FCLASS, _FCODE, _CC = range(9)
_ADMIN1 = 10
_POPULATION = 14
_ELEVATION = 15

# -----------------------------------------------------------------------------


class CorruptDatasetError(Exception):
    """Too many malformed lines: the file is not a usable GeoNames dump."""


@dataclass(frozen=True)
class GeoRecord:
    geoname_id: int
    name: str
    ascii_name: str
    country_code: str
    admin_code: str | None
    latitude: float
    longitude: float
    elevation: int | None
    feature_class: str
    feature_code: str
    population: int = 0
    alternate_names: tuple[str, ...] = ()


@dataclass
class ParseStats:
    """Counters filled in while a dump is streamed."""
    source: str = ""
    lines: int = 0
    records: int = 0
    skipped: int = 0
    skipped_samples: list[int] = field(default_factory=list)  # data line numbers

    @property
    def skip_ratio(self) -> float:
        return self.skipped / self.lines if self.lines else 0.0


class MalformedLine(ValueError):
    pass


# -----------------------------------------------------------------------------


def _iter_tsv_lines(filepath: Path) -> Iterator[list[str]]:
    """Stream a tab-delimited file as raw field lists, skipping comment/blank lines."""
    with open(filepath, "r", encoding="utf-8", errors="replace", newline="") as f:
        reader = csv.reader(f, delimiter="\t", quotechar="\x01")
        for line in reader:
            if not line or line == [""]:
                continue
            if line[0].startswith("#"):
                continue
            yield line
# _iter_tsv_lines


# -----------------------------------------------------------------------------


def _optional_int(value: str, column: str) -> int | None:
    value = value.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise MalformedLine(f"non-numeric {column}: {value!r}") from None
# _optional_int


def parse_line(fields: list[str],
               summit_codes: frozenset[str] = DEFAULT_SUMMIT_CODES,
               keep_alternate_names: bool = False) -> GeoRecord:
    """Turn one geoname row into a GeoRecord, or raise MalformedLine."""
    if len(fields) != GEONAMES_FIELD_COUNT:
        raise MalformedLine(f"expected {GEONAMES_FIELD_COUNT} fields, got {len(fields)}")

    try:
        geoname_id = int(fields[_ID])
        latitude = float(fields[_LAT])
        longitude = float(fields[_LON])
    except ValueError:
        raise MalformedLine("non-numeric id or coordinates") from None
    # float() accepts "nan" and "inf"; neither compares inside the ranges
    if not (-90.0 <= latitude <= 90.0) or not (-180.0 <= longitude <= 180.0):
        raise MalformedLine(f"coordinates out of range: {latitude}, {longitude}")

    name = fields[_NAME].strip()
    if not name:
        raise MalformedLine("empty name")
    country_code = fields[_CC].strip().upper()
    if len(country_code) != 2:
        raise MalformedLine(f"bad country code: {country_code!r}")

    feature_class = fields[_FCLASS].strip()
    feature_code = fields[_FCODE].strip()
    elevation = _optional_int(fields[_ELEVATION], "elevation")
    if elevation is None and feature_class == "T" and feature_code in summit_codes:
        raise MalformedLine(f"summit {geoname_id} has no elevation")

    alternate_names: tuple[str, ...] = ()
    if keep_alternate_names and fields[_ALT]:
        alternate_names = tuple(n for n in fields[_ALT].split(",") if n)

    return GeoRecord(
        geoname_id=geoname_id,
        name=name,
        ascii_name=fields[_ASCII].strip() or name,
        country_code=country_code,
        admin_code=fields[_ADMIN1].strip() or None,
        latitude=latitude,
        longitude=longitude,
        elevation=elevation,
        feature_class=feature_class,
        feature_code=feature_code,
        population=_optional_int(fields[_POPULATION], "population") or 0,
        alternate_names=alternate_names,
    )
# parse_line


# -----------------------------------------------------------------------------


def parse_rows(rows: Iterable[list[str]], *,
               summit_codes: frozenset[str] = DEFAULT_SUMMIT_CODES,
               max_skip_ratio: float = DEFAULT_MAX_SKIP_RATIO,
               keep_alternate_names: bool = False,
               stats: ParseStats | None = None) -> Iterator[GeoRecord]:
    """
    Lazily convert raw rows to GeoRecords.

    The skip ratio can only be judged once the input is exhausted, so
    CorruptDatasetError is raised at the end of iteration; consumers that
    build something from the records must discard it when that happens.
    """
    stats = stats if stats is not None else ParseStats()
    for fields in rows:
        stats.lines += 1
        try:
            record = parse_line(fields, summit_codes, keep_alternate_names)
        except MalformedLine:
            stats.skipped += 1
            if len(stats.skipped_samples) < 10:
                stats.skipped_samples.append(stats.lines)
            continue
        stats.records += 1
        yield record

    if stats.lines and stats.skip_ratio > max_skip_ratio:
        raise CorruptDatasetError(
            f"{stats.source or 'dataset'}: {stats.skipped:,} of {stats.lines:,} lines "
            f"are malformed ({stats.skip_ratio:.0%} > {max_skip_ratio:.0%})"
        )
# parse_rows


def parse(handle: DatasetHandle, *,
          summit_codes: frozenset[str] = DEFAULT_SUMMIT_CODES,
          max_skip_ratio: float = DEFAULT_MAX_SKIP_RATIO,
          keep_alternate_names: bool = False,
          stats: ParseStats | None = None) -> Iterator[GeoRecord]:
    """Open the dataset behind handle and stream its GeoRecords (see parse_rows)."""
    stats = stats if stats is not None else ParseStats()
    stats.source = handle.path.name
    return parse_rows(
        _iter_tsv_lines(handle.path),
        summit_codes=summit_codes,
        max_skip_ratio=max_skip_ratio,
        keep_alternate_names=keep_alternate_names,
        stats=stats,
    )
# parse


# ---------------------------------------------------------------------------
# countryInfo.txt
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CountryInfo:
    iso: str
    iso3: str
    name: str
    geoname_id: int | None = None


class CountryDirectory:
    """ISO code <-> country name lookups built from countryInfo.txt."""

    def __init__(self, countries: Iterable[CountryInfo] = ()):
        self._by_iso: dict[str, CountryInfo] = {}
        self._by_name: dict[str, CountryInfo] = {}
        for country in countries:
            self.add(country)

    def add(self, country: CountryInfo) -> None:
        self._by_iso[country.iso.upper()] = country
        self._by_iso.setdefault(country.iso3.upper(), country)
        self._by_name[normalize_name(country.name)] = country

    def __len__(self) -> int:
        return len({c.iso for c in self._by_iso.values()})

    def by_code(self, code: str) -> CountryInfo | None:
        return self._by_iso.get(code.strip().upper())

    def name_for(self, code: str) -> str:
        """Country name for an ISO code, or the code itself when unknown."""
        country = self.by_code(code)
        return country.name if country else code.upper()

    def resolve(self, name_or_code: str) -> CountryInfo | None:
        """Accept 'fr', 'FRA', 'France' or 'france' alike."""
        return self.by_code(name_or_code) or self._by_name.get(normalize_name(name_or_code))
# CountryDirectory


def parse_country_info(filepath: Path) -> CountryDirectory:
    directory = CountryDirectory()
    for fields in _iter_tsv_lines(filepath):
        if len(fields) < 5 or len(fields[0].strip()) != 2:
            continue
        geoname_id = fields[16].strip() if len(fields) > 16 else ""
        directory.add(CountryInfo(
            iso=fields[0].strip().upper(),
            iso3=fields[1].strip().upper(),
            name=fields[4].strip(),
            geoname_id=int(geoname_id) if geoname_id.isdigit() else None,
        ))
    return directory
# parse_country_info
