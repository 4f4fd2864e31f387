#!/usr/bin/env python3

"""
    export_map.py
    Read-only export of the visited-places store for the map front-end:
    a GeoJSON file and/or a relational database.

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

    The config 'export.database' section accepts either a SQLAlchemy URL:

        database:
        url: "sqlite:///docs/data/waymarks.db"

    or legacy PostgreSQL components (a postgresql+psycopg2 URL is built automatically):

        database:
        host: localhost
        port: 5432
        user: myuser
        password: mypassword
        dbname: mydb
"""

import json
from pathlib import Path

from sqlalchemy import (
    CHAR, Column, Date, Float, Integer, MetaData, String, Table, create_engine,
)
from sqlalchemy.engine import Engine

from atomic_file import write_text_atomic
from visited_store import VisitedCity, VisitedStore

# ---------------------------------------------------------------------------
# Schema — table definitions via SQLAlchemy Core
# ---------------------------------------------------------------------------

metadata = MetaData()

t_country = Table(
    "country", metadata,
    Column("code",       CHAR(2),      primary_key=True),
    Column("name",       String(200),  nullable=False),
)

t_visited_city = Table(
    "visited_city", metadata,
    Column("geonameid",  Integer,      primary_key=True, autoincrement=False),
    Column("name",       String(200),  nullable=False),
    Column("country",    CHAR(2),      nullable=False),
    Column("latitude",   Float,        nullable=False),
    Column("longitude",  Float,        nullable=False),
    Column("visit_date", Date,         nullable=True),
)

t_visited_summit = Table(
    "visited_summit", metadata,
    Column("geonameid",  Integer,      primary_key=True, autoincrement=False),
    Column("name",       String(200),  nullable=False),
    Column("country",    CHAR(2),      nullable=False),
    Column("latitude",   Float,        nullable=False),
    Column("longitude",  Float,        nullable=False),
    Column("elevation",  Integer,      nullable=False),
    Column("visit_date", Date,         nullable=True),
)

# Drop order that respects dependencies (dependents first)
_DROP_ORDER = [t_visited_summit, t_visited_city, t_country]

_CHUNK_SIZE = 1_000


# ---------------------------------------------------------------------------
# GeoJSON
# ---------------------------------------------------------------------------

def _feature(entry: VisitedCity, kind: str, store: VisitedStore) -> dict:
    properties = {
        "geonameid": entry.geoname_id,
        "name": entry.name,
        "kind": kind,
        "country_code": entry.country_code,
        "country": store.country_name(entry.country_code),
        "elevation": getattr(entry, "elevation", None),
        "visit_date": entry.visit_date.isoformat() if entry.visit_date else None,
    }
    return {
        "type": "Feature",
        # GeoJSON positions are [longitude, latitude]
        "geometry": {"type": "Point", "coordinates": [entry.longitude, entry.latitude]},
        "properties": properties,
    }
# _feature


def build_features(store: VisitedStore) -> dict:
    """GeoJSON FeatureCollection of every visited city and summit, in store order."""
    features = [_feature(c, "city", store) for c in store.list_cities()]
    features += [_feature(s, "summit", store) for s in store.list_summits()]
    return {
        "type": "FeatureCollection",
        "features": features,
        "countries": [c.to_dict() for c in store.list_countries()],
    }
# build_features


# -----------------------------------------------------------------------------


def write_geojson(store: VisitedStore, dest_path: Path) -> int:
    """Write the map file atomically. Returns the number of features."""
    collection = build_features(store)
    write_text_atomic(
        Path(dest_path), json.dumps(collection, indent=2, ensure_ascii=False) + "\n"
    )
    return len(collection["features"])
# write_geojson


# ---------------------------------------------------------------------------
# Relational database
# ---------------------------------------------------------------------------

def build_engine(cfg: dict) -> Engine:
    """Build a SQLAlchemy engine from the 'export.database' section of the config."""
    db = cfg["export"]["database"]
    if "url" in db:
        return create_engine(db["url"])
    # Legacy format: individual PostgreSQL components
    return create_engine(
        f"postgresql+psycopg2://{db['user']}:{db['password']}"
        f"@{db['host']}:{db['port']}/{db['dbname']}"
    )
# build_engine


# -----------------------------------------------------------------------------


def drop_and_create_tables(engine: Engine) -> None:
    """Drop the export tables and recreate them empty."""
    metadata.drop_all(engine, tables=_DROP_ORDER)
    metadata.create_all(engine)
# drop_and_create_tables


# -----------------------------------------------------------------------------


def _insert_chunks(conn, table: Table, rows: list[dict]) -> int:
    for start in range(0, len(rows), _CHUNK_SIZE):
        conn.execute(table.insert(), rows[start:start + _CHUNK_SIZE])
    return len(rows)
# _insert_chunks


def export_to_database(store: VisitedStore, engine: Engine) -> dict[str, int]:
    """Replace the export tables with the store contents in one transaction."""
    drop_and_create_tables(engine)

    countries = [{"code": c.code, "name": c.name} for c in store.list_countries()]
    cities = [
        {"geonameid": c.geoname_id, "name": c.name, "country": c.country_code,
         "latitude": c.latitude, "longitude": c.longitude, "visit_date": c.visit_date}
        for c in store.list_cities()
    ]
    summits = [
        {"geonameid": s.geoname_id, "name": s.name, "country": s.country_code,
         "latitude": s.latitude, "longitude": s.longitude, "elevation": s.elevation,
         "visit_date": s.visit_date}
        for s in store.list_summits()
    ]

    with engine.begin() as conn:
        return {
            t_country.name: _insert_chunks(conn, t_country, countries),
            t_visited_city.name: _insert_chunks(conn, t_visited_city, cities),
            t_visited_summit.name: _insert_chunks(conn, t_visited_summit, summits),
        }
# export_to_database
