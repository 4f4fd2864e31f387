#!/usr/bin/env python3

"""
    waymarks.py
    Keeps track of visited cities, countries and summits, resolving the
    names you type against the GeoNames reference data.

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

    Configuration is read from config/config.yaml (or --config argument).

    Usage:
        python waymarks.py add-cities Paris Lyon --country FR
        python waymarks.py ac "San Jose" --country "Costa Rica" --date 2024-03-02
        python waymarks.py add-summits Matterhorn --country CH
        python waymarks.py add-countries FR "Costa Rica"
        python waymarks.py list
        python waymarks.py check
        python waymarks.py export [--database]
"""

import argparse
import sys
import time
from datetime import date
from pathlib import Path

from download_geonames import (
    FetchError, IntegrityError, ensure_from_config, load_config,
)
from export_map import build_engine, export_to_database, write_geojson
from parse_geonames import (
    DEFAULT_MAX_SKIP_RATIO, CorruptDatasetError, parse_country_info,
)
from reconcile import Reconciler, format_summary
from reference_index import build_from_datasets
from resolve_places import Query, Resolver, feature_kinds_from_config
from visited_store import InsertOutcome, PersistenceError, VisitedStore

# -----------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Track visited places resolved against GeoNames."
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to config YAML file (default: config/config.yaml)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    for command, alias, kind in (("add-cities", "ac", "city"),
                                 ("add-summits", "as", "summit")):
        add = sub.add_parser(command, aliases=[alias],
                             help=f"Resolve {kind} names and add them to the store")
        add.set_defaults(feature_kind=kind)
        add.add_argument("names", nargs="+", help=f"{kind.capitalize()} names")
        add.add_argument("-c", "--country",
                         help="Country hint: ISO code or country name")
        add.add_argument("-a", "--admin",
                         help="First-level administrative code hint (e.g. CA, 11)")
        add.add_argument("-d", "--date", type=date.fromisoformat,
                         help="Visit date, YYYY-MM-DD")

    countries = sub.add_parser("add-countries",
                               help="Add countries by ISO code or name, without any place")
    countries.add_argument("names", nargs="+", help="Country codes or names")

    sub.add_parser("list", help="List the stored countries, cities and summits")
    sub.add_parser("check", help="Check the store for consistency problems")

    export = sub.add_parser("export", help="Write the map export")
    export.add_argument("--geojson", type=Path,
                        help="GeoJSON output path (default: export.map_file)")
    export.add_argument("--database", action="store_true",
                        help="Also export into the configured export.database")
    return parser.parse_args(argv)
# parse_args


# -----------------------------------------------------------------------------


def add_places(config: dict, args: argparse.Namespace) -> int:
    gn = config["geonames"]
    kinds = feature_kinds_from_config(config.get("feature_kinds"))

    print("\nPreparing reference data:")
    country_handle = ensure_from_config(gn, gn.get("country_info_file", "countryInfo.txt"))
    handles = [ensure_from_config(gn, f) for f in gn.get("datasets", ["cities500.zip"])]

    countries = parse_country_info(country_handle.path)
    print(f"  Loaded {len(countries):,} countries.")

    print("\nBuilding reference index:")
    index = build_from_datasets(
        handles,
        summit_codes=kinds["summit"].feature_codes,
        max_skip_ratio=float(gn.get("max_skip_ratio", DEFAULT_MAX_SKIP_RATIO)),
        keep_alternate_names=bool(gn.get("index_alternate_names", False)),
    )
    print(f"  {len(index):,} distinct places indexed.")

    store = VisitedStore.from_config(config.get("store", {}), country_names=countries)
    reconciler = Reconciler(Resolver(index, countries, kinds), store)
    queries = [
        Query(name, country_hint=args.country, feature_kind=args.feature_kind,
              admin_hint=args.admin, visit_date=args.date)
        for name in args.names
    ]

    print()
    print(format_summary(reconciler.reconcile_all(queries)))
    return 0
# add_places


# -----------------------------------------------------------------------------


def add_countries(config: dict, args: argparse.Namespace) -> int:
    gn = config["geonames"]

    print("\nPreparing reference data:")
    handle = ensure_from_config(gn, gn.get("country_info_file", "countryInfo.txt"))
    countries = parse_country_info(handle.path)

    store = VisitedStore.from_config(config.get("store", {}), country_names=countries)
    groups = {"Inserted": [], "Already present": [], "Not found": []}
    for name in args.names:
        info = countries.resolve(name)
        if info is None:
            groups["Not found"].append(f"'{name}': unknown country")
            continue
        outcome = store.insert_country(info.iso, info.name)
        title = "Inserted" if outcome is InsertOutcome.INSERTED else "Already present"
        groups[title].append(f"{info.name} ({info.iso})")

    print()
    for title, items in groups.items():
        if items:
            print(f"{title} ({len(items)}):")
            for item in items:
                print(f"  - {item}")
    print(f"Total: {len(args.names)}")
    return 0
# add_countries


# -----------------------------------------------------------------------------


def list_places(config: dict) -> int:
    store = VisitedStore.from_config(config.get("store", {}))
    countries = store.list_countries()
    print(f"Countries ({len(countries)}):")
    for c in countries:
        print(f"  {c.code}  {c.name}")
    for title, entries in (("Cities", store.list_cities()),
                           ("Summits", store.list_summits())):
        print(f"{title} ({len(entries)}):")
        for e in entries:
            elevation = f"  {e.elevation} m" if hasattr(e, "elevation") else ""
            visited = f"  visited {e.visit_date.isoformat()}" if e.visit_date else ""
            print(f"  {e.name} ({e.country_code}){elevation}{visited}")
    return 0
# list_places


def check_store(config: dict) -> int:
    problems = VisitedStore.from_config(config.get("store", {})).check_consistency()
    if not problems:
        print("Store is consistent.")
        return 0
    print(f"{len(problems)} problem(s) found:")
    for problem in problems:
        print(f"  - {problem}")
    return 1
# check_store


def export_places(config: dict, args: argparse.Namespace) -> int:
    export_cfg = config.get("export", {})
    store = VisitedStore.from_config(config.get("store", {}))

    dest = args.geojson or Path(export_cfg.get("map_file", "docs/data/map.geojson"))
    count = write_geojson(store, dest)
    print(f"  Wrote {count} features to {dest}")

    if args.database:
        if "database" not in export_cfg:
            print("Error: no export.database section in the config")
            return 1
        engine = build_engine(config)
        try:
            counts = export_to_database(store, engine)
        finally:
            engine.dispose()
        for table, rows in counts.items():
            print(f"  {table}: {rows:,} rows")
    return 0
# export_places


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    config = load_config(args.config)

    print("=" * 60)
    print("Waymarks")
    print(f"  Command : {args.command}")
    print(f"  Store   : {Path(config.get('store', {}).get('dir', 'docs/data')).resolve()}")
    print("=" * 60)

    start = time.perf_counter()
    try:
        if args.command in ("add-cities", "ac", "add-summits", "as"):
            status = add_places(config, args)
        elif args.command == "add-countries":
            status = add_countries(config, args)
        elif args.command == "list":
            status = list_places(config)
        elif args.command == "check":
            status = check_store(config)
        else:
            status = export_places(config, args)
    except (FetchError, IntegrityError, CorruptDatasetError, PersistenceError) as e:
        print(f"\nError: {e}")
        return 1

    print(f"\nCommand finished in {time.perf_counter() - start:.2f}s")
    return status
# main

# -----------------------------------------------------------------------------


if __name__ == "__main__":
    sys.exit(main())
# __main__
