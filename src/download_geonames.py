#!/usr/bin/env python3

"""
    download_geonames.py
    Makes sure the GeoNames reference files exist locally, fetching them
    from geonames.org when they are missing, damaged or stale.

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

    Configuration is read from config/config.yaml.

    Usage:
        python download_geonames.py [--config CONFIG_FILE]
"""

import argparse
import io
import os
import sys
import time
import zipfile
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import requests
import yaml
from tqdm import tqdm

from atomic_file import atomic_writer

# Both the geoname dump and countryInfo.txt have 19 tab-separated columns.
GEONAMES_FIELD_COUNT = 19

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 2.0

# -----------------------------------------------------------------------------


class FetchError(Exception):
    """The remote file could not be retrieved after all attempts."""


class IntegrityError(Exception):
    """A local or freshly fetched file does not look like a GeoNames file."""


@dataclass(frozen=True)
class DatasetHandle:
    """A verified local copy of a reference file."""
    path: Path
    source_url: str
    fetched: bool = False


# -----------------------------------------------------------------------------


def load_config(config_path: str) -> dict:
    with open(config_path, "r") as f:
        return yaml.safe_load(f)
# load_config


# -----------------------------------------------------------------------------


def _lines_look_valid(lines: Iterable[str], expected_fields: int) -> bool:
    """True if the first data line (after '#' comments) has the right shape."""
    for line in lines:
        line = line.rstrip("\r\n")
        if not line or line.startswith("#"):
            continue
        return len(line.split("\t")) == expected_fields
    return False
# _lines_look_valid


def check_integrity(path: Path,
                    expected_fields: int = GEONAMES_FIELD_COUNT) -> bool:
    """Basic sanity check: file exists, is non-empty, first record parses."""
    path = Path(path)
    if not path.is_file() or path.stat().st_size == 0:
        return False
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return _lines_look_valid(f, expected_fields)
# check_integrity


# -----------------------------------------------------------------------------


def is_stale(path: Path, max_age_days: float | None) -> bool:
    if max_age_days is None:
        return False
    age_seconds = time.time() - Path(path).stat().st_mtime
    return age_seconds > max_age_days * 86400
# is_stale


# -----------------------------------------------------------------------------


def download_file(url: str, dest_path: Path) -> None:
    """Stream url into dest_path with a progress bar; dest_path is replaced atomically."""
    response = requests.get(url, stream=True, timeout=60)
    response.raise_for_status()

    total = int(response.headers.get("Content-Length", 0))
    with atomic_writer(dest_path, "wb") as f, tqdm(
        total=total,
        unit="B",
        unit_scale=True,
        unit_divisor=1024,
        desc=f"    {Path(dest_path).name}",
        leave=False,
    ) as bar:
        for chunk in response.iter_content(chunk_size=8192):
            f.write(chunk)
            bar.update(len(chunk))
# download_file


# -----------------------------------------------------------------------------


def fetch_with_retries(url: str, dest_path: Path,
                       max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                       backoff_seconds: float = DEFAULT_BACKOFF_SECONDS) -> None:
    """Call download_file up to max_attempts times, sleeping attempt * backoff between tries."""
    last_error: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            print(f"  Downloading {url} (attempt {attempt}/{max_attempts}) ...")
            download_file(url, dest_path)
            return
        except (requests.RequestException, OSError) as exc:
            last_error = exc
            print(f"  WARNING: download failed: {exc}", file=sys.stderr)
            if attempt < max_attempts:
                time.sleep(backoff_seconds * attempt)
    raise FetchError(
        f"Could not fetch {url} after {max_attempts} attempts: {last_error}"
    ) from last_error
# fetch_with_retries


# -----------------------------------------------------------------------------


def unzip_file(zip_path: Path, member: str, dest_path: Path,
               expected_fields: int = GEONAMES_FIELD_COUNT) -> None:
    """Verify one member of a zip archive and extract it atomically to dest_path."""
    print(f"  Extracting {member} from {Path(zip_path).name} ...")
    try:
        with zipfile.ZipFile(zip_path, "r") as zf:
            if member not in zf.namelist():
                raise IntegrityError(f"{zip_path} does not contain {member}")
            with zf.open(member) as raw:
                text = io.TextIOWrapper(raw, encoding="utf-8", errors="replace")
                if not _lines_look_valid(text, expected_fields):
                    raise IntegrityError(
                        f"{member} in {zip_path} is empty or malformed"
                    )
            with zf.open(member) as src, atomic_writer(dest_path, "wb") as dst:
                while chunk := src.read(1 << 20):
                    dst.write(chunk)
    except zipfile.BadZipFile as exc:
        raise IntegrityError(f"{zip_path} is not a valid zip archive") from exc
# unzip_file


# -----------------------------------------------------------------------------


def _fetch_into(path: Path, remote_url: str, expected_fields: int,
                max_attempts: int, backoff_seconds: float) -> None:
    if remote_url.endswith(".zip"):
        archive = path.with_name(remote_url.rsplit("/", 1)[-1])
        fetch_with_retries(remote_url, archive, max_attempts, backoff_seconds)
        unzip_file(archive, path.name, path, expected_fields)
        return

    staging = path.with_name(path.name + ".download")
    fetch_with_retries(remote_url, staging, max_attempts, backoff_seconds)
    if not check_integrity(staging, expected_fields):
        staging.unlink(missing_ok=True)
        raise IntegrityError(f"Fetched {remote_url} is empty or malformed")
    os.replace(staging, path)
# _fetch_into


def ensure_available(path: Path, remote_url: str, *,
                     expected_fields: int = GEONAMES_FIELD_COUNT,
                     max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                     backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
                     max_age_days: float | None = None) -> DatasetHandle:
    """
    Return a handle to a verified local copy of remote_url at path.

    The file is (re)fetched when missing, when it fails check_integrity(),
    or when it is older than max_age_days. A stale but intact file is kept
    if the refresh fails. remote_url may point at a .zip archive whose
    member is named like path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if check_integrity(path, expected_fields):
        if not is_stale(path, max_age_days):
            print(f"  {path.name}: present, skipping download.")
            return DatasetHandle(path, remote_url, fetched=False)
        print(f"  {path.name}: older than {max_age_days} days, refreshing ...")
        try:
            _fetch_into(path, remote_url, expected_fields,
                        max_attempts, backoff_seconds)
        except (FetchError, IntegrityError) as exc:
            print(f"  WARNING: keeping stale {path.name}: {exc}", file=sys.stderr)
            return DatasetHandle(path, remote_url, fetched=False)
        return DatasetHandle(path, remote_url, fetched=True)

    if path.exists():
        print(f"  {path.name}: failed integrity check, fetching again.")
    _fetch_into(path, remote_url, expected_fields, max_attempts, backoff_seconds)
    if not check_integrity(path, expected_fields):
        raise IntegrityError(f"{path} is empty or malformed after fetching")
    return DatasetHandle(path, remote_url, fetched=True)
# ensure_available


# -----------------------------------------------------------------------------


def dataset_url(base_url: str, filename: str) -> str:
    return f"{base_url.rstrip('/')}/{filename}"
# dataset_url


def local_text_path(data_dir: Path, filename: str) -> Path:
    """allCountries.zip -> <data_dir>/allCountries.txt"""
    return Path(data_dir) / (Path(filename).stem + ".txt")
# local_text_path


def ensure_from_config(gn: dict, filename: str) -> DatasetHandle:
    """ensure_available() for one file named in the 'geonames' config section."""
    return ensure_available(
        local_text_path(Path(gn["data_dir"]), filename),
        dataset_url(gn["url_data"], filename),
        max_attempts=int(gn.get("max_attempts", DEFAULT_MAX_ATTEMPTS)),
        backoff_seconds=float(gn.get("backoff_seconds", DEFAULT_BACKOFF_SECONDS)),
        max_age_days=gn.get("max_age_days"),
    )
# ensure_from_config


# -----------------------------------------------------------------------------


def main() -> None:
    parser = argparse.ArgumentParser(description="Download GeoNames reference files.")
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="Path to config YAML file (default: config/config.yaml)",
    )
    args = parser.parse_args()

    config = load_config(args.config)
    gn = config["geonames"]

    print("=" * 60)
    print("GeoNames reference downloader")
    print(f"  Data directory : {Path(gn['data_dir']).resolve()}")
    print(f"  Source URL     : {gn['url_data']}")
    print("=" * 60)

    try:
        for filename in [gn.get("country_info_file", "countryInfo.txt"),
                         *gn.get("datasets", ["cities500.zip"])]:
            ensure_from_config(gn, filename)
    except (FetchError, IntegrityError) as e:
        print(f"\nError: {e}")
        sys.exit(1)

    print("\nDownload complete.")
# main

# -----------------------------------------------------------------------------


if __name__ == "__main__":
    main()
# __main__
