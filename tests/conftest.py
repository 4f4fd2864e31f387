"""
Shared fixtures: GeoNames rows, records and a small reference index.
"""

import pytest

from parse_geonames import GeoRecord
from reference_index import ReferenceIndex


def geoname_fields(
    geoname_id: int,
    name: str,
    country: str = "FR",
    latitude: str = "48.85341",
    longitude: str = "2.3488",
    fclass: str = "P",
    fcode: str = "PPL",
    admin1: str = "",
    population: str = "0",
    elevation: str = "",
    asciiname: str | None = None,
    alternatenames: str = "",
) -> list[str]:
    """One 19-column geoname row."""
    return [
        str(geoname_id), name, name if asciiname is None else asciiname,
        alternatenames, latitude, longitude, fclass, fcode, country, "",
        admin1, "", "", "", population, elevation, "42", "Europe/Paris",
        "2024-11-04",
    ]


@pytest.fixture
def row():
    """Factory for tab-joined geoname lines."""
    def _row(*args, **kwargs) -> str:
        return "\t".join(geoname_fields(*args, **kwargs))
    return _row


@pytest.fixture
def make_record():
    def _make(
        geoname_id: int,
        name: str,
        country_code: str = "FR",
        feature_class: str = "P",
        feature_code: str = "PPL",
        admin_code: str | None = None,
        population: int = 0,
        elevation: int | None = None,
        latitude: float = 45.0,
        longitude: float = 5.0,
        ascii_name: str | None = None,
    ) -> GeoRecord:
        return GeoRecord(
            geoname_id=geoname_id,
            name=name,
            ascii_name=ascii_name or name,
            country_code=country_code,
            admin_code=admin_code,
            latitude=latitude,
            longitude=longitude,
            elevation=elevation,
            feature_class=feature_class,
            feature_code=feature_code,
            population=population,
        )
    return _make


@pytest.fixture
def paris_index(make_record):
    """Paris (FR), Paris (US), Lyon (FR)."""
    return ReferenceIndex.build([
        make_record(1, "Paris", "FR", admin_code="11", population=2_138_551,
                    feature_code="PPLC", latitude=48.85341, longitude=2.3488),
        make_record(2, "Paris", "US", admin_code="TX", population=24_171,
                    feature_code="PPLA2", latitude=33.66094, longitude=-95.55551),
        make_record(3, "Lyon", "FR", admin_code="84", population=522_969,
                    feature_code="PPLA", latitude=45.74846, longitude=4.84671),
    ])
