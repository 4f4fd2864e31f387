"""
Tests for src/reference_index.py
"""

from dataclasses import replace

import pytest

from conftest import geoname_fields
from download_geonames import DatasetHandle
from parse_geonames import CorruptDatasetError
from reference_index import ReferenceIndex, build_from_datasets, record_keys


# ---------------------------------------------------------------------------
# ReferenceIndex
# ---------------------------------------------------------------------------

class TestReferenceIndex:
    def test_lookup_name_across_countries(self, paris_index):
        assert [r.geoname_id for r in paris_index.lookup_name("paris")] == [1, 2]

    def test_lookup_name_country(self, paris_index):
        assert [r.geoname_id for r in paris_index.lookup_name_country("PARIS", "us")] == [2]

    def test_lookup_unknown(self, paris_index):
        assert paris_index.lookup_name("Nowhere") == []
        assert paris_index.lookup_name_country("Lyon", "US") == []

    def test_same_name_same_country_kept_apart(self, make_record):
        index = ReferenceIndex.build([
            make_record(10, "Neudorf", "DE", admin_code="01"),
            make_record(11, "Neudorf", "DE", admin_code="02"),
        ])
        assert [r.geoname_id for r in index.lookup_name_country("Neudorf", "DE")] == [10, 11]

    def test_in_admin(self, paris_index):
        assert [r.name for r in paris_index.in_admin("fr", "84")] == ["Lyon"]
        assert [r.name for r in paris_index.in_admin("US", "tx")] == ["Paris"]

    def test_ascii_name_is_a_key(self, make_record):
        index = ReferenceIndex.build([make_record(5, "Kraków", "PL", ascii_name="Krakow")])
        assert index.lookup_name("krakow")[0].geoname_id == 5

    def test_alternate_names_are_keys(self, make_record):
        record = make_record(6, "München", "DE", ascii_name="Muenchen")
        record = replace(record, alternate_names=("Munich",))
        assert record_keys(record) == {"munchen", "muenchen", "munich"}
        index = ReferenceIndex.build([record])
        assert index.lookup_name("Munich")[0].geoname_id == 6

    def test_duplicate_ids_are_indexed_once(self, make_record):
        index = ReferenceIndex.build([make_record(1, "Paris"), make_record(1, "Paris")])
        assert len(index) == 1
        assert len(index.lookup_name("Paris")) == 1

    def test_get_and_contains(self, paris_index):
        assert 3 in paris_index
        assert paris_index.get(3).name == "Lyon"
        assert paris_index.get(99) is None

    def test_merge_is_order_independent(self, make_record):
        a = [make_record(1, "Paris", "FR"), make_record(3, "Lyon", "FR")]
        b = [make_record(2, "Paris", "US"), make_record(3, "Lyon", "FR")]
        ab = ReferenceIndex.build(a).merge(ReferenceIndex.build(b))
        ba = ReferenceIndex.build(b).merge(ReferenceIndex.build(a))
        whole = ReferenceIndex.build(a + b)
        assert ab.snapshot() == ba.snapshot() == whole.snapshot()
        assert len(ab) == 3

    def test_build_discards_partial_index_on_error(self, make_record):
        def records():
            yield make_record(1, "Paris")
            raise CorruptDatasetError("bad")

        with pytest.raises(CorruptDatasetError):
            ReferenceIndex.build(records())


# ---------------------------------------------------------------------------
# build_from_datasets
# ---------------------------------------------------------------------------

class TestBuildFromDatasets:
    def _dump(self, path, rows):
        path.write_text("\n".join("\t".join(r) for r in rows) + "\n", encoding="utf-8")
        return DatasetHandle(path, "http://example.com/" + path.name)

    def test_merges_several_files(self, tmp_path):
        cities = self._dump(tmp_path / "cities500.txt", [
            geoname_fields(2988507, "Paris", "FR"),
            geoname_fields(2659994, "Lausanne", "CH"),
        ])
        swiss = self._dump(tmp_path / "CH.txt", [
            geoname_fields(2659994, "Lausanne", "CH"),
            geoname_fields(2659667, "Matterhorn", "CH", fclass="T", fcode="MT",
                           elevation="4478"),
        ])
        index = build_from_datasets([cities, swiss], progress=False)
        assert len(index) == 3
        assert index.lookup_name("matterhorn")[0].elevation == 4478

    def test_corrupt_file_aborts(self, tmp_path):
        bad = self._dump(tmp_path / "bad.txt", [["garbage"]] * 5)
        with pytest.raises(CorruptDatasetError):
            build_from_datasets([bad], progress=False)

    def test_reports_first_malformed_lines(self, tmp_path, capsys):
        dump = self._dump(tmp_path / "FR.txt", [
            geoname_fields(1, "Paris", "FR"),
            ["broken"],
            geoname_fields(2, "Lyon", "FR"),
            ["broken", "again"],
        ])
        build_from_datasets([dump], progress=False)
        out = capsys.readouterr().out
        assert "2 records (2 malformed lines skipped)" in out
        assert "first malformed data lines: 2, 4" in out
