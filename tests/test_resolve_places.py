"""
Tests for src/resolve_places.py
"""

import pytest

import resolve_places as rp
from parse_geonames import CountryDirectory, CountryInfo
from reference_index import ReferenceIndex


@pytest.fixture
def countries():
    return CountryDirectory([
        CountryInfo("FR", "FRA", "France"),
        CountryInfo("US", "USA", "United States"),
        CountryInfo("CR", "CRI", "Costa Rica"),
    ])


def _ids(result):
    return [c.geoname_id for c in result.candidates]


# ---------------------------------------------------------------------------
# Paris / Lyon scenario
# ---------------------------------------------------------------------------

class TestResolve:
    def test_ambiguous_without_hint(self, paris_index):
        result = rp.resolve(paris_index, rp.Query("Paris"))
        assert isinstance(result, rp.Ambiguous)
        assert sorted(_ids(result)) == [1, 2]

    def test_country_hint_disambiguates(self, paris_index):
        result = rp.resolve(paris_index, rp.Query("Paris", country_hint="FR"))
        assert isinstance(result, rp.Matched)
        assert result.record.geoname_id == 1

    def test_unique_name(self, paris_index):
        result = rp.resolve(paris_index, rp.Query("Lyon"))
        assert isinstance(result, rp.Matched)
        assert result.record.geoname_id == 3

    def test_not_found(self, paris_index):
        assert isinstance(rp.resolve(paris_index, rp.Query("Nowhere")), rp.NotFound)

    def test_name_is_normalized(self, paris_index):
        result = rp.resolve(paris_index, rp.Query("  PARÍS ", country_hint="us"))
        assert result.record.geoname_id == 2

    def test_empty_name(self, paris_index):
        result = rp.resolve(paris_index, rp.Query(" - "))
        assert isinstance(result, rp.NotFound)
        assert result.reason == "empty name"

    def test_hint_without_match_falls_back_to_name(self, paris_index):
        result = rp.resolve(paris_index, rp.Query("Lyon", country_hint="US"))
        assert isinstance(result, rp.Matched)
        assert result.record.geoname_id == 3

    def test_hint_without_match_stays_ambiguous(self, paris_index):
        result = rp.resolve(paris_index, rp.Query("Paris", country_hint="DE"))
        assert isinstance(result, rp.Ambiguous)

    def test_same_country_duplicates_are_ambiguous(self, make_record):
        index = ReferenceIndex.build([
            make_record(10, "Neudorf", "DE", admin_code="01", population=900),
            make_record(11, "Neudorf", "DE", admin_code="02", population=1500),
        ])
        result = rp.resolve(index, rp.Query("Neudorf", country_hint="DE"))
        assert isinstance(result, rp.Ambiguous)
        assert _ids(result) == [11, 10]

    def test_admin_hint_narrows(self, make_record):
        index = ReferenceIndex.build([
            make_record(10, "Neudorf", "DE", admin_code="01"),
            make_record(11, "Neudorf", "DE", admin_code="02"),
        ])
        result = rp.resolve(index, rp.Query("Neudorf", country_hint="DE", admin_hint="02"))
        assert isinstance(result, rp.Matched)
        assert result.record.geoname_id == 11

    def test_admin_hint_ignores_case_and_spaces(self, paris_index):
        result = rp.resolve(paris_index, rp.Query("Paris", admin_hint=" tx "))
        assert isinstance(result, rp.Matched)
        assert result.record.geoname_id == 2

    def test_admin_hint_outside_any_candidate(self, paris_index):
        result = rp.resolve(paris_index, rp.Query("Paris", admin_hint="CA"))
        assert isinstance(result, rp.NotFound)

    def test_unknown_feature_kind(self, paris_index):
        with pytest.raises(ValueError):
            rp.resolve(paris_index, rp.Query("Paris", feature_kind="lake"))


# ---------------------------------------------------------------------------
# Feature kinds
# ---------------------------------------------------------------------------

class TestFeatureKinds:
    @pytest.fixture
    def mixed_index(self, make_record):
        return ReferenceIndex.build([
            make_record(20, "Mont Blanc", "FR", feature_class="T", feature_code="MT",
                        elevation=4808),
            make_record(21, "Mont Blanc", "FR", feature_class="P", feature_code="PPL"),
            make_record(22, "Mont Blanc", "FR", feature_class="S", feature_code="HTL"),
        ])

    def test_city_kind_filters_out_peaks(self, mixed_index):
        result = rp.resolve(mixed_index, rp.Query("Mont Blanc", feature_kind="city"))
        assert result.record.geoname_id == 21

    def test_summit_kind(self, mixed_index):
        result = rp.resolve(mixed_index, rp.Query("Mont Blanc", feature_kind="summit"))
        assert result.record.geoname_id == 20

    def test_kind_is_set_membership(self, make_record):
        kind = rp.FeatureKind("summit", "T", frozenset({"MT", "PK"}))
        assert kind.matches(make_record(1, "A", feature_class="T", feature_code="PK"))
        assert not kind.matches(make_record(1, "A", feature_class="T", feature_code="VAL"))
        assert not kind.matches(make_record(1, "A", feature_class="P", feature_code="PK"))

    def test_empty_code_set_matches_whole_class(self, make_record):
        kind = rp.FeatureKind("any-place", "P")
        assert kind.matches(make_record(1, "A", feature_code="PPLQ"))

    def test_from_config(self):
        kinds = rp.feature_kinds_from_config({
            "summit": {"feature_class": "T", "feature_codes": ["PK"]},
            "lake": {"feature_class": "H", "feature_codes": ["LK"]},
        })
        assert kinds["summit"].feature_codes == frozenset({"PK"})
        assert kinds["lake"].feature_class == "H"
        assert kinds["city"] == rp.DEFAULT_FEATURE_KINDS["city"]


# ---------------------------------------------------------------------------
# Country hints
# ---------------------------------------------------------------------------

class TestCountryHints:
    def test_country_name_hint(self, paris_index, countries):
        result = rp.resolve(paris_index, rp.Query("Paris", country_hint="united states"),
                            countries)
        assert result.record.geoname_id == 2

    def test_iso3_hint(self, paris_index, countries):
        result = rp.resolve(paris_index, rp.Query("Paris", country_hint="fra"), countries)
        assert result.record.geoname_id == 1

    def test_unknown_country(self, paris_index, countries):
        result = rp.resolve(paris_index, rp.Query("Paris", country_hint="Narnia"), countries)
        assert isinstance(result, rp.NotFound)
        assert "Narnia" in result.reason

    def test_without_directory_only_codes_work(self, paris_index):
        result = rp.resolve(paris_index, rp.Query("Paris", country_hint="France"))
        assert isinstance(result, rp.NotFound)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

class TestProperties:
    def test_deterministic(self, paris_index):
        queries = [rp.Query("Paris"), rp.Query("Paris", "FR"), rp.Query("Lyon"),
                   rp.Query("Nowhere")]
        first = [rp.resolve(paris_index, q) for q in queries]
        second = [rp.resolve(paris_index, q) for q in queries]
        assert first == second

    def test_ambiguous_lists_every_candidate(self, make_record):
        records = [make_record(i, "San Jose", cc, feature_code="PPL", population=i * 10)
                   for i, cc in enumerate(["CR", "US", "PH", "UY", "AR"], start=1)]
        records.append(make_record(99, "San Jose", "US", feature_class="H",
                                   feature_code="STM"))
        index = ReferenceIndex.build(records)
        result = rp.resolve(index, rp.Query("san josé"))
        assert isinstance(result, rp.Ambiguous)
        assert sorted(_ids(result)) == [1, 2, 3, 4, 5]

    def test_ranking_suggests_most_populous(self, paris_index):
        result = rp.resolve(paris_index, rp.Query("Paris"))
        assert result.suggested.geoname_id == 1
        assert _ids(result) == [1, 2]

    def test_ranking_uses_feature_code_on_equal_population(self, make_record):
        index = ReferenceIndex.build([
            make_record(1, "Springfield", "US", feature_code="PPL"),
            make_record(2, "Springfield", "US", feature_code="PPLA"),
        ])
        result = rp.resolve(index, rp.Query("Springfield"))
        assert _ids(result) == [2, 1]


class TestResolver:
    def test_bound_resolver(self, paris_index, countries):
        resolver = rp.Resolver(paris_index, countries)
        assert resolver.resolve(rp.Query("Paris", "France")).record.geoname_id == 1

    def test_query_str(self):
        assert str(rp.Query("Paris", "US", admin_hint="TX")) == "Paris, TX, US"
