"""Tests for dpkg version ordering and PackageVersion parsing."""

import itertools

import pytest

from sysroot_builder.models.version import PackageVersion, VersionComparer, compare_versions


# Strictly increasing under dpkg ordering.
ORDERED_VERSIONS = [
    "~~",
    "~~a",
    "~",
    "",
    "1",
    "1.0",
    "1.0a",
    "1.0.1",
    "1.1",
    "1.9",
    "1.10",
    "2",
    "a",
    "b",
]


# ═══════════════════════════════════════════
# Version Component Comparison
# ═══════════════════════════════════════════


class TestCompareVersions:
    def test_equal(self):
        assert compare_versions("1.0", "1.0") == 0

    def test_shorter_release_sorts_first(self):
        assert compare_versions("1.0", "1.0.1") < 0
        assert compare_versions("1.0.1", "1.0") > 0

    def test_tilde_sorts_before_release(self):
        assert compare_versions("1.0~rc1", "1.0") < 0
        assert compare_versions("1.0", "1.0~rc1") > 0

    def test_numeric_runs_compare_by_value(self):
        assert compare_versions("1.10", "1.9") > 0
        assert compare_versions("1.9", "1.10") < 0

    def test_leading_zeros_ignored(self):
        assert compare_versions("01", "1") == 0
        assert compare_versions("1.002", "1.2") == 0

    def test_letters_sort_before_symbols(self):
        assert compare_versions("1a", "1+") < 0
        assert compare_versions("1.0+dfsg", "1.0a") > 0

    def test_none_is_empty(self):
        assert compare_versions(None, "") == 0
        assert compare_versions(None, "1") < 0

    def test_comparer_object(self):
        comparer = VersionComparer()
        assert comparer.compare("1.0", "1.0.1") < 0
        assert comparer("2", "1") > 0

    def test_reflexive(self):
        for version in ORDERED_VERSIONS:
            assert compare_versions(version, version) == 0

    def test_total_order(self):
        for low, high in itertools.combinations(ORDERED_VERSIONS, 2):
            assert compare_versions(low, high) < 0, (low, high)
            assert compare_versions(high, low) > 0, (high, low)


# ═══════════════════════════════════════════
# PackageVersion Parsing
# ═══════════════════════════════════════════


class TestPackageVersionParse:
    def test_full_version(self):
        version = PackageVersion.parse("2:1.4-3ubuntu2")
        assert version.epoch == 2
        assert version.upstream_version == "1.4"
        assert version.debian_revision == "3ubuntu2"

    def test_round_trip(self):
        assert str(PackageVersion.parse("2:1.4-3ubuntu2")) == "2:1.4-3ubuntu2"

    @pytest.mark.parametrize("raw", ["0:1.0-1", "1:2.36-9+deb12u4", "3:0.9~rc1-0ubuntu1"])
    def test_parse_of_str_is_identity(self, raw):
        version = PackageVersion.parse(raw)
        assert PackageVersion.parse(str(version)) == version

    def test_no_epoch_defaults_to_zero(self):
        version = PackageVersion.parse("1.2.3-1")
        assert version.epoch == 0
        assert str(version) == "0:1.2.3-1"

    def test_no_revision(self):
        version = PackageVersion.parse("1.0")
        assert version.upstream_version == "1.0"
        assert version.debian_revision == ""

    def test_rightmost_dash_splits_revision(self):
        version = PackageVersion.parse("1.2-3-4")
        assert version.upstream_version == "1.2-3"
        assert version.debian_revision == "4"

    def test_double_dash_is_not_a_boundary(self):
        version = PackageVersion.parse("1.0--1")
        assert version.upstream_version == "1.0-"
        assert version.debian_revision == "1"

    def test_empty(self):
        assert PackageVersion.parse("") == PackageVersion(0, "", "")

    def test_invalid_epoch(self):
        with pytest.raises(ValueError):
            PackageVersion.parse("x:1.0-1")


# ═══════════════════════════════════════════
# PackageVersion Ordering
# ═══════════════════════════════════════════


class TestPackageVersionOrdering:
    def test_epoch_dominates_upstream(self):
        assert PackageVersion.parse("1:1.0").compare_to(PackageVersion.parse("2.0")) > 0
        assert PackageVersion.parse("2.0") < PackageVersion.parse("1:1.0")

    def test_revision_breaks_ties(self):
        assert PackageVersion.parse("1.0-1") < PackageVersion.parse("1.0-2")
        assert PackageVersion.parse("1.0-10") > PackageVersion.parse("1.0-9")

    def test_upstream_before_revision(self):
        assert PackageVersion.parse("1.0-9") < PackageVersion.parse("1.0.1-0")

    def test_equal_by_comparison(self):
        a = PackageVersion.parse("1.00-1")
        b = PackageVersion.parse("1.0-1")
        assert a.compare_to(b) == 0
        assert a <= b and a >= b

    def test_sorting(self):
        raw = ["1.0-1", "1:0.1-1", "1.0~rc1-1", "0.9-5", "1.0-1ubuntu1"]
        ordered = sorted(PackageVersion.parse(v) for v in raw)
        assert [str(v) for v in ordered] == [
            "0:0.9-5",
            "0:1.0~rc1-1",
            "0:1.0-1",
            "0:1.0-1ubuntu1",
            "1:0.1-1",
        ]
