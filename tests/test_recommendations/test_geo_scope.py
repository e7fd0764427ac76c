"""Tests for incentive geographic scope matching and ZIP → state lookup."""

from __future__ import annotations

import pytest

from upgrade_engine.models.economics import GeoScope, Location
from upgrade_engine.recommendations.geo_scope import matches, state_for_zip


class TestMatches:
    def test_all_matches_empty_location(self):
        assert matches(GeoScope(mode="all"), Location()) is True

    def test_states_case_insensitive(self):
        scope = GeoScope(mode="states", values=("or", "Wa"))
        assert matches(scope, Location(state="OR")) is True
        assert matches(scope, Location(state=" wa ")) is True
        assert matches(scope, Location(state="CA")) is False

    def test_states_without_state_fails(self):
        scope = GeoScope(mode="states", values=("OR",))
        assert matches(scope, Location(zip="97201")) is False

    def test_states_blank_state_ignores_zip(self):
        scope = GeoScope(mode="states", values=("OR", "WA"))
        assert matches(scope, Location(zip="97123", state="")) is False
        assert matches(scope, Location(zip="97123", state="   ")) is False

    def test_zips_exact_trimmed(self):
        scope = GeoScope(mode="zips", values=(" 97201 ", "97202"))
        assert matches(scope, Location(zip="97201")) is True
        assert matches(scope, Location(zip="9720")) is False

    def test_zips_without_zip_fails(self):
        assert matches(GeoScope(mode="zips", values=("97201",)), Location(state="OR")) is False

    def test_prefixes(self):
        scope = GeoScope(mode="prefixes", values=("970", "971"))
        assert matches(scope, Location(zip="97015")) is True
        assert matches(scope, Location(zip="98101")) is False

    def test_empty_prefix_never_matches(self):
        assert matches(GeoScope(mode="prefixes", values=("",)), Location(zip="97201")) is False

    def test_unknown_mode_fails_closed(self):
        assert matches(GeoScope(mode="county", values=("Multnomah",)), Location(zip="97201")) is False

    def test_mode_is_case_insensitive(self):
        assert matches(GeoScope(mode=" ALL "), Location()) is True

    def test_missing_scope_fails(self):
        assert matches(None, Location(zip="97201", state="OR")) is False

    def test_comma_string_values(self):
        scope = GeoScope(mode="states", values="OR,WA")
        assert matches(scope, Location(state="WA")) is True


class TestStateForZip:
    @pytest.mark.parametrize(
        "zip_code, expected",
        [
            ("97201", "OR"),
            ("98101", "WA"),
            ("10001", "NY"),
            ("94105", "CA"),
            ("02134", "MA"),
            ("97201-1234", "OR"),
            (" 73301 ", "OK"),
        ],
    )
    def test_known_prefixes(self, zip_code, expected):
        assert state_for_zip(zip_code) == expected

    @pytest.mark.parametrize("zip_code", [None, "", "12", "ABCDE", "00012"])
    def test_unknown_or_malformed(self, zip_code):
        assert state_for_zip(zip_code) is None
