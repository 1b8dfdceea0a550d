"""Tests for range parsing, matching and version policies."""

import pytest
import semantic_version

from constants import Constants
from versioning.models import ResolutionMode
from versioning.parser import parse_range, tokenize_rightmost_colon
from versioning.policy import HighestVersionPolicy, PreferInstalledPolicy, get_policy
from versioning.ranges import InvalidRangeError, compile_range, matches, parse_version, satisfying, sort_versions


class TestParser:
    """Range expression normalization."""

    @pytest.mark.parametrize("raw", [None, "", "*", "latest", " LATEST "])
    def test_latest_tokens(self, raw):
        spec = parse_range(raw)
        assert spec.mode == ResolutionMode.LATEST
        assert spec.raw == "*"

    def test_exact(self):
        spec = parse_range("1.2.3")
        assert spec.mode == ResolutionMode.EXACT
        assert spec.include_prerelease is False

    @pytest.mark.parametrize("raw", [">=1.0.0", "^1.2", "~1.2.0", "1.2.x", "1.0.0 - 2.0.0", ">=1.0.0, <2.0.0"])
    def test_range(self, raw):
        assert parse_range(raw).mode == ResolutionMode.RANGE

    def test_prerelease_named_in_range(self):
        assert parse_range(">=2.0.0-rc.0").include_prerelease is True
        assert parse_range(">=2.0.0").include_prerelease is False

    def test_tokenize(self):
        assert tokenize_rightmost_colon("web:>=1.0.0") == ("web", ">=1.0.0")
        assert tokenize_rightmost_colon("web") == ("web", None)
        assert tokenize_rightmost_colon("web:") == ("web", None)


class TestMatching:
    """npm-like constraint semantics."""

    @pytest.mark.parametrize("version,spec,expected", [
        ("2.1.0", ">=2.0.0", True),
        ("1.9.9", ">=2.0.0", False),
        ("1.9.0", "^1.2.0", True),
        ("2.0.0", "^1.2.0", False),
        ("1.2.9", "~1.2.0", True),
        ("1.3.0", "~1.2.0", False),
        ("1.2.5", "1.2.x", True),
        ("1.3.0", "1.2.x", False),
        ("1.5.0", ">=1.0.0, <2.0.0", True),
        ("2.0.0", ">=1.0.0, <2.0.0", False),
        ("1.0.0", ">= 1.0.0", True),
        ("2.0.0", "1.0.0 - 2.0.0", True),
        ("2.0.1", "1.0.0 - 2.0.0", False),
        ("0.5.0", "<1.0.0 || >=3.0.0", True),
        ("3.1.0", "<1.0.0 || >=3.0.0", True),
        ("2.0.0", "<1.0.0 || >=3.0.0", False),
        ("1.2.3", "1.2.3", True),
        ("1.2.4", "1.2.3", False),
        ("9.9.9", "*", True),
    ])
    def test_matches(self, version, spec, expected):
        assert matches(version, spec) is expected

    def test_prerelease_excluded_by_default(self):
        assert matches("2.0.0-rc.1", ">=1.0.0") is False
        assert matches("2.0.0-rc.1", "*") is False

    def test_prerelease_allowed_when_named(self):
        assert matches("2.0.0-rc.1", ">=2.0.0-rc.0") is True

    def test_unparsable_version_never_matches(self):
        assert matches("banana", "*") is False

    def test_invalid_range(self):
        with pytest.raises(InvalidRangeError):
            compile_range("not a range!!")
        with pytest.raises(InvalidRangeError):
            satisfying([], "not a range!!")

    def test_satisfying_sorted(self):
        assert satisfying(["2.1.0", "1.0.0", "2.0.0"], ">=2.0.0") == ["2.0.0", "2.1.0"]


class TestVersions:
    """Version parsing and ordering."""

    def test_parse_version(self):
        assert parse_version("v1.2.3") == semantic_version.Version("1.2.3")
        assert parse_version("1.2") == semantic_version.Version("1.2.0")
        assert parse_version("banana") is None

    def test_sort_is_semantic(self):
        assert sort_versions(["1.10.0", "1.2.0", "1.9.0"]) == ["1.2.0", "1.9.0", "1.10.0"]


class TestPolicies:
    """Version picking policies."""

    def test_highest(self):
        policy = HighestVersionPolicy()
        assert policy.pick_raw(">=1.0.0", ["1.0.0", "1.5.0", "2.0.0"]).version == "2.0.0"
        assert policy.pick_raw("<2.0.0", ["1.0.0", "1.5.0", "2.0.0"]).version == "1.5.0"

    def test_prefer_installed(self):
        policy = PreferInstalledPolicy()
        result = policy.pick_raw(">=1.0.0", ["1.0.0", "2.0.0"], installed={"1.0.0"})
        assert result.version == "1.0.0"
        assert policy.pick_raw(">=1.0.0", ["1.0.0", "2.0.0"]).version == "2.0.0"

    def test_no_candidates(self):
        result = HighestVersionPolicy().pick_raw("*", [])
        assert result.version is None
        assert result.candidate_count == 0
        assert result.error == "No versions available"

    def test_no_match(self):
        result = HighestVersionPolicy().pick_raw(">=5.0.0", ["1.0.0"])
        assert result.version is None
        assert result.candidate_count == 1
        assert "No versions match" in result.error

    def test_invalid_range_reported(self):
        result = HighestVersionPolicy().pick_raw("not a range!!", ["1.0.0"])
        assert result.version is None
        assert "Invalid semver range" in result.error

    def test_get_policy(self):
        assert isinstance(get_policy(), HighestVersionPolicy)
        assert isinstance(get_policy("prefer-installed"), PreferInstalledPolicy)
        Constants.RANGE_POLICY = "prefer-installed"
        assert isinstance(get_policy(), PreferInstalledPolicy)
        with pytest.raises(ValueError):
            get_policy("bogus")
