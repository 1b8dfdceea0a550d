"""Tests for the fingerprint index."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from repository.base import DependencySpec
from solver.errors import (
    DuplicateFingerprintError,
    IndexFrozenError,
    NoSatisfyingVersionError,
    UnknownFamilyError,
)
from solver.index import FingerprintIndex
from solver.pkg import Pkg, State
from versioning.policy import PreferInstalledPolicy


@pytest.fixture
def index():
    idx = FingerprintIndex()
    for version in ("1.10.0", "1.2.0", "1.9.0"):
        idx.insert(Pkg.mock("db", version, "ns"))
    return idx


class TestInsert:
    """Insert semantics."""

    def test_identical_insert_is_idempotent(self):
        idx = FingerprintIndex()
        first = Pkg.mock("web", "1.0.0", "ns")
        assert idx.insert(first) is first
        assert idx.insert(first) is first
        assert len(idx) == 1
        assert idx.fingerprints() == ["web-1.0.0-0-ns"]

    def test_equal_descriptor_returns_stored_instance(self):
        idx = FingerprintIndex()
        first = idx.insert(Pkg.mock("web", "1.0.0", "ns"))
        again = idx.insert(Pkg.mock("web", "1.0.0", "ns"))
        assert again is first
        assert len(idx.lookup_family("web-ns")) == 1

    def test_content_mismatch_raises(self):
        idx = FingerprintIndex()
        idx.insert(Pkg("web", "1.0.0", "ns", dependencies=[DependencySpec("db")]))
        with pytest.raises(DuplicateFingerprintError) as exc:
            idx.insert(Pkg("web", "1.0.0", "ns", dependencies=[DependencySpec("cache")]))
        assert exc.value.fingerprint == "web-1.0.0-0-ns"
        assert exc.value.to_dict()["kind"] == "identity"

    def test_frozen_index_rejects_new_packages(self, index):
        index.freeze()
        assert index.frozen
        with pytest.raises(IndexFrozenError):
            index.insert(Pkg.mock("web", "1.0.0", "ns"))
        # re-inserting a known package is still a no-op
        index.insert(Pkg.mock("db", "1.2.0", "ns"))
        assert len(index) == 3

    def test_concurrent_inserts(self):
        idx = FingerprintIndex()
        pkgs = [Pkg.mock(f"chart{i % 10}", f"1.0.{i}", "ns") for i in range(200)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(idx.insert, pkgs + pkgs))
        assert len(idx) == 200
        assert len(idx.families()) == 10
        assert len(idx.lookup_family("chart3-ns")) == 20


class TestLookup:
    """Exact, family and range lookups."""

    def test_lookup_exact(self, index):
        assert index.lookup_exact("db-1.2.0-0-ns").version == "1.2.0"
        assert index.lookup_exact("db-9.9.9-0-ns") is None
        assert "db-1.9.0-0-ns" in index
        assert Pkg.mock("db", "1.9.0", "ns") in index

    def test_family_ordered_by_version(self, index):
        assert [p.version for p in index.lookup_family("db-ns")] == ["1.2.0", "1.9.0", "1.10.0"]
        assert index.lookup_family("missing-ns") == []

    def test_resolve_range_picks_highest(self, index):
        assert index.resolve_range("db-ns", ">=1.0.0").version == "1.10.0"
        assert index.resolve_range("db-ns", "<1.9.0").version == "1.2.0"
        assert index.has_satisfying("db-ns", "^1.9.0")

    def test_unknown_family(self, index):
        with pytest.raises(UnknownFamilyError) as exc:
            index.resolve_range("missing-ns", "*")
        assert exc.value.base_fingerprint == "missing-ns"
        assert not index.has_satisfying("missing-ns", "*")

    def test_no_satisfying_version(self, index):
        with pytest.raises(NoSatisfyingVersionError) as exc:
            index.resolve_range("db-ns", ">=5.0.0")
        assert exc.value.base_fingerprint == "db-ns"
        assert exc.value.version_range == ">=5.0.0"
        assert exc.value.available == ["1.2.0", "1.9.0", "1.10.0"]

    def test_prefer_installed_policy(self):
        idx = FingerprintIndex(policy=PreferInstalledPolicy())
        idx.insert(Pkg.mock("db", "1.0.0", "ns", current_state=State.PRESENT))
        idx.insert(Pkg.mock("db", "2.0.0", "ns"))
        assert idx.resolve_range("db-ns", ">=1.0.0").version == "1.0.0"

    def test_same_version_prefers_installed_content(self):
        idx = FingerprintIndex()
        idx.insert(Pkg("db", "1.0.0", "ns", chart_hash=5, current_state=State.PRESENT))
        idx.insert(Pkg("db", "1.0.0", "ns", chart_hash=9))
        assert idx.resolve_range("db-ns", "*").chart_hash == 5

    def test_iteration_sorted(self, index):
        index.insert(Pkg.mock("api", "1.0.0", "ns", current_state=State.PRESENT))
        assert [p.fingerprint for p in index] == index.fingerprints()
        assert [p.name for p in index.installed()] == ["api"]
