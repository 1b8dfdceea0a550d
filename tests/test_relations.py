"""Tests for relation building and repository fan-out."""

import threading
import time

import pytest

from repository.base import DependencySpec, LoadError
from repository.memory import InMemoryRepository
from solver.errors import DependencyLoadError, DependencyLocateError, ResolutionAbortedError
from solver.index import FingerprintIndex
from solver.pkg import Pkg, PkgRel
from solver.relations import CancelToken, RelationBuilder


class BrokenRepository(InMemoryRepository):
    """Locates charts but cannot read them."""

    def load(self, ref):
        raise LoadError("corrupt archive")


class GatedRepository(InMemoryRepository):
    """Holds every locate until the test opens the gate."""

    def __init__(self):
        super().__init__()
        self.gate = threading.Event()

    def locate(self, name, version_range):
        if name != "ghost":
            self.gate.wait(timeout=5)
        return super().locate(name, version_range)


class SlowRepository(InMemoryRepository):
    """Takes its time answering locate."""

    def locate(self, name, version_range):
        time.sleep(0.5)
        return super().locate(name, version_range)


def web_pkg(*deps):
    return Pkg("web", "1.0.0", "ns", dependencies=deps or [
        DependencySpec("db", ">=2.0.0"),
        DependencySpec("cache", "*", optional=True),
    ])


class TestRelationBuilder:
    """Single package relation building."""

    def test_builds_mandatory_and_optional(self, repo):
        index = FingerprintIndex()
        web = index.insert(web_pkg())
        web.with_relations_built(repo, index)

        assert web.depends_rel == [PkgRel("db-ns", ">=2.0.0")]
        assert web.depends_optional_rel == [PkgRel("cache-ns", "*")]
        assert "db-2.1.0-0-ns" in index
        assert "cache-3.0.0-0-ns" in index
        # only the located version is pulled in
        assert "db-2.0.0-0-ns" not in index

    def test_idempotent(self, repo):
        index = FingerprintIndex()
        web = index.insert(web_pkg())
        web.with_relations_built(repo, index)
        calls = len(repo.locate_calls)
        web.with_relations_built(repo, index)
        assert len(web.depends_rel) == 1
        assert len(web.depends_optional_rel) == 1
        assert len(repo.locate_calls) == calls

    def test_index_hit_skips_repository(self, repo):
        index = FingerprintIndex()
        index.insert(Pkg("db", "2.0.0", "ns"))
        web = index.insert(web_pkg(DependencySpec("db", ">=2.0.0")))
        fetched = RelationBuilder(repo, index).build(web)
        assert fetched == []
        assert repo.locate_calls == []
        assert index.resolve_range("db-ns", ">=2.0.0").version == "2.0.0"

    def test_dependency_namespace_override(self, repo):
        index = FingerprintIndex()
        web = index.insert(web_pkg(DependencySpec("db", ">=2.0.0", namespace="data")))
        web.with_relations_built(repo, index)
        assert web.depends_rel == [PkgRel("db-data", ">=2.0.0")]
        assert "db-2.1.0-0-data" in index

    def test_locate_error(self, repo):
        index = FingerprintIndex()
        web = index.insert(web_pkg(DependencySpec("ghost", "*")))
        with pytest.raises(DependencyLocateError) as exc:
            web.with_relations_built(repo, index)
        assert exc.value.name == "ghost"
        assert exc.value.dependent == "web-1.0.0-0-ns"
        assert not web.relations_built
        assert web.depends_rel == []

    def test_locate_error_for_unsatisfiable_range(self, repo):
        index = FingerprintIndex()
        web = index.insert(web_pkg(DependencySpec("db", ">=9.0.0")))
        with pytest.raises(DependencyLocateError) as exc:
            web.with_relations_built(repo, index)
        assert exc.value.version_range == ">=9.0.0"

    def test_load_error(self):
        repo = BrokenRepository().add("db", "2.0.0")
        index = FingerprintIndex()
        web = index.insert(web_pkg(DependencySpec("db", "*")))
        with pytest.raises(DependencyLoadError) as exc:
            web.with_relations_built(repo, index)
        assert "corrupt archive" in str(exc.value)
        assert exc.value.to_dict()["kind"] == "lookup"

    def test_cancelled_token_aborts(self, repo):
        index = FingerprintIndex()
        web = index.insert(web_pkg())
        token = CancelToken()
        token.cancel("user abort")
        with pytest.raises(ResolutionAbortedError) as exc:
            web.with_relations_built(repo, index, cancel=token)
        assert exc.value.reason == "user abort"
        assert repo.locate_calls == []


class TestCancelToken:
    """Cancellation and deadlines."""

    def test_no_deadline(self):
        token = CancelToken()
        assert token.remaining() is None
        assert not token.cancelled
        token.check()

    @pytest.mark.parametrize("timeout", [0, 0.0, -1])
    def test_non_positive_timeout_disables_deadline(self, timeout):
        token = CancelToken(timeout=timeout)
        assert token.remaining() is None
        assert not token.cancelled
        token.check()

    def test_deadline_expires(self):
        token = CancelToken(timeout=0.01)
        time.sleep(0.02)
        assert token.cancelled
        assert token.remaining() == 0.0
        with pytest.raises(ResolutionAbortedError):
            token.check()


class TestBuildMany:
    """Concurrent fan-out."""

    def _universe(self, count):
        repo = InMemoryRepository()
        apps = []
        for i in range(count):
            repo.add(f"lib{i}", "1.0.0")
            apps.append(Pkg(f"app{i}", "1.0.0", "ns", dependencies=[DependencySpec(f"lib{i}", "^1.0.0")]))
        return repo, apps

    def test_all_results_merged(self):
        repo, apps = self._universe(20)
        index = FingerprintIndex()
        for app in apps:
            index.insert(app)
        fetched = RelationBuilder(repo, index).build_many(apps, max_workers=4)
        assert len(fetched) == 20
        assert len(index) == 40
        assert all(app.relations_built for app in apps)

    def test_sequential_when_single_worker(self):
        repo, apps = self._universe(3)
        index = FingerprintIndex()
        RelationBuilder(repo, index).build_many(apps, max_workers=1)
        assert sorted(index.families()) == ["lib0-ns", "lib1-ns", "lib2-ns"]

    def test_failure_propagates(self):
        repo, apps = self._universe(5)
        apps.append(Pkg("bad", "1.0.0", "ns", dependencies=[DependencySpec("ghost")]))
        with pytest.raises(DependencyLocateError):
            RelationBuilder(repo, FingerprintIndex()).build_many(apps, max_workers=4)

    def test_deadline_while_waiting(self):
        repo = SlowRepository().add("lib", "1.0.0")
        apps = [Pkg(f"app{i}", "1.0.0", "ns", dependencies=[DependencySpec("lib")]) for i in range(2)]
        builder = RelationBuilder(repo, FingerprintIndex(), cancel=CancelToken(timeout=0.05))
        started = time.monotonic()
        with pytest.raises(ResolutionAbortedError):
            builder.build_many(apps, max_workers=2)
        assert time.monotonic() - started < 0.5

    def test_no_writes_after_failure(self):
        """Workers finishing after a sibling failed leave the index and descriptors alone."""
        repo = GatedRepository().add("lib", "1.0.0")
        bad = Pkg("bad", "1.0.0", "ns", dependencies=[DependencySpec("ghost")])
        app = Pkg("app", "1.0.0", "ns", dependencies=[DependencySpec("lib")])
        index = FingerprintIndex()
        with pytest.raises(DependencyLocateError):
            RelationBuilder(repo, index).build_many([bad, app], max_workers=2)
        repo.gate.set()
        for worker in threading.enumerate():
            if worker.name.startswith("relations"):
                worker.join(timeout=5)
        assert "lib-ns" not in index.families()
        assert not app.relations_built
        assert app.depends_rel == []
