"""End-to-end tests for the resolution service."""

import pytest

from repository.base import ArchiveRef, DependencySpec, LoadedPackage, Repository
from repository.memory import InMemoryRepository
from solver import (
    CancelToken,
    DependencyLocateError,
    DependentStillRequiresError,
    IndexFrozenError,
    Pkg,
    PlanCycleError,
    ResolutionAbortedError,
    ResolutionService,
    State,
)


class TestRequest:
    """Root lookup through the index and the repository."""

    def test_request_from_repository(self, repo):
        """Roots missing from the index are loaded and indexed."""
        service = ResolutionService(repo)
        web = service.request("web", "*", namespace="ns")
        assert web.fingerprint == "web-1.0.0-0-ns"
        assert web in service.index
        assert repo.locate_calls == [("web", "*")]

    def test_request_prefers_index(self, repo):
        """An indexed package satisfying the range is used as is."""
        service = ResolutionService(repo)
        service.add(Pkg.mock("db", "1.0.0", "ns"))
        assert service.request("db", "<2.0.0", namespace="ns").version == "1.0.0"
        assert repo.locate_calls == []

    def test_default_namespace(self, repo):
        service = ResolutionService(repo)
        assert service.request("cache").namespace == "default"

    def test_request_unknown_chart(self, repo):
        service = ResolutionService(repo)
        with pytest.raises(DependencyLocateError) as exc:
            service.request("ghost", namespace="ns")
        assert exc.value.dependent is None

    def test_request_without_repository(self):
        with pytest.raises(DependencyLocateError):
            ResolutionService(None).request("web")

    def test_add_installed_marks_present(self):
        service = ResolutionService(None)
        stored = service.add_installed([Pkg.mock("db", "2.0.0", "ns")])
        assert stored[0].current_state == State.PRESENT
        assert [p.name for p in service.index.installed()] == ["db"]


class TestResolve:
    """Graph build, resolution and planning as one call."""

    def test_install_with_dependency(self, repo):
        """Installing web pulls the highest db satisfying its range."""
        service = ResolutionService(repo, max_workers=4)
        web = service.request("web", namespace="ns")
        plan = service.resolve({web.fingerprint: State.PRESENT})
        assert plan.install == ["db-2.1.0-0-ns", "web-1.0.0-0-ns"]
        assert plan.uninstall == []
        assert service.resolution.state_of("cache-3.0.0-0-ns") == State.UNKNOWN
        assert service.index.frozen
        assert web.desired_state == State.PRESENT
        assert service.index.lookup_exact("db-2.1.0-0-ns").desired_state == State.PRESENT

    def test_installed_release_constrains_removal(self, repo):
        service = ResolutionService(repo)
        service.add_installed([
            Pkg("web", "1.0.0", "ns", dependencies=[DependencySpec("db", ">=2.0.0")]),
            Pkg("db", "2.1.0", "ns"),
        ])
        with pytest.raises(DependentStillRequiresError) as exc:
            service.resolve({"db-2.1.0-0-ns": State.ABSENT})
        assert exc.value.removed == "db-2.1.0-0-ns"
        assert exc.value.blocked_by == "web-1.0.0-0-ns"

    def test_zero_timeout_means_no_deadline(self, repo):
        service = ResolutionService(repo, timeout=0)
        web = service.request("web", namespace="ns")
        plan = service.resolve({web.fingerprint: State.PRESENT})
        assert plan.install == ["db-2.1.0-0-ns", "web-1.0.0-0-ns"]

    def test_uninstall_plan(self, repo):
        service = ResolutionService(repo)
        service.add_installed([Pkg("db", "2.1.0", "ns"), Pkg("cache", "3.0.0", "ns")])
        plan = service.resolve([("db-2.1.0-0-ns", State.ABSENT)])
        assert plan.uninstall == ["db-2.1.0-0-ns"]
        assert plan.install == []

    def test_index_read_only_after_resolve(self, repo):
        service = ResolutionService(repo)
        web = service.request("web", namespace="ns")
        service.resolve({web: State.PRESENT})
        with pytest.raises(IndexFrozenError):
            service.request("db", ">=9.0.0", namespace="ns")

    def test_cancelled_before_start(self, repo):
        service = ResolutionService(repo)
        web = service.request("web", namespace="ns")
        token = CancelToken()
        token.cancel("shutdown")
        with pytest.raises(ResolutionAbortedError):
            service.resolve({web.fingerprint: State.PRESENT}, cancel=token)
        assert web.desired_state == State.UNKNOWN

    def test_repository_failure_aborts_atomically(self):
        repo = InMemoryRepository().add("web", "1.0.0", [DependencySpec("db", ">=5.0.0")]).add("db", "1.0.0")
        service = ResolutionService(repo)
        web = service.request("web", namespace="ns")
        with pytest.raises(DependencyLocateError):
            service.resolve({web.fingerprint: State.PRESENT})
        assert web.desired_state == State.UNKNOWN
        assert service.resolution is None

    def test_plan_failure_leaves_descriptors_untouched(self):
        """A cycle refused by the planner rolls back the resolved states too."""
        repo = (
            InMemoryRepository()
            .add("a", "1.0.0", [DependencySpec("b", "*")])
            .add("b", "1.0.0", [DependencySpec("a", "*")])
        )
        service = ResolutionService(repo, break_cycles=False)
        a = service.request("a", namespace="ns")
        with pytest.raises(PlanCycleError):
            service.resolve({a.fingerprint: State.PRESENT})
        b = service.index.lookup_exact("b-1.0.0-0-ns")
        assert a.desired_state == State.UNKNOWN
        assert b.desired_state == State.UNKNOWN
        assert service.resolution is None

    def test_custom_repository(self):
        """Any Repository implementation can back the service."""

        class OneChart(Repository):
            def locate(self, name, version_range):
                return ArchiveRef(name, "0.1.0", "local://only")

            def load(self, ref):
                return LoadedPackage(name=ref.name, version=ref.version, payload=b"tgz")

        service = ResolutionService(OneChart())
        pkg = service.request("solo", namespace="ns")
        plan = service.resolve({pkg.fingerprint: State.PRESENT})
        assert plan.install == [pkg.fingerprint]
        assert pkg.chart_hash != 0
