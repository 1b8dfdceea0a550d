"""Resolution service: graph build, state resolution and planning as one transaction."""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from common.logging_utils import extra_context, is_debug_enabled, Timer
from constants import Constants
from repository.base import Repository, RepositoryError
from versioning.policy import VersionPolicy

from .errors import DependencyLoadError, DependencyLocateError, IndexFrozenError
from .graph import DependencyGraph
from .index import FingerprintIndex
from .pkg import Pkg, State, base_fingerprint_of
from .planner import Plan, TransactionPlanner
from .relations import CancelToken
from .resolver import Requests, Resolution, StateResolver

logger = logging.getLogger(__name__)


class ResolutionService:
    """Front door used by the CLI and embedding callers.

    One service instance owns one index snapshot. Register installed
    releases and requested roots first, then call ``resolve`` once; the index
    is read-only afterwards.
    """

    def __init__(
        self,
        repository: Optional[Repository],
        index: Optional[FingerprintIndex] = None,
        policy: Optional[VersionPolicy] = None,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
        break_cycles: Optional[bool] = None,
    ):
        self.repository = repository
        self.index = index or FingerprintIndex(policy=policy)
        self.max_workers = max_workers or Constants.MAX_WORKERS
        self.timeout = Constants.RESOLUTION_TIMEOUT_SEC if timeout is None else timeout
        self.break_cycles = break_cycles
        self.graph: Optional[DependencyGraph] = None
        self.resolution: Optional[Resolution] = None

    def add_installed(self, pkgs: Iterable[Pkg]) -> list:
        """Register releases currently deployed; their state is forced to PRESENT."""
        stored = []
        for pkg in pkgs:
            pkg.current_state = State.PRESENT
            stored.append(self.index.insert(pkg))
        return stored

    def add(self, pkg: Pkg) -> Pkg:
        return self.index.insert(pkg)

    def request(self, name: str, version_range: str = "*", namespace: Optional[str] = None) -> Pkg:
        """Find the root package ``name`` within ``version_range``.

        The index is consulted first; otherwise the repository is asked and
        the loaded descriptor is indexed.

        Raises:
            DependencyLocateError / DependencyLoadError: repository failures.
        """
        namespace = namespace or Constants.DEFAULT_NAMESPACE
        base = base_fingerprint_of(name, namespace)
        if self.index.has_satisfying(base, version_range):
            return self.index.resolve_range(base, version_range)
        if self.index.frozen:
            raise IndexFrozenError(base)
        if self.repository is None:
            raise DependencyLocateError(None, name, version_range, "no repository configured")
        try:
            ref = self.repository.locate(name, version_range)
        except RepositoryError as e:
            raise DependencyLocateError(None, name, version_range, str(e)) from e
        try:
            loaded = self.repository.load(ref)
            pkg = Pkg(
                loaded.name,
                loaded.version,
                loaded.namespace or namespace,
                payload=loaded.payload,
                dependencies=loaded.dependencies,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise DependencyLoadError(None, ref, str(e)) from e
        return self.index.insert(pkg)

    def resolve(self, requests: Requests, cancel: Optional[CancelToken] = None) -> Plan:
        """Run graph build, resolution and planning; all or nothing."""
        cancel = cancel or CancelToken(self.timeout)
        items = list(requests.items()) if hasattr(requests, "items") else list(requests)
        roots = [key for key, _ in items]
        with Timer() as t:
            self.graph = DependencyGraph.build(
                self.index,
                self.repository,
                roots,
                cancel=cancel,
                max_workers=self.max_workers,
            )
            cancel.check()
            resolution = StateResolver(self.graph).resolve(items)
            plan = TransactionPlanner(self.graph, break_cycles=self.break_cycles).plan(resolution)
        # descriptors change only once the plan exists
        resolution.apply(self.graph)
        self.resolution = resolution
        logger.info(
            "Resolved %d request(s): %d to install, %d to uninstall",
            len(items), len(plan.install), len(plan.uninstall),
        )
        if is_debug_enabled(logger):
            logger.debug(
                "Resolution transaction complete",
                extra=extra_context(
                    event="function_exit",
                    component="service",
                    action="resolve",
                    outcome="success",
                    duration_ms=t.duration_ms(),
                )
            )
        return plan
