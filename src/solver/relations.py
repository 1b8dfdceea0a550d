"""Relation building: declared dependencies -> PkgRel edges.

Each declared dependency becomes a ``PkgRel`` against the dependency's
family. Families the index cannot satisfy yet are located and loaded through
the repository collaborator and inserted into the index. Building several
packages fans out over a thread pool; the index serializes the inserts.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Iterable, List, Optional

from common.logging_utils import extra_context, is_debug_enabled, Timer
from constants import Constants
from repository.base import ArchiveRef, DependencySpec, Repository, RepositoryError

from .errors import DependencyLoadError, DependencyLocateError, ResolutionAbortedError
from .index import FingerprintIndex
from .pkg import Pkg, PkgRel, base_fingerprint_of

logger = logging.getLogger(__name__)


class CancelToken:
    """Caller-supplied cancellation signal with an optional deadline.

    A ``timeout`` of None, zero or less means no deadline.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._reason = "cancelled"
        self._timeout = timeout
        self._deadline = time.monotonic() + timeout if timeout and timeout > 0 else None

    def cancel(self, reason: str = "cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self._expired()

    def _expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self) -> None:
        """Raise ResolutionAbortedError if cancelled or past the deadline."""
        if self._event.is_set():
            raise ResolutionAbortedError(self._reason)
        if self._expired():
            raise ResolutionAbortedError(f"deadline of {self._timeout}s exceeded")


class RelationBuilder:
    """Turns a package's declared dependencies into resolved relations."""

    def __init__(
        self,
        repository: Repository,
        index: FingerprintIndex,
        cancel: Optional[CancelToken] = None,
    ):
        self.repository = repository
        self.index = index
        self.cancel = cancel or CancelToken()
        self._stop = threading.Event()
        # held while publishing results so an abort cannot interleave with a write
        self._gate = threading.Lock()

    def _check(self) -> None:
        if self._stop.is_set():
            raise ResolutionAbortedError("sibling relation build failed")
        self.cancel.check()

    def build(self, pkg: Pkg) -> List[Pkg]:
        """Build relations for ``pkg``; returns the descriptors pulled from the repository.

        A package whose relations are already built is left untouched.
        """
        if pkg.relations_built:
            return []
        mandatory: List[PkgRel] = []
        optional: List[PkgRel] = []
        fetched: List[Pkg] = []
        for dep in pkg.dependencies:
            namespace = dep.namespace or pkg.namespace
            rel = PkgRel(base_fingerprint_of(dep.name, namespace), dep.version_range or "*")
            if not self.index.has_satisfying(rel.base_fingerprint, rel.semver_range):
                fetched.append(self._fetch(pkg, dep, namespace, rel.semver_range))
            (optional if dep.optional else mandatory).append(rel)

        with self._gate:
            self._check()
            pkg.depends_rel = mandatory
            pkg.depends_optional_rel = optional
            pkg.relations_built = True
        if is_debug_enabled(logger):
            logger.debug(
                "Relations built",
                extra=extra_context(
                    event="relations_built",
                    component="relations",
                    action="build",
                    target=pkg.fingerprint,
                    mandatory=len(mandatory),
                    optional=len(optional),
                    fetched=len(fetched),
                )
            )
        return fetched

    def _fetch(self, pkg: Pkg, dep: DependencySpec, namespace: str, version_range: str) -> Pkg:
        self._check()
        try:
            ref: ArchiveRef = self.repository.locate(dep.name, version_range)
        except RepositoryError as e:
            raise DependencyLocateError(pkg.fingerprint, dep.name, version_range, str(e)) from e
        self._check()
        try:
            loaded = self.repository.load(ref)
        except ResolutionAbortedError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise DependencyLoadError(pkg.fingerprint, ref, str(e)) from e
        try:
            dep_pkg = Pkg(
                loaded.name,
                loaded.version,
                loaded.namespace or namespace,
                payload=loaded.payload,
                dependencies=loaded.dependencies,
            )
        except (TypeError, ValueError) as e:
            raise DependencyLoadError(pkg.fingerprint, ref, str(e)) from e
        with self._gate:
            self._check()
            return self.index.insert(dep_pkg)

    def _abort(self) -> None:
        with self._gate:
            self._stop.set()

    def build_many(self, pkgs: Iterable[Pkg], max_workers: Optional[int] = None) -> List[Pkg]:
        """Build relations for several packages concurrently.

        Every result is merged into the index before this returns. The first
        failure in submission order is raised; remaining work is abandoned,
        and workers still running past that point can no longer write to the
        index or to any descriptor.
        """
        pending = [p for p in pkgs if not p.relations_built]
        workers = max(1, int(max_workers or Constants.MAX_WORKERS))
        if len(pending) <= 1 or workers == 1:
            fetched: List[Pkg] = []
            for p in pending:
                self._check()
                fetched.extend(self.build(p))
            return fetched

        fetched = []
        pool = ThreadPoolExecutor(max_workers=min(workers, len(pending)), thread_name_prefix="relations")
        with Timer() as t:
            try:
                futures = [pool.submit(self.build, p) for p in pending]
                for fut in futures:
                    try:
                        fetched.extend(fut.result(timeout=self.cancel.remaining()))
                    except FutureTimeoutError:
                        self._abort()
                        raise ResolutionAbortedError("deadline exceeded waiting on repository") from None
                    except BaseException:
                        self._abort()
                        raise
            finally:
                pool.shutdown(wait=False, cancel_futures=True)
        if is_debug_enabled(logger):
            logger.debug(
                "Relation fan-out complete",
                extra=extra_context(
                    event="fanout",
                    component="relations",
                    action="build_many",
                    count=len(pending),
                    fetched=len(fetched),
                    duration_ms=t.duration_ms(),
                )
            )
        return fetched
