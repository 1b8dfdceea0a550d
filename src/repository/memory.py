"""Dictionary-backed repository for embedding callers and tests."""
from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

from versioning.policy import HighestVersionPolicy, VersionPolicy

from .base import ArchiveRef, DependencySpec, LoadedPackage, LoadError, NotFoundError, Repository


class InMemoryRepository(Repository):
    """Holds chart metadata in memory.

    ``locate`` applies a version policy (highest satisfying by default).
    Call counters are kept so callers can check how often the repository
    was consulted.
    """

    def __init__(self, policy: Optional[VersionPolicy] = None):
        self._charts: Dict[str, Dict[str, LoadedPackage]] = {}
        self._policy = policy or HighestVersionPolicy()
        self._lock = threading.Lock()
        self.locate_calls: List[Tuple[str, str]] = []
        self.load_calls: List[ArchiveRef] = []

    def add(
        self,
        name: str,
        version: str,
        dependencies: Iterable[DependencySpec] = (),
        namespace: Optional[str] = None,
        payload: Any = None,
    ) -> "InMemoryRepository":
        """Register one chart version; returns self for chaining."""
        self._charts.setdefault(name, {})[version] = LoadedPackage(
            name=name,
            version=version,
            namespace=namespace,
            payload=payload,
            dependencies=tuple(dependencies),
        )
        return self

    def versions(self, name: str) -> List[str]:
        return list(self._charts.get(name, {}))

    def locate(self, name: str, version_range: str) -> ArchiveRef:
        with self._lock:
            self.locate_calls.append((name, version_range))
        candidates = self.versions(name)
        if not candidates:
            raise NotFoundError(f"chart '{name}' not in repository")
        result = self._policy.pick_raw(version_range, candidates)
        if result.version is None:
            raise NotFoundError(result.error or f"no version of '{name}' matches '{version_range}'")
        return ArchiveRef(name=name, version=result.version, location=f"memory://{name}/{result.version}")

    def load(self, ref: ArchiveRef) -> LoadedPackage:
        with self._lock:
            self.load_calls.append(ref)
        try:
            return self._charts[ref.name][ref.version]
        except KeyError:
            raise LoadError(f"archive '{ref}' not in repository") from None
