"""Repository collaborator contract.

A repository answers two questions: which archive satisfies ``name`` within
a version range (``locate``) and what that archive declares (``load``).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple


class RepositoryError(Exception):
    """Base class for repository failures."""


class NotFoundError(RepositoryError):
    """No archive matches the requested name and range."""


class LoadError(RepositoryError):
    """An archive was located but cannot be read."""


@dataclass(frozen=True)
class DependencySpec:
    """A declared, unresolved dependency of a chart.

    A ``namespace`` of None means the dependency lives in the dependent's
    namespace.
    """
    name: str
    version_range: str = "*"
    optional: bool = False
    namespace: Optional[str] = None


@dataclass(frozen=True)
class ArchiveRef:
    """Opaque pointer to an archive inside a repository."""
    name: str
    version: str
    location: str = ""

    def __str__(self) -> str:
        return self.location or f"{self.name}-{self.version}"


@dataclass
class LoadedPackage:
    """Descriptor fields and raw dependency list read from an archive."""
    name: str
    version: str
    namespace: Optional[str] = None
    payload: Any = None
    dependencies: Tuple[DependencySpec, ...] = field(default_factory=tuple)


class Repository(ABC):
    """Base class for chart repositories."""

    @abstractmethod
    def locate(self, name: str, version_range: str) -> ArchiveRef:
        """Return the archive of ``name`` satisfying ``version_range``.

        Raises:
            NotFoundError: nothing matches.
        """

    @abstractmethod
    def load(self, ref: ArchiveRef) -> LoadedPackage:
        """Read descriptor fields and dependencies for ``ref``.

        Raises:
            LoadError: the archive cannot be read.
        """
