"""Package descriptor: the minimum object the solver reasons about.

A package is one chart at one exact version with its installation
characteristics (release name and namespace). The same chart with the same
release name and namespace but a different version is a different package:
``prometheus-1.2.0`` and ``prometheus-1.3.0`` are distinct, but they belong to
the same family.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from common.hashing import chart_hash as default_hasher
from repository.base import DependencySpec

MAX_HASH = 2 ** 64


class State(IntEnum):
    """Tristate of a package; serialized as its integer value."""

    UNKNOWN = 0
    PRESENT = 1
    ABSENT = 2


@dataclass(frozen=True)
class PkgRel:
    """Weak reference to a dependency family plus the range it must satisfy."""

    base_fingerprint: str
    semver_range: str

    def to_dict(self) -> Dict[str, str]:
        return {"BaseFingerprint": self.base_fingerprint, "SemverRange": self.semver_range}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PkgRel":
        return cls(base_fingerprint=data["BaseFingerprint"], semver_range=data["SemverRange"])


def fingerprint_of(name: str, version: str, chart_hash: int, namespace: str) -> str:
    return f"{name}-{version}-{chart_hash}-{namespace}"


def base_fingerprint_of(name: str, namespace: str) -> str:
    return f"{name}-{namespace}"


def fingerprint_mock(name: str, version: str, namespace: str) -> str:
    """Fingerprint of a mock package; its chart hash is always 0."""
    return fingerprint_of(name, version, 0, namespace)


def _dumps(data: Any) -> str:
    # ensure_ascii=False keeps text verbatim; json never HTML-escapes <, > or &
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


class Pkg:
    """One concrete, versioned, deployable chart.

    Identity fields (name, version, chart_hash, namespace) are write-once:
    they are exposed as read-only properties, so the cached fingerprints can
    never go stale. States and relation lists are mutable.
    """

    __slots__ = (
        "_name", "_version", "_chart_hash", "_namespace",
        "_fingerprint", "_base_fingerprint",
        "depends_rel", "depends_optional_rel",
        "current_state", "desired_state",
        "payload", "dependencies", "relations_built",
    )

    def __init__(
        self,
        name: str,
        version: str,
        namespace: str,
        current_state: State = State.UNKNOWN,
        desired_state: State = State.UNKNOWN,
        payload: Any = None,
        hasher: Optional[Callable[[Any], int]] = None,
        dependencies: Iterable[DependencySpec] = (),
        chart_hash: Optional[int] = None,
    ):
        if not name:
            raise ValueError("package name must not be empty")
        if not version:
            raise ValueError(f"package '{name}' has no version")
        if chart_hash is None:
            chart_hash = (hasher or default_hasher)(payload)
        chart_hash = int(chart_hash)
        if not 0 <= chart_hash < MAX_HASH:
            raise ValueError(f"chart hash {chart_hash} is not an unsigned 64-bit integer")

        self._name = name
        self._version = version
        self._chart_hash = chart_hash
        self._namespace = namespace
        self._fingerprint = fingerprint_of(name, version, chart_hash, namespace)
        self._base_fingerprint = base_fingerprint_of(name, namespace)

        self.depends_rel: List[PkgRel] = []
        self.depends_optional_rel: List[PkgRel] = []
        self.current_state = State(current_state)
        self.desired_state = State(desired_state)
        self.payload = payload
        self.dependencies: Tuple[DependencySpec, ...] = tuple(dependencies)
        self.relations_built = False

    @classmethod
    def mock(
        cls,
        name: str,
        version: str,
        namespace: str,
        depends: Iterable[PkgRel] = (),
        depends_optional: Iterable[PkgRel] = (),
        current_state: State = State.UNKNOWN,
        desired_state: State = State.UNKNOWN,
    ) -> "Pkg":
        """Build a package with chart hash 0 and pre-resolved relations."""
        p = cls(name, version, namespace, current_state, desired_state, chart_hash=0)
        p.depends_rel = list(depends)
        p.depends_optional_rel = list(depends_optional)
        p.relations_built = True
        return p

    # identity

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return self._version

    @property
    def chart_hash(self) -> int:
        return self._chart_hash

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def fingerprint(self) -> str:
        """Unique id: ``{name}-{version}-{chart_hash}-{namespace}``.

        The hash helps with packages (mariadb, postgres) that satisfy a
        metapackage and get installed under the metapackage release name.
        """
        return self._fingerprint

    @property
    def base_fingerprint(self) -> str:
        """Unique id of the package family: ``{name}-{namespace}``."""
        return self._base_fingerprint

    def identity(self) -> Tuple[str, str, int, str]:
        return (self._name, self._version, self._chart_hash, self._namespace)

    def same_family(self, other: "Pkg") -> bool:
        return self._base_fingerprint == other.base_fingerprint

    def same_content(self, other: "Pkg") -> bool:
        """True when two descriptors under one fingerprint describe the same chart.

        Declared dependencies are only compared when both sides carry them;
        descriptors read back from JSON have none.
        """
        if self._chart_hash != other.chart_hash:
            return False
        if self.dependencies and other.dependencies:
            return self.dependencies == other.dependencies
        return True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Pkg):
            return NotImplemented
        return self.identity() == other.identity()

    def __hash__(self) -> int:
        return hash(self.identity())

    def __repr__(self) -> str:
        return (
            f"Pkg({self._fingerprint!r}, current={self.current_state.name},"
            f" desired={self.desired_state.name})"
        )

    # relations

    def relations(self, include_optional: bool = True) -> List[Tuple[PkgRel, bool]]:
        """Relations in declaration order as (rel, optional) pairs."""
        rels = [(r, False) for r in self.depends_rel]
        if include_optional:
            rels.extend((r, True) for r in self.depends_optional_rel)
        return rels

    def with_relations_built(self, repository, index, cancel=None) -> "Pkg":
        """Resolve declared dependencies into PkgRel entries.

        Dependencies missing from ``index`` are located and loaded through
        ``repository`` and inserted into ``index``.

        Raises:
            DependencyLocateError: the repository has no matching chart.
            DependencyLoadError: a matching chart could not be loaded.
        """
        from .relations import RelationBuilder  # pylint: disable=import-outside-toplevel

        RelationBuilder(repository, index, cancel=cancel).build(self)
        return self

    # serialization

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Name": self._name,
            "Version": self._version,
            "ChartHash": self._chart_hash,
            "Namespace": self._namespace,
            "DependsRel": [r.to_dict() for r in self.depends_rel],
            "DependsOptionalRel": [r.to_dict() for r in self.depends_optional_rel],
            "CurrentState": int(self.current_state),
            "DesiredState": int(self.desired_state),
        }

    def to_json(self) -> str:
        return _dumps(self.to_dict())

    def encode(self) -> str:
        """Encode the package to a string that from_json can read back."""
        return self.to_json()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pkg":
        p = cls(
            data["Name"],
            data["Version"],
            data["Namespace"],
            current_state=State(data.get("CurrentState", 0)),
            desired_state=State(data.get("DesiredState", 0)),
            chart_hash=data.get("ChartHash", 0),
        )
        p.depends_rel = [PkgRel.from_dict(r) for r in data.get("DependsRel") or []]
        p.depends_optional_rel = [PkgRel.from_dict(r) for r in data.get("DependsOptionalRel") or []]
        # serialized relations are already resolved
        p.relations_built = True
        return p

    @classmethod
    def from_json(cls, text: str) -> "Pkg":
        return cls.from_dict(json.loads(text))
