"""Chart transaction solver.

This package resolves install/uninstall requests over a universe of
dependency-linked chart packages:
- pkg.py: package descriptors, relations and their JSON form
- index.py: fingerprint index owning every descriptor
- relations.py: declared dependencies -> relations, with repository fan-out
- graph.py: dependency graph over indexed packages
- resolver.py: constraint propagation to final states
- planner.py: ordered install/uninstall plan
- service.py: the whole transaction behind one call
"""

from .errors import (
    ConstraintError,
    DependencyLoadError,
    DependencyLocateError,
    DependentStillRequiresError,
    DuplicateFingerprintError,
    IdentityError,
    IndexFrozenError,
    NoSatisfyingVersionError,
    PackageLookupError,
    PlanCycleError,
    PlanningError,
    ResolutionAbortedError,
    SolverError,
    StateConflictError,
    UnknownFamilyError,
    UnknownPackageError,
    UnsatisfiableDependencyError,
)
from .pkg import Pkg, PkgRel, State, base_fingerprint_of, fingerprint_mock, fingerprint_of
from .index import FingerprintIndex
from .relations import CancelToken, RelationBuilder
from .graph import DependencyGraph, Edge
from .resolver import Resolution, StateResolver
from .planner import Plan, TransactionPlanner
from .service import ResolutionService

__all__ = [
    "Pkg",
    "PkgRel",
    "State",
    "base_fingerprint_of",
    "fingerprint_mock",
    "fingerprint_of",
    "FingerprintIndex",
    "CancelToken",
    "RelationBuilder",
    "DependencyGraph",
    "Edge",
    "Resolution",
    "StateResolver",
    "Plan",
    "TransactionPlanner",
    "ResolutionService",
    # errors
    "SolverError",
    "PackageLookupError",
    "UnknownFamilyError",
    "NoSatisfyingVersionError",
    "UnknownPackageError",
    "DependencyLocateError",
    "DependencyLoadError",
    "ResolutionAbortedError",
    "IdentityError",
    "DuplicateFingerprintError",
    "IndexFrozenError",
    "ConstraintError",
    "StateConflictError",
    "UnsatisfiableDependencyError",
    "DependentStillRequiresError",
    "PlanningError",
    "PlanCycleError",
]
