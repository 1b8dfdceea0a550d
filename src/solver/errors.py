"""Error taxonomy for resolution.

Four families: lookup errors (a package or version could not be found or
loaded), identity errors (the index invariant was violated), constraint
errors (the request is infeasible) and planning errors (the dependency data
cannot be ordered). Every error carries structured attributes and renders to
a dict for reporting.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence


class SolverError(Exception):
    """Base class for every resolution failure."""

    kind = "solver"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "kind": self.kind, "message": str(self)}


# ---------- lookup ----------


class PackageLookupError(SolverError):
    """A package, family or version could not be found or loaded."""

    kind = "lookup"


class UnknownFamilyError(PackageLookupError):
    def __init__(self, base_fingerprint: str):
        self.base_fingerprint = base_fingerprint
        super().__init__(f"Unknown package family '{base_fingerprint}'")

    def to_dict(self):
        data = super().to_dict()
        data["base_fingerprint"] = self.base_fingerprint
        return data


class NoSatisfyingVersionError(PackageLookupError):
    def __init__(self, base_fingerprint: str, version_range: str, available: Sequence[str] = ()):
        self.base_fingerprint = base_fingerprint
        self.version_range = version_range
        self.available = list(available)
        super().__init__(
            f"No version of '{base_fingerprint}' satisfies '{version_range}'"
            f" (available: {', '.join(self.available) or 'none'})"
        )

    def to_dict(self):
        data = super().to_dict()
        data.update(base_fingerprint=self.base_fingerprint, range=self.version_range, available=self.available)
        return data


class UnknownPackageError(PackageLookupError):
    def __init__(self, fingerprint: str):
        self.fingerprint = fingerprint
        super().__init__(f"Unknown package '{fingerprint}'")

    def to_dict(self):
        data = super().to_dict()
        data["fingerprint"] = self.fingerprint
        return data


class DependencyLocateError(PackageLookupError):
    """The repository could not find a package matching a dependency."""

    def __init__(self, dependent: Optional[str], name: str, version_range: str, reason: str = ""):
        self.dependent = dependent
        self.name = name
        self.version_range = version_range
        self.reason = reason
        owner = f" required by '{dependent}'" if dependent else ""
        detail = f": {reason}" if reason else ""
        super().__init__(f"Cannot locate '{name}' '{version_range}'{owner}{detail}")

    def to_dict(self):
        data = super().to_dict()
        data.update(dependent=self.dependent, name=self.name, range=self.version_range)
        return data


class DependencyLoadError(PackageLookupError):
    """The repository found a package but could not load it."""

    def __init__(self, dependent: Optional[str], ref: Any, reason: str = ""):
        self.dependent = dependent
        self.ref = ref
        self.reason = reason
        owner = f" required by '{dependent}'" if dependent else ""
        detail = f": {reason}" if reason else ""
        super().__init__(f"Cannot load '{ref}'{owner}{detail}")

    def to_dict(self):
        data = super().to_dict()
        data.update(dependent=self.dependent, ref=str(self.ref))
        return data


class ResolutionAbortedError(PackageLookupError):
    """Cancellation or deadline reached while talking to the repository."""

    def __init__(self, reason: str = "cancelled"):
        self.reason = reason
        super().__init__(f"Resolution aborted: {reason}")


# ---------- identity ----------


class IdentityError(SolverError):
    kind = "identity"


class DuplicateFingerprintError(IdentityError):
    def __init__(self, fingerprint: str):
        self.fingerprint = fingerprint
        super().__init__(f"Fingerprint '{fingerprint}' already indexed with different content")

    def to_dict(self):
        data = super().to_dict()
        data["fingerprint"] = self.fingerprint
        return data


class IndexFrozenError(IdentityError):
    def __init__(self, fingerprint: str):
        self.fingerprint = fingerprint
        super().__init__(f"Cannot insert '{fingerprint}': index is read-only during resolution")


# ---------- constraint ----------


class ConstraintError(SolverError):
    """The requested states cannot be satisfied together."""

    kind = "constraint"

    def __init__(self, message: str, chain: Optional[List[str]] = None):
        self.chain = list(chain or [])
        super().__init__(message)

    def to_dict(self):
        data = super().to_dict()
        data["chain"] = self.chain
        return data


class StateConflictError(ConstraintError):
    def __init__(self, fingerprint: str, wanted, existing, chain=None):
        self.fingerprint = fingerprint
        self.wanted = wanted
        self.existing = existing
        super().__init__(
            f"'{fingerprint}' is wanted {wanted.name} but already {existing.name}", chain
        )

    def to_dict(self):
        data = super().to_dict()
        data.update(fingerprint=self.fingerprint, wanted=self.wanted.name, existing=self.existing.name)
        return data


class UnsatisfiableDependencyError(ConstraintError):
    def __init__(self, for_package: str, depends_on: str, chain=None):
        self.for_package = for_package
        self.depends_on = depends_on
        super().__init__(
            f"'{for_package}' requires '{depends_on}', which is requested ABSENT", chain
        )

    def to_dict(self):
        data = super().to_dict()
        data.update(for_package=self.for_package, depends_on=self.depends_on)
        return data


class DependentStillRequiresError(ConstraintError):
    def __init__(self, removed: str, blocked_by: str, chain=None):
        self.removed = removed
        self.blocked_by = blocked_by
        super().__init__(
            f"Cannot remove '{removed}': '{blocked_by}' is PRESENT and requires it", chain
        )

    def to_dict(self):
        data = super().to_dict()
        data.update(removed=self.removed, blocked_by=self.blocked_by)
        return data


# ---------- planning ----------


class PlanningError(SolverError):
    kind = "planning"


class PlanCycleError(PlanningError):
    def __init__(self, cycle: Sequence[str], phase: str = "install"):
        self.cycle = list(cycle)
        self.phase = phase
        super().__init__(f"Dependency cycle among packages to {phase}: {' -> '.join(self.cycle)}")

    def to_dict(self):
        data = super().to_dict()
        data.update(cycle=self.cycle, phase=self.phase)
        return data
