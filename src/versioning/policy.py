"""Version picking policies.

A policy decides which member of a package family satisfies a range. The
default picks the highest satisfying version; the policy object is swappable
per index so callers can pin a different behavior for a whole resolution.
"""

from abc import ABC, abstractmethod
from typing import Collection, List, Optional, Sequence

from constants import Constants, RangePolicies
from .models import PickResult, VersionSpec
from .parser import parse_range
from .ranges import InvalidRangeError, satisfying


class VersionPolicy(ABC):
    """Base class for version picking policies."""

    name = "base"

    def pick(
        self,
        spec: VersionSpec,
        candidates: Sequence[str],
        installed: Collection[str] = (),
    ) -> PickResult:
        """Select a version out of ``candidates`` for ``spec``.

        Args:
            spec: Parsed range expression.
            candidates: Available version strings.
            installed: Versions of the family that are currently installed.
        """
        if not candidates:
            return PickResult(None, 0, "No versions available")
        try:
            matching = satisfying(candidates, spec)
        except InvalidRangeError as e:
            return PickResult(None, len(candidates), str(e))
        if not matching:
            return PickResult(None, len(candidates), f"No versions match spec '{spec.raw}'")
        return PickResult(self._choose(matching, installed), len(candidates))

    def pick_raw(self, raw_spec: Optional[str], candidates: Sequence[str], installed: Collection[str] = ()) -> PickResult:
        """Convenience wrapper accepting an unparsed range."""
        return self.pick(parse_range(raw_spec), candidates, installed)

    @abstractmethod
    def _choose(self, matching: List[str], installed: Collection[str]) -> str:
        """Choose among satisfying versions (sorted ascending)."""


class HighestVersionPolicy(VersionPolicy):
    """Pick the highest version satisfying the range."""

    name = RangePolicies.HIGHEST.value

    def _choose(self, matching, installed):
        return matching[-1]


class PreferInstalledPolicy(VersionPolicy):
    """Keep an installed satisfying version if any; otherwise the highest."""

    name = RangePolicies.PREFER_INSTALLED.value

    def _choose(self, matching, installed):
        kept = [v for v in matching if v in installed]
        if kept:
            return kept[-1]
        return matching[-1]


_POLICIES = {
    HighestVersionPolicy.name: HighestVersionPolicy,
    PreferInstalledPolicy.name: PreferInstalledPolicy,
}


def get_policy(name: Optional[str] = None) -> VersionPolicy:
    """Instantiate a policy by name (defaults to Constants.RANGE_POLICY)."""
    key = name or Constants.RANGE_POLICY
    try:
        return _POLICIES[key]()
    except KeyError:
        raise ValueError(f"Unknown range policy '{key}'") from None
