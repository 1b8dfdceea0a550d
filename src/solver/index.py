"""Fingerprint index: the universe's lookup table and sole owner of descriptors."""
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterator, List, Optional, Set, Union

from common.logging_utils import extra_context, is_debug_enabled
from versioning.policy import VersionPolicy, get_policy
from versioning.ranges import parse_version, sort_versions

from .errors import (
    DuplicateFingerprintError,
    IndexFrozenError,
    NoSatisfyingVersionError,
    PackageLookupError,
    UnknownFamilyError,
)
from .pkg import Pkg, State

logger = logging.getLogger(__name__)


def _family_order(pkg: Pkg):
    parsed = parse_version(pkg.version)
    return (parsed is not None, parsed or parse_version("0.0.0"), pkg.fingerprint)


class FingerprintIndex:
    """Maps fingerprints to descriptors and families to fingerprints.

    Inserts are serialized with a lock so relation building can fan out
    across threads. ``freeze`` turns the index read-only once the graph is
    built.
    """

    def __init__(self, policy: Optional[VersionPolicy] = None):
        self._by_fingerprint: Dict[str, Pkg] = {}
        self._families: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()
        self._frozen = False
        self._policy = policy or get_policy()

    @property
    def policy(self) -> VersionPolicy:
        return self._policy

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    def insert(self, pkg: Pkg) -> Pkg:
        """Store ``pkg`` and return the canonical descriptor for its fingerprint.

        Inserting a descriptor equal to one already stored is a no-op that
        returns the stored instance.

        Raises:
            DuplicateFingerprintError: same fingerprint, different content.
            IndexFrozenError: the index is read-only.
        """
        fp = pkg.fingerprint
        with self._lock:
            existing = self._by_fingerprint.get(fp)
            if existing is not None:
                if existing is pkg or existing.same_content(pkg):
                    return existing
                raise DuplicateFingerprintError(fp)
            if self._frozen:
                raise IndexFrozenError(fp)
            self._by_fingerprint[fp] = pkg
            self._families.setdefault(pkg.base_fingerprint, set()).add(fp)
        if is_debug_enabled(logger):
            logger.debug(
                "Indexed package",
                extra=extra_context(
                    event="index_insert",
                    component="index",
                    action="insert",
                    target=fp,
                    count=len(self._by_fingerprint),
                )
            )
        return pkg

    def lookup_exact(self, fingerprint: str) -> Optional[Pkg]:
        with self._lock:
            return self._by_fingerprint.get(fingerprint)

    def lookup_family(self, base_fingerprint: str) -> List[Pkg]:
        """Family members ordered by version ascending (ties by fingerprint)."""
        with self._lock:
            members = [self._by_fingerprint[fp] for fp in self._families.get(base_fingerprint, ())]
        return sorted(members, key=_family_order)

    def resolve_range(self, base_fingerprint: str, version_range: str) -> Pkg:
        """Pick the family member satisfying ``version_range`` per the index policy.

        When several members share the chosen version (different content),
        an installed one wins, else the last by fingerprint.

        Raises:
            UnknownFamilyError: no member of the family is indexed.
            NoSatisfyingVersionError: no member satisfies the range.
        """
        members = self.lookup_family(base_fingerprint)
        if not members:
            raise UnknownFamilyError(base_fingerprint)
        versions = sort_versions({m.version for m in members})
        installed = {m.version for m in members if m.current_state == State.PRESENT}
        result = self._policy.pick_raw(version_range, versions, installed)
        if result.version is None:
            raise NoSatisfyingVersionError(base_fingerprint, version_range, versions)
        same = [m for m in members if m.version == result.version]
        kept = [m for m in same if m.current_state == State.PRESENT]
        return (kept or same)[-1]

    def has_satisfying(self, base_fingerprint: str, version_range: str) -> bool:
        try:
            self.resolve_range(base_fingerprint, version_range)
        except PackageLookupError:
            return False
        return True

    def fingerprints(self) -> List[str]:
        with self._lock:
            return sorted(self._by_fingerprint)

    def families(self) -> List[str]:
        with self._lock:
            return sorted(self._families)

    def installed(self) -> List[Pkg]:
        """Descriptors whose current state is PRESENT, by fingerprint."""
        return [p for p in self if p.current_state == State.PRESENT]

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_fingerprint)

    def __contains__(self, item: Union[str, Pkg]) -> bool:
        fp = item.fingerprint if isinstance(item, Pkg) else item
        with self._lock:
            return fp in self._by_fingerprint

    def __iter__(self) -> Iterator[Pkg]:
        with self._lock:
            items = sorted(self._by_fingerprint.items())
        return iter([pkg for _, pkg in items])
