"""State resolver: constraint propagation to a fixed point.

Roots are seeded with the caller's requested states, then a worklist
propagates implications over the dependency graph:

* a PRESENT package forces its mandatory dependencies PRESENT and keeps its
  optional dependencies PRESENT when they are installed or wanted;
* an ABSENT package must not leave a PRESENT mandatory dependent behind.

Each fingerprint is assigned at most once, so propagation terminates even on
cyclic graphs. Resolving never touches descriptors; the caller applies the
returned assignments with ``Resolution.apply`` once the rest of its
transaction has succeeded.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from common.logging_utils import extra_context, is_debug_enabled, Timer

from .errors import DependentStillRequiresError, StateConflictError, UnsatisfiableDependencyError
from .graph import DependencyGraph
from .pkg import Pkg, State

logger = logging.getLogger(__name__)

Requests = Union[Mapping[Union[str, Pkg], State], Iterable[Tuple[Union[str, Pkg], State]]]


@dataclass
class Resolution:
    """Final states for every assigned or reachable package."""

    states: Dict[str, State]
    assigned: Dict[str, State]
    requested: Dict[str, State]
    parents: Dict[str, Optional[str]] = field(default_factory=dict)

    def state_of(self, fingerprint: str) -> State:
        return self.states[fingerprint]

    def chain(self, fingerprint: str) -> List[str]:
        """Propagation path from the requesting root down to ``fingerprint``."""
        path = []
        current: Optional[str] = fingerprint
        while current is not None and current not in path:
            path.append(current)
            current = self.parents.get(current)
        return list(reversed(path))

    def apply(self, graph: DependencyGraph) -> None:
        """Write the assigned states onto the descriptors as ``desired_state``."""
        for fp, state in self.assigned.items():
            graph.package(fp).desired_state = state


def _normalize_requests(requests: Requests) -> List[Tuple[str, State]]:
    items = requests.items() if isinstance(requests, Mapping) else requests
    normalized = []
    for key, state in items:
        fp = key.fingerprint if isinstance(key, Pkg) else key
        state = State(state)
        if state == State.UNKNOWN:
            raise ValueError(f"requested state for '{fp}' must be PRESENT or ABSENT")
        normalized.append((fp, state))
    return normalized


class StateResolver:
    """Assigns a final state to every package implicated by a request."""

    def __init__(self, graph: DependencyGraph):
        self.graph = graph
        self._assigned: Dict[str, State] = {}
        self._parents: Dict[str, Optional[str]] = {}
        self._worklist: Deque[str] = deque()

    def resolve(self, requests: Requests) -> Resolution:
        """Resolve ``requests`` (fingerprint -> PRESENT/ABSENT).

        Raises:
            UnknownPackageError: a requested fingerprint is not in the graph.
            StateConflictError: a package is required in two different states.
            UnsatisfiableDependencyError: a PRESENT package needs an ABSENT one.
            DependentStillRequiresError: removal would break a PRESENT dependent.
        """
        self._assigned = {}
        self._parents = {}
        self._worklist = deque()

        requested: Dict[str, State] = {}
        with Timer() as t:
            for fp, state in _normalize_requests(requests):
                self.graph.package(fp)
                existing = requested.get(fp)
                if existing is not None and existing != state:
                    raise StateConflictError(fp, state, existing, [fp])
                requested[fp] = state
            for fp in sorted(requested):
                self._assign(fp, requested[fp], None)

            while self._worklist:
                fp = self._worklist.popleft()
                if self._assigned[fp] == State.PRESENT:
                    self._propagate_present(fp)
                else:
                    self._check_absent(fp)

            states = dict(self._assigned)
            for fp in sorted(self.graph.reachable(requested)):
                if fp not in states:
                    states[fp] = self.graph.package(fp).current_state

        if is_debug_enabled(logger):
            logger.debug(
                "Resolution complete",
                extra=extra_context(
                    event="resolved",
                    component="resolver",
                    action="resolve",
                    requested=len(requested),
                    assigned=len(self._assigned),
                    duration_ms=t.duration_ms(),
                )
            )
        return Resolution(
            states=states,
            assigned=dict(self._assigned),
            requested=requested,
            parents=dict(self._parents),
        )

    def _chain(self, fingerprint: str) -> List[str]:
        return Resolution({}, {}, {}, self._parents).chain(fingerprint)

    def _assign(self, fingerprint: str, state: State, parent: Optional[str]) -> None:
        existing = self._assigned.get(fingerprint)
        if existing is None:
            self._assigned[fingerprint] = state
            self._parents[fingerprint] = parent
            self._worklist.append(fingerprint)
            return
        if existing != state:
            chain = (self._chain(parent) if parent else []) + [fingerprint]
            raise StateConflictError(fingerprint, state, existing, chain)

    def _propagate_present(self, fingerprint: str) -> None:
        for dep in self.graph.dependencies(fingerprint, include_optional=False):
            if self._assigned.get(dep) == State.ABSENT:
                raise UnsatisfiableDependencyError(fingerprint, dep, self._chain(fingerprint) + [dep])
            self._assign(dep, State.PRESENT, fingerprint)

        for edge in self.graph.dependency_edges(fingerprint, include_optional=True):
            if not edge.optional or edge.target in self._assigned:
                continue
            dep_pkg = self.graph.package(edge.target)
            # optional: keep what is installed or wanted, never force an install
            if State.PRESENT in (dep_pkg.current_state, dep_pkg.desired_state):
                self._assign(edge.target, State.PRESENT, fingerprint)

    def _check_absent(self, fingerprint: str) -> None:
        for dependent in sorted(self.graph.dependents(fingerprint, include_optional=False)):
            state = self._assigned.get(dependent)
            if state == State.ABSENT:
                continue
            if state == State.PRESENT:
                # same conflict as seen from the dependent's side
                raise UnsatisfiableDependencyError(
                    dependent, fingerprint, self._chain(dependent) + [fingerprint]
                )
            if self.graph.package(dependent).current_state == State.PRESENT:
                raise DependentStillRequiresError(
                    fingerprint, dependent, self._chain(fingerprint) + [dependent]
                )
