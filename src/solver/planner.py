"""Transaction planner: order a resolution into install/uninstall sequences."""
from __future__ import annotations

import heapq
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants

from .errors import PlanCycleError
from .graph import DependencyGraph
from .pkg import State
from .resolver import Resolution

logger = logging.getLogger(__name__)


@dataclass
class Plan:
    """Ordered transaction: dependencies install first, dependents uninstall first."""

    install: List[str] = field(default_factory=list)
    uninstall: List[str] = field(default_factory=list)
    states: Dict[str, State] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.install and not self.uninstall

    def to_dict(self, include_states: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {"Install": list(self.install), "Uninstall": list(self.uninstall)}
        if include_states:
            data["States"] = {fp: int(s) for fp, s in sorted(self.states.items())}
        return data

    def to_json(self, include_states: bool = False, indent: Optional[int] = None) -> str:
        separators = None if indent else (",", ":")
        return json.dumps(self.to_dict(include_states), ensure_ascii=False, indent=indent, separators=separators)


class TransactionPlanner:
    """Splits a resolution into install/uninstall sets and orders them.

    Ready packages are taken in fingerprint order, which makes plans
    reproducible. A cycle among packages that all change state either gets
    broken at its smallest fingerprint (with a warning) or raises
    PlanCycleError.
    """

    def __init__(self, graph: DependencyGraph, break_cycles: Optional[bool] = None):
        self.graph = graph
        self.break_cycles = Constants.PLAN_BREAK_CYCLES if break_cycles is None else break_cycles

    def plan(self, resolution: Resolution) -> Plan:
        install_set: Set[str] = set()
        uninstall_set: Set[str] = set()
        for fp, state in resolution.states.items():
            current = self.graph.package(fp).current_state
            if state == State.PRESENT and current != State.PRESENT:
                install_set.add(fp)
            elif state == State.ABSENT and current == State.PRESENT:
                uninstall_set.add(fp)

        install_prereqs = {
            fp: [d for d in self.graph.dependencies(fp, include_optional=True) if d in install_set]
            for fp in install_set
        }
        uninstall_prereqs = {
            fp: sorted(d for d in self.graph.dependents(fp, include_optional=True) if d in uninstall_set)
            for fp in uninstall_set
        }
        plan = Plan(
            install=self._order(install_prereqs, "install"),
            uninstall=self._order(uninstall_prereqs, "uninstall"),
            states=dict(resolution.states),
        )
        if is_debug_enabled(logger):
            logger.debug(
                "Plan computed",
                extra=extra_context(
                    event="planned",
                    component="planner",
                    action="plan",
                    install=len(plan.install),
                    uninstall=len(plan.uninstall),
                )
            )
        return plan

    def _order(self, prereqs: Dict[str, List[str]], phase: str) -> List[str]:
        """Topological order where ``prereqs[n]`` is emitted before ``n``.

        Strongly connected components are ordered as units, so a broken
        cycle is emitted in full before anything that depends on it.
        """
        emitted: List[str] = []
        for component in self._condense(prereqs):
            head = component[0]
            if len(component) == 1 and head not in prereqs[head]:
                emitted.append(head)
                continue
            members = set(component)
            inner = {n: [p for p in prereqs[n] if p in members] for n in component}
            cycle = self._find_cycle(inner)
            if not self.break_cycles:
                raise PlanCycleError(cycle, phase)
            logger.warning("Breaking %s cycle %s at %s", phase, " -> ".join(cycle), cycle[0])
            inner[cycle[0]] = []
            emitted.extend(self._order(inner, phase))
        return emitted

    def _condense(self, prereqs: Dict[str, List[str]]) -> List[List[str]]:
        """Components in dependency order; ready components go by smallest fingerprint."""
        components = self._components(prereqs)
        owner = {n: i for i, comp in enumerate(components) for n in comp}
        comp_prereqs: Dict[int, Set[int]] = {
            i: {owner[p] for n in comp for p in prereqs[n]} - {i}
            for i, comp in enumerate(components)
        }
        indegree = {i: len(ps) for i, ps in comp_prereqs.items()}
        successors: Dict[int, List[int]] = {i: [] for i in comp_prereqs}
        for i, ps in comp_prereqs.items():
            for p in ps:
                successors[p].append(i)

        ready = [(components[i][0], i) for i, d in indegree.items() if d == 0]
        heapq.heapify(ready)
        ordered: List[List[str]] = []
        while ready:
            _, i = heapq.heappop(ready)
            ordered.append(components[i])
            for succ in successors[i]:
                indegree[succ] -= 1
                if indegree[succ] == 0:
                    heapq.heappush(ready, (components[succ][0], succ))
        return ordered

    @staticmethod
    def _components(prereqs: Dict[str, List[str]]) -> List[List[str]]:
        """Tarjan's strongly connected components, iterative; members sorted."""
        number: Dict[str, int] = {}
        low: Dict[str, int] = {}
        stack: List[str] = []
        on_stack: Set[str] = set()
        components: List[List[str]] = []

        def visit(node: str) -> None:
            number[node] = low[node] = len(number)
            stack.append(node)
            on_stack.add(node)

        for root in sorted(prereqs):
            if root in number:
                continue
            visit(root)
            work = [(root, iter(sorted(prereqs[root])))]
            while work:
                node, pending = work[-1]
                descended = False
                for nxt in pending:
                    if nxt not in number:
                        visit(nxt)
                        work.append((nxt, iter(sorted(prereqs[nxt]))))
                        descended = True
                        break
                    if nxt in on_stack:
                        low[node] = min(low[node], number[nxt])
                if descended:
                    continue
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])
                if low[node] == number[node]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(sorted(component))
        return components

    @staticmethod
    def _find_cycle(prereqs: Dict[str, List[str]]) -> List[str]:
        """Walk prerequisites from the smallest node until one repeats.

        ``prereqs`` must describe one strongly connected component, so every
        node has a prerequisite to follow.
        """
        path: List[str] = []
        position: Dict[str, int] = {}
        node = min(prereqs)
        while node not in position:
            position[node] = len(path)
            path.append(node)
            node = min(prereqs[node])
        cycle = path[position[node]:]
        start = cycle.index(min(cycle))
        return cycle[start:] + cycle[:start]
