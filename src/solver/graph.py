"""Dependency graph over indexed packages.

Nodes are fingerprints; the index owns the descriptors. Edges are plain
(source, target, optional) triples resolved against the index once the
relation build has reached a fixed point.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Union

from common.logging_utils import extra_context, is_debug_enabled, Timer
from repository.base import Repository

from .errors import UnknownPackageError
from .index import FingerprintIndex
from .pkg import Pkg
from .relations import CancelToken, RelationBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class Edge:
    source: str
    target: str
    optional: bool = False


def _as_fingerprint(item: Union[str, Pkg]) -> str:
    return item.fingerprint if isinstance(item, Pkg) else item


class DependencyGraph:
    """Directed graph: an edge points from a dependent to its dependency."""

    def __init__(self, index: FingerprintIndex, nodes: Iterable[str], edges: Iterable[Edge]):
        self._index = index
        self._nodes: Set[str] = set(nodes)
        self._out: Dict[str, Dict[str, Edge]] = {fp: {} for fp in self._nodes}
        self._in: Dict[str, Dict[str, Edge]] = {fp: {} for fp in self._nodes}
        for edge in edges:
            self._add_edge(edge)

    def _add_edge(self, edge: Edge) -> None:
        for fp in (edge.source, edge.target):
            if fp not in self._nodes:
                self._nodes.add(fp)
                self._out[fp] = {}
                self._in[fp] = {}
        current = self._out[edge.source].get(edge.target)
        # a mandatory relation wins over an optional one to the same target
        if current is not None and not current.optional:
            return
        self._out[edge.source][edge.target] = edge
        self._in[edge.target][edge.source] = edge

    @classmethod
    def build(
        cls,
        index: FingerprintIndex,
        repository: Repository,
        roots: Iterable[Union[str, Pkg]],
        cancel: Optional[CancelToken] = None,
        max_workers: Optional[int] = None,
        include_installed: bool = True,
        freeze: bool = True,
    ) -> "DependencyGraph":
        """Expand the graph from ``roots`` until no unvisited dependency remains.

        Installed packages already in the index are expanded too so their
        reverse dependencies are known. Edges are computed once against the
        final index, so the result does not depend on fetch interleaving.
        """
        seeds: Dict[str, Pkg] = {}
        for root in roots:
            fp = _as_fingerprint(root)
            pkg = index.lookup_exact(fp)
            if pkg is None:
                raise UnknownPackageError(fp)
            seeds[fp] = pkg
        if include_installed:
            for pkg in index.installed():
                seeds.setdefault(pkg.fingerprint, pkg)

        builder = RelationBuilder(repository, index, cancel=cancel)
        visited: Set[str] = set()
        frontier = [seeds[fp] for fp in sorted(seeds)]
        waves = 0
        with Timer() as t:
            while frontier:
                builder.cancel.check()
                waves += 1
                visited.update(p.fingerprint for p in frontier)
                builder.build_many(frontier, max_workers=max_workers)
                discovered: Dict[str, Pkg] = {}
                for fp in sorted(visited):
                    for rel, _ in index.lookup_exact(fp).relations():
                        target = index.resolve_range(rel.base_fingerprint, rel.semver_range)
                        if target.fingerprint not in visited:
                            discovered[target.fingerprint] = target
                frontier = [discovered[fp] for fp in sorted(discovered)]

            if freeze:
                index.freeze()
            edges = []
            for fp in sorted(visited):
                for rel, optional in index.lookup_exact(fp).relations():
                    target = index.resolve_range(rel.base_fingerprint, rel.semver_range)
                    edges.append(Edge(fp, target.fingerprint, optional))

        graph = cls(index, visited, edges)
        if is_debug_enabled(logger):
            logger.debug(
                "Dependency graph built",
                extra=extra_context(
                    event="graph_built",
                    component="graph",
                    action="build",
                    nodes=len(graph),
                    edges=len(graph.edges()),
                    waves=waves,
                    duration_ms=t.duration_ms(),
                )
            )
        return graph

    # queries

    def package(self, fingerprint: str) -> Pkg:
        if fingerprint not in self._nodes:
            raise UnknownPackageError(fingerprint)
        pkg = self._index.lookup_exact(fingerprint)
        if pkg is None:
            raise UnknownPackageError(fingerprint)
        return pkg

    def nodes(self) -> List[str]:
        return sorted(self._nodes)

    def edges(self) -> List[Edge]:
        return sorted(e for targets in self._out.values() for e in targets.values())

    def dependency_edges(self, fingerprint: str, include_optional: bool = False) -> List[Edge]:
        edges = self._out.get(fingerprint, {}).values()
        return sorted(
            (e for e in edges if include_optional or not e.optional),
            key=lambda e: (e.optional, e.target),
        )

    def dependencies(self, fingerprint: str, include_optional: bool = False) -> List[str]:
        """Targets of ``fingerprint``: mandatory ones first, each group sorted."""
        return [e.target for e in self.dependency_edges(fingerprint, include_optional)]

    def dependent_edges(self, fingerprint: str, include_optional: bool = False) -> List[Edge]:
        edges = self._in.get(fingerprint, {}).values()
        return sorted(e for e in edges if include_optional or not e.optional)

    def dependents(self, fingerprint: str, include_optional: bool = False) -> Set[str]:
        """Packages depending on ``fingerprint`` (reverse edges)."""
        return {e.source for e in self.dependent_edges(fingerprint, include_optional)}

    def reachable(self, roots: Iterable[str], include_optional: bool = True) -> Set[str]:
        """Fingerprints reachable from ``roots`` along dependency edges, roots included."""
        seen: Set[str] = set()
        stack = [fp for fp in roots if fp in self._nodes]
        while stack:
            fp = stack.pop()
            if fp in seen:
                continue
            seen.add(fp)
            stack.extend(self.dependencies(fp, include_optional))
        return seen

    def to_dot(self) -> str:
        """Graphviz rendering; optional edges are dashed."""
        lines = ["digraph dependencies {"]
        for fp in self.nodes():
            lines.append(f'  "{fp}";')
        for e in self.edges():
            style = ' [style=dashed]' if e.optional else ""
            lines.append(f'  "{e.source}" -> "{e.target}"{style};')
        lines.append("}")
        return "\n".join(lines) + "\n"

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)
