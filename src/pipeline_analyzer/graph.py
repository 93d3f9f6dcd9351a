# graph.py
"""
Dependency graph algorithms shared by every format.

Input everywhere is a dependency map: name -> names it depends on (the
`requires` / `needs` / `deps` lists). Names that only appear as a dependency
become implicit nodes, so dangling references never break traversal; they
are reported separately as ReferenceAnomaly by the analyzers.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from .errors import GraphAnomaly

Dependencies = Mapping[str, Sequence[str]]

ACTIVE = 1
DONE = 2


def normalize(dependencies: Dependencies) -> Dict[str, List[str]]:
    """Copy with deduplicated dependency lists and implicit nodes added."""
    out: Dict[str, List[str]] = {}
    for name, deps in dependencies.items():
        seen: List[str] = []
        for d in deps:
            if d not in seen:
                seen.append(d)
        out[name] = seen
    for deps in list(out.values()):
        for d in deps:
            out.setdefault(d, [])
    return out


def build_dag(dependencies: Dependencies) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Build adjacency + in-degree maps.

    Edge dep -> name (dep must run before name).
    """
    deps = normalize(dependencies)
    adj: Dict[str, Set[str]] = {n: set() for n in deps}
    indeg: Dict[str, int] = {n: 0 for n in deps}

    for name, needs in deps.items():
        for need in needs:
            if name not in adj[need]:
                adj[need].add(name)
                indeg[name] += 1

    return adj, indeg


def topo_levels(adj: Dict[str, Set[str]], indeg: Dict[str, int]) -> List[List[str]]:
    """
    Convert DAG into topological "levels".
    Everything in one level has all of its dependencies in earlier levels.
    """
    indeg = dict(indeg)  # copy (we mutate it)
    q = deque(sorted([n for n, d in indeg.items() if d == 0]))

    levels: List[List[str]] = []
    processed = 0

    while q:
        level_size = len(q)
        level: List[str] = []

        for _ in range(level_size):
            node = q.popleft()
            level.append(node)
            processed += 1

            for child in sorted(adj.get(node, set())):
                indeg[child] -= 1
                if indeg[child] == 0:
                    q.append(child)

        levels.append(sorted(level))

    if processed != len(indeg):
        remaining = sorted([n for n, d in indeg.items() if d > 0])
        raise ValueError(f"Graph has a cycle. Stuck nodes: {remaining}")

    return levels


# ----------------------------------------------------------------------
# Cycles
# ----------------------------------------------------------------------

def _walk(
    deps: Dict[str, List[str]],
    state: Dict[str, int],
) -> Tuple[List[List[str]], List[Tuple[str, str]]]:
    """
    Iterative DFS from every unvisited node (sorted). Every edge into a node
    on the active path closes a cycle; the cycle is the path slice from that
    node's first occurrence.
    """
    cycles: List[List[str]] = []
    back_edges: List[Tuple[str, str]] = []

    for root in sorted(deps):
        if state.get(root):
            continue

        path: List[str] = [root]
        position: Dict[str, int] = {root: 0}
        stack: List[Tuple[str, Iterator[str]]] = [(root, iter(deps[root]))]
        state[root] = ACTIVE

        while stack:
            node, children = stack[-1]
            child = next(children, None)

            if child is None:
                stack.pop()
                path.pop()
                del position[node]
                state[node] = DONE
                continue

            seen = state.get(child)
            if seen == ACTIVE:
                cycles.append(path[position[child]:])
                back_edges.append((node, child))
            elif seen is None:
                state[child] = ACTIVE
                position[child] = len(path)
                path.append(child)
                stack.append((child, iter(deps.get(child, []))))

    return cycles, back_edges


def detect_cycles(dependencies: Dependencies, state: Optional[Dict[str, int]] = None) -> List[List[str]]:
    """
    All cycles closed by a back edge of the DFS. A self-dependency is a
    cycle of length 1.

    `state` (name -> ACTIVE/DONE) may be passed in to resume or inspect a
    traversal; a fresh map is used otherwise.
    """
    cycles, _ = _walk(normalize(dependencies), {} if state is None else state)
    return cycles


def break_cycles(dependencies: Dependencies) -> Dict[str, List[str]]:
    """Copy of the graph with every DFS back edge removed (always acyclic)."""
    deps = normalize(dependencies)
    _, back_edges = _walk(deps, {})
    for node, child in back_edges:
        deps[node] = [d for d in deps[node] if d != child]
    return deps


# ----------------------------------------------------------------------
# Levels / critical path
# ----------------------------------------------------------------------

def dependency_levels(dependencies: Dependencies) -> Dict[str, int]:
    """
    level(n) = 1 + max(level(dep)), nodes without dependencies at level 1.
    Cyclic input is leveled on its cycle-broken copy.
    """
    adj, indeg = build_dag(break_cycles(dependencies))
    levels: Dict[str, int] = {}
    for idx, level in enumerate(topo_levels(adj, indeg), start=1):
        for name in level:
            levels[name] = idx
    return levels


def critical_path(dependencies: Dependencies) -> List[str]:
    """
    Longest dependency chain, first prerequisite first.

    Ties: the alphabetically first deepest node ends the path, and each step
    back follows the first declared dependency one level down. Cyclic input
    is handled on the cycle-broken copy, so the result is then approximate.
    """
    acyclic = break_cycles(dependencies)
    if not acyclic:
        return []
    levels = dependency_levels(acyclic)
    deepest = max(levels.values())
    current = sorted(n for n, lv in levels.items() if lv == deepest)[0]

    chain = [current]
    while levels[current] > 1:
        current = next(d for d in acyclic[current] if levels[d] == levels[current] - 1)
        chain.append(current)
    chain.reverse()
    return chain


# ----------------------------------------------------------------------
# One-shot analysis
# ----------------------------------------------------------------------

@dataclass
class DependencyGraph:
    """
    Derived graph facts for one config.

    `parallel_groups` puts nodes of the same dependency level together. That
    only says their dependencies are satisfied at the same point; it ignores
    resources, concurrency limits and runner availability.
    """
    nodes: List[str] = field(default_factory=list)
    edges: List[Tuple[str, str]] = field(default_factory=list)  # (dependent, dependency)
    levels: Dict[str, int] = field(default_factory=dict)
    parallel_groups: Dict[int, List[str]] = field(default_factory=dict)
    cycles: List[List[str]] = field(default_factory=list)
    critical_path: List[str] = field(default_factory=list)
    critical_path_approximate: bool = False

    @property
    def anomaly(self) -> Optional[GraphAnomaly]:
        if not self.cycles:
            return None
        return GraphAnomaly(cycles=tuple(tuple(c) for c in self.cycles))

    @property
    def max_depth(self) -> int:
        return max(self.levels.values(), default=0)

    def clone(self) -> "DependencyGraph":
        return DependencyGraph(
            nodes=list(self.nodes),
            edges=list(self.edges),
            levels=dict(self.levels),
            parallel_groups={k: list(v) for k, v in self.parallel_groups.items()},
            cycles=[list(c) for c in self.cycles],
            critical_path=list(self.critical_path),
            critical_path_approximate=self.critical_path_approximate,
        )


def analyze_graph(dependencies: Dependencies) -> DependencyGraph:
    deps = normalize(dependencies)
    levels = dependency_levels(deps)
    groups: Dict[int, List[str]] = {}
    for name in sorted(levels):
        groups.setdefault(levels[name], []).append(name)
    cycles = detect_cycles(deps)

    return DependencyGraph(
        nodes=sorted(deps),
        edges=[(name, d) for name in sorted(deps) for d in deps[name]],
        levels=levels,
        parallel_groups=dict(sorted(groups.items())),
        cycles=cycles,
        critical_path=critical_path(deps),
        critical_path_approximate=bool(cycles),
    )
