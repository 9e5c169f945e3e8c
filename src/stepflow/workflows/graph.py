"""
Dependency Graph - ordering constraints between workflow steps.

Edges are the union of each step's declared ``depends_on`` and every step id
mentioned by a placeholder anywhere in its input sources (including inside
transform arguments, composite values and plugin arguments).

Topological order uses Kahn's algorithm; when several steps are ready at once
the one declared first wins, so the order is deterministic for a given spec.
"""

from __future__ import annotations

import heapq
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .models import StepSpec


logger = logging.getLogger(__name__)


class CycleError(ValueError):
    """Raised by topological_order() when the graph is not a DAG."""

    def __init__(self, cycles: List[Tuple[str, ...]]):
        self.cycles = cycles
        rendered = "; ".join(" -> ".join([*c, c[0]]) for c in cycles)
        super().__init__(f"Dependency graph has cycle(s): {rendered}")


class DependencyGraph:
    """
    Directed graph over step ids.

    ``dependencies[s]`` lists the steps ``s`` waits for, ``dependents[s]``
    the steps waiting for ``s``. References to unknown steps are not edges;
    the validator reports them separately.
    """

    def __init__(self, steps: Sequence[StepSpec]):
        self._index: Dict[str, int] = {}
        for i, step in enumerate(steps):
            # First declaration wins on duplicate ids
            self._index.setdefault(step.id, i)

        self.dependencies: Dict[str, Tuple[str, ...]] = {}
        dependents: Dict[str, List[str]] = {sid: [] for sid in self._index}

        for step in steps:
            if step.id in self.dependencies:
                continue
            deps = tuple(d for d in step.all_dependencies() if d in self._index)
            self.dependencies[step.id] = deps
            for dep in deps:
                dependents[dep].append(step.id)

        self.dependents: Dict[str, Tuple[str, ...]] = {
            sid: tuple(sorted(children, key=self._index.__getitem__))
            for sid, children in dependents.items()
        }

    @property
    def nodes(self) -> List[str]:
        return sorted(self._index, key=self._index.__getitem__)

    def declaration_index(self, step_id: str) -> int:
        return self._index[step_id]

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._index

    def __len__(self) -> int:
        return len(self._index)

    def roots(self) -> List[str]:
        return [n for n in self.nodes if not self.dependencies[n]]

    def descendants(self, step_id: str) -> List[str]:
        """All steps that transitively depend on ``step_id``, in declaration order."""
        seen: Set[str] = set()
        stack = list(self.dependents.get(step_id, ()))
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self.dependents.get(node, ()))
        return sorted(seen, key=self._index.__getitem__)

    def ancestors(self, step_id: str) -> List[str]:
        """All steps ``step_id`` transitively depends on, in declaration order."""
        seen: Set[str] = set()
        stack = list(self.dependencies.get(step_id, ()))
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self.dependencies.get(node, ()))
        return sorted(seen, key=self._index.__getitem__)

    def find_cycles(self) -> List[Tuple[str, ...]]:
        """
        Find cycles with an iterative DFS that tracks the recursion stack.

        Each cycle is reported once, as its members in traversal order
        starting from the member declared first.
        """
        WHITE, GREY, BLACK = 0, 1, 2
        color = {n: WHITE for n in self._index}
        cycles: List[Tuple[str, ...]] = []
        seen_cycles: Set[frozenset] = set()

        for start in self.nodes:
            if color[start] != WHITE:
                continue
            path: List[str] = [start]
            on_path: Set[str] = {start}
            iters = [iter(self.dependencies[start])]
            color[start] = GREY

            while iters:
                node = path[-1]
                nxt = next(iters[-1], None)
                if nxt is None:
                    color[node] = BLACK
                    on_path.discard(node)
                    path.pop()
                    iters.pop()
                    continue
                if nxt in on_path:
                    members = path[path.index(nxt):]
                    key = frozenset(members)
                    if key not in seen_cycles:
                        seen_cycles.add(key)
                        cycles.append(self._canonical_cycle(members))
                elif color[nxt] == WHITE:
                    color[nxt] = GREY
                    path.append(nxt)
                    on_path.add(nxt)
                    iters.append(iter(self.dependencies[nxt]))

        return cycles

    def _canonical_cycle(self, members: List[str]) -> Tuple[str, ...]:
        # Walk collected along dependency edges; report it in execution direction
        ordered = list(reversed(members))
        first = min(range(len(ordered)), key=lambda i: self._index[ordered[i]])
        return tuple(ordered[first:] + ordered[:first])

    def topological_order(self) -> List[str]:
        """
        Kahn's algorithm with declaration-order tie-break.

        Raises:
            CycleError: If the graph has a cycle
        """
        in_degree = {n: len(self.dependencies[n]) for n in self._index}
        ready = [(self._index[n], n) for n, d in in_degree.items() if d == 0]
        heapq.heapify(ready)
        order: List[str] = []

        while ready:
            _, node = heapq.heappop(ready)
            order.append(node)
            for child in self.dependents[node]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    heapq.heappush(ready, (self._index[child], child))

        if len(order) != len(self._index):
            raise CycleError(self.find_cycles())
        return order

    def levels(self, order: Optional[Iterable[str]] = None) -> Dict[str, int]:
        """Depth of each step (0 for roots); useful for plan output."""
        depth: Dict[str, int] = {}
        for node in order or self.topological_order():
            deps = self.dependencies[node]
            depth[node] = 1 + max(depth[d] for d in deps) if deps else 0
        return depth


__all__ = ["DependencyGraph", "CycleError"]
