"""Dependency graph construction for extracted process steps.

Steps come from a language model and may reference steps that do not exist
or depend on each other circularly. This builder is the gate that turns them
into a validated DAG:

1. Referential integrity (duplicate steps, dangling dependency references)
2. Cycle detection by three-color depth-first search, reporting the full cycle
3. Topological order by Kahn's algorithm, lowest step number first among ready nodes
4. Critical path: longest duration-weighted path with deterministic tie-breaks
"""

import heapq
from datetime import date
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from actionplan.core.config import AssemblySettings, settings
from actionplan.core.exceptions import CycleError, ValidationError
from actionplan.schemas.entities import ProcessStep
from actionplan.schemas.workflow import DependencyGraph
from actionplan.utils.logging import get_logger

LOGGER = get_logger(__name__)

WHITE, GRAY, BLACK = 0, 1, 2


class DependencyGraphBuilder:
    """Validates and structures step dependencies."""

    def __init__(self, assembly_settings: Optional[AssemblySettings] = None):
        self.settings = assembly_settings or settings.assembly

    def build(
        self,
        steps: Sequence[ProcessStep],
        step_deadlines: Optional[Mapping[int, date]] = None,
    ) -> DependencyGraph:
        """Build the dependency graph for one document's steps.

        Args:
            steps: Every extracted process step of the document
            step_deadlines: Optional earliest deadline per step number, used to
                break critical-path ties

        Returns:
            DependencyGraph with topological order and critical path

        Raises:
            ValidationError: On duplicate step numbers or dangling references
            CycleError: When the dependencies contain a cycle
        """
        dependencies = self._validate_references(steps)
        nodes = sorted(dependencies)

        successors = self._successors(nodes, dependencies)
        self._detect_cycle(nodes, successors)

        order = self._topological_order(nodes, dependencies, successors)

        graph = DependencyGraph(nodes=nodes, dependencies=dependencies, topological_order=order)
        path, weight = self.critical_path(graph, steps, step_deadlines)
        graph.critical_path = path
        graph.critical_path_weight = weight

        LOGGER.info(
            "Built dependency graph",
            extra={
                "step_count": len(nodes),
                "edge_count": len(graph.edges),
                "critical_path": path,
            },
        )
        return graph

    # ------------------------------------------------------------------
    # Referential integrity
    # ------------------------------------------------------------------

    def _validate_references(self, steps: Sequence[ProcessStep]) -> Dict[int, List[int]]:
        dependencies: Dict[int, List[int]] = {}
        for step in steps:
            if step.step_number in dependencies:
                raise ValidationError(
                    f"Step number {step.step_number} appears more than once",
                    reason="duplicate_step",
                    step_number=step.step_number,
                )
            dependencies[step.step_number] = sorted(set(step.dependencies))

        for step_number, prerequisites in dependencies.items():
            for prerequisite in prerequisites:
                if prerequisite not in dependencies:
                    raise ValidationError(
                        f"Step {step_number} depends on missing step {prerequisite}",
                        reason="missing_dependency",
                        missing_id=prerequisite,
                        step_number=step_number,
                    )
        return dependencies

    @staticmethod
    def _successors(nodes: List[int], dependencies: Dict[int, List[int]]) -> Dict[int, List[int]]:
        successors: Dict[int, List[int]] = {node: [] for node in nodes}
        for dependent in nodes:
            for prerequisite in dependencies[dependent]:
                successors[prerequisite].append(dependent)
        for targets in successors.values():
            targets.sort()
        return successors

    # ------------------------------------------------------------------
    # Cycle detection
    # ------------------------------------------------------------------

    def _detect_cycle(self, nodes: List[int], successors: Dict[int, List[int]]) -> None:
        """Raise CycleError naming the first cycle found along prerequisite -> dependent edges."""
        color = {node: WHITE for node in nodes}
        for root in nodes:
            if color[root] != WHITE:
                continue
            cycle = self._find_cycle_from(root, successors, color)
            if cycle is not None:
                cycle_path = self._normalize_cycle(cycle)
                LOGGER.warning(
                    "Circular step dependency detected",
                    extra={"cycle_path": cycle_path},
                )
                raise CycleError(cycle_path)

    @staticmethod
    def _find_cycle_from(
        root: int,
        successors: Dict[int, List[int]],
        color: Dict[int, int],
    ) -> Optional[List[int]]:
        """Depth-first search from ``root`` with an explicit stack.

        ``path`` mirrors the gray nodes on the stack, so a back edge to a gray
        node yields the cycle as the path slice starting at that node.
        """
        color[root] = GRAY
        path = [root]
        stack = [(root, iter(successors[root]))]
        while stack:
            node, pending = stack[-1]
            for successor in pending:
                if color[successor] == GRAY:
                    return path[path.index(successor):]
                if color[successor] == WHITE:
                    color[successor] = GRAY
                    path.append(successor)
                    stack.append((successor, iter(successors[successor])))
                    break
            else:
                stack.pop()
                path.pop()
                color[node] = BLACK
        return None

    @staticmethod
    def _normalize_cycle(cycle: List[int]) -> List[int]:
        """Rotate the cycle to start at its lowest step and close it."""
        start = cycle.index(min(cycle))
        rotated = cycle[start:] + cycle[:start]
        return rotated + [rotated[0]]

    # ------------------------------------------------------------------
    # Topological order
    # ------------------------------------------------------------------

    @staticmethod
    def _topological_order(
        nodes: List[int],
        dependencies: Dict[int, List[int]],
        successors: Dict[int, List[int]],
    ) -> List[int]:
        indegree = {node: len(dependencies[node]) for node in nodes}
        ready = [node for node in nodes if indegree[node] == 0]
        heapq.heapify(ready)

        order: List[int] = []
        while ready:
            node = heapq.heappop(ready)
            order.append(node)
            for successor in successors[node]:
                indegree[successor] -= 1
                if indegree[successor] == 0:
                    heapq.heappush(ready, successor)

        if len(order) != len(nodes):
            # Cycle detection runs first, so this only trips on a programming error.
            remaining = sorted(set(nodes) - set(order))
            raise CycleError(remaining + remaining[:1])
        return order

    # ------------------------------------------------------------------
    # Critical path
    # ------------------------------------------------------------------

    def critical_path(
        self,
        graph: DependencyGraph,
        steps: Sequence[ProcessStep],
        step_deadlines: Optional[Mapping[int, date]] = None,
    ) -> Tuple[List[int], float]:
        """Longest duration-weighted path through the graph.

        Ties between equally long paths go to the path whose terminal step
        has the earliest deadline (steps without one sort last), then to the
        lexicographically smaller sequence of step numbers.

        Args:
            graph: Validated dependency graph (topological order computed)
            steps: Steps keyed by the same numbers as the graph's nodes
            step_deadlines: Earliest deadline per step number

        Returns:
            Tuple of (path as step numbers, cumulative weight)
        """
        if not graph.nodes:
            return [], 0.0

        step_deadlines = step_deadlines or {}
        weights = {
            step.step_number: (
                step.estimated_duration_days
                if step.estimated_duration_days is not None
                else self.settings.default_step_duration
            )
            for step in steps
        }

        best_weight: Dict[int, float] = {}
        best_path: Dict[int, List[int]] = {}
        for node in graph.topological_order:
            weight = weights.get(node, self.settings.default_step_duration)
            chosen_weight = 0.0
            chosen_path: List[int] = []
            for prerequisite in graph.dependencies.get(node, []):
                candidate_weight = best_weight[prerequisite]
                candidate_path = best_path[prerequisite]
                if candidate_weight > chosen_weight or (
                    candidate_weight == chosen_weight and (not chosen_path or candidate_path < chosen_path)
                ):
                    chosen_weight = candidate_weight
                    chosen_path = candidate_path
            best_weight[node] = chosen_weight + weight
            best_path[node] = chosen_path + [node]

        def _rank(node: int):
            deadline = step_deadlines.get(node)
            return (
                -best_weight[node],
                deadline is None,
                deadline or date.max,
                best_path[node],
            )

        terminal = min(graph.nodes, key=_rank)
        return best_path[terminal], best_weight[terminal]
