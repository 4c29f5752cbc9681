"""Commit order calculation by depth-first topological sorting.

The CommitOrderCalculator walks the dependency graph depth first and returns
the payloads in reverse post-order, so every surviving edge points from an
earlier to a later node. Cycles are broken by dropping relaxable edges; a
cycle made only of mandatory edges cannot be broken and fails the sort.

The traversal runs on an explicit stack of frames so that long dependency
chains are not limited by the interpreter's recursion limit.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from commit_order.graph.dependency_graph import (
    CommitOrderError,
    DependencyGraph,
    Edge,
    EdgeConflictPolicy,
    UnknownNodeError,
    Vertex,
    VisitState,
)

if TYPE_CHECKING:
    from commit_order.config import CommitOrderConfig

logger = structlog.get_logger(__name__)


class CycleDetectedError(CommitOrderError):
    """Exception raised when a cycle of mandatory edges cannot be broken.

    The sort that raised it produced no result and its graph has been
    cleared. Rebuild the graph (for example with a relaxable edge somewhere
    on the cycle) before sorting again.
    """


class VisitOutcome(Enum):
    """Result reported by a finished traversal frame to its parent."""

    FINISHED = "finished"
    CYCLE = "cycle"


@dataclass
class _Frame:
    """One vertex on the traversal stack.

    ``edge`` is the edge currently being followed from this vertex; it is
    what decides whether a cycle reported by the child is absorbed.
    """

    vertex: Vertex
    edges: Iterator[Edge]
    edge: Edge | None = None


class CommitOrderCalculator:
    """Computes a commit order for interdependent records.

    The calculator owns its DependencyGraph. Nodes and dependencies are
    added through the calculator, then ``sort()`` consumes the graph.

    Thread-safety:
        This class is NOT thread-safe and ``sort()`` is not reentrant.
        Separate calculators are fully independent.

    Example:
        >>> calc = CommitOrderCalculator()
        >>> calc.add_node(1, "user")
        >>> calc.add_node(2, "address")
        >>> calc.add_dependency(2, 1, relaxable=False)
        >>> calc.sort()
        ['address', 'user']
    """

    def __init__(self, graph: DependencyGraph | None = None):
        """Initialize the calculator.

        Args:
            graph: Graph to take ownership of. A new empty graph is created
                if not given; a graph handed in must not be used elsewhere.
        """
        self.graph = graph if graph is not None else DependencyGraph()
        self._post_order: list[Any] = []

    @classmethod
    def from_config(cls, config: "CommitOrderConfig") -> "CommitOrderCalculator":
        """Create a calculator using the configured edge conflict policy."""
        return cls(DependencyGraph(config.graph.edge_conflict_policy))

    def has_node(self, key: int) -> bool:
        return self.graph.has_node(key)

    def add_node(self, key: int, payload: Any) -> None:
        self.graph.add_node(key, payload)

    def add_dependency(self, from_key: int, to_key: int, relaxable: bool) -> None:
        self.graph.add_dependency(from_key, to_key, relaxable)

    def sort(self) -> list[Any]:
        """Return all payloads in an order satisfying every mandatory edge.

        Roots are visited in reverse insertion order, which together with
        the final reversal keeps unrelated nodes in insertion order.
        The graph is cleared afterwards whether or not the sort succeeded.

        Returns:
            Payloads in commit order

        Raises:
            UnknownNodeError: If an edge points to a node that was never added
            CycleDetectedError: If a cycle contains no relaxable edge
        """
        stats = self.graph.get_stats()
        logger.debug("commit_order_sort_started", **stats)

        try:
            missing = self.graph.missing_targets()
            if missing:
                key = min(missing)
                logger.error("dependency_target_unknown", missing_keys=sorted(missing))
                raise UnknownNodeError(key, f"Dependency points to unknown node {key}")

            for key in reversed(self.graph.keys()):
                vertex = self.graph.vertex(key)
                if vertex.state is not VisitState.NOT_VISITED:
                    continue

                if self._visit(vertex) is VisitOutcome.CYCLE:
                    logger.error(
                        "commit_order_cycle_detected",
                        root_key=key,
                        node_count=stats["total_nodes"],
                    )
                    msg = f"Unresolvable cycle of mandatory dependencies reached from node {key}"
                    raise CycleDetectedError(msg)

            sorted_payloads = self._post_order[::-1]
        finally:
            self._post_order = []
            self.graph.clear()

        logger.debug("commit_order_sorted", node_count=len(sorted_payloads))

        return sorted_payloads

    def _visit(self, root: Vertex) -> VisitOutcome:
        """Traverse everything reachable from ``root``.

        A cycle found on a mandatory edge reverts the current vertex to
        NOT_VISITED and is reported to the parent frame. The parent absorbs
        it when the edge it followed is relaxable and reports it further
        up otherwise. CYCLE is returned when the report passes the root.
        """
        root.state = VisitState.IN_PROGRESS
        stack = [_Frame(root, root.edges())]
        outcome = VisitOutcome.FINISHED

        while stack:
            frame = stack[-1]

            if outcome is VisitOutcome.CYCLE:
                outcome = VisitOutcome.FINISHED
                if frame.edge is not None and frame.edge.relaxable:
                    logger.debug(
                        "relaxable_edge_dropped",
                        from_key=frame.edge.source,
                        to_key=frame.edge.target,
                    )
                else:
                    frame.vertex.state = VisitState.NOT_VISITED
                    stack.pop()
                    outcome = VisitOutcome.CYCLE
                    continue

            edge = next(frame.edges, None)
            if edge is None:
                frame.vertex.state = VisitState.VISITED
                self._post_order.append(frame.vertex.payload)
                stack.pop()
                continue

            frame.edge = edge
            target = self.graph.vertex(edge.target)

            if target.state is VisitState.VISITED:
                continue

            if target.state is VisitState.NOT_VISITED:
                target.state = VisitState.IN_PROGRESS
                stack.append(_Frame(target, target.edges()))
                continue

            # Target is an ancestor on the current path.
            if edge.relaxable:
                logger.debug("relaxable_edge_dropped", from_key=edge.source, to_key=edge.target)
                continue

            frame.vertex.state = VisitState.NOT_VISITED
            stack.pop()
            outcome = VisitOutcome.CYCLE

        return outcome


def sort_commit_order(
    nodes: Iterable[tuple[int, Any]],
    dependencies: Iterable[tuple[int, int, bool]],
    policy: EdgeConflictPolicy = EdgeConflictPolicy.LAST_WRITE_WINS,
) -> list[Any]:
    """Sort payloads from plain node and dependency declarations.

    Args:
        nodes: ``(key, payload)`` pairs in insertion order
        dependencies: ``(from_key, to_key, relaxable)`` triples
        policy: How to treat repeated edges for the same pair of nodes

    Returns:
        Payloads in commit order

    Raises:
        UnknownNodeError: If a dependency references a missing node
        CycleDetectedError: If a cycle contains no relaxable edge

    Example:
        >>> sort_commit_order([(1, "a"), (2, "b")], [(2, 1, False)])
        ['b', 'a']
    """
    calculator = CommitOrderCalculator(DependencyGraph(policy))

    for key, payload in nodes:
        calculator.add_node(key, payload)

    for from_key, to_key, relaxable in dependencies:
        calculator.add_dependency(from_key, to_key, relaxable)

    return calculator.sort()
