"""Dependency graph storage for commit order calculation.

This module provides the DependencyGraph class which holds the vertices
(records to be written) and the directed edges between them. An edge from
``a`` to ``b`` means ``a`` must be committed before ``b``. Edges are either
mandatory or relaxable; relaxable edges may be dropped by the calculator to
break a cycle.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class CommitOrderError(Exception):
    """Base exception for all commit order failures."""

    def __init__(self, message: str):
        """Initialize the exception with a descriptive message.

        Args:
            message: Description of the error
        """
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class UnknownNodeError(CommitOrderError, KeyError):
    """Exception raised when a node key is referenced but was never added.

    This is a programming error on the caller's side: every edge source must
    be added before the edge, and every edge target before sorting.
    """

    def __init__(self, key: int, message: str | None = None):
        """Initialize the exception for the missing key.

        Args:
            key: The node key that is not present in the graph
            message: Optional override for the default message
        """
        super().__init__(message or f"Unknown node key: {key}")
        self.key = key


class VisitState(Enum):
    """Traversal state of a vertex during a sort."""

    NOT_VISITED = "not_visited"
    IN_PROGRESS = "in_progress"
    VISITED = "visited"


class EdgeConflictPolicy(Enum):
    """How a second edge for the same ordered pair of nodes is handled.

    LAST_WRITE_WINS replaces the existing edge unconditionally, which can
    downgrade a mandatory edge to a relaxable one. STRONGEST_WINS never
    replaces a mandatory edge with a relaxable one.
    """

    LAST_WRITE_WINS = "last_write_wins"
    STRONGEST_WINS = "strongest_wins"


@dataclass(frozen=True)
class Edge:
    """Directed ordering constraint: ``source`` is committed before ``target``.

    Attributes:
        source: Key of the node that must come first
        target: Key of the node that must come after
        relaxable: Whether the constraint may be dropped to break a cycle
    """

    source: int
    target: int
    relaxable: bool = False

    @property
    def mandatory(self) -> bool:
        return not self.relaxable


@dataclass
class Vertex:
    """A node of the dependency graph.

    Attributes:
        key: Caller-assigned identifier, opaque to the graph
        payload: Value returned by the sort in commit order
        state: Traversal state, only changed while sorting
        dependencies: Outgoing edges keyed by target, in insertion order
    """

    key: int
    payload: Any
    state: VisitState = VisitState.NOT_VISITED
    dependencies: dict[int, Edge] = field(default_factory=dict)

    def edges(self) -> Iterator[Edge]:
        """Iterate outgoing edges in the order they were added."""
        return iter(self.dependencies.values())


class DependencyGraph:
    """Mutable graph of vertices and commit order edges.

    Vertices and each vertex's outgoing edges keep their insertion order,
    which the calculator relies on to produce a deterministic result.

    Thread-safety:
        This class is NOT thread-safe. A graph is meant to be filled and
        sorted by a single caller.

    Example:
        >>> graph = DependencyGraph()
        >>> graph.add_node(1, "user")
        >>> graph.add_node(2, "address")
        >>> graph.add_dependency(1, 2, relaxable=False)
        >>> graph.edge_count()
        1
    """

    def __init__(self, conflict_policy: EdgeConflictPolicy = EdgeConflictPolicy.LAST_WRITE_WINS):
        """Initialize an empty dependency graph.

        Args:
            conflict_policy: How to treat a second edge for the same pair of nodes
        """
        self.conflict_policy = conflict_policy
        self._vertices: dict[int, Vertex] = {}

        logger.debug("dependency_graph_initialized", conflict_policy=conflict_policy.value)

    def __len__(self) -> int:
        return len(self._vertices)

    def __contains__(self, key: object) -> bool:
        return key in self._vertices

    def has_node(self, key: int) -> bool:
        """Check whether a node with the given key exists."""
        return key in self._vertices

    def add_node(self, key: int, payload: Any) -> None:
        """Add a node, replacing any node previously added under the same key.

        Replacing a node discards its outgoing edges and resets its state.

        Args:
            key: Caller-assigned identifier of the node
            payload: Value to return from the sort for this node
        """
        if key in self._vertices:
            logger.debug("node_replaced", key=key)

        self._vertices[key] = Vertex(key=key, payload=payload)

        logger.debug("node_added", key=key, node_count=len(self._vertices))

    def add_dependency(self, from_key: int, to_key: int, relaxable: bool) -> None:
        """Add an edge stating that ``from_key`` is committed before ``to_key``.

        The target does not have to exist yet, but it must be added before
        the graph is sorted.

        Args:
            from_key: Key of the node that must come first
            to_key: Key of the node that must come after
            relaxable: True if the edge may be dropped to break a cycle

        Raises:
            UnknownNodeError: If ``from_key`` has not been added
        """
        vertex = self._vertices.get(from_key)
        if vertex is None:
            logger.error("dependency_source_unknown", from_key=from_key, to_key=to_key)
            raise UnknownNodeError(from_key, f"Cannot add dependency from unknown node {from_key}")

        existing = vertex.dependencies.get(to_key)
        if existing is not None and existing.mandatory and relaxable:
            if self.conflict_policy is EdgeConflictPolicy.STRONGEST_WINS:
                logger.debug("relaxable_edge_ignored", from_key=from_key, to_key=to_key)
                return

            logger.warning(
                "mandatory_edge_downgraded",
                from_key=from_key,
                to_key=to_key,
                message="Mandatory edge replaced by relaxable edge for the same pair",
            )

        vertex.dependencies[to_key] = Edge(source=from_key, target=to_key, relaxable=relaxable)

        logger.debug(
            "dependency_added",
            from_key=from_key,
            to_key=to_key,
            relaxable=relaxable,
        )

    def vertex(self, key: int) -> Vertex:
        """Return the vertex stored under ``key``.

        Raises:
            UnknownNodeError: If no node has that key
        """
        try:
            return self._vertices[key]
        except KeyError:
            raise UnknownNodeError(key) from None

    def vertices(self) -> Iterator[Vertex]:
        """Iterate vertices in insertion order."""
        return iter(self._vertices.values())

    def keys(self) -> list[int]:
        """Return node keys in insertion order."""
        return list(self._vertices)

    def edge_count(self) -> int:
        return sum(len(vertex.dependencies) for vertex in self._vertices.values())

    def missing_targets(self) -> set[int]:
        """Return edge targets that do not refer to a node in the graph."""
        return {
            target
            for vertex in self._vertices.values()
            for target in vertex.dependencies
            if target not in self._vertices
        }

    def get_stats(self) -> dict[str, int]:
        """Get statistics about the current graph.

        Returns:
            Dictionary with:
                - total_nodes: Number of nodes
                - total_edges: Number of edges
                - mandatory_edges: Edges that can never be dropped
                - relaxable_edges: Edges that may be dropped to break cycles
        """
        relaxable = sum(
            1
            for vertex in self._vertices.values()
            for edge in vertex.edges()
            if edge.relaxable
        )
        total_edges = self.edge_count()

        return {
            "total_nodes": len(self._vertices),
            "total_edges": total_edges,
            "mandatory_edges": total_edges - relaxable,
            "relaxable_edges": relaxable,
        }

    def reset_states(self) -> None:
        """Mark every vertex as not visited."""
        for vertex in self._vertices.values():
            vertex.state = VisitState.NOT_VISITED

    def clear(self) -> None:
        """Remove all nodes and edges."""
        self._vertices = {}
        logger.debug("graph_cleared")

    def copy(self) -> "DependencyGraph":
        """Create an independent copy of the graph.

        Payloads are shared, vertices and edge maps are not. Every vertex of
        the copy starts out not visited, so a copy taken before sorting can
        be used to rebuild after a failed sort.

        Example:
            >>> graph = DependencyGraph()
            >>> graph.add_node(1, "a")
            >>> template = graph.copy()
            >>> len(template)
            1
        """
        new_graph = DependencyGraph(self.conflict_policy)
        for key, vertex in self._vertices.items():
            new_graph._vertices[key] = Vertex(
                key=key,
                payload=vertex.payload,
                dependencies=dict(vertex.dependencies),
            )

        logger.debug("dependency_graph_copied", node_count=len(self._vertices))

        return new_graph
