"""Graph module for commit order calculation.

This module provides the dependency graph store and the calculator that
turns it into a commit order, breaking cycles on relaxable edges.
"""

from commit_order.graph.calculator import (
    CommitOrderCalculator,
    CycleDetectedError,
    VisitOutcome,
    sort_commit_order,
)
from commit_order.graph.dependency_graph import (
    CommitOrderError,
    DependencyGraph,
    Edge,
    EdgeConflictPolicy,
    UnknownNodeError,
    Vertex,
    VisitState,
)

__all__ = [
    "CommitOrderCalculator",
    "CommitOrderError",
    "CycleDetectedError",
    "DependencyGraph",
    "Edge",
    "EdgeConflictPolicy",
    "UnknownNodeError",
    "Vertex",
    "VisitOutcome",
    "VisitState",
    "sort_commit_order",
]
