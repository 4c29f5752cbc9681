"""Commit order calculation for interdependent records.

Example:
    >>> from commit_order import CommitOrderCalculator
    >>> calc = CommitOrderCalculator()
    >>> calc.add_node(1, "invoice")
    >>> calc.add_node(2, "customer")
    >>> calc.add_dependency(2, 1, relaxable=False)
    >>> calc.sort()
    ['customer', 'invoice']
"""

from commit_order.graph import (
    CommitOrderCalculator,
    CommitOrderError,
    CycleDetectedError,
    DependencyGraph,
    EdgeConflictPolicy,
    UnknownNodeError,
    sort_commit_order,
)

__version__ = "0.1.0"

__all__ = [
    "CommitOrderCalculator",
    "CommitOrderError",
    "CycleDetectedError",
    "DependencyGraph",
    "EdgeConflictPolicy",
    "UnknownNodeError",
    "sort_commit_order",
]
