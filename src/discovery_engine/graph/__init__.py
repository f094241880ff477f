"""
Graph Package
=============
Task graph and node state machine.
"""

from .node import DAGNode, Strategy, FAILURE_INJECTION_MARKER
from .dag import TaskGraph

__all__ = [
    "DAGNode",
    "Strategy",
    "TaskGraph",
    "FAILURE_INJECTION_MARKER",
]
