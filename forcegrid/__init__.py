"""Layout-quality experiments for force-directed graph drawing.

Exports the graph model, the combination generator and the layout metrics.
"""

from forcegrid.combinations import combinations  # noqa: F401
from forcegrid.metrics import (  # noqa: F401
    METRICS,
    edge_crossings,
    edge_length_average,
    edge_length_deviation,
)
from forcegrid.models import Edge, Graph, Node, edges_to_graph  # noqa: F401

__all__ = [
    "METRICS",
    "Edge",
    "Graph",
    "Node",
    "combinations",
    "edge_crossings",
    "edge_length_average",
    "edge_length_deviation",
    "edges_to_graph",
]
