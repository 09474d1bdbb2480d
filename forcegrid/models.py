"""Core data structures for graphs under layout.

This module defines:
    Node        -- a vertex; identity is its index in ``Graph.nodes``.
    Edge        -- an (source, target) pair of node indices.
    Segment     -- an edge resolved to endpoint coordinates.
    Graph       -- nodes + edges + the sample iteration it belongs to.
    GraphSpec   -- (vertex_count, edge_count) class requested from a source.
    LayoutBounds-- drawing area handed to the layout simulator.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from forcegrid.errors import GraphFormatError, UnresolvedGeometry

EdgePair = Tuple[int, int]


@dataclass
class Node:
    """A vertex. ``x``/``y`` stay ``None`` until the simulator settles."""

    x: Optional[float] = None
    y: Optional[float] = None
    group: Optional[str] = None
    name: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.x is not None and self.y is not None


@dataclass(frozen=True)
class Edge:
    source: int
    target: int

    @property
    def is_loop(self) -> bool:
        return self.source == self.target


@dataclass(frozen=True)
class Segment:
    """Straight line segment between two settled endpoints."""

    x1: float
    y1: float
    x2: float
    y2: float


@dataclass
class Graph:
    """Ordered nodes and edges of one generated graph.

    Attributes:
        nodes: Dense list, ``nodes[i]`` is vertex ``i``. Indices never used by an
            edge still hold a placeholder ``Node``.
        edges: Edges in the order the source delivered them.
        iteration: Which repeated sample of its (vertex_count, edge_count) class
            this graph is.
    """

    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    iteration: int = 0

    @property
    def vertex_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def copy(self) -> "Graph":
        """Deep copy; node positions of the copy never alias the original."""
        return copy.deepcopy(self)

    def position(self, index: int) -> Tuple[float, float]:
        node = self.nodes[index]
        if not node.resolved:
            raise UnresolvedGeometry(f"node {index} has no position (layout not settled)")
        return float(node.x), float(node.y)  # type: ignore[arg-type]

    def segment(self, edge: Edge) -> Segment:
        x1, y1 = self.position(edge.source)
        x2, y2 = self.position(edge.target)
        return Segment(x1, y1, x2, y2)

    def segments(self) -> List[Segment]:
        return [self.segment(edge) for edge in self.edges]

    def is_settled(self) -> bool:
        return all(node.resolved for node in self.nodes)


@dataclass(frozen=True)
class GraphSpec:
    """Class of random graphs to request: ``vertex_count`` nodes, ``edge_count`` edges."""

    vertex_count: int
    edge_count: int

    @classmethod
    def from_value(cls, value: "GraphSpec | Sequence[int]") -> "GraphSpec":
        if isinstance(value, GraphSpec):
            return value
        if len(value) != 2:
            raise ValueError(f"graph spec must be [vertex_count, edge_count], got {value!r}")
        return cls(int(value[0]), int(value[1]))


@dataclass(frozen=True)
class LayoutBounds:
    width: float = 960.0
    height: float = 500.0
    scale: float = 1.0


def edges_to_graph(edges: Iterable[Sequence[int]], iteration: int = 0) -> Graph:
    """Build a ``Graph`` from 0-based ``(source, target)`` pairs.

    Every index up to the largest one referenced gets a placeholder ``Node``
    without a position.
    """
    edge_list: List[Edge] = []
    highest = -1
    for pair in edges:
        if len(pair) != 2:
            raise GraphFormatError(f"edge must have two endpoints, got {pair!r}")
        source, target = int(pair[0]), int(pair[1])
        if source < 0 or target < 0:
            raise GraphFormatError(f"negative node index in edge {pair!r}")
        edge_list.append(Edge(source, target))
        highest = max(highest, source, target)
    nodes = [Node() for _ in range(highest + 1)]
    return Graph(nodes=nodes, edges=edge_list, iteration=iteration)
