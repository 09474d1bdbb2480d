"""Plane geometry helpers used by the layout metrics."""

from __future__ import annotations

import math
from typing import Iterator

from forcegrid.models import Graph, Segment

EPS = 1e-12


def edge_length(segment: Segment) -> float:
    """Euclidean length of a segment (0.0 for self-loops)."""
    return math.hypot(segment.x2 - segment.x1, segment.y2 - segment.y1)


def edge_lengths(graph: Graph) -> Iterator[float]:
    """Lazily yield edge lengths in edge order.

    Raises:
        UnresolvedGeometry: When an endpoint has not been positioned yet.
    """
    for edge in graph.edges:
        yield edge_length(graph.segment(edge))


def segments_cross(a: Segment, b: Segment) -> bool:
    """True if ``a`` and ``b`` meet at a single point strictly inside both.

    Solves ``a.start + s * da == b.start + t * db`` for ``s`` and ``t``. Shared
    endpoints (s or t equal to 0 or 1) are not crossings. Parallel, collinear and
    zero-length segments make the denominator vanish and never cross.
    """
    s1_x = a.x2 - a.x1
    s1_y = a.y2 - a.y1
    s2_x = b.x2 - b.x1
    s2_y = b.y2 - b.y1

    denom = -s2_x * s1_y + s1_x * s2_y
    # relative to |da| * |db|, so the test does not depend on the coordinate scale
    if abs(denom) <= EPS * math.hypot(s1_x, s1_y) * math.hypot(s2_x, s2_y):
        return False

    dx = a.x1 - b.x1
    dy = a.y1 - b.y1
    s = (-s1_y * dx + s1_x * dy) / denom
    t = (s2_x * dy - s2_y * dx) / denom
    return 0.0 < s < 1.0 and 0.0 < t < 1.0
