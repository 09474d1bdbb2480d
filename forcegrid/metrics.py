"""Layout quality metrics.

Every metric takes a settled ``Graph`` and returns a float. They are pure: the
graph is only read, so calling a metric twice on the same layout gives the same
value.

Zero-edge graphs are not an error. ``edge_length_average`` and
``edge_length_deviation`` return ``nan`` for them, which is the value exported
for such rows.
"""

from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, Mapping, Union

from forcegrid.combinations import combinations
from forcegrid.errors import InvalidConfiguration
from forcegrid.geometry import edge_lengths, segments_cross
from forcegrid.models import Graph

Metric = Callable[[Graph], float]


def edge_crossings(graph: Graph) -> float:
    """Number of proper crossings between distinct edges.

    Every ordered pair of edges is tested, so each crossing is found twice and the
    raw count is halved. Pairs of an edge with itself are skipped up front.
    """
    segments = graph.segments()
    indices = list(range(len(segments)))
    hits = 0
    for i, j in combinations(indices, indices):
        if i == j:
            continue
        if segments_cross(segments[i], segments[j]):
            hits += 1
    return hits / 2


def edge_length_average(graph: Graph) -> float:
    lengths = list(edge_lengths(graph))
    if not lengths:
        return float("nan")
    return sum(lengths) / len(lengths)


def edge_length_deviation(graph: Graph) -> float:
    """Population standard deviation (divisor N) of the edge lengths."""
    lengths = list(edge_lengths(graph))
    if not lengths:
        return float("nan")
    mean = edge_length_average(graph)
    squared = [(length - mean) ** 2 for length in lengths]
    return math.sqrt(sum(squared) / len(squared))


METRICS: Dict[str, Metric] = {
    "edgeCrossings": edge_crossings,
    "edgeLengthAverage": edge_length_average,
    "edgeLengthDeviation": edge_length_deviation,
}


def resolve_metrics(
    metrics: Union[Iterable[str], Mapping[str, Metric], None] = None,
) -> Dict[str, Metric]:
    """Turn metric names (or a ready name->function mapping) into an ordered mapping.

    ``None`` selects every registered metric.
    """
    if metrics is None:
        return dict(METRICS)
    if isinstance(metrics, Mapping):
        resolved = dict(metrics)
        for name, fn in resolved.items():
            if not callable(fn):
                raise InvalidConfiguration(f"metric {name!r} is not callable")
        return resolved
    resolved = {}
    for name in metrics:
        if name not in METRICS:
            known = ", ".join(METRICS)
            raise InvalidConfiguration(f"Unknown metric {name!r} (known: {known})")
        resolved[name] = METRICS[name]
    return resolved
