"""Pytest configuration & custom summary hook.

Also ensures the project root is on sys.path so 'import forcegrid' works without
an install.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

_root = Path(__file__).resolve().parents[1]
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from forcegrid.models import Graph, Node, edges_to_graph  # noqa: E402


def make_graph(points, edges, iteration: int = 0) -> Graph:
    """Settled graph: ``points[i]`` is the position of node ``i``."""
    graph = edges_to_graph(edges, iteration=iteration)
    while len(graph.nodes) < len(points):
        graph.nodes.append(Node())
    for node, (x, y) in zip(graph.nodes, points):
        node.x, node.y = float(x), float(y)
    return graph


@pytest.fixture
def x_graph() -> Graph:
    # (0,0)-(1,1) crosses (0,1)-(1,0)
    return make_graph([(0, 0), (1, 1), (0, 1), (1, 0)], [(0, 1), (2, 3)])


def pytest_terminal_summary(
    terminalreporter: pytest.TerminalReporter,
    exitstatus: int,
    config: pytest.Config,
) -> None:  # noqa: D401
    """Append a compact custom summary at the end of test session."""
    stats = terminalreporter.stats
    collected = terminalreporter._numcollected  # type: ignore[attr-defined]
    passed = len(stats.get("passed", []))
    failed = len(stats.get("failed", []))
    errors = len(stats.get("error", []))
    skipped = len(stats.get("skipped", []))

    terminalreporter.section("Custom summary", sep="=")
    terminalreporter.write_line(
        "Collected: "
        f"{collected} | Passed: {passed} | Failed: {failed} | "
        f"Errors: {errors} | Skipped: {skipped}"
    )
    if failed:
        terminalreporter.write_line("Failed tests:")
        for rep in stats["failed"]:
            terminalreporter.write_line(f"  - {rep.nodeid}")
