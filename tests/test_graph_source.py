"""Tests for the graph sources and the Wolfram edge-list parser.

The remote source is exercised by replacing its HTTP request method, no network
access is needed.
"""

from __future__ import annotations

import json
import urllib.error

import pytest

from forcegrid.errors import ExternalServiceFailure, GraphFormatError, InvalidConfiguration
from forcegrid.graph_source import RandomGraphSource, WolframGraphSource, parse_edge_lists
from forcegrid.models import edges_to_graph

WOLFRAM_TEXT = (
    "{UndirectedEdge[1, 2], UndirectedEdge[2, 3], UndirectedEdge[1, 3]}\n"
    "{UndirectedEdge[1, 4], UndirectedEdge[3, 2]}"
)


def test_parse_one_graph_per_line() -> None:
    graphs = parse_edge_lists(WOLFRAM_TEXT)
    assert graphs == [[(0, 1), (1, 2), (0, 2)], [(0, 3), (2, 1)]]


def test_parse_outer_wrapped_list() -> None:
    text = "{{UndirectedEdge[1, 2]}, {UndirectedEdge[2, 3], UndirectedEdge[3, 1]}}"
    assert parse_edge_lists(text) == [[(0, 1)], [(1, 2), (2, 0)]]


def test_parse_zero_based_and_empty_graph() -> None:
    assert parse_edge_lists("[[0, 1]]\n{}", one_based=False) == [[(0, 1)], []]


@pytest.mark.parametrize(
    "text",
    [
        "{UndirectedEdge[1, 2]",  # unbalanced
        "{UndirectedEdge[1, 2]}}",  # unbalanced
        "{UndirectedEdge[1, 2, 3]}",  # not a pair
        "{alert(1)}",  # unknown identifier
        "{UndirectedEdge[1, 2]}; __import__('os')",  # code
        "{UndirectedEdge[0, 2]}",  # ids start at 1
        "{UndirectedEdge[1.5, 2]}",
    ],
)
def test_parse_rejects_malformed(text: str) -> None:
    with pytest.raises(GraphFormatError):
        parse_edge_lists(text)


def test_edges_to_graph_densifies_nodes() -> None:
    graph = edges_to_graph([(0, 4), (4, 2)], iteration=3)
    assert graph.vertex_count == 5
    assert graph.edge_count == 2
    assert graph.iteration == 3
    assert not graph.is_settled()
    with pytest.raises(GraphFormatError):
        edges_to_graph([(0, -1)])


def test_graph_copy_is_independent() -> None:
    graph = edges_to_graph([(0, 1)])
    clone = graph.copy()
    clone.nodes[0].x = 10.0
    assert graph.nodes[0].x is None


def test_random_source_is_seeded_and_simple() -> None:
    source = RandomGraphSource()
    a = source.fetch_graphs(8, 10, 3, seed=5)
    b = source.fetch_graphs(8, 10, 3, seed=5)
    assert a == b
    assert len(a) == 3
    for edges in a:
        assert len(edges) == 10
        assert len({tuple(sorted(e)) for e in edges}) == 10
        assert all(s != t and 0 <= s < 8 and 0 <= t < 8 for s, t in edges)
    assert source.fetch_graphs(8, 10, 3, seed=6) != a


def test_random_source_rejects_impossible_class() -> None:
    with pytest.raises(InvalidConfiguration):
        RandomGraphSource().fetch_graphs(3, 4, 1, seed=0)


def test_wolfram_source_parses_result(monkeypatch) -> None:
    source = WolframGraphSource("http://example.invalid/graphs")
    seen = {}

    def fake_request(params):
        seen.update(params)
        return json.dumps({"Result": WOLFRAM_TEXT})

    monkeypatch.setattr(source, "_request", fake_request)
    graphs = source.fetch_graphs(4, 3, 2, seed=7)
    assert seen == {"n": 4, "m": 3, "k": 2, "s": 7}
    assert graphs[1] == [(0, 3), (2, 1)]


def test_wolfram_source_retries_then_fails(monkeypatch) -> None:
    source = WolframGraphSource("http://example.invalid/graphs", retries=2, backoff_s=0.0)
    calls = []

    def failing_request(params):
        calls.append(params)
        raise urllib.error.URLError("unreachable")

    monkeypatch.setattr(source, "_request", failing_request)
    with pytest.raises(ExternalServiceFailure):
        source.fetch_graphs(4, 3, 1, seed=0)
    assert len(calls) == 3


def test_wolfram_source_recovers_after_retry(monkeypatch) -> None:
    source = WolframGraphSource("http://example.invalid/graphs", retries=1, backoff_s=0.0)
    answers = iter(["not json", json.dumps({"Result": "{UndirectedEdge[1, 2]}"})])
    monkeypatch.setattr(source, "_request", lambda params: next(answers))
    assert source.fetch_graphs(2, 1, 1, seed=0) == [[(0, 1)]]


def test_wolfram_source_format_error_is_external_failure(monkeypatch) -> None:
    source = WolframGraphSource("http://example.invalid/graphs")
    monkeypatch.setattr(
        source, "_request", lambda params: json.dumps({"Result": "{Evaluate[1, 2]}"})
    )
    with pytest.raises(ExternalServiceFailure):
        source.fetch_graphs(2, 1, 1, seed=0)


def test_wolfram_source_requires_url() -> None:
    with pytest.raises(InvalidConfiguration):
        WolframGraphSource("")
