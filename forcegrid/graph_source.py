"""Sources of random graphs.

Two implementations share the ``fetch_graphs(vertex_count, edge_count,
repeat_count, seed)`` call, each returning a list of 0-based edge lists:

    WolframGraphSource -- asks a remote Wolfram API endpoint and parses the text
                          it answers with (``{UndirectedEdge[1, 2], ...}``).
    RandomGraphSource  -- offline, seeded G(n, m) generator.

The Wolfram answer is parsed by a small tokenizer; it is never evaluated.
"""

from __future__ import annotations

import json
import logging
import random
import re
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, List, Optional, Protocol, Tuple

from forcegrid.errors import ExternalServiceFailure, GraphFormatError, InvalidConfiguration

logger = logging.getLogger("forcegrid.source")

EdgeList = List[Tuple[int, int]]

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<open>[{\[])|(?P<close>[}\]])|(?P<comma>,)|(?P<number>-?\d+)|(?P<name>[A-Za-z]+))"
)
# wrappers Wolfram puts around an endpoint pair; they carry no data
_EDGE_HEADS = {"UndirectedEdge", "DirectedEdge"}


class GraphSource(Protocol):
    def fetch_graphs(
        self, vertex_count: int, edge_count: int, repeat_count: int, seed: int
    ) -> List[EdgeList]: ...


def _tokenize(text: str) -> List[Tuple[str, str]]:
    tokens: List[Tuple[str, str]] = []
    pos = 0
    stripped = text.rstrip()
    while pos < len(stripped):
        m = _TOKEN_RE.match(stripped, pos)
        if m is None:
            raise GraphFormatError(f"unexpected character {stripped[pos:pos + 1]!r} at {pos}")
        kind = m.lastgroup or ""
        value = m.group(kind)
        if kind == "name" and value not in _EDGE_HEADS:
            raise GraphFormatError(f"unexpected identifier {value!r} at {pos}")
        if kind != "name":
            tokens.append((kind, value))
        pos = m.end()
    return tokens


def _parse_values(tokens: List[Tuple[str, str]]) -> List[Any]:
    """Parse a flat run of comma/whitespace separated nested lists of ints."""
    stack: List[List[Any]] = [[]]
    for kind, value in tokens:
        if kind == "open":
            stack.append([])
        elif kind == "close":
            if len(stack) == 1:
                raise GraphFormatError("unbalanced closing bracket")
            done = stack.pop()
            stack[-1].append(done)
        elif kind == "number":
            stack[-1].append(int(value))
    if len(stack) != 1:
        raise GraphFormatError("unbalanced opening bracket")
    return stack[0]


def _is_edge(value: Any) -> bool:
    return isinstance(value, list) and len(value) == 2 and all(isinstance(v, int) for v in value)


def _is_edge_list(value: Any) -> bool:
    return isinstance(value, list) and all(_is_edge(v) for v in value)


def parse_edge_lists(text: str, one_based: bool = True) -> List[EdgeList]:
    """Parse Wolfram edge-list text into 0-based ``(source, target)`` lists.

    Accepts one graph per line (``{UndirectedEdge[1, 2], UndirectedEdge[2, 3]}``)
    as well as all graphs wrapped in a single outer list.

    Raises:
        GraphFormatError: If the text is not a sequence of edge lists.
    """
    values = _parse_values(_tokenize(text))
    if (
        len(values) == 1
        and isinstance(values[0], list)
        and values[0]
        and not _is_edge_list(values[0])
        and all(_is_edge_list(v) for v in values[0])
    ):
        values = values[0]

    offset = 1 if one_based else 0
    graphs: List[EdgeList] = []
    for value in values:
        if not _is_edge_list(value):
            raise GraphFormatError(f"expected a list of edges, got {value!r}")
        edges = [(a - offset, b - offset) for a, b in value]
        if any(a < 0 or b < 0 for a, b in edges):
            raise GraphFormatError("node identifiers must start at 1")
        graphs.append(edges)
    return graphs


class WolframGraphSource:
    """Fetch random graphs from a Wolfram API endpoint.

    The endpoint takes ``n`` (vertices), ``m`` (edges), ``k`` (how many graphs)
    and ``s`` (seed) query parameters and answers JSON whose ``Result`` field
    holds the edge lists.
    """

    def __init__(
        self,
        url: str,
        timeout_s: float = 30.0,
        retries: int = 0,
        backoff_s: float = 0.5,
    ):
        if not url:
            raise InvalidConfiguration("wolfram_url must be set for the wolfram graph source")
        self.url = url
        self.timeout_s = timeout_s
        self.retries = max(0, int(retries))
        self.backoff_s = backoff_s

    def _request(self, params: dict) -> str:
        query = urllib.parse.urlencode(params)
        sep = "&" if "?" in self.url else "?"
        with urllib.request.urlopen(f"{self.url}{sep}{query}", timeout=self.timeout_s) as resp:
            return resp.read().decode("utf-8")

    def fetch_graphs(
        self, vertex_count: int, edge_count: int, repeat_count: int, seed: int
    ) -> List[EdgeList]:
        params = {"n": vertex_count, "m": edge_count, "k": repeat_count, "s": seed}
        last_error: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            if attempt:
                delay = self.backoff_s * (2 ** (attempt - 1))
                logger.warning(
                    "Graph fetch failed (%s), retry %d/%d in %.2fs",
                    last_error,
                    attempt,
                    self.retries,
                    delay,
                )
                time.sleep(delay)
            try:
                body = self._request(params)
                payload = json.loads(body)
                result = payload["Result"]
                if not isinstance(result, str):
                    raise GraphFormatError("'Result' field is not a string")
                graphs = parse_edge_lists(result)
            except (urllib.error.URLError, OSError, ValueError, KeyError, TypeError) as e:
                last_error = e
                continue
            logger.info(
                "Fetched %d graph(s) n=%d m=%d seed=%d from %s",
                len(graphs),
                vertex_count,
                edge_count,
                seed,
                self.url,
            )
            return graphs
        raise ExternalServiceFailure(
            f"could not fetch graphs n={vertex_count} m={edge_count} from {self.url}: {last_error}"
        ) from last_error


class RandomGraphSource:
    """Seeded uniform G(n, m) graphs: no loops, no duplicate edges."""

    def fetch_graphs(
        self, vertex_count: int, edge_count: int, repeat_count: int, seed: int
    ) -> List[EdgeList]:
        if vertex_count < 1 or edge_count < 0:
            raise InvalidConfiguration(
                f"invalid graph class n={vertex_count} m={edge_count}"
            )
        max_edges = vertex_count * (vertex_count - 1) // 2
        if edge_count > max_edges:
            raise InvalidConfiguration(
                f"a simple graph on {vertex_count} vertices has at most {max_edges} edges, "
                f"{edge_count} requested"
            )
        rng = random.Random(seed)
        all_pairs = [(a, b) for a in range(vertex_count) for b in range(a + 1, vertex_count)]
        graphs: List[EdgeList] = []
        for _ in range(repeat_count):
            edges = rng.sample(all_pairs, edge_count)
            graphs.append(edges)
        logger.debug(
            "Generated %d graph(s) n=%d m=%d seed=%d", repeat_count, vertex_count, edge_count, seed
        )
        return graphs
