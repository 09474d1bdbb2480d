from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

from forcegrid.combinations import combinations
from forcegrid.errors import (
    ExperimentCancelled,
    SimulationTimeout,
    UnresolvedGeometry,
)
from forcegrid.experiments.config import ExperimentSettings
from forcegrid.graph_source import GraphSource
from forcegrid.metrics import Metric, resolve_metrics
from forcegrid.models import Graph, edges_to_graph
from forcegrid.simulation import LayoutSimulator

logger = logging.getLogger("forcegrid.runner")

STATUS_OK = "ok"
STATUS_TIMEOUT = "timeout"


@dataclass(frozen=True)
class Configuration:
    """A single test: one graph laid out with one (link_strength, charge) pair.

    ``graph`` is a private deep copy; the simulator may move its nodes freely.
    """

    index: int  # position in generation order
    link_strength: float
    charge: float
    graph: Graph = field(compare=False, repr=False)
    graph_iteration: int
    repeat_iteration: int


@dataclass(frozen=True)
class MetricFailure:
    """Stands in for a metric value that could not be computed."""

    error: str
    message: str

    def __str__(self) -> str:
        return self.error


MetricValue = Union[float, MetricFailure]


@dataclass(frozen=True)
class ResultSettings:
    link_strength: float
    charge: float
    vertex_count: int
    edge_count: int
    graph_iteration: int
    repeat_iteration: int


@dataclass(frozen=True)
class Result:
    settings: ResultSettings
    metrics: Mapping[str, MetricValue]
    status: str = STATUS_OK

    def __post_init__(self) -> None:
        # read-only view over a private copy of the metric values
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    def to_dict(self):
        d = {"settings": asdict(self.settings), "status": self.status}
        d["metrics"] = {
            name: (value if not isinstance(value, MetricFailure) else asdict(value))
            for name, value in self.metrics.items()
        }
        return d


def load_graphs(
    source: GraphSource, settings: ExperimentSettings
) -> List[Graph]:
    """Fetch ``graph_repeat`` graphs for every graph class, in settings order.

    Graph class ``i`` is requested with seed ``settings.seed + i``. Each graph is
    tagged with its index inside its class.
    """
    graphs: List[Graph] = []
    for offset, graph_class in enumerate(settings.graphs):
        edge_lists = source.fetch_graphs(
            graph_class.vertex_count,
            graph_class.edge_count,
            settings.graph_repeat,
            settings.seed + offset,
        )
        for iteration, edges in enumerate(edge_lists):
            graphs.append(edges_to_graph(edges, iteration=iteration))
    return graphs


def build_configurations(
    link_strengths: Sequence[float],
    charges: Sequence[float],
    graphs: Sequence[Graph],
    repeat: int,
) -> List[Configuration]:
    """Full test plan: every (link_strength, charge, graph) combination ``repeat`` times.

    Order is link-strength major, then charge, then graph, then repeat iteration.
    An empty axis gives an empty plan.
    """
    configs: List[Configuration] = []
    for link_strength, charge, graph in combinations(link_strengths, charges, graphs):
        for i in range(repeat):
            configs.append(
                Configuration(
                    index=len(configs),
                    link_strength=link_strength,
                    charge=charge,
                    graph=graph.copy(),
                    graph_iteration=graph.iteration,
                    repeat_iteration=i,
                )
            )
    return configs


def measure(graph: Graph, metrics: Mapping[str, Metric]) -> Dict[str, MetricValue]:
    """Apply every metric; a metric that fails only fills its own slot."""
    values: Dict[str, MetricValue] = {}
    for name, fn in metrics.items():
        try:
            values[name] = fn(graph)
        except UnresolvedGeometry as e:
            logger.warning("Metric %s failed: %s", name, e)
            values[name] = MetricFailure(type(e).__name__, str(e))
    return values


TestFinishedHook = Callable[[Configuration, Result], None]


class Experiment:
    """Runs every configuration of an experiment, strictly one after another.

    Args:
        settings: Validated experiment settings.
        source: Where graphs come from.
        simulator: Layout engine; ``settle`` is awaited once per configuration.
        metrics: Optional name->function mapping overriding ``settings.metrics``.
        on_test_finished: Called with ``(configuration, result)`` after each test.
    """

    def __init__(
        self,
        settings: ExperimentSettings,
        source: GraphSource,
        simulator: LayoutSimulator,
        metrics: Optional[Mapping[str, Metric]] = None,
        on_test_finished: Optional[TestFinishedHook] = None,
    ):
        self.settings = settings
        self.source = source
        self.simulator = simulator
        self.metrics = resolve_metrics(metrics if metrics is not None else settings.metrics)
        self.on_test_finished = on_test_finished
        self.total_tests = settings.total_tests

    async def run(self, cancel: Optional[asyncio.Event] = None) -> List[Result]:
        """Execute the experiment and return one ``Result`` per configuration, in order.

        Raises:
            ExternalServiceFailure: When graphs cannot be fetched.
            SimulationTimeout: When a test does not settle in time and the policy is
                ``"fail"``.
            ExperimentCancelled: When ``cancel`` is set between two tests.
        """
        if self.total_tests == 0:
            logger.info("[Experiment] Nothing to run: at least one parameter axis is empty")
            return []

        graphs: List[Graph] = await asyncio.to_thread(load_graphs, self.source, self.settings)
        configs = build_configurations(
            self.settings.link_strengths, self.settings.charges, graphs, self.settings.repeat
        )
        if len(configs) != self.total_tests:
            logger.warning(
                "[Experiment] Planned %d tests, built %d (graph source returned %d graphs)",
                self.total_tests,
                len(configs),
                len(graphs),
            )

        results: List[Result] = []
        for cfg in configs:
            if cancel is not None and cancel.is_set():
                raise ExperimentCancelled(
                    f"cancelled after {len(results)}/{len(configs)} tests"
                )
            logger.info(
                "[Experiment] (%d/%d) link_strength=%s charge=%s n=%d m=%d graph=%d repeat=%d",
                cfg.index + 1,
                len(configs),
                cfg.link_strength,
                cfg.charge,
                cfg.graph.vertex_count,
                cfg.graph.edge_count,
                cfg.graph_iteration,
                cfg.repeat_iteration,
            )
            result = await self._run_single(cfg)
            results.append(result)
            if self.on_test_finished is not None:
                self.on_test_finished(cfg, result)
        return results

    async def _run_single(self, cfg: Configuration) -> Result:
        settings = ResultSettings(
            link_strength=cfg.link_strength,
            charge=cfg.charge,
            vertex_count=cfg.graph.vertex_count,
            edge_count=cfg.graph.edge_count,
            graph_iteration=cfg.graph_iteration,
            repeat_iteration=cfg.repeat_iteration,
        )
        try:
            graph = await asyncio.wait_for(
                self.simulator.settle(
                    cfg.graph, cfg.link_strength, cfg.charge, self.settings.bounds
                ),
                timeout=self.settings.test_timeout_s,
            )
        except asyncio.TimeoutError as e:
            message = (
                f"test {cfg.index + 1} did not settle within {self.settings.test_timeout_s}s"
            )
            if self.settings.timeout_policy == "fail":
                raise SimulationTimeout(message) from e
            logger.warning("[Experiment] %s, skipping", message)
            return Result(settings=settings, metrics={}, status=STATUS_TIMEOUT)

        return Result(settings=settings, metrics=measure(graph, self.metrics))


__all__ = [
    "Configuration",
    "Experiment",
    "MetricFailure",
    "Result",
    "ResultSettings",
    "build_configurations",
    "load_graphs",
    "measure",
]
