"""Experiment settings.

``ExperimentSettings`` enumerates every recognised option. Settings are built by
merging user overrides onto ``DEFAULTS`` with ``merge_settings``; nothing is read
from global state. Validation happens once, at construction.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

import yaml

from forcegrid.errors import InvalidConfiguration
from forcegrid.metrics import METRICS
from forcegrid.models import GraphSpec, LayoutBounds

GRAPH_SOURCES = ("random", "wolfram")
TIMEOUT_POLICIES = ("fail", "skip")
# top-level config keys read by main.py, not by the experiment
CLI_KEYS = ("log_level", "output")

# spellings used by older browser-based configs
_ALIASES = {
    "linkStrengths": "link_strengths",
    "graphRepeat": "graph_repeat",
    "wolframUrl": "wolfram_url",
    "graphSource": "graph_source",
    "plotsDir": "plots_dir",
    "testTimeout": "test_timeout_s",
    "timeoutPolicy": "timeout_policy",
    "fetchRetries": "fetch_retries",
    "fetchBackoff": "fetch_backoff_s",
}


@dataclass(frozen=True)
class ExperimentSettings:
    """Immutable description of one experiment.

    Attributes:
        link_strengths: Link strengths to test.
        charges: Charges to test.
        graphs: Graph classes ``(vertex_count, edge_count)`` to test.
        graph_repeat: Distinct graphs fetched per graph class.
        repeat: Times each (link_strength, charge, graph) configuration is run.
        metrics: Names of the metrics computed for every settled layout.
        graph_source: ``"random"`` (offline) or ``"wolfram"`` (HTTP).
        wolfram_url: Endpoint for the wolfram source.
        visual: Render settled layouts to ``plots_dir``.
        plots_dir: Output directory for rendered layouts and heat maps.
        width, height: Layout area handed to the simulator.
        scale: Rendering scale; does not influence the layout.
        seed: Seed of the first graph class; later classes use seed+1, seed+2, ...
        test_timeout_s: Per-test settle budget in seconds (``None`` = unbounded).
        timeout_policy: ``"fail"`` aborts the experiment, ``"skip"`` records a
            timeout result and moves on.
        fetch_retries: Extra attempts for a failing remote graph fetch.
        fetch_backoff_s: Base delay of the exponential retry backoff.
    """

    link_strengths: Tuple[float, ...] = ()
    charges: Tuple[float, ...] = ()
    graphs: Tuple[GraphSpec, ...] = ()
    graph_repeat: int = 1
    repeat: int = 1
    metrics: Tuple[str, ...] = tuple(METRICS)
    graph_source: str = "random"
    wolfram_url: Optional[str] = None
    visual: bool = False
    plots_dir: Optional[str] = None
    width: float = 960.0
    height: float = 500.0
    scale: float = 1.0
    seed: int = 0
    test_timeout_s: Optional[float] = None
    timeout_policy: str = "fail"
    fetch_retries: int = 0
    fetch_backoff_s: float = 0.5

    def __post_init__(self) -> None:
        for name in ("graph_repeat", "repeat"):
            value = getattr(self, name)
            if not _is_int(value) or value < 1:
                raise InvalidConfiguration(f"{name} must be a positive integer, got {value!r}")
        for name in ("seed", "fetch_retries"):
            value = getattr(self, name)
            if not _is_int(value):
                raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
        for name in ("width", "height", "scale", "fetch_backoff_s"):
            value = getattr(self, name)
            if not _is_number(value):
                raise InvalidConfiguration(f"{name} must be a number, got {value!r}")
        if self.test_timeout_s is not None and not _is_number(self.test_timeout_s):
            raise InvalidConfiguration(
                f"test_timeout_s must be a number or null, got {self.test_timeout_s!r}"
            )
        for name in ("link_strengths", "charges"):
            values = getattr(self, name)
            if not isinstance(values, (tuple, list)) or not all(_is_number(v) for v in values):
                raise InvalidConfiguration(f"{name} must hold numbers, got {values!r}")
        if self.width <= 0 or self.height <= 0 or self.scale <= 0:
            raise InvalidConfiguration("width, height and scale must be positive")
        unknown = [str(m) for m in self.metrics if not isinstance(m, str) or m not in METRICS]
        if unknown:
            raise InvalidConfiguration(f"Unknown metric(s): {', '.join(unknown)}")
        if self.graph_source not in GRAPH_SOURCES:
            raise InvalidConfiguration(
                f"graph_source must be one of {GRAPH_SOURCES}, got {self.graph_source!r}"
            )
        if self.graph_source == "wolfram" and not self.wolfram_url:
            raise InvalidConfiguration("graph_source 'wolfram' requires wolfram_url")
        if self.timeout_policy not in TIMEOUT_POLICIES:
            raise InvalidConfiguration(
                f"timeout_policy must be one of {TIMEOUT_POLICIES}, got {self.timeout_policy!r}"
            )
        if self.test_timeout_s is not None and self.test_timeout_s <= 0:
            raise InvalidConfiguration("test_timeout_s must be positive when set")
        if self.fetch_retries < 0 or self.fetch_backoff_s < 0:
            raise InvalidConfiguration("fetch_retries and fetch_backoff_s must not be negative")
        try:
            graphs = tuple(GraphSpec.from_value(g) for g in self.graphs)
        except (TypeError, ValueError) as e:
            raise InvalidConfiguration(f"invalid graphs entry: {e}") from e
        # frozen, so plain [n, m] pairs are stored as GraphSpec this way
        object.__setattr__(self, "graphs", graphs)
        for graph_class in self.graphs:
            if (
                not _is_int(graph_class.vertex_count)
                or not _is_int(graph_class.edge_count)
                or graph_class.vertex_count < 1
                or graph_class.edge_count < 0
            ):
                raise InvalidConfiguration(f"invalid graph class {graph_class}")

    @property
    def bounds(self) -> LayoutBounds:
        return LayoutBounds(self.width, self.height, self.scale)

    @property
    def total_tests(self) -> int:
        return (
            len(self.link_strengths)
            * len(self.charges)
            * len(self.graphs)
            * self.graph_repeat
            * self.repeat
        )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


DEFAULTS = ExperimentSettings()

_FIELD_NAMES = {f.name for f in fields(ExperimentSettings)}


def _normalize(key: str, value: Any) -> Any:
    if key in ("link_strengths", "charges"):
        return tuple(float(v) for v in value)
    if key == "graphs":
        try:
            return tuple(GraphSpec.from_value(v) for v in value)
        except (TypeError, ValueError) as e:
            raise InvalidConfiguration(f"invalid graphs entry: {e}") from e
    if key == "metrics":
        return (value,) if isinstance(value, str) else tuple(value)
    return value


def merge_settings(
    overrides: Optional[Mapping[str, Any]] = None,
    defaults: ExperimentSettings = DEFAULTS,
) -> ExperimentSettings:
    """Return ``defaults`` with ``overrides`` applied (neither is modified).

    Raises:
        InvalidConfiguration: On unknown keys or values that fail validation.
    """
    values = {name: getattr(defaults, name) for name in _FIELD_NAMES}
    for raw_key, value in (overrides or {}).items():
        key = _ALIASES.get(raw_key, raw_key)
        if key not in _FIELD_NAMES:
            raise InvalidConfiguration(f"Unknown setting: {raw_key!r}")
        try:
            values[key] = _normalize(key, value)
        except (TypeError, ValueError) as e:
            raise InvalidConfiguration(f"invalid value for {raw_key!r}: {value!r}") from e
    return ExperimentSettings(**values)


def read_config(path: str | Path) -> dict:
    """Read a YAML or JSON config file into a dict.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        InvalidConfiguration: If the file cannot be parsed or is not a mapping.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yml", ".yaml"):
            data = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (yaml.YAMLError, ValueError) as e:
        raise InvalidConfiguration(f"{path}: cannot parse config: {e}") from e
    if not isinstance(data, dict):
        raise InvalidConfiguration(f"{path}: top level must be a mapping")
    return data


def settings_from_config(config: Mapping[str, Any]) -> ExperimentSettings:
    """Build settings from a loaded config file.

    The ``experiment`` section is used when present. A flat config is read as
    settings after dropping the CLI keys (``log_level``, ``output``).
    """
    if "experiment" in config:
        section = config["experiment"] or {}
    else:
        section = {k: v for k, v in config.items() if k not in CLI_KEYS}
    if not isinstance(section, Mapping):
        raise InvalidConfiguration("'experiment' must be a mapping")
    return merge_settings(section)


def load_settings(path: str | Path) -> ExperimentSettings:
    """Read settings from a YAML or JSON file."""
    return settings_from_config(read_config(path))
