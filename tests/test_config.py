from __future__ import annotations

import json
from pathlib import Path

import pytest

from forcegrid.errors import InvalidConfiguration
from forcegrid.experiments.config import (
    DEFAULTS,
    ExperimentSettings,
    load_settings,
    merge_settings,
    read_config,
    settings_from_config,
)
from forcegrid.metrics import METRICS
from forcegrid.models import GraphSpec


def test_defaults() -> None:
    settings = merge_settings()
    assert settings == DEFAULTS
    assert settings.total_tests == 0
    assert settings.metrics == tuple(METRICS)
    assert (settings.width, settings.height, settings.scale) == (960.0, 500.0, 1.0)
    assert settings.timeout_policy == "fail"


def test_merge_normalizes_and_counts() -> None:
    settings = merge_settings(
        {
            "link_strengths": [0.5, 1],
            "charges": [-30],
            "graphs": [[10, 15], (20, 30)],
            "graph_repeat": 2,
            "repeat": 3,
        }
    )
    assert settings.link_strengths == (0.5, 1.0)
    assert settings.graphs == (GraphSpec(10, 15), GraphSpec(20, 30))
    assert settings.total_tests == 2 * 1 * 2 * 2 * 3


def test_merge_does_not_touch_defaults() -> None:
    base = merge_settings({"charges": [-10]})
    merged = merge_settings({"repeat": 2}, defaults=base)
    assert merged.charges == (-10.0,)
    assert base.repeat == 1
    assert DEFAULTS.charges == ()


def test_camel_case_aliases() -> None:
    settings = merge_settings(
        {"linkStrengths": [1], "graphRepeat": 4, "wolframUrl": "http://x", "graphSource": "wolfram"}
    )
    assert settings.link_strengths == (1.0,)
    assert settings.graph_repeat == 4
    assert settings.graph_source == "wolfram"


@pytest.mark.parametrize(
    "overrides",
    [
        {"unknown_option": 1},
        {"repeat": 0},
        {"graph_repeat": -1},
        {"repeat": 1.5},
        {"metrics": ["angularResolution"]},
        {"graph_source": "wolfram"},  # no url
        {"graph_source": "ftp"},
        {"timeout_policy": "retry"},
        {"test_timeout_s": 0},
        {"width": 0},
        {"graphs": [[10]]},
        {"graphs": [[0, 0]]},
        {"charges": ["strong"]},
        {"test_timeout_s": "30"},
        {"width": "960"},
        {"scale": True},
        {"fetch_retries": "2"},
        {"fetch_backoff_s": "fast"},
        {"seed": "abc"},
        {"seed": 1.5},
        {"metrics": [["edgeCrossings"]]},
        {"graphs": [5]},
    ],
)
def test_invalid_settings(overrides) -> None:
    with pytest.raises(InvalidConfiguration):
        merge_settings(overrides)


def test_empty_axis_is_not_an_error() -> None:
    settings = merge_settings({"link_strengths": [1], "charges": [], "graphs": [[5, 4]]})
    assert settings.total_tests == 0


def test_load_settings_yaml_section(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "log_level: DEBUG\n"
        "experiment:\n"
        "  link_strengths: [0.1, 1]\n"
        "  charges: [-30]\n"
        "  graphs:\n"
        "    - [6, 5]\n"
        "  repeat: 2\n"
        "  metrics: edgeCrossings\n",
        encoding="utf-8",
    )
    settings = load_settings(path)
    assert settings.total_tests == 4
    assert settings.metrics == ("edgeCrossings",)


def test_load_settings_json(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"charges": [-1, -2], "seed": 9}), encoding="utf-8")
    settings = load_settings(path)
    assert settings.charges == (-1.0, -2.0)
    assert settings.seed == 9


def test_load_settings_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "nope.yaml")


def test_direct_construction_validates_graphs() -> None:
    settings = ExperimentSettings(graphs=([3, 2],))
    assert settings.graphs == (GraphSpec(3, 2),)
    with pytest.raises(InvalidConfiguration):
        ExperimentSettings(graphs=([3],))
    with pytest.raises(InvalidConfiguration):
        ExperimentSettings(charges=("strong",))
    with pytest.raises(InvalidConfiguration):
        ExperimentSettings(seed="abc")


def test_settings_from_flat_config_ignores_cli_keys() -> None:
    settings = settings_from_config({"log_level": "DEBUG", "output": {}, "charges": [-5]})
    assert settings.charges == (-5.0,)
    assert settings_from_config({"experiment": None}) == DEFAULTS


def test_read_config_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(InvalidConfiguration):
        read_config(path)
    broken = tmp_path / "config.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(InvalidConfiguration):
        read_config(broken)
