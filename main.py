#!/usr/bin/env python3


import argparse
import asyncio
import logging
import os
from datetime import datetime

from forcegrid.errors import ForceGridError
from forcegrid.experiments.config import ExperimentSettings, read_config, settings_from_config
from forcegrid.experiments.export import write_results_tsv
from forcegrid.experiments.runner import Configuration, Experiment, Result
from forcegrid.graph_source import RandomGraphSource, WolframGraphSource
from forcegrid.simulation import ForceLayout
from forcegrid.visualization import save_layout_plot, save_metric_heatmap

logger = logging.getLogger("forcegrid")


def build_source(settings: ExperimentSettings):
    if settings.graph_source == "wolfram":
        return WolframGraphSource(
            settings.wolfram_url,
            retries=settings.fetch_retries,
            backoff_s=settings.fetch_backoff_s,
        )
    return RandomGraphSource()


def _layout_plot_hook(settings: ExperimentSettings):
    """Return an on_test_finished callback that renders every settled layout."""
    plots_dir = settings.plots_dir or "results/plots"

    def _hook(cfg: Configuration, result: Result) -> None:
        if result.status != "ok":
            return
        name = (
            f"layout_{cfg.index:04d}_ls={cfg.link_strength:g}_ch={cfg.charge:g}"
            f"_n{cfg.graph.vertex_count}_m{cfg.graph.edge_count}.png"
        )
        title = (
            f"link_strength={cfg.link_strength:g} charge={cfg.charge:g} "
            f"graph={cfg.graph_iteration} repeat={cfg.repeat_iteration}"
        )
        save_layout_plot(cfg.graph, settings.bounds, os.path.join(plots_dir, name), title)

    return _hook


def run_experiment(settings: ExperimentSettings, out_path: str) -> list:
    experiment = Experiment(
        settings,
        source=build_source(settings),
        simulator=ForceLayout(seed=settings.seed),
        on_test_finished=_layout_plot_hook(settings) if settings.visual else None,
    )
    logger.info("[Main] Experiment with %d tests", experiment.total_tests)
    results = asyncio.run(experiment.run())
    if not results:
        logger.info("[Main] No tests were run (empty parameter axis); nothing written.")
        return results

    path = write_results_tsv(results, out_path)
    logger.info("[Main] Results written: %s", path)
    if settings.visual:
        plots_dir = settings.plots_dir or "results/plots"
        for metric in experiment.metrics:
            save_metric_heatmap(results, metric, os.path.join(plots_dir, f"heatmap_{metric}.png"))
    return results


def main() -> None:
    parser = argparse.ArgumentParser(description="Force layout parameter study")
    parser.add_argument("--config", default="config.yaml", help="Path to the YAML config file")
    parser.add_argument("--out", default=None, help="Output TSV path")
    parser.add_argument("--log-level", default=None, help="Overrides log_level from the config")
    args = parser.parse_args()

    try:
        config = read_config(args.config)
    except (FileNotFoundError, ForceGridError) as e:
        raise SystemExit(f"[Main] Cannot read config: {e}") from e
    log_level = args.log_level or config.get("log_level", "INFO")
    logging.basicConfig(
        level=getattr(logging, str(log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    results_folder = (config.get("output") or {}).get("results_folder", "results")
    out_path = args.out or os.path.join(
        results_folder, f"experiment_{datetime.now().strftime('%Y%m%d_%H%M%S')}.tsv"
    )

    try:
        settings = settings_from_config(config)
        run_experiment(settings, out_path)
    except ForceGridError as e:
        logger.error("[Main] Experiment failed: %s", e)
        raise SystemExit(1) from e
    logger.info("[Main] Experiment completed.")


if __name__ == "__main__":
    main()
