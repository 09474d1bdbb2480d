import logging
import math
import os
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import matplotlib

matplotlib.use("Agg")  # Must be set before importing pyplot
import matplotlib.pyplot as plt  # noqa: E402

from forcegrid.models import Graph, LayoutBounds  # noqa: E402

logger = logging.getLogger("forcegrid.visualization")


def _ensure_dir(path: str):
    if path:
        os.makedirs(path, exist_ok=True)


def next_unique_path(path: str | Path) -> str:
    """If the file exists, append _1, _2 ... until a free name is found."""
    p = Path(path)
    if not p.exists():
        return str(p)
    stem = p.stem
    suffix = p.suffix
    parent = p.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}_{counter}{suffix}"
        if not candidate.exists():
            return str(candidate)
        counter += 1


def save_layout_plot(
    graph: Graph,
    bounds: LayoutBounds,
    filepath: str,
    title: Optional[str] = None,
) -> str:
    """Draw a settled layout (edges as lines, nodes coloured by group) and save it.

    The figure covers ``bounds`` multiplied by ``bounds.scale``; nodes that left the
    area are still drawn, the axes simply grow.
    """
    scale = bounds.scale
    fig, ax = plt.subplots(
        figsize=(max(2.0, bounds.width * scale / 100), max(2.0, bounds.height * scale / 100)),
        constrained_layout=True,
    )
    cmap = plt.get_cmap("tab20")
    groups: Dict[Optional[str], int] = {}
    for edge in graph.edges:
        seg = graph.segment(edge)
        ax.plot(
            [seg.x1 * scale, seg.x2 * scale],
            [seg.y1 * scale, seg.y2 * scale],
            color="#999999",
            linewidth=0.8,
            zorder=1,
        )
    xs, ys, colors = [], [], []
    for i in range(graph.vertex_count):
        x, y = graph.position(i)
        group = graph.nodes[i].group
        color_idx = groups.setdefault(group, len(groups))
        xs.append(x * scale)
        ys.append(y * scale)
        colors.append(cmap(color_idx % 20))
    ax.scatter(xs, ys, s=25, c=colors, edgecolors="white", linewidths=1.0, zorder=2)
    ax.set_xlim(min([0.0] + xs), max([bounds.width * scale] + xs))
    # screen coordinates: y grows downwards
    ax.set_ylim(max([bounds.height * scale] + ys), min([0.0] + ys))
    ax.set_aspect("equal")
    ax.set_xticks([])
    ax.set_yticks([])
    if title:
        ax.set_title(title, fontsize=10)

    _ensure_dir(os.path.dirname(filepath))
    path = next_unique_path(filepath)
    fig.savefig(path, dpi=100)
    plt.close(fig)
    logger.debug("Layout plot saved as: %s", path)
    return path


def metric_grid(
    results: Sequence, metric: str
) -> Tuple[List[float], List[float], List[List[float]]]:
    """Mean of ``metric`` per (link_strength, charge) cell.

    Returns ``(link_strengths, charges, grid)`` with ``grid[i][j]`` the mean over
    every graph and repeat for ``link_strengths[i]`` and ``charges[j]``. Failed,
    missing and NaN values are ignored; an empty cell is NaN.
    """
    cells: Dict[Tuple[float, float], List[float]] = defaultdict(list)
    link_strengths: List[float] = []
    charges: List[float] = []
    for r in results:
        ls, ch = r.settings.link_strength, r.settings.charge
        if ls not in link_strengths:
            link_strengths.append(ls)
        if ch not in charges:
            charges.append(ch)
        value = r.metrics.get(metric)
        if isinstance(value, (int, float)) and not math.isnan(value):
            cells[(ls, ch)].append(float(value))
    link_strengths.sort()
    charges.sort()
    grid = [
        [
            (sum(cells[(ls, ch)]) / len(cells[(ls, ch)])) if cells[(ls, ch)] else float("nan")
            for ch in charges
        ]
        for ls in link_strengths
    ]
    return link_strengths, charges, grid


def save_metric_heatmap(results: Sequence, metric: str, filepath: str) -> Optional[str]:
    """Heat map of the mean ``metric`` over the (link_strength, charge) grid."""
    link_strengths, charges, grid = metric_grid(results, metric)
    if not link_strengths or not charges:
        logger.info("No results to plot for metric %s", metric)
        return None

    fig, ax = plt.subplots(
        figsize=(max(4.0, 1.2 * len(charges) + 2), max(3.0, 0.8 * len(link_strengths) + 2)),
        constrained_layout=True,
    )
    im = ax.imshow(grid, cmap="viridis", aspect="auto", origin="lower")
    ax.set_xticks(range(len(charges)))
    ax.set_xticklabels([f"{c:g}" for c in charges])
    ax.set_yticks(range(len(link_strengths)))
    ax.set_yticklabels([f"{ls:g}" for ls in link_strengths])
    ax.set_xlabel("Charge", fontsize=12)
    ax.set_ylabel("Link strength", fontsize=12)
    ax.set_title(f"Mean {metric}", fontsize=14, fontweight="bold")
    for i, row in enumerate(grid):
        for j, value in enumerate(row):
            if not math.isnan(value):
                ax.text(j, i, f"{value:.2f}", ha="center", va="center", color="white", fontsize=8)
    fig.colorbar(im, ax=ax)

    _ensure_dir(os.path.dirname(filepath))
    path = next_unique_path(filepath)
    fig.savefig(path, dpi=180)
    plt.close(fig)
    logger.info("Heat map saved as: %s", path)
    return path
