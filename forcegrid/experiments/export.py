from __future__ import annotations

import csv
import math
from dataclasses import fields
from pathlib import Path
from typing import List, Sequence

from forcegrid.experiments.runner import MetricFailure, Result, ResultSettings

SETTINGS_COLUMNS = [f.name for f in fields(ResultSettings)]


def result_columns(results: Sequence[Result]) -> List[str]:
    """Header: settings keys in declaration order, metric names in run order, status."""
    metric_names: List[str] = []
    for r in results:
        for name in r.metrics:
            if name not in metric_names:
                metric_names.append(name)
    return SETTINGS_COLUMNS + metric_names + ["status"]


def _format_metric(value, decimal_comma: bool) -> str:
    if value is None:
        return ""
    if isinstance(value, MetricFailure):
        return str(value)
    if isinstance(value, float) and math.isnan(value):
        return "NaN"
    value = float(value)
    # whole numbers without a trailing ".0": 3 crossings, not 3,0
    text = str(int(value)) if value.is_integer() else repr(value)
    return text.replace(".", ",") if decimal_comma else text


def results_to_rows(results: Sequence[Result], decimal_comma: bool = True) -> List[List[str]]:
    """Tabulate results, header row first.

    Settings are written as-is; metric values get a decimal comma when
    ``decimal_comma`` is set (spreadsheet locales that expect it). Metrics that
    failed are written as the error name, metrics missing from a row (timed-out
    tests) as empty cells.
    """
    if not results:
        return []
    columns = result_columns(results)
    metric_names = columns[len(SETTINGS_COLUMNS):-1]
    rows: List[List[str]] = [columns]
    for r in results:
        row = [str(getattr(r.settings, key)) for key in SETTINGS_COLUMNS]
        row += [_format_metric(r.metrics.get(name), decimal_comma) for name in metric_names]
        row.append(r.status)
        rows.append(row)
    return rows


def write_results_tsv(
    results: Sequence[Result], path: str | Path, decimal_comma: bool = True
) -> Path:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, delimiter="\t")
        writer.writerows(results_to_rows(results, decimal_comma=decimal_comma))
    return out_path
