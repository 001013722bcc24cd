"""Analysis utilities for experiment results.

This module provides functions for:
- Loading result files into a pandas DataFrame
- Aggregating runs per instance
- Writing a markdown report
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Dict, Any
from dataclasses import dataclass
import json

import numpy as np
import pandas as pd

RESULT_COLUMNS = [
    "instance_name",
    "n_requests",
    "n_elevators",
    "status",
    "objective",
    "root_bound",
    "gap",
    "is_integral",
    "nodes_explored",
    "cg_iterations",
    "columns_generated",
    "runtime",
    "master_time",
    "pricing_time",
]


@dataclass
class AggregatedResults:
    """Aggregated results across multiple runs of one instance."""
    instance_name: str
    n_runs: int

    # Solution statistics
    mean_objective: float
    std_objective: float
    best_objective: float
    integral_rate: float

    # Search statistics
    mean_nodes: float
    mean_cg_iterations: float
    mean_gap: float

    # Performance statistics
    mean_runtime: float
    std_runtime: float
    pricing_share: float


def load_results(results_dir: str | Path) -> List[Dict[str, Any]]:
    """Load all JSON result files from a directory.

    Args:
        results_dir: Directory containing result JSON files

    Returns:
        List of result dictionaries
    """
    results_dir = Path(results_dir)
    results = []

    for json_file in sorted(results_dir.glob("*_results.json")):
        with open(json_file, 'r') as f:
            data = json.load(f)
            data['_file'] = str(json_file)
            results.append(data)

    return results


def results_frame(results: List[Dict[str, Any]]) -> pd.DataFrame:
    """Flatten result dictionaries into a DataFrame with one row per run."""
    if not results:
        return pd.DataFrame(columns=RESULT_COLUMNS)
    df = pd.DataFrame([{c: r.get(c) for c in RESULT_COLUMNS} for r in results])
    for column in ("objective", "root_bound", "gap", "runtime", "master_time", "pricing_time"):
        df[column] = pd.to_numeric(df[column], errors="coerce")
    return df


def aggregate_by_instance(results: List[Dict[str, Any]]) -> Dict[str, AggregatedResults]:
    """Aggregate results by instance name.

    Args:
        results: List of result dictionaries

    Returns:
        Dict mapping instance name to aggregated results
    """
    df = results_frame(results)
    aggregated = {}

    for name, runs in df.groupby("instance_name", sort=True):
        objectives = runs["objective"].dropna()
        runtime = runs["runtime"].fillna(0.0)
        total_runtime = float(runtime.sum())

        aggregated[name] = AggregatedResults(
            instance_name=name,
            n_runs=len(runs),
            mean_objective=float(objectives.mean()) if len(objectives) else float('nan'),
            std_objective=float(np.std(objectives)) if len(objectives) else float('nan'),
            best_objective=float(objectives.min()) if len(objectives) else float('nan'),
            integral_rate=float(runs["is_integral"].fillna(False).astype(bool).mean()),
            mean_nodes=float(runs["nodes_explored"].mean()),
            mean_cg_iterations=float(runs["cg_iterations"].mean()),
            mean_gap=float(runs["gap"].mean()) if runs["gap"].notna().any() else float('nan'),
            mean_runtime=float(runtime.mean()),
            std_runtime=float(np.std(runtime)),
            pricing_share=float(runs["pricing_time"].fillna(0.0).sum()) / total_runtime if total_runtime > 0 else 0.0,
        )

    return aggregated


def generate_report(
    results: List[Dict[str, Any]],
    output_path: str | Path = "report.md",
) -> str:
    """Generate a markdown report from results.

    Args:
        results: List of result dictionaries
        output_path: Path to save report

    Returns:
        Report as markdown string
    """
    aggregated = aggregate_by_instance(results)
    df = results_frame(results)

    lines = [
        "# Elevator Dispatch Experiment Report",
        "",
        f"**Total Runs:** {len(results)}",
        f"**Instances:** {len(aggregated)}",
        "",
        "## Summary by Instance",
        "",
        "| Instance | Runs | Objective | Best | Integral | Nodes | Gap | Runtime |",
        "|----------|------|-----------|------|----------|-------|-----|---------|",
    ]

    for name, agg in aggregated.items():
        lines.append(
            f"| {name} | {agg.n_runs} | {agg.mean_objective:.2f} ± {agg.std_objective:.2f} | "
            f"{agg.best_objective:.2f} | {agg.integral_rate:.0%} | {agg.mean_nodes:.1f} | "
            f"{agg.mean_gap:.2%} | {agg.mean_runtime:.2f}s |"
        )

    lines.extend([
        "",
        "## Overall Statistics",
        "",
    ])

    if len(df):
        lines.extend([
            f"- **Mean Runtime:** {df['runtime'].mean():.2f}s ± {np.std(df['runtime']):.2f}s",
            f"- **Mean Nodes:** {df['nodes_explored'].mean():.1f}",
            f"- **Status Counts:** "
            + ", ".join(f"{s}={n}" for s, n in df['status'].value_counts().sort_index().items()),
            "",
        ])

    report = "\n".join(lines)

    with open(output_path, 'w') as f:
        f.write(report)

    return report
