"""Experiment orchestration and analysis."""

from .run_experiment import (
    ExperimentConfig,
    ExperimentResult,
    ExperimentRunner,
    run_quick_benchmark,
    main as run_experiment_main,
)
from .analysis import (
    load_results,
    results_frame,
    aggregate_by_instance,
    generate_report,
    AggregatedResults,
)

__all__ = [
    # Experiment runner
    "ExperimentConfig",
    "ExperimentResult",
    "ExperimentRunner",
    "run_quick_benchmark",
    "run_experiment_main",
    # Analysis
    "load_results",
    "results_frame",
    "aggregate_by_instance",
    "generate_report",
    "AggregatedResults",
]
