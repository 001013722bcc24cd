"""Experiment runner for elevator dispatch benchmarking.

This module provides the command-line solver and experiment runner that:
- Loads JSON instances or generates random ones
- Runs branch-and-price with the configured budgets
- Collects metrics (objective, bounds, search effort, runtime)
- Saves results and solutions for analysis
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import List, Optional, Dict, Any
from pathlib import Path
import json
import logging
import argparse
from datetime import datetime

from ..models.problem import ProblemInstance
from ..models.parsers import parse_instance, solution_to_dict
from ..branch_and_price.driver import create_solver

logger = logging.getLogger(__name__)


@dataclass
class ExperimentConfig:
    """Configuration for a single experiment run.

    Attributes:
        name: Experiment name
        instance_path: Path to a JSON instance file
        seed: Random seed for generated instances

        # Solver budgets
        time_limit: Wall-clock limit per solve (seconds)
        max_nodes: Branch-and-bound node limit
        max_cg_iterations: Column generation iterations per node
        pricing_workers: Threads pricing elevators concurrently
        lagrangian_iterations: Subgradient steps for the root bound estimate

        # Random instances
        n_requests: Requests of a generated instance
        n_elevators: Elevators of a generated instance
        num_floors: Floors of a generated instance

        # Output
        output_dir: Directory for results (empty = do not save)
        save_solution: Save the solution projection next to the results
    """
    name: str = "experiment"
    instance_path: Optional[str] = None
    seed: int = 42

    time_limit: Optional[float] = 60.0
    max_nodes: int = 1000
    max_cg_iterations: int = 100
    pricing_workers: int = 1
    lagrangian_iterations: int = 0

    n_requests: int = 8
    n_elevators: int = 2
    num_floors: int = 20

    output_dir: str = "results"
    save_solution: bool = True


@dataclass
class ExperimentResult:
    """Results from a single experiment run."""
    config: ExperimentConfig

    # Instance info
    instance_name: str = ""
    n_requests: int = 0
    n_elevators: int = 0

    # Solution quality
    status: str = ""
    objective: Optional[float] = None
    root_bound: Optional[float] = None
    gap: Optional[float] = None
    is_integral: bool = False

    # Search effort
    nodes_explored: int = 0
    cg_iterations: int = 0
    columns_generated: int = 0

    # Performance
    runtime: float = 0.0
    master_time: float = 0.0
    pricing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'instance_name': self.instance_name,
            'n_requests': self.n_requests,
            'n_elevators': self.n_elevators,
            'status': self.status,
            'objective': self.objective,
            'root_bound': self.root_bound,
            'gap': self.gap,
            'is_integral': self.is_integral,
            'nodes_explored': self.nodes_explored,
            'cg_iterations': self.cg_iterations,
            'columns_generated': self.columns_generated,
            'runtime': self.runtime,
            'master_time': self.master_time,
            'pricing_time': self.pricing_time,
            'config': asdict(self.config),
        }


class ExperimentRunner:
    """Runs experiments and collects results."""

    def __init__(self, config: ExperimentConfig):
        self.config = config
        self.results: List[ExperimentResult] = []

    def load_instance(self) -> ProblemInstance:
        """Instance from config.instance_path, or a random one if no path is set."""
        if self.config.instance_path is not None:
            return parse_instance(Path(self.config.instance_path))
        return ProblemInstance.create_random(
            n_requests=self.config.n_requests,
            n_elevators=self.config.n_elevators,
            num_floors=self.config.num_floors,
            seed=self.config.seed,
        )

    def run(self, instance: Optional[ProblemInstance] = None) -> ExperimentResult:
        """Run a single experiment.

        Args:
            instance: Dispatch instance (loaded via load_instance if None)

        Returns:
            ExperimentResult with all metrics
        """
        logger.info(f"Starting experiment: {self.config.name}")

        if instance is None:
            instance = self.load_instance()

        solver = create_solver(
            time_limit=self.config.time_limit,
            max_nodes=self.config.max_nodes,
            max_cg_iterations=self.config.max_cg_iterations,
            pricing_workers=self.config.pricing_workers,
            lagrangian_iterations=self.config.lagrangian_iterations,
        )

        logger.info(f"Running branch-and-price on {instance.name} ({instance.n_requests} requests)")
        solution = solver.solve(instance)
        stats = solver.statistics

        result = ExperimentResult(
            config=self.config,
            instance_name=instance.name,
            n_requests=instance.n_requests,
            n_elevators=instance.n_elevators,
            status=stats.status,
            objective=solution.objective_value if solution is not None else None,
            root_bound=stats.root_bound,
            gap=stats.gap,
            is_integral=solution.is_integral if solution is not None else False,
            nodes_explored=stats.nodes_explored,
            cg_iterations=stats.cg_iterations,
            columns_generated=stats.columns_generated,
            runtime=stats.runtime,
            master_time=stats.master_time,
            pricing_time=stats.pricing_time,
        )

        self.results.append(result)

        if self.config.output_dir:
            self._save_results(result, solution_to_dict(solution, instance, stats.status))

        return result

    def run_benchmark_suite(
        self,
        instance_paths: List[str],
    ) -> List[ExperimentResult]:
        """Run experiments on multiple instance files.

        Args:
            instance_paths: List of paths to JSON instances

        Returns:
            List of all results
        """
        all_results = []

        for path in instance_paths:
            self.config.instance_path = path
            self.config.name = Path(path).stem

            try:
                all_results.append(self.run())
            except ValueError as e:
                logger.error(f"Skipping invalid instance {path}: {e}")

        return all_results

    def _save_results(self, result: ExperimentResult, solution_data: Dict[str, Any]) -> None:
        """Save experiment results to files."""
        output_dir = Path(self.config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        base_name = f"{self.config.name}_{timestamp}"

        json_path = output_dir / f"{base_name}_results.json"
        with open(json_path, 'w') as f:
            json.dump(result.to_dict(), f, indent=2)

        logger.info(f"Results saved to {json_path}")

        if self.config.save_solution:
            sol_path = output_dir / f"{base_name}_solution.json"
            with open(sol_path, 'w') as f:
                json.dump(solution_data, f, indent=2)


def run_quick_benchmark(
    n_requests: int = 6,
    n_elevators: int = 2,
    time_limit: float = 10.0,
    seed: int = 42,
    output_dir: str = "results/quick",
) -> ExperimentResult:
    """Run a quick benchmark on a random instance.

    Args:
        n_requests: Number of requests
        n_elevators: Number of elevators
        time_limit: Solver time limit (seconds)
        seed: Random seed
        output_dir: Directory for results (empty = do not save)

    Returns:
        ExperimentResult
    """
    config = ExperimentConfig(
        name=f"quick_benchmark_r{n_requests}_e{n_elevators}",
        seed=seed,
        time_limit=time_limit,
        n_requests=n_requests,
        n_elevators=n_elevators,
        output_dir=output_dir,
    )
    return ExperimentRunner(config).run()


def main(argv: Optional[List[str]] = None):
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Solve elevator dispatch instances by branch-and-price")
    parser.add_argument("--instance", type=str, help="Path to JSON instance file")
    parser.add_argument("--random", action="store_true", help="Solve a random instance")
    parser.add_argument("--requests", type=int, default=8, help="Requests of the random instance")
    parser.add_argument("--elevators", type=int, default=2, help="Elevators of the random instance")
    parser.add_argument("--floors", type=int, default=20, help="Floors of the random instance")
    parser.add_argument("--time-limit", type=float, default=60.0, help="Time limit (seconds)")
    parser.add_argument("--max-nodes", type=int, default=1000, help="Branch-and-bound node limit")
    parser.add_argument("--workers", type=int, default=1, help="Pricing threads")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--output", type=str, default="results", help="Output directory")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if not args.instance and not args.random:
        parser.print_help()
        return

    config = ExperimentConfig(
        name=Path(args.instance).stem if args.instance else f"random_r{args.requests}_e{args.elevators}",
        instance_path=args.instance,
        seed=args.seed,
        time_limit=args.time_limit,
        max_nodes=args.max_nodes,
        pricing_workers=args.workers,
        n_requests=args.requests,
        n_elevators=args.elevators,
        num_floors=args.floors,
        output_dir=args.output,
    )

    result = ExperimentRunner(config).run()

    objective = f"{result.objective:.2f}" if result.objective is not None else "-"
    print(f"\nExperiment Results:")
    print(f"  Instance: {result.instance_name}")
    print(f"  Status: {result.status}")
    print(f"  Objective: {objective}")
    print(f"  Nodes: {result.nodes_explored}, CG iterations: {result.cg_iterations}")
    print(f"  Runtime: {result.runtime:.2f}s")


if __name__ == "__main__":
    main()
