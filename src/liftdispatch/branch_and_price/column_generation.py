"""Column generation for one branch-and-bound node.

Alternates master LP solves with per-elevator pricing until no elevator
can offer a schedule with negative reduced cost, or until the iteration
budget runs out.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional
import logging
import math
import time

import numpy as np

from .pricing import PricingConfig, PricingProblem

if TYPE_CHECKING:
    from ..heuristics.constructive import PartitionContext
    from ..models.problem import ProblemInstance
    from ..models.schedule import Column
    from ..models.solution import Solution
    from .master import MasterModel

logger = logging.getLogger(__name__)


@dataclass
class ColumnGenerationConfig:
    """Configuration for the column generation loop.

    Attributes:
        epsilon: Columns need reduced cost below -epsilon to be added
        max_iterations: Master solves per node before giving up on convergence
        include_pairs: Use pair-request schedules as feasibility columns
        pricing_workers: Threads pricing elevators concurrently (1 = round-robin)
        lagrangian_iterations: Subgradient steps after convergence (0 = off)
        lagrangian_step: Initial subgradient step size
        lagrangian_gap: Relative gap at which the subgradient loop stops
        pricing: Configuration of the pricing search
    """
    epsilon: float = 1e-6
    max_iterations: int = 100
    include_pairs: bool = True
    pricing_workers: int = 1
    lagrangian_iterations: int = 0
    lagrangian_step: float = 2.0
    lagrangian_gap: float = 1e-4
    pricing: PricingConfig = field(default_factory=PricingConfig)


@dataclass(frozen=True)
class PricingRound:
    """Columns added by one pricing round and where the next one starts."""
    added: int
    next_elevator: int
    exhausted: bool


@dataclass
class ColumnGenerationResult:
    """Outcome of column generation at one node.

    Attributes:
        solution: Final restricted LP solution (None if infeasible)
        iterations: Master solves performed
        columns_added: Columns added by pricing and feasibility repair
        converged: True if a full pricing round found no improving column
        pricing_exhausted: True if a search of the last round hit its
            expansion cap, so convergence is not proven
        lagrangian_bound: Subgradient bound estimate, if requested
        master_time: Seconds spent in LP solves
        pricing_time: Seconds spent in pricing
    """
    solution: Optional[Solution] = None
    iterations: int = 0
    columns_added: int = 0
    converged: bool = False
    pricing_exhausted: bool = False
    lagrangian_bound: Optional[float] = None
    master_time: float = 0.0
    pricing_time: float = 0.0

    @property
    def feasible(self) -> bool:
        return self.solution is not None


class ColumnGeneration:
    """Column generation over a master model.

    Example:
        >>> cg = ColumnGeneration(instance)
        >>> result = cg.run(master, context)
        >>> result.solution.objective_value
    """

    def __init__(self, instance: ProblemInstance, config: Optional[ColumnGenerationConfig] = None):
        self.instance = instance
        self.config = config or ColumnGenerationConfig()

    def run(self, master: MasterModel, context: PartitionContext) -> ColumnGenerationResult:
        """Generate columns until the restricted master is optimal.

        Args:
            master: Master model of the node (columns are added to it)
            context: Heuristic partition cache of the same node

        Returns:
            ColumnGenerationResult whose solution is None if the node is infeasible
        """
        result = ColumnGenerationResult()
        next_elevator = 0

        for iteration in range(1, self.config.max_iterations + 1):
            result.iterations = iteration

            start = time.perf_counter()
            solution = master.solve()
            result.master_time += time.perf_counter() - start

            if solution is None:
                added = self.add_feasibility_columns(master, context)
                logger.debug(f"Master infeasible, added {added} feasibility columns")
                if added == 0:
                    return result
                result.columns_added += added
                continue

            start = time.perf_counter()
            pricing_round = self._pricing_round(master, solution, next_elevator)
            next_elevator = pricing_round.next_elevator
            added = pricing_round.added
            result.pricing_time += time.perf_counter() - start

            logger.debug(
                f"CG iter {iteration}: LP={solution.objective_value:.4f}, "
                f"columns={master.n_columns}, added={added}"
            )

            if added == 0:
                result.solution = solution
                result.converged = True
                result.pricing_exhausted = pricing_round.exhausted
                if pricing_round.exhausted:
                    logger.warning("Pricing hit its expansion cap, the node bound is not proven")
                if self.config.lagrangian_iterations > 0:
                    result.lagrangian_bound = self.lagrangian_bound(master, solution)
                return result
            result.columns_added += added

        logger.warning(
            f"Column generation hit {self.config.max_iterations} iterations without converging"
        )
        start = time.perf_counter()
        result.solution = master.solve()
        result.master_time += time.perf_counter() - start
        return result

    def add_feasibility_columns(self, master: MasterModel, context: PartitionContext) -> int:
        """Add heuristic schedules that ignore duals, returning how many were new."""
        return master.add_schedules(context.feasibility_schedules(self.config.include_pairs))

    def _categories(self, master: MasterModel, elevator_index: int) -> tuple[list[int], list[int]]:
        """Rows the elevator must serve and rows it must not serve."""
        required = []
        forbidden = []
        for i, allowed in enumerate(master.allowed_sets()):
            if elevator_index not in allowed:
                forbidden.append(i)
            elif allowed == frozenset({elevator_index}):
                required.append(i)
        return required, forbidden

    def pricing_problem(self, master: MasterModel, solution: Solution, elevator_index: int) -> PricingProblem:
        """Pricing problem of one elevator, updated with the node's duals and decisions."""
        required, forbidden = self._categories(master, elevator_index)
        pricing = PricingProblem(self.instance, elevator_index, self.config.pricing)
        pricing.update(
            master.effective_duals(solution, elevator_index),
            solution.elevator_dual(elevator_index),
            required=required,
            forbidden=forbidden,
        )
        return pricing

    def price_elevator(self, master: MasterModel, solution: Solution, elevator_index: int) -> list[Column]:
        """Improving columns for one elevator."""
        return self.pricing_problem(master, solution, elevator_index).solve()

    def _admit(self, master: MasterModel, solution: Solution, columns: list[Column]) -> int:
        added = 0
        for column in columns:
            reduced_cost = master.reduced_cost(column.schedule, solution)
            if reduced_cost >= -self.config.epsilon:
                logger.debug(f"Skipping column with reduced cost {reduced_cost:.6f}")
                continue
            if master.add_schedule(column.schedule, column.elevator_index):
                added += 1
        return added

    def _pricing_round(self, master: MasterModel, solution: Solution, first: int) -> PricingRound:
        """Price elevators, starting at `first`, until one offers columns."""
        n_elevators = self.instance.n_elevators
        if n_elevators == 0:
            return PricingRound(0, first, False)

        if self.config.pricing_workers > 1:
            problems = [self.pricing_problem(master, solution, k) for k in range(n_elevators)]
            with ThreadPoolExecutor(max_workers=self.config.pricing_workers) as pool:
                found = list(pool.map(lambda pricing: pricing.solve(), problems))
            added = sum(self._admit(master, solution, columns) for columns in found)
            return PricingRound(added, first, any(p.exhausted for p in problems))

        exhausted = False
        for offset in range(n_elevators):
            k = (first + offset) % n_elevators
            pricing = self.pricing_problem(master, solution, k)
            added = self._admit(master, solution, pricing.solve())
            exhausted = exhausted or pricing.exhausted
            if added:
                return PricingRound(added, (k + 1) % n_elevators, exhausted)
        return PricingRound(0, first, exhausted)

    def lagrangian_bound(self, master: MasterModel, solution: Solution) -> Optional[float]:
        """Lagrangian lower bound by projected subgradient steps.

        Relaxes the request rows with multipliers, starting from the LP
        duals projected to non-negative values, and keeps the convexity
        rows. The LP primal is not touched. A step only counts when every
        elevator's pricing search ran to completion and found a schedule;
        otherwise the loop stops with the best bound so far.

        Returns:
            Best Lagrangian bound found, or None if no step produced one
        """
        n_requests = self.instance.n_requests
        multipliers = np.maximum(0.0, solution.request_duals.copy())
        upper = solution.objective_value
        best: Optional[float] = None

        for iteration in range(1, self.config.lagrangian_iterations + 1):
            value = float(multipliers.sum())
            coverage = np.zeros(n_requests)
            complete = True

            for k in range(self.instance.n_elevators):
                required, forbidden = self._categories(master, k)
                pricing = PricingProblem(self.instance, k, self.config.pricing)
                pricing.update(multipliers, 0.0, required=required, forbidden=forbidden)
                columns = pricing.solve(threshold=math.inf, max_schedules=2 ** 31)
                if not columns or pricing.exhausted:
                    logger.debug(
                        f"Lagrangian step {iteration}: pricing for elevator {k} "
                        f"{'hit its expansion cap' if pricing.exhausted else 'found no schedule'}"
                    )
                    complete = False
                    break
                column = columns[0]
                value += column.reduced_cost
                for i in master.served_rows(column.schedule):
                    coverage[i] += 1.0

            if not complete:
                break

            best = value if best is None else max(best, value)
            gap = (upper - best) / max(1.0, abs(upper))
            if gap < self.config.lagrangian_gap:
                break

            subgradient = 1.0 - coverage
            step = self.config.lagrangian_step / math.sqrt(iteration)
            multipliers = np.maximum(0.0, multipliers + step * subgradient)

        if best is not None:
            logger.debug(f"Lagrangian bound {best:.4f} (LP {upper:.4f})")
        return best
