"""Integer branch-and-bound over the column generation relaxation.

Each search node owns a cloned master model and a heuristic partition
context. Nodes are explored best-first by LP bound; fractional nodes are
split on the request whose flow divides most evenly between two groups
of elevators.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional
import heapq
import itertools
import logging
import math
import time

import numpy as np

from ..heuristics.constructive import PartitionContext, seed_schedules
from ..models.solution import Solution
from .column_generation import ColumnGeneration, ColumnGenerationConfig
from .master import MasterConfig, MasterModel

if TYPE_CHECKING:
    from ..models.problem import ProblemInstance
    from .lp import LPBackend

logger = logging.getLogger(__name__)


@dataclass
class BranchAndPriceConfig:
    """Configuration for the branch-and-price solver.

    Attributes:
        epsilon: Tolerance for bound comparisons and fractional flows
        max_nodes: Search nodes processed before stopping
        time_limit: Wall-clock limit in seconds (None = no limit)
        include_pairs: Seed the root with pair-request schedules
        master: Master problem configuration
        column_generation: Column generation configuration
        verbose: Log progress at INFO level
    """
    epsilon: float = 1e-6
    max_nodes: int = 1000
    time_limit: Optional[float] = 60.0
    include_pairs: bool = True
    master: MasterConfig = field(default_factory=MasterConfig)
    column_generation: ColumnGenerationConfig = field(default_factory=ColumnGenerationConfig)
    verbose: bool = True


@dataclass
class BranchAndPriceStatistics:
    """Statistics from a branch-and-price run.

    `status` is "optimal" only when the search finished and every node
    bound was proven by complete pricing; "feasible" when it finished with
    an incumbent but some pricing search hit its expansion cap or column
    generation its iteration cap. `node_bounds` holds (depth, inherited
    bound, LP bound after column generation) for every node solved.
    """
    status: str = "not_started"
    nodes_explored: int = 0
    nodes_pruned: int = 0
    nodes_infeasible: int = 0
    max_depth: int = 0
    cg_iterations: int = 0
    columns_generated: int = 0
    incumbent_updates: int = 0
    runtime: float = 0.0
    master_time: float = 0.0
    pricing_time: float = 0.0
    root_bound: Optional[float] = None
    best_objective: Optional[float] = None
    lagrangian_bound: Optional[float] = None
    bounds_proven: bool = True
    node_bounds: list[tuple[int, float, float]] = field(default_factory=list)

    @property
    def gap(self) -> Optional[float]:
        """Relative gap between the best objective and the root bound."""
        if self.best_objective is None or self.root_bound is None:
            return None
        return (self.best_objective - self.root_bound) / max(1.0, abs(self.best_objective))

    def summary(self) -> str:
        best = f"{self.best_objective:.2f}" if self.best_objective is not None else "-"
        root = f"{self.root_bound:.2f}" if self.root_bound is not None else "-"
        return (
            f"Branch-and-price Statistics:\n"
            f"  Status: {self.status}\n"
            f"  Nodes: {self.nodes_explored} explored, {self.nodes_pruned} pruned, "
            f"{self.nodes_infeasible} infeasible\n"
            f"  CG iterations: {self.cg_iterations}, columns generated: {self.columns_generated}\n"
            f"  Root bound: {root}, best objective: {best}\n"
            f"  Runtime: {self.runtime:.2f}s (master {self.master_time:.2f}s, "
            f"pricing {self.pricing_time:.2f}s)\n"
        )


@dataclass(eq=False)
class SearchNode:
    """Branch-and-bound node owning its master model and partition context.

    Attributes:
        master: Master model with the node's branching rows
        context: Heuristic partition cache of the node
        bound: Lower bound inherited from the parent's converged LP
        estimate: Restricted LP objective before column generation,
            used to order nodes of equal bound
        depth: Distance from the root
    """
    master: MasterModel
    context: PartitionContext
    bound: float = -math.inf
    estimate: float = -math.inf
    depth: int = 0


@dataclass(frozen=True)
class BranchingChoice:
    """Request to branch on and the two elevator groups splitting its flow."""
    request_index: int
    first_group: frozenset[int]
    second_group: frozenset[int]
    score: float


class BranchAndPrice:
    """Branch-and-price solver for elevator dispatch.

    Example:
        >>> solver = BranchAndPrice(BranchAndPriceConfig(time_limit=10.0))
        >>> solution = solver.solve(instance)
        >>> print(solver.statistics.summary())
    """

    def __init__(
        self,
        config: Optional[BranchAndPriceConfig] = None,
        backend: Optional[LPBackend] = None,
    ):
        self.config = config or BranchAndPriceConfig()
        self.backend = backend
        self.statistics = BranchAndPriceStatistics()

    def _new_master(self, instance: ProblemInstance) -> MasterModel:
        return MasterModel(instance, self.config.master, self.backend)

    def _root(self, instance: ProblemInstance) -> SearchNode:
        master = self._new_master(instance)
        context = PartitionContext(instance, master.allowed_sets())
        master.add_schedules(seed_schedules(instance, include_pairs=self.config.include_pairs))
        master.add_schedules(context.schedules())
        logger.debug(f"Root master seeded with {master.n_columns} columns")
        return SearchNode(master=master, context=context)

    def solve(self, instance: ProblemInstance) -> Optional[Solution]:
        """Solve a dispatch instance.

        Args:
            instance: Problem instance

        Returns:
            Best solution found (integral unless the heuristic fallback was
            used), or None if the problem is infeasible

        Raises:
            ValueError: If the instance is inconsistent
        """
        issues = instance.validate()
        if issues:
            raise ValueError(f"Invalid instance: {'; '.join(issues)}")

        start_time = time.perf_counter()
        stats = BranchAndPriceStatistics(status="running")
        self.statistics = stats
        eps = self.config.epsilon

        if self.config.verbose:
            logger.info(f"Solving {instance.summary()}")

        cg = ColumnGeneration(instance, self.config.column_generation)
        counter = itertools.count()
        queue: list[tuple[float, float, int, SearchNode]] = []
        heapq.heappush(queue, (-math.inf, -math.inf, next(counter), self._root(instance)))

        incumbent: Optional[Solution] = None
        best = math.inf

        while queue:
            if stats.nodes_explored >= self.config.max_nodes:
                stats.status = "node_limit"
                break
            if self._out_of_time(start_time):
                stats.status = "time_limit"
                break

            bound, _, _, node = heapq.heappop(queue)
            if bound >= best - eps:
                stats.nodes_pruned += 1
                continue

            stats.nodes_explored += 1
            stats.max_depth = max(stats.max_depth, node.depth)

            result = cg.run(node.master, node.context)
            stats.cg_iterations += result.iterations
            stats.columns_generated += result.columns_added
            stats.master_time += result.master_time
            stats.pricing_time += result.pricing_time
            if not result.converged or result.pricing_exhausted:
                stats.bounds_proven = False

            solution = result.solution
            if solution is None:
                stats.nodes_infeasible += 1
                if node.depth == 0:
                    logger.warning("Root master is infeasible")
                    stats.status = "infeasible"
                    stats.runtime = time.perf_counter() - start_time
                    return None
                continue

            stats.node_bounds.append((node.depth, node.bound, solution.objective_value))
            if node.depth == 0:
                stats.root_bound = solution.objective_value
                stats.lagrangian_bound = result.lagrangian_bound

            if solution.objective_value >= best - eps:
                stats.nodes_pruned += 1
                continue

            if solution.is_integral:
                incumbent, best = solution, solution.objective_value
                stats.incumbent_updates += 1
                if self.config.verbose:
                    logger.info(
                        f"Node {stats.nodes_explored}: new incumbent {best:.4f} "
                        f"(depth {node.depth})"
                    )
                continue

            choice = self.select_branching(instance, solution)
            if choice is None:
                rounded = self.round_solution(instance, solution)
                if rounded is not None and rounded.objective_value < best - eps:
                    incumbent, best = rounded, rounded.objective_value
                    stats.incumbent_updates += 1
                # a rounded value above the LP leaves this subtree unproven
                if rounded is None or rounded.objective_value > solution.objective_value + eps:
                    stats.bounds_proven = False
                continue

            for assign, forbid in (
                (choice.first_group, choice.second_group),
                (choice.second_group, choice.first_group),
            ):
                child = self._child(node, solution, choice.request_index, assign, forbid)
                if child is None:
                    stats.nodes_infeasible += 1
                elif child.bound < best - eps:
                    heapq.heappush(queue, (child.bound, child.estimate, next(counter), child))
                else:
                    stats.nodes_pruned += 1

        if stats.status == "running":
            if incumbent is None:
                stats.status = "exhausted"
            else:
                stats.status = "optimal" if stats.bounds_proven else "feasible"

        if incumbent is None:
            logger.warning(f"No integral solution found ({stats.status}), using heuristic fallback")
            incumbent = self.heuristic_solution(instance)
            stats.status = "fallback"

        stats.runtime = time.perf_counter() - start_time
        if incumbent is not None:
            stats.best_objective = incumbent.objective_value
        if self.config.verbose:
            logger.info(stats.summary())
        return incumbent

    def _out_of_time(self, start_time: float) -> bool:
        if self.config.time_limit is None:
            return False
        return time.perf_counter() - start_time >= self.config.time_limit

    def _child(
        self,
        parent: SearchNode,
        parent_solution: Solution,
        request_index: int,
        assign_group: frozenset[int],
        forbid_group: frozenset[int],
    ) -> Optional[SearchNode]:
        """Clone the parent and add the branching rows.

        The child inherits the parent's converged LP objective as its bound;
        its restricted LP objective only orders nodes of equal bound.
        """
        master = parent.master.clone()
        master.add_branching_constraint(request_index, assign_group, assign=True)
        master.add_branching_constraint(request_index, forbid_group, assign=False)
        context = PartitionContext(master.instance, master.allowed_sets())

        solution = master.solve()
        if solution is None:
            master.add_schedules(context.feasibility_schedules(self.config.include_pairs))
            solution = master.solve()
        if solution is None:
            logger.debug(f"Child forcing request {request_index} into {sorted(assign_group)} is infeasible")
            return None

        return SearchNode(
            master=master,
            context=context,
            bound=parent_solution.objective_value,
            estimate=solution.objective_value,
            depth=parent.depth + 1,
        )

    def select_branching(self, instance: ProblemInstance, solution: Solution) -> Optional[BranchingChoice]:
        """Pick the request whose elevator flow splits most evenly.

        The elevators carrying flow of a request are bucketed greedily
        (largest flow first, into the lighter group) and scored by
        |0.5 - s1| + |0.5 - s2|. Both groups need a flow strictly
        between 0 and 1.

        Returns:
            BranchingChoice, or None if no request can be split by elevator
        """
        eps = self.config.epsilon
        best: Optional[BranchingChoice] = None

        for i, request in enumerate(instance.unassigned_requests):
            flows = {k: f for k, f in solution.request_flows(request.id).items() if f > eps}
            if len(flows) < 2:
                continue

            first, second = [], []
            sum_first = sum_second = 0.0
            for k, flow in sorted(flows.items(), key=lambda item: (-item[1], item[0])):
                if sum_first <= sum_second:
                    first.append(k)
                    sum_first += flow
                else:
                    second.append(k)
                    sum_second += flow

            if not (eps < sum_first < 1 - eps and eps < sum_second < 1 - eps):
                continue

            score = abs(0.5 - sum_first) + abs(0.5 - sum_second)
            if best is None or score < best.score - eps:
                best = BranchingChoice(i, frozenset(first), frozenset(second), score)

        return best

    def round_solution(self, instance: ProblemInstance, solution: Solution) -> Optional[Solution]:
        """Integral solution taking the largest-valued column of each elevator.

        Returns:
            The rounded solution if it covers every request exactly once
        """
        chosen = []
        for k in range(instance.n_elevators):
            candidates = [
                (v, -j) for j, (s, v) in enumerate(zip(solution.schedules, solution.values))
                if s.elevator_index == k and v > solution.epsilon
            ]
            if not candidates:
                return None
            chosen.append(-max(candidates)[1])

        covered = [r.id for j in chosen for r in solution.schedules[j].served_requests]
        if sorted(covered) != sorted(r.id for r in instance.unassigned_requests):
            return None

        values = np.zeros(len(solution.values))
        values[chosen] = 1.0
        return Solution(
            schedules=solution.schedules,
            values=values,
            objective_value=float(sum(solution.schedules[j].cost for j in chosen)),
            request_duals=solution.request_duals,
            elevator_duals=solution.elevator_duals,
            load_duals=solution.load_duals,
            branching_duals=solution.branching_duals,
            epsilon=solution.epsilon,
        )

    def heuristic_solution(self, instance: ProblemInstance) -> Optional[Solution]:
        """Root seeding solved once as an LP, returned as-is."""
        return self._root(instance).master.solve()


def create_solver(
    time_limit: Optional[float] = 60.0,
    max_nodes: int = 1000,
    max_cg_iterations: int = 100,
    pricing_workers: int = 1,
    lagrangian_iterations: int = 0,
    verbose: bool = True,
    **kwargs,
) -> BranchAndPrice:
    """Factory function to create a configured solver.

    Args:
        time_limit: Wall-clock limit in seconds
        max_nodes: Branch-and-bound node limit
        max_cg_iterations: Column generation iterations per node
        pricing_workers: Threads for concurrent pricing
        lagrangian_iterations: Subgradient steps for the root bound estimate
        verbose: Log progress at INFO level
        **kwargs: Extra BranchAndPriceConfig fields

    Returns:
        Configured BranchAndPrice instance
    """
    config = BranchAndPriceConfig(
        time_limit=time_limit,
        max_nodes=max_nodes,
        column_generation=ColumnGenerationConfig(
            max_iterations=max_cg_iterations,
            pricing_workers=pricing_workers,
            lagrangian_iterations=lagrangian_iterations,
        ),
        verbose=verbose,
        **kwargs,
    )
    return BranchAndPrice(config)


def solve(instance: ProblemInstance, config: Optional[BranchAndPriceConfig] = None) -> Optional[Solution]:
    """Solve a dispatch instance with branch-and-price.

    Returns:
        Best solution found, or None if the instance is infeasible
    """
    return BranchAndPrice(config).solve(instance)
