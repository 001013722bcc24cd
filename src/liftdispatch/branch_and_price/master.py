"""Restricted master problem of the branch-and-price solver.

The master is a set-partitioning LP over the schedules known so far:

    min   sum_s cost_s x_s
    s.t.  sum_{s serves r} x_s             = 1        (request_r)
          sum_{s of e} x_s                 = 1        (elevator_e)
          sum_{s of e} rows(s) x_s        <= limit    (load_e)
          sum_{s serves r, e(s) in G} x_s  = 1 or 0   (branch_b)
          x >= 0

The model is stored as plain column definitions and branching decisions.
Each solve replays them into a fresh LP, and clone() replays them into
a new model.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional
import logging
import math

import numpy as np

from ..heuristics.constructive import greedy_schedule
from ..models.solution import Solution
from .lp import GlopBackend, LPColumn, LPRow

if TYPE_CHECKING:
    from ..models.problem import ProblemInstance
    from ..models.schedule import Schedule
    from .lp import LPBackend

logger = logging.getLogger(__name__)


@dataclass
class MasterConfig:
    """Configuration for the master problem.

    Attributes:
        epsilon: Numeric tolerance for reduced costs and integrality
        max_column_cost: Columns costing this much or more are degenerate
        max_requests_per_elevator: Right-hand side of the load rows
            (None = number of unassigned requests, which never binds)
    """
    epsilon: float = 1e-6
    max_column_cost: float = 1e9
    max_requests_per_elevator: Optional[int] = None


@dataclass(frozen=True)
class BranchingDecision:
    """Force a request into (assign) or out of (forbid) an elevator group.

    Attributes:
        request_index: Row index of the request
        elevator_group: Elevator indices of the group
        assign: True for "served inside the group", False for "not served
            inside the group"
    """
    request_index: int
    elevator_group: frozenset[int]
    assign: bool

    @property
    def rhs(self) -> float:
        return 1.0 if self.assign else 0.0

    def __repr__(self) -> str:
        verb = "into" if self.assign else "out of"
        return f"Branch(request {self.request_index} {verb} {sorted(self.elevator_group)})"


def request_row(index: int) -> str:
    return f"request_{index}"


def elevator_row(index: int) -> str:
    return f"elevator_{index}"


def load_row(index: int) -> str:
    return f"load_{index}"


def branch_row(index: int) -> str:
    return f"branch_{index}"


class MasterModel:
    """Set-partitioning LP over elevator schedules.

    Example:
        >>> master = MasterModel(instance)
        >>> for schedule in seed_schedules(instance):
        ...     master.add_schedule(schedule, schedule.elevator_index)
        >>> solution = master.solve()
    """

    def __init__(
        self,
        instance: ProblemInstance,
        config: Optional[MasterConfig] = None,
        backend: Optional[LPBackend] = None,
    ):
        self.instance = instance
        self.config = config or MasterConfig()
        self.backend = backend or GlopBackend()
        self.schedules: list[Schedule] = []
        self.branching: list[BranchingDecision] = []
        self._signatures: set = set()
        self._rows_by_id = {r.id: i for i, r in enumerate(instance.unassigned_requests)}

    @property
    def n_columns(self) -> int:
        return len(self.schedules)

    def served_rows(self, schedule: Schedule) -> list[int]:
        """Row indices of the unassigned requests a schedule serves."""
        return [
            self._rows_by_id[r.id] for r in schedule.served_requests
            if r.id in self._rows_by_id
        ]

    def contains(self, schedule: Schedule) -> bool:
        return schedule.signature() in self._signatures

    def _is_degenerate(self, schedule: Schedule) -> bool:
        return (
            not schedule.stops
            or not math.isfinite(schedule.cost)
            or schedule.cost >= self.config.max_column_cost
        )

    def add_schedule(self, schedule: Schedule, elevator_index: int) -> bool:
        """Append a schedule as a new column.

        A degenerate schedule is replaced by the greedy nearest-request
        schedule of the same requests. Duplicate columns are ignored.

        Args:
            schedule: Schedule to add
            elevator_index: Elevator the schedule belongs to

        Returns:
            True if a column was added

        Raises:
            IndexError: If the elevator index is out of range
            ValueError: If the schedule belongs to another elevator
        """
        if not 0 <= elevator_index < self.instance.n_elevators:
            raise IndexError(f"Elevator index {elevator_index} out of range")
        if schedule.elevator_index != elevator_index:
            raise ValueError(
                f"Schedule of elevator {schedule.elevator_index} added for elevator {elevator_index}"
            )

        if self._is_degenerate(schedule):
            rows = [self.instance.unassigned_requests[i] for i in self.served_rows(schedule)]
            replacement = greedy_schedule(self.instance, elevator_index, rows)
            logger.debug(
                f"Degenerate column for elevator {elevator_index} (cost={schedule.cost}), "
                f"using greedy schedule with cost {replacement.cost:.2f}"
            )
            if self._is_degenerate(replacement):
                return False
            schedule = replacement

        signature = schedule.signature()
        if signature in self._signatures:
            return False
        self._signatures.add(signature)
        self.schedules.append(schedule)
        return True

    def add_schedules(self, schedules: Iterable[Schedule]) -> int:
        """Add several schedules, returning how many became columns."""
        return sum(self.add_schedule(s, s.elevator_index) for s in schedules)

    def add_branching_constraint(
        self,
        request_index: int,
        elevator_group: Iterable[int],
        assign: bool,
    ) -> BranchingDecision:
        """Add a branching row on the flow of a request into a group.

        Raises:
            IndexError: If the request index is out of range
            ValueError: If the group is empty or names unknown elevators
        """
        self.instance.get_request_at(request_index)
        group = frozenset(elevator_group)
        if not group:
            raise ValueError("Branching group must not be empty")
        if not group <= frozenset(range(self.instance.n_elevators)):
            raise ValueError(f"Branching group {sorted(group)} names unknown elevators")

        decision = BranchingDecision(request_index, group, assign)
        self.branching.append(decision)
        return decision

    def allowed_elevators(self, request_index: int) -> frozenset[int]:
        """Elevators still allowed to serve a request under the branching rows."""
        allowed = frozenset(range(self.instance.n_elevators))
        for decision in self.branching:
            if decision.request_index != request_index:
                continue
            if decision.assign:
                allowed &= decision.elevator_group
            else:
                allowed -= decision.elevator_group
        return allowed

    def allowed_sets(self) -> tuple[frozenset[int], ...]:
        return tuple(self.allowed_elevators(i) for i in range(self.instance.n_requests))

    def coefficients(self, schedule: Schedule) -> dict[str, float]:
        """Row coefficients of a schedule's column."""
        k = schedule.elevator_index
        rows = self.served_rows(schedule)
        coefficients = {elevator_row(k): 1.0}
        for i in rows:
            coefficients[request_row(i)] = 1.0
        if rows:
            coefficients[load_row(k)] = float(len(rows))
        for b, decision in enumerate(self.branching):
            if decision.request_index in rows and k in decision.elevator_group:
                coefficients[branch_row(b)] = 1.0
        return coefficients

    def _rows(self) -> list[LPRow]:
        n_requests = self.instance.n_requests
        limit = self.config.max_requests_per_elevator
        if limit is None:
            limit = n_requests

        rows = [LPRow.equal(request_row(i), 1.0) for i in range(n_requests)]
        rows += [LPRow.equal(elevator_row(k), 1.0) for k in range(self.instance.n_elevators)]
        rows += [LPRow.at_most(load_row(k), float(limit)) for k in range(self.instance.n_elevators)]
        rows += [LPRow.equal(branch_row(b), d.rhs) for b, d in enumerate(self.branching)]
        return rows

    def solve(self) -> Optional[Solution]:
        """Solve the restricted LP.

        Returns:
            Solution with primal values and duals, or None if infeasible
        """
        schedules = tuple(self.schedules)
        columns = [
            LPColumn(f"x_{j}", s.cost, self.coefficients(s))
            for j, s in enumerate(schedules)
        ]
        result = self.backend.solve(self._rows(), columns)
        if result is None:
            logger.debug(f"Master with {len(columns)} columns is infeasible")
            return None

        duals = result.duals
        n_elevators = self.instance.n_elevators
        return Solution(
            schedules=schedules,
            values=result.primal,
            objective_value=result.objective,
            request_duals=np.array([duals[request_row(i)] for i in range(self.instance.n_requests)]),
            elevator_duals=np.array([duals[elevator_row(k)] for k in range(n_elevators)]),
            load_duals=np.array([duals[load_row(k)] for k in range(n_elevators)]),
            branching_duals=np.array([duals[branch_row(b)] for b in range(len(self.branching))]),
            epsilon=self.config.epsilon,
        )

    def effective_duals(self, solution: Solution, elevator_index: int) -> np.ndarray:
        """Price each request row pays to a schedule of one elevator.

        Combines the request dual, the elevator's load dual and the duals
        of branching rows whose group contains the elevator.
        """
        duals = solution.request_duals + solution.load_duals[elevator_index]
        duals = np.array(duals, dtype=np.float64)
        for b, decision in enumerate(self.branching):
            if b < len(solution.branching_duals) and elevator_index in decision.elevator_group:
                duals[decision.request_index] += solution.branching_duals[b]
        return duals

    def reduced_cost(self, schedule: Schedule, solution: Solution) -> float:
        """Reduced cost of a schedule at the duals of a solution."""
        k = schedule.elevator_index
        duals = self.effective_duals(solution, k)
        served = sum(duals[i] for i in self.served_rows(schedule))
        return schedule.cost - served - solution.elevator_dual(k)

    def clone(self) -> MasterModel:
        """Independent copy replaying every column and branching row."""
        model = MasterModel(self.instance, self.config, self.backend)
        for schedule in self.schedules:
            model.add_schedule(schedule, schedule.elevator_index)
        for decision in self.branching:
            model.add_branching_constraint(
                decision.request_index, decision.elevator_group, decision.assign
            )
        return model

    def __repr__(self) -> str:
        return (
            f"MasterModel(columns={self.n_columns}, requests={self.instance.n_requests}, "
            f"elevators={self.instance.n_elevators}, branches={len(self.branching)})"
        )
