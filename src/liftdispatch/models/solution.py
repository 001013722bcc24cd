"""Solution snapshot of the master problem.

A Solution records the LP values of every column together with the dual
prices of the master rows at the moment it was solved.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
import numpy as np

from .schedule import Schedule

if TYPE_CHECKING:
    from .problem import ProblemInstance

DEFAULT_EPSILON = 1e-6


@dataclass(frozen=True, eq=False)
class Solution:
    """Immutable LP solution over a fixed list of schedules.

    Attributes:
        schedules: Column schedules, aligned with values
        values: Primal value of each column
        objective_value: LP objective
        request_duals: Dual price of each request row
        elevator_duals: Dual price of each elevator convexity row
        load_duals: Dual price of each elevator load row
        branching_duals: Dual price of each branching row, in insertion order
        epsilon: Tolerance used for integrality and selection tests
    """
    schedules: tuple[Schedule, ...]
    values: np.ndarray
    objective_value: float
    request_duals: np.ndarray = field(default_factory=lambda: np.zeros(0))
    elevator_duals: np.ndarray = field(default_factory=lambda: np.zeros(0))
    load_duals: np.ndarray = field(default_factory=lambda: np.zeros(0))
    branching_duals: np.ndarray = field(default_factory=lambda: np.zeros(0))
    epsilon: float = DEFAULT_EPSILON

    @property
    def is_integral(self) -> bool:
        """True if every value is within epsilon of 0 or 1."""
        if len(self.values) == 0:
            return True
        return bool(np.all(np.abs(self.values - np.round(self.values)) <= self.epsilon))

    def is_empty(self) -> bool:
        return len(self.values) == 0

    def get_selected_schedules(self) -> list[Schedule]:
        """Schedules whose value is within epsilon of 1."""
        return [
            s for s, v in zip(self.schedules, self.values)
            if abs(v - 1.0) <= self.epsilon
        ]

    def get_support(self) -> list[tuple[Schedule, float]]:
        """Columns with a positive value."""
        return [
            (s, float(v)) for s, v in zip(self.schedules, self.values)
            if v > self.epsilon
        ]

    def request_flows(self, request_id: int) -> dict[int, float]:
        """Aggregate flow of a request into each elevator."""
        flows: dict[int, float] = {}
        for schedule, value in self.get_support():
            if schedule.serves(request_id):
                flows[schedule.elevator_index] = flows.get(schedule.elevator_index, 0.0) + value
        return flows

    def assignments(self) -> dict[int, int]:
        """Map request id to elevator index for the selected schedules."""
        result = {}
        for schedule in self.get_selected_schedules():
            for request in schedule.served_requests:
                result[request.id] = schedule.elevator_index
        return result

    def request_dual(self, index: int) -> float:
        return float(self.request_duals[index])

    def elevator_dual(self, index: int) -> float:
        return float(self.elevator_duals[index])

    def validate(self, instance: ProblemInstance) -> tuple[bool, list[str]]:
        """Check set-partition and convexity of an integral solution.

        Returns:
            Tuple of (is_valid, list of violation messages)
        """
        violations = []

        if not self.is_integral:
            violations.append("Solution is fractional")

        for request in instance.unassigned_requests:
            total = sum(v for s, v in self.get_support() if s.serves(request.id))
            if abs(total - 1.0) > self.epsilon:
                violations.append(f"Request {request.id} covered {total:.4f} times")

        for k in range(instance.n_elevators):
            total = sum(v for s, v in self.get_support() if s.elevator_index == k)
            if abs(total - 1.0) > self.epsilon:
                violations.append(f"Elevator {k} selects {total:.4f} schedules")

        return len(violations) == 0, violations

    def summary(self) -> str:
        """Return a summary string of the solution."""
        selected = self.get_selected_schedules()
        served = sum(s.n_requests for s in selected)
        return (
            f"Solution: objective={self.objective_value:.2f}, "
            f"integral={self.is_integral}, columns={len(self.values)}, "
            f"selected={len(selected)}, requests served={served}"
        )

    def to_dict(self) -> dict:
        """Convert solution to dictionary for serialization."""
        return {
            'objective_value': self.objective_value,
            'is_integral': self.is_integral,
            'selected': [s.to_dict() for s in self.get_selected_schedules()],
            'values': [float(v) for v in self.values],
        }

    def __repr__(self) -> str:
        return (
            f"Solution(objective={self.objective_value:.2f}, "
            f"integral={self.is_integral}, columns={len(self.values)})"
        )
