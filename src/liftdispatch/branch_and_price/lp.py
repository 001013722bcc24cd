"""LP backend for the master problem.

The master problem only needs a generic linear program service:
solve(rows, columns) -> primal values, objective, duals by row name, or
None when infeasible. GlopBackend provides it with the GLOP simplex
solver of Google OR-Tools; any other engine honouring LPBackend can be
substituted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol, Sequence
import logging
import math

import numpy as np
from ortools.linear_solver import pywraplp

logger = logging.getLogger(__name__)


class LPSolverError(RuntimeError):
    """Raised when the LP engine fails for reasons other than infeasibility."""


@dataclass(frozen=True)
class LPRow:
    """Named constraint lower <= a.x <= upper."""
    name: str
    lower: float
    upper: float

    @classmethod
    def equal(cls, name: str, rhs: float) -> LPRow:
        return cls(name, rhs, rhs)

    @classmethod
    def at_most(cls, name: str, rhs: float) -> LPRow:
        return cls(name, -math.inf, rhs)


@dataclass(frozen=True)
class LPColumn:
    """Variable with objective cost and sparse row coefficients."""
    name: str
    cost: float
    coefficients: Mapping[str, float] = field(default_factory=dict)
    lower: float = 0.0
    upper: float = math.inf


@dataclass(frozen=True, eq=False)
class LPResult:
    """Optimal LP solution.

    Attributes:
        primal: Value of each column, in column order
        objective: Objective value
        duals: Dual price of each row by name
    """
    primal: np.ndarray
    objective: float
    duals: dict[str, float]


class LPBackend(Protocol):
    """Contract of an LP engine usable by the master problem."""

    def solve(self, rows: Sequence[LPRow], columns: Sequence[LPColumn]) -> Optional[LPResult]:
        ...


@dataclass
class GlopConfig:
    """Configuration for the GLOP backend.

    Attributes:
        time_limit_seconds: Time limit per LP solve (None = no limit)
        log_search: Enable solver output
    """
    time_limit_seconds: Optional[float] = None
    log_search: bool = False


class GlopBackend:
    """LP backend built on OR-Tools pywraplp with GLOP.

    A fresh solver is built for every call, so no solver handle is shared
    between master problems.

    Example:
        >>> backend = GlopBackend()
        >>> rows = [LPRow.equal("cover", 1.0)]
        >>> columns = [LPColumn("x", 3.0, {"cover": 1.0})]
        >>> backend.solve(rows, columns).objective
        3.0
    """

    SOLVER_ID = "GLOP"

    def __init__(self, config: Optional[GlopConfig] = None):
        self.config = config or GlopConfig()

    def solve(self, rows: Sequence[LPRow], columns: Sequence[LPColumn]) -> Optional[LPResult]:
        """Solve a minimization LP.

        Args:
            rows: Constraints, each with a unique name
            columns: Variables with costs and coefficients

        Returns:
            LPResult, or None if the LP is infeasible

        Raises:
            LPSolverError: If the solver cannot be created or ends abnormally
        """
        touched = {name for c in columns for name, v in c.coefficients.items() if v != 0.0}
        for row in rows:
            if row.name not in touched and not row.lower <= 0.0 <= row.upper:
                logger.debug(f"Row {row.name} has no columns and excludes zero")
                return None

        solver = pywraplp.Solver.CreateSolver(self.SOLVER_ID)
        if solver is None:
            raise LPSolverError(f"OR-Tools solver {self.SOLVER_ID} is not available")
        if self.config.log_search:
            solver.EnableOutput()
        if self.config.time_limit_seconds is not None:
            solver.SetTimeLimit(int(self.config.time_limit_seconds * 1000))

        infinity = solver.infinity()

        def bound(value: float) -> float:
            if math.isinf(value):
                return infinity if value > 0 else -infinity
            return value

        constraints = {}
        for row in rows:
            constraints[row.name] = solver.Constraint(bound(row.lower), bound(row.upper), row.name)

        objective = solver.Objective()
        variables = []
        for column in columns:
            var = solver.NumVar(bound(column.lower), bound(column.upper), column.name)
            objective.SetCoefficient(var, column.cost)
            for row_name, coefficient in column.coefficients.items():
                if coefficient != 0.0:
                    constraints[row_name].SetCoefficient(var, coefficient)
            variables.append(var)
        objective.SetMinimization()

        status = solver.Solve()

        if status == pywraplp.Solver.INFEASIBLE:
            logger.debug(f"LP with {len(rows)} rows and {len(columns)} columns is infeasible")
            return None
        if status != pywraplp.Solver.OPTIMAL:
            raise LPSolverError(f"GLOP ended with status {status}")

        primal = np.array([v.solution_value() for v in variables], dtype=np.float64)
        duals = {name: c.dual_value() for name, c in constraints.items()}
        return LPResult(primal=primal, objective=objective.Value(), duals=duals)
