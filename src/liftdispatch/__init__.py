"""Elevator dispatch by branch-and-price.

Assigns waiting passenger requests to elevators and plans timed routes
that minimize waiting, riding and capacity violation cost.
"""

from .models import Elevator, ProblemInstance, Request, Solution, parse_instance
from .branch_and_price import BranchAndPrice, BranchAndPriceConfig, create_solver, solve

__version__ = "0.1.0"

__all__ = [
    "Elevator",
    "ProblemInstance",
    "Request",
    "Solution",
    "parse_instance",
    "BranchAndPrice",
    "BranchAndPriceConfig",
    "create_solver",
    "solve",
]
