"""Branch-and-price solver components."""

from .lp import GlopBackend, GlopConfig, LPBackend, LPColumn, LPResult, LPRow, LPSolverError
from .master import BranchingDecision, MasterConfig, MasterModel
from .pricing_node import PricingNode
from .pricing import PricingConfig, PricingProblem
from .column_generation import ColumnGeneration, ColumnGenerationConfig, ColumnGenerationResult
from .driver import (
    BranchAndPrice,
    BranchAndPriceConfig,
    BranchAndPriceStatistics,
    BranchingChoice,
    SearchNode,
    create_solver,
    solve,
)

__all__ = [
    # LP adapter
    "GlopBackend",
    "GlopConfig",
    "LPBackend",
    "LPColumn",
    "LPResult",
    "LPRow",
    "LPSolverError",
    # Master problem
    "BranchingDecision",
    "MasterConfig",
    "MasterModel",
    # Pricing
    "PricingNode",
    "PricingConfig",
    "PricingProblem",
    # Column generation
    "ColumnGeneration",
    "ColumnGenerationConfig",
    "ColumnGenerationResult",
    # Branch-and-bound driver
    "BranchAndPrice",
    "BranchAndPriceConfig",
    "BranchAndPriceStatistics",
    "BranchingChoice",
    "SearchNode",
    "create_solver",
    "solve",
]
