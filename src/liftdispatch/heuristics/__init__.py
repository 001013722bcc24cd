"""Constructive heuristics for seeding and repairing the master problem."""

from .constructive import (
    PartitionContext,
    empty_schedule,
    greedy_partition,
    greedy_schedule,
    optional_requests,
    required_requests,
    seed_schedules,
)

__all__ = [
    "PartitionContext",
    "empty_schedule",
    "greedy_partition",
    "greedy_schedule",
    "optional_requests",
    "required_requests",
    "seed_schedules",
]
