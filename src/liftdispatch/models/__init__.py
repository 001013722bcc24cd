"""Data models for elevator dispatch problems."""

from .problem import ALL_DIRECTIONS, Call, Direction, Elevator, ProblemInstance, Request
from .schedule import Column, Schedule, Stop
from .route import RouteState, base_route, drop_order, route_for_requests
from .solution import Solution
from .parsers import (
    instance_from_dict,
    instance_to_dict,
    parse_instance,
    solution_to_dict,
    write_instance,
)

__all__ = [
    # Problem classes
    "ALL_DIRECTIONS",
    "Call",
    "Direction",
    "Elevator",
    "ProblemInstance",
    "Request",
    # Schedules and routes
    "Column",
    "Schedule",
    "Stop",
    "RouteState",
    "base_route",
    "drop_order",
    "route_for_requests",
    # Solution
    "Solution",
    # Parsers
    "instance_from_dict",
    "instance_to_dict",
    "parse_instance",
    "solution_to_dict",
    "write_instance",
]
