"""Constructive heuristics for elevator schedules.

Provides fast schedules used to seed and repair the master problem:
- Empty schedules: only the mandatory work of each elevator
- Single/pair schedules: one or two extra requests served in sequence
- Greedy nearest-request schedules: a full route for any request set
- Greedy partition: every request assigned to one elevator, giving a
  column set that is always feasible for the master problem
"""
from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations
from typing import TYPE_CHECKING, Optional, Sequence
import logging

from ..models.route import base_route
from ..models.schedule import Schedule

if TYPE_CHECKING:
    from ..models.problem import ProblemInstance, Request

logger = logging.getLogger(__name__)


def empty_schedule(instance: ProblemInstance, elevator_index: int) -> Schedule:
    """Schedule doing only the elevator's mandatory work.

    For an elevator without loaded calls or assigned requests this is a
    single stop at its current floor with zero cost.
    """
    return base_route(instance, elevator_index).finish()


def greedy_schedule(
    instance: ProblemInstance,
    elevator_index: int,
    requests: Sequence[Request],
) -> Schedule:
    """Greedy nearest-request schedule.

    After the mandatory work, repeatedly serves the request whose start
    floor is closest to the car, ties broken by input order.

    Time Complexity: O(n²) where n = number of requests

    Args:
        instance: Problem instance
        elevator_index: Elevator to build the schedule for
        requests: Requests to serve

    Returns:
        Schedule serving all given requests
    """
    state = base_route(instance, elevator_index)
    remaining = list(requests)

    while remaining:
        best_pos = min(
            range(len(remaining)),
            key=lambda i: (instance.travel_time(state.floor, remaining[i].start_floor), i),
        )
        state = state.serve(remaining.pop(best_pos))

    return state.finish()


def required_requests(
    instance: ProblemInstance,
    allowed: Sequence[frozenset[int]],
    elevator_index: int,
) -> list[Request]:
    """Rows that only this elevator may serve."""
    return [
        instance.unassigned_requests[i]
        for i, elevators in enumerate(allowed)
        if elevators == frozenset({elevator_index})
    ]


def optional_requests(
    instance: ProblemInstance,
    allowed: Sequence[frozenset[int]],
    elevator_index: int,
) -> list[Request]:
    """Rows this elevator may serve but does not have to."""
    return [
        instance.unassigned_requests[i]
        for i, elevators in enumerate(allowed)
        if elevator_index in elevators and elevators != frozenset({elevator_index})
    ]


def unrestricted(instance: ProblemInstance) -> tuple[frozenset[int], ...]:
    """Allowed elevator sets when no branching decision exists."""
    everyone = frozenset(range(instance.n_elevators))
    return tuple(everyone for _ in instance.unassigned_requests)


def seed_schedules(
    instance: ProblemInstance,
    allowed: Optional[Sequence[frozenset[int]]] = None,
    include_pairs: bool = True,
) -> list[Schedule]:
    """Empty, single-request and pair-request schedules per elevator.

    Every schedule of an elevator also serves the rows only that elevator
    may serve, so the schedules respect the given allowed sets.

    Args:
        instance: Problem instance
        allowed: Allowed elevator set per request row (None = no restriction)
        include_pairs: Also build schedules for every pair of requests

    Returns:
        List of schedules, grouped by elevator
    """
    if allowed is None:
        allowed = unrestricted(instance)

    schedules = []
    for k in range(instance.n_elevators):
        required = required_requests(instance, allowed, k)
        optional = optional_requests(instance, allowed, k)

        schedules.append(greedy_schedule(instance, k, required))
        for request in optional:
            schedules.append(greedy_schedule(instance, k, required + [request]))
        if include_pairs:
            for first, second in combinations(optional, 2):
                schedules.append(greedy_schedule(instance, k, required + [first, second]))

    logger.debug(f"Built {len(schedules)} seed schedules for {instance.n_elevators} elevators")
    return schedules


def greedy_partition(
    instance: ProblemInstance,
    allowed: Optional[Sequence[frozenset[int]]] = None,
) -> list[list[Request]]:
    """Assign every request to one allowed elevator.

    Requests are processed in row order. Each one goes to the allowed
    elevator whose greedy schedule cost grows the least.

    Returns:
        Request list per elevator
    """
    if allowed is None:
        allowed = unrestricted(instance)

    groups: list[list[Request]] = [[] for _ in range(instance.n_elevators)]
    costs = [greedy_schedule(instance, k, []).cost for k in range(instance.n_elevators)]

    for i, request in enumerate(instance.unassigned_requests):
        best_k = None
        best_delta = float('inf')
        best_cost = 0.0
        for k in sorted(allowed[i]):
            cost = greedy_schedule(instance, k, groups[k] + [request]).cost
            if cost - costs[k] < best_delta:
                best_k = k
                best_delta = cost - costs[k]
                best_cost = cost
        if best_k is None:
            logger.warning(f"Request {request.id} has no allowed elevator")
            continue
        groups[best_k].append(request)
        costs[best_k] = best_cost

    return groups


@dataclass
class PartitionContext:
    """Heuristic request partition cached for one search node.

    Each branch-and-bound node owns its own context, so the partition
    always reflects that node's branching decisions and is never shared
    with siblings or parents.

    Attributes:
        instance: Problem instance
        allowed: Allowed elevator set per request row at this node
    """
    instance: ProblemInstance
    allowed: tuple[frozenset[int], ...]
    _groups: Optional[list[list[Request]]] = field(default=None, init=False, repr=False)

    @property
    def groups(self) -> list[list[Request]]:
        """Request groups per elevator, computed on first use."""
        if self._groups is None:
            self._groups = greedy_partition(self.instance, self.allowed)
        return self._groups

    def schedules(self) -> list[Schedule]:
        """One greedy schedule per elevator covering its group."""
        return [
            greedy_schedule(self.instance, k, group)
            for k, group in enumerate(self.groups)
        ]

    def feasibility_schedules(self, include_pairs: bool = True) -> list[Schedule]:
        """Seed schedules plus the partition schedules for this node."""
        return seed_schedules(self.instance, self.allowed, include_pairs) + self.schedules()
