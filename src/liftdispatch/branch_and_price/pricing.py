"""Per-elevator pricing problem.

Searches for schedules of one elevator with negative reduced cost

    reduced_cost(s) = cost(s) - sum_{rows r served by s} pi_r - pi_e

using best-first branch-and-bound over PricingNode states. Nodes are
ordered by an admissible lower bound on the reduced cost of any schedule
completing them; a node is pruned once its bound reaches the acceptance
threshold theta, which tightens as better schedules are found. A node
reaching the same state as a queued one, later and at a higher reduced
cost, is dropped.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Mapping, Optional
import heapq
import itertools
import logging

from ..models.route import base_route
from ..models.schedule import Column
from .pricing_node import PricingNode

if TYPE_CHECKING:
    from ..models.problem import ProblemInstance, Request
    from ..models.route import RouteState
    from ..models.schedule import Schedule

logger = logging.getLogger(__name__)


@dataclass
class PricingConfig:
    """Configuration for the pricing search.

    Attributes:
        epsilon: A schedule improves the master if its reduced cost is below -epsilon
        max_schedules: Number of improving schedules returned at most (k)
        max_pickup_children: Optional pickups offered per node
        optional_per_schedule: Optional requests after which a route must end
            (None = no limit)
        max_depth: Transitions after which a route may end with optional work left
        max_expansions: Node expansions per solve before the search gives up
    """
    epsilon: float = 1e-6
    max_schedules: int = 5
    max_pickup_children: int = 4
    optional_per_schedule: Optional[int] = None
    max_depth: int = 1000
    max_expansions: int = 20000


class PricingProblem:
    """Best-first branch-and-bound pricing for one elevator.

    Example:
        >>> pricing = PricingProblem(instance, elevator_index=0)
        >>> pricing.update(duals, elevator_dual, required=[], forbidden=[])
        >>> columns = pricing.solve()
    """

    def __init__(
        self,
        instance: ProblemInstance,
        elevator_index: int,
        config: Optional[PricingConfig] = None,
    ):
        self.instance = instance
        self.elevator_index = elevator_index
        self.config = config or PricingConfig()
        self.elevator_dual = 0.0
        self.expansions = 0
        self.exhausted = False
        self._duals: dict[int, float] = {}
        self._required: list[Request] = []
        self._optional: list[Request] = []

    def update(
        self,
        request_duals: Mapping[int, float] | Iterable[float],
        elevator_dual: float,
        required: Iterable[int] = (),
        forbidden: Iterable[int] = (),
    ) -> None:
        """Set the duals and the request categories for the next solve.

        Args:
            request_duals: Effective dual per request row, as a sequence
                aligned with the rows or a mapping from row index
            elevator_dual: Dual of the elevator's convexity row
            required: Row indices this elevator must serve
            forbidden: Row indices this elevator must not serve
        """
        requests = self.instance.unassigned_requests
        if isinstance(request_duals, Mapping):
            duals = {i: float(request_duals.get(i, 0.0)) for i in range(len(requests))}
        else:
            duals = {i: float(v) for i, v in enumerate(request_duals)}

        self._duals = {requests[i].id: duals.get(i, 0.0) for i in range(len(requests))}
        self.elevator_dual = float(elevator_dual)

        required = set(required)
        forbidden = set(forbidden)
        self._required = [requests[i] for i in sorted(required)]
        self._optional = [
            r for i, r in enumerate(requests)
            if i not in required and i not in forbidden
        ]

    def dual(self, request: Request) -> float:
        """Dual paid for serving a request (zero for committed requests)."""
        return self._duals.get(request.id, 0.0)

    def reduced_cost(self, schedule: Schedule) -> float:
        """Reduced cost of a complete schedule at the current duals."""
        served = sum(self.dual(r) for r in schedule.served_requests)
        return schedule.cost - served - self.elevator_dual

    def _rank(self, request: Request) -> tuple:
        return (-self.dual(request), request.id)

    def root_nodes(self) -> list[PricingNode]:
        """One root per admissible first floor of the elevator."""
        elevator = self.instance.elevators[self.elevator_index]
        floors = [elevator.current_floor]
        floors += sorted({c.destination_floor for c in elevator.loaded_calls} - {elevator.current_floor})

        roots = []
        seen = set()
        for floor in floors:
            route = base_route(self.instance, self.elevator_index, floor)
            key = tuple(s.floor for s in route.stops)
            if key in seen:
                continue
            seen.add(key)

            optional = tuple(
                r for r in self._optional
                if r.size <= elevator.capacity and elevator.can_travel(r.direction)
            )
            roots.append(PricingNode(
                route=route,
                mandatory=tuple(self._required),
                optional=optional,
            ))
        return roots

    def _earliest_pickup(self, route: RouteState, request: Request) -> float:
        floors = abs(request.start_floor - route.floor)
        if floors == 0:
            return route.time
        travel = floors * self.instance.drive_per_floor_time
        if route.moving:
            return route.time + travel
        return route.departure_lower_bound() + self.instance.startup_time + travel

    def _cheapest_service(self, route: RouteState, request: Request) -> float:
        """Lower bound on the wait and ride cost of serving a request."""
        pickup = self._earliest_pickup(route, request)
        cost = 0.0
        for call in request.calls:
            ride = self.instance.travel_time(call.start_floor, call.destination_floor)
            cost += call.wait_cost * max(0.0, pickup - call.release_time)
            cost += call.travel_cost * ride
        return cost

    def lower_bound(self, node: PricingNode) -> float:
        """Admissible bound on the reduced cost of any completion of node.

        Carried calls may leave before anything else boards, so the only
        capacity penalty counted is the one a mandatory request pays on its
        own when it is larger than the car. A complete schedule is bounded
        by its exact reduced cost.
        """
        route = node.route
        capacity = route.elevator.capacity
        penalty = self.instance.capacity_penalty

        bound = route.cost - sum(self.dual(r) for r in route.served) - self.elevator_dual
        if node.is_last(self.config):
            return bound

        for request in node.mandatory:
            bound += self._cheapest_service(route, request) - self.dual(request)
            bound += penalty * max(0, request.size - capacity)

        for request in node.optional:
            value = self._cheapest_service(route, request) - self.dual(request)
            if value < 0:
                bound += value

        return bound

    def _label(self, node: PricingNode) -> tuple[tuple, float, float]:
        """Dominance key, clock and normalized reduced cost of a node.

        Two nodes with the same key have the same possible futures. The
        one reaching the state earlier with a lower reduced cost, counting
        the ride time its carried calls have accrued, is never worse.
        """
        route = node.route
        open_index = -2 if route.moving else len(route.stops) - 1
        carried = []
        value = route.cost - sum(self.dual(r) for r in route.served)
        for call, index in route.onboard:
            carried.append((call.destination_floor, call.travel_cost, index == open_index))
            if index == open_index:
                continue
            if index < 0:
                boarded_at = route.elevator.current_time
            else:
                boarded_at = route.stops[index].departure_time
            value += call.travel_cost * (route.time - boarded_at)

        stop = None
        if not route.moving:
            last = route.stops[-1]
            stop = (last.has_action(), last.boarded_calls)
        key = (
            route.floor,
            route.moving,
            route.direction,
            stop,
            tuple(sorted(carried)),
            frozenset(r.id for r in node.mandatory),
            frozenset(r.id for r in node.optional),
            node.served_optional if self.config.optional_per_schedule is not None else None,
            node.depth >= self.config.max_depth,
            node.last_pick,
        )
        return key, route.time, value

    def solve(
        self,
        threshold: Optional[float] = None,
        max_schedules: Optional[int] = None,
    ) -> list[Column]:
        """Search for schedules with reduced cost below the threshold.

        Complete schedules are priced as soon as they are generated, so the
        threshold tightens early. Open nodes are expanded best-first by
        lower bound, skipping those dominated by a node already queued.

        Sets `exhausted` when max_expansions cut the search short; the
        result may then miss improving schedules.

        Args:
            threshold: Initial theta (default -epsilon)
            max_schedules: Stop after this many schedules (default config.max_schedules)

        Returns:
            Improving columns sorted by reduced cost
        """
        limit = max_schedules or self.config.max_schedules
        theta = -self.config.epsilon if threshold is None else threshold
        elevator = self.instance.elevators[self.elevator_index]
        self.expansions = 0
        self.exhausted = False

        if any(not elevator.can_travel(r.direction) for r in self._required):
            logger.debug(f"Elevator {self.elevator_index} cannot serve its required requests")
            return []

        counter = itertools.count()
        queue: list[tuple[float, int, PricingNode]] = []
        fronts: dict[tuple, list[tuple[float, float]]] = {}
        results: list[Column] = []
        generated = self.root_nodes()

        while True:
            for node in generated:
                if node.is_last(self.config):
                    schedule = node.route.finish()
                    reduced_cost = self.reduced_cost(schedule)
                    if reduced_cost < theta:
                        results.append(Column(schedule, self.elevator_index, schedule.cost, reduced_cost))
                        theta = reduced_cost
                        if len(results) >= limit:
                            break
                    continue

                bound = self.lower_bound(node)
                if bound < theta and not self._dominated(node, fronts):
                    heapq.heappush(queue, (bound, next(counter), node))

            if len(results) >= limit:
                break

            node = None
            while queue:
                bound, _, candidate = heapq.heappop(queue)
                if bound < theta:
                    node = candidate
                    break
            if node is None:
                break

            self.expansions += 1
            if self.expansions > self.config.max_expansions:
                self.exhausted = True
                logger.debug(
                    f"Pricing for elevator {self.elevator_index} stopped after "
                    f"{self.config.max_expansions} expansions"
                )
                break
            generated = node.branch(self.config, self._rank)

        results.sort(key=lambda c: c.reduced_cost)
        return results

    def _dominated(self, node: PricingNode, fronts: dict[tuple, list[tuple[float, float]]]) -> bool:
        """Check a node against the Pareto front of its key, updating the front."""
        key, clock, value = self._label(node)
        front = fronts.setdefault(key, [])
        for other_clock, other_value in front:
            if other_clock <= clock + 1e-9 and other_value <= value + 1e-9:
                return True
        front[:] = [(c, v) for c, v in front if not (clock <= c and value <= v)]
        front.append((clock, value))
        return False
