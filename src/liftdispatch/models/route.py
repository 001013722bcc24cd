"""Incremental route timing and cost evaluation.

RouteState is an immutable snapshot of a partially built route: where the
car is, what it carries, and what the route has cost so far. Every
transition returns a new state, so search nodes can share prefixes
without copying or aliasing each other's schedules.

Timing model:
    - The route starts with a stop at the car's current floor and time.
    - Leaving a stop takes its dwell time plus startup_time; each floor
      passed takes drive_per_floor_time.
    - Dwell is zero for a stop without actions, otherwise
      max(stop_time, load_time * boarded calls).

Cost model:
    - wait: wait_cost * max(0, pickup stop arrival - release time)
    - ride: travel_cost * (drop arrival - pickup stop departure)
    - capacity: capacity_penalty per call boarding while the car already
      carries capacity calls or more; drops free room again
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Iterable, Sequence

from .problem import Call, Direction, Request
from .schedule import Schedule, Stop

if TYPE_CHECKING:
    from .problem import ProblemInstance


@dataclass(frozen=True, slots=True, eq=False)
class RouteState:
    """Immutable partial route of one elevator.

    Attributes:
        instance: Problem instance providing timing constants
        elevator_index: Elevator the route belongs to
        stops: Stops so far; the last one is open unless the car is moving
        floor: Current floor of the car
        time: Arrival time at the open stop, or passing time when moving
        moving: True while the car is between stops
        direction: Current travel direction (IDLE when nothing is carried)
        load: Calls currently on board
        cost: Cost accrued so far
        penalty_cost: Capacity penalty part of cost
        onboard: Carried calls with the index of their pickup stop
            (-1 for calls loaded before the plan started)
        served: Requests picked up so far
    """
    instance: ProblemInstance
    elevator_index: int
    stops: tuple[Stop, ...]
    floor: int
    time: float
    moving: bool
    direction: Direction
    load: int
    cost: float
    penalty_cost: float
    onboard: tuple[tuple[Call, int], ...]
    served: tuple[Request, ...] = ()

    @classmethod
    def start(cls, instance: ProblemInstance, elevator_index: int) -> RouteState:
        """Initial state: the car stopped at its current floor."""
        elevator = instance.elevators[elevator_index]
        onboard = tuple((c, -1) for c in elevator.loaded_calls)
        stop = Stop(
            floor=elevator.current_floor,
            arrival_time=elevator.current_time,
            departure_time=elevator.current_time,
            pending_drop_floors=frozenset(c.destination_floor for c in elevator.loaded_calls),
        )
        excess = max(0, elevator.load - elevator.capacity)
        penalty = instance.capacity_penalty * excess
        return cls(
            instance=instance,
            elevator_index=elevator_index,
            stops=(stop,),
            floor=elevator.current_floor,
            time=elevator.current_time,
            moving=False,
            direction=elevator.current_direction if onboard else Direction.IDLE,
            load=elevator.load,
            cost=penalty,
            penalty_cost=penalty,
            onboard=onboard,
        )

    @property
    def elevator(self):
        return self.instance.elevators[self.elevator_index]

    @property
    def pending_drop_floors(self) -> frozenset[int]:
        return frozenset(c.destination_floor for c, _ in self.onboard)

    @property
    def effective_direction(self) -> Direction:
        """Direction constraining pickups; an empty car accepts any."""
        return self.direction if self.onboard else Direction.IDLE

    def departure_lower_bound(self) -> float:
        """Earliest time the car can leave its current position."""
        if self.moving:
            return self.time
        return self.time + self._dwell(self.stops[-1])

    def fits(self, request: Request) -> bool:
        """Check if a request can board without exceeding capacity."""
        return self.load + request.size <= self.elevator.capacity

    def has_drop_here(self) -> bool:
        return any(c.destination_floor == self.floor for c, _ in self.onboard)

    def _dwell(self, stop: Stop) -> float:
        if not stop.has_action():
            return 0.0
        return max(self.instance.stop_time, self.instance.load_time * stop.boarded_calls)

    def _open_stop(self) -> RouteState:
        if not self.moving:
            return self
        stop = Stop(
            floor=self.floor,
            arrival_time=self.time,
            departure_time=self.time,
            pending_drop_floors=self.pending_drop_floors,
        )
        return replace(self, stops=self.stops + (stop,), moving=False)

    def _closed_stops(self, direction: Direction) -> tuple[tuple[Stop, ...], float]:
        """Stops with the open stop finalized, and its departure time."""
        last = self.stops[-1]
        departure = last.arrival_time + self._dwell(last)
        closed = replace(last, departure_time=departure, direction=direction)
        return self.stops[:-1] + (closed,), departure

    def pickup(self, request: Request) -> RouteState:
        """Board all calls of a request at the current floor."""
        state = self._open_stop()
        stop = state.stops[-1]
        index = len(state.stops) - 1

        wait_cost = sum(
            c.wait_cost * max(0.0, stop.arrival_time - c.release_time) for c in request.calls
        )
        capacity = state.elevator.capacity
        new_load = state.load + request.size
        penalty = state.instance.capacity_penalty * (
            max(0, new_load - capacity) - max(0, state.load - capacity)
        )

        onboard = state.onboard + tuple((c, index) for c in request.calls)
        new_stop = replace(
            stop,
            pickups=stop.pickups + (request,),
            pending_drop_floors=frozenset(c.destination_floor for c, _ in onboard),
        )
        return replace(
            state,
            stops=state.stops[:-1] + (new_stop,),
            direction=request.direction if not state.onboard else state.direction,
            load=new_load,
            cost=state.cost + wait_cost + penalty,
            penalty_cost=state.penalty_cost + penalty,
            onboard=onboard,
            served=state.served + (request,),
        )

    def drop_here(self) -> RouteState:
        """Drop every carried call destined for the current floor."""
        state = self._open_stop()
        stop = state.stops[-1]
        open_index = len(state.stops) - 1

        leaving = []
        staying = []
        ride_cost = 0.0
        for call, index in state.onboard:
            if call.destination_floor != state.floor:
                staying.append((call, index))
                continue
            leaving.append(call)
            if index < 0:
                boarded_at = state.elevator.current_time
            elif index == open_index:
                boarded_at = stop.arrival_time
            else:
                boarded_at = state.stops[index].departure_time
            ride_cost += call.travel_cost * (stop.arrival_time - boarded_at)

        if not leaving:
            return state

        new_stop = replace(
            stop,
            drops=stop.drops + tuple(leaving),
            pending_drop_floors=frozenset(c.destination_floor for c, _ in staying),
        )
        return replace(
            state,
            stops=state.stops[:-1] + (new_stop,),
            direction=state.direction if staying else Direction.IDLE,
            load=state.load - len(leaving),
            cost=state.cost + ride_cost,
            onboard=tuple(staying),
        )

    def move(self, direction: Direction) -> RouteState:
        """Advance the car by one floor."""
        drive = self.instance.drive_per_floor_time
        if self.moving:
            stops = self.stops
            time = self.time + drive
        else:
            stops, departure = self._closed_stops(direction)
            time = departure + self.instance.startup_time + drive
        return replace(
            self,
            stops=stops,
            floor=self.floor + int(direction),
            time=time,
            moving=True,
            direction=direction,
        )

    def travel_to(self, floor: int) -> RouteState:
        """Drive straight to a floor and open a stop there."""
        if floor == self.floor:
            return self._open_stop()
        direction = Direction.between(self.floor, floor)
        distance = abs(floor - self.floor) * self.instance.drive_per_floor_time
        if self.moving:
            stops = self.stops
            time = self.time + distance
        else:
            stops, departure = self._closed_stops(direction)
            time = departure + self.instance.startup_time + distance
        moved = replace(
            self,
            stops=stops,
            floor=floor,
            time=time,
            moving=True,
            direction=direction if self.onboard else self.direction,
        )
        return moved._open_stop()

    def deliver(self, floors: Iterable[int]) -> RouteState:
        """Visit floors in order, dropping whatever is due at each."""
        state = self
        for floor in floors:
            state = state.travel_to(floor).drop_here()
        return state

    def serve(self, request: Request) -> RouteState:
        """Pick up a request and carry it to its destination floors."""
        state = self.travel_to(request.start_floor)
        if state.has_drop_here():
            state = state.drop_here()
        state = state.pickup(request)
        destinations = {c.destination_floor for c in request.calls}
        return state.deliver(drop_order(state.floor, request.direction, destinations))

    def finish(self) -> Schedule:
        """Close the route and return it as a schedule."""
        if self.moving:
            stops = self.stops
        else:
            stops, _ = self._closed_stops(Direction.IDLE)
        return Schedule(
            elevator_index=self.elevator_index,
            stops=stops,
            cost=self.cost,
            served_requests=self.served,
            capacity_penalty_cost=self.penalty_cost,
        )

    def __repr__(self) -> str:
        return (
            f"RouteState(elevator={self.elevator_index}, floor={self.floor}, "
            f"t={self.time:.1f}, load={self.load}, cost={self.cost:.2f})"
        )


def drop_order(current_floor: int, direction: Direction, floors: Iterable[int]) -> list[int]:
    """Order drop floors consistently with a travel direction.

    Floors ahead come first, nearest first, then the floors behind,
    nearest first. An idle car simply goes nearest first.
    """
    floors = sorted(set(floors))
    if direction == Direction.UP:
        ahead = [f for f in floors if f >= current_floor]
        behind = [f for f in reversed(floors) if f < current_floor]
        return ahead + behind
    if direction == Direction.DOWN:
        ahead = [f for f in reversed(floors) if f <= current_floor]
        behind = [f for f in floors if f > current_floor]
        return ahead + behind
    return sorted(floors, key=lambda f: (abs(f - current_floor), f))


def base_route(
    instance: ProblemInstance,
    elevator_index: int,
    first_floor: int | None = None,
) -> RouteState:
    """Route with all mandatory work of an elevator already done.

    The car first heads to `first_floor` (its current floor by default),
    then drops every loaded call in direction order, then serves the
    requests already assigned to it one after another.
    """
    elevator = instance.elevators[elevator_index]
    state = RouteState.start(instance, elevator_index)

    pending = {c.destination_floor for c in elevator.loaded_calls}
    if state.has_drop_here():
        state = state.drop_here()
        pending.discard(state.floor)

    if first_floor is not None and first_floor != state.floor:
        state = state.travel_to(first_floor).drop_here()
        pending.discard(first_floor)

    direction = elevator.current_direction
    if first_floor is not None and first_floor != elevator.current_floor:
        direction = Direction.between(elevator.current_floor, first_floor)
    state = state.deliver(drop_order(state.floor, direction, pending))

    for request in elevator.assigned_requests:
        state = state.serve(request)
    return state


def route_for_requests(
    instance: ProblemInstance,
    elevator_index: int,
    requests: Sequence[Request],
) -> RouteState:
    """Base route followed by the given requests served in order."""
    state = base_route(instance, elevator_index)
    for request in requests:
        state = state.serve(request)
    return state
