"""Core data models for elevator dispatch problems.

This module defines the fundamental data structures for describing one
dispatch round: elevators with their current state, the passenger
requests waiting to be assigned, and the timing constants of the building.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional
import numpy as np


class Direction(IntEnum):
    """Travel direction of an elevator or a request."""
    DOWN = -1
    IDLE = 0
    UP = 1

    @classmethod
    def between(cls, from_floor: int, to_floor: int) -> Direction:
        """Direction needed to go from one floor to another."""
        if to_floor > from_floor:
            return cls.UP
        if to_floor < from_floor:
            return cls.DOWN
        return cls.IDLE


ALL_DIRECTIONS = frozenset({Direction.UP, Direction.DOWN})


@dataclass(frozen=True, slots=True)
class Call:
    """One passenger unit travelling between two floors.

    Attributes:
        release_time: Time at which the passenger started waiting
        start_floor: Floor where the passenger boards
        destination_floor: Floor where the passenger leaves
        wait_cost: Cost per unit of waiting time
        travel_cost: Cost per unit of riding time
    """
    release_time: float
    start_floor: int
    destination_floor: int
    wait_cost: float = 1.0
    travel_cost: float = 1.0

    @property
    def direction(self) -> Direction:
        return Direction.between(self.start_floor, self.destination_floor)

    def __repr__(self) -> str:
        return (
            f"Call({self.start_floor}->{self.destination_floor}, "
            f"t={self.release_time:.1f})"
        )


@dataclass(frozen=True, slots=True)
class Request:
    """Immutable pickup-to-drop trip made of one or more calls.

    All calls of a request board together at the request's start floor.

    Attributes:
        id: Unique request identifier
        calls: Calls in insertion order (normally exactly one)
    """
    id: int
    calls: tuple[Call, ...]

    @classmethod
    def single(
        cls,
        request_id: int,
        start_floor: int,
        destination_floor: int,
        release_time: float = 0.0,
        wait_cost: float = 1.0,
        travel_cost: float = 1.0,
    ) -> Request:
        """Create a request holding a single call."""
        call = Call(
            release_time=release_time,
            start_floor=start_floor,
            destination_floor=destination_floor,
            wait_cost=wait_cost,
            travel_cost=travel_cost,
        )
        return cls(id=request_id, calls=(call,))

    def with_call(self, call: Call) -> Request:
        """Return a copy of this request with one more call appended."""
        return Request(id=self.id, calls=self.calls + (call,))

    @property
    def start_floor(self) -> int:
        return self.calls[0].start_floor

    @property
    def destination_floor(self) -> int:
        return self.calls[0].destination_floor

    @property
    def direction(self) -> Direction:
        return Direction.between(self.start_floor, self.destination_floor)

    @property
    def release_time(self) -> float:
        return min(c.release_time for c in self.calls)

    @property
    def size(self) -> int:
        """Number of calls (passengers) in this request."""
        return len(self.calls)

    def __repr__(self) -> str:
        return (
            f"Request(id={self.id}, {self.start_floor}->{self.destination_floor}, "
            f"calls={self.size})"
        )


@dataclass(slots=True)
class Elevator:
    """Elevator car with its state at the start of the dispatch round.

    Attributes:
        id: Unique elevator identifier
        capacity: Number of calls the car may take on in one plan
        current_floor: Floor the car is at (or passing)
        current_direction: Current travel direction
        current_time: Clock offset at which the plan starts
        loaded_calls: Calls already on board that still have to be dropped
        feasible_directions: Directions the car is allowed to travel in
        assigned_requests: Requests already promised to this car, not yet
            picked up. They are served by every schedule of the car.
    """
    id: int
    capacity: int
    current_floor: int = 1
    current_direction: Direction = Direction.IDLE
    current_time: float = 0.0
    loaded_calls: tuple[Call, ...] = ()
    feasible_directions: frozenset[Direction] = ALL_DIRECTIONS
    assigned_requests: tuple[Request, ...] = ()

    @property
    def load(self) -> int:
        """Calls on board at the start of the plan."""
        return len(self.loaded_calls)

    def can_travel(self, direction: Direction) -> bool:
        """Check if the car may move in the given direction."""
        return direction == Direction.IDLE or direction in self.feasible_directions

    def copy(self) -> Elevator:
        """Create a copy of this elevator."""
        return Elevator(
            id=self.id,
            capacity=self.capacity,
            current_floor=self.current_floor,
            current_direction=self.current_direction,
            current_time=self.current_time,
            loaded_calls=self.loaded_calls,
            feasible_directions=self.feasible_directions,
            assigned_requests=self.assigned_requests,
        )

    def __repr__(self) -> str:
        return (
            f"Elevator(id={self.id}, cap={self.capacity}, floor={self.current_floor}, "
            f"dir={self.current_direction.name}, load={self.load})"
        )


@dataclass
class ProblemInstance:
    """Complete dispatch problem instance.

    Attributes:
        name: Instance name/identifier
        num_floors: Number of floors, numbered 1..num_floors
        elevators: Elevators available in this round
        unassigned_requests: Requests to be distributed over the elevators
        stop_time: Minimum dwell time at a stop where anything happens
        load_time: Boarding time per call
        drive_per_floor_time: Time to pass one floor
        startup_time: Time paid once per departure from a stop
        capacity_penalty: Cost per call taken on above capacity
    """
    name: str = "instance"
    num_floors: int = 20
    elevators: list[Elevator] = field(default_factory=list)
    unassigned_requests: list[Request] = field(default_factory=list)
    stop_time: float = 2.0
    load_time: float = 1.0
    drive_per_floor_time: float = 1.5
    startup_time: float = 1.0
    capacity_penalty: float = 100.0

    @property
    def n_elevators(self) -> int:
        """Number of elevators."""
        return len(self.elevators)

    @property
    def n_requests(self) -> int:
        """Number of unassigned requests."""
        return len(self.unassigned_requests)

    def is_valid_floor(self, floor: int) -> bool:
        return 1 <= floor <= self.num_floors

    def add_elevator(self, elevator: Elevator) -> None:
        """Register an elevator.

        Raises:
            ValueError: If the id is taken or the car is outside the building
        """
        if any(e.id == elevator.id for e in self.elevators):
            raise ValueError(f"Duplicate elevator id {elevator.id}")
        if not self.is_valid_floor(elevator.current_floor):
            raise ValueError(
                f"Elevator {elevator.id} is at floor {elevator.current_floor}, "
                f"outside 1..{self.num_floors}"
            )
        if elevator.capacity < 0:
            raise ValueError(f"Elevator {elevator.id} has negative capacity")
        self.elevators.append(elevator)

    def add_request(self, request: Request) -> None:
        """Register an unassigned request.

        Raises:
            ValueError: If the request is malformed or its id is taken
        """
        problem = self._check_request(request)
        if problem:
            raise ValueError(problem)
        if any(r.id == request.id for r in self.unassigned_requests):
            raise ValueError(f"Duplicate request id {request.id}")
        self.unassigned_requests.append(request)

    def get_request_at(self, index: int) -> Request:
        """Get unassigned request by row index.

        Raises:
            IndexError: If index is out of range
        """
        if not 0 <= index < len(self.unassigned_requests):
            raise IndexError(
                f"Request index {index} out of range 0..{len(self.unassigned_requests) - 1}"
            )
        return self.unassigned_requests[index]

    def request_index(self, request_id: int) -> Optional[int]:
        """Row index of an unassigned request, or None if it is not a row."""
        for i, r in enumerate(self.unassigned_requests):
            if r.id == request_id:
                return i
        return None

    def request_ids(self) -> list[int]:
        return [r.id for r in self.unassigned_requests]

    def travel_time(self, from_floor: int, to_floor: int) -> float:
        """Door-to-door driving time between two floors, startup included."""
        if from_floor == to_floor:
            return 0.0
        return self.startup_time + abs(to_floor - from_floor) * self.drive_per_floor_time

    def _check_request(self, request: Request) -> Optional[str]:
        if not request.calls:
            return f"Request {request.id} has no calls"
        for call in request.calls:
            if not (self.is_valid_floor(call.start_floor) and self.is_valid_floor(call.destination_floor)):
                return (
                    f"Request {request.id} uses floors {call.start_floor}->"
                    f"{call.destination_floor} outside 1..{self.num_floors}"
                )
            if call.start_floor == call.destination_floor:
                return f"Request {request.id} starts at its destination floor {call.start_floor}"
            if call.start_floor != request.start_floor:
                return f"Request {request.id} has calls boarding at different floors"
            if call.wait_cost < 0 or call.travel_cost < 0:
                return f"Request {request.id} has a negative cost coefficient"
        return None

    def validate(self) -> list[str]:
        """Validate instance consistency, return list of issues."""
        issues = []

        if self.num_floors < 1:
            issues.append(f"Building needs at least one floor, got {self.num_floors}")
        if not self.elevators:
            issues.append("Instance has no elevators")

        ids = [r.id for r in self.unassigned_requests]
        if len(set(ids)) != len(ids):
            issues.append("Request ids are not unique")
        for r in self.unassigned_requests:
            problem = self._check_request(r)
            if problem:
                issues.append(problem)

        for e in self.elevators:
            if not self.is_valid_floor(e.current_floor):
                issues.append(f"Elevator {e.id} is outside the building (floor {e.current_floor})")
            for call in e.loaded_calls:
                if not self.is_valid_floor(call.destination_floor):
                    issues.append(f"Elevator {e.id} carries a call to invalid floor {call.destination_floor}")
            for r in e.assigned_requests:
                if r.id in ids:
                    issues.append(f"Request {r.id} is both assigned to elevator {e.id} and unassigned")
                problem = self._check_request(r)
                if problem:
                    issues.append(problem)

        for name in ("stop_time", "load_time", "drive_per_floor_time", "startup_time", "capacity_penalty"):
            if getattr(self, name) < 0:
                issues.append(f"{name} must be non-negative")

        return issues

    def summary(self) -> str:
        """Return a summary string of the instance."""
        loaded = sum(e.load for e in self.elevators)
        return (
            f"ProblemInstance '{self.name}': "
            f"{self.n_requests} requests, {self.n_elevators} elevators, "
            f"{self.num_floors} floors, {loaded} calls on board"
        )

    def copy(self) -> ProblemInstance:
        """Create a copy of this instance with independent lists."""
        return ProblemInstance(
            name=self.name,
            num_floors=self.num_floors,
            elevators=[e.copy() for e in self.elevators],
            unassigned_requests=list(self.unassigned_requests),
            stop_time=self.stop_time,
            load_time=self.load_time,
            drive_per_floor_time=self.drive_per_floor_time,
            startup_time=self.startup_time,
            capacity_penalty=self.capacity_penalty,
        )

    @classmethod
    def create_random(
        cls,
        n_requests: int,
        n_elevators: int,
        num_floors: int = 20,
        capacity: int = 8,
        horizon: float = 30.0,
        seed: int | None = None,
    ) -> ProblemInstance:
        """Create a random dispatch instance for testing.

        Args:
            n_requests: Number of unassigned requests
            n_elevators: Number of elevators
            num_floors: Number of floors in the building
            capacity: Elevator capacity
            horizon: Release times are drawn from [0, horizon)
            seed: Random seed for reproducibility

        Returns:
            Randomly generated ProblemInstance
        """
        rng = np.random.default_rng(seed)

        instance = cls(name=f"random_{n_requests}r_{n_elevators}e", num_floors=num_floors)

        for k in range(n_elevators):
            instance.add_elevator(Elevator(
                id=k,
                capacity=capacity,
                current_floor=int(rng.integers(1, num_floors + 1)),
            ))

        for i in range(n_requests):
            start = int(rng.integers(1, num_floors + 1))
            dest = start
            while dest == start:
                dest = int(rng.integers(1, num_floors + 1))
            instance.add_request(Request.single(
                request_id=i,
                start_floor=start,
                destination_floor=dest,
                release_time=float(rng.uniform(0, horizon)),
            ))

        return instance

    def __repr__(self) -> str:
        return (
            f"ProblemInstance(name='{self.name}', requests={self.n_requests}, "
            f"elevators={self.n_elevators})"
        )
