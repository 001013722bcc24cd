"""Schedule representation for elevator routes.

A Schedule is the timed stop sequence of one elevator. Once added to the
master problem it becomes one LP column.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from .problem import Call, Direction, Request


@dataclass(frozen=True, slots=True)
class Stop:
    """One visited floor within a route.

    Attributes:
        floor: Floor of the stop
        arrival_time: Time the car arrives (or starts the plan) here
        departure_time: Time the car leaves; equals arrival for a pass-through
        direction: Direction taken after the stop (IDLE for the last stop)
        pickups: Requests boarding here
        drops: Calls leaving here
        pending_drop_floors: Floors where calls still on board must be dropped
    """
    floor: int
    arrival_time: float
    departure_time: float
    direction: Direction = Direction.IDLE
    pickups: tuple[Request, ...] = ()
    drops: tuple[Call, ...] = ()
    pending_drop_floors: frozenset[int] = frozenset()

    @property
    def boarded_calls(self) -> int:
        return sum(r.size for r in self.pickups)

    def has_action(self) -> bool:
        """Check if anything boards or leaves at this stop."""
        return bool(self.pickups or self.drops)

    def __repr__(self) -> str:
        return (
            f"Stop(floor={self.floor}, t={self.arrival_time:.1f}, "
            f"up={[r.id for r in self.pickups]}, down={len(self.drops)})"
        )


@dataclass(frozen=True, slots=True)
class Schedule:
    """Timed stop sequence of one elevator.

    Schedules are value objects: they are built once and shared between
    the master problem and search nodes without being mutated.

    Attributes:
        elevator_index: Position of the elevator in the instance
        stops: Stops in visiting order, arrival times non-decreasing
        cost: Total wait, ride and capacity penalty cost
        served_requests: Requests picked up by this schedule, in pickup order
        capacity_penalty_cost: Share of cost caused by exceeding capacity
    """
    elevator_index: int
    stops: tuple[Stop, ...]
    cost: float
    served_requests: tuple[Request, ...] = ()
    capacity_penalty_cost: float = 0.0

    def __len__(self) -> int:
        """Number of stops."""
        return len(self.stops)

    def __iter__(self) -> Iterator[Stop]:
        return iter(self.stops)

    def serves(self, request_id: int) -> bool:
        """Check if the schedule picks up the given request."""
        return any(r.id == request_id for r in self.served_requests)

    @property
    def request_ids(self) -> frozenset[int]:
        return frozenset(r.id for r in self.served_requests)

    @property
    def n_requests(self) -> int:
        return len(self.served_requests)

    @property
    def end_time(self) -> float:
        return self.stops[-1].departure_time if self.stops else 0.0

    def is_empty(self) -> bool:
        """Check if the schedule serves no request."""
        return not self.served_requests

    def signature(self) -> tuple:
        """Key identifying schedules that describe the same column."""
        return (
            self.elevator_index,
            tuple((s.floor, tuple(r.id for r in s.pickups), len(s.drops)) for s in self.stops),
            round(self.cost, 9),
        )

    def validate(self) -> tuple[bool, list[str]]:
        """Validate timing and pickup/drop consistency.

        Returns:
            Tuple of (is_valid, list of violation messages)
        """
        violations = []

        for prev, stop in zip(self.stops, self.stops[1:]):
            if stop.arrival_time < prev.departure_time - 1e-9:
                violations.append(
                    f"Stop at floor {stop.floor} arrives at {stop.arrival_time:.2f} "
                    f"before departure {prev.departure_time:.2f} from floor {prev.floor}"
                )
        for stop in self.stops:
            if stop.departure_time < stop.arrival_time - 1e-9:
                violations.append(f"Stop at floor {stop.floor} departs before it arrives")

        picked = [r.id for s in self.stops for r in s.pickups]
        if len(set(picked)) != len(picked):
            violations.append("A request is picked up twice")
        if sorted(picked) != sorted(r.id for r in self.served_requests):
            violations.append("Served requests do not match the pickups")

        boarded: list[Call] = [c for r in self.served_requests for c in r.calls]
        for stop in self.stops:
            for call in stop.drops:
                if call.destination_floor != stop.floor:
                    violations.append(f"Call {call} dropped at floor {stop.floor}")
        dropped = sum(len(s.drops) for s in self.stops)
        if dropped < len(boarded):
            violations.append(f"{len(boarded) - dropped} boarded calls are never dropped")

        return len(violations) == 0, violations

    def to_dict(self) -> dict:
        """Convert schedule to dictionary for serialization."""
        return {
            'elevator_index': self.elevator_index,
            'cost': self.cost,
            'capacity_penalty_cost': self.capacity_penalty_cost,
            'served_requests': [r.id for r in self.served_requests],
            'stops': [
                {
                    'floor': s.floor,
                    'arrival_time': s.arrival_time,
                    'departure_time': s.departure_time,
                    'direction': s.direction.name,
                    'pickups': [r.id for r in s.pickups],
                    'drops': len(s.drops),
                }
                for s in self.stops
            ],
        }

    def __repr__(self) -> str:
        floors = "->".join(str(s.floor) for s in self.stops)
        return (
            f"Schedule(elevator={self.elevator_index}, cost={self.cost:.2f}, "
            f"requests={sorted(self.request_ids)}, floors={floors})"
        )


@dataclass(frozen=True, slots=True)
class Column:
    """Candidate schedule proposed to the master problem.

    Attributes:
        schedule: The proposed schedule
        elevator_index: Elevator the schedule belongs to
        cost: Raw schedule cost
        reduced_cost: Cost minus the dual prices the schedule touches
    """
    schedule: Schedule
    elevator_index: int
    cost: float
    reduced_cost: float
