"""Parsers for dispatch instances and solutions.

Instances are stored as JSON documents with camelCase keys:

    {
      "name": "lobby_peak",
      "numFloors": 12,
      "numElevators": 2,                 # used only when "elevators" is absent
      "stopTime": 2.0, ...               # optional timing overrides
      "elevators": [{"id": 0, "capacity": 8, "currentFloor": 1,
                     "currentDirection": "UP", "currentTime": 0.0,
                     "loadedCalls": [...], "assignedRequests": [...]}],
      "requests": [{"id": 1, "releaseTime": 0.0, "startFloor": 1,
                    "destinationFloor": 5, "waitCost": 1.0, "travelCost": 1.0}]
    }
"""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional
import json

from .problem import Call, Direction, Elevator, ProblemInstance, Request

if TYPE_CHECKING:
    from .solution import Solution

DEFAULT_CAPACITY = 8

_TIMING_KEYS = {
    "stopTime": "stop_time",
    "loadTime": "load_time",
    "drivePerFloorTime": "drive_per_floor_time",
    "startupTime": "startup_time",
    "capacityPenalty": "capacity_penalty",
}


def _direction(value: Any) -> Direction:
    if isinstance(value, str):
        try:
            return Direction[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown direction '{value}'") from None
    try:
        return Direction(int(value))
    except ValueError:
        raise ValueError(f"Unknown direction {value!r}") from None


def _call(data: dict) -> Call:
    return Call(
        release_time=float(data.get("releaseTime", 0.0)),
        start_floor=int(data["startFloor"]),
        destination_floor=int(data["destinationFloor"]),
        wait_cost=float(data.get("waitCost", 1.0)),
        travel_cost=float(data.get("travelCost", 1.0)),
    )


def _request(data: dict) -> Request:
    if "calls" in data:
        calls = tuple(_call(c) for c in data["calls"])
        if not calls:
            raise ValueError(f"Request {data.get('id')} has no calls")
        return Request(id=int(data["id"]), calls=calls)
    return Request(id=int(data["id"]), calls=(_call(data),))


def _elevator(data: dict) -> Elevator:
    feasible = data.get("feasibleDirections")
    elevator = Elevator(
        id=int(data["id"]),
        capacity=int(data.get("capacity", DEFAULT_CAPACITY)),
        current_floor=int(data.get("currentFloor", 1)),
        current_direction=_direction(data.get("currentDirection", "IDLE")),
        current_time=float(data.get("currentTime", 0.0)),
        loaded_calls=tuple(_call(c) for c in data.get("loadedCalls", [])),
        assigned_requests=tuple(_request(r) for r in data.get("assignedRequests", [])),
    )
    if feasible is not None:
        elevator.feasible_directions = frozenset(_direction(d) for d in feasible)
    return elevator


def instance_from_dict(data: dict, name: Optional[str] = None) -> ProblemInstance:
    """Build an instance from a decoded JSON document.

    Args:
        data: Document with the keys described in the module docstring
        name: Instance name (defaults to data["name"])

    Returns:
        ProblemInstance

    Raises:
        ValueError: If the document is malformed or describes an invalid instance
    """
    if not isinstance(data, dict):
        raise ValueError("Instance document must be a JSON object")

    try:
        instance = ProblemInstance(
            name=name or data.get("name", "instance"),
            num_floors=int(data.get("numFloors", 20)),
        )
        for key, attr in _TIMING_KEYS.items():
            if key in data:
                setattr(instance, attr, float(data[key]))

        if data.get("elevators"):
            for e in data["elevators"]:
                instance.add_elevator(_elevator(e))
        else:
            for k in range(int(data.get("numElevators", 1))):
                instance.add_elevator(Elevator(id=k, capacity=DEFAULT_CAPACITY))

        for r in data.get("requests", []):
            instance.add_request(_request(r))
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed instance document: {e}") from e

    issues = instance.validate()
    if issues:
        raise ValueError(f"Invalid instance: {'; '.join(issues)}")
    return instance


def parse_instance(filepath: str | Path) -> ProblemInstance:
    """Parse a JSON instance file.

    Args:
        filepath: Path to instance file

    Returns:
        Parsed ProblemInstance (named after the file unless the document names it)
    """
    filepath = Path(filepath)
    with open(filepath, 'r') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{filepath} is not valid JSON: {e}") from e
    if isinstance(data, dict) and "name" not in data:
        return instance_from_dict(data, name=filepath.stem)
    return instance_from_dict(data)


def _call_to_dict(call: Call) -> dict:
    return {
        "releaseTime": call.release_time,
        "startFloor": call.start_floor,
        "destinationFloor": call.destination_floor,
        "waitCost": call.wait_cost,
        "travelCost": call.travel_cost,
    }


def _request_to_dict(request: Request) -> dict:
    if request.size == 1:
        return {"id": request.id, **_call_to_dict(request.calls[0])}
    return {"id": request.id, "calls": [_call_to_dict(c) for c in request.calls]}


def instance_to_dict(instance: ProblemInstance) -> dict:
    """Convert an instance to a JSON-serializable document."""
    data = {
        "name": instance.name,
        "numFloors": instance.num_floors,
        "numElevators": instance.n_elevators,
    }
    for key, attr in _TIMING_KEYS.items():
        data[key] = getattr(instance, attr)

    data["elevators"] = [
        {
            "id": e.id,
            "capacity": e.capacity,
            "currentFloor": e.current_floor,
            "currentDirection": e.current_direction.name,
            "currentTime": e.current_time,
            "feasibleDirections": sorted(d.name for d in e.feasible_directions),
            "loadedCalls": [_call_to_dict(c) for c in e.loaded_calls],
            "assignedRequests": [_request_to_dict(r) for r in e.assigned_requests],
        }
        for e in instance.elevators
    ]
    data["requests"] = [_request_to_dict(r) for r in instance.unassigned_requests]
    return data


def write_instance(instance: ProblemInstance, filepath: str | Path) -> None:
    """Write instance as JSON.

    Args:
        instance: ProblemInstance to write
        filepath: Output file path
    """
    filepath = Path(filepath)
    with open(filepath, 'w') as f:
        json.dump(instance_to_dict(instance), f, indent=2)


def solution_to_dict(
    solution: Optional[Solution],
    instance: ProblemInstance,
    status: Optional[str] = None,
) -> dict:
    """Project a solution onto request assignments and elevator routes.

    Args:
        solution: Solver result (None means no feasible solution)
        instance: Instance the solution belongs to
        status: Solver status to report; without it the status only
            tells an integral ("integral") from a fractional solution

    Returns:
        Dictionary with status, objective, assignments and routes
    """
    if solution is None:
        return {
            "status": status or "infeasible",
            "objective": None,
            "isIntegral": False,
            "assignments": [],
            "routes": [],
        }

    assignments = []
    routes = []
    for schedule in solution.get_selected_schedules():
        elevator = instance.elevators[schedule.elevator_index]
        for request in schedule.served_requests:
            assignments.append({
                "requestId": request.id,
                "elevatorId": elevator.id,
                "startFloor": request.start_floor,
                "destinationFloor": request.destination_floor,
            })
        routes.append({
            "elevatorId": elevator.id,
            "cost": schedule.cost,
            "stops": [
                {
                    "floor": stop.floor,
                    "arrivalTime": stop.arrival_time,
                    "direction": stop.direction.name,
                    "pickups": [r.id for r in stop.pickups],
                    "dropsCount": len(stop.drops),
                }
                for stop in schedule.stops
            ],
        })

    assignments.sort(key=lambda a: a["requestId"])
    return {
        "status": status or ("integral" if solution.is_integral else "fractional"),
        "objective": solution.objective_value,
        "isIntegral": solution.is_integral,
        "assignments": assignments,
        "routes": routes,
    }
