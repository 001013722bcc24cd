"""Tests for JSON instance and solution I/O."""
import json

import pytest

from liftdispatch.branch_and_price.driver import BranchAndPriceConfig, BranchAndPrice, solve
from liftdispatch.models.parsers import (
    instance_from_dict,
    instance_to_dict,
    parse_instance,
    solution_to_dict,
    write_instance,
)
from liftdispatch.models.problem import Call, Direction, Elevator, Request


def test_minimal_document_creates_default_elevators():
    instance = instance_from_dict({
        "numFloors": 12,
        "numElevators": 3,
        "requests": [{"id": 1, "startFloor": 1, "destinationFloor": 9}],
    })
    assert instance.n_elevators == 3
    assert all(e.capacity == 8 and e.current_floor == 1 for e in instance.elevators)
    assert instance.unassigned_requests[0].destination_floor == 9


def test_elevator_state_is_read():
    instance = instance_from_dict({
        "numFloors": 10,
        "stopTime": 3.0,
        "elevators": [{
            "id": 4,
            "capacity": 6,
            "currentFloor": 5,
            "currentDirection": "DOWN",
            "currentTime": 12.5,
            "loadedCalls": [{"startFloor": 9, "destinationFloor": 2}],
        }],
        "requests": [],
    })
    elevator = instance.elevators[0]
    assert instance.stop_time == 3.0
    assert elevator.id == 4
    assert elevator.current_direction == Direction.DOWN
    assert elevator.current_time == 12.5
    assert elevator.load == 1


def test_round_trip_keeps_instance(build_instance):
    committed = Request.single(20, 2, 8, release_time=1.0)
    instance = build_instance(
        [
            Elevator(
                id=0,
                capacity=4,
                current_floor=3,
                current_direction=Direction.UP,
                loaded_calls=(Call(0.0, 1, 7),),
                feasible_directions=frozenset({Direction.UP}),
                assigned_requests=(committed,),
            ),
            Elevator(id=1, capacity=6, current_floor=9),
        ],
        [
            Request.single(1, 4, 1, release_time=2.0, wait_cost=2.0),
            Request.single(2, 5, 6).with_call(Call(3.0, 5, 9)),
        ],
    )
    copy = instance_from_dict(json.loads(json.dumps(instance_to_dict(instance))))

    assert copy.name == instance.name
    assert copy.num_floors == instance.num_floors
    assert copy.elevators[0].feasible_directions == frozenset({Direction.UP})
    assert copy.elevators[0].assigned_requests == (committed,)
    assert copy.elevators[0].loaded_calls == instance.elevators[0].loaded_calls
    assert copy.unassigned_requests == instance.unassigned_requests


def test_write_and_parse_file(tmp_path, small_instance):
    path = tmp_path / "lobby.json"
    write_instance(small_instance, path)
    parsed = parse_instance(path)
    assert parsed.unassigned_requests == small_instance.unassigned_requests
    assert parsed.n_elevators == 2


def test_file_name_used_when_document_is_unnamed(tmp_path):
    path = tmp_path / "tower.json"
    path.write_text(json.dumps({"numFloors": 5, "numElevators": 1, "requests": []}))
    assert parse_instance(path).name == "tower"


@pytest.mark.parametrize("document", [
    [],
    {"numFloors": 5, "requests": [{"id": 1, "startFloor": 2}]},
    {"numFloors": 5, "requests": [{"id": 1, "startFloor": 2, "destinationFloor": 2}]},
    {"numFloors": 5, "elevators": [{"id": 0, "currentDirection": "SIDEWAYS"}]},
    {"numFloors": 5, "numElevators": 0, "requests": []},
])
def test_malformed_documents_raise(document):
    with pytest.raises(ValueError):
        instance_from_dict(document)


def test_invalid_json_raises(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(ValueError):
        parse_instance(path)


def test_solution_projection(single_request_instance):
    solver = BranchAndPrice(BranchAndPriceConfig(verbose=False))
    solution = solver.solve(single_request_instance)
    data = solution_to_dict(solution, single_request_instance, solver.statistics.status)
    assert data["status"] == solver.statistics.status == "optimal"
    assert data["objective"] == pytest.approx(7.0)
    assert data["assignments"] == [
        {"requestId": 1, "elevatorId": 0, "startFloor": 1, "destinationFloor": 5}
    ]
    (route,) = data["routes"]
    assert [s["floor"] for s in route["stops"]] == [1, 5]
    assert route["stops"][0]["pickups"] == [1]
    assert route["stops"][1]["dropsCount"] == 1


def test_missing_solution_projection(single_request_instance):
    data = solution_to_dict(None, single_request_instance)
    assert data["status"] == "infeasible"
    assert data["assignments"] == []


def test_projection_reports_the_solver_status(single_request_instance):
    solution = solve(single_request_instance, BranchAndPriceConfig(verbose=False))
    assert solution.is_integral

    assert solution_to_dict(solution, single_request_instance, "fallback")["status"] == "fallback"
    assert solution_to_dict(solution, single_request_instance, "time_limit")["status"] == "time_limit"
    # without a solver status an integral solution is not claimed optimal
    assert solution_to_dict(solution, single_request_instance)["status"] == "integral"
