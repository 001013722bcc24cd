"""Tests for the dispatch data model."""
import pytest

from liftdispatch.models.problem import Call, Direction, Elevator, ProblemInstance, Request


class TestRequest:
    def test_single_request_properties(self):
        request = Request.single(7, start_floor=3, destination_floor=1, release_time=4.0)
        assert request.size == 1
        assert request.direction == Direction.DOWN
        assert request.release_time == 4.0

    def test_with_call_appends(self):
        request = Request.single(1, start_floor=2, destination_floor=5)
        grown = request.with_call(Call(release_time=1.0, start_floor=2, destination_floor=6))
        assert grown.size == 2
        assert request.size == 1
        assert grown.release_time == 0.0


class TestElevator:
    def test_load_counts_loaded_calls(self):
        elevator = Elevator(
            id=0,
            capacity=4,
            loaded_calls=(Call(0.0, 1, 5), Call(0.0, 1, 7)),
        )
        assert elevator.load == 2

    def test_can_travel_respects_feasible_directions(self):
        elevator = Elevator(id=0, capacity=4, feasible_directions=frozenset({Direction.UP}))
        assert elevator.can_travel(Direction.UP)
        assert not elevator.can_travel(Direction.DOWN)
        assert elevator.can_travel(Direction.IDLE)


class TestProblemInstance:
    def test_travel_time(self):
        instance = ProblemInstance(num_floors=10)
        assert instance.travel_time(3, 3) == 0.0
        assert instance.travel_time(1, 5) == pytest.approx(7.0)
        assert instance.travel_time(5, 1) == pytest.approx(7.0)

    def test_add_request_rejects_duplicates(self):
        instance = ProblemInstance(num_floors=10)
        instance.add_request(Request.single(1, 1, 5))
        with pytest.raises(ValueError):
            instance.add_request(Request.single(1, 2, 6))

    def test_add_request_rejects_same_floor(self):
        instance = ProblemInstance(num_floors=10)
        with pytest.raises(ValueError):
            instance.add_request(Request.single(1, 4, 4))

    def test_add_request_rejects_floor_outside_building(self):
        instance = ProblemInstance(num_floors=5)
        with pytest.raises(ValueError):
            instance.add_request(Request.single(1, 1, 9))

    def test_add_elevator_rejects_duplicates(self):
        instance = ProblemInstance(num_floors=10)
        instance.add_elevator(Elevator(id=0, capacity=4))
        with pytest.raises(ValueError):
            instance.add_elevator(Elevator(id=0, capacity=4))

    def test_get_request_at_out_of_range(self):
        instance = ProblemInstance(num_floors=10)
        instance.add_request(Request.single(1, 1, 5))
        assert instance.get_request_at(0).id == 1
        with pytest.raises(IndexError):
            instance.get_request_at(1)

    def test_request_index(self):
        instance = ProblemInstance(num_floors=10)
        instance.add_request(Request.single(4, 1, 5))
        instance.add_request(Request.single(9, 2, 5))
        assert instance.request_index(9) == 1
        assert instance.request_index(5) is None

    def test_validate_reports_missing_elevators(self):
        instance = ProblemInstance(num_floors=10)
        assert any("no elevators" in issue for issue in instance.validate())

    def test_validate_reports_request_both_assigned_and_open(self):
        request = Request.single(1, 1, 5)
        instance = ProblemInstance(num_floors=10)
        instance.add_elevator(Elevator(id=0, capacity=4, assigned_requests=(request,)))
        instance.add_request(request)
        assert any("both assigned" in issue for issue in instance.validate())

    def test_valid_instance_has_no_issues(self, small_instance):
        assert small_instance.validate() == []

    def test_create_random_is_reproducible(self):
        a = ProblemInstance.create_random(n_requests=5, n_elevators=2, seed=3)
        b = ProblemInstance.create_random(n_requests=5, n_elevators=2, seed=3)
        assert a.validate() == []
        assert [(r.start_floor, r.destination_floor) for r in a.unassigned_requests] == \
            [(r.start_floor, r.destination_floor) for r in b.unassigned_requests]

    def test_copy_is_independent(self, small_instance):
        clone = small_instance.copy()
        clone.add_request(Request.single(99, 1, 2))
        assert small_instance.n_requests == 3
        assert clone.n_requests == 4
