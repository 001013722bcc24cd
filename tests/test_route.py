"""Tests for route timing and cost evaluation."""
import pytest

from liftdispatch.heuristics.constructive import greedy_schedule
from liftdispatch.models.problem import Call, Direction, Elevator, Request
from liftdispatch.models.route import RouteState, base_route, drop_order, route_for_requests


def test_single_ride_from_current_floor(single_request_instance):
    schedule = route_for_requests(
        single_request_instance, 0, single_request_instance.unassigned_requests
    ).finish()

    assert schedule.cost == pytest.approx(7.0)
    assert [s.floor for s in schedule.stops] == [1, 5]
    first, last = schedule.stops
    assert first.arrival_time == 0.0
    assert first.departure_time == pytest.approx(2.0)
    assert last.arrival_time == pytest.approx(9.0)
    assert schedule.validate() == (True, [])


def test_wait_cost_counts_from_release(build_instance):
    instance = build_instance(
        [Elevator(id=0, capacity=8)],
        [Request.single(1, start_floor=4, destination_floor=8)],
    )
    schedule = route_for_requests(instance, 0, instance.unassigned_requests).finish()
    # wait 1 + 3 * 1.5, ride 1 + 4 * 1.5
    assert schedule.cost == pytest.approx(5.5 + 7.0)


def test_late_release_has_no_wait_cost(build_instance):
    instance = build_instance(
        [Elevator(id=0, capacity=8)],
        [Request.single(1, start_floor=4, destination_floor=8, release_time=100.0)],
    )
    schedule = route_for_requests(instance, 0, instance.unassigned_requests).finish()
    assert schedule.cost == pytest.approx(7.0)


def test_cost_weights_scale_wait_and_ride(build_instance):
    instance = build_instance(
        [Elevator(id=0, capacity=8)],
        [Request.single(1, 4, 8, wait_cost=2.0, travel_cost=0.5)],
    )
    schedule = route_for_requests(instance, 0, instance.unassigned_requests).finish()
    assert schedule.cost == pytest.approx(2.0 * 5.5 + 0.5 * 7.0)


def test_loaded_calls_ride_from_plan_start(build_instance):
    instance = build_instance(
        [Elevator(
            id=0,
            capacity=8,
            current_floor=3,
            current_direction=Direction.UP,
            loaded_calls=(Call(release_time=0.0, start_floor=1, destination_floor=6),),
        )],
        [],
    )
    route = base_route(instance, 0)
    assert not route.onboard
    assert route.cost == pytest.approx(1.0 + 3 * 1.5)


def test_capacity_overload_is_penalized(build_instance):
    instance = build_instance(
        [Elevator(id=0, capacity=1)],
        [Request.single(1, 1, 3), Request.single(2, 1, 4)],
    )
    state = RouteState.start(instance, 0)
    state = state.pickup(instance.unassigned_requests[0])
    assert state.penalty_cost == 0.0
    state = state.pickup(instance.unassigned_requests[1])
    assert state.penalty_cost == pytest.approx(instance.capacity_penalty)
    assert state.load == 2


def test_initial_overload_is_penalized_once(build_instance):
    instance = build_instance(
        [Elevator(
            id=0,
            capacity=1,
            loaded_calls=(Call(0.0, 2, 5), Call(0.0, 2, 6)),
        )],
        [],
    )
    state = RouteState.start(instance, 0)
    assert state.penalty_cost == pytest.approx(instance.capacity_penalty)


def test_boarding_several_calls_extends_dwell(build_instance):
    instance = build_instance([Elevator(id=0, capacity=8)], [], load_time=1.5)
    request = Request.single(1, 1, 2).with_call(Call(0.0, 1, 2)).with_call(Call(0.0, 1, 2))
    schedule = RouteState.start(instance, 0).serve(request).finish()
    assert schedule.stops[0].departure_time == pytest.approx(4.5)


def test_stops_are_time_ordered(small_instance):
    schedule = route_for_requests(small_instance, 0, small_instance.unassigned_requests).finish()
    ok, violations = schedule.validate()
    assert ok, violations
    assert schedule.request_ids == frozenset({1, 2, 3})


def test_drop_order_follows_direction():
    assert drop_order(5, Direction.UP, [2, 7, 9, 4]) == [7, 9, 4, 2]
    assert drop_order(5, Direction.DOWN, [2, 7, 9, 4]) == [4, 2, 7, 9]
    assert drop_order(5, Direction.IDLE, [2, 7, 9]) == [7, 2, 9]


def test_route_states_do_not_share_stops(single_request_instance):
    start = RouteState.start(single_request_instance, 0)
    a = start.move(Direction.UP)
    b = start.pickup(single_request_instance.unassigned_requests[0])
    assert len(start.stops) == 1
    assert start.stops[0].pickups == ()
    assert a.floor == 2
    assert b.stops[0].pickups[0].id == 1


def test_drops_free_capacity(build_instance):
    instance = build_instance(
        [Elevator(id=0, capacity=1)],
        [Request.single(1, 1, 2), Request.single(2, 2, 6)],
    )
    first, second = instance.unassigned_requests
    state = RouteState.start(instance, 0).pickup(first).travel_to(2).drop_here()
    assert state.load == 0
    state = state.pickup(second)
    assert state.load == 1
    assert state.penalty_cost == 0.0


def test_penalty_counts_calls_boarding_above_capacity(build_instance):
    instance = build_instance(
        [Elevator(id=0, capacity=1)],
        [Request.single(1, 1, 3), Request.single(2, 1, 4), Request.single(3, 3, 5)],
    )
    a, b, c = instance.unassigned_requests
    state = RouteState.start(instance, 0).pickup(a).pickup(b)
    assert state.penalty_cost == pytest.approx(instance.capacity_penalty)
    # a leaves at 3, so c boards next to b alone
    state = state.travel_to(3).drop_here().pickup(c)
    assert state.load == 2
    assert state.penalty_cost == pytest.approx(2 * instance.capacity_penalty)


def test_sequential_requests_never_overload(build_instance):
    instance = build_instance(
        [Elevator(id=0, capacity=1)],
        [Request.single(1, 1, 2), Request.single(2, 5, 6, release_time=50.0)],
    )
    schedule = greedy_schedule(instance, 0, instance.unassigned_requests)
    assert schedule.request_ids == frozenset({1, 2})
    assert schedule.capacity_penalty_cost == 0.0
