"""Tests for the pricing search."""
import math

import pytest

from liftdispatch.branch_and_price.master import MasterModel
from liftdispatch.branch_and_price.pricing import PricingConfig, PricingProblem
from liftdispatch.branch_and_price.pricing_node import PricingNode
from liftdispatch.heuristics.constructive import seed_schedules
from liftdispatch.models.problem import Call, Direction, Elevator, Request
from liftdispatch.models.route import RouteState


@pytest.fixture
def pricing_instance(build_instance):
    return build_instance(
        [Elevator(id=0, capacity=2)],
        [Request.single(1, 2, 5), Request.single(2, 4, 1, release_time=3.0)],
        num_floors=8,
    )


def check_subtree(pricing, node):
    """Best reduced cost below node, asserting the bound at every node."""
    config = pricing.config
    bound = pricing.lower_bound(node)
    if node.is_last(config):
        best = pricing.reduced_cost(node.route.finish())
    else:
        best = math.inf
        for child in node.branch(config):
            best = min(best, check_subtree(pricing, child))
    assert bound <= best + 1e-9
    return best


class TestPricingNode:
    def test_drop_comes_first(self, pricing_instance):
        request = pricing_instance.unassigned_requests[0]
        route = RouteState.start(pricing_instance, 0).travel_to(2).pickup(request).travel_to(5)
        children = PricingNode(route=route).branch(PricingConfig())
        assert len(children) == 1
        assert not children[0].route.onboard

    def test_mandatory_request_is_never_dropped(self, build_instance):
        instance = build_instance(
            [Elevator(id=0, capacity=4)],
            [Request.single(1, 1, 5), Request.single(2, 1, 6)],
        )
        a, b = instance.unassigned_requests
        node = PricingNode(route=RouteState.start(instance, 0), mandatory=(a,), optional=(b,))
        children = node.branch(PricingConfig())
        assert [r.id for r in children[0].route.served] == [1]
        assert children[0].mandatory == ()
        for child in children:
            assert not child.ended
            served = [r.id for r in child.route.served]
            kept = [m.id for m in child.mandatory]
            assert (1 in served) != (1 in kept)

    def test_full_car_keeps_optional_requests_for_later(self, build_instance):
        instance = build_instance(
            [Elevator(id=0, capacity=1)],
            [Request.single(1, 1, 5), Request.single(2, 3, 6)],
        )
        a, b = instance.unassigned_requests
        route = RouteState.start(instance, 0).pickup(a)
        children = PricingNode(route=route, optional=(b,)).branch(PricingConfig())
        assert all(len(c.route.served) == 1 for c in children)
        gave_up = [c for c in children if c.route is route]
        moved = [c for c in children if c.route is not route]
        assert len(gave_up) == 1 and gave_up[0].optional == ()
        assert len(moved) == 1 and [r.id for r in moved[0].optional] == [2]

    def test_drop_frees_room_for_the_next_pickup(self, build_instance):
        instance = build_instance(
            [Elevator(id=0, capacity=1)],
            [Request.single(1, 1, 2), Request.single(2, 3, 6)],
        )
        a, b = instance.unassigned_requests
        route = RouteState.start(instance, 0).pickup(a).travel_to(2).drop_here().travel_to(3)
        assert route.load == 0
        children = PricingNode(route=route, optional=(b,)).branch(PricingConfig())
        boarded = [c for c in children if c.route.onboard]
        assert len(boarded) == 1
        assert boarded[0].route.penalty_cost == 0.0

    def test_optional_requests_survive_a_move(self, build_instance):
        instance = build_instance(
            [Elevator(id=0, capacity=4)],
            [Request.single(1, 1, 5), Request.single(2, 3, 6)],
        )
        a, b = instance.unassigned_requests
        node = PricingNode(route=RouteState.start(instance, 0), optional=(a, b))
        children = node.branch(PricingConfig())
        picked = [c for c in children if c.route.served]
        moved = [c for c in children if c.route.moving]
        ended = [c for c in children if c.ended]
        assert len(picked) == 1 and len(moved) == 1 and len(ended) == 1
        assert [r.id for r in picked[0].optional] == [2]
        assert [r.id for r in moved[0].optional] == [1, 2]
        assert moved[0].route.floor == 2

    def test_pickup_keeps_the_other_requests_at_the_floor(self, build_instance):
        instance = build_instance(
            [Elevator(id=0, capacity=4, current_floor=3)],
            [Request.single(1, 3, 1), Request.single(2, 3, 8)],
        )
        down, up = instance.unassigned_requests
        node = PricingNode(route=RouteState.start(instance, 0), optional=(down, up))
        children = node.branch(PricingConfig())
        took_down = next(c for c in children if c.route.served and c.route.served[0].id == 1)
        assert [r.id for r in took_down.optional] == [2]

    def test_same_stop_pickups_are_not_repeated_in_another_order(self, build_instance):
        instance = build_instance(
            [Elevator(id=0, capacity=4)],
            [Request.single(1, 1, 5), Request.single(2, 1, 6)],
        )
        a, b = instance.unassigned_requests
        root = PricingNode(route=RouteState.start(instance, 0), optional=(a, b))
        second = []
        for child in root.branch(PricingConfig()):
            if child.route.served:
                second += [c for c in child.branch(PricingConfig()) if len(c.route.served) == 2]
        assert len(second) == 1

    def test_empty_car_does_not_turn_while_moving(self, build_instance):
        instance = build_instance(
            [Elevator(id=0, capacity=4, current_floor=4)],
            [Request.single(1, 2, 1), Request.single(2, 7, 9)],
        )
        low, high = instance.unassigned_requests
        route = RouteState.start(instance, 0).move(Direction.UP).move(Direction.UP)
        children = PricingNode(route=route, optional=(low,)).branch(PricingConfig())
        assert children == []
        children = PricingNode(route=route, optional=(low, high)).branch(PricingConfig())
        assert [c.route.floor for c in children] == [7]

    def test_idle_node_without_work_ends(self, two_idle_elevators):
        node = PricingNode(route=RouteState.start(two_idle_elevators, 0))
        assert node.is_last(PricingConfig())
        children = node.branch(PricingConfig())
        assert len(children) == 1 and children[0].ended


class TestLowerBound:
    @pytest.mark.parametrize("duals", [(0.0, 0.0), (20.0, 15.0), (40.0, 5.0), (-3.0, 30.0)])
    def test_bound_is_admissible(self, pricing_instance, duals):
        config = PricingConfig(optional_per_schedule=2)
        pricing = PricingProblem(pricing_instance, 0, config)
        pricing.update(list(duals), elevator_dual=1.0)
        for root in pricing.root_nodes():
            check_subtree(pricing, root)

    def test_bound_is_admissible_with_required_request(self, pricing_instance):
        config = PricingConfig(optional_per_schedule=2)
        pricing = PricingProblem(pricing_instance, 0, config)
        pricing.update([25.0, 12.0], elevator_dual=0.0, required=[1])
        for root in pricing.root_nodes():
            check_subtree(pricing, root)

    def test_bound_is_admissible_with_loaded_call(self, build_instance):
        instance = build_instance(
            [Elevator(
                id=0,
                capacity=2,
                current_floor=3,
                current_direction=Direction.UP,
                loaded_calls=(Call(0.0, 1, 6),),
            )],
            [Request.single(1, 4, 7), Request.single(2, 5, 2)],
            num_floors=8,
        )
        pricing = PricingProblem(instance, 0, PricingConfig(optional_per_schedule=2))
        pricing.update([30.0, 30.0], elevator_dual=0.0)
        for root in pricing.root_nodes():
            check_subtree(pricing, root)

    def test_bound_is_admissible_without_optional_cap(self, pricing_instance):
        pricing = PricingProblem(pricing_instance, 0, PricingConfig())
        pricing.update([35.0, 30.0], elevator_dual=0.5)
        for root in pricing.root_nodes():
            check_subtree(pricing, root)

    def test_bound_is_admissible_when_required_requests_overload(self, build_instance):
        instance = build_instance(
            [Elevator(id=0, capacity=1)],
            [Request.single(1, 2, 6), Request.single(2, 3, 5), Request.single(3, 4, 1)],
            num_floors=7,
        )
        pricing = PricingProblem(instance, 0, PricingConfig())
        pricing.update([10.0, 10.0, 40.0], elevator_dual=0.0, required=[0, 1])
        for root in pricing.root_nodes():
            check_subtree(pricing, root)


class TestSolve:
    def test_returns_for_a_request_passed_earlier(self, build_instance):
        instance = build_instance(
            [Elevator(id=0, capacity=4, current_floor=3)],
            [Request.single(1, 3, 1), Request.single(2, 3, 8)],
        )
        pricing = PricingProblem(instance, 0)
        pricing.update([30.0, 30.5], elevator_dual=0.0)
        best = pricing.solve()[0]
        # 3->1 rides 4, the car is back at 3 at t=12, then 3->8 rides 8.5
        assert best.schedule.request_ids == frozenset({1, 2})
        assert [s.floor for s in best.schedule.stops] == [3, 1, 3, 8]
        assert best.schedule.cost == pytest.approx(4.0 + 12.0 + 8.5)
        assert best.reduced_cost == pytest.approx(-36.0)
        assert not pricing.exhausted

    def test_expansion_cap_marks_search_exhausted(self, small_instance):
        pricing = PricingProblem(small_instance, 1, PricingConfig(max_expansions=1))
        pricing.update({0: 30.0, 1: 25.0, 2: 30.0}, elevator_dual=0.0)
        pricing.solve()
        assert pricing.exhausted

        pricing.config = PricingConfig()
        pricing.solve()
        assert not pricing.exhausted

    def test_columns_are_sound(self, pricing_instance):
        pricing = PricingProblem(pricing_instance, 0)
        pricing.update([40.0, 40.0], elevator_dual=0.0)
        columns = pricing.solve()
        assert columns
        reduced_costs = [c.reduced_cost for c in columns]
        assert reduced_costs == sorted(reduced_costs)
        for column in columns:
            assert column.reduced_cost < -pricing.config.epsilon
            assert column.reduced_cost == pytest.approx(pricing.reduced_cost(column.schedule))
            assert column.schedule.validate()[0]

    def test_no_columns_without_duals(self, pricing_instance):
        pricing = PricingProblem(pricing_instance, 0)
        pricing.update([0.0, 0.0], elevator_dual=0.0)
        assert pricing.solve() == []

    def test_solve_is_idempotent(self, small_instance):
        pricing = PricingProblem(small_instance, 1)
        pricing.update({0: 30.0, 1: 25.0, 2: 30.0}, elevator_dual=0.0)
        first = [(c.schedule.signature(), c.reduced_cost) for c in pricing.solve()]
        second = [(c.schedule.signature(), c.reduced_cost) for c in pricing.solve()]
        assert first == second

    def test_required_and_forbidden_rows(self, small_instance):
        pricing = PricingProblem(small_instance, 0)
        pricing.update([30.0, 30.0, 30.0], elevator_dual=0.0, required=[0], forbidden=[2])
        columns = pricing.solve(threshold=math.inf, max_schedules=10)
        assert columns
        for column in columns:
            assert column.schedule.serves(1)
            assert not column.schedule.serves(3)

    def test_required_request_in_blocked_direction(self, build_instance):
        instance = build_instance(
            [Elevator(id=0, capacity=4, feasible_directions=frozenset({Direction.UP}))],
            [Request.single(1, 6, 2)],
        )
        pricing = PricingProblem(instance, 0)
        pricing.update([100.0], elevator_dual=0.0, required=[0])
        assert pricing.solve(threshold=math.inf) == []

    def test_reduced_cost_matches_master(self, small_instance):
        master = MasterModel(small_instance)
        master.add_schedules(seed_schedules(small_instance))
        solution = master.solve()
        assert solution is not None

        for k in range(small_instance.n_elevators):
            pricing = PricingProblem(small_instance, k)
            pricing.update(master.effective_duals(solution, k), solution.elevator_dual(k))
            for schedule in master.schedules:
                if schedule.elevator_index == k:
                    assert pricing.reduced_cost(schedule) == pytest.approx(
                        master.reduced_cost(schedule, solution)
                    )
            for column in pricing.solve(threshold=math.inf, max_schedules=3):
                assert column.reduced_cost == pytest.approx(
                    master.reduced_cost(column.schedule, solution)
                )
