"""Shared fixtures for the liftdispatch test suite."""
import pytest

from liftdispatch.branch_and_price.driver import BranchAndPriceConfig
from liftdispatch.models.problem import Elevator, ProblemInstance, Request


def make_instance(elevators, requests, num_floors=10, **timing):
    """Instance with the default timing constants unless overridden."""
    instance = ProblemInstance(name="test", num_floors=num_floors, **timing)
    for elevator in elevators:
        instance.add_elevator(elevator)
    for request in requests:
        instance.add_request(request)
    return instance


@pytest.fixture
def single_request_instance():
    """One idle elevator at floor 1 and one request 1 -> 5."""
    return make_instance(
        [Elevator(id=0, capacity=8)],
        [Request.single(1, start_floor=1, destination_floor=5)],
    )


@pytest.fixture
def two_idle_elevators():
    return make_instance([Elevator(id=0, capacity=8), Elevator(id=1, capacity=8)], [])


@pytest.fixture
def twin_elevators_instance():
    """Two identical elevators at floor 1 and one request 1 -> 5."""
    return make_instance(
        [Elevator(id=0, capacity=8), Elevator(id=1, capacity=8)],
        [Request.single(1, start_floor=1, destination_floor=5)],
    )


@pytest.fixture
def small_instance():
    """Two elevators, three requests in both directions."""
    return make_instance(
        [
            Elevator(id=0, capacity=4, current_floor=1),
            Elevator(id=1, capacity=4, current_floor=8),
        ],
        [
            Request.single(1, start_floor=2, destination_floor=6, release_time=0.0),
            Request.single(2, start_floor=7, destination_floor=3, release_time=1.0),
            Request.single(3, start_floor=4, destination_floor=9, release_time=2.0),
        ],
    )


@pytest.fixture
def quiet_config():
    return BranchAndPriceConfig(verbose=False, time_limit=60.0)


@pytest.fixture
def build_instance():
    return make_instance
