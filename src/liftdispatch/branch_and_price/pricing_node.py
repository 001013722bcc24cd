"""Search-tree node of the pricing branch-and-bound.

A node is an immutable partial route of one elevator together with the
request rows it still has to serve (mandatory) or may serve (optional).
Children are produced in this order:

1. drop carried calls destined for the current floor;
2. pick up a mandatory request here; passing it by only defers it, since
   it stays mandatory until some child boards it;
3. pick up one optional request that fits in the car, next to the moves;
4. at capacity, also give up the remaining optional requests;
5. move one floor toward remaining work;
6. stopped with nothing on board and nothing mandatory, end the route.

A drop due at the current floor is the only child. All other children are
offered side by side.

Passing an optional request by does not discard it: the car may come back
for it after serving other work. An empty car never turns around without
having stopped, since reaching the same floor later with the same load is
never cheaper. Together with the depth cap this keeps the tree finite.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, Optional, Sequence

from ..models.problem import Direction

if TYPE_CHECKING:
    from ..models.problem import Request
    from ..models.route import RouteState
    from .pricing import PricingConfig


@dataclass(frozen=True, slots=True, eq=False)
class PricingNode:
    """Immutable pricing search state.

    Attributes:
        route: Partial route built so far
        mandatory: Rows that must still be picked up
        optional: Rows that may still be picked up
        served_optional: Number of optional rows picked up so far
        depth: Number of transitions from the root
        ended: True for a synthesized end node
        last_pick: Rank key of the optional row last boarded at the open
            stop; later pickups at the same stop must rank after it
    """
    route: RouteState
    mandatory: tuple[Request, ...] = ()
    optional: tuple[Request, ...] = ()
    served_optional: int = 0
    depth: int = 0
    ended: bool = False
    last_pick: Optional[tuple] = None

    def is_last(self, config: PricingConfig) -> bool:
        """Check if the node is a complete schedule."""
        if self.mandatory or self.route.onboard:
            return False
        return (
            self.ended
            or not self.optional
            or (
                config.optional_per_schedule is not None
                and self.served_optional >= config.optional_per_schedule
            )
            or self.depth >= config.max_depth
        )

    def _child(self, route: RouteState, **changes) -> PricingNode:
        return replace(self, route=route, depth=self.depth + 1, **changes)

    def _pickable(self, requests: Sequence[Request]) -> list[Request]:
        route = self.route
        direction = route.effective_direction
        elevator = route.elevator
        return [
            r for r in requests
            if r.start_floor == route.floor
            and (direction == Direction.IDLE or r.direction == direction)
            and elevator.can_travel(r.direction)
        ]

    def _work_floors(self, optional: Sequence[Request]) -> set[int]:
        floors = set(self.route.pending_drop_floors)
        floors.update(r.start_floor for r in self.mandatory)
        floors.update(r.start_floor for r in optional)
        return floors

    def _move_directions(self, optional: Sequence[Request]) -> list[Direction]:
        route = self.route
        work = self._work_floors(optional)

        def ahead(direction: Direction) -> bool:
            return any((w - route.floor) * direction > 0 for w in work)

        if route.onboard:
            drops = route.pending_drop_floors
            for direction in (route.direction, Direction(-route.direction)):
                if direction != Direction.IDLE and any((f - route.floor) * direction > 0 for f in drops):
                    return [direction]
            return []

        if route.moving:
            # empty and moving: keep going, a turn would revisit floors later
            if ahead(route.direction) and route.elevator.can_travel(route.direction):
                return [route.direction]
            return []

        return [
            d for d in (Direction.UP, Direction.DOWN)
            if ahead(d) and route.elevator.can_travel(d)
        ]

    def _can_end(self) -> bool:
        return not (self.mandatory or self.route.onboard or self.route.moving)

    def _end(self) -> PricingNode:
        return replace(self, optional=(), ended=True, depth=self.depth + 1, last_pick=None)

    def branch(
        self,
        config: PricingConfig,
        rank: Optional[Callable[[Request], tuple]] = None,
    ) -> list[PricingNode]:
        """Expand the node.

        Args:
            config: Pricing configuration (fan-out and depth caps)
            rank: Sort key for optional pickups, most promising first

        Returns:
            Child nodes, possibly empty when the node is a dead end
        """
        route = self.route
        rank = rank or (lambda r: (r.id,))

        if route.has_drop_here():
            return [self._child(route.drop_here())]

        children = [
            self._child(
                route.pickup(r),
                mandatory=tuple(m for m in self.mandatory if m.id != r.id),
            )
            for r in self._pickable(self.mandatory)
        ]

        optional = self.optional if self.depth < config.max_depth else ()

        optional_here = [
            r for r in self._pickable(optional)
            if route.fits(r) and (self.last_pick is None or rank(r) > self.last_pick)
        ]
        optional_here.sort(key=rank)
        for r in optional_here[:config.max_pickup_children]:
            children.append(self._child(
                route.pickup(r),
                optional=tuple(o for o in optional if o.id != r.id),
                served_optional=self.served_optional + 1,
                last_pick=rank(r),
            ))

        if optional and route.load >= route.elevator.capacity:
            children.append(self._child(route, optional=(), last_pick=None))

        children.extend(
            self._child(route.move(d), optional=optional, last_pick=None)
            for d in self._move_directions(optional)
        )

        if self._can_end():
            children.append(self._end())

        return children

    def __repr__(self) -> str:
        return (
            f"PricingNode(floor={self.route.floor}, t={self.route.time:.1f}, "
            f"mandatory={[r.id for r in self.mandatory]}, "
            f"optional={[r.id for r in self.optional]}, depth={self.depth})"
        )
