"""Breadth-first movement planning on the battle grid."""
from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING
import numpy as np

from .errors import InvariantViolation
from .models import Position

if TYPE_CHECKING:
    from .battle import BattleUnit, Battlefield

UNREACHED = -1


@dataclass(frozen=True)
class MovePlan:
    """The chosen destination and the first step toward it."""
    destination: Position
    distance: int
    step: Position


class Pathfinder:
    """
    Chooses a unit's single step toward the nearest enemy.

    Every unit, friend or foe, blocks movement. Ties are broken twice: first
    the destination (reading order among the nearest target cells), then the
    first step (reading order among neighbours on a shortest path to that
    destination).
    """

    def target_cells(self, battlefield: "Battlefield", unit: "BattleUnit") -> list[Position]:
        """Free cells adjacent to any living enemy, in reading order."""
        cells = set()
        for enemy in battlefield.registry.units_of(unit.faction.enemy):
            for pos in battlefield.grid.neighbors(enemy.position):
                if battlefield.is_free(pos):
                    cells.add(pos)
        return sorted(cells, key=lambda pos: pos.reading_key)

    def distance_field(self, battlefield: "Battlefield", origin: Position) -> np.ndarray:
        """
        Step distances from origin over free cells.

        The origin itself is always distance 0 even if a unit stands there.
        Unreachable cells hold UNREACHED.
        """
        grid = battlefield.grid
        if not grid.in_bounds(origin):
            raise InvariantViolation(f"Search origin {origin} is outside the map")

        distances = np.full(grid.shape, UNREACHED, dtype=np.int32)
        distances[origin.row, origin.col] = 0
        frontier = deque([origin])

        while frontier:
            pos = frontier.popleft()
            next_distance = distances[pos.row, pos.col] + 1
            for neighbor in grid.neighbors(pos):
                if distances[neighbor.row, neighbor.col] != UNREACHED:
                    continue
                if not battlefield.is_free(neighbor):
                    continue
                distances[neighbor.row, neighbor.col] = next_distance
                frontier.append(neighbor)

        return distances

    def plan(self, battlefield: "Battlefield", unit: "BattleUnit") -> Optional[MovePlan]:
        """Work out where the unit should head this turn, or None to stay put."""
        if battlefield.adjacent_enemies(unit):
            return None

        targets = self.target_cells(battlefield, unit)
        if not targets:
            return None

        from_unit = self.distance_field(battlefield, unit.position)
        reached = [
            pos for pos in targets
            if from_unit[pos.row, pos.col] != UNREACHED
        ]
        if not reached:
            return None

        destination = min(
            reached,
            key=lambda pos: (from_unit[pos.row, pos.col], pos.reading_key)
        )
        distance = int(from_unit[destination.row, destination.col])

        # Second search from the destination: a neighbour lies on a shortest
        # path exactly when it is distance - 1 away from the destination.
        to_destination = self.distance_field(battlefield, destination)
        steps = [
            pos for pos in battlefield.grid.neighbors(unit.position)
            if battlefield.is_free(pos)
            and to_destination[pos.row, pos.col] == distance - 1
        ]
        if not steps:
            raise InvariantViolation(
                f"No first step from {unit.position} toward reachable {destination}"
            )
        step = min(steps, key=lambda pos: pos.reading_key)

        return MovePlan(destination=destination, distance=distance, step=step)

    def next_step(self, battlefield: "Battlefield", unit: "BattleUnit") -> Optional[Position]:
        plan = self.plan(battlefield, unit)
        return plan.step if plan is not None else None
