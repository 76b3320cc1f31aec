"""Core combat simulator engine."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Iterator
import logging
import numpy as np

from .enums import (
    CellType, CombatPhase, Faction, OPEN_SYMBOL, SYMBOL_FOR_FACTION, WALL_SYMBOL
)
from .errors import InvariantViolation, ScenarioError, StalemateError
from .models import Position, GridMap, Scenario, CombatConfig
from .pathfinding import Pathfinder
from .combat import TargetingSystem, CombatResolver, AttackResult

logger = logging.getLogger(__name__)


@dataclass
class BattleUnit:
    """A unit instance in battle."""
    uid: int
    faction: Faction
    position: Position
    hit_points: int
    attack_power: int

    @property
    def is_alive(self) -> bool:
        return self.hit_points > 0

    def take_damage(self, damage: int) -> int:
        """Apply damage, never dropping below zero. Returns actual damage dealt."""
        if not self.is_alive:
            return 0
        dealt = min(damage, self.hit_points)
        self.hit_points -= dealt
        return dealt


@dataclass(frozen=True)
class UnitSnapshot:
    """Immutable view of a unit at a point in time."""
    uid: int
    faction: Faction
    position: Position
    hit_points: int


@dataclass(frozen=True)
class RoundRecord:
    """Unit states after a completed round."""
    round_number: int
    units: tuple[UnitSnapshot, ...]


class UnitRegistry:
    """
    Authoritative store of living units.

    Units are owned here and indexed both by uid and by position; every other
    component refers to units through this registry, so a move or a death is
    visible to everything that acts after it.
    """

    def __init__(self):
        self._units: dict[int, BattleUnit] = {}
        self._positions: dict[Position, int] = {}

    def add(self, unit: BattleUnit) -> None:
        if unit.uid in self._units:
            raise InvariantViolation(f"Unit {unit.uid} is already registered")
        if unit.position in self._positions:
            raise InvariantViolation(
                f"Cannot place unit {unit.uid} at {unit.position}: "
                f"occupied by unit {self._positions[unit.position]}"
            )
        self._units[unit.uid] = unit
        self._positions[unit.position] = unit.uid

    def get(self, uid: int) -> Optional[BattleUnit]:
        return self._units.get(uid)

    def at(self, pos: Position) -> Optional[BattleUnit]:
        uid = self._positions.get(pos)
        return self._units[uid] if uid is not None else None

    def is_occupied(self, pos: Position) -> bool:
        return pos in self._positions

    def remove(self, uid: int) -> BattleUnit:
        unit = self._units.pop(uid, None)
        if unit is None:
            raise InvariantViolation(f"Unit {uid} is not registered")
        if self._positions.get(unit.position) != uid:
            raise InvariantViolation(f"Unit {uid} is not indexed at {unit.position}")
        del self._positions[unit.position]
        return unit

    def remove_at(self, pos: Position) -> BattleUnit:
        uid = self._positions.get(pos)
        if uid is None:
            raise InvariantViolation(f"No unit at {pos}")
        return self.remove(uid)

    def move(self, uid: int, destination: Position) -> None:
        unit = self._units.get(uid)
        if unit is None:
            raise InvariantViolation(f"Cannot move unregistered unit {uid}")
        if destination in self._positions:
            raise InvariantViolation(
                f"Cannot move unit {uid} to {destination}: "
                f"occupied by unit {self._positions[destination]}"
            )
        del self._positions[unit.position]
        unit.position = destination
        self._positions[destination] = uid

    def in_reading_order(self) -> list[BattleUnit]:
        """Living units sorted top-to-bottom, left-to-right."""
        return sorted(self._units.values(), key=lambda u: u.position.reading_key)

    def units_of(self, faction: Faction) -> list[BattleUnit]:
        return [u for u in self.in_reading_order() if u.faction == faction]

    def count(self, faction: Optional[Faction] = None) -> int:
        if faction is None:
            return len(self._units)
        return sum(1 for u in self._units.values() if u.faction == faction)

    def factions(self) -> set[Faction]:
        return {u.faction for u in self._units.values()}

    def __len__(self) -> int:
        return len(self._units)

    def __iter__(self) -> Iterator[BattleUnit]:
        return iter(self.in_reading_order())

    def __contains__(self, uid: int) -> bool:
        return uid in self._units


class Battlefield:
    """Terrain plus the mutable set of units fighting on it."""

    def __init__(self, grid: GridMap, registry: Optional[UnitRegistry] = None):
        self.grid = grid
        self.registry = registry or UnitRegistry()

    @classmethod
    def from_scenario(cls, scenario: Scenario) -> "Battlefield":
        """
        Build a fresh battlefield from a scenario.

        Units get uids in reading order of their starting positions.

        Raises:
            ScenarioError: If a unit stands on a wall or outside the map,
                two units share a cell, or a unit has non-positive stats
        """
        battlefield = cls(scenario.grid)
        specs = sorted(scenario.units, key=lambda spec: spec.position.reading_key)
        for uid, spec in enumerate(specs):
            if not scenario.grid.is_open(spec.position):
                raise ScenarioError(f"Unit at {spec.position} is not on open floor")
            if battlefield.registry.is_occupied(spec.position):
                raise ScenarioError(f"More than one unit at {spec.position}")
            if spec.hit_points <= 0:
                raise ScenarioError(f"Unit at {spec.position} has no hit points")
            if spec.attack_power <= 0:
                raise ScenarioError(f"Unit at {spec.position} has non-positive attack power")
            battlefield.registry.add(BattleUnit(
                uid=uid,
                faction=spec.faction,
                position=spec.position,
                hit_points=spec.hit_points,
                attack_power=spec.attack_power
            ))
        return battlefield

    def unit_at(self, pos: Position) -> Optional[BattleUnit]:
        return self.registry.at(pos)

    def is_free(self, pos: Position) -> bool:
        """Open floor with nobody standing on it."""
        return self.grid.is_open(pos) and not self.registry.is_occupied(pos)

    def adjacent_enemies(self, unit: BattleUnit) -> list[BattleUnit]:
        enemies = []
        for pos in self.grid.neighbors(unit.position):
            other = self.registry.at(pos)
            if other is not None and other.faction != unit.faction:
                enemies.append(other)
        return enemies

    def has_enemies(self, unit: BattleUnit) -> bool:
        return self.registry.count(unit.faction.enemy) > 0

    def turn_order(self) -> list[int]:
        """Uids of living units in reading order, frozen for one round."""
        return [unit.uid for unit in self.registry.in_reading_order()]

    def move_unit(self, unit: BattleUnit, destination: Position) -> None:
        """Move a unit one step. Anything but a step onto free floor is a defect."""
        if self.registry.get(unit.uid) is not unit:
            raise InvariantViolation(f"Unit {unit.uid} is not on the battlefield")
        if not unit.position.is_adjacent_to(destination):
            raise InvariantViolation(
                f"Unit {unit.uid} cannot move from {unit.position} to {destination}"
            )
        if not self.grid.is_open(destination):
            raise InvariantViolation(f"Unit {unit.uid} cannot move into {destination}")
        self.registry.move(unit.uid, destination)

    def total_hit_points(self, faction: Optional[Faction] = None) -> int:
        return sum(
            u.hit_points for u in self.registry.in_reading_order()
            if faction is None or u.faction == faction
        )

    def snapshot(self) -> tuple[UnitSnapshot, ...]:
        return tuple(
            UnitSnapshot(u.uid, u.faction, u.position, u.hit_points)
            for u in self.registry.in_reading_order()
        )

    def hit_point_grid(self) -> np.ndarray:
        """Hit points per cell (0 where no unit stands)."""
        grid = np.zeros(self.grid.shape, dtype=np.int32)
        for unit in self.registry:
            grid[unit.position.row, unit.position.col] = unit.hit_points
        return grid

    def render(self) -> str:
        """The battlefield in map notation, one line per row."""
        rows = [
            [WALL_SYMBOL if cell == CellType.WALL else OPEN_SYMBOL for cell in row]
            for row in self.grid.cells
        ]
        for unit in self.registry:
            rows[unit.position.row][unit.position.col] = SYMBOL_FOR_FACTION[unit.faction]
        return "\n".join("".join(row) for row in rows)


@dataclass
class TurnResult:
    """What one unit did on its turn."""
    uid: int
    moved_to: Optional[Position] = None
    attack: Optional[AttackResult] = None

    @property
    def acted(self) -> bool:
        return self.moved_to is not None or self.attack is not None


@dataclass
class CombatOutcome:
    """Final state of a combat."""
    completed_rounds: int
    remaining_hit_points: int
    winner: Optional[Faction]
    survivors: tuple[UnitSnapshot, ...]
    history: list[RoundRecord] = field(default_factory=list)

    @property
    def outcome(self) -> int:
        return self.completed_rounds * self.remaining_hit_points

    def survivor_count(self, faction: Faction) -> int:
        return sum(1 for unit in self.survivors if unit.faction == faction)


class CombatSimulator:
    """
    Drives a battlefield round by round until one faction is eliminated.

    Each round freezes the reading-order turn order of the living units. On
    its turn a unit ends combat if no enemies remain, otherwise moves one step
    toward the nearest reachable enemy (unless already adjacent to one) and
    then attacks the weakest adjacent enemy. Only rounds that run to the end
    count toward the outcome.
    """

    def __init__(self, battlefield: Battlefield, config: Optional[CombatConfig] = None):
        self.battlefield = battlefield
        self.config = config or CombatConfig()
        self.pathfinder = Pathfinder()
        self.targeting = TargetingSystem()
        self.resolver = CombatResolver()

        self.phase = CombatPhase.ROUND_START
        self.completed_rounds = 0
        self.history: list[RoundRecord] = []

    @property
    def is_over(self) -> bool:
        return self.phase == CombatPhase.COMBAT_OVER

    def take_turn(self, unit: BattleUnit) -> TurnResult:
        """Movement phase then attack phase for one unit."""
        result = TurnResult(uid=unit.uid)
        battlefield = self.battlefield

        if not battlefield.adjacent_enemies(unit):
            step = self.pathfinder.next_step(battlefield, unit)
            if step is not None:
                battlefield.move_unit(unit, step)
                result.moved_to = step

        target = self.targeting.select_target(battlefield, unit)
        if target is not None:
            result.attack = self.resolver.resolve(battlefield, unit, target)

        return result

    def play_round(self) -> bool:
        """
        Play one round.

        Returns:
            True if the round ran to completion, False if combat is over
        """
        if self.is_over:
            return False

        self.phase = CombatPhase.ROUND_START
        registry = self.battlefield.registry
        if len(registry.factions()) < 2:
            self._finish()
            return False

        changed = False
        for uid in self.battlefield.turn_order():
            unit = registry.get(uid)
            if unit is None:
                continue  # died earlier this round

            self.phase = CombatPhase.UNIT_TURN
            if not self.battlefield.has_enemies(unit):
                self._finish()
                return False

            turn = self.take_turn(unit)
            changed = changed or turn.acted
            if turn.attack is not None and turn.attack.killed:
                logger.debug(
                    "Round %d: unit %d killed unit %d",
                    self.completed_rounds + 1, uid, turn.attack.defender_uid
                )

        self.phase = CombatPhase.ROUND_COMPLETE
        self.completed_rounds += 1
        if self.config.record_history:
            self.history.append(RoundRecord(self.completed_rounds, self.battlefield.snapshot()))
        logger.debug(
            "Round %d complete: %d elves, %d goblins",
            self.completed_rounds, registry.count(Faction.ELF), registry.count(Faction.GOBLIN)
        )

        if not changed and self.config.detect_stalemate:
            raise StalemateError(self.completed_rounds)
        return True

    def run(self) -> CombatOutcome:
        """Run rounds until combat is over."""
        while not self.is_over:
            self.play_round()
        return self.outcome()

    def outcome(self) -> CombatOutcome:
        survivors = self.battlefield.snapshot()
        factions = {unit.faction for unit in survivors}
        winner = factions.pop() if len(factions) == 1 else None
        return CombatOutcome(
            completed_rounds=self.completed_rounds,
            remaining_hit_points=sum(unit.hit_points for unit in survivors),
            winner=winner,
            survivors=survivors,
            history=list(self.history)
        )

    def _finish(self) -> None:
        self.phase = CombatPhase.COMBAT_OVER
        log = logger.info if self.config.verbose else logger.debug
        log(
            "Combat ends after %d full rounds with %d hit points left",
            self.completed_rounds, self.battlefield.total_hit_points()
        )


def run_combat(scenario: Scenario, config: Optional[CombatConfig] = None) -> CombatOutcome:
    """Build a fresh battlefield from a scenario and fight it out."""
    battlefield = Battlefield.from_scenario(scenario)
    return CombatSimulator(battlefield, config).run()
