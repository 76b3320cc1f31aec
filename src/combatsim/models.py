"""Data models for the combat simulator."""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Iterator, Optional
import numpy as np

from .enums import (
    CellType, Faction, SearchStrategy,
    DEFAULT_HIT_POINTS, DEFAULT_ATTACK_POWER, DEFAULT_CALIBRATION_START,
    FACTION_NAMES
)
from .errors import ScenarioError


# Neighbour offsets in BFS expansion priority: up, left, right, down
NEIGHBOR_OFFSETS = ((-1, 0), (0, -1), (0, 1), (1, 0))


@dataclass(frozen=True)
class Position:
    """Grid position (row, col), row 0 at the top."""
    row: int
    col: int

    @property
    def reading_key(self) -> tuple[int, int]:
        """Sort key for reading order: top to bottom, then left to right."""
        return (self.row, self.col)

    def adjacent(self) -> Iterator["Position"]:
        """Yield the four orthogonal neighbours in expansion priority."""
        for d_row, d_col in NEIGHBOR_OFFSETS:
            yield Position(self.row + d_row, self.col + d_col)

    def is_adjacent_to(self, other: "Position") -> bool:
        return abs(self.row - other.row) + abs(self.col - other.col) == 1

    def __str__(self) -> str:
        return f"({self.row}, {self.col})"


def reading_order(positions) -> list[Position]:
    """Sort positions in reading order."""
    return sorted(positions, key=lambda pos: pos.reading_key)


@dataclass(eq=False)
class GridMap:
    """Static battlefield terrain."""
    cells: np.ndarray  # 2D array of CellType

    def __post_init__(self):
        self.cells = np.array(self.cells, dtype=np.int8)
        if self.cells.ndim != 2:
            raise ScenarioError(f"Grid must be two-dimensional, got shape {self.cells.shape}")
        self.cells.setflags(write=False)

    @property
    def height(self) -> int:
        return self.cells.shape[0]

    @property
    def width(self) -> int:
        return self.cells.shape[1]

    @property
    def shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    def in_bounds(self, pos: Position) -> bool:
        return 0 <= pos.row < self.height and 0 <= pos.col < self.width

    def is_open(self, pos: Position) -> bool:
        """Check if position is inside the map and not a wall."""
        if self.in_bounds(pos):
            return self.cells[pos.row, pos.col] == CellType.OPEN
        return False

    def neighbors(self, pos: Position) -> Iterator[Position]:
        """Yield in-bounds neighbours in priority order (up, left, right, down)."""
        for candidate in pos.adjacent():
            if self.in_bounds(candidate):
                yield candidate

    def open_neighbors(self, pos: Position) -> Iterator[Position]:
        for candidate in pos.adjacent():
            if self.is_open(candidate):
                yield candidate

    def open_cells(self) -> list[Position]:
        """All open cells in reading order."""
        rows, cols = np.nonzero(self.cells == CellType.OPEN)
        return [Position(int(r), int(c)) for r, c in zip(rows, cols)]

    def __eq__(self, other):
        if isinstance(other, GridMap):
            return np.array_equal(self.cells, other.cells)
        return False


@dataclass(frozen=True)
class UnitSpec:
    """Initial placement and stats of one unit."""
    faction: Faction
    position: Position
    hit_points: int = DEFAULT_HIT_POINTS
    attack_power: int = DEFAULT_ATTACK_POWER


@dataclass(frozen=True)
class Scenario:
    """A parsed battlefield: terrain plus the initial units."""
    grid: GridMap
    units: tuple[UnitSpec, ...]
    name: str = ""

    def count(self, faction: Faction) -> int:
        return sum(1 for spec in self.units if spec.faction == faction)

    def factions(self) -> set[Faction]:
        return {spec.faction for spec in self.units}

    def max_hit_points(self, faction: Faction) -> int:
        """Largest starting hit points among units of a faction (0 if none)."""
        return max((spec.hit_points for spec in self.units if spec.faction == faction), default=0)

    def with_attack_power(self, faction: Faction, attack_power: int) -> "Scenario":
        """Copy of this scenario with one faction's attack power replaced."""
        units = tuple(
            replace(spec, attack_power=attack_power) if spec.faction == faction else spec
            for spec in self.units
        )
        return replace(self, units=units)


@dataclass
class CombatConfig:
    """Configuration for combat simulation."""
    # Default unit stats applied by the map loader
    hit_points: int = DEFAULT_HIT_POINTS
    attack_power: int = DEFAULT_ATTACK_POWER

    # Per-faction attack power overrides
    faction_attack_power: dict[Faction, int] = field(default_factory=dict)

    # Record a snapshot after every completed round
    record_history: bool = False

    # Abort when a full round changes nothing
    detect_stalemate: bool = True

    # Debug
    verbose: bool = False

    def attack_power_for(self, faction: Faction) -> int:
        return self.faction_attack_power.get(faction, self.attack_power)

    @classmethod
    def from_dict(cls, data: dict) -> "CombatConfig":
        """Build a config from parsed JSON, ignoring unknown keys."""
        overrides = {}
        for name, power in data.get("faction_attack_power", {}).items():
            faction = FACTION_NAMES.get(str(name).lower())
            if faction is None:
                raise ScenarioError(f"Unknown faction in config: {name!r}")
            overrides[faction] = int(power)

        return cls(
            hit_points=int(data.get("hit_points", DEFAULT_HIT_POINTS)),
            attack_power=int(data.get("attack_power", DEFAULT_ATTACK_POWER)),
            faction_attack_power=overrides,
            record_history=bool(data.get("record_history", False)),
            detect_stalemate=bool(data.get("detect_stalemate", True)),
            verbose=bool(data.get("verbose", False)),
        )


@dataclass
class CalibrationConfig:
    """Configuration for the attack power search."""
    faction: Faction = Faction.ELF
    start_power: int = DEFAULT_CALIBRATION_START
    max_power: Optional[int] = None  # None: derived from opposing hit points
    strategy: SearchStrategy = SearchStrategy.LINEAR

    @classmethod
    def from_dict(cls, data: dict) -> "CalibrationConfig":
        faction_name = str(data.get("faction", "elf")).lower()
        faction = FACTION_NAMES.get(faction_name)
        if faction is None:
            raise ScenarioError(f"Unknown faction in config: {faction_name!r}")
        strategy_name = str(data.get("strategy", SearchStrategy.LINEAR.value)).lower()
        try:
            strategy = SearchStrategy(strategy_name)
        except ValueError:
            raise ScenarioError(f"Unknown search strategy in config: {strategy_name!r}") from None
        max_power = data.get("max_power")
        return cls(
            faction=faction,
            start_power=int(data.get("start_power", DEFAULT_CALIBRATION_START)),
            max_power=int(max_power) if max_power is not None else None,
            strategy=strategy,
        )
