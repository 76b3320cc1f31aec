"""Simulator enumerations and constants."""
from enum import Enum, IntEnum


class CellType(IntEnum):
    """Terrain cell types stored in the grid array."""
    OPEN = 0
    WALL = 1


class Faction(IntEnum):
    """The two opposing factions on a battlefield."""
    ELF = 1
    GOBLIN = 2

    @property
    def enemy(self) -> "Faction":
        return Faction.GOBLIN if self is Faction.ELF else Faction.ELF

    @property
    def plural(self) -> str:
        return FACTION_PLURALS[self]


class CombatPhase(IntEnum):
    """States of the simulation driver."""
    ROUND_START = 0
    UNIT_TURN = 1
    ROUND_COMPLETE = 2
    COMBAT_OVER = 3


class SearchStrategy(str, Enum):
    """How the calibrator walks candidate attack powers."""
    LINEAR = "linear"   # try start, start + 1, ... until success
    BISECT = "bisect"   # binary search; assumes success is monotonic in power


# Default unit stats
DEFAULT_HIT_POINTS = 200
DEFAULT_ATTACK_POWER = 3
DEFAULT_CALIBRATION_START = DEFAULT_ATTACK_POWER + 1


# Map symbol mappings for parsing and rendering
WALL_SYMBOL = "#"
OPEN_SYMBOL = "."

FACTION_SYMBOLS = {
    "E": Faction.ELF,
    "G": Faction.GOBLIN,
}

TERRAIN_SYMBOLS = {
    WALL_SYMBOL: CellType.WALL,
    OPEN_SYMBOL: CellType.OPEN,
}

FACTION_NAMES = {
    "elf": Faction.ELF,
    "elves": Faction.ELF,
    "goblin": Faction.GOBLIN,
    "goblins": Faction.GOBLIN,
}

FACTION_PLURALS = {
    Faction.ELF: "Elves",
    Faction.GOBLIN: "Goblins",
}

SYMBOL_FOR_FACTION = {faction: symbol for symbol, faction in FACTION_SYMBOLS.items()}
