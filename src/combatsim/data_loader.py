"""Data loader for text battle maps and JSON configuration."""
from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Optional
import numpy as np

from .enums import CellType, FACTION_SYMBOLS, TERRAIN_SYMBOLS
from .errors import MapParseError, ScenarioError
from .models import (
    Position, GridMap, UnitSpec, Scenario, CombatConfig, CalibrationConfig
)

logger = logging.getLogger(__name__)

MAP_SUFFIX = ".txt"


def parse_map(text: str, config: Optional[CombatConfig] = None, name: str = "") -> Scenario:
    """
    Parse a text map into a scenario.

    `#` is a wall, `.` open floor, `E` and `G` units standing on open floor.
    Blank lines at the end of the text are ignored; all other rows must have
    the same length.

    Args:
        text: The map text
        config: Supplies default hit points and attack power for units
        name: Optional scenario name (used in reports)

    Raises:
        MapParseError: On unknown characters, ragged rows or an empty map
    """
    config = config or CombatConfig()
    lines = text.rstrip().splitlines()
    if not lines:
        raise MapParseError("Map is empty")

    width = len(lines[0])
    cells = np.full((len(lines), width), CellType.WALL, dtype=np.int8)
    units = []

    for row, line in enumerate(lines):
        if len(line) != width:
            raise MapParseError(
                f"Row has {len(line)} cells, expected {width}", line=row + 1
            )
        for col, symbol in enumerate(line):
            if symbol in TERRAIN_SYMBOLS:
                cells[row, col] = TERRAIN_SYMBOLS[symbol]
            elif symbol in FACTION_SYMBOLS:
                faction = FACTION_SYMBOLS[symbol]
                cells[row, col] = CellType.OPEN
                units.append(UnitSpec(
                    faction=faction,
                    position=Position(row, col),
                    hit_points=config.hit_points,
                    attack_power=config.attack_power_for(faction)
                ))
            else:
                raise MapParseError(
                    f"Invalid map character {symbol!r}", line=row + 1, column=col + 1
                )

    return Scenario(grid=GridMap(cells), units=tuple(units), name=name)


class MapLoader:
    """Loads battle maps and configuration files from a data directory."""

    def __init__(self, data_dir: str | Path = "data"):
        self.data_dir = Path(data_dir)
        self.maps_dir = self.data_dir / "maps"

    def _resolve(self, name_or_path: str | Path) -> Path:
        """Find a map by explicit path, or by name inside the maps directory."""
        path = Path(name_or_path)
        if path.exists():
            return path
        for candidate in (self.maps_dir / path, self.maps_dir / f"{path}{MAP_SUFFIX}"):
            if candidate.exists():
                return candidate
        raise FileNotFoundError(f"Map not found: {name_or_path}")

    def list_maps(self) -> list[str]:
        """Names of bundled maps, sorted."""
        if not self.maps_dir.is_dir():
            return []
        return sorted(p.stem for p in self.maps_dir.glob(f"*{MAP_SUFFIX}"))

    def load_map(self, name_or_path: str | Path, config: Optional[CombatConfig] = None) -> Scenario:
        """Load and parse a map file."""
        path = self._resolve(name_or_path)
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        scenario = parse_map(text, config=config, name=path.stem)
        logger.debug(
            "Loaded map %s: %dx%d, %d units",
            path, scenario.grid.height, scenario.grid.width, len(scenario.units)
        )
        return scenario

    def _load_json(self, path: str | Path) -> dict:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ScenarioError(f"Config file {path} must contain a JSON object")
        return data

    def load_config(self, path: str | Path) -> CombatConfig:
        """Load combat configuration from a JSON file."""
        return CombatConfig.from_dict(self._load_json(path))

    def load_calibration_config(self, path: str | Path) -> CalibrationConfig:
        """Load the `calibration` section of a JSON config file."""
        return CalibrationConfig.from_dict(self._load_json(path).get("calibration", {}))
