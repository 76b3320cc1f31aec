"""Grid combat simulator package."""
from .enums import (
    CellType, Faction, CombatPhase, SearchStrategy,
    DEFAULT_HIT_POINTS, DEFAULT_ATTACK_POWER, DEFAULT_CALIBRATION_START,
    FACTION_SYMBOLS, TERRAIN_SYMBOLS
)
from .errors import (
    CombatSimError, ScenarioError, MapParseError, InvariantViolation,
    StalemateError, CalibrationError
)
from .models import (
    Position, GridMap, UnitSpec, Scenario, CombatConfig, CalibrationConfig,
    reading_order
)
from .data_loader import MapLoader, parse_map
from .pathfinding import Pathfinder, MovePlan
from .combat import TargetingSystem, CombatResolver, AttackResult
from .battle import (
    BattleUnit, UnitSnapshot, RoundRecord, UnitRegistry, Battlefield,
    TurnResult, CombatOutcome, CombatSimulator, run_combat
)
from .calibration import (
    CalibrationAttempt, CalibrationResult, Calibrator, calibrate
)

__all__ = [
    # Enums
    "CellType", "Faction", "CombatPhase", "SearchStrategy",
    "DEFAULT_HIT_POINTS", "DEFAULT_ATTACK_POWER", "DEFAULT_CALIBRATION_START",
    "FACTION_SYMBOLS", "TERRAIN_SYMBOLS",
    # Errors
    "CombatSimError", "ScenarioError", "MapParseError", "InvariantViolation",
    "StalemateError", "CalibrationError",
    # Models
    "Position", "GridMap", "UnitSpec", "Scenario", "CombatConfig", "CalibrationConfig",
    "reading_order",
    # Data loader
    "MapLoader", "parse_map",
    # Movement and combat systems
    "Pathfinder", "MovePlan", "TargetingSystem", "CombatResolver", "AttackResult",
    # Battle
    "BattleUnit", "UnitSnapshot", "RoundRecord", "UnitRegistry", "Battlefield",
    "TurnResult", "CombatOutcome", "CombatSimulator", "run_combat",
    # Calibration
    "CalibrationAttempt", "CalibrationResult", "Calibrator", "calibrate",
]
