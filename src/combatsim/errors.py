"""Exceptions raised by the combat simulator."""
from __future__ import annotations
from typing import Optional


class CombatSimError(Exception):
    """Base class for all simulator errors."""


class ScenarioError(CombatSimError, ValueError):
    """A battlefield configuration is invalid and cannot be simulated."""


class MapParseError(ScenarioError):
    """Map text contains something the loader does not understand."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        self.line = line
        self.column = column
        if line is not None:
            location = f"line {line}" if column is None else f"line {line}, column {column}"
            message = f"{message} ({location})"
        super().__init__(message)


class InvariantViolation(CombatSimError, RuntimeError):
    """Movement or registry invariants were broken during a run."""


class StalemateError(CombatSimError, RuntimeError):
    """A full round changed nothing while both factions are still alive."""

    def __init__(self, rounds: int):
        self.rounds = rounds
        super().__init__(
            f"Stalemate after {rounds} completed rounds: no unit can move or attack"
        )


class CalibrationError(CombatSimError, RuntimeError):
    """Calibration did not find a winning attack power within its bound."""
