"""Attack power calibration: the weakest power that wins without losses."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional
import logging

from .enums import Faction, SearchStrategy
from .errors import CalibrationError, ScenarioError, StalemateError
from .models import Scenario, CombatConfig, CalibrationConfig
from .battle import Battlefield, CombatOutcome, CombatSimulator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationAttempt:
    """One simulated combat at a candidate attack power."""
    attack_power: int
    outcome: CombatOutcome
    losses: int
    success: bool
    stalemate: bool = False


@dataclass
class CalibrationResult:
    """The minimal winning attack power and the combat it produced."""
    attack_power: int
    outcome: CombatOutcome
    winner: Faction
    attempts: list[CalibrationAttempt] = field(default_factory=list)

    @property
    def outcome_value(self) -> int:
        return self.outcome.outcome


class Calibrator:
    """
    Raises one faction's attack power until it wins without losing a unit.

    Every attempt fights a fresh battlefield built from the baseline scenario;
    only the tuned faction's attack power changes between attempts.

    The search is bounded. Once the tuned power reaches the largest hit points
    among the opposing units every hit is a kill, so any higher power replays
    the same battle; if that power still loses units, no power will win
    cleanly and CalibrationError is raised.

    An attempt that stalls counts as a failed attempt: its outcome is the
    battlefield as it stood when the stalemate was detected, and the search
    moves on to the next power.
    """

    def __init__(
        self,
        scenario: Scenario,
        config: Optional[CalibrationConfig] = None,
        combat_config: Optional[CombatConfig] = None
    ):
        self.scenario = scenario
        self.config = config or CalibrationConfig()
        self.combat_config = combat_config or CombatConfig()
        self._attempts: dict[int, CalibrationAttempt] = {}

        if self.config.start_power <= 0:
            raise ScenarioError(f"Start power must be positive, got {self.config.start_power}")

    @property
    def faction(self) -> Faction:
        return self.config.faction

    @property
    def upper_bound(self) -> int:
        if self.config.max_power is not None:
            return self.config.max_power
        return max(self.config.start_power, self.scenario.max_hit_points(self.faction.enemy))

    def attempt(self, attack_power: int) -> CalibrationAttempt:
        """Fight one combat with the tuned faction at the given power."""
        if attack_power in self._attempts:
            return self._attempts[attack_power]

        scenario = self.scenario.with_attack_power(self.faction, attack_power)
        simulator = CombatSimulator(Battlefield.from_scenario(scenario), self.combat_config)
        stalemate = False
        try:
            outcome = simulator.run()
        except StalemateError as e:
            logger.info("Attack power %d: %s", attack_power, e)
            outcome = simulator.outcome()
            stalemate = True

        losses = self.scenario.count(self.faction) - outcome.survivor_count(self.faction)
        success = not stalemate and outcome.winner == self.faction and losses == 0
        result = CalibrationAttempt(
            attack_power=attack_power,
            outcome=outcome,
            losses=losses,
            success=success,
            stalemate=stalemate
        )
        self._attempts[attack_power] = result

        logger.info(
            "Attack power %d: %s win after %d full rounds, %d %s lost",
            attack_power,
            outcome.winner.plural if outcome.winner else "nobody",
            outcome.completed_rounds,
            losses,
            self.faction.plural.lower()
        )
        return result

    @property
    def attempts(self) -> list[CalibrationAttempt]:
        """Attempts made so far, in the order they were run."""
        return list(self._attempts.values())

    def calibrate(self) -> CalibrationResult:
        """
        Find the minimal attack power for a lossless win.

        Raises:
            CalibrationError: If the faction is absent or no power up to the
                bound wins without losses
        """
        if self.scenario.count(self.faction) == 0:
            raise CalibrationError(f"No {self.faction.plural.lower()} on the battlefield")

        bound = self.upper_bound
        if bound < self.config.start_power:
            raise CalibrationError(
                f"Upper bound {bound} is below start power {self.config.start_power}"
            )

        if self.config.strategy == SearchStrategy.BISECT:
            winning = self._bisect(bound)
        else:
            winning = self._linear(bound)

        return CalibrationResult(
            attack_power=winning.attack_power,
            outcome=winning.outcome,
            winner=self.faction,
            attempts=self.attempts
        )

    def _linear(self, bound: int) -> CalibrationAttempt:
        for power in range(self.config.start_power, bound + 1):
            attempt = self.attempt(power)
            if attempt.success:
                return attempt
        raise CalibrationError(
            f"{self.faction.plural} cannot win without losses "
            f"at attack power {self.config.start_power}..{bound}"
        )

    def _bisect(self, bound: int) -> CalibrationAttempt:
        # Assumes success is monotonic in attack power.
        if not self.attempt(bound).success:
            raise CalibrationError(
                f"{self.faction.plural} cannot win without losses at attack power {bound}"
            )
        low, high = self.config.start_power, bound
        while low < high:
            mid = (low + high) // 2
            if self.attempt(mid).success:
                high = mid
            else:
                low = mid + 1
        return self.attempt(high)


def calibrate(
    scenario: Scenario,
    config: Optional[CalibrationConfig] = None,
    combat_config: Optional[CombatConfig] = None
) -> CalibrationResult:
    """Shortcut for Calibrator(...).calibrate()."""
    return Calibrator(scenario, config, combat_config).calibrate()
