"""Combat mechanics for the simulator - target selection and damage."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .errors import InvariantViolation

if TYPE_CHECKING:
    from .battle import BattleUnit, Battlefield


@dataclass
class AttackResult:
    """Result of a single attack."""
    attacker_uid: int
    defender_uid: int
    damage_dealt: int
    remaining_hit_points: int
    killed: bool = False


class TargetingSystem:
    """Picks which adjacent enemy a unit attacks."""

    def select_target(self, battlefield: "Battlefield", unit: "BattleUnit") -> Optional["BattleUnit"]:
        """
        Adjacent enemy with the fewest hit points.

        Ties go to the enemy first in reading order. Returns None when no
        enemy is in range.
        """
        enemies = battlefield.adjacent_enemies(unit)
        if not enemies:
            return None
        return min(enemies, key=lambda e: (e.hit_points, e.position.reading_key))


class CombatResolver:
    """Applies attacks and removes the dead."""

    def resolve(
        self,
        battlefield: "Battlefield",
        attacker: "BattleUnit",
        defender: "BattleUnit"
    ) -> AttackResult:
        """
        Deal the attacker's power to the defender.

        A defender brought to zero hit points leaves the battlefield at once,
        so later turns in the same round neither see nor target it.
        """
        registry = battlefield.registry
        if registry.get(attacker.uid) is not attacker:
            raise InvariantViolation(f"Attacker {attacker.uid} is not on the battlefield")
        if registry.get(defender.uid) is not defender:
            raise InvariantViolation(f"Defender {defender.uid} is not on the battlefield")
        if attacker.faction == defender.faction:
            raise InvariantViolation(f"Unit {attacker.uid} attacked ally {defender.uid}")
        if not attacker.position.is_adjacent_to(defender.position):
            raise InvariantViolation(
                f"Unit {attacker.uid} at {attacker.position} cannot reach "
                f"unit {defender.uid} at {defender.position}"
            )

        dealt = defender.take_damage(attacker.attack_power)
        killed = not defender.is_alive
        if killed:
            registry.remove(defender.uid)

        return AttackResult(
            attacker_uid=attacker.uid,
            defender_uid=defender.uid,
            damage_dealt=dealt,
            remaining_hit_points=defender.hit_points,
            killed=killed
        )
