#!/usr/bin/env python3
"""Demo script: fight every bundled map and calibrate elf attack power."""
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from combatsim import (
    MapLoader, CombatConfig, Calibrator, CombatSimulator, Battlefield,
    Faction, StalemateError
)
from combatsim.enums import SYMBOL_FOR_FACTION

DATA_DIR = Path(__file__).parent.parent / "data"


def show_battle(loader, name):
    """Run one map round by round."""
    print("=" * 50)
    print(f"Map: {name}")
    print("=" * 50)

    scenario = loader.load_map(name)
    print(f"  Size: {scenario.grid.height}x{scenario.grid.width}")
    print(f"  Elves: {scenario.count(Faction.ELF)}  Goblins: {scenario.count(Faction.GOBLIN)}")

    battlefield = Battlefield.from_scenario(scenario)
    simulator = CombatSimulator(battlefield, CombatConfig(record_history=True))
    outcome = simulator.run()

    for record in outcome.history[:3]:
        alive = ", ".join(
            f"{SYMBOL_FOR_FACTION[unit.faction]}{unit.position}:{unit.hit_points}"
            for unit in record.units
        )
        print(f"  After round {record.round_number}: {alive}")

    winner = outcome.winner.plural if outcome.winner else "Nobody"
    print(f"\n{winner} win after {outcome.completed_rounds} full rounds")
    print(battlefield.render())
    print(f"  Hit points left: {outcome.remaining_hit_points}")
    print(f"  Outcome: {outcome.outcome}")
    return scenario


def show_calibration(scenario):
    """Find the attack power elves need to win without losses."""
    print("\nCalibrating elf attack power...")
    result = Calibrator(scenario).calibrate()
    for attempt in result.attempts:
        mark = "✓" if attempt.success else "✗"
        note = " (stalemate)" if attempt.stalemate else ""
        print(f"  {mark} power {attempt.attack_power}: {attempt.losses} elves lost{note}")
    print(f"Elves need attack power {result.attack_power}. Outcome: {result.outcome_value}\n")


def main():
    loader = MapLoader(DATA_DIR)
    for name in loader.list_maps():
        try:
            scenario = show_battle(loader, name)
            show_calibration(scenario)
        except StalemateError as e:
            print(f"  {e}\n")


if __name__ == "__main__":
    main()
