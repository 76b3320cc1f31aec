"""Command-line runner: fight a map, then calibrate attack power."""
from __future__ import annotations
import argparse
import logging
import sys
from typing import Optional

from .enums import FACTION_NAMES, SearchStrategy
from .errors import CombatSimError
from .models import CombatConfig, CalibrationConfig, Scenario
from .data_loader import MapLoader
from .battle import CombatOutcome, run_combat
from .calibration import CalibrationResult, Calibrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="combatsim",
        description="Simulate Elves vs Goblins grid combat and calibrate attack power"
    )
    parser.add_argument("map", type=str, help="Map file, or name of a map in <data-dir>/maps")
    parser.add_argument("--data-dir", type=str, default="data")
    parser.add_argument("--config", type=str, default=None, help="JSON config file")
    parser.add_argument("--hit-points", type=int, default=None)
    parser.add_argument("--attack-power", type=int, default=None)
    parser.add_argument("--no-calibrate", action="store_true", help="Skip the calibration run")
    parser.add_argument("--faction", type=str, default=None, choices=sorted(FACTION_NAMES))
    parser.add_argument("--start-power", type=int, default=None)
    parser.add_argument("--max-power", type=int, default=None)
    parser.add_argument(
        "--strategy", type=str, default=None, choices=[s.value for s in SearchStrategy]
    )
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


def format_combat(outcome: CombatOutcome) -> str:
    return (
        f"Combat ends after {outcome.completed_rounds} full rounds "
        f"with {outcome.remaining_hit_points} total hit points left. "
        f"Outcome: {outcome.outcome}"
    )


def format_calibration(result: CalibrationResult) -> str:
    return (
        f"{result.winner.plural} need attack power {result.attack_power} "
        f"to win without losses. Outcome: {result.outcome_value}"
    )


def _configs(args: argparse.Namespace, loader: MapLoader) -> tuple[CombatConfig, CalibrationConfig]:
    if args.config:
        combat_config = loader.load_config(args.config)
        calibration_config = loader.load_calibration_config(args.config)
    else:
        combat_config, calibration_config = CombatConfig(), CalibrationConfig()

    if args.hit_points is not None:
        combat_config.hit_points = args.hit_points
    if args.attack_power is not None:
        combat_config.attack_power = args.attack_power
    if args.verbose:
        combat_config.verbose = True

    if args.faction is not None:
        calibration_config.faction = FACTION_NAMES[args.faction]
    if args.start_power is not None:
        calibration_config.start_power = args.start_power
    if args.max_power is not None:
        calibration_config.max_power = args.max_power
    if args.strategy is not None:
        calibration_config.strategy = SearchStrategy(args.strategy)

    return combat_config, calibration_config


def run(scenario: Scenario, combat_config: CombatConfig,
        calibration_config: Optional[CalibrationConfig] = None) -> None:
    outcome = run_combat(scenario, combat_config)
    print(format_combat(outcome))

    if calibration_config is None:
        return

    calibrator = Calibrator(scenario, calibration_config, combat_config)
    result = calibrator.calibrate()
    for attempt in result.attempts:
        if attempt.stalemate:
            print(
                f"  attack power {attempt.attack_power}: stalemate after "
                f"{attempt.outcome.completed_rounds} full rounds, {attempt.losses} lost"
            )
            continue
        winner = attempt.outcome.winner.plural if attempt.outcome.winner else "Nobody"
        print(
            f"  attack power {attempt.attack_power}: {winner} win after "
            f"{attempt.outcome.completed_rounds} full rounds, "
            f"{attempt.outcome.remaining_hit_points} hit points left, "
            f"{attempt.losses} lost. Outcome: {attempt.outcome.outcome}"
        )
    print(format_calibration(result))


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    loader = MapLoader(args.data_dir)
    try:
        combat_config, calibration_config = _configs(args, loader)
        scenario = loader.load_map(args.map, combat_config)
        run(scenario, combat_config, None if args.no_calibrate else calibration_config)
    except (CombatSimError, OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
