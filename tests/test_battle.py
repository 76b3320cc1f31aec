"""Tests for the unit registry, battlefield and combat simulation."""
import numpy as np
import pytest

from combatsim.battle import (
    BattleUnit, UnitRegistry, Battlefield, CombatSimulator, run_combat
)
from combatsim.data_loader import parse_map
from combatsim.enums import CombatPhase, Faction
from combatsim.errors import InvariantViolation, ScenarioError, StalemateError
from combatsim.models import CombatConfig, Position, Scenario, UnitSpec

EXAMPLE_MAP = (
    "#######\n"
    "#.G...#\n"
    "#...EG#\n"
    "#.#.#G#\n"
    "#..G#E#\n"
    "#.....#\n"
    "#######\n"
)

ELVES_WIN_MAP = (
    "#######\n"
    "#G..#E#\n"
    "#E#E.E#\n"
    "#G.##.#\n"
    "#...#E#\n"
    "#...E.#\n"
    "#######\n"
)

MOVEMENT_MAP = (
    "#########\n"
    "#G..G..G#\n"
    "#.......#\n"
    "#.......#\n"
    "#G..E..G#\n"
    "#.......#\n"
    "#.......#\n"
    "#G..G..G#\n"
    "#########\n"
)


def positions(battlefield, faction):
    return [u.position for u in battlefield.registry.units_of(faction)]


def cells(*pairs):
    return [Position(row, col) for row, col in pairs]


@pytest.fixture
def example_scenario():
    return parse_map(EXAMPLE_MAP)


class TestUnitRegistry:
    """Tests for UnitRegistry."""

    @pytest.fixture
    def registry(self):
        registry = UnitRegistry()
        registry.add(BattleUnit(0, Faction.ELF, Position(2, 1), 200, 3))
        registry.add(BattleUnit(1, Faction.GOBLIN, Position(1, 5), 200, 3))
        registry.add(BattleUnit(2, Faction.GOBLIN, Position(1, 2), 200, 3))
        return registry

    def test_lookup(self, registry):
        assert registry.get(0).position == Position(2, 1)
        assert registry.at(Position(1, 5)).uid == 1
        assert registry.at(Position(0, 0)) is None
        assert registry.is_occupied(Position(1, 2))
        assert 2 in registry
        assert len(registry) == 3

    def test_reading_order(self, registry):
        assert [u.uid for u in registry.in_reading_order()] == [2, 1, 0]
        assert [u.uid for u in registry] == [2, 1, 0]

    def test_count(self, registry):
        assert registry.count() == 3
        assert registry.count(Faction.GOBLIN) == 2
        assert registry.factions() == {Faction.ELF, Faction.GOBLIN}

    def test_add_to_occupied_cell(self, registry):
        with pytest.raises(InvariantViolation):
            registry.add(BattleUnit(3, Faction.ELF, Position(1, 5), 200, 3))

    def test_add_duplicate_uid(self, registry):
        with pytest.raises(InvariantViolation):
            registry.add(BattleUnit(0, Faction.ELF, Position(4, 4), 200, 3))

    def test_move(self, registry):
        registry.move(0, Position(2, 2))
        assert registry.get(0).position == Position(2, 2)
        assert registry.at(Position(2, 2)).uid == 0
        assert not registry.is_occupied(Position(2, 1))

    def test_move_onto_unit(self, registry):
        with pytest.raises(InvariantViolation):
            registry.move(0, Position(1, 2))

    def test_remove(self, registry):
        unit = registry.remove(1)
        assert unit.uid == 1
        assert registry.get(1) is None
        assert not registry.is_occupied(Position(1, 5))
        with pytest.raises(InvariantViolation):
            registry.remove(1)

    def test_remove_at(self, registry):
        assert registry.remove_at(Position(2, 1)).uid == 0
        assert registry.factions() == {Faction.GOBLIN}
        with pytest.raises(InvariantViolation):
            registry.remove_at(Position(2, 1))


class TestBattlefield:
    """Tests for Battlefield construction and queries."""

    def test_uids_in_reading_order(self, example_scenario):
        battlefield = Battlefield.from_scenario(example_scenario)
        assert battlefield.turn_order() == [0, 1, 2, 3, 4, 5]
        assert battlefield.unit_at(Position(1, 2)).uid == 0
        assert battlefield.unit_at(Position(4, 5)).uid == 5

    def test_fresh_units_each_time(self, example_scenario):
        first = Battlefield.from_scenario(example_scenario)
        second = Battlefield.from_scenario(example_scenario)
        first.unit_at(Position(1, 2)).hit_points = 1
        assert second.unit_at(Position(1, 2)).hit_points == 200

    def test_unit_on_wall_rejected(self, example_scenario):
        scenario = Scenario(
            grid=example_scenario.grid,
            units=(UnitSpec(Faction.ELF, Position(0, 0)),)
        )
        with pytest.raises(ScenarioError):
            Battlefield.from_scenario(scenario)

    def test_unit_outside_map_rejected(self, example_scenario):
        scenario = Scenario(
            grid=example_scenario.grid,
            units=(UnitSpec(Faction.ELF, Position(10, 10)),)
        )
        with pytest.raises(ScenarioError):
            Battlefield.from_scenario(scenario)

    def test_shared_cell_rejected(self, example_scenario):
        scenario = Scenario(
            grid=example_scenario.grid,
            units=(
                UnitSpec(Faction.ELF, Position(1, 1)),
                UnitSpec(Faction.GOBLIN, Position(1, 1)),
            )
        )
        with pytest.raises(ScenarioError):
            Battlefield.from_scenario(scenario)

    @pytest.mark.parametrize("hit_points, attack_power", [(0, 3), (200, 0), (-5, 3)])
    def test_bad_stats_rejected(self, example_scenario, hit_points, attack_power):
        scenario = Scenario(
            grid=example_scenario.grid,
            units=(UnitSpec(Faction.ELF, Position(1, 1), hit_points, attack_power),)
        )
        with pytest.raises(ScenarioError):
            Battlefield.from_scenario(scenario)

    def test_move_must_be_one_step(self, example_scenario):
        battlefield = Battlefield.from_scenario(example_scenario)
        goblin = battlefield.unit_at(Position(1, 2))
        with pytest.raises(InvariantViolation):
            battlefield.move_unit(goblin, Position(1, 4))

    def test_move_into_wall(self, example_scenario):
        battlefield = Battlefield.from_scenario(example_scenario)
        goblin = battlefield.unit_at(Position(1, 2))
        with pytest.raises(InvariantViolation):
            battlefield.move_unit(goblin, Position(0, 2))

    def test_adjacent_enemies(self, example_scenario):
        battlefield = Battlefield.from_scenario(example_scenario)
        elf = battlefield.unit_at(Position(2, 4))
        assert [u.position for u in battlefield.adjacent_enemies(elf)] == [Position(2, 5)]

    def test_hit_point_grid(self, example_scenario):
        battlefield = Battlefield.from_scenario(example_scenario)
        grid = battlefield.hit_point_grid()
        assert grid.shape == (7, 7)
        assert grid[1, 2] == 200
        assert grid[1, 1] == 0
        assert np.count_nonzero(grid) == 6
        assert grid.sum() == battlefield.total_hit_points() == 1200

    def test_render_matches_map(self, example_scenario):
        """Rendering a fresh battlefield reproduces the parsed map."""
        battlefield = Battlefield.from_scenario(example_scenario)
        assert battlefield.render() == EXAMPLE_MAP.rstrip("\n")

    def test_render_after_combat(self, example_scenario):
        battlefield = Battlefield.from_scenario(example_scenario)
        CombatSimulator(battlefield).run()
        assert battlefield.render().splitlines() == [
            "#######",
            "#G....#",
            "#.G...#",
            "#.#.#G#",
            "#...#.#",
            "#....G#",
            "#######",
        ]

    def test_total_hit_points_by_faction(self, example_scenario):
        battlefield = Battlefield.from_scenario(example_scenario)
        assert battlefield.total_hit_points(Faction.ELF) == 400
        assert battlefield.total_hit_points(Faction.GOBLIN) == 800


class TestMovement:
    """Movement over several rounds on an open board."""

    @pytest.fixture
    def simulator(self):
        return CombatSimulator(Battlefield.from_scenario(parse_map(MOVEMENT_MAP)))

    def test_after_one_round(self, simulator):
        assert simulator.play_round()
        assert positions(simulator.battlefield, Faction.GOBLIN) == cells(
            (1, 2), (1, 6), (2, 4), (3, 7), (4, 2), (6, 1), (6, 4), (6, 7)
        )
        assert positions(simulator.battlefield, Faction.ELF) == cells((3, 4))

    def test_after_two_rounds(self, simulator):
        simulator.play_round()
        simulator.play_round()
        assert positions(simulator.battlefield, Faction.GOBLIN) == cells(
            (1, 3), (1, 5), (2, 4), (3, 2), (3, 6), (5, 1), (5, 4), (5, 7)
        )
        assert positions(simulator.battlefield, Faction.ELF) == cells((3, 4))

    def test_after_three_rounds(self, simulator):
        for _ in range(3):
            simulator.play_round()
        assert positions(simulator.battlefield, Faction.GOBLIN) == cells(
            (2, 3), (2, 4), (2, 5), (3, 3), (3, 5), (4, 1), (4, 4), (5, 7)
        )
        assert positions(simulator.battlefield, Faction.ELF) == cells((3, 4))
        assert simulator.completed_rounds == 3
        assert simulator.phase == CombatPhase.ROUND_COMPLETE


class TestCombatSimulator:
    """End-to-end combat runs."""

    def test_example_battle(self, example_scenario):
        outcome = run_combat(example_scenario)
        assert outcome.completed_rounds == 47
        assert outcome.remaining_hit_points == 590
        assert outcome.outcome == 27730
        assert outcome.winner == Faction.GOBLIN
        assert [u.position for u in outcome.survivors] == cells((1, 1), (2, 2), (3, 5), (5, 5))
        assert [u.hit_points for u in outcome.survivors] == [200, 131, 59, 200]

    def test_elves_win(self):
        outcome = run_combat(parse_map(ELVES_WIN_MAP))
        assert outcome.completed_rounds == 37
        assert outcome.remaining_hit_points == 982
        assert outcome.outcome == 36334
        assert outcome.winner == Faction.ELF

    def test_single_faction_runs_no_rounds(self):
        simulator = CombatSimulator(Battlefield.from_scenario(parse_map("#####\n#E.E#\n#####\n")))
        outcome = simulator.run()
        assert simulator.phase == CombatPhase.COMBAT_OVER
        assert outcome.completed_rounds == 0
        assert outcome.remaining_hit_points == 400
        assert outcome.outcome == 0
        assert outcome.winner == Faction.ELF

    def test_empty_battlefield(self):
        outcome = run_combat(parse_map("###\n#.#\n###\n"))
        assert outcome.completed_rounds == 0
        assert outcome.winner is None

    def test_final_kill_at_end_of_round_counts(self):
        """The elf kills the last goblin; the goblin's slot is skipped, so the round completes."""
        scenario = parse_map("####\n#EG#\n####\n").with_attack_power(Faction.ELF, 200)
        outcome = run_combat(scenario)
        assert outcome.completed_rounds == 1
        assert outcome.outcome == 200

    def test_ending_round_not_counted(self):
        """The second elf finds no enemies left, so the first round never completes."""
        scenario = parse_map("#####\n#EGE#\n#####\n").with_attack_power(Faction.ELF, 200)
        outcome = run_combat(scenario)
        assert outcome.completed_rounds == 0
        assert outcome.remaining_hit_points == 400
        assert outcome.outcome == 0
        assert outcome.winner == Faction.ELF

    def test_dead_units_do_not_act(self):
        """The goblin dies before its slot comes up and never strikes back."""
        scenario = parse_map("#####\n#EG.#\n#####\n").with_attack_power(Faction.ELF, 200)
        outcome = run_combat(scenario)
        assert outcome.survivors[0].hit_points == 200

    def test_play_round_after_combat_over(self):
        simulator = CombatSimulator(Battlefield.from_scenario(parse_map("###\n#E#\n###\n")))
        simulator.run()
        assert not simulator.play_round()
        assert simulator.completed_rounds == 0

    def test_stalemate(self):
        scenario = parse_map("#####\n#E#G#\n#####\n")
        with pytest.raises(StalemateError) as excinfo:
            run_combat(scenario)
        assert excinfo.value.rounds == 1

    def test_determinism(self, example_scenario):
        config = CombatConfig(record_history=True)
        first = run_combat(example_scenario, config)
        second = run_combat(example_scenario, config)
        assert len(first.history) == 47
        assert first.history == second.history
        assert first.survivors == second.survivors
        assert first.outcome == second.outcome

    def test_history_off_by_default(self, example_scenario):
        assert run_combat(example_scenario).history == []

    def test_hit_points_never_increase(self, example_scenario):
        outcome = run_combat(example_scenario, CombatConfig(record_history=True))
        last_seen = {}
        for record in outcome.history:
            current = {unit.uid: unit.hit_points for unit in record.units}
            for uid, hit_points in current.items():
                assert hit_points > 0
                assert hit_points <= last_seen.get(uid, 200)
            # Units gone from a round never come back
            if last_seen:
                assert set(current) <= set(last_seen)
            last_seen = current

    def test_outcome_formula(self):
        outcome = run_combat(parse_map(ELVES_WIN_MAP))
        assert outcome.outcome == outcome.completed_rounds * sum(
            unit.hit_points for unit in outcome.survivors
        )
        assert outcome.survivor_count(Faction.GOBLIN) == 0
