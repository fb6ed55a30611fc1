"""Tests for the shared heuristic contract: configuration, gating, buffers, sub-solve."""

import numpy as np
import pytest

from bnb.node import Node
from heuristics import (
    HeuristicConfig,
    HeuristicConfigError,
    HeuristicContractError,
    PartialFixHeuristic,
    RoundingHeuristic,
    SeekResult,
    SerendipityHeuristic,
    SubSolveStatus,
    TRUST_ODD,
    When,
)
from reader.reader import MIPInstance

ALL_HEURISTICS = [RoundingHeuristic, PartialFixHeuristic, SerendipityHeuristic]


class TestConfiguration:
    @pytest.mark.parametrize("changes", [
        {"when": 4}, {"when": -1}, {"when": 14}, {"number_nodes": -1},
        {"fraction_small": 0.0}, {"feasibility_pump_options": -2},
        {"how_often": 0}, {"decay_factor": -0.5}, {"seed": -3}, {"far_threshold": 0.0}, {"history_size": 0},
    ])
    def test_invalid_values_rejected(self, changes):
        with pytest.raises(HeuristicConfigError):
            HeuristicConfig(**changes)

    def test_setters_validate_and_keep_previous_value(self):
        heuristic = SerendipityHeuristic()
        with pytest.raises(HeuristicConfigError):
            heuristic.fraction_small = -1.0
        assert heuristic.fraction_small == 1.0

    def test_defaults(self):
        heuristic = RoundingHeuristic()
        assert heuristic.when == When.NOT_ROOT
        assert heuristic.number_nodes == 200
        assert heuristic.feasibility_pump_options == -1
        assert heuristic.fraction_small == 1.0
        assert heuristic.heuristic_name == "Rounding"

    def test_seed_reseeds_immediately(self):
        heuristic = SerendipityHeuristic()
        heuristic._rng.random(5)
        heuristic.seed = 123
        assert heuristic._rng.random() == np.random.default_rng(123).random()

    def test_dump_lists_only_changed_fields_in_order(self):
        heuristic = PartialFixHeuristic(fix_priority=5)
        assert heuristic.dump_configuration() == "fix_priority=5"
        heuristic.number_nodes = 50
        heuristic.when = 3
        assert heuristic.dump_configuration() == "when=3\nnumber_nodes=50\nfix_priority=5"

    def test_dump_of_default_heuristic_is_empty(self):
        assert RoundingHeuristic().dump_configuration() == ""

    def test_clone_owns_its_history_and_config(self, covering_instance, make_state):
        heuristic = SerendipityHeuristic(make_state(covering_instance))
        heuristic.record_run(heuristic.model, improved=False)
        other = heuristic.clone()
        other.record_run(other.model, improved=False)
        other.number_nodes = 10
        assert len(heuristic.run_nodes) == 1
        assert len(other.run_nodes) == 2
        assert heuristic.number_nodes == 200
        assert other.model is heuristic.model


class TestValidate:
    def _sos_instance(self):
        return MIPInstance(A=[[1, 1]], b=[1], sense=['L'], obj=[-1, -1], lb=[0, 0], ub=[1, 1],
                           var_types=['B', 'B'], sos=[(1, [0, 1])])

    def test_odd_constructs_switch_heuristic_off(self, make_state):
        heuristic = SerendipityHeuristic(make_state(self._sos_instance()))
        heuristic.when = When.ALWAYS
        heuristic.validate()
        assert heuristic.when == When.OFF

    def test_trust_flag_keeps_heuristic_on(self, make_state):
        heuristic = SerendipityHeuristic(make_state(self._sos_instance()))
        heuristic.when = When.ALWAYS + TRUST_ODD
        heuristic.validate()
        assert heuristic.when == When.ALWAYS + TRUST_ODD


class TestGate:
    def test_root_and_non_root_modes(self, covering_instance, make_state):
        state = make_state(covering_instance)
        heuristic = SerendipityHeuristic(state)
        root = Node()
        child = Node(parent=root, depth=1, bound_changes={0: (0, 0)}, node_number=1)

        heuristic.when = When.ROOT
        state.node = root
        assert heuristic.should_run(state)
        state.node = child
        assert not heuristic.should_run(state)

        heuristic.when = When.NOT_ROOT
        assert heuristic.should_run(state)
        state.node = root
        assert not heuristic.should_run(state)

        heuristic.when = When.OFF
        assert not heuristic.should_run(state)

    def test_history_blocks_repeat_at_same_node(self, covering_instance, make_state):
        state = make_state(covering_instance)
        heuristic = SerendipityHeuristic(state)
        heuristic.when = When.ALWAYS
        state.node = Node(parent=Node(), depth=1, bound_changes={1: (1, 1)})
        assert heuristic.should_run(state)
        heuristic.record_run(state, improved=False)
        assert not heuristic.should_run(state)

    def test_decay_stretches_frequency_after_failures(self, covering_instance, make_state):
        state = make_state(covering_instance)
        heuristic = SerendipityHeuristic(state)
        heuristic.decay_factor = 1.0
        heuristic.record_run(state, improved=False)
        assert heuristic.how_often == 2
        heuristic.record_run(state, improved=True)
        assert heuristic.how_often == 2

    def test_history_keeps_only_the_configured_number_of_runs(self, covering_instance, make_state):
        state = make_state(covering_instance)
        heuristic = SerendipityHeuristic(state, config=HeuristicConfig(name="Serendipity", history_size=3))
        for number in range(1, 6):
            state.node = Node(parent=Node(), depth=1, bound_changes={number % 3: (0, 0)}, node_number=number)
            heuristic.record_run(state, improved=False)
        assert len(heuristic.run_nodes) == 3


class TestContract:
    @pytest.mark.parametrize("cls", ALL_HEURISTICS)
    def test_unbound_heuristic_fails_fast(self, cls):
        with pytest.raises(HeuristicContractError):
            cls().seek_solution(float("inf"), np.zeros(3))

    @pytest.mark.parametrize("cls", ALL_HEURISTICS)
    def test_buffer_size_mismatch_fails_fast(self, cls, covering_instance, make_state):
        heuristic = cls(make_state(covering_instance, [0.5, 0.5, 0.5]))
        with pytest.raises(HeuristicContractError):
            heuristic.seek_solution(float("inf"), np.zeros(2))

    @pytest.mark.parametrize("cls", ALL_HEURISTICS)
    def test_no_integer_columns_gives_none(self, cls, continuous_instance, make_state):
        heuristic = cls(make_state(continuous_instance, [1.0, 3.0]))
        heuristic.model.solver_solution = (np.array([1.0, 3.0]), -7.0)
        buffer = np.full(2, 42.0)
        result, value = heuristic.seek_solution(float("inf"), buffer)
        assert result == SeekResult.NONE
        assert value == float("inf")
        assert np.all(buffer == 42.0)

    def test_cut_entry_point_defaults_to_none(self, covering_instance, make_state):
        heuristic = SerendipityHeuristic(make_state(covering_instance))
        buffer = np.full(3, 42.0)
        cuts = []
        result, value = heuristic.seek_solution_with_cuts(10.0, buffer, cuts)
        assert result == SeekResult.NONE
        assert value == 10.0
        assert cuts == []
        assert np.all(buffer == 42.0)


class TestSmallBranchAndBound:
    def test_zero_node_cap_is_unfinished(self, knapsack_instance, make_state):
        heuristic = SerendipityHeuristic(make_state(knapsack_instance))
        status, solution, value = heuristic.small_branch_and_bound(knapsack_instance, 0, float("inf"), "cap0")
        assert status == SubSolveStatus.NO_SOLUTION_UNFINISHED
        assert not status.finished
        assert solution is None
        assert value == float("inf")

    def test_enough_nodes_proves_optimality(self, knapsack_instance, make_state):
        heuristic = SerendipityHeuristic(make_state(knapsack_instance))
        status, solution, value = heuristic.small_branch_and_bound(knapsack_instance, 500, float("inf"), "full")
        assert status == SubSolveStatus.SOLUTION_FINISHED
        assert value == pytest.approx(-8.0)
        assert knapsack_instance.is_feasible(solution)

    def test_cutoff_below_optimum_finishes_without_solution(self, knapsack_instance, make_state):
        heuristic = SerendipityHeuristic(make_state(knapsack_instance))
        status, solution, _value = heuristic.small_branch_and_bound(knapsack_instance, 500, -9.0, "cut")
        assert status == SubSolveStatus.NO_SOLUTION_FINISHED
        assert solution is None

    def test_fraction_small_gate(self, knapsack_instance, make_state):
        heuristic = SerendipityHeuristic(make_state(knapsack_instance))
        heuristic.fraction_small = 0.5
        status, solution, _value = heuristic.small_branch_and_bound(knapsack_instance, 500, float("inf"), "big")
        assert status == SubSolveStatus.NO_SOLUTION_UNFINISHED
        assert solution is None
