"""Tests for priority-based fixing followed by a bounded sub-solve."""

import numpy as np
import pytest

from heuristics import HeuristicConfig, HeuristicConfigError, PartialFixHeuristic, SeekResult
from reader.reader import MIPInstance


@pytest.fixture
def prioritized_instance():
    # x0 + x1 + x2 >= 2, x2 + x3 <= 1; x0, x1 have high priority (small numbers)
    return MIPInstance(
        A=[[1, 1, 1, 0], [0, 0, 1, 1]], b=[2, 1], sense=['G', 'L'], obj=[1, 1, 1, -0.5],
        lb=[0] * 4, ub=[1] * 4, var_types=['B'] * 4, priorities=[1, 1, 100, 100],
    )


class TestFixSet:
    def test_fix_set_uses_priority_threshold(self, prioritized_instance, make_state):
        heuristic = PartialFixHeuristic(make_state(prioritized_instance), fix_priority=10)
        assert heuristic.fix_set == [0, 1]
        heuristic.fix_priority = 100
        assert heuristic.fix_set == [0, 1, 2, 3]

    def test_continuous_columns_never_fixed(self, make_state):
        instance = MIPInstance(A=[[1, 1]], b=[1], sense=['L'], obj=[1, 1], lb=[0, 0], ub=[1, 1],
                               var_types=['B', 'C'])
        assert PartialFixHeuristic(make_state(instance)).fix_set == [0]

    @pytest.mark.parametrize("value", [2.5, "10", None, True])
    def test_non_integer_priority_rejected(self, value):
        with pytest.raises(HeuristicConfigError):
            PartialFixHeuristic(fix_priority=value)

    def test_node_cap_comes_from_config_when_not_given(self):
        heuristic = PartialFixHeuristic(config=HeuristicConfig(name="Partial", number_nodes=50))
        assert heuristic.number_nodes == 50

    def test_explicit_node_cap_overrides_config(self):
        heuristic = PartialFixHeuristic(number_nodes=20, config=HeuristicConfig(name="Partial", number_nodes=50))
        assert heuristic.number_nodes == 20
        assert PartialFixHeuristic().number_nodes == 200

    def test_reset_model_rederives_fix_set(self, prioritized_instance, make_state):
        heuristic = PartialFixHeuristic(make_state(prioritized_instance), fix_priority=10)
        other = MIPInstance(A=[[1, 1]], b=[1], sense=['L'], obj=[1, 1], lb=[0, 0], ub=[1, 1],
                            var_types=['B', 'B'], priorities=[50, 5])
        heuristic.reset_model(make_state(other))
        assert heuristic.fix_set == [1]


class TestSeekSolution:
    def test_sub_solve_completes_fixed_part(self, prioritized_instance, make_state):
        state = make_state(prioritized_instance, [1.0, 0.0, 0.6, 0.4])
        heuristic = PartialFixHeuristic(state, fix_priority=10, number_nodes=50)
        buffer = np.zeros(4)
        result, value = heuristic.seek_solution(float("inf"), buffer)
        assert result == SeekResult.IMPROVED
        # fixed columns keep their rounded relaxation values
        assert buffer[0] == 1.0
        assert buffer[1] == 0.0
        assert buffer.tolist() == [1.0, 0.0, 1.0, 0.0]
        assert value == pytest.approx(2.0)
        assert prioritized_instance.is_feasible(buffer)

    def test_fractional_fixed_column_abandons(self, prioritized_instance, make_state):
        state = make_state(prioritized_instance, [0.5, 0.5, 1.0, 0.0])
        heuristic = PartialFixHeuristic(state, fix_priority=10)
        buffer = np.full(4, 42.0)
        assert heuristic.seek_solution(float("inf"), buffer) == (SeekResult.NONE, float("inf"))
        assert np.all(buffer == 42.0)

    def test_infeasible_fixing_gives_none(self, prioritized_instance, make_state):
        # x0 = x1 = 0 leaves x2 alone to reach 2
        state = make_state(prioritized_instance, [0.0, 0.0, 1.0, 0.0])
        heuristic = PartialFixHeuristic(state, fix_priority=10)
        result, _value = heuristic.seek_solution(float("inf"), np.zeros(4))
        assert result == SeekResult.NONE

    def test_node_cap_reached_is_not_an_error(self, prioritized_instance, make_state):
        state = make_state(prioritized_instance, [1.0, 0.0, 0.6, 0.4])
        heuristic = PartialFixHeuristic(state, fix_priority=10, number_nodes=0)
        result, value = heuristic.seek_solution(float("inf"), np.zeros(4))
        assert result == SeekResult.NONE
        assert value == float("inf")

    def test_everything_fixed_evaluates_directly(self, prioritized_instance, make_state):
        state = make_state(prioritized_instance, [1.0, 1.0, 0.0, 1.0])
        heuristic = PartialFixHeuristic(state, fix_priority=1000)
        buffer = np.zeros(4)
        result, value = heuristic.seek_solution(float("inf"), buffer)
        assert result == SeekResult.IMPROVED
        assert buffer.tolist() == [1.0, 1.0, 0.0, 1.0]
        assert value == pytest.approx(1.5)

    def test_cutoff_blocks_worse_completion(self, prioritized_instance, make_state):
        state = make_state(prioritized_instance, [1.0, 0.0, 0.6, 0.4])
        heuristic = PartialFixHeuristic(state, fix_priority=10)
        result, value = heuristic.seek_solution(1.0, np.zeros(4))
        assert result == SeekResult.NONE
        assert value == 1.0
