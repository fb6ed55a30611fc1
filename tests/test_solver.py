"""Integration tests: the branch-and-bound loop calling registered heuristics."""

import numpy as np
import pytest

from bnb.solver import BranchAndBoundSolver
from heuristics import RoundingHeuristic, SeekResult, SerendipityHeuristic, When
from heuristics.base import Heuristic
from reader.reader import MIPInstance


class CountingHeuristic(Heuristic):
    default_name = "Counting"

    def __init__(self, model=None):
        self.calls = []
        self.resets = 0
        super().__init__(model)

    def reset_model(self, model):
        self.model = model
        self.resets += 1

    def seek_solution(self, best_objective, new_solution):
        self._check_buffer(new_solution)
        self.calls.append((self.model.node.node_number, best_objective))
        return SeekResult.NONE, best_objective


@pytest.fixture
def harder_knapsack():
    weights = [5, 7, 4, 3, 8, 6]
    values = [10, 13, 7, 5, 15, 11]
    return MIPInstance(A=[weights], b=[17], sense=['L'], obj=[-v for v in values],
                       lb=np.zeros(6), ub=np.ones(6), var_types=['B'] * 6)


class TestSolver:
    def test_solves_knapsack_to_optimality(self, knapsack_instance):
        result = BranchAndBoundSolver(knapsack_instance, gap_threshold=1e-9).solve()
        assert result.finished
        assert result.objective == pytest.approx(-8.0)
        assert knapsack_instance.is_feasible(result.solution)

    def test_zero_node_cap_is_unfinished(self, knapsack_instance):
        result = BranchAndBoundSolver(knapsack_instance, max_nodes=0).solve()
        assert not result.finished
        assert result.solution is None
        assert result.node_count == 0

    def test_heuristics_are_bound_validated_and_called(self, harder_knapsack):
        counting = CountingHeuristic()
        counting.when = When.ALWAYS
        result = BranchAndBoundSolver(harder_knapsack, heuristics=[counting], gap_threshold=1e-9).solve()
        assert counting.resets == 1
        assert counting.model is not None
        assert counting.calls
        assert len(counting.run_nodes) == len(counting.calls)
        assert result.objective == pytest.approx(-32.0)

    def test_root_only_heuristic_runs_once(self, harder_knapsack):
        counting = CountingHeuristic()
        counting.when = When.ROOT
        BranchAndBoundSolver(harder_knapsack, heuristics=[counting]).solve()
        assert [number for number, _ in counting.calls] == [0]

    def test_rounding_and_serendipity_feed_incumbent(self, harder_knapsack):
        rounding = RoundingHeuristic()
        rounding.when = When.ALWAYS
        serendipity = SerendipityHeuristic()
        serendipity.when = When.ALWAYS
        solver = BranchAndBoundSolver(harder_knapsack, heuristics=[rounding, serendipity], gap_threshold=1e-9)
        result = solver.solve()
        assert result.finished
        assert result.objective == pytest.approx(-32.0)
        assert solver.state.best_obj == pytest.approx(-32.0)
        assert harder_knapsack.is_feasible(result.solution)

    def test_plunging_reaches_the_same_optimum(self, harder_knapsack):
        result = BranchAndBoundSolver(harder_knapsack, gap_threshold=1e-9,
                                      enable_plunging=True, k_plunging=2).solve()
        assert result.finished
        assert result.objective == pytest.approx(-32.0)

    def test_improvement_reported_by_heuristic_becomes_incumbent(self, harder_knapsack):
        class FixedAnswer(CountingHeuristic):
            def seek_solution(self, best_objective, new_solution):
                candidate = np.array([1, 1, 0, 0, 0, 0], dtype=float)
                value = self.model.instance.objective_value(candidate)
                if value >= best_objective:
                    return SeekResult.NONE, best_objective
                new_solution[:] = candidate
                return SeekResult.IMPROVED, value

        heuristic = FixedAnswer()
        heuristic.when = When.ROOT
        solver = BranchAndBoundSolver(harder_knapsack, heuristics=[heuristic], max_nodes=1)
        result = solver.solve()
        assert result.objective == pytest.approx(-23.0)
        assert result.solution.tolist() == [1, 1, 0, 0, 0, 0]
