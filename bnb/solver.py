import logging
import time
from typing import NamedTuple, Optional

import numpy as np

from bnb.active_path import ActivePathManager
from bnb.branching import Branching
from bnb.node import Node
from bnb.shared_state import SharedState
from bnb.tree import BranchAndBoundTree

logger = logging.getLogger(__name__)


class SolveResult(NamedTuple):
    solution: Optional[np.ndarray]
    objective: float
    finished: bool
    node_count: int


class BranchAndBoundSolver:
    """
    LP-based branch and bound. With max_nodes it is the capped search used by the
    heuristics for sub-problems; with heuristics it calls them at every processed node.
    """

    def __init__(self, mip_instance, heuristics=(), max_nodes=None, cutoff=float("inf"),
                 time_limit=300.0, gap_threshold=1e-3, enable_plunging=False, k_plunging=10,
                 name="bnb"):
        self.instance = mip_instance
        self.name = name
        self.brancher = Branching(self.instance)

        self.max_nodes = max_nodes
        self.cutoff = cutoff
        self.time_limit = time_limit
        self.gap_threshold = gap_threshold

        ### Plunging
        self.enable_plunging = enable_plunging
        self.k_plunging = k_plunging

        ### Primal Heuristics ###
        self.state = SharedState(self.instance)
        self.heuristics = list(heuristics)
        for heuristic in self.heuristics:
            heuristic.set_model(self.state)
            heuristic.validate()

        self.best_obj = float("inf")
        self.best_sol = None

    def _under_cutoff(self, value):
        return value < min(self.cutoff, self.best_obj) - 1e-9

    def _new_incumbent(self, solution, value, source):
        if not self._under_cutoff(value):
            return False
        self.best_obj = value
        self.best_sol = np.array(solution, dtype=float)
        integers = self.instance.integer_indices
        self.best_sol[integers] = np.round(self.best_sol[integers])
        self.state.update_best_solution(self.best_sol, value)
        logger.info("[%s] %s found new incumbent: %.5f", self.name, source, value)
        return True

    def solve(self):
        start_time = time.time()
        if self.instance.num_vars == 0:
            return self._solve_empty()

        working_model = self.instance.build_root_model()
        root = Node(parent=None, depth=0, bound_changes={})
        tree = BranchAndBoundTree()
        active_mgr = ActivePathManager(root, self.instance)

        node_counter = 0
        mode = "best-first"
        plunge_steps_done = 0
        next_number = 1

        if self.max_nodes is None or self.max_nodes > 0:
            tree.push(root)

        while not tree.empty():
            if self.max_nodes is not None and node_counter >= self.max_nodes:
                break
            if time.time() - start_time > self.time_limit:
                logger.info("[%s] Timeout limit reached. Terminating search.", self.name)
                break

            ########## NODE SELECTION #########

            node = tree.pop_dfs() if mode == "dfs" else tree.pop_best_bound()
            if node is None:
                break
            if not self._under_cutoff(node.bound if node.bound is not None else -float("inf")):
                continue

            ########## NODE SOLVE #########

            node_counter += 1
            active_mgr.switch_focus(node, working_model)
            node.evaluate_lp(working_model, self.instance)
            self.brancher.update_pseudocosts(node)

            ########## NODE PRUNING #########

            if node.is_infeasible or not self._under_cutoff(node.bound):
                continue
            if node.is_integer:
                self._new_incumbent(node.solution, node.bound, "LP")
                continue

            logger.debug("[%s] node %d depth %d bound %.5f open %d",
                         self.name, node_counter, node.depth, node.bound, len(tree))

            ########## PRIMAL HEURISTICS ZONE #########

            self.state.focus(node, node_counter)
            self._publish_side_solution(node)
            self._run_heuristics()

            ########## BRANCHING ZONE #########

            branch_var, left_node, right_node = self.brancher.select_branching_variable(
                node, node.solution, next_number)
            next_number += 2
            node.children.extend([left_node, right_node])
            tree.push_children(left_node, right_node)

            ########## GAP AND PLUNGING #########

            if self.best_sol is not None and self._gap_closed(tree.get_best_bound()):
                break
            if mode == "dfs":
                plunge_steps_done += 1
                if plunge_steps_done >= self.k_plunging:
                    mode = "best-first"
                    plunge_steps_done = 0
            elif self.enable_plunging and node_counter % self.k_plunging == 0:
                mode = "dfs"

        finished = node_counter > 0 and (tree.empty() or self._gap_closed(tree.get_best_bound()))
        logger.debug("[%s] explored %d nodes in %.2fs (finished=%s)",
                     self.name, node_counter, time.time() - start_time, finished)
        return SolveResult(self.best_sol, self.best_obj, finished, node_counter)

    def _gap_closed(self, best_bound):
        if self.best_sol is None:
            return False
        if best_bound == float("inf"):
            return True
        return (self.best_obj - best_bound) <= self.gap_threshold * max(abs(self.best_obj), 1.0)

    def _solve_empty(self):
        empty = np.zeros(0)
        if self.instance.is_feasible(empty):
            self._new_incumbent(empty, self.instance.obj_const, "constant")
        return SolveResult(self.best_sol, self.best_obj, True, 0)

    def _publish_side_solution(self, node):
        """Nearest-integer rounding of the LP point, exposed when it happens to be feasible."""
        x = np.array(node.solution, dtype=float)
        integers = self.instance.integer_indices
        x[integers] = np.round(x[integers])
        if self.instance.is_feasible(x):
            self.state.solver_solution = (x, self.instance.objective_value(x))

    def _run_heuristics(self):
        from heuristics.base import SeekResult  # heuristics.base imports this module

        buffer = np.zeros(self.instance.num_vars)
        for heuristic in self.heuristics:
            if not heuristic.should_run(self.state):
                continue
            result, value = heuristic.seek_solution(self.best_obj, buffer)
            improved = (result == SeekResult.IMPROVED
                        and self._new_incumbent(buffer, value, heuristic.heuristic_name))
            heuristic.record_run(self.state, improved)
