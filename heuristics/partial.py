import logging
import numbers
from typing import List, Optional

import numpy as np

from heuristics.base import Heuristic, SeekResult
from heuristics.config import INTEGER_TOLERANCE
from heuristics.errors import HeuristicConfigError

logger = logging.getLogger(__name__)


class PartialFixHeuristic(Heuristic):
    """
    Fixes every integer column with branching priority <= fix_priority to its
    relaxation value and hands the rest of the problem to a small branch and bound.
    Meant for relaxations that start from a known partial solution.
    """

    default_name = "Partial"
    default_fix_priority = 10000

    def __init__(self, model=None, fix_priority=default_fix_priority, number_nodes=None, config=None):
        self._fix_priority = self._checked_priority(fix_priority)
        self._fix_set: Optional[List[int]] = None
        super().__init__(model, config)
        if number_nodes is not None:
            self.number_nodes = number_nodes

    @staticmethod
    def _checked_priority(value):
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise HeuristicConfigError(f"fix_priority must be an integer; got {value!r}")
        return int(value)

    @property
    def fix_priority(self) -> int:
        return self._fix_priority

    @fix_priority.setter
    def fix_priority(self, value):
        self._fix_priority = self._checked_priority(value)
        if self.model is not None:
            self._fix_set = self._derive_fix_set()

    @property
    def fix_set(self) -> List[int]:
        if self._fix_set is None:
            self._fix_set = self._derive_fix_set()
        return self._fix_set

    def _derive_fix_set(self):
        instance = self.model.instance
        return [j for j in instance.integer_indices if instance.priorities[j] <= self._fix_priority]

    def reset_model(self, model):
        self.model = model
        self._fix_set = self._derive_fix_set() if model is not None else None

    def seek_solution(self, best_objective, new_solution):
        self._check_buffer(new_solution)
        instance = self.model.instance
        relaxation = self.model.relaxation
        if not instance.integer_indices or relaxation is None:
            return SeekResult.NONE, best_objective

        fixed = {}
        for j in self.fix_set:
            value = relaxation[j]
            rounded = float(round(value))
            if abs(value - rounded) > INTEGER_TOLERANCE:
                logger.debug("%s: column %s is fractional (%.6f), giving up",
                             self.heuristic_name, instance.var_names[j], value)
                return SeekResult.NONE, best_objective
            fixed[j] = min(max(rounded, self.model.lower[j]), self.model.upper[j])

        sub_instance, free_cols = instance.restrict(fixed)
        if sub_instance is None:
            return SeekResult.NONE, best_objective
        sub_instance.lb = np.maximum(sub_instance.lb, self.model.lower[free_cols])
        sub_instance.ub = np.minimum(sub_instance.ub, self.model.upper[free_cols])

        status, sub_solution, _value = self.small_branch_and_bound(
            sub_instance, self.number_nodes, best_objective, self.heuristic_name)
        if not status.has_solution:
            logger.debug("%s: sub-solve ended %s", self.heuristic_name, status.name)
            return SeekResult.NONE, best_objective

        candidate = np.zeros(instance.num_vars)
        for j, value in fixed.items():
            candidate[j] = value
        candidate[free_cols] = sub_solution
        return self._accept(candidate, best_objective, new_solution)

    def extra_configuration(self):
        return [("fix_priority", self._fix_priority, self.default_fix_priority)]
