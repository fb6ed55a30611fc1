"""
Lock-based randomized rounding of the node relaxation, followed by a repair
pass over the rows the rounding broke.
"""
import logging
import math
from enum import Enum
from typing import NamedTuple, Optional

import numpy as np
from scipy import sparse

from heuristics.base import Heuristic, SeekResult
from heuristics.config import (FEASIBILITY_TOLERANCE, IMPROVEMENT_TOLERANCE, INTEGER_TOLERANCE, LOCK_JITTER,
                               OBJECTIVE_WEIGHT, TIE_TOLERANCE, TRUST_ODD)
from heuristics.errors import HeuristicContractError

logger = logging.getLogger(__name__)


class RoundingState(Enum):
    """REPAIRED: the last rounded point, repaired where needed, was accepted. ABANDONED: it was not."""
    IDLE = "idle"
    LOCKS_COMPUTED = "locks_computed"
    SOLUTION_ATTEMPTED = "solution_attempted"
    REPAIRED = "repaired"
    ABANDONED = "abandoned"


class LockTable(NamedTuple):
    """Per-column counts of rows that rounding down / up / moving at all can break."""
    down: np.ndarray
    up: np.ndarray
    equal: np.ndarray

    @property
    def num_columns(self) -> int:
        return len(self.down)


def compute_locks(matrix_by_row: sparse.csr_matrix, row_lower, row_upper) -> LockTable:
    num_cols = matrix_by_row.shape[1]
    down = np.zeros(num_cols, dtype=np.uint32)
    up = np.zeros(num_cols, dtype=np.uint32)
    equal = np.zeros(num_cols, dtype=np.uint32)
    for i in range(matrix_by_row.shape[0]):
        start, end = matrix_by_row.indptr[i], matrix_by_row.indptr[i + 1]
        cols = matrix_by_row.indices[start:end]
        coeffs = matrix_by_row.data[start:end]
        has_upper = row_upper[i] < np.inf
        has_lower = row_lower[i] > -np.inf
        for j, a in zip(cols, coeffs):
            if a == 0:
                continue
            if has_upper:
                if a > 0:
                    up[j] += 1
                else:
                    down[j] += 1
            if has_lower:
                if a > 0:
                    down[j] += 1
                else:
                    up[j] += 1
            if has_upper and has_lower and row_lower[i] == row_upper[i]:
                equal[j] += 1
    return LockTable(down, up, equal)


class RoundingHeuristic(Heuristic):
    default_name = "Rounding"

    lock_jitter = LOCK_JITTER
    objective_weight = OBJECTIVE_WEIGHT
    tie_tolerance = TIE_TOLERANCE

    def __init__(self, model=None, config=None):
        self.matrix_by_row: Optional[sparse.csr_matrix] = None
        self.matrix_by_col: Optional[sparse.csc_matrix] = None
        self._locks: Optional[LockTable] = None
        self.phase = RoundingState.IDLE
        super().__init__(model, config)

    def clone(self):
        other = super().clone()
        if self._locks is not None:
            other._locks = LockTable(*(arr.copy() for arr in self._locks))
        return other

    @property
    def locks(self) -> Optional[LockTable]:
        return self._locks

    def reset_model(self, model):
        self.model = model
        self.matrix_by_row = None
        self.matrix_by_col = None
        self._locks = None
        self.phase = RoundingState.IDLE

    def validate(self):
        super().validate()
        if self.model is not None and self.model.instance.num_constraints == 0 and self.when < TRUST_ODD:
            self._disable("model has no rows")

    def _ensure_locks(self):
        instance = self.model.instance
        if self._locks is not None and self._locks.num_columns == instance.num_vars:
            return
        self.matrix_by_row = sparse.csr_matrix(instance.A)
        self.matrix_by_col = self.matrix_by_row.tocsc()
        row_lower, row_upper = instance.row_bounds()
        self._locks = compute_locks(self.matrix_by_row, row_lower, row_upper)
        self.phase = RoundingState.LOCKS_COMPUTED
        logger.debug("Computed locks for %d columns over %d nonzeros",
                     instance.num_vars, self.matrix_by_row.nnz)

    def seek_solution(self, best_objective, new_solution, solution_value=None):
        """
        Rounds the node relaxation. solution_value is the objective of the point
        being rounded when the caller knows it better than the search state does;
        a point that is already no better than best_objective is not rounded.
        """
        self._check_buffer(new_solution)
        instance = self.model.instance
        relaxation = self.model.relaxation
        if not instance.integer_indices or relaxation is None:
            return SeekResult.NONE, best_objective
        if len(relaxation) != instance.num_vars:
            raise HeuristicContractError("Relaxation solution does not match the number of columns")
        if solution_value is None:
            solution_value = self.model.relaxation_value
        if solution_value is not None and solution_value >= best_objective - IMPROVEMENT_TOLERANCE:
            logger.debug("%s: relaxation value %.6f cannot beat %.6f",
                         self.heuristic_name, solution_value, best_objective)
            return SeekResult.NONE, best_objective

        self._ensure_locks()
        self.phase = RoundingState.SOLUTION_ATTEMPTED
        rng = self.node_generator(self.model)
        candidate = self._round(relaxation, rng)

        if len(instance.violated_rows(candidate, FEASIBILITY_TOLERANCE)):
            candidate = self._repair(candidate, best_objective)
            if candidate is None:
                self.phase = RoundingState.ABANDONED
                return SeekResult.NONE, best_objective
        result = self._accept(candidate, best_objective, new_solution)
        self.phase = RoundingState.REPAIRED if result[0] == SeekResult.IMPROVED else RoundingState.ABANDONED
        return result

    def _round(self, relaxation, rng):
        instance = self.model.instance
        locks = self._locks
        x = np.clip(np.array(relaxation, dtype=float), self.model.lower, self.model.upper)
        for j in instance.integer_indices:
            value = x[j]
            nearest = round(value)
            if abs(value - nearest) <= INTEGER_TOLERANCE:
                x[j] = nearest
                continue
            cost = instance.obj[j]
            jitter_down, jitter_up = rng.random(2)
            down_score = (1.0 + self.objective_weight * (cost > 0)) / \
                (1.0 + float(locks.down[j]) + self.lock_jitter * jitter_down)
            up_score = (1.0 + self.objective_weight * (cost < 0)) / \
                (1.0 + float(locks.up[j]) + self.lock_jitter * jitter_up)
            if abs(down_score - up_score) <= self.tie_tolerance:
                if locks.equal[j] > 0 or cost == 0:
                    rounded = nearest
                else:
                    rounded = math.floor(value) if cost > 0 else math.ceil(value)
            elif down_score > up_score:
                rounded = math.floor(value)
            else:
                rounded = math.ceil(value)
            x[j] = min(max(rounded, self.model.lower[j]), self.model.upper[j])
        return x

    def _repair(self, x, best_objective):
        instance = self.model.instance
        x = self._shift_continuous(x)
        violated = instance.violated_rows(x, FEASIBILITY_TOLERANCE)
        if not len(violated):
            return x

        # Free the integers of the broken rows and every continuous column, keep the rest
        free = {j for j, t in enumerate(instance.var_types) if t == 'C'}
        for i in violated:
            start, end = self.matrix_by_row.indptr[i], self.matrix_by_row.indptr[i + 1]
            free.update(int(j) for j in self.matrix_by_row.indices[start:end])
        fixed = {j: x[j] for j in range(instance.num_vars) if j not in free}
        sub_instance, free_cols = instance.restrict(fixed)
        if sub_instance is None:
            return None
        sub_instance.lb = np.maximum(sub_instance.lb, self.model.lower[free_cols])
        sub_instance.ub = np.minimum(sub_instance.ub, self.model.upper[free_cols])

        status, sub_solution, _value = self.small_branch_and_bound(
            sub_instance, self.number_nodes, best_objective, f"{self.heuristic_name} repair")
        if not status.has_solution:
            logger.debug("%s: repair found nothing (%s)", self.heuristic_name, status.name)
            return None
        x = x.copy()
        x[free_cols] = sub_solution
        return x

    def _shift_continuous(self, x):
        """Moves continuous columns of violated rows within their bounds and the slack of their other rows."""
        instance = self.model.instance
        row_lower, row_upper = instance.row_bounds()
        x = x.copy()
        activity = self.matrix_by_row @ x
        tol = FEASIBILITY_TOLERANCE
        csr, csc = self.matrix_by_row, self.matrix_by_col
        for i in instance.violated_rows(x, tol):
            row_cols = csr.indices[csr.indptr[i]:csr.indptr[i + 1]]
            row_coeffs = csr.data[csr.indptr[i]:csr.indptr[i + 1]]
            for j, a in zip(row_cols, row_coeffs):
                if activity[i] < row_lower[i] - tol:
                    need = row_lower[i] - activity[i]
                elif activity[i] > row_upper[i] + tol:
                    need = row_upper[i] - activity[i]
                else:
                    break
                if instance.var_types[j] != 'C':
                    continue
                step = need / a
                step = min(max(step, self.model.lower[j] - x[j]), self.model.upper[j] - x[j])
                rows = csc.indices[csc.indptr[j]:csc.indptr[j + 1]]
                coeffs = csc.data[csc.indptr[j]:csc.indptr[j + 1]]
                for k, a_k in zip(rows, coeffs):
                    if k == i or a_k == 0:
                        continue
                    step = _limit_step(step, a_k, activity[k], row_lower[k], row_upper[k], tol)
                if step == 0:
                    continue
                x[j] += step
                activity[rows] += coeffs * step
        return x

    def extra_configuration(self):
        return [
            ("lock_jitter", self.lock_jitter, LOCK_JITTER),
            ("objective_weight", self.objective_weight, OBJECTIVE_WEIGHT),
        ]


def _limit_step(step, a, activity, lower, upper, tol):
    """Largest part of step on a column with coefficient a that keeps a satisfied row satisfied."""
    if activity < lower - tol or activity > upper + tol:
        # already broken; only allow moves that do not make it worse
        toward = (lower - activity) if activity < lower else (upper - activity)
        return step if a * step * toward > 0 else 0.0
    change = a * step
    if change > 0 and upper < np.inf:
        change = min(change, upper - activity)
    elif change < 0 and lower > -np.inf:
        change = max(change, lower - activity)
    return change / a
