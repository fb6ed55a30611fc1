import logging

import numpy as np

from heuristics.base import Heuristic, SeekResult
from heuristics.config import COVER_JITTER, FEASIBILITY_TOLERANCE, IMPROVEMENT_TOLERANCE, INTEGER_TOLERANCE

logger = logging.getLogger(__name__)


class SerendipityHeuristic(Heuristic):
    """
    Picks up any good solution the LP solver came across on its own. When there
    is none it builds one greedily, set-covering style: binaries at one in the
    relaxation stay at one, the others start at zero, and the binary with the
    lowest cost per still-uncovered row is set to one until every row is covered.
    Scores get a small random jitter so repeated runs break ties differently.
    """

    default_name = "Serendipity"

    cover_jitter = COVER_JITTER

    def reset_model(self, model):
        self.model = model

    def seek_solution(self, best_objective, new_solution):
        self._check_buffer(new_solution)
        if not self.model.instance.integer_indices:
            return SeekResult.NONE, best_objective

        captured = self._capture(best_objective, new_solution)
        if captured is not None:
            return captured

        candidate = self.greedy_cover()
        if candidate is None:
            return SeekResult.NONE, best_objective
        return self._accept(candidate, best_objective, new_solution)

    def _capture(self, best_objective, new_solution):
        side = self.model.solver_solution
        if side is None:
            return None
        solution, value = side
        if len(solution) != self.model.instance.num_vars or value >= best_objective - IMPROVEMENT_TOLERANCE:
            return None
        new_solution[:] = solution
        logger.debug("%s: captured solver solution %.6f", self.heuristic_name, value)
        return SeekResult.IMPROVED, value

    def greedy_cover(self):
        """Greedy covering point, or None when some row cannot be covered."""
        instance = self.model.instance
        binaries = instance.binary_indices
        row_lower, _row_upper = instance.row_bounds()
        A = instance.A
        x = np.zeros(instance.num_vars)

        relaxation = self.model.relaxation
        if relaxation is not None:
            for j in binaries:
                if abs(relaxation[j] - 1.0) <= INTEGER_TOLERANCE and self.model.upper[j] >= 1.0:
                    x[j] = 1.0

        activity = A @ x
        tol = FEASIBILITY_TOLERANCE
        uncovered = activity < row_lower - tol
        candidates = [j for j in binaries if x[j] == 0.0 and self.model.upper[j] >= 1.0]

        while uncovered.any():
            best_j = None
            best_score = np.inf
            for j in candidates:
                helps = np.count_nonzero(uncovered & (A[:, j] > 0))
                if helps == 0:
                    continue
                score = instance.obj[j] / helps
                score += abs(score) * self.cover_jitter * self._rng.random()
                if score < best_score:
                    best_score = score
                    best_j = j
            if best_j is None:
                logger.debug("%s: %d rows left uncovered", self.heuristic_name, int(uncovered.sum()))
                return None
            x[best_j] = 1.0
            candidates.remove(best_j)
            activity += A[:, best_j]
            uncovered = activity < row_lower - tol
        return x
