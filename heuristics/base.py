import copy
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import fields, replace
from enum import IntEnum
from typing import List, Optional, Tuple

import numpy as np

from bnb.solver import BranchAndBoundSolver
from heuristics.config import FEASIBILITY_TOLERANCE, IMPROVEMENT_TOLERANCE, TRUST_ODD, HeuristicConfig, When
from heuristics.errors import HeuristicContractError
from heuristics.node_history import HeuristicNode, HeuristicNodeHistory

logger = logging.getLogger(__name__)


class SeekResult(IntEnum):
    ESTIMATE_ONLY = -1
    NONE = 0
    IMPROVED = 1


class SubSolveStatus(IntEnum):
    NO_SOLUTION_UNFINISHED = 0
    SOLUTION_UNFINISHED = 1
    NO_SOLUTION_FINISHED = 2
    SOLUTION_FINISHED = 3

    @property
    def finished(self) -> bool:
        return self >= SubSolveStatus.NO_SOLUTION_FINISHED

    @property
    def has_solution(self) -> bool:
        return self % 2 == 1


class Heuristic(ABC):
    """
    Base class of the primal heuristics.

    A heuristic is bound to the search state (a bnb.SharedState) it reads from,
    is configured once through its properties, and is then asked for solutions
    by the search loop. It never writes to the state; improvements are written
    into the caller's buffer and the caller decides whether to keep them.
    """

    default_name = "Unknown"

    def __init__(self, model=None, config: Optional[HeuristicConfig] = None):
        self.config = config if config is not None else HeuristicConfig(name=self.default_name)
        self.model = None
        self.run_nodes = HeuristicNodeHistory(max_size=self.config.history_size)
        self._rng = np.random.default_rng(self.config.seed)
        if model is not None:
            self.set_model(model)

    # ---- model binding ----

    def set_model(self, model):
        """Binds to model and drops anything computed for the previous one."""
        self.model = model
        self.reset_model(model)

    def set_model_only(self, model):
        self.model = model

    @abstractmethod
    def reset_model(self, model):
        """Rebinds to model; invalidates any per-row or per-column tables."""

    def validate(self):
        """Switches the heuristic off when the model has constructs it cannot handle."""
        if self.model is None or self.when >= TRUST_ODD:
            return
        if self.model.instance.has_odd_constructs and not self.can_deal_with_odd():
            self._disable("model has SOS constraints")

    def can_deal_with_odd(self) -> bool:
        return False

    def _disable(self, reason):
        logger.warning("Heuristic %s switched off: %s", self.heuristic_name, reason)
        self.when = When.OFF

    # ---- solution seeking ----

    @abstractmethod
    def seek_solution(self, best_objective: float, new_solution: np.ndarray) -> Tuple[SeekResult, float]:
        """
        Called once cuts are in place at a node; must not add cuts.
        Returns (IMPROVED, value) after writing a solution strictly better than
        best_objective into new_solution, otherwise (NONE, best_objective) with
        new_solution untouched.
        """

    def seek_solution_with_cuts(self, best_objective: float, new_solution: np.ndarray,
                                cut_pool: List) -> Tuple[SeekResult, float]:
        """
        Called alongside cut generation and may append to cut_pool. ESTIMATE_ONLY
        returns a bound estimate and never touches new_solution.
        """
        self._check_buffer(new_solution)
        return SeekResult.NONE, best_objective

    def _check_buffer(self, new_solution):
        if self.model is None:
            raise HeuristicContractError(f"Heuristic {self.heuristic_name} is not bound to a model")
        expected = self.model.instance.num_vars
        if not isinstance(new_solution, np.ndarray) or new_solution.shape != (expected,):
            got = getattr(new_solution, "shape", None)
            raise HeuristicContractError(f"Solution buffer must be a numpy array of shape ({expected},); got {got}")

    def _accept(self, candidate, best_objective, new_solution):
        instance = self.model.instance
        if not instance.is_feasible(candidate, FEASIBILITY_TOLERANCE):
            return SeekResult.NONE, best_objective
        value = instance.objective_value(candidate)
        if value >= best_objective - IMPROVEMENT_TOLERANCE:
            return SeekResult.NONE, best_objective
        new_solution[:] = candidate
        logger.debug("Heuristic %s improved objective to %.6f", self.heuristic_name, value)
        return SeekResult.IMPROVED, value

    def small_branch_and_bound(self, sub_instance, number_nodes: int, cutoff: float, name: str):
        """
        Branch and bound on sub_instance, at most number_nodes nodes and only
        accepting solutions strictly better than cutoff.

        Returns (status, solution, value). solution is None unless status has a
        solution; value is cutoff in that case. A sub-problem bigger than
        fraction_small times the bound model is not attempted.
        """
        if self.model is None:
            raise HeuristicContractError(f"Heuristic {self.heuristic_name} is not bound to a model")
        original = self.model.instance
        full_size = original.num_vars + original.num_constraints
        sub_size = sub_instance.num_vars + sub_instance.num_constraints
        if full_size and sub_size / full_size > self.fraction_small:
            logger.debug("%s: sub-problem %d/%d exceeds fraction_small %.2f",
                         name, sub_size, full_size, self.fraction_small)
            return SubSolveStatus.NO_SOLUTION_UNFINISHED, None, cutoff

        solver = BranchAndBoundSolver(sub_instance, max_nodes=number_nodes, cutoff=cutoff,
                                      gap_threshold=1e-9, name=name)
        result = solver.solve()
        found = result.solution is not None
        status = SubSolveStatus(2 * int(result.finished) + int(found))
        logger.debug("%s: sub-solve over %d columns ended %s after %d nodes",
                     name, sub_instance.num_vars, status.name, result.node_count)
        if not found:
            return status, None, cutoff
        return status, result.solution, result.objective

    # ---- trigger gate ----

    def should_run(self, state) -> bool:
        mode = self.when % TRUST_ODD
        if mode == When.OFF:
            return False
        if state.is_root and mode == When.NOT_ROOT:
            return False
        if not state.is_root and mode == When.ROOT:
            return False
        if state.node_count % self.how_often:
            return False
        return self.run_nodes.far_from(HeuristicNode.from_node(state.node), self.config.far_threshold)

    def record_run(self, state, improved: bool):
        self.run_nodes.append(HeuristicNode.from_node(state.node))
        if not improved and self.decay_factor > 0:
            self.how_often = int(math.ceil(self.how_often * (1.0 + self.decay_factor)))

    # ---- configuration ----

    def _set(self, **changes):
        self.config = replace(self.config, **changes)

    @property
    def when(self) -> int:
        return self.config.when

    @when.setter
    def when(self, value):
        self._set(when=int(value))

    @property
    def number_nodes(self) -> int:
        return self.config.number_nodes

    @number_nodes.setter
    def number_nodes(self, value):
        self._set(number_nodes=value)

    @property
    def feasibility_pump_options(self) -> int:
        return self.config.feasibility_pump_options

    @feasibility_pump_options.setter
    def feasibility_pump_options(self, value):
        self._set(feasibility_pump_options=value)

    @property
    def fraction_small(self) -> float:
        return self.config.fraction_small

    @fraction_small.setter
    def fraction_small(self, value):
        self._set(fraction_small=value)

    @property
    def heuristic_name(self) -> str:
        return self.config.name

    @heuristic_name.setter
    def heuristic_name(self, value):
        self._set(name=value)

    @property
    def how_often(self) -> int:
        return self.config.how_often

    @how_often.setter
    def how_often(self, value):
        self._set(how_often=value)

    @property
    def decay_factor(self) -> float:
        return self.config.decay_factor

    @decay_factor.setter
    def decay_factor(self, value):
        self._set(decay_factor=value)

    @property
    def seed(self) -> int:
        return self.config.seed

    @seed.setter
    def seed(self, value):
        self._set(seed=value)
        self._rng = np.random.default_rng(value)

    def node_generator(self, state) -> np.random.Generator:
        """Stream keyed on (seed, node): reproducible at a node, different across nodes."""
        node_number = state.node.node_number if state.node is not None else 0
        return np.random.default_rng([self.seed, node_number])

    def clone(self):
        """Copy with its own configuration, history and generator, bound to the same model."""
        other = copy.copy(self)
        other.config = replace(self.config)
        other.run_nodes = copy.deepcopy(self.run_nodes)
        other._rng = copy.deepcopy(self._rng)
        return other

    def extra_configuration(self) -> List[Tuple[str, object, object]]:
        """(name, value, default) of subclass settings, in a fixed order."""
        return []

    def dump_configuration(self) -> str:
        """One name=value line per setting that differs from its default, in declaration order."""
        defaults = HeuristicConfig(name=self.default_name)
        lines = []
        for field in fields(HeuristicConfig):
            value = getattr(self.config, field.name)
            if value != getattr(defaults, field.name):
                lines.append(f"{field.name}={value!r}")
        for name, value, default in self.extra_configuration():
            if value != default:
                lines.append(f"{name}={value!r}")
        return "\n".join(lines)
