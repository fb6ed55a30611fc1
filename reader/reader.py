import logging
from typing import Dict, List, Tuple

import numpy as np
import gurobipy as gp
from gurobipy import GRB

logger = logging.getLogger(__name__)

_QUIET_ENV = None


def quiet_env():
    """Shared gurobipy environment with console output switched off."""
    global _QUIET_ENV
    if _QUIET_ENV is None:
        env = gp.Env(empty=True)
        env.setParam('OutputFlag', 0)
        env.start()
        _QUIET_ENV = env
    return _QUIET_ENV


class MIPInstance:
    """
    Minimization problem  min c x + obj_const  s.t.  A x (<=, >=, =) b,  lb <= x <= ub,
    with variable types 'B', 'I' or 'C'.
    """

    def __init__(self, A, b, sense, obj, lb=None, ub=None, var_types=None,
                 var_names=None, row_names=None, obj_const=0.0, priorities=None, sos=None):
        self.A = np.atleast_2d(np.asarray(A, dtype=float))
        num_vars = len(obj)
        if self.A.size == 0:
            self.A = np.zeros((0, num_vars))
        self.b = np.asarray(b, dtype=float).reshape(-1)
        self.sense = list(sense)
        self.obj = np.asarray(obj, dtype=float)
        self.lb = np.zeros(num_vars) if lb is None else np.asarray(lb, dtype=float)
        self.ub = np.full(num_vars, np.inf) if ub is None else np.asarray(ub, dtype=float)
        self.var_types = list(var_types) if var_types is not None else ['C'] * num_vars
        self.var_names = list(var_names) if var_names is not None else [f"x{j}" for j in range(num_vars)]
        num_rows = self.A.shape[0]
        self.row_names = list(row_names) if row_names is not None else [f"r{i}" for i in range(num_rows)]
        self.obj_const = float(obj_const)
        self.priorities = np.zeros(num_vars, dtype=int) if priorities is None else np.asarray(priorities, dtype=int)
        # (type, [column indices]) pairs
        self.sos: List[Tuple[int, List[int]]] = list(sos) if sos is not None else []
        self.root_lp_model = None

        self._check_shapes()

    @classmethod
    def from_mps(cls, mps_path: str):
        model = gp.read(mps_path, env=quiet_env())
        model.update()
        sign = -1.0 if model.ModelSense == GRB.MAXIMIZE else 1.0
        if sign < 0:
            logger.info("Maximization problem detected. Negating objective function.")

        variables = model.getVars()
        constraints = model.getConstrs()
        sense_map = {GRB.LESS_EQUAL: 'L', GRB.GREATER_EQUAL: 'G', GRB.EQUAL: 'E'}
        sos = []
        for s in model.getSOSs():
            sos_type, vars_in_set, _weights = model.getSOS(s)
            sos.append((sos_type, [v.index for v in vars_in_set]))
        return cls(
            A=model.getA().toarray() if constraints else np.zeros((0, len(variables))),
            b=[c.RHS for c in constraints],
            sense=[sense_map[c.Sense] for c in constraints],
            obj=[sign * v.Obj for v in variables],
            lb=[v.LB for v in variables],
            ub=[v.UB for v in variables],
            var_types=[v.VType if v.VType in ('B', 'I') else 'C' for v in variables],
            var_names=[v.VarName for v in variables],
            row_names=[c.ConstrName for c in constraints],
            obj_const=sign * model.ObjCon,
            priorities=[v.BranchPriority for v in variables],
            sos=sos,
        )

    def _check_shapes(self):
        n = self.num_vars
        m = self.num_constraints
        if self.A.shape != (m, n):
            raise ValueError(f"Constraint matrix has shape {self.A.shape}, expected ({m}, {n})")
        if len(self.b) != m or len(self.row_names) != m:
            raise ValueError("Row data (b, sense, row_names) disagree on the number of constraints")
        for name, arr in (("lb", self.lb), ("ub", self.ub), ("var_types", self.var_types),
                          ("var_names", self.var_names), ("priorities", self.priorities)):
            if len(arr) != n:
                raise ValueError(f"{name} has length {len(arr)}, expected {n}")
        bad_senses = set(self.sense) - {'L', 'G', 'E'}
        if bad_senses:
            raise ValueError(f"Unknown row senses: {sorted(bad_senses)}")

    @property
    def num_vars(self) -> int:
        return len(self.obj)

    @property
    def num_constraints(self) -> int:
        return len(self.sense)

    @property
    def num_binary(self) -> int:
        return self.var_types.count('B')

    @property
    def num_integer(self) -> int:
        return self.var_types.count('I')

    @property
    def num_continuous(self) -> int:
        return self.var_types.count('C')

    @property
    def integer_indices(self) -> List[int]:
        return [j for j, t in enumerate(self.var_types) if t in ('B', 'I')]

    @property
    def binary_indices(self) -> List[int]:
        return [j for j, t in enumerate(self.var_types) if t == 'B']

    @property
    def has_odd_constructs(self) -> bool:
        return bool(self.sos)

    def pretty_print(self):
        logger.info("This model has %d variables and %d constraints", self.num_vars, self.num_constraints)
        logger.info("Binary: %d, integer: %d, continuous: %d",
                    self.num_binary, self.num_integer, self.num_continuous)

    def row_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Row activity bounds (row_lower, row_upper) implied by sense and rhs."""
        row_lower = np.full(self.num_constraints, -np.inf)
        row_upper = np.full(self.num_constraints, np.inf)
        for i, s in enumerate(self.sense):
            if s in ('G', 'E'):
                row_lower[i] = self.b[i]
            if s in ('L', 'E'):
                row_upper[i] = self.b[i]
        return row_lower, row_upper

    def objective_value(self, solution) -> float:
        return float(np.dot(self.obj, solution)) + self.obj_const

    def violated_rows(self, solution, tol=1e-6) -> np.ndarray:
        if self.num_constraints == 0:
            return np.zeros(0, dtype=int)
        activity = self.A @ np.asarray(solution, dtype=float)
        row_lower, row_upper = self.row_bounds()
        bad = (activity < row_lower - tol) | (activity > row_upper + tol)
        return np.nonzero(bad)[0]

    def is_integral(self, solution, tol=1e-6):
        for i, vtype in enumerate(self.var_types):
            if vtype in ['B', 'I']:
                if abs(solution[i] - round(solution[i])) > tol:
                    return False
        return True

    def is_feasible(self, solution, tol=1e-6) -> bool:
        """Bounds, rows and integrality."""
        x = np.asarray(solution, dtype=float)
        if len(x) != self.num_vars:
            return False
        if np.any(x < self.lb - tol) or np.any(x > self.ub + tol):
            return False
        if len(self.violated_rows(x, tol)):
            return False
        return self.is_integral(x, tol)

    def restrict(self, fixed: Dict[int, float], tol=1e-6):
        """
        Substitutes the fixed columns into the rows and the objective and drops them,
        together with any row left without coefficients.
        Returns (sub_instance, free_columns), or (None, free_columns) when a dropped
        row is violated by the fixed values alone.
        """
        free = [j for j in range(self.num_vars) if j not in fixed]
        fixed_idx = np.array(sorted(fixed), dtype=int)
        fixed_val = np.array([fixed[j] for j in fixed_idx], dtype=float)

        b = self.b.copy()
        obj_const = self.obj_const
        if len(fixed_idx):
            b -= self.A[:, fixed_idx] @ fixed_val
            obj_const += float(np.dot(self.obj[fixed_idx], fixed_val))
        A_free = self.A[:, free]

        keep = []
        for i in range(self.num_constraints):
            if np.any(A_free[i, :] != 0):
                keep.append(i)
                continue
            s = self.sense[i]
            if (s == 'L' and b[i] < -tol) or (s == 'G' and b[i] > tol) or (s == 'E' and abs(b[i]) > tol):
                logger.debug("Row %s violated by fixed columns alone", self.row_names[i])
                return None, free

        sub = MIPInstance(
            A=A_free[keep, :] if keep else np.zeros((0, len(free))),
            b=b[keep],
            sense=[self.sense[i] for i in keep],
            obj=self.obj[free],
            lb=self.lb[free],
            ub=self.ub[free],
            var_types=[self.var_types[j] for j in free],
            var_names=[self.var_names[j] for j in free],
            row_names=[self.row_names[i] for i in keep],
            obj_const=obj_const,
            priorities=self.priorities[free],
        )
        return sub, free

    def build_root_model(self):
        """LP relaxation of the instance as a gurobipy model (every column continuous)."""
        if self.root_lp_model is not None:
            logger.debug("root_lp_model already exists. Overwriting.")
        model = gp.Model(env=quiet_env())
        model.Params.OutputFlag = 0
        x = []
        for j in range(self.num_vars):
            x.append(model.addVar(lb=self.lb[j], ub=self.ub[j], vtype=GRB.CONTINUOUS, name=self.var_names[j]))
        model.update()
        obj_expr = gp.quicksum(self.obj[j] * x[j] for j in range(self.num_vars))
        model.setObjective(obj_expr + self.obj_const, GRB.MINIMIZE)
        for i in range(self.num_constraints):
            lhs = gp.quicksum(self.A[i, j] * x[j] for j in range(self.num_vars) if self.A[i, j] != 0)
            sense = self.sense[i]
            rhs = self.b[i]
            if sense == 'L':
                model.addConstr(lhs <= rhs, name=self.row_names[i])
            elif sense == 'G':
                model.addConstr(lhs >= rhs, name=self.row_names[i])
            elif sense == 'E':
                model.addConstr(lhs == rhs, name=self.row_names[i])
        model.update()
        self.root_lp_model = model
        return model
