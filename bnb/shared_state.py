import numpy as np


class SharedState:
    """
    Search state the heuristics see: the instance, the incumbent, and the
    relaxation snapshot of the node being processed. Only the search loop
    writes to it.
    """

    def __init__(self, instance):
        self.instance = instance
        self.best_solution = None
        self.best_obj = float('inf')
        self.has_solution = False

        self.node = None
        self.node_count = 0
        self.relaxation = None
        self.relaxation_value = None
        self.lower = np.array(instance.lb, dtype=float)
        self.upper = np.array(instance.ub, dtype=float)
        # Feasible (solution, value) found by the LP solver as a side effect, if any
        self.solver_solution = None

    @property
    def num_vars(self):
        return self.instance.num_vars

    @property
    def num_constraints(self):
        return self.instance.num_constraints

    @property
    def is_root(self):
        return self.node is None or self.node.depth == 0

    def focus(self, node, node_count):
        """Points the snapshot at an evaluated node."""
        self.node = node
        self.node_count = node_count
        self.relaxation = None if node.solution is None else np.array(node.solution, dtype=float)
        self.relaxation_value = node.bound
        self.lower = np.array(self.instance.lb, dtype=float)
        self.upper = np.array(self.instance.ub, dtype=float)
        for var, (lb, ub) in node.accumulated_bounds().items():
            self.lower[var] = lb
            self.upper[var] = ub
        self.solver_solution = None

    def update_best_solution(self, solution, cost):
        if cost < self.best_obj:
            self.best_obj = cost
            self.best_solution = np.array(solution, dtype=float)
            self.has_solution = True
            return True
        return False
