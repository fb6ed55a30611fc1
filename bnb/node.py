import gurobipy as gp


class Node:
    def __init__(self, parent=None, depth=0, bound_changes=None, node_number=0):
        self.parent = parent
        self.bound_changes = bound_changes or {}  # e.g., {i: (lb, ub)}
        self.depth = depth
        self.node_number = node_number

        # BnB state
        self.bound = parent.bound if parent is not None else None  # LP objective value
        self.solution = None  # List of variable values (solutions of relaxation)
        self.status = None  # Gurobi solver status
        self.is_infeasible = False
        self.is_integer = False
        self.processed = False

        # Set by the brancher: (var index, 'down'|'up', fractional distance)
        self.branch_info = None

        # Tree structure
        self.children = []
        self.active = True

        # Basis storage
        self.lp_basis = None
        self.fork_parent = None

    def accumulated_bounds(self):
        bounds = {}
        node = self
        while node:
            for var, (lb, ub) in node.bound_changes.items():
                if var not in bounds:
                    bounds[var] = (lb, ub)
            node = node.parent
        return bounds

    def branching_decisions(self):
        """Ordered (var, (lb, ub)) decisions from the root down to this node."""
        path = []
        node = self
        while node:
            path.append(node)
            node = node.parent
        decisions = []
        for n in reversed(path):
            for var in sorted(n.bound_changes):
                decisions.append((var, tuple(n.bound_changes[var])))
        return decisions

    def evaluate_lp(self, model, instance):
        model.optimize()
        self.status = model.Status
        if model.Status != gp.GRB.OPTIMAL:
            self.is_infeasible = True
            self.bound = float("inf")
            return
        self.bound = model.ObjVal
        self.solution = [var.X for var in model.getVars()]
        self.is_integer = instance.is_integral(self.solution)
        try:
            v_basis = model.getAttr("VBasis", model.getVars())
            c_basis = model.getAttr("CBasis", model.getConstrs())
            self.lp_basis = (v_basis, c_basis)
        except gp.GurobiError:
            self.lp_basis = None

        self.fork_parent = self if self.lp_basis else (self.parent.fork_parent if self.parent else None)
