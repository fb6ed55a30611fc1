import math

from bnb.node import Node


class Branching:
    """Pseudocost branching; variables without history use the running average."""

    def __init__(self, instance, tol=1e-6):
        self.instance = instance  # Access to original bounds, types, etc.
        self.tol = tol

        self.pseudocosts_up = [0.0] * instance.num_vars
        self.pseudocosts_down = [0.0] * instance.num_vars
        self.pseudocounts_up = [0] * instance.num_vars
        self.pseudocounts_down = [0] * instance.num_vars

    def fractional_vars(self, solution):
        fractional = []
        for i in self.instance.integer_indices:
            val = solution[i]
            if abs(val - round(val)) > self.tol:
                fractional.append((i, val))
        return fractional

    def select_branching_variable(self, node, solution, next_number):
        """
        Returns (var, down_node, up_node), or (None, None, None) when the
        solution is integral. Children are not evaluated here.
        """
        fractional_vars = self.fractional_vars(solution)
        if not fractional_vars:
            return None, None, None

        best_var = None
        best_score = -float('inf')
        avg_up = self.avgg(self.pseudocosts_up, self.pseudocounts_up)
        avg_down = self.avgg(self.pseudocosts_down, self.pseudocounts_down)

        for var_idx, val in fractional_vars:
            f_down = val - math.floor(val)
            f_up = math.ceil(val) - val

            # Use historical data or the global average to estimate degradation
            ksi_down = (self.pseudocosts_down[var_idx] / self.pseudocounts_down[var_idx]) \
                if self.pseudocounts_down[var_idx] > 0 else avg_down
            ksi_up = (self.pseudocosts_up[var_idx] / self.pseudocounts_up[var_idx]) \
                if self.pseudocounts_up[var_idx] > 0 else avg_up

            score = max(f_down * ksi_down, 1e-6) * max(f_up * ksi_up, 1e-6)
            if score > best_score:
                best_score = score
                best_var = var_idx

        val = solution[best_var]
        floor_val, ceil_val = math.floor(val), math.ceil(val)
        lb, ub = node.accumulated_bounds().get(best_var, (self.instance.lb[best_var], self.instance.ub[best_var]))

        down = Node(parent=node, depth=node.depth + 1, node_number=next_number,
                    bound_changes={best_var: (lb, floor_val)})
        down.branch_info = (best_var, 'down', val - floor_val)
        up = Node(parent=node, depth=node.depth + 1, node_number=next_number + 1,
                  bound_changes={best_var: (ceil_val, ub)})
        up.branch_info = (best_var, 'up', ceil_val - val)
        return best_var, down, up

    def update_pseudocosts(self, node):
        """Records the bound degradation of an evaluated child against its parent."""
        if node.branch_info is None or node.parent is None or node.is_infeasible:
            return
        var_idx, direction, frac = node.branch_info
        if frac <= self.tol:
            return
        delta = max(node.bound - node.parent.bound, 0.0)
        if direction == 'down':
            self.pseudocosts_down[var_idx] += delta / frac
            self.pseudocounts_down[var_idx] += 1
        else:
            self.pseudocosts_up[var_idx] += delta / frac
            self.pseudocounts_up[var_idx] += 1

    def avgg(self, costs, counts):
        values = [costs[i] / counts[i] for i in range(len(costs)) if counts[i] > 0]
        return sum(values) / len(values) if values else 1
