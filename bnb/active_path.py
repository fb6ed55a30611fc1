import logging

import gurobipy as gp

logger = logging.getLogger(__name__)


class ActivePathManager:
    def __init__(self, root_node, instance):
        self.active_path = [root_node]  # from root to current focus node
        self.focus = root_node
        self.instance = instance

    def find_common_ancestor(self, node):
        """Finds the deepest common ancestor between current focus and node."""
        focus_ancestors = set()
        current = self.focus
        while current:
            focus_ancestors.add(current)
            current = current.parent

        while node not in focus_ancestors:
            node = node.parent
        return node

    def switch_focus(self, new_node, model):
        """
        Switch the current LP model from focus -> new_node by:
        - Undoing bounds up to the common ancestor.
        - Reapplying bounds down to the new focus node.
        """
        ancestor = self.find_common_ancestor(new_node)

        # Step 1: Undo changes up to ancestor, back to what the ancestor path imposes
        kept = ancestor.accumulated_bounds()
        current = self.focus
        while current is not ancestor:
            self._undo_changes(current, model, kept)
            current = current.parent

        # Step 2: Build path down to new node
        path_down = []
        node = new_node
        while node is not ancestor:
            path_down.append(node)
            node = node.parent
        path_down.reverse()

        # Step 3: Reapply changes
        for node in path_down:
            self._apply_changes(node, model)

        # Step 4: Load LP warm start from fork parent if it exists
        if new_node.fork_parent and new_node.fork_parent.lp_basis:
            v_basis, c_basis = new_node.fork_parent.lp_basis
            try:
                model.setAttr("VBasis", model.getVars(), v_basis)
                model.setAttr("CBasis", model.getConstrs(), c_basis)
            except gp.GurobiError:
                logger.debug("Could not load warm start basis for node %d", new_node.node_number)

        self.focus = new_node
        self.active_path = self._rebuild_path(new_node)

    def _undo_changes(self, node, model, kept):
        variables = model.getVars()
        for var_idx in node.bound_changes:
            lb, ub = kept.get(var_idx, (self.instance.lb[var_idx], self.instance.ub[var_idx]))
            variables[var_idx].lb = lb
            variables[var_idx].ub = ub

    def _apply_changes(self, node, model):
        variables = model.getVars()
        for var_idx, (lb, ub) in node.bound_changes.items():
            variables[var_idx].lb = lb
            variables[var_idx].ub = ub

    def _rebuild_path(self, node):
        path = []
        while node:
            path.append(node)
            node = node.parent
        return list(reversed(path))
