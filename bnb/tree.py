import heapq
import itertools


class BranchAndBoundTree:
    def __init__(self):
        # Min-heap for best-bound search
        self.best_bound_queue = []
        self.dfs_stack = []
        self.counter = itertools.count()  # Unique counter to break ties

    def __len__(self):
        # The number of unique nodes still in the tree
        return len(self.dfs_stack)

    def empty(self):
        return not self.dfs_stack

    def push(self, node):
        """
        Pushes a new node to BOTH data structures
        """
        if node.processed:
            return

        count = next(self.counter)
        heapq.heappush(self.best_bound_queue, (node.bound, count, node))
        self.dfs_stack.append(node)

    def pop_best_bound(self):
        """
        Pops the node with the best (lowest) bound from the heap
        Skips nodes that have already been processed via the DFS stack
        """
        while self.best_bound_queue:
            _bound, _count, node = heapq.heappop(self.best_bound_queue)
            if not node.processed:
                node.processed = True
                self.dfs_stack.remove(node)
                return node
        return None

    def pop_dfs(self):
        """
        Pops the most recently added node (LIFO)
        Skips nodes that have already been processed via the best-bound queue
        """
        while self.dfs_stack:
            node = self.dfs_stack.pop()
            if not node.processed:
                node.processed = True
                return node
        return None

    def get_best_bound(self):
        """
        Peeks at the best bound from the top of the heap.
        """
        while self.best_bound_queue and self.best_bound_queue[0][2].processed:
            heapq.heappop(self.best_bound_queue)

        if not self.best_bound_queue:
            return float('inf')
        return self.best_bound_queue[0][0]

    def push_children(self, left_node, right_node):
        """
        Pushes the two children nodes to the tree.
        Children inherit the parent bound until they are evaluated, so the down
        branch is pushed last and is the first one taken by DFS.
        """
        self.push(right_node)
        self.push(left_node)
