"""
Records of the branching decisions that led to the nodes where a heuristic ran,
so it can skip nodes that look like ones it has already tried.
"""
from collections import deque
from typing import Deque, Iterable, Optional, Tuple

from heuristics.config import check_far_threshold

Decision = Tuple[int, Tuple[float, float]]


class HeuristicNode:
    """Ordered (variable, (lb, ub)) branching decisions from the root to a node."""

    __slots__ = ("decisions",)

    def __init__(self, decisions: Iterable[Decision] = ()):
        self.decisions: Tuple[Decision, ...] = tuple(
            (int(var), (float(bounds[0]), float(bounds[1]))) for var, bounds in decisions
        )

    @classmethod
    def from_node(cls, node):
        if node is None:
            return cls()
        return cls(node.branching_decisions())

    def __len__(self):
        return len(self.decisions)

    def __eq__(self, other):
        if not isinstance(other, HeuristicNode):
            return NotImplemented
        return self.decisions == other.decisions

    def __hash__(self):
        return hash(self.decisions)

    def __repr__(self):
        return f"HeuristicNode({list(self.decisions)})"

    def matching_fraction(self, other: "HeuristicNode") -> float:
        """
        Positional agreement between the two decision sequences. Decisions past
        the shorter length count as mismatches.
        """
        longest = max(len(self), len(other))
        if longest == 0:
            return 1.0
        matches = sum(1 for mine, theirs in zip(self.decisions, other.decisions) if mine == theirs)
        return matches / longest

    def is_far_from(self, other: "HeuristicNode", threshold: float) -> bool:
        check_far_threshold(threshold)
        return self.matching_fraction(other) < threshold


class HeuristicNodeHistory:
    """
    Insertion-ordered nodes where a heuristic has run. Owns its nodes. With
    max_size set, appending to a full history forgets the oldest node.
    """

    def __init__(self, nodes: Iterable[HeuristicNode] = (), max_size: Optional[int] = None):
        self._nodes: Deque[HeuristicNode] = deque(nodes, maxlen=max_size)

    @property
    def max_size(self) -> Optional[int]:
        return self._nodes.maxlen

    def __len__(self):
        return len(self._nodes)

    def __iter__(self):
        return iter(self._nodes)

    def append(self, node: HeuristicNode):
        self._nodes.append(node)

    def extend(self, other: "HeuristicNodeHistory"):
        """Moves every node of other into this history."""
        self._nodes.extend(other._nodes)
        other.clear()

    def clear(self):
        self._nodes.clear()

    def far_from(self, candidate: HeuristicNode, threshold: float) -> bool:
        """True when every stored node is far from candidate (vacuously on an empty history)."""
        return all(node.is_far_from(candidate, threshold) for node in self._nodes)
