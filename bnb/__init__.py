from bnb.node import Node
from bnb.tree import BranchAndBoundTree
from bnb.active_path import ActivePathManager
from bnb.branching import Branching
from bnb.shared_state import SharedState
from bnb.solver import BranchAndBoundSolver, SolveResult
