from heuristics.config import HeuristicConfig, When, TRUST_ODD
from heuristics.errors import HeuristicConfigError, HeuristicContractError
from heuristics.node_history import HeuristicNode, HeuristicNodeHistory
from heuristics.base import Heuristic, SeekResult, SubSolveStatus
from heuristics.rounding import RoundingHeuristic, RoundingState, LockTable
from heuristics.partial import PartialFixHeuristic
from heuristics.serendipity import SerendipityHeuristic
