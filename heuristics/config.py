from dataclasses import dataclass
from enum import IntEnum

from heuristics.errors import HeuristicConfigError

# how close to an integer a value must be to be considered integer
INTEGER_TOLERANCE = 1e-6

# allowed row/bound violation of a proposed solution
FEASIBILITY_TOLERANCE = 1e-6

# share of matching branching decisions below which two nodes count as far apart
DEFAULT_FAR_THRESHOLD = 0.75

# size of the random perturbation added to lock counts when scoring a rounding
LOCK_JITTER = 0.1

# extra weight for the rounding direction that improves the objective
OBJECTIVE_WEIGHT = 0.5

# rounding scores closer than this are a tie
TIE_TOLERANCE = 1e-9

# relative jitter applied to greedy covering scores
COVER_JITTER = 1e-3

# margin by which a candidate must beat the incumbent to count as an improvement
IMPROVEMENT_TOLERANCE = 1e-9

# nodes a heuristic remembers for the history gate; older runs are forgotten
DEFAULT_HISTORY_SIZE = 100


class When(IntEnum):
    OFF = 0
    ROOT = 1
    NOT_ROOT = 2
    ALWAYS = 3


# added to `when` to keep a heuristic on even when validate() finds odd constructs
TRUST_ODD = 10


@dataclass
class HeuristicConfig:
    when: int = When.NOT_ROOT.value
    number_nodes: int = 200
    feasibility_pump_options: int = -1
    fraction_small: float = 1.0
    name: str = "Unknown"
    how_often: int = 1
    decay_factor: float = 0.0
    seed: int = 7
    far_threshold: float = DEFAULT_FAR_THRESHOLD
    history_size: int = DEFAULT_HISTORY_SIZE

    def __post_init__(self):
        self.check()

    def check(self):
        if not 0 <= self.when < 2 * TRUST_ODD or self.when % TRUST_ODD > When.ALWAYS:
            raise HeuristicConfigError(f"when must be 0-3, optionally plus {TRUST_ODD}; got {self.when}")
        if self.number_nodes < 0:
            raise HeuristicConfigError(f"number_nodes must be non-negative; got {self.number_nodes}")
        if self.feasibility_pump_options < -1:
            raise HeuristicConfigError("feasibility_pump_options must be -1 (off) or non-negative")
        if self.fraction_small <= 0:
            raise HeuristicConfigError(f"fraction_small must be positive; got {self.fraction_small}")
        if self.how_often < 1:
            raise HeuristicConfigError(f"how_often must be at least 1; got {self.how_often}")
        if self.decay_factor < 0:
            raise HeuristicConfigError(f"decay_factor must be non-negative; got {self.decay_factor}")
        if self.seed < 0:
            raise HeuristicConfigError(f"seed must be non-negative; got {self.seed}")
        check_far_threshold(self.far_threshold)
        if self.history_size < 1:
            raise HeuristicConfigError(f"history_size must be at least 1; got {self.history_size}")


def check_far_threshold(threshold):
    if not 0 < threshold <= 1:
        raise HeuristicConfigError(f"far threshold must lie in (0, 1]; got {threshold}")
