class HeuristicConfigError(ValueError):
    """Invalid heuristic setting, raised when the value is set."""


class HeuristicContractError(RuntimeError):
    """Caller broke the calling contract (no model bound, wrong buffer size)."""
