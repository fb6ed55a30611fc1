import argparse
import logging
import os
import time

# -- Reading modules ---
from reader.reader import MIPInstance
#--- Solver modules ---
from bnb.solver import BranchAndBoundSolver
# --- Primal heuristics ---
from heuristics import PartialFixHeuristic, RoundingHeuristic, SerendipityHeuristic, When

logger = logging.getLogger("main")

HEURISTICS = {
    "rounding": RoundingHeuristic,
    "partial": PartialFixHeuristic,
    "serendipity": SerendipityHeuristic,
}


def get_stats(instance: MIPInstance) -> dict:
    """
    Extracts key statistics from an MIPInstance object
    """
    return {
        "cons": instance.num_constraints,
        "vars": instance.num_vars,
        "bin_vars": instance.num_binary,
        "int_vars": instance.num_integer,
        "cont_vars": instance.num_continuous
    }


def build_heuristics(names, when, seed, number_nodes):
    heuristics = []
    for name in names:
        heuristic = HEURISTICS[name]()
        heuristic.when = when
        heuristic.seed = seed
        heuristic.number_nodes = number_nodes
        heuristics.append(heuristic)
    return heuristics


def main(argv=None):
    parser = argparse.ArgumentParser(description="Branch and bound with pluggable primal heuristics.")
    parser.add_argument("instance_path", type=str, help="Path to an .mps instance.")
    parser.add_argument("--heuristics", nargs="*", default=list(HEURISTICS), choices=list(HEURISTICS),
                        help="Heuristics to register, in call order.")
    parser.add_argument("--when", type=int, default=When.ALWAYS, choices=[int(w) for w in When],
                        help="0 off, 1 root only, 2 non-root, 3 always.")
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--sub-nodes", type=int, default=200, help="Node cap of heuristic sub-solves.")
    parser.add_argument("--max-nodes", type=int, default=None)
    parser.add_argument("--time-limit", type=float, default=300.0)
    parser.add_argument("--plunge", type=int, default=0, metavar="K",
                        help="Every K nodes switch to depth-first for K nodes (0 keeps best-first).")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(name)s %(levelname)s %(message)s")

    if not os.path.exists(args.instance_path):
        logger.error("File not found at '%s'", args.instance_path)
        return 1
    logger.info("Loading instance: %s", args.instance_path)
    instance = MIPInstance.from_mps(args.instance_path)
    instance.pretty_print()
    logger.debug("Model statistics: %s", get_stats(instance))

    heuristics = build_heuristics(args.heuristics, args.when, args.seed, args.sub_nodes)
    for heuristic in heuristics:
        config_dump = heuristic.dump_configuration()
        if config_dump:
            logger.info("%s settings:\n%s", heuristic.heuristic_name, config_dump)

    solver = BranchAndBoundSolver(instance, heuristics=heuristics,
                                  max_nodes=args.max_nodes, time_limit=args.time_limit,
                                  enable_plunging=args.plunge > 0, k_plunging=max(args.plunge, 1))
    start = time.time()
    result = solver.solve()
    logger.info("Total solver time: %.4f seconds, %d nodes", time.time() - start, result.node_count)

    if result.solution is None:
        logger.info("No feasible solution found.")
    else:
        logger.info("Objective value: %.6f (%s)", result.objective, "optimal" if result.finished else "stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
