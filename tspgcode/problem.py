"""
Build the per-layer routing problem and write it in TSPLIB form.

Node 0 is the tool position at the start of the layer; node i + 1 is the
entry point of island i. Coordinates are scaled by the configured precision
and rounded, since LKH only handles integer coordinates.
"""

import logging
import math
import os
from dataclasses import dataclass
from typing import List, Tuple

logger = logging.getLogger(__name__)

START = 0  # index of the virtual start node


def scale(value, precision):
    return int(round(value * precision))


def unscale(value, precision):
    return value / precision


def euclidean(a, b):
    """TSPLIB EUC_2D distance: rounded to the nearest integer."""
    return int(round(math.hypot(a[0] - b[0], a[1] - b[1])))


@dataclass
class Problem:
    layer: int
    nodes: List[Tuple[int, int]]
    matrix: List[List[int]]
    num_runs: int = 1

    @property
    def name(self):
        return "layer_{}".format(self.layer)

    @property
    def dimension(self):
        return len(self.nodes)

    def path_cost(self, order):
        """Cost of visiting `order` as an open path (no return edge)."""
        return sum(self.matrix[a][b] for a, b in zip(order, order[1:]))

    def tsplib(self):
        lines = [
            "NAME : {}".format(self.name),
            "COMMENT : travel optimization for layer {} ({} islands, {} runs)".format(
                self.layer, self.dimension - 1, self.num_runs
            ),
            "TYPE : TSP",
            "DIMENSION : {}".format(self.dimension),
            "EDGE_WEIGHT_TYPE : EUC_2D",
            "NODE_COORD_SECTION",
        ]
        for i, (x, y) in enumerate(self.nodes, 1):
            lines.append("{} {} {}".format(i, x, y))
        lines.append("EOF")
        return "\n".join(lines) + "\n"


@dataclass
class ProblemFiles:
    parameters: str
    problem: str
    tour: str


def build_problem(layer, precision, num_runs=1):
    """Return the Problem for `layer`, or None when it has no islands."""
    if not layer.islands:
        return None

    points = [layer.start] + [island.entry for island in layer.islands]
    nodes = [(scale(p.x, precision), scale(p.y, precision)) for p in points]
    matrix = [[euclidean(a, b) for b in nodes] for a in nodes]
    return Problem(layer=layer.index, nodes=nodes, matrix=matrix, num_runs=num_runs)


def write_problem(problem, directory):
    """Write the LKH parameter and problem files for `problem` into `directory`."""
    base = os.path.join(os.path.abspath(directory), problem.name)
    files = ProblemFiles(parameters=base + ".par", problem=base + ".tsp", tour=base + ".tour")

    with open(files.problem, "w") as f:
        f.write(problem.tsplib())

    with open(files.parameters, "w") as f:
        f.write(
            "PROBLEM_FILE = {}\n"
            "TOUR_FILE = {}\n"
            "RUNS = {}\n"
            "CANDIDATE_SET_TYPE = POPMUSIC\n".format(files.problem, files.tour, problem.num_runs)
        )

    logger.debug("Wrote %s (%d nodes)", files.problem, problem.dimension)
    return files
