"""Read and validate the tours written by the route solver."""

import re
from dataclasses import dataclass
from typing import List, Optional

from .errors import TourValidationError, is_resource_exhaustion
from .problem import START

_length_exp = re.compile(r"Length\s*=\s*([0-9]+)")
_header_exp = re.compile(r"^\s*([A-Z_]+)\s*:\s*(.*)$")


@dataclass
class Tour:
    order: List[int]  # 0-based node indices, starting with the virtual start node
    cost: Optional[int] = None

    @property
    def islands(self):
        """Island indices in visiting order."""
        return [node - 1 for node in self.order[1:]]

    @property
    def is_identity(self):
        return self.order == list(range(len(self.order)))


def validate_order(order, dimension):
    """Check that `order` visits each of `dimension` nodes once, starting at the start node."""
    if len(order) != dimension:
        raise TourValidationError(
            "tour has {} nodes, problem has {}".format(len(order), dimension)
        )
    if sorted(order) != list(range(dimension)):
        missing = sorted(set(range(dimension)) - set(order))
        raise TourValidationError("tour is not a permutation (missing nodes {})".format(missing))
    if order[0] != START:
        raise TourValidationError("tour starts at node {} instead of the start node".format(order[0]))


def parse_tour(text, dimension):
    """Parse a TSPLIB tour and return a validated Tour."""
    cost = None
    nodes = []
    in_section = False
    terminated = False

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if not in_section:
            if stripped.startswith("TOUR_SECTION"):
                in_section = True
                continue
            header = _header_exp.match(stripped)
            if header and header.group(1) == "COMMENT":
                length = _length_exp.search(header.group(2))
                if length:
                    cost = int(length.group(1))
            elif header and header.group(1) == "DIMENSION":
                try:
                    declared = int(header.group(2))
                except ValueError:
                    raise TourValidationError("bad DIMENSION line: {}".format(stripped))
                if declared != dimension:
                    raise TourValidationError(
                        "tour DIMENSION {} does not match problem ({})".format(declared, dimension)
                    )
            continue

        if stripped == "EOF":
            break
        for token in stripped.split():
            try:
                node = int(token)
            except ValueError:
                raise TourValidationError("bad node {!r} in tour".format(token))
            if node == -1:
                terminated = True
                break
            if not 1 <= node <= dimension:
                raise TourValidationError("node {} out of range 1..{}".format(node, dimension))
            nodes.append(node - 1)
        if terminated:
            break

    if not in_section:
        raise TourValidationError("no TOUR_SECTION in tour file")

    validate_order(nodes, dimension)
    return Tour(order=nodes, cost=cost)


def read_tour(path, problem):
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError:
        raise TourValidationError("tour file {} was not written".format(path))
    except UnicodeDecodeError as e:
        raise TourValidationError("tour file {} is not text: {}".format(path, e)) from e
    except OSError as e:
        if is_resource_exhaustion(e):
            raise
        raise TourValidationError("unable to read tour file {}: {}".format(path, e.strerror or e)) from e
    return parse_tour(text, problem.dimension)


def orient(tour, problem):
    """Pick the direction of a closed tour that is cheapest as an open path from the start."""
    forward = tour.order
    backward = [forward[0]] + forward[:0:-1]
    if problem.path_cost(backward) < problem.path_cost(forward):
        return Tour(order=backward, cost=problem.path_cost(backward))
    return Tour(order=forward, cost=problem.path_cost(forward))
