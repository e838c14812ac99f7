"""
Route solvers.

The orchestrator only talks to the Solver interface: give it a Problem and
a scratch directory, get back a Tour that starts at the virtual start node.
"""

import abc
import logging
import os
import subprocess

from .errors import (
    ConfigError,
    ResourceExhaustionError,
    SolverInvocationError,
    is_resource_exhaustion,
)
from .problem import START, write_problem
from .tour import Tour, orient, read_tour, validate_order

logger = logging.getLogger(__name__)


class Solver(abc.ABC):
    @abc.abstractmethod
    def solve(self, problem, workdir):
        """Solve `problem`, using `workdir` for any files. Returns a Tour."""


class LKHSolver(Solver):
    """Runs the LKH executable on a parameter file."""

    def __init__(self, program, timeout=300.0):
        self.program = os.path.abspath(program)
        self.timeout = timeout

    def command(self, files):
        return [self.program, files.parameters]

    def solve(self, problem, workdir):
        try:
            files = write_problem(problem, workdir)
            completed = subprocess.run(
                self.command(files),
                cwd=os.path.dirname(self.program) or None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise SolverInvocationError(
                "solver timed out after {}s on {}".format(self.timeout, problem.name)
            )
        except OSError as e:
            if is_resource_exhaustion(e):
                raise ResourceExhaustionError(
                    "out of system resources while solving {}: {}".format(problem.name, e)
                ) from e
            raise SolverInvocationError("unable to run {}: {}".format(self.program, e)) from e

        if completed.returncode != 0:
            output = completed.stdout.decode("utf-8", errors="ignore").strip().splitlines()
            raise SolverInvocationError(
                "solver exited with code {} on {}{}".format(
                    completed.returncode, problem.name, ": " + output[-1] if output else ""
                )
            )
        if not os.path.exists(files.tour):
            raise SolverInvocationError("solver wrote no tour file for {}".format(problem.name))

        return orient(read_tour(files.tour, problem), problem)


class OrToolsSolver(Solver):
    """Solves the open path in-process with the OR-tools routing library."""

    def __init__(self, timeout=300.0):
        try:
            from ortools.constraint_solver import pywrapcp, routing_enums_pb2
        except ImportError as e:
            raise ConfigError("the ortools backend needs the ortools package: {}".format(e)) from e
        self._pywrapcp = pywrapcp
        self._enums = routing_enums_pb2
        self.timeout = timeout

    def solve(self, problem, workdir=None):
        pywrapcp = self._pywrapcp
        matrix = problem.matrix

        manager = pywrapcp.RoutingIndexManager(problem.dimension, 1, START)
        routing = pywrapcp.RoutingModel(manager)

        def distance_callback(from_index, to_index):
            """Returns the distance between the two nodes, free on the way back to the start."""
            from_node = manager.IndexToNode(from_index)
            to_node = manager.IndexToNode(to_index)
            if to_node == START:
                return 0
            return matrix[from_node][to_node]

        transit_callback_index = routing.RegisterTransitCallback(distance_callback)
        routing.SetArcCostEvaluatorOfAllVehicles(transit_callback_index)

        search_parameters = pywrapcp.DefaultRoutingSearchParameters()
        search_parameters.first_solution_strategy = (
            self._enums.FirstSolutionStrategy.PATH_CHEAPEST_ARC
        )
        search_parameters.time_limit.FromSeconds(max(1, int(self.timeout)))

        solution = routing.SolveWithParameters(search_parameters)
        if not solution:
            raise SolverInvocationError("OR-tools found no solution for {}".format(problem.name))

        order = []
        index = routing.Start(0)
        while not routing.IsEnd(index):
            order.append(manager.IndexToNode(index))
            index = solution.Value(routing.NextVar(index))

        validate_order(order, problem.dimension)
        return Tour(order=order, cost=problem.path_cost(order))


def make_solver(config):
    if config.backend == "ortools":
        return OrToolsSolver(timeout=config.timeout)
    return LKHSolver(config.program, timeout=config.timeout)
