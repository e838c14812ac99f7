"""
Run the route solver for many layers with a bounded number of workers.

Each layer owns its problem, scratch directory and tour for the whole
solve; the only shared state is the admission counter below. A layer whose
solve fails falls back to its original order without affecting the others.
"""

import logging
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import (
    ResourceExhaustionError,
    SolverInvocationError,
    TourValidationError,
    is_resource_exhaustion,
)
from .tour import Tour

logger = logging.getLogger(__name__)


class Status(str, Enum):
    SOLVED = "solved"
    FALLBACK = "fallback"  # solver failed, original order kept
    SKIPPED = "skipped"  # too few islands to route
    UNCHANGED = "unchanged"  # solved, but no better than the original order


@dataclass
class LayerResult:
    layer: int
    status: Status
    tour: Optional[Tour] = None
    error: Optional[str] = None


class Orchestrator:
    def __init__(self, solver, workers=1):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.solver = solver
        self.workers = workers
        self._admission = threading.BoundedSemaphore(workers)
        self._lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def _enter(self):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)

    def _leave(self):
        with self._lock:
            self.active -= 1

    def solve_one(self, problem):
        """Solve a single layer problem, never raising for layer-local failures."""
        with self._admission:
            self._enter()
            try:
                with tempfile.TemporaryDirectory(prefix="tspgcode-{}-".format(problem.name)) as workdir:
                    tour = self.solver.solve(problem, workdir)
            except (SolverInvocationError, TourValidationError) as e:
                logger.warning("Layer %d: %s; keeping original order", problem.layer, e)
                return LayerResult(problem.layer, Status.FALLBACK, error=str(e))
            except OSError as e:
                if is_resource_exhaustion(e):
                    raise ResourceExhaustionError(
                        "out of system resources while solving {}: {}".format(problem.name, e)
                    ) from e
                raise
            finally:
                self._leave()

        logger.debug("Layer %d solved (cost %s)", problem.layer, tour.cost)
        return LayerResult(problem.layer, Status.SOLVED, tour=tour)

    def solve(self, problems):
        """Solve all `problems`; returns {layer index: LayerResult}."""
        results = {}
        if not problems:
            return results

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="solver") as executor:
            futures = [executor.submit(self.solve_one, problem) for problem in problems]
            try:
                for future in as_completed(futures):
                    result = future.result()
                    results[result.layer] = result
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        logger.debug("Solved %d layers with at most %d concurrent solvers", len(results), self.peak)
        return results
