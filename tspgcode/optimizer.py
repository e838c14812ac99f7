"""
End-to-end travel optimization of a G-code file.

parse -> split into layers -> merge close islands -> build one routing
problem per layer -> solve them concurrently -> rebuild the file with the
islands of every layer in tour order.
"""

import csv
import logging
import os
import time
from dataclasses import dataclass, field
from typing import List

from . import __version__
from .dialects import get_dialect
from .errors import InputError
from .gcode import CommandKind, Parser, UnsupportedLog, read_lines
from .merge import merge_islands
from .orchestrator import Orchestrator, Status
from .problem import build_problem
from .reconstruct import reconstruct_layer
from .segments import split_layers
from .solvers import make_solver

logger = logging.getLogger(__name__)


@dataclass
class Stats:
    extrusion_distance: float = 0.0
    travel_distance: float = 0.0
    extrude_count: int = 0
    travel_count: int = 0

    def log(self, title):
        logger.info(
            "%s: extrusion %.3f mm in %d moves, travel %.3f mm in %d moves",
            title, self.extrusion_distance, self.extrude_count,
            self.travel_distance, self.travel_count,
        )


@dataclass
class LayerReport:
    layer: int
    islands: int  # islands found by the segmenter
    merged: int  # islands left after merging
    nodes: int  # problem size including the start node, 0 when not solved
    status: Status


@dataclass
class OptimizeResult:
    lines: List[str]
    layers: List[LayerReport] = field(default_factory=list)
    before: Stats = field(default_factory=Stats)
    after: Stats = field(default_factory=Stats)
    unsupported: int = 0
    elapsed: float = 0.0

    def count(self, status):
        return sum(1 for report in self.layers if report.status == status)


def measure(commands):
    """Extrusion and travel distance of a parsed command stream."""
    stats = Stats()
    for command in commands:
        if command.kind == CommandKind.EXTRUDE:
            stats.extrude_count += 1
            stats.extrusion_distance += command.before.distance_3d(command.after)
        elif command.kind in (CommandKind.TRAVEL, CommandKind.HOME):
            stats.travel_count += 1
            stats.travel_distance += command.before.distance_3d(command.after)
    return stats


def travel_cost(layer, order, start=None):
    """Unscaled XY travel from `start` (default: the layer start) through the islands in `order`."""
    position = layer.start if start is None else start
    total = 0.0
    for index in order:
        island = layer.islands[index]
        total += position.distance_to(island.entry)
        position = island.exit
    return total


def elapsed_time(seconds):
    millis = int(seconds * 1000)
    secs, millis = divmod(millis, 1000)
    if secs > 60:
        return "{}m {}s".format(secs // 60, secs % 60)
    if secs > 0:
        return "{}s {}ms".format(secs, millis)
    return "{}ms".format(millis)


def output_path(path):
    root, ext = os.path.splitext(path)
    return "{}_optimized{}".format(root, ext)


class Optimizer:
    def __init__(self, config, solver=None, unsupported=None):
        self.config = config
        self.dialect = get_dialect(config.dialect)
        self.solver = solver if solver is not None else make_solver(config)
        self.unsupported = unsupported if unsupported is not None else UnsupportedLog()

    def parse(self, lines):
        return Parser(self.dialect, self.unsupported).parse(lines)

    def _choose_order(self, layer, result, start=None):
        """Island order to print `layer` in from `start`, or None to keep it verbatim."""
        order = result.tour.islands
        original = list(range(len(layer.islands)))
        if order == original:
            return None, Status.UNCHANGED
        before, after = travel_cost(layer, original, start), travel_cost(layer, order, start)
        if after >= before:
            logger.info(
                "Layer %d: tour does not shorten travel (%.3f >= %.3f), keeping original order",
                layer.index, after, before,
            )
            return None, Status.UNCHANGED
        logger.debug("Layer %d: travel %.3f -> %.3f", layer.index, before, after)
        return order, Status.SOLVED

    def optimize_commands(self, commands):
        started = time.monotonic()
        config = self.config

        layers = split_layers(commands)
        merged = [merge_islands(layer, config.max_merge_length) for layer in layers]

        problems = []
        reports = {}
        for source, layer in zip(layers, merged):
            reports[layer.index] = LayerReport(
                layer.index, len(source.islands), len(layer.islands), 0, Status.SKIPPED
            )
            if len(layer.islands) < config.minimum_nodes:
                logger.debug("Skipping layer %d/%d (%d islands)",
                             layer.index, len(merged) - 1, len(layer.islands))
                continue
            problem = build_problem(layer, config.precision, config.num_runs)
            reports[layer.index].nodes = problem.dimension
            logger.info("Solving layer %d/%d (%d -> %d nodes)",
                        layer.index, len(merged) - 1, len(source.islands), problem.dimension)
            problems.append(problem)

        results = Orchestrator(self.solver, config.workers).solve(problems)

        lines = []
        state = merged[0].start if merged else None
        for layer in merged:
            order = None
            result = results.get(layer.index)
            if result is not None:
                if result.status == Status.SOLVED:
                    order, reports[layer.index].status = self._choose_order(layer, result, state)
                else:
                    reports[layer.index].status = result.status
            layer_lines, state = reconstruct_layer(layer, order, state)
            lines.extend(layer_lines)

        result = OptimizeResult(
            lines=lines,
            layers=[reports[layer.index] for layer in merged],
            before=measure(commands),
            after=measure(Parser(self.dialect, UnsupportedLog()).parse(lines)),
            unsupported=len(self.unsupported),
        )
        result.before.log("Base G-code")
        result.after.log("Optimized G-code")
        result.elapsed = time.monotonic() - started
        logger.info(
            "%d layers: %d solved, %d unchanged, %d skipped, %d fell back",
            len(result.layers), result.count(Status.SOLVED), result.count(Status.UNCHANGED),
            result.count(Status.SKIPPED), result.count(Status.FALLBACK),
        )
        return result

    def optimize_lines(self, lines):
        return self.optimize_commands(self.parse(lines))

    def optimize_file(self, path, output=None, report=None):
        """Optimize the G-code at `path` and write the result next to it."""
        output = output or output_path(path)
        lines = read_lines(path)
        if lines and lines[-1] == "":
            lines.pop()

        result = self.optimize_lines(lines)

        try:
            with open(output, "w", encoding="utf-8", newline="\n") as f:
                f.write(";Generated with tspgcode {}\n".format(__version__))
                f.write(";Original file: {}\n".format(path))
                for line in result.lines:
                    f.write(line)
                    f.write("\n")
        except OSError as e:
            raise InputError("unable to write file {}: {}".format(output, e.strerror or e)) from e
        logger.info("Wrote %s", output)

        if report:
            write_report(report, result.layers)
        return result


def write_report(path, reports):
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["layer", "islands", "merged", "nodes", "status"])
        for r in reports:
            writer.writerow([r.layer, r.islands, r.merged, r.nodes, r.status.value])
