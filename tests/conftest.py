import os
import stat
import sys
import textwrap
import threading
import time

import pytest

from tspgcode.config import Config
from tspgcode.errors import SolverInvocationError
from tspgcode.gcode import Parser
from tspgcode.problem import START
from tspgcode.segments import split_layers
from tspgcode.solvers import Solver
from tspgcode.tour import Tour

# Two layers, absolute E. Layer 0 has three islands whose entries are
# visited as (0,0) -> (50,0) -> (10,0); layer 1 has a single island.
SAMPLE = """\
; sample
G90
M82
M104 S200
G92 E0
G0 F6000 X0 Y0 Z0.2
G1 F1200 X5 Y0 E1
G1 X5 Y5 E2
G1 E1.2 F2400
G0 F6000 X50 Y0
G1 E2 F2400
G1 F1200 X55 Y0 E3
G1 E2.2 F2400
G0 F6000 X10 Y0
G1 E3 F2400
G1 F1200 X15 Y0 E4
G1 E3.2 F2400
G0 F6000 Z0.4
G0 X20 Y20
G1 E4 F2400
G1 F1200 X25 Y20 E5
M107
"""


def parse(text, **kwargs):
    return Parser(**kwargs).parse(textwrap.dedent(text).splitlines())


def nearest_neighbour(problem):
    order = [START]
    left = set(range(problem.dimension)) - {START}
    while left:
        here = order[-1]
        step = min(sorted(left), key=lambda node: problem.matrix[here][node])
        order.append(step)
        left.remove(step)
    return order


class FakeSolver(Solver):
    """Deterministic in-process solver: nearest neighbour from the start node.

    Records every call, the scratch directories it was given and the
    highest number of calls running at the same time.
    """

    def __init__(self, fail_layers=(), delay=0.0, order=None, error=None):
        self.fail_layers = set(fail_layers)
        self.delay = delay
        self.order = order
        self.error = error
        self.calls = []
        self.workdirs = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def solve(self, problem, workdir):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.calls.append(problem.layer)
            self.workdirs.append(workdir)
        try:
            assert os.path.isdir(workdir)
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            if problem.layer in self.fail_layers:
                raise SolverInvocationError("fake solver failed on layer {}".format(problem.layer))
            order = list(self.order) if self.order is not None else nearest_neighbour(problem)
            return Tour(order=order, cost=problem.path_cost(order))
        finally:
            with self._lock:
                self.active -= 1


FAKE_LKH = '''\
#!{python}
import os, sys, time

params = {{}}
with open(sys.argv[1]) as f:
    for line in f:
        if "=" in line:
            key, value = line.split("=", 1)
            params[key.strip()] = value.strip()

with open(params["PROBLEM_FILE"]) as f:
    dimension = int([l for l in f if l.startswith("DIMENSION")][0].split(":")[1])

markers = {markers!r}
marker = None
if markers:
    marker = os.path.join(markers, "%d.running" % os.getpid())
    open(marker, "w").close()
    with open(os.path.join(markers, "counts.log"), "a") as log:
        log.write("%d\\n" % len([n for n in os.listdir(markers) if n.endswith(".running")]))

time.sleep({delay})

raw_tour = {raw_tour!r}
if raw_tour is not None:
    with open(params["TOUR_FILE"], "wb") as f:
        f.write(raw_tour)
elif {write_tour}:
    order = {order!r} or list(range(1, dimension + 1))
    with open(params["TOUR_FILE"], "w") as f:
        f.write("NAME : fake.tour\\nCOMMENT : Length = 42\\nTYPE : TOUR\\n")
        f.write("DIMENSION : %d\\nTOUR_SECTION\\n" % dimension)
        for node in order:
            f.write("%d\\n" % node)
        f.write("-1\\nEOF\\n")

if marker:
    os.remove(marker)
sys.exit({exit_code})
'''


@pytest.fixture
def fake_lkh(tmp_path):
    """Factory writing a stand-in LKH executable; returns its path."""
    if os.name == "nt":
        pytest.skip("fake solver scripts need a POSIX shebang")

    def make(exit_code=0, write_tour=True, delay=0.0, order=None, markers=None, raw_tour=None, name="LKH"):
        path = tmp_path / name
        path.write_text(
            FAKE_LKH.format(
                python=sys.executable,
                exit_code=exit_code,
                write_tour=write_tour,
                delay=delay,
                order=order,
                raw_tour=raw_tour,
                markers=str(markers) if markers else None,
            )
        )
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return make


@pytest.fixture
def config():
    def make(**kwargs):
        kwargs.setdefault("program", sys.executable)
        return Config(**kwargs)

    return make


@pytest.fixture
def sample_commands():
    return parse(SAMPLE)


@pytest.fixture
def sample_layers(sample_commands):
    return split_layers(sample_commands)
