import os

import pytest

from tspgcode.problem import START, build_problem, euclidean, scale, unscale, write_problem
from tspgcode.segments import segment_layer

from .conftest import parse

TWO_ISLANDS = """\
G0 X0 Y0
G1 X1 E1
G0 X10 Y0
G1 X11 E2
"""


def test_scale():
    assert scale(10.0, 1000) == 10000
    assert scale(0.0004, 1000) == 0
    assert unscale(scale(12.5, 1000), 1000) == 12.5


@pytest.mark.parametrize("precision", [1, 10, 1000])
@pytest.mark.parametrize("value", [0.0004, -3.14159, 123.4567, -0.5, 250.0])
def test_scale_round_trip_within_precision(value, precision):
    assert abs(unscale(scale(value, precision), precision) - value) <= 1 / precision


def test_euclidean_rounds_to_nearest():
    assert euclidean((0, 0), (3, 4)) == 5
    assert euclidean((0, 0), (1, 1)) == 1
    assert euclidean((0, 0), (2, 2)) == 3


class TestBuildProblem:
    def test_nodes_and_matrix(self):
        problem = build_problem(segment_layer(parse(TWO_ISLANDS), index=3), precision=1000)
        assert problem.name == "layer_3"
        assert problem.dimension == 3
        assert problem.nodes == [(0, 0), (0, 0), (10000, 0)]
        assert problem.matrix[START][2] == 10000
        assert problem.matrix[1][2] == problem.matrix[2][1] == 10000
        assert all(problem.matrix[i][i] == 0 for i in range(3))

    def test_start_node_is_layer_start(self, sample_layers):
        problem = build_problem(sample_layers[1], precision=10)
        assert problem.nodes[START] == (150, 0)
        assert problem.nodes[1] == (200, 200)

    def test_no_islands(self):
        assert build_problem(segment_layer(parse("G0 X1")), 1000) is None

    def test_path_cost_is_open(self):
        problem = build_problem(segment_layer(parse(TWO_ISLANDS)), precision=1000)
        assert problem.path_cost([0, 1, 2]) == 10000
        assert problem.path_cost([0, 2, 1]) == 20000


class TestWriteProblem:
    def test_files(self, tmp_path):
        problem = build_problem(segment_layer(parse(TWO_ISLANDS), index=2), 1000, num_runs=5)
        files = write_problem(problem, str(tmp_path))

        assert files.problem == os.path.join(str(tmp_path), "layer_2.tsp")
        assert files.tour == os.path.join(str(tmp_path), "layer_2.tour")
        assert not os.path.exists(files.tour)

        with open(files.problem) as f:
            tsp = f.read().splitlines()
        assert tsp[0] == "NAME : layer_2"
        assert tsp[1].startswith("COMMENT : ")
        assert tsp[2:6] == ["TYPE : TSP", "DIMENSION : 3", "EDGE_WEIGHT_TYPE : EUC_2D", "NODE_COORD_SECTION"]
        assert tsp[6:] == ["1 0 0", "2 0 0", "3 10000 0", "EOF"]

        with open(files.parameters) as f:
            par = f.read().splitlines()
        assert par == [
            "PROBLEM_FILE = {}".format(files.problem),
            "TOUR_FILE = {}".format(files.tour),
            "RUNS = 5",
            "CANDIDATE_SET_TYPE = POPMUSIC",
        ]
