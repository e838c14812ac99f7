import pytest

from tspgcode.errors import TourValidationError
from tspgcode.problem import Problem
from tspgcode.tour import Tour, orient, parse_tour, read_tour, validate_order

TOUR = """\
NAME : layer_0.4.tour
COMMENT : Length = 1234
COMMENT : Found by LKH
TYPE : TOUR
DIMENSION : 4
TOUR_SECTION
1
3
4
2
-1
EOF
"""


def line_problem():
    # start at 0, islands at 30, 10 and 20 on a line
    nodes = [(0, 0), (30, 0), (10, 0), (20, 0)]
    matrix = [[abs(a[0] - b[0]) for b in nodes] for a in nodes]
    return Problem(layer=0, nodes=nodes, matrix=matrix)


class TestParseTour:
    def test_parse(self):
        tour = parse_tour(TOUR, 4)
        assert tour.order == [0, 2, 3, 1]
        assert tour.cost == 1234
        assert tour.islands == [1, 2, 0]
        assert not tour.is_identity

    def test_nodes_on_one_line_and_eof_without_terminator(self):
        tour = parse_tour("TOUR_SECTION\n1 2 3\nEOF\n", 3)
        assert tour.order == [0, 1, 2]
        assert tour.is_identity
        assert tour.cost is None

    def test_dimension_mismatch(self):
        with pytest.raises(TourValidationError, match="DIMENSION"):
            parse_tour(TOUR, 5)

    @pytest.mark.parametrize(
        "section",
        [
            "1\n3\n4\n-1\n",  # too short
            "1\n3\n3\n2\n-1\n",  # duplicate
            "1\n3\n5\n2\n-1\n",  # out of range
            "1\n3\nfour\n2\n-1\n",  # not a number
            "2\n1\n3\n4\n-1\n",  # does not start at the start node
        ],
    )
    def test_invalid_tours(self, section):
        with pytest.raises(TourValidationError):
            parse_tour("TOUR_SECTION\n" + section, 4)

    def test_missing_section(self):
        with pytest.raises(TourValidationError, match="TOUR_SECTION"):
            parse_tour("NAME : x\nEOF\n", 4)

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(TourValidationError):
            read_tour(str(tmp_path / "layer_0.tour"), line_problem())

    def test_read_unreadable_path(self, tmp_path):
        # a directory where the tour file should be
        path = tmp_path / "layer_0.tour"
        path.mkdir()
        with pytest.raises(TourValidationError, match="unable to read"):
            read_tour(str(path), line_problem())

    def test_read_file(self, tmp_path):
        path = tmp_path / "layer_0.tour"
        path.write_text(TOUR)
        assert read_tour(str(path), line_problem()).order == [0, 2, 3, 1]


def test_validate_order():
    validate_order([0, 2, 1], 3)
    with pytest.raises(TourValidationError):
        validate_order([0, 1], 3)


class TestOrient:
    def test_keeps_cheaper_direction(self):
        problem = line_problem()
        tour = orient(Tour(order=[0, 2, 3, 1]), problem)
        assert tour.order == [0, 2, 3, 1]
        assert tour.cost == 30

    def test_reverses_when_cheaper(self):
        problem = line_problem()
        tour = orient(Tour(order=[0, 1, 3, 2]), problem)
        assert tour.order == [0, 2, 3, 1]
        assert tour.cost == 30
