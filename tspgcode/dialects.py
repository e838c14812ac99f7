"""
Command tables for the G-code dialects we understand.

A dialect maps a normalized command word ("G1", "M104", "SET_FAN_SPEED")
to the action the parser takes for it. Anything not in the table is
passed through untouched and reported as unsupported.
"""

from dataclasses import dataclass, field
from enum import Enum


class Action(str, Enum):
    MOVE = "move"  # linear move, may extrude
    ARC = "arc"  # G2/G3, end point handled like a linear move
    HOME = "home"
    ABSOLUTE = "absolute"  # G90
    RELATIVE = "relative"  # G91
    ABSOLUTE_E = "absolute_e"  # M82
    RELATIVE_E = "relative_e"  # M83
    SET_POSITION = "set_position"  # G92
    PASSIVE = "passive"  # recognized, no effect on position


@dataclass(frozen=True)
class Dialect:
    name: str
    table: dict = field(default_factory=dict)

    def action(self, word):
        return self.table.get(word)

    def extend(self, name, extra):
        table = dict(self.table)
        table.update(extra)
        return Dialect(name=name, table=table)


def _passive(*words):
    return {word: Action.PASSIVE for word in words}


MARLIN = Dialect(
    name="marlin",
    table={
        "G0": Action.MOVE,
        "G1": Action.MOVE,
        "G2": Action.ARC,
        "G3": Action.ARC,
        "G28": Action.HOME,
        "G90": Action.ABSOLUTE,
        "G91": Action.RELATIVE,
        "M82": Action.ABSOLUTE_E,
        "M83": Action.RELATIVE_E,
        "G92": Action.SET_POSITION,
        **_passive(
            "G4", "G10", "G11", "G20", "G21", "G29", "G80",
            "M17", "M18", "M84",
            "M104", "M105", "M106", "M107", "M109", "M117", "M140", "M190",
            "M201", "M203", "M204", "M205", "M206", "M207", "M208", "M209",
            "M220", "M221", "M302", "M400", "M420", "M500", "M501",
            "M900", "T0", "T1", "T2", "T3",
        ),
    },
)

PRUSA = MARLIN.extend(
    "prusa",
    _passive(
        "M73", "M74", "M115", "M142", "M486", "M555", "M569", "M572", "M593",
        "M862.1", "M862.2", "M862.3", "M862.4", "M862.5", "M862.6",
        "M217", "M601", "M602",
    ),
)

KLIPPER = MARLIN.extend(
    "klipper",
    _passive(
        "PRINT_START", "PRINT_END", "START_PRINT", "END_PRINT",
        "EXCLUDE_OBJECT_DEFINE", "EXCLUDE_OBJECT_START", "EXCLUDE_OBJECT_END",
        "SET_PRESSURE_ADVANCE", "SET_VELOCITY_LIMIT", "SET_FAN_SPEED",
        "SET_RETRACTION", "BED_MESH_CALIBRATE", "BED_MESH_PROFILE",
        "SET_PRINT_STATS_INFO", "TIMELAPSE_TAKE_FRAME", "M73",
    ),
)

DIALECTS = {d.name: d for d in (MARLIN, PRUSA, KLIPPER)}


def get_dialect(name):
    try:
        return DIALECTS[name]
    except KeyError:
        raise KeyError("unknown dialect {!r}, expected one of {}".format(name, sorted(DIALECTS)))
