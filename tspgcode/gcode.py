"""
Parse G-code lines into Commands while tracking the machine state.

Each Command keeps its original text plus the Position before and after it,
so later stages never have to re-run the state machine to know where the
tool is.
"""

import logging
import math
import re
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional

from .dialects import MARLIN, Action
from .errors import InputError, ParseError

logger = logging.getLogger(__name__)

# Allow whitespace between axis name and coordinate, and no whitespace between words
_word_exp = re.compile(r"([A-Z])\s*([-+]?[0-9]*\.?[0-9]*)")
_command_exp = re.compile(r"^([GMT])\s*([0-9]+(?:\.[0-9]+)?)")
_line_number_exp = re.compile(r"^N[0-9]+\s*")
_paren_comment_exp = re.compile(r"\([^()]*\)")

AXES = ("X", "Y", "Z")
_COORDINATE_WORDS = ("X", "Y", "Z", "E", "F")


class CommandKind(str, Enum):
    EXTRUDE = "extrude"  # move with a positive extrusion delta
    TRAVEL = "travel"  # move without extrusion
    HOME = "home"
    STATE = "state"  # recognized, changes modes or nothing at all
    COMMENT = "comment"  # blank or comment-only line
    UNKNOWN = "unknown"  # passed through as-is


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    e: float = 0.0  # logical E coordinate, accumulated in relative mode
    f: float = 0.0  # modal feed rate, 0 when never set
    relative: bool = False  # G91
    relative_e: bool = False  # M83

    @property
    def e_is_relative(self):
        return self.relative or self.relative_e

    @property
    def xy(self):
        return (self.x, self.y)

    def distance_to(self, other):
        return math.sqrt((self.x - other.x) ** 2 + (self.y - other.y) ** 2)

    def distance_3d(self, other):
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )


@dataclass(frozen=True)
class Command:
    line: int  # 1-based line number, 0 for synthesized commands
    raw: str
    kind: CommandKind
    word: str = ""
    params: Dict[str, Optional[float]] = field(default_factory=dict, hash=False)
    action: Optional[Action] = None
    before: Position = field(default_factory=Position)
    after: Position = field(default_factory=Position)

    @property
    def extrusion(self):
        return self.after.e - self.before.e

    @property
    def is_extruding(self):
        return self.kind == CommandKind.EXTRUDE

    @property
    def is_travel(self):
        """A plain XY move: no extrusion, no retraction (wipes are not travels)."""
        return (
            self.kind == CommandKind.TRAVEL
            and "E" not in self.params
            and ("X" in self.params or "Y" in self.params)
        )

    @property
    def moves(self):
        return self.kind in (CommandKind.EXTRUDE, CommandKind.TRAVEL)

    def __str__(self):
        return self.raw


def strip_comment(text):
    text = text.split(";", 1)[0]
    return _paren_comment_exp.sub(" ", text).strip()


def split_words(text):
    """Split the code part of a line into (command word, params).

    Params map a letter to its value, or to None when the letter carries
    no readable number ("G28 X Y").
    """
    code = strip_comment(text).upper()
    code = _line_number_exp.sub("", code)
    code = code.split("*", 1)[0].strip()
    if not code:
        return "", {}

    m = _command_exp.match(code)
    if not m:
        # extended commands and macros: "SET_FAN_SPEED FAN=part SPEED=0.5"
        return code.split()[0], {}

    number = m.group(2)
    if "." in number:
        whole, frac = number.split(".", 1)
        number = "{}.{}".format(int(whole), frac)
    else:
        number = str(int(number))
    word = m.group(1) + number

    params = {}
    for letter, value in _word_exp.findall(code[m.end():]):
        try:
            params[letter] = float(value)
        except ValueError:
            params[letter] = None
    return word, params


def advance(position, action, params):
    """Return the Position after applying `action` with `params` at `position`."""
    if action in (Action.MOVE, Action.ARC):
        values = {}
        for axis in AXES:
            if axis in params:
                current = getattr(position, axis.lower())
                values[axis.lower()] = current + params[axis] if position.relative else params[axis]
        if "E" in params:
            values["e"] = position.e + params["E"] if position.e_is_relative else params["E"]
        if "F" in params:
            values["f"] = params["F"]
        return replace(position, **values)
    if action == Action.HOME:
        named = [axis for axis in AXES if axis in params]
        return replace(position, **{axis.lower(): 0.0 for axis in named or AXES})
    if action == Action.SET_POSITION:
        values = {a.lower(): params[a] for a in AXES + ("E",) if params.get(a) is not None}
        return replace(position, **values)
    if action == Action.ABSOLUTE:
        return replace(position, relative=False)
    if action == Action.RELATIVE:
        return replace(position, relative=True)
    if action == Action.ABSOLUTE_E:
        return replace(position, relative_e=False)
    if action == Action.RELATIVE_E:
        return replace(position, relative_e=True)
    return position


_KINDS = {
    Action.HOME: CommandKind.HOME,
    Action.ABSOLUTE: CommandKind.STATE,
    Action.RELATIVE: CommandKind.STATE,
    Action.ABSOLUTE_E: CommandKind.STATE,
    Action.RELATIVE_E: CommandKind.STATE,
    Action.SET_POSITION: CommandKind.STATE,
    Action.PASSIVE: CommandKind.STATE,
}


class UnsupportedLog:
    """Append-only sink for lines the parser does not recognize.

    Safe to share between threads. Entries are kept in memory only when
    there is no stream to write them to.
    """

    def __init__(self, stream=None):
        self._stream = stream
        self._lock = threading.Lock()
        self._entries = []
        self._count = 0

    def record(self, line_number, raw):
        with self._lock:
            self._count += 1
            if self._stream is None:
                self._entries.append((line_number, raw))
            else:
                self._stream.write("line {}: {}\n".format(line_number, raw))

    @property
    def entries(self):
        with self._lock:
            return list(self._entries)

    def __len__(self):
        with self._lock:
            return self._count


class Parser:
    """Stateful line classifier for one G-code stream."""

    def __init__(self, dialect=MARLIN, unsupported=None, position=None):
        self.dialect = dialect
        self.unsupported = unsupported if unsupported is not None else UnsupportedLog()
        self.position = position or Position()

    def classify(self, raw, line_number):
        """Build the Command for `raw` without touching the parser state.

        Raises ParseError for lines the dialect cannot handle.
        """
        word, params = split_words(raw)
        if not word:
            return Command(line_number, raw, CommandKind.COMMENT,
                           before=self.position, after=self.position)

        action = self.dialect.action(word)
        if action is None:
            raise ParseError(line_number, raw, "unsupported command {}".format(word))

        if action in (Action.MOVE, Action.ARC, Action.SET_POSITION):
            bad = [w for w in _COORDINATE_WORDS if w in params and params[w] is None]
            if bad:
                raise ParseError(line_number, raw, "unreadable value for {}".format(", ".join(bad)))

        after = advance(self.position, action, params)
        if action in (Action.MOVE, Action.ARC):
            kind = CommandKind.EXTRUDE if after.e - self.position.e > 0 else CommandKind.TRAVEL
        else:
            kind = _KINDS[action]
        return Command(line_number, raw, kind, word, params, action, self.position, after)

    def parse_line(self, raw, line_number=0):
        raw = raw.rstrip("\r\n")
        try:
            command = self.classify(raw, line_number)
        except ParseError as e:
            logger.debug("%s", e)
            self.unsupported.record(line_number, raw)
            return Command(line_number, raw, CommandKind.UNKNOWN,
                           before=self.position, after=self.position)
        self.position = command.after
        return command

    def parse(self, lines):
        return [self.parse_line(line, i) for i, line in enumerate(lines, 1)]


def read_lines(path):
    """Read a G-code file into a list of lines without line endings."""
    try:
        with open(path, "rb") as f:
            raw_bytes = f.read()
    except OSError as e:
        raise InputError("unable to read file {}: {}".format(path, e.strerror or e)) from e

    if not raw_bytes.strip():
        raise InputError("file {} is empty".format(path))

    try:
        content = raw_bytes.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("%s is not valid UTF-8, decoding as latin-1", path)
        content = raw_bytes.decode("latin-1")

    return content.replace("\r\n", "\n").replace("\r", "\n").split("\n")

