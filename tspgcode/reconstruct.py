"""
Emit a layer's commands with its islands in a new order.

Island commands are copied verbatim. Connector commands keep their slot:
the i-th connector is still emitted before the i-th island printed. Travel
moves in a connector are replaced by one travel to the island now printed
there, and the machine state the island was sliced for (modes, absolute E,
feed rate) is restored before its first command.
"""

import logging
import math
from dataclasses import replace

from more_itertools import rlocate

from .dialects import Action
from .gcode import advance

logger = logging.getLogger(__name__)

TRAVEL_WORD = "G0"
DIGITS = 5
EPSILON = 1e-5  # below this, emitted coordinates are considered equal


def format_number(value, digits=DIGITS):
    text = "{:.{}f}".format(value, digits).rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def close(a, b):
    return math.isclose(a, b, rel_tol=0.0, abs_tol=EPSILON)


def _replay(state, commands):
    for command in commands:
        if command.action is not None:
            state = advance(state, command.action, command.params)
    return state


class Emitter:
    """Collects output lines while tracking the machine state they produce."""

    def __init__(self, state):
        self.state = state
        self.lines = []
        self.synthesized = 0

    def copy(self, command):
        self.lines.append(command.raw)
        if command.action is not None:
            self.state = advance(self.state, command.action, command.params)

    def emit(self, word, action, params=None):
        # track exactly what is printed
        params = {k: float(format_number(v)) for k, v in (params or {}).items()}
        parts = [word] + ["{}{}".format(k, format_number(v)) for k, v in params.items()]
        self.lines.append(" ".join(parts))
        self.state = advance(self.state, action, params)
        self.synthesized += 1

    def travel(self, x, y, z=None, f=None):
        """Non-extruding move to absolute (x, y[, z]), honouring relative mode."""
        state = self.state
        params = {}
        for axis, target, current in (("X", x, state.x), ("Y", y, state.y), ("Z", z, state.z)):
            if target is None or close(target, current):
                continue
            params[axis] = target - current if state.relative else target
        if f is not None and f > 0 and not close(f, state.f):
            params["F"] = f
        if any(axis in params for axis in ("X", "Y", "Z")):
            self.emit(TRAVEL_WORD, Action.MOVE, params)

    def align(self, target, position=False):
        """Restore modes, E coordinate, feed rate (and optionally position) of `target`."""
        if self.state.relative != target.relative:
            self.emit("G91" if target.relative else "G90",
                      Action.RELATIVE if target.relative else Action.ABSOLUTE)
        if self.state.relative_e != target.relative_e:
            self.emit("M83" if target.relative_e else "M82",
                      Action.RELATIVE_E if target.relative_e else Action.ABSOLUTE_E)
        if position:
            self.travel(target.x, target.y, target.z)
        self.align_e(target)
        if target.f > 0 and not close(self.state.f, target.f):
            self.emit("G1", Action.MOVE, {"F": target.f})

    def align_e(self, target):
        """Re-base an absolute E axis so the next E word extrudes what it was sliced for."""
        if not target.e_is_relative and not close(self.state.e, target.e):
            self.emit("G92", Action.SET_POSITION, {"E": target.e})

    def _travel_z(self, target, remaining):
        """Z for the synthesized travel so that `remaining` ends at target.z, or None."""
        moved = replace(self.state, x=target.x, y=target.y)
        ends_at = _replay(moved, remaining).z
        if close(ends_at, target.z):
            return None
        candidate = moved.z + (target.z - ends_at)
        if close(_replay(replace(moved, z=candidate), remaining).z, target.z):
            return candidate
        return None

    def at(self, target):
        state = self.state
        return close(state.x, target.x) and close(state.y, target.y) and close(state.z, target.z)

    def connector(self, commands, target):
        """Copy a connector, replacing its travels by one travel to `target`."""
        last = next(rlocate(commands, lambda c: c.is_travel), None)
        for i, command in enumerate(commands):
            if not command.is_travel:
                if command.moves and "E" in command.params:
                    self.align_e(command.before)
                self.copy(command)
            elif i == last:
                remaining = [c for c in commands[i + 1:] if not c.is_travel]
                self.travel(target.x, target.y, self._travel_z(target, remaining), command.after.f)
        if last is None:
            self.travel(target.x, target.y, f=target.f)
        if not self.at(target):
            self.travel(target.x, target.y, target.z)
        self.align(target)

    def island(self, island):
        for command in island.commands:
            self.copy(command)


def reconstruct_layer(layer, order=None, state=None):
    """Return (lines, end state) for `layer` printed in island `order`.

    Without an order, or with the original order, the layer is copied
    verbatim. When `state` is not where the layer originally started (the
    previous layer was reordered), the leading connector is rebuilt so the
    first island is still entered where it was sliced.
    """
    emitter = Emitter(layer.start if state is None else state)
    if order is None or list(order) == list(range(len(layer.islands))):
        commands = layer.commands
        if not emitter.at(layer.start):
            if layer.islands:
                emitter.connector(layer.connectors[0], layer.islands[0].entry)
                commands = commands[len(layer.connectors[0]):]
            else:
                emitter.travel(layer.start.x, layer.start.y, layer.start.z)
                emitter.align(layer.start)
        for command in commands:
            emitter.copy(command)
        return emitter.lines, emitter.state

    if sorted(order) != list(range(len(layer.islands))):
        raise ValueError("order {} is not a permutation of {} islands".format(order, len(layer.islands)))

    for slot, index in enumerate(order):
        island = layer.islands[index]
        emitter.connector(layer.connectors[slot], island.entry)
        emitter.island(island)

    end = layer.islands[-1].exit
    emitter.align(end, position=end.relative)
    for command in layer.connectors[-1]:
        emitter.copy(command)

    logger.debug("Layer %d: %d synthesized commands", layer.index, emitter.synthesized)
    return emitter.lines, emitter.state
