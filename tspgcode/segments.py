"""
Group parsed commands into layers and islands.

An island is a contiguous extruding path. It is closed by the first
non-extruding move (travel, retract, hop) or home that follows it.
Everything between islands stays in the layer as connector commands.
"""

import logging

from more_itertools import locate, pairwise

from .gcode import CommandKind

logger = logging.getLogger(__name__)

_BREAKERS = (CommandKind.TRAVEL, CommandKind.HOME)


class Island:
    def __init__(self, commands, parts=1):
        if not commands:
            raise ValueError("an island needs at least one command")
        self.commands = tuple(commands)
        self.parts = parts  # number of source islands merged into this one

    @property
    def entry(self):
        """Tool position when the island starts."""
        return self.commands[0].before

    @property
    def exit(self):
        return self.commands[-1].after

    @property
    def extruding(self):
        return [c for c in self.commands if c.is_extruding]

    def __len__(self):
        return len(self.commands)

    def __repr__(self):
        return "Island(lines {}-{}, entry=({:.3f}, {:.3f}), parts={})".format(
            self.commands[0].line, self.commands[-1].line, self.entry.x, self.entry.y, self.parts
        )


class Layer:
    """Islands of one Z height and the connector commands around them.

    ``connectors[i]`` precedes ``islands[i]``; the last connector trails
    the last island. There is always one more connector than islands.
    """

    def __init__(self, index, islands, connectors, start, z=None):
        if len(connectors) != len(islands) + 1:
            raise ValueError("expected {} connectors, got {}".format(len(islands) + 1, len(connectors)))
        self.index = index
        self.islands = list(islands)
        self.connectors = [list(c) for c in connectors]
        self.start = start  # tool position before the layer's first command
        self.z = start.z if z is None else z

    @property
    def commands(self):
        """All commands in their original order."""
        out = list(self.connectors[0])
        for island, connector in zip(self.islands, self.connectors[1:]):
            out.extend(island.commands)
            out.extend(connector)
        return out

    @property
    def end(self):
        commands = self.commands
        return commands[-1].after if commands else self.start

    @property
    def source_islands(self):
        return sum(island.parts for island in self.islands)

    def __repr__(self):
        return "Layer({}, z={}, islands={})".format(self.index, self.z, len(self.islands))


def segment_layer(commands, index=0, start=None):
    """Partition one layer's commands into islands and connectors."""
    islands = []
    connectors = [[]]
    run = []
    pending = []  # non-move commands after the last extrusion of `run`

    for command in commands:
        if command.is_extruding:
            run.extend(pending)
            pending = []
            run.append(command)
        elif not run:
            connectors[-1].append(command)
        elif command.kind in _BREAKERS:
            islands.append(Island(run))
            connectors.append(pending + [command])
            run = []
            pending = []
        else:
            pending.append(command)

    if run:
        islands.append(Island(run))
        connectors.append(pending)

    if start is None:
        start = commands[0].before if commands else None
    z = islands[0].commands[0].after.z if islands else None
    return Layer(index, islands, connectors, start, z)


def layer_boundaries(commands):
    """Indices where a new layer begins.

    A layer begins right after the last extrusion of the previous Z height,
    so retracts, Z changes and travels between heights lead the new layer.
    """
    extruding = list(locate(commands, lambda c: c.is_extruding))
    return [
        a + 1
        for a, b in pairwise(extruding)
        if commands[b].after.z != commands[a].after.z
    ]


def split_layers(commands):
    """Split a parsed command stream into Layers."""
    if not commands:
        return []
    bounds = [0] + layer_boundaries(commands) + [len(commands)]
    layers = [
        segment_layer(commands[lo:hi], index)
        for index, (lo, hi) in enumerate(pairwise(bounds))
    ]
    logger.debug("Split %d commands into %d layers", len(commands), len(layers))
    return layers
