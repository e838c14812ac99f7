"""Collapse islands that start close together into one routing unit."""

import logging

from .segments import Island, Layer

logger = logging.getLogger(__name__)


def merge_islands(layer, max_merge_length):
    """Merge neighbouring islands whose entries are closer than `max_merge_length`.

    Islands are walked in input order. Each one joins the island before it
    when its entry is strictly closer than the threshold to that island's
    entry (the entry of the merged group, once merged). The connector
    between them moves inside the merged island unchanged.
    """
    if len(layer.islands) < 2:
        return layer

    islands = [layer.islands[0]]
    connectors = [layer.connectors[0]]
    for island, connector in zip(layer.islands[1:], layer.connectors[1:-1]):
        head = islands[-1]
        if head.entry.distance_to(island.entry) < max_merge_length:
            islands[-1] = Island(
                head.commands + tuple(connector) + island.commands,
                parts=head.parts + island.parts,
            )
        else:
            connectors.append(connector)
            islands.append(island)
    connectors.append(layer.connectors[-1])

    if len(islands) != len(layer.islands):
        logger.debug(
            "Layer %d: merged %d islands into %d", layer.index, len(layer.islands), len(islands)
        )
    return Layer(layer.index, islands, connectors, layer.start, layer.z)
