"""
Hash shuffle: redistribute a relation's rows to the rank owning their key.

A shuffle is one local routing step followed by one collective round:
a single count exchange for the relation, then one variable-length
all-to-all per column, all reusing the same layout so that each payload
value lands at the same receive position as its key.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .context import RankContext
from .routing import RoutingLayout, route_keys
from .transport import Transport
from ..core.chunk import RelationChunk
from ..core.config import JoinConfig, resolve_partitioner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutedChunk:
    """A chunk packed by destination rank, with the send layout describing it."""

    chunk: RelationChunk
    layout: RoutingLayout


class HashShuffle:
    """
    Shuffle relation chunks across a participant group by join key.

    Parameters
    ----------
    context : RankContext
        Caller's rank and the group size
    transport : Transport
        Collective transport for the group
    partitioner : str, optional
        Row-to-rank function; use the same one for every relation that will
        be joined. Defaults to ``JoinConfig.partitioner``.
    """

    def __init__(
        self,
        context: RankContext,
        transport: Transport,
        partitioner: Optional[str] = None
    ):
        context.validate_against(transport)
        self.context = context
        self.transport = transport
        self.partitioner = resolve_partitioner(partitioner)

    def route(self, chunk: RelationChunk) -> RoutedChunk:
        """
        Local step: compute destinations and pack rows by destination rank.

        The permutation is applied through :meth:`RelationChunk.take`, so the
        key column and every payload column are reordered identically.
        """
        layout, permutation = route_keys(
            chunk.key, self.context.participant_count, self.partitioner
        )
        return RoutedChunk(chunk.take(permutation), layout)

    def exchange(self, routed: RoutedChunk) -> RelationChunk:
        """
        Collective step: send every packed block to its destination rank.

        Runs even when the local chunk is empty; all ranks must take part in
        every exchange round.

        Returns
        -------
        RelationChunk
            Rows routed to this rank by all participants, grouped by sender
            rank in ascending order
        """
        chunk = routed.chunk
        layout = self.transport.exchange_counts(
            routed.layout.send_counts, routed.layout.send_displacements
        )
        if JoinConfig.debug:
            logger.debug(
                "rank %d: sending %s, receiving %s",
                self.context.rank,
                layout.send_counts.tolist(),
                layout.recv_counts.tolist(),
            )

        keys = self.transport.exchange_with_layout(chunk.key, layout)
        payloads = {
            name: self.transport.exchange_with_layout(column, layout)
            for name, column in chunk.payloads.items()
        }
        return RelationChunk(keys, payloads, key_name=chunk.key_name)

    def shuffle(self, chunk: RelationChunk) -> RelationChunk:
        """Route and exchange `chunk` in one call."""
        return self.exchange(self.route(chunk))


def shuffle_by_key(
    chunk: RelationChunk,
    transport: Transport,
    context: Optional[RankContext] = None,
    partitioner: Optional[str] = None
) -> RelationChunk:
    """
    Redistribute `chunk` so every row lives on the rank its key routes to.

    Parameters
    ----------
    chunk : RelationChunk
        This rank's rows
    transport : Transport
        Collective transport
    context : RankContext, optional
        Defaults to the transport's rank and size
    partitioner : str, optional
        Row-to-rank function

    Returns
    -------
    RelationChunk
        This rank's rows after the shuffle
    """
    if context is None:
        context = RankContext.from_transport(transport)
    return HashShuffle(context, transport, partitioner).shuffle(chunk)
