"""
Distributed inner equi-join driver.

Every participant runs the same sequence: shuffle the build relation by
key, shuffle the probe relation with the same routing function, then join
the co-located chunks locally. Nothing is communicated after the local
join; each rank's output is final, partitioned by the routing function of
the output key.
"""

import enum
import logging
from typing import List, Optional, Tuple

import numpy as np

from .context import RankContext
from .local_join import local_hash_join
from .shuffle import HashShuffle
from .transport import Transport
from ..core.chunk import RelationChunk, make_build_chunk, make_probe_chunk
from ..core.config import JoinConfig, resolve_partitioner
from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class JoinPhase(enum.Enum):
    IDLE = "idle"
    ROUTING_BUILD = "routing_build"
    SHUFFLING_BUILD = "shuffling_build"
    ROUTING_PROBE = "routing_probe"
    SHUFFLING_PROBE = "shuffling_probe"
    JOINING = "joining"
    DONE = "done"


class DistributedHashJoin:
    """
    Shuffle hash join over a fixed participant group.

    One instance runs one join; the phase sequence is linear with no
    retries. A failure inside a collective propagates out of :meth:`join`
    on every rank.

    Parameters
    ----------
    transport : Transport
        Collective transport for the group
    context : RankContext, optional
        Caller's rank and group size; read from the transport if omitted
    partitioner : str, optional
        Row-to-rank function, fixed for both relations of this join.
        Defaults to ``JoinConfig.partitioner`` at construction time.
    """

    def __init__(
        self,
        transport: Transport,
        context: Optional[RankContext] = None,
        partitioner: Optional[str] = None
    ):
        if context is None:
            context = RankContext.from_transport(transport)
        self.context = context
        self.transport = transport
        self.partitioner = resolve_partitioner(partitioner)
        self._shuffle = HashShuffle(context, transport, self.partitioner)
        self.phase = JoinPhase.IDLE
        self.history: List[JoinPhase] = [JoinPhase.IDLE]

    def _enter(self, phase: JoinPhase) -> None:
        if JoinConfig.debug:
            logger.debug("rank %d: %s -> %s", self.context.rank, self.phase.value, phase.value)
        self.phase = phase
        self.history.append(phase)

    def join(self, build: RelationChunk, probe: RelationChunk) -> RelationChunk:
        """
        Join this rank's chunks of the build and probe relations.

        Parameters
        ----------
        build : RelationChunk
            Local chunk of the build relation
        probe : RelationChunk
            Local chunk of the probe relation

        Returns
        -------
        RelationChunk
            This rank's share of the join output: key plus the probe payloads
        """
        if self.phase is not JoinPhase.IDLE:
            raise ConfigurationError(
                f"A DistributedHashJoin runs once; this one is in phase '{self.phase.value}'"
            )

        self._enter(JoinPhase.ROUTING_BUILD)
        routed_build = self._shuffle.route(build)
        self._enter(JoinPhase.SHUFFLING_BUILD)
        local_build = self._shuffle.exchange(routed_build)

        self._enter(JoinPhase.ROUTING_PROBE)
        routed_probe = self._shuffle.route(probe)
        self._enter(JoinPhase.SHUFFLING_PROBE)
        local_probe = self._shuffle.exchange(routed_probe)

        self._enter(JoinPhase.JOINING)
        result = local_hash_join(local_build, local_probe)

        self._enter(JoinPhase.DONE)
        return result


def distributed_join(
    build: RelationChunk,
    probe: RelationChunk,
    transport: Transport,
    context: Optional[RankContext] = None,
    partitioner: Optional[str] = None
) -> RelationChunk:
    """Run one :class:`DistributedHashJoin` over already-built chunks."""
    return DistributedHashJoin(transport, context, partitioner).join(build, probe)


def parallel_join(
    keys1,
    keys2,
    data0,
    data1,
    transport: Transport,
    context: Optional[RankContext] = None,
    partitioner: Optional[str] = None
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Distributed join of a key-only table with a (key, data0, data1) table.

    All inputs are this rank's chunks. Local consistency is checked before
    any collective is entered.

    Parameters
    ----------
    keys1 : array-like of int
        Join key column of the first table
    keys2 : array-like of int
        Join key column of the second table
    data0 : array-like of float
        First data column of the second table
    data1 : array-like of int
        Second data column of the second table
    transport : Transport
        Collective transport for the group
    context : RankContext, optional
        Defaults to the transport's rank and size
    partitioner : str, optional
        Row-to-rank function

    Returns
    -------
    Tuple[np.ndarray, np.ndarray, np.ndarray]
        This rank's output keys (int32), data0 (float64) and data1 (int32)
    """
    build = make_build_chunk(keys1)
    probe = make_probe_chunk(keys2, data0, data1)
    result = distributed_join(build, probe, transport, context, partitioner)
    return result.key, result.payloads['data0'], result.payloads['data1']


def global_row_count(chunk: RelationChunk, transport: Transport) -> int:
    """Total rows of a distributed relation; a collective over the whole group."""
    return int(transport.allreduce_sum(np.int64(chunk.num_rows)))
