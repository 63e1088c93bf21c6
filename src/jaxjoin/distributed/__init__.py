"""Distributed shuffle hash join and the collectives it runs on.

The MPI transport lives in :mod:`jaxjoin.distributed.mpi` and is imported
on demand, so mpi4py is only required when running under MPI.
"""

from .context import RankContext

from .transport import Transport
from .local import LocalGroup, LocalTransport, run_spmd

from .routing import (
    RoutingLayout,
    calc_displacements,
    compute_send_layout,
    destination_ranks,
    hash_keys,
    route_keys
)

from .shuffle import HashShuffle, RoutedChunk, shuffle_by_key
from .local_join import HashIndex, local_hash_join
from .join import (
    DistributedHashJoin,
    JoinPhase,
    distributed_join,
    global_row_count,
    parallel_join
)

__all__ = [
    # Context and transport
    'RankContext',
    'Transport',
    'LocalGroup',
    'LocalTransport',
    'run_spmd',

    # Routing
    'RoutingLayout',
    'calc_displacements',
    'compute_send_layout',
    'destination_ranks',
    'hash_keys',
    'route_keys',

    # Shuffle
    'HashShuffle',
    'RoutedChunk',
    'shuffle_by_key',

    # Join
    'HashIndex',
    'local_hash_join',
    'DistributedHashJoin',
    'JoinPhase',
    'distributed_join',
    'global_row_count',
    'parallel_join'
]
