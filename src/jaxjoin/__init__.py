"""jaxjoin: distributed shuffle hash joins for SPMD programs.

Two relations partitioned across a fixed group of ranks are joined on an
int32 key: both sides are hash-shuffled with the same routing function so
matching rows meet on one rank, then joined there with a hash build/probe.
"""

from jaxjoin.core import (
    RelationChunk,
    JoinConfig,
    ConfigurationError,
    TransportError,
    RoutingInvariantError,
)
from jaxjoin.distributed import (
    RankContext,
    LocalGroup,
    run_spmd,
    DistributedHashJoin,
    distributed_join,
    parallel_join,
    global_row_count
)

__version__ = "0.1.0"
__all__ = [
    # Core
    "RelationChunk",
    "JoinConfig",
    "ConfigurationError",
    "TransportError",
    "RoutingInvariantError",

    # Distributed
    "RankContext",
    "LocalGroup",
    "run_spmd",
    "DistributedHashJoin",
    "distributed_join",
    "parallel_join",
    "global_row_count"
]
