"""Core data structures for jaxjoin."""

from .chunk import RelationChunk, make_build_chunk, make_probe_chunk
from .config import JoinConfig, enable_jit, set_debug, set_partitioner
from .errors import ConfigurationError, JoinError, RoutingInvariantError, TransportError
from .partition import get_end, get_node_portion, get_start, local_chunk, partition_slice

__all__ = [
    "RelationChunk",
    "make_build_chunk",
    "make_probe_chunk",
    "JoinConfig",
    "enable_jit",
    "set_debug",
    "set_partitioner",
    "JoinError",
    "ConfigurationError",
    "TransportError",
    "RoutingInvariantError",
    "get_start",
    "get_end",
    "get_node_portion",
    "partition_slice",
    "local_chunk",
]
