"""Contiguous block partitioning of a global array across ranks."""

from typing import Sequence, Union

import numpy as np

from .errors import ConfigurationError


def _validate(total: int, num_pes: int, node_id: int) -> None:
    if num_pes < 1:
        raise ConfigurationError(f"Participant count must be positive, got {num_pes}")
    if not 0 <= node_id < num_pes:
        raise ConfigurationError(
            f"Rank {node_id} is outside the participant range [0, {num_pes})"
        )
    if total < 0:
        raise ConfigurationError(f"Array length must be non-negative, got {total}")


def _chunk_size(total: int, num_pes: int) -> int:
    # ceil(total / num_pes) without going through floats
    return -(-total // num_pes)


def get_start(total: int, num_pes: int, node_id: int) -> int:
    """
    Get the start index for this rank in an array with `total` elements.

    Parameters
    ----------
    total : int
        Length of the global array
    num_pes : int
        Number of participating ranks
    node_id : int
        This process' rank

    Returns
    -------
    int
        First global index owned by `node_id`
    """
    _validate(total, num_pes, node_id)
    return min(total, node_id * _chunk_size(total, num_pes))


def get_end(total: int, num_pes: int, node_id: int) -> int:
    """
    Get the end index (exclusive) for this rank in an array with `total` elements.

    The last non-empty rank absorbs the remainder; ranks past it get an
    empty range when `total` is smaller than `num_pes`.
    """
    _validate(total, num_pes, node_id)
    return min(total, (node_id + 1) * _chunk_size(total, num_pes))


def get_node_portion(total: int, num_pes: int, node_id: int) -> int:
    """Number of rows owned by `node_id`."""
    return get_end(total, num_pes, node_id) - get_start(total, num_pes, node_id)


def partition_slice(total: int, num_pes: int, node_id: int) -> slice:
    """Return ``slice(start, end)`` for this rank's block."""
    return slice(get_start(total, num_pes, node_id), get_end(total, num_pes, node_id))


def local_chunk(
    array: Union[np.ndarray, Sequence],
    context,
    dtype=None
) -> np.ndarray:
    """
    Slice the block of a global array owned by ``context.rank``.

    Parameters
    ----------
    array : array-like
        The full global array (identical on every rank)
    context : RankContext
        Rank and participant count of the caller
    dtype : optional
        Dtype to coerce the result to

    Returns
    -------
    np.ndarray
        A copy of this rank's contiguous block
    """
    arr = np.asarray(array, dtype=dtype)
    block = partition_slice(len(arr), context.participant_count, context.rank)
    return arr[block].copy()
