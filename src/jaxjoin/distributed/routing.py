"""
Key routing for hash shuffles.

Every row is assigned a destination rank by a deterministic function of its
join key. Both relations of a join must be routed with the same function,
otherwise matching rows never meet on the same rank. The router also builds
the send-side count/displacement layout that a variable-length all-to-all
needs, and the permutation that groups rows by destination.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import jax
import jax.numpy as jnp
from jax import Array
import numpy as np

from ..core.config import JoinConfig, resolve_partitioner
from ..core.errors import RoutingInvariantError

logger = logging.getLogger(__name__)

COUNT_DTYPE = np.int32


def _fmix32(key: Array) -> Array:
    """murmur3 32-bit finalizer over the key's bit pattern."""
    key_int = jax.lax.bitcast_convert_type(key.astype(jnp.int32), jnp.uint32)
    key_int = key_int ^ (key_int >> 16)
    key_int = key_int * jnp.uint32(0x85ebca6b)
    key_int = key_int ^ (key_int >> 13)
    key_int = key_int * jnp.uint32(0xc2b2ae35)
    key_int = key_int ^ (key_int >> 16)
    return key_int


def _hash_destinations(keys: Array, participant_count: int) -> Array:
    return (_fmix32(keys) % jnp.uint32(participant_count)).astype(jnp.int32)


def _modulo_destinations(keys: Array, participant_count: int) -> Array:
    # jnp.mod follows the divisor's sign, so negative keys still land in [0, P)
    return jnp.mod(keys.astype(jnp.int32), participant_count).astype(jnp.int32)


def _stable_order(destinations: Array) -> Array:
    return jnp.argsort(destinations, stable=True)


_KERNELS = {
    "hash": _hash_destinations,
    "modulo": _modulo_destinations,
}

_JITTED_KERNELS = {
    name: jax.jit(fn, static_argnames=("participant_count",))
    for name, fn in _KERNELS.items()
}
_jitted_stable_order = jax.jit(_stable_order)
_jitted_fmix32 = jax.jit(_fmix32)


def hash_keys(keys) -> np.ndarray:
    """
    Mix int32 keys into well-distributed uint32 hashes.

    The mapping is a fixed bit mixer, so every process computes the same
    hash for the same key.

    Parameters
    ----------
    keys : array-like of int
        Join keys

    Returns
    -------
    np.ndarray
        uint32 hash per key
    """
    keys = jnp.asarray(np.asarray(keys, dtype=np.int32))
    if JoinConfig.jit_enabled:
        return np.asarray(_jitted_fmix32(keys))
    return np.asarray(_fmix32(keys))


def destination_ranks(
    keys,
    participant_count: int,
    partitioner: Optional[str] = None
) -> np.ndarray:
    """
    Compute the destination rank of every key.

    Parameters
    ----------
    keys : array-like of int
        Local join keys
    participant_count : int
        Number of ranks in the group
    partitioner : str, optional
        ``"hash"`` (murmur mix, then modulo) or ``"modulo"`` (key modulo P).
        Defaults to ``JoinConfig.partitioner``.

    Returns
    -------
    np.ndarray
        int32 destination rank per key, each in ``[0, participant_count)``

    Raises
    ------
    RoutingInvariantError
        If a computed destination falls outside the group
    """
    name = resolve_partitioner(partitioner)
    keys_np = np.asarray(keys, dtype=np.int32)
    if keys_np.size == 0:
        return np.empty(0, dtype=np.int32)

    kernels = _JITTED_KERNELS if JoinConfig.jit_enabled else _KERNELS
    destinations = np.asarray(
        kernels[name](jnp.asarray(keys_np), participant_count=participant_count)
    )

    if destinations.min() < 0 or destinations.max() >= participant_count:
        raise RoutingInvariantError(
            f"Partitioner '{name}' produced destinations in "
            f"[{destinations.min()}, {destinations.max()}] for {participant_count} ranks"
        )
    return destinations


def calc_displacements(counts) -> np.ndarray:
    """Exclusive prefix sum: where each rank's block starts in a packed buffer."""
    counts = np.asarray(counts, dtype=np.int64)
    displacements = np.zeros(len(counts), dtype=np.int64)
    if len(counts) > 1:
        np.cumsum(counts[:-1], out=displacements[1:])
    return displacements.astype(COUNT_DTYPE)


@dataclass(frozen=True)
class RoutingLayout:
    """
    Count/offset arrays for one variable-length all-to-all.

    ``send_counts[r]`` rows go to rank ``r`` starting at
    ``send_displacements[r]`` in the send buffer; the receive side mirrors
    that once the counts have been exchanged.
    """

    send_counts: np.ndarray
    send_displacements: np.ndarray
    recv_counts: Optional[np.ndarray] = None
    recv_displacements: Optional[np.ndarray] = None

    @property
    def participant_count(self) -> int:
        return len(self.send_counts)

    @property
    def total_send(self) -> int:
        return int(self.send_counts.sum())

    @property
    def total_recv(self) -> int:
        if self.recv_counts is None:
            raise RoutingInvariantError("Receive counts have not been exchanged yet")
        return int(self.recv_counts.sum())

    @property
    def has_receive_side(self) -> bool:
        return self.recv_counts is not None

    def with_receive_side(self, recv_counts) -> 'RoutingLayout':
        """Attach exchanged receive counts and derive their displacements."""
        recv_counts = np.asarray(recv_counts, dtype=COUNT_DTYPE)
        if len(recv_counts) != self.participant_count:
            raise RoutingInvariantError(
                f"Expected {self.participant_count} receive counts, got {len(recv_counts)}"
            )
        if (recv_counts < 0).any():
            raise RoutingInvariantError(f"Negative receive count in {recv_counts.tolist()}")
        return RoutingLayout(
            send_counts=self.send_counts,
            send_displacements=self.send_displacements,
            recv_counts=recv_counts,
            recv_displacements=calc_displacements(recv_counts),
        )

    def validate_send(self, buffer_length: int, participant_count: int) -> None:
        """
        Check the send side against the buffer it describes.

        Raises
        ------
        RoutingInvariantError
            If the layout does not cover exactly ``buffer_length`` rows for
            ``participant_count`` ranks
        """
        if self.participant_count != participant_count:
            raise RoutingInvariantError(
                f"Layout has {self.participant_count} entries for {participant_count} ranks"
            )
        if self.total_send != buffer_length:
            raise RoutingInvariantError(
                f"Send counts sum to {self.total_send} but the buffer holds {buffer_length} rows"
            )
        if not np.array_equal(self.send_displacements, calc_displacements(self.send_counts)):
            raise RoutingInvariantError("Send displacements are not the prefix sum of send counts")


def compute_send_layout(destinations, participant_count: int) -> RoutingLayout:
    """
    Tally destinations into send counts and their displacements.

    Parameters
    ----------
    destinations : array-like of int
        Destination rank per local row
    participant_count : int
        Number of ranks in the group

    Returns
    -------
    RoutingLayout
        Send side only; receive side is filled in by the count exchange
    """
    destinations = np.asarray(destinations, dtype=np.int64)
    send_counts = np.bincount(destinations, minlength=participant_count)
    if len(send_counts) != participant_count:
        raise RoutingInvariantError(
            f"Destination {int(destinations.max())} is outside {participant_count} ranks"
        )
    send_counts = send_counts.astype(COUNT_DTYPE)
    layout = RoutingLayout(send_counts, calc_displacements(send_counts))
    if layout.total_send != len(destinations):
        raise RoutingInvariantError(
            f"Send counts sum to {layout.total_send} for {len(destinations)} rows"
        )
    return layout


def route_keys(
    keys,
    participant_count: int,
    partitioner: Optional[str] = None
) -> Tuple[RoutingLayout, np.ndarray]:
    """
    Route local keys: destinations, send layout and grouping permutation.

    Applying the returned permutation to the key column (and identically to
    every payload column) packs rows bound for rank ``r`` into
    ``[send_displacements[r], send_displacements[r] + send_counts[r])``.
    The sort is stable, so rows keep their relative order within a bucket.

    Returns
    -------
    Tuple[RoutingLayout, np.ndarray]
        Send layout and an intp permutation of ``range(len(keys))``
    """
    destinations = destination_ranks(keys, participant_count, partitioner)
    layout = compute_send_layout(destinations, participant_count)

    if destinations.size == 0:
        permutation = np.empty(0, dtype=np.intp)
    elif JoinConfig.jit_enabled:
        permutation = np.asarray(_jitted_stable_order(jnp.asarray(destinations)), dtype=np.intp)
    else:
        permutation = np.asarray(_stable_order(jnp.asarray(destinations)), dtype=np.intp)

    logger.debug("routed %d rows, send counts %s", len(destinations), layout.send_counts.tolist())
    return layout, permutation
