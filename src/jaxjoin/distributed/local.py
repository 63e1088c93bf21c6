"""
In-process SPMD group: one thread per rank, collectives over shared slots.

Used to run the join with several participants inside a single Python
process (tests, notebooks, the local example) with the same collective
semantics as the MPI transport: every call blocks until all ranks have
contributed.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional

import numpy as np

from .routing import COUNT_DTYPE, RoutingLayout
from .transport import Scalar, Transport, sum_like
from ..core.errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)


class LocalGroup:
    """
    Shared state for `participant_count` thread-ranks.

    Each collective is two barrier phases: ranks publish their contribution,
    wait, read what they need from every slot, then wait again so no rank
    overwrites a slot that a slower rank is still reading.

    Parameters
    ----------
    participant_count : int
        Number of ranks
    timeout : float, optional
        Barrier timeout in seconds; ``None`` waits forever like MPI does
    """

    def __init__(self, participant_count: int, timeout: Optional[float] = None):
        if participant_count < 1:
            raise ConfigurationError(
                f"Participant count must be positive, got {participant_count}"
            )
        self.participant_count = participant_count
        self._barrier = threading.Barrier(participant_count, timeout=timeout)
        self._slots: List[Any] = [None] * participant_count

    def transport(self, rank: int) -> 'LocalTransport':
        return LocalTransport(self, rank)

    def abort(self) -> None:
        """Break the barrier so every blocked or future collective raises TransportError."""
        self._barrier.abort()

    def _wait(self) -> None:
        try:
            self._barrier.wait()
        except threading.BrokenBarrierError as exc:
            raise TransportError("Local collective aborted: a participant failed") from exc

    def _collective(self, rank: int, contribution, combine: Callable[[List[Any]], Any]):
        self._slots[rank] = contribution
        self._wait()
        try:
            result = combine(self._slots)
        finally:
            self._wait()
        return result


class LocalTransport(Transport):
    """Transport for one thread-rank of a :class:`LocalGroup`."""

    def __init__(self, group: LocalGroup, rank: int):
        if not 0 <= rank < group.participant_count:
            raise ConfigurationError(
                f"Rank {rank} is outside the participant range [0, {group.participant_count})"
            )
        self._group = group
        self._rank = rank

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def size(self) -> int:
        return self._group.participant_count

    def allreduce_sum(self, value: Scalar) -> Scalar:
        return self._group._collective(self._rank, value, lambda slots: sum_like(slots, value))

    def alltoall_counts(self, send_counts: np.ndarray) -> np.ndarray:
        send_counts = np.array(send_counts, dtype=COUNT_DTYPE)
        if len(send_counts) != self.size:
            raise TransportError(f"Expected {self.size} counts, got {len(send_counts)}")

        def combine(slots):
            return np.array([slots[src][self._rank] for src in range(self.size)], dtype=COUNT_DTYPE)

        return self._group._collective(self._rank, send_counts, combine)

    def alltoallv(self, send_buffer: np.ndarray, layout: RoutingLayout) -> np.ndarray:
        contribution = (send_buffer, layout.send_counts, layout.send_displacements)
        me = self._rank

        def combine(slots):
            pieces = []
            for src, (buf, counts, displs) in enumerate(slots):
                if buf.dtype != send_buffer.dtype:
                    raise TransportError(
                        f"Rank {src} sent {buf.dtype} but rank {me} expects {send_buffer.dtype}"
                    )
                if counts[me] != layout.recv_counts[src]:
                    raise TransportError(
                        f"Rank {src} sends {counts[me]} elements to rank {me}, "
                        f"which expects {layout.recv_counts[src]}"
                    )
                pieces.append(buf[displs[me]:displs[me] + counts[me]])
            if not pieces:
                return np.empty(0, dtype=send_buffer.dtype)
            return np.concatenate(pieces)

        return self._group._collective(me, contribution, combine)

    def barrier(self) -> None:
        self._group._wait()


def run_spmd(
    fn: Callable[[Transport], Any],
    participant_count: int,
    timeout: Optional[float] = None
) -> List[Any]:
    """
    Run `fn` once per rank on its own thread and return results in rank order.

    If any rank raises, the group is aborted so the others fail fast with
    TransportError, and the first non-transport exception (by rank) is
    re-raised; if every failure is a transport failure, the first one is.

    Parameters
    ----------
    fn : Callable[[Transport], Any]
        SPMD body; receives this rank's transport
    participant_count : int
        Number of ranks to simulate
    timeout : float, optional
        Barrier timeout in seconds

    Returns
    -------
    List[Any]
        ``fn``'s return value for ranks ``0 .. participant_count - 1``
    """
    group = LocalGroup(participant_count, timeout=timeout)

    def body(rank: int):
        try:
            return fn(group.transport(rank))
        except BaseException:
            group.abort()
            raise

    with ThreadPoolExecutor(max_workers=participant_count, thread_name_prefix="rank") as pool:
        futures = [pool.submit(body, rank) for rank in range(participant_count)]
        errors = [f.exception() for f in futures]

    failures = [exc for exc in errors if exc is not None]
    if failures:
        primary = next((exc for exc in failures if not isinstance(exc, TransportError)), failures[0])
        logger.debug("SPMD run failed on %d of %d ranks", len(failures), participant_count)
        raise primary
    return [f.result() for f in futures]
