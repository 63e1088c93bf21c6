"""MPI transport built on mpi4py buffer-based collectives."""

import functools
import logging
from typing import Optional

import numpy as np
from mpi4py import MPI

from .routing import COUNT_DTYPE, RoutingLayout
from .transport import Scalar, Transport
from ..core.errors import TransportError

logger = logging.getLogger(__name__)


def _collective(fn):
    """Turn MPI failures into the transport's fatal-error policy."""

    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except MPI.Exception as exc:
            logger.critical("rank %d: %s failed: %s", self.rank, fn.__name__, exc)
            if self.abort_on_error:
                self.comm.Abort(1)
            raise TransportError(f"{fn.__name__} failed on rank {self.rank}: {exc}") from exc

    return wrapper


class MPITransport(Transport):
    """
    Collectives over an MPI communicator.

    Parameters
    ----------
    comm : MPI.Comm, optional
        Communicator to use; defaults to ``MPI.COMM_WORLD``
    abort_on_error : bool, default True
        Abort the whole communicator when a collective fails, so peers blocked
        in the same collective do not hang. When False the failure is raised
        as TransportError on the local rank only.
    """

    def __init__(self, comm: Optional[MPI.Comm] = None, abort_on_error: bool = True):
        self.comm = MPI.COMM_WORLD if comm is None else comm
        self.abort_on_error = abort_on_error
        # errors must come back as exceptions for the wrapper to see them
        self.comm.Set_errhandler(MPI.ERRORS_RETURN)
        self._rank = self.comm.Get_rank()
        self._size = self.comm.Get_size()

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def size(self) -> int:
        return self._size

    @_collective
    def allreduce_sum(self, value: Scalar) -> Scalar:
        send = np.asarray(value)
        if send.dtype.kind not in "iuf":
            raise TypeError(f"Cannot all-reduce a value of type {type(value).__name__}")
        recv = np.empty_like(send)
        self.comm.Allreduce(send, recv, op=MPI.SUM)
        if isinstance(value, np.generic):
            return recv[()]
        return type(value)(recv.item())

    @_collective
    def alltoall_counts(self, send_counts: np.ndarray) -> np.ndarray:
        send_counts = np.ascontiguousarray(send_counts, dtype=COUNT_DTYPE)
        if len(send_counts) != self.size:
            raise TransportError(f"Expected {self.size} counts, got {len(send_counts)}")
        recv_counts = np.empty(self.size, dtype=COUNT_DTYPE)
        self.comm.Alltoall(send_counts, recv_counts)
        return recv_counts

    @_collective
    def alltoallv(self, send_buffer: np.ndarray, layout: RoutingLayout) -> np.ndarray:
        send_buffer = np.ascontiguousarray(send_buffer)
        recv_buffer = np.empty(layout.total_recv, dtype=send_buffer.dtype)
        self.comm.Alltoallv(
            [send_buffer, (layout.send_counts, layout.send_displacements)],
            [recv_buffer, (layout.recv_counts, layout.recv_displacements)],
        )
        return recv_buffer

    @_collective
    def barrier(self) -> None:
        self.comm.Barrier()
