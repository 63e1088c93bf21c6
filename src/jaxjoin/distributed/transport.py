"""
Collective transport contract.

A join needs exactly two communication shapes: an all-reduce sum over a
scalar and a variable-length all-to-all. The variable exchange is a
two-phase protocol: a fixed-size all-to-all of per-rank counts first, then
the data itself laid out by the exchanged counts. Every method here is a
collective: all participants must call it, in the same order.
"""

from abc import ABC, abstractmethod
from typing import Tuple, Union

import numpy as np

from .routing import COUNT_DTYPE, RoutingLayout, calc_displacements
from ..core.errors import RoutingInvariantError

Scalar = Union[int, float, np.integer, np.floating]


class Transport(ABC):
    """Blocking collectives over a fixed group of participants."""

    @property
    @abstractmethod
    def rank(self) -> int:
        """This participant's id in ``[0, size)``."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of participants."""

    @abstractmethod
    def allreduce_sum(self, value: Scalar) -> Scalar:
        """Sum one scalar across all participants; every participant gets the total."""

    @abstractmethod
    def alltoall_counts(self, send_counts: np.ndarray) -> np.ndarray:
        """
        Fixed-size all-to-all of one count per peer.

        ``send_counts[r]`` goes to rank ``r``; the result holds at index
        ``r`` the count rank ``r`` addressed to this participant.
        """

    @abstractmethod
    def alltoallv(self, send_buffer: np.ndarray, layout: RoutingLayout) -> np.ndarray:
        """
        Variable-length all-to-all of one typed buffer.

        `layout` must already carry the receive side. Returns a buffer of
        ``layout.total_recv`` elements with rank ``r``'s contribution at
        ``recv_displacements[r]``.

        Every rank must send the same dtype; MPI moves raw bytes and does
        not check it.
        """

    @abstractmethod
    def barrier(self) -> None:
        """Block until every participant has reached the barrier."""

    def exchange_counts(self, send_counts, send_displacements=None) -> RoutingLayout:
        """
        Run the count phase of a variable-length exchange.

        Parameters
        ----------
        send_counts : array-like of int
            Rows this rank sends to each peer
        send_displacements : array-like of int, optional
            Offsets of each peer's block; derived from the counts if omitted

        Returns
        -------
        RoutingLayout
            Layout with both send and receive sides filled in
        """
        send_counts = np.asarray(send_counts, dtype=COUNT_DTYPE)
        if len(send_counts) != self.size:
            raise RoutingInvariantError(
                f"Expected {self.size} send counts, got {len(send_counts)}"
            )
        if send_displacements is None:
            send_displacements = calc_displacements(send_counts)
        layout = RoutingLayout(send_counts, np.asarray(send_displacements, dtype=COUNT_DTYPE))
        recv_counts = self.alltoall_counts(send_counts)
        return layout.with_receive_side(recv_counts)

    def exchange_with_layout(self, send_buffer, layout: RoutingLayout) -> np.ndarray:
        """Data phase of a variable-length exchange with a precomputed layout."""
        send_buffer = np.ascontiguousarray(send_buffer)
        layout.validate_send(len(send_buffer), self.size)
        if not layout.has_receive_side:
            raise RoutingInvariantError("Layout has no receive side; exchange counts first")
        recv_buffer = self.alltoallv(send_buffer, layout)
        if len(recv_buffer) != layout.total_recv:
            raise RoutingInvariantError(
                f"Received {len(recv_buffer)} elements, expected {layout.total_recv}"
            )
        return recv_buffer

    def exchange_variable(
        self,
        send_buffer,
        send_counts,
        send_displacements=None
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Send a distinct slice of `send_buffer` to every participant.

        Always exchanges counts first, then the data.

        Returns
        -------
        Tuple[np.ndarray, np.ndarray, np.ndarray]
            Received buffer, receive counts and receive displacements
        """
        layout = self.exchange_counts(send_counts, send_displacements)
        recv_buffer = self.exchange_with_layout(send_buffer, layout)
        return recv_buffer, layout.recv_counts, layout.recv_displacements


def sum_like(values, template: Scalar) -> Scalar:
    """Sum contributions keeping the type of `template` (NumPy scalar or Python number)."""
    if isinstance(template, np.generic):
        return template.dtype.type(np.sum(np.asarray(values, dtype=template.dtype)))
    if isinstance(template, bool) or not isinstance(template, (int, float)):
        raise TypeError(f"Cannot all-reduce a value of type {type(template).__name__}")
    return type(template)(sum(values))
