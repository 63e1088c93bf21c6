"""Per-call rank context for SPMD join execution."""

from dataclasses import dataclass

from ..core.errors import ConfigurationError


@dataclass(frozen=True)
class RankContext:
    """
    Identity of the calling participant within a fixed-size group.

    Supplied by whatever bootstrapped the processes (mpiexec, a thread
    group, ...) and treated as read-only for the lifetime of one join.
    """

    rank: int
    participant_count: int

    def __post_init__(self):
        if self.participant_count < 1:
            raise ConfigurationError(
                f"Participant count must be positive, got {self.participant_count}"
            )
        if not 0 <= self.rank < self.participant_count:
            raise ConfigurationError(
                f"Rank {self.rank} is outside the participant range "
                f"[0, {self.participant_count})"
            )

    @property
    def is_root(self) -> bool:
        return self.rank == 0

    @classmethod
    def from_transport(cls, transport) -> 'RankContext':
        """Read rank and group size from a transport."""
        return cls(rank=transport.rank, participant_count=transport.size)

    def validate_against(self, transport) -> None:
        """
        Check that this context describes the caller's slot in `transport`.

        Parameters
        ----------
        transport : Transport
            The transport the join will communicate over

        Raises
        ------
        ConfigurationError
            If rank or group size disagree
        """
        if (self.rank, self.participant_count) != (transport.rank, transport.size):
            raise ConfigurationError(
                f"Context (rank={self.rank}, participants={self.participant_count}) "
                f"does not match transport (rank={transport.rank}, size={transport.size})"
            )
