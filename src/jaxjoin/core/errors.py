"""Exception hierarchy for distributed joins."""


class JoinError(Exception):
    """Base class for all jaxjoin errors."""


class ConfigurationError(JoinError, ValueError):
    """
    Inconsistent local state detected before entering a collective.

    Raised for mismatched column lengths inside a chunk, a non-positive
    participant count, a rank outside the group, or an unknown partitioner.
    """


class TransportError(JoinError, RuntimeError):
    """A collective operation failed. Fatal for the whole participant group."""


class RoutingInvariantError(JoinError, AssertionError):
    """Routing produced a destination rank or layout that cannot be valid."""
