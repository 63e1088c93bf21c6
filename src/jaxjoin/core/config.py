"""Process-wide defaults for distributed joins."""

import logging
from typing import Optional

from .errors import ConfigurationError

PARTITIONERS = ("hash", "modulo")


class JoinConfig:
    """Configuration for join routing and key kernels.

    ``debug`` turns on phase and routing-count records on the ``jaxjoin``
    loggers; it is off by default even when the logger level is DEBUG.
    """
    partitioner: str = "hash"
    jit_enabled: bool = True
    debug: bool = False


def resolve_partitioner(name: Optional[str] = None) -> str:
    """
    Return a validated partitioner name, falling back to ``JoinConfig.partitioner``.

    Raises
    ------
    ConfigurationError
        If the name is not one of ``PARTITIONERS``
    """
    if name is None:
        name = JoinConfig.partitioner
    if name not in PARTITIONERS:
        raise ConfigurationError(
            f"Unknown partitioner '{name}', expected one of {PARTITIONERS}"
        )
    return name


def set_partitioner(name: str):
    """Set the default row-to-rank function used when a join does not pass one."""
    JoinConfig.partitioner = resolve_partitioner(name)


def enable_jit(enabled: bool = True):
    """Enable or disable jax.jit for the key routing kernels."""
    JoinConfig.jit_enabled = enabled


def set_debug(debug: bool = True):
    """Enable or disable debug logging of join phases and routing counts."""
    JoinConfig.debug = debug
    logging.getLogger("jaxjoin").setLevel(logging.DEBUG if debug else logging.NOTSET)
