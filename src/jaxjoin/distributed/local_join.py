"""
Local hash join executed once both relations are co-located by key.

The build side is indexed with a hash table from key to the positions of
every row carrying it (duplicates kept); the probe side is then streamed
against the index. Both passes are linear in their input, and a key seen
``m`` times on the build side and ``n`` times on the probe side yields
``m * n`` output rows.
"""

import logging
from typing import Tuple

import numpy as np
import pandas as pd

from ..core.chunk import KEY_DTYPE, RelationChunk

logger = logging.getLogger(__name__)


class HashIndex:
    """
    Key -> row positions index over a build-side key column.

    Stored in CSR form: distinct keys in first-seen order, and for distinct
    key ``j`` its row positions are
    ``positions[offsets[j]:offsets[j] + counts[j]]`` in ascending order.
    """

    def __init__(
        self,
        uniques: np.ndarray,
        offsets: np.ndarray,
        counts: np.ndarray,
        positions: np.ndarray
    ):
        self.uniques = uniques
        self.offsets = offsets
        self.counts = counts
        self.positions = positions
        # hash table over the distinct keys, used for probing
        self._lookup = pd.Index(uniques)

    @classmethod
    def build(cls, keys) -> 'HashIndex':
        """
        Index a build-side key column.

        Parameters
        ----------
        keys : array-like of int
            Build-side keys

        Returns
        -------
        HashIndex
            Index mapping every distinct key to all of its row positions
        """
        keys = np.asarray(keys, dtype=KEY_DTYPE)
        codes, uniques = pd.factorize(keys)
        counts = np.bincount(codes, minlength=len(uniques)).astype(np.intp)
        offsets = np.zeros(len(uniques), dtype=np.intp)
        if len(uniques) > 1:
            np.cumsum(counts[:-1], out=offsets[1:])
        # stable, so positions stay ascending within each key
        positions = np.argsort(codes, kind="stable").astype(np.intp)
        return cls(np.asarray(uniques, dtype=KEY_DTYPE), offsets, counts, positions)

    @property
    def num_rows(self) -> int:
        return len(self.positions)

    @property
    def num_keys(self) -> int:
        return len(self.uniques)

    def lookup(self, key: int) -> np.ndarray:
        """Row positions of one key (empty if absent)."""
        code = self._lookup.get_indexer(np.asarray([key], dtype=KEY_DTYPE))[0]
        if code < 0:
            return np.empty(0, dtype=np.intp)
        start = self.offsets[code]
        return self.positions[start:start + self.counts[code]]

    def probe(self, probe_keys) -> Tuple[np.ndarray, np.ndarray]:
        """
        Match every probe key against the index.

        Parameters
        ----------
        probe_keys : array-like of int
            Probe-side keys

        Returns
        -------
        Tuple[np.ndarray, np.ndarray]
            ``(probe_rows, build_rows)``: one pair per match, ordered by probe
            row and then by build row
        """
        probe_keys = np.asarray(probe_keys, dtype=KEY_DTYPE)
        if self.num_keys == 0 or len(probe_keys) == 0:
            empty = np.empty(0, dtype=np.intp)
            return empty, empty.copy()

        codes = self._lookup.get_indexer(probe_keys)
        matched = np.flatnonzero(codes >= 0)
        matched_codes = codes[matched]
        multiplicity = self.counts[matched_codes]

        probe_rows = np.repeat(matched, multiplicity)
        total = len(probe_rows)
        # position of each output row within its key's run of build rows
        run_starts = np.repeat(np.cumsum(multiplicity) - multiplicity, multiplicity)
        within_run = np.arange(total, dtype=np.intp) - run_starts
        build_rows = self.positions[np.repeat(self.offsets[matched_codes], multiplicity) + within_run]
        return probe_rows.astype(np.intp), build_rows.astype(np.intp)


def local_hash_join(build: RelationChunk, probe: RelationChunk) -> RelationChunk:
    """
    Inner equi-join of two co-located chunks on their key columns.

    Parameters
    ----------
    build : RelationChunk
        Build side; indexed. Only its key column is used.
    probe : RelationChunk
        Probe side; streamed against the index

    Returns
    -------
    RelationChunk
        One row per match: the key and every probe payload, values passed
        through unchanged
    """
    index = HashIndex.build(build.key)
    probe_rows, _ = index.probe(probe.key)
    logger.debug(
        "local join: %d build rows (%d distinct keys) x %d probe rows -> %d matches",
        index.num_rows, index.num_keys, probe.num_rows, len(probe_rows),
    )
    return probe.take(probe_rows)
