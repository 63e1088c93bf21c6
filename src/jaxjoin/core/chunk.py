"""RelationChunk: the per-rank columnar slice of a distributed relation."""

from typing import Dict, Optional, Union, List, Sequence, Mapping
import numpy as np
import pandas as pd
import jax
from jax.tree_util import register_pytree_node

from .errors import ConfigurationError

KEY_DTYPE = np.int32


def _as_int32(name: str, values) -> np.ndarray:
    """Cast an integer column to int32, rejecting values that would wrap."""
    arr = np.asarray(values)
    if arr.size and np.issubdtype(arr.dtype, np.integer):
        bounds = np.iinfo(np.int32)
        low, high = arr.min(), arr.max()
        if low < bounds.min or high > bounds.max:
            raise ConfigurationError(
                f"Column '{name}' has values in [{low}, {high}], outside the int32 range"
            )
    return arr.astype(np.int32, copy=False)


class RelationChunk:
    """
    The rows of a relation held locally by one rank.

    Columns are parallel NumPy arrays: the key column plus zero or more named
    payload columns. Values at the same local index belong to the same
    logical row, so every reordering goes through :meth:`take`, which applies
    one permutation to all columns at once.

    Parameters
    ----------
    key : array-like
        Join key column, stored as int32
    payloads : Mapping[str, array-like], optional
        Payload columns, in output order. Dtypes are kept as given.
        Every rank must pass the same dtype for a given column, empty
        chunks included; build empty columns with an explicit dtype or
        through :meth:`empty_like`.
    key_name : str, default 'key'
        Name of the key column in :meth:`to_pandas` output
    """

    def __init__(
        self,
        key: Union[np.ndarray, Sequence[int]],
        payloads: Optional[Mapping[str, Union[np.ndarray, Sequence]]] = None,
        key_name: str = 'key'
    ):
        key_arr = np.asarray(key)
        if key_arr.ndim != 1:
            raise ConfigurationError(f"Key column must be 1-D, got shape {key_arr.shape}")
        if key_arr.size and not np.issubdtype(key_arr.dtype, np.integer):
            raise ConfigurationError(f"Key column must be integer, got {key_arr.dtype}")
        self.key = _as_int32(key_name, key_arr)
        self.key_name = key_name

        self.payloads: Dict[str, np.ndarray] = {}
        for name, arr in (payloads or {}).items():
            if name == key_name:
                raise ConfigurationError(f"Payload column '{name}' shadows the key column")
            arr = np.asarray(arr)
            if arr.ndim != 1:
                raise ConfigurationError(
                    f"Payload column '{name}' must be 1-D, got shape {arr.shape}"
                )
            if len(arr) != len(self.key):
                raise ConfigurationError(
                    f"Payload column '{name}' has {len(arr)} rows but the key "
                    f"column has {len(self.key)}"
                )
            self.payloads[name] = arr

    @property
    def num_rows(self) -> int:
        return len(self.key)

    @property
    def columns(self) -> List[str]:
        """Key column name followed by payload names."""
        return [self.key_name] + list(self.payloads)

    @property
    def payload_names(self) -> List[str]:
        return list(self.payloads)

    def __len__(self) -> int:
        return self.num_rows

    def take(self, indices: Union[np.ndarray, Sequence[int]]) -> 'RelationChunk':
        """
        Gather rows by position from every column.

        Parameters
        ----------
        indices : array-like of int
            Row positions; may repeat rows or be a permutation

        Returns
        -------
        RelationChunk
            New chunk whose row ``i`` is this chunk's row ``indices[i]``
        """
        indices = np.asarray(indices, dtype=np.intp)
        return jax.tree_util.tree_map(lambda col: np.take(col, indices), self)

    def empty_like(self) -> 'RelationChunk':
        """A zero-row chunk with the same columns and dtypes."""
        return self.take(np.empty(0, dtype=np.intp))

    @classmethod
    def concat(cls, chunks: Sequence['RelationChunk']) -> 'RelationChunk':
        """
        Stack chunks with identical columns row-wise.

        Used to assemble a global view from per-rank chunks in tests and
        driver scripts.
        """
        if not chunks:
            raise ConfigurationError("Cannot concatenate an empty list of chunks")
        first = chunks[0]
        for other in chunks[1:]:
            if other.columns != first.columns:
                raise ConfigurationError(
                    f"Column mismatch: {first.columns} vs {other.columns}"
                )
        return jax.tree_util.tree_map(
            lambda *cols: np.concatenate(cols), *chunks
        )

    def to_pandas(self) -> pd.DataFrame:
        """
        Convert the chunk to a pandas DataFrame.

        Returns
        -------
        pd.DataFrame
            One column per chunk column, key first
        """
        data = {self.key_name: self.key}
        data.update(self.payloads)
        return pd.DataFrame(data)

    @classmethod
    def from_pandas(cls, df: pd.DataFrame, key: str = 'key') -> 'RelationChunk':
        """Create a chunk from a DataFrame, treating every non-key column as payload."""
        payloads = {col: df[col].to_numpy() for col in df.columns if col != key}
        return cls(df[key].to_numpy(), payloads, key_name=key)

    def __repr__(self) -> str:
        return f"RelationChunk(rows={self.num_rows}, columns={self.columns})"


def _chunk_tree_flatten(chunk: RelationChunk):
    children = (chunk.key,) + tuple(chunk.payloads.values())
    aux_data = (chunk.key_name, tuple(chunk.payloads))
    return children, aux_data


def _chunk_tree_unflatten(aux_data, children):
    key_name, payload_names = aux_data
    obj = object.__new__(RelationChunk)
    obj.key = np.asarray(children[0])
    obj.key_name = key_name
    obj.payloads = {name: np.asarray(col) for name, col in zip(payload_names, children[1:])}
    return obj


register_pytree_node(RelationChunk, _chunk_tree_flatten, _chunk_tree_unflatten)


def make_build_chunk(keys: Union[np.ndarray, Sequence[int]]) -> RelationChunk:
    """Build-side chunk: key column only."""
    return RelationChunk(keys)


def make_probe_chunk(
    keys: Union[np.ndarray, Sequence[int]],
    data0: Union[np.ndarray, Sequence[float]],
    data1: Union[np.ndarray, Sequence[int]]
) -> RelationChunk:
    """Probe-side chunk: key plus a float64 and an int32 payload."""
    return RelationChunk(
        keys,
        {
            'data0': np.asarray(data0, dtype=np.float64),
            'data1': _as_int32('data1', data1),
        }
    )
