"""Input generators for testing distributed joins."""

from typing import Any, Dict, Optional, Tuple
import numpy as np
import hypothesis.strategies as st

from jaxjoin.core.chunk import RelationChunk, make_build_chunk, make_probe_chunk
from jaxjoin.core.partition import local_chunk

# Worked example: three 1s and two 0s on the build side
EXAMPLE_KEYS1 = [0, 1, 1, 2, 1, 0]
EXAMPLE_KEYS2 = [1, 0, 4, 2, 5, 3]
EXAMPLE_DATA0 = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
EXAMPLE_DATA1 = [4, 1, 2, 3, 0, 5]


def slice_inputs(
    keys1,
    keys2,
    data0,
    data1,
    context
) -> Tuple[RelationChunk, RelationChunk]:
    """
    Cut global build/probe columns down to this rank's block.

    Parameters
    ----------
    keys1 : array-like
        Global build keys
    keys2, data0, data1 : array-like
        Global probe columns
    context : RankContext
        Rank whose block to return

    Returns
    -------
    Tuple[RelationChunk, RelationChunk]
        Build and probe chunks for ``context.rank``
    """
    build = make_build_chunk(local_chunk(keys1, context, dtype=np.int32))
    probe = make_probe_chunk(
        local_chunk(keys2, context, dtype=np.int32),
        local_chunk(data0, context, dtype=np.float64),
        local_chunk(data1, context, dtype=np.int32),
    )
    return build, probe


def generate_example_inputs(context) -> Tuple[RelationChunk, RelationChunk]:
    """This rank's chunks of the fixed six-row example tables."""
    return slice_inputs(EXAMPLE_KEYS1, EXAMPLE_KEYS2, EXAMPLE_DATA0, EXAMPLE_DATA1, context)


def generate_global_random_inputs(
    size: int = 10,
    high: int = 6,
    seed: Optional[int] = None
) -> Dict[str, np.ndarray]:
    """
    Generate full random tables.

    Keys are uniform integers in ``[0, high]``, ``data0`` is uniform in
    ``[0, 1)`` and ``data1`` is the global row id.

    Returns
    -------
    Dict[str, np.ndarray]
        Columns ``keys1``, ``keys2``, ``data0`` and ``data1``
    """
    rng = np.random.default_rng(seed)
    return {
        'keys1': rng.integers(0, high, size=size, endpoint=True).astype(np.int32),
        'keys2': rng.integers(0, high, size=size, endpoint=True).astype(np.int32),
        'data0': rng.random(size),
        'data1': np.arange(size, dtype=np.int32),
    }


def generate_random_inputs(
    context,
    size: int = 10,
    high: int = 6,
    seed: Optional[int] = None
) -> Tuple[RelationChunk, RelationChunk]:
    """
    This rank's chunks of random tables.

    Every rank must pass the same `seed` so that all ranks slice the same
    global tables; with ``seed=None`` this only makes sense for a single
    participant.
    """
    tables = generate_global_random_inputs(size=size, high=high, seed=seed)
    return slice_inputs(tables['keys1'], tables['keys2'], tables['data0'], tables['data1'], context)


# Hypothesis strategies for property-based testing
@st.composite
def join_inputs(draw,
                max_build_rows: int = 40,
                max_probe_rows: int = 40,
                min_key: int = -20,
                max_key: int = 20) -> Dict[str, Any]:
    """
    Hypothesis strategy for global join inputs.

    Keys are drawn from a narrow range so that duplicates and matches are
    common; either side may be empty.
    """
    keys = st.integers(min_value=min_key, max_value=max_key)
    keys1 = draw(st.lists(keys, max_size=max_build_rows))
    n_probe = draw(st.integers(min_value=0, max_value=max_probe_rows))
    keys2 = draw(st.lists(keys, min_size=n_probe, max_size=n_probe))
    data0 = draw(st.lists(
        st.floats(allow_nan=False, allow_infinity=False, width=64),
        min_size=n_probe, max_size=n_probe
    ))
    return {
        'keys1': np.asarray(keys1, dtype=np.int32),
        'keys2': np.asarray(keys2, dtype=np.int32),
        'data0': np.asarray(data0, dtype=np.float64),
        # unique row ids make every probe row identifiable after a shuffle
        'data1': np.arange(n_probe, dtype=np.int32),
    }
