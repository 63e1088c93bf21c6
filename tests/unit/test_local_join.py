"""Tests for the local hash join."""

import pytest
import numpy as np
import pandas as pd
from hypothesis import given, settings

from jaxjoin.core.chunk import make_build_chunk, make_probe_chunk, RelationChunk
from jaxjoin.distributed.local_join import HashIndex, local_hash_join
from jaxjoin.testing import assert_join_equal, expected_join, join_inputs
from jaxjoin.testing.generators import (
    EXAMPLE_KEYS1, EXAMPLE_KEYS2, EXAMPLE_DATA0, EXAMPLE_DATA1
)


class TestHashIndex:
    """Test building and probing the key index."""

    def test_build_groups_duplicates(self):
        index = HashIndex.build(np.array([0, 1, 1, 2, 1, 0], dtype=np.int32))
        assert index.num_rows == 6
        assert index.num_keys == 3
        np.testing.assert_array_equal(index.lookup(1), [1, 2, 4])
        np.testing.assert_array_equal(index.lookup(0), [0, 5])
        np.testing.assert_array_equal(index.lookup(2), [3])
        assert len(index.lookup(7)) == 0

    def test_probe_pairs(self):
        index = HashIndex.build(np.array([5, 3, 5], dtype=np.int32))
        probe_rows, build_rows = index.probe(np.array([5, 9, 3, 5], dtype=np.int32))
        np.testing.assert_array_equal(probe_rows, [0, 0, 2, 3, 3])
        np.testing.assert_array_equal(build_rows, [0, 2, 1, 0, 2])

    def test_empty_build(self):
        index = HashIndex.build(np.empty(0, dtype=np.int32))
        probe_rows, build_rows = index.probe(np.array([1, 2], dtype=np.int32))
        assert len(probe_rows) == 0 and len(build_rows) == 0

    def test_empty_probe(self):
        index = HashIndex.build(np.array([1, 2], dtype=np.int32))
        probe_rows, _ = index.probe(np.empty(0, dtype=np.int32))
        assert len(probe_rows) == 0

    def test_no_matches(self):
        index = HashIndex.build(np.array([1, 2], dtype=np.int32))
        probe_rows, _ = index.probe(np.array([3, 4], dtype=np.int32))
        assert len(probe_rows) == 0

    def test_extreme_keys(self):
        keys = np.array([-2**31, 2**31 - 1, 0], dtype=np.int32)
        index = HashIndex.build(keys)
        probe_rows, build_rows = index.probe(keys[::-1])
        np.testing.assert_array_equal(probe_rows, [0, 1, 2])
        np.testing.assert_array_equal(build_rows, [2, 1, 0])


class TestLocalHashJoin:
    """Test the single-rank join against pandas."""

    def test_worked_example(self):
        build = make_build_chunk(EXAMPLE_KEYS1)
        probe = make_probe_chunk(EXAMPLE_KEYS2, EXAMPLE_DATA0, EXAMPLE_DATA1)

        result = local_hash_join(build, probe)

        expected = pd.DataFrame({
            'key': [0, 0, 1, 1, 1, 2],
            'data0': [2.0, 2.0, 1.0, 1.0, 1.0, 4.0],
            'data1': [1, 1, 4, 4, 4, 3],
        })
        assert result.num_rows == 6
        assert_join_equal(result, expected)

    def test_output_dtypes(self):
        result = local_hash_join(make_build_chunk([1]), make_probe_chunk([1], [0.1], [7]))
        assert result.key.dtype == np.int32
        assert result.payloads['data0'].dtype == np.float64
        assert result.payloads['data1'].dtype == np.int32
        assert result.payloads['data0'][0] == 0.1

    def test_many_to_many(self):
        """m build duplicates times n probe duplicates gives m * n rows."""
        build = make_build_chunk([7, 7, 7])
        probe = make_probe_chunk([7, 7], [1.0, 2.0], [10, 20])
        result = local_hash_join(build, probe)
        assert result.num_rows == 6
        assert sorted(result.payloads['data1'].tolist()) == [10, 10, 10, 20, 20, 20]

    def test_empty_sides(self):
        probe = make_probe_chunk([1, 2], [1.0, 2.0], [1, 2])
        assert local_hash_join(make_build_chunk([]), probe).num_rows == 0
        result = local_hash_join(make_build_chunk([1]), probe.empty_like())
        assert result.num_rows == 0
        assert result.columns == ['key', 'data0', 'data1']

    def test_arbitrary_payloads(self):
        probe = RelationChunk([1, 2, 1], {'name_id': np.array([10, 20, 30], dtype=np.int64)})
        result = local_hash_join(make_build_chunk([1]), probe)
        np.testing.assert_array_equal(result.payloads['name_id'], [10, 30])
        assert result.payloads['name_id'].dtype == np.int64

    @settings(max_examples=60, deadline=None)
    @given(inputs=join_inputs())
    def test_matches_pandas_merge(self, inputs):
        build = make_build_chunk(inputs['keys1'])
        probe = make_probe_chunk(inputs['keys2'], inputs['data0'], inputs['data1'])
        result = local_hash_join(build, probe)
        assert_join_equal(result, expected_join(**inputs))
