"""Tests for key routing and send layouts."""

import pytest
import numpy as np
from hypothesis import given, settings, strategies as st

from jaxjoin.core.config import JoinConfig, enable_jit, set_partitioner
from jaxjoin.core.errors import ConfigurationError, RoutingInvariantError
from jaxjoin.distributed.routing import (
    RoutingLayout, calc_displacements, compute_send_layout,
    destination_ranks, hash_keys, route_keys
)


@pytest.fixture(params=[True, False], ids=["jit", "eager"])
def jit_mode(request):
    enable_jit(request.param)
    yield request.param
    enable_jit(True)


class TestDestinations:
    """Test the row-to-rank functions."""

    def test_hash_is_deterministic(self):
        keys = np.array([0, 1, 2, -7, 2**31 - 1, -2**31], dtype=np.int32)
        np.testing.assert_array_equal(hash_keys(keys), hash_keys(keys.copy()))
        assert hash_keys(keys).dtype == np.uint32

    def test_hash_spreads_dense_keys(self):
        """Distinct small keys should not collapse onto one value."""
        hashes = hash_keys(np.arange(1000, dtype=np.int32))
        assert len(np.unique(hashes)) == 1000

    def test_modulo_partitioner(self, jit_mode):
        keys = np.array([0, 1, 2, 3, 4, 5, 6], dtype=np.int32)
        np.testing.assert_array_equal(
            destination_ranks(keys, 3, partitioner="modulo"),
            [0, 1, 2, 0, 1, 2, 0]
        )

    def test_modulo_negative_keys(self, jit_mode):
        keys = np.array([-1, -3, -4], dtype=np.int32)
        np.testing.assert_array_equal(destination_ranks(keys, 3, partitioner="modulo"), [2, 0, 2])

    def test_hash_destinations_in_range(self, jit_mode):
        keys = np.random.RandomState(0).randint(-10**6, 10**6, size=500).astype(np.int32)
        for participants in (1, 2, 3, 7):
            dest = destination_ranks(keys, participants, partitioner="hash")
            assert dest.dtype == np.int32
            assert dest.min() >= 0 and dest.max() < participants

    def test_same_key_same_destination(self, jit_mode):
        """Equal keys must route identically no matter where they appear."""
        dest = destination_ranks(np.array([5, 9, 5, 5, 9], dtype=np.int32), 4)
        assert dest[0] == dest[2] == dest[3]
        assert dest[1] == dest[4]

    def test_single_participant(self):
        dest = destination_ranks(np.array([3, -4, 100], dtype=np.int32), 1)
        np.testing.assert_array_equal(dest, [0, 0, 0])

    def test_empty_keys(self):
        dest = destination_ranks(np.empty(0, dtype=np.int32), 4)
        assert dest.shape == (0,)

    def test_default_partitioner_from_config(self):
        keys = np.arange(10, dtype=np.int32)
        set_partitioner("modulo")
        try:
            np.testing.assert_array_equal(destination_ranks(keys, 4), keys % 4)
        finally:
            set_partitioner("hash")
        assert JoinConfig.partitioner == "hash"

    def test_unknown_partitioner(self):
        with pytest.raises(ConfigurationError):
            destination_ranks(np.arange(3, dtype=np.int32), 2, partitioner="range")
        with pytest.raises(ConfigurationError):
            set_partitioner("range")


class TestLayouts:
    """Test counts, displacements and routing permutations."""

    def test_calc_displacements(self):
        np.testing.assert_array_equal(calc_displacements([2, 0, 3, 1]), [0, 2, 2, 5])
        assert calc_displacements([]).shape == (0,)

    def test_compute_send_layout(self):
        layout = compute_send_layout(np.array([2, 0, 2, 1, 2]), 4)
        np.testing.assert_array_equal(layout.send_counts, [1, 1, 3, 0])
        np.testing.assert_array_equal(layout.send_displacements, [0, 1, 2, 5])
        assert layout.total_send == 5
        assert not layout.has_receive_side

    def test_compute_send_layout_out_of_range(self):
        with pytest.raises(RoutingInvariantError):
            compute_send_layout(np.array([0, 4]), 4)

    def test_empty_layout(self):
        layout = compute_send_layout(np.empty(0, dtype=np.int32), 3)
        np.testing.assert_array_equal(layout.send_counts, [0, 0, 0])
        np.testing.assert_array_equal(layout.send_displacements, [0, 0, 0])

    def test_with_receive_side(self):
        layout = compute_send_layout(np.array([0, 1, 1]), 2).with_receive_side([4, 1])
        np.testing.assert_array_equal(layout.recv_displacements, [0, 4])
        assert layout.total_recv == 5

    def test_receive_side_must_match_group(self):
        layout = compute_send_layout(np.array([0, 1]), 2)
        with pytest.raises(RoutingInvariantError):
            layout.with_receive_side([1, 2, 3])
        with pytest.raises(RoutingInvariantError):
            layout.total_recv

    def test_validate_send(self):
        layout = RoutingLayout(np.array([1, 2], dtype=np.int32), np.array([0, 1], dtype=np.int32))
        layout.validate_send(3, 2)
        with pytest.raises(RoutingInvariantError):
            layout.validate_send(4, 2)
        with pytest.raises(RoutingInvariantError):
            layout.validate_send(3, 3)
        bad = RoutingLayout(np.array([1, 2], dtype=np.int32), np.array([0, 2], dtype=np.int32))
        with pytest.raises(RoutingInvariantError):
            bad.validate_send(3, 2)

    def test_route_keys_groups_by_destination(self, jit_mode):
        keys = np.array([4, 1, 6, 3, 2, 5, 0], dtype=np.int32)
        layout, permutation = route_keys(keys, 3, partitioner="modulo")
        np.testing.assert_array_equal(layout.send_counts, [3, 2, 2])
        # stable within each bucket
        np.testing.assert_array_equal(keys[permutation], [6, 3, 0, 4, 1, 2, 5])

    @settings(max_examples=50, deadline=None)
    @given(
        keys=st.lists(st.integers(min_value=-2**31, max_value=2**31 - 1), max_size=60),
        participants=st.integers(min_value=1, max_value=8),
    )
    def test_route_keys_properties(self, keys, participants):
        """Permutation packs each destination's rows into its layout block."""
        keys = np.asarray(keys, dtype=np.int32)
        layout, permutation = route_keys(keys, participants)
        assert sorted(permutation.tolist()) == list(range(len(keys)))
        assert layout.total_send == len(keys)
        dest = destination_ranks(keys, participants)[permutation]
        for rank in range(participants):
            start = layout.send_displacements[rank]
            block = dest[start:start + layout.send_counts[rank]]
            assert (block == rank).all()
