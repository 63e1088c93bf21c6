"""
Benchmarks for jaxjoin.

This script compares:
- Hash build/probe local join vs a nested-loop scan vs pandas merge
- The shuffle join on 1, 2 and 4 simulated ranks
"""

import time
import numpy as np
import pandas as pd

from jaxjoin.core.chunk import make_build_chunk, make_probe_chunk
from jaxjoin.distributed import RankContext, distributed_join, local_hash_join, run_spmd
from jaxjoin.testing import slice_inputs
from jaxjoin.testing.generators import generate_global_random_inputs


def time_operation(func, *args, **kwargs):
    """Time an operation after one warmup call (JIT compilation, caches)."""
    _ = func(*args, **kwargs)

    start = time.perf_counter()
    result = func(*args, **kwargs)
    end = time.perf_counter()

    return end - start, result


def nested_loop_join(build, probe):
    """Quadratic scan used as the baseline for the hash join."""
    probe_rows = []
    for k in build.key:
        probe_rows.extend(np.flatnonzero(probe.key == k).tolist())
    return probe.take(np.asarray(probe_rows, dtype=np.intp))


def benchmark_local_join(build_size=10_000, probe_size=10_000, high=5_000):
    """Benchmark the local hash join against a scan and pandas merge."""
    print(f"\n{'='*60}")
    print(f"Local Join Benchmark (build={build_size:,}, probe={probe_size:,}, keys<= {high:,})")
    print(f"{'='*60}")

    rng = np.random.default_rng(42)
    build = make_build_chunk(rng.integers(0, high, size=build_size, endpoint=True))
    probe = make_probe_chunk(
        rng.integers(0, high, size=probe_size, endpoint=True),
        rng.random(probe_size),
        np.arange(probe_size),
    )

    hash_time, result = time_operation(local_hash_join, build, probe)

    left = pd.DataFrame({'key': build.key})
    right = probe.to_pandas()
    pandas_time, expected = time_operation(left.merge, right, on='key', how='inner')

    assert result.num_rows == len(expected), "Hash join and pandas merge disagree!"

    print(f"Hash join:     {hash_time:.4f} seconds ({result.num_rows:,} rows)")
    print(f"pandas merge:  {pandas_time:.4f} seconds")

    if build_size * probe_size <= 10**8:
        scan_time, scanned = time_operation(nested_loop_join, build, probe)
        assert scanned.num_rows == result.num_rows, "Scan and hash join disagree!"
        print(f"Nested scan:   {scan_time:.4f} seconds")
        print(f"Speedup:       {scan_time/hash_time:.2f}x over scan")

    return hash_time, pandas_time


def benchmark_distributed_join(size=200_000, high=100_000):
    """Benchmark the shuffle join on thread-simulated ranks."""
    print(f"\n{'='*60}")
    print(f"Distributed Join Benchmark (rows per side={size:,})")
    print(f"{'='*60}")

    tables = generate_global_random_inputs(size=size, high=high, seed=3)

    def body(transport):
        context = RankContext.from_transport(transport)
        build, probe = slice_inputs(
            tables['keys1'], tables['keys2'], tables['data0'], tables['data1'], context
        )
        return distributed_join(build, probe, transport, context).num_rows

    for participants in (1, 2, 4):
        elapsed, counts = time_operation(run_spmd, body, participants)
        print(f"P={participants}: {elapsed:.4f} seconds, {sum(counts):,} rows, "
              f"per-rank {counts}")


def run_all_benchmarks():
    """Run all benchmarks."""
    print("\n" + "="*60)
    print(" jaxjoin Benchmark Suite")
    print("="*60)

    for build_size, probe_size, high in [(1_000, 1_000, 500), (10_000, 10_000, 5_000), (1_000_000, 1_000_000, 500_000)]:
        benchmark_local_join(build_size, probe_size, high)

    benchmark_distributed_join()

    print("\n" + "="*60)
    print(" Benchmark Complete!")
    print("="*60)


if __name__ == "__main__":
    run_all_benchmarks()
