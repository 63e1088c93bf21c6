#!/usr/bin/env python3
"""
Distributed join under MPI.

Run with something like:
    mpiexec -n 4 python examples/mpi_join_example.py
    mpiexec -n 3 python examples/mpi_join_example.py --random --size 20 --seed 1
"""

import argparse
import logging
import time

from mpi4py import MPI

from jaxjoin.core.config import set_debug
from jaxjoin.distributed import RankContext, distributed_join, global_row_count
from jaxjoin.distributed.mpi import MPITransport
from jaxjoin.testing import generate_example_inputs, generate_random_inputs


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="MPI shuffle hash join demo")
    parser.add_argument("--random", action="store_true", help="Use random tables instead of the fixed example.")
    parser.add_argument("--size", type=int, default=10, help="Rows per random table.")
    parser.add_argument("--high", type=int, default=6, help="Largest random key.")
    parser.add_argument("--seed", type=int, default=0, help="Seed shared by all ranks for random tables.")
    parser.add_argument("--partitioner", choices=["hash", "modulo"], default="hash")
    parser.add_argument("--debug", action="store_true", help="Log join phases and routing counts.")
    return parser.parse_args()


def print_in_rank_order(transport, lines):
    """Print one block per rank, rank 0 first."""
    for rank in range(transport.size):
        if rank == transport.rank:
            print("\n".join(lines), flush=True)
            # give stdout a moment so blocks do not interleave
            time.sleep(0.05)
        transport.barrier()


def format_input(rank, build, probe):
    lines = [f"Rank {rank}, input:", "| keys1 |  | keys2 |   data0   | data1 |"]
    for i in range(max(build.num_rows, probe.num_rows)):
        left = f"| {build.key[i]:5d} |  " if i < build.num_rows else " " * 11
        right = ""
        if i < probe.num_rows:
            right = (f"| {probe.key[i]:5d} | {probe.payloads['data0'][i]:9.6f} "
                     f"| {probe.payloads['data1'][i]:5d} |")
        lines.append(left + right)
    return lines


def format_output(rank, result):
    lines = [f"Rank {rank}, output:", "| key |   data0   | data1 |"]
    for i in range(result.num_rows):
        lines.append(f"| {result.key[i]:3d} | {result.payloads['data0'][i]:9.6f} "
                     f"| {result.payloads['data1'][i]:5d} |")
    return lines


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s")
    if args.debug:
        set_debug(True)

    transport = MPITransport(MPI.COMM_WORLD)
    context = RankContext.from_transport(transport)

    if args.random:
        build, probe = generate_random_inputs(context, size=args.size, high=args.high, seed=args.seed)
    else:
        build, probe = generate_example_inputs(context)

    transport.barrier()
    print_in_rank_order(transport, format_input(context.rank, build, probe))

    result = distributed_join(build, probe, transport, context, partitioner=args.partitioner)

    print_in_rank_order(transport, format_output(context.rank, result))
    total = global_row_count(result, transport)
    if context.is_root:
        print(f"Joined {total} rows across {context.participant_count} ranks.", flush=True)


if __name__ == "__main__":
    main()
