"""Testing utilities for jaxjoin."""

from jaxjoin.testing.comparison import assert_join_equal, expected_join, gather_output
from jaxjoin.testing.generators import (
    generate_example_inputs,
    generate_random_inputs,
    join_inputs,
    slice_inputs,
)

__all__ = [
    "assert_join_equal",
    "expected_join",
    "gather_output",
    "generate_example_inputs",
    "generate_random_inputs",
    "join_inputs",
    "slice_inputs",
]
