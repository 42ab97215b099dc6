"""
Test utilities for DeltaMaps.
"""

from .memory_utils import assert_cleaned_up, assert_no_object_leak, count_types

__all__ = [
    "assert_cleaned_up",
    "assert_no_object_leak",
    "count_types",
]
