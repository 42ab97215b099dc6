"""
Shared pytest fixtures for DeltaMaps tests.
"""

import pytest

from deltamaps import DeltaMap, DeltaSet, SuperSet, values_differ


@pytest.fixture
def delta_map():
    """Provide a fresh, empty DeltaMap."""
    return DeltaMap()


@pytest.fixture
def delta_set():
    """Provide a fresh, empty DeltaSet."""
    return DeltaSet()


@pytest.fixture
def structural_set():
    """Provide a DeltaSet that ignores updates with structurally equal values."""
    return DeltaSet(is_modified=values_differ)


@pytest.fixture
def super_set():
    """Provide a fresh, empty SuperSet."""
    return SuperSet()
