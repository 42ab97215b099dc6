"""
DeltaMaps - Observable Diff-Tracking Collections
================================================

Key/value collections that publish coalesced change-sets (added, modified,
deleted) instead of raw mutation events, delta stream operators that derive
new change-sets from incoming ones, and supersets that keep per-tag subsets
in step with their members.
"""

__version__ = "0.1.0"

from .delta_map import BatchContext, DeltaHook, DeltaMap, values_differ
from .delta_set import DeltaSet
from .exceptions import CollectionDestroyedError, DeltaMapError
from .operators import (
    filter_delta,
    group_delta,
    map_delta,
    merge_delta,
    start_delta,
    tap_delta,
)
from .stream import ConnectedStream, DeltaStream, Subscription
from .super_set import SimpleSubsetIndex, SimpleSuperSet, SubsetIndex, SuperSet
from .support import (
    DeltaVisitor,
    create_delta,
    initial_delta,
    iter_changes,
    process_elements,
)
from .types import (
    ChangeType,
    DeltaMapSettings,
    GroupObject,
    IdObject,
    IsModified,
    MapDelta,
    MemberObject,
)

__all__ = [
    # Collections
    "DeltaMap",
    "DeltaSet",
    "SimpleSuperSet",
    "SuperSet",
    "SimpleSubsetIndex",
    "SubsetIndex",
    "DeltaHook",
    "BatchContext",
    "values_differ",
    # Streams
    "DeltaStream",
    "ConnectedStream",
    "Subscription",
    # Operators
    "filter_delta",
    "map_delta",
    "group_delta",
    "merge_delta",
    "start_delta",
    "tap_delta",
    # Support
    "DeltaVisitor",
    "process_elements",
    "iter_changes",
    "initial_delta",
    "create_delta",
    # Types
    "MapDelta",
    "ChangeType",
    "DeltaMapSettings",
    "IdObject",
    "MemberObject",
    "GroupObject",
    "IsModified",
    # Exceptions
    "DeltaMapError",
    "CollectionDestroyedError",
]
