"""
DeltaMaps Operators
===================

Transformations from one delta stream to another. Apply them with
``stream.pipe(...)`` or the ``>>`` operator:

```python
adults = people.deltas >> filter_delta(lambda person: person.age >= 18)
names = people.deltas.pipe(
    filter_delta(lambda person: person.active),
    map_delta(lambda person: Name(id=person.id, text=person.name)),
)
```
"""

from .base import DeltaOperator, Operator, OperatorState, ScratchState
from .filter_delta import FilterOperator, filter_delta
from .group_delta import GroupOperator, GroupState, group_delta
from .map_delta import MapOperator, map_delta
from .merge_delta import merge_delta
from .start_delta import StartOperator, TapOperator, start_delta, tap_delta

__all__ = [
    "Operator",
    "DeltaOperator",
    "OperatorState",
    "ScratchState",
    "FilterOperator",
    "MapOperator",
    "GroupOperator",
    "GroupState",
    "StartOperator",
    "TapOperator",
    "filter_delta",
    "map_delta",
    "group_delta",
    "merge_delta",
    "start_delta",
    "tap_delta",
]
