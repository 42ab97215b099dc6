"""
Group Delta - Aggregate Entries Into Group Objects
==================================================

``group_delta`` turns a delta stream of entries into a delta stream of
groups. Each entry is assigned to the group named by ``group_key(entry)``;
groups are created with ``create_group(key)`` and must satisfy the
``GroupObject`` interface (``id``, ``add(entry)``, ``remove(entry) -> bool``).

A group is published as added when it is created, as modified whenever its
members change, and as deleted once its last member leaves.

Example:
    ```python
    class Team:
        def __init__(self, id):
            self.id = id
            self.members = {}

        def add(self, player):
            self.members[player.id] = player

        def remove(self, player):
            self.members.pop(player.id, None)
            return bool(self.members)

    teams = players.deltas >> group_delta(Team, lambda player: player.team)
    ```
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Optional

from ..types import GroupObject, MapDelta
from .base import DeltaOperator, ScratchState


@dataclass
class GroupState(ScratchState):
    # entry id -> group the entry was last added to
    assignments: Dict[Hashable, GroupObject] = field(default_factory=dict)


class GroupOperator(DeltaOperator):
    """
    Groups entries by ``group_key``; entries failing ``group_filter`` are
    kept out of (and taken out of) every group.
    """

    name = "group_delta"

    def __init__(
        self,
        create_group: Callable[[Hashable], GroupObject],
        group_key: Callable[[Any], Hashable],
        group_filter: Optional[Callable[[Any], bool]] = None,
    ) -> None:
        self._create_group = create_group
        self._group_key = group_key
        self._group_filter = group_filter

    def create_state(self) -> GroupState:
        return GroupState()

    def apply(self, state: GroupState, delta: MapDelta) -> None:
        for entry in delta.modified.values():
            self._assign(state, entry)
        for entry in delta.added.values():
            self._assign(state, entry)
        for entry in delta.deleted.values():
            self._unassign(state, entry)

    def reset(self, state: GroupState) -> None:
        super().reset(state)
        state.assignments.clear()

    def _assign(self, state: GroupState, entry: Any) -> None:
        if self._group_filter is not None and not self._group_filter(entry):
            self._unassign(state, entry)
            return

        key = self._group_key(entry)
        last_group = state.assignments.get(entry.id)
        if last_group is not None and last_group.id != key:
            self._release(state, last_group, entry)

        group = state.scratch.get(key)
        if group is None:
            group = self._create_group(key)
        group.add(entry)
        state.assignments[entry.id] = group
        state.scratch.add(group)

    def _unassign(self, state: GroupState, entry: Any) -> None:
        group = state.assignments.pop(entry.id, None)
        if group is not None:
            self._release(state, group, entry)

    def _release(self, state: GroupState, group: GroupObject, entry: Any) -> None:
        if group.remove(entry):
            state.scratch.add(group)
        else:
            state.scratch.delete(group.id)


def group_delta(
    create_group: Callable[[Hashable], GroupObject],
    group_key: Callable[[Any], Hashable],
    group_filter: Optional[Callable[[Any], bool]] = None,
) -> GroupOperator:
    return GroupOperator(create_group, group_key, group_filter)
