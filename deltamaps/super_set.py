"""
SuperSet - Multi-Membership Delta Collections
=============================================

A superset is a ``DeltaSet`` of ``MemberObject`` values, each tagged with the
subsets it belongs to through its ``member_of`` set. For every tag the
superset keeps a subset holding exactly the members carrying that tag:

- ``SimpleSuperSet`` exposes each subset as a read-only mapping.
- ``SuperSet`` exposes each subset as its own ``DeltaSet`` with its own
  ``deltas`` stream, pausable independently of the superset.

A member whose ``member_of`` becomes empty is removed from the superset.

Subset bookkeeping lives in a ``SimpleSubsetIndex``/``SubsetIndex`` that is
plugged into the superset as its ``DeltaHook``: every effective ``set`` or
``delete`` the superset applies is mirrored into the affected subsets.

Example:
    ```python
    tasks = SuperSet()
    tasks.subsets.get("urgent").deltas.subscribe(print)

    tasks.add(Task(id="t1", member_of={"urgent", "home"}))
    tasks.subsets.delete("home")     # t1 stays, now only "urgent"
    tasks.subsets.delete("urgent")   # t1 has no subsets left and is removed
    ```
"""

import logging
from contextlib import contextmanager
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    FrozenSet,
    Generic,
    Hashable,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    TypeVar,
)

from .delta_map import DeltaHook
from .delta_set import DeltaSet
from .types import DeltaMapSettings, IsModified

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")
M = TypeVar("M", bound=Hashable)

_NO_GROUPS: FrozenSet[Any] = frozenset()


class SimpleSubsetIndex(DeltaHook[K, V], Generic[M, K, V]):
    """
    Subset index of a ``SimpleSuperSet``; also its public ``subsets`` accessor.

    The index records, per member key, the groups it last reconciled that
    member into. Reconciliation compares against that record rather than the
    previous value, so mutating ``member_of`` in place is safe.
    """

    def __init__(self, owner: "SimpleSuperSet") -> None:
        self._owner = owner
        self._subsets: Dict[M, Any] = {}
        self._memberships: Dict[K, FrozenSet[M]] = {}

    # ========================================================================
    # HOOK
    # ========================================================================

    def entry_set(self, key: K, value: V, previous: Optional[V]) -> None:
        old_groups = self._memberships.get(key, _NO_GROUPS)
        new_groups = frozenset(value.member_of)

        for group in old_groups - new_groups:
            subset = self._subsets.get(group)
            if subset is not None:
                self._remove_member(subset, key)
        for group in new_groups:
            self._put_member(self._get_or_create(group), value)

        if new_groups:
            self._memberships[key] = new_groups
        else:
            self._memberships.pop(key, None)

    def entry_deleted(self, key: K, previous: V) -> None:
        for group in self._memberships.pop(key, _NO_GROUPS):
            subset = self._subsets.get(group)
            if subset is not None:
                self._remove_member(subset, key)

    # ========================================================================
    # PUBLIC ACCESSOR
    # ========================================================================

    def get(self, group: M) -> Mapping[K, V]:
        """Return the subset for ``group``, creating an empty one if needed."""
        return self._view(self._get_or_create(group))

    def has(self, group: M) -> bool:
        return group in self._subsets

    def __contains__(self, group: object) -> bool:
        return group in self._subsets

    @property
    def size(self) -> int:
        return len(self._subsets)

    def __len__(self) -> int:
        return len(self._subsets)

    def __iter__(self) -> Iterator[M]:
        return iter(list(self._subsets))

    def keys(self) -> List[M]:
        return list(self._subsets)

    def values(self) -> List[Mapping[K, V]]:
        return [self._view(subset) for subset in self._subsets.values()]

    def items(self) -> List[Tuple[M, Mapping[K, V]]]:
        return [(group, self._view(subset)) for group, subset in self._subsets.items()]

    def empty(self, group: M) -> None:
        """
        Remove every member from the subset.

        Each member loses the ``group`` tag; members left without any tag are
        deleted from the superset.
        """
        subset = self._subsets.get(group)
        if subset is None:
            return
        with self.batched():
            for member in self._member_values(subset):
                member.member_of.discard(group)
                self._owner._do_add(member, False)
                if self._contains(subset, member.id):
                    # is_modified rejected the update, drop the tag directly
                    self._remove_member(subset, member.id)
                    recorded = self._memberships.get(member.id, _NO_GROUPS)
                    self._memberships[member.id] = recorded - {group}

    def delete(self, group: M) -> None:
        """Empty the subset and discard it."""
        if group not in self._subsets:
            return
        self.empty(group)
        subset = self._subsets.pop(group)
        logging.debug(f"Deleted subset {group!r}")
        self._discard(subset)

    def delete_members(self, group: M) -> None:
        """Delete every member of the subset from the superset."""
        subset = self._subsets.get(group)
        if subset is None:
            return
        with self.batched():
            for member in self._member_values(subset):
                self._owner._do_delete(member.id)

    def discard_all(self) -> None:
        for group in list(self._subsets):
            self._discard(self._subsets.pop(group))
        self._memberships.clear()

    @contextmanager
    def batched(self):
        """Collect superset changes into a single delta for the block."""
        with self._owner.batch():
            yield self

    # ========================================================================
    # SUBSET CONTAINER
    # ========================================================================

    def _get_or_create(self, group: M) -> Any:
        subset = self._subsets.get(group)
        if subset is None:
            subset = self._create_subset(group)
            self._subsets[group] = subset
        return subset

    def _create_subset(self, group: M) -> Any:
        return {}

    def _put_member(self, subset: Any, value: V) -> None:
        subset[value.id] = value

    def _remove_member(self, subset: Any, key: K) -> None:
        subset.pop(key, None)

    def _contains(self, subset: Any, key: K) -> bool:
        return key in subset

    def _member_values(self, subset: Any) -> List[V]:
        return list(subset.values())

    def _view(self, subset: Any) -> Mapping[K, V]:
        return MappingProxyType(subset)

    def _discard(self, subset: Any) -> None:
        subset.clear()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._subsets)!r})"


class SubsetIndex(SimpleSubsetIndex[M, K, V]):
    """
    Subset index of a ``SuperSet``: every subset is an observable ``DeltaSet``.

    Subset streams can be paused as a whole with ``pause_deltas`` and
    ``resume_deltas``. Bulk superset operations pause them internally as well,
    so each affected subset publishes at most once per operation.
    """

    def __init__(self, owner: "SuperSet", settings: DeltaMapSettings) -> None:
        super().__init__(owner)
        self._settings = settings
        self._paused_by_caller = False
        self._pause_depth = 0

    @property
    def paused(self) -> bool:
        return self._paused_by_caller or self._pause_depth > 0

    def get(self, group: M) -> DeltaSet[K, V]:
        return self._get_or_create(group)

    def pause_deltas(self) -> None:
        """Pause the ``deltas`` of every subset until ``resume_deltas``."""
        if not self.paused:
            self._pause_all()
        self._paused_by_caller = True

    def resume_deltas(self) -> None:
        """Publish the pending changes of every subset."""
        self._paused_by_caller = False
        if not self.paused:
            self._resume_all()

    @contextmanager
    def batched(self):
        """Single superset delta, then at most one delta per subset."""
        if not self.paused:
            self._pause_all()
        self._pause_depth += 1
        try:
            with self._owner.batch():
                yield self
        finally:
            self._pause_depth -= 1
            if not self.paused:
                self._resume_all()

    def _pause_all(self) -> None:
        for subset in list(self._subsets.values()):
            subset.pause_delta()

    def _resume_all(self) -> None:
        for subset in list(self._subsets.values()):
            subset.resume_delta()

    def _create_subset(self, group: M) -> DeltaSet[K, V]:
        subset = DeltaSet(
            is_modified=self._settings.is_modified,
            publish_empty=self._settings.publish_empty,
            key=f"subset:{group}",
        )
        if self.paused:
            subset.pause_delta()
        logging.debug(f"Created subset {group!r}")
        return subset

    def _put_member(self, subset: DeltaSet[K, V], value: V) -> None:
        subset.add(value)

    def _remove_member(self, subset: DeltaSet[K, V], key: K) -> None:
        subset.delete(key)

    def _view(self, subset: DeltaSet[K, V]) -> DeltaSet[K, V]:
        return subset

    def _discard(self, subset: DeltaSet[K, V]) -> None:
        subset.destroy()


class SimpleSuperSet(DeltaSet[K, V]):
    """
    ``DeltaSet`` of ``MemberObject`` values with plain per-tag subsets.

    Args:
        entries: Optional members to seed the superset with.
        is_modified: Comparator for updates of existing members.
        publish_empty: Publish the first batch even if it holds no changes.
        key: Name used for the delta stream.
    """

    def __init__(
        self,
        entries: Optional[Iterable[V]] = None,
        *,
        is_modified: Optional[IsModified] = None,
        publish_empty: bool = True,
        key: Optional[str] = None,
    ) -> None:
        self._subsets = self._create_index()
        super().__init__(
            None,
            is_modified=is_modified,
            publish_empty=publish_empty,
            hook=self._subsets,
            key=key,
        )
        if entries is not None:
            for entry in entries:
                self._do_add(entry, False)

    def _create_index(self) -> SimpleSubsetIndex:
        return SimpleSubsetIndex(self)

    @property
    def subsets(self) -> SimpleSubsetIndex:
        return self._subsets

    def add(
        self, entry: V, merge_existing_subsets: bool = False
    ) -> "SimpleSuperSet[K, V]":
        """
        Add or modify a member and update the subsets it belongs to.

        With ``merge_existing_subsets`` the tags of the current member with
        the same id are merged into ``entry.member_of`` first. A member
        without tags is deleted instead.
        """
        self._check_alive()
        self._do_add(entry, merge_existing_subsets)
        self._publish_delta()
        return self

    def add_multiple(
        self, entries: Iterable[V], merge_existing_subsets: bool = False
    ) -> None:
        self._check_alive()
        with self._subsets.batched():
            for entry in entries:
                self._do_add(entry, merge_existing_subsets)

    def replace(self, entries: Iterable[V]) -> None:
        self._check_alive()
        with self._subsets.batched():
            self._replace(entries)

    def delete_subset_items(self, group: M) -> None:
        """Delete every member of ``group`` from the superset and all subsets."""
        self._check_alive()
        self._subsets.delete_members(group)

    def clear(self) -> None:
        """Delete every member; each subset publishes at most one delta."""
        self._check_alive()
        with self._subsets.batched():
            super().clear()

    def destroy(self) -> None:
        if self._destroyed:
            return
        with self._subsets.batched():
            super().destroy()
        self._subsets.discard_all()

    def _set_entry(self, entry: V) -> None:
        self._do_add(entry, False)

    def _do_add(self, entry: V, merge_existing_subsets: bool) -> None:
        if merge_existing_subsets:
            previous = self._table.get(entry.id)
            if previous is not None:
                entry.member_of.update(previous.member_of)
        if entry.member_of:
            self._do_set(entry.id, entry)
        else:
            self._do_delete(entry.id)


class SuperSet(SimpleSuperSet[K, V]):
    """
    ``DeltaSet`` of ``MemberObject`` values whose subsets are ``DeltaSet``s.

    Args:
        subset_settings: ``is_modified``/``publish_empty`` for every subset.
    """

    def __init__(
        self,
        entries: Optional[Iterable[V]] = None,
        *,
        is_modified: Optional[IsModified] = None,
        publish_empty: bool = True,
        subset_settings: Optional[DeltaMapSettings] = None,
        key: Optional[str] = None,
    ) -> None:
        self._subset_settings = subset_settings or DeltaMapSettings()
        super().__init__(
            entries, is_modified=is_modified, publish_empty=publish_empty, key=key
        )

    def _create_index(self) -> SubsetIndex:
        return SubsetIndex(self, self._subset_settings)

    @property
    def subsets(self) -> SubsetIndex:
        return self._subsets
