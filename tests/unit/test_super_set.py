"""Unit tests for SimpleSuperSet and SuperSet subset bookkeeping."""

import pytest

from deltamaps import (
    CollectionDestroyedError,
    DeltaMapSettings,
    DeltaSet,
    SimpleSuperSet,
    SuperSet,
    values_differ,
)
from tests.test_factories import Member, create_delta_recorder

# ============================================================================
# SimpleSuperSet
# ============================================================================


@pytest.mark.unit
@pytest.mark.superset
def test_simple_superset_tracks_members_per_tag():
    """Each tag gets a subset holding the members carrying it."""
    members = SimpleSuperSet()

    members.add(Member("m1", {"a", "b"}))
    members.add(Member("m2", {"b"}))

    assert sorted(members.subsets.get("a")) == ["m1"]
    assert sorted(members.subsets.get("b")) == ["m1", "m2"]
    assert sorted(members.subsets) == ["a", "b"]
    assert members.subsets.size == 2


@pytest.mark.unit
@pytest.mark.superset
def test_simple_subsets_are_read_only():
    """Plain subsets cannot be written to."""
    members = SimpleSuperSet([Member("m1", {"a"})])

    with pytest.raises(TypeError):
        members.subsets.get("a")["m2"] = Member("m2", {"a"})


@pytest.mark.unit
@pytest.mark.superset
def test_get_creates_empty_subset_lazily():
    """get creates an empty subset that fills up later."""
    members = SimpleSuperSet()
    assert not members.subsets.has("later")

    subset = members.subsets.get("later")
    assert len(subset) == 0
    assert "later" in members.subsets

    members.add(Member("m1", {"later"}))
    assert list(subset) == ["m1"]


@pytest.mark.unit
@pytest.mark.superset
def test_member_moves_between_subsets():
    """Changing tags moves a member between subsets."""
    members = SimpleSuperSet([Member("m1", {"a"})])

    members.add(Member("m1", {"b"}))

    assert len(members.subsets.get("a")) == 0
    assert list(members.subsets.get("b")) == ["m1"]


@pytest.mark.unit
@pytest.mark.superset
def test_member_without_tags_is_deleted():
    """A member whose tags become empty leaves the superset."""
    members = SimpleSuperSet([Member("m1", {"a"})])

    members.add(Member("m1", set()))

    assert "m1" not in members
    assert len(members.subsets.get("a")) == 0


@pytest.mark.unit
@pytest.mark.superset
@pytest.mark.edge_case
def test_adding_untagged_new_member_is_a_no_op():
    """A new member without tags is not stored."""
    members = SimpleSuperSet()

    members.add(Member("m1"))

    assert len(members) == 0


@pytest.mark.unit
@pytest.mark.superset
def test_merge_existing_subsets_keeps_previous_tags():
    """merge_existing_subsets unites old and new tags."""
    members = SimpleSuperSet([Member("m1", {"a"})])

    members.add(Member("m1", {"b"}), merge_existing_subsets=True)

    assert members["m1"].member_of == {"a", "b"}
    assert "m1" in members.subsets.get("a")
    assert "m1" in members.subsets.get("b")


@pytest.mark.unit
@pytest.mark.superset
def test_in_place_member_of_change_is_reconciled():
    """Mutating member_of on the stored object and re-adding it still moves it."""
    member = Member("m1", {"a"})
    members = SimpleSuperSet([member])

    member.member_of.discard("a")
    member.member_of.add("b")
    members.add(member)

    assert len(members.subsets.get("a")) == 0
    assert list(members.subsets.get("b")) == ["m1"]


@pytest.mark.unit
@pytest.mark.superset
def test_deleting_member_removes_it_from_all_subsets():
    """Deleting a member removes it from each of its subsets."""
    members = SimpleSuperSet([Member("m1", {"a", "b"}), Member("m2", {"b"})])

    members.delete("m1")

    assert len(members.subsets.get("a")) == 0
    assert list(members.subsets.get("b")) == ["m2"]


# ============================================================================
# Subset emptying and deletion
# ============================================================================


@pytest.mark.unit
@pytest.mark.superset
def test_deleting_subsets_one_by_one_removes_member_last():
    """A member tagged A and B survives deletion of A and goes with B."""
    members = SuperSet()
    members.add(Member("x", {"A", "B"}))
    recorder = create_delta_recorder(members.deltas)
    recorder.clear()

    members.subsets.delete("A")

    assert "x" in members
    assert members["x"].member_of == {"B"}
    assert "A" not in members.subsets
    assert list(recorder.last.modified) == ["x"]

    members.subsets.delete("B")

    assert "x" not in members
    assert list(recorder.last.deleted) == ["x"]
    assert members.subsets.size == 0


@pytest.mark.unit
@pytest.mark.superset
def test_empty_keeps_subset_but_removes_members():
    """empty strips the tag from members and keeps the subset."""
    members = SuperSet([Member("m1", {"a"}), Member("m2", {"a", "b"})])
    recorder = create_delta_recorder(members.deltas)
    members.resume_delta()
    recorder.clear()

    members.subsets.empty("a")

    assert "a" in members.subsets
    assert len(members.subsets.get("a")) == 0
    assert "m1" not in members
    assert members["m2"].member_of == {"b"}
    assert len(recorder) == 1
    assert list(recorder.last.deleted) == ["m1"]
    assert list(recorder.last.modified) == ["m2"]


@pytest.mark.unit
@pytest.mark.superset
def test_empty_with_comparator_rejecting_update_still_drops_tag():
    """Members are taken out of the subset even if is_modified sees no change."""
    members = SimpleSuperSet(is_modified=lambda new, old: new is not old)
    member = Member("m1", {"a", "b"})
    members.add(member)

    members.subsets.empty("a")

    assert len(members.subsets.get("a")) == 0
    assert list(members.subsets.get("b")) == ["m1"]

    members.subsets.delete("b")
    assert "m1" not in members


@pytest.mark.unit
@pytest.mark.superset
def test_delete_subset_items_removes_members_everywhere():
    """delete_subset_items deletes the members from the superset in one delta."""
    members = SuperSet(
        [Member("m1", {"a", "b"}), Member("m2", {"a"}), Member("m3", {"c"})]
    )
    recorder = create_delta_recorder(members.deltas)
    members.resume_delta()
    recorder.clear()

    members.delete_subset_items("a")

    assert sorted(members) == ["m3"]
    assert len(members.subsets.get("b")) == 0
    assert len(recorder) == 1
    assert sorted(recorder.last.deleted) == ["m1", "m2"]


@pytest.mark.unit
@pytest.mark.superset
@pytest.mark.edge_case
def test_operations_on_unknown_subset_are_no_ops(super_set):
    """Subset operations on an unknown tag do nothing."""
    super_set.subsets.empty("missing")
    super_set.subsets.delete("missing")
    super_set.delete_subset_items("missing")

    assert super_set.subsets.size == 0


# ============================================================================
# SuperSet subset streams
# ============================================================================


@pytest.mark.unit
@pytest.mark.superset
def test_subsets_are_observable_delta_sets(super_set):
    """SuperSet subsets are DeltaSets with their own stream."""
    subset = super_set.subsets.get("a")
    assert isinstance(subset, DeltaSet)
    recorder = create_delta_recorder(subset.deltas)
    recorder.clear()

    super_set.add(Member("m1", {"a"}))

    assert list(recorder.last.added) == ["m1"]


@pytest.mark.unit
@pytest.mark.superset
def test_add_multiple_publishes_once_per_subset(super_set):
    """add_multiple publishes once on the superset and once per subset."""
    a_recorder = create_delta_recorder(super_set.subsets.get("a").deltas)
    b_recorder = create_delta_recorder(super_set.subsets.get("b").deltas)
    recorder = create_delta_recorder(super_set.deltas)
    for each in (a_recorder, b_recorder, recorder):
        each.clear()

    super_set.add_multiple(
        [Member("m1", {"a"}), Member("m2", {"a", "b"}), Member("m3", {"b"})]
    )

    assert len(recorder) == 1
    assert len(a_recorder) == 1
    assert len(b_recorder) == 1
    assert sorted(a_recorder.last.added) == ["m1", "m2"]
    assert sorted(b_recorder.last.added) == ["m2", "m3"]


@pytest.mark.unit
@pytest.mark.superset
def test_subset_created_during_bulk_operation_publishes_once(super_set):
    """A subset created mid-operation publishes once at the end."""
    published = []

    super_set.add_multiple([Member("m1", {"new"}), Member("m2", {"new"})])
    super_set.subsets.get("new").deltas.subscribe(published.append)

    assert len(published) == 1
    assert sorted(published[0].all) == ["m1", "m2"]


@pytest.mark.unit
@pytest.mark.superset
def test_pause_deltas_holds_subset_changes(super_set):
    """pause_deltas holds subset changes until resume_deltas."""
    recorder = create_delta_recorder(super_set.subsets.get("a").deltas)
    recorder.clear()

    super_set.subsets.pause_deltas()
    super_set.add(Member("m1", {"a"}))
    super_set.add(Member("m2", {"a"}))
    super_set.add_multiple([Member("m3", {"a"})])
    assert len(recorder) == 0
    assert super_set.subsets.paused

    super_set.subsets.resume_deltas()

    assert len(recorder) == 1
    assert sorted(recorder.last.added) == ["m1", "m2", "m3"]
    assert not super_set.subsets.paused


@pytest.mark.unit
@pytest.mark.superset
def test_subset_created_while_paused_starts_paused(super_set):
    """Subsets created while paused wait for resume_deltas."""
    super_set.subsets.pause_deltas()
    super_set.add(Member("m1", {"late"}))

    recorder = create_delta_recorder(super_set.subsets.get("late").deltas)
    assert len(recorder) == 0

    super_set.subsets.resume_deltas()
    assert list(recorder.last.added) == ["m1"]


@pytest.mark.unit
@pytest.mark.superset
def test_replace_reconciles_members_and_subsets(super_set):
    """replace reconciles the superset and each subset in one delta."""
    super_set.add_multiple([Member("m1", {"a"}), Member("m2", {"a", "b"})])
    a_recorder = create_delta_recorder(super_set.subsets.get("a").deltas)
    a_recorder.clear()

    super_set.replace([Member("m2", {"b"}), Member("m3", {"a"})])

    assert sorted(super_set) == ["m2", "m3"]
    assert sorted(super_set.subsets.get("a")) == ["m3"]
    assert sorted(super_set.subsets.get("b")) == ["m2"]
    assert len(a_recorder) == 1
    assert sorted(a_recorder.last.deleted) == ["m1", "m2"]
    assert list(a_recorder.last.added) == ["m3"]


@pytest.mark.unit
@pytest.mark.superset
def test_subset_settings_apply_to_every_subset():
    """subset_settings configure the comparator of every subset."""
    members = SuperSet(
        subset_settings=DeltaMapSettings(is_modified=values_differ, publish_empty=False)
    )
    subset = members.subsets.get("a")
    recorder = create_delta_recorder(subset.deltas)
    members.add(Member("m1", {"a"}, label="x"))
    recorder.clear()

    members.add(Member("m1", {"a"}, label="x"))
    assert len(recorder) == 0

    members.add(Member("m1", {"a"}, label="y"))
    assert list(recorder.last.modified) == ["m1"]


@pytest.mark.unit
@pytest.mark.superset
def test_deleted_subset_is_destroyed(super_set):
    """Deleting a subset destroys and completes it."""
    super_set.add(Member("m1", {"a", "b"}))
    subset = super_set.subsets.get("a")
    recorder = create_delta_recorder(subset.deltas)

    super_set.subsets.delete("a")

    assert recorder.completed == 1
    assert subset.destroyed
    assert "a" not in super_set.subsets


@pytest.mark.unit
@pytest.mark.superset
def test_destroy_completes_superset_and_subsets(super_set):
    """destroy completes the superset and every subset."""
    super_set.add(Member("m1", {"a"}))
    subset_recorder = create_delta_recorder(super_set.subsets.get("a").deltas)
    recorder = create_delta_recorder(super_set.deltas)
    subset_recorder.clear()

    super_set.destroy()

    assert recorder.completed == 1
    assert subset_recorder.completed == 1
    assert list(subset_recorder.last.deleted) == ["m1"]
    assert super_set.subsets.size == 0
    with pytest.raises(CollectionDestroyedError):
        super_set.add(Member("m2", {"a"}))


@pytest.mark.unit
@pytest.mark.superset
def test_clear_publishes_once_per_subset(super_set):
    """Clearing the superset coalesces each subset's deletions into one delta."""
    super_set.add_multiple(
        [Member("a", {"A"}), Member("b", {"A", "B"}), Member("c", {"A"})]
    )
    a_recorder = create_delta_recorder(super_set.subsets.get("A").deltas)
    b_recorder = create_delta_recorder(super_set.subsets.get("B").deltas)
    recorder = create_delta_recorder(super_set.deltas)
    for each in (a_recorder, b_recorder, recorder):
        each.clear()

    super_set.clear()

    assert len(super_set) == 0
    assert len(recorder) == 1
    assert sorted(recorder.last.deleted) == ["a", "b", "c"]
    assert len(a_recorder) == 1
    assert sorted(a_recorder.last.deleted) == ["a", "b", "c"]
    assert len(b_recorder) == 1
    assert list(b_recorder.last.deleted) == ["b"]


@pytest.mark.unit
@pytest.mark.superset
def test_destroy_publishes_once_per_subset(super_set):
    """Destroying the superset sends each subset one deletion delta, then completes it."""
    super_set.add_multiple([Member("a", {"A"}), Member("b", {"A"})])
    a_recorder = create_delta_recorder(super_set.subsets.get("A").deltas)
    a_recorder.clear()

    super_set.destroy()

    assert len(a_recorder) == 1
    assert sorted(a_recorder.last.deleted) == ["a", "b"]
    assert a_recorder.completed == 1
