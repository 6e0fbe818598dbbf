import pytest

from core.services.menu_drop import MenuMoveRejected
from core.services.menu_editor import (
    EditorNotReady,
    EditorState,
    MenuEditorSession,
    has_unsaved_changes,
    plan_updates,
    push_updates,
)
from core.services.menu_store import MenuLoadError, MenuStoreError
from core.services.menu_tree import build_tree, find_node, structure
from helpers import FakeMenuStore, node


@pytest.fixture
def editor(fake_store):
    return MenuEditorSession.load(fake_store)


def test_load_builds_clean_tree(editor):
    assert editor.state == EditorState.CLEAN
    assert not editor.is_dirty
    assert [n.id for n in editor.tree] == ["w", "x", "y", "z"]


def test_load_failure_sets_state_and_blocks_edits():
    store = FakeMenuStore(fail_load=True)
    editor = MenuEditorSession(store)
    with pytest.raises(MenuLoadError):
        editor.reload()
    assert editor.state == EditorState.LOAD_FAILED
    assert editor.error == "database unavailable"
    with pytest.raises(EditorNotReady):
        editor.drop("a", "b", "on")
    assert editor.snapshot()["dirty"] is False


def test_drop_marks_dirty_and_discard_restores(editor):
    original = structure(editor.tree)
    editor.drop("w", "y", "before")
    assert editor.state == EditorState.DIRTY
    assert editor.is_dirty

    editor.discard()
    assert editor.state == EditorState.CLEAN
    assert not editor.is_dirty
    assert structure(editor.tree) == original


def test_moving_back_to_original_position_is_clean(editor):
    editor.drop("w", "y", "before")
    editor.drop("w", "x", "before")
    assert editor.state == EditorState.CLEAN
    assert not editor.is_dirty


def test_rejected_drop_leaves_session_untouched(editor):
    before = structure(editor.tree)
    with pytest.raises(MenuMoveRejected):
        editor.drop("x", "x1", "on")
    assert structure(editor.tree) == before
    assert editor.state == EditorState.CLEAN


def test_save_sends_only_changed_positions(editor, fake_store):
    editor.drop("w", "y", "before")
    result = editor.save()

    assert result.ok
    assert sorted(c[0] for c in fake_store.position_calls) == ["w", "x"]
    assert editor.state == EditorState.CLEAN
    assert not editor.is_dirty
    assert fake_store.rows["w"].sort_order == 1
    assert fake_store.rows["x"].sort_order == 0


def test_save_all_strategy_sends_every_node(editor, fake_store, settings):
    settings.MENU_EDITOR = {"SAVE_STRATEGY": "all", "SAVE_WORKERS": 1}
    editor.drop("w", "y", "before")
    result = editor.save()
    assert len(result.saved) == 6
    assert len(fake_store.position_calls) == 6


def test_partial_failure_keeps_unsaved_flag():
    store = FakeMenuStore(
        [node("41", sort_order=0), node("42", sort_order=1), node("43", sort_order=2)],
        fail_ids={"42"},
    )
    editor = MenuEditorSession.load(store)
    editor.drop("43", "41", "before")

    result = editor.save()

    assert not result.ok
    assert result.failed == ["42"]
    assert sorted(result.saved) == ["41", "43"]
    assert "42" in result.errors
    assert editor.state == EditorState.DIRTY_PARTIAL_FAILURE
    assert editor.is_dirty
    assert editor.snapshot()["dirty"] is True


def test_retry_after_partial_failure_sends_only_the_failed_node():
    store = FakeMenuStore(
        [node("41", sort_order=0), node("42", sort_order=1), node("43", sort_order=2)],
        fail_ids={"42"},
    )
    editor = MenuEditorSession.load(store)
    editor.drop("43", "41", "before")
    editor.save()

    store.fail_ids.clear()
    store.position_calls.clear()
    result = editor.save()

    assert result.ok
    assert store.position_calls == [("42", None, 2)]
    assert editor.state == EditorState.CLEAN


def test_concurrent_save_collects_every_outcome(settings):
    settings.MENU_EDITOR = {"SAVE_WORKERS": 4, "SAVE_STRATEGY": "all"}
    flat = [node(f"n{i}", sort_order=i) for i in range(10)]
    store = FakeMenuStore(flat, fail_ids={"n3", "n7"})
    editor = MenuEditorSession.load(store)

    result = editor.save()

    assert result.failed == ["n3", "n7"]
    assert len(result.saved) == 8
    assert store.closed == 10


def test_push_updates_continues_after_failure():
    store = FakeMenuStore([node("a"), node("b", sort_order=1)], fail_ids={"a"})
    updates = plan_updates(build_tree([node("b"), node("a", sort_order=1)]), store.fetch_all())
    result = push_updates(store, updates)
    assert result.failed == ["a"]
    assert result.saved == ["b"]


def test_plan_updates_repairs_legacy_numbering():
    stored = [node("a", sort_order=1), node("b", sort_order=5)]
    forest = build_tree(stored)
    assert not has_unsaved_changes(forest, stored)
    planned = plan_updates(forest, stored)
    assert [(u.id, u.sort_order) for u in planned] == [("a", 0), ("b", 1)]


def test_add_item_writes_through(editor, fake_store):
    created = editor.add_item("Reports", "/reports", parent_id="x")
    assert created.id in fake_store.rows
    x = find_node(editor.tree, "x")
    assert x.children[-1].id == created.id
    assert created.sort_order == 2
    assert editor.state == EditorState.CLEAN


def test_failed_create_is_rolled_back(editor, fake_store):
    fake_store.fail_writes = True
    before = structure(editor.tree)
    with pytest.raises(MenuStoreError):
        editor.add_item("Reports", "/reports")
    assert structure(editor.tree) == before
    assert len(editor.original) == 6


def test_duplicate_inserts_copy_after_source(editor, fake_store):
    copy = editor.duplicate_item("x")
    assert copy.label == "X (copy)"
    assert [n.id for n in editor.tree][2] == copy.id
    assert copy.children == []
    assert copy.id in fake_store.rows
    # y and z moved down one slot and still need saving
    assert editor.state == EditorState.DIRTY


def test_delete_refuses_items_with_children(editor):
    with pytest.raises(MenuMoveRejected) as exc:
        editor.delete_item("x")
    assert exc.value.code == "has_children"


def test_delete_leaf(editor, fake_store):
    editor.delete_item("x2")
    assert "x2" not in fake_store.rows
    assert find_node(editor.tree, "x2") is None


def test_failed_delete_is_rolled_back(editor, fake_store):
    fake_store.fail_writes = True
    with pytest.raises(MenuStoreError):
        editor.delete_item("x2")
    assert [n.id for n in find_node(editor.tree, "x").children] == ["x1", "x2"]


def test_update_item_changes_fields_only(editor, fake_store):
    editor.update_item("y", label="Why", is_active=False)
    assert find_node(editor.tree, "y").label == "Why"
    assert fake_store.rows["y"].is_active is False
    assert editor.state == EditorState.CLEAN


def test_failed_update_is_rolled_back(editor, fake_store):
    fake_store.fail_writes = True
    with pytest.raises(MenuStoreError):
        editor.update_item("y", label="Why")
    assert find_node(editor.tree, "y").label == "Y"


def test_session_serialization_round_trip(editor, fake_store):
    editor.drop("z", "x", "on")
    restored = MenuEditorSession.from_dict(fake_store, editor.to_dict())
    assert restored.state == EditorState.DIRTY
    assert structure(restored.tree) == structure(editor.tree)
    assert restored.is_dirty
