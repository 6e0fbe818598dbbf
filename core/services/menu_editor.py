"""Menu tree editing session.

One session holds two things:

- ``original``: the flat list exactly as the store last reported (or as we
  last wrote it). Stored parent/sort values live here.
- ``tree``: the in-memory forest the admin is rearranging.

Tree edits never touch the store. ``save()`` flattens the tree and pushes
per-node position updates; ``discard()`` rebuilds the tree from
``original``. Point edits (create, duplicate, delete, field changes) are
written through immediately: applied locally, written to the store, and
reverted locally if the write fails.
"""
from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace

from django.conf import settings
from django.db import models

from core.services.menu_drop import MenuMoveRejected, move_to_root, resolve_drop
from core.services.menu_store import MenuLoadError, MenuStoreError
from core.services.menu_tree import (
    MenuNode,
    build_tree,
    copy_tree,
    find_node,
    find_siblings,
    flatten_tree,
    structure,
)

logger = logging.getLogger(__name__)

DEFAULTS = {
    "SAVE_WORKERS": 4,
    "SAVE_STRATEGY": "changed",  # "changed" | "all"
    "SESSION_KEY": "menu_editor",
}


def editor_settings() -> dict:
    return {**DEFAULTS, **getattr(settings, "MENU_EDITOR", {})}


class EditorState(models.TextChoices):
    LOADING = "loading", "Loading"
    LOAD_FAILED = "load_failed", "Load failed"
    CLEAN = "clean", "Clean"
    DIRTY = "dirty", "Dirty"
    SAVING = "saving", "Saving"
    DIRTY_PARTIAL_FAILURE = "dirty_partial_failure", "Dirty (partial save failure)"


class EditorNotReady(RuntimeError):
    """Editing attempted while the session has no loaded tree."""


@dataclass
class PositionUpdate:
    id: str
    parent_id: str | None
    sort_order: int


@dataclass
class SaveResult:
    saved: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {"saved": self.saved, "failed": self.failed, "errors": self.errors}


def has_unsaved_changes(current: list[MenuNode], original: list[MenuNode]) -> bool:
    """Structural comparison: same ids under the same parents in the same order."""
    return structure(current) != structure(build_tree(original))


def plan_updates(
    current: list[MenuNode],
    original: list[MenuNode],
    strategy: str = "changed",
) -> list[PositionUpdate]:
    """Position updates needed to persist ``current``.

    "changed" compares against the stored values in ``original`` (not the
    renumbered ones), so legacy gaps and dangling parents get repaired on
    the first save that touches them. "all" sends every node.
    """
    stored = {n.id: (n.parent_id, n.sort_order) for n in original}
    updates = []
    for node in flatten_tree(current):
        if strategy == "all" or stored.get(node.id) != (node.parent_id, node.sort_order):
            updates.append(PositionUpdate(node.id, node.parent_id, node.sort_order))
    return updates


def push_updates(store, updates: list[PositionUpdate], max_workers: int = 1) -> SaveResult:
    """Fire one update per node and collect every outcome.

    With max_workers > 1 the updates run concurrently on a thread pool;
    each worker releases its store connection when done. A failure on one
    node never stops the others.
    """
    result = SaveResult()

    def run(update: PositionUpdate) -> None:
        store.update_position(update.id, update.parent_id, update.sort_order)

    def run_in_worker(update: PositionUpdate) -> None:
        try:
            run(update)
        finally:
            store.close_connection()

    def record(update: PositionUpdate, error: Exception | None) -> None:
        if error is None:
            result.saved.append(update.id)
        else:
            logger.warning("Menu position update failed for %s: %s", update.id, error)
            result.failed.append(update.id)
            result.errors[update.id] = str(error)

    if max_workers <= 1:
        for update in updates:
            try:
                run(update)
            except Exception as e:  # noqa: BLE001 - collected per node
                record(update, e)
            else:
                record(update, None)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {pool.submit(run_in_worker, u): u for u in updates}
            for future in as_completed(futures):
                record(futures[future], future.exception())

    result.saved.sort()
    result.failed.sort()
    return result


class MenuEditorSession:
    def __init__(self, store, *, original=None, tree=None, state=EditorState.LOADING, error=""):
        self.store = store
        self.original: list[MenuNode] = original or []
        self.tree: list[MenuNode] = tree if tree is not None else build_tree(self.original)
        self.state = EditorState(state)
        self.error = error

    # -- loading -----------------------------------------------------------

    @classmethod
    def load(cls, store) -> MenuEditorSession:
        session = cls(store)
        session.reload()
        return session

    def reload(self) -> None:
        """Fetch from the store and rebuild; unsaved edits are dropped."""
        self.state = EditorState.LOADING
        try:
            flat = self.store.fetch_all()
        except MenuLoadError as e:
            logger.error("Menu load failed: %s", e)
            self.state = EditorState.LOAD_FAILED
            self.error = str(e)
            raise
        self.original = [replace(n, children=[]) for n in flat]
        self.tree = build_tree(self.original)
        self.state = EditorState.CLEAN
        self.error = ""

    def _require_loaded(self) -> None:
        if self.state in (EditorState.LOADING, EditorState.LOAD_FAILED):
            raise EditorNotReady("Menu items are not loaded.")

    # -- dirty tracking ----------------------------------------------------

    @property
    def is_dirty(self) -> bool:
        # a failed save keeps the flag up even if the stored values that did
        # land happen to sort the same way as the tree
        if self.state == EditorState.DIRTY_PARTIAL_FAILURE:
            return True
        return has_unsaved_changes(self.tree, self.original)

    def _refresh_state(self) -> None:
        if self.state == EditorState.DIRTY_PARTIAL_FAILURE:
            return
        if has_unsaved_changes(self.tree, self.original):
            self.state = EditorState.DIRTY
        else:
            self.state = EditorState.CLEAN

    # -- tree edits (local only) ----------------------------------------

    def drop(self, dragged_id: str, target_id: str, position: str) -> None:
        self._require_loaded()
        # edit a copy; the live tree is replaced only when the drop is accepted
        candidate = copy_tree(self.tree)
        resolve_drop(candidate, dragged_id, target_id, position)
        self.tree = candidate
        self._refresh_state()

    def move_to_root(self, dragged_id: str, index: int) -> None:
        self._require_loaded()
        candidate = copy_tree(self.tree)
        move_to_root(candidate, dragged_id, index)
        self.tree = candidate
        self._refresh_state()

    def discard(self) -> None:
        self._require_loaded()
        self.tree = build_tree(self.original)
        self.state = EditorState.CLEAN

    # -- save ----------------------------------------------------------

    def save(self) -> SaveResult:
        self._require_loaded()
        config = editor_settings()
        updates = plan_updates(self.tree, self.original, config["SAVE_STRATEGY"])

        self.state = EditorState.SAVING
        result = push_updates(self.store, updates, max_workers=int(config["SAVE_WORKERS"]))

        # advance the snapshot only for what the store accepted
        saved = set(result.saved)
        positions = {n.id: n for n in flatten_tree(self.tree)}
        self.original = [
            replace(n, parent_id=positions[n.id].parent_id, sort_order=positions[n.id].sort_order)
            if n.id in saved
            else n
            for n in self.original
        ]

        if result.ok:
            logger.info("Menu saved: %d position update(s)", len(result.saved))
            self.state = (
                EditorState.DIRTY
                if has_unsaved_changes(self.tree, self.original)
                else EditorState.CLEAN
            )
        else:
            logger.warning(
                "Menu save partially failed: %d saved, %d failed", len(result.saved), len(result.failed)
            )
            self.state = EditorState.DIRTY_PARTIAL_FAILURE
        return result

    # -- point edits (written through) -----------------------------------

    def _with_rollback(self, apply, write, revert) -> None:
        apply()
        try:
            write()
        except MenuStoreError:
            revert()
            raise

    def add_item(self, label: str, href: str, parent_id: str | None = None, **extra) -> MenuNode:
        """Create a new item as the last child of parent_id (or last root)."""
        self._require_loaded()
        if parent_id and find_node(self.tree, parent_id) is None:
            raise MenuMoveRejected("Parent menu item not found.", code="not_found")

        parent = find_node(self.tree, parent_id) if parent_id else None
        siblings = parent.children if parent else self.tree
        node = MenuNode(
            id=str(uuid.uuid4()),
            label=label,
            href=href,
            parent_id=parent_id or None,
            sort_order=len(siblings),
            **extra,
        )

        def apply():
            siblings.append(node)
            self.original.append(replace(node))

        def revert():
            siblings.remove(node)
            self.original = [n for n in self.original if n.id != node.id]

        self._with_rollback(apply, lambda: self.store.create(replace(node)), revert)
        self._refresh_state()
        return node

    def duplicate_item(self, node_id: str) -> MenuNode:
        """Copy one item (without its children) right after the source."""
        self._require_loaded()
        source = find_node(self.tree, node_id)
        if source is None:
            raise MenuMoveRejected("Menu item not found.", code="not_found")

        siblings = find_siblings(self.tree, node_id)
        index = siblings.index(source) + 1
        node = replace(
            source,
            id=str(uuid.uuid4()),
            label=f"{source.label} (copy)",
            sort_order=index,
            children=[],
        )

        def apply():
            siblings.insert(index, node)
            self.original.append(replace(node))

        def revert():
            siblings.remove(node)
            self.original = [n for n in self.original if n.id != node.id]

        self._with_rollback(apply, lambda: self.store.create(replace(node)), revert)
        # the copy shifted later siblings; that is an unsaved reorder
        self._refresh_state()
        return node

    def delete_item(self, node_id: str) -> None:
        self._require_loaded()
        node = find_node(self.tree, node_id)
        if node is None:
            raise MenuMoveRejected("Menu item not found.", code="not_found")
        if node.children:
            raise MenuMoveRejected(
                "Cannot delete menu item with children. Delete or move child items first.",
                code="has_children",
            )

        siblings = find_siblings(self.tree, node_id)
        index = siblings.index(node)
        stored = next((n for n in self.original if n.id == node_id), None)

        def apply():
            siblings.remove(node)
            self.original = [n for n in self.original if n.id != node_id]

        def revert():
            siblings.insert(index, node)
            if stored is not None:
                self.original.append(stored)

        self._with_rollback(apply, lambda: self.store.delete(node_id), revert)
        self._refresh_state()

    def update_item(self, node_id: str, **fields) -> MenuNode:
        """Change display fields (label, href, is_active, ...); never structure."""
        self._require_loaded()
        node = find_node(self.tree, node_id)
        if node is None:
            raise MenuMoveRejected("Menu item not found.", code="not_found")

        previous = {name: getattr(node, name) for name in fields}
        stored = next((n for n in self.original if n.id == node_id), None)

        def set_all(target, values):
            for name, value in values.items():
                setattr(target, name, value)

        def apply():
            set_all(node, fields)
            if stored is not None:
                set_all(stored, fields)

        def revert():
            set_all(node, previous)
            if stored is not None:
                set_all(stored, previous)

        self._with_rollback(apply, lambda: self.store.update_fields(node_id, **fields), revert)
        return node

    # -- (de)serialization for the Django session ------------------------

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "error": self.error,
            "original": [n.to_dict() for n in self.original],
            "tree": [n.to_dict(with_children=True) for n in self.tree],
        }

    @classmethod
    def from_dict(cls, store, data: dict) -> MenuEditorSession:
        return cls(
            store,
            original=[MenuNode.from_dict(n) for n in data.get("original", [])],
            tree=[MenuNode.from_dict(n) for n in data.get("tree", [])],
            state=data.get("state", EditorState.LOADING),
            error=data.get("error", ""),
        )

    def snapshot(self) -> dict:
        """Payload for the editor UI."""
        return {
            "state": self.state.value,
            "dirty": self.is_dirty if self.state != EditorState.LOAD_FAILED else False,
            "error": self.error,
            "tree": [n.to_dict(with_children=True) for n in self.tree],
        }
