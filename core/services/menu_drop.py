from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models

from core.services.menu_tree import (
    MenuNode,
    find_node,
    find_siblings,
    is_descendant,
    iter_nodes,
)


class DropPosition(models.TextChoices):
    BEFORE = "before", "Before target"
    AFTER = "after", "After target"
    ON = "on", "Inside target (last child)"


class MenuMoveRejected(ValidationError):
    """A drag/drop or tree edit that would break the tree.

    code is one of: self_drop, cycle, not_found, has_children, bad_position.
    """


def _renumber(siblings: list[MenuNode], parent_id: str | None) -> None:
    for index, node in enumerate(siblings):
        node.sort_order = index
        node.parent_id = parent_id


def _parent_id_of(forest: list[MenuNode], node_id: str) -> str | None:
    for node in iter_nodes(forest):
        if any(c.id == node_id for c in node.children):
            return node.id
    return None


def _detach(forest: list[MenuNode], node_id: str) -> MenuNode:
    siblings = find_siblings(forest, node_id)
    parent_id = _parent_id_of(forest, node_id)
    index = next(i for i, n in enumerate(siblings) if n.id == node_id)
    node = siblings.pop(index)
    _renumber(siblings, parent_id)
    return node


def resolve_drop(
    forest: list[MenuNode],
    dragged_id: str,
    target_id: str,
    position: str,
) -> list[MenuNode]:
    """Apply a drag gesture to the forest in place and return it.

    Guards run before anything is touched, so a rejected drop leaves the
    forest exactly as it was.
    """
    if position not in DropPosition.values:
        raise MenuMoveRejected(f"Unknown drop position: {position}", code="bad_position")

    if dragged_id == target_id:
        raise MenuMoveRejected("An item cannot be dropped on itself.", code="self_drop")

    if find_node(forest, dragged_id) is None or find_node(forest, target_id) is None:
        raise MenuMoveRejected("Menu item not found.", code="not_found")

    if is_descendant(dragged_id, target_id, forest):
        raise MenuMoveRejected(
            "Cannot move a parent item into its own child.", code="cycle"
        )

    dragged = _detach(forest, dragged_id)
    target = find_node(forest, target_id)

    if position == DropPosition.ON:
        target.children.append(dragged)
        _renumber(target.children, target.id)
        return forest

    siblings = find_siblings(forest, target_id)
    parent_id = _parent_id_of(forest, target_id)
    index = next(i for i, n in enumerate(siblings) if n.id == target_id)
    if position == DropPosition.AFTER:
        index += 1
    siblings.insert(index, dragged)
    _renumber(siblings, parent_id)
    return forest


def move_to_root(forest: list[MenuNode], dragged_id: str, index: int) -> list[MenuNode]:
    """Place dragged_id among the roots at index (clamped to the valid range)."""
    if find_node(forest, dragged_id) is None:
        raise MenuMoveRejected("Menu item not found.", code="not_found")

    dragged = _detach(forest, dragged_id)
    index = max(0, min(int(index), len(forest)))
    forest.insert(index, dragged)
    _renumber(forest, None)
    return forest
