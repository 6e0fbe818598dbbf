from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator


@dataclass
class MenuNode:
    """One menu entry.

    ``children`` is only populated in the tree representation. In the flat
    representation it is always empty and ``parent_id`` / ``sort_order``
    carry the structure.
    """

    id: str
    label: str
    href: str = ""
    label_localized: str = ""
    icon: str = ""
    description: str = ""
    parent_id: str | None = None
    sort_order: int = 0
    is_active: bool = True
    children: list[MenuNode] = field(default_factory=list)

    def to_dict(self, with_children: bool = False) -> dict:
        data = {
            "id": self.id,
            "label": self.label,
            "label_localized": self.label_localized,
            "href": self.href,
            "icon": self.icon,
            "description": self.description,
            "parent_id": self.parent_id,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
        }
        if with_children:
            data["children"] = [c.to_dict(with_children=True) for c in self.children]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> MenuNode:
        parent_id = data.get("parent_id")
        return cls(
            id=str(data["id"]),
            label=data.get("label", ""),
            href=data.get("href", ""),
            label_localized=data.get("label_localized") or "",
            icon=data.get("icon") or "",
            description=data.get("description") or "",
            parent_id=str(parent_id) if parent_id else None,
            sort_order=int(data.get("sort_order") or 0),
            is_active=bool(data.get("is_active", True)),
            children=[cls.from_dict(c) for c in data.get("children", [])],
        )


def build_tree(nodes: Iterable[MenuNode]) -> list[MenuNode]:
    """Nest a flat list into a forest sorted by sort_order at every level.

    The input records are copied. A parent_id that does not resolve to a
    node in the list puts the node at root level.
    """
    copies = [replace(n, children=[]) for n in nodes]
    by_id = {n.id: n for n in copies}

    roots: list[MenuNode] = []
    for node in copies:
        parent = by_id.get(node.parent_id) if node.parent_id else None
        if parent is not None and parent is not node:
            parent.children.append(node)
        else:
            roots.append(node)

    # stored parent loops are unreachable from any root: cut them at the
    # first node of each loop (input order) and promote it to root
    reachable = {n.id for n in iter_nodes(roots)}
    for node in copies:
        if node.id in reachable:
            continue
        by_id[node.parent_id].children.remove(node)
        roots.append(node)
        reachable.update(n.id for n in iter_nodes([node]))

    _sort_levels(roots)
    return roots


def _sort_levels(level: list[MenuNode]) -> None:
    # list.sort is stable: ties keep input order
    stack = [level]
    while stack:
        items = stack.pop()
        items.sort(key=lambda n: n.sort_order)
        stack.extend(n.children for n in items if n.children)


def flatten_tree(forest: list[MenuNode]) -> list[MenuNode]:
    """Pre-order flat copy with parent_id and sort_order recomputed from position."""
    flat: list[MenuNode] = []

    def visit(items: list[MenuNode], parent_id: str | None) -> None:
        for index, node in enumerate(items):
            flat.append(replace(node, parent_id=parent_id, sort_order=index, children=[]))
            visit(node.children, node.id)

    visit(forest, None)
    return flat


def iter_nodes(forest: list[MenuNode]) -> Iterator[MenuNode]:
    for node in forest:
        yield node
        yield from iter_nodes(node.children)


def find_node(forest: list[MenuNode], node_id: str) -> MenuNode | None:
    for node in iter_nodes(forest):
        if node.id == node_id:
            return node
    return None


def find_siblings(forest: list[MenuNode], node_id: str) -> list[MenuNode] | None:
    """Return the list object (roots or a children list) that holds node_id."""
    if any(n.id == node_id for n in forest):
        return forest
    for node in iter_nodes(forest):
        if any(c.id == node_id for c in node.children):
            return node.children
    return None


def is_descendant(ancestor_id: str, descendant_id: str, forest: list[MenuNode]) -> bool:
    """True if descendant_id is ancestor_id itself or anywhere below it."""
    ancestor = find_node(forest, ancestor_id)
    if ancestor is None:
        return False
    return find_node([ancestor], descendant_id) is not None


def structure(forest: list[MenuNode]) -> list[tuple[str, str | None, int]]:
    """(id, parent_id, sort_order) triples of the flattened forest."""
    return [(n.id, n.parent_id, n.sort_order) for n in flatten_tree(forest)]


def copy_tree(forest: list[MenuNode]) -> list[MenuNode]:
    return [replace(n, children=copy_tree(n.children)) for n in forest]


def filter_tree(forest: list[MenuNode], term: str) -> list[MenuNode]:
    """Search by label, localized label or href.

    A node is kept when it matches or when any descendant matches, so hits
    deep in the tree stay reachable from their ancestors.
    """
    term = (term or "").strip().lower()
    if not term:
        return copy_tree(forest)

    result = []
    for node in forest:
        children = filter_tree(node.children, term)
        hit = (
            term in node.label.lower()
            or term in node.label_localized.lower()
            or term in node.href.lower()
        )
        if hit or children:
            result.append(replace(node, children=children))
    return result


def active_only(forest: list[MenuNode]) -> list[MenuNode]:
    """Drop inactive nodes together with their subtrees."""
    return [replace(n, children=active_only(n.children)) for n in forest if n.is_active]
