"""Persistence side of the menu editor.

The editor only talks to a store object with this shape:

    fetch_all() -> list[MenuNode]
    update_position(node_id, parent_id, sort_order) -> None
    create(node) -> MenuNode
    update_fields(node_id, **fields) -> None
    delete(node_id) -> None
    close_connection() -> None      # called from save worker threads

OrmMenuStore is the implementation backed by core.Menu.
"""
from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import DatabaseError, connection, transaction

from core.models import Menu
from core.services.menu_tree import MenuNode

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("label", "label_localized", "href", "icon", "description", "is_active")


class MenuLoadError(RuntimeError):
    """The flat menu list could not be fetched."""


class MenuStoreError(RuntimeError):
    """A single write against the store failed."""


def menu_to_node(menu: Menu) -> MenuNode:
    return MenuNode(
        id=str(menu.pk),
        label=menu.label,
        label_localized=menu.label_localized,
        href=menu.href,
        icon=menu.icon,
        description=menu.description,
        parent_id=str(menu.parent_id) if menu.parent_id else None,
        sort_order=menu.sort_order,
        is_active=menu.is_active,
    )


class OrmMenuStore:
    def fetch_all(self) -> list[MenuNode]:
        try:
            return [menu_to_node(m) for m in Menu.objects.all()]
        except DatabaseError as e:
            raise MenuLoadError(f"Could not load menu items: {e}") from e

    def update_position(self, node_id: str, parent_id: str | None, sort_order: int) -> None:
        # save() instead of queryset.update() so simple_history records the move
        try:
            menu = Menu.objects.get(pk=node_id)
        except (Menu.DoesNotExist, ValidationError) as e:
            raise MenuStoreError(f"Menu item {node_id} not found") from e

        menu.parent_id = parent_id
        menu.sort_order = sort_order
        try:
            menu.save(update_fields=["parent", "sort_order", "updated_at"])
        except DatabaseError as e:
            raise MenuStoreError(f"Could not move menu item {node_id}: {e}") from e

    @transaction.atomic
    def create(self, node: MenuNode) -> MenuNode:
        try:
            menu = Menu.objects.create(
                id=node.id,
                label=node.label,
                label_localized=node.label_localized,
                href=node.href,
                icon=node.icon,
                description=node.description,
                parent_id=node.parent_id,
                sort_order=node.sort_order,
                is_active=node.is_active,
            )
        except (DatabaseError, ValidationError) as e:
            raise MenuStoreError(f"Could not create menu item: {e}") from e
        return menu_to_node(menu)

    def update_fields(self, node_id: str, **fields) -> None:
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Not editable: {', '.join(sorted(unknown))}")

        try:
            menu = Menu.objects.get(pk=node_id)
        except (Menu.DoesNotExist, ValidationError) as e:
            raise MenuStoreError(f"Menu item {node_id} not found") from e

        for name, value in fields.items():
            setattr(menu, name, value)
        try:
            menu.save(update_fields=[*fields, "updated_at"])
        except (DatabaseError, ValidationError) as e:
            raise MenuStoreError(f"Could not update menu item {node_id}: {e}") from e

    def delete(self, node_id: str) -> None:
        try:
            deleted, _ = Menu.objects.filter(pk=node_id).delete()
        except (DatabaseError, ValidationError) as e:
            raise MenuStoreError(f"Could not delete menu item {node_id}: {e}") from e
        if not deleted:
            # already gone; deleting twice is not an error
            logger.warning("Menu item %s did not exist on delete", node_id)

    def close_connection(self) -> None:
        connection.close()
