from django.urls import path
from . import api_views

urlpatterns = [
    path("menus/", api_views.api_menu, name="api-menu"),
    path("menus/editor/", api_views.api_editor, name="api-menu-editor"),
    path("menus/editor/drop/", api_views.api_editor_drop, name="api-menu-editor-drop"),
    path("menus/editor/move-to-root/", api_views.api_editor_move_to_root, name="api-menu-editor-move-to-root"),
    path("menus/editor/save/", api_views.api_editor_save, name="api-menu-editor-save"),
    path("menus/editor/discard/", api_views.api_editor_discard, name="api-menu-editor-discard"),
    path("menus/editor/reload/", api_views.api_editor_reload, name="api-menu-editor-reload"),
    path("menus/editor/items/", api_views.api_editor_create_item, name="api-menu-editor-create-item"),
    path("menus/editor/items/<uuid:item_id>/", api_views.api_editor_update_item, name="api-menu-editor-update-item"),
    path("menus/editor/items/<uuid:item_id>/duplicate/", api_views.api_editor_duplicate_item, name="api-menu-editor-duplicate-item"),
    path("menus/editor/items/<uuid:item_id>/delete/", api_views.api_editor_delete_item, name="api-menu-editor-delete-item"),
]
