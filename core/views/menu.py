from django.contrib import messages
from django.contrib.auth.decorators import login_required, permission_required
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_POST

from core.forms import MenuForm
from core.models import Menu
from core.models.base_context import base_context
from core.services.menu_editor import editor_settings
from core.services.menu_store import MenuLoadError, OrmMenuStore
from core.services.menu_tree import build_tree, flatten_tree
from core.utils.url_choices import discover_url_paths


def _forget_editor_session(request):
    # a form write makes any open tree editing session stale
    request.session.pop(editor_settings()["SESSION_KEY"], None)


@login_required
@permission_required("core.change_menu", raise_exception=True)
def menu_edit(request, pk=None):
    menu = get_object_or_404(Menu, pk=pk) if pk else None

    if request.method == "POST":
        form = MenuForm(request.POST, instance=menu)
        if form.is_valid():
            saved = form.save()
            _forget_editor_session(request)
            messages.success(request, f"Menu item saved: {saved.label}")
            return redirect("core:menu-edit")
    else:
        form = MenuForm(instance=menu)

    # indented pre-order listing, same order as the sidebar
    try:
        rows = flatten_tree(build_tree(OrmMenuStore().fetch_all()))
    except MenuLoadError as e:
        messages.error(request, str(e))
        rows = []
    depth = {}
    for row in rows:
        depth[row.id] = depth[row.parent_id] + 1 if row.parent_id else 0

    return render(request, "core/menu_edit.html", {
        "form": form,
        "editing": menu,
        "all_menus": [(row, depth[row.id]) for row in rows],
        "url_suggestions": discover_url_paths(),
        **base_context(request),
    })


@require_POST
@login_required
@permission_required("core.delete_menu", raise_exception=True)
def menu_delete(request, pk):
    menu = get_object_or_404(Menu, pk=pk)
    if menu.children.exists():
        messages.error(request, "Cannot delete menu item with children. Delete or move child items first.")
        return redirect("core:menu-edit")

    label = menu.label
    menu.delete()
    _forget_editor_session(request)
    messages.success(request, f"Menu item deleted: {label}")
    return redirect("core:menu-edit")
