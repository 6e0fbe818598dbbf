import pytest
from django.urls import reverse

from core.models import Menu
from core.models.base_context import base_context
from core.services.menu_store import MenuLoadError, OrmMenuStore

pytestmark = pytest.mark.django_db


def test_form_lists_items_indented(editor_client):
    parent = Menu.objects.create(label="Cases", href="/cases")
    Menu.objects.create(label="Batch upload", href="/cases/batch-upload", parent=parent)

    response = editor_client.get(reverse("core:menu-edit"))

    assert response.status_code == 200
    rows = [(row.label, depth) for row, depth in response.context["all_menus"]]
    assert rows == [("Cases", 0), ("Batch upload", 1)]
    assert "/menus/" in response.context["url_suggestions"]


def test_create_appends_when_sort_order_empty(editor_client):
    Menu.objects.create(label="Home", href="/", sort_order=4)
    response = editor_client.post(reverse("core:menu-edit"), {
        "label": "Cases", "href": "/cases", "is_active": "on",
    })
    assert response.status_code == 302
    assert Menu.objects.get(label="Cases").sort_order == 5


def test_href_must_be_a_path(editor_client):
    response = editor_client.post(reverse("core:menu-edit"), {"label": "Bad", "href": "cases"})
    assert response.status_code == 200
    assert "href" in response.context["form"].errors


def test_parent_cannot_be_own_descendant(editor_client):
    a = Menu.objects.create(label="A", href="/a")
    b = Menu.objects.create(label="B", href="/b", parent=a)
    response = editor_client.post(reverse("core:menu-edit", args=[a.pk]), {
        "label": "A", "href": "/a", "parent": str(b.pk), "sort_order": "0",
    })
    assert response.status_code == 200
    assert response.context["form"].errors["parent"] == ["Cannot move a parent item into its own child."]


def test_duplicate_href_under_same_parent(editor_client):
    Menu.objects.create(label="Cases", href="/cases")
    response = editor_client.post(reverse("core:menu-edit"), {"label": "Cases 2", "href": "/cases"})
    assert "href" in response.context["form"].errors


def test_delete_refuses_parents(editor_client):
    parent = Menu.objects.create(label="Cases", href="/cases")
    Menu.objects.create(label="Batch upload", href="/cases/batch-upload", parent=parent)

    editor_client.post(reverse("core:menu-delete", args=[parent.pk]))
    assert Menu.objects.filter(pk=parent.pk).exists()


def test_delete_leaf(editor_client):
    leaf = Menu.objects.create(label="Reports", href="/reports")
    response = editor_client.post(reverse("core:menu-delete", args=[leaf.pk]))
    assert response.status_code == 302
    assert not Menu.objects.filter(pk=leaf.pk).exists()


def _unavailable(self):
    raise MenuLoadError("Could not load menu items: database is locked")


def test_sidebar_is_empty_when_menu_cannot_load(rf, menu_admin, monkeypatch):
    monkeypatch.setattr(OrmMenuStore, "fetch_all", _unavailable)
    request = rf.get("/")
    request.user = menu_admin

    assert base_context(request) == {"menus": []}


def test_form_still_renders_when_menu_cannot_load(editor_client, monkeypatch):
    monkeypatch.setattr(OrmMenuStore, "fetch_all", _unavailable)

    response = editor_client.get(reverse("core:menu-edit"))

    assert response.status_code == 200
    assert response.context["all_menus"] == []
    assert response.context["menus"] == []


def test_reparenting_reports_load_failure_as_form_error(editor_client, monkeypatch):
    a = Menu.objects.create(label="A", href="/a")
    b = Menu.objects.create(label="B", href="/b")
    monkeypatch.setattr(OrmMenuStore, "fetch_all", _unavailable)

    response = editor_client.post(reverse("core:menu-edit", args=[b.pk]), {
        "label": "B", "href": "/b", "parent": str(a.pk), "sort_order": "0",
    })

    assert response.status_code == 200
    assert response.context["form"].non_field_errors() == ["Could not load menu items: database is locked"]
    assert Menu.objects.get(pk=b.pk).parent_id is None
