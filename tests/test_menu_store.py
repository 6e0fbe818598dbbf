import uuid

import pytest

from core.models import Menu
from core.services.menu_editor import MenuEditorSession
from core.services.menu_store import MenuStoreError, OrmMenuStore
from core.services.menu_tree import MenuNode

pytestmark = pytest.mark.django_db


@pytest.fixture
def menus():
    home = Menu.objects.create(label="Home", href="/", sort_order=0)
    cases = Menu.objects.create(label="Cases", href="/cases", sort_order=1)
    batch = Menu.objects.create(label="Batch upload", href="/cases/batch-upload", parent=cases, sort_order=0)
    return home, cases, batch


def test_fetch_all_returns_flat_nodes(menus):
    home, cases, batch = menus
    nodes = {n.id: n for n in OrmMenuStore().fetch_all()}
    assert nodes[str(batch.pk)].parent_id == str(cases.pk)
    assert nodes[str(home.pk)].parent_id is None
    assert all(n.children == [] for n in nodes.values())


def test_update_position_records_history(menus):
    home, cases, batch = menus
    OrmMenuStore().update_position(str(batch.pk), None, 2)

    batch.refresh_from_db()
    assert batch.parent_id is None
    assert batch.sort_order == 2
    assert batch.history.count() == 2


@pytest.mark.parametrize("bad_id", [str(uuid.uuid4()), "not-a-uuid"])
def test_update_position_unknown_row(bad_id):
    with pytest.raises(MenuStoreError):
        OrmMenuStore().update_position(bad_id, None, 0)


def test_create_update_delete(menus):
    store = OrmMenuStore()
    node = MenuNode(id=str(uuid.uuid4()), label="Reports", href="/reports", sort_order=2)
    created = store.create(node)
    assert Menu.objects.filter(pk=created.id).exists()

    store.update_fields(created.id, label="Reporting", is_active=False)
    row = Menu.objects.get(pk=created.id)
    assert (row.label, row.is_active) == ("Reporting", False)

    store.delete(created.id)
    assert not Menu.objects.filter(pk=created.id).exists()
    # deleting again is not an error
    store.delete(created.id)


def test_update_fields_rejects_structure_fields(menus):
    with pytest.raises(ValueError):
        OrmMenuStore().update_fields(str(menus[0].pk), parent_id=None)


def test_editor_save_persists_drop(menus):
    home, cases, batch = menus
    editor = MenuEditorSession.load(OrmMenuStore())
    editor.drop(str(batch.pk), str(home.pk), "before")

    result = editor.save()

    assert result.ok
    assert sorted(result.saved) == sorted([str(batch.pk), str(home.pk), str(cases.pk)])
    ordered = list(Menu.objects.filter(parent=None).order_by("sort_order").values_list("label", flat=True))
    assert ordered == ["Batch upload", "Home", "Cases"]


def test_badly_typed_values_become_store_errors(menus):
    store = OrmMenuStore()
    with pytest.raises(MenuStoreError):
        store.update_fields(str(menus[0].pk), is_active="nope")
    with pytest.raises(MenuStoreError):
        store.create(MenuNode(id=str(uuid.uuid4()), label="Orphan", href="/orphan", parent_id="not-a-uuid"))

    assert Menu.objects.get(pk=menus[0].pk).is_active is True
    assert not Menu.objects.filter(label="Orphan").exists()
