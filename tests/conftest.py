import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Permission

from helpers import FakeMenuStore, node


@pytest.fixture
def flat_menu():
    """Roots W, X, Y, Z (orders 0-3); X has children X1, X2."""
    return [
        node("w", sort_order=0),
        node("x", sort_order=1),
        node("y", sort_order=2),
        node("z", sort_order=3),
        node("x1", parent_id="x", sort_order=0),
        node("x2", parent_id="x", sort_order=1),
    ]


@pytest.fixture
def fake_store(flat_menu):
    return FakeMenuStore(flat_menu)


def _user_with_perms(username, app_label, codenames):
    user = get_user_model().objects.create_user(username=username, password="pw")
    user.user_permissions.add(
        *Permission.objects.filter(content_type__app_label=app_label, codename__in=codenames)
    )
    return user


@pytest.fixture
def menu_admin(db):
    return _user_with_perms("menu-admin", "core", ["add_menu", "change_menu", "delete_menu", "view_menu"])


@pytest.fixture
def editor_client(client, menu_admin):
    client.force_login(menu_admin)
    return client


@pytest.fixture
def batch_admin(db):
    return _user_with_perms(
        "batch-admin", "batches",
        ["add_batchupload", "change_batchupload", "delete_batchupload", "view_batchupload"],
    )


@pytest.fixture
def plain_user(db):
    return get_user_model().objects.create_user(username="plain", password="pw")
