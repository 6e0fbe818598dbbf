"""Guardian helpers for object-level access.

Objects created on behalf of a user (batch uploads, for now) get
view/change/delete permissions for that user, so staff without the
global model permission still see their own uploads.
"""

from django.contrib.contenttypes.models import ContentType
from guardian.models import GroupObjectPermission, UserObjectPermission
from guardian.shortcuts import assign_perm, get_objects_for_user

DEFAULT_PERMS = ("view", "change", "delete")


def assign_object_perms_to_user(user, obj, perms=DEFAULT_PERMS):
    """Assign view/change/delete perms for obj to a user."""
    if not user or not user.is_authenticated:
        return
    app_label = obj._meta.app_label
    model_name = obj._meta.model_name
    for p in perms:
        assign_perm(f"{app_label}.{p}_{model_name}", user, obj)


def visible_to(user, queryset, perm="view"):
    """Rows of queryset the user may see: all with the model perm, else per object."""
    opts = queryset.model._meta
    codename = f"{opts.app_label}.{perm}_{opts.model_name}"
    if user.has_perm(codename):
        return queryset
    return get_objects_for_user(user, codename, klass=queryset, accept_global_perms=False)


def has_object_perm(user, perm: str, obj) -> bool:
    # ModelBackend ignores obj, guardian only answers for obj: ask both
    return user.has_perm(perm) or user.has_perm(perm, obj)


def clear_object_perms(obj) -> None:
    """Drop guardian rows for obj; call before deleting it (generic FKs do not cascade)."""
    ct = ContentType.objects.get_for_model(obj)
    UserObjectPermission.objects.filter(content_type=ct, object_pk=str(obj.pk)).delete()
    GroupObjectPermission.objects.filter(content_type=ct, object_pk=str(obj.pk)).delete()
