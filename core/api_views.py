import json
import logging
from functools import wraps

from django.contrib.auth.decorators import login_required, permission_required
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from core.services.menu_drop import MenuMoveRejected
from core.services.menu_editor import EditorNotReady, EditorState, MenuEditorSession, editor_settings
from core.services.menu_store import EDITABLE_FIELDS, MenuLoadError, MenuStoreError, OrmMenuStore
from core.services.menu_tree import active_only, build_tree, filter_tree

logger = logging.getLogger(__name__)

EDITOR_PERMISSION = "core.change_menu"


def _payload(request):
    try:
        data = json.loads(request.body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _bad_payload():
    return JsonResponse({"ok": False, "error": "invalid_payload"}, status=400)


def _session_key():
    return editor_settings()["SESSION_KEY"]


def _get_editor(request):
    """Resume the editing session stored in request.session, or load a new one."""
    store = OrmMenuStore()
    data = request.session.get(_session_key())
    if data:
        editor = MenuEditorSession.from_dict(store, data)
        if editor.state not in (EditorState.LOADING, EditorState.LOAD_FAILED):
            return editor
    return MenuEditorSession.load(store)


def _keep(request, editor):
    request.session[_session_key()] = editor.to_dict()


def _rejected(e: MenuMoveRejected):
    return JsonResponse({"ok": False, "error": e.code, "message": e.message}, status=400)


def _editor_view(func):
    """Shared plumbing: load/resume the session, map errors, persist the session."""

    @wraps(func)
    def wrapper(request, *args, **kwargs):
        try:
            editor = _get_editor(request)
        except MenuLoadError as e:
            return JsonResponse({"ok": False, "error": "load_failed", "message": str(e)}, status=503)

        try:
            response = func(request, editor, *args, **kwargs)
        except MenuMoveRejected as e:
            response = _rejected(e)
        except EditorNotReady as e:
            response = JsonResponse({"ok": False, "error": "not_loaded", "message": str(e)}, status=409)
        except MenuStoreError as e:
            logger.error("Menu store write failed: %s", e)
            response = JsonResponse({"ok": False, "error": "store_error", "message": str(e)}, status=502)

        _keep(request, editor)
        return response

    return wrapper


@login_required
@permission_required(EDITOR_PERMISSION, raise_exception=True)
@require_http_methods(["GET"])
@_editor_view
def api_editor(request, editor):
    return JsonResponse({"ok": True, **editor.snapshot()})


@login_required
@permission_required(EDITOR_PERMISSION, raise_exception=True)
@require_http_methods(["POST"])
@_editor_view
def api_editor_drop(request, editor):
    payload = _payload(request)
    if payload is None or not payload.get("dragged_id") or not payload.get("target_id"):
        return _bad_payload()

    editor.drop(
        str(payload["dragged_id"]),
        str(payload["target_id"]),
        str(payload.get("position") or "on"),
    )
    return JsonResponse({"ok": True, **editor.snapshot()})


@login_required
@permission_required(EDITOR_PERMISSION, raise_exception=True)
@require_http_methods(["POST"])
@_editor_view
def api_editor_move_to_root(request, editor):
    payload = _payload(request)
    if payload is None or not payload.get("dragged_id"):
        return _bad_payload()
    try:
        index = int(payload.get("index", 0))
    except (TypeError, ValueError, OverflowError):
        return _bad_payload()

    editor.move_to_root(str(payload["dragged_id"]), index)
    return JsonResponse({"ok": True, **editor.snapshot()})


@login_required
@permission_required(EDITOR_PERMISSION, raise_exception=True)
@require_http_methods(["POST"])
@_editor_view
def api_editor_save(request, editor):
    result = editor.save()
    # 207: some rows were written, some were not
    status = 200 if result.ok else 207
    return JsonResponse({"ok": result.ok, **result.to_dict(), **editor.snapshot()}, status=status)


@login_required
@permission_required(EDITOR_PERMISSION, raise_exception=True)
@require_http_methods(["POST"])
@_editor_view
def api_editor_discard(request, editor):
    editor.discard()
    return JsonResponse({"ok": True, **editor.snapshot()})


@login_required
@permission_required(EDITOR_PERMISSION, raise_exception=True)
@require_http_methods(["POST"])
def api_editor_reload(request):
    editor = MenuEditorSession(OrmMenuStore())
    try:
        editor.reload()
    except MenuLoadError as e:
        _keep(request, editor)
        return JsonResponse({"ok": False, "error": "load_failed", "message": str(e)}, status=503)
    _keep(request, editor)
    return JsonResponse({"ok": True, **editor.snapshot()})


def _item_fields(payload):
    """Editable fields from payload, or None when one has the wrong type."""
    fields = {}
    for name in EDITABLE_FIELDS:
        if name not in payload:
            continue
        value = payload[name]
        if name == "is_active":
            if not isinstance(value, bool):
                return None
        elif value is None:
            value = ""
        elif not isinstance(value, str):
            return None
        fields[name] = value
    return fields


def _invalid_fields():
    return JsonResponse(
        {"ok": False, "error": "validation_error", "message": "Text fields must be strings and is_active a boolean"},
        status=400,
    )


@login_required
@permission_required(EDITOR_PERMISSION, raise_exception=True)
@require_http_methods(["POST"])
@_editor_view
def api_editor_create_item(request, editor):
    payload = _payload(request)
    if payload is None:
        return _bad_payload()

    fields = _item_fields(payload)
    parent_id = payload.get("parent_id") or None
    if fields is None or (parent_id is not None and not isinstance(parent_id, str)):
        return _invalid_fields()
    label = fields.pop("label", "").strip()
    href = fields.pop("href", "").strip()
    if not label or not href:
        return JsonResponse(
            {"ok": False, "error": "validation_error", "message": "Label and href are required"},
            status=400,
        )

    node = editor.add_item(label, href, parent_id=parent_id, **fields)
    return JsonResponse({"ok": True, "item": node.to_dict(), **editor.snapshot()}, status=201)


@login_required
@permission_required(EDITOR_PERMISSION, raise_exception=True)
@require_http_methods(["POST"])
@_editor_view
def api_editor_duplicate_item(request, editor, item_id):
    node = editor.duplicate_item(str(item_id))
    return JsonResponse({"ok": True, "item": node.to_dict(), **editor.snapshot()}, status=201)


@login_required
@permission_required(EDITOR_PERMISSION, raise_exception=True)
@require_http_methods(["POST"])
@_editor_view
def api_editor_delete_item(request, editor, item_id):
    editor.delete_item(str(item_id))
    return JsonResponse({"ok": True, **editor.snapshot()})


@login_required
@permission_required(EDITOR_PERMISSION, raise_exception=True)
@require_http_methods(["POST"])
@_editor_view
def api_editor_update_item(request, editor, item_id):
    payload = _payload(request)
    if payload is None:
        return _bad_payload()

    fields = _item_fields(payload)
    if fields is None:
        return _invalid_fields()
    if not fields:
        return JsonResponse(
            {"ok": False, "error": "validation_error", "message": "No fields to update"},
            status=400,
        )
    node = editor.update_item(str(item_id), **fields)
    return JsonResponse({"ok": True, "item": node.to_dict(), **editor.snapshot()})


@login_required
@require_http_methods(["GET"])
def api_menu(request):
    """Active menu as a tree, optionally narrowed by ?q=."""
    try:
        flat = OrmMenuStore().fetch_all()
    except MenuLoadError as e:
        return JsonResponse({"error": "load_failed", "message": str(e)}, status=503)

    tree = active_only(build_tree(flat))
    q = request.GET.get("q")
    if q:
        tree = filter_tree(tree, q)
    return JsonResponse({"results": [n.to_dict(with_children=True) for n in tree]})
