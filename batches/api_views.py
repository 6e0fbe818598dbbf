import json
import logging

from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods

from batches.filters import BatchUploadFilter, BatchUploadItemFilter
from batches.models import BatchUpload
from batches.services.batch import (
    BatchStateError,
    UnmappedContributorsError,
    create_batch,
    map_nicknames,
    mapping_status,
    process_batch,
    rollback_batch,
    unique_nicknames,
)
from batches.services.csv_import import CsvFormatError, generate_summary, parse_csv, validate_rows
from core.permissions import has_object_perm, visible_to

logger = logging.getLogger(__name__)


def _batch_dict(batch):
    return {
        "id": batch.id,
        "name": batch.name,
        "source_filename": batch.source_filename,
        "state": batch.state,
        "total_items": batch.total_items,
        "processed_items": batch.processed_items,
        "successful_items": batch.successful_items,
        "failed_items": batch.failed_items,
        "error_summary": batch.error_summary,
        "created_at": batch.created_at.isoformat(),
        "completed_at": batch.completed_at.isoformat() if batch.completed_at else None,
    }


def _item_dict(item):
    return {
        "id": item.id,
        "row_number": item.row_number,
        "case_number": item.case_number,
        "combined_case_number": item.combined_case_number,
        "case_title": item.case_title,
        "contributor_nickname": item.contributor_nickname,
        "amount": str(item.amount),
        "month": item.month,
        "user_id": item.user_id,
        "status": item.status,
        "case_id": item.case_id,
        "contribution_id": item.contribution_id,
        "error_message": item.error_message,
    }


def _error(code, message, status):
    return JsonResponse({"ok": False, "error": code, "message": message}, status=status)


def _get_batch(request, pk, perm):
    batch = get_object_or_404(BatchUpload, pk=pk)
    if not has_object_perm(request.user, perm, batch):
        return batch, _error("forbidden", "You do not have access to this batch", 403)
    return batch, None


@login_required
@require_http_methods(["GET", "POST"])
def api_batches(request):
    if request.method == "POST":
        return _upload(request)

    qs = visible_to(request.user, BatchUpload.objects.all())
    qs = BatchUploadFilter(request.GET, queryset=qs).qs[:200]
    return JsonResponse({"results": [_batch_dict(b) for b in qs]})


def _upload(request):
    if not request.user.has_perm("batches.add_batchupload"):
        return _error("forbidden", "You may not upload batches", 403)

    f = request.FILES.get("file")
    if not f:
        return _error("validation_error", "No file provided", 400)

    try:
        content = f.read().decode("utf-8-sig")
    except UnicodeDecodeError:
        return _error("validation_error", "File must be UTF-8 encoded CSV", 400)

    try:
        rows = parse_csv(content)
    except CsvFormatError as e:
        return _error("validation_error", e.message, 400)

    valid, invalid = validate_rows(rows)
    if not valid:
        return _error("validation_error", "No valid rows found in CSV", 400)

    name = (request.POST.get("name") or "").strip() or f.name
    batch = create_batch(name, valid, uploaded_by=request.user, source_filename=f.name)

    return JsonResponse({
        "ok": True,
        "batch": _batch_dict(batch),
        "summary": generate_summary(valid),
        "invalid": [{"case_number": i["row"].case_number, "error": i["error"]} for i in invalid],
    }, status=201)


@login_required
@require_http_methods(["GET", "DELETE"])
def api_batch_detail(request, pk: int):
    if request.method == "DELETE":
        return _rollback(request, pk)

    batch, denied = _get_batch(request, pk, "batches.view_batchupload")
    if denied:
        return denied

    items = BatchUploadItemFilter(request.GET, queryset=batch.items.all()).qs
    return JsonResponse({
        "batch": _batch_dict(batch),
        "items": [_item_dict(i) for i in items],
        "nicknames": unique_nicknames(batch),
        "mapping": mapping_status(batch),
    })


def _rollback(request, pk):
    batch, denied = _get_batch(request, pk, "batches.delete_batchupload")
    if denied:
        return denied

    try:
        deleted = rollback_batch(batch)
    except BatchStateError as e:
        return _error(e.code, e.message, 409)

    return JsonResponse({
        "ok": True,
        "message": (
            "Batch upload deleted successfully. "
            f"Removed {deleted['cases']} cases and {deleted['contributions']} contributions."
        ),
        "deleted": deleted,
    })


@login_required
@require_http_methods(["POST"])
def api_batch_map(request, pk: int):
    batch, denied = _get_batch(request, pk, "batches.change_batchupload")
    if denied:
        return denied

    try:
        payload = json.loads(request.body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        payload = None
    mappings = payload.get("mappings") if isinstance(payload, dict) else None
    if not isinstance(mappings, list) or not all(isinstance(m, dict) for m in mappings):
        return _error("invalid_payload", "Expected {\"mappings\": [{\"nickname\", \"user_id\"}]}", 400)

    try:
        updated, errors = map_nicknames(batch, mappings)
    except BatchStateError as e:
        return _error(e.code, e.message, 409)

    message = f"Mapped {updated} nickname(s)"
    if errors:
        message += f". {len(errors)} error(s) occurred."
    return JsonResponse({
        "ok": True,
        "updated_count": updated,
        "errors": errors,
        "message": message,
        "mapping": mapping_status(batch),
    })


@login_required
@require_http_methods(["POST"])
def api_batch_process(request, pk: int):
    batch, denied = _get_batch(request, pk, "batches.change_batchupload")
    if denied:
        return denied

    try:
        result = process_batch(batch, by_user=request.user)
    except UnmappedContributorsError as e:
        return _error(e.code, e.message, 400)
    except BatchStateError as e:
        return _error(e.code, e.message, 409)

    message = (
        f"Processed {result['processed_items']} items. "
        f"{result['successful_items']} successful, {result['failed_items']} failed."
    )
    return JsonResponse({"ok": True, "message": message, **result, "batch": _batch_dict(batch)})
