"""Batch upload reconciliation: nickname mapping and processing.

Processing is gated on every item having a mapped user. Once started,
one draft Case is created per case key and one Contribution per item.
Failures are recorded per item and never abort the rest of the batch.
"""
from __future__ import annotations

import logging
from collections import Counter
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from batches.models import BatchUpload, BatchUploadItem
from batches.services.csv_import import CsvRow
from cases.models import Case, Contribution
from core.permissions import assign_object_perms_to_user, clear_object_perms

logger = logging.getLogger(__name__)


class BatchStateError(ValidationError):
    """The batch is in a state that does not allow the requested step."""


class UnmappedContributorsError(ValidationError):
    """Processing was requested while some items have no user."""


@transaction.atomic
def create_batch(name: str, rows: list[CsvRow], uploaded_by=None, source_filename: str = "") -> BatchUpload:
    batch = BatchUpload.objects.create(
        name=name,
        source_filename=source_filename,
        uploaded_by=uploaded_by,
        total_items=len(rows),
    )
    BatchUploadItem.objects.bulk_create([
        BatchUploadItem(
            batch=batch,
            row_number=index,
            case_number=row.case_number,
            combined_case_number=row.combined_case_number,
            case_title=row.case_title,
            contributor_nickname=row.contributor_nickname,
            amount=row.amount,
            month=row.month,
        )
        for index, row in enumerate(rows, start=1)
    ])
    assign_object_perms_to_user(uploaded_by, batch)
    logger.info("Batch %s created with %d item(s)", batch.pk, len(rows))
    return batch


def unique_nicknames(batch: BatchUpload) -> list[str]:
    return sorted(set(batch.items.values_list("contributor_nickname", flat=True)))


def mapping_status(batch: BatchUpload) -> dict:
    mappings: dict[str, int | None] = {}
    counts = Counter()
    for item in batch.items.all():
        counts[item.status] += 1
        current = mappings.get(item.contributor_nickname)
        mappings[item.contributor_nickname] = current or item.user_id

    return {
        "mappings": dict(sorted(mappings.items())),
        "counts": {status: counts.get(status, 0) for status in BatchUploadItem.Status.values},
        "is_fully_mapped": not batch.items.filter(user__isnull=True).exists(),
    }


@transaction.atomic
def map_nicknames(batch: BatchUpload, mappings: list[dict]) -> tuple[int, list[str]]:
    """Assign users to contributor nicknames.

    Each mapping is {"nickname": ..., "user_id": ...}; a null user_id
    clears the mapping. Bad entries are reported, not raised.
    """
    if batch.state != BatchUpload.State.PENDING:
        raise BatchStateError("Can only map nicknames for pending batches", code="not_pending")

    User = get_user_model()
    updated = 0
    errors = []

    for mapping in mappings:
        nickname = (mapping.get("nickname") or "").strip()
        if not nickname:
            errors.append("Invalid mapping: nickname is required")
            continue

        items = batch.items.filter(contributor_nickname=nickname)
        user_id = mapping.get("user_id")
        if not user_id:
            items.update(user=None, status=BatchUploadItem.Status.PENDING)
            updated += 1
            continue

        try:
            user = User.objects.filter(pk=user_id).first()
        except (ValueError, TypeError, ValidationError):
            user = None
        if user is None:
            errors.append(f"User not found: {user_id}")
            continue

        items.update(user=user, status=BatchUploadItem.Status.MAPPED)
        updated += 1

    logger.info("Batch %s: mapped %d nickname(s), %d error(s)", batch.pk, updated, len(errors))
    return updated, errors


def sync_item_mapping(batch: BatchUpload) -> None:
    """Bring item status in line with item.user after direct edits (admin inline)."""
    batch.items.filter(status=BatchUploadItem.Status.PENDING, user__isnull=False).update(
        status=BatchUploadItem.Status.MAPPED
    )
    batch.items.filter(status=BatchUploadItem.Status.MAPPED, user__isnull=True).update(
        status=BatchUploadItem.Status.PENDING
    )


def _fail_item(item: BatchUploadItem, message: str) -> None:
    item.status = BatchUploadItem.Status.FAILED
    item.error_message = message
    item.save(update_fields=["status", "error_message"])


def _create_case(batch: BatchUpload, items: list[BatchUploadItem], by_user) -> Case:
    first = items[0]
    if first.case_id:
        return first.case

    with transaction.atomic():
        case = Case.objects.create(
            title=first.case_title,
            title_localized=first.case_title,
            description=f"Case imported from batch upload - Month {first.month}",
            target_amount=sum((i.amount for i in items), Decimal("0")),
            created_by=by_user,
            batch=batch,
        )
        BatchUploadItem.objects.filter(pk__in=[i.pk for i in items]).update(
            case=case, status=BatchUploadItem.Status.CASE_CREATED
        )
    for item in items:
        item.case = case
        item.status = BatchUploadItem.Status.CASE_CREATED
    return case


def _create_contribution(batch: BatchUpload, case: Case, item: BatchUploadItem) -> None:
    with transaction.atomic():
        contribution = Contribution.objects.create(
            case=case,
            donor_id=item.user_id,
            amount=item.amount,
            batch=batch,
            notes=f"Imported from batch upload - Month {item.month}",
        )
        item.contribution = contribution
        item.status = BatchUploadItem.Status.CONTRIBUTION_CREATED
        item.error_message = ""
        item.save(update_fields=["contribution", "status", "error_message"])


def process_batch(batch: BatchUpload, by_user=None) -> dict:
    """Create cases and contributions for a fully mapped batch."""
    if batch.state == BatchUpload.State.PROCESSING:
        raise BatchStateError("Batch is already being processed", code="processing")
    if batch.state == BatchUpload.State.COMPLETED:
        raise BatchStateError("Batch has already been processed", code="completed")

    batch.start_processing(by=by_user)
    batch.save()

    items = list(batch.items.select_related("case").order_by("row_number"))
    if not items:
        batch.mark_failed(by=by_user)
        batch.error_summary = {"message": "No items found"}
        batch.save()
        raise BatchStateError("No items found in batch", code="empty")

    unmapped = [i for i in items if i.user_id is None or i.status == BatchUploadItem.Status.PENDING]
    if unmapped:
        batch.return_to_pending(by=by_user)
        batch.save()
        raise UnmappedContributorsError(
            f"Cannot process batch: {len(unmapped)} item(s) are not mapped. "
            "Please map all contributors before processing.",
            code="unmapped",
        )

    groups: dict[str, list[BatchUploadItem]] = {}
    for item in items:
        if item.case_key:
            groups.setdefault(item.case_key, []).append(item)

    processed = successful = failed = 0
    errors = []

    for case_key, case_items in groups.items():
        try:
            case = _create_case(batch, case_items, by_user)
        except (DatabaseError, ValidationError) as e:
            logger.error("Batch %s: case %s could not be created: %s", batch.pk, case_key, e)
            for item in case_items:
                _fail_item(item, str(e))
                errors.append({"item_id": item.pk, "error": f"Case creation failed: {e}"})
                failed += 1
                processed += 1
            continue

        for item in case_items:
            processed += 1
            if item.contribution_id:
                # left over from an earlier run of this batch
                successful += 1
                continue
            try:
                _create_contribution(batch, case, item)
            except (DatabaseError, ValidationError) as e:
                logger.warning("Batch %s: item %s failed: %s", batch.pk, item.pk, e)
                _fail_item(item, str(e))
                errors.append({"item_id": item.pk, "error": str(e)})
                failed += 1
            else:
                successful += 1

        raised = sum((i.amount for i in case_items if i.contribution_id), Decimal("0"))
        if raised > 0:
            case.current_amount = raised
            case.save(update_fields=["current_amount"])

    if successful or not failed:
        batch.mark_completed(by=by_user)
    else:
        batch.mark_failed(by=by_user)

    batch.processed_items = processed
    batch.successful_items = successful
    batch.failed_items = failed
    batch.error_summary = {"errors": errors, "total_errors": len(errors)} if errors else None
    batch.save()

    logger.info(
        "Batch %s processed: %d item(s), %d successful, %d failed",
        batch.pk, processed, successful, failed,
    )
    return {
        "state": batch.state,
        "processed_items": processed,
        "successful_items": successful,
        "failed_items": failed,
        "errors": errors,
    }


@transaction.atomic
def rollback_batch(batch: BatchUpload) -> dict:
    """Undo an import: delete its contributions, then its cases, then the batch and items.

    Cases are removed as a whole, including contributions added to them
    outside the batch.
    """
    if batch.state == BatchUpload.State.PROCESSING:
        raise BatchStateError("Batch is being processed and cannot be rolled back", code="processing")

    contributions = Contribution.objects.filter(batch=batch)
    deleted_contributions = contributions.count()
    contributions.delete()

    cases = Case.objects.filter(batch=batch)
    deleted_cases = cases.count()
    cases.delete()

    deleted_items = batch.items.count()
    batch_id = batch.pk
    clear_object_perms(batch)
    batch.delete()

    logger.info(
        "Batch %s rolled back: %d contribution(s), %d case(s), %d item(s) removed",
        batch_id, deleted_contributions, deleted_cases, deleted_items,
    )
    return {"contributions": deleted_contributions, "cases": deleted_cases, "items": deleted_items}
