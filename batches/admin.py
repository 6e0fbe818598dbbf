from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.shortcuts import redirect
from django_object_actions import DjangoObjectActions, action
from guardian.admin import GuardedModelAdmin
from simple_history.admin import SimpleHistoryAdmin
from unfold.admin import ModelAdmin, TabularInline

from batches.models import BatchUpload, BatchUploadItem
from batches.services.batch import process_batch, rollback_batch, sync_item_mapping


class BatchUploadItemInline(TabularInline):
    model = BatchUploadItem
    extra = 0
    fields = (
        "row_number", "case_number", "combined_case_number", "case_title",
        "contributor_nickname", "amount", "month", "user", "status", "error_message",
    )
    readonly_fields = (
        "row_number", "case_number", "combined_case_number", "case_title",
        "contributor_nickname", "amount", "month", "status", "error_message",
    )
    autocomplete_fields = ("user",)
    can_delete = False
    show_change_link = False

    def has_add_permission(self, request, obj=None):
        return False

    def get_readonly_fields(self, request, obj=None):
        fields = super().get_readonly_fields(request, obj)
        # users can only be (re)mapped while the batch is pending
        if obj is not None and obj.state != BatchUpload.State.PENDING:
            return (*fields, "user")
        return fields


@admin.register(BatchUpload)
class BatchUploadAdmin(DjangoObjectActions, GuardedModelAdmin, SimpleHistoryAdmin, ModelAdmin):
    inlines = [BatchUploadItemInline]
    list_display = ("id", "name", "state", "total_items", "successful_items", "failed_items", "uploaded_by", "created_at")
    list_filter = ("state",)
    search_fields = ("name", "source_filename")
    readonly_fields = (
        "state", "uploaded_by", "total_items", "processed_items", "successful_items",
        "failed_items", "error_summary", "created_at", "completed_at",
    )

    change_actions = ("process_action", "rollback_action")

    def get_change_actions(self, request, object_id, form_url):
        obj = self.get_object(request, object_id)
        if not obj:
            return ()
        actions = []
        if obj.state in (BatchUpload.State.PENDING, BatchUpload.State.FAILED):
            actions.append("process_action")
        if obj.state != BatchUpload.State.PROCESSING and self.has_delete_permission(request, obj):
            actions.append("rollback_action")
        return actions

    def save_formset(self, request, form, formset, change):
        super().save_formset(request, form, formset, change)
        if formset.model is BatchUploadItem:
            sync_item_mapping(form.instance)

    @action(label="Process batch", description="Create cases and contributions for this batch")
    def process_action(self, request, obj):
        try:
            result = process_batch(obj, by_user=request.user)
        except ValidationError as e:
            self.message_user(request, f"Could not process: {e.message}", level=messages.ERROR)
            return

        level = messages.SUCCESS if not result["failed_items"] else messages.WARNING
        self.message_user(
            request,
            f"Processed {result['processed_items']} items. "
            f"{result['successful_items']} successful, {result['failed_items']} failed.",
            level=level,
        )

    @action(label="Roll back batch", description="Delete this batch with the cases and contributions it created")
    def rollback_action(self, request, obj):
        try:
            deleted = rollback_batch(obj)
        except ValidationError as e:
            self.message_user(request, f"Could not roll back: {e.message}", level=messages.ERROR)
            return

        self.message_user(
            request,
            f"Batch upload deleted. Removed {deleted['cases']} cases and {deleted['contributions']} contributions.",
            level=messages.SUCCESS,
        )
        return redirect("admin:batches_batchupload_changelist")


@admin.register(BatchUploadItem)
class BatchUploadItemAdmin(ModelAdmin):
    list_display = ("batch", "row_number", "case_number", "contributor_nickname", "amount", "month", "user", "status")
    list_filter = ("status", "batch")
    search_fields = ("contributor_nickname", "case_number", "combined_case_number", "case_title")
    autocomplete_fields = ("user",)
    readonly_fields = (
        "batch", "row_number", "case_number", "combined_case_number", "case_title",
        "contributor_nickname", "amount", "month", "status", "case", "contribution", "error_message",
    )

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        sync_item_mapping(obj.batch)

    def get_readonly_fields(self, request, obj=None):
        fields = super().get_readonly_fields(request, obj)
        if obj is not None and obj.batch.state != BatchUpload.State.PENDING:
            return (*fields, "user")
        return fields
