from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition
from django_fsm_log.decorators import fsm_log_by
from simple_history.models import HistoricalRecords


class BatchUpload(models.Model):
    """One imported CSV of case contributions.

    Lifecycle: pending -> processing -> completed / failed. A batch that
    still has unmapped contributors is sent back to pending; a failed batch
    can be processed again.
    """

    class State(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSING = "processing", "Processing"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    name = models.CharField(max_length=255)
    source_filename = models.CharField(max_length=255, blank=True, default="")
    state = FSMField(default=State.PENDING, choices=State.choices, protected=True)

    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )

    total_items = models.PositiveIntegerField(default=0)
    processed_items = models.PositiveIntegerField(default=0)
    successful_items = models.PositiveIntegerField(default=0)
    failed_items = models.PositiveIntegerField(default=0)
    error_summary = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    history = HistoricalRecords()

    class Meta:
        ordering = ("-created_at", "-id")

    def __str__(self):
        return f"{self.name} ({self.get_state_display()})"

    @fsm_log_by
    @transition(field=state, source=[State.PENDING, State.FAILED], target=State.PROCESSING)
    def start_processing(self, by=None):
        pass

    @fsm_log_by
    @transition(field=state, source=State.PROCESSING, target=State.PENDING)
    def return_to_pending(self, by=None):
        pass

    @fsm_log_by
    @transition(field=state, source=State.PROCESSING, target=State.COMPLETED)
    def mark_completed(self, by=None):
        self.completed_at = timezone.now()

    @fsm_log_by
    @transition(field=state, source=[State.PENDING, State.PROCESSING], target=State.FAILED)
    def mark_failed(self, by=None):
        self.completed_at = timezone.now()


class BatchUploadItem(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        MAPPED = "mapped", "Mapped"
        CASE_CREATED = "case_created", "Case created"
        CONTRIBUTION_CREATED = "contribution_created", "Contribution created"
        FAILED = "failed", "Failed"

    batch = models.ForeignKey(BatchUpload, on_delete=models.CASCADE, related_name="items")
    row_number = models.PositiveIntegerField()

    case_number = models.CharField(max_length=64)
    combined_case_number = models.CharField(max_length=64, blank=True, default="")
    case_title = models.CharField(max_length=255)
    contributor_nickname = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    month = models.CharField(max_length=32)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    status = models.CharField(max_length=32, choices=Status.choices, default=Status.PENDING)
    case = models.ForeignKey("cases.Case", null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    contribution = models.ForeignKey(
        "cases.Contribution", null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    error_message = models.TextField(blank=True, default="")

    class Meta:
        ordering = ("batch", "row_number")
        constraints = [
            models.UniqueConstraint(fields=["batch", "row_number"], name="uniq_batch_item_row"),
        ]

    def __str__(self):
        return f"{self.batch_id}#{self.row_number} {self.contributor_nickname}"

    @property
    def case_key(self) -> str:
        return self.combined_case_number or self.case_number
