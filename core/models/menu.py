import uuid

from django.db import models
from simple_history.models import HistoricalRecords


class Menu(models.Model):
    """Admin navigation entry.

    The tree is a plain adjacency list (parent + sort_order). The editor in
    core.services rebuilds it in memory; the rows here are the flat,
    persisted shape.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    label = models.CharField(max_length=255)
    label_localized = models.CharField(max_length=255, blank=True, default="")
    href = models.CharField(max_length=500)
    icon = models.CharField(max_length=64, blank=True, default="")
    description = models.TextField(blank=True, default="")

    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        related_name="children",
        on_delete=models.CASCADE,
    )

    # order within the same parent (top-level uses parent=NULL)
    sort_order = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    history = HistoricalRecords()

    class Meta:
        ordering = ["parent_id", "sort_order", "label"]

    def __str__(self):
        return self.label
