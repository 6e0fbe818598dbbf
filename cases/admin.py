from django.contrib import admin
from unfold.admin import ModelAdmin

from .models import Case, Contribution


class ContributionInline(admin.TabularInline):
    model = Contribution
    extra = 0
    fields = ("donor", "amount", "status", "notes")
    autocomplete_fields = ("donor",)


@admin.register(Case)
class CaseAdmin(ModelAdmin):
    inlines = [ContributionInline]
    list_display = ("id", "title", "status", "target_amount", "current_amount", "batch", "created_at")
    list_filter = ("status",)
    search_fields = ("title", "title_localized")
    readonly_fields = ("created_at",)


@admin.register(Contribution)
class ContributionAdmin(ModelAdmin):
    list_display = ("id", "case", "donor", "amount", "status", "batch", "created_at")
    list_filter = ("status",)
    search_fields = ("case__title", "donor__username", "notes")
    readonly_fields = ("created_at",)
