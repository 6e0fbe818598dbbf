from django.contrib import admin, messages
from django.utils.translation import gettext_lazy as _
from simple_history.admin import SimpleHistoryAdmin
from unfold.admin import ModelAdmin

from .models import Menu


@admin.register(Menu)
class MenuAdmin(SimpleHistoryAdmin, ModelAdmin):
    list_display = ("label", "href", "parent", "sort_order", "is_active", "updated_at")
    list_filter = ("is_active", ("parent", admin.RelatedOnlyFieldListFilter))
    search_fields = ("label", "label_localized", "href")
    ordering = ("parent_id", "sort_order", "label")
    readonly_fields = ("created_at", "updated_at")
    actions = ["activate_selected", "deactivate_selected"]

    fieldsets = (
        (_("Display"), {"fields": ("label", "label_localized", "href", "icon", "description")}),
        (_("Placement"), {"fields": ("parent", "sort_order", "is_active")}),
        (_("Audit"), {"fields": ("created_at", "updated_at")}),
    )

    @admin.action(description="Activate selected menu items")
    def activate_selected(self, request, queryset):
        # save() per row so each change lands in the history table
        for menu in queryset:
            menu.is_active = True
            menu.save(update_fields=["is_active", "updated_at"])
        self.message_user(request, f"Activated {queryset.count()} menu item(s).", level=messages.SUCCESS)

    @admin.action(description="Deactivate selected menu items")
    def deactivate_selected(self, request, queryset):
        for menu in queryset:
            menu.is_active = False
            menu.save(update_fields=["is_active", "updated_at"])
        self.message_user(request, f"Deactivated {queryset.count()} menu item(s).", level=messages.SUCCESS)
