from django.urls import reverse_lazy
from django.utils.translation import gettext_lazy as _

CORE_APP_LABEL = "core"
CASES_APP_LABEL = "cases"
BATCHES_APP_LABEL = "batches"
AUTH_APP_LABEL = "auth"


def admin_changelist(app_label: str, model: str):
    """
    model must be the lowercase model name used by Django admin url patterns.
    Examples:
      admin:core_menu_changelist
      admin:batches_batchupload_changelist
      admin:auth_user_changelist
    """
    return reverse_lazy(f"admin:{app_label}_{model}_changelist")


UNFOLD = {
    "SITE_HEADER": "Charity Console",
    "SITE_TITLE": "Charity Console",
    "SITE_URL": "/",

    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": False,
        "navigation": [
            {
                "title": _("Navigation"),
                "separator": True,
                "collapsible": True,
                "items": [
                    {"title": _("Menu items"), "icon": "account_tree", "link": admin_changelist(CORE_APP_LABEL, "menu")},
                    {"title": _("Menu editor"), "icon": "drag_indicator", "link": reverse_lazy("core:menu-edit")},
                ],
            },
            {
                "title": _("Case management"),
                "collapsible": True,
                "items": [
                    {"title": _("Cases"), "icon": "folder_open", "link": admin_changelist(CASES_APP_LABEL, "case")},
                    {"title": _("Contributions"), "icon": "volunteer_activism", "link": admin_changelist(CASES_APP_LABEL, "contribution")},
                    {"title": _("Batch uploads"), "icon": "upload_file", "link": admin_changelist(BATCHES_APP_LABEL, "batchupload")},
                ],
            },
            {
                "title": _("Users & Permissions"),
                "collapsible": True,
                "items": [
                    {"title": _("Users"), "icon": "manage_accounts", "link": admin_changelist(AUTH_APP_LABEL, "user")},
                    {"title": _("Groups"), "icon": "admin_panel_settings", "link": admin_changelist(AUTH_APP_LABEL, "group")},
                ],
            },
        ],
    },
}
