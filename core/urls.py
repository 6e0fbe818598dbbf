from django.urls import path
from core.views.menu import menu_edit, menu_delete

app_name = "core"

urlpatterns = [
    path("menus/", menu_edit, name="menu-edit"),
    path("menus/<uuid:pk>/", menu_edit, name="menu-edit"),
    path("menus/<uuid:pk>/delete/", menu_delete, name="menu-delete"),
]
