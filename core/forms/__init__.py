from .menu_forms import MenuForm
