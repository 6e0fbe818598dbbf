from .menu import Menu
