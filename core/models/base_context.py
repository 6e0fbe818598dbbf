import logging

from core.services.menu_store import MenuLoadError, OrmMenuStore
from core.services.menu_tree import active_only, build_tree

logger = logging.getLogger(__name__)


def base_context(request):
    if not request.user.is_authenticated:
        return {}

    try:
        flat = OrmMenuStore().fetch_all()
    except MenuLoadError as e:
        logger.error("Sidebar menu unavailable: %s", e)
        return {"menus": []}
    return {"menus": active_only(build_tree(flat))}
