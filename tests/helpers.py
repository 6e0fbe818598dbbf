import threading
from dataclasses import replace

from core.services.menu_store import MenuLoadError, MenuStoreError
from core.services.menu_tree import MenuNode


class FakeMenuStore:
    """In-memory store; ids in fail_ids make position updates fail."""

    def __init__(self, nodes=(), fail_ids=(), fail_load=False):
        self.rows = {n.id: replace(n, children=[]) for n in nodes}
        self.fail_ids = set(fail_ids)
        self.fail_load = fail_load
        self.fail_writes = False
        self.position_calls = []
        self.closed = 0
        self._lock = threading.Lock()

    def fetch_all(self):
        if self.fail_load:
            raise MenuLoadError("database unavailable")
        return [replace(n) for n in self.rows.values()]

    def update_position(self, node_id, parent_id, sort_order):
        with self._lock:
            self.position_calls.append((node_id, parent_id, sort_order))
        if node_id in self.fail_ids:
            raise MenuStoreError(f"write rejected for {node_id}")
        row = self.rows[node_id]
        row.parent_id = parent_id
        row.sort_order = sort_order

    def create(self, node):
        if self.fail_writes:
            raise MenuStoreError("insert rejected")
        self.rows[node.id] = replace(node, children=[])
        return replace(node, children=[])

    def update_fields(self, node_id, **fields):
        if self.fail_writes:
            raise MenuStoreError("update rejected")
        for name, value in fields.items():
            setattr(self.rows[node_id], name, value)

    def delete(self, node_id):
        if self.fail_writes:
            raise MenuStoreError("delete rejected")
        self.rows.pop(node_id, None)

    def close_connection(self):
        with self._lock:
            self.closed += 1


def node(id, parent_id=None, sort_order=0, label=None, **kwargs):
    return MenuNode(
        id=id,
        label=label or id.upper(),
        href=kwargs.pop("href", f"/{id}"),
        parent_id=parent_id,
        sort_order=sort_order,
        **kwargs,
    )

