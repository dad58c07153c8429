"""Flat view of the catalog hierarchy.

Catalog rows reference their parent by id.  :class:`CatalogTree` turns
them into a single ``id -> node`` map with child ids, and every
traversal walks that map explicitly, so malformed data (dangling
parents, cycles) cannot send it into infinite recursion.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from librarian.storage.repository import CatalogRecord


@dataclass
class CatalogNode:
    id: str
    name: str
    parent_id: str | None
    children: list[str] = field(default_factory=list)


class CatalogTree:
    def __init__(self, catalogs: Iterable[CatalogRecord]) -> None:
        self._nodes: dict[str, CatalogNode] = {
            c.id: CatalogNode(id=c.id, name=c.name, parent_id=c.parent_id) for c in catalogs
        }
        for node in self._nodes.values():
            parent = self._nodes.get(node.parent_id) if node.parent_id else None
            if parent is None or parent.id == node.id:
                node.parent_id = None
            else:
                parent.children.append(node.id)

    def __contains__(self, catalog_id: object) -> bool:
        return catalog_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def get(self, catalog_id: str) -> CatalogNode | None:
        return self._nodes.get(catalog_id)

    def roots(self) -> list[CatalogNode]:
        return [node for node in self._nodes.values() if node.parent_id is None]

    def ancestors(self, catalog_id: str) -> list[CatalogNode]:
        """Parents of *catalog_id*, nearest first."""
        result: list[CatalogNode] = []
        seen = {catalog_id}
        node = self._nodes.get(catalog_id)
        while node is not None and node.parent_id is not None and node.parent_id not in seen:
            seen.add(node.parent_id)
            node = self._nodes[node.parent_id]
            result.append(node)
        return result

    def descendants(self, catalog_id: str) -> list[CatalogNode]:
        """All catalogs below *catalog_id*, breadth first."""
        root = self._nodes.get(catalog_id)
        if root is None:
            return []
        result: list[CatalogNode] = []
        seen = {catalog_id}
        queue = deque(root.children)
        while queue:
            child_id = queue.popleft()
            if child_id in seen:
                continue
            seen.add(child_id)
            child = self._nodes[child_id]
            result.append(child)
            queue.extend(child.children)
        return result

    def path(self, catalog_id: str) -> list[str]:
        """Catalog names from the root down to *catalog_id*."""
        node = self._nodes.get(catalog_id)
        if node is None:
            return []
        return [n.name for n in reversed(self.ancestors(catalog_id))] + [node.name]

    def to_dict(self) -> list[dict]:
        """Nested ``{id, name, children}`` structure for API responses."""

        def build(node: CatalogNode, seen: set[str]) -> dict:
            seen.add(node.id)
            children = [self._nodes[c] for c in node.children if c not in seen]
            return {"id": node.id, "name": node.name, "children": [build(c, seen) for c in children]}

        seen: set[str] = set()
        return [build(root, seen) for root in self.roots()]
