from __future__ import annotations

from collections.abc import Callable

from tree_sitter import Node

from polyfill_refresh.mapping import MappingEntry, MappingTable
from polyfill_refresh.syntax import Edit, SyntaxTree, walk

CLASS_LIKE_TYPES: tuple[str, ...] = (
    "class_declaration",
    "interface_declaration",
    "trait_declaration",
    "enum_declaration",
)


class DeclarationRewriter:
    """Moves namespace and class declarations to their polyfill identities.

    Only declarations change. References to the old identity elsewhere in the
    file (``extends``, type hints, ``new``) are left as they are.
    """

    def __init__(self, table: MappingTable) -> None:
        self._table = table
        self._handlers: dict[str, Callable[[SyntaxTree, Node, MappingEntry | None], Edit | None]] = {
            "namespace_definition": self._rewrite_namespace,
        }
        for node_type in CLASS_LIKE_TYPES:
            self._handlers[node_type] = self._rewrite_class_name

    def rewrite(self, tree: SyntaxTree, entry: MappingEntry | None = None) -> list[Edit]:
        edits: list[Edit] = []
        for node in walk(tree.root):
            handler = self._handlers.get(node.type)
            if handler is None:
                continue
            edit = handler(tree, node, entry)
            if edit is not None:
                edits.append(edit)
        return edits

    def map_namespace(self, namespace: str, entry: MappingEntry | None = None) -> str | None:
        """Return the new namespace for *namespace*, or None to keep it.

        The entry of the file being processed wins over the table-wide
        namespace mapping, which only carries one target per old namespace.
        """
        if entry is not None:
            if namespace == entry.target_namespace:
                return None
            if namespace == entry.source_namespace:
                return entry.target_namespace
        return self._table.namespaces.map(namespace)

    def map_class_name(self, name: str) -> str | None:
        return self._table.class_names.get(name)

    def _rewrite_namespace(
        self, tree: SyntaxTree, node: Node, entry: MappingEntry | None
    ) -> Edit | None:
        name = node.child_by_field_name("name")
        if name is None:
            return None

        current = "".join(tree.text(name).split())
        target = self.map_namespace(current, entry)
        if target is None or target == current:
            return None
        return tree.replacement(name, target)

    def _rewrite_class_name(
        self, tree: SyntaxTree, node: Node, entry: MappingEntry | None
    ) -> Edit | None:
        name = node.child_by_field_name("name")
        if name is None:
            return None

        current = tree.text(name)
        target = self.map_class_name(current)
        if target is None or target == current:
            return None
        return tree.replacement(name, target)
