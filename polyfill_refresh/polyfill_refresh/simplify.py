"""Dead statement cleanup run right after rename notices are pruned."""

from __future__ import annotations

from collections.abc import Iterable

from tree_sitter import Node

from polyfill_refresh.syntax import SyntaxTree, statements, walk

# Nodes whose children are statements.
STATEMENT_CONTAINERS = frozenset(
    {"program", "compound_statement", "colon_block", "case_statement", "default_statement"}
)

# Condition sub-expressions that may have side effects.
_IMPURE_EXPRESSIONS = frozenset(
    {
        "function_call_expression",
        "member_call_expression",
        "nullsafe_member_call_expression",
        "scoped_call_expression",
        "object_creation_expression",
        "assignment_expression",
        "augmented_assignment_expression",
        "reference_assignment_expression",
        "update_expression",
        "include_expression",
        "include_once_expression",
        "require_expression",
        "require_once_expression",
        "yield_expression",
        "print_intrinsic",
        "shell_command_expression",
        "exit_statement",
        "throw_expression",
    }
)

_CLASS_TYPES = frozenset({"class_declaration", "anonymous_class"})
_NO_PARENT_CONTEXT_TYPES = frozenset({"trait_declaration", "interface_declaration", "enum_declaration"})

Span = tuple[int, int]


def _span(node: Node) -> Span:
    return node.start_byte, node.end_byte


class DeadCodeSimplifier:
    """Extends a set of pruned statements with the dead code they leave behind.

    * an ``if`` without ``else`` whose block was emptied by pruning and whose
      condition has no side effects goes with its block;
    * stray ``;`` statements in a pruned block go;
    * ``parent::`` call statements go from classes that declare no parent.
    """

    def __init__(self, tree: SyntaxTree, removed: Iterable[Node]) -> None:
        self._tree = tree
        self._removed = {_span(node) for node in removed}

    def run(self) -> list[Node]:
        return self._visit(self._tree.root, has_parent=None, removable=False)

    def _visit(self, node: Node, has_parent: bool | None, removable: bool) -> list[Node]:
        # A statement can only go when it sits directly in a block; deleting
        # the lone body of a brace-less if/while would change what it guards.
        if removable and _span(node) in self._removed:
            return [node]
        if removable and has_parent is False and self._is_parent_call(node):
            return [node]

        if node.type in _CLASS_TYPES:
            has_parent = any(child.type == "base_clause" for child in node.children)
        elif node.type in _NO_PARENT_CONTEXT_TYPES:
            has_parent = None

        removals: list[Node] = []
        for child in node.children:
            removals.extend(self._visit(child, has_parent, node.type in STATEMENT_CONTAINERS))

        if removable and node.type == "if_statement" and self._is_dead_if(node, removals):
            return [node]

        if removals and node.type in STATEMENT_CONTAINERS:
            removed = {_span(child) for child in removals}
            for child in node.named_children:
                if child.type == "empty_statement" and _span(child) not in removed:
                    removals.append(child)
            removals.sort(key=lambda child: child.start_byte)

        return removals

    def _is_parent_call(self, node: Node) -> bool:
        if node.type != "expression_statement":
            return False
        parts = statements(node)
        if not parts or parts[0].type != "scoped_call_expression":
            return False
        scope = parts[0].child_by_field_name("scope")
        return scope is not None and scope.type == "relative_scope" and self._tree.text(scope) == "parent"

    def _is_dead_if(self, node: Node, removals: list[Node]) -> bool:
        if node.children_by_field_name("alternative"):
            return False

        body = node.child_by_field_name("body")
        condition = node.child_by_field_name("condition")
        if body is None or body.type != "compound_statement" or condition is None:
            return False

        removed = {_span(child) for child in removals}
        inner = statements(body)
        if not inner or not all(_span(child) in removed for child in inner):
            return False

        return not any(part.type in _IMPURE_EXPRESSIONS for part in walk(condition))


def simplify(tree: SyntaxTree, removed: Iterable[Node]) -> list[Node]:
    """Return the final, non-overlapping list of statements to delete."""
    return DeadCodeSimplifier(tree, removed).run()
