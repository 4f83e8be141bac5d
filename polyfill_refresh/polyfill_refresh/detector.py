from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache

from tree_sitter import Node

from polyfill_refresh.mapping import MappingEntry
from polyfill_refresh.syntax import SyntaxTree, statements, string_literal_value

RENAME_PHRASES: tuple[str, ...] = (
    "Will be renamed",
    "renamed to",
    "Will be moved to",
    "moved to",
)

DEPRECATION_CLASS = "Deprecation"

# Scope nodes that spell a class name literally.
_CLASS_REFERENCE_TYPES = frozenset({"name", "qualified_name"})

# Older grammar releases call closures anonymous_function_creation_expression.
_CLOSURE_TYPES = frozenset({"anonymous_function", "anonymous_function_creation_expression"})
_ARROW_FUNCTION_TYPES = frozenset({"arrow_function"})


@dataclass(frozen=True)
class DeprecationCall:
    """A static call on the Deprecation class with literal method name."""

    method: str
    arguments: tuple[Node, ...]


def deprecation_call(tree: SyntaxTree, expression: Node) -> DeprecationCall | None:
    """Resolve *expression* to a ``Deprecation::method(...)`` call, or None.

    Calls with a variable scope or a variable method name never resolve.
    """
    if expression.type != "scoped_call_expression":
        return None

    scope = expression.child_by_field_name("scope")
    name = expression.child_by_field_name("name")
    arguments = expression.child_by_field_name("arguments")
    if scope is None or name is None or arguments is None:
        return None
    if scope.type not in _CLASS_REFERENCE_TYPES or name.type != "name":
        return None

    class_name = tree.text(scope).strip().rpartition("\\")[2]
    if class_name != DEPRECATION_CLASS:
        return None

    values = []
    for argument in arguments.named_children:
        if argument.type != "argument":
            continue
        parts = [child for child in argument.named_children if child.type != "comment"]
        if parts:
            values.append(parts[-1])
    return DeprecationCall(method=tree.text(name), arguments=tuple(values))


@lru_cache(maxsize=None)
def _mention_pattern(needle: str) -> re.Pattern[str]:
    return re.compile(r"(?<![A-Za-z0-9_])" + re.escape(needle) + r"(?![A-Za-z0-9_])")


@dataclass(frozen=True)
class RenameNoticeDetector:
    """Classifies statements as rename-only deprecation notices.

    ``identities`` holds the class and namespace names of the entry being
    processed; when set, a notice that mentions one of them counts as a rename
    notice even without one of the fixed phrases.
    """

    phrases: tuple[str, ...] = RENAME_PHRASES
    identities: tuple[str, ...] = ()

    @classmethod
    def for_entry(cls, entry: MappingEntry, *, match_identities: bool = False) -> RenameNoticeDetector:
        if not match_identities:
            return cls()
        candidates = (
            entry.target_namespace,
            entry.target_class,
            entry.source_namespace,
            entry.source_class,
        )
        return cls(identities=tuple(dict.fromkeys(name for name in candidates if name)))

    def is_rename_message(self, message: str) -> bool:
        if any(phrase in message for phrase in self.phrases):
            return True
        return any(_mention_pattern(name).search(message) for name in self.identities)

    def is_rename_notice(self, tree: SyntaxTree, statement: Node) -> bool:
        if statement.type != "expression_statement":
            return False
        parts = statements(statement)
        if not parts:
            return False
        return self.is_rename_call(tree, parts[0])

    def is_rename_call(self, tree: SyntaxTree, expression: Node) -> bool:
        call = deprecation_call(tree, expression)
        if call is None:
            return False
        shape = CALL_SHAPES.get(call.method)
        if shape is None:
            return False
        return shape(self, tree, call)


# ---------------------------------------------------------------------------
# Call shapes
# ---------------------------------------------------------------------------

CallShape = Callable[[RenameNoticeDetector, SyntaxTree, DeprecationCall], bool]


def _message_shape(detector: RenameNoticeDetector, tree: SyntaxTree, call: DeprecationCall) -> bool:
    for value in call.arguments:
        message = string_literal_value(tree, value)
        if message is not None and detector.is_rename_message(message):
            return True
    return False


def _suppressed_notice_shape(
    detector: RenameNoticeDetector, tree: SyntaxTree, call: DeprecationCall
) -> bool:
    """Match a withSuppressedNotice wrapper whose callback only announces the rename."""
    if not call.arguments:
        return False

    callback = call.arguments[0]
    body = callback.child_by_field_name("body")
    if body is None:
        return False

    if callback.type in _CLOSURE_TYPES:
        inner = statements(body)
        return bool(inner) and all(detector.is_rename_notice(tree, stmt) for stmt in inner)

    if callback.type in _ARROW_FUNCTION_TYPES:
        return detector.is_rename_call(tree, body)

    return False


CALL_SHAPES: dict[str, CallShape] = {
    "notice": _message_shape,
    "noticeWithNoReplacement": _message_shape,
    "noticeWithNoReplacment": _message_shape,
    "withSuppressedNotice": _suppressed_notice_shape,
}


def find_rename_notices(tree: SyntaxTree, detector: RenameNoticeDetector) -> list[Node]:
    """Return every rename notice statement in document order.

    The traversal does not descend into a matched statement, so a removed
    wrapper is reported once, never together with its inner call.
    """
    found: list[Node] = []
    stack = [tree.root]
    while stack:
        node = stack.pop()
        if detector.is_rename_notice(tree, node):
            found.append(node)
            continue
        stack.extend(reversed(node.children))
    return found
