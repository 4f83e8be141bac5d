"""PHP syntax trees backed by the tree-sitter PHP grammar.

tree-sitter trees are read-only, so a change to a tree is expressed as a list of
byte-range :class:`Edit` objects. Applying them splices the source text and
parses it again, which yields a fresh :class:`SyntaxTree`. Text outside the
edited ranges is carried over byte for byte.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import tree_sitter_php
from tree_sitter import Language, Node, Parser, Tree

from polyfill_refresh.errors import ParseError

PHP_LANGUAGE = Language(tree_sitter_php.language_php())

ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"

_parser: Parser | None = None


def _get_parser() -> Parser:
    global _parser
    if _parser is None:
        _parser = Parser(PHP_LANGUAGE)
    return _parser


@dataclass(frozen=True)
class Edit:
    """Replace ``source[start:end]`` with ``replacement``."""

    start: int
    end: int
    replacement: bytes = b""


@dataclass(frozen=True)
class SyntaxTree:
    source: bytes
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def text(self, node: Node) -> str:
        return self.source[node.start_byte : node.end_byte].decode(ENCODING, ENCODING_ERRORS)

    def replacement(self, node: Node, text: str) -> Edit:
        return Edit(node.start_byte, node.end_byte, text.encode(ENCODING, ENCODING_ERRORS))

    def removal(self, node: Node) -> Edit:
        """Build an edit deleting *node*.

        A statement that sits alone on its lines is removed together with its
        indentation and line break; otherwise only the node and the horizontal
        whitespace after it go.
        """
        source = self.source
        start, end = node.start_byte, node.end_byte

        line_start = source.rfind(b"\n", 0, start) + 1
        line_end = source.find(b"\n", end)
        if line_end == -1:
            line_end = len(source)

        if not source[line_start:start].strip() and not source[end:line_end].strip():
            return Edit(line_start, min(line_end + 1, len(source)))

        while end < len(source) and source[end : end + 1] in (b" ", b"\t"):
            end += 1
        return Edit(start, end)

    def apply(self, edits: Iterable[Edit]) -> SyntaxTree:
        edits = list(edits)
        if not edits:
            return self
        return parse_php(apply_edits(self.source, edits))

    def render(self) -> str:
        return self.source.decode(ENCODING, ENCODING_ERRORS)

    def render_code(self) -> str:
        """Render the text after the first open tag.

        Anything before the tag (a byte order mark, inline HTML) goes with it,
        as does the whitespace that follows it.
        """
        tag = next(child for child in self.root.children if child.type == "php_tag")
        return self.source[tag.end_byte :].decode(ENCODING, ENCODING_ERRORS).lstrip()


def apply_edits(source: bytes, edits: Iterable[Edit]) -> bytes:
    """Splice *edits* into *source*.

    Edits nested inside an earlier edit are dropped; partially overlapping
    edits are rejected.
    """
    ordered = sorted(edits, key=lambda edit: (edit.start, -edit.end))
    chunks: list[bytes] = []
    cursor = 0
    for edit in ordered:
        if edit.end <= cursor and edit.start < cursor:
            continue
        if edit.start < cursor:
            raise ValueError(f"Overlapping edits at byte {edit.start}")
        chunks.append(source[cursor : edit.start])
        chunks.append(edit.replacement)
        cursor = edit.end
    chunks.append(source[cursor:])
    return b"".join(chunks)


def parse_php(source: str | bytes) -> SyntaxTree:
    """Parse a PHP source unit.

    Raises ParseError when the grammar reports syntax errors or when the unit
    has no ``<?php`` open tag (plain template text has nothing to transform).
    """
    data = source.encode(ENCODING, ENCODING_ERRORS) if isinstance(source, str) else source
    tree = _get_parser().parse(data)
    root = tree.root_node

    if root.has_error:
        error = _first_error(root)
        line = error.start_point[0] + 1 if error is not None else 1
        raise ParseError(f"syntax error near line {line}")

    tag = next((child for child in root.children if child.type == "php_tag"), None)
    if tag is None:
        raise ParseError("no PHP open tag found")
    # The banner reopens with <?php, which cannot stand in for <?= or <?.
    if data[tag.start_byte : tag.end_byte].strip().lower() != b"<?php":
        raise ParseError("file opens with a short open tag")

    return SyntaxTree(data, tree)


def _first_error(node: Node) -> Node | None:
    for candidate in walk(node):
        if candidate.is_error or candidate.is_missing:
            return candidate
    return None


def walk(node: Node) -> Iterator[Node]:
    """Yield *node* and its descendants in document order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def statements(block: Node) -> list[Node]:
    """Named children of a block, comments excluded."""
    return [child for child in block.named_children if child.type != "comment"]


# ---------------------------------------------------------------------------
# String literals
# ---------------------------------------------------------------------------

# Named children that may appear inside a double-quoted string without
# making it interpolated.
_LITERAL_STRING_PARTS = frozenset({"string_content", "string_value", "string", "escape_sequence"})

_SINGLE_QUOTED_ESCAPE_RE = re.compile(r"\\([\\'])")
_DOUBLE_QUOTED_ESCAPE_RE = re.compile(r'\\([ntrvef\\$"])')
_DOUBLE_QUOTED_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "v": "\v",
    "e": "\x1b",
    "f": "\f",
    "\\": "\\",
    "$": "$",
    '"': '"',
}


def string_literal_value(tree: SyntaxTree, node: Node) -> str | None:
    """Return the value of a constant string literal, or None.

    Single-quoted strings, double-quoted strings without interpolation and
    nowdocs are literals. Heredocs, interpolated strings and concatenations are
    not.
    """
    if node.type == "nowdoc":
        return _nowdoc_value(tree, node)

    if node.type == "string":
        body = _strip_quotes(tree.text(node), "'")
        if body is None:
            return None
        return _SINGLE_QUOTED_ESCAPE_RE.sub(r"\1", body)

    if node.type == "encapsed_string":
        if any(child.type not in _LITERAL_STRING_PARTS for child in node.named_children):
            return None
        body = _strip_quotes(tree.text(node), '"')
        if body is None:
            return None
        return _DOUBLE_QUOTED_ESCAPE_RE.sub(lambda match: _DOUBLE_QUOTED_ESCAPES[match.group(1)], body)

    return None


def _nowdoc_value(tree: SyntaxTree, node: Node) -> str:
    parts = [child for child in walk(node) if child.type == "nowdoc_string"]
    if not parts:
        return ""
    body = tree.source[parts[0].start_byte : parts[-1].end_byte].decode(ENCODING, ENCODING_ERRORS)

    # A closing marker indented by N columns strips N columns from every line.
    indent = ""
    end = next((child for child in node.children if child.type == "heredoc_end"), None)
    if end is not None:
        line_start = tree.source.rfind(b"\n", 0, end.start_byte) + 1
        prefix = tree.source[line_start : end.start_byte]
        if not prefix.strip():
            indent = prefix.decode(ENCODING, ENCODING_ERRORS)

    lines = body.replace("\r\n", "\n").split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(line[len(indent) :] if line.startswith(indent) else line for line in lines)


def _strip_quotes(text: str, quote: str) -> str | None:
    if text[:1] in ("b", "B"):
        text = text[1:]
    if len(text) < 2 or text[0] != quote or text[-1] != quote:
        return None
    return text[1:-1]
