from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from polyfill_refresh.detector import RenameNoticeDetector, find_rename_notices
from polyfill_refresh.errors import ParseError
from polyfill_refresh.mapping import MappingEntry, MappingTable, TransformCollector
from polyfill_refresh.rewriter import DeclarationRewriter
from polyfill_refresh.simplify import simplify
from polyfill_refresh.syntax import parse_php

LOGGER = logging.getLogger(__name__)

POLYFILL_HEADER = """<?php

/**
 * Forward-compatibility polyfill for {identity}
 *
 * This class provides forward compatibility by making the future namespace
 * available in the current release, allowing you to migrate your code early.
 *
 * @package {package}
 */

"""


class TransformState(str, Enum):
    LOADED = "loaded"
    PARSED = "parsed"
    PRUNED = "pruned"
    REWRITTEN = "rewritten"
    PRINTED = "printed"
    HEADERED = "headered"
    WRITTEN = "written"
    FAILED = "failed"


@dataclass
class TransformResult:
    entry: MappingEntry
    text: str
    state: TransformState
    removed: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.state == TransformState.FAILED


def add_polyfill_header(code: str, source_identity: str, package: str) -> str:
    """Prepend the generated-file banner, open tag included, to *code*.

    *code* is the source after its own open tag, see :meth:`SyntaxTree.render_code`.
    """
    return POLYFILL_HEADER.format(identity=source_identity, package=package) + code


class FileTransformPipeline:
    """Turns one upstream source file into its polyfill text.

    A file that cannot be parsed is passed through untouched, so a single bad
    file never stops a batch.
    """

    def __init__(
        self,
        table: MappingTable,
        *,
        match_identities: bool = False,
        collector: TransformCollector | None = None,
    ) -> None:
        self._table = table
        self._rewriter = DeclarationRewriter(table)
        self._match_identities = match_identities
        self._collector = collector

    def transform(self, source: str, entry: MappingEntry) -> TransformResult:
        state = TransformState.LOADED
        try:
            tree = parse_php(source)
            state = TransformState.PARSED

            detector = RenameNoticeDetector.for_entry(entry, match_identities=self._match_identities)
            removals = simplify(tree, find_rename_notices(tree, detector))
            removed = [tree.text(node) for node in removals]
            tree = tree.apply([tree.removal(node) for node in removals])
            state = TransformState.PRUNED

            tree = tree.apply(self._rewriter.rewrite(tree, entry))
            state = TransformState.REWRITTEN

            printed = tree.render_code()
            state = TransformState.PRINTED
        except ParseError as exc:
            LOGGER.warning(
                "Failed to parse %s (%s, stopped after %s); keeping original source",
                entry.source_identity,
                exc,
                state.value,
            )
            return TransformResult(entry=entry, text=source, state=TransformState.FAILED, error=str(exc))

        text = add_polyfill_header(printed, entry.source_identity, self._table.package)
        LOGGER.debug("Removed %d statement(s) from %s", len(removed), entry.source_identity)

        if self._collector is not None:
            for statement in removed:
                self._collector.record(entry.source_identity, statement)

        return TransformResult(entry=entry, text=text, state=TransformState.HEADERED, removed=removed)
