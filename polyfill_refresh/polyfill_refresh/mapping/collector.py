"""Removal collector for tracking excised deprecation notices."""

from __future__ import annotations


class TransformCollector:
    """Accumulates the statements removed from each class across a run.

    Every removal is kept, in order, so identical notices removed from two
    methods are recorded twice and ``count`` matches the run report.
    """

    def __init__(self) -> None:
        self._removals: dict[str, list[str]] = {}

    def record(self, source_identity: str, statement: str) -> None:
        self._removals.setdefault(source_identity, []).append(statement)

    def count(self, source_identity: str) -> int:
        return len(self._removals.get(source_identity, []))

    def to_dict(self) -> dict[str, list[str]]:
        return {identity: list(statements) for identity, statements in self._removals.items()}
