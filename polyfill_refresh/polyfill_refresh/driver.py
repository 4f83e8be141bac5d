from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import pandas as pd

from polyfill_refresh.errors import CleanupToolError, SourceMissingError
from polyfill_refresh.io import (
    build_report,
    clear_output_root,
    output_path_for_entry,
    read_source_file,
    resolve_source_file,
    write_output_file,
)
from polyfill_refresh.mapping import MappingEntry, MappingTable, TransformCollector
from polyfill_refresh.pipeline import FileTransformPipeline, TransformState

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshConfig:
    match_identities: bool = False
    clean_output: bool = True
    cleanup_command: tuple[str, ...] = ()


class EntryStatus(str, Enum):
    WRITTEN = "written"
    FAIL_OPEN = "fail-open"
    SKIPPED = "skipped"


@dataclass
class EntryOutcome:
    entry: MappingEntry
    status: EntryStatus
    destination: Path | None = None
    removed_notices: int = 0
    message: str = ""
    state: TransformState = TransformState.LOADED


@dataclass
class BatchResult:
    outcomes: list[EntryOutcome] = field(default_factory=list)
    cleanup_succeeded: bool | None = None

    @property
    def written_paths(self) -> list[Path]:
        return [
            outcome.destination
            for outcome in self.outcomes
            if outcome.destination is not None and outcome.status != EntryStatus.SKIPPED
        ]

    def count(self, status: EntryStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    def to_frame(self) -> pd.DataFrame:
        return build_report(
            {
                "source_identity": outcome.entry.source_identity,
                "source_path": outcome.entry.source_path,
                "target_path": outcome.entry.target_path,
                "status": outcome.status.value,
                "removed_notices": outcome.removed_notices,
                "message": outcome.message,
            }
            for outcome in self.outcomes
        )


def run_cleanup_command(command: tuple[str, ...], cwd: Path) -> None:
    """Run the external cleanup tool over the generated tree."""
    try:
        completed = subprocess.run(
            list(command), cwd=cwd, capture_output=True, text=True, check=False
        )
    except OSError as exc:
        raise CleanupToolError(f"Could not run {command[0]}: {exc}") from exc

    if completed.returncode != 0:
        detail = (completed.stderr or completed.stdout).strip()
        raise CleanupToolError(f"{command[0]} exited with status {completed.returncode}: {detail}")


class PolyfillRefresher:
    """Regenerates the whole polyfill tree from an upstream source tree."""

    def __init__(
        self,
        table: MappingTable,
        source_root: Path,
        output_root: Path,
        *,
        config: RefreshConfig | None = None,
        collector: TransformCollector | None = None,
    ) -> None:
        self._table = table
        self._source_root = source_root
        self._output_root = output_root
        self._config = config or RefreshConfig()
        self._pipeline = FileTransformPipeline(
            table, match_identities=self._config.match_identities, collector=collector
        )

    def refresh(self, on_entry: Callable[[EntryOutcome], None] | None = None) -> BatchResult:
        if self._config.clean_output:
            clear_output_root(self._output_root, self._source_root)

        result = BatchResult()
        written_by: dict[Path, str] = {}

        for entry in self._table:
            outcome = self._process_entry(entry)
            result.outcomes.append(outcome)

            if outcome.destination is not None and outcome.status != EntryStatus.SKIPPED:
                previous = written_by.get(outcome.destination)
                if previous is not None:
                    LOGGER.warning(
                        "%s overwrites the output of %s at %s",
                        entry.source_identity,
                        previous,
                        outcome.destination,
                    )
                written_by[outcome.destination] = entry.source_identity

            if on_entry is not None:
                on_entry(outcome)

        if self._config.cleanup_command:
            result.cleanup_succeeded = self._run_cleanup()

        return result

    def _process_entry(self, entry: MappingEntry) -> EntryOutcome:
        try:
            source_file = resolve_source_file(self._source_root, entry)
        except SourceMissingError as exc:
            LOGGER.warning("Skipping %s: %s", entry.source_identity, exc)
            return EntryOutcome(entry=entry, status=EntryStatus.SKIPPED, message=str(exc))

        transformed = self._pipeline.transform(read_source_file(source_file), entry)
        destination = output_path_for_entry(self._output_root, entry)
        try:
            write_output_file(transformed.text, destination)
        except OSError as exc:
            LOGGER.warning("Could not write %s: %s", destination, exc)
            return EntryOutcome(entry=entry, status=EntryStatus.SKIPPED, message=str(exc))

        if transformed.failed:
            return EntryOutcome(
                entry=entry,
                status=EntryStatus.FAIL_OPEN,
                destination=destination,
                message=transformed.error or "",
                state=transformed.state,
            )

        transformed.state = TransformState.WRITTEN
        return EntryOutcome(
            entry=entry,
            status=EntryStatus.WRITTEN,
            destination=destination,
            removed_notices=len(transformed.removed),
            state=transformed.state,
        )

    def _run_cleanup(self) -> bool:
        LOGGER.info("Running cleanup: %s", " ".join(self._config.cleanup_command))
        try:
            run_cleanup_command(self._config.cleanup_command, self._output_root)
        except CleanupToolError as exc:
            LOGGER.warning("Cleanup had some issues, keeping generated files: %s", exc)
            return False
        return True
