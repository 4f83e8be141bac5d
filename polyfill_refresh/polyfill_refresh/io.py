from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

import pandas as pd

from polyfill_refresh.errors import ConfigError, SourceMissingError
from polyfill_refresh.mapping import MappingEntry

ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"

REPORT_COLUMNS: tuple[str, ...] = (
    "source_identity",
    "source_path",
    "target_path",
    "status",
    "removed_notices",
    "message",
)


class ReportFormat(str, Enum):
    CSV = "csv"
    CSV_GZIP = "csv-gzip"
    JSON = "json"
    PARQUET = "parquet"


def resolve_source_file(source_root: Path, entry: MappingEntry) -> Path:
    path = source_root / entry.source_path
    if not path.is_file():
        raise SourceMissingError(f"Source file not found: {path}")
    return path


def read_source_file(path: Path) -> str:
    return path.read_bytes().decode(ENCODING, ENCODING_ERRORS)


def output_path_for_entry(output_root: Path, entry: MappingEntry) -> Path:
    return output_root / entry.target_path


def write_output_file(text: str, destination: Path) -> None:
    """Write *text* to *destination* all at once.

    The content goes to a temporary file next to the destination first and is
    then moved over it, so an interrupted write never leaves a partial file.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=destination.parent, prefix=f".{destination.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(text.encode(ENCODING, ENCODING_ERRORS))
        os.replace(temp_name, destination)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


def clear_output_root(output_root: Path, source_root: Path) -> None:
    """Empty the output directory before a run.

    Refuses to touch a directory that holds the source tree or the current
    working directory.
    """
    resolved = output_root.resolve()
    protected = (source_root.resolve(), Path.cwd().resolve())
    for path in protected:
        if resolved == path or resolved in path.parents:
            raise ConfigError(f"Refusing to clear {output_root}: it contains {path}")

    if not output_root.exists():
        output_root.mkdir(parents=True)
        return
    if not output_root.is_dir():
        raise ConfigError(f"Output path is not a directory: {output_root}")

    for child in output_root.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def build_report(rows: Iterable[dict[str, object]]) -> pd.DataFrame:
    return pd.DataFrame(list(rows), columns=list(REPORT_COLUMNS))


def write_report(df: pd.DataFrame, output_file: Path, report_format: ReportFormat) -> None:
    output_file.parent.mkdir(parents=True, exist_ok=True)

    if report_format == ReportFormat.CSV:
        df.to_csv(output_file, index=False)
        return

    if report_format == ReportFormat.CSV_GZIP:
        df.to_csv(output_file, index=False, compression="gzip")
        return

    if report_format == ReportFormat.JSON:
        df.to_json(output_file, orient="records", indent=2)
        return

    if report_format == ReportFormat.PARQUET:
        df.to_parquet(output_file, index=False)
        return

    raise ValueError(f"Unsupported report format: {report_format}")
