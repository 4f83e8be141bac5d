"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from polyfill_refresh.mapping import MappingEntry, MappingTable, TransformCollector

SCENARIO_SOURCE = r"""<?php

namespace Old\Foo;

use SilverStripe\Dev\Deprecation;

class Foo
{
    public function __construct()
    {
        Deprecation::withSuppressedNotice(function () {
            Deprecation::notice('5.4.0', 'Will be renamed to New\Foo\Foo', Deprecation::SCOPE_CLASS);
        });
    }
}
"""

SCENARIO_WITH_UNRELATED_SOURCE = r"""<?php

namespace Old\Foo;

use SilverStripe\Dev\Deprecation;

class Foo
{
    public function __construct($cache = null)
    {
        Deprecation::withSuppressedNotice(function () {
            Deprecation::notice('5.4.0', 'Will be renamed to New\Foo\Foo', Deprecation::SCOPE_CLASS);
        });
        if ($cache !== null) {
            Deprecation::notice('5.4.0', 'The $cache parameter is deprecated and will be removed in 6.0.0');
        }
    }
}
"""

BROKEN_SOURCE = """<?php

class Broken
{
    public function (
"""


@pytest.fixture
def scenario_source() -> str:
    return SCENARIO_SOURCE


@pytest.fixture
def scenario_with_unrelated_source() -> str:
    return SCENARIO_WITH_UNRELATED_SOURCE


@pytest.fixture
def broken_source() -> str:
    return BROKEN_SOURCE


@pytest.fixture
def scenario_table() -> MappingTable:
    """Provide the single-entry table used by the rename scenarios."""
    return MappingTable.from_dict(
        {
            "classes": {
                "Old\\Foo\\Foo": {
                    "source_path": "src/Foo/Foo.php",
                    "target_path": "src/New/Foo/Foo.php",
                    "target_namespace": "New\\Foo",
                    "target_class": "Foo",
                }
            }
        }
    )


@pytest.fixture
def scenario_entry(scenario_table: MappingTable) -> MappingEntry:
    return scenario_table["Old\\Foo\\Foo"]


@pytest.fixture
def transform_collector() -> TransformCollector:
    """Provide a fresh TransformCollector instance for each test."""
    return TransformCollector()


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write text below tmp_path and return the created path."""

    def _write(relative: str, content: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
