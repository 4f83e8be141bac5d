"""Tests for the mapping table loader and its derived views."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from polyfill_refresh.errors import ConfigError
from polyfill_refresh.mapping import MappingTable, NamespaceMapping, load_mapping_table

VALID_CONFIG = r"""
package: demo-polyfill
classes:
  SilverStripe\ORM\ArrayList:
    source_path: src/ORM/ArrayList.php
    target_path: src/Model/List/ArrayList.php
    target_namespace: SilverStripe\Model\List
    target_class: ArrayList
  SilverStripe\ORM\ArrayLib:
    source_path: src/ORM/ArrayLib.php
    target_path: src/Core/ArrayLib.php
    target_namespace: SilverStripe\Core
    target_class: ArrayLib
  SilverStripe\Forms\RequiredFields:
    source_path: src/Forms/RequiredFields.php
    target_path: src/Forms/Validation/RequiredFieldsValidator.php
    target_namespace: \SilverStripe\Forms\Validation\
    target_class: RequiredFieldsValidator
"""


def _entry(target_namespace: str, target_class: str, path: str = "src/A.php") -> dict[str, str]:
    return {
        "source_path": path,
        "target_path": path,
        "target_namespace": target_namespace,
        "target_class": target_class,
    }


class TestLoadMappingTable:
    """Test loading the YAML mapping file."""

    def test_loads_entries_in_declared_order(self, write_file: Callable[[str, str], Path]) -> None:
        """Test that entries keep the order of the document."""
        table = load_mapping_table(write_file("map.yml", VALID_CONFIG))

        assert [entry.source_identity for entry in table] == [
            "SilverStripe\\ORM\\ArrayList",
            "SilverStripe\\ORM\\ArrayLib",
            "SilverStripe\\Forms\\RequiredFields",
        ]
        assert table.package == "demo-polyfill"

    def test_entry_properties(self, write_file: Callable[[str, str], Path]) -> None:
        """Test derived namespace and class name properties."""
        table = load_mapping_table(write_file("map.yml", VALID_CONFIG))
        entry = table["SilverStripe\\Forms\\RequiredFields"]

        assert entry.source_namespace == "SilverStripe\\Forms"
        assert entry.source_class == "RequiredFields"
        # Surrounding separators are stripped.
        assert entry.target_namespace == "SilverStripe\\Forms\\Validation"
        assert entry.target_identity == "SilverStripe\\Forms\\Validation\\RequiredFieldsValidator"

    def test_derived_views(self, write_file: Callable[[str, str], Path]) -> None:
        """Test the namespace and class-name mappings built from the entries."""
        table = load_mapping_table(write_file("map.yml", VALID_CONFIG))

        # The first pair declared for SilverStripe\ORM wins.
        assert table.namespaces.items() == [
            ("SilverStripe\\ORM", "SilverStripe\\Model\\List"),
            ("SilverStripe\\Forms", "SilverStripe\\Forms\\Validation"),
        ]
        assert table.class_names == {"RequiredFields": "RequiredFieldsValidator"}

    def test_default_package(self) -> None:
        """Test that the package name falls back to the default."""
        table = MappingTable.from_dict({"classes": {"A\\Foo": _entry("B", "Foo")}})
        assert table.package == "polyfill"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing mapping file is a ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            load_mapping_table(tmp_path / "missing.yml")

    def test_malformed_yaml(self, write_file: Callable[[str, str], Path]) -> None:
        """Test that invalid YAML is a ConfigError."""
        with pytest.raises(ConfigError, match="not valid YAML"):
            load_mapping_table(write_file("map.yml", "classes: [unclosed\n"))

    def test_missing_classes_collection(self, write_file: Callable[[str, str], Path]) -> None:
        """Test that a document without 'classes' is a ConfigError."""
        with pytest.raises(ConfigError, match="classes"):
            load_mapping_table(write_file("map.yml", "package: demo\n"))

    def test_empty_document(self, write_file: Callable[[str, str], Path]) -> None:
        """Test that an empty document is a ConfigError."""
        with pytest.raises(ConfigError):
            load_mapping_table(write_file("map.yml", ""))


class TestEntryValidation:
    """Test validation of individual entries."""

    def test_missing_field(self) -> None:
        entry = _entry("B", "Foo")
        del entry["target_class"]
        with pytest.raises(ConfigError, match="target_class"):
            MappingTable.from_dict({"classes": {"A\\Foo": entry}})

    def test_non_string_field(self) -> None:
        entry = _entry("B", "Foo")
        entry["source_path"] = 42  # type: ignore[assignment]
        with pytest.raises(ConfigError, match="source_path"):
            MappingTable.from_dict({"classes": {"A\\Foo": entry}})

    def test_invalid_target_class(self) -> None:
        with pytest.raises(ConfigError, match="target_class"):
            MappingTable.from_dict({"classes": {"A\\Foo": _entry("B", "Not A Class")}})

    def test_empty_target_namespace(self) -> None:
        with pytest.raises(ConfigError, match="target_namespace"):
            MappingTable.from_dict({"classes": {"A\\Foo": _entry("", "Foo")}})

    def test_path_outside_root(self) -> None:
        """Test that paths may not escape their root."""
        with pytest.raises(ConfigError, match="relative path"):
            MappingTable.from_dict({"classes": {"A\\Foo": _entry("B", "Foo", "../etc/passwd")}})
        with pytest.raises(ConfigError, match="relative path"):
            MappingTable.from_dict({"classes": {"A\\Foo": _entry("B", "Foo", "/tmp/Foo.php")}})

    def test_duplicate_after_normalization(self) -> None:
        """Test that identities differing only by separators collide."""
        with pytest.raises(ConfigError, match="Duplicate"):
            MappingTable.from_dict(
                {"classes": {"A\\Foo": _entry("B", "Foo"), "\\A\\Foo": _entry("C", "Foo")}}
            )

    def test_renamed_simple_name_collision(self) -> None:
        """Test that a renamed class sharing its name across namespaces is rejected."""
        with pytest.raises(ConfigError, match="several namespaces"):
            MappingTable.from_dict(
                {
                    "classes": {
                        "A\\Validator": _entry("X", "RulesValidator", "src/A.php"),
                        "B\\Validator": _entry("Y", "Validator", "src/B.php"),
                    }
                }
            )

    def test_shared_simple_name_without_rename(self) -> None:
        """Test that a simple name shared across namespaces is rejected even when kept."""
        with pytest.raises(ConfigError, match="several namespaces"):
            MappingTable.from_dict(
                {
                    "classes": {
                        "A\\Validator": _entry("X", "Validator", "src/A.php"),
                        "B\\Validator": _entry("Y", "Validator", "src/B.php"),
                    }
                }
            )

    def test_shared_simple_name_in_one_namespace(self) -> None:
        """Test that two entries from the same namespace never collide."""
        table = MappingTable.from_dict(
            {
                "classes": {
                    "A\\Validator": _entry("X", "RulesValidator", "src/A.php"),
                    "A\\Form": _entry("X", "Form", "src/B.php"),
                }
            }
        )
        assert table.class_names == {"Validator": "RulesValidator"}


class TestNamespaceMapping:
    """Test the longest-prefix namespace lookup."""

    def test_exact_and_nested_match(self) -> None:
        mapping = NamespaceMapping({"A\\B": "X\\Y"})

        assert mapping.map("A\\B") == "X\\Y"
        assert mapping.map("A\\B\\C") == "X\\Y\\C"
        assert mapping.map("A\\B\\C\\D") == "X\\Y\\C\\D"

    def test_prefix_requires_separator_boundary(self) -> None:
        mapping = NamespaceMapping({"A\\B": "X\\Y"})

        assert mapping.map("A\\Borange") is None
        assert mapping.map("A") is None
        assert mapping.map("Other\\A\\B") is None

    def test_longest_prefix_wins(self) -> None:
        mapping = NamespaceMapping({"A": "Z", "A\\B": "X\\Y"})

        assert mapping.map("A\\B\\C") == "X\\Y\\C"
        assert mapping.map("A\\C") == "Z\\C"

    def test_nested_target_is_not_applied_twice(self) -> None:
        """Test that a target below its own source is left alone."""
        mapping = NamespaceMapping({"A\\Forms": "A\\Forms\\Validation"})

        assert mapping.map("A\\Forms") == "A\\Forms\\Validation"
        assert mapping.map("A\\Forms\\Validation") is None
        assert mapping.map("A\\Forms\\Validation\\Rules") is None
        assert mapping.map("A\\Forms\\Fields") == "A\\Forms\\Validation\\Fields"

    def test_identity_pairs_are_ignored(self) -> None:
        mapping = NamespaceMapping({"A": "A"})

        assert len(mapping) == 0
        assert "A" not in mapping
