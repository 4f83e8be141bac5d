"""Mapping table loaded from the class equivalence file."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import yaml

from polyfill_refresh.errors import ConfigError

NAMESPACE_SEPARATOR = "\\"
DEFAULT_PACKAGE = "polyfill"

REQUIRED_FIELDS: tuple[str, ...] = ("source_path", "target_path", "target_namespace", "target_class")

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def normalize_name(name: str) -> str:
    """Strip leading and trailing namespace separators."""
    return name.strip().strip(NAMESPACE_SEPARATOR)


def split_identity(identity: str) -> tuple[str, str]:
    """Split a fully-qualified class name into (namespace, simple name)."""
    namespace, _, simple_name = identity.rpartition(NAMESPACE_SEPARATOR)
    return namespace, simple_name


def join_identity(namespace: str, simple_name: str) -> str:
    if not namespace:
        return simple_name
    return f"{namespace}{NAMESPACE_SEPARATOR}{simple_name}"


@dataclass(frozen=True)
class MappingEntry:
    source_identity: str
    target_namespace: str
    target_class: str
    source_path: str
    target_path: str

    @property
    def source_namespace(self) -> str:
        return split_identity(self.source_identity)[0]

    @property
    def source_class(self) -> str:
        return split_identity(self.source_identity)[1]

    @property
    def target_identity(self) -> str:
        return join_identity(self.target_namespace, self.target_class)


class NamespaceMapping:
    """Old namespace -> new namespace pairs with longest-prefix lookup."""

    def __init__(self, pairs: Mapping[str, str] | None = None) -> None:
        self._pairs: dict[str, str] = {}
        for old, new in (pairs or {}).items():
            self.add(old, new)

    def add(self, old: str, new: str) -> None:
        # First declared pair wins for a given old namespace.
        if old != new and old not in self._pairs:
            self._pairs[old] = new

    def map(self, namespace: str) -> str | None:
        """Return the rewritten namespace, or None if no mapped prefix matches.

        A prefix only matches on a separator boundary, so ``A\\B`` matches
        ``A\\B`` and ``A\\B\\C`` but not ``A\\Borange``. The longest matching
        prefix wins.
        """
        best: str | None = None
        for old in self._pairs:
            if _is_within(namespace, old) and (best is None or len(old) > len(best)):
                best = old
        if best is None:
            return None

        new = self._pairs[best]
        # A target nested below its own source must not apply twice.
        if _is_within(new, best) and _is_within(namespace, new):
            return None
        return new + namespace[len(best) :]

    def items(self) -> list[tuple[str, str]]:
        return list(self._pairs.items())

    def __len__(self) -> int:
        return len(self._pairs)

    def __contains__(self, old: object) -> bool:
        return old in self._pairs


def _is_within(namespace: str, prefix: str) -> bool:
    return namespace == prefix or namespace.startswith(prefix + NAMESPACE_SEPARATOR)


@dataclass
class MappingTable:
    """Ordered mapping of old class identities to their polyfill targets."""

    entries: dict[str, MappingEntry] = field(default_factory=dict)
    package: str = DEFAULT_PACKAGE
    namespaces: NamespaceMapping = field(init=False)
    class_names: dict[str, str] = field(init=False)

    def __post_init__(self) -> None:
        self.namespaces = NamespaceMapping()
        self.class_names = {}
        for entry in self.entries.values():
            self.namespaces.add(entry.source_namespace, entry.target_namespace)
            if entry.source_class != entry.target_class:
                self.class_names.setdefault(entry.source_class, entry.target_class)
        _check_class_name_collisions(self.entries.values())

    def __iter__(self) -> Iterator[MappingEntry]:
        return iter(self.entries.values())

    def __len__(self) -> int:
        return len(self.entries)

    def __getitem__(self, source_identity: str) -> MappingEntry:
        return self.entries[source_identity]

    @classmethod
    def from_dict(cls, raw: object) -> MappingTable:
        if not isinstance(raw, dict):
            raise ConfigError("Mapping document must be a mapping with a 'classes' key.")

        classes = raw.get("classes")
        if classes is None:
            raise ConfigError("Mapping document has no 'classes' collection.")
        if not isinstance(classes, dict) or not classes:
            raise ConfigError("'classes' must be a non-empty mapping of class name -> entry.")

        package = raw.get("package", DEFAULT_PACKAGE)
        if not isinstance(package, str) or not package.strip():
            raise ConfigError("'package' must be a non-empty string.")

        entries: dict[str, MappingEntry] = {}
        for source_identity, fields in classes.items():
            entry = _build_entry(source_identity, fields)
            if entry.source_identity in entries:
                raise ConfigError(f"Duplicate class '{entry.source_identity}' in mapping.")
            entries[entry.source_identity] = entry

        return cls(entries=entries, package=package.strip())


def _build_entry(source_identity: object, fields: object) -> MappingEntry:
    if not isinstance(source_identity, str) or not normalize_name(source_identity):
        raise ConfigError(f"Invalid class name key: {source_identity!r}")
    identity = normalize_name(source_identity)

    if not isinstance(fields, dict):
        raise ConfigError(f"Entry for '{identity}' must be a mapping.")

    missing = [name for name in REQUIRED_FIELDS if name not in fields]
    if missing:
        raise ConfigError(f"Entry for '{identity}' is missing: {', '.join(missing)}")

    for name in REQUIRED_FIELDS:
        if not isinstance(fields[name], str):
            raise ConfigError(f"Entry for '{identity}': '{name}' must be a string.")

    target_class = normalize_name(fields["target_class"])
    if not _IDENTIFIER_RE.match(target_class):
        raise ConfigError(f"Entry for '{identity}': invalid target_class '{fields['target_class']}'.")
    target_namespace = normalize_name(fields["target_namespace"])
    if not target_namespace:
        raise ConfigError(f"Entry for '{identity}': target_namespace must not be empty.")

    for name in ("source_path", "target_path"):
        path = PurePosixPath(fields[name].strip())
        if not fields[name].strip() or path.is_absolute() or ".." in path.parts:
            raise ConfigError(
                f"Entry for '{identity}': '{name}' must be a relative path inside its root."
            )

    return MappingEntry(
        source_identity=identity,
        target_namespace=target_namespace,
        target_class=target_class,
        source_path=fields["source_path"].strip(),
        target_path=fields["target_path"].strip(),
    )


def _check_class_name_collisions(entries: Iterable[MappingEntry]) -> None:
    """Reject simple class names shared across namespaces.

    The class-name mapping is keyed by simple name only, so the table must not
    hold two classes that differ only by namespace, renamed or not.
    """
    namespaces_by_name: dict[str, set[str]] = {}
    for entry in entries:
        namespaces_by_name.setdefault(entry.source_class, set()).add(entry.source_namespace)

    for name, namespaces in namespaces_by_name.items():
        if len(namespaces) > 1:
            listed = ", ".join(sorted(namespaces))
            raise ConfigError(
                f"Class name '{name}' appears in several namespaces ({listed}); "
                "the mapping table needs distinct simple class names."
            )


def load_mapping_table(path: Path) -> MappingTable:
    """Read a mapping file and build the table with its derived views."""
    if not path.is_file():
        raise ConfigError(f"Mapping file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Mapping file {path} is not valid YAML: {exc}") from exc

    return MappingTable.from_dict(raw)
