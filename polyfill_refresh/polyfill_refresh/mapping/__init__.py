"""Mapping table and bookkeeping for polyfill generation."""

from polyfill_refresh.mapping.collector import TransformCollector
from polyfill_refresh.mapping.table import (
    MappingEntry,
    MappingTable,
    NamespaceMapping,
    load_mapping_table,
)


__all__ = [
    "MappingEntry",
    "MappingTable",
    "NamespaceMapping",
    "TransformCollector",
    "load_mapping_table",
]
