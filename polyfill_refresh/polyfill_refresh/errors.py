"""Error taxonomy for a polyfill refresh run.

Only :class:`ConfigError` aborts a run. The other errors are contained to the
entry (or the cleanup step) that raised them and reported as warnings.
"""

from __future__ import annotations


class PolyfillError(Exception):
    """Base class for all refresh errors."""


class ConfigError(PolyfillError):
    """The mapping file is missing or malformed."""


class SourceMissingError(PolyfillError):
    """An entry references an upstream file that does not exist."""


class ParseError(PolyfillError):
    """A source unit could not be parsed into a syntax tree."""


class CleanupToolError(PolyfillError):
    """The external cleanup command failed."""
