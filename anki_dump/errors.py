"""
Exceptions raised while decoding and rendering an Anki package.

Every failure is fatal to the whole conversion, so all of them derive from
:class:`PackageError` and the CLI only has to catch that one type.
"""


class PackageError(Exception):
    """Base class for all errors raised by anki_dump."""


class ArchiveError(PackageError):
    """The .apkg zip archive is unreadable, corrupt, or lacks a collection."""


class PathTraversalError(ArchiveError):
    """An archive entry or media name would be written outside its root."""


class StorageError(PackageError):
    """The collection database could not be read."""


class ColumnTypeError(StorageError, TypeError):
    """A database column holds a value of an unexpected type."""


class IntegrityError(PackageError, ValueError):
    """The package data violates a referential or cardinality constraint."""


class ConfigurationError(PackageError, ValueError):
    """A JSON blob (models, decks, media manifest) is malformed."""


class AmbiguousDeckError(PackageError, ValueError):
    """Cards belong to more than one deck and no title was given."""
