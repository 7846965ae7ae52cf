"""
Anki Dump - render Anki packages (.apkg) as a single HTML page.

Core classes:
    AnkiPackage - Extract an .apkg file and render its cards

Modules:
    archive       - Zip extraction with path-safety checks
    media         - Media manifest loading and filename restoration
    relations     - Typed rows of the collection database
    configuration - Models and decks JSON parsing
    render        - Card resolution (template substitution)
    document      - HTML page output
    cli           - Command-line interface
"""

from anki_dump.configuration import Deck, NoteModel, parse_decks, parse_models
from anki_dump.document import convert, write_document
from anki_dump.errors import (
    AmbiguousDeckError,
    ArchiveError,
    ColumnTypeError,
    ConfigurationError,
    IntegrityError,
    PackageError,
    PathTraversalError,
    StorageError,
)
from anki_dump.package import AnkiPackage, RenderedPackage
from anki_dump.render import RenderedCard, resolve_card, resolve_cards

__all__ = [
    "AnkiPackage",
    "RenderedPackage",
    "RenderedCard",
    "resolve_card",
    "resolve_cards",
    "NoteModel",
    "Deck",
    "parse_models",
    "parse_decks",
    "convert",
    "write_document",
    "PackageError",
    "ArchiveError",
    "PathTraversalError",
    "StorageError",
    "ColumnTypeError",
    "IntegrityError",
    "ConfigurationError",
    "AmbiguousDeckError",
]
