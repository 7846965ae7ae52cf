"""
Open an Anki package (.apkg) and render its cards.

Pipeline
--------
1. Extract the zip archive (database and manifest to a temporary directory,
   media files to the media directory)
2. Restore original media filenames from the manifest
3. Load the collection, notes and cards from the SQLite database
4. Parse the models and decks JSON of the collection
5. Resolve every card into (stylesheet, front, back) HTML
"""

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from anki_dump.archive import MEDIA_MANIFEST, extract, select_database
from anki_dump.configuration import Deck, NoteModel, parse_decks, parse_models
from anki_dump.media import rename_media, resolve_media
from anki_dump.relations import Card, Collection, CollectionDatabase, Note
from anki_dump.render import RenderedCard, resolve_cards

logger = logging.getLogger(__name__)


@dataclass
class RenderedPackage:
    """Everything the HTML document needs.

    :param title: Explicit title, or the name of the cards' deck.
    :param description: Explicit description, or empty.
    :param filepath: Path of the source .apkg.
    :param now: Generation date (``YYYY/MM/DD``).
    :param cards: Rendered cards in source order.
    """

    title: str
    description: str
    filepath: str
    now: str
    cards: list[RenderedCard] = field(default_factory=list)


class AnkiPackage:
    """
    Read an Anki flashcard package (.apkg file).

    Use as a context manager to ensure proper cleanup::

        with AnkiPackage('deck.apkg', 'out') as pkg:
            rendered = pkg.render(title="Capitals")

    Media files are extracted into ``media_dir`` under their original names
    and stay there after the context exits. The database and manifest live
    in a temporary directory that is removed on exit, also on errors.
    """

    def __init__(self, apkg_path: str | Path, media_dir: str | Path) -> None:
        """
        Initialize an AnkiPackage instance.

        :param apkg_path: Path to the .apkg file to open.
        :param media_dir: Directory to extract media files into.
        """
        self.apkg_path = Path(apkg_path)
        self.media_dir = Path(media_dir)
        self.temp_dir: str | None = None
        self.db: CollectionDatabase | None = None
        self._media: dict[str, str] = {}

    def __enter__(self) -> "AnkiPackage":
        """Enter context manager, extract the archive and open the database."""
        self.temp_dir = tempfile.mkdtemp(prefix="anki_dump")
        try:
            self.media_dir.mkdir(parents=True, exist_ok=True)
            extract(self.apkg_path, self.temp_dir, self.media_dir)
            db_path = select_database(self.temp_dir)

            self._media = resolve_media(Path(self.temp_dir) / MEDIA_MANIFEST)
            rename_media(self._media, self.media_dir)

            self.db = CollectionDatabase(db_path)
            self.db.open()
        except BaseException:
            self._cleanup()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager, close connection and clean up."""
        self._cleanup()

    def _cleanup(self) -> None:
        if self.db:
            self.db.close()
            self.db = None
        if self.temp_dir:
            shutil.rmtree(self.temp_dir, ignore_errors=True)
            self.temp_dir = None

    def get_collection(self) -> Collection:
        return self.db.load_collection()

    def get_notes(self) -> list[Note]:
        return self.db.load_notes()

    def get_cards(self) -> list[Card]:
        return self.db.load_cards()

    def get_models(self) -> dict[int, NoteModel]:
        """
        Get all note models (called "note types" in the Anki UI).

        :returns: Dict mapping model ID to :class:`NoteModel`.
        """
        return parse_models(self.get_collection().models)

    def get_decks(self) -> dict[int, Deck]:
        """
        Get all decks in the collection.

        :returns: Dict mapping deck ID to :class:`Deck`.
        """
        return parse_decks(self.get_collection().decks)

    def get_media_mapping(self) -> dict[str, str]:
        """
        Get the media manifest read when the package was opened.

        :returns: Dict mapping numeric file IDs (as strings) to filenames.
            Example: ``{"0": "audio.mp3", "1": "image.png"}``.
        """
        return dict(self._media)

    def render(
        self, title: str | None = None, description: str | None = None
    ) -> RenderedPackage:
        """
        Render every card of the package.

        :param title: Title override. Required if cards span several decks.
        :param description: Description override.
        :returns: :class:`RenderedPackage`.
        :raises PackageError: On any integrity, configuration or ambiguity
            error. Nothing is rendered partially.
        """
        col = self.db.load_collection()
        notes = self.db.notes_by_id()
        cards = self.db.load_cards()

        models = parse_models(col.models)
        decks = parse_decks(col.decks)
        logger.info("Parsed %d models and %d decks", len(models), len(decks))

        resolved = resolve_cards(cards, notes, models, decks, title=title)

        return RenderedPackage(
            title=resolved.title,
            description=description or "",
            filepath=str(self.apkg_path),
            now=date.today().strftime("%Y/%m/%d"),
            cards=resolved.cards,
        )
