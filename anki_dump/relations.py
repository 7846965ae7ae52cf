"""
Typed, read-only access to the tables of an Anki collection database.

Legacy Schema (anki2/anki21)
----------------------------
- col: one row, models and decks stored as JSON text
- notes: field values joined by ``\\x1f``
- cards: one row per (note, template) pair
- revlog: review history (optional)
- graves: deletion tombstones (optional)

Rows are materialized into frozen dataclasses. Scheduling columns (``ivl``,
``factor``, ``left``, ``odue``, ``odid``) are kept as opaque integers.
"""

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from anki_dump.errors import ColumnTypeError, IntegrityError, StorageError
from anki_dump.timestamps import decode_millis, decode_seconds

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "\x1f"


def _int(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ColumnTypeError(f"Expected an integer column value, got {value!r}")
    try:
        return int(value)
    except (OverflowError, ValueError) as exc:
        raise ColumnTypeError(f"Expected an integer column value, got {value!r}") from exc


def _text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


@dataclass(frozen=True)
class Collection:
    """The single ``col`` row holding package-wide metadata.

    :param created: Creation time (``crt``).
    :param modified: Last modification time (``mod``).
    :param schema_modified: Schema modification time (``scm``).
    :param models: Note type configuration, JSON.
    :param decks: Deck configuration, JSON.
    """

    id: int
    created: datetime
    modified: datetime
    schema_modified: datetime
    version: int
    dirty: int
    usn: int
    last_sync: int
    conf: str
    models: str
    decks: str
    dconf: str
    tags: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Collection":
        return cls(
            id=_int(row["id"]),
            created=decode_millis(row["crt"]),
            modified=decode_millis(row["mod"]),
            schema_modified=decode_millis(row["scm"]),
            version=_int(row["ver"]),
            dirty=_int(row["dty"]),
            usn=_int(row["usn"]),
            last_sync=_int(row["ls"]),
            conf=_text(row["conf"]),
            models=_text(row["models"]),
            decks=_text(row["decks"]),
            dconf=_text(row["dconf"]),
            tags=_text(row["tags"]),
        )


@dataclass(frozen=True)
class Note:
    """Content shared by one or more cards.

    :param mid: Model (note type) ID.
    :param flds: Field values joined by ``\\x1f``.
    :param sfld: Sort field text.
    :param csum: Checksum of the first field.
    """

    id: int
    guid: str
    mid: int
    mod: int
    usn: int
    tags: str
    flds: str
    sfld: str
    csum: int
    flags: int
    data: str

    @property
    def fields(self) -> list[str]:
        """Field values in ordinal order."""
        return self.flds.split(FIELD_SEPARATOR)

    @property
    def tag_list(self) -> list[str]:
        return self.tags.split()

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Note":
        return cls(
            id=_int(row["id"]),
            guid=_text(row["guid"]),
            mid=_int(row["mid"]),
            mod=_int(row["mod"]),
            usn=_int(row["usn"]),
            tags=_text(row["tags"]),
            flds=_text(row["flds"]),
            sfld=_text(row["sfld"]),
            csum=_int(row["csum"]),
            flags=_int(row["flags"]),
            data=_text(row["data"]),
        )


@dataclass(frozen=True)
class Card:
    """A note rendered through one template of its model.

    :param nid: Note ID.
    :param did: Deck ID.
    :param ord: Template ordinal within the note's model.
    :param modified: Last modification time (``mod``, seconds).
    """

    id: int
    nid: int
    did: int
    ord: int
    modified: datetime
    usn: int
    type: int
    queue: int
    due: int
    ivl: int
    factor: int
    reps: int
    lapses: int
    left: int
    odue: int
    odid: int
    flags: int
    data: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Card":
        return cls(
            id=_int(row["id"]),
            nid=_int(row["nid"]),
            did=_int(row["did"]),
            ord=_int(row["ord"]),
            modified=decode_seconds(row["mod"]),
            usn=_int(row["usn"]),
            type=_int(row["type"]),
            queue=_int(row["queue"]),
            due=_int(row["due"]),
            ivl=_int(row["ivl"]),
            factor=_int(row["factor"]),
            reps=_int(row["reps"]),
            lapses=_int(row["lapses"]),
            left=_int(row["left"]),
            odue=_int(row["odue"]),
            odid=_int(row["odid"]),
            flags=_int(row["flags"]),
            data=_text(row["data"]),
        )


@dataclass(frozen=True)
class RevisionLog:
    """One review of a card.

    :param reviewed: Review time, decoded from ``id`` (seconds).
    :param ease: Button pressed (wrong, hard, ok, easy).
    """

    id: int
    reviewed: datetime
    cid: int
    usn: int
    ease: int
    ivl: int
    last_ivl: int
    factor: int
    time: int
    type: int

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "RevisionLog":
        return cls(
            id=_int(row["id"]),
            reviewed=decode_seconds(row["id"]),
            cid=_int(row["cid"]),
            usn=_int(row["usn"]),
            ease=_int(row["ease"]),
            ivl=_int(row["ivl"]),
            last_ivl=_int(row["lastIvl"]),
            factor=_int(row["factor"]),
            time=_int(row["time"]),
            type=_int(row["type"]),
        )


@dataclass(frozen=True)
class Grave:
    usn: int
    oid: int
    type: int

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Grave":
        return cls(usn=_int(row["usn"]), oid=_int(row["oid"]), type=_int(row["type"]))


class CollectionDatabase:
    """
    Read-only view of an extracted collection database.

    Use as a context manager to ensure the connection is closed::

        with CollectionDatabase(db_path) as db:
            col = db.load_collection()
            cards = db.load_cards()
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.conn: sqlite3.Connection | None = None

    def __enter__(self) -> "CollectionDatabase":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def open(self) -> None:
        uri = self.db_path.resolve().as_uri() + "?mode=ro"
        try:
            self.conn = sqlite3.connect(uri, uri=True)
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open collection database {self.db_path}: {exc}") from exc
        self.conn.row_factory = sqlite3.Row

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def _select(self, table: str, query: str, params: tuple = ()) -> list[sqlite3.Row]:
        if self.conn is None:
            raise StorageError("Collection database is not open")
        try:
            cursor = self.conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot read table {table!r}: {exc}") from exc

    def _load(self, table: str, query: str, entity: type) -> list:
        rows = self._select(table, query)
        loaded = []
        for row in rows:
            try:
                loaded.append(entity.from_row(row))
            except ColumnTypeError as exc:
                row_id = row["id"] if "id" in row.keys() else "?"
                raise ColumnTypeError(f"{table} row {row_id}: {exc}") from exc
        return loaded

    def has_table(self, table: str) -> bool:
        rows = self._select(
            "sqlite_master",
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table,),
        )
        return len(rows) > 0

    def load_collection(self) -> Collection:
        """
        Load the single collection metadata row.

        :raises IntegrityError: Unless exactly one row exists.
        """
        cols = self._load(
            "col",
            "SELECT id, crt, mod, scm, ver, dty, usn, ls, conf, models, decks, dconf, tags FROM col",
            Collection,
        )
        if len(cols) != 1:
            raise IntegrityError(
                f"Expected exactly one collection in database, got {len(cols)}"
            )
        return cols[0]

    def load_notes(self) -> list[Note]:
        notes = self._load(
            "notes",
            "SELECT id, guid, mid, mod, usn, tags, flds, sfld, csum, flags, data FROM notes",
            Note,
        )
        logger.info("Loaded %d notes", len(notes))
        return notes

    def notes_by_id(self) -> dict[int, Note]:
        return {note.id: note for note in self.load_notes()}

    def load_cards(self) -> list[Card]:
        """
        Load all cards in source order (the order they are rendered in).

        :raises IntegrityError: If the database holds no cards, since an empty
            output would be meaningless.
        """
        cards = self._load(
            "cards",
            """
            SELECT id, nid, did, ord, mod, usn, type, queue, due, ivl, factor,
                   reps, lapses, "left", odue, odid, flags, data
            FROM cards
            """,
            Card,
        )
        if not cards:
            raise IntegrityError(
                "No cards found in database - will not create an empty file"
            )
        logger.info("Loaded %d cards", len(cards))
        return cards

    def load_revlog(self) -> list[RevisionLog]:
        """Load the review log, or ``[]`` if the package has none."""
        if not self.has_table("revlog"):
            return []
        return self._load(
            "revlog",
            "SELECT id, cid, usn, ease, ivl, lastIvl, factor, time, type FROM revlog",
            RevisionLog,
        )

    def load_graves(self) -> list[Grave]:
        if not self.has_table("graves"):
            return []
        return self._load("graves", "SELECT usn, oid, type FROM graves", Grave)
