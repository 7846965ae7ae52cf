"""
Shared pytest fixtures for all tests.
"""

import json
import sqlite3
import zipfile
from pathlib import Path

import pytest

SCHEMA = """
CREATE TABLE col (
    id integer primary key, crt integer not null, mod integer not null,
    scm integer not null, ver integer not null, dty integer not null,
    usn integer not null, ls integer not null, conf text not null,
    models text not null, decks text not null, dconf text not null,
    tags text not null
);
CREATE TABLE notes (
    id integer primary key, guid text not null, mid integer not null,
    mod integer not null, usn integer not null, tags text not null,
    flds text not null, sfld integer not null, csum integer not null,
    flags integer not null, data text not null
);
CREATE TABLE cards (
    id integer primary key, nid integer not null, did integer not null,
    ord integer not null, mod integer not null, usn integer not null,
    type integer not null, queue integer not null, due integer not null,
    ivl integer not null, factor integer not null, reps integer not null,
    lapses integer not null, left integer not null, odue integer not null,
    odid integer not null, flags integer not null, data text not null
);
CREATE TABLE revlog (
    id integer primary key, cid integer not null, usn integer not null,
    ease integer not null, ivl integer not null, lastIvl integer not null,
    factor integer not null, time integer not null, type integer not null
);
CREATE TABLE graves (
    usn integer not null, oid integer not null, type integer not null
);
"""

MODEL_ID = 1342697561419
DECK_ID = 1342697561420

BASIC_MODEL = {
    str(MODEL_ID): {
        "id": MODEL_ID,
        "name": "Basic",
        "flds": [{"name": "Front", "ord": 0}, {"name": "Back", "ord": 1}],
        "tmpls": [
            {
                "name": "Card 1",
                "qfmt": "{{Front}}",
                "afmt": "{{FrontSide}}<hr id=answer>{{Back}}",
                "ord": 0,
            }
        ],
        "css": ".card { font-family: arial; }",
    }
}

CAPITALS_DECK = {
    "1": {"id": 1, "name": "Default"},
    str(DECK_ID): {"id": DECK_ID, "name": "Capitals"},
}


def build_collection(
    db_path,
    notes=(("Paris", "France"),),
    models=None,
    decks=None,
    cards=None,
    collections=1,
):
    """
    Write a legacy (anki2) collection database.

    :param notes: Field tuples, one note each (IDs 1, 2, ...).
    :param cards: ``(nid, did, ord)`` tuples. Defaults to one card per note
        in the Capitals deck.
    :param collections: Number of ``col`` rows to insert.
    """
    models = BASIC_MODEL if models is None else models
    decks = CAPITALS_DECK if decks is None else decks
    if cards is None:
        cards = [(nid, DECK_ID, 0) for nid in range(1, len(notes) + 1)]

    conn = sqlite3.connect(db_path)
    conn.executescript(SCHEMA)
    for col_id in range(1, collections + 1):
        conn.execute(
            "INSERT INTO col VALUES (?, ?, ?, ?, 11, 0, 0, 0, '{}', ?, ?, '{}', '{}')",
            (
                col_id,
                1411124400000,
                1425279151694,
                1425279151690,
                json.dumps(models),
                json.dumps(decks),
            ),
        )
    for nid, fields in enumerate(notes, start=1):
        conn.execute(
            "INSERT INTO notes VALUES (?, ?, ?, 1425279151, -1, '', ?, ?, 0, 0, '')",
            (nid, f"guid{nid}", MODEL_ID, "\x1f".join(fields), fields[0]),
        )
    for cid, (nid, did, ord_) in enumerate(cards, start=1):
        conn.execute(
            "INSERT INTO cards VALUES (?, ?, ?, ?, 1425279151, -1, 0, 0, ?, 0, 0, 0, 0, 0, 0, 0, 0, '')",
            (cid, nid, did, ord_, cid),
        )
    conn.commit()
    conn.close()


def build_apkg(apkg_path, db_path, media=None, extra_entries=None, manifest=None):
    """
    Zip a collection database into an .apkg.

    :param media: Dict of original filename to bytes, stored as 0, 1, ...
    :param extra_entries: Dict of raw entry name to bytes.
    :param manifest: Raw manifest bytes, overriding the one built from media.
    """
    media = media or {}
    mapping = {str(i): name for i, name in enumerate(media)}
    with zipfile.ZipFile(apkg_path, "w", zipfile.ZIP_DEFLATED) as zip_ref:
        zip_ref.write(db_path, "collection.anki2")
        if manifest is None:
            manifest = json.dumps(mapping).encode("utf-8")
        zip_ref.writestr("media", manifest)
        for i, content in enumerate(media.values()):
            zip_ref.writestr(str(i), content)
        for name, content in (extra_entries or {}).items():
            zip_ref.writestr(name, content)
    return apkg_path


@pytest.fixture
def collection_db(tmp_path):
    """A collection with two Basic notes in the Capitals deck."""
    db_path = tmp_path / "collection.anki2"
    build_collection(db_path, notes=[("Paris", "France"), ("Rome", "Italy")])
    return db_path


@pytest.fixture
def apkg_path(tmp_path, collection_db):
    """A package with the two-note collection and one audio file."""
    return build_apkg(
        tmp_path / "capitals.apkg", collection_db, media={"bell.mp3": b"ID3bell"}
    )


@pytest.fixture
def make_apkg(tmp_path):
    """Factory building a package from :func:`build_collection` arguments."""
    counter = iter(range(1000))

    def _make(media=None, extra_entries=None, manifest=None, **collection_kwargs):
        n = next(counter)
        db_path = tmp_path / f"collection{n}.anki2"
        build_collection(db_path, **collection_kwargs)
        return build_apkg(
            tmp_path / f"package{n}.apkg",
            db_path,
            media=media,
            extra_entries=extra_entries,
            manifest=manifest,
        )

    return _make


@pytest.fixture
def output_dir(tmp_path):
    return Path(tmp_path) / "out"
