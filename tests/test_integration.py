"""
Integration tests for the complete .apkg to HTML workflow.
"""

import os
import tempfile
import zipfile

import genanki
import pytest

from conftest import BASIC_MODEL, DECK_ID, MODEL_ID

from anki_dump.document import convert
from anki_dump.errors import (
    AmbiguousDeckError,
    ArchiveError,
    ConfigurationError,
    IntegrityError,
    PathTraversalError,
)
from anki_dump.package import AnkiPackage
from anki_dump.render import TYPE_ANSWER_INPUT


class TestAnkiPackage:
    """Tests for the AnkiPackage context manager."""

    def test_render(self, apkg_path, output_dir):
        with AnkiPackage(apkg_path, output_dir) as pkg:
            rendered = pkg.render()

        assert rendered.title == "Capitals"
        assert rendered.description == ""
        assert rendered.filepath == str(apkg_path)
        assert [c.front for c in rendered.cards] == ["Paris", "Rome"]
        assert rendered.cards[0].back == "Paris<hr id=answer>France"
        assert rendered.cards[0].stylesheet == ".card { font-family: arial; }"

    def test_overrides(self, apkg_path, output_dir):
        with AnkiPackage(apkg_path, output_dir) as pkg:
            rendered = pkg.render(title="My Title", description="About")
        assert rendered.title == "My Title"
        assert rendered.description == "About"

    def test_media_renamed(self, apkg_path, output_dir):
        with AnkiPackage(apkg_path, output_dir) as pkg:
            assert pkg.get_media_mapping() == {"0": "bell.mp3"}
        assert (output_dir / "bell.mp3").read_bytes() == b"ID3bell"
        assert not (output_dir / "0").exists()

    def test_accessors(self, apkg_path, output_dir):
        with AnkiPackage(apkg_path, output_dir) as pkg:
            assert pkg.get_collection().version == 11
            assert len(pkg.get_notes()) == 2
            assert len(pkg.get_cards()) == 2
            assert pkg.get_models()[MODEL_ID].name == "Basic"
            assert pkg.get_decks()[DECK_ID].name == "Capitals"

    def test_temp_dir_removed(self, apkg_path, output_dir):
        with AnkiPackage(apkg_path, output_dir) as pkg:
            temp_dir = pkg.temp_dir
            assert os.path.isdir(temp_dir)
        assert not os.path.exists(temp_dir)

    def test_temp_dir_removed_on_error(self, make_apkg, output_dir, monkeypatch):
        created = []
        real_mkdtemp = tempfile.mkdtemp

        def tracking_mkdtemp(*args, **kwargs):
            path = real_mkdtemp(*args, **kwargs)
            created.append(path)
            return path

        monkeypatch.setattr(tempfile, "mkdtemp", tracking_mkdtemp)
        apkg = make_apkg(manifest=b"{broken")

        with pytest.raises(ConfigurationError):
            with AnkiPackage(apkg, output_dir):
                pass
        assert created and not os.path.exists(created[0])


class TestPipelineErrors:
    """Every failure aborts the whole conversion."""

    def test_no_cards(self, make_apkg, output_dir):
        apkg = make_apkg(cards=[])
        with AnkiPackage(apkg, output_dir) as pkg:
            with pytest.raises(IntegrityError, match="No cards"):
                pkg.render()

    def test_multiple_decks(self, make_apkg, output_dir):
        apkg = make_apkg(
            notes=[("a", "b"), ("c", "d")], cards=[(1, 1, 0), (2, DECK_ID, 0)]
        )
        with AnkiPackage(apkg, output_dir) as pkg:
            with pytest.raises(AmbiguousDeckError):
                pkg.render()
            assert len(pkg.render(title="Both").cards) == 2

    def test_dangling_note(self, make_apkg, output_dir):
        apkg = make_apkg(cards=[(5, DECK_ID, 0)])
        with AnkiPackage(apkg, output_dir) as pkg:
            with pytest.raises(IntegrityError, match="missing note 5"):
                pkg.render()

    def test_broken_models(self, make_apkg, output_dir):
        models = {str(MODEL_ID): {"flds": [], "css": ""}}
        apkg = make_apkg(models=models)
        with AnkiPackage(apkg, output_dir) as pkg:
            with pytest.raises(ConfigurationError):
                pkg.render()

    def test_malicious_media_name(self, make_apkg, output_dir, tmp_path):
        apkg = make_apkg(media={"../evil.sh": b"#!/bin/sh"})
        with pytest.raises(PathTraversalError):
            with AnkiPackage(apkg, output_dir):
                pass
        assert not (tmp_path / "evil.sh").exists()

    def test_anki21b_only(self, tmp_path, output_dir):
        zstd_magic = b"\x28\xb5\x2f\xfd"
        apkg = tmp_path / "modern.apkg"
        with zipfile.ZipFile(apkg, "w") as zip_ref:
            zip_ref.writestr("collection.anki21b", zstd_magic + b"\x00" * 16)
            zip_ref.writestr("media", zstd_magic + b"\x00" * 8)

        with pytest.raises(ArchiveError, match="anki21b"):
            with AnkiPackage(apkg, output_dir):
                pass


class TestConvert:
    """Tests for convert(), the .apkg to index.html workflow."""

    def test_index_written(self, apkg_path, output_dir):
        index = convert(apkg_path, output_dir)

        html = index.read_text(encoding="utf-8")
        assert index == output_dir / "index.html"
        assert "<title>Anki Package Dump: Capitals</title>" in html
        assert "Paris<hr id=answer>France" in html
        assert ".card { font-family: arial; }" in html
        assert (output_dir / "bell.mp3").exists()

    def test_header_escaped(self, apkg_path, output_dir):
        index = convert(apkg_path, output_dir, title="A & B", description="<i>x</i>")
        html = index.read_text(encoding="utf-8")
        assert "<h1>A &amp; B</h1>" in html
        assert "&lt;i&gt;x&lt;/i&gt;" in html

    def test_type_and_sound(self, make_apkg, output_dir):
        models = {
            str(MODEL_ID): {
                **BASIC_MODEL[str(MODEL_ID)],
                "tmpls": [
                    {
                        "name": "Card 1",
                        "qfmt": "{{Front}} {{type:Back}}",
                        "afmt": "{{FrontSide}}<hr>{{Back}}",
                        "ord": 0,
                    }
                ],
            }
        }
        apkg = make_apkg(
            notes=[("Paris [sound:bell.mp3]", "France")],
            models=models,
            media={"bell.mp3": b"ID3"},
        )
        html = convert(apkg, output_dir).read_text(encoding="utf-8")

        assert TYPE_ANSWER_INPUT in html
        assert "[sound:" not in html
        assert 'src="bell.mp3"' in html


class TestGenankiPackage:
    """Render a package written by genanki, an independent .apkg exporter."""

    def test_genanki_roundtrip(self, tmp_path, output_dir):
        sound = tmp_path / "bell.mp3"
        sound.write_bytes(b"ID3")

        model = genanki.Model(
            1607392319,
            "Capital",
            fields=[{"name": "Country"}, {"name": "Capital"}],
            templates=[
                {
                    "name": "Card 1",
                    "qfmt": "{{Country}}",
                    "afmt": "{{FrontSide}}<hr id=answer>{{Capital}}",
                }
            ],
            css=".card { color: black; }",
        )
        deck = genanki.Deck(2059400110, "Countries of the World")
        deck.add_note(genanki.Note(model=model, fields=["France", "Paris [sound:bell.mp3]"]))
        deck.add_note(genanki.Note(model=model, fields=["Italy", "Rome"]))
        package = genanki.Package(deck)
        package.media_files = [str(sound)]
        apkg = tmp_path / "countries.apkg"
        package.write_to_file(str(apkg))

        with AnkiPackage(apkg, output_dir) as pkg:
            rendered = pkg.render()

        assert rendered.title == "Countries of the World"
        fronts = sorted(c.front for c in rendered.cards)
        assert fronts == ["France", "Italy"]
        backs = {c.front: c.back for c in rendered.cards}
        assert backs["Italy"] == "Italy<hr id=answer>Rome"
        assert 'src="bell.mp3"' in backs["France"]
        assert all(c.stylesheet == ".card { color: black; }" for c in rendered.cards)
        assert (output_dir / "bell.mp3").read_bytes() == b"ID3"
