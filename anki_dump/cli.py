"""
CLI for dumping Anki package (.apkg) files to HTML.

Commands:
    render  - Write all cards of a package to a single HTML page
    inspect - Diagnostic listings of decks and note types
"""

import logging
import sys
import tempfile
from pathlib import Path
from typing import Annotated

import cyclopts

from anki_dump.document import convert
from anki_dump.errors import PackageError
from anki_dump.package import AnkiPackage

app = cyclopts.App(
    name="anki-dump", help="Dump Anki package (.apkg) files to an HTML page"
)


@app.command
def render(
    apkg_path: Path,
    *,
    output: Annotated[Path, cyclopts.Parameter(name=["--output", "-o"])] = Path("out"),
    title: Annotated[str | None, cyclopts.Parameter(name=["--title", "-t"])] = None,
    description: Annotated[
        str | None, cyclopts.Parameter(name=["--description", "-d"])
    ] = None,
    verbose: bool = False,
):
    """Takes one APKG file and renders it to a single HTML page.

    :param apkg_path: Path to .apkg file.
    :param output: Output folder for index.html and media files.
    :param title: Overwrite the package title (required for multi-deck packages).
    :param description: Overwrite the package description.
    :param verbose: Log every pipeline step.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        index = convert(apkg_path, output, title=title, description=description)
    except PackageError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"Output: {index}")


# =============================================================================
# Inspect commands - diagnostic tools for .apkg files
# =============================================================================

inspect_app = cyclopts.App(name="inspect", help="Inspect Anki package (.apkg) files")
app.command(inspect_app)


@inspect_app.command
def decks(apkg_path: Path):
    """List all decks in the package.

    :param apkg_path: Path to .apkg file.
    """
    with tempfile.TemporaryDirectory() as media_dir:
        try:
            with AnkiPackage(apkg_path, media_dir) as pkg:
                deck_table = pkg.get_decks()
                cards = pkg.get_cards()
        except PackageError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)

    print(f"Decks ({len(deck_table)}):\n")
    for deck_id, deck in deck_table.items():
        card_count = len([c for c in cards if c.did == deck_id])
        print(f"  {deck.name}")
        print(f"    ID: {deck_id}")
        print(f"    Cards: {card_count}")
        print()


@inspect_app.command
def models(apkg_path: Path, *, verbose: bool = False):
    """List note types (models), their fields and templates.

    :param apkg_path: Path to .apkg file.
    :param verbose: If True, show template sizes.
    """
    with tempfile.TemporaryDirectory() as media_dir:
        try:
            with AnkiPackage(apkg_path, media_dir) as pkg:
                model_table = pkg.get_models()
        except PackageError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)

    print(f"Note Types ({len(model_table)}):\n")
    for model_id, model in model_table.items():
        print(f"  {model.name or 'Unknown'}")
        print(f"    ID: {model_id}")
        print(f"    Fields: {', '.join(model.field_ordinals)}")
        print(f"    Templates: {', '.join(t.name for t in model.tmpls)}")

        if verbose:
            print(f"    CSS length: {len(model.css)}")
            for tmpl in model.tmpls:
                print(f"    Template '{tmpl.name}':")
                print(f"      Front: {len(tmpl.qfmt)} chars")
                print(f"      Back: {len(tmpl.afmt)} chars")
        print()


def main() -> None:
    """Main entry point. Invokes the cyclopts app."""
    app()


if __name__ == "__main__":
    main()
