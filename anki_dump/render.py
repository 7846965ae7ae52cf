"""
Resolve cards into rendered (stylesheet, front, back) HTML.

Templates are filled by literal token replacement, not by a template
engine. Packages rely on its quirks (a field value containing ``{{Other}}``
is itself substituted when ``Other`` comes later), so the order is fixed:

1. ``{{Field}}`` and ``{{type:Field}}`` for every declared field, by ordinal
2. ``{{FrontSide}}`` in the answer, with the fully substituted question
3. ``[sound:file]`` tags on both sides
"""

import html
import mimetypes
import re
import urllib.parse
from typing import Iterable, NamedTuple

from anki_dump.configuration import Deck, NoteModel
from anki_dump.errors import AmbiguousDeckError, IntegrityError
from anki_dump.relations import Card, Note

TYPE_ANSWER_INPUT = "<input type='text' placeholder='solution' class='type' />"

AUDIO_ELEMENT = (
    '<audio controls><source src="{src}"{type}>'
    " Your browser does not support the <code>audio</code> element.</audio>"
)

SOUND_PATTERN = re.compile(r"\[sound:(.+?)\]")


class RenderedCard(NamedTuple):
    stylesheet: str
    front: str
    back: str


class ResolvedDeck(NamedTuple):
    title: str
    cards: list[RenderedCard]


def audio_markup(filename: str) -> str:
    """Build an ``<audio>`` element playing ``filename``, relative to the page."""
    mime, _ = mimetypes.guess_type(filename)
    type_attr = f' type="{mime}"' if mime else ""
    src = html.escape(urllib.parse.quote(filename), quote=True)
    return AUDIO_ELEMENT.format(src=src, type=type_attr)


def rewrite_sounds(text: str) -> str:
    """Replace every ``[sound:file]`` tag in ``text`` with audio markup."""
    return SOUND_PATTERN.sub(lambda m: audio_markup(m.group(1)), text)


def substitute_fields(
    question: str,
    answer: str,
    field_ordinals: dict[str, int],
    fields: list[str],
    card_id: int | None = None,
) -> tuple[str, str]:
    """
    Fill field, ``type:`` and ``FrontSide`` placeholders of a template pair.

    :param question: Question (front) format.
    :param answer: Answer (back) format.
    :param field_ordinals: Field name to ordinal, applied in this order.
    :param fields: The note's field values.
    :param card_id: Only used in error messages.
    :returns: Tuple of (front, back).
    :raises IntegrityError: If a field referenced by either format has an
        ordinal outside ``fields``.
    """
    for name, index in field_ordinals.items():
        placeholder = "{{" + name + "}}"
        type_placeholder = "{{type:" + name + "}}"

        if index >= len(fields) or index < 0:
            if placeholder in question or placeholder in answer:
                raise IntegrityError(
                    f"Card {card_id}: field {name!r} has ordinal {index} "
                    f"but the note only has {len(fields)} fields"
                )
        else:
            question = question.replace(placeholder, fields[index])
            answer = answer.replace(placeholder, fields[index])

        question = question.replace(type_placeholder, TYPE_ANSWER_INPUT)
        answer = answer.replace(type_placeholder, TYPE_ANSWER_INPUT)

    answer = answer.replace("{{FrontSide}}", question)
    return question, answer


def resolve_card(
    card: Card,
    notes_by_id: dict[int, Note],
    models: dict[int, NoteModel],
    decks: dict[int, Deck],
) -> RenderedCard:
    """
    Render one card.

    :param card: Card to render.
    :param notes_by_id: All notes, keyed by ID.
    :param models: Parsed ``col.models``.
    :param decks: Parsed ``col.decks``. Deck membership does not affect the
        rendered HTML, it is checked by :func:`resolve_cards`.
    :returns: :class:`RenderedCard` with the model's CSS and both sides.
    :raises IntegrityError: If the note, model or template is missing.
    """
    note = notes_by_id.get(card.nid)
    if note is None:
        raise IntegrityError(f"Card {card.id} references missing note {card.nid}")

    model = models.get(note.mid)
    if model is None:
        raise IntegrityError(f"Note {note.id} references missing model {note.mid}")

    template = model.templates.get(card.ord)
    if template is None:
        raise IntegrityError(
            f"Card {card.id} references missing template {card.ord} of model {model.id}"
        )

    front, back = substitute_fields(
        template[0], template[1], model.field_ordinals, note.fields, card.id
    )
    return RenderedCard(model.css, rewrite_sounds(front), rewrite_sounds(back))


def resolve_cards(
    cards: Iterable[Card],
    notes_by_id: dict[int, Note],
    models: dict[int, NoteModel],
    decks: dict[int, Deck],
    title: str | None = None,
) -> ResolvedDeck:
    """
    Render cards in order and derive the deck title.

    :param cards: Cards in render order.
    :param title: Explicit title. Without it, all cards must share one deck
        and the title is that deck's name.
    :returns: :class:`ResolvedDeck`.
    :raises AmbiguousDeckError: If cards span multiple decks and no title
        was given.
    :raises IntegrityError: On any dangling reference.
    """
    rendered = []
    deck_id = None
    for card in cards:
        if deck_id is not None and deck_id != card.did and not title:
            raise AmbiguousDeckError(
                "There are multiple decks in use, so please set the title explicitly"
            )
        rendered.append(resolve_card(card, notes_by_id, models, decks))
        deck_id = card.did

    if not rendered:
        raise IntegrityError("No cards to render")
    if title:
        return ResolvedDeck(title, rendered)

    deck = decks.get(deck_id)
    if deck is None:
        raise IntegrityError(f"Cards reference missing deck {deck_id}")
    return ResolvedDeck(deck.name, rendered)
