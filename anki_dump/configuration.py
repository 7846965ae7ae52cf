"""
Parse the JSON configuration stored in the collection row.

``col.models`` and ``col.decks`` are JSON objects keyed by stringified IDs::

    col.models
      [mid][flds]  = [{'name': 'Country Name', 'ord': 0, ...}, ...]
      [mid][tmpls] = [{'name': 'Areas', 'qfmt': '...', 'afmt': '...', 'ord': 0, ...}]
      [mid][css]   = '.card{...} ...'

    col.decks
      [did][name]  = 'Countries of the World'

Both are validated against explicit schema models. A model that does not
match breaks every card referencing it, so there is no partial fallback.
"""

import json

from pydantic import BaseModel, ValidationError

from anki_dump.errors import ConfigurationError


class FieldDefinition(BaseModel):
    """A field of a note type."""

    name: str
    ord: int


class TemplateDefinition(BaseModel):
    """A card template: question (front) and answer (back) formats."""

    name: str = ""
    qfmt: str
    afmt: str
    ord: int


class NoteModel(BaseModel):
    """A note type (called "model" in the database)."""

    id: int
    name: str = ""
    flds: list[FieldDefinition]
    tmpls: list[TemplateDefinition]
    css: str

    @property
    def field_ordinals(self) -> dict[str, int]:
        """Field name to ordinal, in ordinal order."""
        return {f.name: f.ord for f in sorted(self.flds, key=lambda f: f.ord)}

    @property
    def templates(self) -> dict[int, tuple[str, str]]:
        """Template ordinal to ``(qfmt, afmt)``."""
        return {t.ord: (t.qfmt, t.afmt) for t in self.tmpls}


class Deck(BaseModel):
    id: int
    name: str


def _load_object(blob: str, kind: str) -> dict:
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Malformed {kind} JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Expected {kind} JSON to be an object, got {type(data).__name__}"
        )
    return data


def _parse_id(key: str, kind: str) -> int:
    try:
        return int(key)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid {kind} id {key!r}") from exc


def parse_models(blob: str) -> dict[int, NoteModel]:
    """
    Parse ``col.models``.

    :param blob: JSON text of the models column.
    :returns: Dict mapping model ID to :class:`NoteModel`.
    :raises ConfigurationError: On malformed JSON, a non-integer key, or a
        model missing ``flds``, ``tmpls`` or ``css``.
    """
    models = {}
    for key, value in _load_object(blob, "models").items():
        model_id = _parse_id(key, "model")
        if not isinstance(value, dict):
            raise ConfigurationError(f"Model {model_id} is not an object")
        try:
            models[model_id] = NoteModel.model_validate({**value, "id": model_id})
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid model {model_id}: {exc}") from exc
    return models


def parse_decks(blob: str) -> dict[int, Deck]:
    """
    Parse ``col.decks``.

    :param blob: JSON text of the decks column.
    :returns: Dict mapping deck ID to :class:`Deck`.
    :raises ConfigurationError: On malformed JSON, a non-integer key, or a
        deck without a name.
    """
    decks = {}
    for key, value in _load_object(blob, "decks").items():
        deck_id = _parse_id(key, "deck")
        if not isinstance(value, dict):
            raise ConfigurationError(f"Deck {deck_id} is not an object")
        try:
            decks[deck_id] = Deck.model_validate({**value, "id": deck_id})
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid deck {deck_id}: {exc}") from exc
    return decks


def deck_names(decks: dict[int, Deck]) -> dict[int, str]:
    return {deck_id: deck.name for deck_id, deck in decks.items()}
