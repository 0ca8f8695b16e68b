"""
Extraction of notes from document entries.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from logging import Logger

from .document.base import DECK_PROP, NOTE_TYPE_PROP, TAGS_PROP, Entry
from .draft import NoteDraft, PersistedState
from .exceptions import ConfigurationError

__all__ = [
    "DEFAULT_NOTE_TYPES",
    "Extractor",
]
__canonical_syms__ = __all__

DEFAULT_NOTE_TYPES: dict[str, list[str]] = {
    "Basic": ["Front", "Back"],
    "Basic (and reversed card)": ["Front", "Back"],
    "Basic (optional reversed card)": ["Front", "Back", "Add Reverse"],
    "Basic (type in the answer)": ["Front", "Back"],
    "Cloze": ["Text", "Back Extra"],
}
"""
Fields of the note types Anki ships with.
"""


class Extractor:
    """
    Extracts a {obj}`NoteDraft` from an entry.

    Deck and note type are resolved by precedence:

    1. Property set on the entry
    2. Property inherited from an ancestor, or file-level keyword
    3. Configured default

    Fields are taken from the entry's subheadings named after the fields of
    the note type. If fields remain, the first takes the entry's title and
    the second the entry's body.
    """

    _note_types: dict[str, list[str]]
    _default_deck: str | None
    _default_note_type: str | None
    _global_tags: list[str]
    _ignored_tags: set[str]
    _logger: Logger

    def __init__(
        self,
        note_types: Mapping[str, Sequence[str]] | None = None,
        *,
        default_deck: str | None = None,
        default_note_type: str | None = None,
        global_tags: Iterable[str] = (),
        ignored_tags: Iterable[str] = (),
        logger: Logger | None = None,
    ):
        self._note_types = {
            name: list(fields)
            for name, fields in (note_types or DEFAULT_NOTE_TYPES).items()
        }
        self._default_deck = default_deck
        self._default_note_type = default_note_type
        self._global_tags = list(global_tags)
        self._ignored_tags = set(ignored_tags)
        self._logger = logger or logging.getLogger()

    def extract(self, entry: Entry) -> NoteDraft:
        """
        Extract note from entry.

        :raises ConfigurationError: If note can't be extracted
        """
        deck = self._resolve(entry, DECK_PROP, self._default_deck, "deck")
        model = self._resolve(
            entry, NOTE_TYPE_PROP, self._default_note_type, "note type"
        )

        schema = self._note_types.get(model)
        if schema is None:
            raise ConfigurationError(
                f"Unknown note type '{model}' of {entry}; known note types: {list(self._note_types)}",
                entry,
            )

        return NoteDraft(
            anchor=entry,
            deck=deck,
            model=model,
            fields=self._get_fields(entry, model, schema),
            tags=self._get_tags(entry),
            remote_id=PersistedState.from_entry(entry).remote_id,
        )

    def extract_all(
        self, entries: Iterable[Entry]
    ) -> tuple[list[NoteDraft], list[ConfigurationError]]:
        """
        Extract notes from entries, collecting errors rather than aborting.
        """
        drafts: list[NoteDraft] = []
        errors: list[ConfigurationError] = []

        for entry in entries:
            try:
                drafts.append(self.extract(entry))
            except ConfigurationError as e:
                self._logger.error(str(e))
                errors.append(e)

        return drafts, errors

    def _resolve(
        self, entry: Entry, prop: str, default: str | None, desc: str
    ) -> str:
        value = entry.get_property(prop, inherit=True) or default
        if not value:
            raise ConfigurationError(
                f"No {desc} for {entry}: set {prop} on entry, an ancestor or the file, or configure a default",
                entry,
            )
        return value

    def _get_fields(
        self, entry: Entry, model: str, schema: list[str]
    ) -> dict[str, str]:
        by_name = {name.lower(): name for name in schema}
        found: dict[str, str] = {}

        for child in entry.children:
            name = by_name.get(child.title.strip().lower())
            if name is None:
                raise ConfigurationError(
                    f"Subheading {child} of {entry} is not a field of note type '{model}': {schema}",
                    entry,
                )
            if name in found:
                raise ConfigurationError(
                    f"Field '{name}' given more than once in {entry}", entry
                )
            found[name] = child.text

        # fill missing fields from title and body
        missing = [name for name in schema if name not in found]
        fallbacks = [entry.title.strip(), entry.body]

        for name, value in zip(missing, fallbacks):
            found[name] = value

        missing = [name for name in schema if name not in found]
        if missing:
            raise ConfigurationError(
                f"Missing fields of note type '{model}' in {entry}: {missing}",
                entry,
            )

        return {name: found[name] for name in schema}

    def _get_tags(self, entry: Entry) -> frozenset[str]:
        tags = set(entry.tags())

        anki_tags = entry.get_property(TAGS_PROP, inherit=True)
        if anki_tags:
            tags.update(anki_tags.split())

        tags.update(self._global_tags)

        return frozenset(tags - self._ignored_tags)
