"""
Representation of a note extracted from an entry, before it's pushed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Self

from .document.base import (
    NOTE_HASH_PROP,
    NOTE_ID_PROP,
    TARGET_HASH_PROP,
    Entry,
)
from .exceptions import ConfigurationError
from .utils import fingerprint

__all__ = [
    "NoteDraft",
    "PersistedState",
    "target_fingerprint",
]
__canonical_syms__ = __all__


@dataclass(eq=False, kw_only=True)
class NoteDraft:
    """
    Candidate note derived from an entry for one push. Never persisted
    itself; only its remote id and content hash are written back to the
    entry once Anki confirms the push.
    """

    anchor: Entry
    """Entry from which this note was extracted"""

    deck: str
    model: str

    fields: dict[str, str]
    """Raw field content in order of the note type's fields"""

    tags: frozenset[str]

    remote_id: int | None = None

    content_hash: str = field(init=False)
    """Fingerprint of fields and tags"""

    target_hash: str = field(init=False)
    """Fingerprint of deck and note type"""

    def __post_init__(self):
        self.content_hash = fingerprint(self.fields, self.tags)
        self.target_hash = target_fingerprint(self.deck, self.model)

    @property
    def tags_str(self) -> str:
        """
        Tags in the space-separated form expected by AnkiConnect.
        """
        return " ".join(sorted(self.tags))

    def __str__(self) -> str:
        return f"{self.anchor} ({self.model} in {self.deck})"


@dataclass(frozen=True, kw_only=True)
class PersistedState:
    """
    State of a note as written to its entry by the last successful push.
    """

    remote_id: int | None = None
    content_hash: str | None = None
    target_hash: str | None = None

    @classmethod
    def from_entry(cls, entry: Entry) -> Self:
        """
        Read state from entry's properties.

        :raises ConfigurationError: If note id is not an integer
        """
        remote_id: int | None = None

        raw_id = entry.get_local_property(NOTE_ID_PROP)
        if raw_id:
            try:
                remote_id = int(raw_id)
            except ValueError:
                raise ConfigurationError(
                    f"Invalid {NOTE_ID_PROP} of {entry}: '{raw_id}'", entry
                )

        return cls(
            remote_id=remote_id,
            content_hash=entry.get_local_property(NOTE_HASH_PROP) or None,
            target_hash=entry.get_local_property(TARGET_HASH_PROP) or None,
        )


def target_fingerprint(deck: str, model: str) -> str:
    return fingerprint({"deck": deck, "model": model}, ())
