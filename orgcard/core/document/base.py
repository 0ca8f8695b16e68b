"""
Interface to the document from which notes are extracted.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from .match import compile_match

__all__ = [
    "Document",
    "Entry",
    "ExcludePredicate",
    "NOTE_ID_PROP",
    "NOTE_HASH_PROP",
    "TARGET_HASH_PROP",
    "DECK_PROP",
    "NOTE_TYPE_PROP",
    "TAGS_PROP",
    "MATCH_KEYWORD",
    "DEFAULT_MATCH",
]
__canonical_syms__ = __all__

NOTE_ID_PROP = "ANKI_NOTE_ID"
"""
Id of note in Anki, written once the note has been created.
"""

NOTE_HASH_PROP = "ANKI_NOTE_HASH"
"""
Content hash of note as of last successful push.
"""

TARGET_HASH_PROP = "ANKI_TARGET_HASH"
"""
Hash of deck and note type as of last successful push.
"""

DECK_PROP = "ANKI_DECK"
NOTE_TYPE_PROP = "ANKI_NOTE_TYPE"
TAGS_PROP = "ANKI_TAGS"

MATCH_KEYWORD = "ANKI_MATCH"
"""
File-level keyword overriding the default match expression.
"""

DEFAULT_MATCH = 'ANKI_NOTE_TYPE<>""'
"""
Select entries which have a note type set on them.
"""

ExcludePredicate = Callable[["Entry"], bool]


class Entry(ABC):
    """
    One heading of a document along with its subtree. May map to at most
    one note in Anki.

    Entries are also used as anchors: the reconciler writes the results
    of remote calls back to the entry from which a note was extracted.
    """

    @property
    @abstractmethod
    def document(self) -> Document:
        ...

    @property
    @abstractmethod
    def title(self) -> str:
        ...

    @property
    @abstractmethod
    def body(self) -> str:
        """
        Text between heading and first child heading, excluding metadata.
        """
        ...

    @property
    @abstractmethod
    def text(self) -> str:
        """
        Text of whole subtree below heading, excluding metadata of this
        entry.
        """
        ...

    @property
    @abstractmethod
    def parent(self) -> Entry | None:
        ...

    @property
    @abstractmethod
    def children(self) -> list[Entry]:
        ...

    @abstractmethod
    def local_tags(self) -> list[str]:
        ...

    @abstractmethod
    def get_local_property(self, name: str) -> str | None:
        ...

    @abstractmethod
    def set_property(self, name: str, value: str):
        ...

    @abstractmethod
    def remove_property(self, name: str):
        ...

    def get_property(self, name: str, inherit: bool = False) -> str | None:
        """
        Get property value. If `inherit`, fall back to ancestors and then to
        the file-level keyword of the same name.
        """
        value = self.get_local_property(name)
        if value is not None or not inherit:
            return value

        if self.parent is not None:
            return self.parent.get_property(name, inherit=True)

        return self.document.keyword(name)

    def tags(self, inherit: bool = True) -> list[str]:
        """
        Get tags of this entry, including those of ancestors and file-level
        tags if `inherit`.
        """
        if not inherit:
            return self.local_tags()

        inherited = (
            self.parent.tags()
            if self.parent is not None
            else self.document.file_tags()
        )

        tags: list[str] = []
        for tag in inherited + self.local_tags():
            if tag not in tags:
                tags.append(tag)
        return tags

    def __str__(self) -> str:
        return f"'{self.title}'"


class Document(ABC):
    """
    A document containing entries.
    """

    @property
    @abstractmethod
    def roots(self) -> list[Entry]:
        """
        Top-level entries.
        """
        ...

    @abstractmethod
    def keyword(self, name: str) -> str | None:
        """
        Get file-level keyword, e.g. `#+ANKI_DECK: Default` for
        `name="ANKI_DECK"`.
        """
        ...

    @abstractmethod
    def file_tags(self) -> list[str]:
        ...

    @abstractmethod
    def save(self) -> bool:
        """
        Persist changes made to entries. Returns whether anything was
        written.
        """
        ...

    def entries(
        self,
        match: str = DEFAULT_MATCH,
        exclude: ExcludePredicate | None = None,
    ) -> list[Entry]:
        """
        Get entries matching the match expression and not excluded. The
        subtree of a selected entry is not searched further, as it holds
        the entry's fields.
        """
        predicate = compile_match(match)
        selected: list[Entry] = []

        def visit(entry: Entry):
            if exclude is not None and exclude(entry):
                return

            if predicate(entry):
                selected.append(entry)
                return

            for child in entry.children:
                visit(child)

        for root in self.roots:
            visit(root)

        return selected
