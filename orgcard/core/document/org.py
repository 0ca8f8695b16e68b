"""
Org mode implementation of the document interface.

Only the parts of Org syntax relevant for notes are parsed: headings with
tags, planning lines, property drawers and file-level keywords. Everything
else is preserved verbatim when the document is written back.
"""

from __future__ import annotations

import re
import textwrap
from pathlib import Path
from typing import Self

from .base import Document, Entry

__all__ = [
    "OrgDocument",
    "OrgEntry",
]
__canonical_syms__ = __all__

_HEADING_RE = re.compile(r"^(\*+)\s+(.*?)(?:\s+(:(?:[\w@#%]+:)+))?\s*$")
_KEYWORD_RE = re.compile(r"^#\+(\w+):\s*(.*?)\s*$")
_PLANNING_RE = re.compile(r"^\s*(?:SCHEDULED|DEADLINE|CLOSED):")
_PROPERTY_RE = re.compile(r"^\s*:([^:\s]+):(?:\s+(.*?))?\s*$")

_DRAWER_START = ":PROPERTIES:"
_DRAWER_END = ":END:"


class OrgEntry(Entry):
    """
    A heading in an Org file.
    """

    level: int

    _document: OrgDocument
    _parent: OrgEntry | None
    _children: list[OrgEntry]

    _heading_line: str
    _title: str
    _tags: list[str]

    _planning: list[str]
    """Planning line, if any, which precedes the property drawer"""

    _properties: dict[str, str]

    _drawer_lines: list[str] | None
    """Original drawer lines, or None if no drawer existed"""

    _drawer_changed: bool = False

    _body: list[str]

    def __init__(
        self,
        document: OrgDocument,
        heading_line: str,
        parent: OrgEntry | None = None,
    ):
        m = _HEADING_RE.match(heading_line)
        assert m, f"Not a heading: {heading_line}"

        stars, title, tags = m.groups()

        self.level = len(stars)
        self._document = document
        self._parent = parent
        self._children = []
        self._heading_line = heading_line
        self._title = title
        self._tags = [t for t in tags.split(":") if t] if tags else []
        self._planning = []
        self._properties = {}
        self._drawer_lines = None
        self._body = []

    @property
    def document(self) -> OrgDocument:
        return self._document

    @property
    def title(self) -> str:
        return self._title

    @property
    def body(self) -> str:
        return _normalize_text(self._body)

    @property
    def text(self) -> str:
        lines = list(self._body)
        for child in self._children:
            lines += child._dump()
        return _normalize_text(lines)

    @property
    def parent(self) -> OrgEntry | None:
        return self._parent

    @property
    def children(self) -> list[Entry]:
        return list(self._children)

    def local_tags(self) -> list[str]:
        return list(self._tags)

    def get_local_property(self, name: str) -> str | None:
        return self._properties.get(name)

    def set_property(self, name: str, value: str):
        if self._properties.get(name) == value:
            return

        self._properties[name] = value
        self._mark_changed()

    def remove_property(self, name: str):
        if name not in self._properties:
            return

        del self._properties[name]
        self._mark_changed()

    def _mark_changed(self):
        self._drawer_changed = True
        self._document._changed = True

    def _dump(self) -> list[str]:
        """
        Get lines of this entry's subtree.
        """
        lines = [self._heading_line] + self._planning

        if self._drawer_changed:
            if self._properties:
                lines.append(_DRAWER_START)
                lines += [f":{k}: {v}" for k, v in self._properties.items()]
                lines.append(_DRAWER_END)
        elif self._drawer_lines is not None:
            lines += self._drawer_lines

        lines += self._body

        for child in self._children:
            lines += child._dump()

        return lines

    def __repr__(self) -> str:
        return f"OrgEntry(level={self.level}, title={self._title!r})"


class OrgDocument(Document):
    """
    An Org file, parsed into a tree of entries.
    """

    path: Path | None

    _preamble: list[str]
    _keywords: dict[str, list[str]]
    _roots: list[OrgEntry]
    _trailing_newline: bool
    _changed: bool

    def __init__(self, text: str, path: Path | None = None):
        self.path = path
        self._preamble = []
        self._keywords = {}
        self._roots = []
        self._trailing_newline = text.endswith("\n")
        self._changed = False

        self._parse(text.splitlines())

    @classmethod
    def load(cls, path: Path) -> Self:
        """
        Load document from .org file.
        """
        return cls(path.read_text(encoding="utf-8"), path=path)

    @property
    def roots(self) -> list[Entry]:
        return list(self._roots)

    @property
    def changed(self) -> bool:
        return self._changed

    def keyword(self, name: str) -> str | None:
        values = self._keywords.get(name.upper())
        return values[-1] if values else None

    def file_tags(self) -> list[str]:
        tags: list[str] = []
        for value in self._keywords.get("FILETAGS", []):
            for tag in value.split(":"):
                tag = tag.strip()
                if tag and tag not in tags:
                    tags.append(tag)
        return tags

    def dump(self) -> str:
        """
        Get text of document including any changes.
        """
        lines = list(self._preamble)
        for root in self._roots:
            lines += root._dump()

        text = "\n".join(lines)
        return f"{text}\n" if self._trailing_newline else text

    def save(self) -> bool:
        if not self._changed:
            return False

        assert self.path is not None, "Document has no path to save to"

        self.path.write_text(self.dump(), encoding="utf-8")
        self._changed = False
        return True

    def _parse(self, lines: list[str]):
        stack: list[OrgEntry] = []
        current: OrgEntry | None = None

        # state of metadata following the current heading
        expect_planning = False
        expect_drawer = False
        drawer: list[str] | None = None

        for line in lines:
            if drawer is not None:
                drawer.append(line)

                if line.strip().upper() == _DRAWER_END:
                    assert current is not None
                    current._drawer_lines = drawer
                    drawer = None
                    continue

                m = _PROPERTY_RE.match(line)
                if m:
                    assert current is not None
                    name, value = m.groups()
                    current._properties[name] = value or ""
                continue

            if _HEADING_RE.match(line):
                level = len(line) - len(line.lstrip("*"))

                while stack and stack[-1].level >= level:
                    stack.pop()

                parent = stack[-1] if stack else None
                current = OrgEntry(self, line, parent=parent)

                if parent is None:
                    self._roots.append(current)
                else:
                    parent._children.append(current)

                stack.append(current)
                expect_planning = True
                expect_drawer = True
                continue

            if current is None:
                self._preamble.append(line)

                m = _KEYWORD_RE.match(line)
                if m:
                    name, value = m.groups()
                    self._keywords.setdefault(name.upper(), []).append(value)
                continue

            if expect_planning and _PLANNING_RE.match(line):
                current._planning.append(line)
                expect_planning = False
                continue

            if expect_drawer and line.strip().upper() == _DRAWER_START:
                drawer = [line]
                expect_planning = expect_drawer = False
                continue

            expect_planning = expect_drawer = False
            current._body.append(line)

        if drawer is not None:
            # unterminated drawer: keep it as body text
            assert current is not None
            current._properties.clear()
            current._body += drawer


def _normalize_text(lines: list[str]) -> str:
    """
    Dedent lines and strip surrounding blank lines.
    """
    return textwrap.dedent("\n".join(lines)).strip("\n").rstrip()
