"""
Match expressions selecting entries, modeled on the tags/property match
syntax of Org mode.

Supported syntax:

- `tag` or `+tag`: entry has tag (including inherited tags)
- `-tag`: entry doesn't have tag
- `PROP="value"`: property set on entry equals value
- `PROP<>"value"`: property set on entry differs from value; `PROP<>""`
selects entries which have the property
- Terms are combined with `&` (or juxtaposition) and alternatives with `|`
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from functools import cache
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .base import Entry

__all__ = [
    "compile_match",
]

MatchPredicate = Callable[["Entry"], bool]

_TERM_RE = re.compile(
    r'\s*&?\s*([+-]?)([\w@#%]+)(?:(=|<>)"((?:[^"\\]|\\.)*)")?\s*'
)
_OR_RE = re.compile(r"\s*\|\s*")


@dataclass(frozen=True)
class _Term:
    negate: bool
    name: str
    op: str | None = None
    value: str | None = None

    def __call__(self, entry: Entry) -> bool:
        if self.op is None:
            result = self.name in entry.tags()
        else:
            actual = entry.get_local_property(self.name) or ""
            if self.op == "=":
                result = actual == self.value
            else:
                result = actual != self.value

        return not result if self.negate else result


@cache
def compile_match(expr: str) -> MatchPredicate:
    """
    Compile match expression to a predicate on entries.

    :raises ValueError: If expression is malformed
    """
    alternatives: list[list[_Term]] = []
    terms: list[_Term] = []
    pos = 0

    def close_alternative():
        if not terms:
            raise ValueError(f"Empty alternative in match expression '{expr}'")
        alternatives.append(terms)

    # quoted values may contain '|', so split while tokenizing
    while pos < len(expr):
        if m := _OR_RE.match(expr, pos):
            close_alternative()
            terms = []
            pos = m.end()
            continue

        m = _TERM_RE.match(expr, pos)
        if m is None or m.end() == pos:
            raise ValueError(f"Invalid match expression '{expr}' at: '{expr[pos:]}'")

        sign, name, op, value = m.groups()
        terms.append(
            _Term(
                negate=sign == "-",
                name=name,
                op=op,
                value=value.replace('\\"', '"') if value else value,
            )
        )
        pos = m.end()

    close_alternative()

    def predicate(entry: Entry) -> bool:
        return any(all(t(entry) for t in terms) for terms in alternatives)

    return predicate
