"""
Grouping of decided notes into as few AnkiConnect calls as possible.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from . import wire
from .diff import Decision
from .document.base import Entry
from .draft import NoteDraft

__all__ = [
    "OperationKind",
    "BatchOperation",
    "PlannedNote",
    "build_batches",
    "build_query",
]
__canonical_syms__ = __all__


class OperationKind(Enum):
    """
    Kind of remote call, determining how its result is reconciled.
    """

    CREATE = auto()
    UPDATE = auto()
    DELETE = auto()
    QUERY = auto()


@dataclass(frozen=True, kw_only=True)
class BatchOperation:
    """
    One remote call to be issued.

    The i-th anchor (and hash) corresponds to the i-th sub-item of the
    payload; results are matched back to entries solely by position.
    """

    kind: OperationKind
    payload: dict[str, Any]

    anchors: tuple[Entry, ...] = ()

    hashes: tuple[str | None, ...] = ()
    """Content hash to persist for each anchor upon success"""

    target_hashes: tuple[str | None, ...] = ()
    """Target hash to persist for each anchor upon success"""

    consumer: Callable[[Any], None] | None = None
    """Callback receiving the result of a query"""

    @property
    def action(self) -> str:
        return self.payload["action"]

    def __len__(self) -> int:
        return len(self.anchors)

    def __str__(self) -> str:
        return f"{self.action} ({self.kind.name.lower()}, {len(self)} notes)"


@dataclass(frozen=True, kw_only=True)
class PlannedNote:
    """
    An entry along with the decision made for it.
    """

    decision: Decision
    anchor: Entry
    remote_id: int | None = None

    draft: NoteDraft | None = None
    """Extracted note, not set for deletes"""

    rendered: dict[str, str] | None = None
    """Rendered fields, set for creates and updates once rendered"""


def build_batches(
    notes: Iterable[PlannedNote], *, allow_duplicate: bool = False
) -> list[BatchOperation]:
    """
    Group notes by decision: all creates into one `addNotes`, all updates
    into one `multi` of `updateNote`, all deletes into one `deleteNotes`.
    Skipped notes are ignored and empty groups produce no call.
    """
    creates: list[PlannedNote] = []
    updates: list[PlannedNote] = []
    deletes: list[PlannedNote] = []

    groups = {
        Decision.CREATE: creates,
        Decision.UPDATE: updates,
        Decision.DELETE: deletes,
    }

    for note in notes:
        group = groups.get(note.decision)
        if group is not None:
            group.append(note)

    operations: list[BatchOperation] = []

    if creates:
        operations.append(
            BatchOperation(
                kind=OperationKind.CREATE,
                payload=wire.add_notes(
                    [
                        wire.note_payload(
                            _draft(n), _rendered(n), allow_duplicate=allow_duplicate
                        )
                        for n in creates
                    ]
                ),
                anchors=tuple(n.anchor for n in creates),
                hashes=tuple(_draft(n).content_hash for n in creates),
                target_hashes=tuple(_draft(n).target_hash for n in creates),
            )
        )

    if updates:
        operations.append(
            BatchOperation(
                kind=OperationKind.UPDATE,
                payload=wire.multi(
                    [
                        wire.update_note(
                            _remote_id(n), _rendered(n), _draft(n).tags_str
                        )
                        for n in updates
                    ]
                ),
                anchors=tuple(n.anchor for n in updates),
                hashes=tuple(_draft(n).content_hash for n in updates),
                target_hashes=tuple(_draft(n).target_hash for n in updates),
            )
        )

    if deletes:
        operations.append(
            BatchOperation(
                kind=OperationKind.DELETE,
                payload=wire.delete_notes(_remote_id(n) for n in deletes),
                anchors=tuple(n.anchor for n in deletes),
                hashes=tuple(None for _ in deletes),
                target_hashes=tuple(None for _ in deletes),
            )
        )

    return operations


def build_query(
    payload: dict[str, Any], consumer: Callable[[Any], None]
) -> BatchOperation:
    """
    Build a call whose result is handed to `consumer` without touching the
    document.
    """
    return BatchOperation(
        kind=OperationKind.QUERY, payload=payload, consumer=consumer
    )


def _draft(note: PlannedNote) -> NoteDraft:
    assert note.draft is not None, f"No draft for {note.anchor}"
    return note.draft


def _rendered(note: PlannedNote) -> dict[str, str]:
    assert note.rendered is not None, f"Fields of {note.anchor} not rendered"
    return note.rendered


def _remote_id(note: PlannedNote) -> int:
    assert note.remote_id is not None, f"No note id for {note.anchor}"
    return note.remote_id
