"""
Decides which remote operation, if any, each note requires.
"""

from __future__ import annotations

from enum import Enum, auto

from .draft import NoteDraft, PersistedState

__all__ = [
    "Decision",
    "decide",
    "decide_delete",
    "is_target_changed",
]
__canonical_syms__ = __all__


class Decision(Enum):
    """
    Operation required to bring a note in Anki up to date with its entry.
    """

    SKIP = auto()
    """Note unchanged since last push"""

    CREATE = auto()
    """Note not yet created in Anki"""

    UPDATE = auto()
    """Note changed since last push"""

    DELETE = auto()
    """Note to be removed from Anki"""


def decide(
    draft: NoteDraft, persisted: PersistedState, *, force: bool = False
) -> Decision:
    """
    Compare freshly extracted note with the state persisted by the last
    push.

    A missing persisted hash always results in an update, as it can't be
    told apart from a change.
    """
    if persisted.remote_id is None:
        return Decision.CREATE

    if force or persisted.content_hash is None:
        return Decision.UPDATE

    if persisted.content_hash != draft.content_hash:
        return Decision.UPDATE

    if is_target_changed(draft, persisted):
        return Decision.UPDATE

    return Decision.SKIP


def decide_delete(persisted: PersistedState) -> Decision:
    """
    Decide operation for an entry selected for deletion, regardless of its
    content.
    """
    return Decision.SKIP if persisted.remote_id is None else Decision.DELETE


def is_target_changed(draft: NoteDraft, persisted: PersistedState) -> bool:
    """
    Whether deck or note type changed since last push. Entries pushed
    without a target hash are not considered changed.
    """
    return (
        persisted.target_hash is not None
        and persisted.target_hash != draft.target_hash
    )
