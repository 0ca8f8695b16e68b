"""
Request and response format of the AnkiConnect API.

Requests have the form:

```
{"action": "addNotes", "version": 6, "params": {...}}
```

and responses:

```
{"result": ..., "error": null}
```
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ValidationError

from .draft import NoteDraft
from .exceptions import AnkiConnectError, TransportError

__all__ = [
    "API_VERSION",
    "DUPLICATE_SCOPE",
    "Action",
    "Response",
    "request",
    "note_payload",
    "add_notes",
    "update_note",
    "delete_notes",
    "multi",
    "find_notes",
    "gui_browse",
    "sync",
    "encode",
    "decode",
    "sub_result_error",
]
__canonical_syms__ = __all__

API_VERSION = 6

DUPLICATE_SCOPE = "deck"


class Action(StrEnum):
    """
    AnkiConnect actions used by orgcard.
    """

    ADD_NOTES = "addNotes"
    UPDATE_NOTE = "updateNote"
    DELETE_NOTES = "deleteNotes"
    MULTI = "multi"
    GUI_BROWSE = "guiBrowse"
    FIND_NOTES = "findNotes"
    SYNC = "sync"


class Response(BaseModel):
    """
    Response envelope returned by AnkiConnect.
    """

    result: Any = None
    error: str | None = None


def request(action: Action, **params: Any) -> dict[str, Any]:
    return {"action": str(action), "version": API_VERSION, "params": params}


def note_payload(
    draft: NoteDraft,
    fields: Mapping[str, str],
    *,
    allow_duplicate: bool = False,
) -> dict[str, Any]:
    """
    Get note as passed to `addNote`/`addNotes`, using rendered fields.
    """
    return {
        "deckName": draft.deck,
        "modelName": draft.model,
        "fields": dict(fields),
        "tags": draft.tags_str,
        "options": {
            "allowDuplicate": allow_duplicate,
            "duplicateScope": DUPLICATE_SCOPE,
        },
    }


def add_notes(notes: list[dict[str, Any]]) -> dict[str, Any]:
    return request(Action.ADD_NOTES, notes=notes)


def update_note(
    remote_id: int, fields: Mapping[str, str], tags: str
) -> dict[str, Any]:
    return request(
        Action.UPDATE_NOTE,
        note={"id": remote_id, "fields": dict(fields), "tags": tags},
    )


def delete_notes(remote_ids: Iterable[int]) -> dict[str, Any]:
    return request(Action.DELETE_NOTES, notes=list(remote_ids))


def multi(actions: list[dict[str, Any]]) -> dict[str, Any]:
    return request(Action.MULTI, actions=actions)


def find_notes(query: str) -> dict[str, Any]:
    return request(Action.FIND_NOTES, query=query)


def gui_browse(query: str) -> dict[str, Any]:
    return request(Action.GUI_BROWSE, query=query)


def sync() -> dict[str, Any]:
    return request(Action.SYNC)


def encode(payload: dict[str, Any], api_key: str | None = None) -> bytes:
    """
    Serialize request, adding the API key if AnkiConnect requires one.
    """
    if api_key:
        payload = {**payload, "key": api_key}
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def decode(raw: bytes, action: str) -> Any:
    """
    Parse response and return its result.

    :raises TransportError: If response is not a valid envelope
    :raises AnkiConnectError: If AnkiConnect reported an error
    """
    try:
        response = Response.model_validate_json(raw)
    except ValidationError as e:
        raise TransportError(
            f"Invalid response to '{action}': {raw[:200]!r} ({e.error_count()} errors)"
        ) from e

    if response.error is not None:
        raise AnkiConnectError(action, response.error)

    return response.result


def sub_result_error(item: Any) -> str | None:
    """
    Get error of one result of a `multi` action, or None if it succeeded.
    Versioned sub-actions return a response envelope; others return their
    bare result.
    """
    if isinstance(item, dict) and set(item) <= {"result", "error"} and item:
        error = item.get("error")
        return str(error) if error is not None else None
    return None
