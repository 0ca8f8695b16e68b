import logging
from pathlib import Path

from pytest import LogCaptureFixture, mark, raises

from orgcard import (
    Decision,
    OrgDocument,
    RenderAlignmentError,
    Renderer,
    SyncSession,
    fingerprint,
)
from orgcard.core import wire

SINGLE_NOTE = """\
* Q :x:
:PROPERTIES:
:ANKI_NOTE_TYPE: Basic
:END:
A
"""

EDITED_NOTE = """\
* Q :x:
:PROPERTIES:
:ANKI_NOTE_TYPE: Basic
:ANKI_NOTE_ID: 55
:ANKI_NOTE_HASH: stale
:END:
A2
"""

PUSHED_NOTES = """\
* First
:PROPERTIES:
:ANKI_NOTE_TYPE: Basic
:ANKI_NOTE_ID: 7
:ANKI_NOTE_HASH: abc
:END:
* Second
:PROPERTIES:
:ANKI_NOTE_TYPE: Basic
:ANKI_NOTE_ID: 9
:ANKI_NOTE_HASH: def
:END:
* Not pushed
:PROPERTIES:
:ANKI_NOTE_TYPE: Basic
:END:
"""


class BrokenRenderer(Renderer):
    def render(self, source: str) -> str:
        return source.replace("orgcardfield", "")


@mark.manual
@mark.org_text(SINGLE_NOTE)
def test_create(session: SyncSession, transport, org_file: Path):
    plan = session.plan()

    assert [n.decision for n in plan.notes] == [Decision.CREATE]
    assert plan.summary == "(create/update/delete) 1/0/0 notes, 0 unchanged"

    handles = session.push(plan)
    assert len(handles) == 1

    assert transport.requests == [
        {
            "action": "addNotes",
            "version": 6,
            "params": {
                "notes": [
                    {
                        "deckName": "Default",
                        "modelName": "Basic",
                        "fields": {"Front": "Q", "Back": "A"},
                        "tags": "x",
                        "options": {
                            "allowDuplicate": False,
                            "duplicateScope": "deck",
                        },
                    }
                ]
            },
        }
    ]

    # nothing persisted until completion is processed
    entry = session.document.entries()[0]
    assert entry.get_local_property("ANKI_NOTE_ID") is None

    transport.respond(0, [55])
    assert session.wait(timeout=1.0)

    assert entry.get_local_property("ANKI_NOTE_ID") == "55"
    assert entry.get_local_property("ANKI_NOTE_HASH") == fingerprint(
        {"Front": "Q", "Back": "A"}, {"x"}
    )
    assert not session.has_failures

    assert session.save()
    assert ":ANKI_NOTE_ID: 55\n" in org_file.read_text()


@mark.org_text(EDITED_NOTE)
def test_update(session: SyncSession, transport):
    plan = session.plan()
    assert [n.decision for n in plan.notes] == [Decision.UPDATE]

    session.push(plan)
    session.wait(timeout=1.0)

    assert transport.requests == [
        {
            "action": "multi",
            "version": 6,
            "params": {
                "actions": [
                    {
                        "action": "updateNote",
                        "version": 6,
                        "params": {
                            "note": {
                                "id": 55,
                                "fields": {"Front": "Q", "Back": "A2"},
                                "tags": "x",
                            }
                        },
                    }
                ]
            },
        }
    ]

    entry = session.document.entries()[0]
    assert entry.get_local_property("ANKI_NOTE_ID") == "55"
    assert entry.get_local_property("ANKI_NOTE_HASH") == fingerprint(
        {"Front": "Q", "Back": "A2"}, {"x"}
    )


@mark.org_text(PUSHED_NOTES)
def test_delete(session: SyncSession, transport):
    plan = session.plan_delete()

    assert [n.remote_id for n in plan.get(Decision.DELETE)] == [7, 9]
    assert plan.skipped == 1

    session.push(plan)
    session.wait(timeout=1.0)

    assert transport.requests == [
        {"action": "deleteNotes", "version": 6, "params": {"notes": [7, 9]}}
    ]

    first, second, _ = session.document.entries()
    for entry in (first, second):
        assert entry.get_local_property("ANKI_NOTE_ID") is None
        assert entry.get_local_property("ANKI_NOTE_HASH") is None


def test_idempotent(document: OrgDocument, transport, org_file: Path):
    with SyncSession(
        document, transport=transport, default_deck="Default"
    ) as session:
        plan = session.plan()
        assert len(plan.get(Decision.CREATE)) == 3
        session.push(plan)

    # waited for completion and saved upon exit
    assert transport.closed
    assert transport.actions == ["addNotes"]
    assert org_file.read_text().count(":ANKI_NOTE_ID:") == 3

    # second run makes no calls
    transport.requests.clear()

    with SyncSession(
        OrgDocument.load(org_file), transport=transport, default_deck="Default"
    ) as session:
        plan = session.plan()

        assert plan.is_empty
        assert plan.skipped == 3
        assert session.push(plan) == []

    assert transport.requests == []

    # forced update
    with SyncSession(
        OrgDocument.load(org_file), transport=transport, default_deck="Default"
    ) as session:
        session.push(session.plan(force=True))

    assert transport.actions == ["multi"]
    assert len(transport.requests[0]["params"]["actions"]) == 3


def test_mixed(session: SyncSession, transport, document: OrgDocument):
    session.push(session.plan())
    session.wait()

    q, word, cloze = document.entries()

    # properties of a field's subheading are not part of its content
    word.children[1].set_property("ANKI_IGNORED", "1")
    q.remove_property("ANKI_NOTE_HASH")
    cloze.remove_property("ANKI_NOTE_ID")

    plan = session.plan()

    assert [(n.anchor, n.decision) for n in plan.notes] == [
        (q, Decision.UPDATE),
        (cloze, Decision.CREATE),
    ]
    assert plan.skipped == 1

    transport.requests.clear()
    session.push(plan)

    # one call per kind of operation
    assert transport.actions == ["addNotes", "multi"]


@mark.org_text(SINGLE_NOTE)
def test_render_misaligned(document: OrgDocument, transport):
    session = SyncSession(
        document,
        transport=transport,
        renderer=BrokenRenderer(),
        default_deck="Default",
    )

    with raises(RenderAlignmentError):
        session.push(session.plan())

    assert transport.requests == []


@mark.org_text(
    """\
* Q
:PROPERTIES:
:ANKI_NOTE_TYPE: Basic
:ANKI_NOTE_ID: 55
:ANKI_TARGET_HASH: old
:END:
A
"""
)
def test_target_changed(session: SyncSession, caplog: LogCaptureFixture):
    entry = session.document.entries()[0]
    entry.set_property(
        "ANKI_NOTE_HASH", fingerprint({"Front": "Q", "Back": "A"}, ())
    )

    with caplog.at_level(logging.WARNING):
        plan = session.plan()

    assert [n.decision for n in plan.notes] == [Decision.UPDATE]
    assert "Deck or note type of 'Q' changed" in caplog.text

    session.push(plan)
    session.wait()

    assert entry.get_local_property("ANKI_TARGET_HASH") != "old"
    assert session.plan().is_empty


@mark.org_text(
    """\
#+ANKI_MATCH: +card
* Tagged :card:
* Not tagged
:PROPERTIES:
:ANKI_NOTE_TYPE: Basic
:END:
"""
)
def test_match_keyword(session: SyncSession):
    assert [e.title for e in session.select()] == ["Tagged"]
    assert [e.title for e in session.select('ANKI_NOTE_TYPE<>""')] == [
        "Not tagged"
    ]


@mark.org_text(
    """\
* Valid
:PROPERTIES:
:ANKI_NOTE_TYPE: Basic
:END:
* Invalid
:PROPERTIES:
:ANKI_NOTE_TYPE: Unknown
:END:
"""
)
def test_plan_errors(session: SyncSession):
    plan = session.plan()

    assert len(plan.get(Decision.CREATE)) == 1
    assert len(plan.errors) == 1
    assert plan.summary.endswith(", 1 errors")


@mark.manual
@mark.org_text(SINGLE_NOTE)
def test_call_failure(session: SyncSession, transport):
    session.push(session.plan())
    transport.fail(0)
    session.wait(timeout=1.0)

    assert session.has_failures
    assert len(session.failed_calls) == 1
    assert not session.document.changed


def test_browse(
    session: SyncSession, transport, anki, caplog: LogCaptureFixture
):
    assert session.browse() is None

    session.push(session.plan())
    session.wait()

    # one note deleted in Anki
    anki.notes.remove(1001)
    transport.requests.clear()

    with caplog.at_level(logging.WARNING):
        session.browse()
        session.wait()

    assert transport.requests == [
        {
            "action": "findNotes",
            "version": 6,
            "params": {"query": "nid:1000,1001,1002"},
        },
        {
            "action": "guiBrowse",
            "version": 6,
            "params": {"query": "nid:1000,1002"},
        },
    ]
    assert "1 notes not found in Anki" in caplog.text


def test_sync_collection(session: SyncSession, transport):
    session.sync_collection()
    session.wait()

    assert transport.actions == ["sync"]
    assert session.reports[0].summary == "Completed 'sync'"


def test_exit_with_error(document: OrgDocument, transport, org_file: Path):
    original = org_file.read_text()

    with raises(RuntimeError):
        with SyncSession(
            document, transport=transport, default_deck="Default"
        ) as session:
            session.push(session.plan())
            raise RuntimeError

    # not saved, but closed
    assert org_file.read_text() == original
    assert transport.closed


def test_query_error(document: OrgDocument, transport, org_file: Path):
    def consumer(result):
        raise RuntimeError("consumer failed")

    with SyncSession(
        document, transport=transport, default_deck="Default"
    ) as session:
        session.push(session.plan())
        session.dispatch_query(wire.sync(), consumer)

    # notes created before the failure are still saved
    assert org_file.read_text().count(":ANKI_NOTE_ID:") == 3
    assert session.has_failures

    (call,) = session.failed_calls
    assert call.operation.action == "sync"
