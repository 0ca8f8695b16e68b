import json
import logging
from collections.abc import Callable
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Generator

from pytest import Config, FixtureRequest, Parser, fixture

from orgcard import (
    OrgDocument,
    PlainRenderer,
    SyncSession,
    Transport,
    TransportError,
)

logging.basicConfig(level=logging.WARNING)

MARKERS = [
    "manual",
    "org_text",
]

ORG_TEXT = """\
#+TITLE: Flashcards
#+FILETAGS: :lang:

* Vocabulary :vocab:
** Q :x:
:PROPERTIES:
:ANKI_NOTE_TYPE: Basic
:END:
A
** Word
:PROPERTIES:
:ANKI_NOTE_TYPE: Basic
:END:
*** Front
Bonjour
*** Back
Hello

Used as a greeting.
* Cloze :cloze:
:PROPERTIES:
:ANKI_DECK: Grammar
:END:
** {{c1::Le}} chat est noir
:PROPERTIES:
:ANKI_NOTE_TYPE: Cloze
:END:
* Journal
Not a note.
"""
"""
Document with 3 notes: 'Q' and 'Word' in the default deck and a cloze
in deck 'Grammar'.
"""


def pytest_configure(config: Config) -> None:
    for marker in MARKERS:
        config.addinivalue_line("markers", marker)


def pytest_addoption(parser: Parser):
    parser.addoption(
        "--cli-stdout",
        action="store_true",
        help="Print stdout of CLI commands",
    )


@fixture(autouse=True)
def newline(request):
    """
    Print a newline and underline test name.
    """
    print("\n" + "-" * len(request.node.nodeid))


class FakeAnki:
    """
    Emulates AnkiConnect's handling of requests.
    """

    next_id: int
    notes: set[int]

    def __init__(self, next_id: int = 1000):
        self.next_id = next_id
        self.notes = set()

    def __call__(self, request: dict[str, Any]) -> Any:
        action = request["action"]
        params = request.get("params", {})

        if action == "addNotes":
            ids = []
            for _ in params["notes"]:
                ids.append(self.next_id)
                self.notes.add(self.next_id)
                self.next_id += 1
            return ids
        elif action == "multi":
            return [
                {"result": self(sub), "error": None}
                for sub in params["actions"]
            ]
        elif action == "updateNote":
            return None
        elif action == "deleteNotes":
            self.notes -= set(params["notes"])
            return None
        elif action == "findNotes":
            ids = [int(i) for i in params["query"].removeprefix("nid:").split(",")]
            return [i for i in ids if i in self.notes]
        elif action == "guiBrowse":
            return [int(i) for i in params["query"].removeprefix("nid:").split(",")]
        elif action == "sync":
            return None

        raise AssertionError(f"Unexpected action: {action}")


class FakeTransport(Transport):
    """
    Records dispatched requests and completes their futures, either
    immediately through a responder or manually by testcases.
    """

    requests: list[dict[str, Any]]
    futures: list[Future[bytes]]
    responder: Callable[[dict[str, Any]], Any] | None
    closed: bool = False

    def __init__(self, responder: Callable[[dict[str, Any]], Any] | None = None):
        self.requests = []
        self.futures = []
        self.responder = responder

    @property
    def actions(self) -> list[str]:
        return [r["action"] for r in self.requests]

    def dispatch(self, endpoint: str, payload: bytes) -> Future[bytes]:
        request = json.loads(payload)
        future: Future[bytes] = Future()

        self.requests.append(request)
        self.futures.append(future)

        if self.responder is not None:
            respond(future, self.responder(request))

        return future

    def check(self, endpoint: str) -> str:
        return "AnkiConnect v.6"

    def close(self):
        self.closed = True

    def respond(self, index: int, result: Any = None, error: str | None = None):
        respond(self.futures[index], result, error)

    def fail(self, index: int, message: str = "Connection refused"):
        self.futures[index].set_exception(TransportError(message))


def respond(future: Future[bytes], result: Any = None, error: str | None = None):
    future.set_result(json.dumps({"result": result, "error": error}).encode())


@fixture
def org_file(request: FixtureRequest, tmp_path: Path) -> Path:
    """
    Write .org file, using text given by `@mark.org_text` if any.
    """
    marker = request.node.get_closest_marker("org_text")
    text = marker.args[0] if marker else ORG_TEXT

    path = tmp_path / "notes.org"
    path.write_text(text, encoding="utf-8")
    return path


@fixture
def document(org_file: Path) -> OrgDocument:
    return OrgDocument.load(org_file)


@fixture
def anki() -> FakeAnki:
    return FakeAnki()


@fixture
def transport(request: FixtureRequest, anki: FakeAnki) -> FakeTransport:
    """
    Transport responding as AnkiConnect would, unless test is marked
    `@mark.manual` in which case futures are completed by the testcase.
    """
    if request.node.get_closest_marker("manual"):
        return FakeTransport()
    return FakeTransport(anki)


@fixture
def session(
    document: OrgDocument, transport: FakeTransport
) -> Generator[SyncSession, None, None]:
    session = create_session(document, transport)
    yield session
    session.close()


def create_session(document: OrgDocument, transport: Transport) -> SyncSession:
    return SyncSession(
        document,
        transport=transport,
        renderer=PlainRenderer(),
        default_deck="Default",
        default_note_type="Basic",
    )
