"""
Implementation of sync session functionality.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from logging import Logger
from typing import Any

from . import wire
from .batch import PlannedNote, build_batches, build_query
from .correlator import CompletedCall, Correlator
from .diff import Decision, decide, decide_delete, is_target_changed
from .document.base import (
    DEFAULT_MATCH,
    MATCH_KEYWORD,
    Document,
    Entry,
    ExcludePredicate,
)
from .draft import PersistedState
from .exceptions import ConfigurationError
from .extract import Extractor
from .reconcile import Reconciler, ReconcileReport
from .render import HtmlRenderer, Renderer
from .transport import DEFAULT_HOST, RequestsTransport, Transport

__all__ = [
    "SyncPlan",
    "SyncSession",
]
__canonical_syms__ = __all__


@dataclass(kw_only=True)
class SyncPlan:
    """
    Decisions made for the selected entries of a document, before anything
    is sent to Anki.
    """

    notes: list[PlannedNote] = field(default_factory=list)
    """Entries with a decision other than skip"""

    skipped: int = 0
    """Number of entries which are unchanged"""

    errors: list[ConfigurationError] = field(default_factory=list)
    """Entries which couldn't be extracted"""

    def get(self, decision: Decision) -> list[PlannedNote]:
        return [n for n in self.notes if n.decision is decision]

    @property
    def is_empty(self) -> bool:
        return not self.notes

    @property
    def summary(self) -> str:
        """
        Brief summary of how many notes require each operation.
        """
        creates, updates, deletes = (
            len(self.get(d))
            for d in (Decision.CREATE, Decision.UPDATE, Decision.DELETE)
        )
        summary = f"(create/update/delete) {creates}/{updates}/{deletes} notes, {self.skipped} unchanged"
        return f"{summary}, {len(self.errors)} errors" if self.errors else summary

    @property
    def details(self) -> str:
        """
        One line per pending operation.
        """
        return "\n".join(
            f"{n.decision.name.lower()}: {n.anchor}" for n in self.notes
        )


class SyncSession:
    """
    Pushes entries of a document to Anki.

    A push is split in two steps: {obj}`SyncSession.plan` extracts notes and
    decides what to do with each, and {obj}`SyncSession.push` renders and
    dispatches the resulting batches without waiting for Anki. Results are
    written back to the document as completions are processed by
    {obj}`SyncSession.poll` or {obj}`SyncSession.wait`.

    Used as a context manager, waits for all calls and saves the document
    upon exit.
    """

    document: Document

    _extractor: Extractor
    _renderer: Renderer
    _transport: Transport
    _reconciler: Reconciler
    _correlator: Correlator
    _match: str
    _allow_duplicate: bool
    _logger: Logger

    def __init__(
        self,
        document: Document,
        *,
        host: str = DEFAULT_HOST,
        api_key: str | None = None,
        transport: Transport | None = None,
        renderer: Renderer | None = None,
        note_types: Mapping[str, Sequence[str]] | None = None,
        default_deck: str | None = None,
        default_note_type: str | None = None,
        match: str = DEFAULT_MATCH,
        global_tags: Iterable[str] = (),
        ignored_tags: Iterable[str] = (),
        allow_duplicate: bool = False,
        logger: Logger | None = None,
    ):
        """
        :param document: Document containing entries to push
        :param host: AnkiConnect address
        :param api_key: AnkiConnect API key, if configured in Anki
        :param transport: Transport to use, or `None` to post with `requests`
        :param renderer: Renderer of field content, or `None` for HTML
        :param note_types: Mapping of note type names to their fields
        :param default_deck: Deck of entries which don't set one
        :param default_note_type: Note type of entries which don't set one
        :param match: Match expression selecting entries, unless overridden by the document's `#+ANKI_MATCH` keyword
        :param global_tags: Tags added to every note
        :param ignored_tags: Tags never sent to Anki
        :param allow_duplicate: Allow creating notes with a duplicate first field in the same deck
        :param logger: Logger to use, or `None` to use default logger
        """
        self._logger = logger or logging.getLogger()

        self.document = document

        self._extractor = Extractor(
            note_types,
            default_deck=default_deck,
            default_note_type=default_note_type,
            global_tags=global_tags,
            ignored_tags=ignored_tags,
            logger=self._logger,
        )
        self._renderer = renderer or HtmlRenderer()
        self._transport = transport or RequestsTransport()
        self._reconciler = Reconciler(logger=self._logger)
        self._correlator = Correlator(
            self._transport,
            self._reconciler,
            endpoint=host,
            api_key=api_key,
            logger=self._logger,
        )
        self._match = match
        self._allow_duplicate = allow_duplicate

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, traceback):
        try:
            if exc_type:
                self._logger.debug(
                    f"Exiting with error, {self.in_flight_count} calls in flight"
                )
                return

            self.wait()
            self.save()
        finally:
            self.close()

    @property
    def in_flight_count(self) -> int:
        return self._correlator.in_flight_count

    @property
    def reports(self) -> list[ReconcileReport]:
        """
        Reports of all reconciled calls.
        """
        return list(self._reconciler.reports)

    @property
    def failed_calls(self) -> list[CompletedCall]:
        """
        Calls which failed as a whole, e.g. due to a connection error.
        """
        return self._correlator.failed

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_calls) or any(r.failed for r in self.reports)

    def select(
        self,
        match: str | None = None,
        exclude: ExcludePredicate | None = None,
    ) -> list[Entry]:
        """
        Select entries using the given match expression, falling back to
        the document's `#+ANKI_MATCH` keyword and then the configured one.
        """
        expr = match or self.document.keyword(MATCH_KEYWORD) or self._match
        return self.document.entries(expr, exclude)

    def plan(
        self,
        match: str | None = None,
        exclude: ExcludePredicate | None = None,
        *,
        force: bool = False,
    ) -> SyncPlan:
        """
        Extract notes from selected entries and decide whether each needs
        to be created, updated or skipped.

        :param force: Update notes even if unchanged
        """
        drafts, errors = self._extractor.extract_all(
            self.select(match, exclude)
        )

        plan = SyncPlan(errors=errors)

        for draft in drafts:
            try:
                persisted = PersistedState.from_entry(draft.anchor)
            except ConfigurationError as e:
                self._logger.error(str(e))
                plan.errors.append(e)
                continue

            decision = decide(draft, persisted, force=force)

            if decision is Decision.SKIP:
                plan.skipped += 1
                continue

            if decision is Decision.UPDATE and is_target_changed(draft, persisted):
                self._logger.warning(
                    f"Deck or note type of {draft.anchor} changed to {draft.deck}/{draft.model}; updating fields and tags only, move the note in Anki if needed"
                )

            plan.notes.append(
                PlannedNote(
                    decision=decision,
                    anchor=draft.anchor,
                    remote_id=persisted.remote_id,
                    draft=draft,
                )
            )

        self._logger.debug(f"Planned push: {plan.summary}")
        return plan

    def plan_delete(
        self,
        match: str | None = None,
        exclude: ExcludePredicate | None = None,
    ) -> SyncPlan:
        """
        Select entries to delete from Anki. Entries not yet pushed are
        skipped; content is not extracted.
        """
        plan = SyncPlan()

        for entry in self.select(match, exclude):
            try:
                persisted = PersistedState.from_entry(entry)
            except ConfigurationError as e:
                self._logger.error(str(e))
                plan.errors.append(e)
                continue

            decision = decide_delete(persisted)

            if decision is Decision.SKIP:
                plan.skipped += 1
                continue

            plan.notes.append(
                PlannedNote(
                    decision=decision,
                    anchor=entry,
                    remote_id=persisted.remote_id,
                )
            )

        return plan

    def push(self, plan: SyncPlan) -> list[int]:
        """
        Render notes of plan and dispatch the resulting batches, without
        waiting for them to complete.

        :returns: Handles of dispatched calls
        :raises RenderAlignmentError: If rendered output is misaligned; nothing is dispatched
        """
        if plan.is_empty:
            self._logger.info("No changes to push")
            return []

        notes = self._render(plan.notes)
        operations = build_batches(notes, allow_duplicate=self._allow_duplicate)

        return [self._correlator.dispatch(op) for op in operations]

    def browse(
        self,
        match: str | None = None,
        exclude: ExcludePredicate | None = None,
    ) -> int | None:
        """
        Show notes of selected entries in Anki's browser. Looks up which of
        them still exist, then opens the browser on those.

        :returns: Handle of dispatched call, or `None` if no entry has been pushed
        """
        remote_ids: list[int] = []

        for entry in self.select(match, exclude):
            try:
                remote_id = PersistedState.from_entry(entry).remote_id
            except ConfigurationError as e:
                self._logger.error(str(e))
                continue

            if remote_id is not None:
                remote_ids.append(remote_id)

        if not remote_ids:
            self._logger.info("No pushed notes to browse")
            return None

        def on_found(result: Any):
            found = result or []
            if len(found) < len(remote_ids):
                self._logger.warning(
                    f"{len(remote_ids) - len(found)} notes not found in Anki"
                )
            if found:
                self.dispatch_query(
                    wire.gui_browse(_nid_query(found)),
                    lambda _: self._logger.info(f"Browsing {len(found)} notes"),
                )

        return self.dispatch_query(wire.find_notes(_nid_query(remote_ids)), on_found)

    def sync_collection(self) -> int:
        """
        Sync Anki collection with AnkiWeb.
        """
        return self.dispatch_query(
            wire.sync(), lambda _: self._logger.info("Synced collection")
        )

    def dispatch_query(
        self, payload: dict[str, Any], consumer: Callable[[Any], None]
    ) -> int:
        """
        Dispatch a call whose result is handed to `consumer`.
        """
        return self._correlator.dispatch(build_query(payload, consumer))

    def poll(self) -> int:
        return self._correlator.poll()

    def wait(self, timeout: float | None = None) -> bool:
        return self._correlator.wait(timeout)

    def save(self) -> bool:
        """
        Save document if any entries were updated.
        """
        saved = self.document.save()
        if saved:
            self._logger.debug("Saved document")
        return saved

    def close(self):
        self._transport.close()

    def _render(self, notes: list[PlannedNote]) -> list[PlannedNote]:
        """
        Render fields of creates and updates in a single batch.
        """
        to_render = [n for n in notes if n.draft is not None]
        rendered = self._renderer.render_batch([n.draft for n in to_render])

        rendered_map: dict[int, dict[str, str]] = {
            id(note): fields for note, fields in zip(to_render, rendered)
        }

        return [
            PlannedNote(
                decision=n.decision,
                anchor=n.anchor,
                remote_id=n.remote_id,
                draft=n.draft,
                rendered=rendered_map.get(id(n)),
            )
            for n in notes
        ]


def _nid_query(remote_ids: Iterable[int]) -> str:
    return f"nid:{','.join(str(i) for i in remote_ids)}"
