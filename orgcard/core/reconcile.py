"""
Writes results of remote calls back to the entries they originated from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from logging import Logger
from typing import Any

from . import wire
from .batch import BatchOperation, OperationKind
from .document.base import (
    NOTE_HASH_PROP,
    NOTE_ID_PROP,
    TARGET_HASH_PROP,
    Entry,
)

__all__ = [
    "ReconcileReport",
    "Reconciler",
]
__canonical_syms__ = __all__

_VERBS = {
    OperationKind.CREATE: "Created",
    OperationKind.UPDATE: "Updated",
    OperationKind.DELETE: "Deleted",
}


@dataclass(kw_only=True)
class ReconcileReport:
    """
    Outcome of reconciling one remote call.
    """

    kind: OperationKind
    action: str
    succeeded: int = 0
    failed: int = 0
    failures: list[str] = field(default_factory=list)

    def fail(self, message: str):
        self.failed += 1
        self.failures.append(message)

    @property
    def summary(self) -> str:
        """
        Human-readable summary, e.g. `Created 2 notes, 1 failed`.
        """
        if self.kind is OperationKind.QUERY:
            return f"Completed '{self.action}'"

        count = self.succeeded
        summary = f"{_VERBS[self.kind]} {count} note{'' if count == 1 else 's'}"
        return f"{summary}, {self.failed} failed" if self.failed else summary


class Reconciler:
    """
    Sole writer of note state to entries once a push has been confirmed
    by Anki. Failures of individual notes are reported without affecting
    the others.
    """

    reports: list[ReconcileReport]
    _logger: Logger

    def __init__(self, *, logger: Logger | None = None):
        self.reports = []
        self._logger = logger or logging.getLogger()

    def reconcile(self, operation: BatchOperation, result: Any) -> ReconcileReport:
        """
        Reconcile successful result of the given operation.
        """
        report = ReconcileReport(kind=operation.kind, action=operation.action)

        if operation.kind is OperationKind.CREATE:
            self._reconcile_create(operation, result, report)
        elif operation.kind is OperationKind.UPDATE:
            self._reconcile_update(operation, result, report)
        elif operation.kind is OperationKind.DELETE:
            self._reconcile_delete(operation, report)
        elif operation.kind is OperationKind.QUERY:
            assert operation.consumer is not None
            operation.consumer(result)
            report.succeeded = 1
        else:
            raise ValueError(f"Unhandled operation kind: {operation.kind}")

        self.reports.append(report)

        for failure in report.failures:
            self._logger.warning(failure)

        if report.failed:
            self._logger.warning(report.summary)
        else:
            self._logger.info(report.summary)

        return report

    def _reconcile_create(
        self, operation: BatchOperation, result: Any, report: ReconcileReport
    ):
        if not self._check_list(operation, result, report):
            return

        for anchor, content_hash, target_hash, remote_id in zip(
            operation.anchors,
            operation.hashes,
            operation.target_hashes,
            result,
        ):
            if remote_id is None:
                report.fail(f"Failed to create note for {anchor}")
                continue

            anchor.set_property(NOTE_ID_PROP, str(remote_id))
            _set_hashes(anchor, content_hash, target_hash)
            report.succeeded += 1

    def _reconcile_update(
        self, operation: BatchOperation, result: Any, report: ReconcileReport
    ):
        if not self._check_list(operation, result, report):
            return

        for anchor, content_hash, target_hash, item in zip(
            operation.anchors,
            operation.hashes,
            operation.target_hashes,
            result,
        ):
            error = wire.sub_result_error(item)
            if error is not None:
                report.fail(f"Failed to update note for {anchor}: {error}")
                continue

            _set_hashes(anchor, content_hash, target_hash)
            report.succeeded += 1

    def _reconcile_delete(
        self, operation: BatchOperation, report: ReconcileReport
    ):
        for anchor in operation.anchors:
            for prop in (NOTE_ID_PROP, NOTE_HASH_PROP, TARGET_HASH_PROP):
                anchor.remove_property(prop)
            report.succeeded += 1

    def _check_list(
        self, operation: BatchOperation, result: Any, report: ReconcileReport
    ) -> bool:
        """
        Ensure result has one item per anchor, failing all notes otherwise.
        """
        if isinstance(result, list) and len(result) == len(operation.anchors):
            return True

        for anchor in operation.anchors:
            report.fail(
                f"Unexpected result of '{operation.action}' for {anchor}: {result!r}"
            )
        return False


def _set_hashes(anchor: Entry, content_hash: str | None, target_hash: str | None):
    assert content_hash is not None

    anchor.set_property(NOTE_HASH_PROP, content_hash)
    if target_hash is not None:
        anchor.set_property(TARGET_HASH_PROP, target_hash)
