"""
Dispatch of remote calls and routing of their completions.
"""

from __future__ import annotations

import itertools
import logging
import queue
import time
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum, auto
from logging import Logger

from . import wire
from .batch import BatchOperation
from .exceptions import OrgcardError, ReconcileError, TransportError
from .reconcile import Reconciler, ReconcileReport
from .transport import Transport

__all__ = [
    "CallState",
    "InFlightCall",
    "CompletedCall",
    "Correlator",
]
__canonical_syms__ = __all__


class CallState(Enum):
    """
    State of a remote call. Terminal upon first completion; calls are never
    retried.
    """

    BUILT = auto()
    DISPATCHED = auto()
    SUCCEEDED = auto()
    FAILED = auto()


@dataclass(eq=False, kw_only=True)
class InFlightCall:
    """
    A dispatched call awaiting completion.
    """

    handle: int
    operation: BatchOperation
    future: Future[bytes] | None = None
    state: CallState = CallState.BUILT


@dataclass(frozen=True, kw_only=True)
class CompletedCall:
    """
    Record of a call which has completed, successfully or not.
    """

    handle: int
    operation: BatchOperation
    state: CallState
    report: ReconcileReport | None = None
    error: OrgcardError | None = None


class Correlator:
    """
    Dispatches calls without blocking and routes each completion to the
    reconciler along with the anchors of the originating batch.

    Transport threads only enqueue completions; they are processed on the
    caller's thread by {obj}`Correlator.poll` or {obj}`Correlator.wait`,
    so the document is only ever mutated from that thread. Completions of
    different calls may be processed in any order.
    """

    completed: list[CompletedCall]
    """Calls completed so far, in order of completion"""

    _transport: Transport
    _reconciler: Reconciler
    _endpoint: str
    _api_key: str | None
    _logger: Logger

    _in_flight: dict[int, InFlightCall]
    _completions: queue.Queue[tuple[int, Future[bytes]]]
    _handles: itertools.count

    def __init__(
        self,
        transport: Transport,
        reconciler: Reconciler,
        *,
        endpoint: str,
        api_key: str | None = None,
        logger: Logger | None = None,
    ):
        self.completed = []
        self._transport = transport
        self._reconciler = reconciler
        self._endpoint = endpoint
        self._api_key = api_key
        self._logger = logger or logging.getLogger()
        self._in_flight = {}
        self._completions = queue.Queue()
        self._handles = itertools.count(1)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @property
    def failed(self) -> list[CompletedCall]:
        return [c for c in self.completed if c.state is CallState.FAILED]

    def dispatch(self, operation: BatchOperation) -> int:
        """
        Send operation and return its call handle immediately.
        """
        call = InFlightCall(handle=next(self._handles), operation=operation)
        payload = wire.encode(operation.payload, self._api_key)

        self._logger.debug(f"Dispatching call {call.handle}: {operation}")
        future = self._transport.dispatch(self._endpoint, payload)

        call.future = future
        call.state = CallState.DISPATCHED
        self._in_flight[call.handle] = call

        # may be invoked immediately if future is already done
        future.add_done_callback(
            lambda f, handle=call.handle: self._completions.put((handle, f))
        )

        return call.handle

    def poll(self) -> int:
        """
        Process completions which have arrived, without blocking.

        :returns: Number of completions processed
        """
        count = 0
        while True:
            try:
                handle, future = self._completions.get_nowait()
            except queue.Empty:
                return count

            self._complete(handle, future)
            count += 1

    def wait(self, timeout: float | None = None) -> bool:
        """
        Process completions until no calls are in flight, including calls
        dispatched while processing.

        :returns: `False` if timed out with calls still in flight
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        while self._in_flight:
            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False

            try:
                handle, future = self._completions.get(timeout=remaining)
            except queue.Empty:
                return False

            self._complete(handle, future)

        # pick up stray completions of unknown calls
        self.poll()
        return True

    def _complete(self, handle: int, future: Future[bytes]):
        call = self._in_flight.pop(handle, None)
        if call is None:
            self._logger.warning(f"Completion of unknown call {handle}")
            return

        operation = call.operation
        self._logger.debug(f"Completed call {handle}: {operation}")

        error: OrgcardError | None = None
        result = None

        exc = future.exception()
        if exc is None:
            try:
                result = wire.decode(future.result(), operation.action)
            except OrgcardError as e:
                error = e
        elif isinstance(exc, OrgcardError):
            error = exc
        else:
            error = TransportError(f"{type(exc).__name__}: {exc}")

        if error is not None:
            self._fail(call, error)
            return

        try:
            report = self._reconciler.reconcile(operation, result)
        except Exception as e:
            self._fail(
                call, ReconcileError(operation.action, f"{type(e).__name__}: {e}")
            )
            return

        call.state = CallState.SUCCEEDED
        self.completed.append(
            CompletedCall(
                handle=handle,
                operation=operation,
                state=call.state,
                report=report,
            )
        )

    def _fail(self, call: InFlightCall, error: OrgcardError):
        call.state = CallState.FAILED
        self._logger.error(str(error))
        self.completed.append(
            CompletedCall(
                handle=call.handle,
                operation=call.operation,
                state=call.state,
                error=error,
            )
        )
