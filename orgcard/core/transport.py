"""
Transport of requests to AnkiConnect.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor

import requests

from .exceptions import TransportError

__all__ = [
    "DEFAULT_HOST",
    "REQUEST_TIMEOUT",
    "Transport",
    "RequestsTransport",
]
__canonical_syms__ = __all__

DEFAULT_HOST = "http://127.0.0.1:8765"
"""
Address AnkiConnect listens on by default.
"""

REQUEST_TIMEOUT = 30.0
"""
Timeout of a single request, in seconds. Large batches may take Anki a
while to process.
"""


class Transport(ABC):
    """
    Sends serialized requests without blocking the caller.
    """

    @abstractmethod
    def dispatch(self, endpoint: str, payload: bytes) -> Future[bytes]:
        """
        Start sending payload and return a future completed with the raw
        response body, or with a {obj}`TransportError`.
        """
        ...

    @abstractmethod
    def check(self, endpoint: str) -> str:
        """
        Synchronously check that AnkiConnect is reachable and return its
        greeting, e.g. `AnkiConnect v.6`.

        :raises TransportError: If AnkiConnect is not reachable
        """
        ...

    def close(self):
        """
        Release resources once no more calls will be dispatched.
        """


class RequestsTransport(Transport):
    """
    Posts requests using `requests` on a pool of worker threads.
    """

    _timeout: float
    _http: requests.Session
    _executor: ThreadPoolExecutor

    def __init__(self, *, timeout: float = REQUEST_TIMEOUT, max_workers: int = 4):
        self._timeout = timeout
        self._http = requests.Session()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="orgcard-transport"
        )

    def dispatch(self, endpoint: str, payload: bytes) -> Future[bytes]:
        return self._executor.submit(self._post, endpoint, payload)

    def check(self, endpoint: str) -> str:
        try:
            response = self._http.get(endpoint, timeout=self._timeout)
        except requests.RequestException as e:
            raise TransportError(
                f"Failed to connect to AnkiConnect at '{endpoint}': {e}"
            ) from e

        if not response.ok:
            raise TransportError(
                f"AnkiConnect at '{endpoint}' returned status {response.status_code}",
                status=response.status_code,
            )

        return response.text.strip()

    def close(self):
        self._executor.shutdown(wait=True)
        self._http.close()

    def _post(self, endpoint: str, payload: bytes) -> bytes:
        try:
            response = self._http.post(
                endpoint,
                data=payload,
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise TransportError(
                f"Failed to connect to AnkiConnect at '{endpoint}': {e}"
            ) from e

        if not response.ok:
            raise TransportError(
                f"AnkiConnect at '{endpoint}' returned status {response.status_code}: {response.text[:200]}",
                status=response.status_code,
            )

        return response.content
