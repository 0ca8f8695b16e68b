__all__ = [
    "OrgcardError",
    "ConfigurationError",
    "RenderAlignmentError",
    "TransportError",
    "ReconcileError",
    "AnkiConnectError",
]


class OrgcardError(Exception):
    """
    Base class of all errors raised by orgcard.
    """


class ConfigurationError(OrgcardError):
    """
    Raised when a note can't be extracted from an entry, e.g. its deck or
    note type can't be resolved, or its fields don't match the note type.

    Only fatal for the affected entry; the remaining entries are still
    extracted.
    """

    entry: object
    """Entry which failed extraction, if known"""

    def __init__(self, message: str, entry: object | None = None):
        self.entry = entry
        super().__init__(message)


class RenderAlignmentError(OrgcardError):
    """
    Raised when the rendered output of a batch can't be split back into
    the same number of notes and fields as were rendered. Nothing in the
    batch is dispatched.
    """

    expected: list[int]
    """Field counts of each note in the batch"""

    actual: list[int]
    """Field counts recovered from the rendered output"""

    def __init__(
        self,
        expected: list[int],
        actual: list[int],
        message: str | None = None,
    ):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message
            or f"Rendered batch misaligned: expected field counts {expected}, got {actual}"
        )


class TransportError(OrgcardError):
    """
    Raised when a call to AnkiConnect doesn't complete, e.g. connection
    refused or non-success HTTP status.
    """

    status: int | None

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class ReconcileError(OrgcardError):
    """
    Raised when the result of a successful call can't be applied, e.g. a
    query consumer raised an exception.
    """

    action: str

    def __init__(self, action: str, message: str):
        self.action = action
        super().__init__(f"Failed to process result of '{action}': {message}")


class AnkiConnectError(OrgcardError):
    """
    Raised when AnkiConnect returns a non-null `error` field.
    """

    action: str
    error: str

    def __init__(self, action: str, error: str):
        self.action = action
        self.error = error
        super().__init__(f"AnkiConnect '{action}' failed: {error}")
