"""
This module implements the note synchronization engine: extraction of notes
from document entries, change detection, batching and dispatch of
AnkiConnect calls, and reconciliation of their results.
"""

from pyrollup import rollup

from . import (
    batch,
    correlator,
    diff,
    document,
    draft,
    exceptions,
    extract,
    reconcile,
    render,
    session,
    transport,
    utils,
    wire,
)
from .batch import *  # noqa
from .correlator import *  # noqa
from .diff import *  # noqa
from .document import *  # noqa
from .draft import *  # noqa
from .exceptions import *  # noqa
from .extract import *  # noqa
from .reconcile import *  # noqa
from .render import *  # noqa
from .session import *  # noqa
from .transport import *  # noqa
from .utils import *  # noqa

__all__ = rollup(
    session,
    document,
    draft,
    extract,
    render,
    diff,
    batch,
    correlator,
    reconcile,
    transport,
    exceptions,
    utils,
)

__canonical_children__ = [
    "session",
    "document",
    "draft",
    "extract",
    "render",
    "diff",
    "batch",
    "correlator",
    "reconcile",
    "transport",
    "wire",
    "exceptions",
    "utils",
]
