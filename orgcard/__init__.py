"""
orgcard: push Org mode notes to Anki through AnkiConnect.
"""

from pyrollup import rollup

from . import core
from .core import *  # noqa

__all__ = rollup(core)

__canonical_children__ = [
    "core",
]
