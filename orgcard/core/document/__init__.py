"""
Documents from which notes are extracted, and which receive the results of
pushing them.
"""

from pyrollup import rollup

from . import base, org
from .base import *  # noqa
from .org import *  # noqa

__all__ = rollup(base, org)
