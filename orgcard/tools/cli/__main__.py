"""
Entry point of `orgcard` CLI, usable as `python -m orgcard.tools.cli`.
"""
from .main import run

run()
