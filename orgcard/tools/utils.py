"""
Utilities for generic tool-related functionality.
"""
from __future__ import annotations

from logging import Logger

import typer
from rich.console import Console
from rich.markup import escape

from ..core import Entry, SyncPlan

__all__ = [
    "confirm_changes",
    "exclude_tags",
]


def confirm_changes(
    plan: SyncPlan,
    console: Console,
    logger: Logger,
    *,
    dry_run: bool = False,
    yes: bool = False,
) -> bool:
    """
    Print a summary of pending changes and handle flags.

    :returns: Whether to proceed with pushing changes
    """
    if plan.is_empty:
        logger.info(f"No changes to push: {plan.summary}")
        return False

    logger.info("Pending changes:")
    console.print(f"{escape(plan.details)}\nSummary: {plan.summary}")

    if dry_run:
        return False

    if not yes:
        if not typer.confirm("Proceed with pushing changes?"):
            return False

    return True


def exclude_tags(tags: list[str] | None):
    """
    Get predicate excluding entries with any of the given tags.
    """
    if not tags:
        return None

    excluded = set(tags)

    def predicate(entry: Entry) -> bool:
        return not excluded.isdisjoint(entry.tags())

    return predicate
