"""
Operations on notes selected from a single .org file.
"""
from __future__ import annotations

from pathlib import Path

from typer import Argument, Context, Exit, Option

from ...core import RenderAlignmentError, SyncPlan, SyncSession
from ..utils import confirm_changes, exclude_tags
from ._utils import (
    check_outcome,
    console,
    get_root_context,
    load_document,
    logger,
    validate_match,
)

FILE_ARGUMENT = Argument(
    ...,
    help=".org file containing notes",
    exists=True,
    dir_okay=False,
)

MATCH_OPTION = Option(
    None,
    help='Match expression selecting entries, e.g. \'+drill-noanki\' or \'ANKI_NOTE_TYPE="Cloze"\'',
)

EXCLUDE_TAG_OPTION = Option(
    [],
    "--exclude-tag",
    help="Skip entries having this tag, along with their subtrees",
)

DRY_RUN_OPTION = Option(
    False,
    "--dry-run",
    help="Only log pending changes",
)

YES_OPTION = Option(
    False,
    "-y",
    "--yes",
    help="Don't ask for confirmation before pushing changes",
)


def push(
    ctx: Context,
    file: Path = FILE_ARGUMENT,
    match: str | None = MATCH_OPTION,
    exclude_tag: list[str] = EXCLUDE_TAG_OPTION,
    force: bool = Option(
        False,
        "--force",
        help="Update notes even if unchanged",
    ),
    dry_run: bool = DRY_RUN_OPTION,
    yes: bool = YES_OPTION,
    sync: bool = Option(
        False,
        "--sync",
        help="Sync collection with AnkiWeb afterwards",
    ),
):
    """
    Create and update notes in Anki from entries of an .org file

    Note ids and hashes are written back to the entries' property drawers,
    so only new and changed entries are pushed the next time.
    """
    validate_match(ctx, match)

    root_context = get_root_context(ctx)
    document = load_document(ctx, file)

    with root_context.create_session(document) as session:
        plan = session.plan(match, exclude_tags(exclude_tag), force=force)

        if confirm_changes(plan, console, logger, dry_run=dry_run, yes=yes):
            _push(session, plan)

        if sync and not dry_run:
            # sync only once pushed notes are in the collection
            session.wait()
            session.sync_collection()

    check_outcome(session, plan)


def delete(
    ctx: Context,
    file: Path = FILE_ARGUMENT,
    match: str | None = MATCH_OPTION,
    exclude_tag: list[str] = EXCLUDE_TAG_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    yes: bool = YES_OPTION,
):
    """
    Delete notes of entries from Anki

    Entries are kept in the .org file, with their note properties removed.
    """
    validate_match(ctx, match)

    root_context = get_root_context(ctx)
    document = load_document(ctx, file)

    with root_context.create_session(document) as session:
        plan = session.plan_delete(match, exclude_tags(exclude_tag))

        if confirm_changes(plan, console, logger, dry_run=dry_run, yes=yes):
            _push(session, plan)

    check_outcome(session, plan)


def browse(
    ctx: Context,
    file: Path = FILE_ARGUMENT,
    match: str | None = MATCH_OPTION,
    exclude_tag: list[str] = EXCLUDE_TAG_OPTION,
):
    """
    Show notes of entries in Anki's browser
    """
    validate_match(ctx, match)

    root_context = get_root_context(ctx)
    document = load_document(ctx, file)

    with root_context.create_session(document) as session:
        session.browse(match, exclude_tags(exclude_tag))

    check_outcome(session)


def _push(session: SyncSession, plan: SyncPlan):
    try:
        session.push(plan)
    except RenderAlignmentError as e:
        logger.error(f"Aborted push: {e}")
        raise Exit(code=1)
