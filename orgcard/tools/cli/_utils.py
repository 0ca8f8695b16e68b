"""
Utilities specific to CLI functionality.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from click import BadParameter, Parameter
from rich.console import Console
from rich.logging import RichHandler
from typer import Context, Exit, Typer

from ...core import OrgDocument, SyncPlan, SyncSession
from ...core.document.match import compile_match

if TYPE_CHECKING:
    from .main import RootContext


console = Console()

rich_handler = RichHandler(
    console=console,
    rich_tracebacks=True,
    show_level=True,
    show_time=True,
    show_path=False,
)
rich_handler.setFormatter(logging.Formatter("%(message)s"))

logger = logging.getLogger("orgcard")
logger.setLevel(logging.INFO)
logger.addHandler(rich_handler)
logger.propagate = False


class MainTyper(Typer):
    """
    Typer app with preconfigured settings.
    """

    def __init__(self, name: str, *, help: str):
        return super().__init__(
            name=name,
            help=help,
            rich_markup_mode="markdown",
            no_args_is_help=True,
            add_completion=False,
        )


def get_root_context(ctx: Context) -> RootContext:
    from .main import RootContext

    root_context = ctx.find_object(RootContext)
    assert isinstance(root_context, RootContext)
    return root_context


def lookup_param(ctx: Context, name: str) -> Parameter:
    """
    Lookup param by name.
    """
    param = next((p for p in ctx.command.params if p.name == name), None)
    assert param, f"Could not find param with name: {name}"
    return param


def load_document(ctx: Context, file: Path) -> OrgDocument:
    """
    Load .org file, reporting failure as a bad parameter.
    """
    try:
        return OrgDocument.load(file)
    except (OSError, UnicodeDecodeError) as e:
        raise BadParameter(
            f"failed to read '{file}': {e}",
            ctx=ctx,
            param=lookup_param(ctx, "file"),
        )


def validate_match(ctx: Context, match: str | None):
    if match is None:
        return

    try:
        compile_match(match)
    except ValueError as e:
        raise BadParameter(str(e), ctx=ctx, param=lookup_param(ctx, "match"))


def check_outcome(session: SyncSession, plan: SyncPlan | None = None):
    """
    Exit with an error code if any entry or call failed.
    """
    if session.in_flight_count:
        logger.error(f"{session.in_flight_count} calls did not complete")
        raise Exit(code=1)

    if session.has_failures or (plan is not None and plan.errors):
        raise Exit(code=1)
