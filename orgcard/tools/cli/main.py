"""
Entry point of `orgcard` CLI.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import dotenv
from click.exceptions import BadParameter
from pydantic import ValidationError
from typer import Context, Exit, Option

from ...core import (
    Correlator,
    Document,
    Reconciler,
    SyncSession,
    Transport,
    TransportError,
    build_query,
    wire,
)
from ..config import Config
from . import notes
from ._utils import MainTyper, get_root_context, logger, lookup_param

dotenv.load_dotenv()

DEFAULT_CONFIG_FILE = Path("orgcard.yaml")

app = MainTyper(
    "orgcard",
    help="Push notes from .org files to Anki via AnkiConnect",
)


@app.callback()
def main(
    ctx: Context,
    host: str
    | None = Option(
        None,
        help="AnkiConnect address, e.g. http://127.0.0.1:8765",
        envvar="ORGCARD_HOST",
    ),
    api_key: str
    | None = Option(
        None,
        help="AnkiConnect API key",
        envvar="ORGCARD_API_KEY",
    ),
    config_file: Path
    | None = Option(
        None,
        help=f".yaml file containing configuration, default '{DEFAULT_CONFIG_FILE}' if it exists",
        envvar="ORGCARD_CONFIG_FILE",
        dir_okay=False,
    ),
    verbose: bool = Option(
        False,
        "-v",
        "--verbose",
        help="Log requests and completions",
    ),
):
    if verbose:
        logger.setLevel(logging.DEBUG)

    root_context = RootContext.from_config(ctx=ctx, config_file=config_file)

    # command line and environment take precedence over file
    if host is not None:
        root_context.config.host = host.rstrip("/")
    if api_key is not None:
        root_context.config.api_key = api_key

    ctx.obj = root_context


app.command()(notes.push)
app.command()(notes.delete)
app.command()(notes.browse)


@app.command()
def check(ctx: Context):
    """
    Check AnkiConnect connection
    """
    root_context = get_root_context(ctx)
    transport = root_context.create_transport()

    try:
        greeting = transport.check(root_context.config.host)
    except TransportError as e:
        logger.error(str(e))
        raise Exit(code=1)
    finally:
        transport.close()

    logger.info(f"Connected to '{root_context.config.host}': {greeting}")


@app.command()
def sync(ctx: Context):
    """
    Sync Anki collection with AnkiWeb
    """
    root_context = get_root_context(ctx)
    config = root_context.config
    transport = root_context.create_transport()

    correlator = Correlator(
        transport,
        Reconciler(logger=logger),
        endpoint=config.host,
        api_key=config.api_key,
        logger=logger,
    )

    try:
        correlator.dispatch(
            build_query(wire.sync(), lambda _: logger.info("Synced collection"))
        )
        correlator.wait()
    finally:
        transport.close()

    if correlator.failed:
        raise Exit(code=1)


def run():
    app()


@dataclass(kw_only=True)
class RootContext:
    ctx: Context
    config: Config

    @classmethod
    def from_config(
        cls,
        *,
        ctx: Context,
        config_file: Path | None,
    ) -> RootContext:
        if config_file is None:
            if not DEFAULT_CONFIG_FILE.is_file():
                return RootContext(ctx=ctx, config=Config())
            config_file = DEFAULT_CONFIG_FILE

        # ensure config file exists
        if not config_file.is_file():
            raise BadParameter(
                message=f"file does not exist: {config_file}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        # get config from file
        try:
            config = Config.load_yaml(config_file)
        except (ValueError, ValidationError) as e:
            raise BadParameter(
                f"failed to load config file '{config_file}': {e}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        logger.debug(f"Loaded config from '{config_file}'")
        return RootContext(ctx=ctx, config=config)

    def create_transport(self) -> Transport:
        return self.config.create_transport()

    def create_session(self, document: Document) -> SyncSession:
        return self.config.create_session(
            document, logger=logger, transport=self.create_transport()
        )


if __name__ == "__main__":
    app()
