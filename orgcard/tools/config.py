"""
Interface to configuration as persisted in .yaml file.
"""
from __future__ import annotations

from logging import Logger
from typing import Any, Literal, Self

from pydantic import Field, field_validator, model_validator

from ..core import (
    DEFAULT_HOST,
    DEFAULT_MATCH,
    DEFAULT_NOTE_TYPES,
    REQUEST_TIMEOUT,
    RENDERERS,
    Document,
    RequestsTransport,
    SyncSession,
    Transport,
)
from ..core.document.match import compile_match
from .yaml_model import BaseYamlModel

__all__ = [
    "Config",
]


class Config(BaseYamlModel):
    """
    Encapsulates configuration for use in tools.
    """

    host: str = DEFAULT_HOST
    """
    AnkiConnect address.
    """

    api_key: str | None = None
    """
    AnkiConnect API key, if one is configured in Anki.
    """

    timeout: float = REQUEST_TIMEOUT
    """
    Timeout of each request, in seconds.
    """

    default_deck: str | None = "Default"
    default_note_type: str | None = "Basic"

    match: str = DEFAULT_MATCH
    """
    Match expression selecting entries to push.
    """

    global_tags: list[str] = Field(default_factory=list)
    ignored_tags: list[str] = Field(default_factory=lambda: ["noexport"])

    allow_duplicate: bool = False
    """
    Whether to create notes whose first field duplicates another note in
    the same deck.
    """

    renderer: Literal["html", "plain"] = "html"

    note_types: dict[str, list[str]] = Field(
        default_factory=lambda: {
            name: list(fields) for name, fields in DEFAULT_NOTE_TYPES.items()
        }
    )
    """
    Mapping of note type names to their fields, in order.
    """

    @field_validator("host", mode="before")
    def validate_host(cls, value: Any) -> Any:
        return value.rstrip("/") if isinstance(value, str) else value

    @field_validator("match")
    def validate_match(cls, value: str) -> str:
        # raises ValueError if malformed
        compile_match(value)
        return value

    @model_validator(mode="after")
    def validate_note_types(self) -> Self:
        for name, fields in self.note_types.items():
            if not fields:
                raise ValueError(f"note type '{name}' has no fields")
            if len({f.lower() for f in fields}) != len(fields):
                raise ValueError(f"note type '{name}' has duplicate fields")

        if (
            self.default_note_type is not None
            and self.default_note_type not in self.note_types
        ):
            raise ValueError(
                f"default note type '{self.default_note_type}' not in note_types"
            )
        return self

    def create_transport(self) -> RequestsTransport:
        return RequestsTransport(timeout=self.timeout)

    def create_session(
        self,
        document: Document,
        *,
        logger: Logger | None = None,
        transport: Transport | None = None,
    ) -> SyncSession:
        """
        Get session for the given document from this config.
        """
        return SyncSession(
            document,
            host=self.host,
            api_key=self.api_key,
            transport=transport or self.create_transport(),
            renderer=RENDERERS[self.renderer](),
            note_types=self.note_types,
            default_deck=self.default_deck,
            default_note_type=self.default_note_type,
            match=self.match,
            global_tags=self.global_tags,
            ignored_tags=self.ignored_tags,
            allow_duplicate=self.allow_duplicate,
            logger=logger,
        )
