"""
Rendering of raw field content into what's stored in Anki.
"""

from __future__ import annotations

import html
import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence

from .draft import NoteDraft
from .exceptions import RenderAlignmentError

__all__ = [
    "Renderer",
    "PlainRenderer",
    "HtmlRenderer",
    "RENDERERS",
]
__canonical_syms__ = __all__

BATCH_TOKEN_PREFIX = "orgcardbatch"
FIELD_TOKEN_PREFIX = "orgcardfield"
PROBE_TOKEN_PREFIX = "orgcardprobe"


class Renderer(ABC):
    """
    Converts raw field content to rendered content.

    Subclasses implement {obj}`Renderer.render` as a textual transform. The
    default {obj}`Renderer.render_batch` renders many notes with a single
    call by joining them with separator tokens, each on its own paragraph,
    and splitting the output on the rendered separators. Renderers able to
    process structured input may override it instead.

    Textual renderers must leave a paragraph consisting of a single
    alphanumeric word intact, apart from wrapping it in markup.
    """

    @abstractmethod
    def render(self, source: str) -> str:
        ...

    def render_batch(self, drafts: Sequence[NoteDraft]) -> list[dict[str, str]]:
        """
        Render fields of all drafts with one call to {obj}`Renderer.render`.

        :returns: Rendered fields of each draft, in the same order
        :raises RenderAlignmentError: If output can't be split into the same number of drafts and fields
        """
        if not drafts:
            return []

        batch_sep = _separator(f"{BATCH_TOKEN_PREFIX}{uuid.uuid4().hex}")

        source = batch_sep.join(
            _separator(f"{FIELD_TOKEN_PREFIX}{draft.content_hash}").join(
                draft.fields.values()
            )
            for draft in drafts
        )

        rendered = self.render(source)

        # learn how a separator paragraph comes out of this renderer
        prefix, suffix = self._get_wrapping(drafts)

        expected = [len(draft.fields) for draft in drafts]

        rendered_drafts = _split(rendered, prefix, batch_sep, suffix)
        if len(rendered_drafts) != len(drafts):
            raise RenderAlignmentError(expected, [len(rendered_drafts)])

        split_fields = [
            _split(
                rendered_draft,
                prefix,
                _separator(f"{FIELD_TOKEN_PREFIX}{draft.content_hash}"),
                suffix,
            )
            for draft, rendered_draft in zip(drafts, rendered_drafts)
        ]

        actual = [len(fields) for fields in split_fields]
        if actual != expected:
            raise RenderAlignmentError(expected, actual)

        return [
            dict(zip(draft.fields.keys(), fields))
            for draft, fields in zip(drafts, split_fields)
        ]

    def _get_wrapping(self, drafts: Sequence[NoteDraft]) -> tuple[str, str]:
        """
        Render a probe token and return the markup placed around it.
        """
        probe = f"{PROBE_TOKEN_PREFIX}{uuid.uuid4().hex}"
        rendered = self.render(probe).strip()

        prefix, sep, suffix = rendered.partition(probe)
        if not sep:
            raise RenderAlignmentError(
                [len(draft.fields) for draft in drafts],
                [],
                message=f"Renderer {type(self).__name__} does not preserve separator tokens",
            )

        return prefix, suffix


class PlainRenderer(Renderer):
    """
    Passes content through unchanged.
    """

    def render(self, source: str) -> str:
        return source


class HtmlRenderer(Renderer):
    """
    Renders paragraphs (separated by blank lines) as escaped HTML
    paragraphs, with line breaks within a paragraph kept as `<br>`.
    """

    def render(self, source: str) -> str:
        paragraphs = [
            p.strip("\n") for p in re.split(r"\n[ \t]*\n", source)
        ]

        return "\n".join(
            f"<p>{'<br>'.join(html.escape(line) for line in p.splitlines())}</p>"
            for p in paragraphs
            if p.strip()
        )


RENDERERS: dict[str, type[Renderer]] = {
    "plain": PlainRenderer,
    "html": HtmlRenderer,
}
"""
Renderers selectable by name in the config.
"""


def _separator(token: str) -> str:
    return f"\n\n{token}\n\n"


def _split(rendered: str, prefix: str, separator: str, suffix: str) -> list[str]:
    token = separator.strip()
    return [
        piece.strip() for piece in rendered.split(f"{prefix}{token}{suffix}")
    ]
