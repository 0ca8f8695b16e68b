from pytest import fixture, raises

from orgcard import (
    Entry,
    HtmlRenderer,
    NoteDraft,
    OrgDocument,
    PlainRenderer,
    RenderAlignmentError,
    Renderer,
)


class WrappingRenderer(Renderer):
    """
    Renderer which wraps paragraphs and transforms content.
    """

    def render(self, source: str) -> str:
        return "\n".join(
            f"[{p.replace('Question', 'Q')}]" for p in source.split("\n\n")
        )


class DroppingRenderer(Renderer):
    """
    Renderer which loses the second to last paragraph of its input.
    """

    def render(self, source: str) -> str:
        paragraphs = source.split("\n\n")
        if len(paragraphs) > 1:
            del paragraphs[-2]
        return "\n\n".join(paragraphs)


class ScramblingRenderer(Renderer):
    """
    Renderer which doesn't preserve words.
    """

    def render(self, source: str) -> str:
        return source[::-1]


@fixture
def anchor(document: OrgDocument) -> Entry:
    return document.entries()[0]


def create_drafts(anchor: Entry, count: int) -> list[NoteDraft]:
    return [
        NoteDraft(
            anchor=anchor,
            deck="Default",
            model="Cloze",
            fields={
                "Text": f"Question {i}\n\nwith two paragraphs",
                "Back Extra": f"Answer {i}",
            },
            tags=frozenset(),
        )
        for i in range(count)
    ]


def test_plain(anchor: Entry):
    drafts = create_drafts(anchor, 3)
    rendered = PlainRenderer().render_batch(drafts)

    assert rendered == [draft.fields for draft in drafts]


def test_html(anchor: Entry):
    drafts = create_drafts(anchor, 2)
    rendered = HtmlRenderer().render_batch(drafts)

    assert rendered == [
        {
            "Text": f"<p>Question {i}</p>\n<p>with two paragraphs</p>",
            "Back Extra": f"<p>Answer {i}</p>",
        }
        for i in range(2)
    ]


def test_html_render():
    renderer = HtmlRenderer()

    assert renderer.render("a < b\nc\n\n\n\nd") == "<p>a &lt; b<br>c</p>\n<p>d</p>"
    assert renderer.render("") == ""


def test_empty_field(anchor: Entry):
    draft = NoteDraft(
        anchor=anchor,
        deck="Default",
        model="Basic",
        fields={"Front": "", "Back": "A"},
        tags=frozenset(),
    )

    assert HtmlRenderer().render_batch([draft]) == [
        {"Front": "", "Back": "<p>A</p>"}
    ]


def test_wrapping(anchor: Entry):
    drafts = create_drafts(anchor, 2)
    rendered = WrappingRenderer().render_batch(drafts)

    assert rendered[1] == {
        "Text": "[Q 1]\n[with two paragraphs]",
        "Back Extra": "[Answer 1]",
    }


def test_empty_batch():
    assert PlainRenderer().render_batch([]) == []


def test_misaligned(anchor: Entry):
    drafts = create_drafts(anchor, 2)

    with raises(RenderAlignmentError) as e:
        DroppingRenderer().render_batch(drafts)

    assert e.value.expected == [2, 2]
    assert e.value.actual == [2, 1]


def test_tokens_not_preserved(anchor: Entry):
    with raises(RenderAlignmentError, match="does not preserve separator tokens"):
        ScramblingRenderer().render_batch(create_drafts(anchor, 1))
