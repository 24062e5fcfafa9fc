# backend/tests/test_notion_renderer.py

from app.notion.link_preview import LinkMetadata
from app.notion.renderer import (
    EMPTY_CONTENT_HTML,
    UNRENDERABLE_CONTENT_HTML,
    ContentRenderer,
    render_rich_text,
)


def _text(content: str, **annotations) -> dict:
    return {
        "type": "text",
        "plain_text": content,
        "annotations": annotations,
        "href": None,
    }


def _block(block_type: str, **data) -> dict:
    return {"object": "block", "id": f"{block_type}-id", "type": block_type, block_type: data}


def _paragraph(content: str) -> dict:
    return _block("paragraph", rich_text=[_text(content)])


def test_empty_blocks_render_placeholder():
    renderer = ContentRenderer()

    assert renderer.render([]) == EMPTY_CONTENT_HTML


def test_blocks_without_output_render_unrenderable_placeholder():
    renderer = ContentRenderer()

    html = renderer.render([_block("table_of_contents", color="default")])

    assert html == UNRENDERABLE_CONTENT_HTML


def test_paragraphs_and_headings_keep_order():
    renderer = ContentRenderer()
    blocks = [
        _block("heading_1", rich_text=[_text("Title")]),
        _paragraph("first"),
        _block("heading_2", rich_text=[_text("Section")]),
        _paragraph("second"),
    ]

    html = renderer.render(blocks)

    assert html.split("\n") == [
        "<h1>Title</h1>",
        "<p>first</p>",
        "<h2>Section</h2>",
        "<p>second</p>",
    ]


def test_rich_text_annotations_and_escaping():
    segments = [
        _text("<b>", bold=True),
        _text("link", italic=True),
        _text("x = 1", code=True),
    ]
    segments[1]["href"] = "https://example.com/?a=1&b=2"

    html = render_rich_text(segments)

    assert "<strong>&lt;b&gt;</strong>" in html
    assert '<a href="https://example.com/?a=1&amp;b=2"><em>link</em></a>' in html
    assert "<code>x = 1</code>" in html


def test_consecutive_list_items_are_grouped():
    renderer = ContentRenderer()
    blocks = [
        _block("bulleted_list_item", rich_text=[_text("a")]),
        _block("bulleted_list_item", rich_text=[_text("b")]),
        _block("numbered_list_item", rich_text=[_text("one")]),
        _paragraph("after"),
    ]

    html = renderer.render(blocks)

    assert html.split("\n") == [
        "<ul>",
        "<li>a</li>",
        "<li>b</li>",
        "</ul>",
        "<ol>",
        "<li>one</li>",
        "</ol>",
        "<p>after</p>",
    ]


def test_code_block_is_highlighted():
    renderer = ContentRenderer()
    block = _block(
        "code",
        language="python",
        rich_text=[_text("def hello():\n    return '<ok>'")],
        caption=[],
    )

    html = renderer.render([block])

    assert html.startswith('<pre class="notion-code"><code class="language-python">')
    # Pygments のトークン span が付与されている
    assert '<span class="k">def</span>' in html
    assert "&lt;ok&gt;" in html


def test_code_block_with_unknown_language_falls_back_to_plain_text():
    renderer = ContentRenderer()
    block = _block("code", language="not-a-language", rich_text=[_text("a < b")])

    html = renderer.render([block])

    assert 'class="language-not-a-language"' in html
    assert "a &lt; b" in html


def test_bookmark_renders_link_preview_without_metadata():
    renderer = ContentRenderer()
    block = _block("bookmark", url="https://example.com/article", caption=[])

    html = renderer.render([block])

    assert 'class="notion-bookmark"' in html
    assert 'href="https://example.com/article"' in html
    assert '<div class="notion-bookmark-link">example.com</div>' in html


def test_bookmark_uses_metadata_lookup():
    def lookup(url):
        return LinkMetadata(
            url=url,
            title="Example article",
            description="An article",
            image_url="https://example.com/og.png",
        )

    renderer = ContentRenderer(link_metadata_lookup=lookup)
    html = renderer.render([_block("embed", url="https://example.com/article")])

    assert '<div class="notion-bookmark-title">Example article</div>' in html
    assert '<div class="notion-bookmark-description">An article</div>' in html
    assert 'src="https://example.com/og.png"' in html


def test_failing_metadata_lookup_degrades_to_plain_card():
    def lookup(url):
        raise RuntimeError("boom")

    renderer = ContentRenderer(link_metadata_lookup=lookup)
    html = renderer.render([_block("bookmark", url="https://example.com/")])

    assert '<div class="notion-bookmark-title">https://example.com/</div>' in html


def test_image_block_uses_hosted_or_external_url():
    renderer = ContentRenderer()
    block = _block(
        "image",
        type="external",
        external={"url": "https://example.com/pic.png"},
        caption=[_text("A picture")],
    )

    html = renderer.render([block])

    assert '<img src="https://example.com/pic.png" alt="A picture" />' in html
    assert "<figcaption>A picture</figcaption>" in html


def test_rich_text_drops_links_with_unsafe_schemes():
    segments = [_text("click"), _text("mail"), _text("relative")]
    segments[0]["href"] = "javascript:alert(1)"
    segments[1]["href"] = "mailto:someone@example.com"
    segments[2]["href"] = "/blog/other-post"

    html = render_rich_text(segments)

    assert "javascript" not in html
    assert html.startswith("click")
    assert '<a href="mailto:someone@example.com">mail</a>' in html
    assert '<a href="/blog/other-post">relative</a>' in html


def test_rich_text_rejects_obfuscated_javascript_scheme():
    segment = _text("click")
    segment["href"] = " Java\tScript:alert(1)"

    assert render_rich_text([segment]) == "click"


def test_bookmark_with_unsafe_url_renders_as_text():
    looked_up = []
    renderer = ContentRenderer(link_metadata_lookup=looked_up.append)

    html = renderer.render([_block("bookmark", url="javascript:alert(document.cookie)")])

    assert html == "<p>javascript:alert(document.cookie)</p>"
    assert "href" not in html
    assert looked_up == []


def test_bookmark_drops_unsafe_metadata_image():
    def lookup(url):
        return LinkMetadata(url=url, title="Example", image_url="data:text/html,<script>")

    renderer = ContentRenderer(link_metadata_lookup=lookup)
    html = renderer.render([_block("bookmark", url="https://example.com/")])

    assert "notion-bookmark-image" not in html
    assert "data:" not in html


def test_media_blocks_with_unsafe_urls_are_skipped():
    renderer = ContentRenderer()
    blocks = [
        _block("image", type="external", external={"url": "javascript:alert(1)"}, caption=[]),
        _block("file", type="external", external={"url": "vbscript:msgbox(1)"}, caption=[]),
        _paragraph("after"),
    ]

    html = renderer.render(blocks)

    assert html == "<p>after</p>"


def test_unknown_block_type_renders_plain_text():
    renderer = ContentRenderer()
    block = _block("synced_block_v2", rich_text=[_text("still visible")])

    assert renderer.render([block]) == "<p>still visible</p>"


def test_malformed_block_is_isolated():
    renderer = ContentRenderer()
    blocks = [
        _paragraph("before"),
        {"object": "block", "id": "broken"},  # type が無い
        None,
        _paragraph("after"),
    ]

    html = renderer.render(blocks)

    assert html == "<p>before</p>\n<p>after</p>"


def test_renderer_exception_is_isolated_per_block():
    def explode(block, renderer):
        raise ValueError("cannot render")

    renderer = ContentRenderer()
    renderer.register("quote", explode)
    blocks = [
        _paragraph("one"),
        _block("quote", rich_text=[_text("bad")]),
        _paragraph("two"),
        _paragraph("three"),
    ]

    html = renderer.render(blocks)

    assert html.split("\n") == ["<p>one</p>", "<p>two</p>", "<p>three</p>"]


def test_register_adds_new_block_type():
    renderer = ContentRenderer()
    renderer.register("audio", lambda block, r: f'<audio src="{block["audio"]["url"]}"></audio>')

    html = renderer.render([{"type": "audio", "audio": {"url": "https://example.com/a.mp3"}}])

    assert html == '<audio src="https://example.com/a.mp3"></audio>'


def test_to_do_divider_and_callout():
    renderer = ContentRenderer()
    blocks = [
        _block("to_do", rich_text=[_text("ship it")], checked=True),
        _block("divider"),
        _block("callout", rich_text=[_text("note")], icon={"type": "emoji", "emoji": "💡"}),
    ]

    html = renderer.render(blocks)

    assert '<input type="checkbox" disabled checked />' in html
    assert "<hr />" in html
    assert '<span class="notion-callout-icon">💡</span><div>note</div>' in html
