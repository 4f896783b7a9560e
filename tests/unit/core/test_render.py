"""Unit tests for core/render.py"""

import pytest

from mdsite.core.errors import RenderError
from mdsite.core.index import rebuild
from mdsite.core.models import Heading, Paragraph, Text
from mdsite.core.render import (
    BLOCK_RENDERERS, document_path, is_internal, make_environment, page_path,
    render, render_page, resolve_internal, template_hash,
)


@pytest.fixture(name="env")
def env_fixture():
    return make_environment()


def test_render_document_html(blog, blog_index, env):
    """render produces an HTML page with title, body, and tag links."""
    a = blog[0]
    html = render(a, blog_index, env=env, site_title="Site").decode("utf-8")
    assert "<title>Alpha | Site</title>" in html
    assert "<p>Body.</p>" in html
    assert 'href="tags/python.html"' in html
    assert 'href="series/intro.html"' in html
    assert 'href="b.html"' in html


def test_render_is_pure(blog, blog_index, env):
    """Rendering the same document and index twice gives identical bytes."""
    assert render(blog[1], blog_index, env=env) == render(blog[1], blog_index, env=env)


def test_internal_link_resolves_to_output_path(blog, blog_index, env):
    """Relative .md links are rewritten to the target's output page."""
    html = render(blog[3], blog_index, env=env).decode("utf-8")
    assert '<a href="a.html">alpha</a>' in html


def test_unresolved_internal_link_raises(doc, env):
    """A link to a document outside the index is a RenderError naming the target."""
    d = doc("x.md", "X", body="Go [there](missing.md).\n")
    with pytest.raises(RenderError) as exc:
        render(d, rebuild([d]), env=env)
    assert exc.value.target == "missing.md"
    assert exc.value.line == 4


def test_text_is_escaped(doc, env):
    """Text content and titles are HTML-escaped."""
    d = doc("x.md", "Fish & Chips", body="1 < 2\n")
    html = render(d, rebuild([d]), env=env).decode("utf-8")
    assert "Fish &amp; Chips" in html
    assert "1 &lt; 2" in html


def test_sections_and_callouts(doc, env):
    """Sections wrap their content; callouts render as asides with a title."""
    d = doc("x.md", "X", body="## Part\n\n:::warning\nCareful.\n:::\n")
    html = render(d, rebuild([d]), env=env).decode("utf-8")
    assert '<h2 id="part">Part</h2>' in html
    assert '<aside class="callout callout-warning">' in html
    assert '<p class="callout-title">Warning</p>' in html


def test_code_block_language(doc, env):
    """Code blocks carry a language class and escaped content."""
    d = doc("x.md", "X", body="```python\nif a < b: pass\n```\n")
    html = render(d, rebuild([d]), env=env).decode("utf-8")
    assert '<pre><code class="language-python">if a &lt; b: pass\n</code></pre>' in html


def test_unknown_block_kind_fails_loudly(doc, env):
    """A block kind without a renderer raises instead of dropping content."""

    class Mystery:
        line = 1

    d = doc("x.md", "X").with_blocks((Mystery(),))
    with pytest.raises(TypeError, match="No renderer"):
        render(d, rebuild([d]), env=env)


def test_every_block_kind_has_a_renderer():
    """The dispatch table covers the whole Block union."""
    from typing import get_args
    from mdsite.core.models import Block
    assert set(get_args(Block)) == set(BLOCK_RENDERERS)


def test_render_chronological_page(blog_index, env):
    """The chronological listing shows newest first."""
    html = render_page("index", blog_index, env=env).decode("utf-8")
    assert html.index("Gamma") < html.index("Beta") < html.index("Alpha")


def test_render_tag_page_uses_relative_links(blog_index, env):
    """Tag pages live under tags/ and link back up to documents."""
    html = render_page("tag:python", blog_index, env=env).decode("utf-8")
    assert 'href="../a.html"' in html
    assert 'href="../b.html"' in html
    assert "Tag: Python" in html


def test_render_tags_overview(blog_index, env):
    """The tag overview lists every tag with its document count."""
    html = render_page("tags", blog_index, env=env).decode("utf-8")
    assert '<a href="python.html">Python</a> (2)' in html
    assert '<a href="rust.html">rust</a> (1)' in html


@pytest.mark.parametrize("key,path", [
    ("index", "index.html"),
    ("tags", "tags/index.html"),
    ("tag:go", "tags/go.html"),
    ("series:intro", "series/intro.html"),
])
def test_page_path(key, path):
    """Index page keys map to fixed output paths."""
    assert page_path(key) == path


def test_page_path_unknown():
    """Unknown page keys are rejected."""
    with pytest.raises(KeyError):
        page_path("author:ann")


def test_document_path():
    assert document_path("hello") == "hello.html"


@pytest.mark.parametrize("target,internal", [
    ("other.md", True),
    ("../notes/x.mdx#part", True),
    ("https://example.com/x.md", False),
    ("#anchor", False),
    ("image.png", False),
])
def test_is_internal(target, internal):
    """Only scheme-less .md/.mdx targets are internal links."""
    assert is_internal(target) is internal


def test_resolve_internal_relative_to_source(doc):
    """Links resolve relative to the linking document's directory."""
    index = rebuild([doc("notes/a.md", "A"), doc("b.md", "B")])
    assert resolve_internal("../b.md", "notes/a.md", index) == "b"
    assert resolve_internal("a.md#top", "notes/x.md", index) == "notes/a"
    assert resolve_internal("c.md", "b.md", index) is None


def test_template_hash_tracks_templates(tmp_path):
    """Changing a template changes the template hash."""
    (tmp_path / "document.html.j2").write_text("one")
    first = template_hash(make_environment(str(tmp_path)))
    (tmp_path / "document.html.j2").write_text("two")
    assert template_hash(make_environment(str(tmp_path))) != first


def test_heading_without_children_is_bare(env, doc):
    """A heading with no nested content renders without a section wrapper."""
    d = doc("x.md", "X").with_blocks((Heading(level=2, text=(Text("Solo"),), anchor="solo"), Paragraph((Text("p"),))))
    html = render(d, rebuild([d]), env=env).decode("utf-8")
    assert '<h2 id="solo">Solo</h2>\n<p>p</p>' in html


def test_nested_document_links_climb_to_root(doc, env):
    """A document under a directory prefixes every site link with '../'."""
    docs = [
        doc("notes/a.md", "A", body="See [b](../b.md) and [c](c.md).\n", tags="[python]"),
        doc("b.md", "B"),
        doc("notes/c.md", "C"),
    ]
    index = rebuild(docs)
    html = render(docs[0], index, env=env).decode("utf-8")
    assert '<a href="../b.html">b</a>' in html
    assert '<a href="../notes/c.html">c</a>' in html
    assert 'href="../tags/python.html"' in html
    assert 'href="../index.html"' in html


def test_listing_links_to_nested_documents(doc, env):
    """Index pages link to nested documents by their full output path."""
    index = rebuild([doc("2024/recap.md", "Recap", tags="[news]")])
    assert 'href="2024/recap.html"' in render_page("index", index, env=env).decode("utf-8")
    assert 'href="../2024/recap.html"' in render_page("tag:news", index, env=env).decode("utf-8")
