"""Renderer: Block tree + corpus index snapshot to HTML bytes.

render() and render_page() are pure: the same document and index snapshot
always produce the same bytes, and the index is only read. Block and inline
kinds are dispatched through closed tables, so adding a kind without a
renderer fails loudly instead of silently dropping content.
"""

import logging
import posixpath
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import urlsplit

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape

from mdsite.core.errors import RenderError
from mdsite.core.index import CHRONOLOGICAL_PAGE, TAGS_PAGE, CorpusIndex
from mdsite.core.models import (
    Block, Callout, Code, CodeBlock, Document, Emphasis, Heading, Html, Image,
    Inline, InlineImage, LineBreak, Link, List, Paragraph, Quote, RawHtml,
    Rule, Strikethrough, Strong, Table, Text,
)
from mdsite.core.utils.hashing import sha256
from mdsite.core.utils.slug import label_key


logger = logging.getLogger(__name__)

RENDERER_VERSION = "1"
TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
MD_EXTENSIONS = ('.md', '.mdx')


def make_environment(templates_dir: Optional[str] = None) -> Environment:
    """Jinja2 environment over the packaged templates, or templates_dir when given."""
    return Environment(
        loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "j2"]),
        keep_trailing_newline=True,
    )


def template_hash(env: Environment) -> str:
    """Digest of every template name and source; changes invalidate BuildState."""
    parts = []
    for name in sorted(env.list_templates()):
        source, _, _ = env.loader.get_source(env, name)
        parts.append(f"{name}\0{source}")
    return sha256("\0\0".join(parts))


def document_path(slug: str) -> str:
    return f"{slug}.html"


def page_path(key: str) -> str:
    """Output path of an index page, relative to the output directory."""
    if key == CHRONOLOGICAL_PAGE:
        return "index.html"
    if key == TAGS_PAGE:
        return "tags/index.html"
    kind, _, name = key.partition(":")
    if kind == "tag":
        return f"tags/{name}.html"
    if kind == "series":
        return f"series/{name}.html"
    raise KeyError(f"Unknown index page: {key}")


def _root_prefix(path: str) -> str:
    return "../" * path.count("/")


def is_internal(target: str) -> bool:
    """True for scheme-less relative links to another source document."""
    parts = urlsplit(target)
    return not parts.scheme and not parts.netloc and parts.path.lower().endswith(MD_EXTENSIONS)


def resolve_internal(target: str, source_path: str, index: CorpusIndex) -> Optional[str]:
    """Return the slug a relative .md/.mdx link points to, or None."""
    parts = urlsplit(target)
    base = posixpath.dirname(source_path)
    path = posixpath.normpath(posixpath.join(base, parts.path))
    return index.paths.get(path)


class _Context:
    """Per-render state: the document being rendered, the index, and the current source line."""

    def __init__(self, document: Document, index: CorpusIndex, prefix: str):
        self.document = document
        self.index = index
        self.prefix = prefix
        self.line: Optional[int] = None

    def href(self, target: str) -> str:
        if not is_internal(target):
            return target
        slug = resolve_internal(target, self.document.source_path, self.index)
        if slug is None:
            raise RenderError(
                f"{self.document.source_path}: unresolved internal link '{target}'",
                target=target, line=self.line,
            )
        fragment = urlsplit(target).fragment
        return self.prefix + document_path(slug) + (f"#{fragment}" if fragment else "")


# --- inline rendering ---

def _inlines(nodes: tuple[Inline, ...], ctx: _Context) -> str:
    return "".join(_render_inline(n, ctx) for n in nodes)


def _link(node: Link, ctx: _Context) -> str:
    title = f' title="{escape(node.title)}"' if node.title else ""
    return f'<a href="{escape(ctx.href(node.target))}"{title}>{_inlines(node.label, ctx)}</a>'


def _inline_image(node: InlineImage, ctx: _Context) -> str:
    title = f' title="{escape(node.title)}"' if node.title else ""
    return f'<img src="{escape(node.reference)}" alt="{escape(node.alt)}"{title}>'


INLINE_RENDERERS: dict[type, Callable[..., str]] = {
    Text:          lambda n, ctx: str(escape(n.content)),
    Code:          lambda n, ctx: f"<code>{escape(n.content)}</code>",
    Emphasis:      lambda n, ctx: f"<em>{_inlines(n.children, ctx)}</em>",
    Strong:        lambda n, ctx: f"<strong>{_inlines(n.children, ctx)}</strong>",
    Strikethrough: lambda n, ctx: f"<s>{_inlines(n.children, ctx)}</s>",
    Link:          _link,
    InlineImage:   _inline_image,
    LineBreak:     lambda n, ctx: "<br>\n",
    RawHtml:       lambda n, ctx: n.content,
}


def _render_inline(node: Inline, ctx: _Context) -> str:
    try:
        fn = INLINE_RENDERERS[type(node)]
    except KeyError:
        raise TypeError(f"No renderer for inline kind {type(node).__name__}") from None
    return fn(node, ctx)


# --- block rendering ---

def _heading(node: Heading, ctx: _Context) -> str:
    inner = f'<h{node.level} id="{escape(node.anchor)}">{_inlines(node.text, ctx)}</h{node.level}>\n'
    if not node.children:
        return inner
    return f'<section>\n{inner}{render_blocks(node.children, ctx)}</section>\n'


def _code(node: CodeBlock, ctx: _Context) -> str:
    cls = f' class="language-{escape(node.language)}"' if node.language else ""
    return f"<pre><code{cls}>{escape(node.code)}</code></pre>\n"


def _image(node: Image, ctx: _Context) -> str:
    caption = f"<figcaption>{escape(node.caption)}</figcaption>" if node.caption else ""
    return f'<figure><img src="{escape(node.reference)}" alt="{escape(node.alt)}">{caption}</figure>\n'


def _list(node: List, ctx: _Context) -> str:
    tag = "ol" if node.ordered else "ul"
    start = f' start="{node.start}"' if node.ordered and node.start not in (None, 1) else ""
    items = "".join(f"<li>{render_blocks(item, ctx).strip()}</li>\n" for item in node.items)
    return f"<{tag}{start}>\n{items}</{tag}>\n"


def _table(node: Table, ctx: _Context) -> str:
    head = "".join(f"<th>{_inlines(c, ctx)}</th>" for c in node.header)
    rows = "".join(
        "<tr>" + "".join(f"<td>{_inlines(c, ctx)}</td>" for c in row) + "</tr>\n"
        for row in node.rows
    )
    return f"<table>\n<thead><tr>{head}</tr></thead>\n<tbody>\n{rows}</tbody>\n</table>\n"


def _callout(node: Callout, ctx: _Context) -> str:
    title = escape(node.title) if node.title else node.kind.value.capitalize()
    return (
        f'<aside class="callout callout-{node.kind.value}">\n'
        f'<p class="callout-title">{title}</p>\n'
        f"{render_blocks(node.children, ctx)}</aside>\n"
    )


BLOCK_RENDERERS: dict[type, Callable[..., str]] = {
    Heading:   _heading,
    Paragraph: lambda n, ctx: f"<p>{_inlines(n.children, ctx)}</p>\n",
    CodeBlock: _code,
    Image:     _image,
    List:      _list,
    Table:     _table,
    Quote:     lambda n, ctx: f"<blockquote>\n{render_blocks(n.children, ctx)}</blockquote>\n",
    Callout:   _callout,
    Html:      lambda n, ctx: n.content,
    Rule:      lambda n, ctx: "<hr>\n",
}


def render_blocks(blocks: tuple[Block, ...], ctx: _Context) -> str:
    parts = []
    for block in blocks:
        try:
            fn = BLOCK_RENDERERS[type(block)]
        except KeyError:
            raise TypeError(f"No renderer for block kind {type(block).__name__}") from None
        if getattr(block, "line", None) is not None:
            ctx.line = block.line
        parts.append(fn(block, ctx))
    return "".join(parts)


# --- pages ---

def _entry_view(index: CorpusIndex, slug: str, prefix: str) -> dict:
    entry = index.entries[slug]
    return {
        "slug": slug,
        "title": entry.title,
        "href": prefix + document_path(slug),
        "revised": entry.revised.isoformat() if entry.revised else None,
        "description": entry.description,
    }


def render(document: Document, index: CorpusIndex, *, env: Optional[Environment] = None, site_title: str = "") -> bytes:
    """Render one document against an index snapshot. Raises RenderError."""
    env = env or make_environment()
    prefix = _root_prefix(document_path(document.slug))
    ctx = _Context(document, index, prefix=prefix)
    body = render_blocks(document.blocks, ctx)

    prev_slug, next_slug = index.series_neighbours(document.slug)
    series = None
    if document.meta.series and label_key(document.meta.series) in index.series:
        key = label_key(document.meta.series)
        series = {
            "title": index.series_labels.get(key, document.meta.series),
            "href": prefix + page_path(f"series:{key}"),
            "prev": _entry_view(index, prev_slug, prefix) if prev_slug else None,
            "next": _entry_view(index, next_slug, prefix) if next_slug else None,
        }

    tags = [
        {"label": index.tag_labels.get(k, k), "href": prefix + page_path(f"tag:{k}")}
        for k in index.doc_tags.get(document.slug, ())
    ]
    meta = document.meta
    html = env.get_template("document.html.j2").render(
        site_title=site_title,
        root=prefix,
        title=meta.title,
        authors=list(meta.authors),
        revised=meta.revised.isoformat() if meta.revised else None,
        description=meta.description,
        keywords=list(meta.keywords),
        tags=tags,
        series=series,
        body=Markup(body),
    )
    logger.debug("rendered %s", document.slug)
    return html.encode("utf-8")


def render_page(key: str, index: CorpusIndex, *, env: Optional[Environment] = None, site_title: str = "") -> bytes:
    """Render an index page ('index', 'tags', 'tag:<key>', 'series:<key>')."""
    env = env or make_environment()
    prefix = _root_prefix(page_path(key))

    if key == TAGS_PAGE:
        tags = [
            {"label": index.tag_labels.get(k, k), "href": f"{k}.html", "count": len(index.tags[k])}
            for k in sorted(index.tags)
        ]
        html = env.get_template("tags.html.j2").render(site_title=site_title, root=prefix, title="Tags", tags=tags)
        return html.encode("utf-8")

    if key == CHRONOLOGICAL_PAGE:
        heading = "All posts"
    else:
        kind, _, name = key.partition(":")
        labels = index.tag_labels if kind == "tag" else index.series_labels
        heading = f"{'Tag' if kind == 'tag' else 'Series'}: {labels.get(name, name)}"

    entries = [_entry_view(index, slug, prefix) for slug in index.page_members(key)]
    html = env.get_template("listing.html.j2").render(
        site_title=site_title, root=prefix, title=heading, entries=entries,
    )
    return html.encode("utf-8")
