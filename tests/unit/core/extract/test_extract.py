"""Unit tests for core/extract/extract.py"""

import pytest

from mdsite.core.errors import ParseError
from mdsite.core.extract.extract import parse_body, parse_document
from mdsite.core.models import Callout, CalloutKind, CodeBlock, Heading, List, Paragraph, Quote, SourceFile
from mdsite.core.parse import load_document


def test_parse_body_nests_sections():
    """parse_body returns a heading tree with content attached to sections."""
    tree = parse_body("# One\n\nPara.\n\n## Two\n\nMore.\n")
    assert len(tree) == 1
    one = tree[0]
    assert isinstance(one, Heading)
    assert isinstance(one.children[0], Paragraph)
    assert one.children[1].anchor == "two"


def test_parse_body_max_nesting():
    """max_nesting=1 treats h2 as a leaf block, not a section."""
    tree = parse_body("# Top\n\n## Sub\n\nBody.\n", max_nesting=1)
    sub = tree[0].children[0]
    assert isinstance(sub, Heading)
    assert sub.children == ()


def test_parse_body_callout_container():
    """':::kind' containers become Callouts with parsed children."""
    tree = parse_body("Intro.\n\n:::tip Try this\n- one\n- two\n:::\n")
    callout = tree[1]
    assert isinstance(callout, Callout)
    assert callout.kind == CalloutKind.tip
    assert callout.title == "Try this"
    assert isinstance(callout.children[0], List)


def test_parse_body_alert_quote():
    """'> [!WARNING]' quotes become warning Callouts."""
    tree = parse_body("> [!WARNING]\n> Mind the gap.\n")
    callout = tree[0]
    assert isinstance(callout, Callout)
    assert callout.kind == CalloutKind.warning
    assert isinstance(callout.children[0], Paragraph)
    assert callout.children[0].line == 2


def test_parse_body_plain_quote():
    """Quotes without an alert marker stay Quotes."""
    assert isinstance(parse_body("> just a quote\n")[0], Quote)


def test_parse_body_unknown_alert_kind():
    """An unknown alert kind is a ParseError with a source location."""
    with pytest.raises(ParseError) as exc:
        parse_body("text\n\n> [!SPARKLE]\n> x\n")
    assert exc.value.line == 3
    assert exc.value.column == 3


def test_parse_body_unclosed_container_location():
    """Malformed nesting reports the source line, offset by first_line."""
    with pytest.raises(ParseError) as exc:
        parse_body(":::note\nnever closed\n", first_line=5)
    assert exc.value.line == 5


def test_anchors_unique_across_callouts():
    """Heading anchors stay unique across container boundaries."""
    tree = parse_body("## Setup\n\n:::note\n## Setup\n:::\n")
    outer = tree[0]
    inner = outer.children[0].children[0]
    assert outer.anchor == "setup"
    assert inner.anchor == "setup-1"


def test_code_is_opaque():
    """Markup inside fenced code is not interpreted."""
    tree = parse_body("```md\n# not a heading\n:::note\n```\n")
    assert tree == (CodeBlock(code="# not a heading\n:::note\n", language="md", line=1),)


def test_parse_document_lines_refer_to_source():
    """parse_document offsets block lines past the front-matter."""
    raw = "---\ntitle: T\n---\n# Body\n"
    doc = parse_document(load_document(SourceFile(path=None, rel_path="t.md"), raw))
    assert doc.blocks[0].line == 4
    assert doc.title == "T"


def test_parse_is_deterministic():
    """Parsing the same body twice yields equal trees."""
    body = "# A\n\n:::info\nx\n:::\n\n> [!NOTE]\n> y\n"
    assert parse_body(body) == parse_body(body)
