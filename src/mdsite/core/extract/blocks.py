"""markdown-it token stream to typed Block/Inline conversion"""

import re
from typing import Callable, Optional

from markdown_it.tree import SyntaxTreeNode

from mdsite.core.extract.containers import callout_kind
from mdsite.core.models import (
    Block, Callout, Code, CodeBlock, Emphasis, Heading, Html, Image, Inline,
    InlineImage, LineBreak, Link, List, Paragraph, Quote, RawHtml, Rule,
    Strikethrough, Strong, Table, Text,
)
from mdsite.core.utils.slug import unique_slug


ALERT_RE = re.compile(r'^\[!([A-Za-z]+)\][ \t]*(.*)$')
QUOTE_PREFIX_RE = re.compile(r'^ {0,3}> ?')

NestedParser = Callable[[str, int], tuple[Block, ...]]


def inline_text(inlines: tuple[Inline, ...]) -> str:
    """Flatten inlines to plain text (for anchors, alt text, and titles)."""
    parts = []
    for node in inlines:
        if isinstance(node, (Text, Code, RawHtml)):
            parts.append(node.content)
        elif isinstance(node, (Emphasis, Strong, Strikethrough)):
            parts.append(inline_text(node.children))
        elif isinstance(node, Link):
            parts.append(inline_text(node.label))
        elif isinstance(node, InlineImage):
            parts.append(node.alt)
        elif isinstance(node, LineBreak):
            parts.append(' ')
    return ''.join(parts)


def convert_inlines(nodes: list[SyntaxTreeNode]) -> tuple[Inline, ...]:
    """Convert inline syntax-tree children to Inline values, merging adjacent text."""
    out: list[Inline] = []
    for node in nodes:
        t = node.type
        if t == 'text':
            item = Text(node.content)
        elif t == 'softbreak':
            item = Text('\n')
        elif t == 'hardbreak':
            item = LineBreak()
        elif t == 'code_inline':
            item = Code(node.content)
        elif t == 'em':
            item = Emphasis(convert_inlines(node.children))
        elif t == 'strong':
            item = Strong(convert_inlines(node.children))
        elif t == 's':
            item = Strikethrough(convert_inlines(node.children))
        elif t == 'link':
            item = Link(
                target=str(node.attrs.get('href', '')),
                label=convert_inlines(node.children),
                title=node.attrs.get('title') or None,
            )
        elif t == 'image':
            item = InlineImage(
                reference=str(node.attrs.get('src', '')),
                alt=node.content,
                title=node.attrs.get('title') or None,
            )
        elif t == 'html_inline':
            item = RawHtml(node.content)
        else:
            item = Text(node.content)

        if isinstance(item, Text) and out and isinstance(out[-1], Text):
            out[-1] = Text(out[-1].content + item.content)
        else:
            out.append(item)
    return tuple(out)


def _inline_children(node: SyntaxTreeNode) -> tuple[Inline, ...]:
    """Inlines of a container whose single child is an 'inline' node (paragraph, heading, cell)."""
    for child in node.children:
        if child.type == 'inline':
            return convert_inlines(child.children)
    return ()


def _lone_image(inlines: tuple[Inline, ...]) -> Optional[InlineImage]:
    """Return the image if a paragraph holds only one image (ignoring whitespace)."""
    significant = [i for i in inlines if not (isinstance(i, Text) and not i.content.strip())]
    if len(significant) == 1 and isinstance(significant[0], InlineImage):
        return significant[0]
    return None


class BlockConverter:
    """Converts one markdown segment's syntax tree to Blocks.

    anchors is shared across a whole document so heading anchors stay unique;
    parse_nested re-enters the body parser for alert quotes.
    """

    def __init__(self, source_lines: list[str], first_line: int, anchors: dict[str, int], parse_nested: NestedParser):
        self.source_lines = source_lines
        self.first_line = first_line
        self.anchors = anchors
        self.parse_nested = parse_nested

    def _line(self, node: SyntaxTreeNode) -> Optional[int]:
        return self.first_line + node.map[0] if node.map else None

    def convert(self, nodes: list[SyntaxTreeNode]) -> list[Block]:
        blocks: list[Block] = []
        for node in nodes:
            block = self.convert_node(node)
            if block is not None:
                blocks.append(block)
        return blocks

    def convert_node(self, node: SyntaxTreeNode) -> Optional[Block]:
        t = node.type
        line = self._line(node)

        if t == 'heading':
            text = _inline_children(node)
            return Heading(
                level=int(node.tag[1:]),
                text=text,
                anchor=unique_slug(inline_text(text), self.anchors),
                line=line,
            )
        if t == 'paragraph':
            inlines = _inline_children(node)
            image = _lone_image(inlines)
            if image is not None:
                return Image(reference=image.reference, alt=image.alt, caption=image.title or image.alt or None, line=line)
            return Paragraph(children=inlines, line=line)
        if t == 'fence':
            language = node.info.strip().split()[0] if node.info.strip() else None
            return CodeBlock(code=node.content, language=language, line=line)
        if t == 'code_block':
            return CodeBlock(code=node.content, line=line)
        if t in ('bullet_list', 'ordered_list'):
            start = node.attrs.get('start')
            return List(
                items=tuple(tuple(self.convert(item.children)) for item in node.children),
                ordered=t == 'ordered_list',
                start=int(start) if start is not None else (1 if t == 'ordered_list' else None),
                line=line,
            )
        if t == 'table':
            return self._table(node, line)
        if t == 'blockquote':
            return self._alert(node, line) or Quote(children=tuple(self.convert(node.children)), line=line)
        if t == 'html_block':
            return Html(content=node.content, line=line)
        if t == 'hr':
            return Rule(line=line)
        return None

    def _table(self, node: SyntaxTreeNode, line: Optional[int]) -> Table:
        header: tuple = ()
        rows: list = []
        for part in node.children:
            part_rows = [tuple(_inline_children(cell) for cell in tr.children) for tr in part.children]
            if part.type == 'thead':
                header = part_rows[0] if part_rows else ()
            else:
                rows.extend(part_rows)
        return Table(header=header, rows=tuple(rows), line=line)

    def _alert(self, node: SyntaxTreeNode, line: Optional[int]) -> Optional[Callout]:
        """Recognize '> [!KIND]' quotes and re-parse their body as a Callout."""
        if not node.map or not node.children or node.children[0].type != 'paragraph':
            return None
        first = next((c for c in node.children[0].children if c.type == 'inline'), None)
        if first is None:
            return None
        m = ALERT_RE.match(first.content.split('\n', 1)[0])
        if m is None:
            return None

        start, end = node.map
        lines = [QUOTE_PREFIX_RE.sub('', raw, count=1) for raw in self.source_lines[start:end]]
        column = self.source_lines[start].find('[!') + 1
        kind = callout_kind(m.group(1), line, column)
        body_start = self.first_line + start + 1
        children = self.parse_nested(''.join(lines[1:]), body_start)
        return Callout(kind=kind, children=children, title=m.group(2).strip() or None, line=line)


def tokens_to_blocks(
    tokens: list,
    source_lines: list[str],
    first_line: int,
    anchors: dict[str, int],
    parse_nested: NestedParser,
    ) -> list[Block]:
    """Convert a segment's markdown-it tokens to a flat list of typed Blocks."""
    tree = SyntaxTreeNode(tokens)
    return BlockConverter(source_lines, first_line, anchors, parse_nested).convert(tree.children)
