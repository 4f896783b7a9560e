"""Content parser: markdown body text to a nested Block tree"""

from markdown_it import MarkdownIt

from mdsite.core.extract.blocks import tokens_to_blocks
from mdsite.core.extract.containers import Container, Node, split_containers
from mdsite.core.extract.sections import nest_sections
from mdsite.core.models import Block, Callout, Document


def _make_parser(preset: str) -> MarkdownIt:
    """Build a MarkdownIt instance for the given preset name."""
    return MarkdownIt(preset, options_update={"linkify": False})


class BodyParser:
    """Parses one document body. Holds the per-document heading anchor registry."""

    def __init__(self, parser_config: str = 'gfm-like', max_nesting: int = 6):
        self.md = _make_parser(parser_config)
        self.max_nesting = max_nesting
        self.anchors: dict[str, int] = {}

    def parse(self, text: str, first_line: int = 1) -> tuple[Block, ...]:
        return self.parse_nodes(split_containers(text, first_line))

    def parse_nodes(self, nodes: list[Node]) -> tuple[Block, ...]:
        blocks: list[Block] = []
        for node in nodes:
            if isinstance(node, Container):
                blocks.append(Callout(
                    kind=node.kind,
                    children=self.parse_nodes(node.children),
                    title=node.title,
                    line=node.line,
                ))
            else:
                tokens = self.md.parse(node.text)
                blocks.extend(tokens_to_blocks(tokens, node.lines, node.first_line, self.anchors, self.parse))
        return nest_sections(blocks, self.max_nesting)


def parse_body(body: str, first_line: int = 1, parser_config: str = 'gfm-like', max_nesting: int = 6) -> tuple[Block, ...]:
    """Parse body text into a Block tree. Raises ParseError on malformed nesting."""
    return BodyParser(parser_config, max_nesting).parse(body, first_line)


def parse_document(doc: Document, parser_config: str = 'gfm-like', max_nesting: int = 6) -> Document:
    """Return doc with its block tree filled in; line numbers refer to the source file."""
    return doc.with_blocks(parse_body(doc.body, doc.body_line, parser_config, max_nesting))
