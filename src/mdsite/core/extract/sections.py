"""Heading-driven nesting of a flat block sequence into a section tree"""

from dataclasses import replace

from mdsite.core.models import Block, Heading


class _Open:
    """A heading whose children are still being collected."""

    def __init__(self, heading: Heading):
        self.heading = heading
        self.children: list[Block] = []

    def close(self) -> Heading:
        return replace(self.heading, children=tuple(self.children))


def nest_sections(blocks: list[Block], max_nesting: int = 6) -> tuple[Block, ...]:
    """Nest blocks under headings.

    A heading with level <= max_nesting owns every following block until a
    heading of the same or shallower level. Deeper headings stay leaf blocks
    inside the current section. Blocks before the first heading stay at the top.
    """
    root: list[Block] = []
    stack: list[_Open] = []

    def _attach(block: Block) -> None:
        (stack[-1].children if stack else root).append(block)

    for block in blocks:
        if isinstance(block, Heading) and block.level <= max_nesting:
            while stack and stack[-1].heading.level >= block.level:
                closed = stack.pop().close()
                _attach(closed)
            stack.append(_Open(block))
        else:
            _attach(block)

    while stack:
        closed = stack.pop().close()
        _attach(closed)
    return tuple(root)
