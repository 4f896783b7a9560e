"""Line scanner for ':::kind' callout containers and fenced code boundaries.

Splits a body into plain markdown segments and (possibly nested) callout
containers before markdown-it sees it. Container markers inside fenced code
are ordinary code text.
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Union

from mdsite.core.errors import ParseError
from mdsite.core.models import CalloutKind


FENCE_RE = re.compile(r'^( {0,3})(`{3,}|~{3,})(.*)$')
OPEN_RE = re.compile(r'^( {0,3}):{3,}[ \t]*([A-Za-z]+)(?:[ \t]+(.*?))?[ \t]*$')
CLOSE_RE = re.compile(r'^( {0,3}):{3,}[ \t]*$')


@dataclass
class Segment:
    """Contiguous markdown lines; first_line is the 1-based source line of lines[0]."""
    first_line: int
    lines: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return ''.join(self.lines)


@dataclass
class Container:
    kind: CalloutKind
    line: int
    title: Optional[str] = None
    children: list[Union[Segment, "Container"]] = field(default_factory=list)


Node = Union[Segment, Container]


def callout_kind(name: str, line: int, column: int) -> CalloutKind:
    """Map a marker name to CalloutKind; unknown names raise ParseError."""
    try:
        return CalloutKind(name.lower())
    except ValueError:
        raise ParseError(f"Unknown callout kind '{name}'", line, column) from None


def _append_line(children: list[Node], line_no: int, line: str) -> None:
    if children and isinstance(children[-1], Segment):
        children[-1].lines.append(line)
    else:
        children.append(Segment(first_line=line_no, lines=[line]))


def split_containers(text: str, first_line: int = 1) -> list[Node]:
    """Split text into Segments and nested Containers.

    Raises ParseError for a closing marker with no open container, a container
    still open at end of input, or an unterminated code fence.
    """
    root: list[Node] = []
    stack: list[Container] = []
    fence: Optional[tuple[str, int, int, int]] = None  # (char, length, line, column)

    for offset, line in enumerate(text.splitlines(keepends=True)):
        line_no = first_line + offset
        bare = line.rstrip('\r\n')
        children = stack[-1].children if stack else root

        m = FENCE_RE.match(bare)
        if fence is not None:
            char, length, _, _ = fence
            if m and m.group(2)[0] == char and len(m.group(2)) >= length and not m.group(3).strip():
                fence = None
            _append_line(children, line_no, line)
            continue
        if m and not (m.group(2)[0] == '`' and '`' in m.group(3)):
            fence = (m.group(2)[0], len(m.group(2)), line_no, len(m.group(1)) + 1)
            _append_line(children, line_no, line)
            continue

        if m := CLOSE_RE.match(bare):
            if not stack:
                raise ParseError("Closing ':::' without a matching open container", line_no, len(m.group(1)) + 1)
            stack.pop()
            continue

        if m := OPEN_RE.match(bare):
            container = Container(
                kind=callout_kind(m.group(2), line_no, len(m.group(1)) + 1),
                line=line_no,
                title=m.group(3) or None,
            )
            children.append(container)
            stack.append(container)
            continue

        _append_line(children, line_no, line)

    if fence is not None:
        _, _, line_no, column = fence
        raise ParseError("Unterminated code fence", line_no, column)
    if stack:
        raise ParseError(f"Unclosed ':::{stack[-1].kind.value}' container", stack[-1].line, 1)
    return root
