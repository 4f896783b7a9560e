"""Optional reference validation: internal links, local images, and in-page anchors.

Runs after parsing and indexing. Nothing is fetched over the network; external
targets are skipped.
"""

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional
from urllib.parse import unquote, urlsplit

from mdsite.core.index import CorpusIndex
from mdsite.core.models import (
    Block, Callout, Document, Emphasis, Heading, Image, Inline, InlineImage,
    Link, List, Paragraph, Quote, Strikethrough, Strong, Table,
)
from mdsite.core.render import is_internal, resolve_internal


@dataclass(frozen=True)
class ReferenceProblem:
    source_path: str
    target: str
    message: str
    line: Optional[int] = None

    def __str__(self) -> str:
        where = f"{self.source_path}:{self.line}" if self.line else self.source_path
        return f"{where}: {self.message} '{self.target}'"


def _walk_inlines(nodes: tuple[Inline, ...]) -> Iterator[Inline]:
    for node in nodes:
        yield node
        if isinstance(node, (Emphasis, Strong, Strikethrough)):
            yield from _walk_inlines(node.children)
        elif isinstance(node, Link):
            yield from _walk_inlines(node.label)


def iter_references(blocks: tuple[Block, ...], line: Optional[int] = None) -> Iterator[tuple[str, str, Optional[int]]]:
    """Yield (kind, target, line) for every link and image in a block tree."""
    for block in blocks:
        line = getattr(block, "line", None) or line
        inlines: tuple[Inline, ...] = ()
        if isinstance(block, Heading):
            inlines = block.text
            yield from iter_references(block.children, line)
        elif isinstance(block, Paragraph):
            inlines = block.children
        elif isinstance(block, Image):
            yield "image", block.reference, line
        elif isinstance(block, List):
            for item in block.items:
                yield from iter_references(item, line)
        elif isinstance(block, Table):
            inlines = tuple(n for row in (block.header, *block.rows) for cell in row for n in cell)
        elif isinstance(block, (Quote, Callout)):
            yield from iter_references(block.children, line)
        for node in _walk_inlines(inlines):
            if isinstance(node, Link):
                yield "link", node.target, line
            elif isinstance(node, InlineImage):
                yield "image", node.reference, line


def _anchors(blocks: tuple[Block, ...]) -> set[str]:
    found = set()
    for block in blocks:
        if isinstance(block, Heading):
            found.add(block.anchor)
            found |= _anchors(block.children)
        elif isinstance(block, (Quote, Callout)):
            found |= _anchors(block.children)
        elif isinstance(block, List):
            for item in block.items:
                found |= _anchors(item)
    return found


def check_references(documents: Iterable[Document], index: CorpusIndex, root: Path) -> list[ReferenceProblem]:
    """Return reference problems across documents, sorted by source path and line."""
    problems: list[ReferenceProblem] = []
    root = Path(root)
    for doc in documents:
        anchors = _anchors(doc.blocks)
        for kind, target, line in iter_references(doc.blocks):
            parts = urlsplit(target)
            if parts.scheme or parts.netloc:
                continue
            if kind == "link" and not parts.path and parts.fragment:
                if parts.fragment not in anchors:
                    problems.append(ReferenceProblem(doc.source_path, target, "dangling anchor", line))
            elif kind == "link" and is_internal(target):
                if resolve_internal(target, doc.source_path, index) is None:
                    problems.append(ReferenceProblem(doc.source_path, target, "unresolved document link", line))
            elif kind == "image" and parts.path:
                path = unquote(parts.path)
                if path.startswith("/"):
                    rel = path.lstrip("/")
                else:
                    rel = posixpath.normpath(posixpath.join(posixpath.dirname(doc.source_path), path))
                if not (root / rel).is_file():
                    problems.append(ReferenceProblem(doc.source_path, target, "missing image", line))
    return sorted(problems, key=lambda p: (p.source_path, p.line or 0, p.target))
