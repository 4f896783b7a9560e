"""Document loading: source discovery, front-matter extraction, and metadata validation"""

import logging
import re
from pathlib import Path
from typing import Any, Iterator

import yaml
from pydantic import ValidationError

from mdsite.core.errors import IOFailure, MalformedMetadata
from mdsite.core.models import Document, DocumentMeta, SourceFile
from mdsite.core.utils.hashing import sha256
from mdsite.core.utils.slug import path_slug


logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r'\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)', re.DOTALL | re.MULTILINE)
MD_EXTENSIONS = {'.md', '.mdx'}
RESERVED_SLUGS = {'index'}
RESERVED_DIRS = {'tags', 'series'}


class SourceTree:
    """Lazy, restartable view of the .md/.mdx files under root.

    Each iteration re-scans the tree, so iterating twice yields the same
    sources absent external changes.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def __iter__(self) -> Iterator[SourceFile]:
        if self.root.is_file():
            if self.root.suffix in MD_EXTENSIONS:
                yield SourceFile(path=self.root, rel_path=self.root.name)
            return
        if not self.root.is_dir():
            raise IOFailure(f"Corpus root is not a readable directory: {self.root}", path=str(self.root))
        try:
            paths = sorted(p for p in self.root.rglob('*') if p.suffix in MD_EXTENSIONS and p.is_file())
        except OSError as e:
            raise IOFailure(f"Cannot scan corpus root {self.root}: {e}", path=str(self.root)) from e
        for p in paths:
            yield SourceFile(path=p, rel_path=p.relative_to(self.root).as_posix())


def discover_files(path: Path) -> list[Path]:
    """Return sorted .md/.mdx files under path, or [path] if a single markdown file."""
    return [s.path for s in SourceTree(path)]


def read_source(path: Path) -> str:
    """Read a source as UTF-8, retrying once on OSError before raising IOFailure."""
    try:
        return path.read_text(encoding='utf-8')
    except OSError as first:
        logger.debug("retrying read of %s after %s", path, first)
        try:
            return path.read_text(encoding='utf-8')
        except OSError as e:
            raise IOFailure(f"Cannot read {path}: {e}", path=str(path)) from e


def split_frontmatter(text: str) -> tuple[dict[str, Any], str, int]:
    """Return (frontmatter_dict, body, body_start_line) with the YAML header removed."""
    m = FRONTMATTER_RE.match(text)
    if not m:
        return {}, text, 1
    try:
        fm = yaml.safe_load(m.group(1)) or {}
    except yaml.YAMLError as e:
        raise MalformedMetadata(f"Invalid YAML frontmatter: {e}") from e
    if not isinstance(fm, dict):
        raise MalformedMetadata(f"Invalid YAML frontmatter: expected a mapping, got {type(fm).__name__}")
    return fm, text[m.end():], m.group(0).count('\n') + 1


def _describe(err: ValidationError) -> tuple[str, tuple[str, ...]]:
    fields = tuple(dict.fromkeys(str(e['loc'][0]) if e['loc'] else '?' for e in err.errors()))
    details = "; ".join(
        f"{'.'.join(str(p) for p in e['loc']) or '?'}: {e['msg']}" for e in err.errors()
    )
    return details, fields


def load_document(source: SourceFile, text: str) -> Document:
    """Build a Document from raw source text. Raises MalformedMetadata on bad front-matter."""
    try:
        frontmatter, body, body_line = split_frontmatter(text)
    except MalformedMetadata as e:
        raise MalformedMetadata(str(e), source=source.rel_path) from e

    try:
        meta = DocumentMeta.model_validate(frontmatter)
    except ValidationError as e:
        details, fields = _describe(e)
        raise MalformedMetadata(f"{source.rel_path}: {details}", source=source.rel_path, fields=fields) from e

    slug = path_slug(meta.slug) if meta.slug else path_slug(source.rel_path.rsplit(".", 1)[0])
    if not slug:
        raise MalformedMetadata(f"{source.rel_path}: cannot derive a slug", source=source.rel_path, fields=("slug",))
    if slug in RESERVED_SLUGS or ("/" in slug and slug.split("/")[0] in RESERVED_DIRS):
        raise MalformedMetadata(f"{source.rel_path}: slug '{slug}' is reserved", source=source.rel_path, fields=("slug",))

    return Document(
        slug=slug,
        source_path=source.rel_path,
        meta=meta,
        body=body,
        content_hash=sha256(text),
        body_line=body_line,
        frontmatter=frontmatter,
    )


def load_file(source: SourceFile) -> Document:
    """Read and load a single source."""
    return load_document(source, read_source(source.path))
